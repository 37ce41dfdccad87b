"""Tests for the crowding tracker."""

import sys
import unittest
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import MagicMock, patch
from zoneinfo import ZoneInfo

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from crowdtrack import config
from crowdtrack.crowding import CrowdingTracker, headway_level
from crowdtrack.demand import DemandModel
from crowdtrack.models import (
    CrowdingFactors,
    HeadwayData,
    RouteCrowdingEnhanced,
    SegmentCrowding,
)

TZ = ZoneInfo("America/New_York")
SUNDAY_NIGHT = datetime(2024, 3, 3, 3, 0, tzinfo=TZ)
MONDAY_MORNING = datetime(2024, 3, 4, 8, 30, tzinfo=TZ)


def _headways(north, south):
    return HeadwayData(
        avg_headway_min=round((north + south) / 2, 1),
        headways_by_direction={"N": [north], "S": [south]},
        arrival_count=4,
    )


def _segment(route_id, score, direction="N"):
    return SegmentCrowding(
        route_id=route_id,
        mode="subway",
        direction=direction,
        segment_id=f"{route_id}-seg",
        segment_name="Segment",
        segment_start="A",
        segment_end="B",
        crowding_level="LOW",
        crowding_score=score,
        factors=CrowdingFactors(),
        timestamp=datetime.now(timezone.utc),
        stations_in_segment=["A", "B"],
    )


def _route(route_id, score):
    return RouteCrowdingEnhanced(
        route_id=route_id,
        mode="subway",
        avg_score=score,
        avg_level="LOW",
        segments=[],
        timestamp=datetime.now(timezone.utc),
    )


class TestHeadwayLevel(unittest.TestCase):
    """Test headway-only levels."""

    def test_thresholds(self):
        """Test the 6 and 12 minute thresholds."""
        self.assertEqual(headway_level(4), "LOW")
        self.assertEqual(headway_level(6), "LOW")
        self.assertEqual(headway_level(6.1), "MEDIUM")
        self.assertEqual(headway_level(12), "MEDIUM")
        self.assertEqual(headway_level(12.5), "HIGH")


class TestSegmentCrowding(unittest.TestCase):
    """Test CrowdingTracker.segment_crowding."""

    def setUp(self):
        """Set up a tracker with mocked data sources."""
        self.client = MagicMock()
        self.tracker = CrowdingTracker(client=self.client, demand_model=DemandModel(tz_name="America/New_York"))
        self.tracker.delays.route_delays = MagicMock(return_value=None)
        self.tracker.alerts.route_impact = MagicMock(return_value=None)

    def test_direction_headways_used(self):
        """Test a segment score from the requested direction's headways."""
        self.tracker.headways.segment_headways = MagicMock(return_value={
            "A32": _headways(10, 4),
            "A33": _headways(10, 4),
        })

        result = self.tracker.segment_crowding("A", "A-midtown", "N", when=SUNDAY_NIGHT)

        self.assertEqual(result.crowding_score, 23)
        self.assertEqual(result.crowding_level, "LOW")
        self.assertEqual(result.factors.headway, 0.5)
        self.assertEqual(result.factors.demand, 0.15)
        self.assertEqual(result.segment_start, "A32")
        self.assertEqual(result.segment_end, "A42")
        self.assertEqual(result.segment_name, "Midtown")
        self.assertEqual(result.direction, "N")

        stations = self.tracker.headways.segment_headways.call_args[0][1]
        self.assertEqual(stations, list(result.stations_in_segment))

    def test_peak_direction(self):
        """Test that peak direction travel raises the score."""
        self.tracker.headways.segment_headways = MagicMock(return_value={"A32": _headways(10, 10)})

        southbound = self.tracker.segment_crowding("A", "A-midtown", "S", when=MONDAY_MORNING)
        northbound = self.tracker.segment_crowding("A", "A-midtown", "N", when=MONDAY_MORNING)

        self.assertEqual(northbound.crowding_score, 49)
        self.assertEqual(southbound.crowding_score, 59)

    def test_no_headway_data(self):
        """Test that a segment without station data gives None."""
        self.tracker.headways.segment_headways = MagicMock(return_value={})

        self.assertIsNone(self.tracker.segment_crowding("A", "A-midtown", "N", when=SUNDAY_NIGHT))
        self.assertIsNone(self.tracker.segment_crowding("A", "A-nowhere", "N", when=SUNDAY_NIGHT))

    def test_failing_source_counts_as_no_impact(self):
        """Test that a failing delay lookup does not prevent a score."""
        self.tracker.headways.segment_headways = MagicMock(return_value={"A32": _headways(10, 4)})
        self.tracker.delays.route_delays = MagicMock(side_effect=RuntimeError("feed down"))

        result = self.tracker.segment_crowding("A", "A-midtown", "N", when=SUNDAY_NIGHT)

        self.assertEqual(result.crowding_score, 23)
        self.assertEqual(result.factors.delay, 0.0)


class TestRouteAndNetwork(unittest.TestCase):
    """Test route and network aggregation."""

    def setUp(self):
        """Set up a tracker with a mocked client."""
        self.tracker = CrowdingTracker(client=MagicMock(), demand_model=DemandModel())

    def test_route_crowding(self):
        """Test sampling segments in both directions."""
        scores = {("A-inwood", "N"): 20, ("A-inwood", "S"): 31, ("A-harlem", "N"): 60}

        def fake_segment(route_id, segment_id, direction, when):
            score = scores.get((segment_id, direction))
            return _segment(route_id, score, direction) if score is not None else None

        with patch.object(self.tracker, "segment_crowding", side_effect=fake_segment) as mock_segment:
            result = self.tracker.route_crowding("A")

        self.assertEqual(mock_segment.call_count, 4)
        self.assertEqual(len(result.segments), 3)
        self.assertEqual(result.avg_score, 37)
        self.assertEqual(result.avg_level, "MEDIUM")

    def test_route_without_data(self):
        """Test a route with no segment results or no segments at all."""
        with patch.object(self.tracker, "segment_crowding", return_value=None):
            self.assertIsNone(self.tracker.route_crowding("A"))
        self.assertIsNone(self.tracker.route_crowding("X"))

    def test_network_crowding(self):
        """Test batching every line and averaging routes with data."""
        def fake_route(route_id, max_segments, when):
            if route_id == "G":
                raise RuntimeError("boom")
            if route_id in ("1", "2"):
                return _route(route_id, 70)
            if route_id == "3":
                return _route(route_id, 35)
            return None

        with patch.object(self.tracker, "route_crowding", side_effect=fake_route) as mock_route:
            network = self.tracker.network_crowding()

        self.assertEqual(mock_route.call_count, len(config.SUBWAY_LINES))
        self.assertEqual([r.route_id for r in network.routes], ["1", "2", "3"])
        self.assertEqual(network.avg_score, 58)
        self.assertEqual(network.avg_level, "MEDIUM")

    def test_empty_network(self):
        """Test a network with no data scores zero."""
        with patch.object(self.tracker, "route_crowding", return_value=None):
            network = self.tracker.network_crowding(routes=["A", "C"])

        self.assertEqual(network.avg_score, 0)
        self.assertEqual(network.avg_level, "LOW")
        self.assertEqual(network.routes, [])


class TestSimpleCrowding(unittest.TestCase):
    """Test headway-only crowding."""

    def setUp(self):
        """Set up a tracker with a mocked client."""
        self.client = MagicMock()
        self.tracker = CrowdingTracker(client=self.client, demand_model=DemandModel())

    def test_simple_route(self):
        """Test levels from reference station headways."""
        self.tracker.headways.route_headways = MagicMock(return_value=_headways(13, 13))
        result = self.tracker.simple_route_crowding("A")

        self.assertEqual(result.crowding_level, "HIGH")
        self.assertEqual(result.avg_headway_min, 13)

    def test_simple_route_without_data(self):
        """Test the LOW fallback when there is not enough data."""
        self.tracker.headways.route_headways = MagicMock(return_value=None)
        result = self.tracker.simple_route_crowding("A")

        self.assertEqual(result.crowding_level, "LOW")
        self.assertEqual(result.avg_headway_min, 0)

    def test_simple_network(self):
        """Test one result per reference route."""
        self.tracker.headways.route_headways = MagicMock(return_value=_headways(8, 8))
        results = self.tracker.simple_network_crowding()

        self.assertEqual(len(results), len(config.REFERENCE_STATIONS))
        self.assertTrue(all(r.crowding_level == "MEDIUM" for r in results))

    def test_context_manager(self):
        """Test that leaving the context clears the cache and closes the session."""
        with self.tracker:
            pass

        self.client.clear_cache.assert_called_once()
        self.client.session.close.assert_called_once()


if __name__ == "__main__":
    unittest.main()
