"""Tests for delay extraction."""

import sys
import unittest
from pathlib import Path
from unittest.mock import MagicMock

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
sys.path.insert(0, str(Path(__file__).parent))

from crowdtrack.delays import (
    DelayExtractor,
    calculate_delay_impact,
    delay_severity,
    normalize_delay,
    summarize_route_delays,
)
from crowdtrack.models import DelayData

from feeds import add_trip, new_feed, roundtrip

NOW = 1700000000


class TestNormalizeDelay(unittest.TestCase):
    """Test delay normalization."""

    def test_breakpoints(self):
        """Test the piecewise scale at its breakpoints."""
        self.assertEqual(normalize_delay(0), 0.0)
        self.assertEqual(normalize_delay(-60), 0.0)
        self.assertAlmostEqual(normalize_delay(60), 0.2)
        self.assertAlmostEqual(normalize_delay(180), 0.5)
        self.assertAlmostEqual(normalize_delay(300), 0.8)
        self.assertEqual(normalize_delay(600), 1.0)
        self.assertEqual(normalize_delay(3600), 1.0)

    def test_monotonic(self):
        """Test that longer delays never score lower."""
        values = [normalize_delay(s) for s in range(0, 900, 15)]
        self.assertEqual(values, sorted(values))

    def test_severity(self):
        """Test severity labels."""
        self.assertEqual(delay_severity(0), "none")
        self.assertEqual(delay_severity(45), "minor")
        self.assertEqual(delay_severity(120), "moderate")
        self.assertEqual(delay_severity(240), "major")
        self.assertEqual(delay_severity(301), "severe")

    def test_impact(self):
        """Test the combined magnitude and frequency impact."""
        data = DelayData(
            avg_delay_seconds=300,
            delayed_trips_count=5,
            total_trips_checked=10,
            max_delay=600,
            percent_delayed=50.0,
        )
        self.assertAlmostEqual(calculate_delay_impact(data), 0.68)


class TestRouteDelays(unittest.TestCase):
    """Test delay statistics from a feed."""

    def setUp(self):
        """Build a feed with a delayed trip, an on-time trip and another route."""
        feed = new_feed()
        add_trip(feed, "A1", "A", [("A25N", NOW, 0), ("A27N", NOW + 60, 120), ("A28N", NOW + 120, 300)])
        on_time = add_trip(feed, "A2", "A", [("A27N", NOW + 300, 0)])
        on_time.trip_update.delay = 60
        add_trip(feed, "C1", "C", [("A27N", NOW + 30, 900)])
        self.feed = roundtrip(feed)

    def test_summarize(self):
        """Test per-route delay statistics."""
        data = summarize_route_delays(self.feed, "A")

        self.assertEqual(data.total_trips_checked, 2)
        self.assertEqual(data.delayed_trips_count, 1)
        self.assertEqual(data.avg_delay_seconds, 90)
        self.assertEqual(data.max_delay, 120)
        self.assertEqual(data.percent_delayed, 50.0)

    def test_no_trips(self):
        """Test that a route without trips has no statistics."""
        self.assertIsNone(summarize_route_delays(self.feed, "G"))

    def test_extractor(self):
        """Test live lookups through the client."""
        client = MagicMock()
        client.get_feed_for_route.return_value = self.feed
        extractor = DelayExtractor(client)

        self.assertEqual(extractor.route_delays("C").max_delay, 900)

        client.get_feed_for_route.return_value = None
        self.assertIsNone(extractor.route_delays("C"))


if __name__ == "__main__":
    unittest.main()
