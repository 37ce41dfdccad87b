"""Tests for service alert parsing and impact."""

import sys
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import MagicMock

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from crowdtrack.alert_impact import (
    AlertImpactAnalyzer,
    alert_category,
    alert_score,
    analyze_alerts,
    is_station_affected,
    normalize_alert_impact,
)
from crowdtrack.alerts import (
    fetch_alerts,
    filter_alerts,
    is_alert_active,
    map_alert_type,
    map_severity,
    parse_alert_feed,
)
from crowdtrack.models import AlertImpact, ServiceAlert

NOW = datetime(2024, 3, 5, 12, 0, tzinfo=timezone.utc)


def _alert_feed():
    start = NOW.timestamp() - 3600
    return {
        "header": {
            "gtfs_realtime_version": "1.0",
            "timestamp": NOW.timestamp(),
            "incrementality": "FULL_DATASET",
            "transit_realtime.mercury_feed_header": {"mercury_version": "1.0"},
        },
        "entity": [
            {
                "id": "lmm:alert:1",
                "alert": {
                    "active_period": [{"start": start}],
                    "informed_entity": [
                        {"agency_id": "MTASBWY", "route_id": "A"},
                        {"agency_id": "MTASBWY", "route_id": "A", "stop_id": "A27"},
                        {"agency_id": "MTASBWY", "route_id": "C"},
                    ],
                    "header_text": {
                        "translation": [
                            {"text": "<p>[A] trains delayed</p>", "language": "en-html"},
                            {"text": "[A] trains are running with delays", "language": "en"},
                        ]
                    },
                    "transit_realtime.mercury_alert": {
                        "created_at": start,
                        "updated_at": start,
                        "alert_type": "Delays",
                    },
                },
            },
            {
                "id": "lmm:planned_work:2",
                "alert": {
                    "active_period": [{"start": start, "end": start + 7200}],
                    "informed_entity": [{"agency_id": "MTASBWY", "route_id": "L"}],
                    "header_text": {"translation": [{"text": "No [L] service between 8 Av and Bedford Av"}]},
                    "description_text": {"translation": [{"text": "Take the M14 bus", "language": "en"}]},
                    "effect": "NO_SERVICE",
                    "cause": "MAINTENANCE",
                },
            },
            {"id": "lmm:alert:3", "alert": {"header_text": {"translation": []}}},
            {"id": "lmm:alert:4"},
        ],
    }


def _alert(severity="WARNING", alert_type="DELAY", start=None, end=None, routes=("A",), stops=()):
    return ServiceAlert(
        id="a",
        affected_routes=list(routes),
        affected_stops=list(stops),
        header_text="header",
        description_text=None,
        severity=severity,
        alert_type=alert_type,
        active_period_start=start,
        active_period_end=end,
    )


class TestParseAlertFeed(unittest.TestCase):
    """Test parse_alert_feed."""

    def test_parse(self):
        """Test parsing a realistic alert feed."""
        alerts = parse_alert_feed(_alert_feed())

        self.assertEqual(len(alerts), 2)
        delay, closure = alerts

        self.assertEqual(delay.id, "lmm:alert:1")
        self.assertEqual(delay.header_text, "[A] trains are running with delays")
        self.assertEqual(delay.affected_routes, ["A", "C"])
        self.assertEqual(delay.affected_stops, ["A27"])
        self.assertEqual(delay.severity, "WARNING")
        self.assertEqual(delay.alert_type, "DELAY")
        self.assertEqual(delay.active_period_start, NOW - timedelta(hours=1))
        self.assertIsNone(delay.active_period_end)

        self.assertEqual(closure.severity, "SEVERE")
        self.assertEqual(closure.alert_type, "STATION_CLOSURE")
        self.assertEqual(closure.description_text, "Take the M14 bus")
        self.assertEqual(closure.active_period_end, NOW + timedelta(hours=1))

    def test_invalid_payload(self):
        """Test that a payload that does not match the schema is rejected."""
        self.assertEqual(parse_alert_feed({"entity": []}), [])
        self.assertEqual(parse_alert_feed({"header": {"gtfs_realtime_version": "1.0"}, "entity": []}), [])
        self.assertEqual(parse_alert_feed("not a feed"), [])

    def test_fetch_alerts(self):
        """Test fetching through a client."""
        client = MagicMock()
        client.get_alert_feed.return_value = _alert_feed()
        self.assertEqual(len(fetch_alerts(client)), 2)

        client.get_alert_feed.return_value = None
        self.assertEqual(fetch_alerts(client), [])


class TestClassification(unittest.TestCase):
    """Test severity and type mapping."""

    def test_severity_order(self):
        """Test that the first matching severity rule wins."""
        self.assertEqual(map_severity("SEVERE", "NO_SERVICE", "Delays"), "SEVERE")
        self.assertEqual(map_severity("info", "NO_SERVICE", None), "INFO")
        self.assertEqual(map_severity(None, "NO_SERVICE", "Delays"), "WARNING")
        self.assertEqual(map_severity(None, None, "Suspended"), "SEVERE")
        self.assertEqual(map_severity(None, "DETOUR", None), "WARNING")
        self.assertEqual(map_severity(None, None, None, "Trains suspended"), "SEVERE")
        self.assertEqual(map_severity(None, None, None, "Elevator outage"), "INFO")

    def test_type_order(self):
        """Test that the first matching type rule wins."""
        self.assertEqual(map_alert_type("DETOUR", None, "delays", "Planned - Part Suspended"), "PLANNED_WORK")
        self.assertEqual(map_alert_type("DETOUR", None, "Trains delayed", None), "DELAY")
        self.assertEqual(map_alert_type(None, None, "Shuttle bus replaces trains", None), "SHUTTLE_BUS")
        self.assertEqual(map_alert_type(None, None, "Trains bypass 23 St", None), "STATION_CLOSURE")
        self.assertEqual(map_alert_type("REDUCED_SERVICE", None, "Fewer trains", None), "REDUCED_SERVICE")
        self.assertEqual(map_alert_type(None, "CONSTRUCTION", "Notice", None), "PLANNED_WORK")
        self.assertEqual(map_alert_type(None, None, "Notice", None), "OTHER")


class TestActiveAlerts(unittest.TestCase):
    """Test activity checks and filtering."""

    def test_is_alert_active(self):
        """Test start and end boundaries."""
        self.assertTrue(is_alert_active(_alert(), NOW))
        self.assertFalse(is_alert_active(_alert(start=NOW + timedelta(minutes=5)), NOW))
        self.assertFalse(is_alert_active(_alert(end=NOW - timedelta(seconds=1)), NOW))
        self.assertTrue(is_alert_active(_alert(end=NOW + timedelta(seconds=1)), NOW))

    def test_filter_alerts(self):
        """Test filtering by route, severity and end time."""
        alerts = [
            _alert(routes=("A",), severity="SEVERE"),
            _alert(routes=("L",), end=NOW - timedelta(seconds=1)),
            _alert(routes=("A", "L"), end=NOW + timedelta(hours=1)),
        ]

        self.assertEqual(len(filter_alerts(alerts, route_id="L")), 2)
        self.assertEqual(len(filter_alerts(alerts, severity="SEVERE")), 1)
        self.assertEqual(len(filter_alerts(alerts, active_only=True, now=NOW)), 2)
        self.assertEqual(len(filter_alerts(alerts, route_id="L", active_only=True, now=NOW)), 1)


class TestAlertImpact(unittest.TestCase):
    """Test alert impact aggregation."""

    def test_alert_score(self):
        """Test the weighted score of one alert."""
        self.assertAlmostEqual(alert_score(_alert("SEVERE", "STATION_CLOSURE"), NOW), 1.0)
        self.assertAlmostEqual(alert_score(_alert("INFO", "PLANNED_WORK"), NOW), 0.28)
        self.assertEqual(alert_score(_alert(end=NOW - timedelta(seconds=1)), NOW), 0.0)

    def test_expired_alert_excluded(self):
        """Test that an alert that ended a second ago has no impact."""
        impact = analyze_alerts([_alert(end=NOW - timedelta(seconds=1))], NOW)

        self.assertEqual(impact.active_alerts, 0)
        self.assertEqual(normalize_alert_impact(impact), 0.0)
        self.assertEqual(alert_category(impact), "none")

    def test_analyze_alerts(self):
        """Test aggregation of several active alerts."""
        alerts = [
            _alert("SEVERE", "STATION_CLOSURE", stops=("A27",)),
            _alert("WARNING", "DELAY", stops=("A28", "A27")),
        ]

        impact = analyze_alerts(alerts, NOW)

        self.assertEqual(impact.active_alerts, 2)
        self.assertEqual(impact.severe_alerts, 1)
        self.assertEqual(impact.avg_severity, 0.82)
        self.assertEqual(impact.affected_stations, {"A27", "A28"})
        self.assertEqual(impact.alert_types, {"STATION_CLOSURE": 1, "DELAY": 1})
        self.assertTrue(is_station_affected("A28", impact))
        self.assertEqual(alert_category(impact), "major")

    def test_normalize_alert_impact(self):
        """Test normalization with the severe bonus and the cap."""
        self.assertEqual(normalize_alert_impact(None), 0.0)
        impact = AlertImpact(active_alerts=1, severe_alerts=0, avg_severity=0.5)
        self.assertAlmostEqual(normalize_alert_impact(impact), 0.38)
        impact = AlertImpact(active_alerts=5, severe_alerts=2, avg_severity=1.0)
        self.assertEqual(normalize_alert_impact(impact), 1.0)

    def test_analyzer(self):
        """Test route and network impact from a client."""
        client = MagicMock()
        client.get_alert_feed.return_value = _alert_feed()
        analyzer = AlertImpactAnalyzer(client)

        self.assertEqual(analyzer.route_impact("L", NOW).active_alerts, 1)
        self.assertEqual(analyzer.route_impact("G", NOW).active_alerts, 0)
        self.assertEqual(analyzer.network_impact(NOW).active_alerts, 2)

    def test_shuttle_alerts_use_feed_ids(self):
        """Test that shuttle alerts tagged with feed route ids count for the public line."""
        feed = _alert_feed()
        feed["entity"].append({
            "id": "lmm:alert:5",
            "alert": {
                "active_period": [{"start": NOW.timestamp() - 600}],
                "informed_entity": [{"agency_id": "MTASBWY", "route_id": "FS"}],
                "header_text": {"translation": [{"text": "No [S] Franklin Av shuttle service", "language": "en"}]},
                "effect": "NO_SERVICE",
            },
        })
        client = MagicMock()
        client.get_alert_feed.return_value = feed
        analyzer = AlertImpactAnalyzer(client)

        self.assertEqual(analyzer.route_impact("SF", NOW).active_alerts, 1)
        self.assertEqual(analyzer.route_impact("FS", NOW).active_alerts, 1)
        self.assertEqual(analyzer.route_impact("SR", NOW).active_alerts, 0)


if __name__ == "__main__":
    unittest.main()
