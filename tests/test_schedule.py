"""Tests for the static rail timetable lookup."""

import io
import json
import sys
import tempfile
import unittest
import zipfile
from pathlib import Path
from unittest.mock import MagicMock, patch

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from crowdtrack.schedule import ScheduleLookup, time_of_day_seconds

STOPS_TXT = """stop_id,stop_name,stop_lat,stop_lon
102,Babylon,40.70,-73.32
15,Freeport,40.65,-73.58
237,Penn Station,40.75,-73.99
"""

TRIPS_TXT = """route_id,service_id,trip_id,trip_short_name
1,WKD,T1,2015
1,SAT,T2,2015
1,WKD,T3,2020
1,WKD,T4,
"""

STOP_TIMES_TXT = """trip_id,arrival_time,departure_time,stop_id,stop_sequence
T1,08:00:00,08:00:00,102,1
T1,08:10:00,08:11:00,15,2
T1,08:40:00,08:40:00,237,10
T2,09:00:00,09:00:00,102,1
T3,,24:05:00,237,1
T3,24:40:00,24:40:00,102,2
T4,10:00:00,10:00:00,102,1
"""


class TestTimeOfDay(unittest.TestCase):
    """Test GTFS time parsing."""

    def test_parse(self):
        """Test standard and after-midnight times."""
        self.assertEqual(time_of_day_seconds("08:10:30"), 8 * 3600 + 10 * 60 + 30)
        self.assertEqual(time_of_day_seconds("08:10"), 8 * 3600 + 600)
        self.assertEqual(time_of_day_seconds("25:10"), 25 * 3600 + 600)

    def test_invalid(self):
        """Test values that cannot be parsed."""
        self.assertIsNone(time_of_day_seconds(""))
        self.assertIsNone(time_of_day_seconds("8"))
        self.assertIsNone(time_of_day_seconds("ab:cd"))


class TestScheduleLookup(unittest.TestCase):
    """Test ScheduleLookup loading."""

    def setUp(self):
        """Write GTFS files to a temporary directory."""
        self.tmpdir = tempfile.TemporaryDirectory()
        self.dir = Path(self.tmpdir.name)
        for name, content in (
            ("stops.txt", STOPS_TXT),
            ("trips.txt", TRIPS_TXT),
            ("stop_times.txt", STOP_TIMES_TXT),
        ):
            (self.dir / name).write_text(content, encoding="utf-8")

    def tearDown(self):
        """Remove the temporary directory."""
        self.tmpdir.cleanup()

    def _from_files(self):
        return ScheduleLookup.from_gtfs_files(
            str(self.dir / "stops.txt"),
            str(self.dir / "trips.txt"),
            str(self.dir / "stop_times.txt"),
        )

    def test_from_gtfs_files(self):
        """Test building from CSV files."""
        lookup = self._from_files()

        self.assertEqual(len(lookup), 2)
        stops = lookup.get_schedule("2015")
        self.assertEqual([s.stop_id for s in stops], ["102", "15", "237"])
        self.assertEqual(stops[1].stop_name, "Freeport")
        self.assertEqual(stops[1].scheduled_time, "08:10:00")

    def test_first_trip_per_train(self):
        """Test that only the first trip of a train number is kept."""
        lookup = self._from_files()
        self.assertEqual(lookup.get_schedule("2015")[0].scheduled_time, "08:00:00")

    def test_departure_fallback(self):
        """Test departure time used when arrival time is missing."""
        stops = self._from_files().get_schedule("2020")
        self.assertEqual([s.scheduled_time for s in stops], ["24:05:00", "24:40:00"])

    def test_unknown_train(self):
        """Test lookups for unknown or missing train numbers."""
        lookup = self._from_files()
        self.assertEqual(lookup.get_schedule("9999"), [])
        self.assertEqual(lookup.get_schedule(None), [])
        self.assertEqual(lookup.stop_name("237"), "Penn Station")
        self.assertEqual(lookup.stop_name("999"), "999")

    def test_json_roundtrip(self):
        """Test saving to and loading from the JSON layout."""
        lookup = self._from_files()
        path = self.dir / "schedules.json"
        path.write_text(json.dumps(lookup.to_dict()), encoding="utf-8")

        loaded = ScheduleLookup.from_json(path)

        self.assertEqual(loaded.get_schedule("2015"), lookup.get_schedule("2015"))

    def test_from_json_defaults_name(self):
        """Test that a stop without a name uses its id."""
        lookup = ScheduleLookup.from_json({"101": [{"id": 15, "time": "07:00"}]})
        self.assertEqual(lookup.get_schedule("101")[0].stop_name, "15")

    def _zip_bytes(self):
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w") as archive:
            for name in ("stops.txt", "trips.txt", "stop_times.txt"):
                archive.write(self.dir / name, name)
        return buffer.getvalue()

    def test_from_local_zip(self):
        """Test building from a local archive."""
        path = self.dir / "gtfs.zip"
        path.write_bytes(self._zip_bytes())

        lookup = ScheduleLookup.from_gtfs_zip(str(path))

        self.assertEqual(len(lookup), 2)

    @patch("crowdtrack.schedule.requests.get")
    def test_from_remote_zip(self, mock_get):
        """Test downloading an archive."""
        response = MagicMock()
        response.content = self._zip_bytes()
        mock_get.return_value = response

        lookup = ScheduleLookup.from_gtfs_zip("https://example.com/gtfs.zip")

        self.assertEqual(len(lookup), 2)
        response.raise_for_status.assert_called_once()


if __name__ == "__main__":
    unittest.main()
