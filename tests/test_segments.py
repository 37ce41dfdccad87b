"""Tests for the subway segment registry."""

import sys
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from crowdtrack import config
from crowdtrack.segments import (
    LINE_SEGMENTS,
    find_station_segment,
    get_line_segments,
    get_segment,
    get_segment_stations,
    total_segment_count,
)


class TestSegments(unittest.TestCase):
    """Test segment lookups."""

    def test_every_line_has_segments(self):
        """Test that every subway line has at least one segment."""
        for line in config.SUBWAY_LINES:
            self.assertTrue(get_line_segments(line), line)

    def test_segment_ids_unique_per_line(self):
        """Test that segment ids are unique and stations non-empty."""
        for line, segments in LINE_SEGMENTS.items():
            ids = [s.id for s in segments]
            self.assertEqual(len(ids), len(set(ids)), line)
            self.assertTrue(all(s.stations for s in segments), line)

    def test_get_segment(self):
        """Test looking up a segment."""
        segment = get_segment("A", "A-midtown")

        self.assertEqual(segment.name, "Midtown")
        self.assertEqual(segment.stations[0], "A32")
        self.assertEqual(get_segment("A", "A-rockaway").branch, "rockaway")

    def test_unknown_segment(self):
        """Test unknown lines and segments."""
        self.assertIsNone(get_segment("A", "A-nowhere"))
        self.assertEqual(get_line_segments("X"), ())
        self.assertEqual(get_segment_stations("X", "X-1"), [])
        with self.assertRaises(ValueError):
            get_segment("A", "A-nowhere", required=True)

    def test_find_station_segment(self):
        """Test finding the first segment containing a station."""
        self.assertEqual(find_station_segment("A", "A27").id, "A-harlem")
        self.assertEqual(find_station_segment("A", "A60").id, "A-brooklyn")
        self.assertIsNone(find_station_segment("A", "L03"))

    def test_registry_read_only(self):
        """Test that the registry cannot be modified."""
        with self.assertRaises(TypeError):
            LINE_SEGMENTS["X"] = ()
        self.assertEqual(total_segment_count(), sum(len(s) for s in LINE_SEGMENTS.values()))


if __name__ == "__main__":
    unittest.main()
