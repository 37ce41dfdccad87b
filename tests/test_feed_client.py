"""Tests for the MTA feed client."""

import concurrent.futures
import os
import sys
import time
import unittest
from pathlib import Path
from unittest.mock import MagicMock, patch

import requests

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
sys.path.insert(0, str(Path(__file__).parent))

from google.transit import gtfs_realtime_pb2

from crowdtrack import config
from crowdtrack.feed_client import MTAFeedClient

from feeds import add_trip, new_feed


def _response(content=b"", json_data=None):
    response = MagicMock()
    response.content = content
    response.json.return_value = json_data
    response.raise_for_status.return_value = None
    return response


class TestMTAFeedClient(unittest.TestCase):
    """Test MTAFeedClient transport and caching."""

    def setUp(self):
        """Set up a client with a mocked session."""
        self.session = MagicMock()
        self.client = MTAFeedClient(session=self.session)

        feed = new_feed()
        add_trip(feed, "trip1", "A", [("A27N", 1700000500, 0)])
        self.feed_bytes = feed.SerializeToString()

    def test_get_subway_feed(self):
        """Test fetching and decoding a subway feed."""
        self.session.get.return_value = _response(self.feed_bytes)

        feed = self.client.get_subway_feed("ace")

        self.assertIsNotNone(feed)
        self.assertEqual(feed.entity[0].trip_update.trip.trip_id, "trip1")
        url = self.session.get.call_args[0][0]
        self.assertEqual(url, config.SUBWAY_FEED_URLS["ace"])
        self.assertEqual(self.session.get.call_args[1]["headers"]["Accept"], "application/x-protobuf")

    def test_unknown_subway_feed(self):
        """Test that an unknown feed key returns None without a request."""
        self.assertIsNone(self.client.get_subway_feed("xyz"))
        self.session.get.assert_not_called()

    def test_get_feed_for_route(self):
        """Test that a line maps to its feed group."""
        self.session.get.return_value = _response(self.feed_bytes)

        self.client.get_feed_for_route("C")

        self.assertEqual(self.session.get.call_args[0][0], config.SUBWAY_FEED_URLS["ace"])

    @patch("crowdtrack.feed_client.time.time")
    def test_cache_within_window(self, mock_time):
        """Test that a second fetch within the cache window reuses the payload."""
        mock_time.return_value = 1000.0
        self.session.get.return_value = _response(self.feed_bytes)

        self.client.fetch_bytes("http://example.com/feed", "subway")
        mock_time.return_value = 1029.0
        self.client.fetch_bytes("http://example.com/feed", "subway")

        self.assertEqual(self.session.get.call_count, 1)

    @patch("crowdtrack.feed_client.time.time")
    def test_cache_expires(self, mock_time):
        """Test that an expired entry triggers a new request."""
        mock_time.return_value = 1000.0
        self.session.get.return_value = _response(self.feed_bytes)

        self.client.fetch_bytes("http://example.com/feed", "subway")
        mock_time.return_value = 1031.0
        self.client.fetch_bytes("http://example.com/feed", "subway")

        self.assertEqual(self.session.get.call_count, 2)

    @patch("crowdtrack.feed_client.time.time")
    def test_cache_window_per_kind(self, mock_time):
        """Test that equipment data stays cached longer than subway data."""
        mock_time.return_value = 1000.0
        self.session.get.return_value = _response(json_data=[])

        self.client.fetch_json("http://example.com/equipment", "equipment")
        mock_time.return_value = 1000.0 + 600
        self.client.fetch_json("http://example.com/equipment", "equipment")

        self.assertEqual(self.session.get.call_count, 1)

    @patch("crowdtrack.feed_client.time.time")
    def test_cache_size_bounded(self, mock_time):
        """Test that the oldest entry is evicted when the cache is full."""
        mock_time.side_effect = [1000.0, 1000.0, 1001.0, 1001.0, 1002.0, 1002.0]
        self.client._max_cache_size = 2
        self.session.get.return_value = _response(b"x")

        for i in range(3):
            self.client.fetch_bytes(f"http://example.com/{i}", "equipment")

        self.assertEqual(len(self.client._cache), 2)
        self.assertNotIn("http://example.com/0", self.client._cache)

    def test_clear_cache(self):
        """Test manual cache clearing."""
        self.session.get.return_value = _response(b"x")
        self.client.fetch_bytes("http://example.com/feed", "subway")

        self.client.clear_cache()

        self.assertEqual(len(self.client._cache), 0)

    def test_concurrent_misses_share_one_request(self):
        """Test that simultaneous fetches of one url make a single request."""
        response = _response(self.feed_bytes)

        def slow_get(url, headers=None, timeout=None):
            time.sleep(0.2)
            return response

        self.session.get.side_effect = slow_get

        with concurrent.futures.ThreadPoolExecutor(max_workers=8) as executor:
            futures = [
                executor.submit(self.client.fetch_bytes, "http://example.com/feed", "subway")
                for _ in range(8)
            ]
            results = [f.result() for f in futures]

        self.assertEqual(self.session.get.call_count, 1)
        self.assertTrue(all(r == self.feed_bytes for r in results))

    def test_failed_fetch_not_shared(self):
        """Test that a caller waiting on a failed request tries again."""
        self.session.get.side_effect = [requests.ConnectionError("down"), _response(b"x")]

        self.assertIsNone(self.client.fetch_bytes("http://example.com/feed", "subway"))
        self.assertEqual(self.client.fetch_bytes("http://example.com/feed", "subway"), b"x")
        self.assertEqual(self.session.get.call_count, 2)

    def test_network_error_returns_none(self):
        """Test that transport failures yield None."""
        self.session.get.side_effect = requests.ConnectionError("boom")

        self.assertIsNone(self.client.get_subway_feed("ace"))

    def test_http_error_returns_none(self):
        """Test that HTTP error statuses yield None."""
        response = _response(b"")
        response.raise_for_status.side_effect = requests.HTTPError("503")
        self.session.get.return_value = response

        self.assertIsNone(self.client.get_alert_feed("subway"))

    def test_invalid_json_returns_none(self):
        """Test that an unparseable JSON body yields None."""
        response = _response()
        response.json.side_effect = ValueError("not json")
        self.session.get.return_value = response

        self.assertIsNone(self.client.get_elevator_feed("current"))

    def test_undecodable_feed_returns_none(self):
        """Test that a payload missing its header yields None."""
        feed = gtfs_realtime_pb2.FeedMessage()
        feed.entity.add().id = "1"
        self.session.get.return_value = _response(feed.SerializePartialToString())

        self.assertIsNone(self.client.get_subway_feed("ace"))

    def test_get_rail_feed(self):
        """Test fetching a railroad feed."""
        self.session.get.return_value = _response(self.feed_bytes)

        self.assertIsNotNone(self.client.get_rail_feed("lirr"))
        self.assertEqual(self.session.get.call_args[0][0], config.RAIL_FEED_URLS["lirr"])
        self.assertIsNone(self.client.get_rail_feed("amtrak"))

    def test_get_alert_feed(self):
        """Test fetching alert JSON."""
        self.session.get.return_value = _response(json_data={"header": {}, "entity": []})

        data = self.client.get_alert_feed("subway")

        self.assertEqual(data, {"header": {}, "entity": []})
        self.assertEqual(self.session.get.call_args[1]["headers"]["Accept"], "application/json")

    def test_get_all_subway_feeds(self):
        """Test that failing feed groups are dropped."""
        def fake_get(url, headers=None, timeout=None):
            if url == config.SUBWAY_FEED_URLS["g"]:
                raise requests.Timeout("slow")
            return _response(self.feed_bytes)

        self.session.get.side_effect = fake_get

        feeds = self.client.get_all_subway_feeds()

        self.assertNotIn("g", feeds)
        self.assertEqual(len(feeds), len(config.SUBWAY_FEED_URLS) - 1)


class TestBusFeeds(unittest.TestCase):
    """Test bus feed access and the API key requirement."""

    def setUp(self):
        """Set up a client with a mocked session."""
        self.session = MagicMock()
        self.client = MTAFeedClient(session=self.session)

    def test_missing_key_skips_request(self):
        """Test that no request is made without an API key."""
        with patch.dict(os.environ, {}, clear=True):
            self.assertIsNone(self.client.get_bus_feed("trip_updates"))
            self.assertIsNone(self.client.get_bus_feed("vehicle_positions"))

        self.session.get.assert_not_called()

    def test_key_added_to_url(self):
        """Test that the configured key is sent with the request."""
        feed = new_feed()
        self.session.get.return_value = _response(feed.SerializeToString())

        with patch.dict(os.environ, {config.BUS_API_KEY_ENV: "secret"}):
            result = self.client.get_bus_feed("trip_updates")

        self.assertIsNotNone(result)
        self.assertEqual(
            self.session.get.call_args[0][0],
            f"{config.BUS_FEED_URLS['trip_updates']}?key=secret",
        )


if __name__ == "__main__":
    unittest.main()
