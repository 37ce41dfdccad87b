"""MTA realtime feed fetcher with per-feed cache windows."""

import concurrent.futures
import logging
import threading
import time
from typing import Any, Dict, Optional, Tuple

import requests
from google.transit import gtfs_realtime_pb2

from . import config
from .gtfs_decoder import FeedDecodeError, decode_feed

logger = logging.getLogger(__name__)

PROTOBUF_ACCEPT = "application/x-protobuf"
JSON_ACCEPT = "application/json"


class MTAFeedClient:
    """Fetches MTA realtime feeds and caches raw payloads per feed kind."""

    def __init__(self, session: Optional[requests.Session] = None, timeout: float = config.HTTP_TIMEOUT):
        """
        Initialize the feed client.

        Args:
            session: Optional requests session to reuse (a new one is created otherwise).
            timeout: Per-request timeout in seconds.
        """
        self.session = session or requests.Session()
        self.timeout = timeout
        self._cache: Dict[str, Tuple[Any, float, str]] = {}  # url -> (payload, timestamp, kind)
        self._cache_lock = threading.Lock()
        self._url_locks: Dict[str, threading.Lock] = {}  # url -> lock held while that url is fetched
        self._max_cache_size = config.MAX_CACHE_SIZE
        self._warned_missing_bus_key = False

    # ------------------------------------------------------------------
    # Raw transport
    # ------------------------------------------------------------------

    def fetch_bytes(self, url: str, kind: str) -> Optional[bytes]:
        """
        Fetch a protobuf feed.

        Args:
            url: Full URL to the feed.
            kind: Feed kind, selects the cache window (see config.FEED_TTLS).

        Returns:
            Raw protobuf bytes, or None if the feed could not be fetched.
        """
        return self._fetch(url, kind, PROTOBUF_ACCEPT, as_json=False)

    def fetch_json(self, url: str, kind: str) -> Optional[Any]:
        """
        Fetch a JSON feed.

        Returns:
            The decoded JSON document, or None if the feed could not be fetched or parsed.
        """
        return self._fetch(url, kind, JSON_ACCEPT, as_json=True)

    def _fetch(self, url: str, kind: str, accept: str, as_json: bool) -> Optional[Any]:
        cached = self._get_cached(url, time.time())
        if cached is not None:
            logger.debug(f"Using cached data for {url}")
            return cached

        # Concurrent misses on one url wait for the request already in flight
        with self._url_lock(url):
            now = time.time()
            cached = self._get_cached(url, now)
            if cached is not None:
                logger.debug(f"Using data fetched by another caller for {url}")
                return cached
            return self._request(url, kind, accept, as_json, now)

    def _url_lock(self, url: str) -> threading.Lock:
        with self._cache_lock:
            lock = self._url_locks.get(url)
            if lock is None:
                lock = self._url_locks[url] = threading.Lock()
            return lock

    def _request(self, url: str, kind: str, accept: str, as_json: bool, now: float) -> Optional[Any]:
        logger.debug(f"Fetching {url}")
        try:
            response = self.session.get(url, headers={"Accept": accept}, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json() if as_json else response.content
        except requests.RequestException as e:
            logger.warning(f"Failed to fetch {url}: {e}")
            return None
        except ValueError as e:
            logger.error(f"Invalid JSON from {url}: {e}")
            return None

        self._store(url, payload, kind, now)
        return payload

    def _get_cached(self, url: str, now: float) -> Optional[Any]:
        with self._cache_lock:
            entry = self._cache.get(url)
            if entry is None:
                return None
            payload, timestamp, kind = entry
            if now - timestamp < self._ttl(kind):
                return payload
            return None

    def _store(self, url: str, payload: Any, kind: str, now: float) -> None:
        with self._cache_lock:
            self._evict_expired_cache(now)

            if url not in self._cache and len(self._cache) >= self._max_cache_size:
                oldest_key = min(self._cache.keys(), key=lambda k: self._cache[k][1])
                del self._cache[oldest_key]

            self._cache[url] = (payload, now, kind)

    @staticmethod
    def _ttl(kind: str) -> int:
        return config.FEED_TTLS.get(kind, config.FEED_TTLS["subway"])

    def _evict_expired_cache(self, current_time: float) -> None:
        """Remove expired cache entries. Caller holds the cache lock."""
        expired_keys = [
            url for url, (_, timestamp, kind) in self._cache.items()
            if current_time - timestamp >= self._ttl(kind)
        ]
        for key in expired_keys:
            del self._cache[key]

        if expired_keys:
            logger.debug(f"Evicted {len(expired_keys)} expired cache entries")

    def clear_cache(self) -> None:
        """Manually clear the cache."""
        with self._cache_lock:
            self._cache.clear()

    def _decode(self, data: Optional[bytes], name: str) -> Optional[gtfs_realtime_pb2.FeedMessage]:
        if data is None:
            return None
        try:
            return decode_feed(data)
        except FeedDecodeError as e:
            logger.error(f"Failed to decode {name} feed: {e}")
            return None

    # ------------------------------------------------------------------
    # Named feeds
    # ------------------------------------------------------------------

    def get_subway_feed(self, feed_key: str) -> Optional[gtfs_realtime_pb2.FeedMessage]:
        """
        Fetch and decode one subway feed group.

        Args:
            feed_key: Key of config.SUBWAY_FEED_URLS (e.g. "ace", "1234567").

        Returns:
            Decoded FeedMessage, or None on transport or decode failure.
        """
        url = config.SUBWAY_FEED_URLS.get(feed_key)
        if url is None:
            logger.warning(f"Unknown subway feed: {feed_key}")
            return None
        return self._decode(self.fetch_bytes(url, "subway"), feed_key)

    def get_feed_for_route(self, route_id: str) -> Optional[gtfs_realtime_pb2.FeedMessage]:
        """Fetch the subway feed that carries a given line."""
        feed_key = config.SUBWAY_LINE_TO_FEED.get(route_id)
        if feed_key is None:
            return None
        return self.get_subway_feed(feed_key)

    def get_all_subway_feeds(self) -> Dict[str, gtfs_realtime_pb2.FeedMessage]:
        """Fetch every subway feed in parallel, dropping the ones that fail."""
        feeds: Dict[str, gtfs_realtime_pb2.FeedMessage] = {}
        with concurrent.futures.ThreadPoolExecutor(max_workers=config.MAX_WORKERS) as executor:
            future_to_key = {
                executor.submit(self.get_subway_feed, key): key
                for key in config.SUBWAY_FEED_URLS
            }
            for future in concurrent.futures.as_completed(future_to_key):
                key = future_to_key[future]
                try:
                    feed = future.result()
                except Exception as e:
                    logger.warning(f"Subway feed {key} failed: {e}")
                    continue
                if feed is not None:
                    feeds[key] = feed
        return feeds

    def get_rail_feed(self, mode: str) -> Optional[gtfs_realtime_pb2.FeedMessage]:
        """Fetch and decode the LIRR ("lirr") or Metro-North ("metro-north") feed."""
        url = config.RAIL_FEED_URLS.get(mode)
        if url is None:
            logger.warning(f"Unknown rail feed: {mode}")
            return None
        return self._decode(self.fetch_bytes(url, "rail"), mode)

    def bus_feed_url(self, feed: str) -> Optional[str]:
        """Build a bus feed URL with the API key, or None when no key is configured."""
        api_key = config.get_bus_api_key()
        if not api_key:
            if not self._warned_missing_bus_key:
                logger.warning("Bus API key not configured")
                self._warned_missing_bus_key = True
            return None
        base_url = config.BUS_FEED_URLS.get(feed)
        if base_url is None:
            return None
        return f"{base_url}?key={api_key}"

    def get_bus_feed(self, feed: str = "trip_updates") -> Optional[gtfs_realtime_pb2.FeedMessage]:
        """Fetch and decode a bus feed ("trip_updates" or "vehicle_positions")."""
        url = self.bus_feed_url(feed)
        if url is None:
            return None
        return self._decode(self.fetch_bytes(url, "bus"), f"bus {feed}")

    def get_alert_feed(self, feed: str = "subway") -> Optional[Any]:
        """Fetch the raw service alert JSON for one mode (or "all")."""
        url = config.ALERT_FEED_URLS.get(feed)
        if url is None:
            logger.warning(f"Unknown alert feed: {feed}")
            return None
        return self.fetch_json(url, "alerts")

    def get_elevator_feed(self, feed: str = "current") -> Optional[Any]:
        """Fetch current ("current") or planned ("upcoming") equipment outages."""
        url = config.ELEVATOR_FEED_URLS.get(feed)
        if url is None:
            return None
        return self.fetch_json(url, "elevators")

    def get_equipment_feed(self) -> Optional[Any]:
        """Fetch the full elevator/escalator equipment list."""
        return self.fetch_json(config.ELEVATOR_FEED_URLS["equipment"], "equipment")
