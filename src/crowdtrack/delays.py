"""Delay extraction and normalization."""

import logging
from typing import Optional

from google.transit import gtfs_realtime_pb2

from . import config
from .models import DelayData

logger = logging.getLogger(__name__)


def summarize_route_delays(feed: gtfs_realtime_pb2.FeedMessage, route_id: str) -> Optional[DelayData]:
    """
    Delay statistics for one route in a decoded feed.

    A trip counts as delayed when any of its stops shows a positive arrival
    delay; it is counted once.

    Args:
        feed: Decoded subway FeedMessage.
        route_id: Route id as it appears in the feed.

    Returns:
        DelayData, or None when the feed has no trips on the route.
    """
    delays = []
    total_trips = 0
    delayed_trips = 0

    for entity in feed.entity:
        if not entity.HasField("trip_update"):
            continue

        trip_update = entity.trip_update
        if trip_update.trip.route_id != route_id:
            continue

        total_trips += 1

        if trip_update.HasField("delay") and trip_update.delay != 0:
            delays.append(trip_update.delay)

        for stop_time_update in trip_update.stop_time_update:
            stop_delay = stop_time_update.arrival.delay if stop_time_update.HasField("arrival") else 0
            if stop_delay > 0:
                delays.append(stop_delay)
                delayed_trips += 1
                break

    if total_trips == 0:
        return None

    avg_delay = sum(delays) / len(delays) if delays else 0
    return DelayData(
        avg_delay_seconds=round(avg_delay),
        delayed_trips_count=delayed_trips,
        total_trips_checked=total_trips,
        max_delay=max(delays) if delays else 0,
        percent_delayed=delayed_trips / total_trips * 100,
    )


def normalize_delay(avg_delay_seconds: float) -> float:
    """
    Map an average delay onto 0-1.

    0-60s -> 0-0.2, 60-180s -> 0.2-0.5, 180-300s -> 0.5-0.8, beyond that
    rising slowly toward a cap of 1.0.
    """
    if avg_delay_seconds <= 0:
        return 0.0
    if avg_delay_seconds <= 60:
        return avg_delay_seconds / 300
    if avg_delay_seconds <= 180:
        return 0.2 + (avg_delay_seconds - 60) / 400
    if avg_delay_seconds <= 300:
        return 0.5 + (avg_delay_seconds - 180) / 400
    return min(0.8 + (avg_delay_seconds - 300) / 1500, 1.0)


def calculate_delay_impact(delay_data: DelayData) -> float:
    """Combined impact: 60% delay magnitude, 40% share of delayed trains."""
    magnitude = normalize_delay(delay_data.avg_delay_seconds)
    frequency = delay_data.percent_delayed / 100
    return magnitude * 0.6 + frequency * 0.4


def delay_severity(avg_delay_seconds: float) -> str:
    if avg_delay_seconds <= 0:
        return "none"
    if avg_delay_seconds <= 60:
        return "minor"
    if avg_delay_seconds <= 180:
        return "moderate"
    if avg_delay_seconds <= 300:
        return "major"
    return "severe"


class DelayExtractor:
    """Fetches live delay statistics per subway route."""

    def __init__(self, client):
        self.client = client

    def route_delays(self, route_id: str) -> Optional[DelayData]:
        """Delay statistics for a line, or None when no data is available."""
        feed = self.client.get_feed_for_route(route_id)
        if feed is None:
            return None
        data = summarize_route_delays(feed, config.feed_route_id(route_id))
        if data is not None:
            logger.debug(
                f"Route {route_id}: {data.delayed_trips_count}/{data.total_trips_checked} trips delayed"
            )
        return data
