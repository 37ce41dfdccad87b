"""Subway arrival extraction from decoded GTFS-Realtime feeds."""

import logging
import math
import re
import time
from typing import Iterable, List, Optional

from google.transit import gtfs_realtime_pb2

from . import gtfs_decoder
from .models import Arrival

logger = logging.getLogger(__name__)

# Trip ids carry the terminal code after "..", e.g. "073850_A..N03R"
HEADSIGN_PATTERNS = [
    re.compile(r"\.\.([A-Z0-9]+)"),
]

# Internal terminal codes that are not meaningful to riders
TERMINAL_CODE_PATTERNS = [
    re.compile(r"^[NS]$"),  # bare direction letter
    re.compile(r"^[NS]\d{2}[A-Z]?$"),  # direction + stop number + route, e.g. "N05R"
]

TRIP_DIRECTION_PATTERN = re.compile(r"\.\.([NS])")
PLATFORM_SUFFIXES = ("N", "S")


def minutes_until(arrival_time: float, now: float) -> int:
    """Whole minutes until an arrival, rounded up, never negative."""
    seconds_away = arrival_time - now
    if seconds_away <= 0:
        return 0
    return math.ceil(seconds_away / 60)


def finalize(arrivals: List[Arrival], limit: Optional[int] = None) -> List[Arrival]:
    """Sort arrivals by time and apply an optional limit."""
    arrivals.sort(key=lambda a: a.arrival_time)
    if limit:
        return arrivals[:limit]
    return arrivals


def matches_station(stop_id: str, station_id: str) -> bool:
    """
    Check whether a realtime stop id belongs to a station.

    Feeds use platform ids (parent id plus "N"/"S"), so "A27" matches "A27",
    "A27N" and "A27S" but not "A270".
    """
    if stop_id == station_id:
        return True
    return (
        len(stop_id) == len(station_id) + 1
        and stop_id.startswith(station_id)
        and stop_id[-1] in PLATFORM_SUFFIXES
    )


def extract_headsign(trip_id: str) -> Optional[str]:
    """
    Extract a destination hint from a subway trip id.

    Returns None when no pattern matches or when the code is an internal
    terminal id such as "N05R", so callers can fall back to a friendly name.
    """
    for pattern in HEADSIGN_PATTERNS:
        match = pattern.search(trip_id or "")
        if not match:
            continue
        code = match.group(1)
        if any(p.match(code) for p in TERMINAL_CODE_PATTERNS):
            return None
        return code
    return None


def subway_direction(trip, stop_id: str) -> str:
    """
    Direction of a subway trip: the NYCT extension when present, else the
    platform suffix of the stop id, else the "..N"/"..S" marker of the trip id.
    """
    direction = gtfs_decoder.nyct_direction(trip)
    if direction:
        return direction

    suffix = stop_id[-1:].upper()
    if suffix in PLATFORM_SUFFIXES:
        return suffix

    match = TRIP_DIRECTION_PATTERN.search(trip.trip_id or "")
    if match:
        return match.group(1)
    return "S"


def extract_subway_arrivals(
    feed: gtfs_realtime_pb2.FeedMessage,
    route_id: Optional[str] = None,
    station_id: Optional[str] = None,
    limit: Optional[int] = None,
    now: Optional[float] = None,
) -> List[Arrival]:
    """
    Extract upcoming subway arrivals from a decoded feed.

    Args:
        feed: Decoded FeedMessage.
        route_id: Only include trips on this route (feed route id).
        station_id: Parent station or platform id to filter stops by.
        limit: Maximum number of arrivals to return.
        now: Reference Unix time (defaults to the current time).

    Returns:
        List of Arrival objects sorted by arrival time.
    """
    now = time.time() if now is None else now
    arrivals: List[Arrival] = []

    for entity in feed.entity:
        if not entity.HasField("trip_update"):
            continue

        trip_update = entity.trip_update
        trip = trip_update.trip

        if route_id and trip.route_id != route_id:
            continue

        is_assigned = gtfs_decoder.nyct_is_assigned(trip)
        headsign = extract_headsign(trip.trip_id)
        train_id = gtfs_decoder.nyct_train_id(trip)

        for stop_time_update in trip_update.stop_time_update:
            stop_id = stop_time_update.stop_id
            if station_id and not matches_station(stop_id, station_id):
                continue

            arrival_time = gtfs_decoder.stop_time(stop_time_update)
            if arrival_time is None or arrival_time < now:
                continue

            arrivals.append(
                Arrival(
                    trip_id=trip.trip_id,
                    route_id=trip.route_id or "?",
                    direction=subway_direction(trip, stop_id),
                    stop_id=stop_id,
                    arrival_time=arrival_time,
                    delay=gtfs_decoder.stop_delay(stop_time_update),
                    minutes_away=minutes_until(arrival_time, now),
                    headsign=headsign,
                    train_number=train_id,
                    departure_time=gtfs_decoder.stop_departure_time(stop_time_update),
                    is_assigned=is_assigned,
                    mode="subway",
                    track=gtfs_decoder.stop_track(stop_time_update),
                )
            )

    return finalize(arrivals, limit)


def route_ids_in_feed(feed: gtfs_realtime_pb2.FeedMessage) -> List[str]:
    """Distinct route ids present in a feed's trip updates and vehicles."""
    route_ids = set()
    for entity in feed.entity:
        if entity.HasField("trip_update") and entity.trip_update.trip.route_id:
            route_ids.add(entity.trip_update.trip.route_id)
        elif entity.HasField("vehicle") and entity.vehicle.trip.route_id:
            route_ids.add(entity.vehicle.trip.route_id)
    return sorted(route_ids)


def group_by_direction(arrivals: Iterable[Arrival]) -> dict:
    """Group arrivals by direction, preserving order."""
    grouped: dict = {}
    for arrival in arrivals:
        grouped.setdefault(arrival.direction, []).append(arrival)
    return grouped
