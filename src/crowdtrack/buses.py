"""Bus arrival extraction from the Bus Time GTFS-Realtime feeds."""

import logging
import re
import time
from typing import Dict, List, Optional, Tuple

from google.transit import gtfs_realtime_pb2

from . import gtfs_decoder
from .arrivals import finalize, minutes_until
from .models import Arrival

logger = logging.getLogger(__name__)

# Static fallback when the Bus Time API key is missing or the feed is down
KNOWN_BUS_ROUTES = {
    "M": ["M1", "M2", "M3", "M4", "M5", "M7", "M8", "M9", "M10", "M11", "M12", "M14A", "M14D",
          "M15", "M20", "M21", "M22", "M23", "M31", "M34", "M42", "M50", "M55", "M57", "M60",
          "M66", "M72", "M79", "M86", "M96", "M98", "M100", "M101", "M102", "M103", "M104", "M106", "M116"],
    "B": ["B1", "B2", "B3", "B4", "B6", "B8", "B9", "B11", "B12", "B15", "B16", "B17", "B25",
          "B26", "B35", "B38", "B41", "B44", "B46", "B47", "B48", "B49", "B52", "B54", "B57",
          "B61", "B62", "B63", "B67", "B68", "B69", "B82", "B83", "B103"],
    "Q": ["Q1", "Q2", "Q3", "Q4", "Q5", "Q6", "Q7", "Q8", "Q10", "Q12", "Q13", "Q15", "Q17",
          "Q20A", "Q20B", "Q23", "Q25", "Q27", "Q32", "Q39", "Q43", "Q44", "Q46", "Q53", "Q54",
          "Q58", "Q60", "Q64", "Q65", "Q66", "Q69", "Q70", "Q85", "Q88", "Q100", "Q101", "Q113"],
    "BX": ["BX1", "BX2", "BX4", "BX5", "BX6", "BX7", "BX9", "BX10", "BX11", "BX12", "BX13",
           "BX15", "BX17", "BX19", "BX21", "BX22", "BX28", "BX35", "BX36", "BX38", "BX39", "BX40", "BX41"],
    "S": ["S40", "S42", "S44", "S46", "S48", "S51", "S52", "S53", "S54", "S55", "S56", "S57",
          "S59", "S61", "S62", "S66", "S74", "S76", "S78", "S79", "S89", "S90", "S93"],
    "X": ["X27", "X28", "X37", "X38"],
    "BM": ["BM1", "BM2", "BM3", "BM4", "BM5"],
    "QM": ["QM1", "QM2", "QM4", "QM5", "QM6", "QM7", "QM8", "QM10", "QM12", "QM15"],
    "SIM": ["SIM1", "SIM1C", "SIM2", "SIM3", "SIM3C", "SIM4", "SIM4C", "SIM5", "SIM6", "SIM8", "SIM10"],
}

AGENCY_PREFIX_PATTERN = re.compile(r"^(MTA NYCT|MTABC|MTA)_")
ROUTE_PREFIX_PATTERN = re.compile(r"^[A-Z]+")


def all_known_routes() -> List[str]:
    return [route for routes in KNOWN_BUS_ROUTES.values() for route in routes]


def normalize_bus_route_id(route_id: str) -> str:
    """Strip the agency prefix, e.g. "MTA NYCT_M15" -> "M15"."""
    return AGENCY_PREFIX_PATTERN.sub("", route_id or "").upper()


def route_sort_key(route_id: str) -> Tuple[str, int]:
    """Natural order: M1, M2, M10, M100."""
    prefix_match = ROUTE_PREFIX_PATTERN.match(route_id)
    prefix = prefix_match.group(0) if prefix_match else ""
    digits = re.match(r"\d+", route_id[len(prefix):])
    return prefix, int(digits.group(0)) if digits else 0


def bus_direction(trip) -> str:
    """Bus direction from direction_id: 0 outbound, 1 inbound."""
    if trip.HasField("direction_id") and trip.direction_id == 1:
        return "inbound"
    return "outbound"


def extract_bus_arrivals(
    feed: gtfs_realtime_pb2.FeedMessage,
    route_id: Optional[str] = None,
    stop_id: Optional[str] = None,
    limit: Optional[int] = None,
    now: Optional[float] = None,
) -> List[Arrival]:
    """
    Extract upcoming bus arrivals from a decoded trip updates feed.

    Args:
        feed: Decoded bus trip updates FeedMessage.
        route_id: Only include this route (agency prefix optional).
        stop_id: Only include this stop (exact match).
        limit: Maximum number of arrivals to return.
        now: Reference Unix time (defaults to the current time).

    Returns:
        List of Arrival objects sorted by arrival time.
    """
    now = time.time() if now is None else now
    wanted_route = normalize_bus_route_id(route_id) if route_id else None
    arrivals: List[Arrival] = []

    for entity in feed.entity:
        if not entity.HasField("trip_update"):
            continue

        trip_update = entity.trip_update
        trip = trip_update.trip
        trip_route = normalize_bus_route_id(trip.route_id)
        if wanted_route and trip_route != wanted_route:
            continue

        direction = bus_direction(trip)
        vehicle_id = trip_update.vehicle.id or None

        for stop_time_update in trip_update.stop_time_update:
            if stop_id and stop_time_update.stop_id != stop_id:
                continue

            arrival_time = gtfs_decoder.stop_time(stop_time_update)
            if arrival_time is None or arrival_time < now:
                continue

            arrivals.append(
                Arrival(
                    trip_id=trip.trip_id,
                    route_id=trip_route,
                    direction=direction,
                    stop_id=stop_time_update.stop_id,
                    arrival_time=arrival_time,
                    delay=gtfs_decoder.stop_delay(stop_time_update),
                    minutes_away=minutes_until(arrival_time, now),
                    train_number=vehicle_id,
                    departure_time=gtfs_decoder.stop_departure_time(stop_time_update),
                    mode="bus",
                )
            )

    return finalize(arrivals, limit)


def get_bus_arrivals(
    client,
    route_id: Optional[str] = None,
    stop_id: Optional[str] = None,
    limit: Optional[int] = None,
    now: Optional[float] = None,
) -> List[Arrival]:
    """Fetch bus trip updates and extract arrivals; empty without an API key."""
    feed = client.get_bus_feed("trip_updates")
    if feed is None:
        return []
    return extract_bus_arrivals(feed, route_id=route_id, stop_id=stop_id, limit=limit, now=now)


def _active_vehicle_routes(feed: gtfs_realtime_pb2.FeedMessage) -> Dict[str, int]:
    """Vehicle count per route from a vehicle positions feed."""
    counts: Dict[str, int] = {}
    for entity in feed.entity:
        if entity.HasField("vehicle") and entity.vehicle.trip.route_id:
            route = normalize_bus_route_id(entity.vehicle.trip.route_id)
            counts[route] = counts.get(route, 0) + 1
        elif entity.HasField("trip_update") and entity.trip_update.trip.route_id:
            route = normalize_bus_route_id(entity.trip_update.trip.route_id)
            counts[route] = counts.get(route, 0) + 1
    return counts


def get_active_bus_routes(client) -> Tuple[List[str], bool]:
    """
    Routes with buses currently in service.

    Returns:
        (routes, is_live). Falls back to the static known route list with
        is_live False when no key is configured, the feed fails or it is empty.
    """
    feed = client.get_bus_feed("vehicle_positions")
    if feed is None:
        return all_known_routes(), False

    counts = _active_vehicle_routes(feed)
    if not counts:
        return all_known_routes(), False
    return sorted(counts, key=route_sort_key), True


def get_bus_summary(client) -> dict:
    """
    Dashboard summary: bus count, active routes and counts per route group.
    """
    feed = client.get_bus_feed("vehicle_positions")
    counts = _active_vehicle_routes(feed) if feed is not None else {}
    if not counts:
        return {
            "total_buses": 0,
            "active_routes": all_known_routes(),
            "by_route_group": {},
            "is_live": False,
        }

    by_group: Dict[str, int] = {}
    for route, count in counts.items():
        prefix_match = ROUTE_PREFIX_PATTERN.match(route)
        group = prefix_match.group(0) if prefix_match else "OTHER"
        by_group[group] = by_group.get(group, 0) + count

    return {
        "total_buses": sum(counts.values()),
        "active_routes": sorted(counts, key=route_sort_key),
        "by_route_group": by_group,
        "is_live": True,
    }
