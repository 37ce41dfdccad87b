"""LIRR and Metro-North arrival extraction."""

import logging
import re
import time
from dataclasses import replace
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional, Sequence
from zoneinfo import ZoneInfo

from google.transit import gtfs_realtime_pb2

from . import config, gtfs_decoder
from .arrivals import finalize, minutes_until
from .models import Arrival, ScheduledStop
from .schedule import ScheduleLookup, time_of_day_seconds

logger = logging.getLogger(__name__)

LIRR_BRANCHES = {
    "1": "Babylon",
    "2": "City Terminal Zone",
    "3": "Far Rockaway",
    "4": "Hempstead",
    "5": "Long Beach",
    "6": "Montauk",
    "7": "Oyster Bay",
    "8": "Port Jefferson",
    "9": "Port Washington",
    "10": "Ronkonkoma",
    "11": "West Hempstead",
    "12": "Belmont Park",
    "13": "Atlantic Branch",
}

MNR_LINES = {
    "1": "Hudson",
    "2": "Harlem",
    "3": "New Haven",
    "4": "New Canaan",
    "5": "Danbury",
    "6": "Waterbury",
}

# Manhattan/Brooklyn terminals: trips ending here run inbound
RAIL_TERMINALS = {
    "lirr": {"237", "241", "349"},  # Penn Station, Atlantic Terminal, Grand Central Madison
    "metro-north": {"1"},  # Grand Central
}

DEFAULT_MAX_MINUTES_AWAY = 60

TRAIN_NUMBER_PATTERN = re.compile(r"^(\d+)_")


def _route_table(mode: str) -> Dict[str, str]:
    return LIRR_BRANCHES if mode == "lirr" else MNR_LINES


def get_branch_name(route_id: str, mode: str) -> str:
    """Display name of an LIRR branch or Metro-North line."""
    if mode == "lirr":
        return LIRR_BRANCHES.get(route_id, f"Branch {route_id}")
    if mode == "metro-north":
        return MNR_LINES.get(route_id, f"Line {route_id}")
    return route_id


def extract_train_number(
    trip_id: str,
    vehicle_label: Optional[str] = None,
    entity_id: Optional[str] = None,
) -> Optional[str]:
    """
    Extract the public train number of a rail trip.

    Tries the vehicle label when it is all digits, then a leading "<digits>_"
    prefix of the trip id (e.g. "25_105_1_Babylon" -> "25"), then an all-digit
    entity id. Returns None when nothing matches.
    """
    if vehicle_label and vehicle_label.isdigit():
        return vehicle_label

    match = TRAIN_NUMBER_PATTERN.match(trip_id or "")
    if match:
        return match.group(1)

    if entity_id and entity_id.isdigit():
        return entity_id
    return None


def _as_int(stop_id: str) -> Optional[int]:
    try:
        return int(stop_id)
    except (TypeError, ValueError):
        return None


def infer_rail_direction(mode: str, stop_ids: Sequence[str], direction_id: Optional[int] = None) -> str:
    """
    Infer "inbound"/"outbound" for a rail trip.

    Rail feeds do not set direction_id reliably, so the trip's stop sequence
    is checked first: ending at a city terminal means inbound, starting at one
    means outbound. Then the explicit direction_id (0 outbound, 1 inbound).
    Last resort compares numeric stop ids, decreasing ids meaning inbound;
    this approximation can misclassify branches with non-monotonic numbering.
    """
    terminals = RAIL_TERMINALS.get(mode, set())
    if stop_ids:
        if stop_ids[-1] in terminals:
            return "inbound"
        if stop_ids[0] in terminals:
            return "outbound"

    if direction_id is not None:
        return "outbound" if direction_id == 0 else "inbound"

    if len(stop_ids) >= 2:
        first, last = _as_int(stop_ids[0]), _as_int(stop_ids[-1])
        if first is not None and last is not None and first != last:
            return "inbound" if last < first else "outbound"

    return "inbound"


def service_midnight(service_date: date, tz_name: Optional[str] = None) -> datetime:
    """Local midnight that starts a service day."""
    tz = ZoneInfo(tz_name or config.get_timezone_name())
    return datetime(service_date.year, service_date.month, service_date.day, tzinfo=tz)


def first_nonzero_delay(stops: Sequence[Arrival]) -> int:
    for stop in stops:
        if stop.delay:
            return stop.delay
    return 0


def splice_scheduled_stops(
    realtime_stops: List[Arrival],
    scheduled_stops: List[ScheduledStop],
    delay: int,
    service_date: date,
    tz_name: Optional[str] = None,
    now: Optional[float] = None,
) -> List[Arrival]:
    """
    Fill stops missing from a trip's live stop list using the static timetable.

    Only intermediate stops are filled: timetable stops that lie between the
    first and last live stops of the trip. Each becomes an Arrival timed at
    service-day midnight + scheduled time of day + the live delay, tagged
    source="schedule". Live stops are never replaced, and a trip whose live
    stops are not in the timetable is returned unchanged.

    Args:
        realtime_stops: Live Arrival records of a single trip.
        scheduled_stops: The trip's timetable, in stop order.
        delay: Live delay in seconds to apply to spliced stops.
        service_date: Service day the timetable times are relative to.
        tz_name: Timezone of the service day (defaults to the configured one).
        now: Reference Unix time for minutes_away (defaults to the current time).

    Returns:
        All stops of the trip sorted by time.
    """
    if not realtime_stops or not scheduled_stops:
        return list(realtime_stops)

    now = time.time() if now is None else now
    template = realtime_stops[0]
    known = {stop.stop_id for stop in realtime_stops}
    midnight = service_midnight(service_date, tz_name)

    positions = [i for i, stop in enumerate(scheduled_stops) if stop.stop_id in known]
    if not positions:
        return list(realtime_stops)

    merged = list(realtime_stops)
    for scheduled in scheduled_stops[min(positions) + 1:max(positions)]:
        if scheduled.stop_id in known:
            continue
        offset = time_of_day_seconds(scheduled.scheduled_time)
        if offset is None:
            logger.debug(f"Unparseable scheduled time {scheduled.scheduled_time!r} for stop {scheduled.stop_id}")
            continue
        arrival_time = int((midnight + timedelta(seconds=offset)).timestamp()) + delay
        merged.append(
            replace(
                template,
                stop_id=scheduled.stop_id,
                arrival_time=arrival_time,
                minutes_away=minutes_until(arrival_time, now),
                departure_time=None,
                delay=delay,
                track=None,
                status=None,
                source="schedule",
            )
        )
        known.add(scheduled.stop_id)

    merged.sort(key=lambda a: a.arrival_time)
    return merged


def _service_date(trip, now: float, tz_name: Optional[str] = None) -> date:
    if trip.start_date:
        try:
            return datetime.strptime(trip.start_date, "%Y%m%d").date()
        except ValueError:
            logger.debug(f"Bad start_date {trip.start_date!r} on trip {trip.trip_id}")
    tz = ZoneInfo(tz_name or config.get_timezone_name())
    return datetime.fromtimestamp(now, tz).date()


def _trip_stops(entity, mode: str, route_id: str, direction: str, now: float) -> List[Arrival]:
    """Every timed stop of a trip update as Arrival records, past stops included."""
    trip_update = entity.trip_update
    trip = trip_update.trip
    vehicle = trip_update.vehicle
    train_number = extract_train_number(
        trip.trip_id,
        vehicle.label or vehicle.id or None,
        entity.id,
    )

    stops = []
    for stop_time_update in trip_update.stop_time_update:
        arrival_time = gtfs_decoder.stop_time(stop_time_update)
        if arrival_time is None:
            continue
        stops.append(
            Arrival(
                trip_id=trip.trip_id,
                route_id=route_id,
                direction=direction,
                stop_id=stop_time_update.stop_id,
                arrival_time=arrival_time,
                delay=gtfs_decoder.stop_delay(stop_time_update),
                minutes_away=minutes_until(arrival_time, now),
                headsign=get_branch_name(route_id, mode),
                train_number=train_number,
                departure_time=gtfs_decoder.stop_departure_time(stop_time_update),
                mode=mode,
                track=gtfs_decoder.stop_track(stop_time_update),
                status=gtfs_decoder.stop_train_status(stop_time_update),
            )
        )
    return stops


def extract_rail_arrivals(
    feed: gtfs_realtime_pb2.FeedMessage,
    mode: str,
    route_id: Optional[str] = None,
    stop_id: Optional[str] = None,
    limit: Optional[int] = None,
    max_minutes_away: int = DEFAULT_MAX_MINUTES_AWAY,
    now: Optional[float] = None,
    schedule_lookup: Optional[ScheduleLookup] = None,
) -> List[Arrival]:
    """
    Extract one upcoming arrival per rail trip.

    For each trip the next future stop is reported (or the stop matching
    ``stop_id``), provided it falls within ``max_minutes_away``. With a
    schedule lookup, stops the live feed omits are spliced in from the
    timetable before the next stop is chosen.

    Args:
        feed: Decoded LIRR or Metro-North FeedMessage.
        mode: "lirr" or "metro-north".
        route_id: Only include trips on this branch/line.
        stop_id: Only report arrivals at this stop.
        limit: Maximum number of arrivals to return.
        max_minutes_away: Ignore trains further out than this.
        now: Reference Unix time (defaults to the current time).
        schedule_lookup: Optional static timetable for gap filling.

    Returns:
        List of Arrival objects sorted by arrival time.
    """
    now = time.time() if now is None else now
    max_time = now + max_minutes_away * 60
    arrivals: List[Arrival] = []

    for entity in feed.entity:
        if not entity.HasField("trip_update"):
            continue

        trip = entity.trip_update.trip
        trip_route = trip.route_id
        if route_id and trip_route != route_id:
            continue

        stop_ids = [s.stop_id for s in entity.trip_update.stop_time_update if s.stop_id]
        direction_id = trip.direction_id if trip.HasField("direction_id") else None
        direction = infer_rail_direction(mode, stop_ids, direction_id)

        stops = _trip_stops(entity, mode, trip_route, direction, now)
        if schedule_lookup is not None and stops:
            scheduled = schedule_lookup.get_schedule(stops[0].train_number)
            if scheduled:
                stops = splice_scheduled_stops(
                    stops,
                    scheduled,
                    first_nonzero_delay(stops),
                    _service_date(trip, now),
                    now=now,
                )

        for stop in stops:
            if stop.arrival_time < now or stop.arrival_time > max_time:
                continue
            if stop_id and stop.stop_id != stop_id:
                continue
            arrivals.append(stop)
            break

    return finalize(arrivals, limit)


def extract_active_routes(feed: gtfs_realtime_pb2.FeedMessage, mode: str) -> List[Dict[str, str]]:
    """Branches/lines with trips in the feed, sorted numerically."""
    route_ids = set()
    for entity in feed.entity:
        if entity.HasField("trip_update") and entity.trip_update.trip.route_id:
            route_ids.add(entity.trip_update.trip.route_id)
        elif entity.HasField("vehicle") and entity.vehicle.trip.route_id:
            route_ids.add(entity.vehicle.trip.route_id)

    def sort_key(rid):
        number = _as_int(rid)
        return (number is None, number if number is not None else 0, rid)

    return [
        {"id": rid, "name": get_branch_name(rid, mode)}
        for rid in sorted(route_ids, key=sort_key)
    ]


def _static_routes(mode: str) -> List[Dict[str, str]]:
    return [{"id": rid, "name": name} for rid, name in _route_table(mode).items()]


def get_rail_arrivals(client, mode: str, **options) -> List[Arrival]:
    """Fetch a rail feed and extract arrivals; empty when the feed is unavailable."""
    feed = client.get_rail_feed(mode)
    if feed is None:
        return []
    return extract_rail_arrivals(feed, mode, **options)


def get_active_rail_routes(client, mode: str) -> List[Dict[str, str]]:
    """Active branches/lines, or the full static table when the feed is down."""
    feed = client.get_rail_feed(mode)
    if feed is None:
        return _static_routes(mode)
    return extract_active_routes(feed, mode)


def get_rail_summary(client, mode: str) -> dict:
    """
    Dashboard summary for a railroad.

    Returns:
        Dict with total_trains, active_routes and is_live (False when the
        static route table was used).
    """
    feed = client.get_rail_feed(mode)
    if feed is None:
        return {"total_trains": 0, "active_routes": _static_routes(mode), "is_live": False}

    trips = set()
    for entity in feed.entity:
        if entity.HasField("trip_update") and entity.trip_update.trip.trip_id:
            trips.add(entity.trip_update.trip.trip_id)
        elif entity.HasField("vehicle") and entity.vehicle.trip.trip_id:
            trips.add(entity.vehicle.trip.trip_id)

    logger.debug(f"{mode}: {len(trips)} active trips")
    return {
        "total_trains": len(trips),
        "active_routes": extract_active_routes(feed, mode),
        "is_live": True,
    }
