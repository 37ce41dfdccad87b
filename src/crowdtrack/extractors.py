"""Common "decoded feed -> arrivals" entry point for every transit mode."""

from typing import List, Optional

from google.transit import gtfs_realtime_pb2

from .arrivals import extract_subway_arrivals
from .buses import extract_bus_arrivals
from .models import MODES, Arrival
from .rail import extract_rail_arrivals


def extract_arrivals(
    feed: Optional[gtfs_realtime_pb2.FeedMessage],
    mode: str,
    route_id: Optional[str] = None,
    station_id: Optional[str] = None,
    limit: Optional[int] = None,
    now: Optional[float] = None,
    **mode_options,
) -> List[Arrival]:
    """
    Extract arrivals from a decoded feed of any mode.

    Args:
        feed: Decoded FeedMessage; None (failed fetch or decode) yields [].
        mode: "subway", "bus", "lirr" or "metro-north".
        route_id: Route filter.
        station_id: Station/stop filter.
        limit: Maximum number of arrivals.
        now: Reference Unix time.
        **mode_options: Extra options for the mode's extractor, e.g.
            max_minutes_away or schedule_lookup for rail.

    Returns:
        Arrivals sorted by arrival time.

    Raises:
        ValueError: If the mode is unknown.
    """
    if mode not in MODES:
        raise ValueError(f"Unknown transit mode: {mode}")
    if feed is None:
        return []

    if mode == "subway":
        return extract_subway_arrivals(feed, route_id=route_id, station_id=station_id, limit=limit, now=now)
    if mode == "bus":
        return extract_bus_arrivals(feed, route_id=route_id, stop_id=station_id, limit=limit, now=now)
    return extract_rail_arrivals(
        feed, mode, route_id=route_id, stop_id=station_id, limit=limit, now=now, **mode_options
    )
