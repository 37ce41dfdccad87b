"""Train headway (time between trains) calculation."""

import concurrent.futures
import logging
from typing import Dict, List, Optional, Sequence

from . import config
from .arrivals import extract_subway_arrivals
from .models import Arrival, HeadwayData

logger = logging.getLogger(__name__)

MIN_HEADWAY_MIN = 1
MAX_HEADWAY_MIN = 60


def direction_headways(arrivals: Sequence[Arrival]) -> List[float]:
    """
    Gaps in minutes between consecutive arrivals of one direction.

    Gaps under a minute or of an hour or more are treated as feed noise
    and dropped.
    """
    times = sorted(a.arrival_time for a in arrivals)
    headways = []
    for earlier, later in zip(times, times[1:]):
        gap = (later - earlier) / 60
        if MIN_HEADWAY_MIN <= gap < MAX_HEADWAY_MIN:
            headways.append(gap)
    return headways


def calculate_headways_from_arrivals(arrivals: Sequence[Arrival]) -> Optional[HeadwayData]:
    """
    Calculate headways from a list of arrivals.

    Args:
        arrivals: Arrivals, typically one route at one station.

    Returns:
        HeadwayData, or None when fewer than two arrivals are given. The
        average is 0 when no gap survives filtering.
    """
    if len(arrivals) < 2:
        return None

    by_direction: Dict[str, List[Arrival]] = {}
    for arrival in arrivals:
        by_direction.setdefault(arrival.direction, []).append(arrival)

    headways_by_direction = {
        direction: direction_headways(group)
        for direction, group in by_direction.items()
    }
    all_headways = [h for values in headways_by_direction.values() for h in values]
    avg_headway = sum(all_headways) / len(all_headways) if all_headways else 0

    return HeadwayData(
        avg_headway_min=round(avg_headway, 1),
        headways_by_direction=headways_by_direction,
        arrival_count=len(arrivals),
    )


def normalize_headway(avg_headway_min: float) -> float:
    """
    Normalize a headway to the 0-1 scale: 0 = frequent service, 1 = 20+ minute gaps.
    """
    normalized = min(max(avg_headway_min, 0) / 20, 1.0)
    return round(normalized, 2)


class HeadwayCalculator:
    """Computes live headways for subway routes."""

    def __init__(self, client):
        """
        Args:
            client: MTAFeedClient used to fetch subway feeds.
        """
        self.client = client

    def route_headways(self, route_id: str, station_id: Optional[str] = None) -> Optional[HeadwayData]:
        """
        Headways for a route at a station (its reference station by default).

        Looks at the next few trains only. Returns None when the route has no
        feed or reference station, the feed is unavailable, or fewer than two
        trains are coming.
        """
        target_station = station_id or config.REFERENCE_STATIONS.get(route_id)
        if target_station is None:
            logger.debug(f"No reference station for route {route_id}")
            return None

        feed = self.client.get_feed_for_route(route_id)
        if feed is None:
            return None

        arrivals = extract_subway_arrivals(
            feed,
            route_id=config.feed_route_id(route_id),
            station_id=target_station,
            limit=config.HEADWAY_SAMPLE_LIMIT,
        )
        return calculate_headways_from_arrivals(arrivals)

    def segment_headways(self, route_id: str, station_ids: Sequence[str]) -> Dict[str, HeadwayData]:
        """
        Headways at every station of a segment, fetched in parallel.

        Stations without enough data are left out of the result.
        """
        results: Dict[str, HeadwayData] = {}
        if not station_ids:
            return results

        with concurrent.futures.ThreadPoolExecutor(max_workers=min(config.MAX_WORKERS, len(station_ids))) as executor:
            future_to_station = {
                executor.submit(self.route_headways, route_id, station_id): station_id
                for station_id in station_ids
            }
            for future in concurrent.futures.as_completed(future_to_station):
                station_id = future_to_station[future]
                try:
                    data = future.result()
                except Exception as e:
                    logger.warning(f"Headway lookup failed for {route_id} at {station_id}: {e}")
                    continue
                if data is not None:
                    results[station_id] = data

        return results
