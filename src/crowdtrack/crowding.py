"""Main crowding tracker: segment, route and network crowding estimates."""

import concurrent.futures
import logging
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional, Sequence, TypeVar

from . import config
from .alert_impact import AlertImpactAnalyzer
from .delays import DelayExtractor
from .demand import DemandModel
from .feed_client import MTAFeedClient
from .headway import HeadwayCalculator
from .models import (
    NetworkCrowding,
    RouteCrowding,
    RouteCrowdingEnhanced,
    SegmentCrowding,
)
from .scoring import calculate_crowding_score, calculate_segment_score, round_half_up, score_to_level
from .segments import get_line_segments, get_segment

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

DIRECTIONS = ("N", "S")


def headway_level(avg_headway_min: float) -> str:
    """Headway-only crowding level: long gaps mean fuller trains."""
    if avg_headway_min > config.CROWDING_THRESHOLDS["HIGH"]:
        return "HIGH"
    if avg_headway_min > config.CROWDING_THRESHOLDS["LOW"]:
        return "MEDIUM"
    return "LOW"


def _average_score(scores: Sequence[int]) -> int:
    if not scores:
        return 0
    return int(round_half_up(sum(scores) / len(scores)))


def _run_parallel(func: Callable[..., R], args_list: Sequence[tuple], label: str) -> List[Optional[R]]:
    """
    Call func once per argument tuple on a thread pool.

    Results keep the input order. A call that raises contributes None.
    """
    if not args_list:
        return []

    results: List[Optional[R]] = [None] * len(args_list)
    with concurrent.futures.ThreadPoolExecutor(max_workers=min(config.MAX_WORKERS, len(args_list))) as executor:
        future_to_index = {
            executor.submit(func, *args): i
            for i, args in enumerate(args_list)
        }
        for future in concurrent.futures.as_completed(future_to_index):
            index = future_to_index[future]
            try:
                results[index] = future.result()
            except Exception as e:
                logger.warning(f"{label} failed for {args_list[index]}: {e}")
    return results


def _batches(items: Sequence[T], size: int) -> Iterable[Sequence[T]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


class CrowdingTracker:
    """
    Estimates subway crowding from live service data.

    Each estimate combines four signals:
    - Headway: gaps between trains at stations along a segment
    - Demand: historical ridership for the time of day
    - Delays: live trip delays on the route
    - Alerts: active service alerts on the route
    """

    def __init__(self, client: Optional[MTAFeedClient] = None, demand_model: Optional[DemandModel] = None):
        """
        Initialize the tracker.

        Args:
            client: Feed client to share (a new one is created otherwise).
            demand_model: Demand model (defaults to the bundled pattern table).
        """
        self.client = client or MTAFeedClient()
        self.demand = demand_model or DemandModel()
        self.headways = HeadwayCalculator(self.client)
        self.delays = DelayExtractor(self.client)
        self.alerts = AlertImpactAnalyzer(self.client)

    @staticmethod
    def _timestamp() -> datetime:
        return datetime.now(timezone.utc)

    def segment_crowding(
        self,
        route_id: str,
        segment_id: str,
        direction: str,
        when: Optional[datetime] = None,
    ) -> Optional[SegmentCrowding]:
        """
        Crowding along one segment of a line in one direction.

        Station headways are fetched in parallel, alongside the route's delays
        and alerts. Stations without headway data are skipped; missing delay
        or alert data counts as no impact.

        Args:
            route_id: Subway line, e.g. "A".
            segment_id: Segment id from the segment registry.
            direction: "N" or "S".
            when: Time to assess demand at (defaults to now).

        Returns:
            SegmentCrowding, or None when the segment is unknown or no station
            has headway data.
        """
        segment = get_segment(route_id, segment_id)
        if segment is None or not segment.stations:
            return None

        context = self.demand.time_context(when, direction)
        stations = list(segment.stations)

        with concurrent.futures.ThreadPoolExecutor(max_workers=3) as executor:
            headway_future = executor.submit(self.headways.segment_headways, route_id, stations)
            delay_future = executor.submit(self.delays.route_delays, route_id)
            alert_future = executor.submit(self.alerts.route_impact, route_id)

            headway_map = self._result_or_none(headway_future, f"headways for {route_id}/{segment_id}") or {}
            delay_data = self._result_or_none(delay_future, f"delays for {route_id}")
            alert_impact = self._result_or_none(alert_future, f"alerts for {route_id}")

        station_results = [
            calculate_crowding_score(
                headway_map[station].for_direction(direction),
                context.demand_multiplier,
                delay_data,
                alert_impact,
                context.is_peak_direction,
            )
            for station in stations
            if station in headway_map
        ]
        if not station_results:
            logger.debug(f"No headway data for {route_id} segment {segment_id} ({direction})")
            return None

        segment_result = calculate_segment_score(station_results)
        return SegmentCrowding(
            route_id=route_id,
            mode="subway",
            direction=direction,
            segment_id=segment.id,
            segment_name=segment.name,
            segment_start=stations[0],
            segment_end=stations[-1],
            crowding_level=segment_result.level,
            crowding_score=segment_result.score,
            factors=segment_result.factors,
            timestamp=self._timestamp(),
            stations_in_segment=stations,
        )

    @staticmethod
    def _result_or_none(future: concurrent.futures.Future, label: str):
        try:
            return future.result()
        except Exception as e:
            logger.warning(f"Fetching {label} failed: {e}")
            return None

    def route_crowding(
        self,
        route_id: str,
        max_segments: int = config.SEGMENT_SAMPLE_SIZE,
        when: Optional[datetime] = None,
    ) -> Optional[RouteCrowdingEnhanced]:
        """
        Route crowding from a sample of its segments in both directions.

        Args:
            route_id: Subway line.
            max_segments: Number of leading segments to sample.
            when: Time to assess demand at (defaults to now).

        Returns:
            RouteCrowdingEnhanced, or None when no sampled segment has data.
        """
        segments = get_line_segments(route_id)[:max_segments]
        if not segments:
            return None

        args_list = [
            (route_id, segment.id, direction, when)
            for segment in segments
            for direction in DIRECTIONS
        ]
        results = [
            r for r in _run_parallel(self.segment_crowding, args_list, "Segment crowding")
            if r is not None
        ]
        if not results:
            return None

        avg_score = _average_score([r.crowding_score for r in results])
        return RouteCrowdingEnhanced(
            route_id=route_id,
            mode="subway",
            avg_score=avg_score,
            avg_level=score_to_level(avg_score),
            segments=results,
            timestamp=self._timestamp(),
        )

    def network_crowding(
        self,
        routes: Optional[Sequence[str]] = None,
        when: Optional[datetime] = None,
    ) -> NetworkCrowding:
        """
        Network-wide crowding, computed a few routes at a time.

        Routes without data are left out; with none at all the network scores 0.
        """
        routes = list(routes or config.SUBWAY_LINES)
        route_results: List[RouteCrowdingEnhanced] = []

        for batch in _batches(routes, config.NETWORK_BATCH_SIZE):
            batch_results = _run_parallel(
                self.route_crowding,
                [(route_id, config.SEGMENT_SAMPLE_SIZE, when) for route_id in batch],
                "Route crowding",
            )
            route_results.extend(r for r in batch_results if r is not None)

        avg_score = _average_score([r.avg_score for r in route_results])
        logger.info(f"Network crowding: {len(route_results)}/{len(routes)} routes, avg score {avg_score}")
        return NetworkCrowding(
            avg_score=avg_score,
            avg_level=score_to_level(avg_score),
            timestamp=self._timestamp(),
            routes=route_results,
        )

    def simple_route_crowding(self, route_id: str) -> RouteCrowding:
        """
        Headway-only crowding at the route's reference station.

        Falls back to LOW with a 0 headway when there is not enough data.
        """
        data = self.headways.route_headways(route_id)
        if data is None or data.arrival_count < 2:
            return RouteCrowding(route_id=route_id, crowding_level="LOW", avg_headway_min=0, timestamp=self._timestamp())

        return RouteCrowding(
            route_id=route_id,
            crowding_level=headway_level(data.avg_headway_min),
            avg_headway_min=data.avg_headway_min,
            timestamp=self._timestamp(),
        )

    def simple_network_crowding(self) -> List[RouteCrowding]:
        """Headway-only crowding for every route with a reference station."""
        routes = list(config.REFERENCE_STATIONS)
        results = _run_parallel(self.simple_route_crowding, [(r,) for r in routes], "Route headways")
        return [
            result if result is not None
            else RouteCrowding(route_id=route_id, crowding_level="LOW", avg_headway_min=0, timestamp=self._timestamp())
            for route_id, result in zip(routes, results)
        ]

    def cleanup(self) -> None:
        """Release resources and clear caches."""
        self.client.clear_cache()
        self.client.session.close()
        logger.info("Cleaned up tracker resources")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.cleanup()
