"""Multi-factor crowding score: headway, demand, delay and alerts on a 0-100 scale."""

import math
from typing import Dict, Mapping, Optional, Sequence, Tuple

from . import config
from .alert_impact import normalize_alert_impact
from .delays import normalize_delay
from .demand import normalize_demand
from .headway import normalize_headway
from .models import AlertImpact, CrowdingFactors, CrowdingResult, DelayData

FACTOR_ORDER = ("headway", "demand", "delay", "alerts")

FACTOR_EXPLANATIONS = {
    "headway": "Long gaps between trains",
    "demand": "High passenger demand",
    "delay": "Service delays",
    "alerts": "Active service disruptions",
}


def round_half_up(value: float, digits: int = 0) -> float:
    scale = 10 ** digits
    return math.floor(value * scale + 0.5) / scale


def _round_factors(factors: CrowdingFactors) -> CrowdingFactors:
    return CrowdingFactors(**{name: round_half_up(value, 2) for name, value in factors.as_dict().items()})


def validate_score_ranges(ranges: Mapping[str, Tuple[int, int]] = config.SCORE_RANGES) -> None:
    """
    Check that level ranges cover 0-100 without gaps or overlaps.

    Raises:
        ValueError: If the ranges are not contiguous and exhaustive.
    """
    bounds = sorted(ranges.values())
    if not bounds or bounds[0][0] != 0 or bounds[-1][1] != 100:
        raise ValueError(f"Score ranges must span 0-100: {dict(ranges)}")
    for (low_min, low_max), (high_min, _) in zip(bounds, bounds[1:]):
        if low_min > low_max or high_min != low_max + 1:
            raise ValueError(f"Score ranges must be contiguous: {dict(ranges)}")


def score_to_level(score: float, ranges: Mapping[str, Tuple[int, int]] = config.SCORE_RANGES) -> str:
    """Crowding level for a 0-100 score."""
    if score >= ranges["HIGH"][0]:
        return "HIGH"
    if score >= ranges["MEDIUM"][0]:
        return "MEDIUM"
    return "LOW"


def level_to_score(level: str, ranges: Mapping[str, Tuple[int, int]] = config.SCORE_RANGES) -> int:
    """Midpoint score of a crowding level's range."""
    low, high = ranges[level]
    return (low + high) // 2


def score_factors(factors: CrowdingFactors, is_peak_direction: bool = False) -> int:
    """
    Weighted 0-100 score from normalized factors.

    Peak-direction travel multiplies the weighted sum by the peak multiplier,
    capped at 1.0, before scaling.
    """
    weighted = sum(
        getattr(factors, name) * weight
        for name, weight in config.SCORING_WEIGHTS.items()
    )
    if is_peak_direction:
        weighted = min(weighted * config.PEAK_DIRECTION_MULTIPLIER, 1.0)
    weighted = min(max(weighted, 0.0), 1.0)
    return int(round_half_up(weighted * 100))


def calculate_crowding_score(
    avg_headway_min: float,
    demand_multiplier: float,
    delay_data: Optional[DelayData] = None,
    alert_impact: Optional[AlertImpact] = None,
    is_peak_direction: bool = False,
) -> CrowdingResult:
    """
    Calculate a crowding score from raw inputs.

    Missing delay or alert data counts as no impact.

    Args:
        avg_headway_min: Average minutes between trains.
        demand_multiplier: 0-1 time-of-day demand.
        delay_data: Route delay statistics, if known.
        alert_impact: Active alert impact, if known.
        is_peak_direction: Whether travel is in the peak direction.

    Returns:
        CrowdingResult with the score, level and rounded factors.
    """
    factors = CrowdingFactors(
        headway=normalize_headway(avg_headway_min),
        demand=normalize_demand(demand_multiplier),
        delay=normalize_delay(delay_data.avg_delay_seconds) if delay_data else 0.0,
        alerts=normalize_alert_impact(alert_impact) if alert_impact else 0.0,
    )
    score = score_factors(factors, is_peak_direction)
    return CrowdingResult(score=score, level=score_to_level(score), factors=_round_factors(factors))


def calculate_segment_score(station_results: Sequence[CrowdingResult]) -> CrowdingResult:
    """
    Average per-station results into one segment result.

    The level is derived from the averaged score, never from the station levels.
    """
    if not station_results:
        return CrowdingResult(score=0, level="LOW", factors=CrowdingFactors())

    count = len(station_results)
    avg_score = int(round_half_up(sum(r.score for r in station_results) / count))
    avg_factors = CrowdingFactors(**{
        name: sum(getattr(r.factors, name) for r in station_results) / count
        for name in FACTOR_ORDER
    })
    return CrowdingResult(score=avg_score, level=score_to_level(avg_score), factors=_round_factors(avg_factors))


def get_dominant_factor(factors: CrowdingFactors) -> Tuple[str, float]:
    """The factor with the highest value; headway wins ties and all-zero inputs."""
    dominant, best = "headway", 0.0
    for name in FACTOR_ORDER:
        value = getattr(factors, name)
        if value > best:
            dominant, best = name, value
    return dominant, best


def dominant_factor_explanation(factor: str) -> str:
    return FACTOR_EXPLANATIONS.get(factor, "Multiple factors")


def score_description(score: int, level: str) -> str:
    """Short rider-facing description of a score."""
    if level == "LOW":
        return "Good service - low crowding expected"
    if level == "MEDIUM":
        return "Moderate crowding - still manageable" if score < 50 else "Busy - expect some crowding"
    if score < 85:
        return "Heavy crowding - consider alternatives"
    return "Severe crowding - major delays or service issues"


def factors_summary(factors: CrowdingFactors) -> Dict[str, float]:
    return _round_factors(factors).as_dict()
