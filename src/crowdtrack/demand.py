"""Time-of-day demand estimates from historical ridership patterns."""

import functools
import json
import logging
from datetime import date, datetime, timedelta
from pathlib import Path
from types import MappingProxyType
from typing import Any, Iterable, List, Mapping, Optional, Union
from zoneinfo import ZoneInfo

import pandas as pd
import requests

from . import config
from .models import TimeContext

logger = logging.getLogger(__name__)

DEMAND_PATTERNS_PATH = Path(__file__).parent / "data" / "demand_patterns.json"

RIDERSHIP_API_URL = "https://data.ny.gov/resource/wujg-7c2s.json"
RIDERSHIP_WEEKS = 4

INBOUND_DIRECTIONS = ("S", "W", "inbound")
OUTBOUND_DIRECTIONS = ("N", "E", "outbound")

DEFAULT_RUSH_HOURS = {
    "weekday_morning": {"hours": [7, 8, 9], "days": [1, 2, 3, 4, 5]},
    "weekday_evening": {"hours": [17, 18, 19], "days": [1, 2, 3, 4, 5]},
    "weekend_midday": {"hours": [12, 13, 14, 15], "days": [0, 6]},
}

DEFAULT_PEAK_DIRECTIONS = {
    "inbound": {"hours": [7, 8, 9, 10], "days": [1, 2, 3, 4, 5]},
    "outbound": {"hours": [17, 18, 19, 20], "days": [1, 2, 3, 4, 5]},
}


def _freeze(value: Any) -> Any:
    """Recursively turn dicts into read-only mappings and lists into tuples."""
    if isinstance(value, Mapping):
        return MappingProxyType({k: _freeze(v) for k, v in value.items()})
    if isinstance(value, list):
        return tuple(_freeze(v) for v in value)
    return value


@functools.lru_cache(maxsize=None)
def load_demand_patterns(path: Union[str, Path] = DEMAND_PATTERNS_PATH) -> Mapping:
    """Load the bundled demand pattern table once, as a read-only mapping."""
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    logger.info(f"Loaded demand patterns for {len(data.get('patterns', {}))} stations")
    return _freeze(data)


def service_day_of_week(when: datetime) -> int:
    """Day of week with 0 = Sunday, 6 = Saturday."""
    return (when.weekday() + 1) % 7


def generic_demand_multiplier(hour: int, day_of_week: int) -> float:
    """
    Generic demand curve when no station data exists.

    Args:
        hour: Hour of day, 0-23.
        day_of_week: 0 = Sunday through 6 = Saturday.

    Returns:
        Demand on a 0-1 scale, 1 = peak.
    """
    is_weekday = 1 <= day_of_week <= 5

    if is_weekday:
        if 7 <= hour <= 9:
            return 0.9  # Morning rush
        if 17 <= hour <= 19:
            return 0.95  # Evening rush
        if 10 <= hour <= 16:
            return 0.45  # Midday
        if 20 <= hour <= 22:
            return 0.4
        if hour >= 23 or hour <= 5:
            return 0.1  # Late night
        return 0.25  # 6am

    if 12 <= hour <= 18:
        return 0.65
    if 9 <= hour <= 11:
        return 0.4
    if 19 <= hour <= 22:
        return 0.45
    return 0.15


def normalize_demand(demand_multiplier: float) -> float:
    return min(max(demand_multiplier, 0.0), 1.0)


def _in_period(period: Mapping, hour: int, day_of_week: int) -> bool:
    return day_of_week in period["days"] and hour in period["hours"]


class DemandModel:
    """Demand lookups backed by the historical pattern table."""

    def __init__(self, patterns: Optional[Mapping] = None, tz_name: Optional[str] = None):
        """
        Args:
            patterns: Pattern table (defaults to the bundled data file).
            tz_name: Service timezone for time contexts.
        """
        self.data = _freeze(patterns) if patterns is not None else load_demand_patterns()
        self.tz = ZoneInfo(tz_name or config.get_timezone_name())

    @property
    def patterns(self) -> Mapping:
        return self.data.get("patterns", MappingProxyType({}))

    @property
    def rush_hours(self) -> Mapping:
        info = self.data.get("rush_hour_info") or {}
        return info.get("rush_hours") or _freeze(DEFAULT_RUSH_HOURS)

    @property
    def peak_directions(self) -> Mapping:
        return self.data.get("peak_directions") or _freeze(DEFAULT_PEAK_DIRECTIONS)

    def multiplier(self, hour: int, day_of_week: int, station: Optional[str] = None) -> float:
        """
        Demand for a station and time, falling back to the generic curve when
        the station (or that hour) has no historical data.
        """
        if station is not None:
            station_patterns = self.patterns.get(station)
            if station_patterns is not None:
                day_patterns = station_patterns.get(str(day_of_week))
                if day_patterns is not None and str(hour) in day_patterns:
                    return day_patterns[str(hour)]
        return generic_demand_multiplier(hour, day_of_week)

    def is_rush_hour(self, hour: int, day_of_week: int) -> bool:
        return any(_in_period(period, hour, day_of_week) for period in self.rush_hours.values())

    def is_peak_direction(self, direction: str, hour: int, day_of_week: int) -> bool:
        """
        Whether a direction carries the peak flow: inbound (toward Manhattan,
        S/W) in the morning, outbound (N/E) in the evening, weekdays only.
        """
        if direction in INBOUND_DIRECTIONS:
            period = self.peak_directions.get("inbound")
        elif direction in OUTBOUND_DIRECTIONS:
            period = self.peak_directions.get("outbound")
        else:
            return False
        return period is not None and _in_period(period, hour, day_of_week)

    def now(self) -> datetime:
        return datetime.now(self.tz)

    def time_context(
        self,
        when: Optional[datetime] = None,
        direction: Optional[str] = None,
        station: Optional[str] = None,
    ) -> TimeContext:
        """
        Time context in the service timezone.

        Args:
            when: Moment to describe (defaults to now); naive values are
                taken as service-local time.
            direction: Travel direction, for the peak-direction flag.
            station: Station complex for station-specific demand.
        """
        if when is None:
            when = self.now()
        elif when.tzinfo is None:
            when = when.replace(tzinfo=self.tz)
        else:
            when = when.astimezone(self.tz)

        hour = when.hour
        day_of_week = service_day_of_week(when)
        return TimeContext(
            hour=hour,
            day_of_week=day_of_week,
            is_rush_hour=self.is_rush_hour(hour, day_of_week),
            is_peak_direction=bool(direction) and self.is_peak_direction(direction, hour, day_of_week),
            demand_multiplier=self.multiplier(hour, day_of_week, station),
        )

    @property
    def metadata(self) -> Mapping:
        return self.data.get("metadata", MappingProxyType({}))

    @property
    def rush_hour_info(self) -> Mapping:
        return self.data.get("rush_hour_info", MappingProxyType({}))


def fetch_ridership(
    session: Optional[requests.Session] = None,
    weeks: int = RIDERSHIP_WEEKS,
    today: Optional[date] = None,
    timeout: float = 60,
) -> List[dict]:
    """
    Fetch hourly ridership averaged per station complex, hour and weekday
    from the NY open data API.

    Returns:
        Rows with station_complex, hour, day_of_week and avg_ridership, or an
        empty list when the request fails.
    """
    session = session or requests.Session()
    start = (today or date.today()) - timedelta(weeks=weeks)
    params = {
        "$where": f"transit_timestamp >= '{start.isoformat()}T00:00:00'",
        "$select": ",".join([
            "station_complex",
            "date_extract_hh(transit_timestamp) as hour",
            "date_extract_dow(transit_timestamp) as day_of_week",
            "avg(ridership) as avg_ridership",
        ]),
        "$group": "station_complex,hour,day_of_week",
        "$limit": "100000",
    }

    logger.info(f"Fetching ridership since {start.isoformat()}")
    try:
        response = session.get(RIDERSHIP_API_URL, params=params, timeout=timeout)
        response.raise_for_status()
        rows = response.json()
    except requests.RequestException as e:
        logger.warning(f"Failed to fetch ridership data: {e}")
        return []
    except ValueError as e:
        logger.error(f"Invalid ridership response: {e}")
        return []

    logger.info(f"Fetched {len(rows)} aggregated ridership rows")
    return rows


def build_demand_patterns(
    ridership: Union[pd.DataFrame, Iterable[dict]],
    rush_hours: Optional[Mapping] = None,
    weeks: int = RIDERSHIP_WEEKS,
) -> dict:
    """
    Normalize raw hourly ridership into the demand pattern table.

    Every value is divided by the busiest station-hour, so 1.0 is the
    network-wide peak.

    Args:
        ridership: Rows with station_complex, hour, day_of_week, avg_ridership.
        rush_hours: Rush period table (defaults to the standard periods).
        weeks: Number of weeks the data covers, for the metadata.

    Returns:
        Dict in the layout of data/demand_patterns.json.
    """
    rush_hours = dict(rush_hours or DEFAULT_RUSH_HOURS)
    df = ridership if isinstance(ridership, pd.DataFrame) else pd.DataFrame(list(ridership))

    if df.empty:
        max_ridership = 0.0
        df = pd.DataFrame(columns=["station_complex", "hour", "day_of_week", "demand"])
    else:
        df = df.copy()
        df["hour"] = pd.to_numeric(df["hour"]).astype(int)
        df["day_of_week"] = pd.to_numeric(df["day_of_week"]).astype(int)
        df["avg_ridership"] = pd.to_numeric(df["avg_ridership"], errors="coerce").fillna(0.0)
        max_ridership = float(df["avg_ridership"].max())
        df["demand"] = (df["avg_ridership"] / max_ridership).round(3) if max_ridership > 0 else 0.0

    patterns: dict = {}
    for row in df.itertuples(index=False):
        station = patterns.setdefault(row.station_complex, {})
        station.setdefault(str(row.day_of_week), {})[str(row.hour)] = float(row.demand)

    is_rush = pd.Series(False, index=df.index)
    for period in rush_hours.values():
        is_rush |= df["hour"].isin(period["hours"]) & df["day_of_week"].isin(period["days"])

    avg_rush = float(df.loc[is_rush, "demand"].mean()) if is_rush.any() else 0.0
    avg_off_peak = float(df.loc[~is_rush, "demand"].mean()) if (~is_rush).any() else 0.0
    rush_multiplier = avg_rush / avg_off_peak if avg_off_peak else 0.0

    return {
        "patterns": patterns,
        "rush_hour_info": {
            "rush_hours": rush_hours,
            "avg_rush_demand": round(avg_rush, 3),
            "avg_off_peak_demand": round(avg_off_peak, 3),
            "rush_multiplier": round(rush_multiplier, 2),
        },
        "peak_directions": DEFAULT_PEAK_DIRECTIONS,
        "metadata": {
            "max_ridership": max_ridership,
            "station_count": len(patterns),
            "generated_at": datetime.now(ZoneInfo("UTC")).isoformat(),
            "data_range": f"Last {weeks} weeks",
        },
    }


def save_demand_patterns(data: Mapping, path: Union[str, Path] = DEMAND_PATTERNS_PATH) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)
    logger.info(f"Saved demand patterns for {len(data.get('patterns', {}))} stations to {path}")
