"""Data models for the crowdtrack feed and crowding pipeline."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Set, Tuple

# Severity and type vocabularies for normalized service alerts
SEVERITIES = ("SEVERE", "WARNING", "INFO")
ALERT_TYPES = (
    "DELAY",
    "DETOUR",
    "STATION_CLOSURE",
    "PLANNED_WORK",
    "SERVICE_CHANGE",
    "REDUCED_SERVICE",
    "SHUTTLE_BUS",
    "OTHER",
)
CROWDING_LEVELS = ("LOW", "MEDIUM", "HIGH")
MODES = ("subway", "bus", "lirr", "metro-north")


@dataclass(frozen=True)
class Arrival:
    """A predicted arrival of one trip at one stop."""
    trip_id: str
    route_id: str
    direction: str  # "N"/"S" for subway, "inbound"/"outbound" for bus and rail
    stop_id: str
    arrival_time: int  # Unix timestamp
    delay: int = 0  # Seconds, negative = early
    minutes_away: int = 0
    headsign: Optional[str] = None
    train_number: Optional[str] = None
    departure_time: Optional[int] = None
    is_assigned: bool = True  # False = scheduled but not yet assigned a train
    mode: str = "subway"
    track: Optional[str] = None
    status: Optional[str] = None  # Railroad train status text, e.g. "On Time"
    source: str = "realtime"  # "schedule" when spliced from the static timetable


@dataclass(frozen=True)
class ScheduledStop:
    """One stop of a train in the static timetable."""
    stop_id: str
    stop_name: str
    scheduled_time: str  # "HH:MM" or "HH:MM:SS", hours may exceed 23


@dataclass
class ServiceAlert:
    """A normalized service alert."""
    id: str
    affected_routes: List[str]
    affected_stops: List[str]
    header_text: str
    description_text: Optional[str]
    severity: str  # One of SEVERITIES
    alert_type: str  # One of ALERT_TYPES
    active_period_start: Optional[datetime] = None
    active_period_end: Optional[datetime] = None  # None = open-ended
    cause: Optional[str] = None
    effect: Optional[str] = None


@dataclass
class EquipmentOutage:
    """An elevator or escalator, out of service or from the equipment list."""
    equipment_id: str
    station_name: str
    borough: Optional[str]
    equipment_type: str  # "ELEVATOR" or "ESCALATOR"
    serving: Optional[str]
    ada_compliant: bool
    is_active: bool  # True = working
    outage_reason: Optional[str] = None
    outage_start_time: Optional[datetime] = None
    estimated_return: Optional[datetime] = None
    train_lines: List[str] = field(default_factory=list)


@dataclass
class HeadwayData:
    """Gaps between consecutive trains, in minutes."""
    avg_headway_min: float
    headways_by_direction: Dict[str, List[float]]
    arrival_count: int

    def for_direction(self, direction: str) -> float:
        """Average headway for one direction, or the overall average."""
        values = self.headways_by_direction.get(direction) or []
        if not values:
            return self.avg_headway_min
        return round(sum(values) / len(values), 1)


@dataclass
class DelayData:
    """Delay statistics for one route."""
    avg_delay_seconds: int
    delayed_trips_count: int
    total_trips_checked: int
    max_delay: int
    percent_delayed: float


@dataclass
class AlertImpact:
    """Aggregated impact of currently active alerts."""
    active_alerts: int
    severe_alerts: int
    avg_severity: float  # 0-1 scale
    affected_stations: Set[str] = field(default_factory=set)
    alert_types: Dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class CrowdingFactors:
    """Normalized 0-1 inputs to the crowding score."""
    headway: float = 0.0  # 0 = frequent trains, 1 = long gaps
    demand: float = 0.0  # 0 = off-peak, 1 = peak demand
    delay: float = 0.0  # 0 = on time, 1 = significant delays
    alerts: float = 0.0  # 0 = no alerts, 1 = severe disruptions

    def as_dict(self) -> Dict[str, float]:
        return {
            "headway": self.headway,
            "demand": self.demand,
            "delay": self.delay,
            "alerts": self.alerts,
        }


@dataclass(frozen=True)
class TimeContext:
    """Time-of-day context for a crowding assessment."""
    hour: int
    day_of_week: int  # 0 = Sunday
    is_rush_hour: bool
    is_peak_direction: bool
    demand_multiplier: float


@dataclass(frozen=True)
class CrowdingResult:
    """A single crowding score with its factor breakdown."""
    score: int  # 0-100
    level: str
    factors: CrowdingFactors


@dataclass(frozen=True)
class Segment:
    """A named, ordered subset of a line's stations."""
    id: str
    name: str
    stations: Tuple[str, ...]
    branch: Optional[str] = None


@dataclass
class SegmentCrowding:
    """Crowding along one segment of a line in one direction."""
    route_id: str
    mode: str
    direction: str
    segment_id: str
    segment_name: str
    segment_start: str
    segment_end: str
    crowding_level: str
    crowding_score: int
    factors: CrowdingFactors
    timestamp: datetime
    stations_in_segment: List[str]


@dataclass
class RouteCrowdingEnhanced:
    """Route-level crowding with its segment breakdown."""
    route_id: str
    mode: str
    avg_score: int
    avg_level: str
    segments: List[SegmentCrowding]
    timestamp: datetime


@dataclass
class NetworkCrowding:
    """Network-wide crowding summary."""
    avg_score: int
    avg_level: str
    timestamp: datetime
    routes: List[RouteCrowdingEnhanced]


@dataclass
class RouteCrowding:
    """Headway-only crowding for a route."""
    route_id: str
    crowding_level: str
    avg_headway_min: float
    timestamp: datetime
