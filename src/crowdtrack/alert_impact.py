"""Service alert impact on crowding."""

import logging
from datetime import datetime
from typing import List, Optional

from . import config
from .alerts import fetch_alerts, is_alert_active
from .models import AlertImpact, ServiceAlert

logger = logging.getLogger(__name__)

# Weight of each alert type
ALERT_TYPE_WEIGHTS = {
    "DELAY": 0.7,
    "STATION_CLOSURE": 1.0,
    "DETOUR": 0.8,
    "REDUCED_SERVICE": 0.9,
    "SERVICE_CHANGE": 0.6,
    "PLANNED_WORK": 0.4,
    "SHUTTLE_BUS": 0.8,
    "OTHER": 0.3,
}

SEVERITY_WEIGHTS = {
    "SEVERE": 1.0,
    "WARNING": 0.6,
    "INFO": 0.2,
}

DEFAULT_WEIGHT = 0.5


def alert_score(alert: ServiceAlert, now: Optional[datetime] = None) -> float:
    """
    Impact score of one alert: 0.6 * severity weight + 0.4 * type weight.

    Inactive alerts score 0.
    """
    if not is_alert_active(alert, now):
        return 0.0
    base = SEVERITY_WEIGHTS.get(alert.severity, DEFAULT_WEIGHT)
    type_weight = ALERT_TYPE_WEIGHTS.get(alert.alert_type, DEFAULT_WEIGHT)
    return base * 0.6 + type_weight * 0.4


def analyze_alerts(alerts: List[ServiceAlert], now: Optional[datetime] = None) -> AlertImpact:
    """
    Aggregate the currently active alerts.

    Args:
        alerts: Alerts to consider; inactive ones are ignored.
        now: Reference time (defaults to the current time).
    """
    active = [a for a in alerts if is_alert_active(a, now)]

    impact = AlertImpact(active_alerts=len(active), severe_alerts=0, avg_severity=0.0)
    total_severity = 0.0
    for alert in active:
        impact.affected_stations.update(alert.affected_stops)
        impact.alert_types[alert.alert_type] = impact.alert_types.get(alert.alert_type, 0) + 1
        if alert.severity == "SEVERE":
            impact.severe_alerts += 1
        total_severity += alert_score(alert, now)

    if active:
        impact.avg_severity = round(total_severity / len(active), 2)
    return impact


def normalize_alert_impact(impact: Optional[AlertImpact]) -> float:
    """
    Map alert impact onto 0-1 from the alert count (capped at 5), the
    average severity and a bonus when any alert is severe.
    """
    if impact is None or impact.active_alerts == 0:
        return 0.0

    count_factor = min(impact.active_alerts / 5, 1.0)
    severe_bonus = 0.2 if impact.severe_alerts > 0 else 0.0
    normalized = count_factor * 0.4 + impact.avg_severity * 0.6 + severe_bonus
    return min(normalized, 1.0)


def alert_category(impact: AlertImpact) -> str:
    if impact.active_alerts == 0:
        return "none"
    if impact.severe_alerts > 0:
        return "major"
    if impact.active_alerts > 2:
        return "moderate"
    return "minor"


def is_station_affected(station_id: str, impact: AlertImpact) -> bool:
    return station_id in impact.affected_stations


class AlertImpactAnalyzer:
    """Alert impact for a route or the whole subway network."""

    def __init__(self, client, feed: str = "subway"):
        self.client = client
        self.feed = feed

    def route_impact(self, route_id: str, now: Optional[datetime] = None) -> AlertImpact:
        alerts = fetch_alerts(self.client, self.feed)
        # Alert feeds name the shuttles by their feed ids (FS, H, SI)
        route_ids = {route_id, config.feed_route_id(route_id)}
        route_alerts = [a for a in alerts if route_ids.intersection(a.affected_routes)]
        return analyze_alerts(route_alerts, now)

    def network_impact(self, now: Optional[datetime] = None) -> AlertImpact:
        return analyze_alerts(fetch_alerts(self.client, self.feed), now)
