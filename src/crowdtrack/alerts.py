"""Service alert parsing for the MTA JSON alert feeds."""

import logging
from datetime import datetime, timezone
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .models import ServiceAlert

logger = logging.getLogger(__name__)


class Translation(BaseModel):
    text: str
    language: Optional[str] = None


class TranslatedString(BaseModel):
    translation: List[Translation]


class TimeRange(BaseModel):
    start: Optional[float] = None
    end: Optional[float] = None


class MercuryEntitySelector(BaseModel):
    sort_order: Optional[str] = None


class EntitySelector(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    agency_id: Optional[str] = None
    route_id: Optional[str] = None
    route_type: Optional[int] = None
    stop_id: Optional[str] = None
    mercury_entity_selector: Optional[MercuryEntitySelector] = Field(
        default=None, alias="transit_realtime.mercury_entity_selector"
    )


class MercuryAlert(BaseModel):
    created_at: Optional[float] = None
    updated_at: Optional[float] = None
    alert_type: Optional[str] = None
    display_before_active: Optional[float] = None
    human_readable_active_period: Optional[TranslatedString] = None


class Alert(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    active_period: Optional[List[TimeRange]] = None
    informed_entity: Optional[List[EntitySelector]] = None
    header_text: Optional[TranslatedString] = None
    description_text: Optional[TranslatedString] = None
    cause: Optional[str] = None
    effect: Optional[str] = None
    severity_level: Optional[str] = None
    mercury_alert: Optional[MercuryAlert] = Field(default=None, alias="transit_realtime.mercury_alert")


class AlertEntity(BaseModel):
    id: str
    alert: Optional[Alert] = None


class MercuryFeedHeader(BaseModel):
    mercury_version: Optional[str] = None


class AlertFeedHeader(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    gtfs_realtime_version: str
    timestamp: float
    incrementality: Optional[str] = None
    mercury_feed_header: Optional[MercuryFeedHeader] = Field(
        default=None, alias="transit_realtime.mercury_feed_header"
    )


class AlertFeed(BaseModel):
    header: AlertFeedHeader
    entity: List[AlertEntity]


def get_translated_text(translated: Optional[TranslatedString]) -> Optional[str]:
    """Pick the English, non-HTML translation, else the first one."""
    if translated is None or not translated.translation:
        return None

    for t in translated.translation:
        if (t.language == "en" or not t.language) and "html" not in (t.language or ""):
            return t.text
    return translated.translation[0].text or None


def _epoch_to_datetime(value: Optional[float]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc)


def _dedupe(values: List[str]) -> List[str]:
    return list(dict.fromkeys(values))


def map_severity(
    severity_level: Optional[str],
    effect: Optional[str],
    mta_alert_type: Optional[str],
    header_text: str = "",
) -> str:
    """Resolve the alert severity, first matching rule wins."""
    if severity_level:
        upper = severity_level.upper()
        if "SEVERE" in upper:
            return "SEVERE"
        if "WARNING" in upper:
            return "WARNING"
        if "INFO" in upper:
            return "INFO"

    if mta_alert_type:
        upper = mta_alert_type.upper()
        if "SUSPEND" in upper or "NO SERVICE" in upper:
            return "SEVERE"
        if "DELAY" in upper:
            return "WARNING"

    if effect:
        upper = effect.upper()
        if upper == "NO_SERVICE":
            return "SEVERE"
        if upper in ("SIGNIFICANT_DELAYS", "REDUCED_SERVICE", "DETOUR"):
            return "WARNING"

    header = header_text.lower()
    if "suspended" in header or "no service" in header:
        return "SEVERE"
    if "delay" in header:
        return "WARNING"

    return "INFO"


# Header text keyword rules, checked in order
HEADER_TYPE_RULES = [
    (lambda h: "delay" in h, "DELAY"),
    (lambda h: "planned work" in h or "planned service change" in h, "PLANNED_WORK"),
    (lambda h: "shuttle" in h and "bus" in h, "SHUTTLE_BUS"),
    (lambda h: "station closed" in h or "bypass" in h, "STATION_CLOSURE"),
    (lambda h: "reroute" in h or "detour" in h, "DETOUR"),
    (lambda h: "running on the local" in h or "express to local" in h, "SERVICE_CHANGE"),
]

EFFECT_TYPES = {
    "DETOUR": "DETOUR",
    "NO_SERVICE": "STATION_CLOSURE",
    "REDUCED_SERVICE": "REDUCED_SERVICE",
    "SIGNIFICANT_DELAYS": "DELAY",
    "MODIFIED_SERVICE": "SERVICE_CHANGE",
}


def _header_alert_type(header: str) -> Optional[str]:
    for matches, alert_type in HEADER_TYPE_RULES:
        if matches(header):
            return alert_type
    return None


def map_alert_type(
    effect: Optional[str],
    cause: Optional[str],
    header_text: str,
    mta_alert_type: Optional[str],
) -> str:
    """Resolve the alert type, first matching rule wins."""
    if mta_alert_type:
        upper = mta_alert_type.upper()
        if "DELAY" in upper:
            return "DELAY"
        if "PLANNED" in upper or "SCHEDULE" in upper:
            return "PLANNED_WORK"
        if "REROUTE" in upper or "LOCAL" in upper:
            return "SERVICE_CHANGE"
        if "SUSPEND" in upper:
            return "STATION_CLOSURE"

    header_type = _header_alert_type(header_text.lower())
    if header_type:
        return header_type

    if effect and effect.upper() in EFFECT_TYPES:
        return EFFECT_TYPES[effect.upper()]

    if cause and cause.upper() in ("CONSTRUCTION", "MAINTENANCE"):
        return "PLANNED_WORK"

    return "OTHER"


def parse_alert_feed(data: Any) -> List[ServiceAlert]:
    """
    Validate and normalize a raw alert feed document.

    A payload that does not match the feed schema is rejected as a whole:
    the validation errors are logged and an empty list is returned.

    Args:
        data: Decoded JSON document of an MTA alert feed.

    Returns:
        List of ServiceAlert objects, alerts without header text skipped.
    """
    try:
        feed = AlertFeed.model_validate(data)
    except ValidationError as e:
        logger.error(f"Failed to parse alert feed: {e.errors()}")
        return []

    alerts: List[ServiceAlert] = []
    for entity in feed.entity:
        alert = entity.alert
        if alert is None:
            continue

        header_text = get_translated_text(alert.header_text)
        if not header_text:
            continue

        informed = alert.informed_entity or []
        routes = _dedupe([e.route_id for e in informed if e.route_id])
        stops = _dedupe([e.stop_id for e in informed if e.stop_id])

        period = alert.active_period[0] if alert.active_period else None
        mta_alert_type = alert.mercury_alert.alert_type if alert.mercury_alert else None

        alerts.append(
            ServiceAlert(
                id=entity.id,
                affected_routes=routes,
                affected_stops=stops,
                header_text=header_text,
                description_text=get_translated_text(alert.description_text),
                severity=map_severity(alert.severity_level, alert.effect, mta_alert_type, header_text),
                alert_type=map_alert_type(alert.effect, alert.cause, header_text, mta_alert_type),
                active_period_start=_epoch_to_datetime(period.start) if period else None,
                active_period_end=_epoch_to_datetime(period.end) if period else None,
                cause=alert.cause,
                effect=alert.effect,
            )
        )

    logger.debug(f"Parsed {len(alerts)} alerts")
    return alerts


def fetch_alerts(client, feed: str = "subway") -> List[ServiceAlert]:
    """Fetch and parse one alert feed; empty on any failure."""
    data = client.get_alert_feed(feed)
    if data is None:
        return []
    return parse_alert_feed(data)


def _now(now: Optional[datetime]) -> datetime:
    return now if now is not None else datetime.now(timezone.utc)


def is_alert_active(alert: ServiceAlert, now: Optional[datetime] = None) -> bool:
    """An alert is active once started and until its end time, if any."""
    now = _now(now)
    if alert.active_period_start is not None and alert.active_period_start > now:
        return False
    if alert.active_period_end is not None and alert.active_period_end < now:
        return False
    return True


def filter_alerts(
    alerts: List[ServiceAlert],
    route_id: Optional[str] = None,
    severity: Optional[str] = None,
    active_only: bool = False,
    now: Optional[datetime] = None,
) -> List[ServiceAlert]:
    """
    Filter alerts by route, severity and whether they have ended.

    With active_only, alerts whose end time has passed are dropped; alerts
    without an end time are kept.
    """
    filtered = alerts
    if route_id:
        filtered = [a for a in filtered if route_id in a.affected_routes]
    if severity:
        filtered = [a for a in filtered if a.severity == severity]
    if active_only:
        now = _now(now)
        filtered = [a for a in filtered if a.active_period_end is None or a.active_period_end > now]
    return filtered
