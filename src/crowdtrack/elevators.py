"""Elevator and escalator outage feeds."""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Union
from zoneinfo import ZoneInfo

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from . import config
from .models import EquipmentOutage

logger = logging.getLogger(__name__)

MTA_DATE_FORMATS = ("%m/%d/%Y %I:%M:%S %p", "%m/%d/%Y %H:%M:%S")


class OutageItem(BaseModel):
    """One row of the current/upcoming outage feeds."""
    model_config = ConfigDict(populate_by_name=True)

    station: str
    borough: Optional[str] = None
    trainno: Optional[str] = None  # e.g. "A/C/E"
    equipment: str
    equipmenttype: str  # "EL" or "ES"
    serving: Optional[str] = None
    ada: Optional[str] = Field(default=None, alias="ADA")  # "Y" or "N"
    outagedate: Optional[str] = None
    estimatedreturntoservice: Optional[str] = None
    reason: Optional[str] = None
    isupcomingoutage: Optional[str] = None
    ismaintenanceoutage: Optional[str] = None


class EquipmentItem(BaseModel):
    """One row of the equipment list feed."""
    model_config = ConfigDict(populate_by_name=True)

    station: str
    borough: Optional[str] = None
    trainno: Optional[str] = None
    equipmentno: str
    equipmenttype: str
    serving: Optional[str] = None
    ada: Optional[str] = Field(default=None, alias="ADA")
    isactive: Optional[str] = None
    non_nyct: Optional[str] = Field(default=None, alias="nonNYCT")
    shortdescription: Optional[str] = None
    linesservedbyelevator: Optional[str] = None
    elevatorsgtfsstopid: Optional[str] = None
    elevatormrn: Optional[str] = None
    stationcomplexid: Optional[str] = None
    nextadanorth: Optional[str] = None
    nextadasouth: Optional[str] = None
    redundant: Optional[Union[int, float, str]] = None
    busconnections: Optional[str] = None
    alternativeroute: Optional[str] = None


_outage_list = TypeAdapter(List[OutageItem])
_equipment_list = TypeAdapter(List[EquipmentItem])


def parse_equipment_type(type_code: str) -> str:
    upper = type_code.upper()
    if upper == "ES" or "ESCALATOR" in upper:
        return "ESCALATOR"
    return "ELEVATOR"


def parse_train_lines(value: Optional[str]) -> List[str]:
    """Split "A/C/E" or "F, G" into line ids; tokens longer than 4 are dropped."""
    if not value:
        return []
    tokens = value.replace(",", "/").split("/")
    lines = [token.strip().upper() for token in tokens]
    return [line for line in lines if 0 < len(line) <= 4]


def parse_mta_date(value: Optional[str]) -> Optional[datetime]:
    """Parse "MM/DD/YYYY HH:MM:SS AM/PM" as a service-timezone datetime."""
    if not value:
        return None
    text = value.strip()
    for fmt in MTA_DATE_FORMATS:
        try:
            parsed = datetime.strptime(text, fmt)
        except ValueError:
            continue
        return parsed.replace(tzinfo=ZoneInfo(config.get_timezone_name()))
    logger.debug(f"Unrecognized outage date {value!r}")
    return None


def parse_outages(data: Any) -> List[EquipmentOutage]:
    """Validate and normalize an outage feed; empty when the payload is malformed."""
    try:
        items = _outage_list.validate_python(data)
    except ValidationError as e:
        logger.error(f"Failed to parse outage response: {e.errors()}")
        return []

    return [
        EquipmentOutage(
            equipment_id=item.equipment,
            station_name=item.station,
            borough=item.borough or None,
            equipment_type=parse_equipment_type(item.equipmenttype),
            serving=item.serving or None,
            ada_compliant=item.ada == "Y",
            is_active=False,
            outage_reason=item.reason or None,
            outage_start_time=parse_mta_date(item.outagedate),
            estimated_return=parse_mta_date(item.estimatedreturntoservice),
            train_lines=parse_train_lines(item.trainno),
        )
        for item in items
    ]


def parse_equipment(data: Any) -> List[EquipmentOutage]:
    """Validate and normalize the equipment list; empty when malformed."""
    try:
        items = _equipment_list.validate_python(data)
    except ValidationError as e:
        logger.error(f"Failed to parse equipment response: {e.errors()}")
        return []

    return [
        EquipmentOutage(
            equipment_id=item.equipmentno,
            station_name=item.station,
            borough=item.borough or None,
            equipment_type=parse_equipment_type(item.equipmenttype),
            serving=item.serving or None,
            ada_compliant=item.ada == "Y",
            is_active=item.isactive != "N",
            train_lines=parse_train_lines(item.trainno or item.linesservedbyelevator),
        )
        for item in items
    ]


def fetch_current_outages(client) -> List[EquipmentOutage]:
    data = client.get_elevator_feed("current")
    return parse_outages(data) if data is not None else []


def fetch_upcoming_outages(client) -> List[EquipmentOutage]:
    data = client.get_elevator_feed("upcoming")
    return parse_outages(data) if data is not None else []


def fetch_all_equipment(client) -> List[EquipmentOutage]:
    data = client.get_equipment_feed()
    return parse_equipment(data) if data is not None else []


def filter_outages(
    outages: List[EquipmentOutage],
    station_name: Optional[str] = None,
    line: Optional[str] = None,
    equipment_type: Optional[str] = None,
    ada_only: bool = False,
) -> List[EquipmentOutage]:
    """
    Filter outages.

    Args:
        outages: Outages to filter.
        station_name: Case-insensitive substring of the station name.
        line: Train line served by the equipment.
        equipment_type: "ELEVATOR" or "ESCALATOR".
        ada_only: Keep only ADA-accessible equipment.
    """
    filtered = outages
    if station_name:
        term = station_name.lower()
        filtered = [o for o in filtered if term in o.station_name.lower()]
    if line:
        filtered = [o for o in filtered if line.upper() in o.train_lines]
    if equipment_type:
        filtered = [o for o in filtered if o.equipment_type == equipment_type]
    if ada_only:
        filtered = [o for o in filtered if o.ada_compliant]
    return filtered


def outage_summary(outages: List[EquipmentOutage]) -> Dict[str, Any]:
    """Counts by equipment type, ADA access and borough."""
    by_borough: Dict[str, int] = {}
    for outage in outages:
        borough = outage.borough or "Unknown"
        by_borough[borough] = by_borough.get(borough, 0) + 1

    return {
        "total_outages": len(outages),
        "elevator_outages": sum(1 for o in outages if o.equipment_type == "ELEVATOR"),
        "escalator_outages": sum(1 for o in outages if o.equipment_type == "ESCALATOR"),
        "ada_outages": sum(1 for o in outages if o.ada_compliant),
        "by_borough": by_borough,
    }
