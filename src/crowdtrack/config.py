"""Feed endpoints, cache windows and crowding configuration."""

import os
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

# MTA subway GTFS-Realtime feeds (protobuf, no API key required)
SUBWAY_FEED_URLS = {
    "ace": "https://api-endpoint.mta.info/Dataservice/mtagtfsfeeds/nyct%2Fgtfs-ace",  # A, C, E, Rockaway Shuttle
    "bdfm": "https://api-endpoint.mta.info/Dataservice/mtagtfsfeeds/nyct%2Fgtfs-bdfm",  # B, D, F, M, Franklin Shuttle
    "g": "https://api-endpoint.mta.info/Dataservice/mtagtfsfeeds/nyct%2Fgtfs-g",
    "jz": "https://api-endpoint.mta.info/Dataservice/mtagtfsfeeds/nyct%2Fgtfs-jz",
    "nqrw": "https://api-endpoint.mta.info/Dataservice/mtagtfsfeeds/nyct%2Fgtfs-nqrw",
    "l": "https://api-endpoint.mta.info/Dataservice/mtagtfsfeeds/nyct%2Fgtfs-l",
    "1234567": "https://api-endpoint.mta.info/Dataservice/mtagtfsfeeds/nyct%2Fgtfs",  # 1-7, 42 St Shuttle
    "sir": "https://api-endpoint.mta.info/Dataservice/mtagtfsfeeds/nyct%2Fgtfs-si",
}

# Regional rail GTFS-Realtime feeds (protobuf)
RAIL_FEED_URLS = {
    "lirr": "https://api-endpoint.mta.info/Dataservice/mtagtfsfeeds/lirr%2Fgtfs-lirr",
    "metro-north": "https://api-endpoint.mta.info/Dataservice/mtagtfsfeeds/mnr%2Fgtfs-mnr",
}

# Service alerts (JSON)
ALERT_FEED_URLS = {
    "all": "https://api-endpoint.mta.info/Dataservice/mtagtfsfeeds/camsys%2Fall-alerts.json",
    "subway": "https://api-endpoint.mta.info/Dataservice/mtagtfsfeeds/camsys%2Fsubway-alerts.json",
    "bus": "https://api-endpoint.mta.info/Dataservice/mtagtfsfeeds/camsys%2Fbus-alerts.json",
    "lirr": "https://api-endpoint.mta.info/Dataservice/mtagtfsfeeds/camsys%2Flirr-alerts.json",
    "metro-north": "https://api-endpoint.mta.info/Dataservice/mtagtfsfeeds/camsys%2Fmnr-alerts.json",
}

# Elevator/escalator status (JSON)
ELEVATOR_FEED_URLS = {
    "current": "https://api-endpoint.mta.info/Dataservice/mtagtfsfeeds/nyct%2Fnyct_ene.json",
    "upcoming": "https://api-endpoint.mta.info/Dataservice/mtagtfsfeeds/nyct%2Fnyct_ene_upcoming.json",
    "equipment": "https://api-endpoint.mta.info/Dataservice/mtagtfsfeeds/nyct%2Fnyct_ene_equipments.json",
}

# Bus GTFS-Realtime (requires API key)
BUS_FEED_URLS = {
    "trip_updates": "https://gtfsrt.prod.obanyc.com/tripUpdates",
    "vehicle_positions": "https://gtfsrt.prod.obanyc.com/vehiclePositions",
}

# Seconds a fetched payload stays fresh, per feed kind
FEED_TTLS = {
    "subway": 30,
    "bus": 30,
    "rail": 30,
    "alerts": 60,
    "elevators": 300,
    "equipment": 3600,
}

HTTP_TIMEOUT = 10
MAX_CACHE_SIZE = 32

BUS_API_KEY_ENV = "MTA_BUS_API_KEY"
TIMEZONE_ENV = "CROWDTRACK_TIMEZONE"
DEFAULT_TIMEZONE = "America/New_York"

SUBWAY_LINES = [
    "1", "2", "3", "4", "5", "6", "7",
    "A", "C", "E", "B", "D", "F", "M",
    "G", "J", "Z", "L", "N", "Q", "R", "W",
    "S", "SF", "SR", "SIR",
]

SUBWAY_LINE_TO_FEED = {
    "A": "ace", "C": "ace", "E": "ace", "SR": "ace",
    "B": "bdfm", "D": "bdfm", "F": "bdfm", "M": "bdfm", "SF": "bdfm",
    "G": "g",
    "J": "jz", "Z": "jz",
    "N": "nqrw", "Q": "nqrw", "R": "nqrw", "W": "nqrw",
    "L": "l",
    "1": "1234567", "2": "1234567", "3": "1234567", "4": "1234567",
    "5": "1234567", "6": "1234567", "7": "1234567", "S": "1234567",
    "SIR": "sir",
}

# Route ids as they appear inside the realtime feeds, where they differ
FEED_ROUTE_IDS = {
    "SF": "FS",
    "SR": "H",
    "SIR": "SI",
}

# Busy reference stations used for headway sampling (parent station ids)
REFERENCE_STATIONS = {
    "1": "127", "2": "127", "3": "127",  # Times Sq-42 St
    "4": "631", "5": "631", "6": "631",  # Grand Central-42 St
    "7": "723",
    "A": "A27", "C": "A27", "E": "A27",  # 42 St-Port Authority
    "B": "D16", "D": "D16", "F": "D16", "M": "D16",  # 42 St-Bryant Pk
    "N": "R16", "Q": "R16", "R": "R16", "W": "R16",
    "L": "L03",  # 14 St-Union Sq
    "G": "G24",
    "J": "M22", "Z": "M22",  # Canal St
    "S": "901",
    "SIR": "S01",
    "SF": "S01",
    "SR": "S01",
}

# Headway thresholds for the headway-only crowding levels (minutes)
CROWDING_THRESHOLDS = {
    "LOW": 6,
    "HIGH": 12,
}

# Inclusive score bounds per level on the 0-100 scale
SCORE_RANGES = {
    "LOW": (0, 33),
    "MEDIUM": (34, 66),
    "HIGH": (67, 100),
}

SCORING_WEIGHTS = {
    "headway": 0.35,
    "demand": 0.35,
    "delay": 0.20,
    "alerts": 0.10,
}

PEAK_DIRECTION_MULTIPLIER = 1.2

NETWORK_BATCH_SIZE = 5
SEGMENT_SAMPLE_SIZE = 2
HEADWAY_SAMPLE_LIMIT = 8
MAX_WORKERS = 8


def get_bus_api_key() -> Optional[str]:
    """Return the Bus Time API key from the environment, if configured."""
    return os.environ.get(BUS_API_KEY_ENV) or None


def get_timezone_name() -> str:
    return os.environ.get(TIMEZONE_ENV) or DEFAULT_TIMEZONE


def feed_route_id(route_id: str) -> str:
    """Translate a public line id into the id used inside the realtime feed."""
    return FEED_ROUTE_IDS.get(route_id, route_id)
