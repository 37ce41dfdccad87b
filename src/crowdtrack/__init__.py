"""CrowdTrack - MTA realtime feed ingestion and subway crowding estimates."""

__version__ = "0.1.0"

from .models import (
    Arrival,
    ServiceAlert,
    EquipmentOutage,
    CrowdingFactors,
    CrowdingResult,
    SegmentCrowding,
    RouteCrowdingEnhanced,
    NetworkCrowding,
    RouteCrowding,
    Segment,
)
from .gtfs_decoder import FeedDecodeError, decode_feed
from .feed_client import MTAFeedClient
from .extractors import extract_arrivals
from .schedule import ScheduleLookup
from .crowding import CrowdingTracker

__all__ = [
    "CrowdingTracker",
    "MTAFeedClient",
    "ScheduleLookup",
    "FeedDecodeError",
    "decode_feed",
    "extract_arrivals",
    "Arrival",
    "ServiceAlert",
    "EquipmentOutage",
    "CrowdingFactors",
    "CrowdingResult",
    "SegmentCrowding",
    "RouteCrowdingEnhanced",
    "NetworkCrowding",
    "RouteCrowding",
    "Segment",
]
