"""GTFS-Realtime decoding with MTA agency extensions.

The base schedule/position protocol comes from ``gtfs-realtime-bindings``.
The MTA publishes extra fields on ``TripDescriptor`` and ``StopTimeUpdate``
(train id, assignment flag, direction, track, train status) as proto2
extensions. Their schema is kept here as a constant text-format
``FileDescriptorProto`` and registered into the default descriptor pool the
first time a feed is decoded.
"""

import logging
import threading
from typing import Optional

from google.protobuf import descriptor_pool, message_factory, text_format
from google.protobuf.descriptor_pb2 import FileDescriptorProto
from google.protobuf.message import DecodeError
from google.transit import gtfs_realtime_pb2

logger = logging.getLogger(__name__)

EXTENSION_FILE_NAME = "crowdtrack/mta_extensions.proto"

MTA_EXTENSION_SCHEMA = """
name: "crowdtrack/mta_extensions.proto"
package: "transit_realtime"
syntax: "proto2"
message_type {
  name: "NyctTripDescriptor"
  field { name: "train_id" number: 1 label: LABEL_OPTIONAL type: TYPE_STRING }
  field { name: "is_assigned" number: 2 label: LABEL_OPTIONAL type: TYPE_BOOL }
  field {
    name: "direction" number: 3 label: LABEL_OPTIONAL type: TYPE_ENUM
    type_name: ".transit_realtime.NyctTripDescriptor.Direction"
  }
  enum_type {
    name: "Direction"
    value { name: "NORTH" number: 1 }
    value { name: "EAST" number: 2 }
    value { name: "SOUTH" number: 3 }
    value { name: "WEST" number: 4 }
  }
}
message_type {
  name: "NyctStopTimeUpdate"
  field { name: "scheduled_track" number: 1 label: LABEL_OPTIONAL type: TYPE_STRING }
  field { name: "actual_track" number: 2 label: LABEL_OPTIONAL type: TYPE_STRING }
}
message_type {
  name: "MtaRailroadStopTimeUpdate"
  field { name: "track" number: 1 label: LABEL_OPTIONAL type: TYPE_STRING }
  field { name: "trainStatus" number: 2 label: LABEL_OPTIONAL type: TYPE_STRING }
}
extension {
  name: "nyct_trip_descriptor" number: 1001 label: LABEL_OPTIONAL type: TYPE_MESSAGE
  type_name: ".transit_realtime.NyctTripDescriptor"
  extendee: ".transit_realtime.TripDescriptor"
}
extension {
  name: "nyct_stop_time_update" number: 1001 label: LABEL_OPTIONAL type: TYPE_MESSAGE
  type_name: ".transit_realtime.NyctStopTimeUpdate"
  extendee: ".transit_realtime.TripUpdate.StopTimeUpdate"
}
extension {
  name: "mta_railroad_stop_time_update" number: 1005 label: LABEL_OPTIONAL type: TYPE_MESSAGE
  type_name: ".transit_realtime.MtaRailroadStopTimeUpdate"
  extendee: ".transit_realtime.TripUpdate.StopTimeUpdate"
}
"""

# NyctTripDescriptor.Direction values
NORTH, EAST, SOUTH, WEST = 1, 2, 3, 4


class FeedDecodeError(Exception):
    """Raised when a GTFS-Realtime buffer cannot be decoded."""


class _Extensions:
    """Field descriptors of the registered MTA extensions."""

    def __init__(self, pool):
        self.nyct_trip_descriptor = pool.FindExtensionByName(
            "transit_realtime.nyct_trip_descriptor"
        )
        self.nyct_stop_time_update = pool.FindExtensionByName(
            "transit_realtime.nyct_stop_time_update"
        )
        self.mta_railroad_stop_time_update = pool.FindExtensionByName(
            "transit_realtime.mta_railroad_stop_time_update"
        )
        for ext in (self.nyct_trip_descriptor, self.nyct_stop_time_update, self.mta_railroad_stop_time_update):
            message_factory.GetMessageClass(ext.message_type)


_extensions: Optional[_Extensions] = None
_schema_lock = threading.Lock()


def ensure_schema() -> _Extensions:
    """Register the MTA extension schema once per process and return it."""
    global _extensions
    if _extensions is not None:
        return _extensions

    with _schema_lock:
        if _extensions is None:
            pool = descriptor_pool.Default()
            try:
                pool.FindFileByName(EXTENSION_FILE_NAME)
            except KeyError:
                file_proto = text_format.Parse(MTA_EXTENSION_SCHEMA, FileDescriptorProto())
                file_proto.dependency.append(gtfs_realtime_pb2.DESCRIPTOR.name)
                pool.AddSerializedFile(file_proto.SerializeToString())
                logger.debug("Registered MTA GTFS-Realtime extensions")
            _extensions = _Extensions(pool)
    return _extensions


def decode_feed(data: bytes) -> gtfs_realtime_pb2.FeedMessage:
    """
    Decode a GTFS-Realtime buffer into a FeedMessage.

    Args:
        data: Raw protobuf bytes.

    Returns:
        Decoded FeedMessage, with MTA extensions available.

    Raises:
        FeedDecodeError: If the buffer is empty, corrupt or missing required fields.
    """
    if not data:
        raise FeedDecodeError("Empty feed payload")

    ensure_schema()
    feed = gtfs_realtime_pb2.FeedMessage()
    try:
        feed.ParseFromString(data)
    except DecodeError as e:
        raise FeedDecodeError(f"Malformed GTFS-Realtime payload: {e}") from e

    if not feed.IsInitialized():
        raise FeedDecodeError(f"Missing required fields: {', '.join(feed.FindInitializationErrors())}")
    return feed


def feed_timestamp(feed: gtfs_realtime_pb2.FeedMessage) -> Optional[int]:
    """Feed generation time as a Unix timestamp, if the header carries one."""
    if feed.header.HasField("timestamp"):
        return int(feed.header.timestamp)
    return None


def nyct_trip_descriptor(trip):
    """Return the NYCT trip extension of a TripDescriptor, or None."""
    ext = ensure_schema().nyct_trip_descriptor
    if trip.HasExtension(ext):
        return trip.Extensions[ext]
    return None


def nyct_direction(trip) -> Optional[str]:
    """Map the NYCT direction extension to "N" or "S"."""
    descriptor = nyct_trip_descriptor(trip)
    if descriptor is None or not descriptor.HasField("direction"):
        return None
    if descriptor.direction in (NORTH, EAST):
        return "N"
    if descriptor.direction in (SOUTH, WEST):
        return "S"
    return None


def nyct_is_assigned(trip) -> bool:
    descriptor = nyct_trip_descriptor(trip)
    if descriptor is None or not descriptor.HasField("is_assigned"):
        return True
    return descriptor.is_assigned


def nyct_train_id(trip) -> Optional[str]:
    descriptor = nyct_trip_descriptor(trip)
    if descriptor is None or not descriptor.train_id:
        return None
    return descriptor.train_id


def stop_track(stop_time_update) -> Optional[str]:
    """Track from the NYCT (actual, then scheduled) or railroad extension."""
    extensions = ensure_schema()

    if stop_time_update.HasExtension(extensions.nyct_stop_time_update):
        nyct = stop_time_update.Extensions[extensions.nyct_stop_time_update]
        if nyct.actual_track:
            return nyct.actual_track
        if nyct.scheduled_track:
            return nyct.scheduled_track

    if stop_time_update.HasExtension(extensions.mta_railroad_stop_time_update):
        railroad = stop_time_update.Extensions[extensions.mta_railroad_stop_time_update]
        if railroad.track:
            return railroad.track

    return None


def stop_train_status(stop_time_update) -> Optional[str]:
    """Railroad train status text (e.g. "On Time", "Late"), if present."""
    ext = ensure_schema().mta_railroad_stop_time_update
    if stop_time_update.HasExtension(ext):
        status = stop_time_update.Extensions[ext].trainStatus
        return status or None
    return None


def stop_time(stop_time_update) -> Optional[int]:
    """Predicted arrival time, falling back to departure time."""
    for event_name in ("arrival", "departure"):
        if stop_time_update.HasField(event_name):
            event = getattr(stop_time_update, event_name)
            if event.HasField("time") and event.time > 0:
                return int(event.time)
    return None


def stop_departure_time(stop_time_update) -> Optional[int]:
    if stop_time_update.HasField("departure") and stop_time_update.departure.time > 0:
        return int(stop_time_update.departure.time)
    return None


def stop_delay(stop_time_update) -> int:
    """Delay in seconds from the arrival event, falling back to departure."""
    for event_name in ("arrival", "departure"):
        if stop_time_update.HasField(event_name):
            event = getattr(stop_time_update, event_name)
            if event.HasField("delay"):
                return int(event.delay)
    return 0
