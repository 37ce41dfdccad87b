"""Static rail timetable lookup used to backfill gaps in realtime feeds."""

import io
import json
import logging
import zipfile
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Union

import pandas as pd
import requests

from .models import ScheduledStop

logger = logging.getLogger(__name__)

# MTA regional rail GTFS static data
LIRR_GTFS_URL = "https://rrgtfsfeeds.s3.amazonaws.com/gtfslirr.zip"
MNR_GTFS_URL = "https://rrgtfsfeeds.s3.amazonaws.com/gtfsmnr.zip"


def time_of_day_seconds(value: str) -> Optional[int]:
    """
    Parse a GTFS time of day ("HH:MM" or "HH:MM:SS") into seconds after midnight.

    Hours past 23 are allowed, as GTFS uses them for trips running past midnight.
    Returns None for values that cannot be parsed.
    """
    parts = (value or "").strip().split(":")
    if len(parts) not in (2, 3):
        return None
    try:
        numbers = [int(p) for p in parts]
    except ValueError:
        return None
    hours, minutes = numbers[0], numbers[1]
    seconds = numbers[2] if len(numbers) == 3 else 0
    return hours * 3600 + minutes * 60 + seconds


class ScheduleLookup:
    """Maps train numbers to their ordered scheduled stops."""

    def __init__(self):
        """Initialize an empty lookup."""
        self.schedules: Dict[str, List[ScheduledStop]] = {}  # train number -> stops
        self.stop_names: Dict[str, str] = {}  # stop_id -> stop name

    @classmethod
    def from_json(cls, source: Union[str, Path, Mapping]) -> "ScheduleLookup":
        """
        Load a prebuilt lookup.

        Args:
            source: Path to a JSON file, or an already-parsed mapping of
                train number -> [{"id", "name", "time"}, ...].
        """
        lookup = cls()
        if isinstance(source, Mapping):
            data = source
        else:
            with open(source, "r", encoding="utf-8") as f:
                data = json.load(f)

        for train_number, stops in data.items():
            scheduled = [
                ScheduledStop(
                    stop_id=str(stop["id"]),
                    stop_name=stop.get("name") or str(stop["id"]),
                    scheduled_time=stop["time"],
                )
                for stop in stops
            ]
            lookup.schedules[str(train_number)] = scheduled
            for stop in scheduled:
                lookup.stop_names.setdefault(stop.stop_id, stop.stop_name)

        logger.info(f"Loaded schedules for {len(lookup.schedules)} trains")
        return lookup

    @classmethod
    def from_gtfs_files(cls, stops_path: str, trips_path: str, stop_times_path: str) -> "ScheduleLookup":
        """Build a lookup from local GTFS static CSV files."""
        logger.info("Loading GTFS schedule data from local files")
        lookup = cls()
        lookup._build(
            pd.read_csv(stops_path, dtype=str),
            pd.read_csv(trips_path, dtype=str),
            pd.read_csv(stop_times_path, dtype=str),
        )
        return lookup

    @classmethod
    def from_gtfs_zip(cls, source: str, timeout: float = 60) -> "ScheduleLookup":
        """
        Build a lookup from a GTFS static zip archive.

        Args:
            source: URL (http/https) or local path of the archive.
            timeout: Download timeout in seconds.
        """
        if source.startswith(("http://", "https://")):
            logger.info(f"Downloading GTFS data from {source}")
            response = requests.get(source, timeout=timeout)
            response.raise_for_status()
            archive = io.BytesIO(response.content)
        else:
            archive = source

        lookup = cls()
        with zipfile.ZipFile(archive) as zip_file:
            frames = [
                pd.read_csv(zip_file.open(name), dtype=str)
                for name in ("stops.txt", "trips.txt", "stop_times.txt")
            ]
        lookup._build(*frames)
        return lookup

    def _build(self, stops: pd.DataFrame, trips: pd.DataFrame, stop_times: pd.DataFrame) -> None:
        """Index stop_times by train number, keeping the first trip of each train."""
        self.stop_names = dict(zip(stops["stop_id"], stops["stop_name"]))

        trips = trips.dropna(subset=["trip_short_name"])
        first_trips = trips.drop_duplicates(subset="trip_short_name", keep="first")

        merged = stop_times.merge(first_trips[["trip_id", "trip_short_name"]], on="trip_id")
        merged = merged.merge(stops[["stop_id", "stop_name"]], on="stop_id", how="left")
        merged["stop_sequence"] = pd.to_numeric(merged["stop_sequence"], errors="coerce")
        merged["time"] = merged["arrival_time"].fillna(merged["departure_time"])
        merged["stop_name"] = merged["stop_name"].fillna(merged["stop_id"])
        merged = merged.dropna(subset=["time"]).sort_values(["trip_short_name", "stop_sequence"])

        self.schedules = {}
        for train_number, group in merged.groupby("trip_short_name", sort=False):
            self.schedules[str(train_number)] = [
                ScheduledStop(stop_id=row.stop_id, stop_name=row.stop_name, scheduled_time=row.time)
                for row in group.itertuples(index=False)
            ]

        logger.info(f"Built schedules for {len(self.schedules)} trains")

    def get_schedule(self, train_number: Optional[str]) -> List[ScheduledStop]:
        """Scheduled stops for a train number, empty if unknown."""
        if not train_number:
            return []
        return list(self.schedules.get(train_number, []))

    def stop_name(self, stop_id: str) -> str:
        return self.stop_names.get(stop_id, stop_id)

    def to_dict(self) -> Dict[str, List[dict]]:
        """Serialize back to the prebuilt JSON layout."""
        return {
            train_number: [
                {"id": s.stop_id, "name": s.stop_name, "time": s.scheduled_time}
                for s in stops
            ]
            for train_number, stops in self.schedules.items()
        }

    def __len__(self) -> int:
        return len(self.schedules)
