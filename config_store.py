import logging
import os
from typing import Tuple

import toml

from errors import ConfigIOError
from models import MAX_COORDINATE_LENGTH, Location, TimezoneState
from time_resolver import resolve_timezone

logger = logging.getLogger(__name__)

SECTION = "location"


def _valid_coordinate(value) -> bool:
    return isinstance(value, str) and 0 < len(value) <= MAX_COORDINATE_LENGTH


class ConfigStore:
    """Persists the last used location and the timezone the weather service resolved for it.

    The record is a single [location] table in a TOML file. Nothing here ever raises
    to the caller; an unreadable or unwritable file just means the defaults are used.
    """

    def __init__(self, path: str):
        self.path = os.path.expanduser(path)

    def _read_record(self) -> dict:
        try:
            with open(self.path, "r") as f:
                data = toml.load(f)
        except (OSError, toml.TomlDecodeError, UnicodeDecodeError) as e:
            raise ConfigIOError(f"Failed to read {self.path}: {e}") from e

        section = data.get(SECTION, {})
        if not isinstance(section, dict):
            raise ConfigIOError(f"[{SECTION}] in {self.path} is not a table")
        return section

    def load(self, default_location: Location) -> Tuple[Location, TimezoneState]:
        """Return the stored location and timezone, falling back to defaults field by field."""
        location = default_location.model_copy()
        tz = TimezoneState()

        if not os.path.exists(self.path):
            logger.info(f"No saved location at {self.path}, using defaults")
            return location, tz

        try:
            record = self._read_record()
        except ConfigIOError as e:
            logger.warning(f"{e}; using default location")
            return location, tz

        latitude = record.get("latitude")
        longitude = record.get("longitude")
        if _valid_coordinate(latitude):
            location.latitude = latitude
        if _valid_coordinate(longitude):
            location.longitude = longitude

        name = record.get("timezone")
        if isinstance(name, str) and name:
            tz.iana_name = name
            tz.resolved_tz = resolve_timezone(name)

        offset = record.get("utc_offset_seconds")
        if isinstance(offset, int) and not isinstance(offset, bool):
            tz.utc_offset_seconds = offset
            tz.has_offset = True

        logger.info(
            f"Loaded location {location.latitude}, {location.longitude} "
            f"(timezone={tz.iana_name}, utc_offset_seconds={tz.utc_offset_seconds})"
        )
        return location, tz

    def _write_record(self, record: dict):
        try:
            directory = os.path.dirname(self.path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(self.path, "w") as f:
                toml.dump({SECTION: record}, f)
        except OSError as e:
            raise ConfigIOError(f"Failed to save {self.path}: {e}") from e

    def save(self, location: Location, tz: TimezoneState):
        """Overwrite the stored record with the given location and timezone."""
        record = {
            "latitude": location.latitude,
            "longitude": location.longitude,
            "utc_offset_seconds": tz.utc_offset_seconds,
        }
        if tz.iana_name:
            record["timezone"] = tz.iana_name

        try:
            self._write_record(record)
            logger.debug(f"Saved location to {self.path}")
        except ConfigIOError as e:
            logger.warning(str(e))
