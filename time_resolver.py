"""Local wall-clock time for the forecast location.

Resolution order is fixed: a non-zero UTC offset from the weather service wins,
then the named IANA zone, then whatever zone the host is configured with. The
offset tier exists because the service reports it for every location, even
where the zone name is missing from the host's tz database.
"""
import logging
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Optional, Tuple
from zoneinfo import ZoneInfo

from models import ClockReading, TimezoneState

logger = logging.getLogger(__name__)

TIME_FORMAT = "%H:%M:%S"
DATE_FORMAT = "%A, %B %d, %Y"


def resolve_timezone(name: Optional[str]) -> Optional[ZoneInfo]:
    """Look up an IANA zone by name, returning None if it cannot be resolved."""
    if not name:
        return None
    try:
        return ZoneInfo(name)
    except (KeyError, ValueError, OSError) as e:
        # ZoneInfoNotFoundError is a KeyError subclass
        logger.warning(f"Could not resolve timezone '{name}': {e}")
        return None


def to_local_datetime(
    now_utc: datetime,
    offset_seconds: int,
    named_tz: Optional[tzinfo],
    host_tz: Optional[tzinfo] = None,
) -> datetime:
    """Convert an aware UTC instant to local wall-clock time.

    With a non-zero offset the result is the shifted instant still labelled UTC,
    which formats correctly and keeps the function free of tz lookups.
    """
    if offset_seconds:
        return now_utc.astimezone(timezone.utc) + timedelta(seconds=offset_seconds)
    if named_tz is not None:
        return now_utc.astimezone(named_tz)
    if host_tz is not None:
        return now_utc.astimezone(host_tz)
    return now_utc.astimezone()


def local_now(
    now_utc: datetime, tz: TimezoneState, host_tz: Optional[tzinfo] = None
) -> Optional[ClockReading]:
    """Format the clock and date lines, or None if the time cannot be resolved this tick."""
    try:
        local = to_local_datetime(now_utc, tz.utc_offset_seconds, tz.resolved_tz, host_tz)
        return ClockReading(
            time_string=local.strftime(TIME_FORMAT),
            date_string=local.strftime(DATE_FORMAT),
        )
    except (ValueError, OverflowError, OSError) as e:
        logger.debug(f"Skipping clock update: {e}")
        return None


def local_hour_key(
    now_utc: datetime, tz: TimezoneState, host_tz: Optional[tzinfo] = None
) -> Tuple[int, int, int, int]:
    local = to_local_datetime(now_utc, tz.utc_offset_seconds, tz.resolved_tz, host_tz)
    return local.year, local.month, local.day, local.hour


def seconds_until_next_hour(now: datetime) -> float:
    """Seconds from `now` to the next :00 boundary; a full hour when already on it."""
    top = now.replace(minute=0, second=0, microsecond=0) + timedelta(hours=1)
    return (top - now).total_seconds()
