import logging
from typing import List, Optional, Sequence, Tuple

from models import HourlySample

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_HOURS = 6

HourKey = Tuple[int, int, int, int]  # (year, month, day, hour)


def sample_hour_key(timestamp: str) -> Optional[HourKey]:
    """Split "YYYY-MM-DDTHH:MM" into (year, month, day, hour), or None if it does not parse."""
    try:
        return (
            int(timestamp[0:4]),
            int(timestamp[5:7]),
            int(timestamp[8:10]),
            int(timestamp[11:13]),
        )
    except (TypeError, ValueError):
        return None


def find_start_index(samples: Sequence[HourlySample], now_local: HourKey) -> int:
    """Index of the first sample in the current local hour or later, 0 if there is none."""
    for index, sample in enumerate(samples):
        key = sample_hour_key(sample.timestamp)
        if key is not None and key >= now_local:
            return index
    return 0


def select_window(
    samples: Sequence[HourlySample],
    now_local: HourKey,
    size: int = DEFAULT_WINDOW_HOURS,
) -> List[HourlySample]:
    """Pick the hours to display, starting at the current local hour.

    Requesting two days of data keeps the window full late in the evening, since
    the scan runs straight across midnight into the next day's samples.
    """
    start = find_start_index(samples, now_local)
    window = list(samples[start:start + size])
    logger.debug(f"Forecast window starts at index {start} with {len(window)} hours")
    return window
