import logging
from datetime import datetime, timezone
from typing import Optional, Protocol

from models import ClockReading, FetchStatus, ForecastWindow, StatusKind

logger = logging.getLogger(__name__)


class Presenter(Protocol):
    def show_window(self, window: ForecastWindow) -> None: ...

    def show_status(self, status: FetchStatus) -> None: ...

    def show_clock(self, reading: ClockReading) -> None: ...


class DisplayState:
    """Latest clock, forecast window and status, read by the kiosk HTTP endpoints."""

    def __init__(self, keep_stale_forecast: bool = False):
        self.keep_stale_forecast = keep_stale_forecast
        self.window: Optional[ForecastWindow] = None
        self.status: Optional[FetchStatus] = None
        self.clock: Optional[ClockReading] = None
        self.last_updated: Optional[datetime] = None

    def show_window(self, window: ForecastWindow):
        self.window = window
        self.status = FetchStatus(
            kind=StatusKind.OK, message=f"Showing {len(window.samples)} hours"
        )
        self.last_updated = datetime.now(timezone.utc)

    def show_status(self, status: FetchStatus):
        if status.is_error and not self.keep_stale_forecast and self.window is not None:
            logger.info("Clearing forecast window after error")
            self.window = None
        self.status = status

    def show_clock(self, reading: ClockReading):
        self.clock = reading

    def snapshot(self) -> dict:
        return {
            "window": self.window,
            "status": self.status,
            "last_updated": self.last_updated,
        }
