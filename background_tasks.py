import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from config_store import ConfigStore
from display import Presenter
from errors import ParseError, TransportError
from forecast_parser import parse_forecast
from models import (
    AppState,
    ClockReading,
    FetchStatus,
    ForecastWindow,
    Location,
    StatusKind,
    WeatherConfig,
    sanitize_location,
)
from time_resolver import local_hour_key, local_now, seconds_until_next_hour
from weather_service import WeatherService
from window_selector import select_window

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def retry_delay(attempt_count: int, initial: int = 30, maximum: int = 600) -> int:
    """Backoff before retry number attempt_count + 1: 30, 60, 120, 240, 480, then capped."""
    return min(initial * 2 ** attempt_count, maximum)


class FetchScheduler:
    """Owns the forecast request lifecycle.

    At most one request task exists at a time. Starting a fetch cancels the
    previous task and any pending retry timer before issuing a new request.
    Transport failures are retried with exponential backoff; payloads that
    arrive but cannot be parsed are reported once and left for the next
    hourly update.

    `timers` is anything with asyncio's call_later(delay, callback) signature and
    defaults to the running event loop.
    """

    def __init__(
        self,
        state: AppState,
        weather_service: WeatherService,
        config_store: ConfigStore,
        presenter: Presenter,
        settings: WeatherConfig,
        timers=None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.state = state
        self.weather_service = weather_service
        self.config_store = config_store
        self.presenter = presenter
        self.settings = settings
        self._timers = timers
        self._clock = clock
        self.pending_request: Optional[asyncio.Task] = None
        self._hourly_timer = None
        self.running = False

    @property
    def timers(self):
        if self._timers is not None:
            return self._timers
        return asyncio.get_running_loop()

    @property
    def state_name(self) -> str:
        if self.pending_request is not None and not self.pending_request.done():
            return "fetching"
        if self.state.retry.pending_timer is not None:
            return "retry_scheduled"
        return "idle"

    def start(self):
        """Fetch now, then refresh at every top of the hour."""
        self.running = True
        logger.info("Starting scheduled weather updates")
        self.start_fetch()
        self._schedule_hourly(seconds_until_next_hour(self._clock()))

    def stop(self):
        """Cancel the in-flight request and every pending timer."""
        self.running = False
        self._cancel_pending_request()
        self.state.retry.reset()
        if self._hourly_timer is not None:
            self._hourly_timer.cancel()
            self._hourly_timer = None
        logger.info("Stopped scheduled weather updates")

    def start_fetch(self):
        """Begin a fresh fetch with a clean retry state."""
        self.state.retry.reset()
        self._issue_fetch()

    def set_location(self, latitude: Optional[str], longitude: Optional[str]):
        """Apply a user-entered location, persist it and refetch.

        An empty field keeps the current value for that coordinate.
        """
        current = self.state.location
        location = Location(
            latitude=(latitude or "").strip() or current.latitude,
            longitude=(longitude or "").strip() or current.longitude,
        )
        self.state.location = sanitize_location(location, self.state.default_location)
        logger.info(
            f"Location changed to {self.state.location.latitude}, {self.state.location.longitude}"
        )
        self.config_store.save(self.state.location, self.state.timezone)
        self.start_fetch()

    # Timers

    def _schedule_hourly(self, delay: float):
        if self._hourly_timer is not None:
            self._hourly_timer.cancel()
        self._hourly_timer = self.timers.call_later(delay, self._on_hourly_timer)
        logger.info(f"Next scheduled weather update in {delay:.0f} seconds")

    def _on_hourly_timer(self):
        self._hourly_timer = None
        self._schedule_hourly(self.settings.update_interval_seconds)
        self.start_fetch()

    def _on_retry_timer(self):
        self.state.retry.pending_timer = None
        logger.info(
            f"Retrying weather fetch (attempt {self.state.retry.attempt_count}/"
            f"{self.settings.max_retry_attempts})"
        )
        self._issue_fetch()

    def _cancel_retry_timer(self):
        retry = self.state.retry
        if retry.pending_timer is not None:
            retry.pending_timer.cancel()
            retry.pending_timer = None

    def _cancel_pending_request(self):
        if self.pending_request is not None and not self.pending_request.done():
            self.pending_request.cancel()
            logger.debug("Cancelled in-flight weather request")
        self.pending_request = None

    # Request lifecycle

    def _issue_fetch(self):
        self._cancel_pending_request()
        self._cancel_retry_timer()

        location = sanitize_location(self.state.location, self.state.default_location)
        if location != self.state.location:
            logger.warning("Latitude or longitude invalid, using defaults")
            self.state.location = location

        self.presenter.show_status(
            FetchStatus(kind=StatusKind.FETCHING, message="Updating weather...")
        )
        self.pending_request = asyncio.ensure_future(self._run_fetch(location))

    async def _run_fetch(self, location: Location):
        try:
            body = await self.weather_service.fetch_forecast(location)
        except TransportError as e:
            logger.warning(str(e))
            self._handle_transport_failure()
            return
        except Exception as e:
            logger.error(f"Unexpected error fetching weather: {e}")
            self._handle_transport_failure()
            return

        if not body:
            logger.warning("Empty response body")
            self._handle_transport_failure()
            return

        self._handle_body(body)

    def _handle_transport_failure(self):
        retry = self.state.retry
        max_attempts = self.settings.max_retry_attempts

        if retry.attempt_count < max_attempts:
            delay = retry_delay(
                retry.attempt_count,
                self.settings.initial_retry_delay,
                self.settings.max_retry_delay,
            )
            retry.delay_seconds = delay
            retry.is_retrying = True
            retry.pending_timer = self.timers.call_later(delay, self._on_retry_timer)
            retry.attempt_count += 1

            message = (
                f"Failed to fetch weather, retrying in {delay} seconds "
                f"(attempt {retry.attempt_count}/{max_attempts})"
            )
            logger.warning(message)
            self.presenter.show_status(
                FetchStatus(
                    kind=StatusKind.RETRYING,
                    message=message,
                    retry_in_seconds=delay,
                    attempt=retry.attempt_count,
                    max_attempts=max_attempts,
                )
            )
        else:
            logger.error(
                f"Weather fetch failed after {max_attempts} retries, "
                f"waiting for next scheduled update"
            )
            retry.reset()
            self.presenter.show_status(
                FetchStatus(
                    kind=StatusKind.EXHAUSTED,
                    message="Failed to fetch weather, will retry at next scheduled update",
                    max_attempts=max_attempts,
                )
            )

    def _handle_body(self, body: bytes):
        try:
            parsed = parse_forecast(body)
        except ParseError as e:
            message = e.display_message()
            logger.error(f"Weather response rejected: {message}")
            self.state.retry.reset()
            self.presenter.show_status(FetchStatus(kind=StatusKind.PARSE_ERROR, message=message))
            return

        self.state.retry.reset()

        if not parsed.timezone.is_empty:
            self.state.timezone.merge(parsed.timezone)
            self.config_store.save(self.state.location, self.state.timezone)

        now = self._clock()
        samples = select_window(
            parsed.samples,
            local_hour_key(now, self.state.timezone),
            self.settings.window_hours,
        )
        logger.info(f"Weather updated: {len(samples)} hours from {len(parsed.samples)} samples")
        self.presenter.show_window(ForecastWindow(samples=samples, generated_at=now))


class ClockTask:
    """Pushes the local time and date to the presenter once a second."""

    def __init__(
        self,
        state: AppState,
        presenter: Optional[Presenter] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.state = state
        self.presenter = presenter
        self._clock = clock
        self.running = False

    def tick(self) -> Optional[ClockReading]:
        if self.presenter is None:
            return None
        reading = local_now(self._clock(), self.state.timezone)
        if reading is None:
            return None
        self.presenter.show_clock(reading)
        return reading

    async def run(self):
        self.running = True
        logger.info("Starting clock updates")
        while self.running:
            self.tick()
            await asyncio.sleep(1)

    def stop(self):
        self.running = False
        logger.info("Stopping clock updates")
