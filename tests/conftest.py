import json
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from background_tasks import FetchScheduler
from config_store import ConfigStore
from display import DisplayState
from models import AppState, Location, TimezoneState, WeatherConfig

DEFAULT_LOCATION = Location(latitude="43.640", longitude="-79.565")

SCENARIO_A = {
    "hourly": {
        "time": ["2024-01-01T10:00", "2024-01-01T11:00"],
        "temperature_2m": [5.0, 6.0],
        "weathercode": [0, 61],
    }
}


def payload(data) -> bytes:
    return json.dumps(data).encode()


class FakeHandle:
    def __init__(self, delay, callback):
        self.delay = delay
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self):
        self.cancelled = True

    @property
    def active(self):
        return not self.cancelled and not self.fired


class FakeTimers:
    """Stands in for loop.call_later; tests fire handles by hand."""

    def __init__(self):
        self.handles = []

    def call_later(self, delay, callback, *args):
        handle = FakeHandle(delay, lambda: callback(*args))
        self.handles.append(handle)
        return handle

    def fire(self, handle):
        assert handle.active
        handle.fired = True
        handle.callback()

    def active(self):
        return [h for h in self.handles if h.active]


class FakeWeatherService:
    """Returns queued bodies or raises queued exceptions, one per fetch."""

    def __init__(self, responses=()):
        self.responses = list(responses)
        self.calls = []
        self.closed = False

    async def fetch_forecast(self, location):
        self.calls.append(location)
        result = self.responses.pop(0) if self.responses else payload(SCENARIO_A)
        if isinstance(result, Exception):
            raise result
        return result

    async def close(self):
        self.closed = True


@pytest.fixture
def fixed_now():
    return datetime(2024, 1, 1, 10, 15, tzinfo=timezone.utc)


@pytest.fixture
def app_state():
    return AppState(
        location=DEFAULT_LOCATION.model_copy(),
        default_location=DEFAULT_LOCATION.model_copy(),
        timezone=TimezoneState(iana_name="UTC", resolved_tz=ZoneInfo("UTC")),
    )


@pytest.fixture
def store(tmp_path):
    return ConfigStore(str(tmp_path / "weatherclock.toml"))


@pytest.fixture
def timers():
    return FakeTimers()


@pytest.fixture
def display():
    return DisplayState()


@pytest.fixture
def make_scheduler(app_state, store, display, timers, fixed_now):
    def factory(service, settings=None):
        return FetchScheduler(
            app_state,
            service,
            store,
            display,
            settings or WeatherConfig(),
            timers=timers,
            clock=lambda: fixed_now,
        )

    return factory
