from datetime import datetime
from enum import Enum
from typing import Any, List, Optional
from zoneinfo import ZoneInfo

from pydantic import BaseModel, ConfigDict, Field, computed_field

from weather_codes import classify_weather_code, weather_icon

MAX_COORDINATE_LENGTH = 20


class ServerConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = 8000


class WeatherConfig(BaseModel):
    api_url: str = "https://api.open-meteo.com/v1/forecast"
    forecast_days: int = 2
    update_interval_seconds: int = 3600
    initial_retry_delay: int = 30
    max_retry_delay: int = 600
    max_retry_attempts: int = 5
    request_timeout_seconds: float = 15
    window_hours: int = 6


class LocationConfig(BaseModel):
    default_latitude: str = "43.640"
    default_longitude: str = "-79.565"
    state_file: str = "~/weatherclock.toml"


class DisplayConfig(BaseModel):
    keep_stale_forecast: bool = False


class Config(BaseModel):
    server: ServerConfig = Field(default_factory=ServerConfig)
    weather: WeatherConfig = Field(default_factory=WeatherConfig)
    location: LocationConfig = Field(default_factory=LocationConfig)
    display: DisplayConfig = Field(default_factory=DisplayConfig)


class Location(BaseModel):
    latitude: str
    longitude: str


def sanitize_location(location: Location, default: Location) -> Location:
    """Return a location safe to put in a request URL.

    Both fields fall back to the default coordinate if either one is empty
    or longer than MAX_COORDINATE_LENGTH characters.
    """
    for value in (location.latitude, location.longitude):
        if not value or len(value) > MAX_COORDINATE_LENGTH:
            return default.model_copy()
    return location


class TimezoneState(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    iana_name: Optional[str] = None
    utc_offset_seconds: int = 0
    # True once an offset was actually reported, so a reported 0 is not mistaken for "absent"
    has_offset: bool = Field(default=False, exclude=True)
    resolved_tz: Optional[ZoneInfo] = Field(default=None, exclude=True)

    def merge(self, other: "TimezoneState") -> "TimezoneState":
        """Overlay values from a newer parse; fields it lacks keep their last known value."""
        if other.iana_name:
            self.iana_name = other.iana_name
            self.resolved_tz = other.resolved_tz
        if other.has_offset:
            self.utc_offset_seconds = other.utc_offset_seconds
            self.has_offset = True
        return self

    @property
    def is_empty(self) -> bool:
        return not self.iana_name and not self.has_offset and not self.utc_offset_seconds


class HourlySample(BaseModel):
    timestamp: str  # "YYYY-MM-DDTHH:MM" in the location's local time
    temperature_celsius: float
    weather_code: int

    @computed_field
    @property
    def hour_label(self) -> str:
        return f"{self.timestamp[11:13]}:00"

    @computed_field
    @property
    def temperature_label(self) -> str:
        return f"{self.temperature_celsius:.1f}°C"

    @computed_field
    @property
    def description(self) -> str:
        return classify_weather_code(self.weather_code)

    @computed_field
    @property
    def icon(self) -> str:
        return weather_icon(self.weather_code)


class ForecastWindow(BaseModel):
    samples: List[HourlySample]
    generated_at: datetime


class RetryState(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    attempt_count: int = 0
    delay_seconds: int = 0
    is_retrying: bool = False
    pending_timer: Optional[Any] = Field(default=None, exclude=True)

    def reset(self):
        if self.pending_timer is not None:
            self.pending_timer.cancel()
        self.attempt_count = 0
        self.delay_seconds = 0
        self.is_retrying = False
        self.pending_timer = None


class StatusKind(str, Enum):
    FETCHING = "fetching"
    OK = "ok"
    RETRYING = "retrying"
    EXHAUSTED = "exhausted"
    PARSE_ERROR = "parse_error"


class FetchStatus(BaseModel):
    kind: StatusKind
    message: str
    retry_in_seconds: Optional[int] = None
    attempt: Optional[int] = None
    max_attempts: Optional[int] = None

    @property
    def is_error(self) -> bool:
        return self.kind in (
            StatusKind.RETRYING,
            StatusKind.EXHAUSTED,
            StatusKind.PARSE_ERROR,
        )


class ClockReading(BaseModel):
    time_string: str
    date_string: str


class AppState(BaseModel):
    """Everything the event loop mutates: location, timezone and retry counters."""

    location: Location
    default_location: Location
    timezone: TimezoneState = Field(default_factory=TimezoneState)
    retry: RetryState = Field(default_factory=RetryState)
