from typing import List, Optional


class WeatherClockError(Exception):
    """Base exception for the weather clock."""


class TransportError(WeatherClockError):
    """Network failure, timeout or server-side error. Retried with backoff."""


class ConfigIOError(WeatherClockError):
    """Persisted location record could not be read or written."""


class ParseError(WeatherClockError):
    """A forecast payload arrived but could not be used. Never retried."""

    def display_message(self) -> str:
        return str(self)


class EmptyResponse(ParseError):
    def __init__(self):
        super().__init__("Empty weather data received")


class MalformedResponse(ParseError):
    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"Parse error: {detail}")


class ApiError(ParseError):
    def __init__(self, message: Optional[str], available_keys: List[str]):
        self.message = message
        self.available_keys = available_keys
        super().__init__(message or "Unknown")

    def display_message(self) -> str:
        return f"API Error: {self.message or 'Unknown'} (Keys: {', '.join(self.available_keys)})"


class IncompleteData(ParseError):
    def __init__(self, available_keys: List[str], missing: Optional[str] = None):
        self.available_keys = available_keys
        self.missing = missing
        super().__init__(f"Incomplete weather data, missing '{missing}'")

    def display_message(self) -> str:
        if self.missing == "hourly":
            return f"No hourly data. Keys: {', '.join(self.available_keys)}"
        return "Incomplete weather data"
