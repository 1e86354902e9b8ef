# WMO weather interpretation codes, collapsed into the buckets shown on the clock.
# Each entry is (inclusive upper bound, description, icon); first match wins.
_CODE_RANGES = (
    (0, "Clear", "☀️"),
    (3, "Cloudy", "⛅"),
    (49, "Foggy", "🌫️"),
    (59, "Drizzle", "🌦️"),
    (69, "Rain", "🌧️"),
    (79, "Snow", "❄️"),
    (84, "Rain Shower", "🌦️"),
    (86, "Snow Shower", "❄️"),
    (99, "Thunderstorm", "⛈️"),
)

UNKNOWN_DESCRIPTION = "Unknown"
UNKNOWN_ICON = "❓"


def _lookup(code: int):
    if code < 0:
        return None
    for upper, description, icon in _CODE_RANGES:
        if code <= upper:
            return description, icon
    return None


def classify_weather_code(code: int) -> str:
    """Short description for a weather code (e.g. 61 -> 'Rain')."""
    match = _lookup(int(code))
    return match[0] if match else UNKNOWN_DESCRIPTION


def weather_icon(code: int) -> str:
    """Emoji shown above the temperature for a weather code."""
    match = _lookup(int(code))
    return match[1] if match else UNKNOWN_ICON
