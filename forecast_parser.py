"""Decode Open-Meteo forecast payloads into hourly samples.

parse_forecast() either returns every usable hourly sample (not yet windowed)
together with whatever timezone information the payload carried, or raises one
of the ParseError subclasses. Individual bad samples are dropped rather than
failing the whole payload.
"""
import json
import logging
import math
from typing import Any, List, NamedTuple, Optional

from errors import ApiError, EmptyResponse, IncompleteData, MalformedResponse
from models import HourlySample, TimezoneState
from time_resolver import resolve_timezone

logger = logging.getLogger(__name__)

MIN_TIMESTAMP_LENGTH = 16  # "YYYY-MM-DDTHH:MM"
PREVIEW_LENGTH = 500

HOURLY_FIELDS = ("time", "temperature_2m", "weathercode")


class ParsedForecast(NamedTuple):
    samples: List[HourlySample]
    timezone: TimezoneState


def _is_number(value: Any) -> bool:
    # bool is an int subclass but true/false is never a temperature
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def _json_type_name(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    return "object"


def _api_error_message(root: dict) -> Optional[str]:
    error = root["error"]
    reason = root.get("reason")
    if isinstance(reason, str):
        return reason
    if isinstance(error, str):
        return error
    if error is True:
        return "API returned error=true but no reason field"
    return f"Error type: {_json_type_name(error)}"


def _decode(raw: bytes) -> dict:
    if not raw:
        raise EmptyResponse()

    logger.debug(f"JSON response length: {len(raw)}")
    if len(raw) <= PREVIEW_LENGTH:
        logger.debug(f"Full JSON: {raw!r}")
    else:
        logger.debug(f"JSON preview: {raw[:PREVIEW_LENGTH]!r}...")

    try:
        root = json.loads(raw)
    except ValueError as e:
        raise MalformedResponse(str(e)) from e

    if not isinstance(root, dict):
        raise MalformedResponse(f"expected a JSON object, got {_json_type_name(root)}")
    return root


def _extract_timezone(root: dict) -> TimezoneState:
    tz = TimezoneState()

    name = root.get("timezone")
    if isinstance(name, str) and name:
        tz.iana_name = name
        tz.resolved_tz = resolve_timezone(name)

    offset = root.get("utc_offset_seconds")
    if _is_number(offset):
        tz.utc_offset_seconds = int(offset)
        tz.has_offset = True

    return tz


def _extract_samples(root: dict) -> List[HourlySample]:
    hourly = root.get("hourly")
    if not isinstance(hourly, dict):
        keys = list(root.keys())
        logger.warning(f"No 'hourly' key found. Available keys: {', '.join(keys)}")
        raise IncompleteData(keys, missing="hourly")

    for field in HOURLY_FIELDS:
        if not isinstance(hourly.get(field), list):
            raise IncompleteData(list(hourly.keys()), missing=field)

    times = hourly["time"]
    temperatures = hourly["temperature_2m"]
    codes = hourly["weathercode"]
    if not len(times) == len(temperatures) == len(codes):
        logger.warning(
            f"Hourly arrays differ in length (time={len(times)}, "
            f"temperature_2m={len(temperatures)}, weathercode={len(codes)}); "
            f"using the shortest"
        )

    samples = []
    for index, (stamp, temperature, code) in enumerate(zip(times, temperatures, codes)):
        if not isinstance(stamp, str) or len(stamp) < MIN_TIMESTAMP_LENGTH:
            logger.debug(f"Skipping hour {index}: bad timestamp {stamp!r}")
            continue
        if not _is_number(temperature) or not _is_number(code):
            logger.debug(f"Skipping hour {index} ({stamp}): non-numeric values")
            continue
        samples.append(
            HourlySample(
                timestamp=stamp[:MIN_TIMESTAMP_LENGTH],
                temperature_celsius=float(temperature),
                weather_code=int(code),
            )
        )
    return samples


def parse_forecast(raw: bytes) -> ParsedForecast:
    """Turn a raw response body into hourly samples plus timezone metadata.

    Raises EmptyResponse, MalformedResponse, ApiError or IncompleteData.
    """
    root = _decode(raw)

    if root.get("error"):
        keys = list(root.keys())
        raise ApiError(_api_error_message(root), keys)

    tz = _extract_timezone(root)
    samples = _extract_samples(root)
    logger.info(
        f"Parsed {len(samples)} hourly samples "
        f"(timezone={tz.iana_name}, utc_offset_seconds={tz.utc_offset_seconds})"
    )
    return ParsedForecast(samples=samples, timezone=tz)
