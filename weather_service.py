import asyncio
import logging
from typing import Dict, Optional

import aiohttp

from errors import TransportError
from models import Location

logger = logging.getLogger(__name__)

HOURLY_VARIABLES = "temperature_2m,weathercode"
PREVIEW_LENGTH = 500


class WeatherService:
    """Fetches raw Open-Meteo forecast bodies for a single location.

    Parsing is left to forecast_parser so the scheduler can tell transport
    failures (retried) apart from bad payloads (not retried).
    """

    def __init__(
        self,
        api_url: str,
        forecast_days: int = 2,
        timeout_seconds: float = 15,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.api_url = api_url
        self.forecast_days = forecast_days
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        # A session passed in belongs to the caller and is not closed here
        self._session = session
        self._owns_session = session is None

    def build_params(self, location: Location) -> Dict[str, str]:
        return {
            "latitude": location.latitude,
            "longitude": location.longitude,
            "hourly": HOURLY_VARIABLES,
            "forecast_days": str(self.forecast_days),
            "timezone": "auto",
        }

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def fetch_forecast(self, location: Location) -> bytes:
        """
        Request the forecast and return the response body, which may be empty.

        4xx bodies are returned as-is since Open-Meteo explains bad parameters
        in a JSON error object. Connection failures, timeouts and 5xx responses
        raise TransportError.
        """
        params = self.build_params(location)
        logger.debug(f"Fetching weather from {self.api_url} params={params}")

        session = self._get_session()
        try:
            async with session.get(self.api_url, params=params, timeout=self.timeout) as resp:
                body = await resp.read()
                if resp.status >= 500:
                    logger.debug(
                        f"Weather API status={resp.status} body={body[:PREVIEW_LENGTH]!r}"
                    )
                    raise TransportError(f"Weather API returned status {resp.status}")
                logger.debug(
                    f"Weather API response status={resp.status} ({len(body)} bytes): "
                    f"{body[:PREVIEW_LENGTH]!r}"
                )
                return body
        except aiohttp.ClientError as e:
            raise TransportError(f"Weather fetch error: {e}") from e
        except asyncio.TimeoutError as e:
            raise TransportError("Weather fetch timed out") from e

    async def close(self):
        """Close the HTTP session if this service created it."""
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
            logger.info("Closed weather HTTP session")
        self._session = None
