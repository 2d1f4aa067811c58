"""Client for the Open-Meteo geocoding and forecast APIs."""

import httpx
from typing import Any, Dict, Optional
from weather_chat.config import settings
from weather_chat.models.weather import (
    GeocodeResult,
    TemperatureUnit,
    WeatherObservation,
)
import logging

logger = logging.getLogger(__name__)

WEATHER_CODES: Dict[int, str] = {
    0: "Clear sky",
    1: "Mainly clear",
    2: "Partly cloudy",
    3: "Overcast",
    45: "Foggy",
    48: "Depositing rime fog",
    51: "Light drizzle",
    53: "Moderate drizzle",
    55: "Dense drizzle",
    61: "Slight rain",
    63: "Moderate rain",
    65: "Heavy rain",
    71: "Slight snow",
    73: "Moderate snow",
    75: "Heavy snow",
    80: "Slight rain showers",
    81: "Moderate rain showers",
    82: "Violent rain showers",
    95: "Thunderstorm",
}

UNKNOWN_CONDITION = "Unknown"


def describe_weather_code(code: int) -> str:
    """Human-readable label for a WMO weather code."""
    return WEATHER_CODES.get(code, UNKNOWN_CONDITION)


class WeatherServiceError(Exception):
    """Raised when an Open-Meteo call fails or returns something unusable."""


class OpenMeteoClient:
    """Thin fetch-and-parse wrapper around the two Open-Meteo endpoints."""

    def __init__(
        self,
        geocoding_base_url: Optional[str] = None,
        forecast_base_url: Optional[str] = None,
        verify_tls: Optional[bool] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Transport options apply to this client's own connections only; `verify_tls`
        defaults to the configured value and `transport` lets tests swap the network.
        """
        self.geocoding_base_url = (
            geocoding_base_url or settings.geocoding_base_url
        ).rstrip("/")
        self.forecast_base_url = (
            forecast_base_url or settings.forecast_base_url
        ).rstrip("/")
        self.verify_tls = settings.verify_tls if verify_tls is None else verify_tls
        self._transport = transport

        if not self.verify_tls:
            logger.warning(
                "TLS certificate verification is disabled for Open-Meteo requests"
            )

    def _http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(verify=self.verify_tls, transport=self._transport)

    async def _get_json(self, url: str, params: Dict[str, Any]) -> Dict[str, Any]:
        try:
            async with self._http_client() as client:
                response = await client.get(url, params=params)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as e:
            raise WeatherServiceError(f"Request to {url} failed: {e}") from e
        except ValueError as e:
            raise WeatherServiceError(f"Invalid JSON from {url}: {e}") from e
        except Exception as e:
            logger.error(f"Unexpected error calling {url}: {e}", exc_info=True)
            raise WeatherServiceError(f"Request to {url} failed: {e}") from e

        if not isinstance(data, dict):
            raise WeatherServiceError(f"Unexpected payload from {url}")
        return data

    async def geocode(self, location: str) -> Optional[GeocodeResult]:
        """Resolves a place name to its first match, or None when nothing matches."""
        data = await self._get_json(
            f"{self.geocoding_base_url}/search",
            params={"name": location, "count": 1, "language": "en", "format": "json"},
        )

        results = data.get("results") or []
        if not results:
            logger.info(f"No geocoding match for '{location}'")
            return None

        try:
            top = results[0]
            return GeocodeResult(
                latitude=top["latitude"],
                longitude=top["longitude"],
                name=top.get("name") or location,
                country=top.get("country_code") or top.get("country") or "",
            )
        except (KeyError, IndexError, TypeError, AttributeError, ValueError) as e:
            raise WeatherServiceError(f"Malformed geocoding result: {e}") from e

    async def fetch_current(
        self, latitude: float, longitude: float, unit: Any = TemperatureUnit.CELSIUS
    ) -> WeatherObservation:
        """Current temperature and weather code; missing values come back as 0."""
        unit = TemperatureUnit.normalize(unit)
        data = await self._get_json(
            f"{self.forecast_base_url}/forecast",
            params={
                "latitude": latitude,
                "longitude": longitude,
                "current": "temperature_2m,weather_code",
                "temperature_unit": unit.value,
            },
        )

        current = data.get("current") or {}
        if not isinstance(current, dict):
            raise WeatherServiceError("Malformed forecast payload: no current block")
        temperature = current.get("temperature_2m")
        code = current.get("weather_code")
        try:
            return WeatherObservation(
                temperature=0 if temperature is None else temperature,
                condition_code=0 if code is None else code,
            )
        except (TypeError, ValueError) as e:
            raise WeatherServiceError(f"Malformed forecast payload: {e}") from e
