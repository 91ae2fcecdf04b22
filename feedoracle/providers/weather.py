"""
Weather Provider - current conditions from Open-Meteo.

Answers the "weather" data type with a structured reading, so its
responses bypass outlier detection and are aggregated by majority.
"""

from typing import Optional

import httpx
import structlog

from feedoracle.errors import ProviderFetchError
from feedoracle.models import ProviderReading
from feedoracle.providers.base import HTTPProvider

logger = structlog.get_logger()

GEOCODING_URL = "https://geocoding-api.open-meteo.com/v1/search"
FORECAST_URL = "https://api.open-meteo.com/v1/forecast"


class OpenMeteoProvider(HTTPProvider):
    """Current temperature, humidity and wind for a named location."""

    name = "open-meteo"
    capabilities = ("weather",)
    reliability = 89.0
    reputation = 70.0
    description = "Real-time weather data from Open-Meteo"

    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        super().__init__(client)
        self._locations: dict[str, tuple[float, float, str]] = {}

    async def _locate(self, subject: str, timeout: float) -> tuple[float, float, str]:
        key = subject.strip().lower()
        if key in self._locations:
            return self._locations[key]

        data = await self._get_json(
            GEOCODING_URL, timeout, params={"name": subject, "count": 1}
        )
        results = data.get("results") or []
        if not results:
            raise ProviderFetchError(self.name, f"unknown location: {subject}")
        top = results[0]
        location = (float(top["latitude"]), float(top["longitude"]), top.get("name", subject))
        self._locations[key] = location
        return location

    async def fetch(self, data_type: str, subject: str, timeout: float) -> ProviderReading:
        latitude, longitude, place = await self._locate(subject, timeout)
        data = await self._get_json(
            FORECAST_URL,
            timeout,
            params={
                "latitude": latitude,
                "longitude": longitude,
                "current": "temperature_2m,relative_humidity_2m,wind_speed_10m",
            },
        )
        current = data.get("current") or {}
        if "temperature_2m" not in current:
            raise ProviderFetchError(self.name, f"no current conditions for {subject}")

        reading = {
            "location": place,
            "temperature": current["temperature_2m"],
            "humidity": current.get("relative_humidity_2m"),
            "wind_speed": current.get("wind_speed_10m"),
        }
        logger.debug("Open-Meteo conditions fetched", location=place, temperature=reading["temperature"])
        return ProviderReading(value=reading, confidence=0.9)

    async def health_check(self) -> bool:
        await self._get_json(
            FORECAST_URL,
            timeout=3.0,
            params={"latitude": 0, "longitude": 0, "current": "temperature_2m"},
        )
        return True
