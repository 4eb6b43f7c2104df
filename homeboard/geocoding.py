# ABOUTME: Resolves the dashboard location to coordinates for the weather and sunrise/sunset fetchers.
# ABOUTME: Uses explicit lat/lon when configured, otherwise geocodes city/state through OpenWeatherMap.

import asyncio
import logging

import httpx
from pydantic import BaseModel

from homeboard.config import ConfigAccessor
from homeboard.errors import ConfigError, DataError

logger = logging.getLogger(__name__)

GEOCODING_URL = "https://api.openweathermap.org/geo/1.0/direct"


class Coordinates(BaseModel):
    lat: float
    lon: float
    name: str | None = None
    state: str | None = None
    country: str | None = None


async def geocode_location(client: httpx.AsyncClient, city: str, state: str, api_key: str) -> Coordinates:
    """Geocode a US city and state using the OpenWeatherMap geocoding API."""
    resp = await client.get(GEOCODING_URL, params={"q": f"{city},{state},US", "limit": 1, "appid": api_key})
    resp.raise_for_status()
    results = resp.json()
    if not isinstance(results, list) or not results:
        raise DataError(f"Location not found: {city}, {state}")

    r = results[0]
    return Coordinates(
        lat=r["lat"],
        lon=r["lon"],
        name=r.get("name"),
        state=r.get("state"),
        country=r.get("country"),
    )


class LocationLocator:
    """Coordinates for the configured location, geocoded at most once per city and state."""

    def __init__(self, client: httpx.AsyncClient, config: ConfigAccessor):
        self.client = client
        self.config = config
        self._cache: dict[str, Coordinates] = {}
        self._lock = asyncio.Lock()

    async def coordinates(self) -> Coordinates:
        lat, lon = self.config.get("location.lat"), self.config.get("location.lon")
        if lat is not None and lon is not None:
            return Coordinates(lat=lat, lon=lon)

        city, state = self.config.get("location.city"), self.config.get("location.state")
        if not city or not state:
            raise ConfigError("Location city and state not configured")
        api_key = self.config.get("openweather_api_key")
        if not api_key:
            raise ConfigError("OpenWeatherMap API key required for geocoding")

        key = f"{city},{state}"
        async with self._lock:
            cached = self._cache.get(key)
            if cached is not None:
                return cached
            coords = await geocode_location(self.client, city, state, api_key)
            logger.info("Geocoded %s to %.4f, %.4f", key, coords.lat, coords.lon)
            self._cache[key] = coords
            return coords
