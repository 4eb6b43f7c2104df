# ABOUTME: Sunrise/sunset fetcher for the sunrise-sunset.org API.
# ABOUTME: Always yields displayable times, substituting fixed estimates when the provider fails.

import logging
from datetime import datetime

from homeboard.errors import DataError
from homeboard.models import DisplayMode, Source, Success, SunSourceTag, SunTimes
from homeboard.sources import SourceFetcher
from homeboard.time_window import format_clock

logger = logging.getLogger(__name__)

SUNRISE_SUNSET_URL = "https://api.sunrise-sunset.org/json"

# Approximate times for New York, NY.
FALLBACK_TIMES = {
    DisplayMode.TODAY: ("6:29 AM", "7:41 PM"),
    DisplayMode.TOMORROW: ("6:30 AM", "7:40 PM"),
}


def fallback_sun_times(mode: DisplayMode) -> SunTimes:
    sunrise, sunset = FALLBACK_TIMES[mode]
    return SunTimes(sunrise_local=sunrise, sunset_local=sunset, source_tag=SunSourceTag.FALLBACK)


class SunTimesFetcher(SourceFetcher):
    source = Source.SUN

    async def _fetch(self, mode: DisplayMode) -> Success:
        try:
            times = await self.fetch_live(mode)
        except Exception as e:
            logger.warning("Sunrise/sunset API unavailable, using estimated times: %s", e)
            return Success(
                value=fallback_sun_times(mode),
                source="fallback_estimate",
                meta={"note": "Sunrise/Sunset API unavailable - showing estimated times for New York, NY"},
            )
        return Success(value=times, source="live_sunrise_sunset_api")

    async def fetch_live(self, mode: DisplayMode) -> SunTimes:
        day = self.target_day(mode)
        coords = await self.locator.coordinates()
        resp = await self.client.get(
            SUNRISE_SUNSET_URL,
            params={
                "lat": coords.lat,
                "lng": coords.lon,
                "date": day.isoformat(),
                "formatted": 0,
            },
        )
        resp.raise_for_status()
        data = resp.json()
        if data.get("status") != "OK":
            raise DataError(f"Sunrise/sunset status {data.get('status')!r}")

        results = data["results"]
        sunrise = self.resolver.local(datetime.fromisoformat(results["sunrise"]))
        sunset = self.resolver.local(datetime.fromisoformat(results["sunset"]))
        return SunTimes(
            sunrise_local=format_clock(sunrise),
            sunset_local=format_clock(sunset),
            source_tag=SunSourceTag.LIVE,
        )
