# ABOUTME: Weather fetcher for the OpenWeatherMap 5-day / 3-hour forecast API.
# ABOUTME: Reduces forecast steps for the target day into a WeatherSummary with an hourly breakdown.

import math
from datetime import date, datetime, timezone

from pydantic import BaseModel, Field

from homeboard.errors import ConfigError, DataError
from homeboard.models import (
    DisplayMode,
    HourlyForecast,
    Source,
    Success,
    WeatherSourceTag,
    WeatherSummary,
)
from homeboard.sources import SourceFetcher
from homeboard.time_window import format_clock

FORECAST_URL = "https://api.openweathermap.org/data/2.5/forecast"

METERS_PER_MILE = 1609.34
MM_PER_INCH = 25.4
DEFAULT_VISIBILITY_M = 10000


class ForecastMain(BaseModel):
    temp: float
    humidity: int
    pressure: float


class ForecastCondition(BaseModel):
    description: str
    icon: str


class ForecastWind(BaseModel):
    speed: float = 0.0


class ForecastVolume(BaseModel):
    three_hour: float = Field(default=0.0, alias="3h")


class ForecastEntry(BaseModel):
    """One step of the provider's ``list`` array."""

    dt: int
    main: ForecastMain
    weather: list[ForecastCondition] = Field(min_length=1)
    wind: ForecastWind = ForecastWind()
    visibility: int | None = None
    rain: ForecastVolume | None = None
    snow: ForecastVolume | None = None

    @property
    def instant(self) -> datetime:
        return datetime.fromtimestamp(self.dt, tz=timezone.utc)

    @property
    def precipitation_mm(self) -> float:
        total = 0.0
        for volume in (self.rain, self.snow):
            if volume is not None:
                total += volume.three_hour
        return total


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def parse_forecast_entries(data: dict) -> list[ForecastEntry]:
    """Validate the provider's ``list`` array. Missing or empty lists are a DataError."""
    raw = data.get("list") if isinstance(data, dict) else None
    if not isinstance(raw, list) or not raw:
        raise DataError("Forecast response has no 'list' entries")
    return [ForecastEntry.model_validate(item) for item in raw]


class WeatherFetcher(SourceFetcher):
    """Forecast for the target day, or the current reading when the day has no steps."""

    source = Source.WEATHER

    async def _fetch(self, mode: DisplayMode) -> Success:
        api_key = self.config.get("openweather_api_key")
        if not api_key:
            raise ConfigError("OpenWeatherMap API key not configured")

        coords = await self.locator.coordinates()
        resp = await self.client.get(
            FORECAST_URL,
            params={
                "lat": coords.lat,
                "lon": coords.lon,
                "appid": api_key,
                "units": "imperial",
            },
        )
        resp.raise_for_status()
        entries = parse_forecast_entries(resp.json())

        summary = self.summarize(entries, self.target_day(mode))
        source = "live_openweather_forecast"
        if summary.source_tag is WeatherSourceTag.LIVE_CURRENT:
            source = "live_openweather_current"
        return Success(value=summary, source=source)

    def summarize(self, entries: list[ForecastEntry], day: date) -> WeatherSummary:
        matches = [e for e in entries if self.resolver.local(e.instant).date() == day]
        if not matches:
            return self._current_summary(entries[0])

        temps = [e.main.temp for e in matches]
        first = matches[0]
        return WeatherSummary(
            temperature_f=round_half_up(sum(temps) / len(temps)),
            description=first.weather[0].description,
            humidity_pct=first.main.humidity,
            pressure=first.main.pressure,
            wind_speed_mph=round_half_up(first.wind.speed),
            visibility_mi=_visibility_miles(first),
            icon_code=first.weather[0].icon,
            hourly=[self._hourly(e) for e in matches],
            high_f=round_half_up(max(temps)),
            low_f=round_half_up(min(temps)),
            source_tag=WeatherSourceTag.LIVE_FORECAST,
        )

    def _current_summary(self, entry: ForecastEntry) -> WeatherSummary:
        return WeatherSummary(
            temperature_f=round_half_up(entry.main.temp),
            description=entry.weather[0].description,
            humidity_pct=entry.main.humidity,
            pressure=entry.main.pressure,
            wind_speed_mph=round_half_up(entry.wind.speed),
            visibility_mi=_visibility_miles(entry),
            icon_code=entry.weather[0].icon,
            source_tag=WeatherSourceTag.LIVE_CURRENT,
        )

    def _hourly(self, entry: ForecastEntry) -> HourlyForecast:
        return HourlyForecast(
            time=format_clock(self.resolver.local(entry.instant), minutes=False),
            temp_f=round_half_up(entry.main.temp),
            description=entry.weather[0].description,
            icon_code=entry.weather[0].icon,
            precipitation_in=round(entry.precipitation_mm / MM_PER_INCH, 2),
        )


def _visibility_miles(entry: ForecastEntry) -> int:
    meters = entry.visibility if entry.visibility is not None else DEFAULT_VISIBILITY_M
    return round_half_up(meters / METERS_PER_MILE)
