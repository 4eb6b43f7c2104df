# ABOUTME: Pydantic BaseModels for the normalized dashboard data shapes.
# ABOUTME: Defines display modes, per-source results, and the aggregate snapshot.

from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field


class DisplayMode(str, Enum):
    """Whether the dashboard presents today's or tomorrow's data."""

    TODAY = "today"
    TOMORROW = "tomorrow"


class ErrorKind(str, Enum):
    CONFIG = "config"
    NETWORK = "network"
    DATA = "data"
    AUTH = "auth"


class Source(str, Enum):
    """The four independently refreshed panels."""

    WEATHER = "weather"
    TIDES = "tides"
    SUN = "sun"
    CALENDAR = "calendar"


class Success(BaseModel):
    """A fetch that produced displayable data.

    ``source`` is the provenance tag of the data (``live_noaa``, ``fallback_estimate``...).
    ``reason`` is set when the result is legitimately empty, e.g. no calendar connected.
    """

    ok: Literal[True] = True
    value: Any
    source: str
    reason: str | None = None
    meta: dict[str, str] = {}


class Failure(BaseModel):
    """A fetch that could not produce data. ``source`` names the panel."""

    ok: Literal[False] = False
    error: ErrorKind
    source: str
    message: str = ""


FetchResult = Success | Failure


class WeatherSourceTag(str, Enum):
    LIVE_CURRENT = "live_current"
    LIVE_FORECAST = "live_forecast"


class HourlyForecast(BaseModel):
    """One forecast step inside the target day."""

    time: str
    temp_f: int
    description: str
    icon_code: str
    precipitation_in: float = 0.0


class WeatherSummary(BaseModel):
    """Weather for the target day, reduced from the provider's forecast steps."""

    temperature_f: int
    description: str
    humidity_pct: int
    pressure: float
    wind_speed_mph: int
    visibility_mi: int
    icon_code: str
    hourly: list[HourlyForecast] = []
    high_f: int | None = None
    low_f: int | None = None
    source_tag: WeatherSourceTag


class TideKind(str, Enum):
    HIGH = "High"
    LOW = "Low"


class TideEvent(BaseModel):
    kind: TideKind
    local_time: str
    height_ft: float


class SunSourceTag(str, Enum):
    LIVE = "live"
    FALLBACK = "fallback"


class SunTimes(BaseModel):
    sunrise_local: str
    sunset_local: str
    source_tag: SunSourceTag


class CalendarEvent(BaseModel):
    """A calendar entry normalized from any calendar backend."""

    title: str
    start_iso: str
    end_iso: str = ""
    all_day: bool = False
    location: str = ""
    description: str = ""
    calendar_label: str = ""
    calendar_color: str = "#4285f4"


class AggregateSnapshot(BaseModel):
    """Results of one refresh cycle. Replaced wholesale by the next cycle."""

    mode: DisplayMode
    weather: FetchResult
    tides: FetchResult
    sun: FetchResult
    calendar: FetchResult
    fetched_at: datetime
    generation: int = Field(default=0, ge=0)

    def results(self) -> dict[Source, FetchResult]:
        return {
            Source.WEATHER: self.weather,
            Source.TIDES: self.tides,
            Source.SUN: self.sun,
            Source.CALENDAR: self.calendar,
        }
