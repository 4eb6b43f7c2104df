# ABOUTME: Tide fetcher for NOAA CO-OPS water level predictions with a synthetic fallback.
# ABOUTME: Detects highs and lows as local extrema and tries candidate stations in order.

import logging
from collections.abc import Sequence
from datetime import date, datetime, timedelta

from pydantic import BaseModel

from homeboard.errors import DataError
from homeboard.models import DisplayMode, Source, Success, TideEvent, TideKind
from homeboard.sources import SourceFetcher
from homeboard.time_window import format_clock

logger = logging.getLogger(__name__)

NOAA_URL = "https://api.tidesandcurrents.noaa.gov/api/prod/datagetter"

# Semidiurnal cycle used by the estimated fallback.
TIDE_CYCLE = timedelta(hours=12.5)


class TideStation(BaseModel):
    id: str
    name: str


class StationSet(BaseModel):
    """Candidate stations for a region plus the canned heights used when all fail."""

    estimate_name: str
    stations: list[TideStation]
    # High, low, high, low.
    fallback_heights: tuple[float, float, float, float]


NEW_YORK = StationSet(
    estimate_name="New York Harbor (Estimated)",
    stations=[
        TideStation(id="8518750", name="The Battery, New York"),
        TideStation(id="8516945", name="Kings Point, NY"),
        TideStation(id="8519483", name="Bergen Point West Reach, NY"),
    ],
    fallback_heights=(6.2, 0.8, 6.1, 0.9),
)

CAPE_COD = StationSet(
    estimate_name="Cape Cod Bay (Estimated)",
    stations=[
        TideStation(id="8447930", name="Woods Hole, MA"),
        TideStation(id="8449130", name="Nantucket Island, MA"),
        TideStation(id="8447386", name="Chatham, MA"),
    ],
    fallback_heights=(9.8, 0.2, 9.6, 0.4),
)


def stations_for_location(city: str | None, state: str | None) -> StationSet:
    if "eastham" in (city or "").lower() or (state or "").upper() == "MA":
        return CAPE_COD
    return NEW_YORK


def detect_extrema(values: Sequence[float]) -> list[tuple[int, TideKind]]:
    """Indices of strict local maxima (High) and minima (Low).

    The first and last samples are never classified since both neighbours are needed.
    """
    found = []
    for i in range(1, len(values) - 1):
        prev, current, nxt = values[i - 1], values[i], values[i + 1]
        if current > prev and current > nxt:
            found.append((i, TideKind.HIGH))
        elif current < prev and current < nxt:
            found.append((i, TideKind.LOW))
    return found


def parse_prediction_time(text: str) -> datetime:
    """NOAA ``t`` values look like ``2025-01-15 04:36`` in station local time."""
    return datetime.strptime(text, "%Y-%m-%d %H:%M")


def tide_events_from_predictions(predictions: list[dict]) -> list[TideEvent]:
    times = [parse_prediction_time(p["t"]) for p in predictions]
    values = [float(p["v"]) for p in predictions]
    return [
        TideEvent(kind=kind, local_time=format_clock(times[i]), height_ft=round(values[i], 1))
        for i, kind in detect_extrema(values)
    ]


class TideFetcher(SourceFetcher):
    """Live NOAA predictions from the first working station, else an estimate."""

    source = Source.TIDES

    async def _fetch(self, mode: DisplayMode) -> Success:
        station_set = stations_for_location(self.config.get("location.city"), self.config.get("location.state"))
        day = self.target_day(mode)

        for station in station_set.stations:
            try:
                events = await self.fetch_station(station, day)
            except Exception as e:
                logger.warning("Tide station %s (%s) failed: %s", station.name, station.id, e)
                continue
            if events:
                return Success(
                    value=events,
                    source="live_noaa",
                    meta={"station": station.name, "station_id": station.id},
                )
            logger.warning("Tide station %s (%s) returned no highs or lows", station.name, station.id)

        logger.warning("All tide stations unavailable, using estimated tides")
        return Success(
            value=self.estimate(mode, station_set),
            source="fallback_estimate",
            meta={
                "station": station_set.estimate_name,
                "note": "NOAA tide stations unavailable - showing estimated times",
            },
        )

    async def fetch_station(self, station: TideStation, day: date) -> list[TideEvent]:
        resp = await self.client.get(
            NOAA_URL,
            params={
                "product": "predictions",
                "application": "homeboard",
                "station": station.id,
                "begin_date": day.strftime("%Y%m%d"),
                "end_date": day.strftime("%Y%m%d"),
                "datum": "MLLW",
                "units": "english",
                "time_zone": "lst_ldt",
                "format": "json",
            },
        )
        resp.raise_for_status()
        data = resp.json()
        predictions = data.get("predictions") if isinstance(data, dict) else None
        if not predictions:
            message = data.get("error", {}).get("message") if isinstance(data, dict) else None
            raise DataError(message or "No predictions in response")
        return tide_events_from_predictions(predictions)

    def estimate(self, mode: DisplayMode, station_set: StationSet) -> list[TideEvent]:
        """Twice-daily pattern anchored on the current local time of day.

        Only events whose local date is the target day are kept.
        """
        now_local = self.resolver.local(self.clock())
        base = now_local + (timedelta(hours=24) if mode is DisplayMode.TOMORROW else timedelta(0))
        time_of_day = timedelta(hours=now_local.hour, minutes=now_local.minute)

        high_1 = base - (time_of_day % TIDE_CYCLE) + TIDE_CYCLE * 0.25
        low_1 = high_1 + TIDE_CYCLE * 0.5
        high_2 = high_1 + TIDE_CYCLE
        low_2 = low_1 + TIDE_CYCLE
        h1, l1, h2, l2 = station_set.fallback_heights

        candidates = [
            (TideKind.HIGH, high_1, h1),
            (TideKind.LOW, low_1, l1),
            (TideKind.HIGH, high_2, h2),
            (TideKind.LOW, low_2, l2),
        ]
        return [
            TideEvent(kind=kind, local_time=format_clock(when), height_ft=height)
            for kind, when, height in candidates
            if when.date() == base.date()
        ]
