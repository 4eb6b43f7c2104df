# ABOUTME: Contract tests for the NOAA tide fetcher and its estimated fallback.
# ABOUTME: Validates extremum detection, station fallthrough, and that tides never report a Failure.

from datetime import datetime, timezone

import httpx
import pytest
from conftest import fixed_clock, json_response, make_config, mock_client

from homeboard.models import DisplayMode, Success, TideKind
from homeboard.tide_service import (
    CAPE_COD,
    NEW_YORK,
    NOAA_URL,
    TideFetcher,
    detect_extrema,
    stations_for_location,
    tide_events_from_predictions,
)


def _predictions(day: str, values: list[float]) -> dict:
    return {
        "predictions": [{"t": f"{day} {hour:02d}:00", "v": f"{value:.3f}"} for hour, value in enumerate(values)]
    }


class TestDetectExtrema:
    def test_peak_is_high(self):
        """A strict local maximum is a High.

        Implementation: Detects extrema in [1, 2, 3, 2, 1].
        Passing implies: Index 2 is the only event and it is High.
        """
        assert detect_extrema([1, 2, 3, 2, 1]) == [(2, TideKind.HIGH)]

    def test_trough_is_low(self):
        """A strict local minimum is a Low.

        Implementation: Detects extrema in [3, 2, 1, 2, 3].
        Passing implies: Index 2 is the only event and it is Low.
        """
        assert detect_extrema([3, 2, 1, 2, 3]) == [(2, TideKind.LOW)]

    def test_ends_never_classified(self):
        """The first and last samples are never extrema.

        Implementation: Monotonic series whose ends are the global max and min.
        Passing implies: Edge samples need two neighbours to qualify.
        """
        assert detect_extrema([5, 4, 3, 2, 1]) == []
        assert detect_extrema([1]) == []
        assert detect_extrema([]) == []

    def test_plateau_is_not_strict(self):
        """Equal neighbours do not form an extremum.

        Implementation: A flat top [1, 3, 3, 1].
        Passing implies: Comparisons are strict.
        """
        assert detect_extrema([1, 3, 3, 1]) == []


class TestStationsForLocation:
    def test_massachusetts_uses_cape_cod(self):
        """Massachusetts locations use the Cape Cod stations.

        Implementation: Looks up Eastham, MA and Boston, MA.
        Passing implies: Regional station sets follow the configured location.
        """
        assert stations_for_location("Eastham", "MA") is CAPE_COD
        assert stations_for_location("Boston", "ma") is CAPE_COD
        assert stations_for_location("North Eastham", None) is CAPE_COD

    def test_default_is_new_york(self):
        """Anything else uses the New York stations.

        Implementation: Looks up New York, NY and an empty location.
        Passing implies: There is always a station set.
        """
        assert stations_for_location("New York", "NY") is NEW_YORK
        assert stations_for_location(None, None) is NEW_YORK


class TestTideEventsFromPredictions:
    def test_formats_time_and_height(self):
        """Predictions become TideEvents with clock times and rounded heights.

        Implementation: Five hourly samples peaking at index 2, which is 02:00.
        Passing implies: Events carry local 12-hour time and one-decimal feet.
        """
        events = tide_events_from_predictions(_predictions("2025-01-15", [1.0, 3.0, 5.26, 3.0, 1.0])["predictions"])
        assert len(events) == 1
        assert events[0].kind is TideKind.HIGH
        assert events[0].local_time == "2:00 AM"
        assert events[0].height_ft == 5.3


class TestTideFetcher:
    @pytest.mark.asyncio
    async def test_first_station_with_extrema_wins(self, noon_utc, resolver):
        """The first station returning highs or lows is used and the rest are skipped.

        Implementation: The first station responds with a valid series.
        Passing implies: Results are tagged live_noaa with that station's name.
        """
        client = mock_client(json_response(_predictions("2025-01-15", [1, 2, 3, 2, 1, 2, 3])))
        fetcher = TideFetcher(client, make_config(), resolver, fixed_clock(noon_utc))
        result = await fetcher.fetch(DisplayMode.TODAY)

        assert isinstance(result, Success)
        assert result.source == "live_noaa"
        assert result.meta["station_id"] == "8518750"
        assert [e.kind for e in result.value] == [TideKind.HIGH, TideKind.LOW]
        assert client.get.call_count == 1

    @pytest.mark.asyncio
    async def test_failed_station_falls_through(self, noon_utc, resolver):
        """A failing station is skipped in favour of the next candidate.

        Implementation: First call raises ConnectError, second returns a NOAA error body, third succeeds.
        Passing implies: Station failures are isolated from each other.
        """
        client = mock_client(
            httpx.ConnectError("down"),
            json_response({"error": {"message": "No Predictions data was found."}}),
            json_response(_predictions("2025-01-15", [3, 2, 1, 2, 3])),
        )
        fetcher = TideFetcher(client, make_config(), resolver, fixed_clock(noon_utc))
        result = await fetcher.fetch(DisplayMode.TODAY)

        assert result.source == "live_noaa"
        assert result.meta["station"] == "Bergen Point West Reach, NY"
        assert result.value[0].kind is TideKind.LOW

    @pytest.mark.asyncio
    async def test_all_stations_failing_gives_estimate(self, noon_utc, resolver):
        """When every station fails the estimate is returned as a Success.

        Implementation: All three stations raise.
        Passing implies: Tides never surface a Failure.
        """
        client = mock_client(*(httpx.ConnectError("down") for _ in range(3)))
        fetcher = TideFetcher(client, make_config(), resolver, fixed_clock(noon_utc))
        result = await fetcher.fetch(DisplayMode.TODAY)

        assert isinstance(result, Success)
        assert result.source == "fallback_estimate"
        assert result.meta["station"] == "New York Harbor (Estimated)"
        assert result.value
        assert all(e.height_ft in NEW_YORK.fallback_heights for e in result.value)

    @pytest.mark.asyncio
    async def test_flat_series_falls_back(self, noon_utc, resolver):
        """Stations returning no extrema are treated as unusable.

        Implementation: Every station returns a monotonic series.
        Passing implies: An estimate is shown rather than an empty tide table.
        """
        flat = json_response(_predictions("2025-01-15", [1, 2, 3, 4]))
        client = mock_client(flat, flat, flat)
        fetcher = TideFetcher(client, make_config(), resolver, fixed_clock(noon_utc))
        result = await fetcher.fetch(DisplayMode.TODAY)
        assert result.source == "fallback_estimate"

    @pytest.mark.asyncio
    async def test_request_params(self, noon_utc, resolver):
        """The NOAA request covers the target day in local standard/daylight time.

        Implementation: Inspects the mocked get() call in Tomorrow mode.
        Passing implies: Requests match the datagetter contract.
        """
        client = mock_client(json_response(_predictions("2025-01-16", [1, 2, 1])))
        fetcher = TideFetcher(client, make_config(), resolver, fixed_clock(noon_utc))
        await fetcher.fetch(DisplayMode.TOMORROW)

        args, kwargs = client.get.call_args
        assert args[0] == NOAA_URL
        params = kwargs["params"]
        assert params["begin_date"] == "20250116"
        assert params["end_date"] == "20250116"
        assert params["datum"] == "MLLW"
        assert params["time_zone"] == "lst_ldt"
        assert params["units"] == "english"


class TestEstimate:
    def test_morning_anchor_keeps_four_events(self, resolver):
        """At 8 AM the cycle anchors on midnight and all four events fall on the day.

        Implementation: 8:00 AM New York; 8h mod 12.5h is 8h so the first high is 3:07 AM.
        Passing implies: The pattern alternates High/Low a quarter cycle after the anchor.
        """
        clock = fixed_clock(datetime(2025, 1, 15, 13, 0, tzinfo=timezone.utc))
        fetcher = TideFetcher(mock_client(), make_config(), resolver, clock)
        events = fetcher.estimate(DisplayMode.TODAY, NEW_YORK)

        assert [(e.kind, e.local_time) for e in events] == [
            (TideKind.HIGH, "3:07 AM"),
            (TideKind.LOW, "9:22 AM"),
            (TideKind.HIGH, "3:37 PM"),
            (TideKind.LOW, "9:52 PM"),
        ]
        assert [e.height_ft for e in events] == [6.2, 0.8, 6.1, 0.9]

    def test_events_stay_on_target_day(self, resolver):
        """Estimated events past local midnight are dropped.

        Implementation: 8:00 PM New York; the second high and low land on the next day.
        Passing implies: Only same-day highs and lows are shown.
        """
        clock = fixed_clock(datetime(2025, 1, 16, 1, 0, tzinfo=timezone.utc))
        fetcher = TideFetcher(mock_client(), make_config(), resolver, clock)
        events = fetcher.estimate(DisplayMode.TODAY, NEW_YORK)

        assert [(e.kind, e.local_time) for e in events] == [
            (TideKind.HIGH, "3:37 PM"),
            (TideKind.LOW, "9:52 PM"),
        ]

    def test_cape_cod_heights(self, resolver):
        """Estimates use the region's canned heights.

        Implementation: Estimates with the Cape Cod set.
        Passing implies: Heights reflect the larger Cape Cod range.
        """
        clock = fixed_clock(datetime(2025, 1, 15, 13, 0, tzinfo=timezone.utc))
        fetcher = TideFetcher(mock_client(), make_config(), resolver, clock)
        events = fetcher.estimate(DisplayMode.TOMORROW, CAPE_COD)
        assert events[0].height_ft == 9.8
