# ABOUTME: Contract tests for the fetcher error boundary and error classification.
# ABOUTME: Validates that any exception raised while fetching becomes a Failure with the right kind.

import httpx
import pytest
from conftest import fixed_clock, make_config, mock_client

from homeboard.errors import AuthError, ConfigError, DataError, NetworkError
from homeboard.models import DisplayMode, ErrorKind, Failure, Source
from homeboard.sources import SourceFetcher, classify_error


class RaisingFetcher(SourceFetcher):
    source = Source.TIDES

    def __init__(self, error, resolver, noon_utc):
        super().__init__(mock_client(), make_config(), resolver, fixed_clock(noon_utc))
        self.error = error

    async def _fetch(self, mode):
        raise self.error


def _status_error(code: int) -> httpx.HTTPStatusError:
    request = httpx.Request("GET", "https://test")
    return httpx.HTTPStatusError("bad", request=request, response=httpx.Response(code, request=request))


class TestClassifyError:
    @pytest.mark.parametrize(
        "error,kind",
        [
            (ConfigError("x"), ErrorKind.CONFIG),
            (NetworkError("x"), ErrorKind.NETWORK),
            (DataError("x"), ErrorKind.DATA),
            (AuthError("x"), ErrorKind.AUTH),
            (_status_error(401), ErrorKind.AUTH),
            (_status_error(403), ErrorKind.AUTH),
            (_status_error(404), ErrorKind.NETWORK),
            (_status_error(503), ErrorKind.NETWORK),
            (httpx.ReadTimeout("slow"), ErrorKind.NETWORK),
            (KeyError("list"), ErrorKind.DATA),
            (ValueError("bad json"), ErrorKind.DATA),
        ],
    )
    def test_mapping(self, error, kind):
        """Each exception family maps to one ErrorKind.

        Implementation: Classifies representative exceptions.
        Passing implies: Panels show the right message for each failure cause.
        """
        assert classify_error(error) is kind


class TestFetchBoundary:
    @pytest.mark.asyncio
    async def test_exception_becomes_failure(self, resolver, noon_utc):
        """Exceptions raised by _fetch never escape fetch().

        Implementation: A fetcher whose _fetch raises KeyError.
        Passing implies: The scheduler only ever sees FetchResults.
        """
        result = await RaisingFetcher(KeyError("predictions"), resolver, noon_utc).fetch(DisplayMode.TODAY)
        assert isinstance(result, Failure)
        assert result.error is ErrorKind.DATA
        assert result.source == "tides"
        assert "predictions" in result.message
