# ABOUTME: Base class for the four source fetchers and the exception-to-result boundary.
# ABOUTME: Every fetch produces exactly one Success or Failure; nothing escapes to the scheduler.

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import datetime

import httpx

from homeboard.config import ConfigAccessor
from homeboard.errors import DashboardError
from homeboard.geocoding import LocationLocator
from homeboard.models import DisplayMode, ErrorKind, Failure, FetchResult, Source
from homeboard.time_window import TimeWindowResolver

logger = logging.getLogger(__name__)


def classify_error(error: BaseException) -> ErrorKind:
    """Map an exception raised while fetching to the ErrorKind reported for it."""
    if isinstance(error, DashboardError):
        return error.kind
    if isinstance(error, httpx.HTTPStatusError):
        if error.response.status_code in (401, 403):
            return ErrorKind.AUTH
        return ErrorKind.NETWORK
    if isinstance(error, httpx.HTTPError):
        return ErrorKind.NETWORK
    # Malformed payloads surface as ValueError, KeyError, TypeError or ValidationError.
    return ErrorKind.DATA


class SourceFetcher(ABC):
    """Fetches one panel's data for a display mode.

    Subclasses implement ``_fetch`` and may raise freely; ``fetch`` converts any
    exception into a Failure tagged with this fetcher's source.
    """

    source: Source

    def __init__(
        self,
        client: httpx.AsyncClient,
        config: ConfigAccessor,
        resolver: TimeWindowResolver,
        clock: Callable[[], datetime],
        locator: LocationLocator | None = None,
    ):
        self.client = client
        self.config = config
        self.resolver = resolver
        self.clock = clock
        self.locator = locator if locator is not None else LocationLocator(client, config)

    async def fetch(self, mode: DisplayMode) -> FetchResult:
        try:
            return await self._fetch(mode)
        except Exception as e:
            kind = classify_error(e)
            if kind in (ErrorKind.CONFIG, ErrorKind.AUTH, ErrorKind.NETWORK):
                logger.warning("%s fetch failed (%s): %s", self.source.value, kind.value, e)
            else:
                logger.exception("%s fetch returned unusable data", self.source.value)
            return Failure(error=kind, source=self.source.value, message=str(e))

    @abstractmethod
    async def _fetch(self, mode: DisplayMode) -> FetchResult: ...

    def target_day(self, mode: DisplayMode):
        return self.resolver.target_day(mode, self.clock())
