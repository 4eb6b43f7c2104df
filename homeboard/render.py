# ABOUTME: Presentation model fed by the scheduler, one panel per source with stale-while-revalidate.
# ABOUTME: Turns FetchResults into panel states, localized error messages, and the dashboard heading.

import logging
from collections.abc import Callable
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel

from homeboard.calendar_service import NO_ACCOUNTS_CONNECTED, NOT_CONFIGURED
from homeboard.models import DisplayMode, ErrorKind, FetchResult, Source, Success, WeatherSummary
from homeboard.narrative import WeatherNarrator
from homeboard.time_window import TimeWindowResolver

logger = logging.getLogger(__name__)

PANEL_TITLES = {
    Source.WEATHER: "Weather",
    Source.TIDES: "Tides",
    Source.SUN: "Sunrise & Sunset",
    Source.CALENDAR: "Calendar",
}

ERROR_MESSAGES = {
    ErrorKind.CONFIG: "{panel} is not configured. Please check your settings.",
    ErrorKind.NETWORK: "Network error. Please check your internet connection.",
    ErrorKind.DATA: "{panel} data unavailable. Please try again later.",
    ErrorKind.AUTH: "{panel} credentials were rejected. Please check your API key.",
}

CALENDAR_AUTH_MESSAGE = "Calendar authentication failed. Please reconnect your calendar."

RETRY_HINTS = {
    ErrorKind.CONFIG: "Update your configuration, then refresh.",
    ErrorKind.AUTH: "Sign in again, then refresh.",
}
DEFAULT_RETRY_HINT = "Press refresh to try again."

REASON_MESSAGES = {
    NO_ACCOUNTS_CONNECTED: "Connect a calendar account to see your events.",
    NOT_CONFIGURED: "Calendar not configured.",
}
NO_EVENTS_MESSAGE = "No events scheduled."


class PanelStatus(str, Enum):
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


class PanelView(BaseModel):
    """What one panel shows right now.

    ``payload`` is the last good value and survives loading, error states and mode
    changes; ``stale`` is set whenever it no longer reflects the latest attempt, and
    ``payload_mode`` names the day it was fetched for.
    """

    status: PanelStatus = PanelStatus.LOADING
    payload: Any = None
    payload_mode: DisplayMode | None = None
    source_tag: str | None = None
    message: str | None = None
    retry_hint: str | None = None
    stale: bool = False
    notes: dict[str, str] = {}
    narrative: str | None = None


class DashboardView(BaseModel):
    mode: DisplayMode
    heading: str
    date_label: str
    panels: dict[Source, PanelView]
    last_updated: datetime | None = None


def error_message(source: Source, kind: ErrorKind) -> str:
    if source is Source.CALENDAR and kind is ErrorKind.AUTH:
        return CALENDAR_AUTH_MESSAGE
    return ERROR_MESSAGES[kind].format(panel=PANEL_TITLES[source])


def retry_hint(kind: ErrorKind) -> str:
    return RETRY_HINTS.get(kind, DEFAULT_RETRY_HINT)


class RenderProjector:
    """Sink for the AggregationScheduler holding the presentation state of every panel."""

    def __init__(
        self,
        resolver: TimeWindowResolver,
        clock: Callable[[], datetime],
        narrator: WeatherNarrator | None = None,
    ):
        self.resolver = resolver
        self.clock = clock
        self.narrator = narrator if narrator is not None else WeatherNarrator()
        self.mode = resolver.resolve(clock())
        self.panels: dict[Source, PanelView] = {source: PanelView() for source in Source}
        self.last_updated: datetime | None = None

    def refresh_started(self, mode: DisplayMode) -> None:
        if mode is not self.mode:
            logger.debug("Mode changed to %s, keeping %s payloads until replaced", mode.value, self.mode.value)
        self.mode = mode
        for panel in self.panels.values():
            panel.status = PanelStatus.LOADING
            panel.stale = panel.payload is not None

    def apply(self, source: Source, result: FetchResult) -> None:
        panel = self.panels[source]
        if isinstance(result, Success):
            panel.status = PanelStatus.READY
            panel.payload = result.value
            panel.payload_mode = self.mode
            panel.source_tag = result.source
            panel.stale = False
            panel.retry_hint = None
            panel.notes = dict(result.meta)
            panel.message = self._empty_message(source, result)
            panel.narrative = None
            if isinstance(result.value, WeatherSummary):
                panel.narrative = self.narrator.narrate(result.value, self.mode)
            self.last_updated = self.clock()
        else:
            panel.status = PanelStatus.ERROR
            panel.message = error_message(source, result.error)
            panel.retry_hint = retry_hint(result.error)
            panel.stale = panel.payload is not None

    def _empty_message(self, source: Source, result: Success) -> str | None:
        if result.reason:
            return REASON_MESSAGES.get(result.reason, result.reason)
        if source is Source.CALENDAR and not result.value:
            return NO_EVENTS_MESSAGE
        return None

    def view(self) -> DashboardView:
        return DashboardView(
            mode=self.mode,
            heading=self.resolver.schedule_heading(self.mode),
            date_label=self.resolver.date_label(self.mode, self.clock()),
            panels={source: panel.model_copy(deep=True) for source, panel in self.panels.items()},
            last_updated=self.last_updated,
        )
