# ABOUTME: Shared test fixtures for the dashboard test suite.
# ABOUTME: Provides fixed clocks, mock HTTP clients, config builders, and a simulated-time task scheduler.

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import httpx
import pytest

from homeboard.config import DashboardConfig
from homeboard.time_window import TimeWindowResolver


def fixed_clock(instant: datetime):
    """A clock that always returns ``instant``."""
    return lambda: instant


def json_response(json_data, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code=status_code, json=json_data, request=httpx.Request("GET", "https://test"))


def text_response(text: str, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code=status_code, text=text, request=httpx.Request("GET", "https://test"))


def mock_client(*responses) -> httpx.AsyncClient:
    """Mock httpx.AsyncClient whose get/request return the given responses (or raise them) in order."""
    mock = AsyncMock(spec=httpx.AsyncClient)
    if len(responses) == 1 and not isinstance(responses[0], Exception):
        mock.get.return_value = responses[0]
        mock.request.return_value = responses[0]
    else:
        mock.get.side_effect = list(responses)
        mock.request.side_effect = list(responses)
    return mock


def make_config(**overrides) -> DashboardConfig:
    data = {"openweather_api_key": "test-key", "location": {"lat": 40.7128, "lon": -74.0060}}
    data.update(overrides)
    return DashboardConfig.model_validate(data)


class FakeHandle:
    def __init__(self, due: float, callback):
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> bool:
        self.cancelled = True
        return True


class FakeTaskScheduler:
    """TaskScheduler driven by simulated time instead of the event loop."""

    def __init__(self):
        self.now = 0.0
        self.handles: list[FakeHandle] = []
        self.delays: list[float] = []

    def call_later(self, delay, callback):
        handle = FakeHandle(self.now + delay, callback)
        self.handles.append(handle)
        self.delays.append(delay)
        return handle

    def cancel_all(self) -> None:
        for handle in self.handles:
            handle.cancel()

    async def wait_closed(self) -> None:
        return None

    def pending(self) -> list[FakeHandle]:
        return [h for h in self.handles if not h.cancelled]

    async def advance(self, seconds: float) -> None:
        """Run every callback due within the next ``seconds``, in due order."""
        end = self.now + seconds
        while True:
            due = [h for h in self.pending() if h.due <= end]
            if not due:
                break
            handle = min(due, key=lambda h: h.due)
            self.handles.remove(handle)
            self.now = handle.due
            await handle.callback()
        self.now = end


@pytest.fixture
def noon_utc():
    # 8:00 AM in New York.
    return datetime(2025, 1, 15, 13, 0, tzinfo=timezone.utc)


@pytest.fixture
def evening_utc():
    # 7:00 PM in New York, past the default 17:00 threshold.
    return datetime(2025, 1, 16, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def resolver():
    return TimeWindowResolver("America/New_York", 17)


@pytest.fixture
def tasks():
    return FakeTaskScheduler()
