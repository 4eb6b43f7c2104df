# ABOUTME: Dependency container for the dashboard core using Pydantic BaseModel.
# ABOUTME: Holds the shared httpx.AsyncClient, configuration, clock, and signed-in calendar accounts.

from collections.abc import Callable
from datetime import datetime, timezone

import httpx
from pydantic import BaseModel, ConfigDict, Field
from pydantic_ai.retries import AsyncTenacityTransport, RetryConfig, wait_retry_after
from tenacity import retry_if_exception_type, stop_after_attempt

from homeboard.auth import TokenStore
from homeboard.config import DashboardConfig

RETRYABLE_STATUS = {429, 500, 502, 503, 504}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class DashboardDeps(BaseModel):
    """Collaborators injected into fetchers and the scheduler at construction time."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    http_client: httpx.AsyncClient
    config: DashboardConfig
    clock: Callable[[], datetime] = utc_now
    tokens: TokenStore = Field(default_factory=TokenStore)


def raise_for_transient_status(response: httpx.Response) -> None:
    """Raise only for statuses worth retrying; other 4xx go back to the caller."""
    if response.status_code in RETRYABLE_STATUS:
        response.raise_for_status()


def create_http_client() -> httpx.AsyncClient:
    """Create an httpx client with tenacity retry on transient HTTP errors.

    Retries connection errors, timeouts, and 429/5xx responses with exponential backoff.
    """
    transport = AsyncTenacityTransport(
        RetryConfig(
            retry=retry_if_exception_type((httpx.ConnectError, httpx.ReadTimeout, httpx.HTTPStatusError)),
            wait=wait_retry_after(max_wait=30),
            stop=stop_after_attempt(3),
            reraise=True,
        ),
        validate_response=raise_for_transient_status,
    )
    return httpx.AsyncClient(
        transport=transport,
        timeout=httpx.Timeout(15.0),
        headers={"Accept": "application/json"},
    )
