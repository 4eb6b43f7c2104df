# ABOUTME: Interactive calendar sign-in modelled as a future raced against a timeout.
# ABOUTME: Also holds the in-memory store of signed-in calendar accounts and their tokens.

import asyncio
import logging
from collections.abc import Callable
from enum import Enum

from pydantic import BaseModel

from homeboard.errors import AuthError

logger = logging.getLogger(__name__)

SIGN_IN_TIMEOUT_SECONDS = 30.0

# Colors handed out to accounts in sign-in order.
ACCOUNT_COLORS = ["#4285f4", "#db4437", "#0f9d58", "#f4b400", "#ab47bc", "#00acc1"]


class SignInStatus(str, Enum):
    GRANTED = "granted"
    DENIED = "denied"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


class SignInResult(BaseModel):
    """Outcome of one interactive sign-in attempt."""

    status: SignInStatus
    access_token: str | None = None
    account: str | None = None
    error: str | None = None


class CalendarAccount(BaseModel):
    email: str
    access_token: str
    color: str


class TokenStore:
    """Signed-in calendar accounts keyed by email. Persisting them is the host's job."""

    def __init__(self):
        self._accounts: dict[str, CalendarAccount] = {}

    def add(self, email: str, access_token: str) -> CalendarAccount:
        existing = self._accounts.get(email)
        color = existing.color if existing else ACCOUNT_COLORS[len(self._accounts) % len(ACCOUNT_COLORS)]
        account = CalendarAccount(email=email, access_token=access_token, color=color)
        self._accounts[email] = account
        return account

    def remove(self, email: str) -> None:
        self._accounts.pop(email, None)

    def accounts(self) -> list[CalendarAccount]:
        return list(self._accounts.values())

    def __len__(self) -> int:
        return len(self._accounts)


class SignInFlow:
    """One interactive sign-in attempt.

    ``run()`` invokes ``trigger`` (which opens the provider's consent prompt) and then
    waits for the provider callback to call ``complete()`` or ``fail()``. The wait is
    raced against ``timeout``; ``cancel()`` abandons it. Every path ends in a single
    SignInResult instead of an exception.
    """

    def __init__(self, timeout: float = SIGN_IN_TIMEOUT_SECONDS):
        self.timeout = timeout
        self._future: asyncio.Future | None = None

    def open(self) -> None:
        """Start accepting provider callbacks. ``run()`` opens the flow if the host has not."""
        if self._future is None:
            self._future = asyncio.get_running_loop().create_future()

    async def run(self, trigger: Callable[[], None]) -> SignInResult:
        self.open()
        trigger()
        try:
            account, token = await asyncio.wait_for(asyncio.shield(self._future), self.timeout)
        except asyncio.TimeoutError:
            logger.warning("Calendar sign-in timed out after %.0fs", self.timeout)
            self._future.cancel()
            return SignInResult(status=SignInStatus.TIMED_OUT, error="Sign-in timed out")
        except asyncio.CancelledError:
            if self._future.cancelled():
                return SignInResult(status=SignInStatus.CANCELLED, error="Sign-in cancelled")
            raise
        except AuthError as e:
            return SignInResult(status=SignInStatus.DENIED, error=str(e) or "Access denied")
        return SignInResult(status=SignInStatus.GRANTED, access_token=token, account=account)

    def complete(self, account: str, access_token: str) -> None:
        """Provider callback: the user granted access."""
        if self._future is not None and not self._future.done():
            self._future.set_result((account, access_token))

    def fail(self, reason: str) -> None:
        """Provider callback: the user denied access or the provider errored."""
        if self._future is not None and not self._future.done():
            self._future.set_exception(AuthError(reason))

    def cancel(self) -> None:
        if self._future is not None and not self._future.done():
            self._future.cancel()


async def sign_in_account(
    flow: SignInFlow, tokens: TokenStore, trigger: Callable[[], None]
) -> SignInResult:
    """Run a sign-in flow and remember the account when access is granted."""
    result = await flow.run(trigger)
    if result.status is SignInStatus.GRANTED and result.account and result.access_token:
        tokens.add(result.account, result.access_token)
        logger.info("Calendar account connected: %s", result.account)
    return result


class AccountLinker:
    """The host's single pending sign-in, started by one request and finished by the callback.

    Only one flow may be open at a time; a granted flow adds its account to ``tokens``.
    """

    def __init__(self, tokens: TokenStore, timeout: float = SIGN_IN_TIMEOUT_SECONDS):
        self.tokens = tokens
        self.timeout = timeout
        self._flow: SignInFlow | None = None
        self._task: asyncio.Task | None = None

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def begin(self) -> bool:
        """Open a new sign-in flow; False when one is already waiting for its callback."""
        if self.pending:
            return False
        self._flow = SignInFlow(self.timeout)
        self._flow.open()
        self._task = asyncio.get_running_loop().create_task(sign_in_account(self._flow, self.tokens, lambda: None))
        logger.info("Calendar sign-in started")
        return True

    async def finish(
        self, account: str | None = None, access_token: str | None = None, error: str | None = None
    ) -> SignInResult | None:
        """Deliver the provider callback and return the outcome; None when no flow was started."""
        if self._flow is None or self._task is None:
            return None
        if error or not (account and access_token):
            self._flow.fail(error or "Provider callback carried no token")
        else:
            self._flow.complete(account, access_token)
        try:
            return await self._task
        finally:
            self._flow = self._task = None

    def cancel(self) -> None:
        if self._flow is not None:
            self._flow.cancel()
