# ABOUTME: Aggregation scheduler that fans out to the four source fetchers and owns refresh triggers.
# ABOUTME: Uses generation tokens to drop superseded results and a task scheduler for timers and retries.

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from enum import Enum
from typing import Protocol

from homeboard.calendar_service import CalendarFetcher, build_calendar_backend
from homeboard.deps import DashboardDeps
from homeboard.geocoding import LocationLocator
from homeboard.models import AggregateSnapshot, DisplayMode, ErrorKind, Failure, FetchResult, Source
from homeboard.sources import SourceFetcher
from homeboard.sun_service import SunTimesFetcher
from homeboard.tide_service import TideFetcher
from homeboard.time_window import TimeWindowResolver
from homeboard.weather_service import WeatherFetcher

logger = logging.getLogger(__name__)

MODE_CHECK_INTERVAL_SECONDS = 60.0
RETRY_BASE_DELAY_SECONDS = 5.0
MAX_RETRIES = 3

# Only transport-level failures are worth retrying; config, auth and data errors repeat.
RETRYABLE_ERRORS = {ErrorKind.NETWORK}


class ScheduledTask(Protocol):
    def cancel(self) -> bool: ...


class TaskScheduler(Protocol):
    """Runs an async callback after a delay. Tests substitute simulated time."""

    def call_later(self, delay: float, callback: Callable[[], Awaitable[None]]) -> ScheduledTask: ...

    def cancel_all(self) -> None: ...

    async def wait_closed(self) -> None: ...


class AsyncioTaskScheduler:
    """TaskScheduler backed by the running event loop."""

    def __init__(self):
        self._tasks: set[asyncio.Task] = set()

    def call_later(self, delay: float, callback: Callable[[], Awaitable[None]]) -> asyncio.Task:
        async def run():
            await asyncio.sleep(delay)
            await callback()

        task = asyncio.get_running_loop().create_task(run())
        self._tasks.add(task)
        task.add_done_callback(self._finished)
        return task

    def _finished(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Scheduled callback failed", exc_info=task.exception())

    def cancel_all(self) -> None:
        """Cancel every scheduled callback, including ones already running."""
        for task in list(self._tasks):
            task.cancel()

    async def wait_closed(self) -> None:
        """Wait until every cancelled or running callback has finished."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    def __len__(self) -> int:
        return len(self._tasks)


class SnapshotSink(Protocol):
    """Receives results as they arrive; implemented by the RenderProjector."""

    def refresh_started(self, mode: DisplayMode) -> None: ...

    def apply(self, source: Source, result: FetchResult) -> None: ...


class SchedulerState(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    RETRYING = "retrying"


class RefreshReason(str, Enum):
    STARTUP = "startup"
    PERIODIC = "periodic"
    MODE_CHANGE = "mode_change"
    VISIBILITY = "visibility"
    MANUAL = "manual"
    RETRY = "retry"


class AggregationScheduler:
    """Owns the refresh lifecycle of the dashboard.

    Each ``refresh_all`` starts a new generation. Results are pushed to the sink one
    source at a time as they resolve, and only while their generation is current, so
    a slow superseded fetch can never overwrite fresher data. When every source of a
    cycle fails with a network error, the cycle is retried with exponential backoff
    up to ``max_retries``.
    """

    def __init__(
        self,
        fetchers: dict[Source, SourceFetcher],
        resolver: TimeWindowResolver,
        sink: SnapshotSink,
        tasks: TaskScheduler,
        clock: Callable[[], datetime],
        refresh_interval: float = 1800.0,
        mode_check_interval: float = MODE_CHECK_INTERVAL_SECONDS,
        retry_base_delay: float = RETRY_BASE_DELAY_SECONDS,
        max_retries: int = MAX_RETRIES,
    ):
        self.fetchers = fetchers
        self.resolver = resolver
        self.sink = sink
        self.tasks = tasks
        self.clock = clock
        self.refresh_interval = refresh_interval
        self.mode_check_interval = mode_check_interval
        self.retry_base_delay = retry_base_delay
        self.max_retries = max_retries

        self.state = SchedulerState.IDLE
        self.mode = resolver.resolve(clock())
        self.generation = 0
        self.snapshot: AggregateSnapshot | None = None
        self.last_updated: datetime | None = None
        self.retry_attempts = 0
        self.hidden = False

        self._pending: set[Source] = set()
        self._retry_task: ScheduledTask | None = None
        self._refresh_timer: ScheduledTask | None = None
        self._mode_timer: ScheduledTask | None = None
        self._startup_task: ScheduledTask | None = None

    @property
    def pending_sources(self) -> set[Source]:
        return set(self._pending)

    async def refresh_all(self, reason: RefreshReason = RefreshReason.MANUAL) -> AggregateSnapshot | None:
        """Fetch every source concurrently for the current display mode.

        Returns the cycle's snapshot, or None when a newer cycle superseded this one.
        """
        self.generation += 1
        generation = self.generation
        if reason is not RefreshReason.RETRY:
            self._cancel_retry()
            self.retry_attempts = 0

        self.mode = self.resolver.resolve(self.clock())
        mode = self.mode
        self.state = SchedulerState.FETCHING
        self._pending = set(self.fetchers)
        logger.info("Refresh %d started (%s, %s)", generation, reason.value, mode.value)
        self.sink.refresh_started(mode)

        async def run(source: Source, fetcher: SourceFetcher) -> FetchResult:
            result = await fetcher.fetch(mode)
            if generation != self.generation:
                logger.debug("Dropping %s result from superseded refresh %d", source.value, generation)
                return result
            self._pending.discard(source)
            self.sink.apply(source, result)
            return result

        sources = list(self.fetchers)
        results = await asyncio.gather(*(run(s, self.fetchers[s]) for s in sources))
        if generation != self.generation:
            return None

        by_source = dict(zip(sources, results))
        for source in Source:
            by_source.setdefault(source, _missing(source))
        now = self.clock()
        self.snapshot = AggregateSnapshot(
            mode=mode,
            weather=by_source[Source.WEATHER],
            tides=by_source[Source.TIDES],
            sun=by_source[Source.SUN],
            calendar=by_source[Source.CALENDAR],
            fetched_at=now,
            generation=generation,
        )

        if all(isinstance(r, Failure) and r.error in RETRYABLE_ERRORS for r in results):
            self._schedule_retry()
        elif all(isinstance(r, Failure) for r in results):
            logger.error("All sources failed, not all with network errors; not retrying")
            self.retry_attempts = 0
            self.state = SchedulerState.IDLE
        else:
            self.last_updated = now
            self.retry_attempts = 0
            self.state = SchedulerState.IDLE
        return self.snapshot

    def _schedule_retry(self) -> None:
        if self.retry_attempts >= self.max_retries:
            logger.error("All sources failed after %d retries, giving up until the next trigger", self.retry_attempts)
            self.state = SchedulerState.IDLE
            return
        delay = self.retry_base_delay * 2**self.retry_attempts
        self.retry_attempts += 1
        self.state = SchedulerState.RETRYING
        logger.warning("All sources failed, retry %d/%d in %.0fs", self.retry_attempts, self.max_retries, delay)
        self._retry_task = self.tasks.call_later(delay, self._run_retry)

    async def _run_retry(self) -> None:
        self._retry_task = None
        await self.refresh_all(RefreshReason.RETRY)

    def _cancel_retry(self) -> None:
        if self._retry_task is not None:
            self._retry_task.cancel()
            self._retry_task = None

    def update_mode(self) -> bool:
        """Re-resolve the display mode; True when it changed."""
        mode = self.resolver.resolve(self.clock())
        if mode is self.mode:
            return False
        logger.info("Display mode changed from %s to %s", self.mode.value, mode.value)
        self.mode = mode
        return True

    async def check_mode(self) -> bool:
        """Minute tick: refresh when the day boundary threshold has been crossed."""
        if self.update_mode():
            await self.refresh_all(RefreshReason.MODE_CHANGE)
            return True
        return False

    async def on_visibility_change(self, visible: bool) -> None:
        """Host page visibility; becoming visible after being hidden always refreshes."""
        was_hidden = self.hidden
        self.hidden = not visible
        if visible and was_hidden:
            self.update_mode()
            await self.refresh_all(RefreshReason.VISIBILITY)

    async def request_refresh(self) -> AggregateSnapshot | None:
        """User-requested refresh, bypassing the timers."""
        self.update_mode()
        return await self.refresh_all(RefreshReason.MANUAL)

    def start(self) -> None:
        """Arm the periodic and mode-check timers and kick off the first refresh."""
        self._refresh_timer = self.tasks.call_later(self.refresh_interval, self._on_refresh_timer)
        self._mode_timer = self.tasks.call_later(self.mode_check_interval, self._on_mode_timer)
        self._startup_task = self.tasks.call_later(0, self._startup)

    def stop(self) -> None:
        """Cancel the timers and every scheduled refresh, including ones in flight."""
        for task in (self._refresh_timer, self._mode_timer, self._retry_task, self._startup_task):
            if task is not None:
                task.cancel()
        self._refresh_timer = self._mode_timer = self._retry_task = self._startup_task = None
        # Timer callbacks re-arm before refreshing, so the running one has no stored handle.
        self.tasks.cancel_all()
        # Anything still in flight becomes stale.
        self.generation += 1
        self._pending.clear()
        self.state = SchedulerState.IDLE

    async def aclose(self) -> None:
        """Stop, then wait for cancelled refreshes to unwind before the client is closed."""
        self.stop()
        await self.tasks.wait_closed()

    async def _startup(self) -> None:
        await self.refresh_all(RefreshReason.STARTUP)

    async def _on_refresh_timer(self) -> None:
        self._refresh_timer = self.tasks.call_later(self.refresh_interval, self._on_refresh_timer)
        await self.refresh_all(RefreshReason.PERIODIC)

    async def _on_mode_timer(self) -> None:
        self._mode_timer = self.tasks.call_later(self.mode_check_interval, self._on_mode_timer)
        await self.check_mode()


def _missing(source: Source) -> Failure:
    return Failure(error=ErrorKind.CONFIG, source=source.value, message="No fetcher registered")


def build_scheduler(
    deps: DashboardDeps, sink: SnapshotSink, tasks: TaskScheduler | None = None
) -> AggregationScheduler:
    """Wire the four fetchers and the scheduler from a dependency container."""
    config = deps.config
    resolver = TimeWindowResolver(config.get("settings.timezone"), config.get("settings.tomorrow_threshold_hour"))
    common = (deps.http_client, config, resolver, deps.clock)
    locator = LocationLocator(deps.http_client, config)
    fetchers: dict[Source, SourceFetcher] = {
        Source.WEATHER: WeatherFetcher(*common, locator=locator),
        Source.TIDES: TideFetcher(*common),
        Source.SUN: SunTimesFetcher(*common, locator=locator),
        Source.CALENDAR: CalendarFetcher(
            *common, backend=build_calendar_backend(config, deps.http_client, deps.tokens)
        ),
    }
    return AggregationScheduler(
        fetchers,
        resolver,
        sink,
        tasks if tasks is not None else AsyncioTaskScheduler(),
        deps.clock,
        refresh_interval=config.get("settings.refresh_interval") / 1000,
    )
