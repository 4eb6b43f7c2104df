# ABOUTME: Display-mode resolution (today vs tomorrow) and local-time helpers.
# ABOUTME: Falls back to the machine's local timezone when the configured zone cannot be loaded.

import logging
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from homeboard.models import DisplayMode

logger = logging.getLogger(__name__)

ONE_DAY = timedelta(hours=24)


def load_zone(timezone_id: str) -> tzinfo | None:
    """Load an IANA zone, returning None when the id is unknown or malformed."""
    try:
        return ZoneInfo(timezone_id)
    except (ZoneInfoNotFoundError, ValueError, TypeError, OSError) as e:
        logger.warning("Cannot load timezone %r, using local time instead: %s", timezone_id, e)
        return None


def _as_aware(now: datetime) -> datetime:
    # Naive instants are taken to be UTC.
    return now if now.tzinfo is not None else now.replace(tzinfo=timezone.utc)


def to_local(now: datetime, zone: tzinfo | None) -> datetime:
    """Convert an instant to wall-clock time in ``zone``, or machine-local time if None."""
    now = _as_aware(now)
    return now.astimezone(zone) if zone is not None else now.astimezone()


def resolve(now: datetime, timezone_id: str, threshold_hour: int) -> DisplayMode:
    """Tomorrow when the local hour in ``timezone_id`` is at or past ``threshold_hour``."""
    local = to_local(now, load_zone(timezone_id))
    return DisplayMode.TOMORROW if local.hour >= threshold_hour else DisplayMode.TODAY


def target_date(mode: DisplayMode, now: datetime) -> datetime:
    """The instant whose data should be shown. Plain 24h addition, no DST handling."""
    return now + ONE_DAY if mode is DisplayMode.TOMORROW else now


def format_clock(dt: datetime, minutes: bool = True) -> str:
    """12-hour clock text: ``3:05 PM``, or ``3 PM`` when minutes are omitted."""
    hour = dt.hour % 12 or 12
    period = "AM" if dt.hour < 12 else "PM"
    if minutes:
        return f"{hour}:{dt.minute:02d} {period}"
    return f"{hour} {period}"


class TimeWindowResolver:
    """Binds a timezone and tomorrow-threshold for repeated mode checks.

    The zone is loaded once; an unloadable id degrades to machine-local time for
    every helper instead of raising.
    """

    def __init__(self, timezone_id: str, threshold_hour: int):
        self.timezone_id = timezone_id
        self.threshold_hour = threshold_hour
        self.zone = load_zone(timezone_id)

    def resolve(self, now: datetime) -> DisplayMode:
        local = self.local(now)
        return DisplayMode.TOMORROW if local.hour >= self.threshold_hour else DisplayMode.TODAY

    def target_date(self, mode: DisplayMode, now: datetime) -> datetime:
        return target_date(mode, now)

    def local(self, dt: datetime) -> datetime:
        return to_local(dt, self.zone)

    def target_day(self, mode: DisplayMode, now: datetime) -> date:
        """Local calendar date of the target instant."""
        return self.local(self.target_date(mode, now)).date()

    def day_bounds(self, day: date) -> tuple[datetime, datetime]:
        """UTC instants for the start of ``day`` and the start of the following day."""
        zone = self.zone if self.zone is not None else datetime.now().astimezone().tzinfo
        start = datetime.combine(day, time.min, tzinfo=zone)
        end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=zone)
        return start.astimezone(timezone.utc), end.astimezone(timezone.utc)

    def schedule_heading(self, mode: DisplayMode) -> str:
        return "Tomorrow's Schedule" if mode is DisplayMode.TOMORROW else "Today's Schedule"

    def date_label(self, mode: DisplayMode, now: datetime) -> str:
        """E.g. ``Friday, October 16`` for the target day."""
        target = self.local(self.target_date(mode, now))
        return f"{target.strftime('%A')}, {target.strftime('%B')} {target.day}"
