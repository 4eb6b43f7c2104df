# ABOUTME: Calendar fetcher and its interchangeable backends (OAuth API, CalDAV, ICS feed).
# ABOUTME: Unconfigured or signed-out states are empty successes carrying a reason code.

import logging
from collections.abc import Callable
from datetime import date, datetime, timezone
from urllib.parse import quote

import httpx

from homeboard.auth import TokenStore
from homeboard.config import ConfigAccessor
from homeboard.errors import AuthError, ConfigError
from homeboard.ics import calendar_query_body, format_utc, parse_caldav_multistatus, parse_ics_events
from homeboard.models import CalendarEvent, DisplayMode, Source, Success
from homeboard.sources import SourceFetcher
from homeboard.time_window import TimeWindowResolver

logger = logging.getLogger(__name__)

NO_ACCOUNTS_CONNECTED = "no_accounts_connected"
NOT_CONFIGURED = "not_configured"

GOOGLE_EVENTS_URL = "https://www.googleapis.com/calendar/v3/calendars/primary/events"

CALDAV_ENDPOINTS = {
    "google": "https://apidata.googleusercontent.com/caldav/v2/",
    "google_workspace": "https://calendar.google.com/calendar/dav/",
    "apple": "https://caldav.icloud.com/",
    "outlook": "https://outlook.office365.com/owa/calendar/",
}

CALDAV_PROVIDER_NAMES = {
    "google": "Google Calendar",
    "apple": "Apple iCloud",
    "outlook": "Microsoft Outlook",
    "generic": "CalDAV Calendar",
}

CONSUMER_GOOGLE_DOMAINS = ("@gmail.com", "@googlemail.com")


def is_workspace_account(username: str) -> bool:
    """Guess Google Workspace vs consumer Google by email suffix.

    Consumer accounts on other domains are misclassified as Workspace.
    """
    return not username.lower().endswith(CONSUMER_GOOGLE_DOMAINS)


def caldav_urls(provider: str, username: str, custom_url: str | None = None) -> list[str]:
    """Candidate CalDAV collection URLs for a provider, most likely first."""
    if provider == "generic":
        if not custom_url:
            raise ConfigError("Generic CalDAV provider needs a server URL")
        return [custom_url]
    if provider == "google":
        if not is_workspace_account(username):
            return [f"{CALDAV_ENDPOINTS['google']}{username}/events/"]
        workspace = CALDAV_ENDPOINTS["google_workspace"]
        return [
            f"{workspace}{username}/events/",
            f"{workspace}{username}/user/",
            f"{CALDAV_ENDPOINTS['google']}{username}/events/",
            f"{workspace}{username}/",
            f"{workspace}{username.split('@')[0]}/events/",
        ]
    if provider == "apple":
        return [f"{CALDAV_ENDPOINTS['apple']}{username.split('@')[0]}/calendars/"]
    if provider == "outlook":
        return [f"{CALDAV_ENDPOINTS['outlook']}{username}/"]
    raise ConfigError(f"Unsupported CalDAV provider: {provider}")


class CalendarBackend:
    """One way of reaching a calendar. ``unavailable_reason`` short-circuits fetching."""

    name = "calendar"

    def unavailable_reason(self) -> str | None:
        return None

    async def list_events(self, day: date, resolver: TimeWindowResolver) -> list[CalendarEvent]:
        raise NotImplementedError


class UnconfiguredCalendar(CalendarBackend):
    name = "calendar_not_configured"

    def unavailable_reason(self) -> str | None:
        return NOT_CONFIGURED

    async def list_events(self, day: date, resolver: TimeWindowResolver) -> list[CalendarEvent]:
        return []


class OAuthCalendar(CalendarBackend):
    """Google Calendar API over every signed-in account in the token store."""

    name = "google_oauth"

    def __init__(self, client: httpx.AsyncClient, tokens: TokenStore):
        self.client = client
        self.tokens = tokens

    def unavailable_reason(self) -> str | None:
        return NO_ACCOUNTS_CONNECTED if len(self.tokens) == 0 else None

    async def list_events(self, day: date, resolver: TimeWindowResolver) -> list[CalendarEvent]:
        start, end = resolver.day_bounds(day)
        events: list[CalendarEvent] = []
        failures = 0
        for account in self.tokens.accounts():
            try:
                resp = await self.client.get(
                    GOOGLE_EVENTS_URL,
                    params={
                        "timeMin": format_utc(start),
                        "timeMax": format_utc(end),
                        "singleEvents": "true",
                        "orderBy": "startTime",
                    },
                    headers={"Authorization": f"Bearer {account.access_token}"},
                )
                if resp.status_code in (401, 403):
                    raise AuthError(f"Access token for {account.email} was rejected")
                resp.raise_for_status()
            except (AuthError, httpx.HTTPError) as e:
                failures += 1
                logger.warning("Calendar account %s failed: %s", account.email, e)
                if failures == len(self.tokens):
                    raise
                continue
            events.extend(
                google_item_to_event(item, account.email, account.color) for item in resp.json().get("items", [])
            )
        return events


def google_item_to_event(item: dict, label: str, color: str) -> CalendarEvent:
    start = item.get("start", {})
    end = item.get("end", {})
    all_day = "date" in start and "dateTime" not in start
    return CalendarEvent(
        title=item.get("summary") or "(No title)",
        start_iso=start.get("date") if all_day else _zulu(start["dateTime"]),
        end_iso=end.get("date") or (_zulu(end["dateTime"]) if "dateTime" in end else ""),
        all_day=all_day,
        location=item.get("location", ""),
        description=item.get("description", ""),
        calendar_label=label,
        calendar_color=color,
    )


def _zulu(text: str) -> str:
    return format_utc(datetime.fromisoformat(text.replace("Z", "+00:00")))


class CalDAVCalendar(CalendarBackend):
    """CalDAV REPORT calendar-query with basic auth, optionally through a same-origin proxy."""

    name = "caldav"

    def __init__(
        self,
        client: httpx.AsyncClient,
        provider: str,
        username: str | None,
        password: str | None,
        custom_url: str | None = None,
    ):
        self.client = client
        self.provider = provider
        self.username = username
        self.password = password
        self.custom_url = custom_url

    def unavailable_reason(self) -> str | None:
        return NOT_CONFIGURED if not (self.username and self.password) else None

    @property
    def label(self) -> str:
        return CALDAV_PROVIDER_NAMES.get(self.provider, "CalDAV Calendar")

    async def list_events(self, day: date, resolver: TimeWindowResolver) -> list[CalendarEvent]:
        start, end = resolver.day_bounds(day)
        body = calendar_query_body(start, end)
        last_error: Exception | None = None
        for url in caldav_urls(self.provider, self.username, self.custom_url):
            try:
                resp = await self.client.request(
                    "REPORT",
                    url,
                    content=body,
                    auth=(self.username, self.password),
                    headers={"Content-Type": "application/xml; charset=utf-8", "Depth": "1"},
                )
                resp.raise_for_status()
            except httpx.HTTPError as e:
                logger.warning("CalDAV REPORT failed for %s endpoint: %s", self.provider, e)
                last_error = e
                continue
            return parse_caldav_multistatus(resp.text, self.label)
        raise last_error


class IcsFeedCalendar(CalendarBackend):
    """Public ICS feed, optionally fetched through a relay that takes the feed URL as ``url``."""

    name = "ics_feed"

    def __init__(self, client: httpx.AsyncClient, url: str | None, label: str, relay: str | None = None):
        self.client = client
        self.url = url
        self.label = label
        self.relay = relay

    def unavailable_reason(self) -> str | None:
        return NOT_CONFIGURED if not self.url else None

    def request_url(self) -> str:
        if self.relay:
            return f"{self.relay}{quote(self.url, safe='')}"
        return self.url

    async def list_events(self, day: date, resolver: TimeWindowResolver) -> list[CalendarEvent]:
        resp = await self.client.get(self.request_url(), headers={"Accept": "text/calendar"})
        resp.raise_for_status()
        events = parse_ics_events(resp.text, self.label)
        return [e for e in events if event_local_date(e, resolver) == day]


def event_start(event: CalendarEvent, resolver: TimeWindowResolver) -> datetime:
    """Start instant in local time; all-day events start at local midnight."""
    if event.all_day:
        return resolver.day_bounds(date.fromisoformat(event.start_iso[:10]))[0]
    start = datetime.fromisoformat(event.start_iso.replace("Z", "+00:00"))
    return start if start.tzinfo is not None else start.replace(tzinfo=timezone.utc)


def event_local_date(event: CalendarEvent, resolver: TimeWindowResolver) -> date | None:
    try:
        if event.all_day:
            return date.fromisoformat(event.start_iso[:10])
        return resolver.local(event_start(event, resolver)).date()
    except ValueError:
        logger.warning("Unparseable event start %r", event.start_iso)
        return None


def sort_events(events: list[CalendarEvent], resolver: TimeWindowResolver) -> list[CalendarEvent]:
    def key(event: CalendarEvent):
        try:
            return (0, event_start(event, resolver))
        except ValueError:
            return (1, event.title)

    return sorted(events, key=key)


def build_calendar_backend(config: ConfigAccessor, client: httpx.AsyncClient, tokens: TokenStore) -> CalendarBackend:
    """Pick the backend named by ``calendar.backend``."""
    backend = config.get("calendar.backend") or "none"
    if backend == "oauth":
        return OAuthCalendar(client, tokens)
    if backend == "caldav":
        return CalDAVCalendar(
            client,
            provider=config.get("calendar.caldav_provider") or "google",
            username=config.get("calendar.caldav_username"),
            password=config.get("calendar.caldav_password"),
            custom_url=config.get("calendar.caldav_url"),
        )
    if backend == "ics":
        return IcsFeedCalendar(
            client,
            url=config.get("calendar.ics_url"),
            label=config.get("calendar.ics_name") or "My Calendar",
            relay=config.get("calendar.ics_relay"),
        )
    return UnconfiguredCalendar()


class CalendarFetcher(SourceFetcher):
    """Events for the target day from whichever backend is configured.

    When tomorrow is empty, today's remaining events are shown instead.
    """

    source = Source.CALENDAR

    def __init__(
        self,
        client: httpx.AsyncClient,
        config: ConfigAccessor,
        resolver: TimeWindowResolver,
        clock: Callable[[], datetime],
        backend: CalendarBackend,
        today_fallback: bool = True,
    ):
        super().__init__(client, config, resolver, clock)
        self.backend = backend
        self.today_fallback = today_fallback

    async def _fetch(self, mode: DisplayMode) -> Success:
        reason = self.backend.unavailable_reason()
        if reason:
            return Success(value=[], source=self.backend.name, reason=reason)

        events = sort_events(await self.backend.list_events(self.target_day(mode), self.resolver), self.resolver)
        if events or mode is not DisplayMode.TOMORROW or not self.today_fallback:
            return Success(value=events, source=self.backend.name)

        remaining = await self._remaining_today()
        if not remaining:
            return Success(value=[], source=self.backend.name)
        plural = "" if len(remaining) == 1 else "s"
        return Success(
            value=remaining,
            source=self.backend.name,
            meta={"note": f"No events tomorrow - showing {len(remaining)} remaining event{plural} from today"},
        )

    async def _remaining_today(self) -> list[CalendarEvent]:
        now = self.clock()
        try:
            events = await self.backend.list_events(self.target_day(DisplayMode.TODAY), self.resolver)
        except Exception as e:
            logger.warning("Fallback to today's calendar failed: %s", e)
            return []
        remaining = []
        for event in sort_events(events, self.resolver):
            try:
                upcoming = event.all_day or event_start(event, self.resolver) > now
            except ValueError:
                upcoming = True
            if upcoming:
                remaining.append(event)
        return remaining
