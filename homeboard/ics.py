# ABOUTME: iCalendar and CalDAV response parsing into normalized CalendarEvent objects.
# ABOUTME: Uses icalendar for unfolding and text unescaping; date tokens follow the ICS basic formats.

import xml.etree.ElementTree as ET
from datetime import date, datetime, timezone

from icalendar import Calendar

from homeboard.errors import DataError
from homeboard.models import CalendarEvent

CALDAV_NS = "urn:ietf:params:xml:ns:caldav"

CALENDAR_QUERY = """<?xml version="1.0" encoding="utf-8" ?>
<C:calendar-query xmlns:D="DAV:" xmlns:C="urn:ietf:params:xml:ns:caldav">
  <D:prop>
    <D:getetag/>
    <C:calendar-data/>
  </D:prop>
  <C:filter>
    <C:comp-filter name="VCALENDAR">
      <C:comp-filter name="VEVENT">
        <C:time-range start="{start}" end="{end}"/>
      </C:comp-filter>
    </C:comp-filter>
  </C:filter>
</C:calendar-query>"""


def parse_ics_date(token: str) -> tuple[str, bool]:
    """Convert an ICS date token to ISO text and an all-day flag.

    ``20250115`` -> (``2025-01-15``, True); ``20250115T143000Z`` ->
    (``2025-01-15T14:30:00Z``, False). Anything else is returned unchanged.
    """
    token = token.strip()
    if len(token) == 8 and token.isdigit():
        return f"{token[0:4]}-{token[4:6]}-{token[6:8]}", True
    if "T" in token:
        day, _, clock = token.partition("T")
        clock = clock.rstrip("Z")
        if len(clock) < 4:
            return f"{day[0:4]}-{day[4:6]}-{day[6:8]}", False
        seconds = clock[4:6] or "00"
        return f"{day[0:4]}-{day[4:6]}-{day[6:8]}T{clock[0:2]}:{clock[2:4]}:{seconds}Z", False
    return token, False


def format_utc(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def format_caldav_time(dt: datetime) -> str:
    """``YYYYMMDDTHHMMSSZ`` as used in calendar-query time ranges."""
    return dt.astimezone(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def calendar_query_body(start: datetime, end: datetime) -> str:
    return CALENDAR_QUERY.format(start=format_caldav_time(start), end=format_caldav_time(end))


def _date_property(prop) -> tuple[str, bool]:
    # Zoned local times are converted to UTC; everything else goes through the token rules.
    value = prop.dt
    if isinstance(value, datetime) and value.tzinfo is not None and "TZID" in prop.params:
        return format_utc(value), False
    if isinstance(value, date) and not isinstance(value, datetime):
        return value.isoformat(), True
    return parse_ics_date(prop.to_ical().decode())


def _text(component, name: str) -> str:
    value = component.get(name)
    return str(value) if value is not None else ""


def events_from_calendar(cal: Calendar, label: str, color: str) -> list[CalendarEvent]:
    events = []
    for component in cal.walk("VEVENT"):
        title = _text(component, "SUMMARY")
        start = component.get("DTSTART")
        if not title or start is None:
            continue
        start_iso, all_day = _date_property(start)
        end = component.get("DTEND")
        events.append(
            CalendarEvent(
                title=title,
                start_iso=start_iso,
                end_iso=_date_property(end)[0] if end is not None else "",
                all_day=all_day,
                location=_text(component, "LOCATION"),
                description=_text(component, "DESCRIPTION"),
                calendar_label=label,
                calendar_color=color,
            )
        )
    return events


def parse_ics_events(text: str, label: str, color: str = "#4285f4") -> list[CalendarEvent]:
    """Parse one or more VCALENDAR blocks into CalendarEvents, skipping untitled events."""
    if "BEGIN:VCALENDAR" not in text:
        raise DataError("Not an iCalendar document")
    try:
        calendars = Calendar.from_ical(text, multiple=True)
    except ValueError as e:
        raise DataError(f"Invalid iCalendar data: {e}") from e
    events = []
    for cal in calendars:
        events.extend(events_from_calendar(cal, label, color))
    return events


def parse_caldav_multistatus(xml_text: str, label: str, color: str = "#4285f4") -> list[CalendarEvent]:
    """Extract events from a CalDAV REPORT multistatus body.

    Falls back to treating the body as raw iCalendar when it is not XML.
    """
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as e:
        if "BEGIN:VCALENDAR" in xml_text:
            return parse_ics_events(xml_text, label, color)
        raise DataError(f"Invalid CalDAV response: {e}") from e

    events = []
    for node in root.iter(f"{{{CALDAV_NS}}}calendar-data"):
        if node.text and node.text.strip():
            events.extend(parse_ics_events(node.text, label, color))
    return events
