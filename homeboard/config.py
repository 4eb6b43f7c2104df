# ABOUTME: Dashboard configuration loaded from environment variables and .env files.
# ABOUTME: Exposes a dotted-key accessor so components never reach into globals.

import os
from collections.abc import Mapping
from typing import Any, Literal, Protocol

from dotenv import load_dotenv
from pydantic import BaseModel, Field


class ConfigAccessor(Protocol):
    """Opaque key-value view of configuration, e.g. ``get("location.lat")``."""

    def get(self, key: str) -> Any: ...


class LocationSettings(BaseModel):
    # Geocoded from city and state unless both are set.
    lat: float | None = None
    lon: float | None = None
    city: str = "New York"
    state: str = "NY"


class DisplaySettings(BaseModel):
    timezone: str = "America/New_York"
    tomorrow_threshold_hour: int = Field(default=17, ge=0, le=24)
    # Milliseconds between periodic refreshes.
    refresh_interval: int = Field(default=1_800_000, gt=0)


class CalendarSettings(BaseModel):
    backend: Literal["none", "oauth", "caldav", "ics"] = "none"
    ics_url: str | None = None
    ics_name: str = "My Calendar"
    ics_relay: str | None = None
    caldav_provider: Literal["google", "apple", "outlook", "generic"] = "google"
    caldav_username: str | None = None
    caldav_password: str | None = None
    caldav_url: str | None = None


class DashboardConfig(BaseModel):
    """Everything the dashboard core reads from configuration."""

    openweather_api_key: str = ""
    location: LocationSettings = Field(default_factory=LocationSettings)
    settings: DisplaySettings = Field(default_factory=DisplaySettings)
    calendar: CalendarSettings = Field(default_factory=CalendarSettings)

    def get(self, key: str) -> Any:
        """Resolve a dotted key such as ``settings.timezone``; unknown keys give None."""
        node: Any = self
        for part in key.split("."):
            if isinstance(node, BaseModel):
                node = getattr(node, part, None)
            elif isinstance(node, Mapping):
                node = node.get(part)
            else:
                return None
            if node is None:
                return None
        return node


# Environment variable -> dotted config key.
ENV_KEYS = {
    "OPENWEATHER_API_KEY": "openweather_api_key",
    "DASHBOARD_LAT": "location.lat",
    "DASHBOARD_LON": "location.lon",
    "DASHBOARD_CITY": "location.city",
    "DASHBOARD_STATE": "location.state",
    "DASHBOARD_TIMEZONE": "settings.timezone",
    "DASHBOARD_TOMORROW_THRESHOLD_HOUR": "settings.tomorrow_threshold_hour",
    "DASHBOARD_REFRESH_INTERVAL_MS": "settings.refresh_interval",
    "CALENDAR_BACKEND": "calendar.backend",
    "CALENDAR_ICS_URL": "calendar.ics_url",
    "CALENDAR_ICS_NAME": "calendar.ics_name",
    "CALENDAR_ICS_RELAY": "calendar.ics_relay",
    "CALDAV_PROVIDER": "calendar.caldav_provider",
    "CALDAV_USERNAME": "calendar.caldav_username",
    "CALDAV_PASSWORD": "calendar.caldav_password",
    "CALDAV_URL": "calendar.caldav_url",
}


def load_config(environ: Mapping[str, str] | None = None) -> DashboardConfig:
    """Build a DashboardConfig from environment variables.

    Reads ``.env`` first when using the process environment. Unset variables keep
    the model defaults; values are coerced and validated by pydantic.
    """
    if environ is None:
        load_dotenv()
        environ = os.environ

    data: dict[str, Any] = {}
    for env_name, dotted in ENV_KEYS.items():
        value = environ.get(env_name)
        if value is None or value == "":
            continue
        *parents, leaf = dotted.split(".")
        target = data
        for part in parents:
            target = target.setdefault(part, {})
        target[leaf] = value
    return DashboardConfig.model_validate(data)
