# ABOUTME: Error taxonomy shared by the source fetchers and the sign-in flow.
# ABOUTME: Each exception carries the ErrorKind it is reported as in a Failure result.

from homeboard.models import ErrorKind


class DashboardError(Exception):
    """Base class for errors raised inside the dashboard core."""

    kind: ErrorKind = ErrorKind.DATA


class ConfigError(DashboardError):
    """A required setting is missing. Raised before any network attempt."""

    kind = ErrorKind.CONFIG


class NetworkError(DashboardError):
    """Transport or HTTP failure talking to a provider."""

    kind = ErrorKind.NETWORK


class DataError(DashboardError):
    """Provider answered, but with a body we cannot use."""

    kind = ErrorKind.DATA


class AuthError(DashboardError):
    """Credentials were rejected (401/403 class) or sign-in was denied."""

    kind = ErrorKind.AUTH
