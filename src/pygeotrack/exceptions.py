"""Custom exception hierarchy for pygeotrack."""

from __future__ import annotations

from enum import StrEnum


class PositionErrorKind(StrEnum):
    """Failure taxonomy for position acquisition."""

    PERMISSION_DENIED = "permission_denied"
    UNAVAILABLE = "unavailable"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"


class GeoTrackError(Exception):
    """Base exception for all pygeotrack errors."""


class GeoConfigError(GeoTrackError):
    """Invalid or missing configuration."""


class PositionError(GeoTrackError):
    """The host could not produce a position reading."""

    kind: PositionErrorKind = PositionErrorKind.UNKNOWN
    retryable: bool = True

    def __init__(self, message: str, *, host_code: int | None = None) -> None:
        self.host_code = host_code
        super().__init__(message)

    @property
    def message(self) -> str:
        return str(self)


class PermissionDeniedError(PositionError):
    """The user (or platform) refused location access.

    Terminal: retrying cannot succeed until the user re-grants access.
    """

    kind = PositionErrorKind.PERMISSION_DENIED
    retryable = False


class TransientPositionError(PositionError):
    """A failure that may clear up on a later attempt."""


class PositionUnavailableError(TransientPositionError):
    """No fix available (poor signal, host rate limiting, disconnected feed)."""

    kind = PositionErrorKind.UNAVAILABLE


class PositionTimeoutError(TransientPositionError):
    """The host did not answer within ``timeout_ms``."""

    kind = PositionErrorKind.TIMEOUT


class PositionUnknownError(TransientPositionError):
    """Unclassified host failure, retried like ``PositionUnavailableError``."""

    kind = PositionErrorKind.UNKNOWN


class SinkError(GeoTrackError):
    """A downstream sink rejected or failed to store a reading."""


class PersistenceError(SinkError):
    """The location repository failed."""


class AnalyticsError(SinkError):
    """The analytics profile sink failed."""


class TransportError(SinkError):
    """HTTP-level failure (network, non-2xx, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)
