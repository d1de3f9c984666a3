"""Position source adapter.

Translates the host's callback-based one-shot and watch primitives into
:class:`~pygeotrack.models.reading.Reading` values and typed
:class:`~pygeotrack.exceptions.PositionError` failures. No retries, no
persistence.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import UTC, datetime

from pydantic import ValidationError

from pygeotrack._constants import MSG_PERMISSION_DENIED, MSG_TIMEOUT, MSG_UNAVAILABLE, unknown_error_message
from pygeotrack.exceptions import (
    PermissionDeniedError,
    PositionError,
    PositionTimeoutError,
    PositionUnavailableError,
    PositionUnknownError,
)
from pygeotrack.hosts.base import HostErrorCode, HostPosition, HostPositionError, LocationHost
from pygeotrack.models._base import parse_timestamp
from pygeotrack.models.options import PositionOptions
from pygeotrack.models.reading import Reading

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def position_error_from_host(failure: HostPositionError) -> PositionError:
    """Map a host failure to the typed exception taxonomy."""
    code = HostErrorCode(failure.code)
    if code == HostErrorCode.PERMISSION_DENIED:
        return PermissionDeniedError(MSG_PERMISSION_DENIED, host_code=failure.code)
    if code == HostErrorCode.POSITION_UNAVAILABLE:
        return PositionUnavailableError(MSG_UNAVAILABLE, host_code=failure.code)
    if code == HostErrorCode.TIMEOUT:
        return PositionTimeoutError(MSG_TIMEOUT, host_code=failure.code)
    return PositionUnknownError(unknown_error_message(failure.message or "unknown"), host_code=failure.code)


class PositionSourceAdapter:
    """Normalizes a :class:`~pygeotrack.hosts.base.LocationHost`."""

    def __init__(
        self,
        host: LocationHost,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._host = host
        self._clock = clock

    def to_reading(self, position: HostPosition) -> Reading:
        """Build a :class:`Reading`, raising ``PositionUnknownError`` for malformed fixes."""
        try:
            captured_at = parse_timestamp(position.timestamp) if position.timestamp else None
        except (ValueError, OverflowError, OSError) as exc:
            raise PositionUnknownError(unknown_error_message("invalid fix time")) from exc
        try:
            return Reading(
                latitude=position.latitude,
                longitude=position.longitude,
                accuracy=position.accuracy,
                altitude=position.altitude,
                altitude_accuracy=position.altitude_accuracy,
                captured_at=captured_at or self._clock(),
            )
        except ValidationError as exc:
            detail = f"invalid position from host: {exc.error_count()} error(s)"
            raise PositionUnknownError(unknown_error_message(detail)) from exc

    async def request_once(self, options: PositionOptions) -> Reading:
        """Query the host once.

        Raises
        ------
        PermissionDeniedError
            Location access refused.
        PositionUnavailableError, PositionTimeoutError, PositionUnknownError
            Transient failures. A host that does not answer within
            ``options.timeout_ms`` surfaces as ``PositionTimeoutError``.
        """
        loop = asyncio.get_running_loop()
        future: asyncio.Future[HostPosition] = loop.create_future()

        def on_success(position: HostPosition) -> None:
            if not future.done():
                future.set_result(position)

        def on_error(failure: HostPositionError) -> None:
            if not future.done():
                future.set_exception(position_error_from_host(failure))

        _logger.debug("One-shot position request options=%s", options.model_dump())
        self._host.get_current_position(on_success, on_error, options)
        try:
            position = await asyncio.wait_for(future, timeout=options.timeout_seconds)
        except TimeoutError as exc:
            raise PositionTimeoutError(MSG_TIMEOUT) from exc
        return self.to_reading(position)

    def subscribe(
        self,
        options: PositionOptions,
        on_reading: Callable[[Reading], None],
        on_failure: Callable[[PositionError], None],
    ) -> int:
        """Open a host watch; returns the host watch id."""

        def on_success(position: HostPosition) -> None:
            try:
                reading = self.to_reading(position)
            except PositionError as exc:
                on_failure(exc)
                return
            on_reading(reading)

        def on_error(failure: HostPositionError) -> None:
            on_failure(position_error_from_host(failure))

        watch_id = self._host.watch_position(on_success, on_error, options)
        _logger.debug("Opened host watch id=%s options=%s", watch_id, options.model_dump())
        return watch_id

    def unsubscribe(self, watch_id: int) -> None:
        self._host.clear_watch(watch_id)
        _logger.debug("Cleared host watch id=%s", watch_id)
