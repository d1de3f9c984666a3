from __future__ import annotations

import asyncio
from datetime import UTC, datetime

import pytest

from pygeotrack.adapter import PositionSourceAdapter, position_error_from_host
from pygeotrack.exceptions import (
    PermissionDeniedError,
    PositionError,
    PositionErrorKind,
    PositionTimeoutError,
    PositionUnavailableError,
    PositionUnknownError,
)
from pygeotrack.hosts.base import HostErrorCode, HostPosition, HostPositionError
from pygeotrack.hosts.memory import MemoryLocationHost
from pygeotrack.models.options import PositionOptions
from pygeotrack.models.reading import Reading

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def _adapter(host: MemoryLocationHost) -> PositionSourceAdapter:
    return PositionSourceAdapter(host, clock=lambda: NOW)


@pytest.mark.asyncio
async def test_request_once_normalizes_host_position() -> None:
    host = MemoryLocationHost()
    host.queue_position(40.7128, -74.006, accuracy=10.5, altitude=None, altitude_accuracy=None)

    reading = await _adapter(host).request_once(PositionOptions.one_shot())

    assert reading == Reading(latitude=40.7128, longitude=-74.006, accuracy=10.5, captured_at=NOW)
    assert host.requests == [PositionOptions.one_shot()]


@pytest.mark.asyncio
async def test_request_once_prefers_host_fix_time() -> None:
    host = MemoryLocationHost([HostPosition(latitude=1.0, longitude=2.0, timestamp=1_767_225_600)])

    reading = await _adapter(host).request_once(PositionOptions.one_shot())

    assert reading.captured_at == datetime(2026, 1, 1, tzinfo=UTC)


@pytest.mark.parametrize(
    ("code", "expected", "kind"),
    [
        (HostErrorCode.PERMISSION_DENIED, PermissionDeniedError, PositionErrorKind.PERMISSION_DENIED),
        (HostErrorCode.POSITION_UNAVAILABLE, PositionUnavailableError, PositionErrorKind.UNAVAILABLE),
        (HostErrorCode.TIMEOUT, PositionTimeoutError, PositionErrorKind.TIMEOUT),
        (42, PositionUnknownError, PositionErrorKind.UNKNOWN),
    ],
)
@pytest.mark.asyncio
async def test_request_once_maps_host_errors(code: int, expected: type[PositionError], kind: str) -> None:
    host = MemoryLocationHost()
    host.queue_error(code, "boom")

    with pytest.raises(expected) as excinfo:
        await _adapter(host).request_once(PositionOptions.one_shot())

    assert excinfo.value.kind == kind
    assert excinfo.value.host_code == int(code)


def test_error_messages_are_human_readable() -> None:
    assert str(position_error_from_host(HostPositionError(1))) == "Location access denied by user"
    assert str(position_error_from_host(HostPositionError(2))) == "Location information unavailable"
    assert str(position_error_from_host(HostPositionError(3))) == "Location request timed out"
    assert str(position_error_from_host(HostPositionError(9, "kaput"))) == "Geolocation error: kaput"


@pytest.mark.asyncio
async def test_silent_host_surfaces_as_timeout_not_hang() -> None:
    host = MemoryLocationHost()

    with pytest.raises(PositionTimeoutError):
        await _adapter(host).request_once(PositionOptions(timeout_ms=20))


@pytest.mark.asyncio
async def test_out_of_range_fix_is_reported_as_unknown_failure() -> None:
    host = MemoryLocationHost()
    host.queue_position(123.0, 0.0)

    with pytest.raises(PositionUnknownError):
        await _adapter(host).request_once(PositionOptions.one_shot())


@pytest.mark.asyncio
async def test_subscribe_delivers_readings_and_failures_until_unsubscribed() -> None:
    host = MemoryLocationHost()
    adapter = _adapter(host)
    readings: list[Reading] = []
    failures: list[PositionError] = []

    watch_id = adapter.subscribe(PositionOptions.continuous(), readings.append, failures.append)
    host.emit(HostPosition(latitude=51.5, longitude=-0.12, accuracy=30.0))
    host.emit_error(HostErrorCode.POSITION_UNAVAILABLE)
    for _ in range(3):
        await asyncio.sleep(0)

    adapter.unsubscribe(watch_id)
    host.emit(HostPosition(latitude=0.0, longitude=0.0))
    await asyncio.sleep(0)

    assert [r.latitude for r in readings] == [51.5]
    assert [type(f) for f in failures] == [PositionUnavailableError]
    assert host.active_watches == []
    assert host.watch_options == [PositionOptions.continuous()]


@pytest.mark.parametrize("fix_time", [float("inf"), 1e20])
@pytest.mark.asyncio
async def test_unrepresentable_fix_time_is_reported_as_unknown_failure(fix_time: float) -> None:
    host = MemoryLocationHost([HostPosition(latitude=52.1, longitude=4.3, timestamp=fix_time)])

    with pytest.raises(PositionUnknownError, match="invalid fix time"):
        await _adapter(host).request_once(PositionOptions.one_shot())


@pytest.mark.asyncio
async def test_unrepresentable_fix_time_on_watch_goes_to_failure_callback() -> None:
    host = MemoryLocationHost()
    adapter = _adapter(host)
    readings: list[Reading] = []
    failures: list[PositionError] = []

    adapter.subscribe(PositionOptions.continuous(), readings.append, failures.append)
    host.emit(HostPosition(latitude=52.1, longitude=4.3, timestamp=float("inf")))
    host.emit(HostPosition(latitude=52.2, longitude=4.4))
    for _ in range(3):
        await asyncio.sleep(0)

    assert [type(f) for f in failures] == [PositionUnknownError]
    assert [r.latitude for r in readings] == [52.2]
