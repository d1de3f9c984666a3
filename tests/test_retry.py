from __future__ import annotations

import asyncio
from collections.abc import Callable

import pytest

from pygeotrack.adapter import PositionSourceAdapter
from pygeotrack.exceptions import PermissionDeniedError, PositionTimeoutError, PositionUnavailableError
from pygeotrack.hosts.base import HostErrorCode
from pygeotrack.hosts.memory import MemoryLocationHost
from pygeotrack.models.options import PositionOptions
from pygeotrack.retry import RetryController

OPTIONS = PositionOptions(high_accuracy=True, timeout_ms=10_000, max_reading_age_ms=0)


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class GatedSleep(RecordingSleep):
    def __init__(self) -> None:
        super().__init__()
        self.gate = asyncio.Event()

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await self.gate.wait()


async def _wait_until(predicate: Callable[[], bool], attempts: int = 100) -> None:
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")


async def _settle(iterations: int = 20) -> None:
    for _ in range(iterations):
        await asyncio.sleep(0)


def _controller(host: MemoryLocationHost, sleep: RecordingSleep) -> RetryController:
    return RetryController(PositionSourceAdapter(host), max_retries=3, base_delay=1.0, sleep=sleep)


@pytest.mark.asyncio
async def test_permission_denied_is_never_retried() -> None:
    host = MemoryLocationHost()
    host.queue_error(HostErrorCode.PERMISSION_DENIED, "User denied Geolocation")
    sleep = RecordingSleep()
    retry = _controller(host, sleep)

    with pytest.raises(PermissionDeniedError):
        await retry.request(OPTIONS)

    assert len(host.requests) == 1
    assert sleep.delays == []
    assert retry.retry_count == 0


@pytest.mark.asyncio
async def test_transient_failures_back_off_2_4_8_then_surface() -> None:
    host = MemoryLocationHost()
    host.queue_errors(HostErrorCode.TIMEOUT, 4)
    sleep = RecordingSleep()
    retry = _controller(host, sleep)

    with pytest.raises(PositionTimeoutError):
        await retry.request(OPTIONS)

    assert sleep.delays == [2.0, 4.0, 8.0]
    assert len(host.requests) == 4
    assert retry.retry_count == 0


@pytest.mark.asyncio
async def test_retries_use_progressively_lenient_options() -> None:
    host = MemoryLocationHost()
    host.queue_errors(HostErrorCode.POSITION_UNAVAILABLE, 4)
    retry = _controller(host, RecordingSleep())

    with pytest.raises(PositionUnavailableError):
        await retry.request(OPTIONS)

    first, *retries = host.requests
    assert first == OPTIONS
    assert all(not options.high_accuracy for options in retries)
    timeouts = [options.timeout_ms for options in retries]
    assert timeouts == sorted(timeouts)
    assert timeouts[0] > OPTIONS.timeout_ms
    assert all(options.max_reading_age_ms >= 600_000 for options in retries)


@pytest.mark.asyncio
async def test_success_after_retry_resets_counter() -> None:
    host = MemoryLocationHost()
    host.queue_error(HostErrorCode.POSITION_UNAVAILABLE)
    host.queue_error(HostErrorCode.TIMEOUT)
    host.queue_position(52.37, 4.89, accuracy=25.0)
    sleep = RecordingSleep()
    retry = _controller(host, sleep)

    reading = await retry.request(OPTIONS)

    assert reading.latitude == 52.37
    assert sleep.delays == [2.0, 4.0]
    assert retry.retry_count == 0


@pytest.mark.asyncio
async def test_permission_denied_during_retry_chain_stops_and_resets() -> None:
    host = MemoryLocationHost()
    host.queue_error(HostErrorCode.TIMEOUT)
    host.queue_error(HostErrorCode.PERMISSION_DENIED)
    sleep = RecordingSleep()
    retry = _controller(host, sleep)

    with pytest.raises(PermissionDeniedError):
        await retry.request(OPTIONS)

    assert sleep.delays == [2.0]
    assert retry.retry_count == 0


@pytest.mark.asyncio
async def test_second_caller_joins_pending_chain_instead_of_starting_another() -> None:
    host = MemoryLocationHost()
    host.queue_error(HostErrorCode.TIMEOUT)
    host.queue_error(HostErrorCode.POSITION_UNAVAILABLE)
    host.queue_position(48.85, 2.35)
    sleep = GatedSleep()
    retry = _controller(host, sleep)

    first = asyncio.create_task(retry.request(OPTIONS))
    await _wait_until(lambda: retry.chain_pending and sleep.delays == [2.0])
    assert retry.retry_count == 1

    # Not blocked by the pending chain: its own first attempt runs right away.
    second = asyncio.create_task(retry.request(OPTIONS))
    await _wait_until(lambda: len(host.requests) == 2)
    await _settle()

    sleep.gate.set()
    first_reading, second_reading = await asyncio.gather(first, second)

    assert first_reading == second_reading
    assert sleep.delays == [2.0]
    assert len(host.requests) == 3
    assert retry.retry_count == 0


@pytest.mark.asyncio
async def test_cancel_aborts_pending_chain() -> None:
    host = MemoryLocationHost()
    host.queue_error(HostErrorCode.TIMEOUT)
    sleep = GatedSleep()
    retry = _controller(host, sleep)

    task = asyncio.create_task(retry.request(OPTIONS))
    await _wait_until(lambda: retry.chain_pending)

    retry.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert retry.retry_count == 0
    assert not retry.chain_pending


def test_backoff_delay_doubles() -> None:
    retry = RetryController(PositionSourceAdapter(MemoryLocationHost()), base_delay=1.0)
    assert [retry.backoff_delay(n) for n in (1, 2, 3)] == [2.0, 4.0, 8.0]
