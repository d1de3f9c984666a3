from __future__ import annotations

import asyncio
from datetime import UTC, datetime

import pytest

from pygeotrack.dispatcher import DualSinkDispatcher
from pygeotrack.exceptions import AnalyticsError, PersistenceError
from pygeotrack.models.reading import Reading
from pygeotrack.models.record import SinkResult, StoredLocationRecord
from pygeotrack.sinks.memory import InMemoryAnalyticsSink, InMemoryLocationRepository
from pygeotrack.state.store import ReconciliationStore

DEVICE = "device-a"
READING = Reading(latitude=40.7, longitude=-74.0, accuracy=12.0, captured_at=datetime(2026, 1, 1, tzinfo=UTC))


class FailingAnalytics(InMemoryAnalyticsSink):
    async def set_last_known_location(self, *args: float | None, **kwargs: float | None) -> SinkResult:
        raise AnalyticsError("braze down")


class RejectingAnalytics(InMemoryAnalyticsSink):
    async def set_last_known_location(self, *args: float | None, **kwargs: float | None) -> SinkResult:
        return SinkResult(ok=False, detail="quota exceeded")


class SlowAnalytics(InMemoryAnalyticsSink):
    def __init__(self) -> None:
        super().__init__()
        self.release = asyncio.Event()

    async def set_last_known_location(self, *args: float | None, **kwargs: float | None) -> SinkResult:
        await self.release.wait()
        return await super().set_last_known_location(*args, **kwargs)  # type: ignore[arg-type]


class FailingRepository(InMemoryLocationRepository):
    async def upsert(self, record: StoredLocationRecord) -> StoredLocationRecord:
        raise PersistenceError("db down")


def _store(repo: InMemoryLocationRepository | None = None) -> ReconciliationStore:
    return ReconciliationStore(repo if repo is not None else InMemoryLocationRepository(), clock=lambda: datetime(2026, 1, 1, tzinfo=UTC))


@pytest.mark.asyncio
async def test_dispatch_sends_reading_to_both_sinks() -> None:
    analytics = InMemoryAnalyticsSink()
    dispatcher = DualSinkDispatcher(store=_store(), analytics=analytics)

    outcome = await dispatcher.dispatch(DEVICE, READING)

    assert outcome.analytics_ok
    assert outcome.persisted
    assert outcome.record is not None and outcome.record.latitude == 40.7
    assert analytics.locations == [(40.7, -74.0, 12.0, None, None)]


@pytest.mark.asyncio
async def test_analytics_failure_does_not_block_persistence() -> None:
    repo = InMemoryLocationRepository()
    dispatcher = DualSinkDispatcher(store=_store(repo), analytics=FailingAnalytics())

    outcome = await dispatcher.dispatch(DEVICE, READING)

    assert not outcome.analytics_ok
    assert outcome.persisted
    assert len(repo) == 1


@pytest.mark.asyncio
async def test_persistence_failure_does_not_block_analytics() -> None:
    analytics = InMemoryAnalyticsSink()
    dispatcher = DualSinkDispatcher(store=_store(FailingRepository()), analytics=analytics)

    outcome = await dispatcher.dispatch(DEVICE, READING)

    assert outcome.analytics_ok
    assert not outcome.persisted
    assert len(analytics.locations) == 1


@pytest.mark.asyncio
async def test_rejected_analytics_result_counts_as_failure(caplog: pytest.LogCaptureFixture) -> None:
    dispatcher = DualSinkDispatcher(store=_store(), analytics=RejectingAnalytics())

    with caplog.at_level("WARNING"):
        outcome = await dispatcher.dispatch(DEVICE, READING)

    assert not outcome.analytics_ok
    assert outcome.persisted
    assert "quota exceeded" in caplog.text


@pytest.mark.asyncio
async def test_slow_analytics_does_not_delay_persistence() -> None:
    repo = InMemoryLocationRepository()
    analytics = SlowAnalytics()
    dispatcher = DualSinkDispatcher(store=_store(repo), analytics=analytics)

    task = dispatcher.dispatch_nowait(DEVICE, READING)
    for _ in range(10):
        await asyncio.sleep(0)

    assert len(repo) == 1
    assert not task.done()
    assert dispatcher.pending == 1

    analytics.release.set()
    await dispatcher.drain()
    assert task.result().analytics_ok
    assert dispatcher.pending == 0
