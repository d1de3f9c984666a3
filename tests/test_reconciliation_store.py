from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta

import pytest

from pygeotrack.models.reading import Reading
from pygeotrack.models.record import StoredLocationRecord
from pygeotrack.sinks.memory import InMemoryLocationRepository
from pygeotrack.state.store import ReconciliationStore

DEVICE = "device_1767225600000_abc123xyz"


class FakeClock:
    def __init__(self) -> None:
        self.now = datetime(2026, 1, 1, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


def _reading(lat: float, lon: float, **fields: float | None) -> Reading:
    return Reading(latitude=lat, longitude=lon, captured_at=datetime(2026, 1, 1, tzinfo=UTC), **fields)


@pytest.mark.asyncio
async def test_first_reading_inserts_with_just_now_label() -> None:
    repo = InMemoryLocationRepository()
    store = ReconciliationStore(repo, clock=FakeClock())

    record = await store.upsert(DEVICE, _reading(40.7128, -74.006, accuracy=10.5))

    assert record.time_since_update_label == "just now"
    assert record.device_identity == DEVICE
    assert record.accuracy == 10.5
    assert len(repo) == 1


@pytest.mark.asyncio
async def test_later_reading_replaces_in_place_and_keeps_id() -> None:
    clock = FakeClock()
    repo = InMemoryLocationRepository()
    store = ReconciliationStore(repo, clock=clock)

    first = await store.upsert(DEVICE, _reading(40.0, -74.0, accuracy=10.0, altitude=12.0))
    clock.advance(90)
    second = await store.upsert(DEVICE, _reading(41.0, -73.0))

    assert second.id == first.id
    assert second.time_since_update_label == "1 minute ago"
    assert second.last_updated_at == clock.now
    # Every reading field is replaced, including ones the new reading lacks.
    assert second.altitude is None
    assert second.accuracy is None
    assert len(repo) == 1


@pytest.mark.asyncio
async def test_n_readings_leave_exactly_one_record_equal_to_last() -> None:
    clock = FakeClock()
    repo = InMemoryLocationRepository()
    store = ReconciliationStore(repo, clock=clock)

    last = None
    for i in range(7):
        last = _reading(10.0 + i, 20.0 + i, accuracy=float(i))
        await store.upsert(DEVICE, last)
        clock.advance(3600)

    records = await repo.list_by_device(DEVICE, 50)
    assert len(records) == 1
    assert records[0].reading == last
    assert records[0].time_since_update_label == "1 hour ago"


@pytest.mark.asyncio
async def test_devices_are_reconciled_independently() -> None:
    repo = InMemoryLocationRepository()
    store = ReconciliationStore(repo, clock=FakeClock())

    await store.upsert("device-a", _reading(1.0, 1.0))
    await store.upsert("device-b", _reading(2.0, 2.0))
    await store.upsert("device-a", _reading(3.0, 3.0))

    assert len(repo) == 2
    assert (await store.current("device-a")).latitude == 3.0  # type: ignore[union-attr]
    assert (await store.current("device-b")).latitude == 2.0  # type: ignore[union-attr]


@pytest.mark.asyncio
async def test_duplicate_records_are_collapsed_to_newest() -> None:
    clock = FakeClock()
    repo = InMemoryLocationRepository()
    older = StoredLocationRecord.from_reading(
        record_id="old",
        device_identity=DEVICE,
        reading=_reading(1.0, 1.0),
        updated_at=clock.now - timedelta(days=2),
        label="just now",
    )
    newer = StoredLocationRecord.from_reading(
        record_id="new",
        device_identity=DEVICE,
        reading=_reading(2.0, 2.0),
        updated_at=clock.now - timedelta(days=1),
        label="just now",
    )
    await repo.upsert(older)
    await repo.upsert(newer)

    store = ReconciliationStore(repo, clock=clock)
    record = await store.upsert(DEVICE, _reading(3.0, 3.0))

    records = await repo.list_by_device(DEVICE, 10)
    assert [r.id for r in records] == ["new"]
    assert record.id == "new"
    assert record.time_since_update_label == "1 day ago"


@pytest.mark.asyncio
async def test_concurrent_upserts_for_one_device_never_create_two_rows() -> None:
    repo = InMemoryLocationRepository()
    store = ReconciliationStore(repo, clock=FakeClock())

    await asyncio.gather(*(store.upsert(DEVICE, _reading(float(i), float(i))) for i in range(5)))

    records = await repo.list_by_device(DEVICE, 10)
    assert len(records) == 1
    # Arrival order wins: the last scheduled upsert ran last.
    assert records[0].latitude == 4.0
