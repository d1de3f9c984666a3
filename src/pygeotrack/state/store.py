"""Reconciliation store: one current-location record per device.

This is the only component allowed to write location records. A reading
for a device that already has a record replaces that record in place; it
never creates a second one.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Callable
from datetime import UTC, datetime

from pygeotrack._constants import JUST_NOW_LABEL
from pygeotrack.models.reading import Reading
from pygeotrack.models.record import StoredLocationRecord
from pygeotrack.sinks.base import LocationRepository
from pygeotrack.state.recency import label_between

_logger = logging.getLogger(__name__)

# Enough to notice (and repair) duplicates left by other writers.
_LOOKUP_LIMIT = 10


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _new_record_id() -> str:
    return str(uuid.uuid4())


class ReconciliationStore:
    """Replace-or-insert over a :class:`LocationRepository`.

    Upserts for the same device are serialized within the process, so the
    push and backstop paths can never race each other into two rows. Writers
    in other processes are not coordinated with.
    """

    def __init__(
        self,
        repository: LocationRepository,
        *,
        clock: Callable[[], datetime] = _utcnow,
        id_factory: Callable[[], str] = _new_record_id,
    ) -> None:
        self._repository = repository
        self._clock = clock
        self._id_factory = id_factory
        self._locks: dict[str, asyncio.Lock] = {}

    @property
    def repository(self) -> LocationRepository:
        return self._repository

    def _lock(self, device_identity: str) -> asyncio.Lock:
        lock = self._locks.get(device_identity)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[device_identity] = lock
        return lock

    async def current(self, device_identity: str) -> StoredLocationRecord | None:
        records = await self._repository.list_by_device(device_identity, 1)
        return records[0] if records else None

    async def upsert(self, device_identity: str, reading: Reading) -> StoredLocationRecord:
        """Store *reading* as the device's current location.

        Raises
        ------
        PersistenceError
            The repository failed.
        """
        async with self._lock(device_identity):
            existing = await self._existing(device_identity)
            now = self._clock()
            if existing is None:
                record = StoredLocationRecord.from_reading(
                    record_id=self._id_factory(),
                    device_identity=device_identity,
                    reading=reading,
                    updated_at=now,
                    label=JUST_NOW_LABEL,
                )
                _logger.debug("Inserting first location record for device=%s", device_identity)
            else:
                label = label_between(existing.last_updated_at, now)
                record = existing.replaced_with(reading, updated_at=now, label=label)
                _logger.debug("Replacing location record id=%s (%s)", existing.id, label)
            return await self._repository.upsert(record)

    async def _existing(self, device_identity: str) -> StoredLocationRecord | None:
        records = await self._repository.list_by_device(device_identity, _LOOKUP_LIMIT)
        if not records:
            return None
        keep, extras = records[0], records[1:]
        for extra in extras:
            _logger.warning(
                "Removing duplicate location record id=%s for device=%s",
                extra.id,
                device_identity,
            )
            await self._repository.delete(extra.id)
        return keep
