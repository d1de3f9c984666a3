"""In-memory sinks, used when no remote sink is configured."""

from __future__ import annotations

import copy
import logging

from pygeotrack.models.record import ConnectionStatus, SinkResult, StoredLocationRecord

_logger = logging.getLogger(__name__)


class InMemoryLocationRepository:
    """Dict-backed :class:`~pygeotrack.sinks.base.LocationRepository`."""

    def __init__(self) -> None:
        self._records: dict[str, StoredLocationRecord] = {}

    def __len__(self) -> int:
        return len(self._records)

    async def test_connection(self) -> ConnectionStatus:
        return ConnectionStatus(ok=True, detail="In-memory store ready")

    async def upsert(self, record: StoredLocationRecord) -> StoredLocationRecord:
        self._records[record.id] = record
        return record

    async def list_by_device(self, device_identity: str, limit: int) -> list[StoredLocationRecord]:
        matches = [r for r in self._records.values() if r.device_identity == device_identity]
        matches.sort(key=lambda r: r.last_updated_at, reverse=True)
        return copy.copy(matches[: max(0, limit)])

    async def delete(self, record_id: str) -> None:
        self._records.pop(record_id, None)


class InMemoryAnalyticsSink:
    """Keeps the last known location per user in memory."""

    def __init__(self, user_id: str | None = None) -> None:
        self._user_id = user_id
        self.initialized = False
        self.locations: list[tuple[float, float, float | None, float | None, float | None]] = []

    async def initialize(self) -> None:
        self.initialized = True

    async def set_last_known_location(
        self,
        latitude: float,
        longitude: float,
        accuracy: float | None = None,
        altitude: float | None = None,
        altitude_accuracy: float | None = None,
    ) -> SinkResult:
        self.locations.append((latitude, longitude, accuracy, altitude, altitude_accuracy))
        _logger.debug("Recorded last known location for user=%s", self._user_id)
        return SinkResult(ok=True, detail="Location recorded")

    def get_current_user_id(self) -> str | None:
        return self._user_id
