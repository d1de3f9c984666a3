"""Structural interfaces of the downstream sinks.

Having protocols here makes it easy to pass test doubles while keeping the
production implementations (Supabase, Braze) concrete.
"""

from __future__ import annotations

from typing import Protocol

from pygeotrack.models.record import ConnectionStatus, SinkResult, StoredLocationRecord


class LocationRepository(Protocol):
    """Persistence sink: a small CRUD interface over stored location records."""

    async def test_connection(self) -> ConnectionStatus:
        ...

    async def upsert(self, record: StoredLocationRecord) -> StoredLocationRecord:
        """Insert *record* or replace the record with the same ``id``.

        Raises :class:`~pygeotrack.exceptions.PersistenceError` on failure.
        """
        ...

    async def list_by_device(self, device_identity: str, limit: int) -> list[StoredLocationRecord]:
        """Records for *device_identity*, newest ``last_updated_at`` first."""
        ...

    async def delete(self, record_id: str) -> None:
        ...


class AnalyticsSink(Protocol):
    """Behavioral-analytics profile store."""

    async def initialize(self) -> None:
        ...

    async def set_last_known_location(
        self,
        latitude: float,
        longitude: float,
        accuracy: float | None = None,
        altitude: float | None = None,
        altitude_accuracy: float | None = None,
    ) -> SinkResult:
        ...

    def get_current_user_id(self) -> str | None:
        ...
