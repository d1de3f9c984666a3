"""Supabase (PostgREST) location repository.

Expected table layout::

    create table locations (
        id uuid primary key,
        device_id text not null,
        latitude double precision not null,
        longitude double precision not null,
        accuracy double precision,
        altitude double precision,
        altitude_accuracy double precision,
        captured_at timestamptz not null,
        last_updated_at timestamptz not null,
        time_since_update text not null
    );
    create index on locations (device_id, last_updated_at desc);
"""

from __future__ import annotations

import logging
from typing import Any

import aiohttp
from pydantic import ValidationError

from pygeotrack._transport import RestTransport, Transport
from pygeotrack.config import SupabaseSettings
from pygeotrack.exceptions import PersistenceError, TransportError
from pygeotrack.models.record import ConnectionStatus, StoredLocationRecord

_logger = logging.getLogger(__name__)


def build_supabase_transport(settings: SupabaseSettings, http_session: aiohttp.ClientSession) -> RestTransport:
    settings.validate()
    key = settings.key or ""
    return RestTransport(
        f"{(settings.url or '').rstrip('/')}/rest/v1",
        http_session,
        headers={"apikey": key, "authorization": f"Bearer {key}"},
    )


def _parse_rows(rows: Any, endpoint: str) -> list[StoredLocationRecord]:
    if not isinstance(rows, list):
        raise PersistenceError(f"Unexpected response from {endpoint}: expected a list of rows")
    try:
        return [StoredLocationRecord.model_validate(row) for row in rows]
    except ValidationError as exc:
        raise PersistenceError(f"Malformed location row from {endpoint}: {exc.error_count()} error(s)") from exc


class SupabaseLocationRepository:
    """:class:`~pygeotrack.sinks.base.LocationRepository` backed by a Supabase table."""

    def __init__(self, transport: Transport, *, table: str = "locations") -> None:
        self._transport = transport
        self._table = table

    @property
    def _path(self) -> str:
        return f"/{self._table}"

    async def test_connection(self) -> ConnectionStatus:
        try:
            await self._transport.request("GET", self._path, params={"select": "id", "limit": "1"})
        except TransportError as exc:
            _logger.warning("Database connection failed: %s", exc)
            return ConnectionStatus(ok=False, detail=str(exc))
        return ConnectionStatus(ok=True, detail="Database connection successful")

    async def upsert(self, record: StoredLocationRecord) -> StoredLocationRecord:
        try:
            rows = await self._transport.request(
                "POST",
                self._path,
                params={"on_conflict": "id"},
                json_body=[record.to_row()],
                headers={"prefer": "resolution=merge-duplicates,return=representation"},
            )
        except TransportError as exc:
            raise PersistenceError(f"Failed to upsert location record {record.id}: {exc}") from exc
        stored = _parse_rows(rows, self._path)
        if not stored:
            raise PersistenceError(f"Upsert of location record {record.id} returned no row")
        return stored[0]

    async def list_by_device(self, device_identity: str, limit: int) -> list[StoredLocationRecord]:
        try:
            rows = await self._transport.request(
                "GET",
                self._path,
                params={
                    "select": "*",
                    "device_id": f"eq.{device_identity}",
                    "order": "last_updated_at.desc",
                    "limit": str(max(0, limit)),
                },
            )
        except TransportError as exc:
            raise PersistenceError(f"Failed to list locations for device {device_identity}: {exc}") from exc
        return _parse_rows(rows or [], self._path)

    async def delete(self, record_id: str) -> None:
        try:
            await self._transport.request("DELETE", self._path, params={"id": f"eq.{record_id}"})
        except TransportError as exc:
            raise PersistenceError(f"Failed to delete location record {record_id}: {exc}") from exc
