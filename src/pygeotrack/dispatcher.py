"""Fan-out of accepted readings to the analytics and persistence sinks.

The two sink calls run concurrently and are isolated from each other: a
failure in one is logged and never delays, retries or cancels the other.
Nothing raised by a sink propagates to the caller.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from pygeotrack.models.reading import Reading
from pygeotrack.models.record import StoredLocationRecord
from pygeotrack.sinks.base import AnalyticsSink
from pygeotrack.state.store import ReconciliationStore

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DispatchOutcome:
    """What each sink did with one reading."""

    analytics_ok: bool
    record: StoredLocationRecord | None

    @property
    def persisted(self) -> bool:
        return self.record is not None


class DualSinkDispatcher:
    """Sends each accepted reading to both sinks."""

    def __init__(
        self,
        *,
        store: ReconciliationStore,
        analytics: AnalyticsSink,
        logger: logging.Logger | None = None,
    ) -> None:
        self._store = store
        self._analytics = analytics
        self._logger = logger or _logger
        self._pending: set[asyncio.Task[DispatchOutcome]] = set()

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def dispatch(self, device_identity: str, reading: Reading) -> DispatchOutcome:
        analytics_ok, record = await asyncio.gather(
            self._send_analytics(reading),
            self._persist(device_identity, reading),
        )
        return DispatchOutcome(analytics_ok=analytics_ok, record=record)

    def dispatch_nowait(self, device_identity: str, reading: Reading) -> asyncio.Task[DispatchOutcome]:
        """Schedule :meth:`dispatch` in the background and return its task."""
        task = asyncio.ensure_future(self.dispatch(device_identity, reading))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self) -> None:
        """Wait for every background dispatch to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _send_analytics(self, reading: Reading) -> bool:
        try:
            result = await self._analytics.set_last_known_location(*reading.location_tuple())
        except Exception:
            self._logger.warning("Analytics sink failed to set last known location", exc_info=True)
            return False
        if not result.ok:
            self._logger.warning("Analytics sink rejected location: %s", result.detail)
            return False
        return True

    async def _persist(self, device_identity: str, reading: Reading) -> StoredLocationRecord | None:
        try:
            record = await self._store.upsert(device_identity, reading)
        except Exception:
            self._logger.warning("Failed to save location for device=%s", device_identity, exc_info=True)
            return None
        self._logger.debug("Location saved id=%s label=%s", record.id, record.time_since_update_label)
        return record
