"""High-level async client wiring host, sinks and the state machine."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

import aiohttp

from pygeotrack.adapter import PositionSourceAdapter
from pygeotrack.config import TrackerConfig
from pygeotrack.dispatcher import DualSinkDispatcher
from pygeotrack.exceptions import GeoConfigError, GeoTrackError
from pygeotrack.hosts.base import LocationHost
from pygeotrack.hosts.mqtt import OwnTracksMqttHost
from pygeotrack.machine import AcquisitionStateMachine
from pygeotrack.models.record import ConnectionStatus, StoredLocationRecord
from pygeotrack.permission import FilePermissionStore, LocalStateFile, PermissionStore, load_or_create_device_id
from pygeotrack.retry import RetryController, SleepFunc
from pygeotrack.sinks.base import AnalyticsSink, LocationRepository
from pygeotrack.sinks.braze import BrazeAnalyticsSink, build_braze_transport
from pygeotrack.sinks.memory import InMemoryAnalyticsSink, InMemoryLocationRepository
from pygeotrack.sinks.supabase import SupabaseLocationRepository, build_supabase_transport
from pygeotrack.state.store import ReconciliationStore
from pygeotrack.tracking import ContinuousTracker

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class GeoTrackClient:
    """Async client for location acquisition and reconciliation.

    Usage::

        async with GeoTrackClient(TrackerConfig.from_env()) as client:
            await client.tracker.startup()
            ...

    Any collaborator not passed explicitly is built from *config*: the
    Supabase repository and Braze sink when their settings are present
    (in-memory fallbacks otherwise), and the OwnTracks MQTT host.
    """

    def __init__(
        self,
        config: TrackerConfig,
        *,
        host: LocationHost | None = None,
        session: aiohttp.ClientSession | None = None,
        repository: LocationRepository | None = None,
        analytics: AnalyticsSink | None = None,
        permissions: PermissionStore | None = None,
        clock: Callable[[], datetime] = _utcnow,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        self._config = config
        self._host = host
        self._owned_host: OwnTracksMqttHost | None = None
        self._external_session = session is not None
        self._http_session = session
        self._repository = repository
        self._analytics = analytics
        self._permissions = permissions
        self._clock = clock
        self._sleep = sleep
        self._device_id: str | None = None
        self._tracker: AcquisitionStateMachine | None = None

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> GeoTrackClient:
        try:
            await self._start()
        except BaseException:
            await self.__aexit__(None, None, None)
            raise
        return self

    async def _start(self) -> None:
        loop = asyncio.get_running_loop()
        config = self._config
        if self._host is None and not config.mqtt.configured:
            raise GeoConfigError("No location host: pass host= or configure the MQTT host settings")
        state_file = LocalStateFile.in_directory(config.state_dir)

        device_id = config.device_id or load_or_create_device_id(state_file)
        self._device_id = device_id
        if self._permissions is None:
            self._permissions = FilePermissionStore(state_file)

        if self._repository is None:
            self._repository = self._build_repository()
        if self._analytics is None:
            self._analytics = self._build_analytics(device_id)
        await self._analytics.initialize()

        if self._host is None:
            self._host = await self._start_mqtt_host(loop, device_id)

        adapter = PositionSourceAdapter(self._host, clock=self._clock)
        store = ReconciliationStore(self._repository, clock=self._clock)
        dispatcher = DualSinkDispatcher(store=store, analytics=self._analytics)
        self._tracker = AcquisitionStateMachine(
            device_identity=device_id,
            retry=RetryController(
                adapter,
                max_retries=config.max_retries,
                base_delay=config.retry_base_delay,
                sleep=self._sleep,
            ),
            tracker=ContinuousTracker(
                adapter,
                options=config.continuous_options,
                backstop_interval=config.backstop_interval,
                sleep=self._sleep,
            ),
            dispatcher=dispatcher,
            permissions=self._permissions,
            one_shot_options=config.one_shot_options,
            wait_for_persistence=config.wait_for_persistence,
        )

    async def __aexit__(self, *exc: Any) -> None:
        tracker = self._tracker
        self._tracker = None
        if tracker is not None:
            await tracker.close()
        owned_host = self._owned_host
        self._owned_host = None
        if owned_host is not None:
            self._host = None
            await asyncio.get_running_loop().run_in_executor(None, owned_host.stop)
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def device_id(self) -> str:
        if self._device_id is None:
            raise GeoTrackError("Client not started. Use 'async with GeoTrackClient(...)'.")
        return self._device_id

    @property
    def tracker(self) -> AcquisitionStateMachine:
        if self._tracker is None:
            raise GeoTrackError("Client not started. Use 'async with GeoTrackClient(...)'.")
        return self._tracker

    async def test_connection(self) -> ConnectionStatus:
        """Check that the persistence sink is reachable."""
        return await self._require_repository().test_connection()

    async def history(self, limit: int | None = None) -> list[StoredLocationRecord]:
        """Stored records for this device, newest first."""
        count = self._config.history_limit if limit is None else limit
        return await self._require_repository().list_by_device(self.device_id, count)

    async def current_location(self) -> StoredLocationRecord | None:
        records = await self.history(1)
        return records[0] if records else None

    # ------------------------------------------------------------------
    # Wiring
    # ------------------------------------------------------------------

    def _require_repository(self) -> LocationRepository:
        if self._repository is None:
            raise GeoTrackError("Client not started. Use 'async with GeoTrackClient(...)'.")
        return self._repository

    def _ensure_http_session(self) -> aiohttp.ClientSession:
        if self._http_session is None:
            self._http_session = aiohttp.ClientSession()
        return self._http_session

    def _build_repository(self) -> LocationRepository:
        settings = self._config.supabase
        if not settings.configured:
            _logger.warning("Supabase not configured; locations are kept in memory only")
            return InMemoryLocationRepository()
        settings.validate()
        transport = build_supabase_transport(settings, self._ensure_http_session())
        return SupabaseLocationRepository(transport, table=settings.table)

    def _build_analytics(self, device_id: str) -> AnalyticsSink:
        settings = self._config.braze
        if not settings.configured:
            _logger.warning("Braze not configured; analytics locations are kept in memory only")
            return InMemoryAnalyticsSink(user_id=device_id)
        settings.validate()
        transport = build_braze_transport(settings, self._ensure_http_session())
        return BrazeAnalyticsSink(transport, external_id=device_id)

    async def _start_mqtt_host(self, loop: asyncio.AbstractEventLoop, device_id: str) -> LocationHost:
        host = OwnTracksMqttHost(self._config.mqtt, loop=loop, client_id=f"pygeotrack_{device_id}")
        await loop.run_in_executor(None, host.start)
        self._owned_host = host
        return host
