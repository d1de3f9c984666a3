"""Acquisition state machine.

Single entry point for position acquisition. It owns the tracking session
and its cancellation handle, records the last reading and the last error,
hands every accepted reading to the dispatcher, and notifies listeners.

States::

    idle --acquire_once--> acquiring --success/terminal failure--> idle
    idle --start_continuous--> tracking --stop_continuous--> idle

The last error is kept next to the state, not instead of it: a failed
backstop tick leaves the machine in ``tracking``.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from pygeotrack.dispatcher import DispatchOutcome, DualSinkDispatcher
from pygeotrack.exceptions import PermissionDeniedError, PositionError
from pygeotrack.models.handle import TrackingHandle
from pygeotrack.models.options import PositionOptions
from pygeotrack.models.reading import Reading
from pygeotrack.permission import PermissionStore
from pygeotrack.retry import RetryController
from pygeotrack.state.events import EventKind, LastError, ReadingSource, TrackerEvent, TrackerState
from pygeotrack.tracking import ContinuousTracker

_logger = logging.getLogger(__name__)

Listener = Callable[[TrackerEvent], None]


@dataclass
class TrackingSession:
    """A live continuous-tracking session. Owned by the state machine only."""

    handle: TrackingHandle
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class AcquisitionStateMachine:
    """Coordinates one-shot and continuous acquisition for one device."""

    def __init__(
        self,
        *,
        device_identity: str,
        retry: RetryController,
        tracker: ContinuousTracker,
        dispatcher: DualSinkDispatcher,
        permissions: PermissionStore,
        one_shot_options: PositionOptions | None = None,
        wait_for_persistence: bool = True,
        logger: logging.Logger | None = None,
    ) -> None:
        self._device_identity = device_identity
        self._retry = retry
        self._tracker = tracker
        self._dispatcher = dispatcher
        self._permissions = permissions
        self._one_shot_options = one_shot_options or PositionOptions.one_shot()
        self._wait_for_persistence = wait_for_persistence
        self._logger = logger or _logger
        self._session: TrackingSession | None = None
        self._inflight = 0
        self._last_reading: Reading | None = None
        self._last_error: LastError | None = None
        self._listeners: list[Listener] = []

    # ------------------------------------------------------------------
    # Observable state
    # ------------------------------------------------------------------

    @property
    def device_identity(self) -> str:
        return self._device_identity

    @property
    def state(self) -> TrackerState:
        if self._session is not None:
            return TrackerState.TRACKING
        if self._inflight > 0:
            return TrackerState.ACQUIRING
        return TrackerState.IDLE

    @property
    def is_tracking(self) -> bool:
        return self._session is not None

    @property
    def tracking_since(self) -> datetime | None:
        """When the current tracking session started, or ``None`` when not tracking."""
        return self._session.started_at if self._session is not None else None

    @property
    def last_reading(self) -> Reading | None:
        return self._last_reading

    @property
    def last_error(self) -> LastError | None:
        return self._last_error

    @property
    def retry_count(self) -> int:
        return self._retry.retry_count

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """Register *listener* for events; returns a callable that removes it."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def acquire_once(self, *, wait_for_persistence: bool | None = None) -> Reading:
        """Acquire one reading, retrying transient failures.

        On success the reading is dispatched to both sinks. When
        *wait_for_persistence* (default from config) is true the call also
        waits for that dispatch; sink failures never turn into an exception
        here.

        Raises
        ------
        PositionError
            The final failure after retries, or an immediate permission denial.
        """
        previous = self.state
        self._inflight += 1
        self._emit_state_change(previous)
        try:
            reading = await self._retry.request(self._one_shot_options)
        except PositionError as exc:
            self._finish_inflight()
            self._record_failure(exc, ReadingSource.ONE_SHOT)
            raise
        except BaseException:
            self._finish_inflight()
            raise

        task = self._accept(reading, ReadingSource.ONE_SHOT)
        self._finish_inflight()
        wait = self._wait_for_persistence if wait_for_persistence is None else wait_for_persistence
        if wait:
            await asyncio.shield(task)
        return reading

    def start_continuous(self) -> None:
        """Begin push-plus-backstop tracking. No-op if already tracking."""
        if self._session is not None:
            self._logger.info("Already tracking location")
            return
        previous = self.state
        handle = self._tracker.start(self._on_tracked_reading, self._on_tracked_failure)
        self._session = TrackingSession(handle=handle)
        self._emit_state_change(previous)

    def stop_continuous(self) -> None:
        """Stop tracking. Idempotent; safe before any ``start_continuous``."""
        session = self._session
        if session is None:
            self._logger.debug("stop_continuous called while not tracking")
            return
        self._session = None
        self._tracker.stop(session.handle)
        elapsed = (datetime.now(UTC) - session.started_at).total_seconds()
        self._logger.info("Stopped tracking after %.0fs", elapsed)
        self._emit_state_change(TrackerState.TRACKING)

    async def startup(self) -> None:
        """Start according to the persisted permission flag.

        With the flag set, tracking starts straight away. Otherwise one
        acquisition is attempted first (this is where the host prompts for
        access); tracking starts once it yields a reading. Failures are left
        in :attr:`last_error`.
        """
        if self._permissions.get():
            self._logger.debug("Permission previously granted, starting continuous tracking")
            self.start_continuous()
            return
        try:
            await self.acquire_once()
        except PositionError as exc:
            self._logger.info("Initial acquisition failed, not starting tracking: %s", exc)
            return
        self.start_continuous()

    async def close(self) -> None:
        """Stop tracking, abort pending retries, and flush pending dispatches."""
        self.stop_continuous()
        self._retry.cancel()
        await self._dispatcher.drain()

    # ------------------------------------------------------------------
    # Result handling
    # ------------------------------------------------------------------

    def _finish_inflight(self) -> None:
        previous = self.state
        self._inflight -= 1
        self._emit_state_change(previous)

    def _on_tracked_reading(self, reading: Reading, source: ReadingSource) -> None:
        if self._session is None:
            return
        self._accept(reading, source)

    def _on_tracked_failure(self, error: PositionError, source: ReadingSource) -> None:
        if self._session is None:
            return
        self._record_failure(error, source)

    def _accept(self, reading: Reading, source: ReadingSource) -> asyncio.Task[DispatchOutcome]:
        self._last_reading = reading
        self._last_error = None
        if not self._permissions.get():
            self._permissions.set(True)
        self._logger.debug("Location updated source=%s accuracy=%s", source, reading.accuracy)
        self._emit(TrackerEvent(kind=EventKind.READING, state=self.state, source=source, reading=reading))
        return self._dispatcher.dispatch_nowait(self._device_identity, reading)

    def _record_failure(self, error: PositionError, source: ReadingSource) -> None:
        if isinstance(error, PermissionDeniedError):
            self._permissions.set(False)
        self._last_error = LastError.from_exception(error, source)
        self._logger.warning("Geolocation error (%s): %s", source, error)
        self._emit(TrackerEvent(kind=EventKind.ERROR, state=self.state, source=source, error=self._last_error))

    def _emit_state_change(self, previous: TrackerState) -> None:
        current = self.state
        if current == previous:
            return
        self._logger.debug("Tracker state %s -> %s", previous, current)
        self._emit(TrackerEvent(kind=EventKind.STATE, state=current))

    def _emit(self, event: TrackerEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                self._logger.warning("Tracker listener raised", exc_info=True)
