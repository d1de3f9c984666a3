"""Scriptable in-memory location host.

Useful for tests, demos, and replaying recorded fixes. One-shot queries are
answered from a FIFO of scripted outcomes; when the FIFO is empty the query
is left unanswered, like a stalled platform API. Watches receive whatever is
passed to :meth:`MemoryLocationHost.emit`.
"""

from __future__ import annotations

import asyncio
import itertools
from collections import deque
from collections.abc import Callable, Iterable

from pygeotrack.hosts.base import ErrorCallback, HostErrorCode, HostPosition, HostPositionError, PositionCallback
from pygeotrack.models.options import PositionOptions

Outcome = HostPosition | HostPositionError


class MemoryLocationHost:
    """In-memory :class:`~pygeotrack.hosts.base.LocationHost` implementation."""

    def __init__(self, outcomes: Iterable[Outcome] = ()) -> None:
        self._outcomes: deque[Outcome] = deque(outcomes)
        self._watch_ids = itertools.count(1)
        self._watchers: dict[int, tuple[PositionCallback, ErrorCallback]] = {}
        self.requests: list[PositionOptions] = []
        self.watch_options: list[PositionOptions] = []
        self.cleared: list[int] = []

    # ------------------------------------------------------------------
    # Scripting
    # ------------------------------------------------------------------

    def queue_position(self, latitude: float, longitude: float, **fields: float | None) -> None:
        self._outcomes.append(HostPosition(latitude=latitude, longitude=longitude, **fields))

    def queue_error(self, code: int, message: str = "") -> None:
        self._outcomes.append(HostPositionError(code=int(code), message=message))

    def queue_errors(self, code: HostErrorCode, count: int) -> None:
        for _ in range(count):
            self.queue_error(code)

    @property
    def pending_outcomes(self) -> int:
        return len(self._outcomes)

    @property
    def active_watches(self) -> list[int]:
        return list(self._watchers)

    def emit(self, position: HostPosition) -> None:
        """Deliver *position* to every active watch."""
        for success, _error in list(self._watchers.values()):
            self._deliver(success, position)

    def emit_error(self, code: int, message: str = "") -> None:
        failure = HostPositionError(code=int(code), message=message)
        for _success, error in list(self._watchers.values()):
            self._deliver(error, failure)

    # ------------------------------------------------------------------
    # LocationHost
    # ------------------------------------------------------------------

    def get_current_position(
        self,
        success: PositionCallback,
        error: ErrorCallback,
        options: PositionOptions,
    ) -> None:
        self.requests.append(options)
        if not self._outcomes:
            return
        outcome = self._outcomes.popleft()
        if isinstance(outcome, HostPositionError):
            self._deliver(error, outcome)
        else:
            self._deliver(success, outcome)

    def watch_position(
        self,
        success: PositionCallback,
        error: ErrorCallback,
        options: PositionOptions,
    ) -> int:
        watch_id = next(self._watch_ids)
        self._watchers[watch_id] = (success, error)
        self.watch_options.append(options)
        return watch_id

    def clear_watch(self, watch_id: int) -> None:
        if self._watchers.pop(watch_id, None) is not None:
            self.cleared.append(watch_id)

    @staticmethod
    def _deliver(callback: Callable[[Outcome], None], value: Outcome) -> None:
        # Real hosts never answer synchronously; mimic that when a loop is running.
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            callback(value)
            return
        loop.call_soon(callback, value)
