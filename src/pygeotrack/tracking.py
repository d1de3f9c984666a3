"""Continuous tracking: push subscription plus a periodic backstop poll.

Push subscriptions on some hosts silently stop delivering under poor signal
or throttling. The backstop issues an independent one-shot request on a
fixed period so the session stays live. Both paths report through the same
callbacks. The backstop bypasses the retry controller: a failed tick is
reported and the next tick tries again.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from pygeotrack.adapter import PositionSourceAdapter
from pygeotrack.exceptions import PositionError
from pygeotrack.models.handle import PushHandle, PushWithBackstopHandle, TrackingHandle
from pygeotrack.models.options import PositionOptions
from pygeotrack.models.reading import Reading
from pygeotrack.state.events import ReadingSource

_logger = logging.getLogger(__name__)

ReadingHandler = Callable[[Reading, ReadingSource], None]
FailureHandler = Callable[[PositionError, ReadingSource], None]
SleepFunc = Callable[[float], Awaitable[None]]


class _SessionGate:
    """Drops callbacks once the owning session is stopped.

    Hosts may already have queued a callback when the watch is cleared;
    the gate guarantees nothing reaches the handlers after ``stop``.
    """

    __slots__ = ("open",)

    def __init__(self) -> None:
        self.open = True


class ContinuousTracker:
    """Starts and stops push-plus-backstop tracking sessions."""

    def __init__(
        self,
        adapter: PositionSourceAdapter,
        *,
        options: PositionOptions | None = None,
        backstop_interval: float = 300.0,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        self._adapter = adapter
        self._options = options or PositionOptions.continuous()
        self._backstop_interval = backstop_interval
        self._sleep = sleep
        self._gates: dict[int, _SessionGate] = {}

    @property
    def options(self) -> PositionOptions:
        return self._options

    def start(self, on_reading: ReadingHandler, on_failure: FailureHandler) -> TrackingHandle:
        """Open the push subscription and schedule the backstop.

        Must be called from a running event loop when the backstop is enabled.
        """
        gate = _SessionGate()

        def push_reading(reading: Reading) -> None:
            if gate.open:
                on_reading(reading, ReadingSource.PUSH)

        def push_failure(error: PositionError) -> None:
            if gate.open:
                _logger.info("Push subscription reported failure: %s", error)
                on_failure(error, ReadingSource.PUSH)

        watch_id = self._adapter.subscribe(self._options, push_reading, push_failure)
        self._gates[watch_id] = gate

        if self._backstop_interval <= 0:
            _logger.info("Started continuous tracking (push only) watch=%s", watch_id)
            return PushHandle(watch_id=watch_id)

        timer = asyncio.ensure_future(self._backstop(gate, on_reading, on_failure))
        _logger.info(
            "Started continuous tracking watch=%s backstop every %.0fs",
            watch_id,
            self._backstop_interval,
        )
        return PushWithBackstopHandle(watch_id=watch_id, timer=timer)

    def stop(self, handle: TrackingHandle) -> None:
        """Cancel the subscription and the backstop. Safe to repeat."""
        gate = self._gates.pop(handle.watch_id, None)
        if gate is not None:
            gate.open = False

        if isinstance(handle, PushWithBackstopHandle):
            self._adapter.unsubscribe(handle.watch_id)
            if not handle.timer.done():
                handle.timer.cancel()
        elif isinstance(handle, PushHandle):
            self._adapter.unsubscribe(handle.watch_id)
        else:  # pragma: no cover
            raise TypeError(f"unsupported tracking handle: {handle!r}")
        _logger.info("Stopped continuous tracking watch=%s", handle.watch_id)

    async def _backstop(self, gate: _SessionGate, on_reading: ReadingHandler, on_failure: FailureHandler) -> None:
        while gate.open:
            await self._sleep(self._backstop_interval)
            if not gate.open:
                return
            _logger.debug("Backstop location poll")
            try:
                reading = await self._adapter.request_once(self._options)
            except PositionError as exc:
                _logger.info("Backstop location poll failed: %s", exc)
                if gate.open:
                    on_failure(exc, ReadingSource.BACKSTOP)
                continue
            except Exception:
                _logger.warning("Backstop location poll crashed", exc_info=True)
                continue
            if gate.open:
                on_reading(reading, ReadingSource.BACKSTOP)
