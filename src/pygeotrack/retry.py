"""Bounded exponential backoff around one-shot position requests."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from pygeotrack._constants import DEFAULT_MAX_RETRIES
from pygeotrack.adapter import PositionSourceAdapter
from pygeotrack.exceptions import PermissionDeniedError, TransientPositionError
from pygeotrack.models.options import PositionOptions
from pygeotrack.models.reading import Reading

_logger = logging.getLogger(__name__)

SleepFunc = Callable[[float], Awaitable[None]]


class RetryController:
    """Retries transient one-shot failures with delays of ``2**n * base_delay``.

    ``PermissionDeniedError`` is never retried. After ``max_retries``
    consecutive transient failures the last one is raised. The retry counter
    is reset to zero on success, on permission denial, and on exhaustion.

    Only one retry chain runs per controller. A caller never waits behind a
    pending chain for its own first attempt; only when that attempt fails
    transiently does it join the chain already in flight.
    """

    def __init__(
        self,
        adapter: PositionSourceAdapter,
        *,
        max_retries: int = DEFAULT_MAX_RETRIES,
        base_delay: float = 1.0,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        self._adapter = adapter
        self._max_retries = max_retries
        self._base_delay = base_delay
        self._sleep = sleep
        self._retry_count = 0
        self._chain: asyncio.Task[Reading] | None = None

    @property
    def retry_count(self) -> int:
        return self._retry_count

    @property
    def max_retries(self) -> int:
        return self._max_retries

    @property
    def chain_pending(self) -> bool:
        return self._chain is not None and not self._chain.done()

    def backoff_delay(self, attempt: int) -> float:
        """Seconds to wait before retry number *attempt* (1-based)."""
        return float(2**attempt) * self._base_delay

    async def request(self, options: PositionOptions) -> Reading:
        """Request a reading, retrying transient failures."""
        try:
            reading = await self._adapter.request_once(options)
        except PermissionDeniedError:
            self._retry_count = 0
            raise
        except TransientPositionError as exc:
            if self._max_retries <= 0:
                self._retry_count = 0
                raise
            chain = self._chain
            if chain is not None and not chain.done():
                _logger.debug("Joining pending retry chain after %s", exc.kind)
            else:
                chain = asyncio.ensure_future(self._run_chain(exc, options))
                self._chain = chain
            # Shielded: one caller giving up must not abort the chain for others.
            return await asyncio.shield(chain)
        if not self.chain_pending:
            self._retry_count = 0
        return reading

    def cancel(self) -> None:
        """Abort a pending retry chain, if any."""
        chain = self._chain
        self._chain = None
        self._retry_count = 0
        if chain is not None and not chain.done():
            chain.cancel()
            _logger.debug("Cancelled pending retry chain")

    async def _run_chain(self, first_failure: TransientPositionError, options: PositionOptions) -> Reading:
        last_failure = first_failure
        while self._retry_count < self._max_retries:
            self._retry_count += 1
            attempt = self._retry_count
            delay = self.backoff_delay(attempt)
            _logger.info(
                "Retrying location request in %.1fs (attempt %d/%d) after: %s",
                delay,
                attempt,
                self._max_retries,
                last_failure,
            )
            await self._sleep(delay)
            try:
                reading = await self._adapter.request_once(options.relaxed(attempt))
            except PermissionDeniedError:
                self._retry_count = 0
                raise
            except TransientPositionError as exc:
                last_failure = exc
                continue
            self._retry_count = 0
            return reading

        _logger.warning("Location request failed after %d retries: %s", self._max_retries, last_failure)
        self._retry_count = 0
        raise last_failure
