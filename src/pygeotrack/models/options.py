"""Position query options."""

from __future__ import annotations

from pydantic import Field

from pygeotrack.models._base import GeoBaseModel

# Every retry lengthens the host timeout by this much.
_RETRY_TIMEOUT_STEP_MS = 15_000
# Minimum acceptable cached-reading age on retry, multiplied by the attempt number.
_RETRY_MAX_AGE_STEP_MS = 600_000


class PositionOptions(GeoBaseModel):
    """Options passed to the host for one-shot and continuous queries.

    Higher accuracy and a lower ``max_reading_age_ms`` trade battery and
    latency for fresher fixes, at the cost of a higher chance of the host
    rate-limiting or reporting the position as unavailable.

    Parameters
    ----------
    high_accuracy : bool
        Ask the host for its most precise fix.
    timeout_ms : int
        Maximum time the query may take before failing with a timeout.
    max_reading_age_ms : int
        Maximum age of a cached fix the host may return instead of
        acquiring a new one. ``0`` forces a fresh fix.
    """

    high_accuracy: bool = False
    timeout_ms: int = Field(default=30_000, gt=0)
    max_reading_age_ms: int = Field(default=60_000, ge=0)

    @classmethod
    def one_shot(cls) -> PositionOptions:
        """Defaults for on-demand acquisition (1 minute cache)."""
        return cls(high_accuracy=False, timeout_ms=30_000, max_reading_age_ms=60_000)

    @classmethod
    def continuous(cls) -> PositionOptions:
        """Lenient defaults for continuous tracking (5 minute cache)."""
        return cls(high_accuracy=False, timeout_ms=30_000, max_reading_age_ms=300_000)

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000.0

    def relaxed(self, attempt: int) -> PositionOptions:
        """Return more lenient options for retry number *attempt* (1-based)."""
        step = max(1, attempt)
        return PositionOptions(
            high_accuracy=False,
            timeout_ms=self.timeout_ms + _RETRY_TIMEOUT_STEP_MS * step,
            max_reading_age_ms=max(self.max_reading_age_ms, _RETRY_MAX_AGE_STEP_MS * step),
        )
