"""Tracker states and the events delivered to observers."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from pygeotrack.exceptions import PositionError, PositionErrorKind
from pygeotrack.models.reading import Reading


class TrackerState(StrEnum):
    IDLE = "idle"
    ACQUIRING = "acquiring"
    TRACKING = "tracking"


class ReadingSource(StrEnum):
    ONE_SHOT = "one_shot"
    PUSH = "push"
    BACKSTOP = "backstop"


class EventKind(StrEnum):
    READING = "reading"
    ERROR = "error"
    STATE = "state"


class LastError(BaseModel):
    """Most recent acquisition failure, kept alongside the current state."""

    model_config = ConfigDict(frozen=True)

    kind: PositionErrorKind
    message: str
    source: ReadingSource
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_exception(cls, error: PositionError, source: ReadingSource) -> LastError:
        return cls(kind=error.kind, message=error.message, source=source)


class TrackerEvent(BaseModel):
    """Notification delivered to state machine listeners."""

    model_config = ConfigDict(frozen=True)

    kind: EventKind
    state: TrackerState
    source: ReadingSource | None = None
    reading: Reading | None = None
    error: LastError | None = None
    observed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
