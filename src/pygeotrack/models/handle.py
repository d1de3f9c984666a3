"""Cancellation handles for continuous tracking sessions."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Literal


@dataclass(frozen=True)
class PushHandle:
    """Push subscription only (backstop disabled)."""

    watch_id: int
    kind: Literal["push"] = field(default="push", init=False)


@dataclass(frozen=True)
class PushWithBackstopHandle:
    """Push subscription plus the backstop poll task."""

    watch_id: int
    timer: asyncio.Task[None] = field(compare=False, repr=False)
    kind: Literal["push_with_backstop"] = field(default="push_with_backstop", init=False)


TrackingHandle = PushHandle | PushWithBackstopHandle
