"""Host location API interface.

Hosts follow the callback shape of the W3C Geolocation API: a one-shot
query and a watch, each reporting through a success and an error callback.
"""

from __future__ import annotations

import enum
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from pygeotrack.models.options import PositionOptions


class HostErrorCode(enum.IntEnum):
    """Host failure codes (W3C ``GeolocationPositionError`` numbering)."""

    UNKNOWN = -1
    PERMISSION_DENIED = 1
    POSITION_UNAVAILABLE = 2
    TIMEOUT = 3

    @classmethod
    def _missing_(cls, value: object) -> HostErrorCode:
        return cls.UNKNOWN


@dataclass(frozen=True)
class HostPosition:
    """Raw position as delivered by a host callback."""

    latitude: float
    longitude: float
    accuracy: float | None = None
    altitude: float | None = None
    altitude_accuracy: float | None = None
    timestamp: float | None = None
    """Fix time as epoch seconds, when the host reports one."""


@dataclass(frozen=True)
class HostPositionError:
    """Raw failure as delivered by a host callback."""

    code: int
    message: str = ""


PositionCallback = Callable[[HostPosition], None]
ErrorCallback = Callable[[HostPositionError], None]


class LocationHost(Protocol):
    """Structural interface of a platform location capability."""

    def get_current_position(
        self,
        success: PositionCallback,
        error: ErrorCallback,
        options: PositionOptions,
    ) -> None:
        ...

    def watch_position(
        self,
        success: PositionCallback,
        error: ErrorCallback,
        options: PositionOptions,
    ) -> int:
        ...

    def clear_watch(self, watch_id: int) -> None:
        ...
