"""Host location API implementations."""

from pygeotrack.hosts.base import HostErrorCode, HostPosition, HostPositionError, LocationHost
from pygeotrack.hosts.memory import MemoryLocationHost

__all__ = [
    "HostErrorCode",
    "HostPosition",
    "HostPositionError",
    "LocationHost",
    "MemoryLocationHost",
]
