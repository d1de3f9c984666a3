"""Data models for pygeotrack."""

from pygeotrack.models.handle import PushHandle, PushWithBackstopHandle, TrackingHandle
from pygeotrack.models.options import PositionOptions
from pygeotrack.models.reading import Reading
from pygeotrack.models.record import ConnectionStatus, SinkResult, StoredLocationRecord

__all__ = [
    "ConnectionStatus",
    "PositionOptions",
    "PushHandle",
    "PushWithBackstopHandle",
    "Reading",
    "SinkResult",
    "StoredLocationRecord",
    "TrackingHandle",
]
