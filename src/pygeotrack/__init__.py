"""pygeotrack - Async location acquisition and last-known-location reconciliation."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pygeotrack")
except PackageNotFoundError:
    __version__ = "0+local"

from pygeotrack.adapter import PositionSourceAdapter
from pygeotrack.client import GeoTrackClient
from pygeotrack.config import BrazeSettings, MqttHostSettings, SupabaseSettings, TrackerConfig
from pygeotrack.dispatcher import DispatchOutcome, DualSinkDispatcher
from pygeotrack.exceptions import (
    AnalyticsError,
    GeoConfigError,
    GeoTrackError,
    PermissionDeniedError,
    PersistenceError,
    PositionError,
    PositionErrorKind,
    PositionTimeoutError,
    PositionUnavailableError,
    PositionUnknownError,
    SinkError,
    TransientPositionError,
    TransportError,
)
from pygeotrack.machine import AcquisitionStateMachine
from pygeotrack.models import (
    ConnectionStatus,
    PositionOptions,
    PushHandle,
    PushWithBackstopHandle,
    Reading,
    SinkResult,
    StoredLocationRecord,
    TrackingHandle,
)
from pygeotrack.permission import FilePermissionStore, MemoryPermissionStore, PermissionStore
from pygeotrack.retry import RetryController
from pygeotrack.state.events import EventKind, LastError, ReadingSource, TrackerEvent, TrackerState
from pygeotrack.state.recency import time_since_label
from pygeotrack.state.store import ReconciliationStore
from pygeotrack.tracking import ContinuousTracker

__all__ = [
    "__version__",
    "AcquisitionStateMachine",
    "AnalyticsError",
    "BrazeSettings",
    "ConnectionStatus",
    "ContinuousTracker",
    "DispatchOutcome",
    "DualSinkDispatcher",
    "EventKind",
    "FilePermissionStore",
    "GeoConfigError",
    "GeoTrackClient",
    "GeoTrackError",
    "LastError",
    "MemoryPermissionStore",
    "MqttHostSettings",
    "PermissionDeniedError",
    "PermissionStore",
    "PersistenceError",
    "PositionError",
    "PositionErrorKind",
    "PositionOptions",
    "PositionSourceAdapter",
    "PositionTimeoutError",
    "PositionUnavailableError",
    "PositionUnknownError",
    "PushHandle",
    "PushWithBackstopHandle",
    "Reading",
    "ReadingSource",
    "ReconciliationStore",
    "RetryController",
    "SinkError",
    "SinkResult",
    "StoredLocationRecord",
    "SupabaseSettings",
    "TrackerConfig",
    "TrackerEvent",
    "TrackerState",
    "TrackingHandle",
    "TransientPositionError",
    "TransportError",
    "time_since_label",
]
