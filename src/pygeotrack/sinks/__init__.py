"""Downstream sinks for accepted readings."""

from pygeotrack.sinks.base import AnalyticsSink, LocationRepository
from pygeotrack.sinks.braze import BrazeAnalyticsSink
from pygeotrack.sinks.memory import InMemoryAnalyticsSink, InMemoryLocationRepository
from pygeotrack.sinks.supabase import SupabaseLocationRepository

__all__ = [
    "AnalyticsSink",
    "BrazeAnalyticsSink",
    "InMemoryAnalyticsSink",
    "InMemoryLocationRepository",
    "LocationRepository",
    "SupabaseLocationRepository",
]
