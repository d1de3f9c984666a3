"""Position reading model."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import Field, field_validator

from pygeotrack.models._base import GeoBaseModel, UtcTimestamp, safe_float


class Reading(GeoBaseModel):
    """One immutable position sample from the host.

    Parameters
    ----------
    latitude : float
        Latitude in degrees, ``[-90, 90]``.
    longitude : float
        Longitude in degrees, ``[-180, 180]``.
    accuracy : float or None
        Horizontal accuracy radius in metres.
    altitude : float or None
        Altitude in metres above the WGS84 ellipsoid.
    altitude_accuracy : float or None
        Vertical accuracy in metres.
    captured_at : datetime
        When the reading was accepted (UTC).
    """

    latitude: float = Field(ge=-90.0, le=90.0)
    longitude: float = Field(ge=-180.0, le=180.0)
    accuracy: float | None = Field(default=None, ge=0.0)
    altitude: float | None = None
    altitude_accuracy: float | None = Field(default=None, ge=0.0)
    captured_at: UtcTimestamp = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("accuracy", "altitude", "altitude_accuracy", mode="before")
    @classmethod
    def _coerce_optional_floats(cls, value: Any) -> float | None:
        return safe_float(value)

    def location_tuple(self) -> tuple[float, float, float | None, float | None, float | None]:
        """``(latitude, longitude, accuracy, altitude, altitude_accuracy)``."""
        return (self.latitude, self.longitude, self.accuracy, self.altitude, self.altitude_accuracy)
