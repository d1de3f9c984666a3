"""Stored location record and sink result models."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import AliasChoices, Field

from pygeotrack.models._base import GeoBaseModel, UtcTimestamp
from pygeotrack.models.reading import Reading


class StoredLocationRecord(GeoBaseModel):
    """The current location of one device.

    Exactly one record exists per ``device_identity``; later readings
    replace it in place and ``id`` never changes.
    ``time_since_update_label`` describes how old the *previous* record
    was when it got replaced.
    """

    id: str
    device_identity: str = Field(
        serialization_alias="device_id",
        validation_alias=AliasChoices("device_identity", "device_id", "user_id"),
    )
    latitude: float = Field(ge=-90.0, le=90.0)
    longitude: float = Field(ge=-180.0, le=180.0)
    accuracy: float | None = None
    altitude: float | None = None
    altitude_accuracy: float | None = None
    captured_at: UtcTimestamp
    last_updated_at: UtcTimestamp
    time_since_update_label: str = Field(
        serialization_alias="time_since_update",
        validation_alias=AliasChoices("time_since_update_label", "time_since_update"),
    )

    @classmethod
    def from_reading(
        cls,
        *,
        record_id: str,
        device_identity: str,
        reading: Reading,
        updated_at: datetime,
        label: str,
    ) -> StoredLocationRecord:
        return cls(
            id=record_id,
            device_identity=device_identity,
            latitude=reading.latitude,
            longitude=reading.longitude,
            accuracy=reading.accuracy,
            altitude=reading.altitude,
            altitude_accuracy=reading.altitude_accuracy,
            captured_at=reading.captured_at,
            last_updated_at=updated_at,
            time_since_update_label=label,
        )

    def replaced_with(self, reading: Reading, *, updated_at: datetime, label: str) -> StoredLocationRecord:
        """Return this record with every reading field replaced, keeping ``id``."""
        return StoredLocationRecord.from_reading(
            record_id=self.id,
            device_identity=self.device_identity,
            reading=reading,
            updated_at=updated_at,
            label=label,
        )

    @property
    def reading(self) -> Reading:
        return Reading(
            latitude=self.latitude,
            longitude=self.longitude,
            accuracy=self.accuracy,
            altitude=self.altitude,
            altitude_accuracy=self.altitude_accuracy,
            captured_at=self.captured_at,
        )

    def to_row(self) -> dict[str, Any]:
        """Serialize with database column names."""
        return self.model_dump(mode="json", by_alias=True)


class ConnectionStatus(GeoBaseModel):
    ok: bool
    detail: str = ""


class SinkResult(GeoBaseModel):
    ok: bool
    detail: str = ""
