"""Braze analytics sink.

Sets the user's last known location through the REST ``/users/track``
endpoint. Braze's ``current_location`` attribute only holds coordinates, so
accuracy and altitude travel as custom attributes.
"""

from __future__ import annotations

import logging
from typing import Any

import aiohttp

from pygeotrack._transport import RestTransport, Transport
from pygeotrack.config import BrazeSettings
from pygeotrack.exceptions import AnalyticsError, TransportError
from pygeotrack.models.record import SinkResult

_logger = logging.getLogger(__name__)

_TRACK_ENDPOINT = "/users/track"


def build_braze_transport(settings: BrazeSettings, http_session: aiohttp.ClientSession) -> RestTransport:
    settings.validate()
    return RestTransport(
        settings.base_url or "",
        http_session,
        headers={"authorization": f"Bearer {settings.api_key}"},
    )


class BrazeAnalyticsSink:
    """:class:`~pygeotrack.sinks.base.AnalyticsSink` backed by the Braze REST API.

    Parameters
    ----------
    transport : Transport
        Transport bound to the Braze REST base URL.
    external_id : str
        Braze ``external_id`` of the profile to update (the device identity).
    """

    def __init__(self, transport: Transport, *, external_id: str) -> None:
        self._transport = transport
        self._external_id = external_id
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        if not self._external_id:
            raise AnalyticsError("Braze sink requires an external_id")
        self._initialized = True
        _logger.debug("Braze sink initialized for external_id=%s", self._external_id)

    async def set_last_known_location(
        self,
        latitude: float,
        longitude: float,
        accuracy: float | None = None,
        altitude: float | None = None,
        altitude_accuracy: float | None = None,
    ) -> SinkResult:
        if not self._initialized:
            raise AnalyticsError("Braze sink used before initialize()")

        attributes: dict[str, Any] = {
            "external_id": self._external_id,
            "current_location": {"latitude": latitude, "longitude": longitude},
        }
        if accuracy is not None:
            attributes["last_location_accuracy"] = accuracy
        if altitude is not None:
            attributes["last_location_altitude"] = altitude
        if altitude_accuracy is not None:
            attributes["last_location_altitude_accuracy"] = altitude_accuracy

        try:
            response = await self._transport.request(
                "POST",
                _TRACK_ENDPOINT,
                json_body={"attributes": [attributes]},
            )
        except TransportError as exc:
            raise AnalyticsError(f"Failed to send location to Braze: {exc}") from exc

        message = response.get("message") if isinstance(response, dict) else None
        if message != "success":
            errors = response.get("errors") if isinstance(response, dict) else None
            return SinkResult(ok=False, detail=f"Braze rejected location: {errors or message or response!r}")
        return SinkResult(ok=True, detail="Location sent to Braze successfully")

    def get_current_user_id(self) -> str | None:
        return self._external_id or None
