"""OwnTracks-over-MQTT location host.

The device runs the OwnTracks app, which publishes ``_type=location``
messages to its topic. One-shot queries are answered from the most recent
fix when it is fresh enough, otherwise the host publishes a
``reportLocation`` command to the device and waits for the next fix.

paho-mqtt runs its network loop on its own thread; every message is
parsed there and handed to the asyncio loop with ``call_soon_threadsafe``.
All bookkeeping happens on the loop thread.
"""

from __future__ import annotations

import asyncio
import itertools
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, cast

import paho.mqtt.client as mqtt

from pygeotrack.config import MqttHostSettings
from pygeotrack.exceptions import GeoConfigError
from pygeotrack.hosts.base import ErrorCallback, HostErrorCode, HostPosition, HostPositionError, PositionCallback
from pygeotrack.models._base import safe_float
from pygeotrack.models.options import PositionOptions

# MQTT v5 CONNACK reason codes that mean the credentials were refused.
_AUTH_REFUSED_CODES = frozenset({134, 135})
_REPORT_LOCATION_COMMAND = json.dumps({"_type": "cmd", "action": "reportLocation"})


def parse_owntracks_payload(payload: bytes) -> HostPosition | None:
    """Parse an OwnTracks message, returning ``None`` for non-location messages."""
    try:
        parsed = json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        return None
    if not isinstance(parsed, dict) or parsed.get("_type") != "location":
        return None

    latitude = safe_float(parsed.get("lat"))
    longitude = safe_float(parsed.get("lon"))
    if latitude is None or longitude is None:
        return None
    return HostPosition(
        latitude=latitude,
        longitude=longitude,
        accuracy=safe_float(parsed.get("acc")),
        altitude=safe_float(parsed.get("alt")),
        altitude_accuracy=safe_float(parsed.get("vac")),
        timestamp=safe_float(parsed.get("tst")),
    )


@dataclass(eq=False)
class _PendingQuery:
    success: PositionCallback
    error: ErrorCallback
    timer: asyncio.TimerHandle | None = None


class OwnTracksMqttHost:
    """Threaded paho-mqtt host that delivers fixes onto an asyncio loop."""

    def __init__(
        self,
        settings: MqttHostSettings,
        *,
        loop: asyncio.AbstractEventLoop,
        client_id: str | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        if not settings.configured:
            raise GeoConfigError("MQTT host requires broker_host and topic")
        self._settings = settings
        self._loop = loop
        self._client_id = client_id or ""
        self._logger = logger or logging.getLogger(__name__)
        self._client: mqtt.Client | None = None
        self._running = False
        self._connected = False
        self._last_fix: HostPosition | None = None
        self._last_fix_received: float | None = None
        self._pending: list[_PendingQuery] = []
        self._watch_ids = itertools.count(1)
        self._watchers: dict[int, tuple[PositionCallback, ErrorCallback]] = {}

    @property
    def is_running(self) -> bool:
        """Whether the MQTT network loop is running."""
        return self._running

    @property
    def is_connected(self) -> bool:
        return self._connected

    # ------------------------------------------------------------------
    # Lifecycle (blocking; run in an executor)
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Connect to the broker and subscribe to the device topic."""
        self.stop()
        settings = self._settings
        self._logger.debug(
            "MQTT host start requested host=%s port=%s topic=%s",
            settings.broker_host,
            settings.broker_port,
            settings.topic,
        )

        client = mqtt.Client(
            callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
            client_id=self._client_id,
            protocol=mqtt.MQTTv5,
        )
        client.enable_logger(self._logger)
        if settings.username:
            client.username_pw_set(settings.username, settings.password)
        if settings.tls:
            client.tls_set()

        def on_connect(
            c: mqtt.Client,
            _userdata: Any,
            _flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if reason_code.value != 0:
                self._logger.warning("MQTT connect failed: %s", reason_code)
                self._loop.call_soon_threadsafe(self._on_connect_refused, int(reason_code.value), str(reason_code))
                return
            self._logger.debug("MQTT connected, subscribing topic=%s", settings.topic)
            c.subscribe(settings.topic, qos=1)
            self._loop.call_soon_threadsafe(self._set_connected, True)

        def on_message(_c: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
            try:
                position = parse_owntracks_payload(msg.payload)
            except Exception:
                self._logger.debug("MQTT payload parse failure", exc_info=True)
                return
            if position is None:
                self._logger.debug("Ignoring non-location message on %s", msg.topic)
                return
            self._loop.call_soon_threadsafe(self._on_fix, position)

        def on_disconnect(
            _client: mqtt.Client,
            _userdata: Any,
            _disconnect_flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if self._running:
                self._logger.debug("MQTT disconnected: %s", reason_code)
                self._loop.call_soon_threadsafe(self._on_disconnect, str(reason_code))

        client.on_connect = on_connect
        client.on_message = on_message
        client.on_disconnect = on_disconnect

        client.connect(settings.broker_host or "", settings.broker_port, keepalive=settings.keepalive)
        client.loop_start()

        self._client = client
        self._running = True
        self._logger.debug("MQTT network loop started")

    def stop(self) -> None:
        """Stop and disconnect the current MQTT client, if running."""
        client = self._client
        self._client = None
        was_running = self._running
        self._running = False
        self._connected = False

        if client is None:
            return
        try:
            if was_running:
                client.disconnect()
        finally:
            client.loop_stop()
            self._logger.debug("MQTT network loop stopped")

    # ------------------------------------------------------------------
    # LocationHost (loop thread)
    # ------------------------------------------------------------------

    def get_current_position(
        self,
        success: PositionCallback,
        error: ErrorCallback,
        options: PositionOptions,
    ) -> None:
        cached = self._fresh_fix(options.max_reading_age_ms)
        if cached is not None:
            self._loop.call_soon(success, cached)
            return
        if self._client is None or not self._connected:
            failure = HostPositionError(HostErrorCode.POSITION_UNAVAILABLE, "MQTT host not connected")
            self._loop.call_soon(error, failure)
            return

        query = _PendingQuery(success=success, error=error)
        query.timer = self._loop.call_later(options.timeout_seconds, self._expire, query)
        self._pending.append(query)
        self._request_report()

    def watch_position(
        self,
        success: PositionCallback,
        error: ErrorCallback,
        options: PositionOptions,
    ) -> int:
        watch_id = next(self._watch_ids)
        self._watchers[watch_id] = (success, error)
        cached = self._fresh_fix(options.max_reading_age_ms)
        if cached is not None:
            self._loop.call_soon(success, cached)
        return watch_id

    def clear_watch(self, watch_id: int) -> None:
        self._watchers.pop(watch_id, None)

    # ------------------------------------------------------------------
    # Internals (loop thread)
    # ------------------------------------------------------------------

    def _fresh_fix(self, max_age_ms: int) -> HostPosition | None:
        if self._last_fix is None or self._last_fix_received is None or max_age_ms <= 0:
            return None
        age_ms = (time.monotonic() - self._last_fix_received) * 1000.0
        return self._last_fix if age_ms <= max_age_ms else None

    def _request_report(self) -> None:
        topic = self._settings.resolved_command_topic
        if self._client is None or topic is None:
            return
        self._logger.debug("Requesting location report on %s", topic)
        self._client.publish(topic, _REPORT_LOCATION_COMMAND, qos=1)

    def _set_connected(self, connected: bool) -> None:
        self._connected = connected

    def _on_fix(self, position: HostPosition) -> None:
        self._last_fix = position
        self._last_fix_received = time.monotonic()
        pending, self._pending = self._pending, []
        for query in pending:
            if query.timer is not None:
                query.timer.cancel()
            query.success(position)
        for success, _error in list(self._watchers.values()):
            success(position)

    def _expire(self, query: _PendingQuery) -> None:
        if query in self._pending:
            self._pending.remove(query)
            query.error(HostPositionError(HostErrorCode.TIMEOUT, "No location report received"))

    def _fail_all(self, failure: HostPositionError) -> None:
        pending, self._pending = self._pending, []
        for query in pending:
            if query.timer is not None:
                query.timer.cancel()
            query.error(failure)
        for _success, error in list(self._watchers.values()):
            error(failure)

    def _on_connect_refused(self, reason_value: int, reason: str) -> None:
        self._connected = False
        if reason_value in _AUTH_REFUSED_CODES:
            code = HostErrorCode.PERMISSION_DENIED
        else:
            code = HostErrorCode.POSITION_UNAVAILABLE
        self._fail_all(HostPositionError(code, f"MQTT connect refused: {reason}"))

    def _on_disconnect(self, reason: str) -> None:
        self._connected = False
        self._fail_all(HostPositionError(HostErrorCode.POSITION_UNAVAILABLE, f"MQTT disconnected: {reason}"))
