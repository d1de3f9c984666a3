"""Client configuration for pygeotrack."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from pygeotrack._constants import DEFAULT_BACKSTOP_INTERVAL_S, DEFAULT_HISTORY_LIMIT, DEFAULT_MAX_RETRIES
from pygeotrack.exceptions import GeoConfigError
from pygeotrack.models.options import PositionOptions


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class SupabaseSettings:
    """Connection details for the relational location log.

    Both ``url`` and ``key`` must be set for the Supabase repository to be
    used; when neither is set the client falls back to an in-memory store.
    """

    url: str | None = None
    key: str | None = None
    table: str = "locations"

    @property
    def configured(self) -> bool:
        return bool(self.url or self.key)

    def validate(self) -> None:
        if not self.url or not self.key:
            raise GeoConfigError("Supabase settings incomplete: both url and key are required")


@dataclasses.dataclass(frozen=True)
class BrazeSettings:
    """Credentials for the Braze REST API (analytics profile sink)."""

    api_key: str | None = None
    base_url: str | None = None

    @property
    def configured(self) -> bool:
        return bool(self.api_key or self.base_url)

    def validate(self) -> None:
        if not self.api_key or not self.base_url:
            raise GeoConfigError("Braze settings incomplete: both api_key and base_url are required")


@dataclasses.dataclass(frozen=True)
class MqttHostSettings:
    """OwnTracks-over-MQTT location host.

    ``topic`` is the device's publish topic (``owntracks/<user>/<device>``);
    location requests go to ``command_topic`` which defaults to
    ``<topic>/cmd``.
    """

    broker_host: str | None = None
    broker_port: int = 8883
    username: str | None = None
    password: str | None = None
    topic: str | None = None
    command_topic: str | None = None
    tls: bool = True
    keepalive: int = 120

    @property
    def configured(self) -> bool:
        return bool(self.broker_host and self.topic)

    @property
    def resolved_command_topic(self) -> str | None:
        if self.command_topic:
            return self.command_topic
        if self.topic:
            return f"{self.topic}/cmd"
        return None


@dataclasses.dataclass(frozen=True)
class TrackerConfig:
    """Tracker configuration.

    Parameters
    ----------
    state_dir : str
        Directory holding the local state file (device identity and the
        persisted permission flag). ``~`` is expanded.
    device_id : str or None
        Explicit device identity. When ``None`` the identity is loaded from
        (or created in) the local state file.
    backstop_interval : float
        Seconds between backstop polls during continuous tracking.
        ``0`` disables the backstop.
    max_retries : int
        Maximum retries of a transiently failed one-shot acquisition.
    retry_base_delay : float
        Base of the exponential backoff in seconds; retry *n* waits
        ``2**n * retry_base_delay``.
    one_shot_options : PositionOptions
        Options for on-demand acquisitions.
    continuous_options : PositionOptions
        Options for the push subscription and the backstop poll.
    wait_for_persistence : bool
        Whether ``acquire_once`` waits for the dispatch to finish.
    history_limit : int
        Default number of stored records returned by ``history()``.
    supabase : SupabaseSettings
        Relational log connection.
    braze : BrazeSettings
        Analytics sink credentials.
    mqtt : MqttHostSettings
        OwnTracks MQTT host connection.
    """

    state_dir: str = "~/.pygeotrack"
    device_id: str | None = None
    backstop_interval: float = DEFAULT_BACKSTOP_INTERVAL_S
    max_retries: int = DEFAULT_MAX_RETRIES
    retry_base_delay: float = 1.0
    one_shot_options: PositionOptions = dataclasses.field(default_factory=PositionOptions.one_shot)
    continuous_options: PositionOptions = dataclasses.field(default_factory=PositionOptions.continuous)
    wait_for_persistence: bool = True
    history_limit: int = DEFAULT_HISTORY_LIMIT
    supabase: SupabaseSettings = dataclasses.field(default_factory=SupabaseSettings)
    braze: BrazeSettings = dataclasses.field(default_factory=BrazeSettings)
    mqtt: MqttHostSettings = dataclasses.field(default_factory=MqttHostSettings)

    def __post_init__(self) -> None:
        if self.backstop_interval < 0:
            raise GeoConfigError("backstop_interval must be >= 0")
        if self.max_retries < 0:
            raise GeoConfigError("max_retries must be >= 0")
        if self.retry_base_delay < 0:
            raise GeoConfigError("retry_base_delay must be >= 0")

    @classmethod
    def from_env(cls, **overrides: Any) -> TrackerConfig:
        """Create configuration from environment variables.

        Reads ``GEOTRACK_*`` variables plus the Supabase/Braze/MQTT
        credentials. Explicit keyword arguments override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        TrackerConfig
            Populated configuration.
        """
        env = os.environ

        supabase = overrides.pop("supabase", None)
        if not isinstance(supabase, SupabaseSettings):
            supabase = SupabaseSettings(
                url=env.get("SUPABASE_URL"),
                key=env.get("SUPABASE_KEY"),
                table=env.get("SUPABASE_TABLE", "locations"),
            )

        braze = overrides.pop("braze", None)
        if not isinstance(braze, BrazeSettings):
            braze = BrazeSettings(
                api_key=env.get("BRAZE_API_KEY"),
                base_url=env.get("BRAZE_BASE_URL"),
            )

        mqtt = overrides.pop("mqtt", None)
        if not isinstance(mqtt, MqttHostSettings):
            mqtt_kwargs: dict[str, Any] = {}
            _ENV_MQTT_MAP = {
                "GEOTRACK_MQTT_HOST": "broker_host",
                "GEOTRACK_MQTT_USERNAME": "username",
                "GEOTRACK_MQTT_PASSWORD": "password",
                "GEOTRACK_MQTT_TOPIC": "topic",
                "GEOTRACK_MQTT_COMMAND_TOPIC": "command_topic",
            }
            for env_key, field_name in _ENV_MQTT_MAP.items():
                val = env.get(env_key)
                if val is not None:
                    mqtt_kwargs[field_name] = val
            port_env = env.get("GEOTRACK_MQTT_PORT")
            if port_env is not None:
                mqtt_kwargs["broker_port"] = int(port_env)
            keepalive_env = env.get("GEOTRACK_MQTT_KEEPALIVE")
            if keepalive_env is not None:
                mqtt_kwargs["keepalive"] = int(keepalive_env)
            mqtt_kwargs["tls"] = _env_bool(env.get("GEOTRACK_MQTT_TLS"), True)
            mqtt = MqttHostSettings(**mqtt_kwargs)

        config_kwargs: dict[str, Any] = {"supabase": supabase, "braze": braze, "mqtt": mqtt}

        state_dir = env.get("GEOTRACK_STATE_DIR")
        if state_dir is not None:
            config_kwargs["state_dir"] = state_dir
        device_id = env.get("GEOTRACK_DEVICE_ID")
        if device_id is not None:
            config_kwargs["device_id"] = device_id

        interval_env = env.get("GEOTRACK_BACKSTOP_INTERVAL")
        if interval_env is not None and "backstop_interval" not in overrides:
            config_kwargs["backstop_interval"] = float(interval_env)

        retries_env = env.get("GEOTRACK_MAX_RETRIES")
        if retries_env is not None and "max_retries" not in overrides:
            config_kwargs["max_retries"] = int(retries_env)

        if "wait_for_persistence" not in overrides:
            config_kwargs["wait_for_persistence"] = _env_bool(env.get("GEOTRACK_WAIT_FOR_PERSISTENCE"), True)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
