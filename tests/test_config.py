from __future__ import annotations

import pytest

from pygeotrack.config import BrazeSettings, MqttHostSettings, SupabaseSettings, TrackerConfig
from pygeotrack.exceptions import GeoConfigError

_ENV_KEYS = (
    "SUPABASE_URL",
    "SUPABASE_KEY",
    "SUPABASE_TABLE",
    "BRAZE_API_KEY",
    "BRAZE_BASE_URL",
    "GEOTRACK_MQTT_HOST",
    "GEOTRACK_MQTT_PORT",
    "GEOTRACK_MQTT_USERNAME",
    "GEOTRACK_MQTT_PASSWORD",
    "GEOTRACK_MQTT_TOPIC",
    "GEOTRACK_MQTT_COMMAND_TOPIC",
    "GEOTRACK_MQTT_TLS",
    "GEOTRACK_MQTT_KEEPALIVE",
    "GEOTRACK_STATE_DIR",
    "GEOTRACK_DEVICE_ID",
    "GEOTRACK_BACKSTOP_INTERVAL",
    "GEOTRACK_MAX_RETRIES",
    "GEOTRACK_WAIT_FOR_PERSISTENCE",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_defaults() -> None:
    config = TrackerConfig.from_env()

    assert config.backstop_interval == 300.0
    assert config.max_retries == 3
    assert config.wait_for_persistence is True
    assert not config.supabase.configured
    assert not config.braze.configured
    assert not config.mqtt.configured
    assert config.one_shot_options.max_reading_age_ms == 60_000
    assert config.continuous_options.max_reading_age_ms == 300_000


def test_reads_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SUPABASE_URL", "https://abc.supabase.co")
    monkeypatch.setenv("SUPABASE_KEY", "anon-key")
    monkeypatch.setenv("GEOTRACK_MQTT_HOST", "broker.example.com")
    monkeypatch.setenv("GEOTRACK_MQTT_PORT", "1883")
    monkeypatch.setenv("GEOTRACK_MQTT_TOPIC", "owntracks/alice/phone")
    monkeypatch.setenv("GEOTRACK_MQTT_TLS", "off")
    monkeypatch.setenv("GEOTRACK_BACKSTOP_INTERVAL", "60")
    monkeypatch.setenv("GEOTRACK_MAX_RETRIES", "5")
    monkeypatch.setenv("GEOTRACK_WAIT_FOR_PERSISTENCE", "no")

    config = TrackerConfig.from_env()

    assert config.supabase == SupabaseSettings(url="https://abc.supabase.co", key="anon-key")
    assert config.mqtt.broker_port == 1883
    assert config.mqtt.tls is False
    assert config.mqtt.resolved_command_topic == "owntracks/alice/phone/cmd"
    assert config.backstop_interval == 60.0
    assert config.max_retries == 5
    assert config.wait_for_persistence is False


def test_overrides_take_precedence(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GEOTRACK_BACKSTOP_INTERVAL", "60")
    braze = BrazeSettings(api_key="k", base_url="https://rest.iad-01.braze.com")

    config = TrackerConfig.from_env(backstop_interval=0, braze=braze)

    assert config.backstop_interval == 0
    assert config.braze is braze


def test_explicit_command_topic_wins() -> None:
    settings = MqttHostSettings(broker_host="b", topic="owntracks/a/b", command_topic="custom/cmd")
    assert settings.resolved_command_topic == "custom/cmd"


@pytest.mark.parametrize(
    "kwargs",
    [{"backstop_interval": -1}, {"max_retries": -1}, {"retry_base_delay": -0.5}],
)
def test_negative_values_are_rejected(kwargs: dict[str, float]) -> None:
    with pytest.raises(GeoConfigError):
        TrackerConfig(**kwargs)  # type: ignore[arg-type]


def test_partial_sink_settings_fail_validation() -> None:
    with pytest.raises(GeoConfigError):
        SupabaseSettings(url="https://abc.supabase.co").validate()
    with pytest.raises(GeoConfigError):
        BrazeSettings(api_key="k").validate()
