from __future__ import annotations

import pytest

from rentboard.config import LabelPolicy, MqttSettings, RentboardConfig
from rentboard.exceptions import RentboardConfigError
from rentboard.models.status import ReservationStatus

_ENV_KEYS = (
    "RENTBOARD_BASE_URL",
    "RENTBOARD_API_KEY",
    "RENTBOARD_TIME_ZONE",
    "RENTBOARD_REQUEST_TIMEOUT",
    "RENTBOARD_RESNAPSHOT_RETRY_ATTEMPTS",
    "RENTBOARD_LABEL_FULL_MIN_DAYS",
    "RENTBOARD_HIDDEN_GRID_STATUSES",
    "RENTBOARD_REALTIME_ENABLED",
    "RENTBOARD_MQTT_HOST",
    "RENTBOARD_MQTT_PORT",
    "RENTBOARD_MQTT_TLS",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_defaults() -> None:
    config = RentboardConfig()
    assert config.time_zone == "Europe/Warsaw"
    assert config.hidden_grid_statuses == (ReservationStatus.CANCELLED,)
    assert config.labels == LabelPolicy(full_min_days=4, medium_min_days=2, narrow_width=100)
    assert not config.realtime_enabled


def test_from_env_reads_variables(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RENTBOARD_BASE_URL", "https://example.supabase.co")
    monkeypatch.setenv("RENTBOARD_API_KEY", "anon-key")
    monkeypatch.setenv("RENTBOARD_TIME_ZONE", "UTC")
    monkeypatch.setenv("RENTBOARD_REQUEST_TIMEOUT", "2.5")
    monkeypatch.setenv("RENTBOARD_RESNAPSHOT_RETRY_ATTEMPTS", "3")
    monkeypatch.setenv("RENTBOARD_LABEL_FULL_MIN_DAYS", "5")
    monkeypatch.setenv("RENTBOARD_HIDDEN_GRID_STATUSES", "cancelled, archived")

    config = RentboardConfig.from_env()
    assert config.base_url == "https://example.supabase.co"
    assert config.api_key == "anon-key"
    assert config.time_zone == "UTC"
    assert config.request_timeout == 2.5
    assert config.resnapshot_retry_attempts == 3
    assert config.labels.full_min_days == 5
    assert config.hidden_grid_statuses == (ReservationStatus.CANCELLED, ReservationStatus.ARCHIVED)


def test_overrides_win_over_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RENTBOARD_REQUEST_TIMEOUT", "2.5")
    monkeypatch.setenv("RENTBOARD_API_KEY", "from-env")
    config = RentboardConfig.from_env(request_timeout=9.0, api_key="explicit", labels={"narrow_width": 80})
    assert config.request_timeout == 9.0
    assert config.api_key == "explicit"
    assert config.labels.narrow_width == 80


def test_realtime_settings_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RENTBOARD_REALTIME_ENABLED", "yes")
    monkeypatch.setenv("RENTBOARD_MQTT_HOST", "broker.local")
    monkeypatch.setenv("RENTBOARD_MQTT_PORT", "1883")
    monkeypatch.setenv("RENTBOARD_MQTT_TLS", "off")

    config = RentboardConfig.from_env()
    assert config.realtime_enabled
    assert config.mqtt.host == "broker.local"
    assert config.mqtt.port == 1883
    assert config.mqtt.tls is False


def test_invalid_number_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RENTBOARD_MQTT_PORT", "not-a-port")
    with pytest.raises(RentboardConfigError, match="RENTBOARD_MQTT_PORT"):
        RentboardConfig.from_env()


def test_invalid_hidden_status_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RENTBOARD_HIDDEN_GRID_STATUSES", "cancelled,lost")
    with pytest.raises(RentboardConfigError):
        RentboardConfig.from_env()


def test_realtime_requires_broker_host() -> None:
    with pytest.raises(RentboardConfigError):
        RentboardConfig(realtime_enabled=True, mqtt=MqttSettings())


def test_retry_attempts_must_be_positive() -> None:
    with pytest.raises(RentboardConfigError):
        RentboardConfig(resnapshot_retry_attempts=0)


def test_unknown_time_zone_raises() -> None:
    with pytest.raises(RentboardConfigError, match="Mars/Olympus"):
        RentboardConfig(time_zone="Mars/Olympus")


def test_unknown_time_zone_from_env_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RENTBOARD_TIME_ZONE", "Not/AZone")
    with pytest.raises(RentboardConfigError, match="Not/AZone"):
        RentboardConfig.from_env()
