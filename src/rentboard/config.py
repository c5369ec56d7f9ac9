"""Client configuration for rentboard."""

from __future__ import annotations

import dataclasses
import os
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from rentboard._constants import (
    DEFAULT_TIME_ZONE,
    LABEL_FULL_MIN_DAYS,
    LABEL_MEDIUM_MIN_DAYS,
    LABEL_NARROW_WIDTH,
)
from rentboard.exceptions import RentboardConfigError
from rentboard.models.status import ReservationStatus


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_number(env_key: str, value: str, kind: type[int] | type[float]) -> int | float:
    try:
        return kind(value)
    except ValueError as exc:
        raise RentboardConfigError(f"{env_key} must be a {kind.__name__}, got {value!r}") from exc


@dataclasses.dataclass(frozen=True)
class LabelPolicy:
    """Thresholds for the occupancy grid label heuristic.

    This is a content-density heuristic, not a domain rule: spans of at
    least ``full_min_days`` get the full name and date range, spans of at
    least ``medium_min_days`` get a short range, anything shorter only the
    surname and day number. ``narrow_width`` is the cell width (px) below
    which medium labels abbreviate the first name.
    """

    full_min_days: int = LABEL_FULL_MIN_DAYS
    medium_min_days: int = LABEL_MEDIUM_MIN_DAYS
    narrow_width: int = LABEL_NARROW_WIDTH

    def __post_init__(self) -> None:
        if self.medium_min_days < 1 or self.full_min_days <= self.medium_min_days:
            raise RentboardConfigError(
                "label thresholds must satisfy 1 <= medium_min_days < full_min_days, "
                f"got medium={self.medium_min_days} full={self.full_min_days}"
            )


@dataclasses.dataclass(frozen=True)
class MqttSettings:
    """Broker settings for the realtime reservation change feed."""

    host: str | None = None
    port: int = 8883
    topic: str = "rentboard/reservations"
    username: str | None = None
    password: str | None = None
    tls: bool = True
    keepalive: int = 60
    client_id: str = ""


@dataclasses.dataclass(frozen=True)
class RentboardConfig:
    """Client configuration.

    Parameters
    ----------
    base_url : str
        Base URL of the PostgREST (Supabase) project, without ``/rest/v1``.
    api_key : str
        API key sent as ``apikey`` and bearer token.
    schema : str
        Database schema exposed through PostgREST.
    time_zone : str
        IANA zone in which reservation dates are calendar days.
    actor : str or None
        Name recorded as the actor of locally confirmed transitions.
    request_timeout : float
        Total timeout in seconds for a single HTTP request.
    resnapshot_retry_attempts : int
        Fetch attempts per resnapshot before the view is marked degraded.
    resnapshot_backoff_initial : float
        First retry delay in seconds; doubled after every failure.
    resnapshot_backoff_max : float
        Upper bound of the retry delay.
    hidden_grid_statuses : tuple of ReservationStatus
        Statuses left out of the occupancy grid (the pipeline still shows them).
    grid_cell_width : int or None
        Rendering width of one grid cell in px, if the presentation layer
        knows it. ``None`` means unconstrained.
    realtime_enabled : bool
        Enable the MQTT change feed.
    labels : LabelPolicy
        Grid label thresholds.
    mqtt : MqttSettings
        Change feed broker settings.
    """

    base_url: str = "http://localhost:54321"
    api_key: str = ""
    schema: str = "public"
    time_zone: str = DEFAULT_TIME_ZONE
    actor: str | None = None
    request_timeout: float = 15.0
    resnapshot_retry_attempts: int = 5
    resnapshot_backoff_initial: float = 0.5
    resnapshot_backoff_max: float = 30.0
    hidden_grid_statuses: tuple[ReservationStatus, ...] = (ReservationStatus.CANCELLED,)
    grid_cell_width: int | None = None
    realtime_enabled: bool = False
    labels: LabelPolicy = dataclasses.field(default_factory=LabelPolicy)
    mqtt: MqttSettings = dataclasses.field(default_factory=MqttSettings)

    def __post_init__(self) -> None:
        if self.resnapshot_retry_attempts < 1:
            raise RentboardConfigError("resnapshot_retry_attempts must be >= 1")
        if self.resnapshot_backoff_initial < 0 or self.resnapshot_backoff_max < 0:
            raise RentboardConfigError("resnapshot backoff values must be >= 0")
        try:
            ZoneInfo(self.time_zone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise RentboardConfigError(f"Unknown time zone: {self.time_zone!r}") from exc
        if self.realtime_enabled and not self.mqtt.host:
            raise RentboardConfigError("realtime_enabled requires mqtt.host")

    @classmethod
    def from_env(cls, **overrides: Any) -> RentboardConfig:
        """Create configuration from ``RENTBOARD_*`` environment variables.

        Explicit keyword arguments override environment values. Nested
        ``labels`` / ``mqtt`` overrides may be given as dicts or instances.
        """
        env = os.environ

        label_kwargs: dict[str, Any] = {}
        _ENV_LABEL_MAP = {
            "RENTBOARD_LABEL_FULL_MIN_DAYS": "full_min_days",
            "RENTBOARD_LABEL_MEDIUM_MIN_DAYS": "medium_min_days",
            "RENTBOARD_LABEL_NARROW_WIDTH": "narrow_width",
        }
        for env_key, field_name in _ENV_LABEL_MAP.items():
            val = env.get(env_key)
            if val is not None:
                label_kwargs[field_name] = _env_number(env_key, val, int)

        label_overrides = overrides.pop("labels", None)
        if isinstance(label_overrides, dict):
            label_kwargs.update(label_overrides)
        elif isinstance(label_overrides, LabelPolicy):
            label_kwargs = dataclasses.asdict(label_overrides)

        mqtt_kwargs: dict[str, Any] = {}
        _ENV_MQTT_MAP = {
            "RENTBOARD_MQTT_HOST": "host",
            "RENTBOARD_MQTT_TOPIC": "topic",
            "RENTBOARD_MQTT_USERNAME": "username",
            "RENTBOARD_MQTT_PASSWORD": "password",
            "RENTBOARD_MQTT_CLIENT_ID": "client_id",
        }
        for env_key, field_name in _ENV_MQTT_MAP.items():
            val = env.get(env_key)
            if val is not None:
                mqtt_kwargs[field_name] = val
        port_env = env.get("RENTBOARD_MQTT_PORT")
        if port_env is not None:
            mqtt_kwargs["port"] = _env_number("RENTBOARD_MQTT_PORT", port_env, int)
        keepalive_env = env.get("RENTBOARD_MQTT_KEEPALIVE")
        if keepalive_env is not None:
            mqtt_kwargs["keepalive"] = _env_number("RENTBOARD_MQTT_KEEPALIVE", keepalive_env, int)
        mqtt_kwargs["tls"] = _env_bool(env.get("RENTBOARD_MQTT_TLS"), True)

        mqtt_overrides = overrides.pop("mqtt", None)
        if isinstance(mqtt_overrides, dict):
            mqtt_kwargs.update(mqtt_overrides)
        elif isinstance(mqtt_overrides, MqttSettings):
            mqtt_kwargs = dataclasses.asdict(mqtt_overrides)

        _ENV_CONFIG_MAP = {
            "RENTBOARD_BASE_URL": "base_url",
            "RENTBOARD_API_KEY": "api_key",
            "RENTBOARD_SCHEMA": "schema",
            "RENTBOARD_TIME_ZONE": "time_zone",
            "RENTBOARD_ACTOR": "actor",
        }
        config_kwargs: dict[str, Any] = {
            "labels": LabelPolicy(**label_kwargs),
            "mqtt": MqttSettings(**mqtt_kwargs),
        }
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        _ENV_NUMERIC_MAP: dict[str, tuple[str, type[int] | type[float]]] = {
            "RENTBOARD_REQUEST_TIMEOUT": ("request_timeout", float),
            "RENTBOARD_RESNAPSHOT_RETRY_ATTEMPTS": ("resnapshot_retry_attempts", int),
            "RENTBOARD_RESNAPSHOT_BACKOFF_INITIAL": ("resnapshot_backoff_initial", float),
            "RENTBOARD_RESNAPSHOT_BACKOFF_MAX": ("resnapshot_backoff_max", float),
            "RENTBOARD_GRID_CELL_WIDTH": ("grid_cell_width", int),
        }
        for env_key, (field_name, kind) in _ENV_NUMERIC_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = _env_number(env_key, val, kind)

        hidden_env = env.get("RENTBOARD_HIDDEN_GRID_STATUSES")
        if hidden_env is not None and "hidden_grid_statuses" not in overrides:
            try:
                config_kwargs["hidden_grid_statuses"] = tuple(
                    ReservationStatus(part.strip()) for part in hidden_env.split(",") if part.strip()
                )
            except ValueError as exc:
                raise RentboardConfigError(f"RENTBOARD_HIDDEN_GRID_STATUSES: {exc}") from exc

        if "realtime_enabled" not in overrides:
            config_kwargs["realtime_enabled"] = _env_bool(env.get("RENTBOARD_REALTIME_ENABLED"), False)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
