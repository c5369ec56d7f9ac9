"""Realtime change feed over MQTT.

A threaded paho-mqtt runtime subscribes to the reservation change topic and
hands every message to the asyncio loop as a :class:`ChangeEvent`. The
payload is parsed for logging and tests only; consumers treat any event as
"the collection changed".
"""

from __future__ import annotations

import asyncio
import json
import logging
import secrets
from collections.abc import AsyncIterator, Callable
from typing import Any, cast

import paho.mqtt.client as mqtt

from rentboard.config import MqttSettings
from rentboard.exceptions import RentboardConfigError
from rentboard.models.notes import ChangeEvent

_SOURCE = "mqtt"


def parse_change_payload(payload: bytes) -> dict[str, Any]:
    """Best-effort decode of a change message into a dict.

    JSON objects are returned as-is, other JSON values are wrapped under
    ``"value"`` and undecodable bytes under ``"raw"``.
    """
    text = payload.decode("utf-8", errors="replace").strip()
    if not text:
        return {}
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        return {"raw": text}
    if isinstance(parsed, dict):
        return parsed
    return {"value": parsed}


def _build_client_id(settings: MqttSettings) -> str:
    if settings.client_id:
        return settings.client_id
    return f"rentboard_{secrets.token_hex(6)}"


class MqttChangeFeed:
    """Threaded paho-mqtt runtime that emits change events onto an asyncio loop."""

    def __init__(
        self,
        settings: MqttSettings,
        *,
        keepalive: int | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        if not settings.host:
            raise RentboardConfigError("MQTT change feed requires a broker host")
        self._settings = settings
        self._keepalive = keepalive if keepalive is not None else settings.keepalive
        self._logger = logger or logging.getLogger(__name__)
        self._client: mqtt.Client | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._on_event: Callable[[ChangeEvent], None] | None = None
        self._running = False
        self._connected_once = False

    @property
    def is_running(self) -> bool:
        """Whether the MQTT runtime is actively running."""
        return self._running

    async def subscribe_changes(self) -> AsyncIterator[ChangeEvent]:
        """Connect, then yield change events until the consumer stops.

        The blocking paho connect and shutdown run in the default executor.
        """
        loop = asyncio.get_running_loop()
        queue: asyncio.Queue[ChangeEvent] = asyncio.Queue()
        await loop.run_in_executor(None, self.start, loop, queue.put_nowait)
        try:
            while True:
                yield await queue.get()
        finally:
            await loop.run_in_executor(None, self.stop)

    def start(self, loop: asyncio.AbstractEventLoop, on_event: Callable[[ChangeEvent], None]) -> None:
        """Connect and subscribe; *on_event* runs on *loop*.

        Blocks on DNS, TCP and TLS; call it from a worker thread.
        """
        self.stop()
        settings = self._settings
        client_id = _build_client_id(settings)
        self._logger.debug(
            "MQTT change feed start host=%s port=%s topic=%s client_id=%s",
            settings.host,
            settings.port,
            settings.topic,
            client_id,
        )

        client = mqtt.Client(
            callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
            client_id=client_id,
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
                return
            self._logger.debug("MQTT connected reason=%s; subscribing %s", reason_code, settings.topic)
            c.subscribe(settings.topic, qos=1)
            # Changes published before the subscription or while disconnected are lost.
            self._emit({"event": "reconnected" if self._connected_once else "connected"})
            self._connected_once = True

        def on_message(_c: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
            self._handle_message(msg.topic, msg.payload)

        def on_disconnect(
            _client: mqtt.Client,
            _userdata: Any,
            _disconnect_flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if self._running:
                self._logger.warning("MQTT disconnected: %s", reason_code)

        client.on_connect = on_connect
        client.on_message = on_message
        client.on_disconnect = on_disconnect

        self._loop = loop
        self._on_event = on_event
        client.connect(settings.host or "", settings.port, keepalive=self._keepalive)
        client.loop_start()

        self._client = client
        self._running = True
        self._logger.debug("MQTT network loop started")

    def stop(self) -> None:
        """Stop and disconnect the current client if running.

        Joins the paho network thread.
        """
        client = self._client
        self._client = None
        was_running = self._running
        self._running = False
        self._connected_once = False

        if client is None:
            return
        try:
            if was_running:
                self._logger.debug("MQTT disconnect requested")
                client.disconnect()
        finally:
            client.loop_stop()
            self._logger.debug("MQTT network loop stopped")

    def _handle_message(self, topic: str, payload: bytes) -> None:
        # Runs on the paho network thread.
        try:
            parsed = parse_change_payload(payload)
            self._logger.debug("Received PUBLISH topic=%s parsed=%s", topic, parsed)
            self._emit(parsed)
        except Exception:
            self._logger.debug("MQTT message handling failure", exc_info=True)

    def _emit(self, payload: dict[str, Any]) -> None:
        loop = self._loop
        on_event = self._on_event
        if loop is None or on_event is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(on_event, ChangeEvent(source=_SOURCE, payload=payload))
