"""High-level async client for the rental reservation REST API."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from datetime import date
from typing import Any

import aiohttp

from rentboard._api import equipment as _equipment_api
from rentboard._api import notes as _notes_api
from rentboard._api import reservations as _reservations_api
from rentboard._mqtt import MqttChangeFeed
from rentboard._transport import RestTransport, Transport
from rentboard.config import RentboardConfig
from rentboard.exceptions import RentboardConfigError, RentboardError
from rentboard.models.notes import ChangeEvent, ReservationNote
from rentboard.models.reservation import EquipmentLine, Reservation
from rentboard.models.status import ReservationStatus
from rentboard.models.transition import StatusChangeResult

_logger = logging.getLogger(__name__)


class RentboardClient:
    """Async client for the reservation store.

    Implements the reservation repository, the note repository and (with
    ``realtime_enabled``) the change subscription, so one instance can back
    a :class:`~rentboard.board.ReservationBoard` on its own.

    Usage::

        async with RentboardClient(config) as client:
            lines = await client.list_equipment_lines()
    """

    def __init__(
        self,
        config: RentboardConfig,
        *,
        session: aiohttp.ClientSession | None = None,
        transport: Transport | None = None,
    ) -> None:
        self._config = config
        self._external_session = session is not None
        self._http_session = session
        self._transport: Transport | None = transport
        self._external_transport = transport is not None
        self._feed: MqttChangeFeed | None = None

    @property
    def config(self) -> RentboardConfig:
        return self._config

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> RentboardClient:
        if self._transport is None:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            self._transport = RestTransport(self._config, self._http_session)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        if self._feed is not None:
            feed, self._feed = self._feed, None
            await asyncio.get_running_loop().run_in_executor(None, feed.stop)
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
        if not self._external_transport:
            self._transport = None

    def _require_transport(self) -> Transport:
        if self._transport is None:
            raise RentboardError("Client not initialized. Use 'async with RentboardClient(...) as client:'")
        return self._transport

    # ------------------------------------------------------------------
    # Reservation repository
    # ------------------------------------------------------------------

    async def list_reservations(self, window_start: date, window_end: date) -> list[Reservation]:
        return await _reservations_api.fetch_reservations(
            self._config,
            self._require_transport(),
            window_start,
            window_end,
        )

    async def list_equipment_lines(self) -> list[EquipmentLine]:
        return await _equipment_api.fetch_equipment_lines(self._config, self._require_transport())

    async def request_status_change(
        self,
        reservation_id: str,
        new_status: ReservationStatus,
        comment: str | None,
    ) -> StatusChangeResult:
        result = await _reservations_api.request_status_change(
            self._require_transport(),
            reservation_id,
            ReservationStatus(new_status),
            comment,
        )
        _logger.debug("Status change %s -> %s: %s", reservation_id, new_status, result)
        return result

    # ------------------------------------------------------------------
    # Notes
    # ------------------------------------------------------------------

    async def list_notes(self, reservation_id: str) -> list[ReservationNote]:
        return await _notes_api.fetch_notes(self._config, self._require_transport(), reservation_id)

    async def append_note(self, reservation_id: str, text: str) -> ReservationNote:
        return await _notes_api.insert_note(self._config, self._require_transport(), reservation_id, text)

    # ------------------------------------------------------------------
    # Change subscription
    # ------------------------------------------------------------------

    async def subscribe_changes(self) -> AsyncIterator[ChangeEvent]:
        """Stream change notifications from the MQTT feed.

        Raises :class:`RentboardConfigError` when realtime is disabled.
        """
        if not self._config.realtime_enabled:
            raise RentboardConfigError("Change subscription requires realtime_enabled")
        if self._feed is None:
            self._feed = MqttChangeFeed(self._config.mqtt)
        async for event in self._feed.subscribe_changes():
            yield event
