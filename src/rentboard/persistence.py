"""Structural interfaces of the external collaborators.

The core never owns durable data. It talks to a persistence collaborator
through these protocols, so the REST client, the in-memory backend and test
doubles are interchangeable.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from datetime import date
from typing import Protocol

from rentboard.models.notes import ChangeEvent, ReservationNote
from rentboard.models.reservation import EquipmentLine, Reservation
from rentboard.models.status import ReservationStatus
from rentboard.models.transition import StatusChangeResult


class ReservationRepository(Protocol):
    """Reads reservations and forwards status change requests."""

    async def list_reservations(self, window_start: date, window_end: date) -> list[Reservation]:
        """All reservations whose span intersects ``[window_start, window_end]``."""
        ...

    async def list_equipment_lines(self) -> list[EquipmentLine]:
        ...

    async def request_status_change(
        self,
        reservation_id: str,
        new_status: ReservationStatus,
        comment: str | None,
    ) -> StatusChangeResult:
        """Ask the server to change a status; the server decides legality."""
        ...


class ChangeSubscription(Protocol):
    def subscribe_changes(self) -> AsyncIterator[ChangeEvent]:
        """Stream of change notifications for the reservation collection."""
        ...


class NoteRepository(Protocol):
    async def append_note(self, reservation_id: str, text: str) -> ReservationNote:
        ...

    async def list_notes(self, reservation_id: str) -> list[ReservationNote]:
        """Notes of a reservation, newest first."""
        ...
