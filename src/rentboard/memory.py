"""In-process persistence collaborator.

:class:`InMemoryBackend` implements the reservation repository, the note
repository and the change subscription against plain dicts. Unlike the
pipeline engine it *is* an authority: it enforces the allowed-transition
table the way the database function does, so rejected moves can be
exercised without a server.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import AsyncIterator, Callable, Iterable
from datetime import UTC, date, datetime
from typing import Any

from rentboard.exceptions import RentboardTransportError
from rentboard.models.notes import ChangeEvent, ReservationNote
from rentboard.models.reservation import EquipmentLine, Reservation
from rentboard.models.status import ReservationStatus, is_transition_allowed
from rentboard.models.transition import StatusChangeResult, TransitionRecord

_logger = logging.getLogger(__name__)

_SOURCE = "memory"


def _utcnow() -> datetime:
    return datetime.now(UTC)


class InMemoryBackend:
    """Dict-backed store with change broadcast and failure injection."""

    def __init__(
        self,
        equipment: Iterable[EquipmentLine] = (),
        reservations: Iterable[Reservation] = (),
        *,
        actor: str | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._equipment: dict[str, EquipmentLine] = {line.id: line for line in equipment}
        self._reservations: dict[str, Reservation] = {r.id: r for r in reservations}
        self._notes: list[ReservationNote] = []
        self._note_ids = itertools.count(1)
        self._actor = actor
        self._clock = clock
        self._subscribers: list[asyncio.Queue[ChangeEvent]] = []
        self._pending_failures = 0
        self.status_requests: list[tuple[str, ReservationStatus, str | None]] = []
        self.fetch_count = 0

    # ------------------------------------------------------------------
    # Test / demo helpers
    # ------------------------------------------------------------------

    def add_equipment(self, line: EquipmentLine) -> None:
        self._equipment[line.id] = line
        self._broadcast({"table": "equipment", "id": line.id})

    def put_reservation(self, reservation: Reservation) -> None:
        """Insert or replace a reservation and notify subscribers."""
        self._reservations[reservation.id] = reservation
        self._broadcast({"table": "reservations", "id": reservation.id})

    def remove_reservation(self, reservation_id: str) -> None:
        if self._reservations.pop(reservation_id, None) is not None:
            self._broadcast({"table": "reservations", "id": reservation_id, "deleted": True})

    def get_reservation(self, reservation_id: str) -> Reservation | None:
        return self._reservations.get(reservation_id)

    def fail_next_fetches(self, count: int = 1) -> None:
        """Make the next *count* reads raise a transport error."""
        self._pending_failures += count

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    # ------------------------------------------------------------------
    # Reservation repository
    # ------------------------------------------------------------------

    def _maybe_fail(self, endpoint: str) -> None:
        if self._pending_failures > 0:
            self._pending_failures -= 1
            raise RentboardTransportError("Injected failure", endpoint=endpoint)

    async def list_equipment_lines(self) -> list[EquipmentLine]:
        self._maybe_fail("equipment")
        return sorted(self._equipment.values(), key=lambda line: (line.name, line.id))

    async def list_reservations(self, window_start: date, window_end: date) -> list[Reservation]:
        self._maybe_fail("reservations")
        self.fetch_count += 1
        return [r for r in self._reservations.values() if r.intersects(window_start, window_end)]

    async def request_status_change(
        self,
        reservation_id: str,
        new_status: ReservationStatus,
        comment: str | None,
    ) -> StatusChangeResult:
        status = ReservationStatus(new_status)
        self.status_requests.append((reservation_id, status, comment))
        current = self._reservations.get(reservation_id)
        if current is None:
            return StatusChangeResult.rejected(f"Reservation {reservation_id} not found")
        if not is_transition_allowed(current.status, status):
            return StatusChangeResult.rejected(f"Invalid status transition from {current.status} to {status}")

        changed_at = self._clock()
        record = TransitionRecord(
            previous_status=current.status,
            new_status=status,
            changed_at=changed_at,
            comment=comment,
            actor=self._actor,
        )
        self._reservations[reservation_id] = current.model_copy(
            update={
                "status": status,
                "updated_at": changed_at,
                "history": (*current.history, record),
            }
        )
        _logger.debug("In-memory status change %s: %s -> %s", reservation_id, current.status, status)
        self._broadcast({"table": "reservations", "id": reservation_id, "status": str(status)})
        return StatusChangeResult.ok(changed_at)

    # ------------------------------------------------------------------
    # Notes
    # ------------------------------------------------------------------

    async def append_note(self, reservation_id: str, text: str) -> ReservationNote:
        note = ReservationNote(
            id=str(next(self._note_ids)),
            reservation_id=reservation_id,
            content=text,
            created_at=self._clock(),
        )
        self._notes.append(note)
        return note

    async def list_notes(self, reservation_id: str) -> list[ReservationNote]:
        own = [note for note in reversed(self._notes) if note.reservation_id == reservation_id]
        return sorted(own, key=lambda note: note.created_at, reverse=True)

    # ------------------------------------------------------------------
    # Change subscription
    # ------------------------------------------------------------------

    async def subscribe_changes(self) -> AsyncIterator[ChangeEvent]:
        queue: asyncio.Queue[ChangeEvent] = asyncio.Queue()
        self._subscribers.append(queue)
        try:
            while True:
                yield await queue.get()
        finally:
            self._subscribers.remove(queue)

    def _broadcast(self, payload: dict[str, Any]) -> None:
        for queue in list(self._subscribers):
            queue.put_nowait(ChangeEvent(source=_SOURCE, payload=payload))
