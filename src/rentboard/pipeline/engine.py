"""Status pipeline engine.

The engine keeps two layers per reservation, in the same spirit as a state
store with optimistic overlays:

* the **confirmed** snapshot, replaced wholesale by every resnapshot and
  updated locally only after the server accepts a transition;
* an **optimistic** overlay of not-yet-confirmed column moves, discarded by
  the next snapshot or reverted when the server refuses.

Columns are rebuilt into a new tuple after every change and the reference
swapped; published column tuples are never mutated.

The engine is an orchestrator, not an authority: it forwards any requested
move to the persistence collaborator and lets the server decide legality.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import UTC, datetime

from rentboard._constants import default_status_comment
from rentboard.exceptions import (
    TransitionInFlightError,
    TransitionRejectedError,
    UnknownReservationError,
)
from rentboard.models.pipeline import PipelineColumn
from rentboard.models.reservation import Reservation
from rentboard.models.status import PIPELINE_ORDER, ReservationStatus
from rentboard.models.transition import TransitionRecord
from rentboard.persistence import ReservationRepository

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _snapshot_order(reservations: Iterable[Reservation]) -> list[Reservation]:
    # Untimestamped rows keep fetch order ahead of timestamped ones (stable sort).
    return sorted(
        reservations,
        key=lambda r: (r.touched_at is not None, r.touched_at.timestamp() if r.touched_at else 0.0),
    )


@dataclass(frozen=True, slots=True)
class _OptimisticMove:
    status: ReservationStatus
    applied_at: datetime


class PipelineEngine:
    """Groups reservations into status columns and runs transitions."""

    def __init__(
        self,
        repository: ReservationRepository,
        *,
        actor: str | None = None,
        clock: Callable[[], datetime] = _utcnow,
        on_change: Callable[[tuple[PipelineColumn, ...]], None] | None = None,
    ) -> None:
        self._repository = repository
        self._actor = actor
        self._clock = clock
        self._on_change = on_change
        self._confirmed: dict[str, Reservation] = {}
        self._optimistic: dict[str, _OptimisticMove] = {}
        self._cosmetic_order: dict[ReservationStatus, tuple[str, ...]] = {}
        self._in_flight: set[str] = set()
        self._log: list[tuple[str, TransitionRecord]] = []
        self._columns: tuple[PipelineColumn, ...] = self._build_columns()

    # ------------------------------------------------------------------
    # Snapshot & lookup
    # ------------------------------------------------------------------

    @staticmethod
    def classify(reservation: Reservation) -> ReservationStatus:
        """Column membership of *reservation*: its current status."""
        return reservation.status

    def load_snapshot(self, reservations: Iterable[Reservation]) -> None:
        """Replace the confirmed snapshot and drop all local provisional state."""
        confirmed = {r.id: r for r in _snapshot_order(reservations)}
        if self._optimistic:
            _logger.info(
                "Snapshot discards %s unconfirmed optimistic move(s): %s",
                len(self._optimistic),
                ", ".join(sorted(self._optimistic)),
            )
        self._confirmed = confirmed
        self._optimistic = {}
        self._cosmetic_order = {}
        self._publish()

    def reservation(self, reservation_id: str) -> Reservation:
        """Last confirmed version of a reservation."""
        try:
            return self._confirmed[reservation_id]
        except KeyError:
            raise UnknownReservationError(reservation_id) from None

    def __contains__(self, reservation_id: object) -> bool:
        return reservation_id in self._confirmed

    def confirmed_status(self, reservation_id: str) -> ReservationStatus:
        return self.classify(self.reservation(reservation_id))

    def current_status(self, reservation_id: str) -> ReservationStatus:
        """Status as displayed, including an optimistic move."""
        confirmed = self.confirmed_status(reservation_id)
        move = self._optimistic.get(reservation_id)
        return move.status if move is not None else confirmed

    def columns(self) -> list[PipelineColumn]:
        return list(self._columns)

    def column(self, status: ReservationStatus | str) -> PipelineColumn:
        return self._columns[PIPELINE_ORDER.index(ReservationStatus(status))]

    def is_in_flight(self, reservation_id: str) -> bool:
        return reservation_id in self._in_flight

    def has_optimistic(self, reservation_id: str) -> bool:
        return reservation_id in self._optimistic

    def transition_log(self, reservation_id: str | None = None) -> list[TransitionRecord]:
        """Transitions confirmed through this engine, oldest first."""
        return [record for rid, record in self._log if reservation_id is None or rid == reservation_id]

    # ------------------------------------------------------------------
    # Local (provisional) changes
    # ------------------------------------------------------------------

    def apply_optimistic(self, reservation_id: str, new_status: ReservationStatus | str) -> None:
        """Move a reservation to *new_status*'s column before confirmation."""
        status = ReservationStatus(new_status)
        if self.confirmed_status(reservation_id) == status:
            self._optimistic.pop(reservation_id, None)
        else:
            self._optimistic[reservation_id] = _OptimisticMove(status=status, applied_at=self._clock())
        self._publish()

    def revert_optimistic(self, reservation_id: str) -> bool:
        """Snap back to the last confirmed column. Safe to call repeatedly."""
        if self._optimistic.pop(reservation_id, None) is None:
            return False
        self._publish()
        return True

    def reorder(self, reservation_id: str, index: int) -> None:
        """Move a card within its column. Display only; never persisted."""
        status = self.current_status(reservation_id)
        ids = [rid for rid in self.column(status).ids() if rid != reservation_id]
        index = max(0, min(index, len(ids)))
        ids.insert(index, reservation_id)
        self._cosmetic_order = {**self._cosmetic_order, status: tuple(ids)}
        self._publish()

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def request_transition(
        self,
        reservation_id: str,
        new_status: ReservationStatus | str,
        comment: str | None = None,
        *,
        optimistic: bool = True,
    ) -> TransitionRecord:
        """Ask the persistence collaborator to move a reservation.

        Only one request per reservation may be unresolved at a time; a
        second one raises :class:`TransitionInFlightError` without any
        network call. With ``optimistic=True`` the card moves immediately
        and snaps back if the request fails.

        Raises
        ------
        TransitionInFlightError
            Another request for the reservation is unresolved.
        TransitionRejectedError
            The server refused the change.
        UnknownReservationError
            The reservation is not in the current snapshot.
        """
        status = ReservationStatus(new_status)
        if reservation_id in self._in_flight:
            _logger.debug("Dropping transition of %s to %s: already in flight", reservation_id, status)
            raise TransitionInFlightError(reservation_id)

        previous = self.confirmed_status(reservation_id)
        text = comment if comment is not None else default_status_comment(status)

        self._in_flight.add(reservation_id)
        try:
            if optimistic:
                self.apply_optimistic(reservation_id, status)
            try:
                result = await self._repository.request_status_change(reservation_id, status, text)
            except Exception:
                self.revert_optimistic(reservation_id)
                raise
            if not result.accepted:
                self.revert_optimistic(reservation_id)
                reason = result.reason or "rejected by server"
                _logger.warning(
                    "Transition of %s from %s to %s rejected: %s",
                    reservation_id,
                    previous,
                    status,
                    reason,
                )
                raise TransitionRejectedError(reservation_id, reason)
            return self._confirm(reservation_id, previous, status, text, result.changed_at)
        finally:
            self._in_flight.discard(reservation_id)

    def _confirm(
        self,
        reservation_id: str,
        previous: ReservationStatus,
        status: ReservationStatus,
        comment: str | None,
        changed_at: datetime | None,
    ) -> TransitionRecord:
        record = TransitionRecord(
            previous_status=previous,
            new_status=status,
            changed_at=changed_at or self._clock(),
            comment=comment,
            actor=self._actor,
        )
        self._log.append((reservation_id, record))

        confirmed = dict(self._confirmed)
        current = confirmed.pop(reservation_id, None)
        if current is not None:
            # Re-inserted last: an accepted change is the newest update.
            confirmed[reservation_id] = current.model_copy(
                update={
                    "status": status,
                    "updated_at": record.changed_at,
                    "history": (*current.history, record),
                }
            )
        self._confirmed = confirmed
        self._optimistic.pop(reservation_id, None)
        _logger.info("Reservation %s moved %s -> %s", reservation_id, previous, status)
        self._publish()
        return record

    # ------------------------------------------------------------------
    # Column building
    # ------------------------------------------------------------------

    def _build_columns(self) -> tuple[PipelineColumn, ...]:
        buckets: dict[ReservationStatus, list[Reservation]] = {status: [] for status in PIPELINE_ORDER}
        moved: list[tuple[datetime, Reservation]] = []
        for reservation_id, reservation in self._confirmed.items():
            move = self._optimistic.get(reservation_id)
            if move is None:
                buckets[reservation.status].append(reservation)
            else:
                moved.append((move.applied_at, reservation.model_copy(update={"status": move.status})))
        # Optimistic moves count as the latest updates of their target column.
        for _applied_at, reservation in sorted(moved, key=lambda pair: pair[0]):
            buckets[reservation.status].append(reservation)

        for status, order in self._cosmetic_order.items():
            rank = {rid: index for index, rid in enumerate(order)}
            buckets[status].sort(key=lambda r: rank.get(r.id, len(rank)))

        return tuple(
            PipelineColumn(status=status, title=status.label, reservations=tuple(buckets[status]))
            for status in PIPELINE_ORDER
        )

    def _publish(self) -> None:
        columns = self._build_columns()
        self._columns = columns
        if self._on_change is None:
            return
        try:
            self._on_change(columns)
        except Exception:
            _logger.debug("on_change callback failed", exc_info=True)
