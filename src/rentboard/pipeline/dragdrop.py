"""Translate drag, keyboard and click gestures into intents.

Pointer geometry and collision detection stay in the UI; only the result
crosses into the core: which reservation, and which column (or card) it
ended over. Keyboard moves resolve to the adjacent column and then take the
same path as a drop.
"""

from __future__ import annotations

import logging

from rentboard.models.status import PIPELINE_ORDER, ReservationStatus
from rentboard.models.transition import OpenReservationIntent, TransitionIntent
from rentboard.pipeline.engine import PipelineEngine

_logger = logging.getLogger(__name__)


class DragController:
    """Pins the dragged reservation and emits transition intents."""

    def __init__(self, engine: PipelineEngine) -> None:
        self._engine = engine
        self._active_id: str | None = None

    @property
    def active_id(self) -> str | None:
        return self._active_id

    def drag_start(self, reservation_id: str) -> None:
        self._engine.reservation(reservation_id)
        self._active_id = reservation_id

    def drag_cancel(self) -> None:
        self._active_id = None

    def drag_end(self, over: ReservationStatus | str | None, *, comment: str | None = None) -> TransitionIntent | None:
        """Finish a drag over a column id or over another card.

        Returns ``None`` for drops outside any column and for drops onto
        the reservation's own column.
        """
        reservation_id = self._active_id
        self._active_id = None
        if reservation_id is None or over is None:
            return None
        target = self._resolve_target(over)
        if target is None:
            _logger.debug("Drop target %r is neither a column nor a known card", over)
            return None
        return self._intent(reservation_id, target, comment)

    def keyboard_move(self, reservation_id: str, step: int) -> TransitionIntent | None:
        """Move a card ``step`` columns left (negative) or right (positive)."""
        index = PIPELINE_ORDER.index(self._engine.current_status(reservation_id)) + step
        if not 0 <= index < len(PIPELINE_ORDER):
            return None
        return self._intent(reservation_id, PIPELINE_ORDER[index], None)

    def status_button(
        self,
        reservation_id: str,
        target: ReservationStatus | str,
        *,
        comment: str | None = None,
    ) -> TransitionIntent | None:
        """Intent for an explicit status button on a card or detail view."""
        return self._intent(reservation_id, ReservationStatus(target), comment)

    @staticmethod
    def click(reservation_id: str) -> OpenReservationIntent:
        return OpenReservationIntent(reservation_id=reservation_id)

    def _resolve_target(self, over: ReservationStatus | str) -> ReservationStatus | None:
        try:
            return ReservationStatus(over)
        except ValueError:
            pass
        # Dropped onto a card: the card's column is the target.
        if over in self._engine:
            return self._engine.current_status(str(over))
        return None

    def _intent(
        self,
        reservation_id: str,
        target: ReservationStatus,
        comment: str | None,
    ) -> TransitionIntent | None:
        source = self._engine.current_status(reservation_id)
        if target == source:
            return None
        return TransitionIntent(reservation_id=reservation_id, source=source, target=target, comment=comment)
