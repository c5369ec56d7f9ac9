from __future__ import annotations

from datetime import date

import pytest

from rentboard.exceptions import UnknownReservationError
from rentboard.models.reservation import EquipmentLine, Reservation
from rentboard.models.status import ReservationStatus
from rentboard.models.transition import OpenReservationIntent, StatusChangeResult, TransitionIntent
from rentboard.pipeline.dragdrop import DragController
from rentboard.pipeline.engine import PipelineEngine


class _NullRepository:
    async def list_reservations(self, window_start: date, window_end: date) -> list[Reservation]:
        return []

    async def list_equipment_lines(self) -> list[EquipmentLine]:
        return []

    async def request_status_change(
        self,
        reservation_id: str,
        new_status: ReservationStatus,
        comment: str | None,
    ) -> StatusChangeResult:
        return StatusChangeResult.ok()


def _reservation(rid: str, status: str) -> Reservation:
    return Reservation.model_validate(
        {
            "id": rid,
            "start_date": "2025-03-03",
            "end_date": "2025-03-05",
            "items": [{"equipment_id": "1"}],
            "status": status,
        }
    )


@pytest.fixture
def controller() -> DragController:
    engine = PipelineEngine(_NullRepository())
    engine.load_snapshot(
        [
            _reservation("p1", "pending"),
            _reservation("c1", "confirmed"),
            _reservation("x1", "archived"),
        ]
    )
    return DragController(engine)


def test_drop_on_other_column_yields_intent(controller: DragController) -> None:
    controller.drag_start("p1")
    assert controller.active_id == "p1"

    intent = controller.drag_end("confirmed", comment="Paid deposit")

    assert intent == TransitionIntent(
        reservation_id="p1",
        source=ReservationStatus.PENDING,
        target=ReservationStatus.CONFIRMED,
        comment="Paid deposit",
    )
    assert controller.active_id is None


def test_drop_on_card_targets_that_cards_column(controller: DragController) -> None:
    controller.drag_start("p1")
    intent = controller.drag_end("c1")
    assert intent is not None
    assert intent.target is ReservationStatus.CONFIRMED


def test_drop_on_own_column_or_nowhere_is_noop(controller: DragController) -> None:
    controller.drag_start("p1")
    assert controller.drag_end(ReservationStatus.PENDING) is None

    controller.drag_start("p1")
    assert controller.drag_end(None) is None

    controller.drag_start("p1")
    assert controller.drag_end("not-a-column-or-card") is None


def test_cancel_clears_active_drag(controller: DragController) -> None:
    controller.drag_start("p1")
    controller.drag_cancel()
    assert controller.active_id is None
    assert controller.drag_end("confirmed") is None


def test_drag_start_requires_known_reservation(controller: DragController) -> None:
    with pytest.raises(UnknownReservationError):
        controller.drag_start("missing")


def test_keyboard_moves_to_adjacent_column(controller: DragController) -> None:
    right = controller.keyboard_move("c1", 1)
    left = controller.keyboard_move("c1", -1)
    assert right is not None and right.target is ReservationStatus.PICKED_UP
    assert left is not None and left.target is ReservationStatus.PENDING


def test_keyboard_move_past_the_edge_is_noop(controller: DragController) -> None:
    assert controller.keyboard_move("p1", -1) is None
    assert controller.keyboard_move("x1", 1) is None


def test_status_button_and_click(controller: DragController) -> None:
    intent = controller.status_button("c1", "cancelled", comment="Customer withdrew")
    assert intent is not None
    assert intent.source is ReservationStatus.CONFIRMED
    assert intent.target is ReservationStatus.CANCELLED
    assert controller.status_button("c1", "confirmed") is None
    assert controller.click("c1") == OpenReservationIntent(reservation_id="c1")
