"""End-to-end tests of the board facade over the in-memory backend."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import date

import pytest

from rentboard.board import ReservationBoard
from rentboard.config import RentboardConfig
from rentboard.exceptions import RentboardError, TransitionRejectedError
from rentboard.memory import InMemoryBackend
from rentboard.models.reservation import EquipmentLine, Reservation
from rentboard.models.status import ReservationStatus
from rentboard.models.transition import OpenReservationIntent
from rentboard.models.window import DateWindow
from rentboard.state.view import BoardView

MARCH = DateWindow.month(2025, 3)


def _reservation(rid: str, status: str, line: str, start: int, end: int, last: str = "Kowalski") -> Reservation:
    return Reservation.model_validate(
        {
            "id": rid,
            "customer": {"first_name": "Adam", "last_name": last},
            "start_date": date(2025, 3, start),
            "end_date": date(2025, 3, end),
            "items": [{"equipment_id": line}],
            "status": status,
        }
    )


def _backend() -> InMemoryBackend:
    return InMemoryBackend(
        [EquipmentLine(id="A", name="Excavator"), EquipmentLine(id="B", name="Compactor")],
        [
            _reservation("r1", "pending", "A", 3, 7),
            _reservation("r2", "confirmed", "B", 10, 11),
            _reservation("r3", "cancelled", "A", 15, 16),
        ],
    )


def _config(**overrides: object) -> RentboardConfig:
    return RentboardConfig(resnapshot_backoff_initial=0.0, **overrides)  # type: ignore[arg-type]


async def _eventually(predicate: Callable[[], bool]) -> None:
    for _ in range(200):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")


def _span_ids(board: ReservationBoard) -> set[str]:
    return {span.reservation_id for span in board.get_grid().spans}


def _column_ids(board: ReservationBoard, status: ReservationStatus) -> list[str]:
    columns = {column.status: column for column in board.get_columns()}
    return columns[status].ids()


@pytest.mark.asyncio
async def test_initial_snapshot_builds_grid_and_columns() -> None:
    backend = _backend()
    views: list[BoardView] = []
    async with ReservationBoard(backend, config=_config(), window=MARCH, on_view=views.append) as board:
        await board.wait_idle()

        assert board.view.is_loaded
        assert board.window == MARCH
        assert not board.degraded
        # Cancelled reservations stay off the grid but keep their column.
        assert _span_ids(board) == {"r1", "r2"}
        assert _column_ids(board, ReservationStatus.CANCELLED) == ["r3"]
        assert _column_ids(board, ReservationStatus.PENDING) == ["r1"]
        assert views[-1] is board.view


@pytest.mark.asyncio
async def test_transition_updates_columns_and_grid() -> None:
    backend = _backend()
    async with ReservationBoard(backend, config=_config(actor="office"), window=MARCH, subscription=backend) as board:
        await board.wait_idle()

        record = await board.transition("r1", "confirmed")
        await board.wait_idle()

        assert record.actor == "office"
        assert backend.status_requests == [("r1", ReservationStatus.CONFIRMED, "Status changed to: confirmed")]
        assert _column_ids(board, ReservationStatus.CONFIRMED) == ["r2", "r1"]
        (span,) = board.get_grid().spans_for("A")
        assert span.status is ReservationStatus.CONFIRMED
        assert board.allowed_targets("r1") == (ReservationStatus.PICKED_UP, ReservationStatus.CANCELLED)


@pytest.mark.asyncio
async def test_server_rejection_snaps_card_back() -> None:
    backend = _backend()
    async with ReservationBoard(backend, config=_config(), window=MARCH) as board:
        await board.wait_idle()

        with pytest.raises(TransitionRejectedError, match="Invalid status transition"):
            await board.transition("r2", "pending")

        assert _column_ids(board, ReservationStatus.CONFIRMED) == ["r2"]
        assert backend.get_reservation("r2").status is ReservationStatus.CONFIRMED  # type: ignore[union-attr]


@pytest.mark.asyncio
async def test_drag_and_keyboard_gestures_submit_transitions() -> None:
    backend = _backend()
    async with ReservationBoard(backend, config=_config(), window=MARCH) as board:
        await board.wait_idle()

        board.on_drag_start("r2")
        task = board.on_drag_end("picked_up")
        assert task is not None
        record = await task
        assert record.new_status is ReservationStatus.PICKED_UP

        keyboard = board.on_keyboard_move("r2", 1)
        assert keyboard is not None
        await keyboard
        assert board.engine.confirmed_status("r2") is ReservationStatus.COMPLETED

        assert board.on_keyboard_move("r1", -1) is None
        assert board.on_click("r1") == OpenReservationIntent(reservation_id="r1")


@pytest.mark.asyncio
async def test_rejected_background_transition_is_logged(caplog: pytest.LogCaptureFixture) -> None:
    backend = _backend()
    async with ReservationBoard(backend, config=_config(), window=MARCH) as board:
        await board.wait_idle()

        with caplog.at_level(logging.INFO, logger="rentboard"):
            task = board.on_status_button("r1", "completed")
            assert task is not None
            with pytest.raises(TransitionRejectedError):
                await task
            await asyncio.sleep(0)

        assert "rejected" in caplog.text
        assert board.engine.current_status("r1") is ReservationStatus.PENDING


@pytest.mark.asyncio
async def test_external_change_triggers_resnapshot() -> None:
    backend = _backend()
    async with ReservationBoard(backend, config=_config(), window=MARCH, subscription=backend) as board:
        await board.wait_idle()
        await _eventually(lambda: backend.subscriber_count == 1)

        backend.put_reservation(_reservation("r4", "pending", "B", 20, 22, last="Nowak"))
        await _eventually(lambda: "r4" in _span_ids(board))

        assert _column_ids(board, ReservationStatus.PENDING) == ["r1", "r4"]


@pytest.mark.asyncio
async def test_month_navigation_swaps_window() -> None:
    backend = _backend()
    async with ReservationBoard(backend, config=_config(), window=MARCH) as board:
        await board.wait_idle()

        generation = board.next_month()
        await board.wait_idle()
        assert board.view.window == DateWindow.month(2025, 4)
        assert board.view.generation == generation
        assert board.get_grid().spans == ()

        board.previous_month()
        await board.wait_idle()
        assert board.view.window == MARCH
        assert _span_ids(board) == {"r1", "r2"}


@pytest.mark.asyncio
async def test_persistent_fetch_failure_marks_view_degraded() -> None:
    backend = _backend()
    board = ReservationBoard(backend, config=_config(resnapshot_retry_attempts=2), window=MARCH)

    assert await board.refresh() is not None
    loaded = board.view

    backend.fail_next_fetches(2)
    assert await board.refresh() is None
    assert board.degraded
    assert board.view.grid == loaded.grid

    assert await board.refresh() is not None
    assert not board.degraded


@pytest.mark.asyncio
async def test_notes_go_through_note_repository() -> None:
    backend = _backend()
    board = ReservationBoard(backend, config=_config(), window=MARCH, notes=backend)

    await board.add_note("r1", "Customer will pick up at 8:00")
    await board.add_note("r1", "Deposit paid")
    notes = await board.notes("r1")
    assert [note.content for note in notes] == ["Deposit paid", "Customer will pick up at 8:00"]

    with pytest.raises(ValueError):
        await board.add_note("r1", "   ")


@pytest.mark.asyncio
async def test_notes_without_repository_raise() -> None:
    board = ReservationBoard(_backend(), config=_config(), window=MARCH)
    with pytest.raises(RentboardError):
        await board.notes("r1")


def test_default_window_is_current_month() -> None:
    board = ReservationBoard(_backend(), config=_config(time_zone="UTC"))
    assert board.window.start.day == 1
    assert board.window.days >= 28
    assert not board.view.is_loaded
