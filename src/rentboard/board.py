"""Presentation-facing facade tying grid, pipeline and reconciliation together."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any
from zoneinfo import ZoneInfo

from rentboard.config import RentboardConfig
from rentboard.exceptions import RentboardError, TransitionInFlightError, TransitionRejectedError
from rentboard.models.grid import Grid
from rentboard.models.notes import ReservationNote
from rentboard.models.pipeline import PipelineColumn
from rentboard.models.status import ReservationStatus, allowed_targets
from rentboard.models.transition import OpenReservationIntent, TransitionIntent, TransitionRecord
from rentboard.models.window import DateWindow
from rentboard.persistence import ChangeSubscription, NoteRepository, ReservationRepository
from rentboard.pipeline.dragdrop import DragController
from rentboard.pipeline.engine import PipelineEngine
from rentboard.reconcile.loop import ReconciliationLoop, Snapshot
from rentboard.state.view import BoardView, ViewStore

_logger = logging.getLogger(__name__)


def current_month(time_zone: str) -> DateWindow:
    """Month window containing today in *time_zone*."""
    return DateWindow.containing(datetime.now(ZoneInfo(time_zone)).date())


class ReservationBoard:
    """Occupancy grid and status pipeline over one persistence collaborator.

    Usage::

        async with RentboardClient(config) as client:
            async with ReservationBoard(client, config=config, subscription=client) as board:
                await board.refresh()
                grid = board.get_grid()

    The grid view is rebuilt from scratch on every snapshot; the pipeline
    columns additionally reflect optimistic moves. Gesture handlers return
    the scheduled :class:`asyncio.Task` (or ``None`` when the gesture does
    not produce a transition) so callers can await the outcome if they care.
    """

    def __init__(
        self,
        repository: ReservationRepository,
        *,
        config: RentboardConfig | None = None,
        window: DateWindow | None = None,
        subscription: ChangeSubscription | None = None,
        notes: NoteRepository | None = None,
        on_view: Callable[[BoardView], None] | None = None,
        on_columns: Callable[[tuple[PipelineColumn, ...]], None] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._config = config or RentboardConfig()
        window = window or current_month(self._config.time_zone)
        self._notes = notes
        self._views = ViewStore(
            window,
            label_policy=self._config.labels,
            cell_width=self._config.grid_cell_width,
            hidden_statuses=self._config.hidden_grid_statuses,
            on_view=on_view,
        )
        self._engine = PipelineEngine(repository, actor=self._config.actor, on_change=on_columns)
        self._drag = DragController(self._engine)
        self._loop = ReconciliationLoop(
            repository,
            window=window,
            on_snapshot=self._apply_snapshot,
            on_degraded=self._views.set_degraded,
            subscription=subscription,
            retry_attempts=self._config.resnapshot_retry_attempts,
            backoff_initial=self._config.resnapshot_backoff_initial,
            backoff_max=self._config.resnapshot_backoff_max,
            sleep=sleep,
        )
        self._tasks: set[asyncio.Task[Any]] = set()

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> ReservationBoard:
        await self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.stop()

    async def start(self) -> None:
        await self._loop.start()

    async def stop(self) -> None:
        await self._loop.stop()
        pending = list(self._tasks)
        for task in pending:
            task.cancel()
        for task in pending:
            with contextlib.suppress(asyncio.CancelledError, Exception):
                await task
        self._tasks.clear()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def view(self) -> BoardView:
        return self._views.current

    @property
    def window(self) -> DateWindow:
        return self._loop.window

    @property
    def degraded(self) -> bool:
        return self._views.current.degraded

    @property
    def engine(self) -> PipelineEngine:
        return self._engine

    def get_grid(self) -> Grid:
        return self._views.current.grid

    def get_columns(self) -> list[PipelineColumn]:
        return self._engine.columns()

    def allowed_targets(self, reservation_id: str) -> tuple[ReservationStatus, ...]:
        """Advisory targets for status buttons; the server still decides."""
        return allowed_targets(self._engine.current_status(reservation_id))

    # ------------------------------------------------------------------
    # Window control
    # ------------------------------------------------------------------

    def set_window(self, window: DateWindow) -> int:
        """Show *window*; returns the new generation."""
        _logger.debug("Window changed to %s..%s", window.start, window.end)
        return self._loop.set_window(window)

    def next_month(self) -> int:
        return self.set_window(self.window.shift_months(1))

    def previous_month(self) -> int:
        return self.set_window(self.window.shift_months(-1))

    async def refresh(self) -> BoardView | None:
        """Fetch the current window now; ``None`` if stale or failed."""
        snapshot = await self._loop.refresh()
        return None if snapshot is None else self._views.current

    async def wait_idle(self) -> None:
        """Wait for queued resnapshot requests (no-op when not started)."""
        if self._loop.is_running:
            await self._loop.wait_idle()

    def _apply_snapshot(self, snapshot: Snapshot) -> None:
        self._views.replace(snapshot)
        self._engine.load_snapshot(snapshot.reservations)

    # ------------------------------------------------------------------
    # Gestures
    # ------------------------------------------------------------------

    def on_drag_start(self, reservation_id: str) -> None:
        self._drag.drag_start(reservation_id)

    def on_drag_cancel(self) -> None:
        self._drag.drag_cancel()

    def on_drag_end(
        self,
        over: ReservationStatus | str | None,
        *,
        comment: str | None = None,
    ) -> asyncio.Task[TransitionRecord] | None:
        return self._submit_optional(self._drag.drag_end(over, comment=comment))

    def on_keyboard_move(self, reservation_id: str, step: int) -> asyncio.Task[TransitionRecord] | None:
        return self._submit_optional(self._drag.keyboard_move(reservation_id, step))

    def on_status_button(
        self,
        reservation_id: str,
        target: ReservationStatus | str,
        *,
        comment: str | None = None,
    ) -> asyncio.Task[TransitionRecord] | None:
        return self._submit_optional(self._drag.status_button(reservation_id, target, comment=comment))

    def on_click(self, reservation_id: str) -> OpenReservationIntent:
        return self._drag.click(reservation_id)

    def _submit_optional(self, intent: TransitionIntent | None) -> asyncio.Task[TransitionRecord] | None:
        return None if intent is None else self.submit(intent)

    def submit(self, intent: TransitionIntent) -> asyncio.Task[TransitionRecord]:
        """Run *intent* in the background; outcome is logged, never raised here."""
        task = asyncio.create_task(
            self.transition(intent.reservation_id, intent.target, intent.comment),
            name=f"rentboard-transition-{intent.reservation_id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is None:
            return
        if isinstance(exc, TransitionInFlightError):
            _logger.debug("%s", exc)
        elif isinstance(exc, TransitionRejectedError):
            _logger.info("%s", exc)
        else:
            _logger.error("Background transition failed: %s", exc, exc_info=exc)

    # ------------------------------------------------------------------
    # Transitions and notes
    # ------------------------------------------------------------------

    async def transition(
        self,
        reservation_id: str,
        new_status: ReservationStatus | str,
        comment: str | None = None,
    ) -> TransitionRecord:
        """Request a status change, then ask for a fresh snapshot."""
        try:
            record = await self._engine.request_transition(reservation_id, new_status, comment)
        except TransitionRejectedError:
            self._loop.request_resnapshot("rejected")
            raise
        self._loop.request_resnapshot("transition")
        return record

    def _require_notes(self) -> NoteRepository:
        if self._notes is None:
            raise RentboardError("No note repository configured for this board")
        return self._notes

    async def notes(self, reservation_id: str) -> list[ReservationNote]:
        return await self._require_notes().list_notes(reservation_id)

    async def add_note(self, reservation_id: str, text: str) -> ReservationNote:
        text = text.strip()
        if not text:
            raise ValueError("Note text must not be empty")
        return await self._require_notes().append_note(reservation_id, text)
