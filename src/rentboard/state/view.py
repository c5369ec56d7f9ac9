"""Immutable board views and the store that swaps them.

:class:`ViewStore` is the only component that replaces the visible view.
Every snapshot produces a brand new :class:`BoardView`; the previous one is
never patched, so a reader holding a reference always sees a consistent
picture.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Callable, Iterable
from datetime import datetime

from rentboard.config import LabelPolicy
from rentboard.grid.builder import build_grid
from rentboard.models.grid import Grid
from rentboard.models.reservation import EquipmentLine, Reservation
from rentboard.models.status import ReservationStatus
from rentboard.models.window import DateWindow
from rentboard.reconcile.loop import Snapshot

_logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True, slots=True)
class BoardView:
    """Grid and source data of one window at one point in time."""

    window: DateWindow
    generation: int
    grid: Grid
    equipment_lines: tuple[EquipmentLine, ...] = ()
    reservations: tuple[Reservation, ...] = ()
    degraded: bool = False
    fetched_at: datetime | None = None

    @property
    def is_loaded(self) -> bool:
        return self.fetched_at is not None


class ViewStore:
    """Builds views from snapshots and holds the current one."""

    def __init__(
        self,
        window: DateWindow,
        *,
        label_policy: LabelPolicy | None = None,
        cell_width: int | None = None,
        hidden_statuses: Iterable[ReservationStatus] = (),
        on_view: Callable[[BoardView], None] | None = None,
    ) -> None:
        self._label_policy = label_policy
        self._cell_width = cell_width
        self._hidden = frozenset(hidden_statuses)
        self._on_view = on_view
        self._current = BoardView(
            window=window,
            generation=0,
            grid=build_grid((), (), window.start, window.end),
        )

    @property
    def current(self) -> BoardView:
        return self._current

    def replace(self, snapshot: Snapshot) -> BoardView:
        """Build a view from *snapshot* and make it current."""
        visible = [r for r in snapshot.reservations if r.status not in self._hidden]
        grid = build_grid(
            snapshot.equipment_lines,
            visible,
            snapshot.window.start,
            snapshot.window.end,
            label_policy=self._label_policy,
            cell_width=self._cell_width,
        )
        view = BoardView(
            window=snapshot.window,
            generation=snapshot.generation,
            grid=grid,
            equipment_lines=snapshot.equipment_lines,
            reservations=snapshot.reservations,
            degraded=False,
            fetched_at=snapshot.fetched_at,
        )
        _logger.info(
            "View %s..%s gen=%s swapped in: %s reservations, %s spans, %s conflicts",
            view.window.start,
            view.window.end,
            view.generation,
            len(view.reservations),
            len(grid.spans),
            len(grid.overflow),
        )
        self._swap(view)
        return view

    def set_degraded(self, degraded: bool) -> BoardView:
        """Flag the current view as (not) degraded, keeping its data."""
        if self._current.degraded != degraded:
            self._swap(dataclasses.replace(self._current, degraded=degraded))
        return self._current

    def _swap(self, view: BoardView) -> None:
        self._current = view
        if self._on_view is None:
            return
        try:
            self._on_view(view)
        except Exception:
            _logger.debug("on_view callback failed", exc_info=True)
