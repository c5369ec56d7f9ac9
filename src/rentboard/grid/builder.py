"""Occupancy grid computation.

:func:`build_grid` is a pure, synchronous pass over the reservations of a
window: no I/O, no hidden state, identical inputs give identical grids.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import date

from rentboard.config import LabelPolicy
from rentboard.exceptions import InvalidWindowError
from rentboard.grid.labels import span_label
from rentboard.models.grid import CellKind, Grid, GridCell, OverlapConflict, PlacedSpan
from rentboard.models.reservation import EquipmentLine, Reservation
from rentboard.models.window import DateWindow

_logger = logging.getLogger(__name__)


def _placement_order(reservation: Reservation) -> tuple[date, date, str]:
    # Earliest true start wins a contested cell; end date and id break ties.
    return (reservation.start_date, reservation.end_date, reservation.id)


def _visible_span(
    reservation: Reservation,
    equipment_line_id: str,
    window: DateWindow,
    *,
    label_policy: LabelPolicy | None,
    cell_width: int | None,
) -> PlacedSpan:
    clipped_start, clipped_end = window.clip(reservation.start_date, reservation.end_date)
    length = (clipped_end - clipped_start).days + 1
    return PlacedSpan(
        reservation_id=reservation.id,
        equipment_line_id=equipment_line_id,
        start_offset=window.offset_of(clipped_start),
        length=length,
        clipped_start=clipped_start != reservation.start_date,
        clipped_end=clipped_end != reservation.end_date,
        status=reservation.status,
        label=span_label(reservation, length, policy=label_policy, cell_width=cell_width),
    )


def _overlapping(span: PlacedSpan, placed: Sequence[PlacedSpan]) -> PlacedSpan | None:
    for other in placed:
        if span.start_offset <= other.end_offset and other.start_offset <= span.end_offset:
            return other
    return None


def _row_cells(equipment_line_id: str, days: int, placed: Sequence[PlacedSpan]) -> tuple[GridCell, ...]:
    cells = [GridCell(equipment_line_id=equipment_line_id, day_offset=offset) for offset in range(days)]
    for span in placed:
        for offset in range(span.start_offset, span.end_offset + 1):
            kind = CellKind.SPAN_START if offset == span.start_offset else CellKind.CONTINUATION
            cells[offset] = GridCell(
                equipment_line_id=equipment_line_id,
                day_offset=offset,
                kind=kind,
                span=span,
            )
    return tuple(cells)


def build_grid(
    equipment_lines: Iterable[EquipmentLine],
    reservations: Iterable[Reservation],
    window_start: date,
    window_end: date,
    *,
    label_policy: LabelPolicy | None = None,
    cell_width: int | None = None,
) -> Grid:
    """Place *reservations* on an equipment x day grid for the given window.

    Every reservation intersecting the window is placed once per equipment
    line it books, as a single span clipped to the window. Reservations that
    reference lines not in *equipment_lines* are ignored for those lines.

    When two visible spans on the same line overlap, the reservation with the
    earliest true start keeps the cells and the other is reported whole in
    ``Grid.overflow``; the grid is still produced.

    Raises
    ------
    InvalidWindowError
        If ``window_end`` is before ``window_start``.
    """
    if window_end < window_start:
        raise InvalidWindowError(f"window ends ({window_end}) before it starts ({window_start})")
    window = DateWindow(window_start, window_end)
    lines = tuple(equipment_lines)

    candidates = sorted(
        (r for r in reservations if window.intersects(r.start_date, r.end_date)),
        key=_placement_order,
    )

    rows: list[tuple[GridCell, ...]] = []
    spans: list[PlacedSpan] = []
    overflow: list[OverlapConflict] = []

    for line in lines:
        placed: list[PlacedSpan] = []
        for reservation in candidates:
            if not reservation.uses(line.id):
                continue
            span = _visible_span(
                reservation,
                line.id,
                window,
                label_policy=label_policy,
                cell_width=cell_width,
            )
            blocker = _overlapping(span, placed)
            if blocker is None:
                placed.append(span)
                continue
            conflict = OverlapConflict(
                reservation_id=reservation.id,
                equipment_line_id=line.id,
                start_offset=span.start_offset,
                length=span.length,
                blocking_reservation_id=blocker.reservation_id,
            )
            overflow.append(conflict)
            _logger.warning(
                "Double booking on equipment %s: reservation %s (days %s-%s) overlaps %s; not placed",
                line.id,
                reservation.id,
                window.date_at(conflict.start_offset),
                window.date_at(conflict.end_offset),
                blocker.reservation_id,
            )

        placed.sort(key=lambda s: s.start_offset)
        rows.append(_row_cells(line.id, window.days, placed))
        spans.extend(placed)

    _logger.debug(
        "Built grid %s..%s lines=%s spans=%s overflow=%s",
        window.start,
        window.end,
        len(lines),
        len(spans),
        len(overflow),
    )
    return Grid(
        window_start=window.start,
        window_end=window.end,
        equipment_lines=lines,
        rows=tuple(rows),
        spans=tuple(spans),
        overflow=tuple(overflow),
    )
