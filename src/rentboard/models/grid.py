"""Occupancy grid output models."""

from __future__ import annotations

from datetime import date
from enum import StrEnum

from pydantic import BaseModel, ConfigDict

from rentboard.models.reservation import EquipmentLine
from rentboard.models.status import ReservationStatus
from rentboard.models.window import DateWindow


class CellKind(StrEnum):
    EMPTY = "empty"
    SPAN_START = "span_start"
    CONTINUATION = "continuation"


class PlacedSpan(BaseModel):
    """A reservation's merged placement on one equipment line.

    ``clipped_start`` / ``clipped_end`` mean the reservation continues
    before / after the visible window.
    """

    model_config = ConfigDict(frozen=True)

    reservation_id: str
    equipment_line_id: str
    start_offset: int
    length: int
    clipped_start: bool = False
    clipped_end: bool = False
    status: ReservationStatus = ReservationStatus.PENDING
    label: str = ""

    @property
    def end_offset(self) -> int:
        return self.start_offset + self.length - 1

    def covers(self, offset: int) -> bool:
        return self.start_offset <= offset <= self.end_offset


class GridCell(BaseModel):
    """One ``(equipment line, day offset)`` cell.

    Only the ``span_start`` cell of a span is independently renderable;
    ``continuation`` cells exist so adjacent cells can be merged.
    """

    model_config = ConfigDict(frozen=True)

    equipment_line_id: str
    day_offset: int
    kind: CellKind = CellKind.EMPTY
    span: PlacedSpan | None = None

    @property
    def is_empty(self) -> bool:
        return self.kind == CellKind.EMPTY

    @property
    def first_day(self) -> bool:
        return self.kind == CellKind.SPAN_START

    @property
    def reservation_id(self) -> str | None:
        return self.span.reservation_id if self.span is not None else None


class OverlapConflict(BaseModel):
    """Diagnostic entry for a reservation that could not be placed.

    Its visible span collides with ``blocking_reservation_id`` on the same
    line, which has the earlier true start and keeps the cells.
    """

    model_config = ConfigDict(frozen=True)

    reservation_id: str
    equipment_line_id: str
    start_offset: int
    length: int
    blocking_reservation_id: str

    @property
    def end_offset(self) -> int:
        return self.start_offset + self.length - 1


class Grid(BaseModel):
    """Equipment x day occupancy grid for one window.

    ``rows`` is aligned with ``equipment_lines``; each row has one cell per
    day of the window.
    """

    model_config = ConfigDict(frozen=True)

    window_start: date
    window_end: date
    equipment_lines: tuple[EquipmentLine, ...] = ()
    rows: tuple[tuple[GridCell, ...], ...] = ()
    spans: tuple[PlacedSpan, ...] = ()
    overflow: tuple[OverlapConflict, ...] = ()

    @property
    def window(self) -> DateWindow:
        return DateWindow(self.window_start, self.window_end)

    @property
    def days(self) -> int:
        return (self.window_end - self.window_start).days + 1

    def _line_index(self, equipment_line_id: str) -> int:
        for index, line in enumerate(self.equipment_lines):
            if line.id == equipment_line_id:
                return index
        raise KeyError(equipment_line_id)

    def row(self, equipment_line_id: str) -> tuple[GridCell, ...]:
        return self.rows[self._line_index(equipment_line_id)]

    def cell(self, equipment_line_id: str, day_offset: int) -> GridCell:
        return self.row(equipment_line_id)[day_offset]

    def spans_for(self, equipment_line_id: str) -> tuple[PlacedSpan, ...]:
        return tuple(span for span in self.spans if span.equipment_line_id == equipment_line_id)

    def overflow_for(self, equipment_line_id: str) -> tuple[OverlapConflict, ...]:
        return tuple(entry for entry in self.overflow if entry.equipment_line_id == equipment_line_id)
