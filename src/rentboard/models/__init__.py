"""Data models for reservations, grids and the status pipeline."""

from rentboard.models._base import CalendarDate, RentboardBaseModel, Timestamp, to_calendar_date
from rentboard.models.grid import CellKind, Grid, GridCell, OverlapConflict, PlacedSpan
from rentboard.models.notes import ChangeEvent, ReservationNote
from rentboard.models.pipeline import PipelineColumn
from rentboard.models.reservation import Customer, EquipmentLine, Reservation, ReservationItem
from rentboard.models.status import (
    ALLOWED_TRANSITIONS,
    CLOSED_STATUSES,
    PIPELINE_ORDER,
    ReservationStatus,
    allowed_targets,
    is_terminal,
    is_transition_allowed,
)
from rentboard.models.transition import (
    OpenReservationIntent,
    StatusChangeResult,
    TransitionIntent,
    TransitionRecord,
)
from rentboard.models.window import DateWindow

__all__ = [
    "ALLOWED_TRANSITIONS",
    "CLOSED_STATUSES",
    "CalendarDate",
    "CellKind",
    "ChangeEvent",
    "Customer",
    "DateWindow",
    "EquipmentLine",
    "Grid",
    "GridCell",
    "OpenReservationIntent",
    "OverlapConflict",
    "PIPELINE_ORDER",
    "PipelineColumn",
    "PlacedSpan",
    "RentboardBaseModel",
    "Reservation",
    "ReservationItem",
    "ReservationNote",
    "ReservationStatus",
    "StatusChangeResult",
    "Timestamp",
    "TransitionIntent",
    "TransitionRecord",
    "allowed_targets",
    "is_terminal",
    "is_transition_allowed",
    "to_calendar_date",
]
