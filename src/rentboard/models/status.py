"""Reservation lifecycle statuses and the transition policy table.

The table describes which moves the UI should *offer*. It is a hint only:
final legality is decided by the persistence collaborator, and the pipeline
engine forwards any requested move.
"""

from __future__ import annotations

from enum import StrEnum
from types import MappingProxyType


class ReservationStatus(StrEnum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PICKED_UP = "picked_up"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    ARCHIVED = "archived"

    @property
    def label(self) -> str:
        return STATUS_TITLES[self]


#: Column order of the pipeline board.
PIPELINE_ORDER: tuple[ReservationStatus, ...] = (
    ReservationStatus.PENDING,
    ReservationStatus.CONFIRMED,
    ReservationStatus.PICKED_UP,
    ReservationStatus.COMPLETED,
    ReservationStatus.CANCELLED,
    ReservationStatus.ARCHIVED,
)

STATUS_TITLES: MappingProxyType[ReservationStatus, str] = MappingProxyType(
    {
        ReservationStatus.PENDING: "Pending",
        ReservationStatus.CONFIRMED: "Confirmed",
        ReservationStatus.PICKED_UP: "Picked up",
        ReservationStatus.COMPLETED: "Completed",
        ReservationStatus.CANCELLED: "Cancelled",
        ReservationStatus.ARCHIVED: "Archived",
    }
)

ALLOWED_TRANSITIONS: MappingProxyType[ReservationStatus, frozenset[ReservationStatus]] = MappingProxyType(
    {
        ReservationStatus.PENDING: frozenset({ReservationStatus.CONFIRMED, ReservationStatus.CANCELLED}),
        ReservationStatus.CONFIRMED: frozenset({ReservationStatus.PICKED_UP, ReservationStatus.CANCELLED}),
        ReservationStatus.PICKED_UP: frozenset({ReservationStatus.COMPLETED, ReservationStatus.CANCELLED}),
        ReservationStatus.COMPLETED: frozenset({ReservationStatus.ARCHIVED}),
        ReservationStatus.CANCELLED: frozenset({ReservationStatus.ARCHIVED}),
        ReservationStatus.ARCHIVED: frozenset(),
    }
)

#: Statuses whose lifecycle has ended; only archiving is still offered.
CLOSED_STATUSES: frozenset[ReservationStatus] = frozenset(
    {ReservationStatus.COMPLETED, ReservationStatus.CANCELLED, ReservationStatus.ARCHIVED}
)


def allowed_targets(status: ReservationStatus) -> tuple[ReservationStatus, ...]:
    """Policy targets for *status*, in pipeline order."""
    targets = ALLOWED_TRANSITIONS[status]
    return tuple(s for s in PIPELINE_ORDER if s in targets)


def is_transition_allowed(current: ReservationStatus, target: ReservationStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def is_terminal(status: ReservationStatus) -> bool:
    """True when the policy offers no further move at all."""
    return not ALLOWED_TRANSITIONS[status]
