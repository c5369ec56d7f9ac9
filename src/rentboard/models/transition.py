"""Transition audit records, server outcomes and UI intents."""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from rentboard.models._base import RentboardBaseModel, Timestamp
from rentboard.models.status import ReservationStatus


class TransitionRecord(RentboardBaseModel):
    """Immutable audit entry for one status change."""

    previous_status: ReservationStatus
    new_status: ReservationStatus
    changed_at: Timestamp = Field(default_factory=lambda: datetime.now(UTC))
    comment: str | None = None
    actor: str | None = Field(default=None, validation_alias=AliasChoices("actor", "changed_by"))


class StatusChangeResult(BaseModel):
    """Outcome of a status change request, as decided by the server."""

    model_config = ConfigDict(frozen=True)

    accepted: bool
    reason: str | None = None
    changed_at: datetime | None = None

    @classmethod
    def ok(cls, changed_at: datetime | None = None) -> StatusChangeResult:
        return cls(accepted=True, changed_at=changed_at)

    @classmethod
    def rejected(cls, reason: str) -> StatusChangeResult:
        return cls(accepted=False, reason=reason)


class TransitionIntent(BaseModel):
    """A user request to move a reservation to another pipeline column."""

    model_config = ConfigDict(frozen=True)

    reservation_id: str
    source: ReservationStatus
    target: ReservationStatus
    comment: str | None = None


class OpenReservationIntent(BaseModel):
    """A user request to open the detail view of a reservation."""

    model_config = ConfigDict(frozen=True)

    reservation_id: str
