"""Reservation notes and change notifications."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from rentboard.models._base import RentboardBaseModel, Timestamp


class ReservationNote(RentboardBaseModel):
    """Free-text note attached to a reservation by staff."""

    reservation_id: str
    content: str
    created_at: Timestamp = Field(default_factory=lambda: datetime.now(UTC))
    id: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _stringify_ids(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        working = dict(values)
        for key in ("id", "reservation_id"):
            if isinstance(working.get(key), int):
                working[key] = str(working[key])
        return working


class ChangeEvent(BaseModel):
    """Notification that the reservation collection changed.

    The payload is never interpreted; any event triggers a full resnapshot.
    """

    model_config = ConfigDict(frozen=True)

    source: str
    received_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    payload: dict[str, Any] = Field(default_factory=dict, repr=False)
