"""Reservation, customer and equipment models."""

from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal
from typing import Any

from pydantic import AliasChoices, Field, model_validator

from rentboard.models._base import CalendarDate, RentboardBaseModel, Timestamp
from rentboard.models.status import ReservationStatus
from rentboard.models.transition import TransitionRecord


class Customer(RentboardBaseModel):
    """Customer the reservation was made for."""

    first_name: str = ""
    last_name: str = ""
    email: str | None = None
    phone: str | None = None
    company_name: str | None = None
    company_nip: str | None = None
    """Company tax identification number."""

    @property
    def display_name(self) -> str:
        """``"<last> <first>"``, the form used on grid labels."""
        return " ".join(part for part in (self.last_name, self.first_name) if part)

    @property
    def initial(self) -> str:
        return self.first_name[:1]


class EquipmentLine(RentboardBaseModel):
    """One piece of rentable equipment; a row of the occupancy grid."""

    id: str
    name: str = ""

    @model_validator(mode="before")
    @classmethod
    def _stringify_id(cls, values: Any) -> Any:
        if isinstance(values, dict) and isinstance(values.get("id"), int):
            return {**values, "id": str(values["id"])}
        return values


class ReservationItem(RentboardBaseModel):
    """Booked quantity of one equipment line."""

    equipment_id: str
    quantity: int = Field(default=1, ge=1)
    equipment_name: str | None = None
    price_per_day: Decimal | None = None
    deposit: Decimal | None = None

    @model_validator(mode="before")
    @classmethod
    def _flatten_equipment(cls, values: Any) -> Any:
        """Accept PostgREST's embedded ``equipment: {"name": ...}`` object."""
        if not isinstance(values, dict):
            return values
        working = dict(values)
        if isinstance(working.get("equipment_id"), int):
            working["equipment_id"] = str(working["equipment_id"])
        embedded = working.pop("equipment", None)
        if isinstance(embedded, dict) and "equipment_name" not in working:
            working["equipment_name"] = embedded.get("name")
        return working


class Reservation(RentboardBaseModel):
    """A booking of one or more equipment lines over a closed date span.

    ``start_date`` and ``end_date`` are both inclusive calendar days, so a
    reservation from the 3rd to the 7th lasts five days.
    """

    id: str
    customer: Customer = Field(default_factory=Customer)
    start_date: CalendarDate
    end_date: CalendarDate
    start_time: time | None = None
    end_time: time | None = None
    items: tuple[ReservationItem, ...] = Field(
        min_length=1,
        validation_alias=AliasChoices("items", "reservation_items"),
    )
    status: ReservationStatus = ReservationStatus.PENDING
    total_price: Decimal = Decimal("0")
    created_at: Timestamp | None = None
    updated_at: Timestamp | None = None
    history: tuple[TransitionRecord, ...] = ()
    """Server-side status history, oldest first."""

    @model_validator(mode="before")
    @classmethod
    def _stringify_id(cls, values: Any) -> Any:
        if isinstance(values, dict) and isinstance(values.get("id"), int):
            return {**values, "id": str(values["id"])}
        return values

    @model_validator(mode="after")
    def _check_interval(self) -> Reservation:
        if self.end_date < self.start_date:
            raise ValueError(f"reservation {self.id} ends ({self.end_date}) before it starts ({self.start_date})")
        return self

    @property
    def length_days(self) -> int:
        return (self.end_date - self.start_date).days + 1

    @property
    def equipment_ids(self) -> frozenset[str]:
        return frozenset(item.equipment_id for item in self.items)

    def uses(self, equipment_id: str) -> bool:
        return any(item.equipment_id == equipment_id for item in self.items)

    def intersects(self, start: date, end: date) -> bool:
        """Whether the reservation shares at least one day with ``[start, end]``."""
        return self.start_date <= end and self.end_date >= start

    @property
    def touched_at(self) -> datetime | None:
        """Last update time, falling back to creation time."""
        return self.updated_at or self.created_at
