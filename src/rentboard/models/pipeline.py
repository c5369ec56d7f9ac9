"""Pipeline (kanban) column model."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from rentboard.models.reservation import Reservation
from rentboard.models.status import ReservationStatus


class PipelineColumn(BaseModel):
    """Bucket of reservations sharing a status."""

    model_config = ConfigDict(frozen=True)

    status: ReservationStatus
    title: str
    reservations: tuple[Reservation, ...] = ()

    @property
    def id(self) -> str:
        return self.status.value

    def __len__(self) -> int:
        return len(self.reservations)

    def ids(self) -> list[str]:
        return [reservation.id for reservation in self.reservations]
