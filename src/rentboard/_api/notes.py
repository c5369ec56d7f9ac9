"""Reservation notes endpoint: ``/rest/v1/reservation_notes``."""

from __future__ import annotations

from rentboard._api._common import expect_rows, parse_rows, validation_context
from rentboard._constants import NOTES_TABLE
from rentboard._transport import Transport
from rentboard.config import RentboardConfig
from rentboard.exceptions import RentboardApiError
from rentboard.models.notes import ReservationNote


async def fetch_notes(config: RentboardConfig, transport: Transport, reservation_id: str) -> list[ReservationNote]:
    """Notes of one reservation, newest first."""
    params = {
        "select": "*",
        "reservation_id": f"eq.{reservation_id}",
        "order": "created_at.desc",
    }
    rows = expect_rows(NOTES_TABLE, await transport.get_json(NOTES_TABLE, params))
    return parse_rows(ReservationNote, rows, config=config, endpoint=NOTES_TABLE)


async def insert_note(
    config: RentboardConfig,
    transport: Transport,
    reservation_id: str,
    text: str,
) -> ReservationNote:
    """Insert a note and return the stored row."""
    payload = await transport.post_json(
        NOTES_TABLE,
        {"reservation_id": reservation_id, "content": text},
        prefer="return=representation",
    )
    rows = expect_rows(NOTES_TABLE, payload)
    if not rows:
        raise RentboardApiError(
            f"{NOTES_TABLE} insert returned no row",
            code="empty_representation",
            endpoint=NOTES_TABLE,
        )
    return ReservationNote.model_validate(rows[0], context=validation_context(config))
