"""Reservation endpoints.

``GET /rest/v1/reservations`` with embedded customer, items and history, and
``POST /rest/v1/rpc/update_reservation_status`` for status changes.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any

from pydantic import TypeAdapter, ValidationError

from rentboard._api._common import expect_rows, parse_rows
from rentboard._constants import (
    REJECTION_STATUS_CODES,
    RESERVATION_SELECT,
    RESERVATIONS_TABLE,
    STATUS_RPC,
)
from rentboard._transport import Transport
from rentboard.config import RentboardConfig
from rentboard.exceptions import RentboardApiError
from rentboard.models.reservation import Reservation
from rentboard.models.status import ReservationStatus
from rentboard.models.transition import StatusChangeResult

_logger = logging.getLogger(__name__)

_RPC_PATH = f"rpc/{STATUS_RPC}"
_TIMESTAMP = TypeAdapter(datetime)


def build_window_params(window_start: date, window_end: date) -> dict[str, str]:
    """PostgREST filter selecting reservations that intersect the window."""
    return {
        "select": RESERVATION_SELECT,
        "start_date": f"lte.{window_end.isoformat()}",
        "end_date": f"gte.{window_start.isoformat()}",
        "order": "start_date.asc,id.asc",
    }


async def fetch_reservations(
    config: RentboardConfig,
    transport: Transport,
    window_start: date,
    window_end: date,
) -> list[Reservation]:
    """Reservations whose closed span shares a day with the window."""
    payload = await transport.get_json(RESERVATIONS_TABLE, build_window_params(window_start, window_end))
    rows = expect_rows(RESERVATIONS_TABLE, payload)
    reservations = parse_rows(Reservation, rows, config=config, endpoint=RESERVATIONS_TABLE)
    _logger.debug(
        "Fetched %s reservation(s) for %s..%s (%s row(s) skipped)",
        len(reservations),
        window_start,
        window_end,
        len(rows) - len(reservations),
    )
    return reservations


def _changed_at(payload: Any) -> datetime | None:
    # The RPC may return nothing, a bare timestamp or a row-like object.
    candidate = payload.get("changed_at") if isinstance(payload, dict) else payload
    if candidate is None:
        return None
    try:
        return _TIMESTAMP.validate_python(candidate)
    except ValidationError:
        return None


async def request_status_change(
    transport: Transport,
    reservation_id: str,
    new_status: ReservationStatus,
    comment: str | None,
) -> StatusChangeResult:
    """Call the status RPC; refusals by the database become rejections.

    Raises
    ------
    RentboardTransportError
        Network failure or server error; the outcome is unknown.
    RentboardApiError
        Any other API error (for example expired credentials).
    """
    body = {
        "p_reservation_id": reservation_id,
        "p_new_status": str(new_status),
        "p_comment": comment,
    }
    try:
        payload = await transport.post_json(_RPC_PATH, body)
    except RentboardApiError as exc:
        if exc.status_code in REJECTION_STATUS_CODES:
            return StatusChangeResult.rejected(str(exc))
        raise
    return StatusChangeResult.ok(_changed_at(payload))
