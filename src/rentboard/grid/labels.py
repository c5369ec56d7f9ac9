"""Label text for placed grid spans.

Label content depends only on the span length in days (and, for medium
spans, on whether the cell width is constrained):

* long spans: full name and the full date/time range;
* medium spans: name and a short day range, with the first name reduced
  to an initial in narrow cells;
* one-day spans: surname and day of month.

Thresholds come from :class:`rentboard.config.LabelPolicy`.
"""

from __future__ import annotations

from datetime import time

from rentboard.config import LabelPolicy
from rentboard.models.reservation import Reservation

DEFAULT_LABEL_POLICY = LabelPolicy()


def _hhmm(value: time | None) -> str:
    return value.strftime("%H:%M") if value is not None else ""


def full_date_range(reservation: Reservation) -> str:
    """``"3.5 - 7.5 09:00 - 17:00"`` (times omitted when unknown)."""
    start, end = reservation.start_date, reservation.end_date
    dates = f"{start.day}.{start.month} - {end.day}.{end.month}"
    if reservation.start_time is None and reservation.end_time is None:
        return dates
    return f"{dates} {_hhmm(reservation.start_time)} - {_hhmm(reservation.end_time)}"


def short_date_range(reservation: Reservation) -> str:
    return f"{reservation.start_date.day}-{reservation.end_date.day}"


def _surname(reservation: Reservation) -> str:
    return reservation.customer.last_name or reservation.customer.display_name or reservation.id


def span_label(
    reservation: Reservation,
    length_days: int,
    *,
    policy: LabelPolicy | None = None,
    cell_width: int | None = None,
) -> str:
    """Return the display text for a span of *length_days* visible days."""
    policy = policy or DEFAULT_LABEL_POLICY
    customer = reservation.customer

    if length_days >= policy.full_min_days:
        name = customer.display_name or reservation.id
        return f"{name}\n{full_date_range(reservation)}"

    if length_days >= policy.medium_min_days:
        narrow = cell_width is not None and cell_width < policy.narrow_width
        if narrow and customer.initial:
            name = f"{_surname(reservation)} {customer.initial}."
        else:
            name = customer.display_name or reservation.id
        return f"{name}\n{short_date_range(reservation)}"

    return f"{_surname(reservation)}\n{reservation.start_date.day}"
