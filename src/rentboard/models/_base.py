"""Base model and shared field types for rentboard models.

Every row-backed model inherits from :class:`RentboardBaseModel` which
provides:

* frozen instances, so snapshots can be shared between views safely;
* a ``model_validator(mode="before")`` that drops ``null`` / blank values
  so the field default is used;
* a ``raw`` dict that captures the original row.

Calendar dates go through :data:`CalendarDate`, which implements the single
calendar-day convention of the library: a reservation bound is a date in the
business time zone. The zone is taken from the validation context
(``context={"time_zone": "..."}``) and defaults to ``Europe/Warsaw``.
"""

from __future__ import annotations

from datetime import UTC, date, datetime
from typing import Annotated, Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, ValidationInfo, model_validator

from rentboard._constants import DEFAULT_TIME_ZONE


def _context_zone(info: ValidationInfo | None) -> ZoneInfo:
    context = info.context if info is not None else None
    name = DEFAULT_TIME_ZONE
    if isinstance(context, dict):
        candidate = context.get("time_zone")
        if isinstance(candidate, str) and candidate:
            name = candidate
    try:
        return ZoneInfo(name)
    except ZoneInfoNotFoundError as exc:
        raise ValueError(f"unknown time zone {name!r}") from exc


def to_calendar_date(value: Any, zone: ZoneInfo) -> Any:
    """Reduce *value* to a calendar date in *zone*.

    Plain dates pass through. Offset-aware timestamps are converted to
    *zone* first; naive timestamps are taken as already local. Anything
    else is returned unchanged for pydantic to reject.
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone(zone).date()
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if len(text) == 10:
            return date.fromisoformat(text)
        return to_calendar_date(datetime.fromisoformat(text), zone)
    return value


def parse_calendar_date(value: Any, info: ValidationInfo) -> Any:
    return to_calendar_date(value, _context_zone(info))


def parse_timestamp(value: Any) -> Any:
    """Parse ISO timestamps; naive values are assumed to be UTC."""
    if value is None:
        return value
    if isinstance(value, str):
        value = datetime.fromisoformat(value.strip())
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


CalendarDate = Annotated[date, BeforeValidator(parse_calendar_date)]
"""Date coerced with the business-zone calendar-day convention."""

Timestamp = Annotated[datetime, BeforeValidator(parse_timestamp)]
"""Timezone-aware datetime (naive input is taken as UTC)."""


class RentboardBaseModel(BaseModel):
    """Base for models parsed from persistence rows."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
    )

    raw: dict[str, Any] = Field(default_factory=dict, repr=False, exclude=True)
    """Original row as received."""

    @model_validator(mode="before")
    @classmethod
    def _drop_blank_values(cls, values: Any) -> Any:
        """Drop ``null`` and blank strings, and stash the raw row."""
        if not isinstance(values, dict):
            return values
        cleaned: dict[str, Any] = {}
        for key, value in values.items():
            if value is None:
                continue
            if isinstance(value, str) and not value.strip():
                continue
            cleaned[key] = value
        # Keep an explicitly passed raw (constructor kwargs); otherwise stash the row.
        if "raw" not in values:
            cleaned["raw"] = dict(values)
        return cleaned
