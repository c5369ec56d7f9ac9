"""Shared helpers for PostgREST endpoint modules.

Internal to rentboard and may change at any time.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from rentboard.config import RentboardConfig
from rentboard.exceptions import RentboardApiError

_logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def validation_context(config: RentboardConfig) -> dict[str, Any]:
    """Context handed to model validation (business time zone)."""
    return {"time_zone": config.time_zone}


def expect_rows(endpoint: str, payload: Any) -> list[Any]:
    """Ensure a PostgREST read answered with a JSON array."""
    if payload is None:
        return []
    if not isinstance(payload, list):
        raise RentboardApiError(
            f"{endpoint} returned {type(payload).__name__}, expected a list",
            code="unexpected_payload",
            endpoint=endpoint,
        )
    return payload


def parse_rows(
    model: type[M],
    rows: Iterable[Any],
    *,
    config: RentboardConfig,
    endpoint: str,
) -> list[M]:
    """Validate *rows* into *model*, skipping rows that do not validate."""
    context = validation_context(config)
    parsed: list[M] = []
    for row in rows:
        try:
            parsed.append(model.model_validate(row, context=context))
        except ValidationError as exc:
            row_id = row.get("id") if isinstance(row, dict) else None
            _logger.warning(
                "Skipping invalid %s row from %s (id=%s): %s",
                model.__name__,
                endpoint,
                row_id,
                exc.errors(include_url=False),
            )
    return parsed
