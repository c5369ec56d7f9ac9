"""Equipment endpoint: ``GET /rest/v1/equipment``."""

from __future__ import annotations

from rentboard._api._common import expect_rows, parse_rows
from rentboard._constants import EQUIPMENT_TABLE
from rentboard._transport import Transport
from rentboard.config import RentboardConfig
from rentboard.models.reservation import EquipmentLine


async def fetch_equipment_lines(config: RentboardConfig, transport: Transport) -> list[EquipmentLine]:
    """All equipment lines, ordered by name (grid row order)."""
    payload = await transport.get_json(EQUIPMENT_TABLE, {"select": "id,name", "order": "name.asc"})
    rows = expect_rows(EQUIPMENT_TABLE, payload)
    return parse_rows(EquipmentLine, rows, config=config, endpoint=EQUIPMENT_TABLE)
