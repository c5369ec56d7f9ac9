#!/usr/bin/env python3
"""Dump the occupancy grid and status pipeline for one month.

Loads configuration from ``RENTBOARD_*`` environment variables, fetches one
month window and prints the grid rows, the placed spans, any overlap
conflicts and the pipeline columns.

Usage
-----
::

    export RENTBOARD_BASE_URL="https://<project>.supabase.co"
    export RENTBOARD_API_KEY="..."
    python scripts/dump_board.py --year 2025 --month 3

Options::

    --year / --month     Month to show (default: current month)
    --json               Output as machine-readable JSON
    --output FILE        Write output to FILE instead of stdout
    --demo               Use built-in sample data instead of the REST API
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import UTC, date, datetime, time
from decimal import Decimal
from pathlib import Path
from typing import Any

# Allow running from the repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from rentboard import (  # noqa: E402
    DateWindow,
    EquipmentLine,
    InMemoryBackend,
    RentboardClient,
    RentboardConfig,
    Reservation,
    ReservationBoard,
)
from rentboard.board import current_month  # noqa: E402
from rentboard.models import CellKind  # noqa: E402
from rentboard.state import BoardView  # noqa: E402

# ── helpers ──────────────────────────────────────────────────


def _section(title: str) -> str:
    line = "=" * 60
    return f"\n{line}\n  {title}\n{line}"


_CELL_CHARS = {
    CellKind.EMPTY: ".",
    CellKind.SPAN_START: "#",
    CellKind.CONTINUATION: "=",
}


def _demo_backend(window: DateWindow) -> InMemoryBackend:
    """Sample data in *window*: three lines, one overlap, one cancellation."""
    day = window.date_at
    lines = [
        EquipmentLine(id="1", name="Excavator 1.8t"),
        EquipmentLine(id="2", name="Plate compactor"),
        EquipmentLine(id="3", name="Scaffold tower"),
    ]

    def reservation(rid: str, last: str, first: str, start: int, end: int, line: str, status: str) -> Reservation:
        return Reservation.model_validate(
            {
                "id": rid,
                "customer": {"first_name": first, "last_name": last},
                "start_date": day(start),
                "end_date": day(min(end, window.days - 1)),
                "start_time": time(9, 0),
                "end_time": time(17, 0),
                "items": [{"equipment_id": line, "quantity": 1, "price_per_day": Decimal("150")}],
                "status": status,
                "created_at": datetime(window.start.year, window.start.month, 1, tzinfo=UTC),
            }
        )

    reservations = [
        reservation("101", "Kowalski", "Adam", 0, 4, "1", "confirmed"),
        reservation("102", "Nowak", "Jan", 2, 6, "1", "pending"),
        reservation("103", "Wiśniewska", "Anna", 9, 10, "2", "picked_up"),
        reservation("104", "Lewandowski", "Piotr", 13, 13, "3", "completed"),
        reservation("105", "Zielińska", "Ewa", 15, 18, "3", "cancelled"),
    ]
    return InMemoryBackend(lines, reservations)


def _render_text(view: BoardView, board: ReservationBoard) -> list[str]:
    grid = view.grid
    out: list[str] = [_section(f"GRID  {grid.window_start}..{grid.window_end}")]
    if view.degraded:
        out.append("  !! degraded: showing last known data")
    width = max((len(line.name or line.id) for line in grid.equipment_lines), default=4)
    header = "".join(str(d.day % 10) for d in grid.window.dates())
    out.append(f"  {'':<{width}}  {header}")
    for line in grid.equipment_lines:
        cells = "".join(_CELL_CHARS[cell.kind] for cell in grid.row(line.id))
        out.append(f"  {line.name or line.id:<{width}}  {cells}")

    out.append(_section("SPANS"))
    for span in grid.spans:
        label = span.label.replace("\n", " | ")
        out.append(
            f"  line={span.equipment_line_id} res={span.reservation_id} "
            f"offset={span.start_offset} len={span.length} status={span.status}  {label}"
        )

    if grid.overflow:
        out.append(_section("OVERLAP CONFLICTS"))
        for conflict in grid.overflow:
            out.append(
                f"  line={conflict.equipment_line_id} res={conflict.reservation_id} "
                f"blocked by {conflict.blocking_reservation_id} "
                f"(offset={conflict.start_offset} len={conflict.length})"
            )

    out.append(_section("PIPELINE"))
    for column in board.get_columns():
        ids = ", ".join(column.ids()) or "-"
        out.append(f"  {column.title:<24} ({len(column)}): {ids}")
    return out


def _view_to_dict(view: BoardView, board: ReservationBoard) -> dict[str, Any]:
    return {
        "timestamp": datetime.now(UTC).isoformat(),
        "window": {"start": view.window.start.isoformat(), "end": view.window.end.isoformat()},
        "degraded": view.degraded,
        "grid": view.grid.model_dump(mode="json"),
        "columns": [
            {"status": str(column.status), "title": column.title, "reservations": list(column.ids())}
            for column in board.get_columns()
        ],
    }


# ── main ─────────────────────────────────────────────────────


async def main() -> None:
    parser = argparse.ArgumentParser(description="Dump the occupancy grid and pipeline for one month.")
    parser.add_argument("--year", type=int, help="Year of the month to show")
    parser.add_argument("--month", type=int, help="Month to show (1-12)")
    parser.add_argument("--json", action="store_true", dest="json_mode", help="Output machine-readable JSON")
    parser.add_argument("--output", "-o", help="Write output to FILE instead of stdout")
    parser.add_argument("--demo", action="store_true", help="Use built-in sample data")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.WARNING)

    config = RentboardConfig.from_env(realtime_enabled=False)
    if args.year or args.month:
        today = date.today()
        window = DateWindow.month(args.year or today.year, args.month or today.month)
    else:
        window = current_month(config.time_zone)

    if args.demo:
        backend = _demo_backend(window)
        board = ReservationBoard(backend, config=config, window=window, notes=backend)
        view = await board.refresh()
    else:
        async with RentboardClient(config) as client:
            board = ReservationBoard(client, config=config, window=window, notes=client)
            view = await board.refresh()
    view = view or board.view

    if args.json_mode:
        payload = json.dumps(_view_to_dict(view, board), indent=2, default=str, ensure_ascii=False)
        if args.output:
            Path(args.output).write_text(payload, encoding="utf-8")
            print(f"JSON written to {args.output}", file=sys.stderr)
        else:
            print(payload)
        return

    text = "\n".join(_render_text(view, board))
    if args.output:
        Path(args.output).write_text(text, encoding="utf-8")
        print(f"Output written to {args.output}", file=sys.stderr)
    else:
        print(text)


if __name__ == "__main__":
    asyncio.run(main())
