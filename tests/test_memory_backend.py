from __future__ import annotations

import asyncio
from datetime import UTC, date, datetime

import pytest

from rentboard.exceptions import RentboardTransportError
from rentboard.memory import InMemoryBackend
from rentboard.models.reservation import EquipmentLine, Reservation
from rentboard.models.status import ReservationStatus


def _reservation(rid: str, status: str, start: date, end: date) -> Reservation:
    return Reservation.model_validate(
        {"id": rid, "start_date": start, "end_date": end, "items": [{"equipment_id": "1"}], "status": status}
    )


def _backend() -> InMemoryBackend:
    return InMemoryBackend(
        [EquipmentLine(id="2", name="Scaffold"), EquipmentLine(id="1", name="Excavator")],
        [
            _reservation("a", "pending", date(2025, 2, 27), date(2025, 3, 1)),
            _reservation("b", "confirmed", date(2025, 3, 31), date(2025, 4, 2)),
            _reservation("c", "pending", date(2025, 4, 5), date(2025, 4, 6)),
        ],
        actor="system",
        clock=lambda: datetime(2025, 3, 1, 12, 0, tzinfo=UTC),
    )


@pytest.mark.asyncio
async def test_reads_filter_by_intersection_and_sort_lines() -> None:
    backend = _backend()
    reservations = await backend.list_reservations(date(2025, 3, 1), date(2025, 3, 31))
    assert [r.id for r in reservations] == ["a", "b"]
    assert [line.name for line in await backend.list_equipment_lines()] == ["Excavator", "Scaffold"]


@pytest.mark.asyncio
async def test_status_changes_follow_policy_table() -> None:
    backend = _backend()

    accepted = await backend.request_status_change("a", ReservationStatus.CONFIRMED, "ok")
    assert accepted.accepted
    assert accepted.changed_at == datetime(2025, 3, 1, 12, 0, tzinfo=UTC)
    updated = backend.get_reservation("a")
    assert updated is not None
    assert updated.status is ReservationStatus.CONFIRMED
    assert updated.history[-1].actor == "system"

    refused = await backend.request_status_change("b", ReservationStatus.ARCHIVED, None)
    assert not refused.accepted
    assert "confirmed" in (refused.reason or "")

    missing = await backend.request_status_change("zzz", ReservationStatus.CONFIRMED, None)
    assert not missing.accepted
    assert len(backend.status_requests) == 3


@pytest.mark.asyncio
async def test_injected_failures_raise_transport_errors() -> None:
    backend = _backend()
    backend.fail_next_fetches(1)
    with pytest.raises(RentboardTransportError):
        await backend.list_equipment_lines()
    assert await backend.list_equipment_lines()


@pytest.mark.asyncio
async def test_changes_are_broadcast_to_subscribers() -> None:
    backend = _backend()
    stream = backend.subscribe_changes()
    first = asyncio.ensure_future(stream.__anext__())
    await asyncio.sleep(0)
    assert backend.subscriber_count == 1

    backend.remove_reservation("c")
    event = await asyncio.wait_for(first, timeout=1.0)
    assert event.source == "memory"
    assert event.payload == {"table": "reservations", "id": "c", "deleted": True}

    await stream.aclose()
    assert backend.subscriber_count == 0
