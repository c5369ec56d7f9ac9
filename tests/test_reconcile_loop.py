from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable
from datetime import date

import pytest

from rentboard.exceptions import RentboardTransportError
from rentboard.models.notes import ChangeEvent
from rentboard.models.reservation import EquipmentLine, Reservation
from rentboard.models.status import ReservationStatus
from rentboard.models.transition import StatusChangeResult
from rentboard.models.window import DateWindow
from rentboard.reconcile.loop import ReconciliationLoop, Snapshot

MARCH = DateWindow.month(2025, 3)
APRIL = DateWindow.month(2025, 4)


class _FakeRepository:
    def __init__(self, *, failures: int = 0) -> None:
        self.failures = failures
        self.fetches: list[tuple[date, date]] = []
        self.gate: asyncio.Event | None = None
        self.held: dict[int, asyncio.Event] = {}
        self.results: dict[int, list[Reservation]] = {}

    async def list_equipment_lines(self) -> list[EquipmentLine]:
        return [EquipmentLine(id="1", name="Excavator")]

    async def list_reservations(self, window_start: date, window_end: date) -> list[Reservation]:
        self.fetches.append((window_start, window_end))
        call = len(self.fetches)
        if self.gate is not None:
            await self.gate.wait()
        if call in self.held:
            await self.held[call].wait()
        if self.failures > 0:
            self.failures -= 1
            raise RentboardTransportError("connection reset")
        return list(self.results.get(call, []))

    async def request_status_change(
        self,
        reservation_id: str,
        new_status: ReservationStatus,
        comment: str | None,
    ) -> StatusChangeResult:
        return StatusChangeResult.ok()


class _FakeSubscription:
    def __init__(self, *, fail_first: int = 0) -> None:
        self.events: asyncio.Queue[ChangeEvent] = asyncio.Queue()
        self.fail_first = fail_first
        self.subscribe_count = 0

    async def subscribe_changes(self) -> AsyncIterator[ChangeEvent]:
        self.subscribe_count += 1
        if self.subscribe_count <= self.fail_first:
            raise RentboardTransportError("broker unavailable")
        while True:
            yield await self.events.get()


class _Recorder:
    def __init__(self) -> None:
        self.snapshots: list[Snapshot] = []
        self.degraded: list[bool] = []
        self.delays: list[float] = []

    async def sleep(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


def _reservation(rid: str, status: str) -> Reservation:
    return Reservation.model_validate(
        {
            "id": rid,
            "start_date": "2025-03-03",
            "end_date": "2025-03-05",
            "items": [{"equipment_id": "1"}],
            "status": status,
        }
    )


async def _eventually(predicate: Callable[[], bool]) -> None:
    for _ in range(200):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")


def _loop(repository: _FakeRepository, recorder: _Recorder, **kwargs: object) -> ReconciliationLoop:
    return ReconciliationLoop(
        repository,
        window=MARCH,
        on_snapshot=recorder.snapshots.append,
        on_degraded=recorder.degraded.append,
        sleep=recorder.sleep,
        **kwargs,  # type: ignore[arg-type]
    )


@pytest.mark.asyncio
async def test_refresh_delivers_snapshot_of_current_window() -> None:
    repository, recorder = _FakeRepository(), _Recorder()
    loop = _loop(repository, recorder)

    snapshot = await loop.refresh()

    assert snapshot is not None
    assert snapshot.window == MARCH
    assert snapshot.generation == 0
    assert [line.id for line in snapshot.equipment_lines] == ["1"]
    assert recorder.snapshots == [snapshot]
    assert repository.fetches == [(MARCH.start, MARCH.end)]


@pytest.mark.asyncio
async def test_result_for_superseded_window_is_discarded() -> None:
    repository, recorder = _FakeRepository(), _Recorder()
    repository.gate = asyncio.Event()
    loop = _loop(repository, recorder)

    slow = asyncio.create_task(loop.refresh())
    await _eventually(lambda: len(repository.fetches) == 1)
    assert loop.set_window(APRIL) == 1
    repository.gate.set()

    assert await slow is None
    assert recorder.snapshots == []

    fresh = await loop.refresh()
    assert fresh is not None and fresh.window == APRIL and fresh.generation == 1


@pytest.mark.asyncio
async def test_failures_retry_with_backoff_then_degrade() -> None:
    repository, recorder = _FakeRepository(failures=3), _Recorder()
    loop = _loop(repository, recorder, retry_attempts=3, backoff_initial=0.5, backoff_max=0.75)

    assert await loop.refresh() is None
    assert recorder.delays == [0.5, 0.75]
    assert loop.degraded
    assert recorder.degraded == [True]
    assert recorder.snapshots == []

    assert await loop.refresh() is not None
    assert not loop.degraded
    assert recorder.degraded == [True, False]


@pytest.mark.asyncio
async def test_transient_failure_recovers_without_degrading() -> None:
    repository, recorder = _FakeRepository(failures=1), _Recorder()
    loop = _loop(repository, recorder, retry_attempts=3, backoff_initial=0.0)

    assert await loop.refresh() is not None
    assert recorder.degraded == []
    assert len(repository.fetches) == 2


def test_backoff_delay_doubles_up_to_cap() -> None:
    loop = _loop(_FakeRepository(), _Recorder(), backoff_initial=0.5, backoff_max=3.0)
    assert [loop.backoff_delay(n) for n in range(5)] == [0.5, 1.0, 2.0, 3.0, 3.0]


@pytest.mark.asyncio
async def test_burst_of_signals_is_coalesced() -> None:
    repository, recorder = _FakeRepository(), _Recorder()
    loop = _loop(repository, recorder)

    await loop.start()
    for _ in range(5):
        loop.request_resnapshot("change")
    await loop.wait_idle()
    await loop.stop()

    assert len(repository.fetches) == 1
    assert len(recorder.snapshots) == 1
    assert not loop.is_running


@pytest.mark.asyncio
async def test_change_notification_triggers_resnapshot() -> None:
    repository, recorder, subscription = _FakeRepository(), _Recorder(), _FakeSubscription()
    loop = _loop(repository, recorder, subscription=subscription)

    await loop.start()
    try:
        await loop.wait_idle()
        assert len(recorder.snapshots) == 1

        subscription.events.put_nowait(ChangeEvent(source="test"))
        await _eventually(lambda: len(recorder.snapshots) == 2)
    finally:
        await loop.stop()


@pytest.mark.asyncio
async def test_subscription_failure_degrades_and_resubscribes() -> None:
    repository, recorder = _FakeRepository(), _Recorder()
    subscription = _FakeSubscription(fail_first=1)
    loop = _loop(repository, recorder, subscription=subscription, backoff_initial=0.0)

    await loop.start()
    try:
        await _eventually(lambda: subscription.subscribe_count == 2)
        await loop.wait_idle()
        # A good snapshot alone does not prove the feed is back.
        assert loop.degraded
        assert recorder.degraded == [True]

        subscription.events.put_nowait(ChangeEvent(source="test"))
        await _eventually(lambda: recorder.degraded == [True, False])
        assert not loop.degraded
    finally:
        await loop.stop()


@pytest.mark.asyncio
async def test_slow_older_fetch_does_not_overwrite_newer_snapshot() -> None:
    repository, recorder = _FakeRepository(), _Recorder()
    repository.held[1] = asyncio.Event()
    repository.results = {1: [_reservation("r1", "pending")], 2: [_reservation("r1", "confirmed")]}
    loop = _loop(repository, recorder)

    slow = asyncio.create_task(loop.refresh())
    await _eventually(lambda: len(repository.fetches) == 1)
    fresh = await loop.refresh()
    repository.held[1].set()

    assert fresh is not None
    assert await slow is None
    assert [snapshot.reservations[0].status for snapshot in recorder.snapshots] == [ReservationStatus.CONFIRMED]


@pytest.mark.asyncio
async def test_refresh_racing_the_consumer_keeps_newest_data() -> None:
    repository, recorder = _FakeRepository(), _Recorder()
    repository.held[1] = asyncio.Event()
    repository.results = {1: [_reservation("r1", "pending")], 2: [_reservation("r1", "confirmed")]}
    loop = _loop(repository, recorder)

    await loop.start()
    try:
        await _eventually(lambda: len(repository.fetches) == 1)
        assert await loop.refresh() is not None
        repository.held[1].set()
        await loop.wait_idle()
    finally:
        await loop.stop()

    assert [snapshot.reservations[0].status for snapshot in recorder.snapshots] == [ReservationStatus.CONFIRMED]


@pytest.mark.asyncio
async def test_window_change_during_backoff_abandons_old_retries() -> None:
    repository, recorder = _FakeRepository(failures=10), _Recorder()

    async def sleep(delay: float) -> None:
        recorder.delays.append(delay)
        if loop.window == MARCH:
            loop.set_window(APRIL)
        await asyncio.sleep(0)

    loop = ReconciliationLoop(
        repository,
        window=MARCH,
        on_snapshot=recorder.snapshots.append,
        on_degraded=recorder.degraded.append,
        sleep=sleep,
        retry_attempts=5,
    )

    assert await loop.refresh() is None
    assert repository.fetches == [(MARCH.start, MARCH.end)]
    assert recorder.degraded == []
    assert not loop.degraded
    assert loop.generation == 1

    repository.failures = 0
    fresh = await loop.refresh()
    assert fresh is not None and fresh.window == APRIL
