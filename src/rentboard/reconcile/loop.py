"""Reconciliation loop: change notifications -> full resnapshot.

Notification handlers never touch a view. They only put a "recompute
requested" signal on an :class:`asyncio.Queue`; one consumer task drains
the queue, refetches the current window and hands the fresh snapshot to
``on_snapshot``, which builds a new view and swaps it in. Bursts of signals
collapse into a single fetch.

Window changes bump a generation counter. A fetch that completes after the
window changed again is stale and its result is dropped. Every fetch also
takes a sequence number; a result older than the last delivered one is
dropped too, so a slow fetch can never overwrite newer data.

The view is degraded while the last fetch failed or while the change feed
is down. The feed counts as back once the new stream delivers an event.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from rentboard.exceptions import RentboardError, StaleSnapshotError
from rentboard.models.reservation import EquipmentLine, Reservation
from rentboard.models.window import DateWindow
from rentboard.persistence import ChangeSubscription, ReservationRepository

_logger = logging.getLogger(__name__)

#: Failures worth retrying: collaborator errors and network-level errors.
_RETRYABLE = (RentboardError, OSError, TimeoutError)


@dataclass(frozen=True, slots=True)
class Snapshot:
    """Authoritative data for one window, as fetched."""

    window: DateWindow
    generation: int
    equipment_lines: tuple[EquipmentLine, ...]
    reservations: tuple[Reservation, ...]
    fetched_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class ReconciliationLoop:
    """Single-consumer resnapshot loop with retry and stale-result discard."""

    def __init__(
        self,
        repository: ReservationRepository,
        *,
        window: DateWindow,
        on_snapshot: Callable[[Snapshot], None],
        on_degraded: Callable[[bool], None] | None = None,
        subscription: ChangeSubscription | None = None,
        retry_attempts: int = 5,
        backoff_initial: float = 0.5,
        backoff_max: float = 30.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._repository = repository
        self._window = window
        self._on_snapshot = on_snapshot
        self._on_degraded = on_degraded
        self._subscription = subscription
        self._retry_attempts = max(1, retry_attempts)
        self._backoff_initial = backoff_initial
        self._backoff_max = backoff_max
        self._sleep = sleep
        self._queue: asyncio.Queue[str] = asyncio.Queue()
        self._generation = 0
        self._fetch_seq = 0
        self._delivered_seq = 0
        self._fetch_failed = False
        self._feed_down = False
        self._degraded = False
        self._consumer: asyncio.Task[None] | None = None
        self._subscriber: asyncio.Task[None] | None = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def window(self) -> DateWindow:
        return self._window

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def degraded(self) -> bool:
        return self._degraded

    @property
    def is_running(self) -> bool:
        return self._consumer is not None and not self._consumer.done()

    def backoff_delay(self, attempt: int) -> float:
        return min(self._backoff_max, self._backoff_initial * (2**attempt))

    # ------------------------------------------------------------------
    # Signals
    # ------------------------------------------------------------------

    def request_resnapshot(self, reason: str = "manual") -> None:
        """Enqueue a recompute request. Never blocks, never fetches."""
        self._queue.put_nowait(reason)

    def set_window(self, window: DateWindow) -> int:
        """Switch to *window*; results of older fetches become stale."""
        self._window = window
        self._generation += 1
        self.request_resnapshot("window")
        return self._generation

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        if self.is_running:
            return
        self._consumer = asyncio.create_task(self._consume(), name="rentboard-resnapshot")
        if self._subscription is not None:
            self._subscriber = asyncio.create_task(self._subscribe(), name="rentboard-changes")
        self.request_resnapshot("start")

    async def stop(self) -> None:
        tasks = [task for task in (self._subscriber, self._consumer) if task is not None]
        self._subscriber = None
        self._consumer = None
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def wait_idle(self) -> None:
        """Wait until every queued signal has been processed."""
        await self._queue.join()

    # ------------------------------------------------------------------
    # Fetch / deliver
    # ------------------------------------------------------------------

    async def refresh(self) -> Snapshot | None:
        """Fetch the current window now and deliver it unless superseded.

        Returns the delivered snapshot, or ``None`` when the result was
        superseded or every attempt failed (the view is then marked
        degraded).
        """
        generation = self._generation
        window = self._window
        self._fetch_seq += 1
        seq = self._fetch_seq
        snapshot = await self._fetch(window, generation, seq)
        if snapshot is None:
            return None
        try:
            self._check_current(snapshot)
        except StaleSnapshotError as exc:
            _logger.debug("Discarding stale snapshot for %s..%s: %s", window.start, window.end, exc)
            return None
        if seq < self._delivered_seq:
            _logger.debug("Discarding snapshot #%s: #%s already delivered", seq, self._delivered_seq)
            return None
        self._delivered_seq = seq
        self._set_fetch_failed(False)
        self._on_snapshot(snapshot)
        return snapshot

    def _check_current(self, snapshot: Snapshot) -> None:
        if snapshot.generation != self._generation:
            raise StaleSnapshotError(snapshot.generation, self._generation)

    def _superseded(self, generation: int, seq: int) -> bool:
        return generation != self._generation or seq < self._delivered_seq

    async def _fetch(self, window: DateWindow, generation: int, seq: int) -> Snapshot | None:
        for attempt in range(self._retry_attempts):
            if attempt and self._superseded(generation, seq):
                _logger.debug("Abandoning retries for superseded fetch of %s..%s", window.start, window.end)
                return None
            try:
                lines = await self._repository.list_equipment_lines()
                reservations = await self._repository.list_reservations(window.start, window.end)
            except _RETRYABLE as exc:
                if attempt + 1 >= self._retry_attempts:
                    _logger.warning(
                        "Resnapshot of %s..%s failed after %s attempts: %s",
                        window.start,
                        window.end,
                        self._retry_attempts,
                        exc,
                    )
                    break
                if self._superseded(generation, seq):
                    _logger.debug("Abandoning retries for superseded fetch of %s..%s", window.start, window.end)
                    return None
                delay = self.backoff_delay(attempt)
                _logger.debug("Resnapshot attempt %s failed (%s); retrying in %.2fs", attempt + 1, exc, delay)
                await self._sleep(delay)
                continue
            return Snapshot(
                window=window,
                generation=generation,
                equipment_lines=tuple(lines),
                reservations=tuple(reservations),
            )
        if self._superseded(generation, seq):
            return None
        self._set_fetch_failed(True)
        return None

    def _set_fetch_failed(self, failed: bool) -> None:
        self._fetch_failed = failed
        self._update_degraded()

    def _set_feed_down(self, down: bool) -> None:
        self._feed_down = down
        self._update_degraded()

    def _update_degraded(self) -> None:
        degraded = self._fetch_failed or self._feed_down
        if degraded == self._degraded:
            return
        self._degraded = degraded
        if degraded:
            _logger.warning("Reservation view degraded: showing last known data")
        else:
            _logger.info("Reservation view recovered")
        if self._on_degraded is None:
            return
        try:
            self._on_degraded(degraded)
        except Exception:
            _logger.debug("on_degraded callback failed", exc_info=True)

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def _drain(self) -> list[str]:
        drained: list[str] = []
        while True:
            try:
                drained.append(self._queue.get_nowait())
            except asyncio.QueueEmpty:
                return drained

    async def _consume(self) -> None:
        while True:
            reason = await self._queue.get()
            extra = self._drain()
            try:
                _logger.debug("Resnapshot requested (%s, %s coalesced)", reason, len(extra))
                await self.refresh()
            except Exception:
                _logger.exception("Resnapshot failed unexpectedly")
                self._set_fetch_failed(True)
            finally:
                for _ in range(1 + len(extra)):
                    self._queue.task_done()

    async def _subscribe(self) -> None:
        subscription = self._subscription
        if subscription is None:
            return
        attempt = 0
        while True:
            try:
                async for event in subscription.subscribe_changes():
                    attempt = 0
                    if self._feed_down:
                        _logger.info("Change subscription restored")
                        self._set_feed_down(False)
                    _logger.debug("Change notification from %s", event.source)
                    self.request_resnapshot("change")
                _logger.debug("Change stream ended; resubscribing")
            except Exception as exc:
                _logger.warning("Change subscription failed: %s", exc)
                self._set_feed_down(True)
            await self._sleep(self.backoff_delay(attempt))
            attempt += 1
            # Notifications may have been missed while disconnected.
            self.request_resnapshot("resubscribe")
