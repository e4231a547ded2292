"""Lock-protected FIFO of pull items with in-flight tracking."""

from __future__ import annotations

import threading
from collections import deque
from collections.abc import Iterable

from pull_essentials.manifest.models import PullItem
from pull_essentials.orchestrator.ledger import ResultLedger
from pull_essentials.orchestrator.models import PullResult, QueueObservation


class WorkQueue:
    """Strict FIFO shared by all workers.

    An item leaves ``pending`` when a worker dequeues it and leaves
    ``in_flight`` only when :meth:`settle` records its outcome, so
    ``total == succeeded + failed + remaining`` holds for every
    :meth:`observe` call. The queue lock is always taken before the ledger
    lock.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._pending: deque[PullItem] = deque()
        self._in_flight: dict[tuple[str, str], PullItem] = {}
        self._known: set[tuple[str, str]] = set()
        self._total = 0

    def enqueue_all(self, items: Iterable[PullItem]) -> int:
        """Append items not seen before; return how many were added."""

        added = 0
        with self._lock:
            for item in items:
                if item.identity in self._known:
                    continue
                self._known.add(item.identity)
                self._pending.append(item)
                added += 1
            self._total += added
        return added

    def try_dequeue(self) -> PullItem | None:
        with self._lock:
            if not self._pending:
                return None
            item = self._pending.popleft()
            self._in_flight[item.identity] = item
            return item

    def settle(self, item: PullItem, result: PullResult, ledger: ResultLedger) -> None:
        """Record the item's outcome and drop it from the in-flight set atomically."""

        with self._lock:
            if item.identity not in self._in_flight:
                raise KeyError(f"{item.reference} is not in flight")
            ledger.record(result)
            del self._in_flight[item.identity]

    @property
    def total(self) -> int:
        with self._lock:
            return self._total

    @property
    def remaining(self) -> int:
        with self._lock:
            return len(self._pending) + len(self._in_flight)

    def pending_items(self) -> list[PullItem]:
        """Items not yet handed to a worker, followed by those still in flight."""

        with self._lock:
            return [*self._pending, *self._in_flight.values()]

    def observe(self, ledger: ResultLedger) -> QueueObservation:
        with self._lock:
            succeeded, failed = ledger.counts()
            return QueueObservation(
                total=self._total,
                succeeded=succeeded,
                failed=failed,
                pending=len(self._pending),
                in_flight=len(self._in_flight),
            )
