"""Append-only record of terminal item outcomes."""

from __future__ import annotations

import threading

from pull_essentials.manifest.models import PullItem
from pull_essentials.orchestrator.models import FailureClass, PullResult


class ResultLedger:
    """Thread-safe counters plus completed/failed item lists.

    Every terminal outcome is recorded exactly once; counters never decrease.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._completed: list[PullItem] = []
        self._failed: list[PullItem] = []
        self._failure_classes: dict[tuple[str, str], FailureClass] = {}
        self._seen: set[tuple[str, str]] = set()

    def record(self, result: PullResult) -> None:
        identity = result.item.identity
        with self._lock:
            if identity in self._seen:
                raise ValueError(f"Outcome for {result.item.reference} already recorded")
            self._seen.add(identity)
            if result.succeeded:
                self._completed.append(result.item)
                return
            self._failed.append(result.item)
            self._failure_classes[identity] = result.error or FailureClass.UNKNOWN

    @property
    def succeeded_count(self) -> int:
        with self._lock:
            return len(self._completed)

    @property
    def failed_count(self) -> int:
        with self._lock:
            return len(self._failed)

    def counts(self) -> tuple[int, int]:
        with self._lock:
            return len(self._completed), len(self._failed)

    def completed(self) -> list[PullItem]:
        with self._lock:
            return list(self._completed)

    def failed(self) -> list[PullItem]:
        with self._lock:
            return list(self._failed)

    def failure_class(self, item: PullItem) -> FailureClass | None:
        with self._lock:
            return self._failure_classes.get(item.identity)

    def failures(self) -> list[tuple[PullItem, FailureClass]]:
        with self._lock:
            return [(item, self._failure_classes[item.identity]) for item in self._failed]
