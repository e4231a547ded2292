"""Fixed-size pool of worker threads draining the shared work queue."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable

from pull_essentials.manifest.models import PullItem
from pull_essentials.orchestrator.admission import StopSignal
from pull_essentials.orchestrator.ledger import ResultLedger
from pull_essentials.orchestrator.models import (
    FailureClass,
    PoolRunSummary,
    PullResult,
    QueueObservation,
)
from pull_essentials.orchestrator.puller import Puller
from pull_essentials.orchestrator.work_queue import WorkQueue

logger = logging.getLogger(__name__)


class WorkerPool:
    """Run ``parallel`` workers until the queue drains or a stop is requested.

    The queue is the only load-balancing mechanism. A worker checks the stop
    signal before each dequeue and never interrupts a pull in progress.
    """

    def __init__(  # noqa: PLR0913
        self,
        *,
        queue: WorkQueue,
        puller: Puller,
        ledger: ResultLedger,
        stop_signal: StopSignal,
        parallel: int = 4,
        on_result: Callable[[PullResult], None] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if parallel <= 0:
            raise ValueError("parallel must be > 0")
        self.queue = queue
        self.puller = puller
        self.ledger = ledger
        self.stop_signal = stop_signal
        self.parallel = parallel
        self._on_result = on_result
        self._clock = clock

    def run(
        self,
        *,
        on_progress: Callable[[QueueObservation], None] | None = None,
        progress_interval: float = 2.0,
    ) -> PoolRunSummary:
        started = self._clock()
        worker_count = max(1, min(self.parallel, self.queue.remaining))
        threads = [
            threading.Thread(target=self._worker_loop, name=f"pull-worker-{index}", daemon=True)
            for index in range(1, worker_count + 1)
        ]
        logger.info("Starting %d worker(s) for %d item(s)", worker_count, self.queue.remaining)
        for thread in threads:
            thread.start()
        for thread in threads:
            while thread.is_alive():
                thread.join(timeout=progress_interval)
                if on_progress is not None:
                    on_progress(self.queue.observe(self.ledger))

        observation = self.queue.observe(self.ledger)
        return PoolRunSummary(
            total=observation.total,
            succeeded=observation.succeeded,
            failed=observation.failed,
            remaining=observation.remaining,
            duration_seconds=self._clock() - started,
            stop_reason=self.stop_signal.reason,
            workers=worker_count,
        )

    def _worker_loop(self) -> None:
        name = threading.current_thread().name
        while not self.stop_signal.is_set():
            item = self.queue.try_dequeue()
            if item is None:
                logger.debug("%s: queue empty, exiting", name)
                return
            result = self._pull(item)
            self.queue.settle(item, result, self.ledger)
            self._notify(result)
        logger.info("%s: stop requested, exiting", name)

    def _pull(self, item: PullItem) -> PullResult:
        try:
            return self.puller.pull(item)
        except Exception as error:
            logger.exception("Unexpected error while pulling %s", item.reference)
            return PullResult.failure(
                item,
                attempts=1,
                error=FailureClass.UNKNOWN,
                message=str(error),
            )

    def _notify(self, result: PullResult) -> None:
        if self._on_result is None:
            return
        try:
            self._on_result(result)
        except Exception:
            logger.exception("Result callback failed for %s", result.item.reference)
