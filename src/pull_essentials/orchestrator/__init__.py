"""Parallel pull orchestration: queue, workers, retries and admission control."""

from pull_essentials.orchestrator.admission import AdmissionController, StopSignal
from pull_essentials.orchestrator.breaker import CircuitBreakerRegistry
from pull_essentials.orchestrator.dispatcher import WorkerPool
from pull_essentials.orchestrator.ledger import ResultLedger
from pull_essentials.orchestrator.models import FailureClass, PullResult
from pull_essentials.orchestrator.puller import PullActivity, Puller
from pull_essentials.orchestrator.work_queue import WorkQueue

__all__ = [
    "AdmissionController",
    "CircuitBreakerRegistry",
    "FailureClass",
    "PullActivity",
    "PullResult",
    "Puller",
    "ResultLedger",
    "StopSignal",
    "WorkQueue",
    "WorkerPool",
]
