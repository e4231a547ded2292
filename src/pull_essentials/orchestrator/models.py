"""Domain models for pull outcomes and run summaries."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from pull_essentials.manifest.models import PullItem


class FailureClass(str, Enum):
    """Normalized failure classes used by retry policy and reporting."""

    DISK_SPACE = "disk_space"
    NETWORK = "network"
    AUTH = "auth"
    NOT_FOUND = "not_found"
    MANIFEST = "manifest"
    RATE_LIMIT = "rate_limit"
    UNKNOWN = "unknown"
    CIRCUIT_OPEN = "circuit_open"
    REGISTRY_DENIED = "registry_denied"


@dataclass(frozen=True, slots=True)
class PullResult:
    """Terminal outcome of one item."""

    item: PullItem
    succeeded: bool
    attempts: int
    error: FailureClass | None = None
    message: str = ""
    dry_run: bool = False

    @classmethod
    def success(cls, item: PullItem, *, attempts: int, dry_run: bool = False) -> PullResult:
        return cls(item=item, succeeded=True, attempts=attempts, dry_run=dry_run)

    @classmethod
    def failure(
        cls,
        item: PullItem,
        *,
        attempts: int,
        error: FailureClass,
        message: str = "",
    ) -> PullResult:
        return cls(item=item, succeeded=False, attempts=attempts, error=error, message=message)


@dataclass(frozen=True, slots=True)
class QueueObservation:
    """Consistent snapshot of queue and ledger counters."""

    total: int
    succeeded: int
    failed: int
    pending: int
    in_flight: int

    @property
    def remaining(self) -> int:
        return self.pending + self.in_flight

    @property
    def completed(self) -> int:
        return self.succeeded + self.failed


@dataclass(slots=True)
class PoolRunSummary:
    """Aggregate result of one worker pool run."""

    total: int = 0
    succeeded: int = 0
    failed: int = 0
    remaining: int = 0
    duration_seconds: float = 0.0
    stop_reason: str | None = None
    workers: int = 0


@dataclass(slots=True)
class RunSummary:
    """Data backing the final human-readable report."""

    total: int
    succeeded: int
    failed: int
    remaining: int
    duration_seconds: float
    dry_run: bool = False
    stop_reason: str | None = None
    failures: list[tuple[str, FailureClass]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.failed == 0 and self.stop_reason is None
