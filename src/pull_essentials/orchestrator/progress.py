"""Progress tracking and final run reporting."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass

from pull_essentials.orchestrator.ledger import ResultLedger
from pull_essentials.orchestrator.models import PoolRunSummary, QueueObservation, RunSummary


@dataclass(frozen=True, slots=True)
class ProgressSnapshot:
    completed: int
    total: int
    percent: float
    elapsed_seconds: float
    eta_seconds: float | None


class ProgressTracker:
    """Monotonic completed/total view with a linear ETA estimate."""

    def __init__(
        self,
        total: int,
        observe: Callable[[], QueueObservation],
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.total = total
        self._observe = observe
        self._clock = clock
        self._started = clock()

    def snapshot(self) -> ProgressSnapshot:
        return snapshot_from(
            self._observe(),
            total=self.total,
            elapsed_seconds=self._clock() - self._started,
        )


def snapshot_from(
    observation: QueueObservation,
    *,
    total: int,
    elapsed_seconds: float,
) -> ProgressSnapshot:
    completed = observation.completed
    percent = completed * 100.0 / total if total else 100.0
    eta = elapsed_seconds * (total - completed) / completed if completed else None
    return ProgressSnapshot(
        completed=completed,
        total=total,
        percent=percent,
        elapsed_seconds=elapsed_seconds,
        eta_seconds=eta,
    )


def render_progress_line(snapshot: ProgressSnapshot) -> str:
    line = (
        f"Progress: {snapshot.completed}/{snapshot.total} ({snapshot.percent:.0f}%) "
        f"elapsed {format_duration(snapshot.elapsed_seconds)}"
    )
    if snapshot.eta_seconds is not None:
        line += f", ETA {format_duration(snapshot.eta_seconds)}"
    return line


def format_duration(seconds: float) -> str:
    minutes, rest = divmod(int(round(seconds)), 60)
    return f"{minutes}m {rest}s"


def build_run_summary(
    pool: PoolRunSummary,
    ledger: ResultLedger,
    *,
    dry_run: bool = False,
) -> RunSummary:
    return RunSummary(
        total=pool.total,
        succeeded=pool.succeeded,
        failed=pool.failed,
        remaining=pool.remaining,
        duration_seconds=pool.duration_seconds,
        dry_run=dry_run,
        stop_reason=pool.stop_reason,
        failures=[(item.reference, failure) for item, failure in ledger.failures()],
    )


def render_summary_lines(summary: RunSummary) -> list[str]:
    """Human-readable final report."""

    if summary.dry_run:
        return [
            "=== Dry Run Summary ===",
            f"Total images: {summary.total}",
            f"Would pull: {summary.succeeded}",
            f"Duration: {format_duration(summary.duration_seconds)}",
        ]

    lines = [
        "=== Pull Summary ===",
        f"Total images: {summary.total}",
        f"Successful: {summary.succeeded}",
        f"Failed: {summary.failed}",
    ]
    if summary.remaining:
        lines.append(f"Not attempted: {summary.remaining}")
    lines.append(f"Duration: {format_duration(summary.duration_seconds)}")
    if summary.stop_reason:
        lines.append(f"Stopped early: {summary.stop_reason}")
    if summary.failures:
        lines.append("Failed images:")
        lines.extend(f"  - {reference} ({failure.value})" for reference, failure in summary.failures)
    if summary.failures or summary.remaining:
        lines.append("Run again with --resume to retry the remaining images.")
    elif not summary.stop_reason:
        lines.append("All images pulled successfully.")
    return lines
