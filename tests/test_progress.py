from __future__ import annotations

import allure

from pull_essentials.manifest.models import PullItem
from pull_essentials.orchestrator.ledger import ResultLedger
from pull_essentials.orchestrator.models import (
    FailureClass,
    PoolRunSummary,
    PullResult,
    QueueObservation,
    RunSummary,
)
from pull_essentials.orchestrator.progress import (
    ProgressTracker,
    build_run_summary,
    format_duration,
    render_progress_line,
    render_summary_lines,
)

pytestmark = [
    allure.epic("Pull Orchestration"),
    allure.feature("Progress & Reporting"),
]


def _observation(succeeded: int, failed: int, total: int = 10) -> QueueObservation:
    return QueueObservation(
        total=total,
        succeeded=succeeded,
        failed=failed,
        pending=total - succeeded - failed,
        in_flight=0,
    )


def test_eta_is_omitted_until_something_completes(fake_clock) -> None:
    observations = [_observation(0, 0), _observation(3, 1)]
    tracker = ProgressTracker(10, lambda: observations.pop(0), clock=fake_clock)

    fake_clock.advance(30)
    first = tracker.snapshot()
    fake_clock.advance(10)
    second = tracker.snapshot()

    assert first.eta_seconds is None
    assert first.percent == 0
    assert second.completed == 4
    assert second.percent == 40
    assert second.eta_seconds == 40 * 6 / 4
    assert render_progress_line(second) == "Progress: 4/10 (40%) elapsed 0m 40s, ETA 1m 0s"
    assert "ETA" not in render_progress_line(first)


def test_format_duration() -> None:
    assert format_duration(0) == "0m 0s"
    assert format_duration(125.4) == "2m 5s"


def test_summary_lists_failures_with_resume_hint() -> None:
    ledger = ResultLedger()
    ok_item, bad_item = PullItem("alpine", "3.19"), PullItem("private/app", "1")
    ledger.record(PullResult.success(ok_item, attempts=1))
    ledger.record(PullResult.failure(bad_item, attempts=1, error=FailureClass.AUTH))
    pool = PoolRunSummary(total=2, succeeded=1, failed=1, duration_seconds=61)

    summary = build_run_summary(pool, ledger)
    lines = render_summary_lines(summary)

    assert summary.ok is False
    assert lines == [
        "=== Pull Summary ===",
        "Total images: 2",
        "Successful: 1",
        "Failed: 1",
        "Duration: 1m 1s",
        "Failed images:",
        "  - private/app:1 (auth)",
        "Run again with --resume to retry the remaining images.",
    ]


def test_stopped_run_reports_reason_and_unattempted_items() -> None:
    summary = RunSummary(
        total=5,
        succeeded=1,
        failed=0,
        remaining=4,
        duration_seconds=5,
        stop_reason="critical disk space: 3.0GB available (threshold 5GB)",
    )

    lines = render_summary_lines(summary)

    assert summary.ok is False
    assert "Not attempted: 4" in lines
    assert "Stopped early: critical disk space: 3.0GB available (threshold 5GB)" in lines
    assert lines[-1].startswith("Run again with --resume")


def test_successful_and_dry_run_summaries() -> None:
    success = RunSummary(total=3, succeeded=3, failed=0, remaining=0, duration_seconds=1)
    dry = RunSummary(total=3, succeeded=3, failed=0, remaining=0, duration_seconds=0, dry_run=True)

    assert render_summary_lines(success)[-1] == "All images pulled successfully."
    assert "Would pull: 3" in render_summary_lines(dry)
