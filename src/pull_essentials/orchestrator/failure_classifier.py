"""Deterministic fetch failure classification for the retry policy."""

from __future__ import annotations

from dataclasses import dataclass

from pull_essentials.engine.base import FetchErrorReason, FetchFailure
from pull_essentials.orchestrator.models import FailureClass

_REASON_TO_CLASS: dict[FetchErrorReason, FailureClass] = {
    FetchErrorReason.NO_SPACE: FailureClass.DISK_SPACE,
    FetchErrorReason.NETWORK: FailureClass.NETWORK,
    FetchErrorReason.TIMEOUT: FailureClass.NETWORK,
    FetchErrorReason.UNAUTHORIZED: FailureClass.AUTH,
    FetchErrorReason.NOT_FOUND: FailureClass.NOT_FOUND,
    FetchErrorReason.MANIFEST: FailureClass.MANIFEST,
    FetchErrorReason.RATE_LIMITED: FailureClass.RATE_LIMIT,
    FetchErrorReason.UNKNOWN: FailureClass.UNKNOWN,
}


@dataclass(slots=True)
class FetchFailureClassification:
    """Normalized failure classification result."""

    failure_class: FailureClass
    reason_code: str
    matched_pattern: str | None

    def to_log_details(self) -> dict[str, object]:
        return {
            "failure_class": self.failure_class.value,
            "reason_code": self.reason_code,
            "matched_pattern": self.matched_pattern,
        }


def classify_fetch_failure(failure: FetchFailure) -> FetchFailureClassification:
    """Map a structured engine failure onto its retry class."""

    return FetchFailureClassification(
        failure_class=_REASON_TO_CLASS.get(failure.reason, FailureClass.UNKNOWN),
        reason_code=f"fetch_{failure.reason.value}",
        matched_pattern=failure.matched_pattern,
    )
