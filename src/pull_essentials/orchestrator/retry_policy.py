"""Per-class retry decisions and backoff delays."""

from __future__ import annotations

import random
from enum import Enum

from pull_essentials.orchestrator.models import FailureClass

RATE_LIMIT_MULTIPLIER = 5
MAX_JITTER_FRACTION = 0.5


class RetryAction(str, Enum):
    """What the puller does after a failed attempt."""

    RETRY = "retry"
    ABORT = "abort"
    ABORT_AND_TRIP = "abort_and_trip"


def decide(failure_class: FailureClass) -> RetryAction:
    if failure_class is FailureClass.DISK_SPACE:
        return RetryAction.ABORT
    if failure_class is FailureClass.AUTH:
        return RetryAction.ABORT_AND_TRIP
    return RetryAction.RETRY


def backoff_seconds(
    failure_class: FailureClass,
    *,
    attempt: int,
    base_seconds: float,
    rng: random.Random,
) -> float:
    """Delay before the attempt following failed ``attempt`` (1-based).

    Rate limits back off linearly with a large multiplier. Everything else
    backs off quadratically with up to 50% random jitter on top.
    """

    if failure_class is FailureClass.RATE_LIMIT:
        return base_seconds * attempt * RATE_LIMIT_MULTIPLIER
    delay = base_seconds * attempt * attempt
    return delay + rng.uniform(0.0, delay * MAX_JITTER_FRACTION)
