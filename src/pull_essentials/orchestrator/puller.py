"""Single-item pull with retry, backoff and circuit breaking."""

from __future__ import annotations

import logging
import random
import threading
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager

from pull_essentials.engine.base import ArtifactFetcher, FetchError
from pull_essentials.errors import PullError
from pull_essentials.manifest.models import PullItem
from pull_essentials.orchestrator.breaker import CircuitBreakerRegistry
from pull_essentials.orchestrator.failure_classifier import classify_fetch_failure
from pull_essentials.orchestrator.models import FailureClass, PullResult
from pull_essentials.orchestrator.retry_policy import RetryAction, backoff_seconds, decide

logger = logging.getLogger(__name__)

DEFAULT_REGISTRY = "docker.io"


class PullActivity:
    """Count of fetch attempts currently running across all workers."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._active = 0

    @contextmanager
    def track(self) -> Iterator[None]:
        with self._lock:
            self._active += 1
        try:
            yield
        finally:
            with self._lock:
                self._active -= 1

    @property
    def active_count(self) -> int:
        with self._lock:
            return self._active

    @property
    def is_active(self) -> bool:
        return self.active_count > 0


class Puller:
    """Drive one item to a terminal outcome.

    Attempts are bounded by ``retries + 1``. Each failed attempt is classified
    and the retry policy decides whether to back off and try again, abort, or
    abort and open the item's circuit breaker.
    """

    def __init__(  # noqa: PLR0913
        self,
        fetcher: ArtifactFetcher,
        *,
        breakers: CircuitBreakerRegistry,
        timeout_seconds: int = 300,
        retries: int = 2,
        base_delay_seconds: float = 2.0,
        dry_run: bool = False,
        activity: PullActivity | None = None,
        allowed_registries: tuple[str, ...] = (),
        on_disk_space: Callable[[], None] | None = None,
        sleep: Callable[[float], None] = time.sleep,
        rng: random.Random | None = None,
    ) -> None:
        self.fetcher = fetcher
        self.breakers = breakers
        self.timeout_seconds = timeout_seconds
        self.retries = retries
        self.base_delay_seconds = base_delay_seconds
        self.dry_run = dry_run
        self.activity = activity or PullActivity()
        self.allowed_registries = allowed_registries
        self._on_disk_space = on_disk_space
        self._sleep = sleep
        self._random = rng or random.Random()  # noqa: S311

    def pull(self, item: PullItem) -> PullResult:
        if self.dry_run:
            logger.info("[DRY RUN] Would pull: %s", item.reference)
            return PullResult.success(item, attempts=0, dry_run=True)

        try:
            attempts = self._pull_with_retries(item)
        except PullError as error:
            logger.error(
                "Failed to pull %s after %d attempt(s): %s",
                item.reference,
                error.attempts,
                error,
            )
            return PullResult.failure(
                item,
                attempts=error.attempts,
                error=error.failure_class,
                message=str(error),
            )
        logger.info("Successfully pulled %s", item.reference)
        return PullResult.success(item, attempts=attempts)

    def _pull_with_retries(self, item: PullItem) -> int:
        self._check_admissible(item)
        max_attempts = self.retries + 1
        attempt = 0
        while True:
            attempt += 1
            logger.info("Pulling %s (attempt %d/%d)", item.display_name, attempt, max_attempts)
            try:
                with self.activity.track():
                    self.fetcher.pull(item, timeout_seconds=self.timeout_seconds)
            except FetchError as error:
                classification = classify_fetch_failure(error.failure)
                failure_class = classification.failure_class
                logger.warning(
                    "Attempt %d/%d for %s failed: %s %s",
                    attempt,
                    max_attempts,
                    item.reference,
                    error,
                    classification.to_log_details(),
                )
                action = decide(failure_class)
                if failure_class is FailureClass.DISK_SPACE and self._on_disk_space is not None:
                    self._on_disk_space()
                if action is RetryAction.ABORT_AND_TRIP:
                    self.breakers.trip(item.identity)
                if action is not RetryAction.RETRY:
                    raise PullError(
                        str(error),
                        failure_class=failure_class,
                        attempts=attempt,
                    ) from error
                if attempt == max_attempts:
                    self.breakers.trip(item.identity)
                    raise PullError(
                        str(error),
                        failure_class=failure_class,
                        attempts=attempt,
                    ) from error
                delay = backoff_seconds(
                    failure_class,
                    attempt=attempt,
                    base_seconds=self.base_delay_seconds,
                    rng=self._random,
                )
                logger.info("Retrying %s in %.1fs", item.reference, delay)
                self._sleep(delay)
            else:
                self.breakers.reset(item.identity)
                return attempt

    def _check_admissible(self, item: PullItem) -> None:
        if self.breakers.is_open(item.identity):
            raise PullError(
                f"circuit breaker open for {item.reference}",
                failure_class=FailureClass.CIRCUIT_OPEN,
            )
        if self.allowed_registries and registry_of(item) not in self.allowed_registries:
            raise PullError(
                f"registry {registry_of(item)} is not allowed",
                failure_class=FailureClass.REGISTRY_DENIED,
            )


def registry_of(item: PullItem) -> str:
    """Registry host of an item; bare names resolve to Docker Hub."""

    first, separator, _ = item.repository.partition("/")
    if separator and ("." in first or ":" in first or first == "localhost"):
        return first
    return DEFAULT_REGISTRY
