"""Per-item circuit breaker keyed by ``(repository, tag)``."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Mapping

logger = logging.getLogger(__name__)


class CircuitBreakerRegistry:
    """Remember recent terminal failures and suppress attempts during cooldown."""

    def __init__(
        self,
        *,
        cooldown_seconds: float = 300.0,
        clock: Callable[[], float] = time.time,
        initial: Mapping[tuple[str, str], float] | None = None,
    ) -> None:
        self.cooldown_seconds = cooldown_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._tripped_at: dict[tuple[str, str], float] = dict(initial or {})

    def is_open(self, identity: tuple[str, str]) -> bool:
        with self._lock:
            tripped_at = self._tripped_at.get(identity)
            if tripped_at is None:
                return False
            if self._clock() - tripped_at < self.cooldown_seconds:
                return True
            del self._tripped_at[identity]
            logger.debug("Circuit breaker expired for %s:%s", *identity)
            return False

    def trip(self, identity: tuple[str, str]) -> None:
        with self._lock:
            self._tripped_at[identity] = self._clock()
        logger.warning("Circuit breaker opened for %s:%s", *identity)

    def reset(self, identity: tuple[str, str]) -> None:
        with self._lock:
            self._tripped_at.pop(identity, None)

    def snapshot(self) -> dict[tuple[str, str], float]:
        """Breakers still within cooldown, for persistence."""

        now = self._clock()
        with self._lock:
            return {
                identity: tripped_at
                for identity, tripped_at in self._tripped_at.items()
                if now - tripped_at < self.cooldown_seconds
            }
