from __future__ import annotations

import allure

from pull_essentials.orchestrator.breaker import CircuitBreakerRegistry

pytestmark = [
    allure.epic("Pull Orchestration"),
    allure.feature("Circuit Breaker"),
]

_ITEM = ("private/app", "1.0")


def test_breaker_opens_for_cooldown_then_expires(fake_clock) -> None:
    breakers = CircuitBreakerRegistry(cooldown_seconds=300, clock=fake_clock)
    assert breakers.is_open(_ITEM) is False

    breakers.trip(_ITEM)
    fake_clock.advance(10)
    assert breakers.is_open(_ITEM) is True

    fake_clock.advance(290)
    assert breakers.is_open(_ITEM) is False
    assert breakers.snapshot() == {}


def test_reset_clears_breaker(fake_clock) -> None:
    breakers = CircuitBreakerRegistry(clock=fake_clock)
    breakers.trip(_ITEM)

    breakers.reset(_ITEM)

    assert breakers.is_open(_ITEM) is False


def test_initial_state_and_snapshot_drop_expired_entries(fake_clock) -> None:
    breakers = CircuitBreakerRegistry(
        cooldown_seconds=300,
        clock=fake_clock,
        initial={_ITEM: fake_clock.now - 100, ("old", "1"): fake_clock.now - 301},
    )

    assert breakers.snapshot() == {_ITEM: fake_clock.now - 100}
    assert breakers.is_open(_ITEM) is True
    assert breakers.is_open(("old", "1")) is False
