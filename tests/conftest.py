"""Shared test fixtures."""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Callable

import pytest

from pull_essentials.engine.base import DiskUsageReport, FetchError, FetchFailure
from pull_essentials.errors import EngineCommandError, PrerequisiteError
from pull_essentials.manifest.models import PullItem
from pull_essentials.orchestrator.admission import DiskSample


class FakeEngine:
    """In-memory engine with scripted pull outcomes.

    ``script(reference, *outcomes)`` queues outcomes for one reference: ``None``
    is a successful attempt, a ``FetchFailure`` a failed one. The last outcome
    repeats once the script is exhausted; unscripted references succeed.
    """

    def __init__(self) -> None:
        self.scripts: dict[str, list[FetchFailure | None]] = {}
        self.pull_calls: list[str] = []
        self.maintenance: list[str] = []
        self.volumes: dict[str, dict[str, str]] = {}
        self.unavailable: set[str] = set()
        self.failing_commands: set[str] = set()
        self.reports: list[DiskUsageReport] = []
        self.available = True
        self.pull_hook: Callable[[PullItem], None] | None = None
        self._lock = threading.Lock()

    def script(self, reference: str, *outcomes: FetchFailure | None) -> None:
        self.scripts[reference] = list(outcomes)

    def calls_for(self, reference: str) -> int:
        with self._lock:
            return self.pull_calls.count(reference)

    def pull(self, item: PullItem, *, timeout_seconds: int) -> None:
        with self._lock:
            self.pull_calls.append(item.reference)
            outcomes = self.scripts.get(item.reference)
            outcome = None
            if outcomes:
                outcome = outcomes.pop(0) if len(outcomes) > 1 else outcomes[0]
        if self.pull_hook is not None:
            self.pull_hook(item)
        if outcome is not None:
            raise FetchError(outcome)

    def check_available(self) -> str:
        if not self.available:
            raise PrerequisiteError("Docker daemon is not running or not accessible.")
        return "Docker version 27.0.0, build fake"

    def manifest_exists(self, item: PullItem, *, timeout_seconds: int) -> bool:
        return item.reference not in self.unavailable

    def disk_usage(self) -> list[DiskUsageReport]:
        self._maintenance("disk_usage", record=False)
        return list(self.reports)

    def volume_exists(self, name: str) -> bool:
        return name in self.volumes

    def create_volume(self, name: str, labels: dict[str, str]) -> None:
        self._maintenance(f"create_volume:{name}")
        self.volumes[name] = dict(labels)

    def prune_volumes(self, *, exclude_label: str) -> None:
        self._maintenance(f"prune_volumes:{exclude_label}")

    def prune_images(self, *, all_images: bool = False, until: str | None = None) -> None:
        self._maintenance(f"prune_images:all={all_images}:until={until}")

    def prune_build_cache(self) -> None:
        self._maintenance("prune_build_cache")

    def prune_networks(self) -> None:
        self._maintenance("prune_networks")

    def stop_containers_using_volume(self, name: str) -> int:
        self._maintenance(f"stop_containers:{name}")
        return 0

    def _maintenance(self, command: str, *, record: bool = True) -> None:
        name = command.split(":", 1)[0]
        if name in self.failing_commands:
            raise EngineCommandError(["docker", name], 1, f"{name} failed")
        if record:
            with self._lock:
                self.maintenance.append(command)


class FakeDiskProbe:
    def __init__(self, available_gb: float = 100.0, usage_percent: float = 40.0) -> None:
        self.available_gb = available_gb
        self.usage_percent = usage_percent
        self.samples = 0

    def sample(self) -> DiskSample:
        self.samples += 1
        return DiskSample(available_gb=self.available_gb, usage_percent=self.usage_percent)


class FakeClock:
    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def fake_engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture()
def disk_probe() -> FakeDiskProbe:
    return FakeDiskProbe()


@pytest.fixture()
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def make_item() -> Callable[..., PullItem]:
    def _make(repository: str, tag: str = "latest", **fields: object) -> PullItem:
        return PullItem(repository=repository, tag=tag, **fields)

    return _make


@pytest.fixture(autouse=True)
def _isolated_settings_env(monkeypatch) -> None:
    """Keep host PULL_ESSENTIALS_* variables out of the tests."""

    for name in list(os.environ):
        if name.startswith("PULL_ESSENTIALS_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def _restore_root_logging():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)
