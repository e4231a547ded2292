"""Durable run state used by ``--resume``."""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pull_essentials.errors import ConfigurationError
from pull_essentials.manifest.models import PullItem
from pull_essentials.orchestrator.models import FailureClass, PullResult

logger = logging.getLogger(__name__)

Identity = tuple[str, str]

QUEUE_FILE = "queue.json"
COMPLETED_FILE = "completed.json"
FAILED_FILE = "failed.json"
BREAKERS_FILE = "breakers.json"
RESULTS_LOG = "results.log"


@dataclass(slots=True)
class PriorRunState:
    """What a previous run left behind."""

    completed: set[Identity] = field(default_factory=set)
    failed: list[Identity] = field(default_factory=list)
    remaining: list[Identity] = field(default_factory=list)
    breakers: dict[Identity, float] = field(default_factory=dict)


def write_json(path: Path, payload: dict[str, Any]) -> None:
    """Persist JSON payload using deterministic formatting."""

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True), "utf-8")


def load_json(path: Path) -> dict[str, Any]:
    """Load JSON document and validate top-level object type."""

    payload = json.loads(path.read_text("utf-8"))
    if not isinstance(payload, dict):
        raise TypeError(f"Expected JSON object in {path}")
    return payload


class RunStateStore:
    """Files under ``root`` describing the latest run.

    ``results.log`` is appended as outcomes arrive and is folded back in by
    ``load`` so an interrupted run keeps its progress. The JSON files are
    written once when a run ends.
    """

    def __init__(self, root: Path) -> None:
        self.root = root
        self._log_lock = threading.Lock()

    def reset(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        for name in (QUEUE_FILE, COMPLETED_FILE, FAILED_FILE, BREAKERS_FILE, RESULTS_LOG):
            (self.root / name).unlink(missing_ok=True)
        logger.debug("Reset run state in %s", self.root)

    def load(self) -> PriorRunState:
        state = PriorRunState(
            completed=set(self._load_identities(COMPLETED_FILE)),
            failed=self._load_identities(FAILED_FILE),
            remaining=self._load_identities(QUEUE_FILE),
        )
        self._merge_results_log(state)
        path = self.root / BREAKERS_FILE
        if path.exists():
            for entry in self._read(path).get("breakers", []):
                state.breakers[_identity(entry, path)] = float(entry.get("tripped_at", 0.0))
        logger.info(
            "Loaded prior run state: %d completed, %d failed, %d unprocessed",
            len(state.completed),
            len(state.failed),
            len(state.remaining),
        )
        return state

    def record_result(self, result: PullResult) -> None:
        if result.dry_run:
            return
        if result.succeeded:
            line = f"SUCCESS:{result.item.reference}"
        else:
            failure = result.error or FailureClass.UNKNOWN
            line = f"FAILED:{result.item.reference}:{failure.value}"
        with self._log_lock:
            self.root.mkdir(parents=True, exist_ok=True)
            with (self.root / RESULTS_LOG).open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")

    def save(  # noqa: PLR0913
        self,
        *,
        remaining: Iterable[PullItem],
        completed: Iterable[PullItem],
        failures: Iterable[tuple[PullItem, FailureClass]],
        breakers: Mapping[Identity, float],
        prior: PriorRunState | None = None,
    ) -> None:
        """Write the end-of-run snapshot, keeping identities completed earlier."""

        done = set(prior.completed) if prior is not None else set()
        done.update(item.identity for item in completed)
        write_json(self.root / COMPLETED_FILE, {"items": _encode(sorted(done))})
        write_json(
            self.root / FAILED_FILE,
            {
                "items": [
                    {"repository": item.repository, "tag": item.tag, "failure_class": failure.value}
                    for item, failure in failures
                    if item.identity not in done
                ],
            },
        )
        write_json(
            self.root / QUEUE_FILE,
            {"items": _encode(item.identity for item in remaining)},
        )
        write_json(
            self.root / BREAKERS_FILE,
            {
                "breakers": [
                    {"repository": repository, "tag": tag, "tripped_at": tripped_at}
                    for (repository, tag), tripped_at in sorted(breakers.items())
                ],
            },
        )
        logger.info("Saved run state to %s", self.root)

    def _merge_results_log(self, state: PriorRunState) -> None:
        """Fold outcomes logged before the snapshot was written into ``state``."""

        path = self.root / RESULTS_LOG
        if not path.exists():
            return
        logged_failures: list[Identity] = []
        for line in path.read_text("utf-8").splitlines():
            outcome, _, rest = line.strip().partition(":")
            if outcome == "SUCCESS" and rest:
                state.completed.add(_split_reference(rest))
            elif outcome == "FAILED" and rest:
                logged_failures.append(_split_reference(rest.rpartition(":")[0]))
            elif line.strip():
                logger.debug("Ignoring unrecognized results log line: %s", line)
        failed = [identity for identity in state.failed if identity not in state.completed]
        for identity in logged_failures:
            if identity not in state.completed and identity not in failed:
                failed.append(identity)
        state.failed = failed

    def _load_identities(self, name: str) -> list[Identity]:
        path = self.root / name
        if not path.exists():
            return []
        return [_identity(entry, path) for entry in self._read(path).get("items", [])]

    def _read(self, path: Path) -> dict[str, Any]:
        try:
            return load_json(path)
        except (OSError, TypeError, json.JSONDecodeError) as error:
            raise ConfigurationError(f"Corrupt run state file {path}: {error}") from error


def _encode(identities: Iterable[Identity]) -> list[dict[str, str]]:
    return [{"repository": repository, "tag": tag} for repository, tag in identities]


def _identity(entry: object, path: Path) -> Identity:
    if not isinstance(entry, dict) or "repository" not in entry or "tag" not in entry:
        raise ConfigurationError(f"Corrupt run state file {path}: bad entry {entry!r}")
    return (str(entry["repository"]), str(entry["tag"]))


def _split_reference(reference: str) -> Identity:
    repository, _, tag = reference.rpartition(":")
    return (repository, tag)
