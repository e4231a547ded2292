"""Fetch engine interface: the opaque blocking pull primitive and its failures."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from pull_essentials.manifest.models import PullItem


class FetchErrorReason(str, Enum):
    """Structured reason reported by the engine for a failed pull attempt."""

    NO_SPACE = "no_space"
    NETWORK = "network"
    TIMEOUT = "timeout"
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
    MANIFEST = "manifest"
    RATE_LIMITED = "rate_limited"
    UNKNOWN = "unknown"


@dataclass(frozen=True, slots=True)
class FetchFailure:
    """Engine-side description of one failed attempt."""

    reason: FetchErrorReason
    message: str
    exit_code: int | None = None
    matched_pattern: str | None = None


class FetchError(RuntimeError):
    """Raised by a fetcher when a pull attempt does not succeed."""

    def __init__(self, failure: FetchFailure) -> None:
        super().__init__(failure.message)
        self.failure = failure


@dataclass(frozen=True, slots=True)
class DiskUsageReport:
    """Engine-reported storage usage for one resource type (images, volumes, ...)."""

    kind: str
    total_count: int
    size_bytes: int
    reclaimable_bytes: int


class ArtifactFetcher(Protocol):
    """Blocking pull primitive: returns on success, raises ``FetchError`` otherwise."""

    def pull(self, item: PullItem, *, timeout_seconds: int) -> None:
        """Fetch ``item`` within ``timeout_seconds``."""


class ImageEngine(ArtifactFetcher, Protocol):
    """Full engine surface used by the orchestrator and maintenance commands."""

    def check_available(self) -> str:
        """Return the engine version; raise ``PrerequisiteError`` if unusable."""

    def manifest_exists(self, item: PullItem, *, timeout_seconds: int) -> bool:
        """Whether the registry knows the item's manifest."""

    def disk_usage(self) -> list[DiskUsageReport]:
        """Storage usage breakdown as reported by the engine."""

    def volume_exists(self, name: str) -> bool: ...

    def create_volume(self, name: str, labels: dict[str, str]) -> None: ...

    def prune_volumes(self, *, exclude_label: str) -> None: ...

    def prune_images(self, *, all_images: bool = False, until: str | None = None) -> None: ...

    def prune_build_cache(self) -> None: ...

    def prune_networks(self) -> None: ...

    def stop_containers_using_volume(self, name: str) -> int: ...
