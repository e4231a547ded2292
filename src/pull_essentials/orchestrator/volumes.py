"""Managed Docker volumes and best-effort storage cleanup."""

from __future__ import annotations

import logging
from collections.abc import Callable

from pull_essentials.config import VolumeSettings
from pull_essentials.engine.base import DiskUsageReport, ImageEngine
from pull_essentials.errors import EngineCommandError

logger = logging.getLogger(__name__)

_GB = 1024**3
ADVANCED_IMAGE_PRUNE_AGE = "72h"
SOFT_IMAGE_PRUNE_AGE = "168h"


class VolumeManager:
    """Create the labeled cache/state volumes and run prune sequences.

    Prunes never remove volumes carrying the managed label. Every cleanup
    command is best effort: an engine error is logged and the sequence
    continues.
    """

    def __init__(self, engine: ImageEngine, settings: VolumeSettings) -> None:
        self.engine = engine
        self.settings = settings

    @property
    def managed_volumes(self) -> dict[str, str]:
        return {"cache": self.settings.cache_volume, "state": self.settings.state_volume}

    def ensure_volumes(self) -> list[str]:
        """Create missing managed volumes; return the names created."""

        if not self.settings.enabled:
            logger.debug("Docker volume management disabled")
            return []
        created: list[str] = []
        for purpose, name in self.managed_volumes.items():
            if self.engine.volume_exists(name):
                logger.debug("Volume %s already exists", name)
                continue
            labels = {**_label_pair(self.settings.managed_label), "purpose": purpose}
            try:
                self.engine.create_volume(name, labels)
            except EngineCommandError as error:
                logger.warning("Failed to create %s volume %s: %s", purpose, name, error)
                continue
            logger.info("Created %s volume: %s", purpose, name)
            created.append(name)
        return created

    def cleanup_volumes(self) -> list[str]:
        """Remove unused volumes that are not managed by this tool."""

        lines = ["Cleaning up unused Docker volumes..."]
        ok = self._best_effort("Unused volume prune", self._prune_unmanaged_volumes)
        lines.append("Volume cleanup completed" if ok else "Volume cleanup failed, see log")
        return lines

    def advanced_cleanup(self) -> list[str]:
        """Aggressive cleanup used when disk space is critical."""

        logger.warning("Running advanced cleanup")
        lines = ["Running advanced Docker cleanup..."]
        stopped = self._stop_cache_consumers()
        if stopped:
            lines.append(f"Stopped {stopped} container(s) using {self.settings.cache_volume}")
        steps: list[tuple[str, Callable[[], None]]] = [
            ("Build cache prune", self.engine.prune_build_cache),
            ("Network prune", self.engine.prune_networks),
            ("Unused volume prune", self._prune_unmanaged_volumes),
            (
                f"Image prune older than {ADVANCED_IMAGE_PRUNE_AGE}",
                lambda: self.engine.prune_images(all_images=True, until=ADVANCED_IMAGE_PRUNE_AGE),
            ),
        ]
        for description, action in steps:
            ok = self._best_effort(description, action)
            lines.append(f"{description}: {'done' if ok else 'failed'}")
        return lines

    def cleanup_partial_downloads(self) -> None:
        logger.info("Cleaning up partial downloads")
        self._best_effort("Dangling image prune", self.engine.prune_images)
        self._best_effort("Build cache prune", self.engine.prune_build_cache)

    def soft_prune(self, *, include_volumes: bool = False) -> None:
        logger.info("Running soft cleanup")
        self._best_effort("Dangling image prune", self.engine.prune_images)
        self._best_effort(
            f"Image prune older than {SOFT_IMAGE_PRUNE_AGE}",
            lambda: self.engine.prune_images(until=SOFT_IMAGE_PRUNE_AGE),
        )
        if include_volumes:
            self._best_effort("Unused volume prune", self._prune_unmanaged_volumes)

    def reclaimable_volume_gb(self) -> float:
        try:
            reports = self.engine.disk_usage()
        except EngineCommandError as error:
            logger.warning("Cannot read Docker disk usage: %s", error)
            return 0.0
        for report in reports:
            if report.kind.lower().endswith("volumes"):
                return report.reclaimable_bytes / _GB
        return 0.0

    def status_lines(self) -> list[str]:
        lines = ["Docker volume status:"]
        if not self.settings.enabled:
            lines.append("  Volume management: disabled")
        for purpose, name in self.managed_volumes.items():
            state = "present" if self.engine.volume_exists(name) else "missing"
            lines.append(f"  {purpose} volume {name}: {state}")
        lines.append(f"  Cache size limit: {self.settings.cache_max_size_gb}GB")
        lines.append(
            f"  Cache cleanup threshold: {self.settings.cache_cleanup_threshold_percent}%",
        )
        try:
            reports = self.engine.disk_usage()
        except EngineCommandError as error:
            lines.append(f"  Disk usage unavailable: {error}")
            return lines
        lines.append("Docker disk usage:")
        lines.extend(f"  {_format_report(report)}" for report in reports)
        return lines

    def _prune_unmanaged_volumes(self) -> None:
        self.engine.prune_volumes(exclude_label=self.settings.managed_label)

    def _stop_cache_consumers(self) -> int:
        try:
            return self.engine.stop_containers_using_volume(self.settings.cache_volume)
        except EngineCommandError as error:
            logger.warning("Cannot stop containers using %s: %s", self.settings.cache_volume, error)
            return 0

    def _best_effort(self, description: str, action: Callable[[], None]) -> bool:
        try:
            action()
        except EngineCommandError as error:
            logger.warning("%s failed: %s", description, error)
            return False
        logger.info("%s completed", description)
        return True


def _label_pair(label: str) -> dict[str, str]:
    key, _, value = label.partition("=")
    return {key: value}


def _format_report(report: DiskUsageReport) -> str:
    return (
        f"{report.kind}: {report.total_count} item(s), {report.size_bytes / _GB:.2f}GB "
        f"(reclaimable {report.reclaimable_bytes / _GB:.2f}GB)"
    )
