"""Background disk-space admission control.

The controller never blocks workers. It samples free space on the artifact
store at a fixed interval, asserts the shared ``StopSignal`` when space is
critical, and frees space opportunistically when usage is merely high.
"""

from __future__ import annotations

import logging
import shutil
import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Protocol

from pull_essentials.config import AdmissionSettings
from pull_essentials.orchestrator.puller import PullActivity
from pull_essentials.orchestrator.volumes import VolumeManager

logger = logging.getLogger(__name__)

_GB = 1024**3


class StopSignal:
    """One-shot, thread-safe stop flag carrying the reason it was raised."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._reason: str | None = None

    def set(self, reason: str) -> bool:
        """Raise the signal; return ``False`` if it was already set."""

        with self._lock:
            if self._event.is_set():
                return False
            self._reason = reason
            self._event.set()
        logger.warning("Stop requested: %s", reason)
        return True

    def is_set(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        return self._event.wait(timeout)

    @property
    def reason(self) -> str | None:
        with self._lock:
            return self._reason


@dataclass(frozen=True, slots=True)
class DiskSample:
    available_gb: float
    usage_percent: float


class DiskProbe(Protocol):
    def sample(self) -> DiskSample:
        """Current free space and usage of the artifact store."""


class ShutilDiskProbe:
    """Measure the docker root, or ``/`` when the docker root is not visible."""

    def __init__(self, path: Path, fallback: Path = Path("/")) -> None:
        self.path = path
        self.fallback = fallback

    def sample(self) -> DiskSample:
        target = self.path if self.path.exists() else self.fallback
        usage = shutil.disk_usage(target)
        percent = usage.used * 100.0 / usage.total if usage.total else 0.0
        return DiskSample(available_gb=usage.free / _GB, usage_percent=percent)


class AdmissionLevel(str, Enum):
    OK = "ok"
    WARNING = "warning"
    CRITICAL = "critical"


@dataclass(frozen=True, slots=True)
class AdmissionCheck:
    sample: DiskSample
    level: AdmissionLevel
    cleaned: bool = False


class AdmissionController:
    """Poll disk state on a daemon thread until stopped or space runs out."""

    def __init__(  # noqa: PLR0913
        self,
        *,
        probe: DiskProbe,
        cleaner: VolumeManager,
        stop_signal: StopSignal,
        activity: PullActivity,
        settings: AdmissionSettings,
    ) -> None:
        self.probe = probe
        self.cleaner = cleaner
        self.stop_signal = stop_signal
        self.activity = activity
        self.settings = settings
        self._shutdown = threading.Event()
        self._wake = threading.Event()
        self._thread: threading.Thread | None = None

    def check_once(self) -> AdmissionCheck:
        sample = self.probe.sample()
        logger.debug(
            "Disk check: %.1fGB available, %.0f%% used",
            sample.available_gb,
            sample.usage_percent,
        )
        if sample.available_gb < self.settings.space_threshold_gb:
            self.stop_signal.set(
                f"critical disk space: {sample.available_gb:.1f}GB available "
                f"(threshold {self.settings.space_threshold_gb:g}GB)",
            )
            if self.settings.advanced_cleanup_on_critical:
                self.cleaner.advanced_cleanup()
            else:
                self.cleaner.cleanup_partial_downloads()
            return AdmissionCheck(sample=sample, level=AdmissionLevel.CRITICAL, cleaned=True)

        prune_volumes = False
        reclaimable_gb = self.cleaner.reclaimable_volume_gb()
        if reclaimable_gb > self.settings.reclaimable_warning_gb:
            logger.warning("Large amount of reclaimable volume space: %.1fGB", reclaimable_gb)
            prune_volumes = self.settings.auto_cleanup_enabled

        if sample.usage_percent > self.settings.cleanup_threshold_percent:
            logger.warning("Disk usage high: %.0f%%", sample.usage_percent)
            if self.activity.is_active:
                logger.info("Pulls in flight, deferring cleanup")
                return AdmissionCheck(sample=sample, level=AdmissionLevel.WARNING)
            self.cleaner.soft_prune(include_volumes=prune_volumes)
            return AdmissionCheck(sample=sample, level=AdmissionLevel.WARNING, cleaned=True)
        return AdmissionCheck(sample=sample, level=AdmissionLevel.OK)

    def start(self) -> None:
        if self._thread is not None:
            return
        self._shutdown.clear()
        self._thread = threading.Thread(target=self._loop, daemon=True, name="disk-monitor")
        self._thread.start()
        logger.info(
            "Disk monitor started (interval %gs, threshold %gGB)",
            self.settings.check_interval_seconds,
            self.settings.space_threshold_gb,
        )

    def stop(self, timeout: float = 15.0) -> None:
        if self._thread is None:
            return
        self._shutdown.set()
        self._wake.set()
        self._thread.join(timeout=timeout)
        self._thread = None
        logger.info("Disk monitor stopped")

    def nudge(self) -> None:
        """Ask for an early check, e.g. after a pull failed for lack of space."""

        self._wake.set()

    def _loop(self) -> None:
        while not self._shutdown.is_set() and not self.stop_signal.is_set():
            try:
                self.check_once()
            except Exception:
                logger.exception("Disk monitor check failed")
            if self.stop_signal.is_set():
                return
            self._wake.wait(timeout=self.settings.check_interval_seconds)
            self._wake.clear()
