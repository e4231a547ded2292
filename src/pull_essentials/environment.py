"""Host environment detection used to select manifest environment overrides."""

from __future__ import annotations

import logging
from pathlib import Path

logger = logging.getLogger(__name__)

WSL2 = "wsl2"
NATIVE_LINUX = "native_linux"
_WSL_MARKERS = ("microsoft", "wsl")


def detect_environment(
    explicit: str | None = None,
    proc_version_path: Path = Path("/proc/version"),
) -> str:
    """Return the manifest environment name for this host.

    An explicitly configured name always wins. Otherwise the kernel version
    string decides between ``wsl2`` and ``native_linux``.
    """

    if explicit:
        return explicit.strip()
    try:
        version = proc_version_path.read_text("utf-8").lower()
    except OSError:
        logger.debug("Cannot read %s, assuming native Linux", proc_version_path)
        return NATIVE_LINUX
    if any(marker in version for marker in _WSL_MARKERS):
        logger.info("Detected WSL2 environment")
        return WSL2
    logger.info("Detected native Linux environment")
    return NATIVE_LINUX
