"""Subprocess-based engine driving the ``docker`` CLI."""

from __future__ import annotations

import json
import logging
import re
import shutil
import subprocess

from pull_essentials.engine.base import DiskUsageReport, FetchError
from pull_essentials.engine.docker_errors import parse_pull_failure, timeout_failure
from pull_essentials.errors import EngineCommandError, PrerequisiteError
from pull_essentials.manifest.models import PullItem

logger = logging.getLogger(__name__)

_MAINTENANCE_TIMEOUT_SECONDS = 600
_PROBE_TIMEOUT_SECONDS = 30
_SIZE_PATTERN = re.compile(r"^\s*([0-9]*\.?[0-9]+)\s*([kKMGTP]?i?B)?")
_SIZE_UNITS = {
    "B": 1,
    "kB": 1000,
    "KB": 1000,
    "MB": 1000**2,
    "GB": 1000**3,
    "TB": 1000**4,
    "PB": 1000**5,
    "KiB": 1024,
    "MiB": 1024**2,
    "GiB": 1024**3,
    "TiB": 1024**4,
}


class DockerCliEngine:
    """Run pulls and maintenance commands through the docker executable."""

    def __init__(self, executable: str = "docker") -> None:
        self.executable = executable

    def check_available(self) -> str:
        if shutil.which(self.executable) is None:
            raise PrerequisiteError("Docker is not installed or not in PATH")
        try:
            info = subprocess.run(  # noqa: S603
                [self.executable, "info"],
                capture_output=True,
                text=True,
                timeout=_PROBE_TIMEOUT_SECONDS,
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired) as error:
            raise PrerequisiteError(f"Docker daemon is not reachable: {error}") from error
        if info.returncode != 0:
            raise PrerequisiteError(
                "Docker daemon is not running or not accessible. "
                "Try: sudo systemctl start docker",
            )
        version = self._run([self.executable, "--version"], timeout=_PROBE_TIMEOUT_SECONDS)
        return version.strip()

    def pull(self, item: PullItem, *, timeout_seconds: int) -> None:
        command = self._pull_command(item)
        try:
            completed = subprocess.run(  # noqa: S603
                command,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                timeout=timeout_seconds,
                check=False,
            )
        except subprocess.TimeoutExpired as error:
            raise FetchError(timeout_failure(timeout_seconds)) from error
        except OSError as error:
            raise FetchError(parse_pull_failure(exit_code=127, output=str(error))) from error
        if completed.returncode != 0:
            raise FetchError(
                parse_pull_failure(exit_code=completed.returncode, output=completed.stdout or ""),
            )

    def manifest_exists(self, item: PullItem, *, timeout_seconds: int) -> bool:
        try:
            completed = subprocess.run(  # noqa: S603
                [self.executable, "manifest", "inspect", item.reference],
                capture_output=True,
                text=True,
                timeout=timeout_seconds,
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired):
            return False
        return completed.returncode == 0

    def disk_usage(self) -> list[DiskUsageReport]:
        output = self._run(
            [self.executable, "system", "df", "--format", "{{json .}}"],
            timeout=_PROBE_TIMEOUT_SECONDS,
        )
        reports: list[DiskUsageReport] = []
        for line in output.splitlines():
            if not line.strip():
                continue
            try:
                row = json.loads(line)
            except json.JSONDecodeError:
                logger.debug("Ignoring unparsable docker system df line: %s", line)
                continue
            reports.append(
                DiskUsageReport(
                    kind=str(row.get("Type", "")),
                    total_count=_parse_int(row.get("TotalCount")),
                    size_bytes=parse_size(str(row.get("Size", "0B"))),
                    reclaimable_bytes=parse_size(str(row.get("Reclaimable", "0B"))),
                ),
            )
        return reports

    def volume_exists(self, name: str) -> bool:
        try:
            completed = subprocess.run(  # noqa: S603
                [self.executable, "volume", "inspect", name],
                capture_output=True,
                text=True,
                timeout=_PROBE_TIMEOUT_SECONDS,
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired):
            return False
        return completed.returncode == 0

    def create_volume(self, name: str, labels: dict[str, str]) -> None:
        command = [self.executable, "volume", "create", name]
        for key, value in labels.items():
            command.extend(["--label", f"{key}={value}"])
        self._run(command, timeout=_PROBE_TIMEOUT_SECONDS)

    def prune_volumes(self, *, exclude_label: str) -> None:
        self._run(
            [self.executable, "volume", "prune", "-f", "--filter", f"label!={exclude_label}"],
            timeout=_MAINTENANCE_TIMEOUT_SECONDS,
        )

    def prune_images(self, *, all_images: bool = False, until: str | None = None) -> None:
        command = [self.executable, "image", "prune", "-f"]
        if all_images:
            command.append("-a")
        if until is not None:
            command.extend(["--filter", f"until={until}"])
        else:
            command.extend(["--filter", "dangling=true"])
        self._run(command, timeout=_MAINTENANCE_TIMEOUT_SECONDS)

    def prune_build_cache(self) -> None:
        self._run([self.executable, "builder", "prune", "-f"], timeout=_MAINTENANCE_TIMEOUT_SECONDS)

    def prune_networks(self) -> None:
        self._run([self.executable, "network", "prune", "-f"], timeout=_MAINTENANCE_TIMEOUT_SECONDS)

    def stop_containers_using_volume(self, name: str) -> int:
        output = self._run(
            [self.executable, "ps", "-a", "--filter", f"volume={name}", "--format", "{{.ID}}"],
            timeout=_PROBE_TIMEOUT_SECONDS,
        )
        container_ids = [line.strip() for line in output.splitlines() if line.strip()]
        if container_ids:
            self._run(
                [self.executable, "stop", *container_ids],
                timeout=_MAINTENANCE_TIMEOUT_SECONDS,
            )
        return len(container_ids)

    def _pull_command(self, item: PullItem) -> list[str]:
        if item.is_model:
            return [self.executable, "model", "pull", item.reference]
        return [self.executable, "pull", item.reference]

    def _run(self, command: list[str], *, timeout: int) -> str:
        try:
            completed = subprocess.run(  # noqa: S603
                command,
                capture_output=True,
                text=True,
                timeout=timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as error:
            raise EngineCommandError(command, 124, f"timed out after {timeout}s") from error
        except OSError as error:
            raise EngineCommandError(command, 127, str(error)) from error
        if completed.returncode != 0:
            raise EngineCommandError(command, completed.returncode, completed.stderr or "")
        return completed.stdout or ""


def parse_size(value: str) -> int:
    """Parse docker's human sizes such as ``1.2GB`` or ``512MiB (40%)`` into bytes."""

    match = _SIZE_PATTERN.match(value)
    if match is None:
        return 0
    number = float(match.group(1))
    unit = match.group(2) or "B"
    return int(number * _SIZE_UNITS.get(unit, 1))


def _parse_int(value: object) -> int:
    try:
        return int(str(value))
    except ValueError:
        return 0

