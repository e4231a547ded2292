"""Exception taxonomy shared by the manifest, engine and orchestrator layers."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pull_essentials.orchestrator.models import FailureClass


class PullEssentialsError(Exception):
    """Base class for all project errors."""


class ConfigurationError(PullEssentialsError):
    """Manifest or settings are unreadable or structurally invalid."""


class PrerequisiteError(PullEssentialsError):
    """The fetch engine is missing or its daemon is not reachable."""


class InsufficientDiskSpaceError(PullEssentialsError):
    """Not enough free space on the artifact store to start a run."""

    def __init__(self, available_gb: float, minimum_gb: float) -> None:
        super().__init__(
            f"Insufficient disk space: {available_gb:.1f}GB available "
            f"(minimum {minimum_gb:g}GB required)",
        )
        self.available_gb = available_gb
        self.minimum_gb = minimum_gb


class EngineCommandError(PullEssentialsError):
    """A maintenance command of the fetch engine exited unsuccessfully."""

    def __init__(self, command: list[str], exit_code: int, output: str) -> None:
        super().__init__(f"{' '.join(command)} exited with code {exit_code}: {output.strip()}")
        self.command = command
        self.exit_code = exit_code
        self.output = output


class PullError(PullEssentialsError):
    """Terminal, classified failure of one pull item."""

    def __init__(self, message: str, *, failure_class: FailureClass, attempts: int = 0) -> None:
        super().__init__(message)
        self.failure_class = failure_class
        self.attempts = attempts
