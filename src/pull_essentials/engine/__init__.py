"""Fetch engine implementations."""

from pull_essentials.engine.base import (
    ArtifactFetcher,
    DiskUsageReport,
    FetchError,
    FetchErrorReason,
    FetchFailure,
    ImageEngine,
)
from pull_essentials.engine.docker_cli import DockerCliEngine

__all__ = [
    "ArtifactFetcher",
    "DiskUsageReport",
    "DockerCliEngine",
    "FetchError",
    "FetchErrorReason",
    "FetchFailure",
    "ImageEngine",
]
