"""Domain models for the declarative pull manifest."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class ItemKind(str, Enum):
    """What the fetch engine pulls for an item."""

    IMAGE = "image"
    MODEL = "model"


@dataclass(frozen=True, slots=True)
class PullItem:
    """One artifact to pull, identified by its ``(repository, tag)`` pair."""

    repository: str
    tag: str
    kind: ItemKind = field(default=ItemKind.IMAGE, compare=False)
    friendly_name: str = field(default="", compare=False)
    short_name: str = field(default="", compare=False)
    description: str = field(default="", compare=False)
    category: str = field(default="", compare=False)

    @property
    def identity(self) -> tuple[str, str]:
        return (self.repository, self.tag)

    @property
    def reference(self) -> str:
        return f"{self.repository}:{self.tag}"

    @property
    def display_name(self) -> str:
        return self.short_name or self.friendly_name or self.reference

    @property
    def is_model(self) -> bool:
        return self.kind is ItemKind.MODEL


@dataclass(slots=True)
class ManifestSettings:
    """Optional run settings declared by a manifest (``None`` means not set)."""

    timeout: int | None = None
    retries: int | None = None
    parallel: int | None = None
    skip_ai: bool | None = None
    skip_windows: bool | None = None

    def merged_with(self, override: ManifestSettings) -> ManifestSettings:
        """Return settings where every value set in ``override`` wins."""

        return ManifestSettings(
            timeout=override.timeout if override.timeout is not None else self.timeout,
            retries=override.retries if override.retries is not None else self.retries,
            parallel=override.parallel if override.parallel is not None else self.parallel,
            skip_ai=override.skip_ai if override.skip_ai is not None else self.skip_ai,
            skip_windows=(
                override.skip_windows if override.skip_windows is not None else self.skip_windows
            ),
        )


@dataclass(slots=True)
class VolumeManagementConfig:
    """``docker_volume_management`` section of the manifest."""

    enabled: bool | None = None
    cache_volume_name: str | None = None
    state_volume_name: str | None = None
    cache_max_size_gb: int | None = None
    cache_cleanup_threshold_percent: int | None = None
    auto_cleanup_enabled: bool | None = None
    advanced_cleanup_on_critical: bool | None = None
    space_threshold_gb: float | None = None


@dataclass(slots=True)
class ManifestCategory:
    """A named, toggleable group of pull items."""

    name: str
    enabled: bool
    description: str = ""
    items: list[PullItem] = field(default_factory=list)


@dataclass(slots=True)
class ManifestDocument:
    """Parsed manifest document."""

    source: str
    settings: ManifestSettings = field(default_factory=ManifestSettings)
    environments: dict[str, ManifestSettings] = field(default_factory=dict)
    categories: list[ManifestCategory] = field(default_factory=list)
    volume_management: VolumeManagementConfig = field(default_factory=VolumeManagementConfig)
    is_builtin: bool = False

    def settings_for(self, environment: str | None) -> ManifestSettings:
        """Global settings with the named environment override applied."""

        if environment is None or environment not in self.environments:
            return self.settings
        return self.settings.merged_with(self.environments[environment])

    @property
    def declared_item_count(self) -> int:
        return sum(len(category.items) for category in self.categories)
