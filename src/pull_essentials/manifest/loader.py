"""Load the declarative pull manifest (YAML) into typed models."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from pull_essentials.errors import ConfigurationError
from pull_essentials.manifest.models import (
    ItemKind,
    ManifestCategory,
    ManifestDocument,
    ManifestSettings,
    PullItem,
    VolumeManagementConfig,
)

logger = logging.getLogger(__name__)

BUILTIN_SOURCE = "<builtin>"

_DEFAULT_IMAGES: tuple[tuple[str, str, str], ...] = (
    ("base_os", "ubuntu", "22.04"),
    ("base_os", "debian", "12-slim"),
    ("base_os", "alpine", "3.19"),
    ("programming_languages", "python", "3.12-slim"),
    ("programming_languages", "node", "20-alpine"),
    ("programming_languages", "openjdk", "21-jdk-slim"),
    ("programming_languages", "golang", "1.22-alpine"),
    ("databases", "postgres", "16-alpine"),
    ("databases", "mysql", "8.0"),
    ("databases", "redis", "7.2-alpine"),
)


def load_manifest(path: Path) -> ManifestDocument:
    """Parse the manifest at ``path``.

    A missing file is not an error: the built-in default list is used so a
    fresh machine can still be provisioned. A file that exists but cannot be
    read or parsed raises ``ConfigurationError``.
    """

    if not path.exists():
        logger.warning("Configuration file not found: %s, using default image list", path)
        return default_manifest()

    try:
        raw_text = path.read_text("utf-8")
    except OSError as error:
        raise ConfigurationError(f"Cannot read configuration file {path}: {error}") from error
    try:
        raw = yaml.safe_load(raw_text)
    except yaml.YAMLError as error:
        raise ConfigurationError(f"Invalid YAML in {path}: {error}") from error

    logger.info("Loading configuration from: %s", path)
    document = parse_manifest(raw, source=str(path))
    if document.declared_item_count == 0:
        logger.warning("No images found in configuration, using default list")
        builtin = default_manifest()
        document.categories = builtin.categories
    return document


def parse_manifest(raw: Any, *, source: str) -> ManifestDocument:  # noqa: ANN401
    """Validate a decoded YAML document and build the manifest model."""

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigurationError(f"{source}: top-level document must be a mapping")

    settings = _parse_settings(raw.get("settings"), where=f"{source}: settings")
    environments_raw = _mapping(raw.get("environments"), where=f"{source}: environments")
    environments = {
        str(name): _parse_settings(value, where=f"{source}: environments.{name}")
        for name, value in environments_raw.items()
    }
    categories_raw = _mapping(raw.get("categories"), where=f"{source}: categories")
    categories = [
        _parse_category(str(name), value, where=f"{source}: categories.{name}")
        for name, value in categories_raw.items()
    ]
    volume_management = _parse_volume_management(
        raw.get("docker_volume_management"),
        where=f"{source}: docker_volume_management",
    )
    return ManifestDocument(
        source=source,
        settings=settings,
        environments=environments,
        categories=categories,
        volume_management=volume_management,
    )


def default_manifest() -> ManifestDocument:
    """Small built-in manifest used when no configuration file is present."""

    categories: dict[str, ManifestCategory] = {}
    for category_name, repository, tag in _DEFAULT_IMAGES:
        category = categories.setdefault(
            category_name,
            ManifestCategory(name=category_name, enabled=True),
        )
        category.items.append(_make_item(repository, tag, category=category_name))
    return ManifestDocument(
        source=BUILTIN_SOURCE,
        categories=list(categories.values()),
        is_builtin=True,
    )


def _parse_settings(value: object, *, where: str) -> ManifestSettings:
    raw = _mapping(value, where=where)
    return ManifestSettings(
        timeout=_positive_int(raw.get("timeout"), where=f"{where}.timeout"),
        retries=_non_negative_int(raw.get("retries"), where=f"{where}.retries"),
        parallel=_positive_int(raw.get("parallel"), where=f"{where}.parallel"),
        skip_ai=_optional_bool(raw.get("skip_ai"), where=f"{where}.skip_ai"),
        skip_windows=_optional_bool(raw.get("skip_windows"), where=f"{where}.skip_windows"),
    )


def _parse_category(name: str, value: object, *, where: str) -> ManifestCategory:
    raw = _mapping(value, where=where)
    enabled = _optional_bool(raw.get("enabled"), where=f"{where}.enabled")
    images = raw.get("images") or []
    if not isinstance(images, list):
        raise ConfigurationError(f"{where}.images must be a list")
    items = [
        _parse_image(entry, category=name, where=f"{where}.images[{index}]")
        for index, entry in enumerate(images)
    ]
    description = raw.get("description") or ""
    return ManifestCategory(
        name=name,
        enabled=True if enabled is None else enabled,
        description=str(description),
        items=items,
    )


def _parse_image(entry: object, *, category: str, where: str) -> PullItem:
    if isinstance(entry, str):
        repository, separator, tag = entry.strip().rpartition(":")
        if not separator or not repository or not tag or "/" in tag:
            raise ConfigurationError(f"{where}: expected 'repository:tag', got {entry!r}")
        return _make_item(repository, tag, category=category)

    if not isinstance(entry, dict):
        raise ConfigurationError(f"{where}: image entry must be a mapping or 'repository:tag'")
    name = entry.get("name")
    tag = entry.get("tag")
    if not isinstance(name, str) or not name.strip():
        raise ConfigurationError(f"{where}.name must be a non-empty string")
    if tag is None or not str(tag).strip():
        raise ConfigurationError(f"{where}.tag must be a non-empty string")
    kind_raw = str(entry.get("type") or ItemKind.IMAGE.value).strip().lower()
    kind = ItemKind.MODEL if kind_raw == ItemKind.MODEL.value else ItemKind.IMAGE
    return _make_item(
        name.strip(),
        str(tag).strip(),
        category=category,
        kind=kind,
        friendly_name=_optional_str(entry.get("friendly_name")),
        short_name=_optional_str(entry.get("short_name")),
        description=_optional_str(entry.get("description")),
    )


def _parse_volume_management(value: object, *, where: str) -> VolumeManagementConfig:
    raw = _mapping(value, where=where)
    cache = _mapping(raw.get("cache_volume"), where=f"{where}.cache_volume")
    state = _mapping(raw.get("state_volume"), where=f"{where}.state_volume")
    policies = _mapping(raw.get("cleanup_policies"), where=f"{where}.cleanup_policies")
    advanced = _mapping(
        policies.get("advanced_cleanup"),
        where=f"{where}.cleanup_policies.advanced_cleanup",
    )
    threshold = advanced.get("space_threshold_gb")
    if threshold is not None and (
        isinstance(threshold, bool) or not isinstance(threshold, int | float) or threshold < 0
    ):
        raise ConfigurationError(
            f"{where}.cleanup_policies.advanced_cleanup.space_threshold_gb must be >= 0",
        )
    return VolumeManagementConfig(
        enabled=_optional_bool(raw.get("enabled"), where=f"{where}.enabled"),
        cache_volume_name=_optional_str(cache.get("name")) or None,
        state_volume_name=_optional_str(state.get("name")) or None,
        cache_max_size_gb=_positive_int(cache.get("max_size_gb"), where=f"{where}.max_size_gb"),
        cache_cleanup_threshold_percent=_positive_int(
            cache.get("cleanup_threshold_percent"),
            where=f"{where}.cleanup_threshold_percent",
        ),
        auto_cleanup_enabled=_optional_bool(
            policies.get("auto_cleanup_enabled"),
            where=f"{where}.cleanup_policies.auto_cleanup_enabled",
        ),
        advanced_cleanup_on_critical=_optional_bool(
            advanced.get("enable_on_critical_space"),
            where=f"{where}.cleanup_policies.advanced_cleanup.enable_on_critical_space",
        ),
        space_threshold_gb=float(threshold) if threshold is not None else None,
    )


def _make_item(  # noqa: PLR0913
    repository: str,
    tag: str,
    *,
    category: str,
    kind: ItemKind = ItemKind.IMAGE,
    friendly_name: str = "",
    short_name: str = "",
    description: str = "",
) -> PullItem:
    return PullItem(
        repository=repository,
        tag=tag,
        kind=kind,
        friendly_name=friendly_name or f"{repository}:{tag}",
        short_name=short_name or repository.rsplit("/", 1)[-1],
        description=description,
        category=category,
    )


def _mapping(value: object, *, where: str) -> dict[Any, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigurationError(f"{where} must be a mapping")
    return value


def _optional_str(value: object) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _optional_bool(value: object, *, where: str) -> bool | None:
    if value is None or isinstance(value, bool):
        return value
    raise ConfigurationError(f"{where} must be true or false, got {value!r}")


def _positive_int(value: object, *, where: str) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ConfigurationError(f"{where} must be a positive integer, got {value!r}")
    return value


def _non_negative_int(value: object, *, where: str) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ConfigurationError(f"{where} must be a non-negative integer, got {value!r}")
    return value
