"""Declarative manifest loading and flattening."""

from pull_essentials.manifest.builder import build_pull_items, exclude_completed
from pull_essentials.manifest.loader import default_manifest, load_manifest, parse_manifest
from pull_essentials.manifest.models import (
    ItemKind,
    ManifestCategory,
    ManifestDocument,
    ManifestSettings,
    PullItem,
)

__all__ = [
    "ItemKind",
    "ManifestCategory",
    "ManifestDocument",
    "ManifestSettings",
    "PullItem",
    "build_pull_items",
    "default_manifest",
    "exclude_completed",
    "load_manifest",
    "parse_manifest",
]
