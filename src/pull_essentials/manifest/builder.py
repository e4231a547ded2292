"""Flatten a manifest into an ordered, filtered list of pull items."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from pull_essentials.manifest.models import ManifestDocument, PullItem

logger = logging.getLogger(__name__)


def build_pull_items(
    manifest: ManifestDocument,
    *,
    skip_models: bool = False,
    skip_prefixes: Iterable[str] = (),
) -> list[PullItem]:
    """Return enabled items in document order, deduplicated by identity."""

    items: list[PullItem] = []
    seen: set[tuple[str, str]] = set()
    for category in manifest.categories:
        if not category.enabled:
            logger.debug("Skipping disabled category %s", category.name)
            continue
        for item in category.items:
            if item.identity in seen:
                logger.debug("Dropping duplicate entry %s in %s", item.reference, category.name)
                continue
            seen.add(item.identity)
            items.append(item)

    if skip_models:
        logger.info("Filtering out AI/ML models")
        items = skip_model_items(items)
    for prefix in skip_prefixes:
        items = skip_by_namespace_prefix(items, prefix)

    logger.info("Built image list with %d images/models", len(items))
    return items


def skip_model_items(items: list[PullItem]) -> list[PullItem]:
    return [item for item in items if not item.is_model]


def skip_by_namespace_prefix(items: list[PullItem], prefix: str) -> list[PullItem]:
    """Drop items whose repository starts with ``prefix``."""

    kept = [item for item in items if not item.repository.startswith(prefix)]
    dropped = len(items) - len(kept)
    if dropped:
        logger.info("Filtered out %d images under %s", dropped, prefix)
    return kept


def exclude_completed(
    items: list[PullItem],
    completed: Iterable[tuple[str, str]],
) -> list[PullItem]:
    """Resume filter: keep only items not present in a prior ``completed`` set."""

    done = set(completed)
    return [item for item in items if item.identity not in done]
