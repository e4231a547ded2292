from __future__ import annotations

import allure

from pull_essentials.manifest.builder import (
    build_pull_items,
    exclude_completed,
    skip_by_namespace_prefix,
)
from pull_essentials.manifest.loader import parse_manifest
from pull_essentials.manifest.models import ItemKind, PullItem

pytestmark = [
    allure.epic("Manifest"),
    allure.feature("Work List Building"),
]


def _manifest(categories: dict) -> object:
    return parse_manifest({"categories": categories}, source="inline")


def test_skip_models_drops_model_items() -> None:
    manifest = _manifest(
        {
            "mixed": {
                "images": [
                    {"name": "ubuntu", "tag": "22.04"},
                    {"name": "ai/smollm2", "tag": "latest", "type": "model"},
                    {"name": "redis", "tag": "7", "type": "container"},
                ],
            },
        },
    )

    items = build_pull_items(manifest, skip_models=True)

    assert len(items) == 2
    assert [item.reference for item in items] == ["ubuntu:22.04", "redis:7"]
    assert all(item.kind is ItemKind.IMAGE for item in items)


def test_build_preserves_order_skips_disabled_and_deduplicates() -> None:
    manifest = _manifest(
        {
            "first": {"images": ["alpine:3.19", "debian:12"]},
            "disabled": {"enabled": False, "images": ["nginx:1.25"]},
            "second": {
                "images": [
                    {"name": "alpine", "tag": "3.19", "friendly_name": "Second alpine"},
                    "busybox:1.36",
                ],
            },
        },
    )

    items = build_pull_items(manifest)

    assert [item.reference for item in items] == ["alpine:3.19", "debian:12", "busybox:1.36"]
    assert items[0].category == "first"


def test_skip_windows_prefixes_filter_platform_images() -> None:
    manifest = _manifest(
        {
            "windows": {
                "images": [
                    "mcr.microsoft.com/windows/servercore:ltsc2022",
                    "mcr.microsoft.com/dotnet/sdk:8.0",
                ],
            },
        },
    )

    items = build_pull_items(manifest, skip_prefixes=("mcr.microsoft.com/windows",))

    assert [item.reference for item in items] == ["mcr.microsoft.com/dotnet/sdk:8.0"]


def test_skip_by_namespace_prefix_without_matches_keeps_everything() -> None:
    items = [PullItem("alpine", "3.19"), PullItem("ghcr.io/org/tool", "1")]

    assert skip_by_namespace_prefix(items, "quay.io/") == items


def test_exclude_completed_keeps_only_unfinished_identities() -> None:
    items = [PullItem("a", "1"), PullItem("b", "1"), PullItem("c", "1")]

    remaining = exclude_completed(items, {("a", "1"), ("c", "1"), ("zzz", "9")})

    assert remaining == [PullItem("b", "1")]


def test_pull_item_identity_ignores_descriptive_fields() -> None:
    plain = PullItem("python", "3.12-slim")
    described = PullItem(
        "python",
        "3.12-slim",
        kind=ItemKind.MODEL,
        friendly_name="Python",
        short_name="py",
    )

    assert plain == described
    assert hash(plain) == hash(described)
    assert described.display_name == "py"
    assert plain.display_name == "python:3.12-slim"
