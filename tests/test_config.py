from __future__ import annotations

from pathlib import Path

import allure
import pytest

from pull_essentials.config import (
    DEFAULT_LOG_FILE,
    PullSettings,
    Settings,
    VolumeSettings,
    resolve_log_file,
)
from pull_essentials.manifest.models import ManifestSettings, VolumeManagementConfig

pytestmark = [
    allure.epic("Configuration"),
    allure.feature("Settings Resolution"),
]


def test_from_env_uses_workstation_defaults() -> None:
    settings = Settings.from_env()

    assert settings.config_path == Path("docker-pull-config.yaml")
    assert settings.pull.timeout_seconds == 300
    assert settings.pull.retries == 2
    assert settings.pull.parallel == 4
    assert settings.pull.windows_prefixes == ("mcr.microsoft.com/windows",)
    assert settings.admission.space_threshold_gb == 5.0
    assert settings.admission.cleanup_threshold_percent == 90.0
    assert settings.admission.check_interval_seconds == 30.0
    assert settings.volumes.enabled is True
    settings.validate()


def test_from_env_reads_overrides(monkeypatch) -> None:
    monkeypatch.setenv("PULL_ESSENTIALS_PARALLEL", "8")
    monkeypatch.setenv("PULL_ESSENTIALS_SKIP_AI", "yes")
    monkeypatch.setenv("PULL_ESSENTIALS_ALLOWED_REGISTRIES", "docker.io, ghcr.io ,")
    monkeypatch.setenv("PULL_ESSENTIALS_ENVIRONMENT", "wsl2")

    settings = Settings.from_env(config_path=Path("custom.yaml"))

    assert settings.config_path == Path("custom.yaml")
    assert settings.pull.parallel == 8
    assert settings.pull.skip_ai is True
    assert settings.pull.allowed_registries == ("docker.io", "ghcr.io")
    assert settings.environment == "wsl2"


def test_from_env_rejects_invalid_boolean(monkeypatch) -> None:
    monkeypatch.setenv("PULL_ESSENTIALS_SKIP_WINDOWS", "sometimes")

    with pytest.raises(ValueError, match="PULL_ESSENTIALS_SKIP_WINDOWS"):
        Settings.from_env()


def test_manifest_then_cli_precedence() -> None:
    settings = Settings(pull=PullSettings(timeout_seconds=120, retries=1, parallel=2))

    layered = settings.apply_manifest(ManifestSettings(timeout=600, parallel=6, skip_ai=True))
    final = layered.with_cli_overrides(parallel=3, skip_windows=True, state_dir=Path("st"))

    assert final.pull.timeout_seconds == 600
    assert final.pull.retries == 1
    assert final.pull.parallel == 3
    assert final.pull.skip_ai is True
    assert final.pull.skip_windows is True
    assert final.state_dir == Path("st")
    assert settings.pull.parallel == 2


def test_apply_manifest_layers_volume_management() -> None:
    settings = Settings().apply_manifest(
        ManifestSettings(),
        VolumeManagementConfig(
            cache_volume_name="cache-x",
            space_threshold_gb=10,
            advanced_cleanup_on_critical=False,
        ),
    )

    assert settings.volumes.cache_volume == "cache-x"
    assert settings.volumes.state_volume == "docker-pull-essentials-state"
    assert settings.admission.space_threshold_gb == 10
    assert settings.admission.advanced_cleanup_on_critical is False


@pytest.mark.parametrize(
    ("settings", "match"),
    [
        (Settings(pull=PullSettings(timeout_seconds=0)), "TIMEOUT"),
        (Settings(pull=PullSettings(retries=-1)), "RETRIES"),
        (Settings(pull=PullSettings(parallel=0)), "PARALLEL"),
        (
            Settings(volumes=VolumeSettings(cache_volume="same", state_volume="same")),
            "different names",
        ),
    ],
)
def test_validate_rejects_out_of_range_values(settings: Settings, match: str) -> None:
    with pytest.raises(ValueError, match=match):
        settings.validate()


def test_resolve_log_file_prefers_explicit_then_env(monkeypatch) -> None:
    assert resolve_log_file() == DEFAULT_LOG_FILE
    monkeypatch.setenv("PULL_ESSENTIALS_LOG_FILE", "/tmp/env.log")
    assert resolve_log_file() == Path("/tmp/env.log")
    assert resolve_log_file(Path("cli.log")) == Path("cli.log")
