"""Runtime configuration for bulk pulls, admission control and volume management."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import TypeVar

from pull_essentials.manifest.models import ManifestSettings, VolumeManagementConfig

DEFAULT_CONFIG_FILE = Path("docker-pull-config.yaml")
DEFAULT_LOG_FILE = Path("docker-pull.log")
DEFAULT_STATE_DIR = Path(".pull_essentials")
MANAGED_VOLUME_LABEL = "created-by=pull-essentials"

T = TypeVar("T")


@dataclass(slots=True)
class PullSettings:
    """Per-item pull and retry settings."""

    timeout_seconds: int = 300
    retries: int = 2
    parallel: int = 4
    skip_ai: bool = False
    skip_windows: bool = False
    retry_base_seconds: float = 2.0
    breaker_cooldown_seconds: float = 300.0
    windows_prefixes: tuple[str, ...] = ("mcr.microsoft.com/windows",)
    allowed_registries: tuple[str, ...] = ()
    validate_images: bool = False
    validate_timeout_seconds: int = 10


@dataclass(slots=True)
class AdmissionSettings:
    """Background disk monitoring thresholds."""

    check_interval_seconds: float = 30.0
    space_threshold_gb: float = 5.0
    cleanup_threshold_percent: float = 90.0
    min_free_space_gb: float = 2.0
    reclaimable_warning_gb: float = 5.0
    docker_root: Path = Path("/var/lib/docker")
    advanced_cleanup_on_critical: bool = True
    auto_cleanup_enabled: bool = True


@dataclass(slots=True)
class VolumeSettings:
    """Managed cache/state Docker volumes."""

    enabled: bool = True
    cache_volume: str = "docker-pull-essentials-cache"
    state_volume: str = "docker-pull-essentials-state"
    cache_max_size_gb: int = 50
    cache_cleanup_threshold_percent: int = 85
    managed_label: str = MANAGED_VOLUME_LABEL


@dataclass(slots=True)
class Settings:
    """Application settings grouped by concern."""

    config_path: Path = DEFAULT_CONFIG_FILE
    log_file: Path = DEFAULT_LOG_FILE
    state_dir: Path = DEFAULT_STATE_DIR
    environment: str | None = None
    pull: PullSettings = field(default_factory=PullSettings)
    admission: AdmissionSettings = field(default_factory=AdmissionSettings)
    volumes: VolumeSettings = field(default_factory=VolumeSettings)

    @classmethod
    def from_env(cls, config_path: Path | None = None) -> Settings:
        """Load settings from environment with defaults suitable for a workstation."""

        return cls(
            config_path=config_path
            or Path(os.getenv("PULL_ESSENTIALS_CONFIG", str(DEFAULT_CONFIG_FILE))),
            log_file=resolve_log_file(),
            state_dir=Path(os.getenv("PULL_ESSENTIALS_STATE_DIR", str(DEFAULT_STATE_DIR))),
            environment=os.getenv("PULL_ESSENTIALS_ENVIRONMENT") or None,
            pull=PullSettings(
                timeout_seconds=int(os.getenv("PULL_ESSENTIALS_TIMEOUT", "300")),
                retries=int(os.getenv("PULL_ESSENTIALS_RETRIES", "2")),
                parallel=int(os.getenv("PULL_ESSENTIALS_PARALLEL", "4")),
                skip_ai=_env_bool("PULL_ESSENTIALS_SKIP_AI", default=False),
                skip_windows=_env_bool("PULL_ESSENTIALS_SKIP_WINDOWS", default=False),
                retry_base_seconds=float(os.getenv("PULL_ESSENTIALS_RETRY_BASE_SECONDS", "2.0")),
                breaker_cooldown_seconds=float(
                    os.getenv("PULL_ESSENTIALS_BREAKER_COOLDOWN_SECONDS", "300"),
                ),
                windows_prefixes=_env_csv(
                    "PULL_ESSENTIALS_WINDOWS_PREFIXES",
                    default=("mcr.microsoft.com/windows",),
                ),
                allowed_registries=_env_csv("PULL_ESSENTIALS_ALLOWED_REGISTRIES", default=()),
                validate_images=_env_bool("PULL_ESSENTIALS_VALIDATE_IMAGES", default=False),
            ),
            admission=AdmissionSettings(
                check_interval_seconds=float(
                    os.getenv("PULL_ESSENTIALS_DISK_CHECK_INTERVAL_SECONDS", "30"),
                ),
                space_threshold_gb=float(os.getenv("PULL_ESSENTIALS_SPACE_THRESHOLD_GB", "5")),
                cleanup_threshold_percent=float(
                    os.getenv("PULL_ESSENTIALS_CLEANUP_THRESHOLD_PERCENT", "90"),
                ),
                min_free_space_gb=float(os.getenv("PULL_ESSENTIALS_MIN_FREE_SPACE_GB", "2")),
                docker_root=Path(os.getenv("PULL_ESSENTIALS_DOCKER_ROOT", "/var/lib/docker")),
                advanced_cleanup_on_critical=_env_bool(
                    "PULL_ESSENTIALS_ADVANCED_CLEANUP_ON_CRITICAL",
                    default=True,
                ),
                auto_cleanup_enabled=_env_bool("PULL_ESSENTIALS_AUTO_CLEANUP", default=True),
            ),
            volumes=VolumeSettings(
                enabled=_env_bool("PULL_ESSENTIALS_VOLUME_MANAGEMENT", default=True),
                cache_volume=os.getenv(
                    "PULL_ESSENTIALS_CACHE_VOLUME",
                    "docker-pull-essentials-cache",
                ),
                state_volume=os.getenv(
                    "PULL_ESSENTIALS_STATE_VOLUME",
                    "docker-pull-essentials-state",
                ),
            ),
        )

    def apply_manifest(
        self,
        manifest_settings: ManifestSettings,
        volume_config: VolumeManagementConfig | None = None,
    ) -> Settings:
        """Layer manifest-declared values over the current settings."""

        pull = replace(
            self.pull,
            timeout_seconds=_pick(manifest_settings.timeout, self.pull.timeout_seconds),
            retries=_pick(manifest_settings.retries, self.pull.retries),
            parallel=_pick(manifest_settings.parallel, self.pull.parallel),
            skip_ai=_pick(manifest_settings.skip_ai, self.pull.skip_ai),
            skip_windows=_pick(manifest_settings.skip_windows, self.pull.skip_windows),
        )
        admission = self.admission
        volumes = self.volumes
        if volume_config is not None:
            admission = replace(
                admission,
                space_threshold_gb=_pick(
                    volume_config.space_threshold_gb,
                    admission.space_threshold_gb,
                ),
                advanced_cleanup_on_critical=_pick(
                    volume_config.advanced_cleanup_on_critical,
                    admission.advanced_cleanup_on_critical,
                ),
                auto_cleanup_enabled=_pick(
                    volume_config.auto_cleanup_enabled,
                    admission.auto_cleanup_enabled,
                ),
            )
            volumes = replace(
                volumes,
                enabled=_pick(volume_config.enabled, volumes.enabled),
                cache_volume=_pick(volume_config.cache_volume_name, volumes.cache_volume),
                state_volume=_pick(volume_config.state_volume_name, volumes.state_volume),
                cache_max_size_gb=_pick(
                    volume_config.cache_max_size_gb,
                    volumes.cache_max_size_gb,
                ),
                cache_cleanup_threshold_percent=_pick(
                    volume_config.cache_cleanup_threshold_percent,
                    volumes.cache_cleanup_threshold_percent,
                ),
            )
        return replace(self, pull=pull, admission=admission, volumes=volumes)

    def with_cli_overrides(  # noqa: PLR0913
        self,
        *,
        timeout_seconds: int | None = None,
        retries: int | None = None,
        parallel: int | None = None,
        skip_ai: bool = False,
        skip_windows: bool = False,
        validate_images: bool | None = None,
        log_file: Path | None = None,
        state_dir: Path | None = None,
    ) -> Settings:
        """Apply command-line flags; boolean switches can only turn a filter on."""

        pull = replace(
            self.pull,
            timeout_seconds=_pick(timeout_seconds, self.pull.timeout_seconds),
            retries=_pick(retries, self.pull.retries),
            parallel=_pick(parallel, self.pull.parallel),
            skip_ai=self.pull.skip_ai or skip_ai,
            skip_windows=self.pull.skip_windows or skip_windows,
            validate_images=_pick(validate_images, self.pull.validate_images),
        )
        return replace(
            self,
            pull=pull,
            log_file=log_file or self.log_file,
            state_dir=state_dir or self.state_dir,
        )

    def validate(self) -> None:
        """Raise configuration error if any value is out of range."""

        if self.pull.timeout_seconds <= 0:
            raise ValueError("PULL_ESSENTIALS_TIMEOUT must be > 0.")
        if self.pull.retries < 0:
            raise ValueError("PULL_ESSENTIALS_RETRIES must be >= 0.")
        if self.pull.parallel <= 0:
            raise ValueError("PULL_ESSENTIALS_PARALLEL must be > 0.")
        if self.pull.retry_base_seconds < 0:
            raise ValueError("PULL_ESSENTIALS_RETRY_BASE_SECONDS must be >= 0.")
        if self.pull.breaker_cooldown_seconds < 0:
            raise ValueError("PULL_ESSENTIALS_BREAKER_COOLDOWN_SECONDS must be >= 0.")
        if self.admission.check_interval_seconds <= 0:
            raise ValueError("PULL_ESSENTIALS_DISK_CHECK_INTERVAL_SECONDS must be > 0.")
        if self.admission.space_threshold_gb < 0:
            raise ValueError("PULL_ESSENTIALS_SPACE_THRESHOLD_GB must be >= 0.")
        if not 0 < self.admission.cleanup_threshold_percent <= 100:  # noqa: PLR2004
            raise ValueError("PULL_ESSENTIALS_CLEANUP_THRESHOLD_PERCENT must be in (0, 100].")
        if self.volumes.enabled and self.volumes.cache_volume == self.volumes.state_volume:
            raise ValueError("Cache and state volumes must have different names.")


def _pick(value: T | None, fallback: T) -> T:
    return fallback if value is None else value


def _env_csv(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    raw = os.getenv(name)
    if raw is None:
        return default
    return tuple(part.strip() for part in raw.split(",") if part.strip())


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Invalid boolean value for {name}: {value!r}")


def resolve_log_file(explicit: Path | None = None) -> Path:
    """Log file path from the command line, the environment or the default."""

    if explicit is not None:
        return explicit
    return Path(os.getenv("PULL_ESSENTIALS_LOG_FILE", str(DEFAULT_LOG_FILE)))
