"""CLI controller for bulk pulls and volume maintenance."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from pull_essentials.config import Settings
from pull_essentials.engine.base import ImageEngine
from pull_essentials.engine.docker_cli import DockerCliEngine
from pull_essentials.environment import detect_environment
from pull_essentials.errors import (
    ConfigurationError,
    InsufficientDiskSpaceError,
    PrerequisiteError,
)
from pull_essentials.manifest.builder import build_pull_items, exclude_completed
from pull_essentials.manifest.loader import load_manifest
from pull_essentials.manifest.models import ManifestDocument, PullItem
from pull_essentials.orchestrator.admission import (
    AdmissionController,
    DiskProbe,
    ShutilDiskProbe,
    StopSignal,
)
from pull_essentials.orchestrator.breaker import CircuitBreakerRegistry
from pull_essentials.orchestrator.dispatcher import WorkerPool
from pull_essentials.orchestrator.ledger import ResultLedger
from pull_essentials.orchestrator.models import QueueObservation, RunSummary
from pull_essentials.orchestrator.progress import (
    ProgressTracker,
    build_run_summary,
    render_progress_line,
    render_summary_lines,
)
from pull_essentials.orchestrator.puller import PullActivity, Puller
from pull_essentials.orchestrator.state_store import PriorRunState, RunStateStore
from pull_essentials.orchestrator.volumes import VolumeManager
from pull_essentials.orchestrator.work_queue import WorkQueue

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_PREREQUISITE = 2


@dataclass(slots=True)
class PullRunCommand:
    """Input for the bulk pull command."""

    config_path: Path | None = None
    dry_run: bool = False
    parallel: int | None = None
    retries: int | None = None
    timeout_seconds: int | None = None
    skip_ai: bool = False
    skip_windows: bool = False
    log_file: Path | None = None
    state_dir: Path | None = None
    resume: bool = False
    validate: bool | None = None


class VolumeAction(str, Enum):
    STATUS = "status"
    CLEANUP = "cleanup"
    ADVANCED_CLEANUP = "advanced_cleanup"


@dataclass(slots=True)
class VolumeCommand:
    """Input for standalone volume maintenance actions."""

    action: VolumeAction
    config_path: Path | None = None


@dataclass(slots=True)
class CommandOutcome:
    """Lines to print and the process exit code."""

    lines: list[str] = field(default_factory=list)
    exit_code: int = EXIT_OK


class PullCliController:
    """Wire settings, manifest, engine and orchestrator together for the CLI."""

    def __init__(  # noqa: PLR0913
        self,
        *,
        engine_factory: Callable[[], ImageEngine] = DockerCliEngine,
        probe_factory: Callable[[Path], DiskProbe] = ShutilDiskProbe,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
        progress_interval: float = 5.0,
    ) -> None:
        self._engine_factory = engine_factory
        self._probe_factory = probe_factory
        self._clock = clock
        self._sleep = sleep
        self.progress_interval = progress_interval

    def run_pull(self, command: PullRunCommand) -> CommandOutcome:
        """Pull every manifest item and report the outcome."""

        lines: list[str] = []
        try:
            exit_code = self._run_pull(command, lines)
        except ConfigurationError as error:
            lines.append(f"Configuration error: {error}")
            return CommandOutcome(lines, EXIT_FAILURE)
        except PrerequisiteError as error:
            lines.append(f"Prerequisite check failed: {error}")
            return CommandOutcome(lines, EXIT_PREREQUISITE)
        except InsufficientDiskSpaceError as error:
            lines.append(str(error))
            return CommandOutcome(lines, EXIT_FAILURE)
        return CommandOutcome(lines, exit_code)

    def manage_volumes(self, command: VolumeCommand) -> CommandOutcome:
        try:
            settings, _ = self.load_configuration(PullRunCommand(config_path=command.config_path))
            engine = self._engine_factory()
            engine.check_available()
        except ConfigurationError as error:
            return CommandOutcome([f"Configuration error: {error}"], EXIT_FAILURE)
        except PrerequisiteError as error:
            return CommandOutcome([f"Prerequisite check failed: {error}"], EXIT_PREREQUISITE)

        manager = VolumeManager(engine, settings.volumes)
        if command.action is VolumeAction.STATUS:
            return CommandOutcome(manager.status_lines())
        if command.action is VolumeAction.CLEANUP:
            return CommandOutcome(manager.cleanup_volumes())
        return CommandOutcome(manager.advanced_cleanup())

    def load_configuration(self, command: PullRunCommand) -> tuple[Settings, ManifestDocument]:
        """Resolve settings: defaults, env, manifest, environment override, CLI flags."""

        try:
            settings = Settings.from_env(config_path=command.config_path)
            manifest = load_manifest(settings.config_path)
            environment = detect_environment(settings.environment)
            settings = settings.apply_manifest(
                manifest.settings_for(environment),
                manifest.volume_management,
            )
            settings = settings.with_cli_overrides(
                timeout_seconds=command.timeout_seconds,
                retries=command.retries,
                parallel=command.parallel,
                skip_ai=command.skip_ai,
                skip_windows=command.skip_windows,
                validate_images=command.validate,
                log_file=command.log_file,
                state_dir=command.state_dir,
            )
            settings.validate()
        except ValueError as error:
            raise ConfigurationError(str(error)) from error
        return settings, manifest

    def _run_pull(self, command: PullRunCommand, lines: list[str]) -> int:
        settings, manifest = self.load_configuration(command)
        pull = settings.pull
        lines.append(f"Configuration: {manifest.source}")
        lines.append(
            f"Settings: parallel={pull.parallel}, retries={pull.retries}, "
            f"timeout={pull.timeout_seconds}s",
        )

        engine = self._engine_factory()
        if not command.dry_run:
            lines.append(f"Engine: {engine.check_available()}")

        items = build_pull_items(
            manifest,
            skip_models=pull.skip_ai,
            skip_prefixes=pull.windows_prefixes if pull.skip_windows else (),
        )
        store = RunStateStore(settings.state_dir)
        prior: PriorRunState | None = None
        if command.resume and not command.dry_run:
            prior = store.load()
            before = len(items)
            items = exclude_completed(items, prior.completed)
            lines.append(
                f"Resuming: {before - len(items)} already completed, {len(items)} to process",
            )
        if pull.validate_images and not command.dry_run:
            items = self._validate_items(engine, items, settings, lines)

        if not items:
            if prior is not None:
                lines.append("Nothing to resume: every image was already pulled.")
                return EXIT_OK
            lines.append("No valid images to pull.")
            return EXIT_FAILURE

        if command.dry_run:
            summary = self._execute(items, settings, engine, dry_run=True)
        else:
            self._check_free_space(settings)
            if prior is None:
                store.reset()
            VolumeManager(engine, settings.volumes).ensure_volumes()
            summary = self._execute(items, settings, engine, store=store, prior=prior)

        lines.extend(render_summary_lines(summary))
        return EXIT_OK if summary.ok else EXIT_FAILURE

    def _execute(  # noqa: PLR0913
        self,
        items: list[PullItem],
        settings: Settings,
        engine: ImageEngine,
        *,
        dry_run: bool = False,
        store: RunStateStore | None = None,
        prior: PriorRunState | None = None,
    ) -> RunSummary:
        queue = WorkQueue()
        queue.enqueue_all(items)
        ledger = ResultLedger()
        stop_signal = StopSignal()
        activity = PullActivity()
        breakers = CircuitBreakerRegistry(
            cooldown_seconds=settings.pull.breaker_cooldown_seconds,
            clock=self._clock,
            initial=prior.breakers if prior is not None else None,
        )
        admission: AdmissionController | None = None
        if not dry_run:
            admission = AdmissionController(
                probe=self._probe_factory(settings.admission.docker_root),
                cleaner=VolumeManager(engine, settings.volumes),
                stop_signal=stop_signal,
                activity=activity,
                settings=settings.admission,
            )
        puller = Puller(
            engine,
            breakers=breakers,
            timeout_seconds=settings.pull.timeout_seconds,
            retries=settings.pull.retries,
            base_delay_seconds=settings.pull.retry_base_seconds,
            dry_run=dry_run,
            activity=activity,
            allowed_registries=settings.pull.allowed_registries,
            on_disk_space=admission.nudge if admission is not None else None,
            sleep=self._sleep,
        )
        pool = WorkerPool(
            queue=queue,
            puller=puller,
            ledger=ledger,
            stop_signal=stop_signal,
            parallel=settings.pull.parallel,
            on_result=store.record_result if store is not None else None,
        )
        tracker = ProgressTracker(queue.total, lambda: queue.observe(ledger))

        def _log_progress(_: QueueObservation) -> None:
            logger.info("%s", render_progress_line(tracker.snapshot()))

        if admission is not None:
            admission.start()
        try:
            pool_summary = pool.run(
                on_progress=_log_progress,
                progress_interval=self.progress_interval,
            )
        finally:
            if admission is not None:
                admission.stop()
            if store is not None:
                store.save(
                    remaining=queue.pending_items(),
                    completed=ledger.completed(),
                    failures=ledger.failures(),
                    breakers=breakers.snapshot(),
                    prior=prior,
                )
        return build_run_summary(pool_summary, ledger, dry_run=dry_run)

    def _check_free_space(self, settings: Settings) -> None:
        sample = self._probe_factory(settings.admission.docker_root).sample()
        if sample.available_gb < settings.admission.min_free_space_gb:
            raise InsufficientDiskSpaceError(
                sample.available_gb,
                settings.admission.min_free_space_gb,
            )
        logger.info("Available disk space: %.1fGB", sample.available_gb)

    def _validate_items(
        self,
        engine: ImageEngine,
        items: list[PullItem],
        settings: Settings,
        lines: list[str],
    ) -> list[PullItem]:
        logger.info("Validating %d image(s)", len(items))
        valid: list[PullItem] = []
        for item in items:
            if engine.manifest_exists(item, timeout_seconds=settings.pull.validate_timeout_seconds):
                valid.append(item)
                continue
            logger.warning("Image not available: %s", item.reference)
            lines.append(f"Skipping unavailable image: {item.reference}")
        return valid
