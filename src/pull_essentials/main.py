"""CLI entrypoint for pull-essentials."""

import logging
from pathlib import Path

import rich_click as click

from pull_essentials import __version__
from pull_essentials.config import resolve_log_file
from pull_essentials.orchestrator.controllers import (
    PullCliController,
    PullRunCommand,
    VolumeAction,
    VolumeCommand,
)

click.rich_click.USE_MARKDOWN = True
PULL_CONTROLLER = PullCliController()

_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
_FILE_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(threadName)s %(name)s - %(message)s"
_installed_handlers: list[logging.Handler] = []


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=__version__, prog_name="pull-essentials")
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="Manifest file (default: docker-pull-config.yaml).",
)
@click.option("--dry-run", is_flag=True, help="Show what would be pulled without pulling.")
@click.option("--parallel", type=click.IntRange(min=1), default=None, help="Concurrent pulls.")
@click.option(
    "--retry",
    "retries",
    type=click.IntRange(min=0),
    default=None,
    help="Retries per image after the first attempt.",
)
@click.option(
    "--timeout",
    "timeout_seconds",
    type=click.IntRange(min=1),
    default=None,
    help="Timeout per pull attempt in seconds.",
)
@click.option("--skip-ai", is_flag=True, help="Skip AI/ML models.")
@click.option("--skip-windows", is_flag=True, help="Skip Windows container images.")
@click.option(
    "--log-file",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="Log file (default: docker-pull.log).",
)
@click.option(
    "--state-dir",
    type=click.Path(path_type=Path, file_okay=False),
    default=None,
    help="Directory holding resume state.",
)
@click.option("--resume", is_flag=True, help="Retry only images not completed by the last run.")
@click.option(
    "--validate/--no-validate",
    "validate",
    default=None,
    help="Check every image exists in its registry before pulling.",
)
@click.option("--advanced-cleanup", is_flag=True, help="Run aggressive Docker cleanup and exit.")
@click.option("--cleanup-volumes", is_flag=True, help="Prune unused unmanaged volumes and exit.")
@click.option("--volume-status", is_flag=True, help="Show managed volume status and exit.")
@click.option("--debug", is_flag=True, help="Verbose logging.")
@click.pass_context
def pull_essentials(  # noqa: PLR0913
    ctx: click.Context,
    config_path: Path | None,
    dry_run: bool,
    parallel: int | None,
    retries: int | None,
    timeout_seconds: int | None,
    skip_ai: bool,
    skip_windows: bool,
    log_file: Path | None,
    state_dir: Path | None,
    resume: bool,
    validate: bool | None,
    advanced_cleanup: bool,
    cleanup_volumes: bool,
    volume_status: bool,
    debug: bool,
) -> None:
    """Pull essential Docker images and models in parallel.

    Failed pulls are retried with backoff, repeatedly failing images are
    skipped for a cooldown period, and the run stops gracefully when disk
    space runs low. Use `--resume` to continue after a partial run.
    """

    actions = [
        action
        for action, requested in (
            (VolumeAction.ADVANCED_CLEANUP, advanced_cleanup),
            (VolumeAction.CLEANUP, cleanup_volumes),
            (VolumeAction.STATUS, volume_status),
        )
        if requested
    ]
    if len(actions) > 1:
        raise click.UsageError(
            "--advanced-cleanup, --cleanup-volumes and --volume-status are mutually exclusive.",
        )

    configure_logging(resolve_log_file(log_file), debug=debug)
    if actions:
        outcome = PULL_CONTROLLER.manage_volumes(
            VolumeCommand(action=actions[0], config_path=config_path),
        )
    else:
        outcome = PULL_CONTROLLER.run_pull(
            PullRunCommand(
                config_path=config_path,
                dry_run=dry_run,
                parallel=parallel,
                retries=retries,
                timeout_seconds=timeout_seconds,
                skip_ai=skip_ai,
                skip_windows=skip_windows,
                log_file=log_file,
                state_dir=state_dir,
                resume=resume,
                validate=validate,
            ),
        )
    _emit_lines(outcome.lines)
    ctx.exit(outcome.exit_code)


def configure_logging(log_file: Path, *, debug: bool = False) -> None:
    """Log to stderr and to ``log_file``; repeated calls replace earlier handlers."""

    root_logger = logging.getLogger()
    for handler in _installed_handlers:
        root_logger.removeHandler(handler)
        handler.close()
    _installed_handlers.clear()

    level = logging.DEBUG if debug else logging.INFO
    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(_LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    _installed_handlers.append(console_handler)

    if log_file.parent != Path():
        log_file.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(_FILE_LOG_FORMAT))
    _installed_handlers.append(file_handler)

    root_logger.setLevel(logging.DEBUG if debug else logging.INFO)
    for handler in _installed_handlers:
        root_logger.addHandler(handler)


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    pull_essentials()
