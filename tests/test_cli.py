from __future__ import annotations

from pathlib import Path

import allure
import pytest
from click.testing import CliRunner

from pull_essentials import __version__, main
from pull_essentials.engine.base import FetchErrorReason, FetchFailure
from pull_essentials.orchestrator.controllers import PullCliController, PullRunCommand
from pull_essentials.orchestrator.dispatcher import WorkerPool
from pull_essentials.orchestrator.state_store import (
    COMPLETED_FILE,
    QUEUE_FILE,
    RESULTS_LOG,
    load_json,
)

pytestmark = [
    allure.epic("CLI"),
    allure.feature("pull-essentials command"),
]

_CONFIG = """
settings:
  retries: 0
  parallel: 2
categories:
  base:
    images:
      - name: alpine
        tag: "3.19"
      - name: debian
        tag: "12"
      - name: redis
        tag: "7"
  extras:
    images:
      - name: registry.example.com/team/c
        tag: "1"
      - name: registry.example.com/team/d
        tag: "1"
  models:
    images:
      - name: ai/smollm2
        tag: latest
        type: model
"""


@pytest.fixture()
def cli(tmp_path: Path, monkeypatch, fake_engine, disk_probe, fake_clock):
    config = tmp_path / "docker-pull-config.yaml"
    config.write_text(_CONFIG, "utf-8")
    controller = PullCliController(
        engine_factory=lambda: fake_engine,
        probe_factory=lambda _path: disk_probe,
        clock=fake_clock,
        sleep=lambda _seconds: None,
        progress_interval=0.01,
    )
    monkeypatch.setattr(main, "PULL_CONTROLLER", controller)
    monkeypatch.setenv("PULL_ESSENTIALS_ENVIRONMENT", "native_linux")
    # Wide terminal so rich-click does not wrap error text across lines.
    monkeypatch.setenv("COLUMNS", "200")
    runner = CliRunner()
    base_args = [
        "--config",
        str(config),
        "--log-file",
        str(tmp_path / "pull.log"),
        "--state-dir",
        str(tmp_path / "state"),
    ]

    def _invoke(*args: str):
        return runner.invoke(main.pull_essentials, [*base_args, *args])

    return _invoke


def test_dry_run_reports_would_pull_count_without_fetching(cli, fake_engine) -> None:
    result = cli("--dry-run")

    assert result.exit_code == 0, result.output
    assert "Would pull: 6" in result.output
    assert fake_engine.pull_calls == []


def test_skip_ai_removes_models_from_work_list(cli) -> None:
    result = cli("--dry-run", "--skip-ai")

    assert result.exit_code == 0, result.output
    assert "Would pull: 5" in result.output


def test_successful_run_writes_state_and_creates_volumes(cli, fake_engine, tmp_path) -> None:
    result = cli()

    assert result.exit_code == 0, result.output
    assert "Successful: 6" in result.output
    assert "All images pulled successfully." in result.output
    assert sorted(fake_engine.volumes) == [
        "docker-pull-essentials-cache",
        "docker-pull-essentials-state",
    ]
    log_lines = (tmp_path / "state" / RESULTS_LOG).read_text("utf-8").splitlines()
    assert len(log_lines) == 6
    assert (tmp_path / "pull.log").exists()


def test_resume_processes_only_previously_failed_items(cli, fake_engine, fake_clock) -> None:
    not_found = FetchFailure(reason=FetchErrorReason.NOT_FOUND, message="not found")
    fake_engine.script("registry.example.com/team/c:1", not_found, None)
    fake_engine.script("registry.example.com/team/d:1", not_found, None)

    first = cli()
    assert first.exit_code == 1
    assert "Failed: 2" in first.output
    assert "  - registry.example.com/team/c:1 (not_found)" in first.output
    assert "--resume" in first.output

    fake_engine.pull_calls.clear()
    fake_clock.advance(301)
    second = cli("--resume")

    assert second.exit_code == 0, second.output
    assert "Total images: 2" in second.output
    assert sorted(fake_engine.pull_calls) == [
        "registry.example.com/team/c:1",
        "registry.example.com/team/d:1",
    ]


def test_resume_within_breaker_cooldown_skips_fetch(cli, fake_engine, fake_clock) -> None:
    denied = FetchFailure(reason=FetchErrorReason.UNAUTHORIZED, message="unauthorized")
    fake_engine.script("registry.example.com/team/c:1", denied)
    cli()
    fake_engine.pull_calls.clear()
    fake_clock.advance(10)

    second = cli("--resume")

    assert second.exit_code == 1
    assert "Total images: 1" in second.output
    assert "(circuit_open)" in second.output
    assert fake_engine.pull_calls == []


def test_resume_after_complete_run_has_nothing_to_do(cli) -> None:
    assert cli().exit_code == 0

    result = cli("--resume")

    assert result.exit_code == 0
    assert "Nothing to resume" in result.output


def test_validate_skips_unavailable_images(cli, fake_engine) -> None:
    fake_engine.unavailable = {"redis:7"}

    result = cli("--validate")

    assert result.exit_code == 0, result.output
    assert "Skipping unavailable image: redis:7" in result.output
    assert "redis:7" not in fake_engine.pull_calls


def test_missing_engine_exits_with_prerequisite_code(cli, fake_engine) -> None:
    fake_engine.available = False

    result = cli()

    assert result.exit_code == 2
    assert "Prerequisite check failed" in result.output


def test_insufficient_disk_space_aborts_before_pulling(cli, fake_engine, disk_probe) -> None:
    disk_probe.available_gb = 1.0

    result = cli()

    assert result.exit_code == 1
    assert "Insufficient disk space" in result.output
    assert fake_engine.pull_calls == []


def test_invalid_manifest_exits_with_general_error(cli, tmp_path) -> None:
    (tmp_path / "docker-pull-config.yaml").write_text("settings:\n  parallel: -1\n", "utf-8")

    result = cli("--dry-run")

    assert result.exit_code == 1
    assert "Configuration error" in result.output


def test_volume_status_and_cleanup_actions(cli, fake_engine) -> None:
    status = cli("--volume-status")
    cleanup = cli("--cleanup-volumes")

    assert status.exit_code == 0
    assert "Docker volume status:" in status.output
    assert cleanup.exit_code == 0
    assert "prune_volumes:created-by=pull-essentials" in fake_engine.maintenance
    assert fake_engine.pull_calls == []


def test_volume_actions_are_mutually_exclusive(cli) -> None:
    result = cli("--volume-status", "--advanced-cleanup")

    assert result.exit_code == 2
    assert "mutually exclusive" in result.output


def test_version_option() -> None:
    result = CliRunner().invoke(main.pull_essentials, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.output


def test_resume_after_crash_skips_items_logged_as_pulled(cli, fake_engine, tmp_path) -> None:
    state_dir = tmp_path / "state"
    state_dir.mkdir()
    (state_dir / RESULTS_LOG).write_text(
        "SUCCESS:alpine:3.19\nSUCCESS:debian:12\nSUCCESS:redis:7\nSUCCESS:ai/smollm2:latest\n",
        "utf-8",
    )

    result = cli("--resume")

    assert result.exit_code == 0, result.output
    assert "Resuming: 4 already completed, 2 to process" in result.output
    assert sorted(fake_engine.pull_calls) == [
        "registry.example.com/team/c:1",
        "registry.example.com/team/d:1",
    ]


def test_interrupted_run_still_writes_state_snapshot(cli, monkeypatch, tmp_path) -> None:
    def _interrupt(self, **_kwargs):
        raise KeyboardInterrupt

    monkeypatch.setattr(WorkerPool, "run", _interrupt)

    with pytest.raises(KeyboardInterrupt):
        main.PULL_CONTROLLER.run_pull(
            PullRunCommand(
                config_path=tmp_path / "docker-pull-config.yaml",
                state_dir=tmp_path / "state",
            ),
        )

    queue = load_json(tmp_path / "state" / QUEUE_FILE)
    assert len(queue["items"]) == 6
    assert load_json(tmp_path / "state" / COMPLETED_FILE) == {"items": []}
