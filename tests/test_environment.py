from __future__ import annotations

from pathlib import Path

import allure

from pull_essentials.environment import NATIVE_LINUX, WSL2, detect_environment

pytestmark = [
    allure.epic("Configuration"),
    allure.feature("Environment Detection"),
]


def test_explicit_environment_wins(tmp_path: Path) -> None:
    proc = tmp_path / "version"
    proc.write_text("Linux version 5.15.0-microsoft-standard-WSL2", "utf-8")

    assert detect_environment("ci", proc_version_path=proc) == "ci"


def test_wsl_kernel_is_detected(tmp_path: Path) -> None:
    proc = tmp_path / "version"
    proc.write_text("Linux version 5.15.153.1-microsoft-standard-WSL2", "utf-8")

    assert detect_environment(proc_version_path=proc) == WSL2


def test_native_kernel_and_unreadable_proc_fall_back_to_native(tmp_path: Path) -> None:
    proc = tmp_path / "version"
    proc.write_text("Linux version 6.8.0-45-generic (buildd@lcy02)", "utf-8")

    assert detect_environment(proc_version_path=proc) == NATIVE_LINUX
    assert detect_environment(proc_version_path=tmp_path / "missing") == NATIVE_LINUX
