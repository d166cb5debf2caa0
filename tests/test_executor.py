"""Tests for the timed executor (wrapper and direct strategies)."""

import os
import shutil
import time

import psutil
import pytest

from system_info_exporter.hardware import executor as executor_mod
from system_info_exporter.hardware.executor import TIMEOUT_EXIT_CODE, TimedExecutor
from system_info_exporter.utils.errors import (
    ToolExecutionError,
    ToolNotFoundError,
    ToolTimeoutError,
)

SH = shutil.which("sh")
TIMEOUT = shutil.which("timeout")

needs_sh = pytest.mark.skipif(SH is None, reason="sh not available")
needs_timeout = pytest.mark.skipif(TIMEOUT is None, reason="coreutils timeout not available")


@pytest.fixture
def direct_only(monkeypatch: pytest.MonkeyPatch) -> None:
    """Pretend the timeout wrapper is not installed."""
    monkeypatch.setattr(
        "system_info_exporter.hardware.executor.find_timeout_command", lambda: None
    )


def _live_children() -> list:
    live = []
    for child in psutil.Process().children(recursive=True):
        try:
            if child.status() != psutil.STATUS_ZOMBIE:
                live.append(child)
        except psutil.NoSuchProcess:
            continue
    return live


def test_missing_tool_path_raises_not_found():
    with pytest.raises(ToolNotFoundError):
        TimedExecutor().run(None, ["--version"])


@needs_sh
@needs_timeout
def test_wrapped_success_returns_stdout():
    assert TimedExecutor(timeout_seconds=5).run(SH, ["-c", "echo hello"]) == "hello\n"


@needs_sh
@needs_timeout
def test_wrapped_timeout_is_bounded_and_reaps_child():
    executor = TimedExecutor(timeout_seconds=0.5)
    start = time.monotonic()
    with pytest.raises(ToolTimeoutError) as excinfo:
        executor.run(SH, ["-c", "exec sleep 30"])
    elapsed = time.monotonic() - start

    assert excinfo.value.exit_code == TIMEOUT_EXIT_CODE
    assert elapsed < 0.5 + 3.0
    assert _live_children() == []


@needs_sh
def test_direct_timeout_is_bounded_and_reaps_child(direct_only):
    executor = TimedExecutor(timeout_seconds=0.5)
    start = time.monotonic()
    with pytest.raises(ToolTimeoutError) as excinfo:
        executor.run(SH, ["-c", "exec sleep 30"])
    elapsed = time.monotonic() - start

    assert excinfo.value.exit_code == TIMEOUT_EXIT_CODE
    assert elapsed < 0.5 + 1.0
    assert _live_children() == []


@needs_sh
def test_direct_timeout_kills_forked_helpers(direct_only):
    """A grandchild holding the output pipes does not stretch the budget."""
    executor = TimedExecutor(timeout_seconds=0.5)
    start = time.monotonic()
    with pytest.raises(ToolTimeoutError):
        executor.run(SH, ["-c", "sleep 30; true"])
    elapsed = time.monotonic() - start

    assert elapsed < 0.5 + 1.0
    assert _live_children() == []


@needs_sh
@needs_timeout
def test_wrapped_timeout_kills_forked_helpers():
    executor = TimedExecutor(timeout_seconds=0.5)
    start = time.monotonic()
    with pytest.raises(ToolTimeoutError):
        executor.run(SH, ["-c", "sleep 30; true"])
    elapsed = time.monotonic() - start

    assert elapsed < 0.5 + 3.0
    assert _live_children() == []


@needs_sh
@needs_timeout
def test_wrapped_term_ignoring_tool_is_a_timeout():
    """A tool that ignores TERM is killed by the wrapper and reported as a timeout."""
    executor = TimedExecutor(timeout_seconds=0.5)
    start = time.monotonic()
    with pytest.raises(ToolTimeoutError) as excinfo:
        executor.run(SH, ["-c", "trap '' TERM; sleep 30; true"])
    elapsed = time.monotonic() - start

    assert excinfo.value.exit_code == TIMEOUT_EXIT_CODE
    assert elapsed < 0.5 + 1.0 + 3.0
    assert _live_children() == []


@pytest.mark.parametrize("returncode", [-9, 137])
def test_wrapper_killed_exit_is_timeout(monkeypatch: pytest.MonkeyPatch, returncode):
    class _Killed:
        stdout = ""
        stderr = ""

    _Killed.returncode = returncode
    monkeypatch.setattr(
        "system_info_exporter.hardware.executor.find_timeout_command",
        lambda: "/usr/bin/timeout",
    )
    monkeypatch.setattr(
        "system_info_exporter.hardware.executor.subprocess.run",
        lambda *args, **kwargs: _Killed(),
    )
    with pytest.raises(ToolTimeoutError):
        TimedExecutor().run("/usr/bin/nvidia-smi", ["-L"])


@needs_sh
def test_direct_success_returns_stdout(direct_only):
    assert TimedExecutor().run(SH, ["-c", "printf 'a, b\\n'"]) == "a, b\n"


@needs_sh
@pytest.mark.parametrize("wrapped", [True, False])
def test_non_zero_exit_carries_output(monkeypatch: pytest.MonkeyPatch, wrapped):
    if wrapped and TIMEOUT is None:
        pytest.skip("coreutils timeout not available")
    if not wrapped:
        monkeypatch.setattr(
            "system_info_exporter.hardware.executor.find_timeout_command", lambda: None
        )

    with pytest.raises(ToolExecutionError) as excinfo:
        TimedExecutor().run(SH, ["-c", "echo partial; echo boom >&2; exit 3"])

    err = excinfo.value
    assert err.exit_code == 3
    assert "boom" in err.stderr
    assert "partial" in err.stdout
    assert "exit code: 3" in str(err)
    assert "boom" in str(err)


@needs_sh
def test_empty_output_is_described(direct_only):
    with pytest.raises(ToolExecutionError) as excinfo:
        TimedExecutor().run(SH, ["-c", "exit 9"])
    assert "stdout: (empty)" in str(excinfo.value)
    assert "stderr: (empty)" in str(excinfo.value)


def test_direct_spawn_failure_is_execution_error(direct_only, tmp_path):
    with pytest.raises(ToolExecutionError):
        TimedExecutor().run(str(tmp_path / "does-not-exist"), ["-L"])


@needs_sh
def test_unusable_wrapper_falls_back_to_direct(monkeypatch: pytest.MonkeyPatch, tmp_path):
    """A wrapper that cannot be spawned is skipped and the tool runs directly."""
    monkeypatch.setattr(
        "system_info_exporter.hardware.executor.find_timeout_command",
        lambda: str(tmp_path / "no-timeout"),
    )
    assert TimedExecutor().run(SH, ["-c", "echo direct"]) == "direct\n"


class _Completed:
    returncode = 0
    stdout = "ok\n"
    stderr = ""


def test_host_mounted_tool_gets_library_path(monkeypatch: pytest.MonkeyPatch):
    """LD_LIBRARY_PATH reaches the tool only, not the wrapper or this process."""
    captured = {}

    def _fake_run(command, **kwargs):
        captured["command"] = command
        captured["env"] = kwargs.get("env")
        return _Completed()

    monkeypatch.delenv("LD_LIBRARY_PATH", raising=False)
    monkeypatch.setattr(
        "system_info_exporter.hardware.executor.find_timeout_command",
        lambda: "/usr/bin/timeout",
    )
    monkeypatch.setattr("system_info_exporter.hardware.executor.subprocess.run", _fake_run)

    executor = TimedExecutor(timeout_seconds=5, host_library_path="/host/nvidia-libs")
    assert executor.run("/host/usr/bin/nvidia-smi", ["-L"]) == "ok\n"

    assert captured["command"] == [
        "/usr/bin/timeout",
        "-k",
        "1s",
        "5s",
        "env",
        "LD_LIBRARY_PATH=/host/nvidia-libs",
        "/host/usr/bin/nvidia-smi",
        "-L",
    ]
    assert captured["env"] is None
    assert "LD_LIBRARY_PATH" not in os.environ


def test_direct_host_mounted_tool_gets_library_path(
    monkeypatch: pytest.MonkeyPatch, direct_only
):
    captured = {}

    class _FakePopen:
        returncode = 0
        pid = 4242

        def __init__(self, command, **kwargs):
            captured["command"] = command
            captured["kwargs"] = kwargs

        def communicate(self, timeout=None):
            return "ok\n", ""

    monkeypatch.delenv("LD_LIBRARY_PATH", raising=False)
    monkeypatch.setattr("system_info_exporter.hardware.executor.subprocess.Popen", _FakePopen)

    executor = TimedExecutor(host_library_path="/host/nvidia-libs")
    assert executor.run("/host/usr/bin/nvidia-smi", ["-L"]) == "ok\n"
    assert captured["command"] == ["/host/usr/bin/nvidia-smi", "-L"]
    assert captured["kwargs"]["env"]["LD_LIBRARY_PATH"] == "/host/nvidia-libs"
    assert captured["kwargs"]["start_new_session"] is True
    assert "LD_LIBRARY_PATH" not in os.environ


def test_container_tool_inherits_environment(monkeypatch: pytest.MonkeyPatch):
    captured = {}

    def _fake_run(command, **kwargs):
        captured["env"] = kwargs.get("env")
        return _Completed()

    monkeypatch.setattr(
        "system_info_exporter.hardware.executor.find_timeout_command",
        lambda: "/usr/bin/timeout",
    )
    monkeypatch.setattr("system_info_exporter.hardware.executor.subprocess.run", _fake_run)

    TimedExecutor().run("/usr/bin/nvidia-smi", ["-L"])
    assert captured["env"] is None


def test_wrapper_exit_124_is_timeout(monkeypatch: pytest.MonkeyPatch):
    class _TimedOut:
        returncode = TIMEOUT_EXIT_CODE
        stdout = ""
        stderr = ""

    monkeypatch.setattr(
        "system_info_exporter.hardware.executor.find_timeout_command",
        lambda: "/usr/bin/timeout",
    )
    monkeypatch.setattr(
        "system_info_exporter.hardware.executor.subprocess.run",
        lambda *args, **kwargs: _TimedOut(),
    )
    with pytest.raises(ToolTimeoutError):
        TimedExecutor().run("/usr/bin/nvidia-smi", ["-L"])


def test_as_text_normalizes_bytes():
    assert executor_mod._as_text(b"abc") == "abc"
    assert executor_mod._as_text(None) == ""
