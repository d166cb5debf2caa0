"""Run external tools under a hard wall-clock timeout.

Two strategies are used:

1. Wrap the tool with coreutils ``timeout`` so the wrapper process
   enforces the budget (exit code 124 means the budget was exceeded).
2. If the wrapper is missing or cannot be spawned, start the tool directly
   in its own session and wait on it with a bounded blocking wait, killing
   the whole process group and reaping the child when the budget runs out.

Either way ``TimedExecutor.run`` never returns while a child it started is
still running, and every failure surfaces as a ``ToolError`` subclass.
"""

import logging
import os
import signal
import subprocess
from typing import List, Optional, Sequence

from system_info_exporter.hardware.env import find_timeout_command, is_host_mounted
from system_info_exporter.utils.errors import (
    ToolExecutionError,
    ToolNotFoundError,
    ToolTimeoutError,
)

LOGGER = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 5
TIMEOUT_EXIT_CODE = 124
# A child that ignores TERM gets KILL after WRAPPER_KILL_AFTER; the wrapper is
# killed with its group and reports -9 (or 137 through a shell)
WRAPPER_TIMEOUT_EXIT_CODES = (TIMEOUT_EXIT_CODE, -signal.SIGKILL, 128 + signal.SIGKILL)
# Seconds between the wrapper's TERM and its follow-up KILL
WRAPPER_KILL_AFTER = "1s"
# Extra time given to the wrapper before the Python-side backstop kicks in
WRAPPER_GRACE_SECONDS = 2.0
DEFAULT_HOST_LIBRARY_PATH = "/host/nvidia-libs:/usr/lib/x86_64-linux-gnu:/usr/lib"


def _describe(text: Optional[str]) -> str:
    text = (text or "").strip()
    return text if text else "(empty)"


class TimedExecutor:
    """Execute a command-line tool with timeout protection.

    Attributes:
        timeout_seconds: Wall-clock budget for one invocation
        host_library_path: LD_LIBRARY_PATH injected for host-mounted binaries
    """

    def __init__(
        self,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        host_library_path: str = DEFAULT_HOST_LIBRARY_PATH,
    ):
        self.timeout_seconds = timeout_seconds
        self.host_library_path = host_library_path

    def run(self, tool_path: Optional[str], args: Sequence[str]) -> str:
        """Run ``tool_path`` with ``args`` and return its standard output.

        Args:
            tool_path: Absolute path of the tool (None if it was not located)
            args: Command-line arguments

        Returns:
            Captured stdout text

        Raises:
            ToolNotFoundError: tool_path is None
            ToolTimeoutError: the budget was exceeded
            ToolExecutionError: non-zero exit or the process could not be spawned
        """
        if not tool_path:
            raise ToolNotFoundError("tool path was not located")

        wrapper = find_timeout_command()
        if wrapper is None:
            LOGGER.info("timeout command not available, using direct execution")
            return self._run_direct(tool_path, args)

        try:
            return self._run_wrapped(wrapper, tool_path, args)
        except OSError as exc:
            LOGGER.warning(
                "Failed to run timeout wrapper: %s, trying direct execution", exc
            )
            return self._run_direct(tool_path, args)

    def _library_path_override(self, tool_path: str) -> Optional[str]:
        """LD_LIBRARY_PATH for host-mounted binaries; None means inherit unchanged."""
        return self.host_library_path if is_host_mounted(tool_path) else None

    def _run_wrapped(self, wrapper: str, tool_path: str, args: Sequence[str]) -> str:
        budget = self.timeout_seconds
        command: List[str] = [wrapper, "-k", WRAPPER_KILL_AFTER, f"{budget:g}s"]
        library_path = self._library_path_override(tool_path)
        if library_path is not None:
            # Scoped to the tool, not the wrapper
            command += ["env", f"LD_LIBRARY_PATH={library_path}"]
        command += [tool_path, *args]
        try:
            # subprocess.run kills and reaps the wrapper if it overruns too
            result = subprocess.run(
                command,
                capture_output=True,
                text=True,
                errors="replace",
                timeout=budget + WRAPPER_GRACE_SECONDS,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            raise self._timeout_error(tool_path, exc.stdout, exc.stderr) from exc

        if result.returncode == 0:
            return result.stdout
        if result.returncode in WRAPPER_TIMEOUT_EXIT_CODES:
            raise self._timeout_error(tool_path, result.stdout, result.stderr)
        raise self._exit_error(tool_path, result.returncode, result.stdout, result.stderr)

    def _run_direct(self, tool_path: str, args: Sequence[str]) -> str:
        env = None
        library_path = self._library_path_override(tool_path)
        if library_path is not None:
            env = os.environ.copy()
            env["LD_LIBRARY_PATH"] = library_path

        try:
            # Own session so the whole process group can be killed on timeout
            process = subprocess.Popen(
                [tool_path, *args],
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                errors="replace",
                env=env,
                start_new_session=True,
            )
        except OSError as exc:
            raise ToolExecutionError(
                f"failed to spawn {tool_path}: {exc}"
            ) from exc

        try:
            stdout, stderr = process.communicate(timeout=self.timeout_seconds)
        except subprocess.TimeoutExpired:
            LOGGER.warning(
                "%s timed out after %ss, killing process group %s",
                tool_path,
                self.timeout_seconds,
                process.pid,
            )
            _kill_group(process)
            # Must still communicate() to reap the killed child
            stdout, stderr = process.communicate()
            raise self._timeout_error(tool_path, stdout, stderr)

        if process.returncode == 0:
            return stdout
        raise self._exit_error(tool_path, process.returncode, stdout, stderr)

    def _timeout_error(
        self, tool_path: str, stdout: Optional[str], stderr: Optional[str]
    ) -> ToolTimeoutError:
        stdout = _as_text(stdout)
        stderr = _as_text(stderr)
        message = f"{tool_path} timed out after {self.timeout_seconds}s"
        if stderr.strip():
            message += f", stderr: {stderr.strip()}"
        return ToolTimeoutError(
            message, exit_code=TIMEOUT_EXIT_CODE, stdout=stdout, stderr=stderr
        )

    @staticmethod
    def _exit_error(
        tool_path: str, exit_code: int, stdout: str, stderr: str
    ) -> ToolExecutionError:
        return ToolExecutionError(
            f"{tool_path} failed with exit code: {exit_code}, "
            f"stdout: {_describe(stdout)}, stderr: {_describe(stderr)}",
            exit_code=exit_code,
            stdout=stdout or "",
            stderr=stderr or "",
        )


def _as_text(value: object) -> str:
    """TimeoutExpired may carry bytes even in text mode; normalize to str."""
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def _kill_group(process: subprocess.Popen) -> None:
    """SIGKILL the child's process group so forked helpers cannot hold the pipes open."""
    try:
        os.killpg(process.pid, signal.SIGKILL)
    except ProcessLookupError:
        pass
    except OSError:
        process.kill()
