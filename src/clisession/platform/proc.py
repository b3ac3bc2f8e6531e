"""
Cross-platform external command execution.

Every probe in clisession shells out through CommandRunner. The runner
silences the command's error stream with the platform's null device, applies
a timeout, and turns every failure into ``None`` so callers can fall back to
their defaults.
"""

import logging
import os
import re
import signal
import subprocess
from typing import Callable, Iterable, List, Mapping, NamedTuple, Optional, TypeVar

from . import IS_WINDOWS

logger = logging.getLogger(__name__)

T = TypeVar("T")

WINDOWS_NULL_REDIRECT = "2>NUL"
POSIX_NULL_REDIRECT = "2>/dev/null"

# Matches "2>file", "2>&1", "2>>log" and the like
_STDERR_REDIRECT_RE = re.compile(r"(^|\s)2>")


class ProcessResult:
    """Exit status and standard output of a finished command."""

    def __init__(self, returncode: int, stdout: str, command: str):
        self.returncode = returncode
        self.stdout = stdout
        self.command = command

    @property
    def failed(self) -> bool:
        """Check if process failed."""
        return self.returncode != 0

    def __repr__(self) -> str:
        return f"ProcessResult(returncode={self.returncode}, stdout={len(self.stdout)} chars)"


class CapturedOutput(NamedTuple):
    """Line-buffered output of a command."""

    last_line: str
    lines: List[str]
    returncode: int


def null_redirect(windows: bool = IS_WINDOWS) -> str:
    """Return the shell redirect that discards stderr on this platform."""
    return WINDOWS_NULL_REDIRECT if windows else POSIX_NULL_REDIRECT


def with_null_redirect(command: str, windows: bool = IS_WINDOWS) -> str:
    """
    Append a stderr-to-null redirect unless the command already redirects stderr.
    """
    if _STDERR_REDIRECT_RE.search(command):
        return command
    return f"{command} {null_redirect(windows)}"


def kill_process_tree(process: subprocess.Popen) -> None:
    """
    Kill a shell and every process it started.

    run_shell() puts each command in its own session (POSIX) or process
    group (Windows), so the whole group can be killed at once.
    """
    if IS_WINDOWS:
        try:
            subprocess.run(
                ["taskkill", "/F", "/T", "/PID", str(process.pid)],
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError as e:
            logger.debug("taskkill failed for pid %d: %s", process.pid, e)
        process.kill()
        return

    try:
        os.killpg(process.pid, signal.SIGKILL)
    except ProcessLookupError:
        pass
    except PermissionError as e:
        logger.debug("Cannot kill process group %d: %s", process.pid, e)
        process.kill()


def run_shell(
    command: str,
    *,
    env: Optional[Mapping[str, str]] = None,
    timeout: Optional[float] = None,
    encoding: str = "utf-8",
) -> ProcessResult:
    """
    Run a shell command and capture its standard output.

    Standard error is discarded. On timeout the shell and everything it
    started are killed before the exception propagates.

    Args:
        command: Command line handed to the platform shell
        env: Environment variables (merged with current env)
        timeout: Timeout in seconds, ``None`` waits forever
        encoding: Output encoding

    Returns:
        ProcessResult with returncode and stdout

    Raises:
        subprocess.TimeoutExpired: If timeout exceeded
        OSError: If the shell itself cannot be started
    """
    run_env = dict(os.environ)
    if env:
        run_env.update(env)

    kwargs: dict = {
        "shell": True,
        "env": run_env,
        "stdout": subprocess.PIPE,
        "stderr": subprocess.DEVNULL,
    }
    if IS_WINDOWS:
        kwargs["creationflags"] = subprocess.CREATE_NEW_PROCESS_GROUP
    else:
        kwargs["start_new_session"] = True

    with subprocess.Popen(command, **kwargs) as process:
        try:
            output, _ = process.communicate(timeout=timeout)
        except subprocess.TimeoutExpired:
            kill_process_tree(process)
            # Drain the pipe so the process can be reaped
            process.communicate()
            raise

    stdout = output.decode(encoding, errors="replace") if output else ""
    return ProcessResult(
        returncode=process.returncode,
        stdout=stdout,
        command=command,
    )


class CommandRunner:
    """
    Runs probe commands and absorbs every failure.

    Args:
        timeout: Per-command timeout in seconds, ``None`` disables it
        windows: Whether to use Windows redirect syntax
    """

    def __init__(self, timeout: Optional[float] = 10.0, windows: bool = IS_WINDOWS):
        self.timeout = timeout
        self.windows = windows

    def _execute(self, command: str) -> Optional[ProcessResult]:
        command = with_null_redirect(command, self.windows)
        try:
            result = run_shell(command, timeout=self.timeout)
        except subprocess.TimeoutExpired:
            logger.debug("Command timed out after %ss: %s", self.timeout, command)
            return None
        except OSError as e:
            logger.debug("Command could not be started: %s (%s)", command, e)
            return None

        if result.failed:
            logger.debug("Command exited with %d: %s", result.returncode, command)
        return result

    def run_captured(self, command: str) -> Optional[CapturedOutput]:
        """
        Run a command and return its output split into lines.

        Trailing whitespace is stripped from every line. Returns ``None`` if
        the command could not run or timed out; a non-zero exit status is
        reported through ``returncode``.
        """
        result = self._execute(command)
        if result is None:
            return None

        lines = [line.rstrip() for line in result.stdout.splitlines()]
        last_line = lines[-1] if lines else ""
        return CapturedOutput(last_line, lines, result.returncode)

    def run_raw(self, command: str) -> Optional[str]:
        """
        Run a command and return its full standard output.

        Returns ``None`` if the command could not run, timed out, or printed
        nothing.
        """
        result = self._execute(command)
        if result is None or not result.stdout:
            return None
        return result.stdout


Probe = Callable[[], Optional[T]]


def first_result(strategies: Iterable[Probe]) -> Optional[T]:
    """
    Try probe strategies in order and return the first usable value.

    ``None`` and empty strings count as "not found".
    """
    for strategy in strategies:
        value = strategy()
        if value is not None and value != "":
            return value
    return None


def parse_int(text: Optional[str]) -> int:
    """Parse command output as a positive integer, 0 when it is not one."""
    if not text:
        return 0
    try:
        value = int(text.strip())
    except ValueError:
        return 0
    return value if value > 0 else 0
