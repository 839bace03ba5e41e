"""Command runner - invokes adb, cleans its output and classifies failures."""

from __future__ import annotations

import asyncio
import contextlib
import re
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

import structlog

from adb_lifecycle.config import DEFAULT_COMMAND_TIMEOUT_MS
from adb_lifecycle.errors import (
    AgentError,
    adb_command_error,
    adb_not_found_error,
    adb_timeout_error,
)

logger = structlog.get_logger()

LINKER_WARNING_PATTERN = re.compile(r"^WARNING: linker.+$", re.MULTILINE)

CONNECTION_LOST_PATTERNS = (
    re.compile(r"protocol fault \(no status\)", re.IGNORECASE),
    re.compile(r"error: device not found", re.IGNORECASE),
)


class FailureClass(Enum):
    """How a failed command should be handled by retry loops."""

    CONNECTION_LOST = "connection_lost"  # restart + rediscover, then retry
    FATAL = "fatal"


@dataclass(frozen=True)
class Executable:
    """An executable plus the arguments prepended to every invocation."""

    path: str
    default_args: tuple[str, ...] = ()

    def command_line(self, args: Sequence[str]) -> list[str]:
        return [self.path, *self.default_args, *args]


def strip_linker_warnings(stdout: str) -> str:
    """Drop linker warning noise adb sometimes prints, then trim."""
    return LINKER_WARNING_PATTERN.sub("", stdout).strip()


def classify_failure(error: BaseException | str) -> FailureClass:
    """Classify a failure by its message text. Never raises."""
    if isinstance(error, AgentError):
        text = " ".join([error.message, str(error.context.get("reason", ""))])
    else:
        text = str(error)
    if any(pattern.search(text) for pattern in CONNECTION_LOST_PATTERNS):
        return FailureClass.CONNECTION_LOST
    return FailureClass.FATAL


class CommandRunner:
    """Runs an executable with discrete arguments and a mandatory timeout."""

    def __init__(self, default_timeout_ms: int = DEFAULT_COMMAND_TIMEOUT_MS) -> None:
        self.default_timeout_ms = default_timeout_ms

    async def run(
        self,
        executable: Executable,
        args: Sequence[str],
        timeout_ms: float | None = None,
    ) -> str:
        """Run a command and return its cleaned stdout.

        Raises:
            AgentError: ERR_ADB_NOT_FOUND, ERR_ADB_TIMEOUT or ERR_ADB_COMMAND
        """
        timeout_ms = timeout_ms or self.default_timeout_ms
        argv = executable.command_line(args)
        command = " ".join(args)
        logger.debug("command_run", argv=argv, timeout_ms=timeout_ms)

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as exc:
            raise adb_not_found_error(executable.path) from exc
        except OSError as exc:
            raise adb_command_error(command, str(exc)) from exc

        try:
            raw_stdout, raw_stderr = await asyncio.wait_for(
                process.communicate(), timeout=timeout_ms / 1000
            )
        except TimeoutError:
            with contextlib.suppress(ProcessLookupError):
                process.kill()
            await process.wait()
            logger.warning("command_timeout", command=command, timeout_ms=timeout_ms)
            raise adb_timeout_error(command, timeout_ms) from None

        stdout = raw_stdout.decode(errors="replace")
        stderr = raw_stderr.decode(errors="replace")
        if process.returncode != 0:
            reason = (stderr or stdout or f"exit code {process.returncode}").strip()
            raise adb_command_error(command, reason)

        return strip_linker_warnings(stdout)
