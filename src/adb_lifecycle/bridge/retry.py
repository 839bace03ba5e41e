"""Retry orchestration - rediscovery and command retry around adb."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

from adb_lifecycle.bridge.runner import FailureClass, classify_failure
from adb_lifecycle.errors import AgentError, device_offline_error, no_device_error

if TYPE_CHECKING:
    from adb_lifecycle.bridge.directory import DeviceDirectory, Endpoint
    from adb_lifecycle.bridge.runner import CommandRunner
    from adb_lifecycle.bridge.server import BridgeServerControl
    from adb_lifecycle.device.session import BridgeSession

logger = structlog.get_logger()

DISCOVERY_TIMEOUT_MS = 20000
DISCOVERY_COOL_DOWN_S = 0.2
RECONNECT_COOL_DOWN_S = 1.0
COMMAND_ATTEMPTS = 2


@dataclass(frozen=True)
class RetryBudget:
    """Either a fixed number of attempts or a wall-clock deadline, never both."""

    max_attempts: int | None = None
    timeout_ms: float | None = None

    def __post_init__(self) -> None:
        if (self.max_attempts is None) == (self.timeout_ms is None):
            raise ValueError("RetryBudget needs exactly one of max_attempts or timeout_ms")

    @classmethod
    def attempts(cls, count: int) -> RetryBudget:
        if count < 1:
            raise ValueError(f"Attempt count must be positive: {count}")
        return cls(max_attempts=count)

    @classmethod
    def deadline(cls, timeout_ms: float) -> RetryBudget:
        return cls(timeout_ms=timeout_ms)

    @property
    def is_time_bounded(self) -> bool:
        return self.timeout_ms is not None

    def exhausted(self, attempts_made: int, elapsed_ms: float) -> bool:
        """Check before starting the next attempt."""
        if self.timeout_ms is not None:
            return elapsed_ms > self.timeout_ms
        assert self.max_attempts is not None
        return attempts_made >= self.max_attempts


class RetryOrchestrator:
    """Wraps discovery and command execution in bounded retry loops."""

    def __init__(
        self,
        session: BridgeSession,
        runner: CommandRunner,
        directory: DeviceDirectory,
        server: BridgeServerControl,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._session = session
        self._runner = runner
        self._directory = directory
        self._server = server
        self._clock = clock

    @property
    def session(self) -> BridgeSession:
        return self._session

    @property
    def directory(self) -> DeviceDirectory:
        return self._directory

    @property
    def server(self) -> BridgeServerControl:
        return self._server

    def _elapsed_ms(self, start: float) -> float:
        return (self._clock() - start) * 1000

    async def get_devices_with_retry(
        self, timeout_ms: float = DISCOVERY_TIMEOUT_MS
    ) -> list[Endpoint]:
        """Discover devices, restarting the adb server until some show up.

        Unbounded in attempts; the deadline is checked before every attempt.

        Raises:
            AgentError: ERR_NO_DEVICE once the deadline has passed
        """
        budget = RetryBudget.deadline(timeout_ms)
        start = self._clock()
        attempts = 0
        last_error: str | None = None
        logger.debug("device_discovery_started", timeout_ms=timeout_ms)

        while not budget.exhausted(attempts, self._elapsed_ms(start)):
            attempts += 1
            try:
                devices = await self._directory.list_devices()
            except AgentError as exc:
                last_error = exc.message
                devices = []
            if devices:
                logger.debug("device_discovery_done", attempts=attempts, count=len(devices))
                return devices

            logger.debug("no_devices_restarting_adb", attempt=attempts, error=last_error)
            await self._server.restart()
            await asyncio.sleep(DISCOVERY_COOL_DOWN_S)

        logger.warning("device_discovery_timeout", timeout_ms=timeout_ms, attempts=attempts)
        raise no_device_error(timeout_ms, last_error)

    async def exec_with_retry(
        self,
        cmd: str | Sequence[str],
        timeout_ms: float | None = None,
    ) -> str:
        """Run an adb command scoped to the session target, up to two attempts.

        A lost connection is followed by a cool-down and one rediscovery pass
        before the next attempt. Other failures just consume an attempt.

        Raises:
            ValueError: If no command is given
            AgentError: The last failure, once attempts are exhausted
        """
        if not cmd:
            raise ValueError("You need to pass in a command to exec_with_retry()")
        args = [cmd] if isinstance(cmd, str) else list(cmd)
        command = " ".join(args)

        budget = RetryBudget.attempts(COMMAND_ATTEMPTS)
        attempts = 0
        last_error: AgentError | None = None

        while not budget.exhausted(attempts, 0):
            attempts += 1
            try:
                return await self._runner.run(self._session.executable, args, timeout_ms=timeout_ms)
            except AgentError as exc:
                last_error = exc

            if classify_failure(last_error) is FailureClass.CONNECTION_LOST:
                logger.info("command_reconnecting", command=command, attempt=attempts)
                await asyncio.sleep(RECONNECT_COOL_DOWN_S)
                try:
                    await self.get_devices_with_retry()
                except AgentError as exc:
                    last_error = exc
            else:
                logger.debug(
                    "command_failed", command=command, attempt=attempts, code=last_error.code
                )

        assert last_error is not None
        logger.error(
            "command_exhausted", command=command, attempts=attempts, error=last_error.message
        )
        raise AgentError(
            code=last_error.code,
            message=(
                f"Error executing adb command '{command}' after {attempts} attempts. "
                f"Original error: {last_error.message}"
            ),
            context={
                **last_error.context,
                "command": command,
                "attempts": attempts,
                "last_error": last_error.message,
            },
            remediation=last_error.remediation,
        ) from last_error

    async def shell(self, cmd: str | Sequence[str], timeout_ms: float | None = None) -> str:
        """Run 'adb shell <cmd>' against the session target.

        Raises:
            AgentError: ERR_DEVICE_OFFLINE if nothing is connected
        """
        args = [cmd] if isinstance(cmd, str) else list(cmd)
        if not await self._directory.is_device_connected():
            raise device_offline_error(" ".join(args))
        return await self.exec_with_retry(["shell", *args], timeout_ms=timeout_ms)
