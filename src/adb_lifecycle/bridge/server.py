"""Bridge server control - best-effort adb server restarts."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

import structlog

from adb_lifecycle.config import DEFAULT_ADB_SERVER_PORT
from adb_lifecycle.errors import AgentError

if TYPE_CHECKING:
    from adb_lifecycle.bridge.runner import CommandRunner, Executable

logger = structlog.get_logger()


class RestartOutcome(Enum):
    """Result of a best-effort server action."""

    RESTARTED = "restarted"
    SKIPPED = "skipped"  # an external process owns the server lifecycle
    FAILED = "failed"


class BridgeServerControl:
    """Kills and starts the adb server.

    The adb server is shared by every session on the host, so a restart
    here can interrupt commands issued by other sessions.
    """

    def __init__(
        self,
        runner: CommandRunner,
        executable: Executable,
        suppress_kill_server: bool = False,
        server_port: int = DEFAULT_ADB_SERVER_PORT,
    ) -> None:
        self._runner = runner
        self._executable = executable
        self.suppress_kill_server = suppress_kill_server
        self._server_port = server_port

    @property
    def server_port(self) -> int:
        return self._server_port

    async def restart(self) -> RestartOutcome:
        """Kill the adb server; the next adb call brings it back up.

        Never raises. Whether the server is usable is checked by the caller's
        next discovery attempt.
        """
        if self.suppress_kill_server:
            logger.debug("adb_restart_skipped", reason="suppress_kill_server")
            return RestartOutcome.SKIPPED
        try:
            await self._runner.run(self._executable, ["kill-server"])
        except AgentError as exc:
            logger.error(
                "adb_kill_server_failed",
                error=exc.message,
                hint="going to see if it's online anyway",
            )
            return RestartOutcome.FAILED
        logger.info("adb_server_killed", port=self._server_port)
        return RestartOutcome.RESTARTED

    async def start(self) -> RestartOutcome:
        """Start the adb server if it is not running. Never raises."""
        try:
            await self._runner.run(self._executable, ["start-server"])
        except AgentError as exc:
            logger.error("adb_start_server_failed", error=exc.message)
            return RestartOutcome.FAILED
        logger.info("adb_server_started", port=self._server_port)
        return RestartOutcome.RESTARTED
