"""Device filesystem probes."""

from __future__ import annotations

from typing import TYPE_CHECKING

from adb_lifecycle.errors import AgentError

if TYPE_CHECKING:
    from adb_lifecycle.bridge.retry import RetryOrchestrator

MISSING_FILE_MARKER = "No such file"


class DeviceFiles:
    """ls and existence checks on device paths."""

    def __init__(self, orchestrator: RetryOrchestrator) -> None:
        self._orchestrator = orchestrator

    async def ls(self, remote_path: str) -> list[str]:
        try:
            stdout = await self._orchestrator.shell(["ls", remote_path])
        except AgentError as exc:
            # Newer adb propagates the non-zero exit of 'ls' on a missing path.
            if MISSING_FILE_MARKER in exc.message:
                return []
            raise
        lines = (line.strip() for line in stdout.split("\n"))
        return [line for line in lines if line and MISSING_FILE_MARKER not in line]

    async def file_exists(self, remote_path: str) -> bool:
        return len(await self.ls(remote_path)) > 0
