"""Device properties - getprop/setprop and a liveness ping over adb shell."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from adb_lifecycle.errors import ping_error

if TYPE_CHECKING:
    from adb_lifecycle.bridge.retry import RetryOrchestrator

logger = structlog.get_logger()

PING_TOKEN = "ping"


class DeviceProperties:
    """Reads and writes system properties on the session's device."""

    def __init__(self, orchestrator: RetryOrchestrator) -> None:
        self._orchestrator = orchestrator

    async def get_device_property(self, name: str) -> str:
        value = await self._orchestrator.shell(["getprop", name])
        logger.debug("device_property_read", name=name, value=value)
        return value.strip()

    async def set_device_property(self, name: str, value: str | int) -> None:
        logger.debug("device_property_set", name=name, value=str(value))
        await self._orchestrator.shell(["setprop", name, str(value)])

    async def ping(self) -> bool:
        """Check the device answers a shell round trip.

        Raises:
            AgentError: If the device echoes something unexpected
        """
        output = await self._orchestrator.shell(["echo", PING_TOKEN])
        if PING_TOKEN not in output:
            raise ping_error(output)
        return True
