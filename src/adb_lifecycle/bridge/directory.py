"""Device directory - parses 'adb devices' into endpoints."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

import structlog

from adb_lifecycle.errors import AgentError, discovery_error

if TYPE_CHECKING:
    from adb_lifecycle.bridge.runner import CommandRunner, Executable

logger = structlog.get_logger()

DEVICE_LIST_HEADER = "List of devices"
DAEMON_NOTICE = "* daemon"
EMULATOR_ID_PATTERN = re.compile(r"emulator-(\d+)")


class EndpointState(Enum):
    """Connection state reported by adb."""

    DEVICE = "device"
    OFFLINE = "offline"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, raw: str) -> EndpointState:
        try:
            return cls(raw.strip())
        except ValueError:
            return cls.UNKNOWN


@dataclass(frozen=True)
class Endpoint:
    """One attached device or running emulator."""

    id: str
    state: EndpointState
    emulator_port: int | None = None
    raw_state: str = ""

    @property
    def is_emulator(self) -> bool:
        return self.emulator_port is not None

    def to_dict(self) -> dict[str, str | int | None]:
        return {
            "id": self.id,
            "state": self.state.value,
            "raw_state": self.raw_state,
            "emulator_port": self.emulator_port,
        }


def port_from_id(device_id: str) -> int | None:
    """Extract the emulator console port from an id like 'emulator-5554'.

    Returns None for physical devices and anything else that doesn't match.
    """
    match = EMULATOR_ID_PATTERN.search(device_id)
    if match is None:
        return None
    return int(match.group(1), 10)


def parse_device_list(stdout: str, include_offline: bool = False) -> list[Endpoint]:
    """Parse 'adb devices' output.

    Expected shape:
        List of devices attached
        emulator-5554	device

    Raises:
        AgentError: ERR_DISCOVERY if the header is missing
    """
    start = stdout.find(DEVICE_LIST_HEADER)
    if start == -1:
        raise discovery_error(stdout)

    endpoints: list[Endpoint] = []
    for line in stdout[start:].split("\n"):
        if not line.strip():
            continue
        if DEVICE_LIST_HEADER in line or DAEMON_NOTICE in line:
            continue
        if not include_offline and "offline" in line:
            continue
        device_id, _, raw_state = line.strip().partition("\t")
        endpoints.append(
            Endpoint(
                id=device_id,
                state=EndpointState.parse(raw_state),
                emulator_port=port_from_id(device_id),
                raw_state=raw_state.strip(),
            )
        )
    return endpoints


class DeviceDirectory:
    """Queries adb for attached endpoints."""

    def __init__(self, runner: CommandRunner, executable: Executable) -> None:
        self._runner = runner
        self._executable = executable

    async def list_devices(self, include_offline: bool = False) -> list[Endpoint]:
        """List connected endpoints, offline ones only when asked for.

        Raises:
            AgentError: ERR_DISCOVERY on unparsable output or adb failure
        """
        logger.debug("devices_listing")
        try:
            stdout = await self._runner.run(self._executable, ["devices"])
        except AgentError as exc:
            raise AgentError(
                code="ERR_DISCOVERY",
                message=f"Error while getting connected devices. Original error: {exc.message}",
                context={"cause": exc.code, **exc.context},
                remediation=exc.remediation,
            ) from exc

        endpoints = parse_device_list(stdout, include_offline=include_offline)
        logger.debug("devices_listed", count=len(endpoints))
        return endpoints

    async def list_emulators(self) -> list[Endpoint]:
        """List connected endpoints that carry an emulator port."""
        emulators = [endpoint for endpoint in await self.list_devices() if endpoint.is_emulator]
        logger.debug("emulators_listed", count=len(emulators))
        return emulators

    async def is_device_connected(self) -> bool:
        return len(await self.list_devices()) > 0
