"""Session target - binds a session to one device and scopes its commands."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import TYPE_CHECKING

import structlog

from adb_lifecycle.bridge.directory import port_from_id
from adb_lifecycle.bridge.runner import Executable
from adb_lifecycle.errors import AgentError, no_emulator_error

if TYPE_CHECKING:
    from adb_lifecycle.bridge.directory import DeviceDirectory, Endpoint

logger = structlog.get_logger()


@dataclass(frozen=True)
class SessionTarget:
    """Currently selected device. Replaced as a whole, never edited."""

    device_id: str | None = None
    emulator_port: int | None = None
    scope_args: tuple[str, ...] = ()


@dataclass
class BridgeSession:
    """Per-caller state: the adb executable and the selected target.

    Commands against one session must be serialised by the caller.
    """

    base_executable: Executable
    session_id: str = field(default_factory=lambda: f"s-{uuid.uuid4().hex[:8]}")
    created_at: datetime = field(default_factory=datetime.now)
    target: SessionTarget = field(default_factory=SessionTarget)

    @property
    def executable(self) -> Executable:
        """Executable whose default args are scoped to the current target."""
        target = self.target
        return Executable(
            path=self.base_executable.path,
            default_args=(*self.base_executable.default_args, *target.scope_args),
        )

    @property
    def device_id(self) -> str | None:
        return self.target.device_id

    @property
    def emulator_port(self) -> int | None:
        return self.target.emulator_port


class DeviceSelector:
    """Selects the device a session talks to."""

    def __init__(self, session: BridgeSession, directory: DeviceDirectory) -> None:
        self._session = session
        self._directory = directory

    @property
    def session(self) -> BridgeSession:
        return self._session

    def select_device(self, endpoint: Endpoint) -> None:
        """Target an endpoint: id, emulator port and '-s <id>' in one swap."""
        self._session.target = SessionTarget(
            device_id=endpoint.id,
            emulator_port=port_from_id(endpoint.id),
            scope_args=("-s", endpoint.id),
        )
        logger.debug(
            "device_selected",
            session_id=self._session.session_id,
            device_id=endpoint.id,
            emulator_port=self._session.emulator_port,
        )

    def set_device_id(self, device_id: str) -> None:
        """Target a device id, keeping the current emulator port."""
        logger.debug("device_id_set", session_id=self._session.session_id, device_id=device_id)
        self._session.target = replace(
            self._session.target,
            device_id=device_id,
            scope_args=("-s", device_id),
        )

    def set_emulator_port(self, port: int | None) -> None:
        self._session.target = replace(self._session.target, emulator_port=port)

    async def get_emulator_port(self) -> int:
        """Return the selected emulator port, discovering one if none is set.

        Raises:
            AgentError: ERR_NO_EMULATOR if no connected emulator exists
        """
        logger.debug("emulator_port_lookup", session_id=self._session.session_id)
        if self._session.emulator_port is not None:
            return self._session.emulator_port

        try:
            emulators = await self._directory.list_emulators()
        except AgentError as exc:
            raise no_emulator_error(
                f"No devices connected. Original error: {exc.message}"
            ) from exc
        if not emulators or emulators[0].emulator_port is None:
            raise no_emulator_error("Emulator port not found")
        return emulators[0].emulator_port
