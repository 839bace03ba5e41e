"""Bridge core - wires the components of one session together."""

from __future__ import annotations

import structlog

from adb_lifecycle.bridge.directory import DeviceDirectory
from adb_lifecycle.bridge.retry import RetryOrchestrator
from adb_lifecycle.bridge.runner import CommandRunner, Executable
from adb_lifecycle.bridge.server import BridgeServerControl
from adb_lifecycle.config import DEFAULT_ADB_SERVER_PORT, BridgeConfig
from adb_lifecycle.device.files import DeviceFiles
from adb_lifecycle.device.properties import DeviceProperties
from adb_lifecycle.device.session import BridgeSession, DeviceSelector
from adb_lifecycle.emulator.console import EmulatorConsole
from adb_lifecycle.emulator.lifecycle import EmulatorLifecycle, ProcessFactory
from adb_lifecycle.emulator.process import EmulatorProcess
from adb_lifecycle.errors import device_not_found_error
from adb_lifecycle.sdk import SdkLocator

logger = structlog.get_logger()


class BridgeCore:
    """One session against the adb server and everything built on it.

    Create one per logical caller; sessions share nothing but the adb server.
    """

    def __init__(
        self,
        config: BridgeConfig,
        adb_path: str,
        sdk: SdkLocator | None = None,
        process_factory: ProcessFactory = EmulatorProcess,
    ) -> None:
        self.config = config
        self.sdk = sdk or SdkLocator(config.sdk_root)

        default_args: tuple[str, ...] = ()
        if config.server_port != DEFAULT_ADB_SERVER_PORT:
            default_args = ("-P", str(config.server_port))
        base = Executable(path=adb_path, default_args=default_args)

        self.runner = CommandRunner(default_timeout_ms=config.command_timeout_ms)
        self.session = BridgeSession(base_executable=base)
        self.directory = DeviceDirectory(self.runner, base)
        self.server = BridgeServerControl(
            self.runner,
            base,
            suppress_kill_server=config.suppress_kill_server,
            server_port=config.server_port,
        )
        self.selector = DeviceSelector(self.session, self.directory)
        self.orchestrator = RetryOrchestrator(
            self.session, self.runner, self.directory, self.server
        )
        self.properties = DeviceProperties(self.orchestrator)
        self.files = DeviceFiles(self.orchestrator)
        self.console = EmulatorConsole()
        self.emulators = EmulatorLifecycle(
            self.orchestrator,
            self.selector,
            self.runner,
            self.properties,
            self.console,
            self.sdk,
            process_factory=process_factory,
        )

    @classmethod
    async def create(
        cls,
        config: BridgeConfig | None = None,
        process_factory: ProcessFactory = EmulatorProcess,
    ) -> BridgeCore:
        """Build a core, resolving adb from config, ANDROID_HOME or PATH."""
        config = config or BridgeConfig.from_env()
        sdk = SdkLocator(config.sdk_root)
        adb_path = config.adb_path or await sdk.get_binary_path("adb")
        core = cls(config, adb_path, sdk=sdk, process_factory=process_factory)
        logger.info(
            "bridge_core_created",
            session_id=core.session.session_id,
            adb=adb_path,
            port=config.server_port,
        )
        return core

    async def select_by_id(self, device_id: str) -> None:
        """Select a connected device by id, discovering with retry first."""
        devices = await self.orchestrator.get_devices_with_retry()
        for endpoint in devices:
            if endpoint.id == device_id:
                self.selector.select_device(endpoint)
                return
        raise device_not_found_error(device_id, [endpoint.id for endpoint in devices])
