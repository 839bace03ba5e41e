"""Emulator lifecycle - launch, registration, boot readiness, reboot, kill."""

from __future__ import annotations

import asyncio
import sys
import time
from collections.abc import Callable, Sequence
from enum import Enum
from typing import TYPE_CHECKING

import structlog

from adb_lifecycle.bridge.retry import RetryBudget
from adb_lifecycle.bridge.runner import Executable
from adb_lifecycle.emulator.process import EmulatorProcess
from adb_lifecycle.errors import (
    AgentError,
    avd_not_found_error,
    boot_timeout_error,
    device_not_ready_error,
    kill_emulators_error,
    no_emulator_error,
)

if TYPE_CHECKING:
    from adb_lifecycle.bridge.directory import Endpoint
    from adb_lifecycle.bridge.retry import RetryOrchestrator
    from adb_lifecycle.bridge.runner import CommandRunner
    from adb_lifecycle.device.properties import DeviceProperties
    from adb_lifecycle.device.session import DeviceSelector
    from adb_lifecycle.emulator.console import EmulatorConsole
    from adb_lifecycle.sdk import SdkLocator

logger = structlog.get_logger()

AVD_LAUNCH_TIMEOUT_MS = 60000
AVD_READY_TIMEOUT_MS = 60000
AVD_SEARCH_TIMEOUT_MS = 20000
AVD_SEARCH_COOL_DOWN_S = 0.2
BOOT_POLL_INTERVAL_S = 3.0
BOOT_ANIMATION_PROPERTY = "init.svc.bootanim"
BOOT_COMPLETED_PROPERTY = "sys.boot_completed"
REBOOT_SETTLE_S = 2.0
REBOOT_POLL_ATTEMPTS = 90
REBOOT_POLL_INTERVAL_S = 1.0
WAIT_FOR_DEVICE_ATTEMPTS = 3

ProcessFactory = Callable[[str, Sequence[str]], EmulatorProcess]


class LaunchState(Enum):
    """Where a launch attempt currently is."""

    IDLE = "idle"
    LAUNCHING = "launching"
    WAITING_FOR_REGISTRATION = "waiting_for_registration"
    WAITING_FOR_BOOT = "waiting_for_boot"
    READY = "ready"
    FAILED = "failed"


class BootPoll(Enum):
    """Outcome of one boot-animation read."""

    READY = "ready"
    NOT_READY = "not_ready"
    ERROR = "error"  # read failed; ignored, polling continues


def build_launch_args(
    avd_name: str,
    avd_args: str | Sequence[str] | None = None,
    language: str | None = None,
    locale: str | None = None,
) -> list[str]:
    """Build emulator command-line arguments for an AVD."""
    if avd_name.startswith("@"):
        avd_name = avd_name[1:]
    args = ["-avd", avd_name]
    if language is not None:
        args.extend(["-prop", f"persist.sys.language={language.lower()}"])
    if locale is not None:
        args.extend(["-prop", f"persist.sys.country={locale.upper()}"])
    if isinstance(avd_args, str):
        args.extend(avd_args.split())
    elif avd_args:
        args.extend(avd_args)
    return args


def kill_emulators_command(platform: str | None = None) -> tuple[str, list[str]]:
    """Return the OS command that terminates every emulator process."""
    platform = platform or sys.platform
    if platform.startswith("win"):
        return "TASKKILL", ["/IM", "emulator.exe"]
    if platform == "darwin":
        return "/usr/bin/killall", ["-m", "emulator*"]
    # psmisc killall; the emulator launcher execs qemu-system-* on Linux
    return "killall", ["-r", "^(emulator|qemu-system)"]


class EmulatorLifecycle:
    """Launches AVDs and waits for devices to become usable."""

    def __init__(
        self,
        orchestrator: RetryOrchestrator,
        selector: DeviceSelector,
        runner: CommandRunner,
        properties: DeviceProperties,
        console: EmulatorConsole,
        sdk: SdkLocator,
        process_factory: ProcessFactory = EmulatorProcess,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._orchestrator = orchestrator
        self._selector = selector
        self._runner = runner
        self._properties = properties
        self._console = console
        self._sdk = sdk
        self._process_factory = process_factory
        self._clock = clock
        self.state = LaunchState.IDLE
        self.boot_polls: list[BootPoll] = []

    def _set_state(self, state: LaunchState) -> None:
        logger.debug("launch_state", previous=self.state.value, state=state.value)
        self.state = state

    def _elapsed_ms(self, start: float) -> float:
        return (self._clock() - start) * 1000

    async def launch(
        self,
        avd_name: str,
        avd_args: str | Sequence[str] | None = None,
        language: str | None = None,
        locale: str | None = None,
        launch_timeout_ms: float = AVD_LAUNCH_TIMEOUT_MS,
        ready_timeout_ms: float = AVD_READY_TIMEOUT_MS,
        retry_times: int = 1,
    ) -> EmulatorProcess:
        """Launch an AVD and wait until it has registered and booted.

        Args:
            avd_name: AVD name, with or without a leading '@'
            avd_args: Extra emulator arguments (a string is whitespace-split)
            language: Sets persist.sys.language (lower-cased)
            locale: Sets persist.sys.country (upper-cased)
            launch_timeout_ms: Time allowed per registration search
            ready_timeout_ms: Time allowed for the boot animation to stop
            retry_times: Number of registration searches

        Returns:
            The running emulator process, owned by the caller

        Raises:
            AgentError: ERR_AVD_NOT_FOUND or ERR_BOOT_TIMEOUT
        """
        self._set_state(LaunchState.LAUNCHING)
        logger.info(
            "avd_launching",
            avd_name=avd_name,
            launch_timeout_ms=launch_timeout_ms,
            ready_timeout_ms=ready_timeout_ms,
        )
        process: EmulatorProcess | None = None
        try:
            binary = await self._sdk.get_binary_path("emulator")
            avd_name = avd_name[1:] if avd_name.startswith("@") else avd_name
            if language is not None:
                logger.debug("avd_language", language=language)
            if locale is not None:
                logger.debug("avd_country", locale=locale)
            process = self._process_factory(
                binary, build_launch_args(avd_name, avd_args, language, locale)
            )
            process.on_output(_forward_avd_output)
            await process.start()

            self._set_state(LaunchState.WAITING_FOR_REGISTRATION)
            await self._wait_for_registration(avd_name, launch_timeout_ms, retry_times)

            self._set_state(LaunchState.WAITING_FOR_BOOT)
            await self.wait_for_emulator_ready(ready_timeout_ms)
        except BaseException as exc:
            self._set_state(LaunchState.FAILED)
            if isinstance(exc, AgentError):
                logger.error(
                    "avd_launch_failed", avd_name=avd_name, code=exc.code, error=exc.message
                )
            else:
                logger.error("avd_launch_aborted", avd_name=avd_name, error=repr(exc))
            if process is not None:
                await process.stop()
            raise

        self._set_state(LaunchState.READY)
        logger.info("avd_ready", avd_name=avd_name, device_id=self._selector.session.device_id)
        return process

    async def _wait_for_registration(
        self, avd_name: str, timeout_ms: float, retry_times: int
    ) -> Endpoint:
        budget = RetryBudget.attempts(retry_times)
        attempts = 0
        last_error: AgentError | None = None
        while not budget.exhausted(attempts, 0):
            attempts += 1
            try:
                return await self.get_running_avd_with_retry(avd_name, timeout_ms)
            except AgentError as exc:
                last_error = exc
                logger.info("avd_registration_retry", avd_name=avd_name, attempt=attempts)
        raise avd_not_found_error(
            avd_name,
            timeout_ms,
            attempts=attempts,
            last_error=last_error.message if last_error else None,
        )

    async def get_running_avd(self, avd_name: str) -> Endpoint | None:
        """Find the connected emulator running an AVD and select it.

        Raises:
            AgentError: ERR_NO_EMULATOR if no emulator is connected
        """
        logger.debug("avd_search", avd_name=avd_name)
        emulators = await self._orchestrator.directory.list_emulators()
        if not emulators:
            raise no_emulator_error()

        for emulator in emulators:
            assert emulator.emulator_port is not None
            self._selector.set_emulator_port(emulator.emulator_port)
            running_name = await self._console.send_command(emulator.emulator_port, "avd name")
            if running_name == avd_name:
                logger.debug("avd_found", avd_name=avd_name, port=emulator.emulator_port)
                self._selector.select_device(emulator)
                return emulator

        logger.debug("avd_not_running", avd_name=avd_name)
        return None

    async def get_running_avd_with_retry(
        self, avd_name: str, timeout_ms: float = AVD_SEARCH_TIMEOUT_MS
    ) -> Endpoint:
        """Poll for a running AVD until it appears or the deadline passes."""
        budget = RetryBudget.deadline(timeout_ms)
        start = self._clock()
        attempts = 0
        last_error: str | None = None
        name = avd_name.replace("@", "")

        while not budget.exhausted(attempts, self._elapsed_ms(start)):
            attempts += 1
            try:
                emulator = await self.get_running_avd(name)
                if emulator is not None:
                    return emulator
            except AgentError as exc:
                last_error = exc.message
                logger.info("avd_search_retry", avd_name=name, error=exc.message)
            await asyncio.sleep(AVD_SEARCH_COOL_DOWN_S)

        raise avd_not_found_error(name, timeout_ms, attempts=attempts, last_error=last_error)

    async def poll_boot_animation(self) -> BootPoll:
        """Read the boot animation state once. Read errors are not raised."""
        try:
            stdout = await self._orchestrator.shell(["getprop", BOOT_ANIMATION_PROPERTY])
        except AgentError as exc:
            logger.debug("boot_poll_error_ignored", error=exc.message)
            return BootPoll.ERROR
        return BootPoll.READY if "stopped" in stdout else BootPoll.NOT_READY

    async def wait_for_emulator_ready(self, timeout_ms: float = AVD_SEARCH_TIMEOUT_MS) -> None:
        """Poll until the boot animation has stopped.

        Raises:
            AgentError: ERR_BOOT_TIMEOUT once the deadline has passed
        """
        budget = RetryBudget.deadline(timeout_ms)
        start = self._clock()
        attempts = 0
        self.boot_polls = []
        logger.debug("emulator_ready_wait", timeout_ms=timeout_ms)

        while not budget.exhausted(attempts, self._elapsed_ms(start)):
            attempts += 1
            poll = await self.poll_boot_animation()
            self.boot_polls.append(poll)
            if poll is BootPoll.READY:
                return
            await asyncio.sleep(BOOT_POLL_INTERVAL_S)

        raise boot_timeout_error("Emulator not ready", timeout_ms)

    async def wait_for_device(self, ready_timeout_s: float = 30) -> None:
        """Wait for adb to see the device and for it to answer a ping.

        The total timeout is split evenly across attempts. Between attempts
        the adb server is restarted and devices are rediscovered.

        Raises:
            AgentError: ERR_DEVICE_NOT_READY after the last attempt
        """
        budget = RetryBudget.attempts(WAIT_FOR_DEVICE_ATTEMPTS)
        per_attempt_ms = ready_timeout_s / WAIT_FOR_DEVICE_ATTEMPTS * 1000
        attempts = 0
        last_error: AgentError | None = None

        while not budget.exhausted(attempts, 0):
            attempts += 1
            try:
                await self._orchestrator.exec_with_retry(
                    "wait-for-device", timeout_ms=per_attempt_ms
                )
                await self._properties.ping()
                return
            except AgentError as exc:
                last_error = exc
                logger.warning(
                    "wait_for_device_failed",
                    attempt=attempts,
                    error=exc.message,
                    hint="retrying by restarting adb",
                )
            await self._orchestrator.server.restart()
            try:
                await self._orchestrator.directory.list_devices()
            except AgentError as exc:
                logger.debug("wait_for_device_rediscovery_failed", error=exc.message)

        assert last_error is not None
        raise device_not_ready_error(ready_timeout_s, attempts, last_error.message)

    async def reboot(self) -> None:
        """Restart the Android runtime and wait for sys.boot_completed=1.

        Raises:
            AgentError: ERR_BOOT_TIMEOUT after 90 polls
        """
        await self._orchestrator.shell(["stop"])
        await asyncio.sleep(REBOOT_SETTLE_S)
        await self._properties.set_device_property(BOOT_COMPLETED_PROPERTY, 0)
        await self._orchestrator.shell(["start"])

        last_value: str | None = None
        for attempt in range(1, REBOOT_POLL_ATTEMPTS + 1):
            try:
                last_value = await self._properties.get_device_property(BOOT_COMPLETED_PROPERTY)
            except AgentError as exc:
                last_value = None
                logger.debug("reboot_poll_error", attempt=attempt, error=exc.message)
            if last_value == "1":
                logger.info("reboot_completed", attempts=attempt)
                return
            logger.info("reboot_waiting", attempt=attempt, value=last_value)
            if attempt < REBOOT_POLL_ATTEMPTS:
                await asyncio.sleep(REBOOT_POLL_INTERVAL_S)

        raise boot_timeout_error(
            "Reboot",
            REBOOT_POLL_ATTEMPTS * REBOOT_POLL_INTERVAL_S * 1000,
            last_value=last_value,
        )

    async def kill_all(self) -> None:
        """Terminate every emulator process on the host. No retry.

        Raises:
            AgentError: ERR_KILL_EMULATORS if the kill command fails
        """
        path, args = kill_emulators_command()
        try:
            await self._runner.run(Executable(path=path), args)
        except AgentError as exc:
            raise kill_emulators_error(exc.message) from exc
        logger.info("emulators_killed")


def _forward_avd_output(stream: str, line: str) -> None:
    logger.info("avd_output", stream=stream, message=line)
