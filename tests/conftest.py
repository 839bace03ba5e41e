"""Pytest configuration and fixtures."""

from __future__ import annotations

from collections.abc import Generator
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import pytest


class FakeClock:
    """Monotonic clock that only moves when sleep() is awaited."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def fake_clock() -> FakeClock:
    """Clock advanced by patched asyncio.sleep calls."""
    return FakeClock()


@pytest.fixture
def patched_sleep(fake_clock: FakeClock) -> Generator[AsyncMock, None, None]:
    """Replace asyncio.sleep so retry loops run instantly on the fake clock."""
    with patch("asyncio.sleep", new=AsyncMock(side_effect=fake_clock.sleep)) as mock:
        yield mock


@pytest.fixture
def adb_executable() -> Any:
    from adb_lifecycle.bridge.runner import Executable

    return Executable(path="/sdk/platform-tools/adb")


@pytest.fixture
def session(adb_executable: Any) -> Any:
    from adb_lifecycle.device.session import BridgeSession

    return BridgeSession(base_executable=adb_executable, session_id="s-test123")


@pytest.fixture
def mock_runner() -> MagicMock:
    """CommandRunner whose run() is an AsyncMock."""
    runner = MagicMock()
    runner.run = AsyncMock(return_value="")
    return runner


@pytest.fixture
def mock_directory() -> MagicMock:
    """DeviceDirectory reporting one connected emulator."""
    from adb_lifecycle.bridge.directory import Endpoint, EndpointState

    directory = MagicMock()
    emulator = Endpoint(id="emulator-5554", state=EndpointState.DEVICE, emulator_port=5554)
    directory.list_devices = AsyncMock(return_value=[emulator])
    directory.list_emulators = AsyncMock(return_value=[emulator])
    directory.is_device_connected = AsyncMock(return_value=True)
    return directory


@pytest.fixture
def mock_server() -> MagicMock:
    from adb_lifecycle.bridge.server import RestartOutcome

    server = MagicMock()
    server.restart = AsyncMock(return_value=RestartOutcome.RESTARTED)
    server.start = AsyncMock(return_value=RestartOutcome.RESTARTED)
    return server


@pytest.fixture
def orchestrator(
    session: Any,
    mock_runner: MagicMock,
    mock_directory: MagicMock,
    mock_server: MagicMock,
    fake_clock: FakeClock,
) -> Any:
    from adb_lifecycle.bridge.retry import RetryOrchestrator

    return RetryOrchestrator(session, mock_runner, mock_directory, mock_server, clock=fake_clock)


@pytest.fixture
def sample_device_list() -> str:
    """'adb devices' output with a daemon notice and an offline device."""
    return (
        "* daemon not running; starting now at tcp:5037\n"
        "* daemon started successfully\n"
        "List of devices attached\n"
        "emulator-5554\tdevice\n"
        "0123456789ABCDEF\tdevice\n"
        "emulator-5556\toffline\n"
        "\n"
        "emulator-5558\tdevice\n"
    )
