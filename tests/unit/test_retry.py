"""Tests for RetryBudget and RetryOrchestrator."""

from __future__ import annotations

import pytest


class TestRetryBudget:
    """Tests for RetryBudget."""

    def test_requires_exactly_one_bound(self) -> None:
        """Should reject both or neither bound."""
        from adb_lifecycle.bridge.retry import RetryBudget

        with pytest.raises(ValueError):
            RetryBudget()
        with pytest.raises(ValueError):
            RetryBudget(max_attempts=2, timeout_ms=1000)

    def test_attempt_budget(self) -> None:
        """Should be exhausted once the attempt count is reached."""
        from adb_lifecycle.bridge.retry import RetryBudget

        budget = RetryBudget.attempts(2)

        assert not budget.is_time_bounded
        assert not budget.exhausted(1, 10_000_000)
        assert budget.exhausted(2, 0)

    def test_deadline_budget(self) -> None:
        """Should ignore attempts and compare elapsed time."""
        from adb_lifecycle.bridge.retry import RetryBudget

        budget = RetryBudget.deadline(20000)

        assert budget.is_time_bounded
        assert not budget.exhausted(500, 20000)
        assert budget.exhausted(1, 20001)

    def test_attempts_must_be_positive(self) -> None:
        """Should reject a zero attempt budget."""
        from adb_lifecycle.bridge.retry import RetryBudget

        with pytest.raises(ValueError):
            RetryBudget.attempts(0)


class TestGetDevicesWithRetry:
    """Tests for discovery with rediscovery."""

    @pytest.mark.asyncio
    async def test_returns_first_non_empty_list(
        self, orchestrator, mock_directory, mock_server, fake_clock, patched_sleep
    ) -> None:
        """Should restart adb and cool down after an empty listing."""
        from adb_lifecycle.bridge.directory import Endpoint, EndpointState

        emulator = Endpoint(id="emulator-5554", state=EndpointState.DEVICE, emulator_port=5554)
        mock_directory.list_devices.side_effect = [[], [emulator]]

        devices = await orchestrator.get_devices_with_retry()

        assert devices == [emulator]
        mock_server.restart.assert_awaited_once()
        assert fake_clock.sleeps == [0.2]

    @pytest.mark.asyncio
    async def test_no_restart_when_devices_present(
        self, orchestrator, mock_server, fake_clock, patched_sleep
    ) -> None:
        """Should return immediately without touching the server."""
        devices = await orchestrator.get_devices_with_retry()

        assert [d.id for d in devices] == ["emulator-5554"]
        mock_server.restart.assert_not_awaited()
        assert fake_clock.sleeps == []

    @pytest.mark.asyncio
    async def test_deadline_raises_no_device(
        self, orchestrator, mock_directory, mock_server, fake_clock, patched_sleep
    ) -> None:
        """Should keep restarting until the deadline, then raise ERR_NO_DEVICE."""
        from adb_lifecycle.bridge.retry import DISCOVERY_COOL_DOWN_S
        from adb_lifecycle.errors import AgentError

        mock_directory.list_devices.return_value = []
        start = fake_clock.now

        with pytest.raises(AgentError) as exc_info:
            await orchestrator.get_devices_with_retry(timeout_ms=1000)

        assert exc_info.value.code == "ERR_NO_DEVICE"
        assert exc_info.value.context["timeout_ms"] == 1000
        assert mock_server.restart.await_count >= 5
        # at most one cool-down past the deadline
        assert fake_clock.now - start <= 1.0 + DISCOVERY_COOL_DOWN_S + 1e-6

    @pytest.mark.asyncio
    async def test_discovery_errors_are_retried(
        self, orchestrator, mock_directory, patched_sleep
    ) -> None:
        """Should treat a discovery failure like an empty list and keep its message."""
        from adb_lifecycle.errors import AgentError, discovery_error

        mock_directory.list_devices.side_effect = discovery_error("garbage")

        with pytest.raises(AgentError) as exc_info:
            await orchestrator.get_devices_with_retry(timeout_ms=500)

        assert exc_info.value.code == "ERR_NO_DEVICE"
        assert "garbage" in exc_info.value.context["last_error"]


class TestExecWithRetry:
    """Tests for exec_with_retry."""

    @pytest.mark.asyncio
    async def test_success_first_attempt(self, orchestrator, mock_runner, session) -> None:
        """Should run once with the session-scoped executable."""
        from adb_lifecycle.device.session import SessionTarget

        session.target = SessionTarget(
            device_id="emulator-5554", scope_args=("-s", "emulator-5554")
        )
        mock_runner.run.return_value = "1"

        result = await orchestrator.exec_with_retry(["shell", "getprop", "sys.boot_completed"])

        assert result == "1"
        executable, args = mock_runner.run.await_args.args
        assert executable.default_args == ("-s", "emulator-5554")
        assert args == ["shell", "getprop", "sys.boot_completed"]

    @pytest.mark.asyncio
    async def test_string_command_is_single_arg(self, orchestrator, mock_runner) -> None:
        """Should wrap a string command as one argument."""
        await orchestrator.exec_with_retry("wait-for-device", timeout_ms=10000)

        mock_runner.run.assert_awaited_once()
        assert mock_runner.run.await_args.args[1] == ["wait-for-device"]
        assert mock_runner.run.await_args.kwargs == {"timeout_ms": 10000}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("cmd", ["", []])
    async def test_empty_command_rejected(self, orchestrator, mock_runner, cmd) -> None:
        """Should raise ValueError before running anything."""
        with pytest.raises(ValueError):
            await orchestrator.exec_with_retry(cmd)

        mock_runner.run.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_connection_lost_rediscovers_once(
        self, orchestrator, mock_runner, mock_directory, fake_clock, patched_sleep
    ) -> None:
        """Should cool down and rediscover exactly once before the second attempt."""
        from adb_lifecycle.errors import adb_command_error

        mock_runner.run.side_effect = [
            adb_command_error("shell ls", "error: device not found"),
            "sdcard",
        ]

        result = await orchestrator.exec_with_retry(["shell", "ls"])

        assert result == "sdcard"
        assert mock_runner.run.await_count == 2
        mock_directory.list_devices.assert_awaited_once()
        assert fake_clock.sleeps == [1.0]

    @pytest.mark.asyncio
    async def test_fatal_failure_skips_rediscovery(
        self, orchestrator, mock_runner, mock_directory, fake_clock, patched_sleep
    ) -> None:
        """Should retry without rediscovery for other failures."""
        from adb_lifecycle.errors import adb_command_error

        mock_runner.run.side_effect = [
            adb_command_error("shell ls", "error: more than one device/emulator"),
            "sdcard",
        ]

        result = await orchestrator.exec_with_retry(["shell", "ls"])

        assert result == "sdcard"
        mock_directory.list_devices.assert_not_awaited()
        assert fake_clock.sleeps == []

    @pytest.mark.asyncio
    async def test_exhaustion_wraps_last_error(
        self, orchestrator, mock_runner, patched_sleep
    ) -> None:
        """Should stop after two attempts and keep the last error's code."""
        from adb_lifecycle.errors import AgentError, adb_command_error

        first = adb_command_error("shell ls", "Permission denied")
        second = adb_command_error("shell ls", "Permission denied again")
        mock_runner.run.side_effect = [first, second]

        with pytest.raises(AgentError) as exc_info:
            await orchestrator.exec_with_retry(["shell", "ls"])

        error = exc_info.value
        assert mock_runner.run.await_count == 2
        assert error.code == "ERR_ADB_COMMAND"
        assert error.message.startswith("Error executing adb command 'shell ls' after 2 attempts")
        assert "Permission denied again" in error.message
        assert error.context["attempts"] == 2
        assert error.__cause__ is second

    @pytest.mark.asyncio
    async def test_connection_lost_every_attempt(
        self, orchestrator, mock_runner, mock_directory, fake_clock, patched_sleep
    ) -> None:
        """Should rediscover after each lost connection, including the last."""
        from adb_lifecycle.errors import AgentError, adb_command_error

        mock_runner.run.side_effect = adb_command_error("shell ls", "error: device not found")

        with pytest.raises(AgentError) as exc_info:
            await orchestrator.exec_with_retry(["shell", "ls"])

        assert mock_runner.run.await_count == 2
        assert mock_directory.list_devices.await_count == 2
        assert fake_clock.sleeps == [1.0, 1.0]
        assert "device not found" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_failed_rediscovery_becomes_last_error(
        self, orchestrator, mock_runner, mock_directory, patched_sleep
    ) -> None:
        """Should surface ERR_NO_DEVICE when rediscovery gives up."""
        from adb_lifecycle.errors import AgentError, adb_command_error

        mock_runner.run.side_effect = adb_command_error("shell ls", "protocol fault (no status)")
        mock_directory.list_devices.return_value = []

        with pytest.raises(AgentError) as exc_info:
            await orchestrator.exec_with_retry(["shell", "ls"])

        assert exc_info.value.code == "ERR_NO_DEVICE"


class TestShell:
    """Tests for RetryOrchestrator.shell."""

    @pytest.mark.asyncio
    async def test_prefixes_shell(self, orchestrator, mock_runner) -> None:
        """Should run 'shell <args>' through exec_with_retry."""
        mock_runner.run.return_value = "stopped"

        assert await orchestrator.shell(["getprop", "init.svc.bootanim"]) == "stopped"
        assert mock_runner.run.await_args.args[1] == ["shell", "getprop", "init.svc.bootanim"]

    @pytest.mark.asyncio
    async def test_offline_raises_without_running(
        self, orchestrator, mock_runner, mock_directory
    ) -> None:
        """Should fail fast with ERR_DEVICE_OFFLINE."""
        from adb_lifecycle.errors import AgentError

        mock_directory.is_device_connected.return_value = False

        with pytest.raises(AgentError) as exc_info:
            await orchestrator.shell(["echo", "ping"])

        assert exc_info.value.code == "ERR_DEVICE_OFFLINE"
        assert exc_info.value.context["command"] == "echo ping"
        mock_runner.run.assert_not_awaited()
