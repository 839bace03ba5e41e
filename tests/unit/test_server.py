"""Tests for BridgeServerControl."""

from __future__ import annotations

import pytest


class TestBridgeServerControl:
    """Tests for adb server restarts."""

    @pytest.mark.asyncio
    async def test_restart_kills_server(self, mock_runner, adb_executable) -> None:
        """Should run kill-server and report RESTARTED."""
        from adb_lifecycle.bridge.server import BridgeServerControl, RestartOutcome

        server = BridgeServerControl(mock_runner, adb_executable)

        assert await server.restart() is RestartOutcome.RESTARTED
        mock_runner.run.assert_awaited_once_with(adb_executable, ["kill-server"])

    @pytest.mark.asyncio
    async def test_restart_suppressed(self, mock_runner, adb_executable) -> None:
        """Should leave an externally managed server alone."""
        from adb_lifecycle.bridge.server import BridgeServerControl, RestartOutcome

        server = BridgeServerControl(mock_runner, adb_executable, suppress_kill_server=True)

        assert await server.restart() is RestartOutcome.SKIPPED
        mock_runner.run.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_restart_failure_is_not_raised(self, mock_runner, adb_executable) -> None:
        """Should report FAILED instead of raising."""
        from adb_lifecycle.bridge.server import BridgeServerControl, RestartOutcome
        from adb_lifecycle.errors import adb_command_error

        mock_runner.run.side_effect = adb_command_error("kill-server", "cannot connect")
        server = BridgeServerControl(mock_runner, adb_executable)

        assert await server.restart() is RestartOutcome.FAILED

    @pytest.mark.asyncio
    async def test_start_server(self, mock_runner, adb_executable) -> None:
        """Should run start-server."""
        from adb_lifecycle.bridge.server import BridgeServerControl, RestartOutcome

        server = BridgeServerControl(mock_runner, adb_executable, server_port=5038)

        assert await server.start() is RestartOutcome.RESTARTED
        assert server.server_port == 5038
        mock_runner.run.assert_awaited_once_with(adb_executable, ["start-server"])
