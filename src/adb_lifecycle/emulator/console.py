"""Emulator console client - telnet-style commands on the console port."""

from __future__ import annotations

import asyncio
import contextlib
from pathlib import Path

import structlog

from adb_lifecycle.errors import console_command_error, console_connect_error

logger = structlog.get_logger()

AUTH_TOKEN_PATH = Path.home() / ".emulator_console_auth_token"
BANNER_TIMEOUT_S = 5.0
RESPONSE_TIMEOUT_S = 30.0


class EmulatorConsole:
    """Sends single commands to an emulator console."""

    def __init__(
        self,
        host: str = "localhost",
        auth_token_path: Path | None = AUTH_TOKEN_PATH,
    ) -> None:
        self.host = host
        self.auth_token_path = auth_token_path

    async def send_command(self, port: int, command: str) -> str:
        """Send a command and return the response text before the final OK.

        Args:
            port: Console port number (the emulator-<port> suffix)
            command: Console command, e.g. 'avd name'

        Raises:
            AgentError: If connection fails or command returns KO
        """
        try:
            reader, writer = await asyncio.open_connection(self.host, port)
        except OSError as e:
            raise console_connect_error(port) from e

        try:
            banner = await self._read_response(reader, BANNER_TIMEOUT_S, "banner")
            if "auth" in banner.lower():
                await self._authenticate(reader, writer)

            writer.write(f"{command}\n".encode())
            await writer.drain()
            response = await self._read_response(reader, RESPONSE_TIMEOUT_S, command)
            logger.debug("console_command_sent", port=port, command=command, response=response)
            return response
        except OSError as e:
            raise console_command_error(command, str(e) or type(e).__name__) from e
        finally:
            writer.close()
            # a reset peer makes the close fail too
            with contextlib.suppress(OSError):
                await writer.wait_closed()

    async def _authenticate(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        if self.auth_token_path is None or not self.auth_token_path.is_file():
            return
        token = self.auth_token_path.read_text(encoding="utf-8").strip()
        writer.write(f"auth {token}\n".encode())
        await writer.drain()
        await self._read_response(reader, BANNER_TIMEOUT_S, "auth")

    async def _read_response(
        self, reader: asyncio.StreamReader, timeout: float, command: str
    ) -> str:
        """Collect lines until OK, raising on KO."""
        lines: list[str] = []
        while True:
            try:
                raw = await asyncio.wait_for(reader.readline(), timeout=timeout)
            except TimeoutError:
                raise console_command_error(command, "timed out waiting for response") from None
            if not raw:
                raise console_command_error(command, "connection closed")
            line = raw.decode(errors="replace").strip()
            if line == "OK":
                return "\n".join(lines).strip()
            if line.startswith("KO"):
                raise console_command_error(command, line[2:].strip(": ") or "Unknown error")
            lines.append(line)

