"""Error model - Actionable errors with remediation hints."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class AgentError(Exception):
    """
    Base error with context and remediation guidance.

    All errors should be actionable - tell the caller what went wrong,
    what was being waited for, and what they can do about it.
    """

    code: str
    message: str
    context: dict[str, Any] = field(default_factory=dict)
    remediation: str = ""

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dict."""
        return {
            "code": self.code,
            "message": self.message,
            "context": self.context,
            "remediation": self.remediation,
        }


# Specific error constructors for common cases


def adb_not_found_error(path: str = "adb") -> AgentError:
    """Create error for missing adb binary."""
    return AgentError(
        code="ERR_ADB_NOT_FOUND",
        message=f"adb command not found: {path}",
        context={"path": path},
        remediation="Install Android platform-tools and ensure adb is in PATH or ANDROID_HOME.",
    )


def adb_command_error(command: str, reason: str) -> AgentError:
    """Create error for adb command failure."""
    return AgentError(
        code="ERR_ADB_COMMAND",
        message=f"adb command failed: {command}. Original error: {reason}",
        context={"command": command, "reason": reason},
        remediation="Check adb connection and command arguments, then retry.",
    )


def adb_timeout_error(command: str, timeout_ms: float) -> AgentError:
    """Create error for an adb invocation that exceeded its timeout."""
    return AgentError(
        code="ERR_ADB_TIMEOUT",
        message=f"adb command timed out after {timeout_ms:g} ms: {command}",
        context={"command": command, "timeout_ms": timeout_ms},
        remediation="Increase the command timeout or check that the adb server is responsive.",
    )


def discovery_error(output: str) -> AgentError:
    """Create error for an unparsable device list."""
    return AgentError(
        code="ERR_DISCOVERY",
        message=f"Unexpected output while trying to get devices. Output was: {output}",
        context={"output": output},
        remediation="Run 'adb devices' manually; restart the adb server if the output is garbled.",
    )


def no_device_error(timeout_ms: float, last_error: str | None = None) -> AgentError:
    """Create error for no device appearing within the rediscovery window."""
    return AgentError(
        code="ERR_NO_DEVICE",
        message=f"Could not find a connected Android device after waiting {timeout_ms:g} ms",
        context={"timeout_ms": timeout_ms, "last_error": last_error},
        remediation="Connect a device or start an emulator, then check 'devices list'.",
    )


def no_emulator_error(reason: str = "No emulators connected") -> AgentError:
    """Create error for missing emulator endpoint."""
    return AgentError(
        code="ERR_NO_EMULATOR",
        message=reason,
        context={"reason": reason},
        remediation="Start an emulator with 'emulator launch <avd>' and retry.",
    )


def device_offline_error(command: str) -> AgentError:
    """Create error for a shell command with nothing connected."""
    return AgentError(
        code="ERR_DEVICE_OFFLINE",
        message=f'No device connected, cannot run adb shell command "{command}"',
        context={"command": command},
        remediation="Check device connection with 'devices list' and reconnect",
    )


def device_not_ready_error(timeout_s: float, attempts: int, last_error: str) -> AgentError:
    """Create error for wait-for-device exhaustion."""
    return AgentError(
        code="ERR_DEVICE_NOT_READY",
        message=(
            f"Device did not become ready within {timeout_s:g} s over {attempts} attempts. "
            f"Original error: {last_error}"
        ),
        context={"timeout_s": timeout_s, "attempts": attempts, "last_error": last_error},
        remediation="Check the device is unlocked and authorised, or raise the ready timeout.",
    )


def ping_error(output: str) -> AgentError:
    """Create error for a device that did not echo the ping token."""
    return AgentError(
        code="ERR_PING",
        message=f"Device did not answer ping, got: {output!r}",
        context={"output": output},
        remediation="Device may still be booting; wait and retry.",
    )


def emulator_start_error(binary: str, args: list[str], reason: str) -> AgentError:
    """Create error for an emulator binary that could not be spawned."""
    return AgentError(
        code="ERR_EMULATOR_START",
        message=f"Could not start emulator: {reason}",
        context={"binary": binary, "args": args},
        remediation="Check the emulator binary path and AVD arguments.",
    )


def invalid_options_error(reason: str) -> AgentError:
    """Create error for rejected launch or bridge settings."""
    return AgentError(
        code="ERR_INVALID_OPTIONS",
        message=reason,
        context={"reason": reason},
        remediation="Check the command options and environment variables.",
    )


def avd_not_found_error(
    avd_name: str, timeout_ms: float, attempts: int = 1, last_error: str | None = None
) -> AgentError:
    """Create error for an AVD that never registered with adb."""
    return AgentError(
        code="ERR_AVD_NOT_FOUND",
        message=f"Could not find {avd_name} emulator after waiting {timeout_ms:g} ms",
        context={
            "avd_name": avd_name,
            "timeout_ms": timeout_ms,
            "attempts": attempts,
            "last_error": last_error,
        },
        remediation="Check the AVD name with 'emulator -list-avds' or raise the launch timeout.",
    )


def boot_timeout_error(
    operation: str, timeout_ms: float, last_value: str | None = None
) -> AgentError:
    """Create error for a device that did not finish booting."""
    return AgentError(
        code="ERR_BOOT_TIMEOUT",
        message=f"{operation}: device not booted after waiting {timeout_ms:g} ms",
        context={"operation": operation, "timeout_ms": timeout_ms, "last_value": last_value},
        remediation="Cold boots can be slow; raise the ready timeout or check emulator output.",
    )


def sdk_binary_not_found_error(binary: str, sdk_root: str | None) -> AgentError:
    """Create error for a missing SDK tool."""
    if sdk_root:
        message = (
            f"Could not find {binary} in tools, platform-tools, emulator, "
            f"or supported build-tools under {sdk_root}"
        )
        remediation = "Check that the Android SDK is installed at this location."
    else:
        message = f"Could not find {binary} on PATH"
        remediation = "Set ANDROID_HOME to the Android SDK root directory path."
    return AgentError(
        code="ERR_SDK_BINARY_NOT_FOUND",
        message=message,
        context={"binary": binary, "sdk_root": sdk_root},
        remediation=remediation,
    )


def console_connect_error(port: int) -> AgentError:
    """Create error for emulator console connection failure."""
    return AgentError(
        code="ERR_CONSOLE_CONNECT",
        message=f"Cannot connect to emulator console on port {port}",
        context={"port": port},
        remediation="Ensure emulator is running and console port is accessible.",
    )


def console_command_error(command: str, reason: str) -> AgentError:
    """Create error for a console command that did not answer OK."""
    return AgentError(
        code="ERR_CONSOLE_COMMAND",
        message=f"Emulator console command '{command}' failed: {reason}",
        context={"command": command, "reason": reason},
        remediation="Check the console auth token (~/.emulator_console_auth_token) and retry.",
    )


def kill_emulators_error(reason: str) -> AgentError:
    """Create error for failure to terminate emulators."""
    return AgentError(
        code="ERR_KILL_EMULATORS",
        message=f"Error killing emulators. Original error: {reason}",
        context={"reason": reason},
        remediation="Stop emulator processes manually.",
    )


def device_not_found_error(device_id: str, connected: list[str]) -> AgentError:
    """Create error for a requested device that is not attached."""
    return AgentError(
        code="ERR_DEVICE_NOT_FOUND",
        message=f"Device not found: {device_id}",
        context={"device_id": device_id, "connected": connected},
        remediation="Check device connection with 'devices list' and reconnect",
    )
