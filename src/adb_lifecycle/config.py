"""Configuration models for the adb bridge and emulator launches."""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

DEFAULT_ADB_SERVER_PORT = 5037
DEFAULT_COMMAND_TIMEOUT_MS = 20000

_TRUTHY = {"1", "true", "yes", "on"}


class BridgeConfig(BaseModel):
    """Settings for talking to the adb server."""

    adb_path: str | None = None
    sdk_root: Path | None = None
    server_port: int = Field(default=DEFAULT_ADB_SERVER_PORT, gt=0, lt=65536)
    suppress_kill_server: bool = False
    command_timeout_ms: int = Field(default=DEFAULT_COMMAND_TIMEOUT_MS, gt=0)

    @classmethod
    def from_env(
        cls, environ: Mapping[str, str] | None = None, **overrides: object
    ) -> BridgeConfig:
        """Build config from environment variables.

        Reads ANDROID_ADB_SERVER_PORT, ANDROID_HOME (falling back to
        ANDROID_SDK_ROOT) and ADB_LIFECYCLE_SUPPRESS_KILL_SERVER once.
        Explicit keyword overrides win over the environment.
        """
        env = os.environ if environ is None else environ
        values: dict[str, object] = {}

        port = env.get("ANDROID_ADB_SERVER_PORT")
        if port:
            values["server_port"] = port.strip()

        sdk_root = env.get("ANDROID_HOME") or env.get("ANDROID_SDK_ROOT")
        if sdk_root:
            values["sdk_root"] = Path(sdk_root)

        suppress = env.get("ADB_LIFECYCLE_SUPPRESS_KILL_SERVER", "")
        if suppress.strip().lower() in _TRUTHY:
            values["suppress_kill_server"] = True

        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls.model_validate(values)


class LaunchOptions(BaseModel):
    """Parameters for launching an AVD."""

    avd_name: str
    avd_args: str | list[str] | None = None
    language: str | None = None
    locale: str | None = None
    launch_timeout_ms: int = Field(default=60000, gt=0)
    ready_timeout_ms: int = Field(default=60000, gt=0)
    retry_times: int = Field(default=1, ge=1)

    @field_validator("avd_name")
    @classmethod
    def strip_at_prefix(cls, value: str) -> str:
        """Accept '@Pixel_7' as well as 'Pixel_7'."""
        name = value[1:] if value.startswith("@") else value
        if not name:
            raise ValueError("AVD name must not be empty")
        return name
