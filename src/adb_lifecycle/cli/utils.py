"""Shared CLI helpers and constants."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable, Coroutine
from typing import Any, NoReturn, TypeVar

import typer
from pydantic import ValidationError

from adb_lifecycle.config import BridgeConfig
from adb_lifecycle.core import BridgeCore
from adb_lifecycle.emulator.lifecycle import ProcessFactory
from adb_lifecycle.emulator.process import EmulatorProcess
from adb_lifecycle.errors import AgentError, invalid_options_error

T = TypeVar("T")


def format_json(data: Any) -> str:
    return json.dumps(data, indent=2, sort_keys=True, default=str)


def render_error(error: AgentError, json_output: bool = False) -> NoReturn:
    """Print an AgentError and exit non-zero."""
    if json_output:
        typer.echo(format_json({"error": error.to_dict()}))
    else:
        typer.echo(f"{error.code}: {error.message}")
        if error.remediation:
            typer.echo(f"Hint: {error.remediation}")
    raise typer.Exit(code=1)


def render_done(data: dict[str, Any], json_output: bool = False) -> None:
    if json_output:
        typer.echo(format_json({"status": "done", **data}))
        return
    message = "✓ Done"
    if "elapsed_ms" in data:
        message += f" ({data['elapsed_ms']} ms)"
    typer.echo(message)


def load_config(adb_path: str | None = None) -> BridgeConfig:
    """Read bridge settings from the environment.

    Raises:
        AgentError: ERR_INVALID_OPTIONS if a variable does not validate
    """
    try:
        return BridgeConfig.from_env(adb_path=adb_path)
    except ValidationError as exc:
        raise invalid_options_error(str(exc)) from exc


async def open_core(
    device: str | None = None,
    adb_path: str | None = None,
    process_factory: ProcessFactory = EmulatorProcess,
) -> BridgeCore:
    """Create a session core, optionally bound to one device."""
    core = await BridgeCore.create(load_config(adb_path), process_factory=process_factory)
    if device:
        await core.select_by_id(device)
    return core


def run_command(
    action: Callable[[], Coroutine[Any, Any, T]],
    json_output: bool = False,
) -> T:
    """Run an async command body, rendering AgentErrors for the terminal."""
    try:
        return asyncio.run(action())
    except AgentError as exc:
        render_error(exc, json_output=json_output)
