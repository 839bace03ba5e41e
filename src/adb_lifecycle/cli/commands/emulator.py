"""Emulator management CLI commands."""

from __future__ import annotations

import time
from functools import partial

import typer
from pydantic import ValidationError

from adb_lifecycle.cli.utils import (
    format_json,
    open_core,
    render_done,
    render_error,
    run_command,
)
from adb_lifecycle.config import LaunchOptions
from adb_lifecycle.emulator.process import EmulatorProcess
from adb_lifecycle.errors import invalid_options_error

app = typer.Typer(help="Emulator management commands")


@app.command("launch")
def emulator_launch(
    avd_name: str = typer.Argument(..., help="AVD name from 'emulator -list-avds'"),
    avd_args: list[str] | None = typer.Option(
        None, "--arg", help="Extra emulator argument (repeatable)"
    ),
    language: str | None = typer.Option(None, "--language", help="Device language, e.g. en"),
    locale: str | None = typer.Option(None, "--locale", help="Device country, e.g. US"),
    launch_timeout: int = typer.Option(60000, "--launch-timeout", help="Registration timeout (ms)"),
    ready_timeout: int = typer.Option(60000, "--ready-timeout", help="Boot timeout (ms)"),
    retries: int = typer.Option(1, "--retries", help="Registration attempts"),
    adb_path: str | None = typer.Option(None, "--adb", help="Path to adb"),
    json_output: bool = typer.Option(False, "--json", help="Output JSON"),
) -> None:
    """Launch an AVD and wait until it has booted.

    The emulator keeps running after this command exits.
    """
    try:
        options = LaunchOptions(
            avd_name=avd_name,
            avd_args=avd_args or None,
            language=language,
            locale=locale,
            launch_timeout_ms=launch_timeout,
            ready_timeout_ms=ready_timeout,
            retry_times=retries,
        )
    except ValidationError as exc:
        render_error(invalid_options_error(str(exc)), json_output=json_output)

    async def _run() -> dict[str, str | int | float | None]:
        start = time.time()
        # The emulator outlives this command, so its output is not piped back.
        core = await open_core(
            adb_path=adb_path,
            process_factory=partial(EmulatorProcess, capture_output=False),
        )
        process = await core.emulators.launch(
            options.avd_name,
            options.avd_args,
            language=options.language,
            locale=options.locale,
            launch_timeout_ms=options.launch_timeout_ms,
            ready_timeout_ms=options.ready_timeout_ms,
            retry_times=options.retry_times,
        )
        return {
            "avd_name": options.avd_name,
            "device_id": core.session.device_id,
            "emulator_port": core.session.emulator_port,
            "pid": process.pid,
            "elapsed_ms": round((time.time() - start) * 1000, 2),
        }

    result = run_command(_run, json_output=json_output)
    if json_output:
        typer.echo(format_json({"status": "done", **result}))
        return
    typer.echo(f"✓ {result['avd_name']} ready as {result['device_id']} (pid {result['pid']})")


@app.command("kill-all")
def emulator_kill_all(
    adb_path: str | None = typer.Option(None, "--adb", help="Path to adb"),
    json_output: bool = typer.Option(False, "--json", help="Output JSON"),
) -> None:
    """Terminate every emulator process on this host."""

    async def _run() -> None:
        core = await open_core(adb_path=adb_path)
        await core.emulators.kill_all()

    run_command(_run, json_output=json_output)
    render_done({}, json_output=json_output)


@app.command("reboot")
def emulator_reboot(
    device: str = typer.Option(..., "--device", "-d", help="Device id"),
    adb_path: str | None = typer.Option(None, "--adb", help="Path to adb"),
    json_output: bool = typer.Option(False, "--json", help="Output JSON"),
) -> None:
    """Restart the Android runtime and wait for boot to complete."""

    async def _run() -> float:
        start = time.time()
        core = await open_core(device=device, adb_path=adb_path)
        await core.emulators.reboot()
        return round((time.time() - start) * 1000, 2)

    elapsed_ms = run_command(_run, json_output=json_output)
    render_done({"elapsed_ms": elapsed_ms}, json_output=json_output)
