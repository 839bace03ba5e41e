"""Device discovery CLI commands."""

from __future__ import annotations

import time

import typer

from adb_lifecycle.cli.utils import format_json, open_core, render_done, run_command

app = typer.Typer(help="Device discovery commands")


@app.command("list")
def device_list(
    include_offline: bool = typer.Option(False, "--all", help="Include offline devices"),
    adb_path: str | None = typer.Option(None, "--adb", help="Path to adb"),
    json_output: bool = typer.Option(False, "--json", help="Output JSON"),
) -> None:
    """List connected devices."""

    async def _run() -> list[dict[str, str | int | None]]:
        core = await open_core(adb_path=adb_path)
        endpoints = await core.directory.list_devices(include_offline=include_offline)
        return [endpoint.to_dict() for endpoint in endpoints]

    devices = run_command(_run, json_output=json_output)
    if json_output:
        typer.echo(format_json({"devices": devices}))
        return
    if not devices:
        typer.echo("No devices connected")
        return
    for device in devices:
        port = f" port={device['emulator_port']}" if device["emulator_port"] is not None else ""
        typer.echo(f"{device['id']}  state={device['raw_state'] or device['state']}{port}")


@app.command("emulators")
def device_emulators(
    adb_path: str | None = typer.Option(None, "--adb", help="Path to adb"),
    json_output: bool = typer.Option(False, "--json", help="Output JSON"),
) -> None:
    """List connected emulators with their console ports."""

    async def _run() -> list[dict[str, str | int | None]]:
        core = await open_core(adb_path=adb_path)
        return [endpoint.to_dict() for endpoint in await core.directory.list_emulators()]

    emulators = run_command(_run, json_output=json_output)
    if json_output:
        typer.echo(format_json({"emulators": emulators}))
        return
    for emulator in emulators:
        typer.echo(f"{emulator['id']}  port={emulator['emulator_port']}")


@app.command("wait")
def device_wait(
    device: str | None = typer.Option(None, "--device", "-d", help="Device id"),
    timeout: float = typer.Option(30.0, "--timeout", help="Ready timeout in seconds"),
    adb_path: str | None = typer.Option(None, "--adb", help="Path to adb"),
    json_output: bool = typer.Option(False, "--json", help="Output JSON"),
) -> None:
    """Wait until a device is attached and answers a ping."""

    async def _run() -> float:
        start = time.time()
        core = await open_core(device=device, adb_path=adb_path)
        await core.emulators.wait_for_device(ready_timeout_s=timeout)
        return round((time.time() - start) * 1000, 2)

    elapsed_ms = run_command(_run, json_output=json_output)
    render_done({"elapsed_ms": elapsed_ms}, json_output=json_output)
