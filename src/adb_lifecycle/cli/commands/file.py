"""Device file probe CLI commands."""

from __future__ import annotations

import typer

from adb_lifecycle.cli.utils import format_json, open_core, run_command

app = typer.Typer(help="Device file probes")


@app.command("ls")
def file_ls(
    remote_path: str = typer.Argument(..., help="Path on the device"),
    device: str | None = typer.Option(None, "--device", "-d", help="Device id"),
    adb_path: str | None = typer.Option(None, "--adb", help="Path to adb"),
    json_output: bool = typer.Option(False, "--json", help="Output JSON"),
) -> None:
    """List a device directory."""

    async def _run() -> list[str]:
        core = await open_core(device=device, adb_path=adb_path)
        return await core.files.ls(remote_path)

    entries = run_command(_run, json_output=json_output)
    if json_output:
        typer.echo(format_json({"path": remote_path, "entries": entries}))
        return
    for entry in entries:
        typer.echo(entry)


@app.command("exists")
def file_exists(
    remote_path: str = typer.Argument(..., help="Path on the device"),
    device: str | None = typer.Option(None, "--device", "-d", help="Device id"),
    adb_path: str | None = typer.Option(None, "--adb", help="Path to adb"),
    json_output: bool = typer.Option(False, "--json", help="Output JSON"),
) -> None:
    """Exit 0 if the path exists on the device, 1 otherwise."""

    async def _run() -> bool:
        core = await open_core(device=device, adb_path=adb_path)
        return await core.files.file_exists(remote_path)

    exists = run_command(_run, json_output=json_output)
    if json_output:
        typer.echo(format_json({"path": remote_path, "exists": exists}))
    else:
        typer.echo("yes" if exists else "no")
    if not exists:
        raise typer.Exit(code=1)
