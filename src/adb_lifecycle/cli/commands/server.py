"""adb server CLI commands."""

from __future__ import annotations

import typer

from adb_lifecycle.cli.utils import (
    format_json,
    load_config,
    open_core,
    render_error,
    run_command,
)
from adb_lifecycle.errors import AgentError

app = typer.Typer(help="adb server commands")


@app.command("restart")
def server_restart(
    adb_path: str | None = typer.Option(None, "--adb", help="Path to adb"),
    json_output: bool = typer.Option(False, "--json", help="Output JSON"),
) -> None:
    """Kill the adb server and bring it back up."""

    async def _run() -> dict[str, str]:
        core = await open_core(adb_path=adb_path)
        killed = await core.server.restart()
        started = await core.server.start()
        return {"kill": killed.value, "start": started.value}

    result = run_command(_run, json_output=json_output)
    if json_output:
        typer.echo(format_json(result))
        return
    typer.echo(f"kill-server: {result['kill']}, start-server: {result['start']}")


@app.command("port")
def server_port(
    json_output: bool = typer.Option(False, "--json", help="Output JSON"),
) -> None:
    """Show the adb server port (ANDROID_ADB_SERVER_PORT or 5037)."""
    try:
        config = load_config()
    except AgentError as exc:
        render_error(exc, json_output=json_output)
    if json_output:
        typer.echo(format_json({"server_port": config.server_port}))
        return
    typer.echo(str(config.server_port))
