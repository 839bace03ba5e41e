"""CLI entry point using Typer."""

from __future__ import annotations

import typer

from adb_lifecycle.cli.commands import device, emulator, server
from adb_lifecycle.cli.commands import (
    file as file_commands,
)
from adb_lifecycle.logs import configure_logging

app = typer.Typer(
    name="adb-lifecycle",
    help="adb connection and emulator lifecycle management",
    no_args_is_help=True,
)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Configure logging for every command."""
    configure_logging(verbose=verbose)


@app.command()
def version() -> None:
    """Show version information."""
    from adb_lifecycle import __version__

    typer.echo(f"adb-lifecycle v{__version__}")


app.add_typer(device.app, name="devices")
app.add_typer(server.app, name="server")
app.add_typer(emulator.app, name="emulator")
app.add_typer(file_commands.app, name="file")


if __name__ == "__main__":
    app()
