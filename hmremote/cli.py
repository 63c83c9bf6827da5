"""Typer CLI entrypoint."""

from __future__ import annotations

import logging
from pathlib import Path

import typer

from hmremote.core.config import load_settings
from hmremote.core.console import InvalidCommandError, validate_command
from hmremote.core.errors import HMRemoteError
from hmremote.core.model import Advertised, ClassifiedEvent, Lost, Seen
from hmremote.core.service import RemoteService

__version__ = "0.1.0"

app = typer.Typer(
    help="Remote AT console for HM series BLE devices",
    no_args_is_help=True,
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"hm-remote {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    config: Path | None = typer.Option(None, "--config", help="Path to a YAML config file"),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show version and exit"
    ),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = config


def _build_service(config: Path | None) -> RemoteService:
    settings = load_settings(config)
    return RemoteService(settings=settings, echo=typer.echo)


def _format_event(event: ClassifiedEvent) -> str:
    if isinstance(event, Advertised):
        return typer.style("[ADVERTISED] ", fg=typer.colors.BLUE) + event.address
    if isinstance(event, Lost):
        return typer.style("[LOST] ", fg=typer.colors.RED) + event.display
    if isinstance(event, Seen):
        return typer.style("[UPDATE] ", fg=typer.colors.YELLOW) + event.display
    return typer.style("[NEW] ", fg=typer.colors.GREEN) + event.display


def _echo_event(event: ClassifiedEvent) -> None:
    typer.echo(_format_event(event))


def _prompt_value(value: str) -> str:
    try:
        return validate_command(value)
    except InvalidCommandError as exc:
        raise typer.BadParameter(str(exc)) from None


def _read_command() -> str:
    return typer.prompt(">", prompt_suffix=" ", value_proc=_prompt_value)


@app.command("scan")
def scan(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Displays BLE device update"),
    filter_unnamed: bool = typer.Option(
        False, "--filter-unnamed", "-f", help="Only displays BLE device with a name"
    ),
) -> None:
    """Scans BLE devices until interrupted."""
    try:
        service = _build_service(ctx.obj)
        service.scan(verbose=verbose, filter_unnamed=filter_unnamed, emit=_echo_event)
    except HMRemoteError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("connect")
def connect(
    ctx: typer.Context,
    address: str = typer.Argument(..., metavar="ADDRESS", help="The MAC address of the device to connect"),
) -> None:
    """Connects to a BLE device and opens an AT console."""
    try:
        service = _build_service(ctx.obj)
        service.connect(address, read_line=_read_command)
    except HMRemoteError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None
    typer.echo("Bye!")


def run() -> None:
    app()


if __name__ == "__main__":
    run()
