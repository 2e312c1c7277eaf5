"""Main CLI application entry point."""
from __future__ import annotations

import logging
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table
import rich.box

from ess_receiver.cli import logs, payload
from ess_receiver.config import get_settings
from ess_receiver.utils.logging import setup_logging

# Initialize Typer app
app = typer.Typer(
    name="ess-receiver",
    help="ESS K90 Pro push-protocol receiver",
    add_completion=False,
)

console = Console()

# Include sub-apps
app.add_typer(payload.app)
app.add_typer(logs.app)


@app.callback()
def main_callback(
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Log level"),
):
    """ESS K90 Pro push-protocol receiver CLI."""
    setup_logging(log_level or get_settings().LOG_LEVEL)


# ---------------------------------------------------------------------------
# Serve command (FastAPI + health)
# ---------------------------------------------------------------------------


@app.command()
def serve(
    host: str = typer.Option(None, "--host", help="Bind host"),
    port: int = typer.Option(None, "--port", help="Bind port"),
):
    """Start the device receiver."""
    import uvicorn

    from ess_receiver.api.app import create_app

    settings = get_settings()
    bind_host = host or settings.API_HOST
    bind_port = port or settings.API_PORT

    logger = logging.getLogger(__name__)
    logger.info("=" * 60)
    logger.info("ESS K90 PRO RECEIVER")
    logger.info("=" * 60)
    logger.info("Environment: %s", settings.ENVIRONMENT.upper())
    logger.info("Listening: http://%s:%d", bind_host, bind_port)
    logger.info("Main log file: %s", settings.log_file_path)
    logger.info("Daily logs: %s", settings.log_dir_path)
    logger.info("View logs: http://%s:%d/logs", bind_host, bind_port)
    logger.info("=" * 60)

    api_app = create_app()
    uvicorn.run(api_app, host=bind_host, port=bind_port, log_level="info")


# ---------------------------------------------------------------------------
# Simulate a device against a running receiver
# ---------------------------------------------------------------------------


@app.command()
def simulate(
    url: str = typer.Option(None, "--url", help="Receiver base URL"),
    serial: str = typer.Option(None, "--serial", help="Device serial number to report"),
    current: bool = typer.Option(
        False, "--current", help="Send a USER/FP/attendance body instead of the legacy form"
    ),
):
    """Send a sample upload, check health, then poll for commands."""
    import requests

    from ess_receiver.device.simulator import (
        SAMPLE_CURRENT_PAYLOAD,
        SAMPLE_LEGACY_PAYLOAD,
        TEXT_CONTENT_TYPE,
        DeviceSimulator,
        parse_ack,
    )

    settings = get_settings()
    device = DeviceSimulator(url or settings.DEVICE_URL, serial or settings.DEVICE_SERIAL)
    all_ok = True

    console.print(f"\n[bold]Simulating device against {device.base_url}[/bold]\n")

    try:
        if current:
            reply = device.push(SAMPLE_CURRENT_PAYLOAD, path="/iclock/cdata", content_type=TEXT_CONTENT_TYPE)
        else:
            reply = device.push(SAMPLE_LEGACY_PAYLOAD)
        stamp = parse_ack(reply)
        if stamp is not None:
            console.print(f"  [green]OK[/green]  Upload acknowledged, STAMP={stamp}")
        else:
            console.print(f"  [red]FAIL[/red]  Unexpected upload reply: {escape(repr(reply))}")
            all_ok = False

        health = device.health()
        console.print(f"  [green]OK[/green]  Health: {escape(str(health.get('status')))}")

        commands = device.poll_commands()
        if commands == "NO":
            console.print("  [green]OK[/green]  Command poll: NO (no pending commands)")
        else:
            console.print(f"  [red]FAIL[/red]  Unexpected command reply: {escape(repr(commands))}")
            all_ok = False
    except requests.RequestException as e:
        console.print(f"  [red]FAIL[/red]  {escape(str(e))}")
        all_ok = False
    finally:
        device.close()

    console.print()
    if not all_ok:
        raise typer.Exit(1)


# ---------------------------------------------------------------------------
# Status command
# ---------------------------------------------------------------------------


@app.command()
def status():
    """Show current configuration."""
    settings = get_settings()

    table = Table(
        title="Receiver Configuration",
        show_header=True,
        header_style="bold magenta",
        box=rich.box.ROUNDED,
    )
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    rows = [
        ("Environment", settings.ENVIRONMENT),
        ("API Host", f"{settings.API_HOST}:{settings.API_PORT}"),
        ("Admin API Key", "Set" if settings.API_KEY else "Not set (log routes open)"),
        ("CORS Origins", ", ".join(settings.cors_origins)),
        ("Main Log File", str(settings.log_file_path)),
        ("Daily Log Dir", str(settings.log_dir_path)),
        ("Log Level", settings.LOG_LEVEL),
    ]

    for label, value in rows:
        table.add_row(label, value)

    console.print(table)


# ---------------------------------------------------------------------------
# List command
# ---------------------------------------------------------------------------


@app.command("list")
def list_commands():
    """List all available commands."""
    table = Table(
        title="Available Commands",
        show_header=True,
        header_style="bold magenta",
        box=rich.box.ROUNDED,
        expand=True,
        show_lines=True,
    )
    table.add_column("Command", style="cyan", width=40)
    table.add_column("Description", style="green", width=50)

    commands = [
        ("serve", "Start the device receiver"),
        ("simulate", "Act as a device against a running receiver"),
        ("status", "Show configuration"),
        ("payload parse <file>", "Parse a captured request body"),
        ("payload sample", "Print a sample payload"),
        ("logs show", "Print the request log"),
        ("logs tail", "Show recent requests"),
        ("logs clear", "Truncate the request log"),
    ]

    for cmd, desc in commands:
        table.add_row(cmd, desc)

    console.print("\n")
    console.print(table)
    console.print("\n")


if __name__ == "__main__":
    app()
