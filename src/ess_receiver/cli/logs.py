"""CLI commands for the request log files."""
from __future__ import annotations

import json

import typer
from rich.console import Console
from rich.table import Table
import rich.box

app = typer.Typer(
    name="logs",
    help="Request log operations",
    add_completion=False,
)

console = Console()


def _store():
    from ess_receiver.config import get_settings
    from ess_receiver.storage.log_store import FileLogSink

    settings = get_settings()
    return FileLogSink(settings.log_file_path, settings.log_dir_path)


@app.command("show")
def logs_show(
    today: bool = typer.Option(False, "--today", help="Only today's (UTC) log"),
):
    """Print the raw request log."""
    from ess_receiver.core.ingest import utc_now

    store = _store()
    try:
        text = store.read_text(day=utc_now().date() if today else None)
    except FileNotFoundError:
        console.print("[yellow]No logs found[/yellow]")
        raise typer.Exit(1)
    typer.echo(text, nl=False)


@app.command("tail")
def logs_tail(
    limit: int = typer.Option(10, "--limit", help="Number of entries to show"),
):
    """Show the most recent requests as a table."""
    store = _store()
    try:
        entries = store.read_entries(limit=limit)
    except FileNotFoundError:
        console.print("[yellow]No logs found[/yellow]")
        raise typer.Exit(1)

    table = Table(
        title=f"Request log - last {len(entries)} entries",
        show_header=True,
        header_style="bold magenta",
        box=rich.box.ROUNDED,
    )
    table.add_column("Timestamp", style="green")
    table.add_column("Endpoint", style="cyan")
    table.add_column("Client IP")
    table.add_column("Grammar")
    table.add_column("Parse Errors", justify="right")

    for e in entries:
        errors = json.loads(e.get("Parse Errors", "[]"))
        table.add_row(
            e.get("Timestamp", ""),
            e.get("Endpoint", ""),
            e.get("Client IP", ""),
            e.get("Grammar", ""),
            str(len(errors)),
        )

    console.print(table)


@app.command("clear")
def logs_clear(
    confirm: bool = typer.Option(False, "--confirm", help="Confirm clearing the log"),
):
    """Truncate the main request log."""
    if not confirm:
        console.print("[yellow]Use --confirm to clear the request log[/yellow]")
        raise typer.Exit(1)

    _store().clear()
    console.print("[green]Request log cleared[/green]")
