"""CLI commands for inspecting captured device payloads."""
from __future__ import annotations

import json
from pathlib import Path
from urllib.parse import parse_qsl

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table
import rich.box

app = typer.Typer(
    name="payload",
    help="Parse captured device payloads",
    add_completion=False,
)

console = Console()


@app.command("parse")
def payload_parse(
    path: Path = typer.Argument(help="File holding a raw request body", exists=True, dir_okay=False),
    as_json: bool = typer.Option(False, "--json", help="Print records as JSON"),
    form: bool = typer.Option(
        False, "--form", help="Body is form-encoded; parse its DATA field (legacy uploads)"
    ),
):
    """Parse a payload file and show the records it contains."""
    from ess_receiver.core.models import DATA_FIELD
    from ess_receiver.protocol.parser import parse_payload

    text = path.read_text(encoding="utf-8")
    if form:
        fields = dict(parse_qsl(text, keep_blank_values=True))
        text = fields.get(DATA_FIELD, "")

    result = parse_payload(text)

    if as_json:
        typer.echo(json.dumps(result.model_dump(mode="json"), indent=2))
        return

    table = Table(
        title=f"{path.name} - {result.grammar} grammar ({result.record_count} records)",
        show_header=True,
        header_style="bold magenta",
        box=rich.box.ROUNDED,
    )
    table.add_column("#", justify="right")
    table.add_column("Kind", style="cyan")
    table.add_column("Summary", style="green")

    for i, record in enumerate(result.records, start=1):
        table.add_row(str(i), record.kind, escape(record.describe()))

    console.print(table)

    for error in result.errors:
        console.print(
            f"[yellow]Skipped line {error.line_number}[/yellow]: {escape(error.reason)}",
            highlight=False,
        )


@app.command("sample")
def payload_sample(
    legacy: bool = typer.Option(False, "--legacy", help="Print the legacy DATA=RECORD= form"),
):
    """Print a sample payload, e.g. to feed ``payload parse``."""
    from ess_receiver.device.simulator import SAMPLE_CURRENT_PAYLOAD, SAMPLE_LEGACY_PAYLOAD

    typer.echo(SAMPLE_LEGACY_PAYLOAD if legacy else SAMPLE_CURRENT_PAYLOAD, nl=False)
