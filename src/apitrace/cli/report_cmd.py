"""apitrace report -- render a recorded JSONL log.

Writes a self-contained HTML report next to the log by default, and
can instead print a summary table or the records as JSON.
"""

from __future__ import annotations

import webbrowser
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from apitrace.report.html import generate_report_from_jsonl, records_to_json, summary_table
from apitrace.storage.jsonl_sink import read_records


def report(
    input_file: Path = typer.Argument(..., help="JSONL log to render"),
    output_file: Optional[Path] = typer.Argument(None, help="Output HTML file (default: INPUT with .html)"),
    title: Optional[str] = typer.Option(None, "--title", "-t", help="Report title (default: '<n> API Calls')"),
    no_open: bool = typer.Option(False, "--no-open", help="Don't open the report in a browser"),
    summary: bool = typer.Option(False, "--summary", help="Print a summary table instead of writing HTML"),
    format_json: bool = typer.Option(False, "--json", help="Print records as JSON instead of writing HTML"),
) -> None:
    """Generate an HTML report from a JSONL traffic log."""
    console = Console()

    if not input_file.exists():
        console.print(f"[bold red]Log file not found:[/bold red] {input_file}")
        raise typer.Exit(code=1)

    if summary or format_json:
        records = read_records(input_file)
        if format_json:
            typer.echo(records_to_json(records))
        elif not records:
            console.print("[dim]No records found.[/dim]")
        else:
            console.print(summary_table(records))
        return

    try:
        output, count = generate_report_from_jsonl(input_file, output_file, title=title)
    except OSError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        raise typer.Exit(code=1)

    console.print(f"[green]Wrote {count} record(s) to {output}[/green]")
    if not no_open:
        webbrowser.open(output.resolve().as_uri())
        console.print(f"[green]Opening {output} in browser[/green]")
