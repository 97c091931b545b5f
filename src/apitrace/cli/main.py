"""apitrace CLI entry point."""

import typer

from apitrace import __version__
from apitrace.cli.report_cmd import report as report_cmd
from apitrace.cli.run_cmd import run

app = typer.Typer(
    name="apitrace",
    help="Record LLM API traffic from a Python program and render it as HTML",
    no_args_is_help=True,
)

# Register subcommands
app.command(name="report")(report_cmd)
app.command(
    context_settings={
        "allow_extra_args": True,
        "ignore_unknown_options": True,
        "allow_interspersed_args": False,
    },
)(run)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"apitrace {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """Record LLM API traffic from a Python program and render it as HTML."""
