"""apitrace run -- launch a Python program with traffic recording.

Resolves configuration (apitrace.yaml, environment, CLI flags), spawns
the target under ``python -m apitrace.loader`` with that configuration
exported to the child, forwards SIGINT/SIGTERM, and exits with the
child's exit code.
"""

from __future__ import annotations

import os
import signal
import subprocess
import sys
from types import FrameType
from typing import Optional

import typer
from rich.console import Console

from apitrace.models.config import TraceConfig, default_log_name, load_trace_config, resolve_log_paths

console = Console(stderr=True)


def build_child_command(target: str, args: list[str], as_module: bool) -> list[str]:
    """Build the interpreter command line that runs target under the loader."""
    cmd = [sys.executable, "-m", "apitrace.loader"]
    if as_module:
        cmd.append("-m")
    cmd.append(target)
    cmd.extend(args)
    return cmd


def build_run_config(
    *,
    include_all_requests: bool,
    open_browser: bool,
    log_name: str | None,
    output_base_dir: str | None,
    live_report: bool,
) -> TraceConfig:
    """Layer CLI flags over apitrace.yaml and environment settings.

    Flags only override when given, so an environment setting such as
    APITRACE_INCLUDE_ALL_REQUESTS=true still applies without the flag.
    """
    config = load_trace_config()
    updates: dict[str, object] = {"open_browser": open_browser}
    if include_all_requests:
        updates["include_all_requests"] = True
    if not live_report:
        updates["live_report"] = False
    if output_base_dir:
        updates["base_dir"] = output_base_dir
    # Fix the log name here so the paths printed below match the child's.
    updates["log_name"] = log_name or config.log_name or default_log_name()
    return config.model_copy(update=updates)


def run(
    ctx: typer.Context,
    target: str = typer.Argument(..., help="Python script to run (or module name with -m)"),
    module: bool = typer.Option(False, "-m", "--module", help="Run TARGET as a module, like python -m"),
    include_all_requests: bool = typer.Option(
        False, "--include-all-requests", help="Record every call to the API host, not only /v1/messages"
    ),
    no_open: bool = typer.Option(False, "--no-open", help="Don't open the HTML report when the program exits"),
    log: Optional[str] = typer.Option(None, "--log", help="Log file base name (without extension)"),
    output_base_dir: Optional[str] = typer.Option(
        None, "--output-base-dir", help="Base directory for traces (default: ~/.apitrace)"
    ),
    no_live_report: bool = typer.Option(
        False, "--no-live-report", help="Don't regenerate the HTML report after each call"
    ),
) -> None:
    """Run a Python program with LLM API traffic recording.

    Arguments after TARGET are passed to the program unchanged.
    """
    try:
        config = build_run_config(
            include_all_requests=include_all_requests,
            open_browser=not no_open,
            log_name=log,
            output_base_dir=output_base_dir,
            live_report=not no_live_report,
        )
    except ValueError as exc:
        console.print(f"[bold red]Configuration error:[/bold red] {exc}")
        raise typer.Exit(code=1)

    cmd = build_child_command(target, list(ctx.args), module)
    log_file, report_file = resolve_log_paths(config)

    console.print("[bold blue]apitrace[/bold blue]")
    console.print(f"[yellow]Starting {target} with traffic logging[/yellow]")
    if ctx.args:
        console.print(f"[blue]Arguments: {' '.join(ctx.args)}[/blue]")
    console.print(f"[dim]JSONL: {log_file}[/dim]")
    console.print(f"[dim]HTML:  {report_file}[/dim]")

    env = {**os.environ, **config.to_env()}
    try:
        child = subprocess.Popen(cmd, env=env)
    except OSError as exc:
        console.print(f"[bold red]Error starting {target}:[/bold red] {exc}")
        raise typer.Exit(code=1)

    def forward(signum: int, frame: FrameType | None) -> None:  # noqa: ARG001
        console.print(f"\n[yellow]Received {signal.Signals(signum).name}, shutting down...[/yellow]")
        if child.poll() is None:
            child.send_signal(signum)

    previous = {sig: signal.signal(sig, forward) for sig in (signal.SIGINT, signal.SIGTERM)}
    try:
        code = child.wait()
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)

    if code < 0:
        console.print(f"\n[yellow]{target} terminated by signal: {signal.Signals(-code).name}[/yellow]")
    elif code != 0:
        console.print(f"\n[yellow]{target} exited with code: {code}[/yellow]")
    else:
        console.print("\n[green]Session completed[/green]")
    raise typer.Exit(code=code if code >= 0 else 128 - code)
