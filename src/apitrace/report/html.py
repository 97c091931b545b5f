"""HTML report rendering for recorded exchanges.

Renders the full ordered record list with Rich into a recording console
and exports it as a single self-contained HTML document. Rendering is a
pure function of (records, title, generated_at).
"""

from __future__ import annotations

import io
import json
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any

from rich import box
from rich.console import Console, Group, RenderableType
from rich.json import JSON
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from apitrace.interception.codec import parse_sse_events
from apitrace.models.exchange import ExchangeRecord

REPORT_WIDTH = 120
MAX_RAW_DISPLAY = 20_000

# Status styling: status class -> Rich style
_STATUS_STYLES: dict[int, str] = {
    2: "bold green",
    3: "bold cyan",
    4: "bold yellow",
    5: "bold red",
}


def default_title(records: list[ExchangeRecord]) -> str:
    return f"{len(records)} API Calls"


def _format_ts(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp).strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]


def _status_text(record: ExchangeRecord) -> Text:
    if record.response is None:
        return Text("no response", style="bold magenta")
    code = record.response.status_code
    return Text(str(code), style=_STATUS_STYLES.get(code // 100, "bold"))


def _truncate(text: str) -> str:
    if len(text) <= MAX_RAW_DISPLAY:
        return text
    return text[:MAX_RAW_DISPLAY] + f"\n... [{len(text) - MAX_RAW_DISPLAY} more characters]"


def _headers_table(headers: dict[str, str]) -> Table:
    table = Table(box=box.SIMPLE, show_header=False, padding=(0, 1))
    table.add_column("Header", style="bold")
    table.add_column("Value", overflow="fold")
    for name in sorted(headers):
        table.add_row(name, headers[name])
    return table


def _body_renderable(body: Any) -> RenderableType:
    if body is None:
        return Text("(empty)", style="dim")
    if isinstance(body, str):
        return Text(_truncate(body))
    try:
        return JSON.from_data(body, indent=2, default=str)
    except (TypeError, ValueError):
        return Text(_truncate(str(body)))


def _sse_summary(raw: str) -> RenderableType:
    """Summarize an event stream: event counts and assembled text deltas."""
    events = parse_sse_events(raw)
    counts: dict[str, int] = {}
    text_parts: list[str] = []
    for event in events:
        name = event["event"] or "message"
        counts[name] = counts.get(name, 0) + 1
        data = event["data"]
        if isinstance(data, dict):
            delta = data.get("delta")
            if isinstance(delta, dict) and isinstance(delta.get("text"), str):
                text_parts.append(delta["text"])

    table = Table(box=box.SIMPLE, padding=(0, 1), title=f"{len(events)} events")
    table.add_column("Event")
    table.add_column("Count", justify="right")
    for name, count in counts.items():
        table.add_row(name, str(count))

    parts: list[RenderableType] = [table]
    if text_parts:
        parts.append(Text("Assembled text:", style="bold"))
        parts.append(Text(_truncate("".join(text_parts))))
    return Group(*parts)


def _record_panel(index: int, record: ExchangeRecord) -> Panel:
    req = record.request
    parts: list[RenderableType] = [
        Text(f"Started {_format_ts(req.timestamp)}", style="dim"),
        Text("Request headers", style="bold underline"),
        _headers_table(req.headers),
        Text("Request body", style="bold underline"),
        _body_renderable(req.body),
    ]

    resp = record.response
    if resp is not None:
        content_type = next(
            (v for k, v in resp.headers.items() if k.lower() == "content-type"), ""
        )
        parts.append(Text(f"Response {resp.status_code} at {_format_ts(resp.timestamp)}", style="bold underline"))
        parts.append(_headers_table(resp.headers))
        parts.append(Text("Response body", style="bold underline"))
        if resp.body_raw is not None and "text/event-stream" in content_type:
            parts.append(_sse_summary(resp.body_raw))
        parts.append(_body_renderable(resp.body if resp.body is not None else resp.body_raw))
    if record.note:
        parts.append(Text(record.note, style="bold magenta"))

    title = Text.assemble((f"#{index} ", "bold"), f"{req.method} {req.url} ", _status_text(record))
    return Panel(Group(*parts), title=title, title_align="left", box=box.ROUNDED)


def summary_table(records: list[ExchangeRecord]) -> Table:
    table = Table(box=box.ROUNDED, title="Exchanges")
    table.add_column("#", justify="right")
    table.add_column("Method")
    table.add_column("URL", overflow="fold")
    table.add_column("Status")
    table.add_column("Duration", justify="right")
    for i, record in enumerate(records, 1):
        duration = record.duration_seconds
        table.add_row(
            str(i),
            record.request.method,
            record.request.url,
            _status_text(record),
            f"{duration:.2f}s" if duration is not None else "-",
        )
    return table


def render_report(
    records: list[ExchangeRecord],
    title: str,
    generated_at: datetime,
) -> str:
    """Render records into a self-contained HTML document.

    Args:
        records: Exchange records in completion order.
        title: Display title.
        generated_at: Timestamp shown in the report header.

    Returns:
        The HTML document as a string.
    """
    console = Console(
        record=True,
        file=io.StringIO(),
        width=REPORT_WIDTH,
        force_terminal=True,
        color_system="truecolor",
        legacy_windows=False,
    )
    console.print(Rule(Text(title, style="bold blue")))
    console.print(Text(f"Generated {generated_at.strftime('%Y-%m-%d %H:%M:%S')}", style="dim"))
    console.print()
    if not records:
        console.print(Text("No API calls recorded.", style="dim"))
    else:
        console.print(summary_table(records))
        for i, record in enumerate(records, 1):
            console.print(_record_panel(i, record))
    return console.export_html(clear=True)


def write_report(
    records: list[ExchangeRecord],
    output: Path,
    *,
    title: str,
    generated_at: datetime,
) -> Path:
    """Render and write a report, replacing any previous file.

    Uses an atomic write (write to a uniquely named .tmp, then rename),
    so concurrent writers never share a temp file.
    """
    content = render_report(records, title, generated_at)
    output.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        "w",
        encoding="utf-8",
        dir=output.parent,
        prefix=f"{output.name}.",
        suffix=".tmp",
        delete=False,
    ) as fh:
        fh.write(content)
        tmp_file = Path(fh.name)
    try:
        tmp_file.replace(output)
    except OSError:
        tmp_file.unlink(missing_ok=True)
        raise
    return output


def generate_report_from_jsonl(
    input_file: Path,
    output_file: Path | None = None,
    title: str | None = None,
) -> tuple[Path, int]:
    """Generate an HTML report from an existing JSONL log.

    Args:
        input_file: The JSONL log to read.
        output_file: Destination (default: input path with .html suffix).
        title: Report title (default: "<n> API Calls").

    Returns:
        Tuple of (written path, number of records rendered).

    Raises:
        FileNotFoundError: If input_file does not exist.
    """
    from apitrace.storage.jsonl_sink import read_records

    records = read_records(input_file)
    output = output_file or input_file.with_suffix(".html")
    write_report(
        records,
        output,
        title=title or default_title(records),
        generated_at=datetime.now(),
    )
    return output, len(records)


def records_to_json(records: list[ExchangeRecord]) -> str:
    """Serialize records as a JSON array (used by `apitrace report --json`)."""
    return json.dumps([r.model_dump(mode="json") for r in records], indent=2, ensure_ascii=False)
