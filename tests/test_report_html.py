"""Tests for HTML report rendering."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

from apitrace.models.exchange import ExchangeRecord, RequestSnapshot, ResponseSnapshot
from apitrace.report.html import (
    default_title,
    generate_report_from_jsonl,
    records_to_json,
    render_report,
    write_report,
)

GENERATED_AT = datetime(2026, 3, 1, 12, 0, 0)

SSE_TEXT = (
    "event: message_start\n"
    'data: {"type": "message_start"}\n\n'
    "event: content_block_delta\n"
    'data: {"type": "content_block_delta", "delta": {"type": "text_delta", "text": "Hello "}}\n\n'
    "event: content_block_delta\n"
    'data: {"type": "content_block_delta", "delta": {"type": "text_delta", "text": "world"}}\n\n'
)


def _record(status: int = 200, *, sse: bool = False) -> ExchangeRecord:
    content_type = "text/event-stream" if sse else "application/json"
    return ExchangeRecord(
        request=RequestSnapshot(
            timestamp=1_700_000_000.0,
            method="POST",
            url="https://api.anthropic.com/v1/messages",
            headers={"authorization": "Bearer sk-...9xyz"},
            body={"model": "claude-test-model", "stream": sse},
        ),
        response=ResponseSnapshot(
            timestamp=1_700_000_002.0,
            status_code=status,
            headers={"content-type": content_type},
            body=None if sse else {"id": "msg_report"},
            body_raw=SSE_TEXT if sse else None,
        ),
        completed_at=datetime(2026, 3, 1, tzinfo=timezone.utc),
    )


def test_default_title():
    assert default_title([_record(), _record()]) == "2 API Calls"


def test_render_is_deterministic():
    records = [_record(), _record(500)]
    first = render_report(records, "Session", GENERATED_AT)
    second = render_report(records, "Session", GENERATED_AT)
    assert first == second


def test_render_contains_exchange_details():
    html = render_report([_record()], "My Session", GENERATED_AT)
    assert html.lstrip().lower().startswith("<!doctype html>")
    assert "My Session" in html
    assert "claude-test-model" in html
    assert "msg_report" in html
    assert "Bearer sk-...9xyz" in html
    assert "2026-03-01 12:00:00" in html


def test_render_empty_record_list():
    html = render_report([], "0 API Calls", GENERATED_AT)
    assert "No API calls recorded." in html


def test_render_sse_summary_assembles_text():
    html = render_report([_record(sse=True)], "Streams", GENERATED_AT)
    assert "content_block_delta" in html
    assert "Hello world" in html


def test_write_report_replaces_file(tmp_path: Path):
    output = tmp_path / "out" / "report.html"
    write_report([_record()], output, title="First", generated_at=GENERATED_AT)
    write_report([], output, title="Second", generated_at=GENERATED_AT)
    html = output.read_text(encoding="utf-8")
    assert "Second" in html
    assert "First" not in html
    assert list(output.parent.glob("*.tmp")) == []


def test_generate_report_from_jsonl_default_output(tmp_path: Path):
    log = tmp_path / "session.jsonl"
    log.write_text("\n".join(r.model_dump_json() for r in [_record(), _record(404)]) + "\n", encoding="utf-8")

    output, count = generate_report_from_jsonl(log)

    assert output == tmp_path / "session.html"
    assert count == 2
    assert "2 API Calls" in output.read_text(encoding="utf-8")


def test_generate_report_from_jsonl_custom_title(tmp_path: Path):
    log = tmp_path / "session.jsonl"
    log.write_text(_record().model_dump_json() + "\n", encoding="utf-8")
    output, _ = generate_report_from_jsonl(log, tmp_path / "custom.html", title="Nightly run")
    assert output.name == "custom.html"
    assert "Nightly run" in output.read_text(encoding="utf-8")


def test_records_to_json():
    data = json.loads(records_to_json([_record()]))
    assert data[0]["request"]["method"] == "POST"
    assert data[0]["response"]["body"] == {"id": "msg_report"}


def test_write_report_failed_rename_leaves_no_temp_file(tmp_path: Path, monkeypatch):
    def refuse(self, target):
        raise OSError("rename refused")

    monkeypatch.setattr(Path, "replace", refuse)
    output = tmp_path / "report.html"
    with pytest.raises(OSError, match="rename refused"):
        write_report([_record()], output, title="Run", generated_at=GENERATED_AT)
    assert list(tmp_path.iterdir()) == []
