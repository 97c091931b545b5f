"""Tests for apitrace.cli.report_cmd -- HTML, summary, and JSON output."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

import pytest
from typer.testing import CliRunner

from apitrace.cli.main import app
from apitrace.models.exchange import ExchangeRecord, RequestSnapshot, ResponseSnapshot

runner = CliRunner()


def _record(n: int) -> ExchangeRecord:
    return ExchangeRecord(
        request=RequestSnapshot(
            timestamp=1_700_000_000.0 + n,
            method="POST",
            url=f"https://api.anthropic.com/v1/messages?call={n}",
            body={"n": n},
        ),
        response=ResponseSnapshot(
            timestamp=1_700_000_000.5 + n,
            status_code=200,
            headers={"content-type": "application/json"},
            body={"id": f"msg_{n}"},
        ),
        completed_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
    )


@pytest.fixture
def log_file(tmp_path: Path) -> Path:
    path = tmp_path / "session.jsonl"
    path.write_text("".join(_record(n).model_dump_json() + "\n" for n in range(3)), encoding="utf-8")
    return path


@pytest.fixture
def opened(monkeypatch) -> list[str]:
    urls: list[str] = []
    monkeypatch.setattr("apitrace.cli.report_cmd.webbrowser.open", urls.append)
    return urls


def test_report_writes_html_next_to_log(log_file, opened):
    result = runner.invoke(app, ["report", str(log_file), "--no-open"])

    assert result.exit_code == 0
    assert "Wrote 3 record(s)" in result.output
    html_file = log_file.with_suffix(".html")
    assert html_file.exists()
    assert "3 API Calls" in html_file.read_text(encoding="utf-8")
    assert opened == []


def test_report_custom_output_and_title(log_file, tmp_path, opened):
    output = tmp_path / "custom.html"
    result = runner.invoke(app, ["report", str(log_file), str(output), "--title", "Nightly", "--no-open"])

    assert result.exit_code == 0
    assert "Nightly" in output.read_text(encoding="utf-8")


def test_report_opens_browser_by_default(log_file, opened):
    result = runner.invoke(app, ["report", str(log_file)])
    assert result.exit_code == 0
    assert opened == [log_file.with_suffix(".html").resolve().as_uri()]


def test_report_missing_file(tmp_path):
    result = runner.invoke(app, ["report", str(tmp_path / "missing.jsonl")])
    assert result.exit_code == 1
    assert "not found" in result.output


def test_report_summary(log_file):
    result = runner.invoke(app, ["report", str(log_file), "--summary"])
    assert result.exit_code == 0
    assert "Exchanges" in result.output
    assert not log_file.with_suffix(".html").exists()


def test_report_summary_empty_log(tmp_path):
    log = tmp_path / "empty.jsonl"
    log.write_text("")
    result = runner.invoke(app, ["report", str(log), "--summary"])
    assert result.exit_code == 0
    assert "No records found." in result.output


def test_report_json(log_file):
    result = runner.invoke(app, ["report", str(log_file), "--json"])
    assert result.exit_code == 0
    data = json.loads(result.output)
    assert [r["response"]["body"]["id"] for r in data] == ["msg_0", "msg_1", "msg_2"]
