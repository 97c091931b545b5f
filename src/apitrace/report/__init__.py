"""Report subpackage: HTML rendering of recorded exchanges."""

from apitrace.report.html import generate_report_from_jsonl, render_report, write_report

__all__ = ["generate_report_from_jsonl", "render_report", "write_report"]
