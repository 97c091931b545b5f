"""Storage subpackage: the JSONL exchange log."""

from apitrace.storage.jsonl_sink import TraceSink, read_records

__all__ = ["TraceSink", "read_records"]
