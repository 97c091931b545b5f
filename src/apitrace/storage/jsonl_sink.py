"""JSONL sink for recorded exchanges.

Appends one ExchangeRecord per line to the session log and keeps the
completed pairs in memory so the HTML report can be fully regenerated
after each pair. This is the only place where persistence failures are
downgraded: they are logged and counted, never raised into the
intercepted call path.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import IO, Any

from pydantic import ValidationError

from apitrace.models.exchange import ExchangeRecord

logger = logging.getLogger(__name__)


class TraceSink:
    """Append-only JSONL log plus live report regeneration.

    File layout:
        <trace dir>/
            <base>.jsonl    # one ExchangeRecord per line, completion order
            <base>.html     # report rewritten after every completed pair

    The log is truncated once by ``open`` and only appended to after that.
    """

    def __init__(
        self,
        log_file: Path,
        report_file: Path | None = None,
        live_report: bool = True,
    ) -> None:
        self.log_file = log_file
        self.report_file = report_file
        self.live_report = live_report and report_file is not None
        self.pairs: list[ExchangeRecord] = []
        self.append_failures = 0
        self.report_failures = 0
        self._fh: IO[str] | None = None
        self._lock = threading.Lock()
        # Serializes snapshot + write so an older report never replaces a newer one.
        self._report_lock = threading.Lock()

    def open(self) -> None:
        """Create the trace directory and start a fresh log file."""
        self.log_file.parent.mkdir(parents=True, exist_ok=True)
        self.log_file.write_text("", encoding="utf-8")
        self._fh = self.log_file.open("a", encoding="utf-8")

    def close(self) -> None:
        if self._fh is not None:
            self._fh.close()
            self._fh = None

    def append(self, record: ExchangeRecord) -> bool:
        """Append a record as one JSON line.

        Returns:
            True if the line was written, False if the write failed.
        """
        try:
            line = record.model_dump_json() + "\n"
            with self._lock:
                if self._fh is None:
                    self.log_file.parent.mkdir(parents=True, exist_ok=True)
                    self._fh = self.log_file.open("a", encoding="utf-8")
                self._fh.write(line)
                self._fh.flush()
        except Exception as exc:
            with self._lock:
                self.append_failures += 1
            logger.warning("Failed to append record to %s: %s", self.log_file, exc)
            return False
        return True

    def on_pair_completed(self, record: ExchangeRecord) -> None:
        """Remember a completed pair and regenerate the report if enabled.

        The report lock is held from snapshot to write, so reports land
        in the same order as pairs and the last write covers every pair.
        """
        with self._report_lock:
            with self._lock:
                self.pairs.append(record)
                snapshot = list(self.pairs)
            if self.live_report:
                self._write_report(snapshot)

    def record_pair(self, record: ExchangeRecord) -> None:
        """Persist a completed pair: log line first, then report."""
        self.append(record)
        self.on_pair_completed(record)

    def record_orphans(self, records: list[ExchangeRecord]) -> int:
        """Append orphan records to the log only. Returns the number written."""
        return sum(1 for record in records if self.append(record))

    def regenerate_report(self, records: list[ExchangeRecord] | None = None) -> bool:
        """Rewrite the whole report from the given (default: all) pairs."""
        with self._report_lock:
            if records is None:
                with self._lock:
                    records = list(self.pairs)
            return self._write_report(records)

    def _write_report(self, records: list[ExchangeRecord]) -> bool:
        if self.report_file is None:
            return False
        from apitrace.report.html import default_title, write_report

        try:
            write_report(
                records,
                self.report_file,
                title=default_title(records),
                generated_at=datetime.now(),
            )
        except Exception as exc:
            with self._lock:
                self.report_failures += 1
            logger.warning("Failed to regenerate report %s: %s", self.report_file, exc)
            return False
        return True

    def stats(self) -> dict[str, Any]:
        return {
            "total_pairs": len(self.pairs),
            "append_failures": self.append_failures,
            "report_failures": self.report_failures,
            "log_file": str(self.log_file),
            "report_file": str(self.report_file) if self.report_file else None,
        }


def read_records(path: Path) -> list[ExchangeRecord]:
    """Load every parseable record from a JSONL log.

    Blank and malformed lines are skipped, so a corrupted line never
    hides the lines before or after it.

    Args:
        path: The JSONL file to read.

    Returns:
        Records in file order.

    Raises:
        FileNotFoundError: If the log does not exist.
    """
    records: list[ExchangeRecord] = []
    with path.open(encoding="utf-8", errors="replace") as fh:
        for lineno, line in enumerate(fh, 1):
            line = line.strip()
            if not line:
                continue
            try:
                records.append(ExchangeRecord.model_validate_json(line))
            except ValidationError as exc:
                logger.debug("Skipping malformed line %d of %s: %s", lineno, path, exc)
    return records
