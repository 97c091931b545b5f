"""Exchange models for the JSONL traffic log.

Pydantic models (not dataclasses) because records are serialized to one
JSON object per log line and read back by the report generator.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

ORPHAN_NOTE = "ORPHANED_REQUEST - No matching response received"


class RequestSnapshot(BaseModel):
    """Captured request metadata and decoded body.

    Headers hold whatever the caller sent until the Correlator builds
    the record; only redacted headers ever reach an ExchangeRecord.
    """

    model_config = ConfigDict(frozen=True)

    timestamp: float  # seconds since epoch
    method: str
    url: str
    headers: dict[str, str] = Field(default_factory=dict)
    body: Any = None


class ResponseSnapshot(BaseModel):
    """Captured response metadata.

    ``body`` holds a decoded JSON document, ``body_raw`` the text form
    for event streams, plain text, or anything that failed to parse.
    Both are None when the body could not be read at all.
    """

    model_config = ConfigDict(frozen=True)

    timestamp: float
    status_code: int
    headers: dict[str, str] = Field(default_factory=dict)
    body: Any = None
    body_raw: str | None = None


class ExchangeRecord(BaseModel):
    """One request paired with its response (or None for an orphan)."""

    model_config = ConfigDict(frozen=True)

    request: RequestSnapshot
    response: ResponseSnapshot | None = None
    completed_at: datetime
    note: str | None = None

    @property
    def is_orphan(self) -> bool:
        return self.response is None

    @property
    def duration_seconds(self) -> float | None:
        """Seconds between request start and response headers."""
        if self.response is None:
            return None
        return max(self.response.timestamp - self.request.timestamp, 0.0)
