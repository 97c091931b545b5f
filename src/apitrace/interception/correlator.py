"""Correlation of in-flight calls with their completions.

The Correlator owns the pending-call map. A call is registered by
``begin`` before the underlying transport is invoked and leaves the map
exactly once: through ``complete`` (record emitted), ``abort`` (no
record), or ``drain`` at shutdown (orphan record emitted).
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING

from apitrace.interception.codec import decode_request_body, decode_response_body
from apitrace.interception.redaction import redact_headers
from apitrace.models.exchange import (
    ORPHAN_NOTE,
    ExchangeRecord,
    RequestSnapshot,
    ResponseSnapshot,
)

if TYPE_CHECKING:
    from apitrace.storage.jsonl_sink import TraceSink

logger = logging.getLogger(__name__)


class CallState(str, Enum):
    """Lifecycle of a pending call."""

    STARTED = "started"
    COMPLETED = "completed"
    ABORTED = "aborted"
    ORPHANED = "orphaned"


@dataclass(frozen=True)
class CapturedRequest:
    """Request as seen on the wire, before redaction and decoding."""

    timestamp: float
    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes | None = None


@dataclass(frozen=True)
class CapturedResponse:
    """Response as seen on the wire, with an independent copy of the body."""

    timestamp: float
    status_code: int
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes | None = None


@dataclass
class PendingCall:
    call_id: str
    request: CapturedRequest
    state: CallState = CallState.STARTED


def generate_call_id() -> str:
    """Time component plus random component, unique within a process."""
    return f"req_{time.time_ns()}_{uuid.uuid4().hex[:12]}"


def _settle(pending: PendingCall, state: CallState) -> None:
    pending.state = state
    logger.debug("call %s %s: %s %s", pending.call_id, state.value, pending.request.method, pending.request.url)


def _header(headers: Mapping[str, str], name: str) -> str:
    for key, value in headers.items():
        if key.lower() == name:
            return value
    return ""


class Correlator:
    """Tracks in-flight calls and pairs each completion with its origin.

    Args:
        sink: Receives every completed record via ``record_pair``.
            Orphans are returned from ``drain`` for the caller to persist.
        redact: Header redaction function applied to both header sets.
    """

    def __init__(
        self,
        sink: "TraceSink | None" = None,
        redact: Callable[[Mapping[str, str]], dict[str, str]] = redact_headers,
    ) -> None:
        self._sink = sink
        self._redact = redact
        self._pending: dict[str, PendingCall] = {}

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def begin(self, request: CapturedRequest) -> str:
        """Register a new in-flight call and return its identifier.

        Registration is synchronous so the id exists before the caller
        reaches its first suspension point.
        """
        call_id = generate_call_id()
        while call_id in self._pending:
            call_id = generate_call_id()
        self._pending[call_id] = PendingCall(call_id=call_id, request=request)
        return call_id

    def complete(
        self,
        call_id: str,
        response: CapturedResponse,
        note: str | None = None,
    ) -> ExchangeRecord | None:
        """Pair a response with its pending call and hand the record to the sink.

        Args:
            call_id: Identifier returned by ``begin``.
            response: The captured response.
            note: Optional annotation stored on the record.

        Returns:
            The assembled record, or None if call_id is not pending.
        """
        pending = self._pending.pop(call_id, None)
        if pending is None:
            logger.debug("complete() for unknown call %s ignored", call_id)
            return None
        _settle(pending, CallState.COMPLETED)

        record = ExchangeRecord(
            request=self._request_snapshot(pending.request),
            response=self._response_snapshot(response),
            completed_at=datetime.now(timezone.utc),
            note=note,
        )
        if self._sink is not None:
            self._sink.record_pair(record)
        return record

    def abort(self, call_id: str) -> PendingCall | None:
        """Drop a pending call without producing a record.

        Returns:
            The aborted call, or None if call_id is not pending.
        """
        pending = self._pending.pop(call_id, None)
        if pending is not None:
            _settle(pending, CallState.ABORTED)
        return pending

    def drain(self) -> list[ExchangeRecord]:
        """Turn every remaining pending call into an orphan record.

        Leaves the pending map empty.
        """
        orphans: list[ExchangeRecord] = []
        pending_calls = list(self._pending.values())
        self._pending.clear()
        for pending in pending_calls:
            _settle(pending, CallState.ORPHANED)
            orphans.append(
                ExchangeRecord(
                    request=self._request_snapshot(pending.request),
                    response=None,
                    completed_at=datetime.now(timezone.utc),
                    note=ORPHAN_NOTE,
                )
            )
        return orphans

    def _request_snapshot(self, request: CapturedRequest) -> RequestSnapshot:
        return RequestSnapshot(
            timestamp=request.timestamp,
            method=request.method,
            url=request.url,
            headers=self._redact(request.headers),
            body=decode_request_body(request.body, _header(request.headers, "content-type")),
        )

    def _response_snapshot(self, response: CapturedResponse) -> ResponseSnapshot:
        decoded = decode_response_body(response.body, _header(response.headers, "content-type"))
        return ResponseSnapshot(
            timestamp=response.timestamp,
            status_code=response.status_code,
            headers=self._redact(response.headers),
            body=decoded.body,
            body_raw=decoded.body_raw,
        )
