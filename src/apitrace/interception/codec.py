"""Best-effort decoding of captured request and response bodies.

Nothing in here raises: JSON that fails to parse falls back to raw
text, unreadable bytes are decoded with replacement characters, and a
missing body decodes to None.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any, NamedTuple
from urllib.parse import parse_qsl

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


class DecodedBody(NamedTuple):
    """Decoded response body: structured value or raw text, never both."""

    body: Any = None
    body_raw: str | None = None


def _to_text(raw: bytes | str) -> str:
    if isinstance(raw, str):
        return raw
    return raw.decode("utf-8", errors="replace")


def decode_request_body(
    raw: bytes | str | Mapping[str, Any] | None,
    content_type: str = "",
) -> Any:
    """Decode a captured request body.

    JSON text parses to its structured value. Form-encoded bodies and
    mappings become a flat name -> value dict (a repeated name keeps its
    last value). Anything else is kept as text.

    Args:
        raw: The captured body.
        content_type: The request's Content-Type header, if any.

    Returns:
        The decoded body, or None for an empty body.
    """
    if raw is None:
        return None
    if isinstance(raw, Mapping):
        return {str(k): v for k, v in raw.items()}
    if not raw:
        return None

    text = _to_text(raw)
    try:
        return json.loads(text)
    except ValueError:
        pass

    if FORM_CONTENT_TYPE in content_type.lower():
        return dict(parse_qsl(text, keep_blank_values=True))
    return text


def decode_response_body(raw: bytes | str | None, content_type: str = "") -> DecodedBody:
    """Decode a captured response body according to its content type.

    JSON content types are parsed, with raw text as fallback. Event
    streams and other text types are kept raw and never JSON-parsed,
    and unknown types are captured as text.

    Args:
        raw: The accumulated body, or None if it could not be read.
        content_type: The response's Content-Type header.

    Returns:
        DecodedBody with exactly one of body / body_raw set, or neither
        when raw is None.
    """
    if raw is None:
        return DecodedBody()

    text = _to_text(raw)
    if "application/json" in content_type.lower():
        try:
            return DecodedBody(body=json.loads(text))
        except ValueError:
            return DecodedBody(body_raw=text)
    return DecodedBody(body_raw=text)


def parse_sse_events(raw: str) -> list[dict[str, Any]]:
    """Split a raw event-stream body into event dicts.

    Blocks are delimited by blank lines. ``event:`` lines set the event
    type and ``data:`` lines contribute to the payload, which is parsed
    as JSON when possible.

    Args:
        raw: The raw text/event-stream body.

    Returns:
        List of {"event": str, "data": parsed JSON, str, or None}.
    """
    events: list[dict[str, Any]] = []
    for block in raw.replace("\r\n", "\n").split("\n\n"):
        block = block.strip()
        if not block:
            continue
        event_type = ""
        data_lines: list[str] = []
        for line in block.split("\n"):
            if line.startswith("event:"):
                event_type = line[6:].strip()
            elif line.startswith("data:"):
                data_lines.append(line[5:].lstrip(" "))
        if event_type or data_lines:
            data_str = "\n".join(data_lines)
            data: Any = None
            if data_str:
                try:
                    data = json.loads(data_str)
                except ValueError:
                    data = data_str
            events.append({"event": event_type, "data": data})
    return events
