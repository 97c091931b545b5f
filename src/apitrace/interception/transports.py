"""Tracing decorators over httpx transports.

``TracingTransport`` and ``TracingAsyncTransport`` wrap any httpx
transport. Out-of-scope requests go straight to the wrapped transport.
In-scope requests are snapshotted, registered with the Correlator, and
their response stream is teed into a BodyAccumulator so the caller
still reads every byte itself, with unchanged data and timing.

The same send logic backs the process-wide install in
``TraceEngine.install``, which wraps ``httpx.HTTPTransport`` and
``httpx.AsyncHTTPTransport`` instead of a single transport instance.
"""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

import httpx

from apitrace.interception.accumulator import (
    AsyncRecordingByteStream,
    BodyAccumulator,
    RecordingByteStream,
)
from apitrace.interception.correlator import CapturedRequest, CapturedResponse

if TYPE_CHECKING:
    from apitrace.interception.engine import TraceEngine


def decode_content_encoding(headers: httpx.Headers, body: bytes) -> bytes:
    """Undo Content-Encoding (gzip, deflate, br...) on a raw body copy.

    Falls back to the raw bytes if the body cannot be decoded.
    """
    if not headers.get("content-encoding"):
        return body
    try:
        return httpx.Response(200, headers=headers, content=body).content
    except httpx.DecodingError:
        return body


def capture_request(request: httpx.Request, body: bytes | None) -> CapturedRequest:
    return CapturedRequest(
        timestamp=time.time(),
        method=request.method,
        url=str(request.url),
        headers=dict(request.headers),
        body=body,
    )


def _request_body(request: httpx.Request) -> bytes:
    try:
        return request.content
    except httpx.RequestNotRead:
        return request.read()


async def _arequest_body(request: httpx.Request) -> bytes:
    try:
        return request.content
    except httpx.RequestNotRead:
        return await request.aread()


def _track_response(engine: "TraceEngine", call_id: str, response: httpx.Response, is_async: bool) -> httpx.Response:
    """Attach body capture to a response and return the same response object."""
    captured_at = time.time()
    headers = dict(response.headers)

    def finish(body: bytes, note: str | None) -> None:
        engine.correlator.complete(
            call_id,
            CapturedResponse(
                timestamp=captured_at,
                status_code=response.status_code,
                headers=headers,
                body=body,
            ),
            note=note,
        )

    if response.is_stream_consumed:
        # Body was buffered when the response was built; content is already decoded.
        accumulator = BodyAccumulator(finish)
        accumulator.on_chunk(response.content)
        accumulator.on_complete()
        return response

    accumulator = BodyAccumulator(
        lambda body, note: finish(decode_content_encoding(response.headers, body), note)
    )
    if is_async:
        response.stream = AsyncRecordingByteStream(response.stream, accumulator)  # type: ignore[arg-type]
    else:
        response.stream = RecordingByteStream(response.stream, accumulator)  # type: ignore[arg-type]
    return response


def traced_send(
    engine: "TraceEngine",
    request: httpx.Request,
    send: Callable[[httpx.Request], httpx.Response],
) -> httpx.Response:
    """Issue a sync request through ``send``, recording it if in scope."""
    if not engine.matcher.is_in_scope(request.url):
        return send(request)

    call_id = engine.correlator.begin(capture_request(request, _request_body(request)))
    try:
        response = send(request)
    except BaseException:
        engine.correlator.abort(call_id)
        raise
    return _track_response(engine, call_id, response, is_async=False)


async def traced_send_async(
    engine: "TraceEngine",
    request: httpx.Request,
    send: Callable[[httpx.Request], Awaitable[httpx.Response]],
) -> httpx.Response:
    """Issue an async request through ``send``, recording it if in scope."""
    if not engine.matcher.is_in_scope(request.url):
        return await send(request)

    body = await _arequest_body(request)
    # begin() registers before the first suspension point below.
    call_id = engine.correlator.begin(capture_request(request, body))
    try:
        response = await send(request)
    except BaseException:
        engine.correlator.abort(call_id)
        raise
    return _track_response(engine, call_id, response, is_async=True)


class TracingTransport(httpx.BaseTransport):
    """Sync transport decorator that records in-scope exchanges.

    Usage:
        client = httpx.Client(transport=engine.wrap_transport(httpx.HTTPTransport()))
    """

    def __init__(self, transport: httpx.BaseTransport, engine: "TraceEngine") -> None:
        self._transport = transport
        self._engine = engine

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        return traced_send(self._engine, request, self._transport.handle_request)

    def close(self) -> None:
        self._transport.close()


class TracingAsyncTransport(httpx.AsyncBaseTransport):
    """Async transport decorator that records in-scope exchanges."""

    def __init__(self, transport: httpx.AsyncBaseTransport, engine: "TraceEngine") -> None:
        self._transport = transport
        self._engine = engine

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        return await traced_send_async(self._engine, request, self._transport.handle_async_request)

    async def aclose(self) -> None:
        await self._transport.aclose()
