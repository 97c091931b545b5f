"""Body accumulation for streamed responses.

A recording stream sits between the transport's response stream and
the caller. Every chunk is handed to the caller unchanged and a copy is
kept by a BodyAccumulator, which finalizes exactly once: when the
caller exhausts the stream, closes it, or the stream raises. A stream
closed before it was exhausted is recorded with the partial body and
an explanatory note instead of passing as a normal completion.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable, Iterator

import httpx

logger = logging.getLogger(__name__)

# (accumulated body, note) -> None
CompletionCallback = Callable[[bytes, str | None], None]

CLOSED_EARLY_NOTE = "Response body closed before completion"


class BodyAccumulator:
    """Collects body chunks and fires a completion callback once.

    Errors raised by the callback are logged and dropped so that record
    assembly can never break the caller's read loop.
    """

    def __init__(self, on_complete: CompletionCallback) -> None:
        self._callback = on_complete
        self._chunks: list[bytes] = []
        self.done = False

    @property
    def size(self) -> int:
        return sum(len(c) for c in self._chunks)

    def on_chunk(self, chunk: bytes) -> None:
        if not self.done:
            self._chunks.append(bytes(chunk))

    def on_complete(self) -> None:
        self._finish(None)

    def on_error(self, exc: BaseException) -> None:
        self._finish(f"Response body stream interrupted: {type(exc).__name__}: {exc}")

    def on_closed_early(self) -> None:
        self._finish(CLOSED_EARLY_NOTE)

    def _finish(self, note: str | None) -> None:
        if self.done:
            return
        self.done = True
        body = b"".join(self._chunks)
        self._chunks.clear()
        try:
            self._callback(body, note)
        except Exception:
            logger.exception("Failed to finalize recorded exchange")


class RecordingByteStream(httpx.SyncByteStream):
    """Sync response stream that tees chunks into an accumulator."""

    def __init__(self, stream: httpx.SyncByteStream, accumulator: BodyAccumulator) -> None:
        self._stream = stream
        self._accumulator = accumulator
        self._exhausted = False

    def __iter__(self) -> Iterator[bytes]:
        try:
            for chunk in self._stream:
                self._accumulator.on_chunk(chunk)
                yield chunk
        except GeneratorExit:
            self._accumulator.on_closed_early()
            raise
        except BaseException as exc:
            self._accumulator.on_error(exc)
            raise
        self._exhausted = True
        self._accumulator.on_complete()

    def close(self) -> None:
        try:
            self._stream.close()
        finally:
            if self._exhausted:
                self._accumulator.on_complete()
            else:
                self._accumulator.on_closed_early()


class AsyncRecordingByteStream(httpx.AsyncByteStream):
    """Async response stream that tees chunks into an accumulator."""

    def __init__(self, stream: httpx.AsyncByteStream, accumulator: BodyAccumulator) -> None:
        self._stream = stream
        self._accumulator = accumulator
        self._exhausted = False

    async def __aiter__(self) -> AsyncIterator[bytes]:
        try:
            async for chunk in self._stream:
                self._accumulator.on_chunk(chunk)
                yield chunk
        except GeneratorExit:
            self._accumulator.on_closed_early()
            raise
        # Cancellation arrives as CancelledError, which is not an Exception.
        except BaseException as exc:
            self._accumulator.on_error(exc)
            raise
        self._exhausted = True
        self._accumulator.on_complete()

    async def aclose(self) -> None:
        try:
            await self._stream.aclose()
        finally:
            if self._exhausted:
                self._accumulator.on_complete()
            else:
                self._accumulator.on_closed_early()
