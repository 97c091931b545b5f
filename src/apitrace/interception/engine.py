"""TraceEngine: the composition root for traffic recording.

Builds the matcher, correlator, and sink from a TraceConfig, installs
the httpx shims, and drains pending calls at shutdown. One engine is
constructed per traced process (see ``apitrace.runtime.activate``);
tests construct their own.
"""

from __future__ import annotations

import functools
import logging
import webbrowser
from datetime import datetime
from pathlib import Path
from typing import Any, ClassVar

import httpx

from apitrace.interception.correlator import Correlator
from apitrace.interception.matcher import ScopeMatcher
from apitrace.interception.redaction import build_header_redactor
from apitrace.interception.transports import (
    TracingAsyncTransport,
    TracingTransport,
    traced_send,
    traced_send_async,
)
from apitrace.models.config import TraceConfig, load_trace_config, resolve_log_paths
from apitrace.models.exchange import ExchangeRecord
from apitrace.storage.jsonl_sink import TraceSink

logger = logging.getLogger(__name__)


class TraceEngine:
    """Owns one recording session: config, scope, correlation, and sink.

    Args:
        config: Trace settings (default: all defaults).
        cwd: Working directory used to name the trace directory.
        now: Session start time used for the default log name.
    """

    # Engine whose shims are currently installed on the httpx transports.
    _installed_engine: ClassVar["TraceEngine | None"] = None

    def __init__(
        self,
        config: TraceConfig | None = None,
        *,
        cwd: Path | None = None,
        now: datetime | None = None,
    ) -> None:
        self.config = config or TraceConfig()
        self.log_file, self.report_file = resolve_log_paths(self.config, cwd=cwd, now=now)
        self.sink = TraceSink(self.log_file, self.report_file, live_report=self.config.live_report)
        self.matcher = ScopeMatcher.from_config(self.config)
        self.correlator = Correlator(
            self.sink,
            redact=build_header_redactor(self.config.extra_sensitive_headers),
        )
        self.installed = False
        self.started = False
        self._shut_down = False
        self._originals: dict[str, Any] = {}

    @classmethod
    def from_environment(cls, project_root: Path | None = None) -> "TraceEngine":
        """Build an engine from apitrace.yaml and APITRACE_* variables."""
        return cls(load_trace_config(project_root))

    def start(self) -> None:
        """Open the session log. Safe to call more than once."""
        if self.started:
            return
        self.sink.open()
        self.started = True
        logger.info("Recording to %s", self.log_file)

    def wrap_transport(self, transport: httpx.BaseTransport) -> TracingTransport:
        """Wrap a sync transport for injection into an httpx.Client.

        Do not combine with ``install()`` on the same HTTPTransport, or
        each exchange is recorded twice.
        """
        return TracingTransport(transport, self)

    def wrap_async_transport(self, transport: httpx.AsyncBaseTransport) -> TracingAsyncTransport:
        """Wrap an async transport for injection into an httpx.AsyncClient."""
        return TracingAsyncTransport(transport, self)

    def install(self) -> bool:
        """Route every httpx HTTPTransport/AsyncHTTPTransport call through this engine.

        Returns:
            True if the shims were installed by this call, False if this
            engine was already installed or another engine holds the install.
        """
        if self.installed:
            return False
        holder = TraceEngine._installed_engine
        if holder is not None and holder is not self:
            logger.warning("httpx shims already installed by another TraceEngine; skipping")
            return False

        engine = self
        original_sync = httpx.HTTPTransport.handle_request
        original_async = httpx.AsyncHTTPTransport.handle_async_request

        @functools.wraps(original_sync)
        def handle_request(transport: httpx.HTTPTransport, request: httpx.Request) -> httpx.Response:
            return traced_send(engine, request, functools.partial(original_sync, transport))

        @functools.wraps(original_async)
        async def handle_async_request(
            transport: httpx.AsyncHTTPTransport, request: httpx.Request
        ) -> httpx.Response:
            return await traced_send_async(engine, request, functools.partial(original_async, transport))

        self._originals = {"sync": original_sync, "async": original_async}
        httpx.HTTPTransport.handle_request = handle_request  # type: ignore[method-assign]
        httpx.AsyncHTTPTransport.handle_async_request = handle_async_request  # type: ignore[method-assign]
        self.installed = True
        TraceEngine._installed_engine = self
        return True

    def uninstall(self) -> None:
        """Restore the original httpx transport methods."""
        if not self.installed:
            return
        httpx.HTTPTransport.handle_request = self._originals["sync"]  # type: ignore[method-assign]
        httpx.AsyncHTTPTransport.handle_async_request = self._originals["async"]  # type: ignore[method-assign]
        self._originals = {}
        self.installed = False
        if TraceEngine._installed_engine is self:
            TraceEngine._installed_engine = None

    def shutdown(self) -> list[ExchangeRecord]:
        """Drain pending calls into orphan records and close the session.

        Idempotent: only the first call drains.

        Returns:
            The orphan records written at this shutdown.
        """
        if self._shut_down:
            return []
        self._shut_down = True

        orphans = self.correlator.drain()
        if orphans:
            logger.info("Logging %d orphaned request(s)", len(orphans))
            self.sink.record_orphans(orphans)
        self.sink.close()
        self.uninstall()

        if self.config.open_browser and self.report_file.exists():
            try:
                webbrowser.open(self.report_file.resolve().as_uri())
            except webbrowser.Error as exc:
                logger.warning("Failed to open browser: %s", exc)
        return orphans

    def stats(self) -> dict[str, Any]:
        return {
            **self.sink.stats(),
            "pending_requests": self.correlator.pending_count,
        }
