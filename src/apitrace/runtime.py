"""Process-wide activation of traffic recording.

``activate`` builds the single TraceEngine for this process, installs
the httpx shims, and arranges for pending calls to be drained into
orphan records when the interpreter exits.
"""

from __future__ import annotations

import atexit
import logging
import signal
import threading
from types import FrameType

from rich.console import Console

from apitrace.interception.engine import TraceEngine
from apitrace.models.config import TraceConfig, load_trace_config
from apitrace.utils.logging import setup_logging

logger = logging.getLogger(__name__)

console = Console(stderr=True)

_engine: TraceEngine | None = None


def get_engine() -> TraceEngine | None:
    """Return the active engine, if ``activate`` has run."""
    return _engine


def activate(config: TraceConfig | None = None) -> TraceEngine:
    """Create, start, and install the process-wide engine.

    A second call logs a warning and returns the existing engine.

    Args:
        config: Settings to use (default: apitrace.yaml + environment).

    Returns:
        The active TraceEngine.
    """
    global _engine
    if _engine is not None:
        logger.warning("apitrace already activated in this process")
        return _engine

    config = config or load_trace_config()
    setup_logging(config.log_level)

    engine = TraceEngine(config)
    engine.start()
    engine.install()
    _engine = engine

    atexit.register(shutdown)
    _install_sigterm_handler()

    console.print("[dim]apitrace: logs will be written to:[/dim]")
    console.print(f"[dim]  JSONL: {engine.log_file.resolve()}[/dim]")
    console.print(f"[dim]  HTML:  {engine.report_file.resolve()}[/dim]")
    return engine


def shutdown() -> None:
    """Drain the active engine. Registered with atexit by ``activate``."""
    if _engine is None:
        return
    orphans = _engine.shutdown()
    stats = _engine.stats()
    console.print(
        f"[dim]apitrace: logged {stats['total_pairs']} pair(s)"
        + (f", {len(orphans)} orphaned request(s)" if orphans else "")
        + "[/dim]"
    )


def _handle_sigterm(signum: int, frame: FrameType | None) -> None:  # noqa: ARG001
    # Exit through normal interpreter shutdown so atexit handlers run.
    raise SystemExit(128 + signum)


def _install_sigterm_handler() -> None:
    if threading.current_thread() is not threading.main_thread():
        return
    if signal.getsignal(signal.SIGTERM) is signal.SIG_DFL:
        signal.signal(signal.SIGTERM, _handle_sigterm)
