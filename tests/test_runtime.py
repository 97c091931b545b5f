"""Tests for apitrace.runtime -- process-wide activation and shutdown."""

from __future__ import annotations

import signal

import pytest

from apitrace import runtime
from apitrace.interception.correlator import CapturedRequest
from apitrace.models.config import TraceConfig
from apitrace.storage.jsonl_sink import read_records


@pytest.fixture
def exit_hooks(monkeypatch) -> list:
    """Isolate activation: no real atexit or SIGTERM handler, fresh engine slot."""
    hooks: list = []
    monkeypatch.setattr(runtime, "_engine", None)
    monkeypatch.setattr(runtime.atexit, "register", hooks.append)
    monkeypatch.setattr(runtime, "_install_sigterm_handler", lambda: None)
    yield hooks
    engine = runtime.get_engine()
    if engine is not None:
        engine.uninstall()
        engine.sink.close()


@pytest.fixture
def config(tmp_path) -> TraceConfig:
    return TraceConfig(log_dir=str(tmp_path), log_name="run")


def test_activate_starts_and_installs(exit_hooks, config):
    engine = runtime.activate(config)

    assert runtime.get_engine() is engine
    assert engine.installed
    assert engine.started
    assert engine.log_file.exists()
    assert exit_hooks == [runtime.shutdown]


def test_activate_twice_returns_same_engine(exit_hooks, config):
    first = runtime.activate(config)
    second = runtime.activate(TraceConfig())
    assert first is second
    assert len(exit_hooks) == 1


def test_shutdown_writes_orphans(exit_hooks, config):
    engine = runtime.activate(config)
    engine.correlator.begin(
        CapturedRequest(timestamp=1.0, method="POST", url="https://api.anthropic.com/v1/messages")
    )

    runtime.shutdown()

    [record] = read_records(engine.log_file)
    assert record.response is None
    assert engine.installed is False


def test_shutdown_without_engine_is_noop(monkeypatch):
    monkeypatch.setattr(runtime, "_engine", None)
    runtime.shutdown()


def test_sigterm_handler_exits_through_interpreter_shutdown():
    with pytest.raises(SystemExit) as excinfo:
        runtime._handle_sigterm(signal.SIGTERM, None)
    assert excinfo.value.code == 128 + signal.SIGTERM


def test_sigterm_handler_not_installed_over_existing(monkeypatch):
    def custom(signum, frame):
        pass

    monkeypatch.setattr(signal, "getsignal", lambda sig: custom)
    installed: list = []
    monkeypatch.setattr(signal, "signal", lambda sig, handler: installed.append(handler))
    runtime._install_sigterm_handler()
    assert installed == []


def test_sigterm_handler_installed_when_default(monkeypatch):
    monkeypatch.setattr(signal, "getsignal", lambda sig: signal.SIG_DFL)
    installed: list = []
    monkeypatch.setattr(signal, "signal", lambda sig, handler: installed.append((sig, handler)))
    runtime._install_sigterm_handler()
    assert installed == [(signal.SIGTERM, runtime._handle_sigterm)]
