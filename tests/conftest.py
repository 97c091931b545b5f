"""Shared fixtures for apitrace tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from apitrace.interception.engine import TraceEngine
from apitrace.models.config import ENV_FIELDS, TraceConfig


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Keep APITRACE_* and ANTHROPIC_BASE_URL from the outer shell out of tests."""
    for var in ENV_FIELDS:
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def trace_config(tmp_path: Path) -> TraceConfig:
    return TraceConfig(log_dir=str(tmp_path / "traces"), log_name="session")


@pytest.fixture
def engine(trace_config: TraceConfig):
    """A started engine writing under tmp_path; shims are never left installed."""
    eng = TraceEngine(trace_config)
    eng.start()
    yield eng
    eng.uninstall()
    eng.sink.close()
