"""Trace configuration model for apitrace.

Captures apitrace.yaml fields and environment overrides with sensible
defaults for the target API host, capture scope, and output paths.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from datetime import datetime
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field

CONFIG_FILENAME = "apitrace.yaml"
DEFAULT_API_BASE_URL = "https://api.anthropic.com"
DEFAULT_BASE_DIR_NAME = ".apitrace"

# Environment variable -> TraceConfig field
ENV_FIELDS: dict[str, str] = {
    "ANTHROPIC_BASE_URL": "api_base_url",
    "APITRACE_INCLUDE_ALL_REQUESTS": "include_all_requests",
    "APITRACE_LIVE_REPORT": "live_report",
    "APITRACE_LOG_NAME": "log_name",
    "APITRACE_BASE_DIR": "base_dir",
    "APITRACE_LOG_DIR": "log_dir",
    "APITRACE_OPEN_BROWSER": "open_browser",
    "APITRACE_LOG_LEVEL": "log_level",
}

_BOOL_FIELDS = frozenset({"include_all_requests", "live_report", "open_browser"})
_TRUTHY = frozenset({"true", "1", "yes", "on"})


class TraceConfig(BaseModel):
    """Settings consumed by the matcher, sink, and shims.

    Every field has a default; an empty environment and a missing
    apitrace.yaml produce a working configuration.
    """

    model_config = {"extra": "forbid"}

    api_base_url: str = DEFAULT_API_BASE_URL
    include_all_requests: bool = False
    live_report: bool = True
    log_name: str | None = None
    base_dir: str | None = None
    log_dir: str | None = None
    open_browser: bool = False
    extra_sensitive_headers: list[str] = Field(default_factory=list)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "WARNING"

    def to_env(self) -> dict[str, str]:
        """Export settings as environment variables for a child process.

        ANTHROPIC_BASE_URL is never exported: the traced program reads it
        too, and setting it would change where that program sends traffic.
        """
        env: dict[str, str] = {}
        for var, field_name in ENV_FIELDS.items():
            value = getattr(self, field_name)
            if value is None or field_name == "api_base_url":
                continue
            if isinstance(value, bool):
                env[var] = "true" if value else "false"
            else:
                env[var] = str(value)
        return env


def sanitize_cwd(cwd: str | Path) -> str:
    """Turn a working-directory path into a directory name.

    /home/jan/project -> home-jan-project, / -> _root.
    """
    sanitized = str(cwd).replace("\\", "/")
    if sanitized.startswith("/"):
        sanitized = sanitized[1:]
    sanitized = sanitized.replace("/", "-")
    return sanitized or "_root"


def default_trace_dir(base_dir: str | Path | None = None, cwd: Path | None = None) -> Path:
    """Return <base_dir or ~/.apitrace>/<sanitized cwd>."""
    base = Path(base_dir).expanduser() if base_dir else Path.home() / DEFAULT_BASE_DIR_NAME
    return base / sanitize_cwd(cwd or Path.cwd())


def default_log_name(now: datetime | None = None) -> str:
    """Timestamped log base name, e.g. log-2026-01-01-12-30-00."""
    return (now or datetime.now()).strftime("log-%Y-%m-%d-%H-%M-%S")


def resolve_log_paths(
    config: TraceConfig,
    *,
    cwd: Path | None = None,
    now: datetime | None = None,
) -> tuple[Path, Path]:
    """Resolve (jsonl_path, html_path) for a trace session.

    An explicit log_dir wins over base_dir-derived directories.
    """
    if config.log_dir:
        log_dir = Path(config.log_dir).expanduser()
    else:
        log_dir = default_trace_dir(config.base_dir, cwd)
    base_name = config.log_name or default_log_name(now)
    return log_dir / f"{base_name}.jsonl", log_dir / f"{base_name}.html"


def find_project_root(start: Path | None = None) -> Path:
    """Walk up from start (default: cwd) looking for apitrace.yaml.

    Returns cwd if no config file is found.
    """
    current = (start or Path.cwd()).resolve()
    if current.is_file():
        current = current.parent
    while current != current.parent:
        if (current / CONFIG_FILENAME).exists():
            return current
        current = current.parent
    return Path.cwd()


def _env_overrides(environ: Mapping[str, str]) -> dict[str, object]:
    overrides: dict[str, object] = {}
    for var, field_name in ENV_FIELDS.items():
        raw = environ.get(var)
        if raw is None or raw == "":
            continue
        if field_name in _BOOL_FIELDS:
            overrides[field_name] = raw.strip().lower() in _TRUTHY
        elif field_name == "log_level":
            overrides[field_name] = raw.strip().upper()
        else:
            overrides[field_name] = raw
    return overrides


def load_trace_config(
    project_root: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> TraceConfig:
    """Load TraceConfig from apitrace.yaml, then apply environment overrides.

    Args:
        project_root: Directory holding apitrace.yaml. If None, uses
            find_project_root() to locate it.
        environ: Environment mapping (default: os.environ).

    Returns:
        Validated TraceConfig instance.

    Raises:
        ValueError: If apitrace.yaml is not a mapping or fails validation.
    """
    if project_root is None:
        project_root = find_project_root()
    if environ is None:
        environ = os.environ

    raw: dict[str, object] = {}
    config_path = project_root / CONFIG_FILENAME
    if config_path.exists():
        import yaml

        loaded = yaml.safe_load(config_path.read_text(encoding="utf-8"))
        if loaded is not None:
            if not isinstance(loaded, dict):
                raise ValueError(f"{config_path} must contain a mapping, got {type(loaded).__name__}")
            raw.update(loaded)

    raw.update(_env_overrides(environ))
    return TraceConfig.model_validate(raw)
