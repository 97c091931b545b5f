"""apitrace data models - re-exports all public model classes."""

from apitrace.models.config import TraceConfig, load_trace_config
from apitrace.models.exchange import ExchangeRecord, RequestSnapshot, ResponseSnapshot

__all__ = [
    "ExchangeRecord",
    "RequestSnapshot",
    "ResponseSnapshot",
    "TraceConfig",
    "load_trace_config",
]
