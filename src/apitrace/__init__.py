"""apitrace: record LLM API traffic from Python programs.

Intercepts outbound httpx calls to the target API, pairs each request
with its response, redacts credentials, appends the exchange to a JSONL
log, and renders the log as a self-contained HTML report.
"""

from apitrace.interception.engine import TraceEngine
from apitrace.models.config import TraceConfig, load_trace_config
from apitrace.models.exchange import ExchangeRecord

__version__ = "0.1.0"

__all__ = [
    "ExchangeRecord",
    "TraceConfig",
    "TraceEngine",
    "__version__",
    "load_trace_config",
]
