"""Interception subpackage: scope matching, redaction, correlation, and httpx shims."""

from apitrace.interception.correlator import CallState, Correlator
from apitrace.interception.engine import TraceEngine
from apitrace.interception.matcher import ScopeMatcher
from apitrace.interception.redaction import build_header_redactor, mask_value, redact_headers
from apitrace.interception.transports import TracingAsyncTransport, TracingTransport

__all__ = [
    "CallState",
    "Correlator",
    "ScopeMatcher",
    "TraceEngine",
    "TracingAsyncTransport",
    "TracingTransport",
    "build_header_redactor",
    "mask_value",
    "redact_headers",
]
