"""Header redaction for recorded exchanges.

Masks the values of credential-bearing transport headers before a
record is persisted. Names are matched case-insensitively by substring,
so ``X-Custom-Authorization`` is masked as well as ``Authorization``.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping

# Header name fragments considered sensitive.
SENSITIVE_HEADER_NAMES: tuple[str, ...] = (
    "authorization",
    "x-api-key",
    "x-auth-token",
    "cookie",
    "set-cookie",
    "x-session-token",
    "x-access-token",
    "bearer",
    "proxy-authorization",
)

REDACTED_PLACEHOLDER = "[REDACTED]"
ELLIPSIS_MARKER = "..."

# Masking thresholds: (min exclusive length, prefix kept, suffix kept)
_LONG_VALUE = (14, 10, 4)
_SHORT_VALUE = (4, 2, 2)


def mask_value(value: str) -> str:
    """Mask a single header value.

    Values longer than 14 characters keep their first 10 and last 4,
    values of 5-14 characters keep their first 2 and last 2, anything
    shorter is replaced by [REDACTED]. Masking an already-masked value
    returns it unchanged.

    Args:
        value: The raw header value.

    Returns:
        The masked value.
    """
    if value == REDACTED_PLACEHOLDER:
        return value
    for min_len, head, tail in (_LONG_VALUE, _SHORT_VALUE):
        if len(value) > min_len:
            return f"{value[:head]}{ELLIPSIS_MARKER}{value[-tail:]}"
    return REDACTED_PLACEHOLDER


def is_sensitive(name: str, sensitive_names: Iterable[str] = SENSITIVE_HEADER_NAMES) -> bool:
    """Check whether a header name contains any sensitive fragment."""
    lower = name.lower()
    return any(fragment in lower for fragment in sensitive_names)


def redact_headers(
    headers: Mapping[str, str],
    sensitive_names: Iterable[str] = SENSITIVE_HEADER_NAMES,
) -> dict[str, str]:
    """Return a copy of headers with sensitive values masked.

    Keys are never removed and the input mapping is never mutated.
    """
    fragments = tuple(name.lower() for name in sensitive_names)
    return {
        key: mask_value(str(value)) if is_sensitive(key, fragments) else str(value)
        for key, value in headers.items()
    }


def build_header_redactor(
    extra_names: list[str] | None = None,
) -> Callable[[Mapping[str, str]], dict[str, str]]:
    """Build a header redaction function with configured extra names.

    Built-in names are always included. Extra names extend (never
    replace) the built-in set.

    Args:
        extra_names: Optional header name fragments to add.

    Returns:
        A function mapping a header mapping to its redacted copy.
    """
    names = SENSITIVE_HEADER_NAMES + tuple(n.lower() for n in (extra_names or []) if n)

    def redact(headers: Mapping[str, str]) -> dict[str, str]:
        return redact_headers(headers, names)

    return redact
