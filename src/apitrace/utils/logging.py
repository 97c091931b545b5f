"""Logging configuration for apitrace.

Provides logging setup with a Rich handler on stderr and header value
masking, so credentials never leak through diagnostic output.
"""

import logging
import re

from rich.console import Console
from rich.logging import RichHandler

from apitrace.interception.redaction import SENSITIVE_HEADER_NAMES, mask_value

LOGGER_NAME = "apitrace"


class HeaderMaskingFilter(logging.Filter):
    """Logging filter that masks sensitive header values.

    Matches ``name: value`` and ``name=value`` forms for every sensitive
    header name and masks the value the same way recorded headers are.
    """

    HEADER_PATTERN = re.compile(
        r"(?i)([\w-]*(?:" + "|".join(re.escape(n) for n in SENSITIVE_HEADER_NAMES) + r")[\w-]*['\"]?\s*[:=]\s*['\"]?)"
        r"([^'\",;}\n]+)"
    )

    def filter(self, record: logging.LogRecord) -> bool:
        """Mask header values in the message and string args.

        Returns:
            Always True (records are modified, never dropped)
        """
        if isinstance(record.msg, str):
            record.msg = self._mask(record.msg)
        if record.args and isinstance(record.args, tuple):
            record.args = tuple(self._mask(a) if isinstance(a, str) else a for a in record.args)
        return True

    def _mask(self, text: str) -> str:
        return self.HEADER_PATTERN.sub(lambda m: m.group(1) + mask_value(m.group(2).strip()), text)


def setup_logging(level: int | str = logging.WARNING, name: str | None = None) -> logging.Logger:
    """Set up apitrace logging on stderr with header masking.

    Args:
        level: Logging level (default: WARNING, to stay out of the way
            of the traced program's own output)
        name: Logger name (default: "apitrace")

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name or LOGGER_NAME)
    logger.setLevel(level)

    # Remove existing handlers to avoid duplicates
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        markup=False,
        rich_tracebacks=False,
    )
    handler.setLevel(level)
    handler.addFilter(HeaderMaskingFilter())
    logger.addHandler(handler)
    logger.propagate = False

    return logger
