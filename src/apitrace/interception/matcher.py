"""Scope predicate deciding which outbound calls get recorded."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING
from urllib.parse import urlsplit

from apitrace.models.config import DEFAULT_API_BASE_URL

if TYPE_CHECKING:
    from apitrace.models.config import TraceConfig

MESSAGES_ENDPOINT = "/v1/messages"

# AWS Bedrock runtime, recorded regardless of path.
ALTERNATE_HOST_PATTERN = re.compile(r"bedrock-runtime\.[^/]*\.amazonaws\.com")


def resolve_api_host(base_url: str) -> str:
    """Extract the hostname from a base URL, falling back to the default host."""
    try:
        host = urlsplit(base_url).hostname
    except ValueError:
        host = None
    if not host:
        host = urlsplit(DEFAULT_API_BASE_URL).hostname or ""
    return host


class ScopeMatcher:
    """Decides whether an outbound target is in scope for recording.

    A target matches when it contains the primary API host and the
    messages endpoint path, or when it matches the alternate provider
    pattern. ``include_all_requests`` drops the path restriction.
    """

    def __init__(
        self,
        api_host: str,
        include_all_requests: bool = False,
        endpoint_path: str = MESSAGES_ENDPOINT,
    ) -> None:
        self.api_host = api_host
        self.include_all_requests = include_all_requests
        self.endpoint_path = endpoint_path

    @classmethod
    def from_config(cls, config: "TraceConfig") -> "ScopeMatcher":
        return cls(
            api_host=resolve_api_host(config.api_base_url),
            include_all_requests=config.include_all_requests,
        )

    def is_in_scope(self, target: object) -> bool:
        """Return True if the target should be recorded. Never raises."""
        try:
            url = str(target)
        except Exception:
            return False
        if not url or not self.api_host:
            return False

        is_primary = self.api_host in url
        is_alternate = ALTERNATE_HOST_PATTERN.search(url) is not None

        if self.include_all_requests:
            return is_primary or is_alternate
        return (is_primary and self.endpoint_path in url) or is_alternate
