"""
Error taxonomy for the Sophos Central API client.

Every failure the client surfaces is one of three exception types:

    SophosClientError          transport/protocol failure (timeouts, 5xx, bad JSON)
     +- SophosAuthError        credential rejection or token invalidation (401/403)
     +- SophosRateLimitError   429 Too Many Requests, with an optional retry hint

Each error also carries a `kind` tag so callers (the MCP tools) can render a
structured payload without isinstance chains. The client never retries on its
own: the status code and retry hint are there so the caller can decide.
"""

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Machine-readable classification of a client failure."""

    CLIENT = "client"
    TIMEOUT = "timeout"
    TRANSPORT = "transport"
    AUTH = "auth"
    RATE_LIMIT = "rate_limit"


class SophosClientError(Exception):
    """
    Base error for all Sophos Central API failures.

    Attributes:
        message: Human-readable description (safe to show to the caller)
        status_code: HTTP status of the failing response, if there was one
        kind: ErrorKind tag, CLIENT unless a subclass or caller says otherwise
        retry_after: Seconds the upstream asked us to wait (rate limits only)
    """

    default_kind = ErrorKind.CLIENT

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        kind: ErrorKind | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.kind = kind or self.default_kind
        self.retry_after: int | None = None
        super().__init__(message)

    @property
    def is_timeout(self) -> bool:
        return self.kind is ErrorKind.TIMEOUT

    def to_dict(self) -> dict[str, Any]:
        """Structured form used for MCP tool error payloads."""
        payload: dict[str, Any] = {"error": self.message, "kind": self.kind.value}
        if self.status_code is not None:
            payload["statusCode"] = self.status_code
        if self.retry_after is not None:
            payload["retryAfter"] = self.retry_after
        return payload


class SophosAuthError(SophosClientError):
    """OAuth2 token exchange failed or the API rejected our token (401/403)."""

    default_kind = ErrorKind.AUTH


class SophosRateLimitError(SophosClientError):
    """The API answered 429; `retry_after` holds the Retry-After seconds if sent."""

    default_kind = ErrorKind.RATE_LIMIT

    def __init__(self, message: str, retry_after: int | None = None):
        super().__init__(message, status_code=429)
        self.retry_after = retry_after
