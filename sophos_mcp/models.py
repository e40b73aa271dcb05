"""
Value types shared by the API client and the MCP tools.

AccessToken and RegionBinding are frozen: the client replaces them as whole
values instead of mutating fields, so a concurrent reader always sees a
self-consistent pair (token + expiry, URL + tenant).
"""

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# Tokens are treated as expired this many seconds before the upstream expiry,
# to absorb clock skew and request latency.
TOKEN_EXPIRY_MARGIN = 60.0


@dataclass(frozen=True)
class AccessToken:
    """
    An OAuth2 bearer token and the instant it expires upstream.

    Attributes:
        value: Opaque bearer string (never logged)
        expires_at: Upstream expiry as a Unix timestamp (issue time + expires_in)
    """

    value: str
    expires_at: float

    def is_usable(self, now: float) -> bool:
        return now < self.expires_at - TOKEN_EXPIRY_MARGIN


@dataclass(frozen=True)
class RegionBinding:
    """Data-region base URL and tenant ID used for tenant-scoped calls."""

    api_url: str | None = None
    tenant_id: str | None = None

    @property
    def is_complete(self) -> bool:
        return bool(self.api_url and self.tenant_id)

    def fill_from(self, api_url: str | None, tenant_id: str | None) -> "RegionBinding":
        """Return a binding where the given values fill only the missing fields."""
        return RegionBinding(
            api_url=self.api_url or (api_url.rstrip("/") if api_url else None),
            tenant_id=self.tenant_id or tenant_id,
        )


class PageInfo(BaseModel):
    """Position of one page within a larger result set."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    current: int = 1
    size: int = 0
    total: int = 0
    items: int = 0
    max_size: int | None = Field(default=None, alias="maxSize")


class PaginatedResponse(BaseModel):
    """
    Standard list envelope returned by the Sophos Central API:

        {"items": [...], "pages": {"current": 1, "size": 50, "total": 3, "items": 120}}

    Items stay as plain dicts: the client does not interpret entity payloads.
    """

    model_config = ConfigDict(extra="allow")

    items: list[dict[str, Any]] = Field(default_factory=list)
    pages: PageInfo = Field(default_factory=PageInfo)

    def summary(self) -> dict[str, int]:
        """Pagination fields every list tool reports back to the caller."""
        return {
            "total": self.pages.items,
            "page": self.pages.current,
            "totalPages": self.pages.total,
        }
