"""
Shared test fixtures for the Sophos Central MCP server test suite.

Key fixtures:
- fake_api: An in-memory Sophos Central (token endpoint, whoami, data routes)
  served through httpx.MockTransport, recording every call it receives
- clock: A controllable clock for token-expiry tests
- make_client / client: SophosClient instances wired to fake_api
- make_token / make_auth_header: JWT factories for caller authentication

Testing approach:
- test_client.py: SophosClient against fake_api (token cache, discovery,
  error mapping, timeouts). No network.
- test_tool_handlers.py: tools, resources and prompts through an in-memory
  fastmcp.Client, no auth middleware.
- test_tools.py: the streamable-HTTP app end to end, through AuthMiddleware.
- test_auth.py / test_config.py: caller-token validation and settings.
"""

import asyncio
import datetime
from typing import Any

import httpx
import jwt
import pytest

from sophos_mcp.client import SophosClient
from sophos_mcp.config import SophosSettings, settings

TEST_SECRET = settings.jwt_secret_key
TEST_ALGORITHM = settings.jwt_algorithm

AUTH_URL = "https://id.sophos.test/api/v2/oauth2/token"
GLOBAL_URL = "https://api.central.sophos.test"
REGION_URL = "https://api-eu01.central.sophos.test"
TENANT_ID = "11111111-2222-3333-4444-555555555555"


def page(items: list[dict], total_items: int | None = None, current: int = 1) -> dict:
    """Build a Sophos list envelope around `items`."""
    count = len(items) if total_items is None else total_items
    return {
        "items": items,
        "pages": {"current": current, "size": len(items), "total": 1 if count else 0, "items": count},
    }


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSophosAPI:
    """
    Scriptable stand-in for Sophos Central.

    `calls` records one entry per request: "token", "whoami", or
    "<METHOD> <path>" for data calls, in arrival order. Data routes are
    registered with `route()`; each registered response is used once and the
    last one repeats.
    """

    def __init__(self):
        self.calls: list[str] = []
        self.requests: list[httpx.Request] = []
        self.tokens_issued = 0
        self.expires_in: int | None = 3600
        self.token_replies: list[dict[str, Any]] = []
        self.whoami: dict[str, Any] = {
            "id": TENANT_ID,
            "idType": "tenant",
            "apiHosts": {"global": GLOBAL_URL, "dataRegion": REGION_URL},
        }
        self.whoami_status = 200
        # Raw bytes sent instead of the whoami JSON, when set.
        self.whoami_content: bytes | None = None
        self.routes: dict[str, list[dict[str, Any]]] = {}
        self.delay = 0.0

    def route(self, method: str, path: str, *replies: dict[str, Any]) -> None:
        """Register replies (httpx.Response kwargs) for METHOD path."""
        self.routes[f"{method} {path}"] = list(replies)

    def fail_token(self, status_code: int = 401, **kwargs: Any) -> None:
        """Make the next token exchange answer with this reply."""
        self.token_replies.append({"status_code": status_code, **kwargs})

    def data_requests(self) -> list[httpx.Request]:
        return [
            r
            for r in self.requests
            if r.url.host != httpx.URL(AUTH_URL).host and r.url.path != "/whoami/v1"
        ]

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if str(request.url) == AUTH_URL:
            self.calls.append("token")
            if self.token_replies:
                return httpx.Response(**self.token_replies.pop(0))
            self.tokens_issued += 1
            body: dict[str, Any] = {
                "access_token": f"token-{self.tokens_issued}",
                "token_type": "bearer",
            }
            if self.expires_in is not None:
                body["expires_in"] = self.expires_in
            return httpx.Response(200, json=body)

        if request.url.path == "/whoami/v1":
            self.calls.append("whoami")
            if self.whoami_content is not None:
                return httpx.Response(self.whoami_status, content=self.whoami_content)
            return httpx.Response(self.whoami_status, json=self.whoami)

        key = f"{request.method} {request.url.path}"
        self.calls.append(key)
        if self.delay:
            await asyncio.sleep(self.delay)

        replies = self.routes.get(key)
        if not replies:
            return httpx.Response(404, json={"error": "notFound", "message": f"No route for {key}"})
        reply = replies.pop(0) if len(replies) > 1 else replies[0]
        return httpx.Response(**reply)


# ---------------------------------------------------------------------------
# Sophos client fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_api() -> FakeSophosAPI:
    return FakeSophosAPI()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_settings():
    """Factory for SophosSettings that ignores the process environment and .env."""

    def _make_settings(**overrides: Any) -> SophosSettings:
        values: dict[str, Any] = {
            "client_id": "test-client-id",
            "client_secret": "test-client-secret",
            "tenant_id": None,
            "api_url": None,
            "auth_url": AUTH_URL,
            "global_url": GLOBAL_URL,
            "timeout": 1.0,
        }
        values.update(overrides)
        return SophosSettings(_env_file=None, **values)

    return _make_settings


@pytest.fixture
def make_client(fake_api, clock, make_settings):
    """
    Factory for SophosClient instances backed by fake_api.

    Usage in tests:
        client = make_client(api_url=REGION_URL, tenant_id=TENANT_ID)
    """

    def _make_client(**overrides: Any) -> SophosClient:
        return SophosClient(
            make_settings(**overrides),
            transport=httpx.MockTransport(fake_api.handler),
            clock=clock,
        )

    return _make_client


@pytest.fixture
def client(make_client) -> SophosClient:
    """A client with nothing preconfigured: first call discovers the tenant."""
    return make_client()


# ---------------------------------------------------------------------------
# Caller token fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def make_token():
    """
    Factory fixture to generate caller JWTs with arbitrary claims.

    Usage in tests:
        token = make_token(sub="alice", scopes=["sophos:read"])
        # raw JWT string, not "Bearer ..." prefixed
    """

    def _make_token(
        sub: str = "test-user",
        scopes: list[str] | None = None,
        secret: str = TEST_SECRET,
        algorithm: str = TEST_ALGORITHM,
        exp_hours: float = 1.0,
        extra_claims: dict | None = None,
        include_exp: bool = True,
        include_sub: bool = True,
    ) -> str:
        """
        Args:
            scopes: None omits the scope claim entirely
            exp_hours: Negative values produce an already-expired token
            include_exp / include_sub: Set False to drop a required claim
        """
        now = datetime.datetime.now(datetime.timezone.utc)
        payload: dict = {"iat": now}
        if include_sub:
            payload["sub"] = sub
        if scopes is not None:
            payload["scope"] = scopes
        if include_exp:
            payload["exp"] = now + datetime.timedelta(hours=exp_hours)
        if extra_claims:
            payload.update(extra_claims)
        return jwt.encode(payload, secret, algorithm=algorithm)

    return _make_token


@pytest.fixture
def make_auth_header(make_token):
    """Like make_token, but returns the full "Bearer <token>" header value."""

    def _make_auth_header(**kwargs) -> str:
        return f"Bearer {make_token(**kwargs)}"

    return _make_auth_header
