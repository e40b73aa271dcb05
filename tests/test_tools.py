"""
Integration tests for caller authorization over the streamable-HTTP transport.

The request goes through the full Starlette -> FastMCP -> AuthMiddleware ->
tool handler -> SophosClient pipeline; only Sophos Central itself is faked.

Test approach:
    httpx.AsyncClient drives the ASGI app in memory. The app's lifespan must
    be running (it starts the StreamableHTTP session manager's task group),
    so the fixture starts it by hand. Each test then follows the MCP protocol:

    1. POST /mcp "initialize" to open a session
    2. Reuse the returned Mcp-Session-Id for "tools/list" / "tools/call",
       each carrying an Authorization header
"""

import asyncio
import json

import httpx
import pytest

from sophos_mcp.config import ServerSettings
from sophos_mcp.scopes import READ_SCOPE, RESPOND_SCOPE, TOOL_SCOPE_MAP
from sophos_mcp.server import create_server
from tests.conftest import REGION_URL, TENANT_ID, page

MCP_URL = "http://testserver/mcp"


@pytest.fixture
async def http_app(make_client):
    """ASGI app of a server with caller auth enabled, with its lifespan running."""
    server_settings = ServerSettings(
        _env_file=None, transport="streamable-http", auth_enabled=True
    )
    mcp = create_server(server_settings, make_client(api_url=REGION_URL, tenant_id=TENANT_ID))
    app = mcp.http_app(transport="streamable-http")

    # ASGI lifespan: send "lifespan.startup", then hold until teardown.
    startup_complete = asyncio.Event()
    shutdown_triggered = asyncio.Event()

    async def receive():
        if not startup_complete.is_set():
            startup_complete.set()
            return {"type": "lifespan.startup"}
        await shutdown_triggered.wait()
        return {"type": "lifespan.shutdown"}

    async def send(message):
        pass

    lifespan_task = asyncio.create_task(
        app({"type": "lifespan", "asgi": {"version": "3.0"}}, receive, send)
    )
    await startup_complete.wait()
    await asyncio.sleep(0.1)

    yield app

    shutdown_triggered.set()
    await lifespan_task


@pytest.fixture
async def mcp_session(http_app, make_auth_header):
    """Factory for initialized MCP sessions bound to a token with the given scopes."""
    clients = []

    async def _create(sub: str = "test-user", scopes: list[str] | None = None):
        auth_header = make_auth_header(sub=sub, scopes=scopes or [])
        client = httpx.AsyncClient(transport=httpx.ASGITransport(app=http_app))
        clients.append(client)
        session = McpSession(client, auth_header)
        await session.initialize()
        return session

    yield _create

    for client in clients:
        await client.aclose()


class McpSession:
    def __init__(self, client: httpx.AsyncClient, auth_header: str | None):
        self.client = client
        self.auth_header = auth_header
        self.session_id: str | None = None
        self._next_id = 1

    def _headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json, text/event-stream",
        }
        if self.session_id:
            headers["Mcp-Session-Id"] = self.session_id
        if self.auth_header:
            headers["Authorization"] = self.auth_header
        return headers

    async def rpc(self, method: str, params: dict) -> httpx.Response:
        self._next_id += 1
        return await self.client.post(
            MCP_URL,
            headers=self._headers(),
            json={"jsonrpc": "2.0", "id": self._next_id, "method": method, "params": params},
        )

    async def initialize(self) -> None:
        response = await self.rpc(
            "initialize",
            {
                "protocolVersion": "2025-03-26",
                "capabilities": {},
                "clientInfo": {"name": "test-client", "version": "1.0"},
            },
        )
        self.session_id = response.headers.get("mcp-session-id")

    async def list_tools(self) -> dict:
        return parse_sse_response((await self.rpc("tools/list", {})).text)

    async def call_tool(self, tool_name: str, arguments: dict | None = None) -> dict:
        response = await self.rpc("tools/call", {"name": tool_name, "arguments": arguments or {}})
        return parse_sse_response(response.text)


def parse_sse_response(text: str) -> dict:
    """
    Extract the JSON-RPC message from a Streamable HTTP SSE body:

        event: message
        data: {"jsonrpc":"2.0","id":1,"result":{...}}
    """
    for line in text.strip().split("\n"):
        if line.startswith("data: "):
            return json.loads(line[6:])
    return {}


def tool_names(data: dict) -> list[str]:
    return sorted(t["name"] for t in data["result"]["tools"])


# ---------------------------------------------------------------------------
# tools/list filtering
# ---------------------------------------------------------------------------


class TestToolListFiltering:
    async def test_read_scope_hides_response_actions(self, mcp_session):
        session = await mcp_session(sub="analyst", scopes=[READ_SCOPE])

        names = tool_names(await session.list_tools())

        assert names == sorted(n for n, s in TOOL_SCOPE_MAP.items() if s == READ_SCOPE)
        assert "isolate_endpoint" not in names
        assert "run_query" not in names

    async def test_responder_sees_every_tool(self, mcp_session):
        session = await mcp_session(sub="responder", scopes=[READ_SCOPE, RESPOND_SCOPE])

        assert tool_names(await session.list_tools()) == sorted(TOOL_SCOPE_MAP)

    async def test_no_scopes_sees_no_tools(self, mcp_session):
        session = await mcp_session(sub="dave", scopes=[])

        assert tool_names(await session.list_tools()) == []


# ---------------------------------------------------------------------------
# tools/call authorization
# ---------------------------------------------------------------------------


class TestToolCallAuthorization:
    async def test_read_scope_cannot_isolate(self, mcp_session, fake_api):
        session = await mcp_session(sub="analyst", scopes=[READ_SCOPE])

        data = await session.call_tool("isolate_endpoint", {"endpoint_id": "ep-1"})

        result = data.get("result", {})
        assert result.get("isError") is True
        assert RESPOND_SCOPE in result["content"][0]["text"]
        assert fake_api.calls == []

    async def test_authorized_call_reaches_sophos(self, mcp_session, fake_api):
        fake_api.route(
            "GET",
            "/endpoint/v1/endpoints",
            {"status_code": 200, "json": page([{"id": "ep-1", "hostname": "WS-01"}])},
        )
        session = await mcp_session(sub="analyst", scopes=[READ_SCOPE])

        data = await session.call_tool("list_endpoints", {"page_size": 5})

        result = data.get("result", {})
        assert result.get("isError") is not True
        body = json.loads(result["content"][0]["text"])
        assert body["endpoints"][0]["hostname"] == "WS-01"
        assert fake_api.calls == ["token", "GET /endpoint/v1/endpoints"]
        assert fake_api.data_requests()[0].headers["x-tenant-id"] == TENANT_ID

    async def test_responder_can_isolate(self, mcp_session, fake_api):
        fake_api.route(
            "POST", "/endpoint/v1/endpoints/ep-1/isolation", {"status_code": 200, "json": {"enabled": True}}
        )
        session = await mcp_session(sub="responder", scopes=[READ_SCOPE, RESPOND_SCOPE])

        data = await session.call_tool("isolate_endpoint", {"endpoint_id": "ep-1"})

        assert data["result"].get("isError") is not True
        assert fake_api.calls == ["token", "POST /endpoint/v1/endpoints/ep-1/isolation"]

    async def test_call_without_token_is_rejected(self, mcp_session, fake_api):
        session = await mcp_session(sub="analyst", scopes=[READ_SCOPE])
        session.auth_header = None

        data = await session.call_tool("list_endpoints")

        # Rejected either as a JSON-RPC error or as an error tool result.
        assert "error" in data or data["result"].get("isError") is True
        assert fake_api.calls == []


# ---------------------------------------------------------------------------
# Health and readiness
# ---------------------------------------------------------------------------


class TestProbes:
    async def test_health(self, http_app):
        async with httpx.AsyncClient(transport=httpx.ASGITransport(app=http_app)) as client:
            response = await client.get("http://testserver/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    async def test_ready_when_reference_files_present(self, http_app):
        async with httpx.AsyncClient(transport=httpx.ASGITransport(app=http_app)) as client:
            response = await client.get("http://testserver/ready")

        assert response.status_code == 200
        assert response.json() == {"status": "ready"}

    async def test_not_ready_without_reference_files(self, make_client, tmp_path):
        server_settings = ServerSettings(
            _env_file=None, transport="streamable-http", reference_dir=tmp_path
        )
        app = create_server(server_settings, make_client()).http_app(transport="streamable-http")

        async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app)) as client:
            response = await client.get("http://testserver/ready")

        assert response.status_code == 503
        body = response.json()
        assert body["status"] == "not_ready"
        assert "mitre-mappings" in body["missing"]
