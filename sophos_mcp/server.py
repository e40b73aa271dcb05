"""
Sophos Central MCP server built on FastMCP v2.

This module wires the pieces together:
- SophosClient (client.py): OAuth2 token, region discovery, REST calls
- Tools for endpoints, alerts, detections, events, policies, tenants and
  Live Discover (tools/)
- Reference resources and workflow prompts (resources.py, prompts.py)
- Structured JSON logging to stderr
- Optional JWT caller authentication with scope-based tool access, for the
  streamable-HTTP transport
- Health and readiness HTTP endpoints (HTTP transport only)

Request path over HTTP with caller auth enabled:

    MCP client --(Bearer jwt)--> AuthMiddleware --> tool handler
        --> SophosClient --(service principal token)--> Sophos Central

The caller's JWT only decides which tools may run. Sophos Central always
sees the server's own OAuth2 client, never the caller.

Running the server:
    sophos-mcp                                   # stdio (desktop MCP clients)
    MCP_TRANSPORT=streamable-http sophos-mcp     # /mcp, /health, /ready
"""

import json
import logging
import sys
import uuid
from typing import Any, Sequence

from fastmcp import FastMCP
from fastmcp.server.dependencies import get_http_request
from fastmcp.server.middleware import CallNext, Middleware, MiddlewareContext
from fastmcp.tools.tool import Tool, ToolResult
from mcp.types import CallToolRequestParams, ListToolsRequest
from pydantic import ValidationError
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from sophos_mcp.auth import AuthError, TokenInfo, validate_token
from sophos_mcp.catalog import ReferenceCatalog
from sophos_mcp.client import SophosClient
from sophos_mcp.config import ServerSettings, get_sophos_settings, settings
from sophos_mcp.prompts import register_prompts
from sophos_mcp.resources import register_resources
from sophos_mcp.scopes import TOOL_SCOPE_MAP, check_tool_access
from sophos_mcp.tools.alerts import register_alert_tools
from sophos_mcp.tools.detections import register_detection_tools
from sophos_mcp.tools.endpoints import register_endpoint_tools
from sophos_mcp.tools.events import register_event_tools
from sophos_mcp.tools.live_discover import register_live_discover_tools
from sophos_mcp.tools.policies import register_policy_tools
from sophos_mcp.tools.tenants import register_tenant_tools

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
# stderr only: with the stdio transport, stdout carries the MCP stream.


class JSONLogFormatter(logging.Formatter):
    """
    One JSON object per line, with any `event_data` fields merged in:

        {"timestamp": "2026-02-06 10:30:00,123", "level": "WARNING",
         "logger": "sophos-mcp", "message": "Tool call denied",
         "request_id": "1f0c2a9e", "tool": "isolate_endpoint", "decision": "denied"}
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **getattr(record, "event_data", {}),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def configure_logging(level: str) -> None:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONLogFormatter())
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        handlers=[handler],
        force=True,
    )


logger = logging.getLogger("sophos-mcp")


# ---------------------------------------------------------------------------
# Caller authentication
# ---------------------------------------------------------------------------


def _new_request_id() -> str:
    return uuid.uuid4().hex[:8]


def _audit(level: int, message: str, request_id: str, **fields: Any) -> None:
    logger.log(level, message, extra={"event_data": {"request_id": request_id, **fields}})


class AuthMiddleware(Middleware):
    """
    Authenticates every tools/list and tools/call, then applies TOOL_SCOPE_MAP.

    tools/list only returns the tools the caller's scopes cover. tools/call
    checks again, so knowing a tool's name is not enough to run it; tools
    without a scope mapping are refused to everyone.
    """

    def __init__(self, secret_key: str, algorithm: str):
        self.secret_key = secret_key
        self.algorithm = algorithm

    def _caller(self, request_id: str) -> TokenInfo:
        # get_http_request() raises RuntimeError outside an HTTP request.
        try:
            header = get_http_request().headers.get("authorization")
        except RuntimeError:
            header = None

        try:
            caller = validate_token(header, self.secret_key, self.algorithm)
        except AuthError as e:
            _audit(logging.WARNING, "Caller rejected", request_id, decision="rejected", reason=e.message)
            raise

        _audit(
            logging.INFO,
            "Caller authenticated",
            request_id,
            subject=caller.subject,
            scopes=caller.scopes,
            decision="authenticated",
        )
        return caller

    async def on_list_tools(
        self,
        context: MiddlewareContext[ListToolsRequest],
        call_next: CallNext[ListToolsRequest, Sequence[Tool]],
    ) -> Sequence[Tool]:
        request_id = _new_request_id()
        caller = self._caller(request_id)

        tools = await call_next(context)
        visible = [tool for tool in tools if TOOL_SCOPE_MAP.get(tool.name) in caller.scopes]

        _audit(
            logging.INFO,
            "Tool list filtered",
            request_id,
            subject=caller.subject,
            visible_tools=len(visible),
            hidden_tools=len(tools) - len(visible),
            decision="filtered",
        )
        return visible

    async def on_call_tool(
        self,
        context: MiddlewareContext[CallToolRequestParams],
        call_next: CallNext[CallToolRequestParams, ToolResult],
    ) -> ToolResult:
        """FastMCP turns the PermissionError of a refused call into an error result."""
        request_id = _new_request_id()
        tool_name = context.message.name
        caller = self._caller(request_id)

        try:
            scope = check_tool_access(tool_name, caller.scopes)
        except PermissionError as e:
            _audit(
                logging.WARNING,
                "Tool call denied",
                request_id,
                subject=caller.subject,
                tool=tool_name,
                token_scopes=caller.scopes,
                decision="denied",
                reason=str(e),
            )
            raise

        _audit(
            logging.INFO,
            "Tool call allowed",
            request_id,
            subject=caller.subject,
            tool=tool_name,
            required_scope=scope,
            decision="allowed",
        )
        return await call_next(context)


# ---------------------------------------------------------------------------
# Server factory
# ---------------------------------------------------------------------------


def create_server(server_settings: ServerSettings, client: SophosClient) -> FastMCP:
    """
    Build the FastMCP server with every tool, resource and prompt registered.

    Args:
        server_settings: Transport, caller-auth and reference-data configuration
        client: Sophos Central client shared by all tool handlers
    """
    middleware = []
    if server_settings.transport == "streamable-http" and server_settings.auth_enabled:
        middleware.append(
            AuthMiddleware(server_settings.jwt_secret_key, server_settings.jwt_algorithm)
        )

    mcp = FastMCP(
        name="sophos-mcp",
        instructions=(
            "Sophos Central security operations: investigate endpoints, triage alerts "
            "and EDR/XDR detections, search SIEM events and audit logs, review policies "
            "and exclusions, manage partner tenants, and run Live Discover (osquery) "
            "queries. Response actions such as isolating endpoints change state in "
            "Sophos Central."
        ),
        middleware=middleware,
    )

    catalog = ReferenceCatalog(server_settings.reference_dir)

    register_endpoint_tools(mcp, client)
    register_alert_tools(mcp, client)
    register_detection_tools(mcp, client)
    register_event_tools(mcp, client, catalog)
    register_policy_tools(mcp, client)
    register_tenant_tools(mcp, client)
    register_live_discover_tools(mcp, client, catalog)
    register_resources(mcp, catalog)
    register_prompts(mcp)

    # Probes are plain HTTP routes, outside MCP and outside caller auth.

    @mcp.custom_route("/health", methods=["GET"])
    async def health(request: Request) -> Response:
        return JSONResponse({"status": "healthy"})

    @mcp.custom_route("/ready", methods=["GET"])
    async def ready(request: Request) -> Response:
        """Not ready until every reference catalog file is in place."""
        missing = catalog.missing()
        if missing:
            return JSONResponse(
                {"status": "not_ready", "reason": "reference files missing", "missing": missing},
                status_code=503,
            )
        return JSONResponse({"status": "ready"})

    return mcp


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    configure_logging(settings.log_level)

    try:
        sophos_settings = get_sophos_settings()
    except ValidationError as e:
        # Without credentials every tool call would fail; stop before serving.
        for error in e.errors():
            logger.error("Invalid configuration: %s", error["msg"])
        sys.exit(1)

    mcp = create_server(settings, SophosClient(sophos_settings))

    if settings.transport == "stdio":
        logger.info("Starting MCP server (transport=stdio)")
        mcp.run(transport="stdio")
        return

    logger.info(
        "Starting MCP server on %s:%d (transport=streamable-http, auth=%s)",
        settings.host,
        settings.port,
        "enabled" if settings.auth_enabled else "disabled",
    )
    mcp.run(
        transport="streamable-http",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level,
    )


if __name__ == "__main__":
    main()
