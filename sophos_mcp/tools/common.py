"""Helpers shared by the tool modules."""

import json
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Annotated, Any

from fastmcp.exceptions import ToolError
from pydantic import Field

from sophos_mcp.catalog import ReferenceCatalog
from sophos_mcp.errors import SophosClientError

logger = logging.getLogger("sophos-mcp.tools")

Page = Annotated[int, Field(ge=1, description="Page number")]


@contextmanager
def sophos_errors(tool_name: str) -> Iterator[None]:
    """
    Turn client failures into MCP error results instead of crashing the call.

    FastMCP reports a ToolError as a result with isError=true; its text is the
    JSON form of the error ({"error", "kind", "statusCode", "retryAfter"}), so
    the calling agent can tell a rate limit from a bad credential.
    """
    try:
        yield
    except SophosClientError as e:
        payload = e.to_dict()
        logger.warning(
            "Tool call failed",
            extra={"event_data": {"tool": tool_name, **payload}},
        )
        raise ToolError(json.dumps(payload)) from e


def load_reference(catalog: ReferenceCatalog, name: str) -> Any:
    """Read a reference file for a static tool, failing the call if it is missing."""
    try:
        return catalog.load(name)
    except FileNotFoundError as e:
        raise ToolError(json.dumps({"error": str(e), "kind": "client"})) from e
