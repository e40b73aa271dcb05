"""
MCP resources exposing static reference data for Sophos Central workflows.

    sophos://live-discover-queries   osquery SQL templates for investigation
    sophos://policy-reference        policy types, settings and enforcement levels
    sophos://mitre-mappings          detection types mapped to ATT&CK techniques

Resources are read-only and carry no tenant data, so they are not covered by
TOOL_SCOPE_MAP.
"""

import json

from fastmcp import FastMCP
from fastmcp.exceptions import ResourceError

from sophos_mcp.catalog import (
    LIVE_DISCOVER_QUERIES,
    MITRE_MAPPINGS,
    POLICY_REFERENCE,
    ReferenceCatalog,
)


def register_resources(mcp: FastMCP, catalog: ReferenceCatalog) -> None:
    def read(name: str):
        try:
            return catalog.load(name)
        except FileNotFoundError as e:
            raise ResourceError(str(e)) from e

    @mcp.resource(
        "sophos://live-discover-queries",
        name="live-discover-queries",
        description=(
            "Built-in Live Discover query library with osquery SQL templates for endpoint "
            "investigation, threat hunting, and forensic analysis"
        ),
        mime_type="application/json",
    )
    def live_discover_queries() -> str:
        queries = read(LIVE_DISCOVER_QUERIES)
        return json.dumps({"queries": queries, "total": len(queries)}, indent=2)

    @mcp.resource(
        "sophos://policy-reference",
        name="policy-reference",
        description=(
            "Sophos Central policy settings reference: available policy types, "
            "their settings, and recommended configurations"
        ),
        mime_type="application/json",
    )
    def policy_reference() -> str:
        return json.dumps(read(POLICY_REFERENCE), indent=2)

    @mcp.resource(
        "sophos://mitre-mappings",
        name="mitre-mappings",
        description=(
            "MITRE ATT&CK technique mappings for Sophos EDR/XDR detections, "
            "mapping detection types to tactics and techniques"
        ),
        mime_type="application/json",
    )
    def mitre_mappings() -> str:
        return json.dumps(read(MITRE_MAPPINGS), indent=2)
