"""
Endpoint management tools: listing, details, isolation, scanning and
software inventory for Sophos Central managed endpoints.
"""

from typing import Annotated, Any, Literal

from fastmcp import FastMCP
from pydantic import Field

from sophos_mcp.client import SophosClient
from sophos_mcp.tools.common import Page, sophos_errors


def summarize_endpoint(ep: dict[str, Any]) -> dict[str, Any]:
    """Compact row used by list_endpoints."""
    os_info = ep.get("os") or {}
    return {
        "id": ep.get("id"),
        "hostname": ep.get("hostname"),
        "type": ep.get("type"),
        "health": (ep.get("health") or {}).get("overall"),
        "os": f"{os_info.get('name')} ({os_info.get('platform')})",
        "ipv4Addresses": ep.get("ipv4Addresses") or [],
        "lastSeenAt": ep.get("lastSeenAt"),
        "online": ep.get("online"),
        "tamperProtection": "enabled" if ep.get("tamperProtectionEnabled") else "disabled",
        "isolation": (ep.get("isolation") or {}).get("status") or "notIsolated",
        "group": (ep.get("group") or {}).get("name"),
        "assignedProducts": ", ".join(p.get("name") or "" for p in ep.get("assignedProducts") or []),
        "associatedPerson": (ep.get("associatedPerson") or {}).get("name"),
    }


def describe_endpoint(ep: dict[str, Any]) -> dict[str, Any]:
    health = ep.get("health") or {}
    services = health.get("services") or {}
    os_info = ep.get("os") or {}
    return {
        "id": ep.get("id"),
        "hostname": ep.get("hostname"),
        "type": ep.get("type"),
        "health": {
            "overall": health.get("overall"),
            "threats": (health.get("threats") or {}).get("status"),
            "services": services.get("status"),
            "serviceDetails": services.get("serviceDetails") or [],
        },
        "os": {
            "platform": os_info.get("platform"),
            "name": os_info.get("name"),
            "majorVersion": os_info.get("majorVersion"),
            "minorVersion": os_info.get("minorVersion"),
            "build": os_info.get("build"),
            "isServer": os_info.get("isServer"),
        },
        "ipv4Addresses": ep.get("ipv4Addresses") or [],
        "ipv6Addresses": ep.get("ipv6Addresses") or [],
        "macAddresses": ep.get("macAddresses") or [],
        "lastSeenAt": ep.get("lastSeenAt"),
        "firstSeenAt": ep.get("firstSeenAt"),
        "online": ep.get("online"),
        "tamperProtectionEnabled": ep.get("tamperProtectionEnabled"),
        "lockdown": ep.get("lockdown"),
        "isolation": ep.get("isolation") or {"status": "notIsolated"},
        "group": ep.get("group"),
        "cloud": ep.get("cloud"),
        "associatedPerson": ep.get("associatedPerson"),
        "assignedProducts": [
            {"name": p.get("name"), "status": p.get("status"), "version": p.get("version")}
            for p in ep.get("assignedProducts") or []
        ],
        "tenantId": (ep.get("tenant") or {}).get("id"),
    }


def register_endpoint_tools(mcp: FastMCP, client: SophosClient) -> None:
    @mcp.tool(
        description=(
            "List Sophos Central managed endpoints with optional filters for hostname, "
            "health status, OS platform, type, group, tamper protection, and isolation state"
        )
    )
    async def list_endpoints(
        search: Annotated[
            str | None, Field(description="Search by hostname, IP address, or associated person name")
        ] = None,
        health_status: Annotated[
            Literal["good", "suspicious", "bad", "unknown"] | None,
            Field(description="Filter by overall health status"),
        ] = None,
        type: Annotated[
            Literal["computer", "server", "securityVm"] | None,
            Field(description="Filter by endpoint type"),
        ] = None,
        os_platform: Annotated[
            Literal["windows", "linux", "macOS"] | None,
            Field(description="Filter by operating system platform"),
        ] = None,
        tamper_protection_enabled: Annotated[
            bool | None, Field(description="Filter by tamper protection status")
        ] = None,
        isolation_status: Annotated[
            Literal["isolated", "notIsolated"] | None,
            Field(description="Filter by network isolation status"),
        ] = None,
        group_id: Annotated[str | None, Field(description="Filter by endpoint group ID")] = None,
        last_seen_before: Annotated[
            str | None, Field(description="Endpoints last seen before this ISO 8601 timestamp")
        ] = None,
        last_seen_after: Annotated[
            str | None, Field(description="Endpoints last seen after this ISO 8601 timestamp")
        ] = None,
        page_size: Annotated[int, Field(ge=1, le=500, description="Results per page (1-500)")] = 50,
        page: Page = 1,
    ) -> dict[str, Any]:
        with sophos_errors("list_endpoints"):
            response = await client.get_endpoints(
                {
                    "pageSize": page_size,
                    "page": page,
                    "search": search or None,
                    "healthStatus": health_status,
                    "type": type,
                    "os.platform": os_platform,
                    "tamperProtectionEnabled": tamper_protection_enabled,
                    "isolation.status": isolation_status,
                    "groupId": group_id or None,
                    "lastSeenBefore": last_seen_before or None,
                    "lastSeenAfter": last_seen_after or None,
                }
            )
        return {
            "endpoints": [summarize_endpoint(ep) for ep in response.items],
            **response.summary(),
            "pageSize": page_size,
        }

    @mcp.tool(
        description=(
            "Get full details of a specific Sophos Central endpoint including health status, "
            "assigned products, tamper protection, isolation state, and associated person"
        )
    )
    async def get_endpoint(
        endpoint_id: Annotated[str, Field(description="Endpoint UUID")],
    ) -> dict[str, Any]:
        with sophos_errors("get_endpoint"):
            ep = await client.get_endpoint(endpoint_id)
        return describe_endpoint(ep)

    @mcp.tool(
        description=(
            "Network isolate a Sophos Central endpoint for incident response. "
            "The endpoint can only communicate with Sophos Central afterwards"
        )
    )
    async def isolate_endpoint(
        endpoint_id: Annotated[str, Field(description="Endpoint UUID to isolate")],
        comment: Annotated[str | None, Field(description="Reason for isolating the endpoint")] = None,
    ) -> dict[str, Any]:
        with sophos_errors("isolate_endpoint"):
            result = await client.isolate_endpoint(endpoint_id, comment)
        return {
            **result,
            "message": (
                f"Endpoint {endpoint_id} has been network isolated. "
                "It can only communicate with Sophos Central."
            ),
            "warning": (
                "The endpoint is now disconnected from the network. "
                "Use unisolate_endpoint to restore connectivity."
            ),
        }

    @mcp.tool(
        description=(
            "Remove network isolation from a Sophos Central endpoint, "
            "restoring normal network connectivity"
        )
    )
    async def unisolate_endpoint(
        endpoint_id: Annotated[str, Field(description="Endpoint UUID to unisolate")],
        comment: Annotated[str | None, Field(description="Reason for removing isolation")] = None,
    ) -> dict[str, Any]:
        with sophos_errors("unisolate_endpoint"):
            result = await client.unisolate_endpoint(endpoint_id, comment)
        return {
            **result,
            "message": (
                f"Network isolation removed from endpoint {endpoint_id}. "
                "Normal connectivity restored."
            ),
        }

    @mcp.tool(description="Trigger a full on-demand antivirus scan on a Sophos Central endpoint")
    async def scan_endpoint(
        endpoint_id: Annotated[str, Field(description="Endpoint UUID to scan")],
    ) -> dict[str, Any]:
        with sophos_errors("scan_endpoint"):
            result = await client.scan_endpoint(endpoint_id)
        return {
            **result,
            "message": (
                f"Full scan initiated on endpoint {endpoint_id}. "
                "Check endpoint events for scan results."
            ),
        }

    @mcp.tool(
        description=(
            "List installed software on a Sophos Central endpoint, "
            "for vulnerability assessment and software inventory"
        )
    )
    async def get_endpoint_software(
        endpoint_id: Annotated[str, Field(description="Endpoint UUID")],
        search: Annotated[str | None, Field(description="Search by software name or publisher")] = None,
        page_size: Annotated[int, Field(ge=1, le=200, description="Results per page (1-200)")] = 100,
        page: Page = 1,
    ) -> dict[str, Any]:
        with sophos_errors("get_endpoint_software"):
            response = await client.get_endpoint_software(
                endpoint_id, {"pageSize": page_size, "page": page, "search": search or None}
            )
        return {
            "endpoint_id": endpoint_id,
            "software": [
                {
                    "name": sw.get("name"),
                    "version": sw.get("version"),
                    "publisher": sw.get("publisher"),
                    "installDate": sw.get("installDate"),
                    "size": sw.get("size"),
                }
                for sw in response.items
            ],
            **response.summary(),
        }
