"""Security event (SIEM) and admin audit log tools."""

from typing import Annotated, Any, Literal

from fastmcp import FastMCP
from pydantic import Field

from sophos_mcp.catalog import EVENT_TYPES, ReferenceCatalog
from sophos_mcp.client import SophosClient
from sophos_mcp.tools.common import Page, load_reference, sophos_errors


def register_event_tools(mcp: FastMCP, client: SophosClient, catalog: ReferenceCatalog) -> None:
    @mcp.tool(
        description=(
            "Search Sophos Central security events by type, severity, endpoint, source, "
            "and date range. This is the primary SIEM event feed"
        )
    )
    async def search_events(
        type: Annotated[
            str | None,
            Field(
                description=(
                    "Filter by event type (e.g. Event::Endpoint::Threat::Detected, "
                    "Event::Endpoint::WebFilteringBlocked, Event::Endpoint::Threat::CleanedUp, "
                    "Event::Firewall::Blocked)"
                )
            ),
        ] = None,
        severity: Annotated[
            Literal["none", "low", "medium", "high", "critical"] | None,
            Field(description="Filter by event severity"),
        ] = None,
        endpoint_id: Annotated[
            str | None, Field(description="Filter events for a specific endpoint ID")
        ] = None,
        source_type: Annotated[
            str | None,
            Field(description="Filter by event source (e.g. antivirus, deviceControl, firewall)"),
        ] = None,
        from_date: Annotated[
            str | None, Field(description="Return events after this ISO 8601 timestamp")
        ] = None,
        to_date: Annotated[
            str | None, Field(description="Return events before this ISO 8601 timestamp")
        ] = None,
        search: Annotated[
            str | None, Field(description="Full-text search across event name and location")
        ] = None,
        page_size: Annotated[int, Field(ge=1, le=200, description="Results per page (1-200)")] = 50,
        page: Page = 1,
    ) -> dict[str, Any]:
        with sophos_errors("search_events"):
            response = await client.get_events(
                {
                    "pageSize": page_size,
                    "page": page,
                    "type": type or None,
                    "severity": severity,
                    "endpointId": endpoint_id or None,
                    "source": source_type or None,
                    "from": from_date or None,
                    "to": to_date or None,
                    "search": search or None,
                }
            )

        events = []
        for evt in response.items:
            endpoint = evt.get("endpoint")
            events.append(
                {
                    "id": evt.get("id"),
                    "type": evt.get("type"),
                    "severity": evt.get("severity"),
                    "name": evt.get("name"),
                    "location": evt.get("location"),
                    "group": evt.get("group"),
                    "when": evt.get("when"),
                    "source": evt.get("source"),
                    "endpoint": (
                        {
                            "id": endpoint.get("id"),
                            "hostname": endpoint.get("hostname"),
                            "type": endpoint.get("type"),
                        }
                        if endpoint
                        else None
                    ),
                    "user": (evt.get("user") or {}).get("name"),
                    "ioc": evt.get("ioc"),
                    "iocType": evt.get("iocType"),
                }
            )
        return {"events": events, **response.summary(), "pageSize": page_size}

    @mcp.tool(
        description=(
            "Get full details of a specific Sophos Central security event including "
            "customer data, IOCs, and endpoint context"
        )
    )
    async def get_event(
        event_id: Annotated[str, Field(description="Event UUID")],
    ) -> dict[str, Any]:
        with sophos_errors("get_event"):
            evt = await client.get_event(event_id)
        keys = (
            "id",
            "type",
            "severity",
            "name",
            "location",
            "group",
            "when",
            "source",
            "endpoint",
            "user",
            "customerData",
            "ioc",
            "iocType",
        )
        return {key: evt.get(key) for key in keys}

    @mcp.tool(
        description=(
            "List available Sophos Central security event types and their descriptions, "
            "useful for building event search queries"
        )
    )
    def list_event_types() -> dict[str, Any]:
        event_types = load_reference(catalog, EVENT_TYPES)
        return {"eventTypes": event_types, "total": len(event_types)}

    @mcp.tool(
        description=(
            "Get the admin audit trail from Sophos Central: policy changes, "
            "user management, and configuration updates"
        )
    )
    async def get_audit_logs(
        actor_type: Annotated[
            Literal["user", "system", "api"] | None, Field(description="Filter by actor type")
        ] = None,
        from_date: Annotated[
            str | None, Field(description="Return audit entries after this ISO 8601 timestamp")
        ] = None,
        to_date: Annotated[
            str | None, Field(description="Return audit entries before this ISO 8601 timestamp")
        ] = None,
        search: Annotated[
            str | None, Field(description="Search by actor name, description, or target name")
        ] = None,
        page_size: Annotated[int, Field(ge=1, le=200, description="Results per page (1-200)")] = 50,
        page: Page = 1,
    ) -> dict[str, Any]:
        with sophos_errors("get_audit_logs"):
            response = await client.get_audit_logs(
                {
                    "pageSize": page_size,
                    "page": page,
                    "actor.type": actor_type,
                    "from": from_date or None,
                    "to": to_date or None,
                    "search": search or None,
                }
            )

        audit_logs = []
        for log in response.items:
            actor = log.get("actor") or {}
            target = log.get("target")
            audit_logs.append(
                {
                    "id": log.get("id"),
                    "type": log.get("type"),
                    "description": log.get("description"),
                    "timestamp": log.get("timestamp"),
                    "actor": {"name": actor.get("name"), "type": actor.get("type")},
                    "target": (
                        {"name": target.get("name"), "type": target.get("type")} if target else None
                    ),
                    "result": log.get("result"),
                    "sourceIp": log.get("sourceIp"),
                }
            )
        return {"auditLogs": audit_logs, **response.summary(), "pageSize": page_size}
