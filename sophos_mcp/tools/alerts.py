"""Alert tools: listing, details, acknowledgment, resolution and available actions."""

from typing import Annotated, Any, Literal

from fastmcp import FastMCP
from pydantic import Field

from sophos_mcp.client import SophosClient
from sophos_mcp.tools.common import Page, sophos_errors

ACTION_DESCRIPTIONS = {
    "acknowledge": "Mark the alert as reviewed without taking action",
    "cleanPua": "Clean the Potentially Unwanted Application",
    "clean": "Clean/remove the detected threat",
    "authPua": "Authorize the PUA (allow it to run)",
    "clearThreat": "Clear the threat alert",
    "clearHmpa": "Clear the HMPA (behavioral) detection alert",
    "sendMsgPua": "Send a message to the endpoint about the PUA",
    "sendMsgThreat": "Send a message to the endpoint about the threat",
    "contactSupport": "Escalate to Sophos support",
}

AlertProduct = Literal[
    "endpoint",
    "server",
    "mobile",
    "encryption",
    "emailGateway",
    "webGateway",
    "phishThreat",
    "wireless",
    "iaas",
    "firewall",
]

ResolveAction = Literal[
    "cleanPua", "clean", "authPua", "clearThreat", "clearHmpa", "sendMsgPua", "sendMsgThreat"
]


def describe_action(action: str) -> dict[str, str]:
    return {
        "action": action,
        "description": ACTION_DESCRIPTIONS.get(action, f"Perform '{action}' action"),
    }


def register_alert_tools(mcp: FastMCP, client: SophosClient) -> None:
    @mcp.tool(
        description=(
            "List Sophos Central alerts with optional filters for severity, "
            "category, product, and date range"
        )
    )
    async def list_alerts(
        severity: Annotated[
            Literal["low", "medium", "high"] | None, Field(description="Filter by alert severity")
        ] = None,
        category: Annotated[
            str | None,
            Field(
                description=(
                    "Filter by alert category (e.g. malware, pua, runtimeDetections, "
                    "policy, protection, general)"
                )
            ),
        ] = None,
        product: Annotated[
            AlertProduct | None,
            Field(description="Filter by Sophos product that generated the alert"),
        ] = None,
        from_date: Annotated[
            str | None, Field(description="Return alerts raised after this ISO 8601 timestamp")
        ] = None,
        to_date: Annotated[
            str | None, Field(description="Return alerts raised before this ISO 8601 timestamp")
        ] = None,
        page_size: Annotated[int, Field(ge=1, le=100, description="Results per page (1-100)")] = 25,
        page: Page = 1,
    ) -> dict[str, Any]:
        with sophos_errors("list_alerts"):
            response = await client.get_alerts(
                {
                    "pageSize": page_size,
                    "page": page,
                    "severity": severity,
                    "category": category or None,
                    "product": product,
                    "from": from_date or None,
                    "to": to_date or None,
                }
            )

        alerts = []
        for alert in response.items:
            agent = alert.get("managedAgent")
            alerts.append(
                {
                    "id": alert.get("id"),
                    "severity": alert.get("severity"),
                    "category": alert.get("category"),
                    "type": alert.get("type"),
                    "description": alert.get("description"),
                    "product": alert.get("product"),
                    "raisedAt": alert.get("raisedAt"),
                    "managedAgent": (
                        {"id": agent.get("id"), "type": agent.get("type"), "name": agent.get("name")}
                        if agent
                        else None
                    ),
                    "person": (alert.get("person") or {}).get("name"),
                    "allowedActions": alert.get("allowedActions") or [],
                }
            )
        return {"alerts": alerts, **response.summary(), "pageSize": page_size}

    @mcp.tool(
        description=(
            "Get full details of a specific Sophos Central alert including description, "
            "managed agent info, and available response actions"
        )
    )
    async def get_alert(
        alert_id: Annotated[str, Field(description="Alert UUID")],
    ) -> dict[str, Any]:
        with sophos_errors("get_alert"):
            alert = await client.get_alert(alert_id)
        keys = (
            "id",
            "severity",
            "category",
            "type",
            "description",
            "groupKey",
            "product",
            "raisedAt",
            "managedAgent",
            "person",
            "tenant",
            "allowedActions",
            "data",
        )
        return {key: alert.get(key) for key in keys}

    @mcp.tool(
        description=(
            "Acknowledge a Sophos Central alert, marking it as reviewed without resolving it"
        )
    )
    async def acknowledge_alert(
        alert_id: Annotated[str, Field(description="Alert UUID to acknowledge")],
        message: Annotated[
            str | None, Field(description="Optional note or reason for acknowledgment")
        ] = None,
    ) -> dict[str, Any]:
        with sophos_errors("acknowledge_alert"):
            result = await client.perform_alert_action(alert_id, "acknowledge", message)
        return {**result, "message": f"Alert {alert_id} acknowledged successfully."}

    @mcp.tool(
        description=(
            "Resolve and close a Sophos Central alert with a description of the action taken"
        )
    )
    async def resolve_alert(
        alert_id: Annotated[str, Field(description="Alert UUID to resolve")],
        action: Annotated[
            ResolveAction,
            Field(
                description=(
                    "Resolution action: cleanPua (clean PUA), clean (clean threat), "
                    "authPua (authorize PUA), clearThreat (clear threat), clearHmpa "
                    "(clear HMPA), sendMsgPua (send message for PUA), sendMsgThreat "
                    "(send message for threat)"
                )
            ),
        ],
        message: Annotated[
            str | None, Field(description="Description of the remediation action taken")
        ] = None,
    ) -> dict[str, Any]:
        with sophos_errors("resolve_alert"):
            result = await client.perform_alert_action(alert_id, action, message)
        return {**result, "message": f"Alert {alert_id} resolved with action '{action}'."}

    @mcp.tool(
        description=(
            "List available response actions for a specific Sophos Central alert, "
            "to determine what can be done about it"
        )
    )
    async def get_alert_actions(
        alert_id: Annotated[str, Field(description="Alert UUID")],
    ) -> dict[str, Any]:
        with sophos_errors("get_alert_actions"):
            alert = await client.get_alert(alert_id)
        allowed = alert.get("allowedActions") or []
        return {
            "alert_id": alert_id,
            "severity": alert.get("severity"),
            "category": alert.get("category"),
            "allowedActions": [describe_action(action) for action in allowed],
            "actionCount": len(allowed),
        }
