"""
Tenant tools for partner and organization credentials (MSP view).

Tenant listing and details live on the global host; the health overview is
computed from the bound tenant's endpoint and alert totals.
"""

import asyncio
from typing import Annotated, Any, Literal

from fastmcp import FastMCP
from pydantic import Field

from sophos_mcp.client import SophosClient
from sophos_mcp.tools.common import Page, sophos_errors


def health_score(alert_count: int) -> int:
    """Two points off per active alert, clamped to 0..100."""
    return min(100, max(0, 100 - alert_count * 2))


def health_rating(score: int) -> str:
    if score >= 90:
        return "excellent"
    if score >= 70:
        return "good"
    if score >= 50:
        return "fair"
    return "poor"


def health_recommendations(alert_count: int) -> list[str]:
    if alert_count > 10:
        return [
            "Review and triage active alerts immediately",
            "Investigate high-severity alerts first",
            "Check for unprotected or unhealthy endpoints",
            "Verify tamper protection is enabled across all endpoints",
        ]
    if alert_count > 0:
        return [
            "Continue monitoring active alerts",
            "Ensure all endpoints have up-to-date protection",
        ]
    return ["All clear, maintain regular monitoring schedule"]


def _licenses(tenant: dict[str, Any]) -> list[dict[str, Any]]:
    return tenant.get("licenses") or []


def register_tenant_tools(mcp: FastMCP, client: SophosClient) -> None:
    @mcp.tool(
        description=(
            "List managed tenants in Sophos Central: the MSP/partner view of all "
            "managed organizations with status and billing info"
        )
    )
    async def list_tenants(
        status: Annotated[
            Literal["active", "deactivated", "suspended"] | None,
            Field(description="Filter by tenant status"),
        ] = None,
        search: Annotated[str | None, Field(description="Search by tenant name")] = None,
        page_size: Annotated[int, Field(ge=1, le=100, description="Results per page (1-100)")] = 50,
        page: Page = 1,
    ) -> dict[str, Any]:
        with sophos_errors("list_tenants"):
            response = await client.get_tenants(
                {"pageSize": page_size, "page": page, "status": status, "search": search or None}
            )

        tenants = []
        for t in response.items:
            contact = t.get("contact")
            tenants.append(
                {
                    "id": t.get("id"),
                    "name": t.get("name"),
                    "status": t.get("status"),
                    "billingType": t.get("billingType"),
                    "dataGeography": t.get("dataGeography"),
                    "dataRegion": t.get("dataRegion"),
                    "createdAt": t.get("createdAt"),
                    "contact": (
                        {
                            "name": f"{contact.get('firstName', '')} {contact.get('lastName', '')}".strip(),
                            "email": contact.get("email"),
                        }
                        if contact
                        else None
                    ),
                    "licenseCount": len(_licenses(t)),
                    "activeLicenses": [
                        lic.get("product") for lic in _licenses(t) if lic.get("status") == "active"
                    ],
                }
            )
        return {"tenants": tenants, **response.summary(), "pageSize": page_size}

    @mcp.tool(
        description=(
            "Get full details of a managed tenant including contact info, "
            "license details, and data region"
        )
    )
    async def get_tenant(
        tenant_id: Annotated[str, Field(description="Tenant UUID")],
    ) -> dict[str, Any]:
        with sophos_errors("get_tenant"):
            t = await client.get_tenant(tenant_id)

        contact = t.get("contact")
        return {
            "id": t.get("id"),
            "name": t.get("name"),
            "status": t.get("status"),
            "billingType": t.get("billingType"),
            "dataGeography": t.get("dataGeography"),
            "dataRegion": t.get("dataRegion"),
            "apiHost": t.get("apiHost"),
            "createdAt": t.get("createdAt"),
            "contact": (
                {key: contact.get(key) for key in ("firstName", "lastName", "email", "phone")}
                if contact
                else None
            ),
            "licenses": [
                {
                    "id": lic.get("id"),
                    "product": lic.get("product"),
                    "type": lic.get("type"),
                    "quantity": lic.get("quantity") or 0,
                    "usedQuantity": lic.get("usedQuantity") or 0,
                    "available": (lic.get("quantity") or 0) - (lic.get("usedQuantity") or 0),
                    "expiresAt": lic.get("expiresAt"),
                    "status": lic.get("status"),
                }
                for lic in _licenses(t)
            ],
        }

    @mcp.tool(
        description=(
            "Get an overall security health score for a tenant from endpoint "
            "protection coverage and active alerts"
        )
    )
    async def get_tenant_health(
        tenant_id: Annotated[str, Field(description="Tenant UUID")],
    ) -> dict[str, Any]:
        with sophos_errors("get_tenant_health"):
            endpoints, alerts = await asyncio.gather(
                client.get_endpoints({"pageSize": 1}),
                client.get_alerts({"pageSize": 1}),
            )

        endpoint_count = endpoints.pages.items
        alert_count = alerts.pages.items
        score = health_score(alert_count)

        return {
            "tenantId": tenant_id,
            "endpointCount": endpoint_count,
            "activeAlerts": alert_count,
            "healthScore": score,
            "healthRating": health_rating(score),
            "summary": (
                f"Tenant has {endpoint_count} managed endpoints with {alert_count} active alerts. "
                f"Health score: {score}/100."
            ),
            "recommendations": health_recommendations(alert_count),
        }
