"""Policy tools: listing, full configuration, individual settings and scanning exclusions."""

import json
from typing import Annotated, Any, Literal

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from pydantic import Field

from sophos_mcp.client import SophosClient
from sophos_mcp.tools.common import Page, sophos_errors

PolicyType = Literal[
    "threat-protection",
    "peripheral-control",
    "application-control",
    "data-loss-prevention",
    "tamper-protection",
    "web-control",
    "windows-firewall",
    "server-threat-protection",
    "server-peripheral-control",
    "server-lockdown",
    "server-application-control",
    "update-management",
]

_POLICY_KEYS = (
    "id",
    "name",
    "type",
    "enabled",
    "enforcement",
    "priority",
    "appliesTo",
    "createdAt",
    "updatedAt",
    "lockedBy",
)


def register_policy_tools(mcp: FastMCP, client: SophosClient) -> None:
    @mcp.tool(
        description=(
            "List Sophos Central endpoint, server, and firewall policies with optional type filter"
        )
    )
    async def list_policies(
        type: Annotated[PolicyType | None, Field(description="Filter by policy type")] = None,
        enabled: Annotated[
            bool | None, Field(description="Filter by enabled/disabled state")
        ] = None,
        page_size: Annotated[int, Field(ge=1, le=100, description="Results per page (1-100)")] = 50,
        page: Page = 1,
    ) -> dict[str, Any]:
        with sophos_errors("list_policies"):
            response = await client.get_policies(
                {"pageSize": page_size, "page": page, "type": type, "enabled": enabled}
            )
        return {
            "policies": [{key: pol.get(key) for key in _POLICY_KEYS} for pol in response.items],
            **response.summary(),
            "pageSize": page_size,
        }

    @mcp.tool(
        description=(
            "Get full configuration details of a specific Sophos Central policy "
            "including all settings and scope"
        )
    )
    async def get_policy(
        policy_id: Annotated[str, Field(description="Policy UUID")],
    ) -> dict[str, Any]:
        with sophos_errors("get_policy"):
            pol = await client.get_policy(policy_id)
        result = {key: pol.get(key) for key in _POLICY_KEYS}
        result["settings"] = pol.get("settings")
        return result

    @mcp.tool(
        description=(
            "Get specific settings within a Sophos Central policy, extracting individual "
            "configuration sections for easier analysis"
        )
    )
    async def get_policy_settings(
        policy_id: Annotated[str, Field(description="Policy UUID")],
        setting_key: Annotated[
            str | None,
            Field(
                description=(
                    "Setting key to retrieve (e.g. 'malwareProtection', 'webControl', "
                    "'fileProtection'). If omitted, returns all settings."
                )
            ),
        ] = None,
    ) -> dict[str, Any]:
        with sophos_errors("get_policy_settings"):
            pol = await client.get_policy(policy_id)

        all_settings: dict[str, Any] = pol.get("settings") or {}
        available = list(all_settings)

        if setting_key:
            if setting_key not in all_settings:
                raise ToolError(
                    json.dumps(
                        {
                            "error": (
                                f"Setting '{setting_key}' not found in policy '{pol.get('name')}'."
                            ),
                            "availableSettings": available,
                        }
                    )
                )
            selected = {setting_key: all_settings[setting_key]}
        else:
            selected = all_settings

        return {
            "policyId": pol.get("id"),
            "policyName": pol.get("name"),
            "policyType": pol.get("type"),
            "enforcement": pol.get("enforcement"),
            "settings": selected,
            "availableSettingKeys": available,
        }

    @mcp.tool(
        description=(
            "List global and policy-specific scanning exclusions in Sophos Central, "
            "for security audits and troubleshooting false positives"
        )
    )
    async def list_exclusions(
        type: Annotated[
            Literal["path", "process", "extension", "posixPath", "virtualPath", "amsi"] | None,
            Field(description="Filter by exclusion type"),
        ] = None,
        search: Annotated[
            str | None, Field(description="Search exclusions by value or description")
        ] = None,
        page_size: Annotated[int, Field(ge=1, le=200, description="Results per page (1-200)")] = 100,
        page: Page = 1,
    ) -> dict[str, Any]:
        with sophos_errors("list_exclusions"):
            response = await client.get_exclusions(
                {"pageSize": page_size, "page": page, "type": type, "search": search or None}
            )
        keys = ("id", "type", "value", "description", "scanMode", "comment")
        return {
            "exclusions": [{key: exc.get(key) for key in keys} for exc in response.items],
            **response.summary(),
            "pageSize": page_size,
        }
