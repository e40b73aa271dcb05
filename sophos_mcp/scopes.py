"""
Tool-to-scope mapping for caller authorization on the HTTP transport.

    TOOL_SCOPE_MAP = {"tool_name": "required_scope"}

Two scopes split the tools by blast radius:

- sophos:read     look at endpoints, alerts, detections, events, policies, tenants
- sophos:respond  change state in Sophos Central: isolate or scan endpoints,
                  act on alerts, update threat cases, run Live Discover queries
                  on endpoints

Scopes are additive: an incident responder token typically carries both.
A tool missing from this map is denied to everyone (see AuthMiddleware).
"""

READ_SCOPE = "sophos:read"
RESPOND_SCOPE = "sophos:respond"

_READ_TOOLS = [
    # endpoints
    "list_endpoints",
    "get_endpoint",
    "get_endpoint_software",
    # alerts
    "list_alerts",
    "get_alert",
    "get_alert_actions",
    # detections
    "list_detections",
    "get_detection",
    "get_threat_cases",
    "get_case_detections",
    # events
    "search_events",
    "get_event",
    "list_event_types",
    "get_audit_logs",
    # policies
    "list_policies",
    "get_policy",
    "get_policy_settings",
    "list_exclusions",
    # tenants
    "list_tenants",
    "get_tenant",
    "get_tenant_health",
    # live discover
    "list_saved_queries",
    "get_query_results",
    "list_query_categories",
]

_RESPOND_TOOLS = [
    "isolate_endpoint",
    "unisolate_endpoint",
    "scan_endpoint",
    "acknowledge_alert",
    "resolve_alert",
    "update_case_status",
    "run_query",
]

TOOL_SCOPE_MAP: dict[str, str] = {
    **{name: READ_SCOPE for name in _READ_TOOLS},
    **{name: RESPOND_SCOPE for name in _RESPOND_TOOLS},
}


def check_tool_access(tool_name: str, granted: list[str]) -> str:
    """
    Return the scope that lets a caller use `tool_name`.

    Raises:
        PermissionError: The tool is not in TOOL_SCOPE_MAP, or `granted`
            does not include its scope
    """
    required = TOOL_SCOPE_MAP.get(tool_name)
    if required is None:
        raise PermissionError(f"Access denied: tool '{tool_name}' has no scope mapping")
    if required not in granted:
        raise PermissionError(f"Access denied: tool '{tool_name}' requires scope '{required}'")
    return required
