"""
EDR/XDR detection tools.

Detections are individual suspicious observations on an endpoint; threat
cases group related detections into a single incident. Both carry MITRE
ATT&CK technique mappings, which we flatten for the list views.
"""

from typing import Annotated, Any, Literal

from fastmcp import FastMCP
from pydantic import Field

from sophos_mcp.client import SophosClient
from sophos_mcp.tools.common import Page, sophos_errors

Severity = Literal["critical", "high", "medium", "low", "info"]
CaseStatus = Literal["new", "investigating", "inProgress", "containment", "resolved", "closed"]


def _process(det: dict[str, Any], *keys: str) -> dict[str, Any] | None:
    process = det.get("process")
    if not process:
        return None
    return {key: process.get(key) for key in keys}


def _techniques(item: dict[str, Any]) -> list[dict[str, Any]]:
    return item.get("mitreTechniques") or []


def register_detection_tools(mcp: FastMCP, client: SophosClient) -> None:
    @mcp.tool(
        description=(
            "List Sophos EDR/XDR detections with optional filters for severity, "
            "type, endpoint, MITRE technique, and date range"
        )
    )
    async def list_detections(
        severity: Annotated[Severity | None, Field(description="Filter by detection severity")] = None,
        type: Annotated[
            str | None,
            Field(
                description=(
                    "Filter by detection type (e.g. malwareExecution, behavioralExecution, "
                    "exploitPrevention, lateralMovement, commandAndControl, credential, evasion)"
                )
            ),
        ] = None,
        endpoint_id: Annotated[
            str | None, Field(description="Filter detections for a specific endpoint ID")
        ] = None,
        from_date: Annotated[
            str | None, Field(description="Return detections after this ISO 8601 timestamp")
        ] = None,
        to_date: Annotated[
            str | None, Field(description="Return detections before this ISO 8601 timestamp")
        ] = None,
        mitre_technique: Annotated[
            str | None,
            Field(description="Filter by MITRE ATT&CK technique ID (e.g. T1059.001)"),
        ] = None,
        page_size: Annotated[int, Field(ge=1, le=100, description="Results per page (1-100)")] = 25,
        page: Page = 1,
    ) -> dict[str, Any]:
        with sophos_errors("list_detections"):
            response = await client.get_detections(
                {
                    "pageSize": page_size,
                    "page": page,
                    "severity": severity,
                    "type": type or None,
                    "endpointId": endpoint_id or None,
                    "from": from_date or None,
                    "to": to_date or None,
                    "mitreTechnique": mitre_technique or None,
                }
            )

        detections = []
        for det in response.items:
            endpoint = det.get("endpoint") or {}
            detections.append(
                {
                    "id": det.get("id"),
                    "type": det.get("type"),
                    "severity": det.get("severity"),
                    "summary": det.get("summary"),
                    "detectedAt": det.get("detectedAt"),
                    "resolvedAt": det.get("resolvedAt"),
                    "endpoint": {
                        "id": endpoint.get("id"),
                        "hostname": endpoint.get("hostname"),
                        "os": endpoint.get("os"),
                    },
                    "process": _process(det, "name", "path", "sha256"),
                    "user": (det.get("user") or {}).get("name"),
                    "mitreTechniques": [
                        {"id": t.get("id"), "name": t.get("name"), "tactics": t.get("tactics")}
                        for t in _techniques(det)
                    ],
                    "indicatorCount": len(det.get("indicators") or []),
                }
            )
        return {"detections": detections, **response.summary(), "pageSize": page_size}

    @mcp.tool(
        description=(
            "Get full details of a Sophos EDR/XDR detection including process details, "
            "MITRE ATT&CK mapping, indicators, and raw event data"
        )
    )
    async def get_detection(
        detection_id: Annotated[str, Field(description="Detection UUID")],
    ) -> dict[str, Any]:
        with sophos_errors("get_detection"):
            det = await client.get_detection(detection_id)
        return {
            "id": det.get("id"),
            "type": det.get("type"),
            "severity": det.get("severity"),
            "summary": det.get("summary"),
            "description": det.get("description"),
            "detectedAt": det.get("detectedAt"),
            "resolvedAt": det.get("resolvedAt"),
            "endpoint": det.get("endpoint"),
            "process": _process(
                det, "pid", "name", "path", "commandLine", "sha256", "parentPid", "parentName"
            ),
            "user": det.get("user"),
            "mitreTechniques": [
                {
                    "id": t.get("id"),
                    "name": t.get("name"),
                    "tactics": t.get("tactics"),
                    "url": t.get("url"),
                }
                for t in _techniques(det)
            ],
            "indicators": [
                {
                    "type": ind.get("type"),
                    "value": ind.get("value"),
                    "description": ind.get("description"),
                }
                for ind in det.get("indicators") or []
            ],
            "rawData": det.get("rawData"),
        }

    @mcp.tool(
        description=(
            "List Sophos threat cases: groups of related EDR/XDR detections "
            "that form a single incident narrative"
        )
    )
    async def get_threat_cases(
        status: Annotated[CaseStatus | None, Field(description="Filter by threat case status")] = None,
        severity: Annotated[Severity | None, Field(description="Filter by severity")] = None,
        from_date: Annotated[
            str | None, Field(description="Return cases created after this ISO 8601 timestamp")
        ] = None,
        to_date: Annotated[
            str | None, Field(description="Return cases created before this ISO 8601 timestamp")
        ] = None,
        page_size: Annotated[int, Field(ge=1, le=100, description="Results per page (1-100)")] = 25,
        page: Page = 1,
    ) -> dict[str, Any]:
        with sophos_errors("get_threat_cases"):
            response = await client.get_threat_cases(
                {
                    "pageSize": page_size,
                    "page": page,
                    "status": status,
                    "severity": severity,
                    "from": from_date or None,
                    "to": to_date or None,
                }
            )
        return {
            "threatCases": [
                {
                    "id": tc.get("id"),
                    "name": tc.get("name"),
                    "status": tc.get("status"),
                    "severity": tc.get("severity"),
                    "description": tc.get("description"),
                    "createdAt": tc.get("createdAt"),
                    "updatedAt": tc.get("updatedAt"),
                    "assignee": (tc.get("assignee") or {}).get("name"),
                    "detectionCount": tc.get("detectionCount"),
                    "endpointCount": tc.get("endpointCount"),
                    "mitreTechniques": [
                        f"{t.get('id')} ({t.get('name')})" for t in _techniques(tc)
                    ],
                }
                for tc in response.items
            ],
            **response.summary(),
            "pageSize": page_size,
        }

    @mcp.tool(
        description=(
            "Get all detections within a Sophos threat case, "
            "showing every detection that contributed to the case"
        )
    )
    async def get_case_detections(
        case_id: Annotated[str, Field(description="Threat case UUID")],
        page_size: Annotated[int, Field(ge=1, le=100, description="Results per page (1-100)")] = 50,
        page: Page = 1,
    ) -> dict[str, Any]:
        with sophos_errors("get_case_detections"):
            response = await client.get_case_detections(
                case_id, {"pageSize": page_size, "page": page}
            )

        detections = []
        for det in response.items:
            endpoint = det.get("endpoint") or {}
            detections.append(
                {
                    "id": det.get("id"),
                    "type": det.get("type"),
                    "severity": det.get("severity"),
                    "summary": det.get("summary"),
                    "detectedAt": det.get("detectedAt"),
                    "endpoint": {"hostname": endpoint.get("hostname"), "id": endpoint.get("id")},
                    "process": _process(det, "name", "path", "commandLine"),
                    "user": (det.get("user") or {}).get("name"),
                    "mitreTechniques": [t.get("id") for t in _techniques(det)],
                }
            )
        return {"caseId": case_id, "detections": detections, **response.summary()}

    @mcp.tool(
        description=(
            "Update the status of a Sophos threat case and optionally assign it to an analyst"
        )
    )
    async def update_case_status(
        case_id: Annotated[str, Field(description="Threat case UUID")],
        status: Annotated[CaseStatus, Field(description="New status for the threat case")],
        assignee_id: Annotated[
            str | None, Field(description="User ID to assign the case to")
        ] = None,
    ) -> dict[str, Any]:
        with sophos_errors("update_case_status"):
            tc = await client.update_case_status(case_id, status, assignee_id)
        return {
            "id": tc.get("id"),
            "name": tc.get("name"),
            "status": tc.get("status"),
            "severity": tc.get("severity"),
            "assignee": (tc.get("assignee") or {}).get("name"),
            "updatedAt": tc.get("updatedAt"),
            "message": f"Threat case {case_id} updated to status '{status}'.",
        }
