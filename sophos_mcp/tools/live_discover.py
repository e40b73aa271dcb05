"""
Live Discover tools.

Live Discover is Sophos's osquery-based live endpoint querying: SQL runs
directly on managed endpoints for real-time investigation and threat hunting.
A query run is asynchronous; run_query returns a run ID and get_query_results
polls for the rows.
"""

from typing import Annotated, Any, Literal

from fastmcp import FastMCP
from pydantic import Field

from sophos_mcp.catalog import QUERY_CATEGORIES, ReferenceCatalog
from sophos_mcp.client import SophosClient
from sophos_mcp.tools.common import Page, load_reference, sophos_errors

QueryCategory = Literal[
    "processes",
    "network",
    "filesystem",
    "registry",
    "users",
    "services",
    "hardware",
    "software",
    "security",
    "general",
    "custom",
]


def register_live_discover_tools(
    mcp: FastMCP, client: SophosClient, catalog: ReferenceCatalog
) -> None:
    @mcp.tool(
        description=(
            "Execute a Live Discover SQL query (osquery) on one or more Sophos Central "
            "endpoints for real-time investigation and threat hunting"
        )
    )
    async def run_query(
        sql: Annotated[
            str,
            Field(
                description=(
                    "SQL query to execute on endpoints (osquery syntax). Example: "
                    "SELECT pid, name, path FROM processes WHERE name LIKE '%suspicious%'"
                )
            ),
        ],
        endpoint_ids: Annotated[
            list[str],
            Field(
                min_length=1,
                max_length=50,
                description="Endpoint UUIDs to run the query on (1-50 endpoints)",
            ),
        ],
        variables: Annotated[
            dict[str, str] | None,
            Field(description="Query variables as key-value pairs for parameterized queries"),
        ] = None,
    ) -> dict[str, Any]:
        with sophos_errors("run_query"):
            run = await client.run_live_discover_query(sql, endpoint_ids, variables)

        run_id = run.get("id")
        status = run.get("status")
        endpoints = run.get("endpoints") or []
        if status == "finished":
            message = (
                f"Query completed. Use get_query_results with queryRunId '{run_id}' "
                "to retrieve results."
            )
        else:
            message = (
                f"Query submitted (status: {status}). Poll get_query_results with "
                f"queryRunId '{run_id}' for results."
            )

        return {
            "queryRunId": run_id,
            "sql": run.get("sql"),
            "status": status,
            "endpointCount": len(endpoints),
            "endpoints": [
                {"id": ep.get("id"), "hostname": ep.get("hostname"), "status": ep.get("status")}
                for ep in endpoints
            ],
            "createdAt": run.get("createdAt"),
            "message": message,
        }

    @mcp.tool(
        description=(
            "List saved Live Discover queries in Sophos Central, built-in and custom, "
            "with their SQL and supported platforms"
        )
    )
    async def list_saved_queries(
        category: Annotated[
            QueryCategory | None, Field(description="Filter by query category")
        ] = None,
        search: Annotated[
            str | None, Field(description="Search by query name or description")
        ] = None,
        built_in: Annotated[
            bool | None,
            Field(description="Filter by built-in (true) or custom (false) queries"),
        ] = None,
        page_size: Annotated[int, Field(ge=1, le=100, description="Results per page (1-100)")] = 50,
        page: Page = 1,
    ) -> dict[str, Any]:
        with sophos_errors("list_saved_queries"):
            response = await client.get_saved_queries(
                {
                    "pageSize": page_size,
                    "page": page,
                    "category": category,
                    "search": search or None,
                    "builtIn": built_in,
                }
            )
        keys = (
            "id",
            "name",
            "description",
            "category",
            "sql",
            "supportedOSes",
            "variables",
            "builtIn",
            "createdAt",
        )
        return {
            "queries": [{key: q.get(key) for key in keys} for q in response.items],
            **response.summary(),
            "pageSize": page_size,
        }

    @mcp.tool(
        description=(
            "Retrieve results from a Live Discover query run, "
            "returning tabular data from each endpoint"
        )
    )
    async def get_query_results(
        query_run_id: Annotated[str, Field(description="Query run UUID returned by run_query")],
        endpoint_id: Annotated[
            str | None, Field(description="Filter results for a specific endpoint ID")
        ] = None,
        page_size: Annotated[
            int, Field(ge=1, le=500, description="Result rows per page (1-500)")
        ] = 100,
        page: Page = 1,
    ) -> dict[str, Any]:
        with sophos_errors("get_query_results"):
            response = await client.get_query_results(
                query_run_id,
                {"pageSize": page_size, "page": page, "endpointId": endpoint_id or None},
            )

        results = []
        for item in response.get("items") or []:
            rows = item.get("rows") or []
            results.append(
                {
                    "endpointId": item.get("endpointId"),
                    "hostname": item.get("hostname"),
                    "columns": item.get("columns"),
                    "rowCount": len(rows),
                    "rows": rows,
                }
            )
        return {
            "queryRunId": query_run_id,
            "status": response.get("status"),
            "results": results,
            "endpointCount": len(results),
            "totalRows": sum(r["rowCount"] for r in results),
        }

    @mcp.tool(
        description=(
            "List available Live Discover query categories with descriptions and "
            "example queries, to help discover what can be queried"
        )
    )
    def list_query_categories() -> dict[str, Any]:
        categories = load_reference(catalog, QUERY_CATEGORIES)
        return {"categories": categories, "total": len(categories)}
