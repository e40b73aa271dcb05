"""
HTTP client for the Sophos Central REST API.

Three pieces of state-handling live on one SophosClient instance:

- Credential manager (`obtain_token`): caches an OAuth2 bearer token obtained
  with the client-credentials grant and renews it only when it is missing or
  within 60 seconds of expiry.
- Endpoint resolver (`ensure_resolved`): asks the global `whoami` endpoint
  which data-region host and tenant ID to use, once. Values supplied through
  configuration always win; discovery only fills gaps.
- Request dispatcher (`request`): sends one bounded-time request and maps every
  failure onto the SophosClientError hierarchy (see errors.py).

Every public call runs resolve -> token -> dispatch, in that order: discovery
itself needs a token, and the cache may have refreshed in between.

Concurrency: no locks. The token and the region binding are frozen values
that get replaced whole, so two overlapping refreshes just cost one redundant
token exchange and the last write wins.

Each outbound request opens its own httpx.AsyncClient inside `async with`, so
connections are released whether the call completes, fails or is cancelled
by the timeout.
"""

import asyncio
import logging
import time
from typing import Any, Callable

import httpx
from pydantic import ValidationError

from sophos_mcp.config import SophosSettings
from sophos_mcp.errors import (
    ErrorKind,
    SophosAuthError,
    SophosClientError,
    SophosRateLimitError,
)
from sophos_mcp.models import AccessToken, PaginatedResponse, RegionBinding

logger = logging.getLogger("sophos-mcp.client")

QueryParams = dict[str, str | int | float | bool | None]

# Used when the token response omits expires_in.
DEFAULT_TOKEN_LIFETIME = 3600.0


def build_query_params(params: QueryParams | None) -> dict[str, str]:
    """
    Coerce query parameters to strings, dropping unset values.

    Booleans are rendered the way the API expects them ("true"/"false"),
    not as Python's "True"/"False".
    """
    if not params:
        return {}
    query: dict[str, str] = {}
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, bool):
            query[key] = "true" if value else "false"
        else:
            query[key] = str(value)
    return query


def _drop_none(body: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in body.items() if value is not None}


def _parse_retry_after(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        # Leading integer part, so "30.5" waits 30 seconds.
        return int(float(value.strip()))
    except (ValueError, OverflowError):
        # HTTP-date form or garbage: no usable hint.
        return None


def _body_text(response: httpx.Response) -> str:
    try:
        return response.text or "Unknown error"
    except (UnicodeDecodeError, LookupError):
        return "Unknown error"


class SophosClient:
    """
    Authenticated client for the Sophos Central partner/organization/tenant API.

    Usage:
        client = SophosClient(get_sophos_settings())
        alerts = await client.get_alerts({"severity": "high", "pageSize": 25})

    Args:
        config: Validated SophosSettings (credentials, URLs, timeout)
        transport: Optional httpx transport, used for every outbound request
                   (tests pass an httpx.MockTransport here)
        clock: Source of "now" as a Unix timestamp, for token expiry checks
    """

    def __init__(
        self,
        config: SophosSettings,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config
        self._transport = transport
        self._clock = clock
        self._token: AccessToken | None = None
        self._region = RegionBinding(api_url=config.api_url, tenant_id=config.tenant_id)

    @property
    def tenant_id(self) -> str | None:
        return self._region.tenant_id

    @property
    def api_url(self) -> str | None:
        return self._region.api_url

    def invalidate_token(self) -> None:
        """Drop the cached token so the next call re-authenticates."""
        self._token = None

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _send(self, description: str, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """
        Send a single HTTP request bounded by the configured timeout.

        Raises:
            SophosClientError: kind TIMEOUT if the deadline passes, kind
                               TRANSPORT for connection-level failures
        """
        timeout = self.config.timeout
        async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as session:
            try:
                return await asyncio.wait_for(
                    session.request(method, url, **kwargs), timeout=timeout
                )
            except (asyncio.TimeoutError, httpx.TimeoutException):
                logger.warning(
                    "Sophos Central request timed out",
                    extra={"event_data": {"method": method, "url": url, "timeout": timeout}},
                )
                raise SophosClientError(
                    f"{description} timed out after {timeout:g}s", kind=ErrorKind.TIMEOUT
                ) from None
            except httpx.RequestError as e:
                raise SophosClientError(
                    f"{description} failed: {e}", kind=ErrorKind.TRANSPORT
                ) from e

    # ------------------------------------------------------------------
    # OAuth2 authentication
    # ------------------------------------------------------------------

    async def obtain_token(self) -> str:
        """
        Return a bearer token that is valid for at least another 60 seconds.

        Reuses the cached token when possible; otherwise performs the
        client-credentials exchange against the token endpoint.

        Raises:
            SophosAuthError: The exchange was rejected, or the 200 body carried
                             an application-level errorCode
            SophosClientError: The exchange timed out or could not be sent
        """
        token = self._token
        if token is not None and token.is_usable(self._clock()):
            return token.value

        response = await self._send(
            "OAuth2 token request",
            "POST",
            self.config.auth_url,
            data={
                "grant_type": "client_credentials",
                "client_id": self.config.client_id,
                "client_secret": self.config.client_secret.get_secret_value(),
                "scope": "token",
            },
        )

        if not response.is_success:
            raise SophosAuthError(
                f"OAuth2 authentication failed ({response.status_code}): {_body_text(response)}",
                response.status_code,
            )

        try:
            token_data = response.json()
        except ValueError:
            token_data = None
        if not isinstance(token_data, dict):
            raise SophosAuthError(
                "OAuth2 token response was not a JSON object", response.status_code
            )

        # Sophos reports some failures inside a 200 body.
        if token_data.get("errorCode"):
            raise SophosAuthError(
                f"OAuth2 error: {token_data['errorCode']} - {token_data.get('message', '')}"
            )

        access_token = token_data.get("access_token")
        if not access_token:
            raise SophosAuthError("OAuth2 token response did not include an access token")

        raw_expires_in = token_data.get("expires_in")
        if raw_expires_in is None:
            expires_in = DEFAULT_TOKEN_LIFETIME
        else:
            try:
                expires_in = float(raw_expires_in)
            except (TypeError, ValueError):
                raise SophosAuthError(
                    "OAuth2 token response has an invalid expires_in", response.status_code
                ) from None
        self._token = AccessToken(value=access_token, expires_at=self._clock() + expires_in)

        logger.info(
            "Obtained Sophos Central access token",
            extra={"event_data": {"expires_in": expires_in}},
        )
        return access_token

    # ------------------------------------------------------------------
    # Tenant discovery
    # ------------------------------------------------------------------

    async def ensure_resolved(self) -> None:
        """
        Make sure the data-region URL and tenant ID are known.

        No-op once both are set. Otherwise calls GET /whoami/v1 on the global
        host and fills in whichever of the two is still missing.

        Raises:
            SophosClientError: whoami answered with a non-2xx status
            SophosAuthError: the token needed for whoami could not be obtained
        """
        if self._region.is_complete:
            return

        token = await self.obtain_token()
        response = await self._send(
            "Tenant discovery",
            "GET",
            f"{self.config.global_url}/whoami/v1",
            headers={"Authorization": f"Bearer {token}"},
        )

        if not response.is_success:
            raise SophosClientError(
                f"Tenant discovery failed ({response.status_code})", response.status_code
            )

        try:
            whoami = response.json()
        except ValueError:
            whoami = None
        if not isinstance(whoami, dict):
            raise SophosClientError(
                "Tenant discovery returned an unexpected body", response.status_code
            )

        api_hosts = whoami.get("apiHosts") or {}
        if not isinstance(api_hosts, dict) or not isinstance(api_hosts.get("dataRegion") or "", str):
            raise SophosClientError(
                "Tenant discovery returned an unexpected body", response.status_code
            )
        self._region = self._region.fill_from(api_hosts.get("dataRegion"), whoami.get("id"))

        logger.info(
            "Resolved Sophos Central tenant",
            extra={
                "event_data": {
                    "tenant_id": self._region.tenant_id,
                    "id_type": whoami.get("idType"),
                    "data_region": self._region.api_url,
                }
            },
        )

    # ------------------------------------------------------------------
    # Core HTTP
    # ------------------------------------------------------------------

    async def request(
        self,
        method: str,
        path: str,
        params: QueryParams | None = None,
        body: Any = None,
        use_global_url: bool = False,
    ) -> Any:
        """
        Send an authenticated request to the Sophos Central API.

        Args:
            method: HTTP method
            path: API path starting with "/", e.g. "/common/v1/alerts"
            params: Query parameters; None values are omitted
            body: JSON body; omitted entirely when None
            use_global_url: Target the global host (partner/organization
                            endpoints) instead of the tenant's data region

        Returns:
            The parsed JSON body, or {} for 204 No Content

        Raises:
            SophosAuthError: 401/403 (the cached token is dropped first)
            SophosRateLimitError: 429, with retry_after from Retry-After
            SophosClientError: any other failure
        """
        await self.ensure_resolved()
        token = await self.obtain_token()
        region = self._region

        if use_global_url:
            base_url = self.config.global_url
        else:
            base_url = region.api_url
            if not base_url:
                raise SophosClientError(
                    "Sophos Central data region is unknown: set SOPHOS_API_URL "
                    "(and SOPHOS_TENANT_ID for partner or organization credentials)"
                )

        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if not use_global_url and region.tenant_id:
            headers["X-Tenant-ID"] = region.tenant_id

        extra: dict[str, Any] = {}
        if body is not None:
            extra["json"] = body

        logger.debug("%s %s", method, path)
        response = await self._send(
            "Sophos Central API request",
            method,
            f"{base_url}{path}",
            params=build_query_params(params),
            headers=headers,
            **extra,
        )

        if not response.is_success:
            self._raise_for_response(method, path, response)

        if response.status_code == 204:
            return {}

        try:
            return response.json()
        except ValueError:
            raise SophosClientError(
                f"Sophos Central API returned an invalid JSON body ({response.status_code})",
                response.status_code,
            ) from None

    def _raise_for_response(self, method: str, path: str, response: httpx.Response) -> None:
        status = response.status_code
        detail = f"{status} {response.reason_phrase}".rstrip()
        try:
            error_body = response.json()
        except ValueError:
            error_body = None
        if isinstance(error_body, dict):
            upstream_message = error_body.get("message") or error_body.get("error")
            if upstream_message:
                detail = f"{detail}: {upstream_message}"

        logger.warning(
            "Sophos Central API error",
            extra={"event_data": {"method": method, "path": path, "status": status}},
        )

        if status in (401, 403):
            self.invalidate_token()
            raise SophosAuthError(f"Authentication failed: {detail}", status)

        if status == 429:
            raise SophosRateLimitError(
                f"Rate limited: {detail}",
                _parse_retry_after(response.headers.get("Retry-After")),
            )

        raise SophosClientError(f"Request failed: {detail}", status)

    async def get(
        self, path: str, params: QueryParams | None = None, use_global_url: bool = False
    ) -> Any:
        return await self.request("GET", path, params, None, use_global_url)

    async def post(
        self,
        path: str,
        body: Any = None,
        params: QueryParams | None = None,
        use_global_url: bool = False,
    ) -> Any:
        return await self.request("POST", path, params, body, use_global_url)

    async def patch(self, path: str, body: Any = None, params: QueryParams | None = None) -> Any:
        return await self.request("PATCH", path, params, body)

    async def delete(self, path: str, params: QueryParams | None = None) -> Any:
        return await self.request("DELETE", path, params)

    async def _get_page(
        self, path: str, params: QueryParams | None = None, use_global_url: bool = False
    ) -> PaginatedResponse:
        body = await self.get(path, params, use_global_url)
        try:
            return PaginatedResponse.model_validate(body)
        except ValidationError as e:
            logger.warning(
                "Malformed list envelope",
                extra={"event_data": {"path": path, "errors": e.error_count()}},
            )
            raise SophosClientError("Sophos Central API returned an unexpected list body") from e

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    async def get_endpoints(self, params: QueryParams | None = None) -> PaginatedResponse:
        return await self._get_page("/endpoint/v1/endpoints", params)

    async def get_endpoint(self, endpoint_id: str) -> dict[str, Any]:
        return await self.get(f"/endpoint/v1/endpoints/{endpoint_id}")

    async def isolate_endpoint(self, endpoint_id: str, comment: str | None = None) -> dict[str, Any]:
        return await self.post(
            f"/endpoint/v1/endpoints/{endpoint_id}/isolation",
            _drop_none({"enabled": True, "comment": comment}),
        )

    async def unisolate_endpoint(self, endpoint_id: str, comment: str | None = None) -> dict[str, Any]:
        return await self.post(
            f"/endpoint/v1/endpoints/{endpoint_id}/isolation",
            _drop_none({"enabled": False, "comment": comment}),
        )

    async def scan_endpoint(self, endpoint_id: str) -> dict[str, Any]:
        """Trigger a full on-demand scan."""
        return await self.post(f"/endpoint/v1/endpoints/{endpoint_id}/scans", {"type": "full"})

    async def get_endpoint_software(
        self, endpoint_id: str, params: QueryParams | None = None
    ) -> PaginatedResponse:
        return await self._get_page(f"/endpoint/v1/endpoints/{endpoint_id}/software", params)

    # ------------------------------------------------------------------
    # Alerts
    # ------------------------------------------------------------------

    async def get_alerts(self, params: QueryParams | None = None) -> PaginatedResponse:
        return await self._get_page("/common/v1/alerts", params)

    async def get_alert(self, alert_id: str) -> dict[str, Any]:
        return await self.get(f"/common/v1/alerts/{alert_id}")

    async def perform_alert_action(
        self, alert_id: str, action: str, message: str | None = None
    ) -> dict[str, Any]:
        """Perform an action (acknowledge, cleanPua, clearThreat, ...) on an alert."""
        return await self.post(
            f"/common/v1/alerts/{alert_id}/actions",
            _drop_none({"action": action, "message": message}),
        )

    # ------------------------------------------------------------------
    # Detections and threat cases
    # ------------------------------------------------------------------

    async def get_detections(self, params: QueryParams | None = None) -> PaginatedResponse:
        return await self._get_page("/xdr/v1/detections", params)

    async def get_detection(self, detection_id: str) -> dict[str, Any]:
        return await self.get(f"/xdr/v1/detections/{detection_id}")

    async def get_threat_cases(self, params: QueryParams | None = None) -> PaginatedResponse:
        return await self._get_page("/xdr/v1/threat-cases", params)

    async def get_case_detections(
        self, case_id: str, params: QueryParams | None = None
    ) -> PaginatedResponse:
        return await self._get_page(f"/xdr/v1/threat-cases/{case_id}/detections", params)

    async def update_case_status(
        self, case_id: str, status: str, assignee_id: str | None = None
    ) -> dict[str, Any]:
        body: dict[str, Any] = {"status": status}
        if assignee_id:
            body["assignee"] = {"id": assignee_id}
        return await self.patch(f"/xdr/v1/threat-cases/{case_id}", body)

    # ------------------------------------------------------------------
    # SIEM events and audit logs
    # ------------------------------------------------------------------

    async def get_events(self, params: QueryParams | None = None) -> PaginatedResponse:
        return await self._get_page("/siem/v1/events", params)

    async def get_event(self, event_id: str) -> dict[str, Any]:
        return await self.get(f"/siem/v1/events/{event_id}")

    async def get_audit_logs(self, params: QueryParams | None = None) -> PaginatedResponse:
        return await self._get_page("/siem/v1/audit/events", params)

    # ------------------------------------------------------------------
    # Policies
    # ------------------------------------------------------------------

    async def get_policies(self, params: QueryParams | None = None) -> PaginatedResponse:
        return await self._get_page("/endpoint/v1/policies", params)

    async def get_policy(self, policy_id: str) -> dict[str, Any]:
        return await self.get(f"/endpoint/v1/policies/{policy_id}")

    async def get_exclusions(self, params: QueryParams | None = None) -> PaginatedResponse:
        return await self._get_page("/endpoint/v1/settings/exclusions/scanning", params)

    # ------------------------------------------------------------------
    # Tenants (partner/organization view, global host)
    # ------------------------------------------------------------------

    async def get_tenants(self, params: QueryParams | None = None) -> PaginatedResponse:
        return await self._get_page("/partner/v1/tenants", params, use_global_url=True)

    async def get_tenant(self, tenant_id: str) -> dict[str, Any]:
        return await self.get(f"/partner/v1/tenants/{tenant_id}", use_global_url=True)

    # ------------------------------------------------------------------
    # Live Discover
    # ------------------------------------------------------------------

    async def run_live_discover_query(
        self,
        sql: str,
        endpoint_ids: list[str],
        variables: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {
            "sql": sql,
            "matchEndpoints": [{"id": endpoint_id} for endpoint_id in endpoint_ids],
        }
        if variables:
            body["variables"] = [{"name": name, "value": value} for name, value in variables.items()]
        return await self.post("/live-discover/v1/queries/runs", body)

    async def get_saved_queries(self, params: QueryParams | None = None) -> PaginatedResponse:
        return await self._get_page("/live-discover/v1/queries", params)

    async def get_query_results(
        self, query_run_id: str, params: QueryParams | None = None
    ) -> dict[str, Any]:
        """Results come back as {"items": [...], "status": "..."}, without page metadata."""
        return await self.get(f"/live-discover/v1/queries/runs/{query_run_id}/results", params)
