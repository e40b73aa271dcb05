"""
Caller authentication for the streamable-HTTP transport.

When the server is exposed over HTTP, anyone who can reach /mcp could isolate
endpoints or resolve alerts with our Sophos Central credentials. Every MCP
request therefore has to present a bearer JWT:

- Extracts the Bearer token from the HTTP Authorization header
- Validates the JWT signature and expiration with PyJWT
- Extracts the scopes (sophos:read, sophos:respond) that AuthMiddleware in
  server.py checks against TOOL_SCOPE_MAP

Token structure (JWT payload):
    {
        "sub": "soc-analyst-1",                       # who is calling
        "scope": ["sophos:read", "sophos:respond"],   # what they may do
        "exp": 1738800000                             # expiry (Unix timestamp)
    }

The stdio transport is not covered: there the MCP client is the local process
that spawned us.
"""

from dataclasses import dataclass

import jwt

from sophos_mcp.config import settings


class AuthError(Exception):
    """
    Raised when caller token validation fails for any reason.

    Distinct from errors.SophosAuthError, which is about *our* credentials
    being rejected by Sophos Central.

    Attributes:
        message: Reason for the rejection, written to the audit log
        status_code: HTTP status for the rejection (always 401 today)
    """

    def __init__(self, message: str, status_code: int = 401):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


@dataclass(frozen=True)
class TokenInfo:
    """
    Validated caller identity extracted from a JWT.

    Attributes:
        subject: The "sub" claim (e.g. "soc-analyst-1" or "triage-agent")
        scopes: Authorized scopes (e.g. ["sophos:read"])
    """

    subject: str
    scopes: list[str]


def _bearer_credential(authorization_header: str | None) -> str:
    """The raw JWT from an "Authorization: Bearer <jwt>" header value."""
    if not authorization_header:
        raise AuthError("Missing Authorization header")
    scheme, _, credential = authorization_header.partition(" ")
    # RFC 6750: the scheme name is case-insensitive.
    if scheme.lower() != "bearer" or not credential:
        raise AuthError("Invalid Authorization header format, expected 'Bearer <token>'")
    return credential


def _scope_list(claims: dict) -> list[str]:
    # No scope claim: authenticated, but allowed nothing.
    granted = claims.get("scope", [])
    if not isinstance(granted, list):
        raise AuthError("Invalid scope claim: must be a list")
    if any(not isinstance(entry, str) for entry in granted):
        raise AuthError("Invalid scope claim: all entries must be strings")
    return granted


def validate_token(
    authorization_header: str | None,
    secret_key: str | None = None,
    algorithm: str | None = None,
) -> TokenInfo:
    """
    Authenticate an MCP caller from its Authorization header.

    Args:
        authorization_header: Raw header value, expected "Bearer <jwt-token>"
        secret_key: Verification key (defaults to MCP_JWT_SECRET_KEY)
        algorithm: JWT algorithm (defaults to MCP_JWT_ALGORITHM)

    Raises:
        AuthError: Header, signature, expiry or claims are not acceptable
    """
    credential = _bearer_credential(authorization_header)
    try:
        claims = jwt.decode(
            credential,
            key=secret_key or settings.jwt_secret_key,
            algorithms=[algorithm or settings.jwt_algorithm],
            options={"require": ["exp", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        raise AuthError("Token has expired")
    except jwt.InvalidTokenError as e:
        raise AuthError(f"Invalid token: {e}")

    return TokenInfo(subject=claims["sub"], scopes=_scope_list(claims))
