"""
Mint caller JWTs for the streamable-HTTP transport.

The server only verifies tokens; issuing them belongs to your identity
provider. For local use and CI this script signs tokens with the same shared
secret the server reads from MCP_JWT_SECRET_KEY.

Roles are shorthands for scope sets:

    analyst     sophos:read
    responder   sophos:read sophos:respond

Usage examples:

    # Read-only token for a triage agent
    python -m scripts.generate_token --sub triage-agent --role analyst

    # Incident responder, valid for 2 hours
    python -m scripts.generate_token --sub alice --role responder --exp-hours 2

    # Explicit scopes instead of a role
    python -m scripts.generate_token --sub bot --scope sophos:read

    # Expired token (for testing rejection)
    python -m scripts.generate_token --sub alice --role analyst --exp-hours -1

Register the server with an MCP client using the token, e.g.:

    claude mcp add --transport http sophos http://localhost:8080/mcp \\
      --header "Authorization: Bearer <token>"
"""

import argparse
import datetime

import jwt

from sophos_mcp.config import settings
from sophos_mcp.scopes import READ_SCOPE, RESPOND_SCOPE

ROLES: dict[str, list[str]] = {
    "analyst": [READ_SCOPE],
    "responder": [READ_SCOPE, RESPOND_SCOPE],
}


def generate_token(
    subject: str,
    scopes: list[str],
    secret: str | None = None,
    algorithm: str | None = None,
    exp_hours: float = 8.0,
) -> str:
    """
    Sign a caller token.

    Args:
        subject: The "sub" claim, logged with every authorization decision
        scopes: Scopes granted (see sophos_mcp.scopes)
        secret: Signing key (defaults to MCP_JWT_SECRET_KEY)
        algorithm: JWT algorithm (defaults to MCP_JWT_ALGORITHM)
        exp_hours: Hours until expiry; negative values mint an expired token
    """
    now = datetime.datetime.now(datetime.timezone.utc)
    payload = {
        "sub": subject,
        "scope": scopes,
        "iat": now,
        "exp": now + datetime.timedelta(hours=exp_hours),
    }
    return jwt.encode(
        payload,
        secret or settings.jwt_secret_key,
        algorithm=algorithm or settings.jwt_algorithm,
    )


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Generate caller JWTs for the Sophos Central MCP server.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="Roles: " + ", ".join(f"{name} = {' '.join(s)}" for name, s in ROLES.items()),
    )
    parser.add_argument("--sub", required=True, help="Subject claim (e.g. 'alice', 'triage-agent')")

    grant = parser.add_mutually_exclusive_group(required=True)
    grant.add_argument("--role", choices=sorted(ROLES), help="Predefined scope set")
    grant.add_argument("--scope", nargs="+", help="Explicit scopes (e.g. sophos:read)")

    parser.add_argument(
        "--secret",
        default=None,
        help="Signing secret (default: MCP_JWT_SECRET_KEY from the environment)",
    )
    parser.add_argument(
        "--exp-hours",
        type=float,
        default=8.0,
        help="Hours until the token expires (negative = already expired, default: 8)",
    )
    args = parser.parse_args()

    scopes = ROLES[args.role] if args.role else args.scope
    token = generate_token(args.sub, scopes, secret=args.secret, exp_hours=args.exp_hours)

    print(f"Subject:  {args.sub}")
    print(f"Scopes:   {' '.join(scopes)}")
    print(f"Expires:  in {args.exp_hours:g}h")
    print()
    print(token)


if __name__ == "__main__":
    main()
