"""
Application configuration loaded from environment variables.

Uses pydantic-settings to define typed configuration that automatically reads
from environment variables (or a local .env file). There are two groups:

- SophosSettings (SOPHOS_ prefix): what the API client needs to reach Sophos
  Central. Client ID and secret come from a service principal created in
  Sophos Central Admin > Global Settings > API Credentials Management.
- ServerSettings (MCP_ prefix): how this MCP server is exposed (transport,
  bind address, logging, caller authentication for the HTTP transport).

Missing credentials fail at load time, before any network call is attempted.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings

DEFAULT_AUTH_URL = "https://id.sophos.com/api/v2/oauth2/token"
DEFAULT_GLOBAL_URL = "https://api.central.sophos.com"

_CREDENTIALS_HINT = (
    "Create API credentials in Sophos Central > Global Settings > "
    "API Credentials Management."
)


class SophosSettings(BaseSettings):
    """
    Sophos Central API connection settings.

    Each field maps to an environment variable with the SOPHOS_ prefix:
    `client_id` reads SOPHOS_CLIENT_ID, `timeout` reads SOPHOS_TIMEOUT, etc.
    """

    # --- OAuth2 client credentials (required) ---
    client_id: str = ""
    client_secret: SecretStr = SecretStr("")

    # --- Region binding (optional, discovered via whoami when absent) ---
    tenant_id: str | None = None
    api_url: str | None = None

    # --- Endpoints ---
    auth_url: str = DEFAULT_AUTH_URL
    global_url: str = DEFAULT_GLOBAL_URL

    # Request timeout in seconds, applied to token, discovery and data calls alike.
    timeout: float = Field(default=30.0, gt=0)

    model_config = {
        "env_prefix": "SOPHOS_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @field_validator("tenant_id", "api_url", mode="before")
    @classmethod
    def _empty_is_unset(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("api_url", "auth_url", "global_url")
    @classmethod
    def _strip_trailing_slashes(cls, value: str | None) -> str | None:
        return value.rstrip("/") if value else value

    @model_validator(mode="after")
    def _require_credentials(self) -> "SophosSettings":
        if not self.client_id:
            raise ValueError(
                f"SOPHOS_CLIENT_ID environment variable is required. {_CREDENTIALS_HINT}"
            )
        if not self.client_secret.get_secret_value():
            raise ValueError(
                f"SOPHOS_CLIENT_SECRET environment variable is required. {_CREDENTIALS_HINT}"
            )
        return self


class ServerSettings(BaseSettings):
    """
    MCP server settings with environment variable bindings (MCP_ prefix).
    """

    # --- Transport ---

    # "stdio" is what desktop MCP clients spawn; "streamable-http" serves /mcp
    # over HTTP and turns on JWT caller authentication.
    transport: Literal["stdio", "streamable-http"] = "stdio"
    host: str = "0.0.0.0"
    port: int = 8080

    log_level: str = "info"

    # --- Caller authentication (HTTP transport only) ---
    auth_enabled: bool = True
    # Default is for local development only.
    jwt_secret_key: str = "dev-secret-change-me"
    jwt_algorithm: str = "HS256"

    # --- Reference catalogs served as MCP resources ---
    reference_dir: Path = Path(__file__).parent / "reference"

    model_config = {
        "env_prefix": "MCP_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


@lru_cache
def get_sophos_settings() -> SophosSettings:
    """Load Sophos settings once; raises pydantic.ValidationError if credentials are missing."""
    return SophosSettings()


def clear_settings_cache() -> None:
    get_sophos_settings.cache_clear()


# Server settings have no required fields, so a module-level singleton is safe.
settings = ServerSettings()
