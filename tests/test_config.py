"""Tests for environment-driven settings (sophos_mcp/config.py)."""

import pytest
from pydantic import ValidationError

from sophos_mcp.config import (
    DEFAULT_AUTH_URL,
    DEFAULT_GLOBAL_URL,
    ServerSettings,
    SophosSettings,
    clear_settings_cache,
    get_sophos_settings,
)


@pytest.fixture
def sophos_env(monkeypatch):
    """Start every test from a clean SOPHOS_* environment."""
    for name in (
        "SOPHOS_CLIENT_ID",
        "SOPHOS_CLIENT_SECRET",
        "SOPHOS_TENANT_ID",
        "SOPHOS_API_URL",
        "SOPHOS_AUTH_URL",
        "SOPHOS_GLOBAL_URL",
        "SOPHOS_TIMEOUT",
    ):
        monkeypatch.delenv(name, raising=False)
    clear_settings_cache()
    yield monkeypatch
    clear_settings_cache()


class TestSophosSettings:
    def test_reads_credentials_and_defaults(self, sophos_env):
        sophos_env.setenv("SOPHOS_CLIENT_ID", "cid")
        sophos_env.setenv("SOPHOS_CLIENT_SECRET", "csecret")

        config = SophosSettings(_env_file=None)

        assert config.client_id == "cid"
        assert config.client_secret.get_secret_value() == "csecret"
        assert config.tenant_id is None
        assert config.api_url is None
        assert config.auth_url == DEFAULT_AUTH_URL
        assert config.global_url == DEFAULT_GLOBAL_URL
        assert config.timeout == 30.0

    def test_missing_client_id_fails_with_guidance(self, sophos_env):
        sophos_env.setenv("SOPHOS_CLIENT_SECRET", "csecret")

        with pytest.raises(ValidationError, match="SOPHOS_CLIENT_ID environment variable is required"):
            SophosSettings(_env_file=None)

    def test_missing_client_secret_fails_with_guidance(self, sophos_env):
        sophos_env.setenv("SOPHOS_CLIENT_ID", "cid")

        with pytest.raises(ValidationError, match="API Credentials Management"):
            SophosSettings(_env_file=None)

    def test_trailing_slashes_stripped(self, sophos_env):
        config = SophosSettings(
            _env_file=None,
            client_id="cid",
            client_secret="csecret",
            api_url="https://api-eu01.central.sophos.com///",
            global_url="https://api.central.sophos.com/",
        )

        assert config.api_url == "https://api-eu01.central.sophos.com"
        assert config.global_url == "https://api.central.sophos.com"

    def test_blank_tenant_and_url_treated_as_unset(self, sophos_env):
        sophos_env.setenv("SOPHOS_TENANT_ID", "  ")
        sophos_env.setenv("SOPHOS_API_URL", "")

        config = SophosSettings(_env_file=None, client_id="cid", client_secret="csecret")

        assert config.tenant_id is None
        assert config.api_url is None

    def test_timeout_must_be_positive(self, sophos_env):
        with pytest.raises(ValidationError):
            SophosSettings(_env_file=None, client_id="cid", client_secret="csecret", timeout=0)

    def test_secret_not_exposed_in_repr(self, sophos_env):
        config = SophosSettings(_env_file=None, client_id="cid", client_secret="hunter2")

        assert "hunter2" not in repr(config)

    def test_get_sophos_settings_is_cached(self, sophos_env):
        sophos_env.setenv("SOPHOS_CLIENT_ID", "cid")
        sophos_env.setenv("SOPHOS_CLIENT_SECRET", "csecret")

        assert get_sophos_settings() is get_sophos_settings()


class TestServerSettings:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("MCP_TRANSPORT", raising=False)
        monkeypatch.delenv("MCP_AUTH_ENABLED", raising=False)

        server = ServerSettings(_env_file=None)

        assert server.transport == "stdio"
        assert server.auth_enabled is True
        assert (server.reference_dir / "mitre-mappings.json").exists()

    def test_rejects_unknown_transport(self, monkeypatch):
        monkeypatch.setenv("MCP_TRANSPORT", "websocket")

        with pytest.raises(ValidationError):
            ServerSettings(_env_file=None)
