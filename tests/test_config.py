"""Tests for environment-based configuration."""

import pytest

from sl_mcp.config import Settings, get_settings, reset_settings

KV_VARS = ("KV_REST_API_URL", "KV_REST_API_TOKEN", "KV_REST_API_READ_ONLY_TOKEN")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in KV_VARS + ("MCP_TRANSPORT", "SITES_MEMORY_TTL_SECONDS"):
        monkeypatch.delenv(name, raising=False)
    reset_settings()
    yield
    reset_settings()


def test_defaults():
    settings = Settings(_env_file=None)
    assert settings.sl_api_base_url == "https://transport.integration.sl.se/v1"
    assert settings.sites_memory_ttl_seconds == 3600
    assert settings.sites_durable_ttl_seconds == 604800
    assert settings.mcp_transport == "stdio"
    assert not settings.durable_cache_enabled


def test_durable_cache_needs_url_and_token(monkeypatch):
    monkeypatch.setenv("KV_REST_API_URL", "https://kv.example.test")
    assert not Settings(_env_file=None).durable_cache_enabled

    monkeypatch.setenv("KV_REST_API_READ_ONLY_TOKEN", "ro")
    settings = Settings(_env_file=None)
    assert settings.durable_cache_enabled
    assert settings.kv_token == "ro"

    monkeypatch.setenv("KV_REST_API_TOKEN", "rw")
    assert Settings(_env_file=None).kv_token == "rw"


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("MCP_TRANSPORT", "http")
    monkeypatch.setenv("SITES_MEMORY_TTL_SECONDS", "60")
    settings = Settings(_env_file=None)
    assert settings.mcp_transport == "http"
    assert settings.sites_memory_ttl_seconds == 60


def test_get_settings_is_cached():
    assert get_settings() is get_settings()
