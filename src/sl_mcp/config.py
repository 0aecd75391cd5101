"""Configuration from environment variables (and an optional .env file)."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .site_catalog import DURABLE_TTL_SECONDS, MEMORY_TTL_SECONDS
from .sl_client import BASE_URL


class Settings(BaseSettings):
    """SL MCP server settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # SL Transport API
    sl_api_base_url: str = Field(default=BASE_URL, description="SL Transport API base URL")
    sl_request_timeout: float = Field(default=30.0, description="Timeout for SL requests in seconds")

    # Durable site cache (Upstash / Vercel KV REST API)
    kv_rest_api_url: str | None = None
    kv_rest_api_token: str | None = None
    kv_rest_api_read_only_token: str | None = None
    sites_memory_ttl_seconds: int = Field(default=MEMORY_TTL_SECONDS, gt=0)
    sites_durable_ttl_seconds: int = Field(default=DURABLE_TTL_SECONDS, gt=0)

    # MCP transport
    mcp_transport: Literal["stdio", "http"] = "stdio"
    mcp_api_key: str | None = Field(default=None, description="Shared secret for the HTTP transport")
    host: str = "127.0.0.1"
    port: int = 8000

    log_level: str = "INFO"

    @property
    def kv_token(self) -> str | None:
        return self.kv_rest_api_token or self.kv_rest_api_read_only_token

    @property
    def durable_cache_enabled(self) -> bool:
        """True when the KV URL and at least one token are configured."""
        return bool(self.kv_rest_api_url and self.kv_token)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings once per process."""
    return Settings()


def reset_settings() -> None:
    """Forget loaded settings (for tests)."""
    get_settings.cache_clear()
