"""Durable key-value store for the site catalog.

The durable tier talks to a Redis-compatible REST endpoint (Upstash / Vercel
KV): each command is POSTed as a JSON array and answered with
``{"result": ...}`` or ``{"error": ...}``.
"""

import logging
from typing import Any, Protocol

import httpx

logger = logging.getLogger(__name__)


class KVStoreError(Exception):
    """The durable store rejected a command or could not be reached."""


class DurableStore(Protocol):
    """Port for the durable cache tier. Both operations may fail."""

    async def get(self, key: str) -> str | None:
        """Return the stored value, or None when the key is absent."""
        ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store a value that expires after ttl_seconds."""
        ...


class KVRestStore:
    """DurableStore backed by a KV REST API."""

    def __init__(
        self,
        url: str,
        token: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.url = url.rstrip("/")
        self._token = token
        self.timeout = timeout
        self._transport = transport

    async def _command(self, *args: Any) -> Any:
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                headers={"Authorization": f"Bearer {self._token}"},
                transport=self._transport,
            ) as client:
                response = await client.post(self.url, json=list(args))
        except httpx.RequestError as e:
            raise KVStoreError(f"KV request failed: {e}") from e

        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if not isinstance(payload, dict):
            payload = {}
        if not response.is_success or "error" in payload:
            detail = payload.get("error")
            raise KVStoreError(
                f"KV {args[0]} failed with {response.status_code}"
                + (f": {detail}" if detail else "")
            )
        return payload.get("result")

    async def get(self, key: str) -> str | None:
        result = await self._command("GET", key)
        if result is None:
            return None
        return str(result)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        await self._command("SET", key, value, "EX", int(ttl_seconds))
        logger.debug("Stored %s in KV (ttl=%ss)", key, ttl_seconds)
