"""SL site catalog with a two-tier cache.

The fast tier is an in-process ``MemoryCache`` with a short TTL; the optional
durable tier is a ``DurableStore`` (KV REST) holding the catalog for a week.
Durable-tier failures only cost a warning: the fast tier or a fresh upstream
fetch still answers the call.
"""

import json
import logging
import math
import time
from typing import Any, Awaitable, Callable

from pydantic import TypeAdapter, ValidationError

from .kv_store import DurableStore
from .models import CacheEntry, Site
from .sl_client import SLAPIError, SLClient

logger = logging.getLogger(__name__)

SITES_CACHE_KEY = "sl:sites:v1"
MEMORY_TTL_SECONDS = 60 * 60
DURABLE_TTL_SECONDS = 60 * 60 * 24 * 7

Clock = Callable[[], float]
SitesFetcher = Callable[[], Awaitable[list[Site]]]

_sites_adapter = TypeAdapter(list[Site])


class MemoryCache:
    """Process-local cache of immutable values with per-entry expiry."""

    def __init__(self, clock: Clock = time.time):
        self._clock = clock
        self._store: dict[str, CacheEntry] = {}

    def get(self, key: str) -> Any | None:
        entry = self._store.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            self._store.pop(key, None)
            return None
        return entry.value

    def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        self._store[key] = CacheEntry(value=value, expires_at=self._clock() + ttl_seconds)

    def clear(self) -> None:
        self._store.clear()


def _coerce_site_id(value: Any) -> int | None:
    """Accept finite, positive, integral numbers (or numeric strings)."""
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, float):
        if not math.isfinite(value) or not value.is_integer() or value <= 0:
            return None
        return int(value)
    return None


def parse_sites(data: Any) -> list[Site]:
    """Validate a raw sites payload, dropping records without id or name.

    Raises:
        SLAPIError: If the payload is not a list.
    """
    if not isinstance(data, list):
        raise SLAPIError("Unexpected SL sites response.")

    sites = []
    for record in data:
        if not isinstance(record, dict):
            continue
        raw_id = record.get("siteId")
        if raw_id is None:
            raw_id = record.get("id")
        site_id = _coerce_site_id(raw_id)
        name = record.get("name")
        name = name.strip() if isinstance(name, str) else ""
        if site_id is None or not name:
            continue
        sites.append(Site(site_id=site_id, name=name))
    return sites


def dump_sites(sites: list[Site]) -> str:
    """Serialize sites as stored in the durable tier."""
    return _sites_adapter.dump_json(sites, by_alias=True).decode("utf-8")


async def fetch_sites(client: SLClient) -> list[Site]:
    """Fetch and validate the site catalog from SL."""
    return parse_sites(await client.get_sites())


class SiteCatalogCache:
    """Serves the site catalog from memory, then the durable store, then SL."""

    def __init__(
        self,
        fetcher: SitesFetcher,
        durable: DurableStore | None = None,
        clock: Clock = time.time,
        memory_ttl: float = MEMORY_TTL_SECONDS,
        durable_ttl: int = DURABLE_TTL_SECONDS,
        key: str = SITES_CACHE_KEY,
    ):
        self._fetcher = fetcher
        self._durable = durable
        self._memory = MemoryCache(clock)
        self.memory_ttl = memory_ttl
        self.durable_ttl = durable_ttl
        self.key = key

    async def _read_durable(self) -> list[Site] | None:
        if self._durable is None:
            return None
        try:
            raw = await self._durable.get(self.key)
            if raw is None:
                return None
            return _sites_adapter.validate_python(json.loads(raw))
        except (ValueError, ValidationError) as e:
            logger.warning("Ignoring unreadable site catalog in durable cache: %s", e)
        except Exception:
            logger.warning("Durable site cache read failed, falling back to SL", exc_info=True)
        return None

    async def _write_durable(self, sites: list[Site]) -> None:
        if self._durable is None:
            return
        try:
            await self._durable.set(self.key, dump_sites(sites), self.durable_ttl)
        except Exception:
            logger.warning("Durable site cache write failed", exc_info=True)

    async def get_sites(self) -> list[Site]:
        """Return the full site list, fetching from SL only on a full miss.

        Raises:
            SLAPIError: If the catalog had to be fetched and SL failed.
        """
        sites = self._memory.get(self.key)
        if sites is not None:
            logger.debug("Site catalog served from memory")
            return sites

        sites = await self._read_durable()
        if sites is not None:
            logger.debug("Site catalog served from durable cache (%d sites)", len(sites))
            self._memory.set(self.key, sites, self.memory_ttl)
            return sites

        return await self.refresh()

    async def refresh(self) -> list[Site]:
        """Fetch the catalog from SL and repopulate both tiers."""
        sites = await self._fetcher()
        logger.info("Fetched %d sites from SL", len(sites))
        self._memory.set(self.key, sites, self.memory_ttl)
        await self._write_durable(sites)
        return sites

    def clear(self) -> None:
        """Drop the fast tier (the durable tier expires on its own)."""
        self._memory.clear()
