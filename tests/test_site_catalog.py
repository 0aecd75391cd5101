"""Tests for the two-tier site catalog cache."""

import json
import logging

import pytest

from sl_mcp.models import Site
from sl_mcp.site_catalog import (
    DURABLE_TTL_SECONDS,
    SITES_CACHE_KEY,
    MemoryCache,
    SiteCatalogCache,
    dump_sites,
    fetch_sites,
    parse_sites,
)
from sl_mcp.sl_client import SLAPIError

SITES = [Site(site_id=9001, name="T-Centralen"), Site(site_id=9192, name="Slussen")]


class FakeClock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class CountingFetcher:
    def __init__(self, sites=SITES, error: Exception | None = None):
        self.sites = sites
        self.error = error
        self.calls = 0

    async def __call__(self) -> list[Site]:
        self.calls += 1
        if self.error:
            raise self.error
        return list(self.sites)


class FakeStore:
    def __init__(self, fail_get: bool = False, fail_set: bool = False):
        self.data: dict[str, str] = {}
        self.ttls: dict[str, int] = {}
        self.fail_get = fail_get
        self.fail_set = fail_set
        self.gets = 0

    async def get(self, key: str) -> str | None:
        self.gets += 1
        if self.fail_get:
            raise ConnectionError("kv down")
        return self.data.get(key)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        if self.fail_set:
            raise ConnectionError("kv read-only")
        self.data[key] = value
        self.ttls[key] = ttl_seconds


class TestMemoryCache:
    """Test the fast tier."""

    def test_get_missing(self):
        assert MemoryCache(FakeClock()).get("nope") is None

    def test_entry_valid_until_expiry(self):
        clock = FakeClock()
        cache = MemoryCache(clock)
        cache.set("k", "v", 60)
        clock.advance(60)
        assert cache.get("k") == "v"
        clock.advance(0.001)
        assert cache.get("k") is None

    def test_clear(self):
        cache = MemoryCache(FakeClock())
        cache.set("k", "v", 60)
        cache.clear()
        assert cache.get("k") is None


class TestParseSites:
    """Test validation of the raw sites payload."""

    def test_valid_records(self):
        sites = parse_sites([{"siteId": 9001, "name": "T-Centralen", "abbreviation": "TCE"}])
        assert sites == [Site(site_id=9001, name="T-Centralen")]

    def test_id_field_fallback_and_numeric_strings(self):
        sites = parse_sites([{"id": "1002", "name": " Centralen "}, {"siteId": 12.0, "name": "X"}])
        assert [(s.site_id, s.name) for s in sites] == [(1002, "Centralen"), (12, "X")]

    @pytest.mark.parametrize(
        "record",
        [
            {"name": "No id"},
            {"siteId": None, "name": "Null id"},
            {"siteId": "abc", "name": "Bad id"},
            {"siteId": 0, "name": "Zero"},
            {"siteId": -4, "name": "Negative"},
            {"siteId": 1.5, "name": "Fractional"},
            {"siteId": float("inf"), "name": "Infinite"},
            {"siteId": True, "name": "Bool"},
            {"siteId": 5},
            {"siteId": 5, "name": "   "},
            {"siteId": 5, "name": 42},
            "not a record",
        ],
    )
    def test_invalid_records_are_dropped(self, record):
        assert parse_sites([record, {"siteId": 1, "name": "Kept"}]) == [Site(site_id=1, name="Kept")]

    def test_non_list_payload_is_an_error(self):
        with pytest.raises(SLAPIError):
            parse_sites({"sites": []})


class TestDumpSites:
    def test_uses_api_field_names(self):
        assert json.loads(dump_sites(SITES)) == [
            {"siteId": 9001, "name": "T-Centralen"},
            {"siteId": 9192, "name": "Slussen"},
        ]


class TestSiteCatalogCache:
    """Test the two-tier read-through behavior."""

    @pytest.mark.asyncio
    async def test_second_call_within_ttl_uses_memory(self):
        fetcher = CountingFetcher()
        cache = SiteCatalogCache(fetcher, clock=FakeClock())

        first = await cache.get_sites()
        second = await cache.get_sites()

        assert first == SITES
        assert second == first
        assert fetcher.calls == 1

    @pytest.mark.asyncio
    async def test_refetches_after_memory_ttl(self):
        clock = FakeClock()
        fetcher = CountingFetcher()
        cache = SiteCatalogCache(fetcher, clock=clock)

        await cache.get_sites()
        clock.advance(60 * 60 + 1)
        await cache.get_sites()

        assert fetcher.calls == 2

    @pytest.mark.asyncio
    async def test_full_miss_populates_durable_tier(self):
        store = FakeStore()
        cache = SiteCatalogCache(CountingFetcher(), durable=store, clock=FakeClock())

        await cache.get_sites()

        assert json.loads(store.data[SITES_CACHE_KEY])[0] == {"siteId": 9001, "name": "T-Centralen"}
        assert store.ttls[SITES_CACHE_KEY] == DURABLE_TTL_SECONDS

    @pytest.mark.asyncio
    async def test_durable_hit_skips_upstream_and_fills_memory(self):
        store = FakeStore()
        store.data[SITES_CACHE_KEY] = dump_sites(SITES)
        fetcher = CountingFetcher()
        cache = SiteCatalogCache(fetcher, durable=store, clock=FakeClock())

        assert await cache.get_sites() == SITES
        assert await cache.get_sites() == SITES
        assert fetcher.calls == 0
        assert store.gets == 1

    @pytest.mark.asyncio
    async def test_durable_tier_survives_memory_expiry(self):
        clock = FakeClock()
        store = FakeStore()
        fetcher = CountingFetcher()
        cache = SiteCatalogCache(fetcher, durable=store, clock=clock)

        await cache.get_sites()
        clock.advance(2 * 60 * 60)
        await cache.get_sites()

        assert fetcher.calls == 1
        assert store.gets == 2

    @pytest.mark.asyncio
    async def test_durable_read_failure_falls_back_to_upstream(self, caplog):
        fetcher = CountingFetcher()
        cache = SiteCatalogCache(fetcher, durable=FakeStore(fail_get=True), clock=FakeClock())

        with caplog.at_level(logging.WARNING, logger="sl_mcp.site_catalog"):
            assert await cache.get_sites() == SITES

        assert fetcher.calls == 1
        assert any("read failed" in r.getMessage() for r in caplog.records)

    @pytest.mark.asyncio
    async def test_durable_write_failure_still_returns_sites(self, caplog):
        cache = SiteCatalogCache(CountingFetcher(), durable=FakeStore(fail_set=True), clock=FakeClock())

        with caplog.at_level(logging.WARNING, logger="sl_mcp.site_catalog"):
            assert await cache.get_sites() == SITES

        assert any("write failed" in r.getMessage() for r in caplog.records)

    @pytest.mark.asyncio
    async def test_corrupt_durable_payload_is_ignored(self):
        store = FakeStore()
        store.data[SITES_CACHE_KEY] = "{not json"
        fetcher = CountingFetcher()
        cache = SiteCatalogCache(fetcher, durable=store, clock=FakeClock())

        assert await cache.get_sites() == SITES
        assert fetcher.calls == 1
        # the fresh catalog replaces the corrupt entry
        assert json.loads(store.data[SITES_CACHE_KEY])[1]["name"] == "Slussen"

    @pytest.mark.asyncio
    async def test_upstream_failure_propagates(self):
        cache = SiteCatalogCache(
            CountingFetcher(error=SLAPIError("SL sites request failed with 503.", 503)),
            clock=FakeClock(),
        )
        with pytest.raises(SLAPIError, match="503"):
            await cache.get_sites()

    @pytest.mark.asyncio
    async def test_upstream_failure_is_not_cached(self):
        fetcher = CountingFetcher(error=SLAPIError("boom"))
        cache = SiteCatalogCache(fetcher, clock=FakeClock())
        for _ in range(2):
            with pytest.raises(SLAPIError):
                await cache.get_sites()
        assert fetcher.calls == 2

    @pytest.mark.asyncio
    async def test_clear_forces_refetch_without_durable(self):
        fetcher = CountingFetcher()
        cache = SiteCatalogCache(fetcher, clock=FakeClock())
        await cache.get_sites()
        cache.clear()
        await cache.get_sites()
        assert fetcher.calls == 2


class FakeSLClient:
    def __init__(self, payload):
        self.payload = payload

    async def get_sites(self):
        return self.payload


@pytest.mark.asyncio
async def test_fetch_sites_validates_payload():
    client = FakeSLClient([{"siteId": 9001, "name": "T-Centralen"}, {"siteId": "x", "name": "Bad"}])
    assert await fetch_sites(client) == [Site(site_id=9001, name="T-Centralen")]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
