#!/usr/bin/env python3
"""Fetch the SL site catalog and store it in the durable KV cache.

Run after deploys (or from a cron job) so the first tool call of a cold
process is served from KV instead of the SL sites endpoint.

Usage:
    python scripts/warm_site_cache.py
"""

import asyncio
import sys

from sl_mcp.config import get_settings
from sl_mcp.kv_store import KVRestStore, KVStoreError
from sl_mcp.site_catalog import SITES_CACHE_KEY, dump_sites, fetch_sites
from sl_mcp.sl_client import SLAPIError, SLClient


async def warm() -> int:
    settings = get_settings()

    async with SLClient(settings.sl_api_base_url, settings.sl_request_timeout) as client:
        try:
            sites = await fetch_sites(client)
        except SLAPIError as e:
            print(f"Failed to fetch SL sites: {e}", file=sys.stderr)
            return 1
    print(f"Fetched {len(sites)} sites")

    if not settings.durable_cache_enabled:
        print("KV_REST_API_URL / KV_REST_API_TOKEN not set, nothing to warm")
        return 0

    store = KVRestStore(settings.kv_rest_api_url, settings.kv_token)
    ttl = settings.sites_durable_ttl_seconds
    try:
        await store.set(SITES_CACHE_KEY, dump_sites(sites), ttl)
    except KVStoreError as e:
        print(f"Failed to write KV cache: {e}", file=sys.stderr)
        return 1

    print(f"Stored catalog under {SITES_CACHE_KEY} (ttl {ttl}s)")
    return 0


def main() -> None:
    sys.exit(asyncio.run(warm()))


if __name__ == "__main__":
    main()
