"""SL MCP Server for Stockholm public transport data."""

import logging
from functools import lru_cache
from typing import Any

from mcp.server import Server
from mcp.types import TextContent, Tool

from .config import Settings, get_settings
from .departures import DEFAULT_LIMIT, fetch_departures, filter_departures, format_departure_line
from .kv_store import KVRestStore
from .models import Site, SiteAmbiguous, SiteResolved
from .normalizers import normalize_modes_filter
from .site_catalog import SiteCatalogCache, fetch_sites
from .site_search import get_site_candidates, resolve_site_match
from .sl_client import SLAPIError, SLClient

logger = logging.getLogger(__name__)

FIND_SITE_DEFAULT = 5
FIND_SITE_MAX = 20
DEPARTURES_MAX = 30
AMBIGUOUS_SHORTLIST = 5

# Create MCP server
app = Server("sl-mcp")


def _client(settings: Settings) -> SLClient:
    return SLClient(base_url=settings.sl_api_base_url, timeout=settings.sl_request_timeout)


def build_site_cache(settings: Settings) -> SiteCatalogCache:
    """Wire the site catalog cache from settings."""

    async def fetch() -> list[Site]:
        async with _client(settings) as client:
            return await fetch_sites(client)

    durable = None
    if settings.durable_cache_enabled:
        durable = KVRestStore(settings.kv_rest_api_url, settings.kv_token)
    else:
        logger.info("KV REST API not configured, site catalog cached in memory only")

    return SiteCatalogCache(
        fetch,
        durable=durable,
        memory_ttl=settings.sites_memory_ttl_seconds,
        durable_ttl=settings.sites_durable_ttl_seconds,
    )


@lru_cache(maxsize=1)
def get_site_cache() -> SiteCatalogCache:
    """Process-wide site catalog cache."""
    return build_site_cache(get_settings())


def _parse_limit(value: Any, default: int, maximum: int) -> int:
    """Validate an optional maxResults argument."""
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError("'maxResults' must be an integer")
    if not 1 <= value <= maximum:
        raise ValueError(f"'maxResults' must be between 1 and {maximum}")
    return value


def _parse_site_id(arguments: dict) -> int | None:
    """Read siteId, falling back to its alias id. Numeric strings are accepted."""
    value = arguments.get("siteId")
    if value is None:
        value = arguments.get("id")
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError("'siteId' must be an integer")
    if isinstance(value, str):
        value = value.strip()
        if not value.isdigit():
            raise ValueError("'siteId' must be an integer")
        value = int(value)
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if not isinstance(value, int) or value <= 0:
        raise ValueError("'siteId' must be a positive integer")
    return value


def _format_site(site: Site) -> str:
    return f"{site.name} (id: {site.site_id})"


@app.list_tools()
async def list_tools() -> list[Tool]:
    """List available tools."""
    return [
        Tool(
            name="sl_find_site",
            description="Find SL site IDs by station name query.",
            inputSchema={
                "type": "object",
                "properties": {
                    "query": {
                        "type": "string",
                        "minLength": 1,
                        "description": "Station name or partial name (e.g., 'T-Centralen', 'Slussen')",
                    },
                    "maxResults": {
                        "type": "integer",
                        "minimum": 1,
                        "maximum": FIND_SITE_MAX,
                        "description": f"Maximum number of sites to return (default: {FIND_SITE_DEFAULT})",
                    },
                },
                "required": ["query"],
            },
        ),
        Tool(
            name="sl_departures",
            description="Get SL departures for a station name or siteId.",
            inputSchema={
                "type": "object",
                "properties": {
                    "station": {
                        "type": "string",
                        "description": "Station name to resolve (used when no siteId is given)",
                    },
                    "siteId": {
                        "type": ["integer", "string"],
                        "description": "SL site id from sl_find_site",
                    },
                    "id": {
                        "type": ["integer", "string"],
                        "description": "Alias for siteId",
                    },
                    "maxResults": {
                        "type": "integer",
                        "minimum": 1,
                        "maximum": DEPARTURES_MAX,
                        "description": f"Maximum number of departures (default: {DEFAULT_LIMIT})",
                    },
                    "modes": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "Transport modes to include: bus, metro, train, tram, ship (or ferry)",
                    },
                    "directionContains": {
                        "type": "string",
                        "minLength": 1,
                        "description": "Only departures whose destination contains this text",
                    },
                },
            },
        ),
    ]


@app.call_tool()
async def call_tool(name: str, arguments: dict) -> list[TextContent]:
    """Handle tool calls."""
    try:
        if name == "sl_find_site":
            result = await _find_site(get_site_cache(), arguments)
        elif name == "sl_departures":
            async with _client(get_settings()) as client:
                result = await _get_departures(client, get_site_cache(), arguments)
        else:
            result = f"Unknown tool: {name}"

        return [TextContent(type="text", text=result)]
    except Exception as e:
        error_msg = f"Error: {str(e)}"
        logger.error(error_msg, exc_info=True)
        return [TextContent(type="text", text=error_msg)]


async def _find_site(site_cache: SiteCatalogCache, arguments: dict) -> str:
    """Find sites matching a station name."""
    query = arguments.get("query", "")

    if not isinstance(query, str) or not query.strip():
        return "Error: 'query' parameter is required"

    try:
        limit = _parse_limit(arguments.get("maxResults"), FIND_SITE_DEFAULT, FIND_SITE_MAX)
    except ValueError as e:
        return f"Error: {str(e)}"

    try:
        sites = await site_cache.get_sites()
    except SLAPIError as e:
        return f"Failed to fetch SL sites. {str(e)}"

    matches = get_site_candidates(sites, query, limit)
    if not matches:
        return (
            f'No SL sites found for "{query}". '
            "Try a different spelling or search nearby stations."
        )

    lines = [f"Found {len(matches)} site(s):"]
    lines.extend(_format_site(site) for site in matches)
    return "\n".join(lines)


async def _get_departures(client: SLClient, site_cache: SiteCatalogCache, arguments: dict) -> str:
    """Get filtered departures for a site id or station name."""
    station = arguments.get("station")
    modes = arguments.get("modes") or []
    direction_contains = arguments.get("directionContains")

    try:
        limit = _parse_limit(arguments.get("maxResults"), DEFAULT_LIMIT, DEPARTURES_MAX)
        site_id = _parse_site_id(arguments)
        if not isinstance(modes, list) or not all(isinstance(m, str) for m in modes):
            raise ValueError("'modes' must be a list of strings")
        if direction_contains is not None and not isinstance(direction_contains, str):
            raise ValueError("'directionContains' must be a string")
    except ValueError as e:
        return f"Error: {str(e)}"

    mode_filter = normalize_modes_filter(modes)
    site_name = ""

    try:
        if site_id is None and isinstance(station, str) and station.strip():
            match = resolve_site_match(await site_cache.get_sites(), station)
            if isinstance(match, SiteAmbiguous):
                shortlist = [_format_site(site) for site in match.candidates[:AMBIGUOUS_SHORTLIST]]
                return "\n".join(
                    [
                        f'Multiple SL sites match "{station}". '
                        "Please refine your station name or pass a siteId (or id).",
                        *shortlist,
                    ]
                )
            if not isinstance(match, SiteResolved):
                return (
                    f'No SL site found for "{station}". '
                    "Try a different spelling or use sl_find_site to browse options."
                )
            site_id = match.site.site_id
            site_name = match.site.name

        if site_id is None:
            return "No siteId resolved. Provide a station name or siteId (or id)."

        departures = await fetch_departures(client, site_id)
    except SLAPIError as e:
        return f"Failed to fetch SL departures. {str(e)}"

    filtered = filter_departures(departures, mode_filter, direction_contains, limit)
    if not filtered:
        for_site = f" for {site_name}" if site_name else ""
        return f"No departures found{for_site} with the requested filters."

    lines = []
    if site_name:
        lines.append(f"Departures for {site_name} (id: {site_id})")
    if mode_filter.ignored:
        lines.append(f"Ignored unsupported modes: {', '.join(mode_filter.ignored)}.")
    lines.append("Times are in Europe/Stockholm.")
    lines.extend(format_departure_line(departure) for departure in filtered)
    return "\n".join(lines)


async def main():
    """Run the MCP server over stdio."""
    from mcp.server.stdio import stdio_server

    async with stdio_server() as (read_stream, write_stream):
        init_options = app.create_initialization_options()
        await app.run(read_stream, write_stream, init_options)


def cli():
    """Entry point for console script."""
    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper())

    if settings.mcp_transport == "http":
        from .http_app import serve_http

        serve_http(settings)
        return

    import asyncio
    asyncio.run(main())


if __name__ == "__main__":
    cli()
