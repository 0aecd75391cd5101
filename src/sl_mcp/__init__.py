"""MCP server for SL (Stockholm public transport) sites and departures."""

__version__ = "0.1.0"
