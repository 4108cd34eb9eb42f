"""Redis MCP Server - Key-Value Store Integration.

This package provides MCP (Model Context Protocol) tools for Redis: set, get,
delete, list and info over strings, lists, sets, sorted sets, hashes and
streams, with structured success/error results.
"""

__version__ = "1.1.0"
