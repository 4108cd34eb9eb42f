"""Redis MCP Server - FastMCP server for Redis operations.

This module exposes Redis operations through the MCP (Model Context Protocol),
allowing LLMs to read and write Redis strings, lists, sets, sorted sets,
hashes and streams. Every tool takes a single JSON object string.
"""

import json
import sys
from pathlib import Path
from typing import Any, Dict

# Add project root to path
project_root = Path(__file__).parent.parent.parent.parent
sys.path.insert(0, str(project_root))

from fastmcp import FastMCP
from src.mcp_servers.redis_mcp import tools

# Create FastMCP server
mcp = FastMCP("redis-mcp")


# ============================================================================
# Connection Tools
# ============================================================================

@mcp.tool()
def ping() -> Dict[str, Any]:
    """Test Redis connection.

    Returns:
        Connection status
    """
    return tools.ping()


@mcp.tool()
def info(json_args: str = "") -> Dict[str, Any]:
    """Get Redis server information and statistics.

    Args:
        json_args: JSON object; no fields are required (may be empty)

    Returns:
        Server information including:
        - Redis version and mode
        - Number of keys and keys with expiry
        - Memory usage
        - Connected clients
        - Uptime
    """
    return tools.get_db_info(json_args)


# ============================================================================
# Key Operations
# ============================================================================

@mcp.tool(name="set")
def set_value(json_args: str) -> Dict[str, Any]:
    """Set a Redis value. Supports string, list, set, zset, hash and stream types.

    Args:
        json_args: JSON object. Always needs "key". The type comes from the
            existing key, an explicit "type", or the fields present
            ("field" -> hash, "score" -> zset, "index" -> list, else string).

    Returns:
        Operation result

    Examples:
        - {"key": "greeting", "value": "hello", "ttl": 60}
        - {"key": "queue", "type": "list", "value": "job-1", "append": true}
        - {"key": "tags", "type": "set", "member": "redis"}
        - {"key": "board", "member": "alice", "score": 42}
        - {"key": "user:1", "field": "name", "value": "Alice"}
        - {"key": "events", "type": "stream", "value": {"action": "login"}}
    """
    return tools.set_value(json_args)


@mcp.tool(name="get")
def get_value(json_args: str) -> Dict[str, Any]:
    """Get a Redis value. Supports string, list, set, zset, hash and stream types.

    Args:
        json_args: JSON object with "key" and optionally "index" (list),
            "member" (zset), "field" (hash) or "count" (stream, default 10)

    Returns:
        Key value or an error
    """
    return tools.get_value(json_args)


@mcp.tool(name="delete")
def delete_value(json_args: str) -> Dict[str, Any]:
    """Delete one or multiple keys, or part of a key.

    Args:
        json_args: JSON object with "key" (string or list of strings).
            Optional qualifiers remove part of a key: "field" (hash),
            "member" (set/zset), "index" or "value"+"count" (list),
            "id" (stream)

    Returns:
        Deletion result
    """
    return tools.delete_value(json_args)


@mcp.tool(name="list")
def list_keys(json_args: str = "") -> Dict[str, Any]:
    """List Redis keys matching a pattern using SCAN.

    Args:
        json_args: JSON object with optional "pattern" (default "*"),
            "batchSize" (SCAN COUNT hint) and "limit" (maximum keys returned)

    Returns:
        List of matching keys

    Examples:
        - {"pattern": "user:*"}
        - {"pattern": "session:*", "batchSize": 500, "limit": 50}
    """
    return tools.list_keys(json_args)


# ============================================================================
# MCP Resources
# ============================================================================

@mcp.resource("redis://info")
def get_info_resource() -> str:
    """Get Redis server info as a resource.

    Returns:
        JSON string with server information
    """
    return json.dumps(tools.get_db_info(), indent=2, default=str)


@mcp.resource("redis://keys/{pattern}")
def get_keys_resource(pattern: str) -> str:
    """Get keys matching a pattern as a resource.

    Args:
        pattern: Key pattern (e.g., "user:*", "session:*")

    Returns:
        JSON string with matching keys
    """
    keys = tools.list_keys(json.dumps({"pattern": pattern}))
    return json.dumps(keys, indent=2)


# ============================================================================
# Run Server
# ============================================================================

def main() -> None:
    """Run the server on stdio."""
    try:
        mcp.run()
    finally:
        tools.close_redis_connection()


if __name__ == "__main__":
    main()
