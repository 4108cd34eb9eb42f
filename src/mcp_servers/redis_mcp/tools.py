"""Redis Tools - connection management and tool entry points.

This module owns the process-wide Redis client and exposes one function per
tool. Each function takes the JSON argument string sent by the caller and
returns a plain dict (``ToolResult.to_dict()``) with ``success``, ``message``,
optional ``error_kind`` and optional ``data``.
"""

import threading
from typing import Any, Dict, Optional

import redis

from src.utils.config import get_settings
from src.utils.logger import get_logger

from .dispatcher import CommandDispatcher
from .models import ErrorKind, ToolResult

logger = get_logger(__name__)

# Global connection pool
_redis_client: Optional[redis.Redis] = None
_dispatcher: Optional[CommandDispatcher] = None

# Guards creation of the shared client and dispatcher
_client_lock = threading.RLock()


def get_redis_client() -> redis.Redis:
    """Get or create Redis client connection.

    Returns:
        redis.Redis: Connected Redis client

    Raises:
        redis.ConnectionError: If connection fails
    """
    global _redis_client

    if _redis_client is not None:
        return _redis_client

    with _client_lock:
        if _redis_client is not None:
            return _redis_client

        settings = get_settings()
        redis_uri = settings.get_redis_uri()

        masked_uri = redis_uri.replace(settings.redis_password, '***') if settings.redis_password else redis_uri
        logger.info("Connecting to Redis", uri=masked_uri)

        try:
            client = redis.from_url(
                redis_uri,
                decode_responses=True,
                socket_connect_timeout=settings.redis_connect_timeout,
                socket_timeout=settings.redis_socket_timeout,
            )

            # Test connection
            client.ping()
            _redis_client = client
            logger.info("Redis connection successful")

        except Exception as e:
            logger.error("Redis connection failed", error=str(e))
            raise

    return _redis_client


def get_dispatcher() -> CommandDispatcher:
    """Get the dispatcher bound to the shared Redis client."""
    global _dispatcher

    if _dispatcher is None:
        with _client_lock:
            if _dispatcher is None:
                _dispatcher = CommandDispatcher(get_redis_client(), get_settings())
    return _dispatcher


def close_redis_connection():
    """Close the Redis connection."""
    global _redis_client, _dispatcher
    with _client_lock:
        _dispatcher = None
        if _redis_client:
            _redis_client.close()
            _redis_client = None
            logger.info("Redis connection closed")


def _call(operation: str, *args: Any) -> Dict[str, Any]:
    try:
        dispatcher = get_dispatcher()
    except Exception as e:
        return ToolResult.fail(
            ErrorKind.DOWNSTREAM_FAILURE, f"Redis connection failed: {e}"
        ).to_dict()
    return getattr(dispatcher, operation)(*args).to_dict()


def ping() -> Dict[str, Any]:
    """Test Redis connection.

    Returns:
        Dict with connection status
    """
    return _call("ping")


def set_value(json_args: str) -> Dict[str, Any]:
    """Set a value of any supported type.

    Args:
        json_args: JSON object with ``key`` plus type-specific fields
            (value, ttl/expireSeconds, type, field, member, score, index,
            append, id)

    Returns:
        Dict with operation result
    """
    return _call("set", json_args)


def get_value(json_args: str) -> Dict[str, Any]:
    """Get the value of an existing key.

    Args:
        json_args: JSON object with ``key`` and optional index, member,
            field or count

    Returns:
        Dict containing the value or an error
    """
    return _call("get", json_args)


def delete_value(json_args: str) -> Dict[str, Any]:
    """Delete one key, several keys, or part of a key.

    Args:
        json_args: JSON object with ``key`` (string or list) and optional
            field, member, index, value/count or id

    Returns:
        Dict with operation result
    """
    return _call("delete", json_args)


def list_keys(json_args: str = "") -> Dict[str, Any]:
    """List keys matching a pattern.

    Args:
        json_args: JSON object with optional pattern, batchSize and limit

    Returns:
        Dict with matching keys
    """
    return _call("list_keys", json_args)


def get_db_info(json_args: str = "") -> Dict[str, Any]:
    """Get Redis database information.

    Args:
        json_args: JSON object; no fields are read, an empty string is fine

    Returns:
        Dict with database statistics
    """
    return _call("info", json_args)
