"""Command dispatcher for the Redis tools.

Resolves the Redis data type a call targets and routes it to the matching
handler. Every public method takes the raw JSON argument string and returns a
``ToolResult``; no exception escapes to the caller.
"""

from typing import Any, Callable, Dict, List, Optional, Union

import redis

from src.utils.config import Settings, get_settings
from src.utils.logger import get_logger

from .arguments import (
    ListKeysRequest,
    build_request,
    delete_qualifiers,
    infer_type,
    is_present,
    parse_arguments,
    require_key,
    require_keys,
)
from .exceptions import NotFoundError, RedisToolError, UnsupportedTypeError
from .handlers import HANDLERS, TypeHandler
from .models import DataType, ErrorKind, ToolResult

logger = get_logger(__name__)

JsonArgs = Optional[Union[str, Dict[str, Any]]]


class CommandDispatcher:
    """Routes tool calls to per-type handlers over one shared Redis client.

    The dispatcher keeps no per-call state. A key's type is re-read from
    Redis on every call, since other clients may change it between requests.

    Attributes:
        client: Long-lived Redis client (``decode_responses=True``)
        settings: Application settings
        handlers: Handler instance per data type
    """

    def __init__(self, client: redis.Redis, settings: Optional[Settings] = None):
        self.client = client
        self.settings = settings or get_settings()
        self.handlers: Dict[DataType, TypeHandler] = {
            data_type: handler_cls(client, self.settings)
            for data_type, handler_cls in HANDLERS.items()
        }

    # ========================================================================
    # Tool operations
    # ========================================================================

    def set(self, json_args: JsonArgs) -> ToolResult:
        """Write a value; the data type is resolved from the key or arguments."""
        return self._run("set", self._set, json_args)

    def get(self, json_args: JsonArgs) -> ToolResult:
        """Read an existing key according to its live type."""
        return self._run("get", self._get, json_args)

    def delete(self, json_args: JsonArgs) -> ToolResult:
        """Delete keys, or part of a key when a qualifier is given."""
        return self._run("delete", self._delete, json_args)

    def list_keys(self, json_args: JsonArgs = None) -> ToolResult:
        """List keys matching a glob pattern with an incremental SCAN."""
        return self._run("list", self._list_keys, json_args)

    def info(self, json_args: JsonArgs = None) -> ToolResult:
        """Report server and keyspace statistics."""
        return self._run("info", self._info, json_args)

    def ping(self) -> ToolResult:
        """Check the connection."""
        return self._run("ping", self._ping, None)

    # ========================================================================
    # Internals
    # ========================================================================

    def _run(
        self,
        operation: str,
        func: Callable[[Dict[str, Any]], ToolResult],
        json_args: JsonArgs,
    ) -> ToolResult:
        try:
            args = parse_arguments(json_args)
            result = func(args)
        except RedisToolError as e:
            logger.info("Redis tool call rejected", operation=operation, kind=e.kind.value, error=e.message)
            return ToolResult.fail(e.kind, e.message)
        except redis.RedisError as e:
            logger.error("Redis command failed", operation=operation, error=str(e))
            return ToolResult.fail(ErrorKind.DOWNSTREAM_FAILURE, f"Operation failed: {e}")
        except Exception as e:
            logger.error("Unexpected error in Redis tool", operation=operation, error=str(e), exc_info=True)
            return ToolResult.fail(ErrorKind.DOWNSTREAM_FAILURE, f"Operation failed: {e}")

        logger.debug("Redis tool call completed", operation=operation)
        return result

    def _live_type(self, key: str) -> Optional[DataType]:
        """Return the key's type in Redis, or None if it does not exist."""
        name = self.client.type(key)
        if isinstance(name, bytes):
            name = name.decode()
        if name == "none":
            return None
        try:
            return DataType(name)
        except ValueError:
            raise UnsupportedTypeError(f"Unsupported Redis data type for key: {key} (Type: {name})") from None

    def _resolve_type(self, key: str, args: Dict[str, Any], must_exist: bool) -> DataType:
        """Pick the data type a call operates on.

        The live type wins for existing keys; an explicit ``type`` that
        contradicts it is rejected. New keys use ``infer_type``.
        """
        live = self._live_type(key)
        if live is None:
            if must_exist:
                raise NotFoundError(f"Key not found: {key}")
            return infer_type(args)

        if is_present(args, "type"):
            explicit = DataType.from_name(args["type"])
            if explicit is not live:
                raise UnsupportedTypeError(
                    f"Key '{key}' holds a {live.label}, not a {explicit.label}"
                )
        return live

    def _set(self, args: Dict[str, Any]) -> ToolResult:
        key = require_key(args)
        data_type = self._resolve_type(key, args, must_exist=False)
        result = self.handlers[data_type].set(args)
        logger.info("Set Redis value", key=key, type=data_type.value)
        return result

    def _get(self, args: Dict[str, Any]) -> ToolResult:
        key = require_key(args)
        data_type = self._resolve_type(key, args, must_exist=True)
        return self.handlers[data_type].get(args)

    def _delete(self, args: Dict[str, Any]) -> ToolResult:
        target = require_keys(args)
        qualifiers = delete_qualifiers(args)
        if isinstance(target, list):
            if qualifiers:
                return self._delete_many_qualified(target, qualifiers)
            return self._delete_many(target)

        key = target
        if not qualifiers:
            return self._delete_key(key)

        data_type = self._resolve_type(key, args, must_exist=True)
        handler = self.handlers[data_type]
        if handler.accepts(args):
            result = handler.delete(args)
            logger.info("Deleted from Redis key", key=key, type=data_type.value, qualifiers=qualifiers)
            return result

        names = ", ".join(f"'{q}'" for q in qualifiers)
        if not self.settings.redis_delete_fallback_whole_key:
            raise UnsupportedTypeError(f"{names} does not apply to {data_type.label} key: {key}")

        logger.warning(
            "Delete qualifier does not match key type, deleting whole key",
            key=key,
            type=data_type.value,
            qualifiers=qualifiers,
        )
        self.client.delete(key)
        return ToolResult.ok(
            f"{names} does not apply to {data_type.label} key {key}; deleted the whole key",
            {"key": key, "deleted": 1, "whole_key_fallback": True},
        )

    def _delete_key(self, key: str) -> ToolResult:
        if not self.client.delete(key):
            raise NotFoundError(f"Key not found: {key}")
        logger.info("Deleted Redis key", key=key)
        return ToolResult.ok(f"Successfully deleted key: {key}", {"key": key, "deleted": 1})

    def _delete_many(self, keys: List[str]) -> ToolResult:
        # Single multi-key DEL: one round trip regardless of batch size
        deleted = self.client.delete(*keys)
        logger.info("Deleted Redis keys", requested=len(keys), deleted=deleted)
        return ToolResult.ok(
            f"Successfully deleted {deleted} keys",
            {"keys": keys, "deleted": deleted},
        )

    def _delete_many_qualified(self, keys: List[str], qualifiers: List[str]) -> ToolResult:
        # Qualifiers select part of one key; a key list can only be deleted whole
        names = ", ".join(f"'{q}'" for q in qualifiers)
        if not self.settings.redis_delete_fallback_whole_key:
            raise UnsupportedTypeError(f"{names} does not apply to a multi-key delete")

        logger.warning(
            "Delete qualifier given with a key list, deleting whole keys",
            keys=keys,
            qualifiers=qualifiers,
        )
        deleted = self.client.delete(*keys)
        return ToolResult.ok(
            f"{names} does not apply to a multi-key delete; deleted {deleted} whole keys",
            {"keys": keys, "deleted": deleted, "whole_key_fallback": True},
        )

    def _list_keys(self, args: Dict[str, Any]) -> ToolResult:
        request = build_request(ListKeysRequest, args)
        batch_size = request.batch_size or self.settings.redis_scan_batch_size
        limit = request.limit or self.settings.redis_scan_limit

        # SCAN may return a key more than once; dict keeps first-seen order
        found: Dict[str, None] = {}
        cursor = 0
        while True:
            cursor, batch = self.client.scan(cursor=cursor, match=request.pattern, count=batch_size)
            for key in batch:
                found.setdefault(key, None)
            if cursor == 0 or len(found) >= limit:
                break

        complete = cursor == 0 and len(found) <= limit
        keys = list(found)[:limit]
        logger.info("Scanned Redis keys", pattern=request.pattern, count=len(keys), complete=complete)

        if not keys:
            message = "No keys found matching the pattern"
        else:
            message = "Found keys:\n" + "\n".join(keys)
            if not complete:
                message += f"\n(stopped after {limit} keys)"
        return ToolResult.ok(
            message,
            {"pattern": request.pattern, "count": len(keys), "keys": keys, "complete": complete},
        )

    def _info(self, args: Dict[str, Any]) -> ToolResult:
        info = self.client.info()
        keyspace = self.client.info("keyspace")

        current_db = self.client.connection_pool.connection_kwargs.get("db", 0)
        db_info = keyspace.get(f"db{current_db}", {})

        stats = {
            "redis_version": info.get("redis_version"),
            "redis_mode": info.get("redis_mode", "standalone"),
            "current_db": current_db,
            "keys_count": db_info.get("keys", 0),
            "expires_count": db_info.get("expires", 0),
            "avg_ttl": db_info.get("avg_ttl", 0),
            "used_memory": info.get("used_memory_human"),
            "connected_clients": info.get("connected_clients"),
            "uptime_days": info.get("uptime_in_days"),
        }
        lines = ["Redis server info"]
        lines.extend(f"{name}: {value}" for name, value in stats.items())
        return ToolResult.ok("\n".join(lines), stats)

    def _ping(self, args: Dict[str, Any]) -> ToolResult:
        self.client.ping()
        return ToolResult.ok("Redis connection successful")
