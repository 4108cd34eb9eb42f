"""
Shared fixtures for the Redis tool tests.

FakeRedis is an in-memory test double implementing the subset of the
redis-py ``Redis`` API the dispatcher calls (with ``decode_responses=True``
semantics), so the tests run without a Redis server.
"""

import fnmatch
from types import SimpleNamespace
from typing import Any, Dict, List, Optional, Tuple

import pytest
import redis

from src.mcp_servers.redis_mcp.dispatcher import CommandDispatcher
from src.utils.config import Settings


class FakePipeline:
    """Queues commands and replays them on execute()."""

    def __init__(self, client: "FakeRedis"):
        self.client = client
        self.commands: List[Tuple[str, tuple, dict]] = []

    def __getattr__(self, name: str):
        def queue(*args, **kwargs):
            self.commands.append((name, args, kwargs))
            return self
        return queue

    def execute(self) -> List[Any]:
        self.client.pipelines_executed += 1
        results = [getattr(self.client, name)(*args, **kwargs) for name, args, kwargs in self.commands]
        self.commands = []
        return results


class FakeRedis:
    """In-memory stand-in for redis.Redis."""

    def __init__(self):
        self.data: Dict[str, Any] = {}
        self.kinds: Dict[str, str] = {}
        self.expiry: Dict[str, int] = {}
        self.scan_calls = 0
        self.delete_calls: List[tuple] = []
        self.pipelines_executed = 0
        self._stream_seq = 0
        self.connection_pool = SimpleNamespace(connection_kwargs={"db": 0})

    # Generic

    def _check(self, key: str, kind: str, create=None):
        if key not in self.data:
            if create is None:
                return None
            self.data[key] = create()
            self.kinds[key] = kind
        if self.kinds[key] != kind:
            raise redis.ResponseError("WRONGTYPE Operation against a key holding the wrong kind of value")
        return self.data[key]

    def _drop_if_empty(self, key: str) -> None:
        if key in self.data and not self.data[key] and self.kinds[key] != "stream":
            self._remove(key)

    def _remove(self, key: str) -> None:
        self.data.pop(key, None)
        self.kinds.pop(key, None)
        self.expiry.pop(key, None)

    def ping(self) -> bool:
        return True

    def close(self) -> None:
        pass

    def type(self, key: str) -> str:
        return self.kinds.get(key, "none")

    def exists(self, *keys: str) -> int:
        return sum(1 for k in keys if k in self.data)

    def delete(self, *keys: str) -> int:
        self.delete_calls.append(keys)
        deleted = 0
        for key in keys:
            if key in self.data:
                self._remove(key)
                deleted += 1
        return deleted

    def ttl(self, key: str) -> int:
        if key not in self.data:
            return -2
        return self.expiry.get(key, -1)

    def scan(self, cursor: int = 0, match: Optional[str] = None, count: Optional[int] = None):
        self.scan_calls += 1
        keys = sorted(self.data)
        step = count or 10
        window = keys[cursor:cursor + step]
        next_cursor = cursor + step if cursor + step < len(keys) else 0
        if match:
            window = [k for k in window if fnmatch.fnmatchcase(k, match)]
        return next_cursor, window

    def info(self, section: Optional[str] = None) -> Dict[str, Any]:
        if section == "keyspace":
            return {"db0": {"keys": len(self.data), "expires": len(self.expiry), "avg_ttl": 0}}
        return {
            "redis_version": "7.2.4",
            "redis_mode": "standalone",
            "used_memory_human": "1.02M",
            "connected_clients": 1,
            "uptime_in_days": 3,
        }

    def pipeline(self, transaction: bool = True) -> FakePipeline:
        return FakePipeline(self)

    # Strings

    def set(self, key: str, value: str, ex: Optional[int] = None) -> bool:
        self._remove(key)
        self.data[key] = value
        self.kinds[key] = "string"
        if ex:
            self.expiry[key] = ex
        return True

    def get(self, key: str) -> Optional[str]:
        return self._check(key, "string")

    # Lists

    def lpush(self, key: str, *values: str) -> int:
        items = self._check(key, "list", create=list)
        for value in values:
            items.insert(0, value)
        return len(items)

    def rpush(self, key: str, *values: str) -> int:
        items = self._check(key, "list", create=list)
        items.extend(values)
        return len(items)

    def llen(self, key: str) -> int:
        return len(self._check(key, "list") or [])

    def lindex(self, key: str, index: int) -> Optional[str]:
        items = self._check(key, "list") or []
        if -len(items) <= index < len(items):
            return items[index]
        return None

    def lrange(self, key: str, start: int, end: int) -> List[str]:
        items = self._check(key, "list") or []
        end = len(items) if end == -1 else end + 1
        return items[start:end]

    def lset(self, key: str, index: int, value: str) -> bool:
        items = self._check(key, "list")
        if items is None:
            raise redis.ResponseError("ERR no such key")
        if not -len(items) <= index < len(items):
            raise redis.ResponseError("ERR index out of range")
        items[index] = value
        return True

    def lrem(self, key: str, count: int, value: str) -> int:
        items = self._check(key, "list") or []
        positions = [i for i, item in enumerate(items) if item == value]
        if count < 0:
            positions = positions[::-1][:abs(count)]
        elif count > 0:
            positions = positions[:count]
        for i in sorted(positions, reverse=True):
            del items[i]
        self._drop_if_empty(key)
        return len(positions)

    # Sets

    def sadd(self, key: str, *members: str) -> int:
        items = self._check(key, "set", create=set)
        added = len(set(members) - items)
        items.update(members)
        return added

    def srem(self, key: str, *members: str) -> int:
        items = self._check(key, "set") or set()
        removed = len(items & set(members))
        items.difference_update(members)
        self._drop_if_empty(key)
        return removed

    def smembers(self, key: str) -> set:
        return set(self._check(key, "set") or set())

    # Sorted sets

    def zadd(self, key: str, mapping: Dict[str, float]) -> int:
        items = self._check(key, "zset", create=dict)
        added = len(set(mapping) - set(items))
        items.update({member: float(score) for member, score in mapping.items()})
        return added

    def zscore(self, key: str, member: str) -> Optional[float]:
        return (self._check(key, "zset") or {}).get(member)

    def zrange(self, key: str, start: int, end: int, withscores: bool = False):
        items = self._check(key, "zset") or {}
        ordered = sorted(items.items(), key=lambda pair: (pair[1], pair[0]))
        end = len(ordered) if end == -1 else end + 1
        ordered = ordered[start:end]
        return ordered if withscores else [member for member, _ in ordered]

    def zrem(self, key: str, *members: str) -> int:
        items = self._check(key, "zset") or {}
        removed = 0
        for member in members:
            if items.pop(member, None) is not None:
                removed += 1
        self._drop_if_empty(key)
        return removed

    # Hashes

    def hset(self, key: str, field: str, value: str) -> int:
        items = self._check(key, "hash", create=dict)
        created = 0 if field in items else 1
        items[field] = value
        return created

    def hget(self, key: str, field: str) -> Optional[str]:
        return (self._check(key, "hash") or {}).get(field)

    def hgetall(self, key: str) -> Dict[str, str]:
        return dict(self._check(key, "hash") or {})

    def hdel(self, key: str, *fields: str) -> int:
        items = self._check(key, "hash") or {}
        removed = 0
        for field in fields:
            if items.pop(field, None) is not None:
                removed += 1
        self._drop_if_empty(key)
        return removed

    # Streams

    def xadd(self, key: str, fields: Dict[str, str], id: str = "*") -> str:
        records = self._check(key, "stream", create=list)
        if id == "*":
            self._stream_seq += 1
            id = f"{1700000000000 + self._stream_seq}-0"
        records.append((id, dict(fields)))
        return id

    def xrange(self, key: str, min: str = "-", max: str = "+", count: Optional[int] = None):
        records = list(self._check(key, "stream") or [])
        return records[:count] if count else records

    def xdel(self, key: str, *ids: str) -> int:
        records = self._check(key, "stream") or []
        before = len(records)
        records[:] = [r for r in records if r[0] not in ids]
        return before - len(records)


@pytest.fixture
def fake_redis():
    """Empty in-memory Redis double."""
    return FakeRedis()


@pytest.fixture
def settings():
    """Settings with explicit tool defaults, independent of the environment."""
    return Settings(
        redis_scan_batch_size=100,
        redis_scan_limit=1000,
        redis_stream_read_count=10,
        redis_delete_fallback_whole_key=True,
    )


@pytest.fixture
def dispatcher(fake_redis, settings):
    """Dispatcher over the in-memory Redis double."""
    return CommandDispatcher(fake_redis, settings)
