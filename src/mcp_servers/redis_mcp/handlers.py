"""Per-type Redis handlers.

One handler per Redis data type, each implementing the type-specific part of
``set``, ``get`` and qualified ``delete``. ``HANDLERS`` maps every
``DataType`` to its handler class; the dispatcher picks the handler from the
key's live type (or the inferred type for new keys).
"""

import uuid
from abc import ABC, abstractmethod
from typing import Any, Dict, Tuple, Type

import redis

from src.utils.config import Settings

from .arguments import (
    DeleteFieldRequest,
    DeleteIndexRequest,
    DeleteMemberRequest,
    DeleteRecordRequest,
    DeleteValueRequest,
    GetHashRequest,
    GetListRequest,
    GetRequest,
    GetSortedSetRequest,
    GetStreamRequest,
    SetHashRequest,
    SetListRequest,
    SetMemberRequest,
    SetSortedSetRequest,
    SetStreamRequest,
    SetStringRequest,
    build_request,
    is_present,
)
from .exceptions import NotFoundError, UnsupportedTypeError
from .models import DataType, ToolResult

# Placeholder written over a list element right before it is removed
DELETED_SENTINEL_PREFIX = "__redis_mcp_deleted__:"


class TypeHandler(ABC):
    """Base class for data-type handlers.

    Attributes:
        data_type: Redis type this handler serves
        qualifiers: Delete arguments that target part of a key of this type
    """

    data_type: DataType
    qualifiers: Tuple[str, ...] = ()

    def __init__(self, client: redis.Redis, settings: Settings):
        self.client = client
        self.settings = settings

    @abstractmethod
    def set(self, args: Dict[str, Any]) -> ToolResult:
        """Write a value into a key of this type."""

    @abstractmethod
    def get(self, args: Dict[str, Any]) -> ToolResult:
        """Read a key of this type."""

    def delete(self, args: Dict[str, Any]) -> ToolResult:
        """Remove part of a key, selected by one of ``qualifiers``."""
        raise UnsupportedTypeError(f"Partial delete is not supported for {self.data_type.label} keys")

    def accepts(self, args: Dict[str, Any]) -> bool:
        """Whether any of this type's delete qualifiers is present."""
        return any(is_present(args, name) for name in self.qualifiers)


class StringHandler(TypeHandler):
    data_type = DataType.STRING

    def set(self, args: Dict[str, Any]) -> ToolResult:
        request = build_request(SetStringRequest, args)
        self.client.set(request.key, request.value, ex=request.ttl)

        message = f"Successfully set key: {request.key}"
        data = {"key": request.key}
        if request.ttl:
            message += f" with expiration {request.ttl}s"
            data["ttl"] = request.ttl
        return ToolResult.ok(message, data)

    def get(self, args: Dict[str, Any]) -> ToolResult:
        request = build_request(GetRequest, args)
        value = self.client.get(request.key)
        if value is None:
            raise NotFoundError(f"Key exists but value could not be retrieved: {request.key}")
        return ToolResult.ok(value, {"key": request.key, "type": self.data_type.value, "value": value})


class ListHandler(TypeHandler):
    data_type = DataType.LIST
    qualifiers = ("index", "value")

    def set(self, args: Dict[str, Any]) -> ToolResult:
        request = build_request(SetListRequest, args)
        key = request.key

        if request.index is not None:
            self._check_index(key, request.index)
            self.client.lset(key, request.index, request.value)
            return ToolResult.ok(
                f"Set index {request.index} of list {key}",
                {"key": key, "index": request.index},
            )

        if request.append:
            length = self.client.rpush(key, request.value)
            end = "tail"
        else:
            length = self.client.lpush(key, request.value)
            end = "head"
        return ToolResult.ok(
            f"Pushed value to {end} of list {key} (length {length})",
            {"key": key, "length": length},
        )

    def get(self, args: Dict[str, Any]) -> ToolResult:
        request = build_request(GetListRequest, args)
        key = request.key

        if request.index is not None:
            element = self.client.lindex(key, request.index)
            if element is None:
                raise NotFoundError(f"Index out of range or null element at index: {request.index}")
            return ToolResult.ok(element, {"key": key, "index": request.index, "value": element})

        elements = self.client.lrange(key, 0, -1)
        if not elements:
            return ToolResult.ok(f"List is empty for key: {key}", {"key": key, "values": []})

        lines = [f"List contents for key: {key}"]
        lines.extend(f"{i}: {element}" for i, element in enumerate(elements))
        return ToolResult.ok("\n".join(lines), {"key": key, "values": elements})

    def delete(self, args: Dict[str, Any]) -> ToolResult:
        if is_present(args, "index"):
            return self._delete_index(build_request(DeleteIndexRequest, args))
        return self._delete_value(build_request(DeleteValueRequest, args))

    def _delete_index(self, request: DeleteIndexRequest) -> ToolResult:
        key = request.key
        self._check_index(key, request.index)

        # No LDEL exists: overwrite the slot with a unique marker, then drop it
        sentinel = f"{DELETED_SENTINEL_PREFIX}{uuid.uuid4().hex}"
        pipe = self.client.pipeline(transaction=False)
        pipe.lset(key, request.index, sentinel)
        pipe.lrem(key, 1, sentinel)
        pipe.execute()

        return ToolResult.ok(
            f"Removed element at index {request.index} from list {key}",
            {"key": key, "index": request.index, "deleted": 1},
        )

    def _delete_value(self, request: DeleteValueRequest) -> ToolResult:
        removed = self.client.lrem(request.key, request.count, request.value)
        if not removed:
            raise NotFoundError(f"Value not found in list {request.key}: {request.value}")
        return ToolResult.ok(
            f"Removed {removed} occurrence(s) of '{request.value}' from list {request.key}",
            {"key": request.key, "deleted": removed},
        )

    def _check_index(self, key: str, index: int) -> None:
        length = self.client.llen(key)
        if length == 0:
            raise NotFoundError(f"List does not exist or is empty: {key}")
        if not -length <= index < length:
            raise NotFoundError(f"Index out of range: {index} (list length {length})")


class SetHandler(TypeHandler):
    data_type = DataType.SET
    qualifiers = ("member",)

    def set(self, args: Dict[str, Any]) -> ToolResult:
        request = build_request(SetMemberRequest, args)
        added = bool(self.client.sadd(request.key, request.member))
        if added:
            message = f"Added member '{request.member}' to set {request.key}"
        else:
            message = f"Member '{request.member}' already exists in set {request.key}"
        return ToolResult.ok(message, {"key": request.key, "member": request.member, "added": added})

    def get(self, args: Dict[str, Any]) -> ToolResult:
        request = build_request(GetRequest, args)
        members = sorted(self.client.smembers(request.key))
        if not members:
            return ToolResult.ok(f"Set is empty for key: {request.key}", {"key": request.key, "members": []})

        lines = [f"Set contents for key: {request.key}", *members]
        return ToolResult.ok("\n".join(lines), {"key": request.key, "members": members})

    def delete(self, args: Dict[str, Any]) -> ToolResult:
        request = build_request(DeleteMemberRequest, args)
        if not self.client.srem(request.key, request.member):
            raise NotFoundError(f"Member not found in set: {request.member}")
        return ToolResult.ok(
            f"Removed member '{request.member}' from set {request.key}",
            {"key": request.key, "deleted": 1},
        )


class SortedSetHandler(TypeHandler):
    data_type = DataType.ZSET
    qualifiers = ("member",)

    def set(self, args: Dict[str, Any]) -> ToolResult:
        request = build_request(SetSortedSetRequest, args)
        added = bool(self.client.zadd(request.key, {request.member: request.score}))
        verb = "Added" if added else "Updated"
        return ToolResult.ok(
            f"{verb} member '{request.member}' with score {request.score} in sorted set {request.key}",
            {"key": request.key, "member": request.member, "score": request.score, "added": added},
        )

    def get(self, args: Dict[str, Any]) -> ToolResult:
        request = build_request(GetSortedSetRequest, args)
        key = request.key

        if request.member is not None:
            score = self.client.zscore(key, request.member)
            if score is None:
                raise NotFoundError(f"Member not found in sorted set: {request.member}")
            return ToolResult.ok(
                f"Score of '{request.member}': {score}",
                {"key": key, "member": request.member, "score": score},
            )

        pairs = self.client.zrange(key, 0, -1, withscores=True)
        if not pairs:
            return ToolResult.ok(f"Sorted set is empty for key: {key}", {"key": key, "members": []})

        lines = [f"Sorted set contents for key: {key}"]
        lines.extend(f"{member}: {score}" for member, score in pairs)
        return ToolResult.ok(
            "\n".join(lines),
            {"key": key, "members": [{"member": m, "score": s} for m, s in pairs]},
        )

    def delete(self, args: Dict[str, Any]) -> ToolResult:
        request = build_request(DeleteMemberRequest, args)
        if not self.client.zrem(request.key, request.member):
            raise NotFoundError(f"Member not found in sorted set: {request.member}")
        return ToolResult.ok(
            f"Removed member '{request.member}' from sorted set {request.key}",
            {"key": request.key, "deleted": 1},
        )


class HashHandler(TypeHandler):
    data_type = DataType.HASH
    qualifiers = ("field",)

    def set(self, args: Dict[str, Any]) -> ToolResult:
        request = build_request(SetHashRequest, args)
        created = bool(self.client.hset(request.key, request.field, request.value))
        return ToolResult.ok(
            f"Set field '{request.field}' in hash {request.key}",
            {"key": request.key, "field": request.field, "created": created},
        )

    def get(self, args: Dict[str, Any]) -> ToolResult:
        request = build_request(GetHashRequest, args)
        key = request.key

        if request.field is not None:
            value = self.client.hget(key, request.field)
            if value is None:
                raise NotFoundError(f"Hash field not found: {request.field} in key: {key}")
            return ToolResult.ok(value, {"key": key, "field": request.field, "value": value})

        entries = self.client.hgetall(key)
        if not entries:
            return ToolResult.ok(f"Hash is empty for key: {key}", {"key": key, "fields": {}})

        lines = [f"Hash contents for key: {key}"]
        lines.extend(f"{field}: {value}" for field, value in entries.items())
        return ToolResult.ok("\n".join(lines), {"key": key, "fields": entries})

    def delete(self, args: Dict[str, Any]) -> ToolResult:
        request = build_request(DeleteFieldRequest, args)
        if not self.client.hdel(request.key, request.field):
            raise NotFoundError(f"Hash field not found: {request.field} in key: {request.key}")
        return ToolResult.ok(
            f"Removed field '{request.field}' from hash {request.key}",
            {"key": request.key, "deleted": 1},
        )


class StreamHandler(TypeHandler):
    data_type = DataType.STREAM
    qualifiers = ("id",)

    def set(self, args: Dict[str, Any]) -> ToolResult:
        request = build_request(SetStreamRequest, args)
        record_id = self.client.xadd(request.key, request.value, id=request.id)
        return ToolResult.ok(
            f"Added record {record_id} to stream {request.key}",
            {"key": request.key, "id": record_id},
        )

    def get(self, args: Dict[str, Any]) -> ToolResult:
        request = build_request(GetStreamRequest, args)
        count = request.count or self.settings.redis_stream_read_count
        records = self.client.xrange(request.key, min="-", max="+", count=count)
        if not records:
            return ToolResult.ok(
                f"Stream is empty or no records found for key: {request.key}",
                {"key": request.key, "records": []},
            )

        blocks = [f"Stream contents for key: {request.key}"]
        blocks.extend(f"ID: {record_id}\nValues: {fields}" for record_id, fields in records)
        return ToolResult.ok(
            "\n\n".join(blocks),
            {"key": request.key, "records": [{"id": i, "values": f} for i, f in records]},
        )

    def delete(self, args: Dict[str, Any]) -> ToolResult:
        request = build_request(DeleteRecordRequest, args)
        if not self.client.xdel(request.key, request.id):
            raise NotFoundError(f"Record not found in stream {request.key}: {request.id}")
        return ToolResult.ok(
            f"Removed record {request.id} from stream {request.key}",
            {"key": request.key, "deleted": 1},
        )


HANDLERS: Dict[DataType, Type[TypeHandler]] = {
    handler.data_type: handler
    for handler in (
        StringHandler,
        ListHandler,
        SetHandler,
        SortedSetHandler,
        HashHandler,
        StreamHandler,
    )
}

_unhandled = set(DataType) - set(HANDLERS)
if _unhandled:
    raise RuntimeError(f"No handler registered for: {sorted(t.value for t in _unhandled)}")
