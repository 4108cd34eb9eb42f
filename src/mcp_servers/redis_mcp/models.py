"""Core types shared by the Redis tools: data types, error kinds and results."""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel


class DataType(str, Enum):
    """Redis data types handled by the tools.

    Values are the names returned by the ``TYPE`` command.
    """

    STRING = "string"
    LIST = "list"
    SET = "set"
    ZSET = "zset"
    HASH = "hash"
    STREAM = "stream"

    @classmethod
    def from_name(cls, name: Any) -> "DataType":
        """Parse a caller-supplied type name.

        Args:
            name: Type name such as "hash", "zset" or "sorted_set"

        Returns:
            DataType: Matching data type

        Raises:
            UnsupportedTypeError: If the name is not recognised
        """
        from .exceptions import UnsupportedTypeError

        normalized = str(name).strip().lower().replace("-", "_")
        normalized = _TYPE_ALIASES.get(normalized, normalized)
        try:
            return cls(normalized)
        except ValueError:
            raise UnsupportedTypeError(f"Unsupported Redis data type: {name}") from None

    @property
    def label(self) -> str:
        """Human-readable name used in messages."""
        return "sorted set" if self is DataType.ZSET else self.value


_TYPE_ALIASES = {
    "sorted_set": "zset",
    "sortedset": "zset",
    "str": "string",
}


class ErrorKind(str, Enum):
    """Machine-checkable failure categories."""

    MALFORMED_INPUT = "malformed_input"
    NOT_FOUND = "not_found"
    UNSUPPORTED_TYPE = "unsupported_type"
    DOWNSTREAM_FAILURE = "downstream_failure"


class ToolResult(BaseModel):
    """Outcome of a single tool call.

    Attributes:
        success: Whether the operation completed
        message: Display text for the caller
        error_kind: Failure category, None on success
        data: Optional structured payload (values, counts, ids)
    """

    success: bool
    message: str
    error_kind: Optional[ErrorKind] = None
    data: Any = None

    @classmethod
    def ok(cls, message: str, data: Any = None) -> "ToolResult":
        return cls(success=True, message=message, data=data)

    @classmethod
    def fail(cls, kind: ErrorKind, message: str) -> "ToolResult":
        return cls(success=False, message=message, error_kind=kind)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for the MCP transport."""
        return self.model_dump(mode="json", exclude_none=True)

    def __str__(self) -> str:
        return self.message
