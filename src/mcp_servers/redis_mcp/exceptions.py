"""Exceptions raised while parsing and dispatching Redis tool calls.

They never leave the dispatcher: each one is turned into a failed
``ToolResult`` carrying its ``ErrorKind``.
"""

from .models import ErrorKind


class RedisToolError(Exception):
    """Base class for tool-level failures."""

    kind: ErrorKind = ErrorKind.DOWNSTREAM_FAILURE

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class MalformedInputError(RedisToolError):
    """Invalid JSON, or a required argument is missing, empty or wrong-typed."""

    kind = ErrorKind.MALFORMED_INPUT


class NotFoundError(RedisToolError):
    """Key, field, member, record or index is absent."""

    kind = ErrorKind.NOT_FOUND


class UnsupportedTypeError(RedisToolError):
    """Unknown type name, or a type that does not match the live key."""

    kind = ErrorKind.UNSUPPORTED_TYPE
