"""Argument parsing for the Redis tools.

Each tool receives a JSON object (the argument bag). This module decodes it,
decides which Redis data type a call targets when the key does not exist yet,
and validates the bag into a typed request model for the chosen handler.
"""

import json
from typing import Annotated, Any, Dict, List, Optional, Type, TypeVar, Union

from pydantic import (
    AfterValidator,
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    PositiveInt,
    ValidationError,
    field_validator,
)

from .exceptions import MalformedInputError
from .models import DataType

RequestT = TypeVar("RequestT", bound="ToolRequest")

# Order matters: a bag carrying both "field" and "score" is a hash write.
INFERENCE_ORDER = (
    ("field", DataType.HASH),
    ("score", DataType.ZSET),
    ("index", DataType.LIST),
)

# Arguments that make a delete target part of a key instead of the whole key
DELETE_QUALIFIERS = ("field", "member", "index", "value", "id")


def parse_arguments(json_args: Optional[Union[str, Dict[str, Any]]]) -> Dict[str, Any]:
    """Decode the JSON argument bag.

    Args:
        json_args: JSON object as a string; empty or None means no arguments

    Returns:
        Dict with the decoded arguments

    Raises:
        MalformedInputError: If the payload is not valid JSON or not an object
    """
    if json_args is None:
        return {}
    if isinstance(json_args, dict):
        return dict(json_args)
    if not isinstance(json_args, str):
        raise MalformedInputError(
            f"Invalid JSON format: expected a JSON object string, got {type(json_args).__name__}"
        )
    if not json_args.strip():
        return {}

    try:
        args = json.loads(json_args)
    except json.JSONDecodeError as e:
        raise MalformedInputError(f"Invalid JSON format: {e.msg}") from e

    if not isinstance(args, dict):
        raise MalformedInputError("Invalid JSON format: arguments must be a JSON object")
    return args


def is_present(args: Dict[str, Any], name: str) -> bool:
    """Check whether an argument was supplied with a non-null value."""
    return args.get(name) is not None


def infer_type(args: Dict[str, Any]) -> DataType:
    """Infer the data type of a new key from the arguments.

    Args:
        args: Decoded argument bag

    Returns:
        DataType: Explicit ``type`` if given, otherwise hash, sorted set or
        list depending on which of field/score/index is present, else string
    """
    if is_present(args, "type"):
        return DataType.from_name(args["type"])
    for name, data_type in INFERENCE_ORDER:
        if is_present(args, name):
            return data_type
    return DataType.STRING


def require_key(args: Dict[str, Any]) -> str:
    """Return the single ``key`` argument.

    Raises:
        MalformedInputError: If the key is missing, empty or not a scalar
    """
    key = args.get("key")
    if key is None:
        raise MalformedInputError("'key' parameter is required")
    if isinstance(key, (list, dict)):
        raise MalformedInputError("'key' must be a string")
    key = str(key)
    if not key.strip():
        raise MalformedInputError("Empty key provided")
    return key


def require_keys(args: Dict[str, Any]) -> Union[str, List[str]]:
    """Return ``key`` as a single name or, for batch deletes, a list of names.

    Raises:
        MalformedInputError: If no usable key is supplied
    """
    key = args.get("key")
    if isinstance(key, list):
        keys = [str(k) for k in key if k is not None and str(k).strip()]
        if not keys:
            raise MalformedInputError("No valid keys provided")
        return keys
    return require_key(args)


def delete_qualifiers(args: Dict[str, Any]) -> List[str]:
    """Names of delete qualifiers present in the arguments."""
    return [name for name in DELETE_QUALIFIERS if is_present(args, name)]


def build_request(model: Type[RequestT], args: Dict[str, Any]) -> RequestT:
    """Validate the argument bag into a request model.

    Args:
        model: Request model class
        args: Decoded argument bag

    Returns:
        Validated request instance

    Raises:
        MalformedInputError: Describing the first invalid field
    """
    try:
        return model.model_validate(args)
    except ValidationError as e:
        raise MalformedInputError(_describe_validation_error(e)) from e


def _describe_validation_error(error: ValidationError) -> str:
    first = error.errors()[0]
    name = ".".join(str(part) for part in first.get("loc", ())) or "arguments"
    if first.get("type") == "missing":
        return f"'{name}' parameter is required"
    return f"Invalid '{name}': {first.get('msg')}"


def _non_blank(value: str) -> str:
    if not value.strip():
        raise ValueError("must not be empty")
    return value


NonBlankStr = Annotated[str, AfterValidator(_non_blank)]


# ============================================================================
# Request models
# ============================================================================

class ToolRequest(BaseModel):
    """Base request: every operation targets one key."""

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    key: NonBlankStr


# Set requests

class SetStringRequest(ToolRequest):
    value: str
    ttl: Optional[PositiveInt] = Field(
        default=None,
        validation_alias=AliasChoices("ttl", "expireSeconds", "expire_seconds"),
    )


class SetListRequest(ToolRequest):
    value: str
    append: bool = False
    index: Optional[int] = None


class SetMemberRequest(ToolRequest):
    """Add to a set; ``value`` is accepted when ``member`` is absent."""

    member: str = Field(validation_alias=AliasChoices("member", "value"))


class SetSortedSetRequest(ToolRequest):
    member: str = Field(validation_alias=AliasChoices("member", "value"))
    score: float


class SetHashRequest(ToolRequest):
    field: NonBlankStr
    value: str


class SetStreamRequest(ToolRequest):
    value: Dict[str, str]
    id: str = "*"

    @field_validator("value")
    @classmethod
    def check_entries(cls, value: Dict[str, str]) -> Dict[str, str]:
        if not value:
            raise ValueError("stream records need at least one field")
        return value


# Get requests

class GetRequest(ToolRequest):
    pass


class GetListRequest(ToolRequest):
    index: Optional[int] = None


class GetSortedSetRequest(ToolRequest):
    member: Optional[str] = None


class GetHashRequest(ToolRequest):
    field: Optional[NonBlankStr] = None


class GetStreamRequest(ToolRequest):
    count: Optional[PositiveInt] = None


# Delete requests

class DeleteFieldRequest(ToolRequest):
    field: str


class DeleteMemberRequest(ToolRequest):
    member: str


class DeleteIndexRequest(ToolRequest):
    index: int


class DeleteValueRequest(ToolRequest):
    """Remove occurrences of a list value; count 0 removes all of them."""

    value: str
    count: int = 0


class DeleteRecordRequest(ToolRequest):
    id: str


# List request

class ListKeysRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    pattern: str = "*"
    batch_size: Optional[PositiveInt] = Field(
        default=None,
        validation_alias=AliasChoices("batchSize", "batch_size"),
    )
    limit: Optional[PositiveInt] = None
