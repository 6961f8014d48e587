"""Decode relay response bodies into canonical entities."""

from typing import Any

from pydantic import TypeAdapter, ValidationError

from mevboost_relays.relays.constants import OperationKind
from mevboost_relays.relays.errors import Malformed, ParseError
from mevboost_relays.relays.models import (
    BuilderBlockBidtrace,
    PayloadBidtrace,
    RegisteredValidator,
    ValidatorEntry,
)

ADAPTERS: dict[OperationKind, TypeAdapter[Any]] = {
    OperationKind.VALIDATORS: TypeAdapter(list[RegisteredValidator]),
    OperationKind.VALIDATOR_REGISTRATION: TypeAdapter(ValidatorEntry),
    OperationKind.PAYLOADS_DELIVERED: TypeAdapter(list[PayloadBidtrace]),
    OperationKind.BUILDER_BLOCKS_RECEIVED: TypeAdapter(list[BuilderBlockBidtrace]),
}


def _field_name(loc: tuple[int | str, ...]) -> str:
    """Innermost named field of a validation error location."""
    for part in reversed(loc):
        if isinstance(part, str):
            return part
    return "<root>"


def parse_response(kind: OperationKind, body: str) -> Any:
    """Parse a response body of an operation.

    Args:
        kind: Operation the body was returned for
        body: Raw response text

    Returns:
        The operation's entity, or a list of entities

    Raises:
        Malformed: If a field fails its expected encoding
        ParseError: If the body is not valid JSON
    """
    try:
        return ADAPTERS[kind].validate_json(body)
    except ValidationError as e:
        error = e.errors()[0]
        if error["type"] == "json_invalid":
            msg = f"invalid JSON in {kind} response: {error['msg']}"
            raise ParseError(msg) from e
        raise Malformed(_field_name(error["loc"]), detail=error["msg"]) from e


__all__ = ["parse_response"]
