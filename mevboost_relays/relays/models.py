"""Models for relay data API responses and query filters."""

from datetime import datetime
from enum import StrEnum
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

from mevboost_relays.helpers.parsers import (
    parse_decimal_string,
    parse_uint,
    parse_unix_millis,
    parse_unix_seconds,
)

Uint = Annotated[int, BeforeValidator(parse_uint)]
"""Unsigned integer that relays may transmit as a decimal string."""

Wei = Annotated[str, BeforeValidator(parse_decimal_string)]
"""Wei amount kept as a decimal string, it can exceed 64 bits."""

UnixSeconds = Annotated[datetime, BeforeValidator(parse_unix_seconds)]

UnixMillis = Annotated[int, BeforeValidator(parse_unix_millis)]
"""Millisecond Unix timestamp, checked to fall in the supported date range."""


def _optional_str(value: Any) -> Any:
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


class RelayModel(BaseModel):
    """Immutable relay entity, unknown response fields are ignored."""

    model_config = ConfigDict(frozen=True, extra="ignore")


class EntryMessage(RelayModel):
    """Entry message of a registered validator."""

    fee_recipient: str
    gas_limit: Uint
    timestamp: UnixSeconds
    pubkey: str


class ValidatorEntry(RelayModel):
    """Signed validator registration."""

    message: EntryMessage
    signature: str


class RegisteredValidator(RelayModel):
    """Validator scheduled to propose in the current or next epoch."""

    slot: Uint
    validator_index: Annotated[str | None, BeforeValidator(_optional_str)] = None
    entry: ValidatorEntry


class PayloadBidtrace(RelayModel):
    """Payload delivered by a relay to a proposer."""

    slot: Uint
    parent_hash: str
    block_hash: str
    builder_pubkey: str
    proposer_pubkey: str
    proposer_fee_recipient: str
    gas_limit: Uint
    gas_used: Uint
    value: Wei
    num_tx: Uint
    block_number: Uint


class BuilderBlockBidtrace(PayloadBidtrace):
    """Block bid submitted by a builder.

    The bid-trace fields arrive flattened next to the submission fields.
    """

    timestamp_ms: UnixMillis
    optimistic_submission: bool | None = None


class OrderBy(StrEnum):
    """Sort order accepted by the delivered payloads endpoint."""

    VALUE_ASC = "value"
    VALUE_DESC = "-value"


class QueryFilter(BaseModel):
    """Optional query parameters, encoded in field declaration order.

    Unset fields stay ``None`` and never reach the query string.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    def query_params(self) -> list[tuple[str, str]]:
        """Set fields as (key, value) pairs in declaration order."""
        params = []
        for name in type(self).model_fields:
            value = getattr(self, name)
            if value is None:
                continue
            if isinstance(value, StrEnum):
                value = value.value
            params.append((name, str(value)))
        return params


class PayloadDeliveredQuery(QueryFilter):
    """Filters for the delivered payloads endpoint."""

    slot: int | None = Field(default=None, ge=0)
    cursor: int | None = Field(default=None, ge=0)
    limit: int | None = Field(default=None, ge=0)
    block_hash: str | None = None
    block_number: int | None = Field(default=None, ge=0)
    proposer_pubkey: str | None = None
    builder_pubkey: str | None = None
    order_by: OrderBy | None = None


class BuilderBlocksReceivedQuery(QueryFilter):
    """Filters for the builder blocks received endpoint."""

    slot: int | None = Field(default=None, ge=0)
    block_hash: str | None = None
    block_number: int | None = Field(default=None, ge=0)
    builder_pubkey: str | None = None
    limit: int | None = Field(default=None, ge=0)


class ValidatorRegistrationQuery(QueryFilter):
    """Filter for the validator registration endpoint."""

    pubkey: str


__all__ = [
    "BuilderBlockBidtrace",
    "BuilderBlocksReceivedQuery",
    "EntryMessage",
    "OrderBy",
    "PayloadBidtrace",
    "PayloadDeliveredQuery",
    "QueryFilter",
    "RegisteredValidator",
    "ValidatorEntry",
    "ValidatorRegistrationQuery",
]
