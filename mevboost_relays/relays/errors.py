"""Errors raised by relay queries."""


class RelayError(Exception):
    """Base class for every relay query error."""


class UnknownRelay(RelayError):
    """Relay name is not present in the registry."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Relay `{name}` not found in list of relays")


class TransportFailure(RelayError):
    """The fetch collaborator failed to return a response body."""

    def __init__(self, relay: str, cause: BaseException) -> None:
        self.relay = relay
        self.cause = cause
        response = getattr(cause, "response", None)
        self.status_code: int | None = getattr(response, "status_code", None)
        self.response_text: str = getattr(response, "text", "") if response else ""
        super().__init__(f"{relay}: {type(cause).__name__}: {cause}")


class ParseError(RelayError):
    """Response body could not be decoded into the expected entity."""

    def __init__(self, message: str, relay: str | None = None) -> None:
        self.message = message
        self.relay = relay
        super().__init__(message)

    def __str__(self) -> str:
        if self.relay:
            return f"{self.relay}: {self.message}"
        return self.message


class Malformed(ParseError):
    """A response field does not hold its expected encoding."""

    def __init__(self, field: str, relay: str | None = None, detail: str = "") -> None:
        self.field = field
        message = f"malformed field `{field}`"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message, relay=relay)


class NotRegistered(RelayError):
    """Relay confirmed it holds no registration for the validator."""

    def __init__(self, relay: str, pubkey: str) -> None:
        self.relay = relay
        self.pubkey = pubkey
        super().__init__(f"{relay}: no registration found for validator {pubkey}")


class CorrelationFailure(RelayError):
    """A delivered payload has no matching builder bid on the same relay."""

    def __init__(self, slot: int, relay: str) -> None:
        self.slot = slot
        self.relay = relay
        super().__init__(
            f"{relay}: payload delivered for slot {slot} has no matching builder bid"
        )


__all__ = [
    "CorrelationFailure",
    "Malformed",
    "NotRegistered",
    "ParseError",
    "RelayError",
    "TransportFailure",
    "UnknownRelay",
]
