"""Fan relay queries out across many relays."""

from collections.abc import Awaitable, Callable, Iterable
from typing import Any, TypeVar

from asyncio import Semaphore, gather

from mevboost_relays.helpers.constants import DEFAULT_CONCURRENCY, VALIDATOR_WINDOW_SLOTS
from mevboost_relays.helpers.logging import get_logger
from mevboost_relays.relays.client import RelayClient
from mevboost_relays.relays.errors import (
    CorrelationFailure,
    NotRegistered,
    ParseError,
    RelayError,
    TransportFailure,
    UnknownRelay,
)
from mevboost_relays.relays.models import (
    BuilderBlockBidtrace,
    BuilderBlocksReceivedQuery,
    PayloadBidtrace,
    PayloadDeliveredQuery,
    RegisteredValidator,
    ValidatorEntry,
)


logger = get_logger(__name__)

T = TypeVar("T")

ErrorHook = Callable[[str, RelayError], None]
"""Called with the relay name and error of every relay dropped from a result."""

DROPPED_ERRORS = (UnknownRelay, TransportFailure, ParseError)
"""Per-relay failures that remove the relay from an aggregate result."""


class RelayResults(dict[str, T]):
    """Per-relay results of an aggregate query.

    Relays whose call failed are absent from the mapping and listed in
    ``skipped`` with the error that removed them.
    """

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.skipped: dict[str, RelayError] = {}


class RelayAggregator:
    """Run single-relay operations against every relay of a client."""

    def __init__(
        self,
        client: RelayClient,
        *,
        concurrency: int = DEFAULT_CONCURRENCY,
        on_relay_error: ErrorHook | None = None,
    ) -> None:
        """Initialize the aggregator.

        Args:
            client: Client whose registry and operations are used
            concurrency: Maximum number of relays queried at the same time
            on_relay_error: Optional hook receiving every dropped relay

        Raises:
            ValueError: If concurrency is lower than 1
        """
        if concurrency < 1:
            msg = "Concurrency must be at least 1"
            raise ValueError(msg)
        self.client = client
        self.concurrency = concurrency
        self.on_relay_error = on_relay_error

    def _relay_names(self, relays: Iterable[str] | None) -> list[str]:
        return list(relays) if relays is not None else self.client.relays.names()

    def _drop(self, results: RelayResults[Any], relay_name: str, error: RelayError) -> None:
        if isinstance(error, CorrelationFailure):
            logger.error("Skipping relay %s: %s", relay_name, error)
        else:
            logger.warning("Skipping relay %s: %s", relay_name, error)
        results.skipped[relay_name] = error
        if self.on_relay_error is not None:
            self.on_relay_error(relay_name, error)

    async def for_all_relays(
        self,
        operation: Callable[..., Awaitable[T]],
        *args: Any,
        relays: Iterable[str] | None = None,
        dropped_errors: tuple[type[RelayError], ...] = DROPPED_ERRORS,
        **kwargs: Any,
    ) -> RelayResults[T]:
        """Call ``operation(relay_name, *args, **kwargs)`` for every relay.

        Relays are queried concurrently, bounded by the aggregator's
        concurrency. Errors listed in ``dropped_errors`` (by default unknown
        relays, transport failures and parse errors) drop the relay from the
        result. Any other error is raised once every relay has finished.

        Args:
            operation: Single-relay operation taking the relay name first
            *args: Extra positional arguments for the operation
            relays: Relay names to query, every registered relay when omitted
            dropped_errors: Error kinds that drop a relay instead of failing the call
            **kwargs: Extra keyword arguments for the operation

        Returns:
            RelayResults: Successful results keyed by relay name
        """
        names = self._relay_names(relays)
        semaphore = Semaphore(self.concurrency)

        async def run_one(relay_name: str) -> T:
            async with semaphore:
                return await operation(relay_name, *args, **kwargs)

        outcomes = await gather(
            *(run_one(name) for name in names), return_exceptions=True
        )

        results: RelayResults[T] = RelayResults()
        failure: BaseException | None = None
        for name, outcome in zip(names, outcomes, strict=True):
            if isinstance(outcome, dropped_errors):
                self._drop(results, name, outcome)
            elif isinstance(outcome, BaseException):
                logger.error("Relay %s failed: %s", name, outcome)
                if failure is None:
                    failure = outcome
            else:
                results[name] = outcome

        if failure is not None:
            raise failure
        return results

    async def get_validators_on_all_relays(
        self, relays: Iterable[str] | None = None
    ) -> RelayResults[list[RegisteredValidator]]:
        return await self.for_all_relays(
            self.client.get_validators_for_current_and_next_epoch, relays=relays
        )

    async def get_validator_registration_on_all_relays(
        self, pubkey: str, relays: Iterable[str] | None = None
    ) -> RelayResults[ValidatorEntry | None]:
        """Check a validator's registration on every relay.

        A relay that confirms it has no registration maps to ``None``; a relay
        whose answer could not be determined is left out.
        """

        async def registration(relay_name: str) -> ValidatorEntry | None:
            try:
                return await self.client.get_validator_registration(relay_name, pubkey)
            except NotRegistered:
                return None

        return await self.for_all_relays(registration, relays=relays)

    async def get_payload_delivered_bidtraces_on_all_relays(
        self,
        query: PayloadDeliveredQuery | None = None,
        relays: Iterable[str] | None = None,
    ) -> RelayResults[list[PayloadBidtrace]]:
        return await self.for_all_relays(
            self.client.get_payload_delivered_bidtraces, query, relays=relays
        )

    async def get_builder_blocks_received_on_all_relays(
        self,
        query: BuilderBlocksReceivedQuery | None = None,
        relays: Iterable[str] | None = None,
    ) -> RelayResults[list[BuilderBlockBidtrace]]:
        return await self.for_all_relays(
            self.client.get_builder_blocks_received, query, relays=relays
        )

    async def get_validator_registration_for_all_slots_on_all_relays(
        self, relays: Iterable[str] | None = None
    ) -> dict[int, list[str]]:
        """Map each slot of the current and next epoch to its registered relays.

        The first relay anchors the result: its failure aborts the call, while
        later relays are dropped like in any other aggregate query. Slots
        without any registered relay map to an empty list across the window
        starting at the lowest slot observed.

        Returns:
            dict[int, list[str]]: Relay names per slot, sorted by slot

        Raises:
            UnknownRelay: If the first relay is not registered
            TransportFailure: If the first relay's request failed
            ParseError: If the first relay's response could not be decoded
        """
        names = self._relay_names(relays)
        if not names:
            return {}

        anchor, others = names[0], names[1:]
        registrations = {
            anchor: await self.client.get_validators_for_current_and_next_epoch(anchor)
        }
        registrations.update(await self.get_validators_on_all_relays(others))

        slots: dict[int, list[str]] = {}
        for relay_name in names:
            for validator in registrations.get(relay_name, []):
                relay_names = slots.setdefault(validator.slot, [])
                if relay_name not in relay_names:
                    relay_names.append(relay_name)

        if slots:
            initial_slot = min(slots)
            for slot in range(initial_slot, initial_slot + VALIDATOR_WINDOW_SLOTS):
                slots.setdefault(slot, [])

        return dict(sorted(slots.items()))


__all__ = ["DROPPED_ERRORS", "ErrorHook", "RelayAggregator", "RelayResults"]
