"""Composite queries combining several aggregate calls."""

from collections.abc import Iterable
from typing import Any

from mevboost_relays.helpers.logging import get_logger
from mevboost_relays.relays.aggregate import DROPPED_ERRORS, RelayAggregator
from mevboost_relays.relays.errors import CorrelationFailure, RelayError
from mevboost_relays.relays.models import (
    BuilderBlocksReceivedQuery,
    PayloadDeliveredQuery,
)


logger = get_logger(__name__)


class WinningBidTimestamps(list[tuple[str, int]]):
    """(relay name, bid timestamp in milliseconds) pairs of one slot.

    Relays left out are listed in ``skipped`` with their error. Relays that
    delivered a payload without a matching builder bid are also listed in
    ``failures``.
    """

    def __init__(self, *args: Any) -> None:
        super().__init__(*args)
        self.skipped: dict[str, RelayError] = {}

    @property
    def failures(self) -> dict[str, CorrelationFailure]:
        return {
            relay_name: error
            for relay_name, error in self.skipped.items()
            if isinstance(error, CorrelationFailure)
        }


class RelayCorrelator:
    """Answer questions that need results of more than one relay query."""

    def __init__(self, aggregator: RelayAggregator) -> None:
        self.aggregator = aggregator
        self.client = aggregator.client

    async def get_vanilla_slots_for_current_and_next_epoch(
        self, relays: Iterable[str] | None = None
    ) -> set[int]:
        """Slots of the current and next epoch without any registered relay.

        Returns an empty set when no relay reports a registration.
        """
        slots = await self.aggregator.get_validator_registration_for_all_slots_on_all_relays(
            relays
        )
        return {slot for slot, relay_names in slots.items() if not relay_names}

    async def get_winning_bid_timestamp(
        self, slot: int, relays: Iterable[str] | None = None
    ) -> WinningBidTimestamps:
        """Submission time of the winning bid of a slot on each delivering relay.

        The block hash of the first payload a relay delivered for the slot is
        looked up among the builder bids of that same relay, and the first
        matching bid's timestamp is kept. Relays that delivered nothing for the
        slot have no entry.

        A relay whose payload has no matching bid is reported in ``failures``
        of the result while the other relays keep their timestamps.

        Args:
            slot: Slot to look up
            relays: Relay names to query, every registered relay when omitted

        Returns:
            WinningBidTimestamps: (relay name, bid timestamp in milliseconds)

        Raises:
            CorrelationFailure: If payloads were delivered but no relay holds
                a matching builder bid
        """
        delivered = await self.aggregator.get_payload_delivered_bidtraces_on_all_relays(
            PayloadDeliveredQuery(slot=slot), relays=relays
        )
        result = WinningBidTimestamps()
        result.skipped.update(delivered.skipped)

        block_hashes = {
            relay_name: payloads[0].block_hash
            for relay_name, payloads in delivered.items()
            if payloads
        }
        if not block_hashes:
            logger.info("No relay delivered a payload for slot %d", slot)
            return result

        async def winning_bid_timestamp(relay_name: str) -> int:
            bids = await self.client.get_builder_blocks_received(
                relay_name,
                BuilderBlocksReceivedQuery(slot=slot, block_hash=block_hashes[relay_name]),
            )
            if not bids:
                raise CorrelationFailure(slot, relay_name)
            return bids[0].timestamp_ms

        timestamps = await self.aggregator.for_all_relays(
            winning_bid_timestamp,
            relays=list(block_hashes),
            dropped_errors=(*DROPPED_ERRORS, CorrelationFailure),
        )
        result.skipped.update(timestamps.skipped)
        result.extend(
            (relay_name, timestamps[relay_name])
            for relay_name in block_hashes
            if relay_name in timestamps
        )

        failures = result.failures
        if failures and not result:
            raise next(iter(failures.values()))
        return result


__all__ = ["RelayCorrelator", "WinningBidTimestamps"]
