"""Tests for composite relay queries."""

from collections.abc import Callable
from typing import TYPE_CHECKING, Any

import pytest

from mevboost_relays.relays.aggregate import RelayAggregator
from mevboost_relays.relays.client import RelayClient
from mevboost_relays.relays.correlate import RelayCorrelator
from mevboost_relays.relays.errors import CorrelationFailure, RelayError, TransportFailure

if TYPE_CHECKING:
    from conftest import FakeFetcher


SLOT = 7761220


class TestVanillaSlots:
    """Tests for get_vanilla_slots_for_current_and_next_epoch."""

    @pytest.mark.asyncio
    async def test_slots_without_registered_relay(
        self,
        correlator: RelayCorrelator,
        fake_fetcher: "FakeFetcher",
        relay_url: Callable[..., str],
        make_validator: Callable[..., dict[str, Any]],
    ) -> None:
        fake_fetcher.add(relay_url("ultrasound", "validators"), [make_validator(100)])
        fake_fetcher.add(relay_url("flashbots", "validators"), [make_validator(105)])

        vanilla = await correlator.get_vanilla_slots_for_current_and_next_epoch()

        assert len(vanilla) == 62
        assert vanilla == set(range(100, 164)) - {100, 105}

    @pytest.mark.asyncio
    async def test_no_registrations(
        self,
        correlator: RelayCorrelator,
        fake_fetcher: "FakeFetcher",
        relay_url: Callable[..., str],
    ) -> None:
        fake_fetcher.add(relay_url("ultrasound", "validators"), [])
        fake_fetcher.add(relay_url("flashbots", "validators"), [])

        assert await correlator.get_vanilla_slots_for_current_and_next_epoch() == set()

    @pytest.mark.asyncio
    async def test_relay_subset(
        self,
        correlator: RelayCorrelator,
        fake_fetcher: "FakeFetcher",
        relay_url: Callable[..., str],
        make_validator: Callable[..., dict[str, Any]],
    ) -> None:
        fake_fetcher.add(relay_url("flashbots", "validators"), [make_validator(200)])

        vanilla = await correlator.get_vanilla_slots_for_current_and_next_epoch(
            relays=["flashbots"]
        )

        assert 200 not in vanilla
        assert vanilla == set(range(201, 264))


class TestWinningBidTimestamp:
    """Tests for get_winning_bid_timestamp."""

    @pytest.mark.asyncio
    async def test_matches_delivered_block_hash(
        self,
        correlator: RelayCorrelator,
        fake_fetcher: "FakeFetcher",
        relay_url: Callable[..., str],
        make_payload: Callable[..., dict[str, Any]],
        make_bid: Callable[..., dict[str, Any]],
    ) -> None:
        fake_fetcher.add(
            relay_url("ultrasound", "payloads", f"slot={SLOT}"),
            [make_payload(SLOT, "0xabc")],
        )
        fake_fetcher.add(relay_url("flashbots", "payloads", f"slot={SLOT}"), [])
        fake_fetcher.add(
            relay_url("ultrasound", "blocks", f"slot={SLOT}&block_hash=0xabc"),
            [make_bid(SLOT, "0xabc", timestamp_ms=1690000000000)],
        )

        timestamps = await correlator.get_winning_bid_timestamp(SLOT)

        assert timestamps == [("ultrasound", 1690000000000)]

    @pytest.mark.asyncio
    async def test_first_payload_and_first_bid(
        self,
        correlator: RelayCorrelator,
        fake_fetcher: "FakeFetcher",
        relay_url: Callable[..., str],
        make_payload: Callable[..., dict[str, Any]],
        make_bid: Callable[..., dict[str, Any]],
    ) -> None:
        fake_fetcher.add(
            relay_url("flashbots", "payloads", f"slot={SLOT}"),
            [make_payload(SLOT, "0xfirst"), make_payload(SLOT, "0xsecond")],
        )
        fake_fetcher.add(
            relay_url("flashbots", "blocks", f"slot={SLOT}&block_hash=0xfirst"),
            [
                make_bid(SLOT, "0xfirst", timestamp_ms=1690000000500),
                make_bid(SLOT, "0xfirst", timestamp_ms=1690000000100),
            ],
        )

        timestamps = await correlator.get_winning_bid_timestamp(SLOT, relays=["flashbots"])

        assert timestamps == [("flashbots", 1690000000500)]

    @pytest.mark.asyncio
    async def test_missing_bid_fails(
        self,
        correlator: RelayCorrelator,
        fake_fetcher: "FakeFetcher",
        relay_url: Callable[..., str],
        make_payload: Callable[..., dict[str, Any]],
    ) -> None:
        fake_fetcher.add(
            relay_url("ultrasound", "payloads", f"slot={SLOT}"),
            [make_payload(SLOT, "0xabc")],
        )
        fake_fetcher.add(relay_url("flashbots", "payloads", f"slot={SLOT}"), [])
        fake_fetcher.add(
            relay_url("ultrasound", "blocks", f"slot={SLOT}&block_hash=0xabc"), []
        )

        with pytest.raises(CorrelationFailure) as exc_info:
            await correlator.get_winning_bid_timestamp(SLOT)

        assert exc_info.value.slot == SLOT
        assert exc_info.value.relay == "ultrasound"

    @pytest.mark.asyncio
    async def test_nothing_delivered(
        self,
        correlator: RelayCorrelator,
        fake_fetcher: "FakeFetcher",
        relay_url: Callable[..., str],
    ) -> None:
        fake_fetcher.add(relay_url("ultrasound", "payloads", f"slot={SLOT}"), [])
        fake_fetcher.add(relay_url("flashbots", "payloads", f"slot={SLOT}"), [])

        assert await correlator.get_winning_bid_timestamp(SLOT) == []
        assert len(fake_fetcher.requests) == 2

    @pytest.mark.asyncio
    async def test_bid_lookup_failure_drops_relay(
        self,
        correlator: RelayCorrelator,
        fake_fetcher: "FakeFetcher",
        relay_url: Callable[..., str],
        make_payload: Callable[..., dict[str, Any]],
        make_bid: Callable[..., dict[str, Any]],
    ) -> None:
        for relay_name in ("ultrasound", "flashbots"):
            fake_fetcher.add(
                relay_url(relay_name, "payloads", f"slot={SLOT}"),
                [make_payload(SLOT, "0xabc")],
            )
        fake_fetcher.add(
            relay_url("flashbots", "blocks", f"slot={SLOT}&block_hash=0xabc"),
            [make_bid(SLOT, "0xabc", timestamp_ms=1690000000200)],
        )

        timestamps = await correlator.get_winning_bid_timestamp(SLOT)

        assert timestamps == [("flashbots", 1690000000200)]
        assert isinstance(timestamps.skipped["ultrasound"], TransportFailure)
        assert timestamps.failures == {}

    @pytest.mark.asyncio
    async def test_missing_bid_on_one_relay_keeps_others(
        self,
        correlator: RelayCorrelator,
        fake_fetcher: "FakeFetcher",
        relay_url: Callable[..., str],
        make_payload: Callable[..., dict[str, Any]],
        make_bid: Callable[..., dict[str, Any]],
    ) -> None:
        for relay_name in ("ultrasound", "flashbots"):
            fake_fetcher.add(
                relay_url(relay_name, "payloads", f"slot={SLOT}"),
                [make_payload(SLOT, "0xabc")],
            )
        fake_fetcher.add(
            relay_url("ultrasound", "blocks", f"slot={SLOT}&block_hash=0xabc"), []
        )
        fake_fetcher.add(
            relay_url("flashbots", "blocks", f"slot={SLOT}&block_hash=0xabc"),
            [make_bid(SLOT, "0xabc", timestamp_ms=1690000000200)],
        )

        timestamps = await correlator.get_winning_bid_timestamp(SLOT)

        assert timestamps == [("flashbots", 1690000000200)]
        failure = timestamps.failures["ultrasound"]
        assert isinstance(failure, CorrelationFailure)
        assert (failure.slot, failure.relay) == (SLOT, "ultrasound")
        assert timestamps.skipped == {"ultrasound": failure}

    @pytest.mark.asyncio
    async def test_missing_bid_reported_through_hook(
        self,
        client: RelayClient,
        fake_fetcher: "FakeFetcher",
        relay_url: Callable[..., str],
        make_payload: Callable[..., dict[str, Any]],
        make_bid: Callable[..., dict[str, Any]],
    ) -> None:
        dropped: dict[str, RelayError] = {}
        correlator = RelayCorrelator(
            RelayAggregator(client, on_relay_error=dropped.__setitem__)
        )
        for relay_name in ("ultrasound", "flashbots"):
            fake_fetcher.add(
                relay_url(relay_name, "payloads", f"slot={SLOT}"),
                [make_payload(SLOT, "0xabc")],
            )
        fake_fetcher.add(
            relay_url("ultrasound", "blocks", f"slot={SLOT}&block_hash=0xabc"), []
        )
        fake_fetcher.add(
            relay_url("flashbots", "blocks", f"slot={SLOT}&block_hash=0xabc"),
            [make_bid(SLOT, "0xabc")],
        )

        await correlator.get_winning_bid_timestamp(SLOT)

        assert list(dropped) == ["ultrasound"]
        assert isinstance(dropped["ultrasound"], CorrelationFailure)

    @pytest.mark.asyncio
    async def test_every_relay_missing_bid_fails(
        self,
        correlator: RelayCorrelator,
        fake_fetcher: "FakeFetcher",
        relay_url: Callable[..., str],
        make_payload: Callable[..., dict[str, Any]],
    ) -> None:
        for relay_name in ("ultrasound", "flashbots"):
            fake_fetcher.add(
                relay_url(relay_name, "payloads", f"slot={SLOT}"),
                [make_payload(SLOT, "0xabc")],
            )
            fake_fetcher.add(
                relay_url(relay_name, "blocks", f"slot={SLOT}&block_hash=0xabc"), []
            )

        with pytest.raises(CorrelationFailure) as exc_info:
            await correlator.get_winning_bid_timestamp(SLOT)

        assert exc_info.value.relay == "ultrasound"
