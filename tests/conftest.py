"""Pytest configuration and shared fixtures for relay query tests."""

import json

import pytest
import pytest_asyncio

from collections.abc import AsyncIterator, Callable
from typing import Any

import httpx

from mevboost_relays.relays.aggregate import RelayAggregator
from mevboost_relays.relays.client import RelayClient
from mevboost_relays.relays.correlate import RelayCorrelator
from mevboost_relays.relays.registry import RelayRegistry


TEST_RELAYS = {
    "ultrasound": "https://ultrasound.test",
    "flashbots": "https://flashbots.test",
}

PATHS = {
    "payloads": "/relay/v1/data/bidtraces/proposer_payload_delivered",
    "blocks": "/relay/v1/data/bidtraces/builder_blocks_received",
    "validators": "/relay/v1/builder/validators",
    "registration": "/relay/v1/data/validator_registration",
}


class FakeFetcher:
    """In-memory fetch capability keyed by exact URL.

    Unknown URLs fail like an unreachable host.
    """

    def __init__(self) -> None:
        self.responses: dict[str, str | BaseException] = {}
        self.requests: list[str] = []

    def add(self, url: str, body: Any) -> None:
        """Register a response, non-string bodies are JSON encoded."""
        self.responses[url] = body if isinstance(body, str) else json.dumps(body)

    def fail(self, url: str, error: BaseException) -> None:
        self.responses[url] = error

    async def __call__(self, url: str) -> str:
        self.requests.append(url)
        response = self.responses.get(url)
        if response is None:
            msg = f"No route to {url}"
            raise httpx.ConnectError(msg)
        if isinstance(response, BaseException):
            raise response
        return response


@pytest.fixture
def registry() -> RelayRegistry:
    """Registry of two fabricated relays."""
    return RelayRegistry(TEST_RELAYS)


@pytest.fixture
def fake_fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest_asyncio.fixture
async def client(
    registry: RelayRegistry, fake_fetcher: FakeFetcher
) -> AsyncIterator[RelayClient]:
    """Relay client wired to the fake fetcher."""
    async with RelayClient(registry, fetch=fake_fetcher) as relay_client:
        yield relay_client


@pytest.fixture
def aggregator(client: RelayClient) -> RelayAggregator:
    return RelayAggregator(client, concurrency=2)


@pytest.fixture
def correlator(aggregator: RelayAggregator) -> RelayCorrelator:
    return RelayCorrelator(aggregator)


@pytest.fixture
def make_payload() -> Callable[..., dict[str, Any]]:
    """Factory for delivered payload bid-traces as relays send them."""

    def factory(
        slot: int = 7761220, block_hash: str = "0xabc", **overrides: Any
    ) -> dict[str, Any]:
        payload = {
            "slot": str(slot),
            "parent_hash": "0xparent",
            "block_hash": block_hash,
            "builder_pubkey": "0xbuilder",
            "proposer_pubkey": "0xproposer",
            "proposer_fee_recipient": "0xfeerecipient",
            "gas_limit": "30000000",
            "gas_used": "12345678",
            "value": "123456789012345678901",
            "num_tx": "150",
            "block_number": "17800000",
        }
        payload.update(overrides)
        return payload

    return factory


@pytest.fixture
def make_bid(make_payload: Callable[..., dict[str, Any]]) -> Callable[..., dict[str, Any]]:
    """Factory for builder block bid-traces, flattened like relays send them."""

    def factory(
        slot: int = 7761220,
        block_hash: str = "0xabc",
        timestamp_ms: int = 1690000000000,
        **overrides: Any,
    ) -> dict[str, Any]:
        bid = make_payload(slot=slot, block_hash=block_hash)
        bid.update(
            {
                "timestamp": str(timestamp_ms // 1000),
                "timestamp_ms": str(timestamp_ms),
                "optimistic_submission": False,
            }
        )
        bid.update(overrides)
        return bid

    return factory


@pytest.fixture
def make_validator() -> Callable[..., dict[str, Any]]:
    """Factory for validator registrations of the validators endpoint."""

    def factory(slot: int, pubkey: str = "0xvalidator") -> dict[str, Any]:
        return {
            "slot": str(slot),
            "validator_index": "123456",
            "entry": make_entry(pubkey),
        }

    return factory


def make_entry(pubkey: str = "0xvalidator") -> dict[str, Any]:
    return {
        "message": {
            "fee_recipient": "0xfeerecipient",
            "gas_limit": "30000000",
            "timestamp": "1690000000",
            "pubkey": pubkey,
        },
        "signature": "0xsignature",
    }


@pytest.fixture
def entry_json() -> dict[str, Any]:
    """Validator registration entry as returned by the registration endpoint."""
    return make_entry()


@pytest.fixture
def relay_url() -> Callable[..., str]:
    """Build the URL a test relay is queried with.

    Example: ``relay_url("ultrasound", "payloads", "slot=1")``
    """

    def build(relay_name: str, endpoint: str, query: str = "") -> str:
        url = f"{TEST_RELAYS[relay_name]}{PATHS[endpoint]}"
        return f"{url}?{query}" if query else url

    return build
