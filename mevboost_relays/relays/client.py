"""Single-relay query operations."""

from types import TracebackType
from typing import Any, Self

import httpx

from mevboost_relays.helpers.constants import DEFAULT_TIMEOUT
from mevboost_relays.helpers.http import Fetcher, HttpxFetcher, create_http_client
from mevboost_relays.relays.constants import OperationKind
from mevboost_relays.relays.endpoints import operation_url
from mevboost_relays.relays.errors import NotRegistered, ParseError, TransportFailure
from mevboost_relays.relays.models import (
    BuilderBlockBidtrace,
    BuilderBlocksReceivedQuery,
    PayloadBidtrace,
    PayloadDeliveredQuery,
    QueryFilter,
    RegisteredValidator,
    ValidatorEntry,
    ValidatorRegistrationQuery,
)
from mevboost_relays.relays.normalize import parse_response
from mevboost_relays.relays.registry import RelayRegistry


_EMPTY_BODIES = {"", "null", "{}", "[]"}


def _is_missing_registration(error: TransportFailure) -> bool:
    """Whether a failed status means the relay has no registration."""
    if error.status_code == 404:
        return True
    return error.status_code == 400 and "no registration" in error.response_text.lower()


class RelayClient:
    """MEV-Boost relay data API client.

    Each query targets exactly one named relay and runs the same pipeline:
    registry lookup, URL encoding, fetch, then response normalization. Every
    stage raises its own error kind and nothing is retried.

    When no fetcher is supplied the client creates and owns an httpx client,
    released by ``aclose()`` or by leaving ``async with``.
    """

    def __init__(
        self,
        relays: RelayRegistry | None = None,
        fetch: Fetcher | None = None,
        *,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        """Initialize the client.

        Args:
            relays: Relay registry, the built-in table when omitted
            fetch: Fetch capability, an httpx GET when omitted
            timeout: Request timeout of the owned httpx client
        """
        self.relays = relays if relays is not None else RelayRegistry.default()
        self._http_client: httpx.AsyncClient | None = None
        if fetch is None:
            self._http_client = create_http_client(timeout=timeout)
            fetch = HttpxFetcher(self._http_client)
        self.fetch = fetch

    async def aclose(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def _fetch(self, relay_name: str, url: str) -> str:
        """Run the fetch capability, wrapping its failures.

        Raises:
            TransportFailure: If the collaborator raised an HTTP, timeout or OS error
        """
        try:
            return await self.fetch(url)
        except (httpx.HTTPError, TimeoutError, OSError) as e:
            raise TransportFailure(relay_name, e) from e

    async def _query(
        self,
        relay_name: str,
        kind: OperationKind,
        query: QueryFilter | None = None,
    ) -> Any:
        url = operation_url(self.relays.lookup(relay_name), kind, query)
        body = await self._fetch(relay_name, url)
        return self._parse(relay_name, kind, body)

    @staticmethod
    def _parse(relay_name: str, kind: OperationKind, body: str) -> Any:
        try:
            return parse_response(kind, body)
        except ParseError as e:
            e.relay = relay_name
            raise

    async def get_validators_for_current_and_next_epoch(
        self, relay_name: str
    ) -> list[RegisteredValidator]:
        """Get validator registrations for the current and next epochs.

        Raises:
            UnknownRelay: If the relay is not registered
            TransportFailure: If the request failed
            ParseError: If the response could not be decoded
        """
        return await self._query(relay_name, OperationKind.VALIDATORS)

    async def get_validator_registration(
        self, relay_name: str, pubkey: str
    ) -> ValidatorEntry:
        """Check that a validator is registered with a relay.

        Args:
            relay_name: Relay to query
            pubkey: Validator public key

        Returns:
            ValidatorEntry: The latest registration held by the relay

        Raises:
            NotRegistered: If the relay holds no registration for the pubkey
            UnknownRelay: If the relay is not registered
            TransportFailure: If the request failed
            ParseError: If the response could not be decoded
        """
        url = operation_url(
            self.relays.lookup(relay_name),
            OperationKind.VALIDATOR_REGISTRATION,
            ValidatorRegistrationQuery(pubkey=pubkey),
        )
        try:
            body = await self._fetch(relay_name, url)
        except TransportFailure as e:
            if _is_missing_registration(e):
                raise NotRegistered(relay_name, pubkey) from e
            raise

        if body.strip() in _EMPTY_BODIES:
            raise NotRegistered(relay_name, pubkey)
        return self._parse(relay_name, OperationKind.VALIDATOR_REGISTRATION, body)

    async def get_payload_delivered_bidtraces(
        self, relay_name: str, query: PayloadDeliveredQuery | None = None
    ) -> list[PayloadBidtrace]:
        """Get payloads delivered by a relay to proposers, filtered by ``query``."""
        return await self._query(relay_name, OperationKind.PAYLOADS_DELIVERED, query)

    async def get_builder_blocks_received(
        self, relay_name: str, query: BuilderBlocksReceivedQuery | None = None
    ) -> list[BuilderBlockBidtrace]:
        """Get builder block submissions received by a relay, filtered by ``query``."""
        return await self._query(
            relay_name, OperationKind.BUILDER_BLOCKS_RECEIVED, query
        )


__all__ = ["RelayClient"]
