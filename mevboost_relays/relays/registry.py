"""Relay name to endpoint registry."""

from collections.abc import Iterable, Iterator, Mapping
from types import MappingProxyType

import httpx

from mevboost_relays.relays.constants import DEFAULT_RELAYS
from mevboost_relays.relays.errors import UnknownRelay


def _validate_origin(name: str, endpoint: str) -> None:
    """Check that an endpoint is an absolute HTTPS origin.

    Raises:
        ValueError: If the endpoint has another scheme, no host, a path or a query
    """
    try:
        url = httpx.URL(endpoint)
    except httpx.InvalidURL as e:
        msg = f"Relay `{name}` has an invalid endpoint: {e}"
        raise ValueError(msg) from e

    if url.scheme != "https" or not url.host:
        msg = f"Relay `{name}` endpoint must be an absolute https origin: {endpoint}"
        raise ValueError(msg)
    if url.path not in ("", "/") or url.query or url.fragment:
        msg = f"Relay `{name}` endpoint must not carry a path or query: {endpoint}"
        raise ValueError(msg)


class RelayRegistry(Mapping[str, str]):
    """Read-only mapping of relay names to base endpoints.

    Built once and shared by every query issued through a client. Iteration
    follows the order in which relays were supplied.
    """

    def __init__(self, relays: Mapping[str, str]) -> None:
        """Initialize the registry.

        Args:
            relays: Relay name to base endpoint mapping

        Raises:
            ValueError: If a name is empty or an endpoint is not an https origin
        """
        entries: dict[str, str] = {}
        for name, endpoint in relays.items():
            if not name:
                msg = "Relay name cannot be empty"
                raise ValueError(msg)
            _validate_origin(name, endpoint)
            entries[name] = endpoint.rstrip("/")
        self._relays = MappingProxyType(entries)

    @classmethod
    def default(cls) -> "RelayRegistry":
        """Registry seeded from the built-in relay table."""
        return cls(DEFAULT_RELAYS)

    def lookup(self, name: str) -> str:
        """Get the base endpoint of a relay.

        Raises:
            UnknownRelay: If the name is not registered
        """
        try:
            return self._relays[name]
        except KeyError:
            raise UnknownRelay(name) from None

    def names(self) -> list[str]:
        return list(self._relays)

    def subset(self, names: Iterable[str]) -> "RelayRegistry":
        """Registry restricted to the given relay names.

        Raises:
            UnknownRelay: If one of the names is not registered
        """
        return RelayRegistry({name: self.lookup(name) for name in names})

    def __getitem__(self, name: str) -> str:
        return self._relays[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._relays)

    def __len__(self) -> int:
        return len(self._relays)

    def __repr__(self) -> str:
        return f"RelayRegistry({list(self._relays)!r})"


__all__ = ["RelayRegistry"]
