"""Relay query URL encoding."""

from mevboost_relays.relays.constants import ENDPOINTS, OperationKind
from mevboost_relays.relays.models import QueryFilter


def encode_url(
    base_endpoint: str, path: str, query: QueryFilter | None = None
) -> str:
    """Build a fully-qualified query URL.

    Set filter fields are appended as ``key=value`` pairs in the filter's field
    declaration order. Values are inserted verbatim, without URL escaping.

    Args:
        base_endpoint: Relay origin, e.g. ``https://relay.example``
        path: Fixed API path of the operation
        query: Optional filter, unset fields are omitted

    Returns:
        str: URL with the query string, or without one when no field is set

    Example:
        >>> encode_url(
        ...     "https://relay.example",
        ...     "/relay/v1/data/bidtraces/proposer_payload_delivered",
        ...     PayloadDeliveredQuery(limit=10, slot=5),
        ... )
        'https://relay.example/relay/v1/data/bidtraces/proposer_payload_delivered?slot=5&limit=10'
    """
    url = f"{base_endpoint}{path}"
    params = query.query_params() if query is not None else []
    if not params:
        return url
    return url + "?" + "&".join(f"{key}={value}" for key, value in params)


def operation_url(
    base_endpoint: str, kind: OperationKind, query: QueryFilter | None = None
) -> str:
    """Build the query URL of an operation against one relay."""
    return encode_url(base_endpoint, ENDPOINTS[kind], query)


__all__ = ["encode_url", "operation_url"]
