"""Configuration management and environment variable utilities."""

import json
import os

from dotenv import load_dotenv

from mevboost_relays.helpers.constants import DEFAULT_CONCURRENCY, DEFAULT_TIMEOUT
from mevboost_relays.relays.registry import RelayRegistry


# Load environment variables from .env file
load_dotenv()


def get_optional_env(key: str, default: str | None = None) -> str | None:
    """Get an optional environment variable with a default value.

    Args:
        key: Environment variable name
        default: Default value if not set

    Returns:
        Environment variable value or default
    """
    return os.getenv(key, default)


def get_relay_registry(relays_json: str | None = None) -> RelayRegistry:
    """Get the relay registry from a JSON mapping or the environment.

    The mapping fully replaces the built-in relay table. Without one, the
    built-in table is used.

    Args:
        relays_json: Optional JSON object of relay name to endpoint, read from
            MEVBOOST_RELAYS when omitted

    Returns:
        RelayRegistry: Registry to hand to the client

    Raises:
        ValueError: If the JSON is malformed, not an object, or holds an invalid endpoint

    Example:
        ```python
        from mevboost_relays.helpers.config import get_relay_registry

        relays = get_relay_registry('{"flashbots": "https://boost-relay.flashbots.net"}')
        ```
    """
    if relays_json is None:
        relays_json = get_optional_env("MEVBOOST_RELAYS")
    if not relays_json:
        return RelayRegistry.default()

    try:
        relays = json.loads(relays_json)
    except json.JSONDecodeError as e:
        msg = f"MEVBOOST_RELAYS is not valid JSON: {e}"
        raise ValueError(msg) from e

    if not isinstance(relays, dict) or not all(
        isinstance(endpoint, str) for endpoint in relays.values()
    ):
        msg = "MEVBOOST_RELAYS must be a JSON object of relay name to endpoint"
        raise ValueError(msg)

    return RelayRegistry(relays)


def get_relay_timeout(timeout: float | None = None) -> float:
    """Get the relay request timeout from parameter or RELAY_TIMEOUT.

    Raises:
        ValueError: If the timeout is not a positive number
    """
    if timeout is None:
        timeout = float(get_optional_env("RELAY_TIMEOUT", str(DEFAULT_TIMEOUT)))
    if timeout <= 0:
        msg = f"Relay timeout must be positive, got {timeout}"
        raise ValueError(msg)
    return timeout


def get_relay_concurrency(concurrency: int | None = None) -> int:
    """Get the number of relays queried in parallel from parameter or RELAY_CONCURRENCY.

    Raises:
        ValueError: If the value is lower than 1
    """
    if concurrency is None:
        concurrency = int(get_optional_env("RELAY_CONCURRENCY", str(DEFAULT_CONCURRENCY)))
    if concurrency < 1:
        msg = f"Relay concurrency must be at least 1, got {concurrency}"
        raise ValueError(msg)
    return concurrency


__all__ = [
    "get_optional_env",
    "get_relay_concurrency",
    "get_relay_registry",
    "get_relay_timeout",
]
