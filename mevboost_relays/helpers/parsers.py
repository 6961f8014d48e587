"""Parsing utilities for relay field encodings."""

from datetime import UTC, datetime, timedelta
import re

from typing import Any

_UINT_PATTERN = re.compile(r"[0-9]+")


def parse_uint(value: Any) -> int:
    """Parse an unsigned integer sent either as a JSON number or a decimal string.

    Args:
        value: Raw field value from a relay response

    Returns:
        int: Parsed non-negative integer

    Raises:
        ValueError: If the value is not a valid unsigned integer

    Example:
        >>> parse_uint("123")
        123
        >>> parse_uint(42)
        42
    """
    if isinstance(value, bool):
        msg = f"expected an unsigned integer, got {value!r}"
        raise ValueError(msg)
    if isinstance(value, int):
        if value < 0:
            msg = f"expected an unsigned integer, got {value}"
            raise ValueError(msg)
        return value
    if isinstance(value, str) and _UINT_PATTERN.fullmatch(value):
        return int(value)
    msg = f"expected an unsigned integer, got {value!r}"
    raise ValueError(msg)


def parse_decimal_string(value: Any) -> str:
    """Validate a wei amount kept as its decimal string.

    Example:
        >>> parse_decimal_string(1000)
        '1000'
    """
    return str(parse_uint(value))


def parse_unix_seconds(value: Any) -> datetime:
    """Parse seconds since the Unix epoch into a UTC datetime.

    Example:
        >>> parse_unix_seconds("1690000000")
        datetime.datetime(2023, 7, 22, 4, 26, 40, tzinfo=datetime.timezone.utc)
    """
    if isinstance(value, datetime):
        return value
    seconds = parse_uint(value)
    try:
        return datetime.fromtimestamp(seconds, tz=UTC)
    except (OverflowError, OSError) as e:
        msg = f"timestamp out of range: {seconds}"
        raise ValueError(msg) from e


def ms_to_datetime(timestamp_ms: int) -> datetime:
    """Convert a millisecond Unix timestamp to a UTC datetime.

    Raises:
        ValueError: If the timestamp is outside the supported date range
    """
    seconds, millis = divmod(timestamp_ms, 1000)
    try:
        return datetime.fromtimestamp(seconds, tz=UTC) + timedelta(milliseconds=millis)
    except (OverflowError, OSError) as e:
        msg = f"timestamp out of range: {timestamp_ms}"
        raise ValueError(msg) from e


def parse_unix_millis(value: Any) -> int:
    """Parse a millisecond Unix timestamp, keeping it as an integer.

    Raises:
        ValueError: If the value is not an unsigned integer or is out of range
    """
    timestamp_ms = parse_uint(value)
    ms_to_datetime(timestamp_ms)
    return timestamp_ms


def wei_to_eth(wei: int | str | None) -> float | None:
    """Convert Wei to ETH (divide by 1e18).

    Args:
        wei: Amount in Wei as an int or decimal string, or None

    Returns:
        float | None: Amount in ETH, or None if input was None

    Example:
        >>> wei_to_eth("1000000000000000000")
        1.0
        >>> wei_to_eth(None)
        None
    """
    return int(wei) / 1e18 if wei is not None else None


__all__ = [
    "ms_to_datetime",
    "parse_decimal_string",
    "parse_uint",
    "parse_unix_millis",
    "parse_unix_seconds",
    "wei_to_eth",
]
