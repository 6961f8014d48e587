"""Common configuration constants used across the application."""

# HTTP and Network Constants
DEFAULT_TIMEOUT = 30.0
"""Default HTTP request timeout in seconds"""

CONNECTION_TIMEOUT = 3.0
"""Timeout for establishing connections"""

STANDARD_HEADERS = {
    "content-type": "application/json",
    "accept": "application/json",
}
"""Headers sent with every relay request"""

# Concurrency Limits
DEFAULT_CONCURRENCY = 5
"""Default number of relays queried in parallel"""

# HTTP Connection Pooling
MAX_KEEPALIVE_CONNECTIONS = 5
"""Maximum number of keepalive connections in pool"""

MAX_CONNECTIONS = 10
"""Maximum total number of connections"""

# Slot Constants
SLOTS_PER_EPOCH = 32
"""Number of slots in one epoch"""

VALIDATOR_WINDOW_SLOTS = 2 * SLOTS_PER_EPOCH
"""Slots covered by the current and next epoch"""


__all__ = [
    "CONNECTION_TIMEOUT",
    "DEFAULT_CONCURRENCY",
    "DEFAULT_TIMEOUT",
    "MAX_CONNECTIONS",
    "MAX_KEEPALIVE_CONNECTIONS",
    "SLOTS_PER_EPOCH",
    "STANDARD_HEADERS",
    "VALIDATOR_WINDOW_SLOTS",
]
