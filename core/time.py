# PATH: core/time.py
"""
Time utilities.

Opportunity freshness and profit-ledger windows are tracked in Unix
milliseconds.
"""

import time


def now_ms() -> int:
    """Get current Unix timestamp in milliseconds."""
    return int(time.time() * 1000)


def age_ms(timestamp_ms: int, current_ms: int | None = None) -> int:
    """Milliseconds elapsed since timestamp_ms."""
    return (current_ms if current_ms is not None else now_ms()) - timestamp_ms
