"""
monitoring/profit_ledger.py - Rolling realized-profit ledger.

In-memory only: a restart starts from zero unless a collaborator seeds
it through hydrate().

Window semantics:
- last_24h(now) sums entries with timestamp >= now - 24h (inclusive)
- record() prunes entries older than the 48h retention window
- pruning filters by timestamp; entries need not arrive in order
"""

import time
from decimal import Decimal
from typing import Callable, Iterable

from core.constants import (
    PROFIT_HYDRATE_DEDUPE_SECONDS,
    PROFIT_REPORT_WINDOW_SECONDS,
    PROFIT_RETENTION_SECONDS,
)
from core.logging import get_logger
from core.models import ProfitLogEntry

logger = get_logger(__name__)


class ProfitLedger:
    """Realized profit samples with a 24h rolling sum."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._entries: list[ProfitLogEntry] = []
        self._hydrated = False

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> list[ProfitLogEntry]:
        return list(self._entries)

    def record(self, amount: Decimal, timestamp: float | None = None) -> ProfitLogEntry:
        """Append a sample and prune expired ones."""
        entry = ProfitLogEntry(
            timestamp=self._clock() if timestamp is None else timestamp,
            profit_usd=Decimal(amount),
        )
        self._entries.append(entry)
        self._prune()
        return entry

    def last_24h(self, now: float | None = None) -> Decimal:
        """Sum of samples in the last 24h. Does not mutate the ledger."""
        current = self._clock() if now is None else now
        cutoff = current - PROFIT_REPORT_WINDOW_SECONDS
        return sum(
            (e.profit_usd for e in self._entries if e.timestamp >= cutoff),
            Decimal("0"),
        )

    def hydrate(self, samples: Iterable[tuple[float, Decimal]]) -> int:
        """
        Seed the ledger from previously realized profits.

        Runs at most once per instance. Non-positive amounts are ignored and
        a sample less than 5s from any existing entry is treated as a
        duplicate of it, whatever its amount.

        Returns:
            Number of samples added
        """
        if self._hydrated:
            return 0
        self._hydrated = True

        added = 0
        for timestamp, amount in samples:
            amount = Decimal(amount)
            if amount <= 0:
                continue
            duplicate = any(
                abs(e.timestamp - timestamp) < PROFIT_HYDRATE_DEDUPE_SECONDS
                for e in self._entries
            )
            if duplicate:
                continue
            self._entries.append(ProfitLogEntry(timestamp=timestamp, profit_usd=amount))
            added += 1

        self._prune()
        logger.info(
            "Profit ledger hydrated",
            extra={"context": {"added": added, "entries": len(self._entries)}},
        )
        return added

    def _prune(self) -> None:
        cutoff = self._clock() - PROFIT_RETENTION_SECONDS
        self._entries = [e for e in self._entries if e.timestamp >= cutoff]
