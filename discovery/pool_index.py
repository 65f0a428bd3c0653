"""
discovery/pool_index.py - External pool index client (DeFiLlama yields).

The index ranks pools by TVL across chains. Its `pool` field is an opaque
id, not an on-chain address; addresses are resolved from factories during
enrichment (see discovery/registry.py).

Payload shape:
  {"status": "success", "data": [{"chain", "project", "symbol", "tvlUsd",
                                   "pool", "poolMeta", "underlyingTokens"}]}
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

import httpx

from core.exceptions import IndexUnavailableError
from core.logging import get_logger
from core.math import safe_decimal

logger = get_logger(__name__)


@dataclass
class IndexEntry:
    """One pool as reported by the index."""
    index_id: str
    chain: str
    project: str
    symbol: str
    tvl_usd: Decimal
    pool_meta: str | None = None
    underlying_tokens: list[str] = field(default_factory=list)

    @classmethod
    def from_payload(cls, item: dict[str, Any]) -> "IndexEntry":
        tokens = item.get("underlyingTokens") or []
        meta = item.get("poolMeta")
        return cls(
            index_id=str(item.get("pool", "")),
            chain=str(item.get("chain", "")),
            project=str(item.get("project", "")),
            symbol=str(item.get("symbol", "")),
            tvl_usd=safe_decimal(item.get("tvlUsd")),
            pool_meta=meta if isinstance(meta, str) else None,
            underlying_tokens=[str(t).lower() for t in tokens if t] if isinstance(tokens, list) else [],
        )


class PoolIndexClient:
    """
    Fetches the ranked pool list over HTTP.

    Usage:
        client = PoolIndexClient("https://yields.llama.fi/pools")
        entries = await client.fetch()
    """

    def __init__(
        self,
        url: str,
        timeout_seconds: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.url = url
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    async def fetch(self) -> list[IndexEntry]:
        """
        Fetch and parse all index entries.

        Raises:
            IndexUnavailableError: On transport failure, non-2xx or malformed payload
        """
        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout_seconds),
                transport=self._transport,
            ) as client:
                resp = await client.get(self.url)
                resp.raise_for_status()
                body = resp.json()
        except httpx.HTTPStatusError as e:
            raise IndexUnavailableError(
                f"Pool index returned HTTP {e.response.status_code}",
                details={"url": self.url, "status": e.response.status_code},
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise IndexUnavailableError(
                f"Pool index unreachable: {e}",
                details={"url": self.url, "error_type": type(e).__name__},
            ) from e

        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, list):
            raise IndexUnavailableError(
                "Pool index payload has no data list",
                details={"url": self.url},
            )

        entries = []
        skipped = 0
        for item in data:
            if not isinstance(item, dict):
                skipped += 1
                continue
            try:
                entries.append(IndexEntry.from_payload(item))
            except (TypeError, ValueError, ArithmeticError):
                skipped += 1

        if skipped:
            logger.warning(
                "Skipped malformed pool index rows",
                extra={"context": {"skipped": skipped, "entries": len(entries)}},
            )

        logger.debug(
            "Pool index fetched",
            extra={"context": {"entries": len(entries)}},
        )
        return entries
