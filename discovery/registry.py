"""
discovery/registry.py - Index-driven pool registry.

Pipeline:
1. Fetch ranked pools from the external index
2. Filter by chain, supported venue, TVL and two-token shape
3. Keep the top-N per venue (by TVL)
4. Enrich concurrently: fee tier, on-chain pool address, token metadata,
   flash size
5. Swap the cached list atomically

The cached list is served until it is older than pool_refresh_ms. A failed
refresh keeps serving the previous list.
"""

import asyncio
import time
from collections import Counter
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Callable

from chains.abi import ALGEBRA_POOL_BY_PAIR, UNISWAP_V3_GET_POOL
from chains.providers import RPCProvider
from core.constants import (
    DEX_VENUE_TYPE,
    INDEX_PROJECTS,
    ZERO_ADDRESS,
    DexId,
    ErrorCode,
    VenueType,
)
from core.exceptions import ArbError, IndexUnavailableError
from core.logging import get_logger
from core.math import parse_fee_percent
from core.models import CandidatePool
from core.time import now_ms
from discovery.pool_index import IndexEntry, PoolIndexClient
from discovery.tokens import TokenMetadataCache
from strategy.config import ArbConfig

logger = get_logger(__name__)


class PoolDropped(ArbError):
    """Enrichment rejected a pool; code is the drop reason."""


@dataclass
class RefreshStats:
    """Counters from the last completed refresh."""
    index_entries: int = 0
    filtered: int = 0
    selected: int = 0
    enriched: int = 0
    skipped_vault_pools: int = 0
    dropped: dict[str, int] = field(default_factory=dict)
    per_venue: dict[str, int] = field(default_factory=dict)
    duration_ms: int = 0

    def to_dict(self) -> dict:
        return {
            "index_entries": self.index_entries,
            "filtered": self.filtered,
            "selected": self.selected,
            "enriched": self.enriched,
            "skipped_vault_pools": self.skipped_vault_pools,
            "dropped": dict(self.dropped),
            "per_venue": dict(self.per_venue),
            "duration_ms": self.duration_ms,
        }


def flash_amount_usd(tvl_usd: Decimal, fraction: Decimal, max_flash_usd: Decimal) -> Decimal:
    """Loan size for a pool: a fraction of TVL, capped."""
    return min(tvl_usd * fraction, max_flash_usd)


class PoolRegistry:
    """
    Cached candidate pools with a TTL.

    Usage:
        registry = PoolRegistry(config, provider, index_client, token_cache)
        pools = await registry.refresh()
    """

    def __init__(
        self,
        config: ArbConfig,
        provider: RPCProvider,
        index_client: PoolIndexClient,
        token_cache: TokenMetadataCache,
        clock: Callable[[], int] = now_ms,
    ):
        self.config = config
        self.provider = provider
        self.index_client = index_client
        self.token_cache = token_cache
        self._clock = clock

        self._pools: list[CandidatePool] = []
        self._refreshed_at_ms: int | None = None
        self.last_refresh_stats: RefreshStats | None = None

    @property
    def pools(self) -> list[CandidatePool]:
        return self._pools

    @property
    def pool_count(self) -> int:
        return len(self._pools)

    @property
    def refreshed_at_ms(self) -> int | None:
        return self._refreshed_at_ms

    def is_fresh(self) -> bool:
        if self._refreshed_at_ms is None:
            return False
        return self._clock() - self._refreshed_at_ms < self.config.pool_refresh_ms

    async def refresh(self, force: bool = False) -> list[CandidatePool]:
        """
        Return the candidate pools, rebuilding them when stale or forced.

        Never raises for index or enrichment failures; the previous list is
        returned instead.
        """
        if not force and self.is_fresh():
            return self._pools

        start = time.monotonic()
        stats = RefreshStats()

        try:
            entries = await self.index_client.fetch()
        except IndexUnavailableError as e:
            logger.warning(
                "Pool refresh failed, serving cached list",
                extra={"context": {"error": str(e), "cached_pools": len(self._pools)}},
            )
            return self._pools

        stats.index_entries = len(entries)
        eligible = self._filter_eligible(entries)
        stats.filtered = len(eligible)

        selected: list[tuple[DexId, IndexEntry]] = []
        for dex, group in self._top_per_venue(eligible).items():
            if DEX_VENUE_TYPE[dex] == VenueType.BALANCER:
                # Vault pool ids are not derivable from the index payload
                stats.skipped_vault_pools += len(group)
                continue
            selected.extend((dex, e) for e in group)
        stats.selected = len(selected)

        if stats.skipped_vault_pools:
            logger.info(
                "Skipping shared-vault pools (pool id unresolved)",
                extra={"context": {
                    "skipped": stats.skipped_vault_pools,
                    "reason": ErrorCode.VAULT_POOL_UNRESOLVED.value,
                }},
            )

        results = await asyncio.gather(
            *(self._enrich(dex, entry) for dex, entry in selected),
            return_exceptions=True,
        )

        pools: list[CandidatePool] = []
        dropped: Counter = Counter()
        for (dex, entry), result in zip(selected, results):
            if isinstance(result, CandidatePool):
                pools.append(result)
            elif isinstance(result, ArbError):
                dropped[result.code.value] += 1
                logger.debug(
                    "Pool dropped",
                    extra={"context": {"dex": dex.value, "symbol": entry.symbol, "reason": str(result)}},
                )
            elif isinstance(result, Exception):
                dropped[ErrorCode.UNKNOWN.value] += 1
                logger.debug(
                    "Pool enrichment error",
                    extra={"context": {"dex": dex.value, "symbol": entry.symbol, "error": repr(result)}},
                )
            else:
                # BaseException (e.g. CancelledError) must not be swallowed
                raise result

        stats.enriched = len(pools)
        stats.dropped = dict(dropped)
        stats.per_venue = dict(Counter(p.dex.value for p in pools))
        stats.duration_ms = int((time.monotonic() - start) * 1000)

        if not pools and selected and self._pools:
            # Every enrichment failed; keep the previous list and its age
            self.last_refresh_stats = stats
            logger.warning(
                "Pool enrichment produced no pools, serving cached list",
                extra={"context": {"cached_pools": len(self._pools), **stats.to_dict()}},
            )
            return self._pools

        # Single assignment: readers see either the old or the new list
        self._pools = pools
        self._refreshed_at_ms = self._clock()
        self.last_refresh_stats = stats

        logger.info(
            "Pool list ready",
            extra={"context": {
                "pools": len(pools),
                "venues": len(stats.per_venue),
                **stats.to_dict(),
            }},
        )
        return self._pools

    def _filter_eligible(self, entries: list[IndexEntry]) -> list[IndexEntry]:
        eligible = []
        for entry in entries:
            try:
                if self._is_eligible(entry):
                    eligible.append(entry)
            except (ArithmeticError, TypeError, ValueError) as e:
                logger.warning(
                    "Malformed index entry skipped",
                    extra={"context": {"index_id": entry.index_id, "error": repr(e)}},
                )
        return eligible

    def _is_eligible(self, entry: IndexEntry) -> bool:
        dex = INDEX_PROJECTS.get(entry.project)
        return (
            entry.chain == self.config.index_chain
            and dex is not None
            and dex in self.config.venues
            and entry.tvl_usd >= self.config.min_pool_tvl_usd
            and len(entry.underlying_tokens) == 2
        )

    def _top_per_venue(self, entries: list[IndexEntry]) -> dict[DexId, list[IndexEntry]]:
        """Top-N by TVL per venue, so small venues are not crowded out."""
        by_venue: dict[DexId, list[IndexEntry]] = {}
        for entry in entries:
            by_venue.setdefault(INDEX_PROJECTS[entry.project], []).append(entry)

        top = {}
        for dex, group in by_venue.items():
            group.sort(key=lambda e: e.tvl_usd, reverse=True)
            top[dex] = group[: self.config.venue_pool_limit(dex)]
        return top

    async def _enrich(self, dex: DexId, entry: IndexEntry) -> CandidatePool:
        """
        Build a CandidatePool from an index entry.

        Raises:
            PoolDropped: With the drop reason as code
            ArbError: RPC failures while resolving the pool address
        """
        venue = self.config.venues[dex]
        venue_type = DEX_VENUE_TYPE[dex]
        token0_addr, token1_addr = entry.underlying_tokens

        flash_usd = flash_amount_usd(entry.tvl_usd, self.config.flash_fraction, self.config.max_flash_usd)
        if flash_usd < self.config.min_flash_usd:
            raise PoolDropped(
                f"flash size {flash_usd} below floor",
                code=ErrorCode.FLASH_SIZE_TOO_SMALL,
            )

        if venue_type == VenueType.UNISWAP_V3:
            fee_tier = parse_fee_percent(entry.pool_meta)
            if fee_tier == 0:
                raise PoolDropped(
                    f"no fee tier in poolMeta {entry.pool_meta!r}",
                    code=ErrorCode.FEE_TIER_UNKNOWN,
                )
            lookup = UNISWAP_V3_GET_POOL
            call_data = lookup.encode_call(token0_addr, token1_addr, fee_tier)
        else:
            # Algebra: dynamic fee, resolved by the pool itself
            fee_tier = 0
            lookup = ALGEBRA_POOL_BY_PAIR
            call_data = lookup.encode_call(token0_addr, token1_addr)

        if not venue.factory:
            raise PoolDropped(f"no factory configured for {dex.value}", code=ErrorCode.POOL_NOT_FOUND)

        pool_resp, token0, token1 = await asyncio.gather(
            self.provider.eth_call(venue.factory, call_data),
            self.token_cache.resolve(token0_addr),
            self.token_cache.resolve(token1_addr),
        )

        (pool_address,) = lookup.decode_result(pool_resp.result)
        pool_address = pool_address.lower()
        if pool_address == ZERO_ADDRESS:
            raise PoolDropped("factory returned zero address", code=ErrorCode.POOL_NOT_FOUND)

        if token0 is None or token1 is None:
            raise PoolDropped(
                "token metadata unavailable",
                code=ErrorCode.TOKEN_METADATA_UNAVAILABLE,
            )

        return CandidatePool(
            pool_address=pool_address,
            dex=dex,
            venue_type=venue_type,
            router=venue.router,
            quoter=venue.quoter,
            token0=token0,
            token1=token1,
            fee_tier=fee_tier,
            tvl_usd=entry.tvl_usd,
            flash_amount_usd=flash_usd,
        )

    def get_summary(self) -> dict:
        """Registry summary for status output."""
        return {
            "pool_count": self.pool_count,
            "refreshed_at_ms": self._refreshed_at_ms,
            "pairs": len({p.pair_key for p in self._pools}),
            "last_refresh": self.last_refresh_stats.to_dict() if self.last_refresh_stats else None,
        }
