"""
tests/unit/test_registry.py - Pool registry tests.

Covers eligibility filtering, per-venue top-N, enrichment drop reasons,
the refresh TTL and failure fallback.
"""

from decimal import Decimal

import pytest
from unittest.mock import AsyncMock, MagicMock

from eth_abi import encode
from eth_utils import to_hex

from chains.abi import ALGEBRA_POOL_BY_PAIR, UNISWAP_V3_GET_POOL
from core.constants import DexId, ErrorCode, VenueType, ZERO_ADDRESS
from core.exceptions import IndexUnavailableError, RPCError
from discovery.pool_index import IndexEntry
from discovery.registry import PoolRegistry, flash_amount_usd

GET_POOL = to_hex(UNISWAP_V3_GET_POOL.selector)
POOL_BY_PAIR = to_hex(ALGEBRA_POOL_BY_PAIR.selector)


def entry(tokens, project="uniswap-v3", tvl=1_000_000, pool_meta="0.05%", chain="Arbitrum", pair=("WETH", "USDC")):
    return IndexEntry(
        index_id=f"{project}-{tvl}",
        chain=chain,
        project=project,
        symbol="-".join(pair),
        tvl_usd=Decimal(tvl),
        pool_meta=pool_meta,
        underlying_tokens=[tokens[t].address for t in pair],
    )


def pool_address_for(data: str) -> str:
    # Deterministic fake address per factory call
    return "0x" + data[-40:].rjust(40, "0")


class FakeClock:
    def __init__(self, start: int = 1_700_000_000_000):
        self.now = start

    def __call__(self) -> int:
        return self.now


class TestFlashSizing:

    def test_fraction_of_tvl(self):
        assert flash_amount_usd(Decimal("100000"), Decimal("0.05"), Decimal("50000")) == Decimal("5000")

    def test_capped(self):
        assert flash_amount_usd(Decimal("10000000"), Decimal("0.05"), Decimal("50000")) == Decimal("50000")


class TestPoolRegistry:

    @pytest.fixture
    def provider(self):
        provider = MagicMock()

        async def eth_call(to, data):
            return MagicMock(result=to_hex(encode(["address"], [pool_address_for(data)])), latency_ms=5)

        provider.eth_call = AsyncMock(side_effect=eth_call)
        return provider

    @pytest.fixture
    def token_cache(self, tokens):
        by_address = {t.address: t for t in tokens.values()}
        cache = MagicMock()
        cache.resolve = AsyncMock(side_effect=lambda address: by_address.get(address.lower()))
        return cache

    @pytest.fixture
    def index_client(self):
        client = MagicMock()
        client.fetch = AsyncMock(return_value=[])
        return client

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def registry(self, make_config, provider, index_client, token_cache, clock):
        config = make_config(min_pool_tvl_usd=Decimal("100000"), min_flash_usd=Decimal("1000"))
        return PoolRegistry(config, provider, index_client, token_cache, clock=clock)

    @pytest.mark.asyncio
    async def test_builds_candidate_pools(self, registry, index_client, tokens):
        index_client.fetch.return_value = [
            entry(tokens, "uniswap-v3", tvl=2_000_000, pool_meta="0.05%"),
            entry(tokens, "camelot-v3", tvl=500_000, pool_meta=None),
        ]

        pools = await registry.refresh()

        assert len(pools) == 2
        uni = next(p for p in pools if p.dex == DexId.UNISWAP_V3)
        camelot = next(p for p in pools if p.dex == DexId.CAMELOT_V3)
        assert uni.fee_tier == 500
        assert uni.venue_type == VenueType.UNISWAP_V3
        assert uni.flash_amount_usd == Decimal("50000")
        assert camelot.fee_tier == 0
        assert camelot.venue_type == VenueType.ALGEBRA
        assert camelot.flash_amount_usd == Decimal("25000")
        assert uni.pair_key == camelot.pair_key
        assert uni.token0.symbol == "WETH"

    @pytest.mark.asyncio
    async def test_factory_lookup_per_venue(self, registry, index_client, provider, tokens):
        index_client.fetch.return_value = [
            entry(tokens, "uniswap-v3"),
            entry(tokens, "camelot-v3"),
        ]

        await registry.refresh()

        calls = {c.args[0]: c.args[1] for c in provider.eth_call.call_args_list}
        assert calls[registry.config.venues[DexId.UNISWAP_V3].factory].startswith(GET_POOL)
        assert calls[registry.config.venues[DexId.CAMELOT_V3].factory].startswith(POOL_BY_PAIR)

    @pytest.mark.asyncio
    async def test_eligibility_filter(self, registry, index_client, tokens):
        three_tokens = entry(tokens, "uniswap-v3")
        three_tokens.underlying_tokens.append(tokens["ARB"].address)
        index_client.fetch.return_value = [
            entry(tokens, "uniswap-v3", chain="Ethereum"),
            entry(tokens, "uniswap-v3", tvl=99_999),
            entry(tokens, "sushiswap"),
            three_tokens,
            entry(tokens, "uniswap-v3", tvl=100_000),
        ]

        pools = await registry.refresh()

        assert len(pools) == 1
        assert registry.last_refresh_stats.filtered == 1

    @pytest.mark.asyncio
    async def test_top_n_per_venue(self, registry, index_client, tokens):
        registry.config.venues[DexId.UNISWAP_V3].pool_limit = 2
        index_client.fetch.return_value = [
            entry(tokens, "uniswap-v3", tvl=tvl) for tvl in (300_000, 900_000, 600_000)
        ] + [entry(tokens, "camelot-v3", tvl=200_000)]

        pools = await registry.refresh()

        uni_tvls = sorted(p.tvl_usd for p in pools if p.dex == DexId.UNISWAP_V3)
        assert uni_tvls == [Decimal(600_000), Decimal(900_000)]
        # The smaller venue is not crowded out
        assert any(p.dex == DexId.CAMELOT_V3 for p in pools)

    @pytest.mark.asyncio
    async def test_vault_pools_skipped_and_counted(self, registry, index_client, tokens):
        index_client.fetch.return_value = [entry(tokens, "balancer-v2"), entry(tokens, "uniswap-v3")]

        pools = await registry.refresh()

        assert [p.dex for p in pools] == [DexId.UNISWAP_V3]
        assert registry.last_refresh_stats.skipped_vault_pools == 1

    @pytest.mark.asyncio
    async def test_unknown_fee_tier_dropped(self, registry, index_client, tokens):
        index_client.fetch.return_value = [entry(tokens, "uniswap-v3", pool_meta=None)]

        pools = await registry.refresh()

        assert pools == []
        assert registry.last_refresh_stats.dropped == {ErrorCode.FEE_TIER_UNKNOWN.value: 1}

    @pytest.mark.asyncio
    async def test_zero_address_dropped(self, registry, index_client, provider, tokens):
        provider.eth_call.side_effect = None
        provider.eth_call.return_value = MagicMock(result=to_hex(encode(["address"], [ZERO_ADDRESS])), latency_ms=5)
        index_client.fetch.return_value = [entry(tokens, "uniswap-v3")]

        assert await registry.refresh() == []
        assert registry.last_refresh_stats.dropped == {ErrorCode.POOL_NOT_FOUND.value: 1}

    @pytest.mark.asyncio
    async def test_unresolvable_token_dropped(self, registry, index_client, token_cache, tokens):
        token_cache.resolve.side_effect = lambda address: None
        index_client.fetch.return_value = [entry(tokens, "uniswap-v3")]

        assert await registry.refresh() == []
        assert registry.last_refresh_stats.dropped == {ErrorCode.TOKEN_METADATA_UNAVAILABLE.value: 1}

    @pytest.mark.asyncio
    async def test_small_flash_size_dropped(self, registry, index_client, tokens):
        registry.config.min_flash_usd = Decimal("10000")
        # 150k * 0.05 = 7.5k < 10k
        index_client.fetch.return_value = [entry(tokens, "uniswap-v3", tvl=150_000)]

        assert await registry.refresh() == []
        assert registry.last_refresh_stats.dropped == {ErrorCode.FLASH_SIZE_TOO_SMALL.value: 1}

    @pytest.mark.asyncio
    async def test_ttl_serves_cached_list(self, registry, index_client, clock, tokens):
        index_client.fetch.return_value = [entry(tokens, "uniswap-v3")]

        await registry.refresh()
        await registry.refresh()
        assert index_client.fetch.await_count == 1

        await registry.refresh(force=True)
        assert index_client.fetch.await_count == 2

        clock.now += registry.config.pool_refresh_ms
        await registry.refresh()
        assert index_client.fetch.await_count == 3

    @pytest.mark.asyncio
    async def test_index_failure_keeps_previous_list(self, registry, index_client, clock, tokens):
        index_client.fetch.return_value = [entry(tokens, "uniswap-v3")]
        first = await registry.refresh()
        refreshed_at = registry.refreshed_at_ms

        index_client.fetch.side_effect = IndexUnavailableError("index down")
        clock.now += registry.config.pool_refresh_ms + 1
        pools = await registry.refresh()

        assert pools == first
        assert registry.refreshed_at_ms == refreshed_at

    @pytest.mark.asyncio
    async def test_enrichment_outage_keeps_previous_list(self, registry, index_client, provider, clock, tokens):
        index_client.fetch.return_value = [entry(tokens, "uniswap-v3")]
        first = await registry.refresh()
        refreshed_at = registry.refreshed_at_ms
        assert len(first) == 1

        provider.eth_call.side_effect = RPCError("all endpoints down")
        clock.now += registry.config.pool_refresh_ms + 1
        pools = await registry.refresh()

        assert pools == first
        assert registry.pools == first
        assert registry.refreshed_at_ms == refreshed_at
        assert registry.last_refresh_stats.dropped == {ErrorCode.INFRA_RPC_ERROR.value: 1}

    @pytest.mark.asyncio
    async def test_enrichment_outage_without_cache_is_empty(self, registry, index_client, provider, tokens):
        index_client.fetch.return_value = [entry(tokens, "uniswap-v3")]
        provider.eth_call.side_effect = RPCError("all endpoints down")

        assert await registry.refresh() == []
        assert registry.refreshed_at_ms is not None

    @pytest.mark.asyncio
    async def test_non_finite_tvl_row_skipped(self, registry, index_client, tokens):
        bad = entry(tokens, "camelot-v3")
        bad.tvl_usd = Decimal("NaN")
        index_client.fetch.return_value = [bad, entry(tokens, "uniswap-v3")]

        pools = await registry.refresh()

        assert [p.dex for p in pools] == [DexId.UNISWAP_V3]
        assert registry.last_refresh_stats.filtered == 1

    @pytest.mark.asyncio
    async def test_summary(self, registry, index_client, tokens):
        index_client.fetch.return_value = [entry(tokens, "uniswap-v3"), entry(tokens, "camelot-v3")]
        await registry.refresh()

        summary = registry.get_summary()

        assert summary["pool_count"] == 2
        assert summary["pairs"] == 1
        assert summary["last_refresh"]["per_venue"] == {"uniswap_v3": 1, "camelot_v3": 1}
