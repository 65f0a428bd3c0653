# PATH: tests/conftest.py
"""
Pytest configuration and shared fixtures for flash-arb tests.
"""

import sys
from dataclasses import replace
from decimal import Decimal
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from core.constants import DEX_VENUE_TYPE, DexId, PricingKind  # noqa: E402
from core.models import ArbOpportunity, CandidatePool, TokenMeta  # noqa: E402
from strategy.config import ArbConfig, LendableAsset, VenueConfig  # noqa: E402


def pytest_configure(config):
    """Configure pytest."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )


USDC = TokenMeta(address="0xaf88d065e77c8cc2239327c5edb3a432268e5831", symbol="USDC", decimals=6)
WETH = TokenMeta(address="0x82af49447d8a07e3bd95bd0d56f35241523fbab1", symbol="WETH", decimals=18)
ARB = TokenMeta(address="0x912ce59144191c1204e64559fe8253a0e49e6548", symbol="ARB", decimals=18)

VENUES = {
    DexId.UNISWAP_V3: VenueConfig(
        dex=DexId.UNISWAP_V3,
        router="0xe592427a0aece92de3edee1f18e0157c05861564",
        quoter="0x61ffe014ba17989e743c5f6cb21bf9697530b21e",
        factory="0x1f98431c8ad98523631ae4a59f267346ea31f984",
        pool_limit=80,
    ),
    DexId.PANCAKE_V3: VenueConfig(
        dex=DexId.PANCAKE_V3,
        router="0x32226588378236fd0c7c4053999f88ac0e5cac77",
        quoter="0xb048bbc1ee6b733fffcfb9e9cef7375518e25997",
        factory="0x0bfbcf9fa4f9c56b0f40a671ad40e0805a091865",
        pool_limit=30,
    ),
    DexId.CAMELOT_V3: VenueConfig(
        dex=DexId.CAMELOT_V3,
        router="0xc873fecbd354f5a56e00e710b90ef4201db2448d",
        quoter="0x0524e833ccd057e4d7a296e3aaab9f7675964ce1",
        factory="0x1a3c9b1d2f0529d97f2afc5136cc23e58f1fd35b",
        pool_limit=40,
    ),
    DexId.BALANCER: VenueConfig(
        dex=DexId.BALANCER,
        router="0xba12222222228d8ba445958a75a0704d566bf2c8",
        quoter="0xba12222222228d8ba445958a75a0704d566bf2c8",
        factory=None,
        pool_limit=20,
    ),
}


@pytest.fixture
def tokens():
    """Sample tokens: USDC (6 dec), WETH and ARB (18 dec)."""
    return {"USDC": USDC, "WETH": WETH, "ARB": ARB}


@pytest.fixture
def make_config():
    """Factory for an enabled dry-run config with USDC/WETH lendable."""
    def _make(**overrides) -> ArbConfig:
        values = dict(
            enabled=True,
            dry_run=True,
            rpc_urls=["https://rpc.test"],
            venues={dex: replace(venue) for dex, venue in VENUES.items()},
            lendable_assets={
                USDC.address: LendableAsset("USDC", USDC.address, PricingKind.STABLE),
                WETH.address: LendableAsset("WETH", WETH.address, PricingKind.NATIVE),
            },
            reporting_asset=USDC.address,
            max_flash_usd=Decimal("50000"),
            min_profit_usd=Decimal("2"),
            gas_units=800_000,
        )
        values.update(overrides)
        return ArbConfig(**values)
    return _make


@pytest.fixture
def make_pool():
    """Factory for CandidatePool with sensible defaults."""
    counter = {"n": 0}

    def _make(
        dex: DexId = DexId.UNISWAP_V3,
        token0: TokenMeta = ARB,
        token1: TokenMeta = USDC,
        fee_tier: int = 500,
        tvl_usd: Decimal = Decimal("1000000"),
        flash_amount_usd: Decimal = Decimal("1000"),
        pool_address: str | None = None,
    ) -> CandidatePool:
        counter["n"] += 1
        venue = VENUES[dex]
        return CandidatePool(
            pool_address=pool_address or "0x" + f"{counter['n']:040x}",
            dex=dex,
            venue_type=DEX_VENUE_TYPE[dex],
            router=venue.router,
            quoter=venue.quoter,
            token0=token0,
            token1=token1,
            fee_tier=fee_tier,
            tvl_usd=tvl_usd,
            flash_amount_usd=flash_amount_usd,
        )
    return _make


@pytest.fixture
def make_opportunity(make_pool):
    """Factory for the 1000 USDC -> ARB -> 1025 USDC opportunity (net 22.5)."""
    def _make(detected_at_ms: int = 1_700_000_000_000, **overrides) -> ArbOpportunity:
        buy = make_pool(DexId.UNISWAP_V3)
        sell = make_pool(DexId.CAMELOT_V3, fee_tier=0)
        values = dict(
            pair_key=buy.pair_key,
            display_pair="USDC/ARB",
            flash_loan_asset=USDC,
            flash_amount_raw=1000 * 10**6,
            flash_amount_usd=Decimal("1000"),
            loan_asset_price_usd=Decimal("1"),
            buy_pool=buy,
            sell_pool=sell,
            token_out=ARB,
            buy_amount_out=1010 * 10**18,
            sell_amount_out=1025 * 10**6,
            expected_gross_usd=Decimal("25"),
            flash_fee_usd=Decimal("0.5"),
            gas_estimate_usd=Decimal("2"),
            net_profit_usd=Decimal("22.5"),
            native_price_usd=Decimal("2500"),
            detected_at_ms=detected_at_ms,
        )
        values.update(overrides)
        return ArbOpportunity(**values)
    return _make


@pytest.fixture
def mock_provider():
    """RPC provider double with every async method mocked."""
    provider = MagicMock()
    provider.eth_call = AsyncMock()
    provider.get_gas_price = AsyncMock(return_value=(10**9, 10))
    provider.get_transaction_count = AsyncMock(return_value=7)
    provider.send_raw_transaction = AsyncMock(return_value="0x" + "ab" * 32)
    provider.wait_for_receipt = AsyncMock()
    provider.close = AsyncMock()
    provider.get_stats_summary = MagicMock(return_value={})
    return provider
