"""
tests/unit/test_balancer_adapter.py - Vault adapter unit tests.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from eth_abi import decode, encode
from eth_utils import to_bytes, to_hex

from core.constants import DEX_VENUE_TYPE, DexId, ErrorCode
from core.exceptions import QuoteError, RPCError
from core.models import CandidatePool
from dex.adapters.balancer import BalancerAdapter, amount_out_from_deltas, encode_query_batch_swap

POOL_ID = "0x" + "64541216bafffeec8ea535bb71fbc927831d0595000100000000000000000002"
VAULT = "0xba12222222228d8ba445958a75a0704d566bf2c8"


@pytest.fixture
def vault_pool(tokens):
    return CandidatePool(
        pool_address="0x64541216bafffeec8ea535bb71fbc927831d0595",
        dex=DexId.BALANCER,
        venue_type=DEX_VENUE_TYPE[DexId.BALANCER],
        router=VAULT,
        quoter=VAULT,
        token0=tokens["WETH"],
        token1=tokens["USDC"],
        fee_tier=0,
        tvl_usd=0,
        flash_amount_usd=0,
        pool_id=POOL_ID,
    )


class TestDeltas:

    def test_negative_out_delta_is_amount(self):
        assert amount_out_from_deltas([10**18, -2500 * 10**6]) == 2500 * 10**6

    def test_non_negative_out_delta_is_empty(self):
        with pytest.raises(QuoteError) as exc_info:
            amount_out_from_deltas([10**18, 0])
        assert exc_info.value.code == ErrorCode.QUOTE_EMPTY

    def test_short_deltas(self):
        with pytest.raises(QuoteError) as exc_info:
            amount_out_from_deltas([10**18])
        assert exc_info.value.code == ErrorCode.QUOTE_DECODE


class TestQueryBatchSwapEncoding:

    def test_single_given_in_swap(self, tokens):
        data = encode_query_batch_swap(POOL_ID, tokens["WETH"].address, tokens["USDC"].address, 10**18)
        kind, swaps, assets, funds = decode(
            ["uint8", "(bytes32,uint256,uint256,uint256,bytes)[]", "address[]", "(address,bool,address,bool)"],
            to_bytes(hexstr=data)[4:],
        )
        assert kind == 0
        assert len(swaps) == 1
        pool_id, in_index, out_index, amount, user_data = swaps[0]
        assert pool_id == to_bytes(hexstr=POOL_ID)
        assert (in_index, out_index, amount, user_data) == (0, 1, 10**18, b"")
        assert [a.lower() for a in assets] == [tokens["WETH"].address, tokens["USDC"].address]
        assert funds[1] is False and funds[3] is False


class TestBalancerAdapter:

    @pytest.fixture
    def provider(self):
        provider = MagicMock()
        provider.eth_call = AsyncMock()
        return provider

    @pytest.mark.asyncio
    async def test_quote_reads_out_delta(self, provider, vault_pool, tokens):
        provider.eth_call.return_value = MagicMock(
            result=to_hex(encode(["int256[]"], [[10**18, -2500 * 10**6]])),
            latency_ms=30,
        )

        amount = await BalancerAdapter(provider).quote(
            vault_pool, tokens["WETH"].address, tokens["USDC"].address, 10**18
        )

        assert amount == 2500 * 10**6
        assert provider.eth_call.call_args.args[0] == VAULT

    @pytest.mark.asyncio
    async def test_revert(self, provider, vault_pool, tokens):
        provider.eth_call.side_effect = RPCError("Call reverted: BAL#304", details={"reverted": True})

        with pytest.raises(QuoteError) as exc_info:
            await BalancerAdapter(provider).quote(vault_pool, tokens["WETH"].address, tokens["USDC"].address, 10**18)

        assert exc_info.value.code == ErrorCode.QUOTE_REVERT
