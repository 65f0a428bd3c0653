"""
dex/adapters/uniswap_v3.py - Uniswap V3 quoting adapter.

Implements quoting via the QuoterV2 contract. Also serves PancakeSwap V3,
which deploys the same QuoterV2 interface.

QuoterV2 takes a struct parameter:
    struct QuoteExactInputSingleParams {
        address tokenIn;
        address tokenOut;
        uint256 amountIn;
        uint24 fee;
        uint160 sqrtPriceLimitX96;
    }
and returns (amountOut, sqrtPriceX96After, initializedTicksCrossed, gasEstimate).
"""

from dataclasses import dataclass

from chains.abi import QUOTER_V2_QUOTE_EXACT_INPUT_SINGLE
from chains.providers import RPCProvider
from core.constants import ErrorCode
from core.exceptions import QuoteError, RPCError
from core.logging import get_logger
from core.models import CandidatePool

logger = get_logger(__name__)


@dataclass
class UniswapV3QuoteResult:
    """Result from QuoterV2."""
    amount_out: int
    sqrt_price_x96_after: int
    ticks_crossed: int
    gas_estimate: int
    latency_ms: int


def encode_quote_exact_input_single(
    token_in: str,
    token_out: str,
    amount_in: int,
    fee: int,
    sqrt_price_limit_x96: int = 0,
) -> str:
    """Encode quoteExactInputSingle calldata (no price limit by default)."""
    return QUOTER_V2_QUOTE_EXACT_INPUT_SINGLE.encode_call(
        (token_in.lower(), token_out.lower(), amount_in, fee, sqrt_price_limit_x96)
    )


class UniswapV3Adapter:
    """
    Adapter for fee-tiered concentrated-liquidity quoting.

    Usage:
        adapter = UniswapV3Adapter(provider)
        amount_out = await adapter.quote(pool, token_in, token_out, amount_in)
    """

    def __init__(self, provider: RPCProvider):
        self.provider = provider

    async def get_quote_raw(
        self,
        quoter: str,
        token_in: str,
        token_out: str,
        amount_in: int,
        fee: int,
    ) -> UniswapV3QuoteResult:
        """
        Simulate a single-hop exact-input swap.

        Raises:
            QuoteError: The quoter reverted (no liquidity, bad fee tier)
            DecodeError: Empty or malformed return data
            RPCError: Every endpoint failed
        """
        call_data = encode_quote_exact_input_single(token_in, token_out, amount_in, fee)

        try:
            response = await self.provider.eth_call(quoter, call_data)
        except RPCError as e:
            if e.details.get("reverted"):
                raise QuoteError(
                    f"QuoterV2 reverted: {e.message}",
                    code=ErrorCode.QUOTE_REVERT,
                    details={
                        "token_in": token_in,
                        "token_out": token_out,
                        "amount_in": amount_in,
                        "fee": fee,
                        "quoter": quoter,
                    },
                ) from e
            raise

        amount_out, sqrt_price, ticks, gas = QUOTER_V2_QUOTE_EXACT_INPUT_SINGLE.decode_result(response.result)

        return UniswapV3QuoteResult(
            amount_out=amount_out,
            sqrt_price_x96_after=sqrt_price,
            ticks_crossed=ticks,
            gas_estimate=gas,
            latency_ms=response.latency_ms,
        )

    async def quote(
        self,
        pool: CandidatePool,
        token_in: str,
        token_out: str,
        amount_in: int,
    ) -> int:
        """Amount of token_out for amount_in of token_in through pool."""
        result = await self.get_quote_raw(
            quoter=pool.quoter,
            token_in=token_in,
            token_out=token_out,
            amount_in=amount_in,
            fee=pool.fee_tier,
        )

        logger.debug(
            "V3 quote",
            extra={"context": {
                "dex": pool.dex.value,
                "pool": pool.pool_address,
                "amount_in": amount_in,
                "amount_out": result.amount_out,
                "fee": pool.fee_tier,
                "ticks": result.ticks_crossed,
                "latency_ms": result.latency_ms,
            }},
        )
        return result.amount_out
