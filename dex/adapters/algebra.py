"""
dex/adapters/algebra.py - Algebra V3 (Camelot) adapter.

Algebra V3 is a fork of Uniswap V3 with dynamic fees.
Used by Camelot DEX on Arbitrum.

Key differences from Uniswap V3:
- No fixed fee tiers (dynamic fees based on volatility)
- Different quoter interface: quoteExactInput(path, amountIn)
  returns (amountOut, fees[])
- Pool address comes from factory.poolByPair(tokenA, tokenB)

The quoted path is tokenIn (20) | fee (3) | tokenOut (20). The fee field
is a placeholder kept for router compatibility; the pool applies its own
dynamic fee.
"""

from dataclasses import dataclass

from chains.abi import ALGEBRA_QUOTE_EXACT_INPUT, encode_algebra_path
from chains.providers import RPCProvider
from core.constants import DEFAULT_PATH_FEE_PLACEHOLDER, ErrorCode
from core.exceptions import QuoteError, RPCError
from core.logging import get_logger
from core.models import CandidatePool

logger = get_logger(__name__)


@dataclass
class AlgebraQuoteResult:
    """Result from Algebra quote."""
    amount_out: int
    fees: tuple[int, ...]  # Dynamic fee per hop, hundredths of a bip
    latency_ms: int

    @property
    def fee(self) -> int:
        return self.fees[0] if self.fees else 0


def encode_quote_exact_input(
    token_in: str,
    token_out: str,
    amount_in: int,
    path_fee: int = DEFAULT_PATH_FEE_PLACEHOLDER,
) -> str:
    """Encode quoteExactInput calldata for a single-hop path."""
    path = encode_algebra_path(token_in, token_out, path_fee)
    return ALGEBRA_QUOTE_EXACT_INPUT.encode_call(path, amount_in)


class AlgebraAdapter:
    """
    Adapter for Algebra V3 (Camelot) quoting.

    Usage:
        adapter = AlgebraAdapter(provider)
        amount_out = await adapter.quote(pool, token_in, token_out, amount_in)
    """

    def __init__(
        self,
        provider: RPCProvider,
        path_fee: int = DEFAULT_PATH_FEE_PLACEHOLDER,
    ):
        self.provider = provider
        self.path_fee = path_fee

    async def get_quote_raw(
        self,
        quoter: str,
        token_in: str,
        token_out: str,
        amount_in: int,
    ) -> AlgebraQuoteResult:
        """
        Get raw quote from the Algebra quoter.

        Raises:
            QuoteError: The quoter reverted
            DecodeError: Empty or malformed return data
            RPCError: Every endpoint failed
        """
        call_data = encode_quote_exact_input(token_in, token_out, amount_in, self.path_fee)

        try:
            response = await self.provider.eth_call(quoter, call_data)
        except RPCError as e:
            if e.details.get("reverted"):
                raise QuoteError(
                    f"Algebra quoter reverted: {e.message}",
                    code=ErrorCode.QUOTE_REVERT,
                    details={
                        "token_in": token_in,
                        "token_out": token_out,
                        "amount_in": amount_in,
                        "quoter": quoter,
                        "call_data_prefix": call_data[:10],
                    },
                ) from e
            raise

        amount_out, fees = ALGEBRA_QUOTE_EXACT_INPUT.decode_result(response.result)

        return AlgebraQuoteResult(
            amount_out=amount_out,
            fees=tuple(fees),
            latency_ms=response.latency_ms,
        )

    async def quote(
        self,
        pool: CandidatePool,
        token_in: str,
        token_out: str,
        amount_in: int,
    ) -> int:
        result = await self.get_quote_raw(
            quoter=pool.quoter,
            token_in=token_in,
            token_out=token_out,
            amount_in=amount_in,
        )

        logger.debug(
            "Algebra quote",
            extra={"context": {
                "pool": pool.pool_address,
                "amount_in": amount_in,
                "amount_out": result.amount_out,
                "fee": result.fee,
                "latency_ms": result.latency_ms,
            }},
        )
        return result.amount_out
