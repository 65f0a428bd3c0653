"""
dex/adapters/balancer.py - Balancer V2 vault adapter.

Balancer pools share one vault. Quotes come from
Vault.queryBatchSwap(GIVEN_IN, swaps, assets, funds), which returns the
signed balance delta per asset from the vault's point of view:
  delta[in]  > 0  (vault receives)
  delta[out] < 0  (vault pays out)
The amount out is |delta[out]|; a non-negative out delta means no output.
"""

from chains.abi import BALANCER_QUERY_BATCH_SWAP, pool_id_bytes
from chains.providers import RPCProvider
from core.constants import BALANCER_GIVEN_IN, ZERO_ADDRESS, ErrorCode
from core.exceptions import QuoteError, RPCError
from core.logging import get_logger
from core.models import CandidatePool

logger = get_logger(__name__)


def encode_query_batch_swap(
    pool_id: str,
    token_in: str,
    token_out: str,
    amount_in: int,
) -> str:
    """Single swap asset 0 -> asset 1 with empty userData and null funds."""
    swaps = [(pool_id_bytes(pool_id), 0, 1, amount_in, b"")]
    assets = [token_in.lower(), token_out.lower()]
    funds = (ZERO_ADDRESS, False, ZERO_ADDRESS, False)
    return BALANCER_QUERY_BATCH_SWAP.encode_call(BALANCER_GIVEN_IN, swaps, assets, funds)


def amount_out_from_deltas(deltas: tuple[int, ...] | list[int]) -> int:
    """
    Output amount from queryBatchSwap deltas.

    Raises:
        QuoteError: QUOTE_EMPTY when the out delta is not negative
    """
    if len(deltas) < 2:
        raise QuoteError("queryBatchSwap returned fewer than 2 deltas", code=ErrorCode.QUOTE_DECODE)
    out_delta = deltas[1]
    if out_delta >= 0:
        raise QuoteError(
            f"queryBatchSwap out delta is non-negative ({out_delta})",
            code=ErrorCode.QUOTE_EMPTY,
        )
    return -out_delta


class BalancerAdapter:
    """
    Adapter for vault-based pools.

    Usage:
        adapter = BalancerAdapter(provider)
        amount_out = await adapter.quote(pool, token_in, token_out, amount_in)
    """

    def __init__(self, provider: RPCProvider):
        self.provider = provider

    async def quote(
        self,
        pool: CandidatePool,
        token_in: str,
        token_out: str,
        amount_in: int,
    ) -> int:
        call_data = encode_query_batch_swap(pool.pool_id, token_in, token_out, amount_in)

        try:
            # pool.quoter is the vault
            response = await self.provider.eth_call(pool.quoter, call_data)
        except RPCError as e:
            if e.details.get("reverted"):
                raise QuoteError(
                    f"queryBatchSwap reverted: {e.message}",
                    code=ErrorCode.QUOTE_REVERT,
                    details={"pool_id": pool.pool_id, "amount_in": amount_in},
                ) from e
            raise

        (deltas,) = BALANCER_QUERY_BATCH_SWAP.decode_result(response.result)
        amount_out = amount_out_from_deltas(deltas)

        logger.debug(
            "Balancer quote",
            extra={"context": {
                "pool_id": pool.pool_id,
                "amount_in": amount_in,
                "amount_out": amount_out,
                "latency_ms": response.latency_ms,
            }},
        )
        return amount_out
