"""
dex/quoting.py - Venue-agnostic quote dispatch.

QuoteDispatcher.quote() never raises: every failure becomes a
QuoteResult.unavailable(...) with an error code, so the scanner can
fan out over many pools and simply keep the successes.
"""

import time

from eth_abi.exceptions import EncodingError

from chains.providers import RPCProvider
from core.constants import DEFAULT_PATH_FEE_PLACEHOLDER, ErrorCode, VenueType
from core.exceptions import ArbError
from core.logging import get_logger
from core.models import CandidatePool, QuoteResult
from dex.adapters import AlgebraAdapter, BalancerAdapter, UniswapV3Adapter

logger = get_logger(__name__)


class QuoteDispatcher:
    """
    Routes a quote to the adapter for the pool's venue type.

    Usage:
        dispatcher = QuoteDispatcher(provider)
        result = await dispatcher.quote(pool, token_in, token_out, amount_in)
        if result.ok:
            ...
    """

    def __init__(
        self,
        provider: RPCProvider,
        path_fee: int = DEFAULT_PATH_FEE_PLACEHOLDER,
    ):
        self.provider = provider
        self.adapters = {
            VenueType.UNISWAP_V3: UniswapV3Adapter(provider),
            VenueType.ALGEBRA: AlgebraAdapter(provider, path_fee=path_fee),
            VenueType.BALANCER: BalancerAdapter(provider),
        }

    async def quote(
        self,
        pool: CandidatePool,
        token_in: str,
        token_out: str,
        amount_in: int,
    ) -> QuoteResult:
        adapter = self.adapters.get(pool.venue_type)
        if adapter is None:
            return QuoteResult.unavailable(
                f"unsupported venue type {pool.venue_type!r}",
                ErrorCode.UNSUPPORTED_VENUE,
            )

        start = time.monotonic()
        try:
            amount_out = await adapter.quote(pool, token_in, token_out, amount_in)
        except ArbError as e:
            latency_ms = int((time.monotonic() - start) * 1000)
            logger.debug(
                "Quote unavailable",
                extra={"context": {
                    "dex": pool.dex.value,
                    "pool": pool.pool_address,
                    "code": e.code.value,
                    "error": e.message,
                }},
            )
            return QuoteResult.unavailable(e.message, e.code, latency_ms)
        except (EncodingError, ValueError, TypeError, OverflowError) as e:
            # Encoding rejected the inputs (bad address, out-of-range int)
            logger.debug(
                "Quote encoding failed",
                extra={"context": {"dex": pool.dex.value, "pool": pool.pool_address, "error": str(e)}},
            )
            return QuoteResult.unavailable(str(e), ErrorCode.QUOTE_DECODE)

        latency_ms = int((time.monotonic() - start) * 1000)
        if amount_out <= 0:
            return QuoteResult.unavailable("zero output", ErrorCode.QUOTE_EMPTY, latency_ms)
        return QuoteResult.available(amount_out, latency_ms)
