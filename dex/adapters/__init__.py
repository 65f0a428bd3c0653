"""
dex/adapters/ - Venue-specific quoting adapters.

Adapters:
- uniswap_v3: QuoterV2 (Uniswap V3, PancakeSwap V3)
- algebra: Algebra quoter (Camelot V3)
- balancer: Vault queryBatchSwap (Balancer V2)
"""

from dex.adapters.algebra import AlgebraAdapter, AlgebraQuoteResult
from dex.adapters.balancer import BalancerAdapter
from dex.adapters.uniswap_v3 import UniswapV3Adapter, UniswapV3QuoteResult

__all__ = [
    "AlgebraAdapter",
    "AlgebraQuoteResult",
    "BalancerAdapter",
    "UniswapV3Adapter",
    "UniswapV3QuoteResult",
]
