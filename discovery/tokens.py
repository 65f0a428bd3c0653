"""
discovery/tokens.py - ERC-20 metadata cache.

Resolves symbol/decimals on chain and memoizes them per lower-cased
address for the lifetime of the cache. Failed lookups are not cached so a
transient RPC failure does not poison the pool forever.
"""

import asyncio

from chains.abi import ERC20_DECIMALS, ERC20_SYMBOL, decode_symbol
from chains.providers import RPCProvider
from core.exceptions import ArbError
from core.logging import get_logger
from core.models import TokenMeta

logger = get_logger(__name__)


class TokenMetadataCache:
    """Memoized token metadata lookups."""

    def __init__(self, provider: RPCProvider):
        self.provider = provider
        self._cache: dict[str, TokenMeta] = {}

    def __len__(self) -> int:
        return len(self._cache)

    def get_cached(self, address: str) -> TokenMeta | None:
        return self._cache.get(address.lower())

    async def resolve(self, address: str) -> TokenMeta | None:
        """
        Return metadata for address, or None if it does not behave like
        an ERC-20 token.
        """
        key = address.lower()
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        try:
            symbol_resp, decimals_resp = await asyncio.gather(
                self.provider.eth_call(key, ERC20_SYMBOL.encode_call()),
                self.provider.eth_call(key, ERC20_DECIMALS.encode_call()),
            )
            symbol = decode_symbol(symbol_resp.result)
            (decimals,) = ERC20_DECIMALS.decode_result(decimals_resp.result)
        except ArbError as e:
            logger.debug(
                "Token metadata unavailable",
                extra={"context": {"token": key, "error": str(e)}},
            )
            return None

        meta = TokenMeta(address=key, symbol=symbol, decimals=int(decimals))
        self._cache[key] = meta
        return meta
