"""
strategy/scanner.py - Cross-venue opportunity scanner.

For every token pair listed on two or more pools:
1. Pick the flash-loan asset (a lendable token of the pair)
2. Size the loan: min flash size across the pair's pools (capped)
3. Buy leg: quote loan -> other token on every pool, keep the best
4. Sell leg: quote the buy output back on every other pool, keep the best
5. Score: gross - flash fee - gas; keep if net >= min_profit_usd

The best opportunity across all pairs is returned. Quotes are eth_call
simulations only; nothing is broadcast here.
"""

import asyncio
from decimal import Decimal
from typing import Callable

from chains.providers import RPCProvider
from core.constants import PricingKind
from core.exceptions import ArbError
from core.logging import get_logger
from core.math import bps_of, gas_cost_usd, raw_to_usd, usd_to_raw
from core.models import ArbOpportunity, CandidatePool, TokenMeta
from core.time import now_ms
from dex.quoting import QuoteDispatcher
from strategy.config import ArbConfig

logger = get_logger(__name__)


def group_by_pair(pools: list[CandidatePool]) -> dict[str, list[CandidatePool]]:
    """Pools keyed by canonical pair key; singletons dropped."""
    groups: dict[str, list[CandidatePool]] = {}
    for pool in pools:
        groups.setdefault(pool.pair_key, []).append(pool)
    return {key: group for key, group in groups.items() if len(group) >= 2}


class OpportunityScanner:
    """
    Finds the most profitable two-leg round trip across venues.

    Usage:
        scanner = OpportunityScanner(config, dispatcher, provider)
        opp = await scanner.scan(native_price_usd=Decimal("2500"), pools=pools)
    """

    def __init__(
        self,
        config: ArbConfig,
        dispatcher: QuoteDispatcher,
        provider: RPCProvider,
        clock: Callable[[], int] = now_ms,
    ):
        self.config = config
        self.dispatcher = dispatcher
        self.provider = provider
        self._clock = clock

    def loan_asset_for(self, group: list[CandidatePool]) -> TokenMeta | None:
        """First lendable token in the group, token0 preferred."""
        for pool in group:
            for token in (pool.token0, pool.token1):
                if self.config.is_lendable(token.address):
                    return token
        return None

    def loan_asset_price_usd(self, token: TokenMeta, native_price_usd: Decimal) -> Decimal:
        asset = self.config.lendable_assets[token.address]
        if asset.pricing == PricingKind.STABLE:
            return Decimal("1")
        return native_price_usd

    async def resolve_gas_price(self, gas_price_wei: int | None = None) -> int:
        """Explicit price, else eth_gasPrice, else the configured fallback."""
        if gas_price_wei is not None:
            return gas_price_wei
        try:
            price, _ = await self.provider.get_gas_price()
            return price
        except ArbError as e:
            logger.warning(
                "Gas price unavailable, using fallback",
                extra={"context": {"fallback_wei": self.config.fallback_gas_price_wei, "error": str(e)}},
            )
            return self.config.fallback_gas_price_wei

    async def scan(
        self,
        native_price_usd: Decimal,
        pools: list[CandidatePool] | None = None,
        gas_price_wei: int | None = None,
    ) -> ArbOpportunity | None:
        """
        Return the highest-net opportunity above threshold, or None.

        Per-pair failures are logged and isolated.
        """
        if not self.config.enabled:
            return None

        groups = group_by_pair(pools or [])
        if not groups:
            return None

        native_price_usd = Decimal(native_price_usd)
        gas_price = await self.resolve_gas_price(gas_price_wei)

        keys = list(groups)
        results = await asyncio.gather(
            *(self._scan_group(key, groups[key], native_price_usd, gas_price) for key in keys),
            return_exceptions=True,
        )

        best: ArbOpportunity | None = None
        for key, result in zip(keys, results):
            if isinstance(result, Exception):
                logger.warning(
                    "Pair scan failed",
                    extra={"context": {"pair_key": key, "error": repr(result)}},
                )
                continue
            if isinstance(result, BaseException):
                raise result
            if result is not None and (best is None or result.net_profit_usd > best.net_profit_usd):
                best = result

        if best is not None:
            logger.info(
                "Opportunity found",
                extra={"context": {
                    "pair": best.display_pair,
                    "buy": best.buy_pool.dex.value,
                    "sell": best.sell_pool.dex.value,
                    "flash_usd": str(best.flash_amount_usd),
                    "net_usd": str(best.net_profit_usd),
                }},
            )
        else:
            logger.debug("No opportunity above threshold", extra={"context": {"pairs": len(groups)}})
        return best

    async def _scan_group(
        self,
        pair_key: str,
        group: list[CandidatePool],
        native_price_usd: Decimal,
        gas_price_wei: int,
    ) -> ArbOpportunity | None:
        loan = self.loan_asset_for(group)
        if loan is None:
            return None

        price = self.loan_asset_price_usd(loan, native_price_usd)
        if price <= 0:
            return None

        other = group[0].other_token(loan.address)

        flash_usd = min(min(p.flash_amount_usd for p in group), self.config.max_flash_usd)
        flash_raw = usd_to_raw(flash_usd, price, loan.decimals)
        if flash_raw <= 0:
            return None

        # Buy leg: loan asset -> other token on every pool
        buy_results = await asyncio.gather(
            *(self.dispatcher.quote(p, loan.address, other.address, flash_raw) for p in group)
        )
        buys = [(p, r.amount_out) for p, r in zip(group, buy_results) if r.ok]
        if len(buys) < 2:
            return None

        buy_pool, buy_out = buys[0]
        for pool, amount in buys[1:]:
            if amount > buy_out:
                buy_pool, buy_out = pool, amount

        # Sell leg: buy output back to the loan asset on every other pool
        sell_candidates = [p for p in group if p.pool_address != buy_pool.pool_address]
        sell_results = await asyncio.gather(
            *(self.dispatcher.quote(p, other.address, loan.address, buy_out) for p in sell_candidates)
        )
        sells = [(p, r.amount_out) for p, r in zip(sell_candidates, sell_results) if r.ok]
        if not sells:
            return None

        sell_pool, sell_out = sells[0]
        for pool, amount in sells[1:]:
            if amount > sell_out:
                sell_pool, sell_out = pool, amount

        if sell_out <= flash_raw:
            return None

        gross_usd = raw_to_usd(sell_out - flash_raw, price, loan.decimals)
        flash_fee_usd = bps_of(flash_usd, self.config.flash_fee_bps)
        gas_usd = gas_cost_usd(self.config.gas_units, gas_price_wei, native_price_usd)
        net_usd = gross_usd - flash_fee_usd - gas_usd

        if net_usd < self.config.min_profit_usd:
            logger.debug(
                "Spread below threshold",
                extra={"context": {
                    "pair_key": pair_key,
                    "gross_usd": str(gross_usd),
                    "net_usd": str(net_usd),
                }},
            )
            return None

        return ArbOpportunity(
            pair_key=pair_key,
            display_pair=f"{loan.symbol}/{other.symbol}",
            flash_loan_asset=loan,
            flash_amount_raw=flash_raw,
            flash_amount_usd=flash_usd,
            loan_asset_price_usd=price,
            buy_pool=buy_pool,
            sell_pool=sell_pool,
            token_out=other,
            buy_amount_out=buy_out,
            sell_amount_out=sell_out,
            expected_gross_usd=gross_usd,
            flash_fee_usd=flash_fee_usd,
            gas_estimate_usd=gas_usd,
            net_profit_usd=net_usd,
            native_price_usd=native_price_usd,
            detected_at_ms=self._clock(),
        )
