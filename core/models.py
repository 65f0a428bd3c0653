# PATH: core/models.py
"""
Core data models for the flash-arb engine.

PAIR KEY CONTRACT
=================
Two pools trade the same pair iff their pair keys are equal.
  pair_key = "{lo}_{hi}"  where lo/hi are the lower-cased token
  addresses in lexicographic order.
Example: "0x82af..._0xaf88..."
=================

Money values are Decimal. Raw token amounts are int.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Optional

from core.constants import DexId, ErrorCode, VenueType, ZERO_HASH


def canonical_pair_key(token_a: str, token_b: str) -> str:
    """
    Order-independent key for a token pair.

    >>> canonical_pair_key("0xB", "0xa")
    '0xa_0xb'
    """
    a, b = token_a.lower(), token_b.lower()
    lo, hi = (a, b) if a <= b else (b, a)
    return f"{lo}_{hi}"


@dataclass(frozen=True)
class TokenMeta:
    """ERC-20 metadata resolved from chain."""
    address: str
    symbol: str
    decimals: int

    def __post_init__(self):
        # frozen: bypass __setattr__ to normalize
        object.__setattr__(self, "address", self.address.lower())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "symbol": self.symbol,
            "decimals": self.decimals,
        }


@dataclass
class CandidatePool:
    """A pool eligible for arbitrage, enriched with on-chain data."""
    pool_address: str
    dex: DexId
    venue_type: VenueType
    router: str
    quoter: str
    token0: TokenMeta
    token1: TokenMeta
    fee_tier: int
    tvl_usd: Decimal
    flash_amount_usd: Decimal
    pool_id: str = ZERO_HASH

    @property
    def pair_key(self) -> str:
        return canonical_pair_key(self.token0.address, self.token1.address)

    @property
    def display_pair(self) -> str:
        return f"{self.token0.symbol}/{self.token1.symbol}"

    def other_token(self, address: str) -> TokenMeta:
        """Return the token of this pool that is not `address`."""
        if address.lower() == self.token0.address:
            return self.token1
        return self.token0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pool_address": self.pool_address,
            "pool_id": self.pool_id,
            "dex": self.dex.value,
            "venue_type": int(self.venue_type),
            "router": self.router,
            "quoter": self.quoter,
            "token0": self.token0.to_dict(),
            "token1": self.token1.to_dict(),
            "fee_tier": self.fee_tier,
            "tvl_usd": str(self.tvl_usd),
            "flash_amount_usd": str(self.flash_amount_usd),
            "pair_key": self.pair_key,
        }


@dataclass
class QuoteResult:
    """
    Typed outcome of a single-leg quote.

    Either amount_out is set (available) or error/error_code are.
    """
    amount_out: int = 0
    error: Optional[str] = None
    error_code: Optional[ErrorCode] = None
    latency_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.error_code is None and self.amount_out > 0

    @classmethod
    def available(cls, amount_out: int, latency_ms: int = 0) -> "QuoteResult":
        return cls(amount_out=amount_out, latency_ms=latency_ms)

    @classmethod
    def unavailable(
        cls,
        error: str,
        error_code: ErrorCode = ErrorCode.QUOTE_REVERT,
        latency_ms: int = 0,
    ) -> "QuoteResult":
        return cls(error=error, error_code=error_code, latency_ms=latency_ms)


@dataclass
class ArbOpportunity:
    """Best two-leg round trip found for one pair."""
    pair_key: str
    display_pair: str
    flash_loan_asset: TokenMeta
    flash_amount_raw: int
    flash_amount_usd: Decimal
    loan_asset_price_usd: Decimal
    buy_pool: CandidatePool
    sell_pool: CandidatePool
    token_out: TokenMeta
    buy_amount_out: int
    sell_amount_out: int
    expected_gross_usd: Decimal
    flash_fee_usd: Decimal
    gas_estimate_usd: Decimal
    net_profit_usd: Decimal
    native_price_usd: Decimal
    detected_at_ms: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pair_key": self.pair_key,
            "display_pair": self.display_pair,
            "flash_loan_asset": self.flash_loan_asset.to_dict(),
            "flash_amount_raw": str(self.flash_amount_raw),
            "flash_amount_usd": str(self.flash_amount_usd),
            "buy_dex": self.buy_pool.dex.value,
            "buy_pool": self.buy_pool.pool_address,
            "sell_dex": self.sell_pool.dex.value,
            "sell_pool": self.sell_pool.pool_address,
            "token_out": self.token_out.address,
            "buy_amount_out": str(self.buy_amount_out),
            "sell_amount_out": str(self.sell_amount_out),
            "expected_gross_usd": str(self.expected_gross_usd),
            "flash_fee_usd": str(self.flash_fee_usd),
            "gas_estimate_usd": str(self.gas_estimate_usd),
            "net_profit_usd": str(self.net_profit_usd),
            "detected_at_ms": self.detected_at_ms,
        }


@dataclass
class ArbResult:
    """Outcome of an execution attempt."""
    success: bool
    tx_hash: Optional[str] = None
    profit_usd: Optional[Decimal] = None
    error: Optional[str] = None
    error_code: Optional[ErrorCode] = None
    gas_used: Optional[int] = None
    dry_run: bool = False
    # Terminal TradeState of the attempt; None when it never started
    state: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "tx_hash": self.tx_hash,
            "profit_usd": str(self.profit_usd) if self.profit_usd is not None else None,
            "error": self.error,
            "error_code": self.error_code.value if self.error_code else None,
            "gas_used": self.gas_used,
            "dry_run": self.dry_run,
            "state": self.state,
        }


@dataclass
class ProfitLogEntry:
    """Realized profit sample."""
    timestamp: float
    profit_usd: Decimal = field(default_factory=lambda: Decimal("0"))
