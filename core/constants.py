# PATH: core/constants.py
"""
Constants for the flash-arb engine.

Contains enums, defaults, and configuration constants.

VENUE CODE CONTRACT:
- VenueType values are sent on-chain inside the receiver params tuple.
- They MUST equal DEX_UNISWAP_V3 / DEX_CAMELOT_V3 / DEX_BALANCER in
  contracts/IArbFlashReceiver.sol (0, 1, 2).
- tests/unit/test_venue_code_parity.py checks both artifacts.
"""

from decimal import Decimal
from enum import Enum, IntEnum
from typing import Final


# =============================================================================
# VENUES
# =============================================================================

class VenueType(IntEnum):
    """Swap dispatch code understood by the receiver contract."""
    UNISWAP_V3 = 0   # fee-tiered concentrated liquidity (Uniswap v3 and forks)
    ALGEBRA = 1      # dynamic-fee concentrated liquidity (Camelot v3)
    BALANCER = 2     # shared vault, batched swaps


class DexId(str, Enum):
    """Venues the engine knows how to discover and quote."""
    UNISWAP_V3 = "uniswap_v3"
    PANCAKE_V3 = "pancake_v3"
    CAMELOT_V3 = "camelot_v3"
    BALANCER = "balancer"


# PancakeSwap v3 is a Uniswap v3 fork: same quoter and router ABI
DEX_VENUE_TYPE: Final[dict[DexId, VenueType]] = {
    DexId.UNISWAP_V3: VenueType.UNISWAP_V3,
    DexId.PANCAKE_V3: VenueType.UNISWAP_V3,
    DexId.CAMELOT_V3: VenueType.ALGEBRA,
    DexId.BALANCER: VenueType.BALANCER,
}

# DeFiLlama yields "project" -> DexId
INDEX_PROJECTS: Final[dict[str, DexId]] = {
    "uniswap-v3": DexId.UNISWAP_V3,
    "pancakeswap-amm-v3": DexId.PANCAKE_V3,
    "camelot-v3": DexId.CAMELOT_V3,
    "balancer-v2": DexId.BALANCER,
}


class PricingKind(str, Enum):
    """How a lendable asset is converted to USD."""
    STABLE = "stable"   # 1 token == 1 USD
    NATIVE = "native"   # wrapped native asset, priced by the caller


class TradeOutcome(str, Enum):
    """Execution outcome categories."""
    DRY_RUN = "DRY_RUN"
    CONFIRMED = "CONFIRMED"
    REVERTED = "REVERTED"
    BLOCKED = "BLOCKED"


class ErrorCode(str, Enum):
    """
    Error codes shared by exceptions, quote results and execution results.
    """
    # Quote failures
    QUOTE_REVERT = "QUOTE_REVERT"
    QUOTE_EMPTY = "QUOTE_EMPTY"
    QUOTE_DECODE = "QUOTE_DECODE"
    UNSUPPORTED_VENUE = "UNSUPPORTED_VENUE"

    # Infrastructure errors
    INFRA_RPC_ERROR = "INFRA_RPC_ERROR"
    INFRA_TIMEOUT = "INFRA_TIMEOUT"
    INFRA_INDEX_UNAVAILABLE = "INFRA_INDEX_UNAVAILABLE"

    # Discovery
    TOKEN_METADATA_UNAVAILABLE = "TOKEN_METADATA_UNAVAILABLE"
    POOL_NOT_FOUND = "POOL_NOT_FOUND"
    FEE_TIER_UNKNOWN = "FEE_TIER_UNKNOWN"
    FLASH_SIZE_TOO_SMALL = "FLASH_SIZE_TOO_SMALL"
    VAULT_POOL_UNRESOLVED = "VAULT_POOL_UNRESOLVED"

    # Configuration
    CONFIG_INVALID = "CONFIG_INVALID"
    CONFIG_MISSING_RECEIVER = "CONFIG_MISSING_RECEIVER"
    CONFIG_MISSING_SIGNER = "CONFIG_MISSING_SIGNER"

    # Execution
    EXECUTION_IN_PROGRESS = "EXECUTION_IN_PROGRESS"
    OPPORTUNITY_STALE = "OPPORTUNITY_STALE"
    TX_SUBMIT_FAILED = "TX_SUBMIT_FAILED"
    TX_CONFIRM_TIMEOUT = "TX_CONFIRM_TIMEOUT"
    TX_REVERTED = "TX_REVERTED"

    UNKNOWN = "UNKNOWN"


# =============================================================================
# CHAIN / ABI
# =============================================================================

ZERO_ADDRESS: Final[str] = "0x" + "00" * 20
ZERO_HASH: Final[str] = "0x" + "00" * 32

# Balancer SwapKind.GIVEN_IN
BALANCER_GIVEN_IN: Final[int] = 0

# Fee placeholder written into Algebra path blobs (routing-format artifact)
DEFAULT_PATH_FEE_PLACEHOLDER: Final[int] = 500


# =============================================================================
# ENGINE DEFAULTS
# =============================================================================

# Aave v3 flash loan premium: 0.05%
FLASH_FEE_BPS: Final[int] = 5

DEFAULT_MIN_POOL_TVL_USD: Final[Decimal] = Decimal("100000")
DEFAULT_FLASH_FRACTION: Final[Decimal] = Decimal("0.05")
DEFAULT_MAX_FLASH_USD: Final[Decimal] = Decimal("50000")
DEFAULT_MIN_FLASH_USD: Final[Decimal] = Decimal("1000")
DEFAULT_MIN_PROFIT_USD: Final[Decimal] = Decimal("2")

DEFAULT_GAS_UNITS: Final[int] = 800_000
DEFAULT_GAS_LIMIT: Final[int] = 1_400_000
FALLBACK_GAS_PRICE_WEI: Final[int] = 100_000_000  # 0.1 gwei

# Receiver min profit = this fraction of the estimate (quote drift tolerance)
MIN_PROFIT_FRACTION: Final[Decimal] = Decimal("0.8")

DEFAULT_SCAN_INTERVAL_MS: Final[int] = 30_000
DEFAULT_POOL_REFRESH_MS: Final[int] = 4 * 3600_000
DEFAULT_MAX_OPPORTUNITY_AGE_MS: Final[int] = 30_000
DEFAULT_OPERATION_TIMEOUT_SECONDS: Final[float] = 120.0

MIN_SCAN_INTERVAL_MS: Final[int] = 1_000
MIN_POOL_REFRESH_MS: Final[int] = 60_000

# Per-venue top-N kept from the index (discovery is rate/latency bound)
DEFAULT_VENUE_POOL_LIMITS: Final[dict[DexId, int]] = {
    DexId.UNISWAP_V3: 80,
    DexId.CAMELOT_V3: 40,
    DexId.PANCAKE_V3: 30,
    DexId.BALANCER: 20,
}

# Profit ledger windows
PROFIT_REPORT_WINDOW_SECONDS: Final[int] = 24 * 3600
PROFIT_RETENTION_SECONDS: Final[int] = 48 * 3600
PROFIT_HYDRATE_DEDUPE_SECONDS: Final[int] = 5

WEI_PER_NATIVE: Final[Decimal] = Decimal(10) ** 18
BPS_DENOMINATOR: Final[Decimal] = Decimal(10_000)
