# PATH: core/math.py
"""
Math utilities for the flash-arb engine.

Safe conversions between raw token units, token amounts and USD.
No float money: every money value is a Decimal.
"""

from decimal import Decimal, InvalidOperation, ROUND_DOWN
from typing import Union, Optional

from core.constants import BPS_DENOMINATOR, WEI_PER_NATIVE


def safe_decimal(value: Union[str, int, float, Decimal, None], default: Decimal = Decimal("0")) -> Decimal:
    """
    Safely convert value to Decimal.

    NaN and infinities are treated as conversion failures.

    Args:
        value: Value to convert
        default: Default if conversion fails
    """
    if value is None:
        return default

    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return default
    return result if result.is_finite() else default


def raw_to_amount(raw: int, decimals: int) -> Decimal:
    """Convert raw token units (wei-like) to a token amount."""
    return Decimal(raw) / (Decimal(10) ** decimals)


def amount_to_raw(amount: Decimal, decimals: int) -> int:
    """Convert a token amount to raw units, rounding down."""
    scaled = amount * (Decimal(10) ** decimals)
    return int(scaled.to_integral_value(rounding=ROUND_DOWN))


def usd_to_raw(usd: Decimal, price_usd: Decimal, decimals: int) -> int:
    """
    Convert a USD value to raw units of an asset priced at price_usd.

    Returns 0 for a non-positive price.
    """
    if price_usd <= 0:
        return 0
    return amount_to_raw(usd / price_usd, decimals)


def raw_to_usd(raw: int, price_usd: Decimal, decimals: int) -> Decimal:
    """Convert raw units of an asset to USD."""
    return raw_to_amount(raw, decimals) * price_usd


def bps_of(value: Decimal, bps: Union[int, Decimal]) -> Decimal:
    """Return value * bps / 10_000."""
    return value * Decimal(bps) / BPS_DENOMINATOR


def gas_cost_usd(gas_units: int, gas_price_wei: int, native_price_usd: Decimal) -> Decimal:
    """
    Gas cost in USD.

    gas_units * gas_price_wei is in wei of the native asset.
    """
    return Decimal(gas_units) * Decimal(gas_price_wei) / WEI_PER_NATIVE * native_price_usd


def parse_fee_percent(text: Optional[str]) -> int:
    """
    Parse a fee percentage string into a v3 fee tier (hundredths of a bip).

    Examples:
        "0.01%" -> 100, "0.05%" -> 500, "0.3%" -> 3000, "1%" -> 10000
        None / "" / "no fee here" -> 0
    """
    if not text:
        return 0

    percent_pos = text.find("%")
    if percent_pos <= 0:
        return 0

    # Walk back from '%' over the numeric part
    start = percent_pos
    while start > 0 and (text[start - 1].isdigit() or text[start - 1] == "."):
        start -= 1

    pct = safe_decimal(text[start:percent_pos], default=Decimal("0"))
    if pct <= 0:
        return 0

    return int((pct * Decimal(10_000)).to_integral_value())
