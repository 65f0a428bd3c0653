# PATH: core/format_money.py
"""
Safe money formatting utilities.

No float money: all money values are str or Decimal. This module provides
safe formatting for logs and CLI output.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, localcontext
from typing import Union


def format_money(value: Union[str, Decimal, int, float, None], decimals: int = 6) -> str:
    """
    Safely format a money value to string with specified decimal places.

    Handles:
    - str: parse as Decimal, format
    - Decimal: format directly
    - int: convert to Decimal, format
    - float: convert to Decimal (legacy support), format
    - bool: True=1, False=0
    - None: return "0.000000"

    Uses ROUND_HALF_UP for proper rounding (0.005 -> 0.01 with 2 decimals).
    Never raises on valid numeric input.

    Example:
        >>> format_money("123.45")
        '123.450000'
        >>> format_money(Decimal("0.001"))
        '0.001000'
        >>> format_money(None)
        '0.000000'
    """
    if value is None:
        return f"0.{'0' * decimals}"

    try:
        if isinstance(value, str):
            if not value.strip():
                return f"0.{'0' * decimals}"
            dec_value = Decimal(value)
        elif isinstance(value, Decimal):
            dec_value = value
        elif isinstance(value, bool):
            # Handle bool explicitly BEFORE int (bool is subclass of int)
            dec_value = Decimal(1 if value else 0)
        elif isinstance(value, (int, float)):
            dec_value = Decimal(str(value))
        else:
            dec_value = Decimal(str(value))

        with localcontext() as ctx:
            ctx.prec = 50
            quantize_str = "0." + "0" * decimals if decimals > 0 else "0"
            rounded = dec_value.quantize(Decimal(quantize_str), rounding=ROUND_HALF_UP)

        return f"{rounded:.{decimals}f}"

    except (InvalidOperation, ValueError, TypeError):
        return f"0.{'0' * decimals}"


def format_usd(value: Union[str, Decimal, int, float, None], decimals: int = 3) -> str:
    """
    Format a USD value for display, e.g. "$22.500".
    """
    return f"${format_money(value, decimals)}"
