"""
tests/unit/test_math.py - Tests for core/math.py

Critical tests for:
- Raw/amount/USD conversions
- BPS and gas cost calculations
- Fee tier parsing from index metadata
"""

import pytest
from decimal import Decimal

from core.math import (
    amount_to_raw,
    bps_of,
    gas_cost_usd,
    parse_fee_percent,
    raw_to_amount,
    raw_to_usd,
    safe_decimal,
    usd_to_raw,
)


class TestSafeDecimal:

    def test_passthrough(self):
        value = Decimal("1.5")
        assert safe_decimal(value) is value

    def test_string_and_int(self):
        assert safe_decimal("12.34") == Decimal("12.34")
        assert safe_decimal(7) == Decimal(7)

    def test_invalid_uses_default(self):
        assert safe_decimal("abc") == Decimal("0")
        assert safe_decimal(None, default=Decimal("9")) == Decimal("9")

    @pytest.mark.parametrize("value", [float("nan"), float("inf"), "NaN", "-Infinity", Decimal("NaN")])
    def test_non_finite_uses_default(self, value):
        assert safe_decimal(value) == Decimal("0")


class TestRawConversions:

    def test_raw_to_amount(self):
        assert raw_to_amount(1_500_000, 6) == Decimal("1.5")
        assert raw_to_amount(10**18, 18) == Decimal("1")

    def test_amount_to_raw_rounds_down(self):
        assert amount_to_raw(Decimal("1.2345679"), 6) == 1_234_567

    def test_usd_to_raw_stable(self):
        assert usd_to_raw(Decimal("1000"), Decimal("1"), 6) == 1000 * 10**6

    def test_usd_to_raw_native(self):
        assert usd_to_raw(Decimal("5000"), Decimal("2500"), 18) == 2 * 10**18

    def test_usd_to_raw_non_positive_price(self):
        assert usd_to_raw(Decimal("1000"), Decimal("0"), 6) == 0

    def test_raw_to_usd(self):
        assert raw_to_usd(25 * 10**6, Decimal("1"), 6) == Decimal("25")
        assert raw_to_usd(4 * 10**15, Decimal("2500"), 18) == Decimal("10")


class TestBpsAndGas:

    def test_flash_fee(self):
        assert bps_of(Decimal("1000"), 5) == Decimal("0.5")

    def test_gas_cost(self):
        # 800k * 1 gwei = 0.0008 native
        assert gas_cost_usd(800_000, 10**9, Decimal("2500")) == Decimal("2")

    def test_zero_gas_price(self):
        assert gas_cost_usd(800_000, 0, Decimal("2500")) == Decimal("0")


class TestParseFeePercent:

    @pytest.mark.parametrize("text,tier", [
        ("0.01%", 100),
        ("0.05%", 500),
        ("0.3%", 3000),
        ("1%", 10000),
        ("fee 0.05% tier", 500),
    ])
    def test_known_tiers(self, text, tier):
        assert parse_fee_percent(text) == tier

    @pytest.mark.parametrize("text", [None, "", "no fee here", "%", "0%"])
    def test_unknown(self, text):
        assert parse_fee_percent(text) == 0
