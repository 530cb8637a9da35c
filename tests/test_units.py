"""Tests for exact amount and fee-rate conversions."""

from decimal import Decimal

import pytest

from agentpay.core.types import Token
from agentpay.utils.units import (
    decimal_places,
    from_minor_units,
    gwei_to_wei,
    to_decimal,
    to_minor_units,
    wei_to_gwei,
)


class TestToDecimal:
    def test_float_uses_shortest_repr(self):
        assert to_decimal(0.1) == Decimal("0.1")

    def test_string_and_int(self):
        assert to_decimal(" 2.50 ") == Decimal("2.50")
        assert to_decimal(3) == Decimal(3)

    @pytest.mark.parametrize("value", ["abc", "", "NaN", "Infinity", True, None])
    def test_rejects_non_numbers(self, value):
        with pytest.raises(ValueError):
            to_decimal(value)


class TestMinorUnits:
    def test_tenth_of_eth(self):
        assert to_minor_units(Decimal("0.1"), Token.ETH) == 100000000000000000

    def test_usdc_has_six_decimals(self):
        assert to_minor_units(Decimal("12.345678"), Token.USDC) == 12345678

    def test_whole_amount_with_trailing_zeros(self):
        assert to_minor_units(Decimal("1.500"), Token.USDT) == 1500000
        assert to_minor_units(Decimal("1E+2"), Token.CRO) == 100 * 10**18

    def test_too_precise_is_rejected(self):
        with pytest.raises(ValueError):
            to_minor_units(Decimal("0.0000001"), Token.USDC)

    def test_large_amount_is_exact(self):
        amount = Decimal("123456789.123456789123456789")
        assert to_minor_units(amount, Token.ETH) == 123456789123456789123456789

    def test_from_minor_units(self):
        assert from_minor_units(100000000000000000, Token.ETH) == Decimal("0.1")
        assert from_minor_units(2500000, Token.USDC) == Decimal("2.5")


def test_decimal_places():
    assert decimal_places(Decimal("1.2300")) == 2
    assert decimal_places(Decimal("100")) == 0


def test_fee_rate_conversions():
    assert gwei_to_wei(Decimal("20")) == 20_000_000_000
    assert gwei_to_wei(Decimal("1.0000000009")) == 1_000_000_000
    assert wei_to_gwei(25_000_000_000) == Decimal("25")
