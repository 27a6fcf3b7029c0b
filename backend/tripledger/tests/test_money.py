"""
Tests for currency helpers.
"""
from decimal import Decimal

import pytest

from tripledger.core.money import from_minor, minor_exponent, normalize_currency, to_minor


class TestCurrency:

    def test_normalize(self):
        assert normalize_currency(" inr ") == "INR"

    @pytest.mark.parametrize("code", ["", "RUPEE", "U$D", None])
    def test_reject_invalid(self, code):
        with pytest.raises(ValueError):
            normalize_currency(code)

    def test_exponents(self):
        assert minor_exponent("INR") == 2
        assert minor_exponent("jpy") == 0
        assert minor_exponent("KWD") == 3


class TestConversion:

    def test_to_minor(self):
        assert to_minor(Decimal("300"), "INR") == 30000
        assert to_minor("12.34", "USD") == 1234
        assert to_minor(1500, "JPY") == 1500
        assert to_minor("1.234", "KWD") == 1234

    def test_rounds_half_up(self):
        assert to_minor("0.005", "USD") == 1
        assert to_minor("0.004", "USD") == 0

    def test_strict_rejects_extra_precision(self):
        with pytest.raises(ValueError):
            to_minor("10.001", "INR", strict=True)
        assert to_minor("10.10", "INR", strict=True) == 1010

    @pytest.mark.parametrize("amount", ["abc", "NaN", "Infinity"])
    def test_invalid_amount(self, amount):
        with pytest.raises(ValueError):
            to_minor(amount, "USD")

    def test_from_minor(self):
        assert from_minor(30000, "INR") == Decimal("300.00")
        assert str(from_minor(-1234, "USD")) == "-12.34"
        assert str(from_minor(1500, "JPY")) == "1500"
        assert str(from_minor(5, "KWD")) == "0.005"
