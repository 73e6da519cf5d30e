"""Tests for Currency and Money (billing_kernel/domain/values.py)."""

from decimal import ROUND_HALF_UP, Decimal

import pytest

from billing_kernel.domain.values import Currency, Money, plain_decimal, sum_money
from billing_kernel.exceptions import CurrencyMismatchError, InvalidCurrencyError


class TestCurrency:
    def test_normalizes_code(self):
        assert Currency(" eur ").code == "EUR"

    def test_unknown_code_rejected(self):
        with pytest.raises(InvalidCurrencyError) as exc_info:
            Currency("XXX")
        assert exc_info.value.code == "INVALID_CURRENCY"

    def test_decimal_places_from_registry(self):
        assert Currency("EUR").decimal_places == 2
        assert Currency("JPY").decimal_places == 0
        assert Currency("KWD").decimal_places == 3


class TestMoneyConstruction:
    def test_of_string(self):
        m = Money.of("100.50", "EUR")
        assert m.amount == Decimal("100.50")
        assert m.currency == Currency("EUR")

    def test_float_rejected(self):
        with pytest.raises(ValueError):
            Money.of(0.1, "EUR")

    def test_bool_rejected(self):
        with pytest.raises(ValueError):
            Money.of(True, "EUR")

    def test_garbage_rejected(self):
        with pytest.raises(ValueError):
            Money.of("ten", "EUR")

    def test_zero(self):
        assert Money.zero("USD").is_zero

    def test_equality_needs_same_currency(self):
        assert Money.of("1.00", "EUR") == Money.of("1.00", "EUR")
        assert Money.of("1.00", "EUR") != Money.of("1.00", "USD")


class TestMoneyArithmetic:
    def test_add_and_subtract(self):
        a = Money.of("10.25", "EUR")
        b = Money.of("0.75", "EUR")
        assert (a + b).amount == Decimal("11.00")
        assert (a - b).amount == Decimal("9.50")

    def test_mixed_currency_add_raises(self):
        with pytest.raises(CurrencyMismatchError):
            Money.of("1", "EUR") + Money.of("1", "USD")

    def test_mixed_currency_compare_raises(self):
        with pytest.raises(CurrencyMismatchError):
            Money.of("1", "EUR") < Money.of("2", "USD")

    def test_multiply_by_decimal_is_unrounded(self):
        result = Money.of("33.33", "EUR") * Decimal("0.19")
        assert result.amount == Decimal("6.3327")

    def test_multiply_by_float_not_supported(self):
        with pytest.raises(TypeError):
            Money.of("1", "EUR") * 0.5

    def test_negation_and_abs(self):
        m = Money.of("-5.00", "EUR")
        assert (-m).amount == Decimal("5.00")
        assert abs(m).amount == Decimal("5.00")
        assert m.is_negative


class TestRounding:
    def test_half_even_default(self):
        assert Money.of("0.125", "EUR").round().amount == Decimal("0.12")
        assert Money.of("0.135", "EUR").round().amount == Decimal("0.14")

    def test_half_up_mode(self):
        assert Money.of("0.125", "EUR").round(ROUND_HALF_UP).amount == Decimal("0.13")

    def test_zero_decimal_currency(self):
        assert Money.of("1234.5", "JPY").round().amount == Decimal("1234")

    def test_three_decimal_currency(self):
        assert Money.of("1.23456", "BHD").round().amount == Decimal("1.235")

    def test_quantized_restores_scale(self):
        stored = Money.of("100.000000000", "EUR")
        assert str(stored.quantized().amount) == "100.00"


class TestSumMoney:
    def test_empty_is_zero(self):
        assert sum_money([], "EUR") == Money.zero("EUR")

    def test_sums_items(self):
        total = sum_money([Money.of("0.10", "EUR"), Money.of("0.20", "EUR")], "EUR")
        assert total.amount == Decimal("0.30")

    def test_currency_mismatch(self):
        with pytest.raises(CurrencyMismatchError):
            sum_money([Money.of("1", "USD")], "EUR")


class TestPlainDecimal:
    def test_integral(self):
        assert str(plain_decimal(Decimal("8.000000000"))) == "8"

    def test_fractional(self):
        assert str(plain_decimal(Decimal("1.500000000"))) == "1.5"
