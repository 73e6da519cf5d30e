"""
Values -- Immutable monetary value objects for billing.

Responsibility:
    Currency and Money, the only types that carry monetary amounts through
    the engines. Amounts are exact Decimals paired with an ISO 4217
    currency; the two are never separated.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Depends only on billing_kernel.domain.currency (CurrencyRegistry) and
    billing_kernel.exceptions.

Rounding:
    Money never rounds on its own. Callers round explicitly with
    ``round()`` (ROUND_HALF_EVEN by default) to the currency's minor unit,
    which is looked up in CurrencyRegistry rather than hard-coded.

Failure modes:
    - InvalidCurrencyError for unknown currency codes
    - CurrencyMismatchError when arithmetic or comparison mixes currencies
    - ValueError for amounts that are not representable as Decimal (floats
      included)
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_EVEN, Decimal, InvalidOperation

from billing_kernel.domain.currency import CurrencyRegistry
from billing_kernel.exceptions import CurrencyMismatchError, InvalidCurrencyError


@dataclass(frozen=True, slots=True)
class Currency:
    """ISO 4217 currency code, normalized to upper case on construction."""

    code: str

    def __post_init__(self) -> None:
        normalized = self.code.upper().strip() if isinstance(self.code, str) else ""
        if not CurrencyRegistry.is_valid(normalized):
            raise InvalidCurrencyError(str(self.code))
        object.__setattr__(self, "code", normalized)

    @property
    def decimal_places(self) -> int:
        return CurrencyRegistry.get_decimal_places(self.code)

    @property
    def quantum(self) -> Decimal:
        return CurrencyRegistry.get_quantum(self.code)

    def __str__(self) -> str:
        return self.code

    def __repr__(self) -> str:
        return f"Currency({self.code!r})"


def _to_decimal(value: Decimal | str | int) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float) or isinstance(value, bool):
        raise ValueError(f"Monetary amounts must not be float or bool: {value!r}")
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValueError(f"Invalid amount: {value!r}") from e


def plain_decimal(value: Decimal) -> Decimal:
    """Drop trailing zeros left by fixed-scale storage, without exponent form."""
    if value == value.to_integral_value():
        return value.quantize(Decimal(1))
    return value.normalize()


@dataclass(frozen=True, slots=True)
class Money:
    """
    Monetary amount value object.

    Guarantees:
        - Immutable and hashable
        - amount is always a Decimal, never float
        - arithmetic and ordering refuse to mix currencies
        - equality compares amount and currency

    Non-goals:
        - No currency conversion
        - No implicit rounding; call ``round()`` or ``quantized()``
    """

    amount: Decimal
    currency: Currency

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", _to_decimal(self.amount))
        if isinstance(self.currency, str):
            object.__setattr__(self, "currency", Currency(self.currency))
        elif not isinstance(self.currency, Currency):
            raise TypeError(f"currency must be Currency or str, got {type(self.currency)}")

    @classmethod
    def of(cls, amount: Decimal | str | int, currency: str | Currency) -> Money:
        """Build Money from a Decimal, numeric string or int."""
        return cls(amount=_to_decimal(amount), currency=currency)

    @classmethod
    def zero(cls, currency: str | Currency) -> Money:
        return cls(amount=Decimal("0"), currency=currency)

    @property
    def is_zero(self) -> bool:
        return self.amount == 0

    @property
    def is_positive(self) -> bool:
        return self.amount > 0

    @property
    def is_negative(self) -> bool:
        return self.amount < 0

    def round(self, rounding: str = ROUND_HALF_EVEN) -> Money:
        """Round to the currency's minor unit (banker's rounding by default)."""
        return Money(
            amount=self.amount.quantize(self.currency.quantum, rounding=rounding),
            currency=self.currency,
        )

    def quantized(self) -> Money:
        """Re-round a value read back from storage to currency scale."""
        return self.round()

    def _check_currency(self, other: Money) -> None:
        if self.currency != other.currency:
            raise CurrencyMismatchError(self.currency.code, other.currency.code)

    def __add__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other)
        return Money(amount=self.amount + other.amount, currency=self.currency)

    def __sub__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other)
        return Money(amount=self.amount - other.amount, currency=self.currency)

    def __neg__(self) -> Money:
        return Money(amount=-self.amount, currency=self.currency)

    def __abs__(self) -> Money:
        return Money(amount=abs(self.amount), currency=self.currency)

    def __mul__(self, factor: Decimal | int | str) -> Money:
        """Multiply by a scalar. The result is unrounded."""
        if isinstance(factor, Money) or isinstance(factor, float):
            return NotImplemented
        return Money(amount=self.amount * _to_decimal(factor), currency=self.currency)

    def __rmul__(self, factor: Decimal | int | str) -> Money:
        return self.__mul__(factor)

    def __lt__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other)
        return self.amount < other.amount

    def __le__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other)
        return self.amount <= other.amount

    def __gt__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other)
        return self.amount > other.amount

    def __ge__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other)
        return self.amount >= other.amount

    def __str__(self) -> str:
        return f"{self.amount} {self.currency.code}"

    def __repr__(self) -> str:
        return f"Money({self.amount!r}, {self.currency!r})"


def sum_money(items: Iterable[Money], currency: str | Currency) -> Money:
    """
    Sum Money values in one currency, starting from zero.

    Items are added as given, so summing already-rounded line totals
    yields the figure a reader of the invoice would add up by hand.
    """
    total = Money.zero(currency)
    for item in items:
        total = total + item
    return total
