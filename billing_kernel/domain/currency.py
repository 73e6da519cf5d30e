"""Currency -- ISO 4217 registry and minor-unit scale lookup."""

from dataclasses import dataclass
from decimal import Decimal
from typing import ClassVar


@dataclass(frozen=True)
class CurrencyInfo:
    """Minor-unit metadata for a single ISO 4217 currency."""

    code: str
    decimal_places: int
    name: str

    @property
    def quantum(self) -> Decimal:
        """Smallest representable step, e.g. Decimal("0.01")."""
        return Decimal(1).scaleb(-self.decimal_places)


class CurrencyRegistry:
    """
    Registry of invoiceable currencies and their minor-unit scale.

    The built-in table covers the currencies a small billing business
    realistically invoices in.  Currency master data is owned elsewhere, so
    ``register`` lets that collaborator add or override an entry at startup;
    nothing in the engines hard-codes a scale.
    """

    DEFAULT_DECIMAL_PLACES: ClassVar[int] = 2

    _BUILTIN: ClassVar[tuple[CurrencyInfo, ...]] = (
        CurrencyInfo("EUR", 2, "Euro"),
        CurrencyInfo("USD", 2, "US Dollar"),
        CurrencyInfo("GBP", 2, "Pound Sterling"),
        CurrencyInfo("CHF", 2, "Swiss Franc"),
        CurrencyInfo("CAD", 2, "Canadian Dollar"),
        CurrencyInfo("AUD", 2, "Australian Dollar"),
        CurrencyInfo("NZD", 2, "New Zealand Dollar"),
        CurrencyInfo("SEK", 2, "Swedish Krona"),
        CurrencyInfo("NOK", 2, "Norwegian Krone"),
        CurrencyInfo("DKK", 2, "Danish Krone"),
        CurrencyInfo("PLN", 2, "Polish Zloty"),
        CurrencyInfo("CZK", 2, "Czech Koruna"),
        CurrencyInfo("HUF", 2, "Hungarian Forint"),
        CurrencyInfo("INR", 2, "Indian Rupee"),
        CurrencyInfo("CNY", 2, "Chinese Yuan"),
        CurrencyInfo("SGD", 2, "Singapore Dollar"),
        CurrencyInfo("HKD", 2, "Hong Kong Dollar"),
        CurrencyInfo("BRL", 2, "Brazilian Real"),
        CurrencyInfo("MXN", 2, "Mexican Peso"),
        CurrencyInfo("ZAR", 2, "South African Rand"),
        CurrencyInfo("JPY", 0, "Japanese Yen"),
        CurrencyInfo("KRW", 0, "South Korean Won"),
        CurrencyInfo("ISK", 0, "Icelandic Krona"),
        CurrencyInfo("CLP", 0, "Chilean Peso"),
        CurrencyInfo("BHD", 3, "Bahraini Dinar"),
        CurrencyInfo("KWD", 3, "Kuwaiti Dinar"),
        CurrencyInfo("JOD", 3, "Jordanian Dinar"),
        CurrencyInfo("OMR", 3, "Omani Rial"),
        CurrencyInfo("TND", 3, "Tunisian Dinar"),
    )

    _CURRENCIES: ClassVar[dict[str, CurrencyInfo]] = {c.code: c for c in _BUILTIN}

    @classmethod
    def _normalize(cls, code: str) -> str:
        if not code or not isinstance(code, str):
            return ""
        return code.upper().strip()

    @classmethod
    def is_valid(cls, code: str) -> bool:
        """Check if a currency code is known."""
        return cls._normalize(code) in cls._CURRENCIES

    @classmethod
    def get_info(cls, code: str) -> CurrencyInfo | None:
        """Get currency information by code."""
        return cls._CURRENCIES.get(cls._normalize(code))

    @classmethod
    def get_decimal_places(cls, code: str) -> int:
        """Minor-unit scale for a currency, defaulting to two digits."""
        info = cls.get_info(code)
        return info.decimal_places if info else cls.DEFAULT_DECIMAL_PLACES

    @classmethod
    def get_quantum(cls, code: str) -> Decimal:
        """Quantize exponent for a currency (Decimal("0.01") for EUR)."""
        return Decimal(1).scaleb(-cls.get_decimal_places(code))

    @classmethod
    def register(cls, code: str, decimal_places: int, name: str | None = None) -> CurrencyInfo:
        """Add or override currency metadata supplied by master data."""
        normalized = cls._normalize(code)
        if len(normalized) != 3 or not normalized.isalpha():
            raise ValueError(f"Currency code must be 3 letters: {code!r}")
        if decimal_places < 0:
            raise ValueError("decimal_places must be non-negative")
        info = CurrencyInfo(normalized, decimal_places, name or normalized)
        cls._CURRENCIES[normalized] = info
        return info

    @classmethod
    def reset(cls) -> None:
        """Restore the built-in table. FOR TESTING ONLY."""
        cls._CURRENCIES = {c.code: c for c in cls._BUILTIN}

    @classmethod
    def all_codes(cls) -> frozenset[str]:
        """Get all known currency codes."""
        return frozenset(cls._CURRENCIES.keys())
