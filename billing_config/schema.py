"""
Billing configuration schema (``billing_config.schema``).

Defaults reflect a small invoicing business: EUR, net 30, 8-hour days, a
1.50 reconciliation threshold.  Override with YAML (see ``loader``) or at
instantiation:

    config = BillingConfig(default_currency="USD", default_threshold=Decimal("0.50"))
"""

from dataclasses import dataclass, field
from decimal import ROUND_HALF_EVEN, ROUND_HALF_UP, Decimal
from typing import Any, Self

from billing_kernel.domain.currency import CurrencyRegistry
from billing_kernel.logging_config import get_logger

logger = get_logger("config.schema")

_VALID_ROUNDING = {ROUND_HALF_EVEN, ROUND_HALF_UP}
_VALID_CORRECTION_STATUS = {"sent"}


@dataclass(frozen=True)
class CurrencyOverride:
    """Currency metadata supplied by the master-data collaborator."""
    code: str
    decimal_places: int
    name: str | None = None

    def __post_init__(self):
        if len(self.code.strip()) != 3:
            raise ValueError(f"currency code must have 3 letters, got '{self.code}'")
        if self.decimal_places < 0:
            raise ValueError("decimal_places cannot be negative")


@dataclass
class BillingConfig:
    """Configuration for the billing engines and invoice service."""

    default_currency: str = "EUR"
    default_threshold: Decimal = Decimal("1.50")
    default_payment_terms_days: int = 30
    hours_per_day: Decimal = Decimal("8")
    invoice_number_prefix: str = "INV"
    invoice_number_width: int = 3
    rounding: str = ROUND_HALF_EVEN
    correction_status: str = "sent"
    currencies: tuple[CurrencyOverride, ...] = field(default_factory=tuple)

    def __post_init__(self):
        self.default_threshold = Decimal(str(self.default_threshold))
        self.hours_per_day = Decimal(str(self.hours_per_day))

        for override in self.currencies:
            CurrencyRegistry.register(override.code, override.decimal_places, override.name)

        if not CurrencyRegistry.is_valid(self.default_currency):
            raise ValueError(f"default_currency '{self.default_currency}' is not a known currency")
        if self.default_threshold < 0:
            raise ValueError("default_threshold cannot be negative")
        if self.default_payment_terms_days < 0:
            raise ValueError("default_payment_terms_days cannot be negative")
        if self.hours_per_day <= 0 or self.hours_per_day > 24:
            raise ValueError("hours_per_day must be in (0, 24]")
        if not self.invoice_number_prefix or not self.invoice_number_prefix.strip():
            raise ValueError("invoice_number_prefix cannot be empty")
        if self.invoice_number_width < 1:
            raise ValueError("invoice_number_width must be at least 1")
        if self.rounding not in _VALID_ROUNDING:
            raise ValueError(
                f"rounding must be one of {sorted(_VALID_ROUNDING)}, got '{self.rounding}'"
            )
        if self.correction_status not in _VALID_CORRECTION_STATUS:
            raise ValueError(
                f"correction_status must be one of {sorted(_VALID_CORRECTION_STATUS)}, "
                f"got '{self.correction_status}'"
            )

        logger.info(
            "billing_config_initialized",
            extra={
                "default_currency": self.default_currency,
                "default_threshold": str(self.default_threshold),
                "default_payment_terms_days": self.default_payment_terms_days,
                "hours_per_day": str(self.hours_per_day),
                "rounding": self.rounding,
                "currency_overrides": [c.code for c in self.currencies],
            },
        )

    @classmethod
    def with_defaults(cls) -> Self:
        logger.info("billing_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        """Create config from a dictionary (e.g. parsed YAML)."""
        logger.info(
            "billing_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        data = dict(data)
        unknown = set(data) - set(cls.__dataclass_fields__)
        if unknown:
            raise ValueError(f"Unknown billing config keys: {sorted(unknown)}")
        if "currencies" in data:
            data["currencies"] = tuple(
                CurrencyOverride(**c) if isinstance(c, dict) else c
                for c in data["currencies"] or ()
            )
        for key in ("default_threshold", "hours_per_day"):
            if key in data:
                data[key] = Decimal(str(data[key]))
        return cls(**data)

    def to_dict(self) -> dict[str, Any]:
        return {
            "default_currency": self.default_currency,
            "default_threshold": str(self.default_threshold),
            "default_payment_terms_days": self.default_payment_terms_days,
            "hours_per_day": str(self.hours_per_day),
            "invoice_number_prefix": self.invoice_number_prefix,
            "invoice_number_width": self.invoice_number_width,
            "rounding": self.rounding,
            "correction_status": self.correction_status,
            "currencies": [
                {"code": c.code, "decimal_places": c.decimal_places, "name": c.name}
                for c in self.currencies
            ],
        }
