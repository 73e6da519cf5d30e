"""
Billing Validator.

Pure functions with deterministic behavior. No I/O.

Reconciles an invoice against the payments applied to it:

    balance = total_amount - total_applied

    |balance| <= threshold   -> valid
     balance  >  threshold   -> underbilled (client still owes)
     balance  < -threshold   -> overbilled  (client paid too much)

The threshold absorbs small differences such as bank fees; it defaults to
1.50 in the invoice currency and comes from configuration.

``validate_proposed`` answers "what would happen if this payment were
recorded?" without recording anything.  In strict mode a payment that would
overbill is not valid; ``raise_if_blocking`` turns that verdict into
PaymentWouldOverbillError for callers that prefer exceptions.

Duplicate detection is a heuristic: same invoice, type, amount and date.
It produces warnings only, never errors.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from uuid import UUID

from billing_kernel.domain.dtos import BillingStatus, Invoice, InvoiceStatus, Payment
from billing_kernel.domain.values import Money
from billing_kernel.exceptions import (
    CurrencyMismatchError,
    InvalidAmountError,
    InvoiceCancelledError,
    PaymentWouldOverbillError,
)
from billing_kernel.logging_config import get_logger
from billing_engines.payments import PaymentLedger
from billing_engines.tracer import traced_engine

logger = get_logger("engines.billing_validation")

DEFAULT_THRESHOLD = Decimal("1.50")


@dataclass(frozen=True)
class DuplicatePaymentCheck:
    has_duplicates: bool
    duplicate_count: int
    groups: tuple[tuple[Payment, ...], ...] = ()


@dataclass(frozen=True)
class BillingStatusReport:
    invoice_id: UUID
    status: BillingStatus
    invoice_total: Money
    total_paid: Money
    balance: Money
    threshold: Money
    warnings: tuple[str, ...] = ()
    duplicates: DuplicatePaymentCheck = field(
        default_factory=lambda: DuplicatePaymentCheck(False, 0)
    )


@dataclass(frozen=True)
class ProposedPaymentValidation:
    invoice_id: UUID
    proposed_amount: Money
    is_valid: bool
    warnings: tuple[str, ...]
    projected_balance: Money
    projected_status: BillingStatus
    current_balance: Money
    invoice_cancelled: bool = False

    def raise_if_blocking(self) -> None:
        """Raise the error matching why the proposed payment is not valid."""
        if self.is_valid:
            return
        if self.invoice_cancelled:
            raise InvoiceCancelledError(str(self.invoice_id))
        raise PaymentWouldOverbillError(
            str(self.invoice_id),
            str(self.proposed_amount.amount),
            str(self.projected_balance.amount),
        )


def classify(balance: Money, threshold: Money) -> BillingStatus:
    if abs(balance) <= threshold:
        return BillingStatus.VALID
    if balance > threshold:
        return BillingStatus.UNDERBILLED
    return BillingStatus.OVERBILLED


class BillingValidator:
    """Billing status, duplicate detection and pre-commit payment checks."""

    def __init__(
        self,
        default_threshold: Decimal = DEFAULT_THRESHOLD,
        ledger: PaymentLedger | None = None,
    ):
        if default_threshold < 0:
            raise ValueError("default_threshold must not be negative")
        self._default_threshold = default_threshold
        self._ledger = ledger or PaymentLedger()

    def resolve_threshold(self, invoice: Invoice, threshold: Money | None) -> Money:
        if threshold is None:
            return Money.of(self._default_threshold, invoice.currency)
        if threshold.currency != invoice.currency:
            raise CurrencyMismatchError(invoice.currency.code, threshold.currency.code)
        if threshold.is_negative:
            raise InvalidAmountError(
                str(threshold.amount), "threshold must not be negative"
            )
        return threshold

    def find_duplicate_payments(self, payments: Sequence[Payment]) -> DuplicatePaymentCheck:
        """Group payments sharing invoice, type, amount and date."""
        buckets: dict[tuple, list[Payment]] = defaultdict(list)
        for payment in payments:
            key = (
                payment.invoice_id,
                payment.payment_type,
                payment.amount,
                payment.payment_date,
            )
            buckets[key].append(payment)

        groups = tuple(tuple(group) for group in buckets.values() if len(group) > 1)
        duplicate_count = sum(len(group) - 1 for group in groups)
        if groups:
            logger.warning(
                "possible_duplicate_payments",
                extra={
                    "group_count": len(groups),
                    "duplicate_count": duplicate_count,
                },
            )
        return DuplicatePaymentCheck(
            has_duplicates=bool(groups),
            duplicate_count=duplicate_count,
            groups=groups,
        )

    @traced_engine("billing_validation", "1.0", fingerprint_fields=("threshold",))
    def status(
        self,
        invoice: Invoice,
        payments: Sequence[Payment],
        threshold: Money | None = None,
    ) -> BillingStatusReport:
        """Point-in-time reconciliation of ``invoice`` against its payments."""
        threshold = self.resolve_threshold(invoice, threshold)
        applied = self._ledger.applied(invoice, payments)
        total_paid = self._ledger.amount_paid(invoice, applied)
        balance = invoice.total_amount - total_paid
        status = classify(balance, threshold)
        duplicates = self.find_duplicate_payments(applied)

        warnings: list[str] = []
        currency = invoice.currency.code
        if status == BillingStatus.OVERBILLED:
            warnings.append(f"Invoice is overbilled by {abs(balance).amount} {currency}")
        elif status == BillingStatus.UNDERBILLED:
            warnings.append(f"Outstanding balance of {balance.amount} {currency}")
        if duplicates.has_duplicates:
            warnings.append(
                f"{duplicates.duplicate_count} possible duplicate payment(s) detected"
            )
        if applied and invoice.status == InvoiceStatus.DRAFT:
            warnings.append("Payments are recorded against a draft invoice")
        if applied and invoice.status == InvoiceStatus.CANCELLED:
            warnings.append("Payments are recorded against a cancelled invoice")

        logger.info(
            "billing_status_computed",
            extra={
                "invoice_id": str(invoice.id),
                "status": status.value,
                "invoice_total": str(invoice.total_amount.amount),
                "total_paid": str(total_paid.amount),
                "balance": str(balance.amount),
                "threshold": str(threshold.amount),
            },
        )
        return BillingStatusReport(
            invoice_id=invoice.id,
            status=status,
            invoice_total=invoice.total_amount,
            total_paid=total_paid,
            balance=balance,
            threshold=threshold,
            warnings=tuple(warnings),
            duplicates=duplicates,
        )

    def validate_proposed(
        self,
        invoice: Invoice,
        payments: Sequence[Payment],
        proposed_amount: Money,
        threshold: Money | None = None,
        strict: bool = False,
    ) -> ProposedPaymentValidation:
        """
        Project the effect of a payment of ``proposed_amount``.  Records nothing.

        A zero amount is allowed and only informational.  A negative amount
        raises InvalidAmountError.
        """
        if proposed_amount.is_negative:
            raise InvalidAmountError(
                str(proposed_amount.amount), "proposed amount must not be negative"
            )
        if proposed_amount.currency != invoice.currency:
            raise CurrencyMismatchError(
                invoice.currency.code, proposed_amount.currency.code
            )

        current = self.status(invoice, payments, threshold)
        projected_balance = current.balance - proposed_amount
        projected_status = classify(projected_balance, current.threshold)
        currency = invoice.currency.code

        warnings: list[str] = []
        is_valid = True
        if invoice.status == InvoiceStatus.CANCELLED:
            warnings.append("Invoice is cancelled and accepts no payments")
            is_valid = False
        elif invoice.status == InvoiceStatus.DRAFT:
            warnings.append("Invoice is still a draft")
        if proposed_amount.is_zero:
            warnings.append("Proposed amount is zero")
        if projected_status == BillingStatus.OVERBILLED:
            warnings.append(
                f"Payment would overbill the invoice by "
                f"{abs(projected_balance).amount} {currency}"
            )
            if strict:
                is_valid = False
        elif projected_status == BillingStatus.UNDERBILLED and not proposed_amount.is_zero:
            warnings.append(
                f"Balance of {projected_balance.amount} {currency} would remain outstanding"
            )
        if current.duplicates.has_duplicates:
            warnings.append("Invoice already has possible duplicate payments")

        logger.info(
            "proposed_payment_validated",
            extra={
                "invoice_id": str(invoice.id),
                "proposed_amount": str(proposed_amount.amount),
                "projected_balance": str(projected_balance.amount),
                "projected_status": projected_status.value,
                "strict": strict,
                "is_valid": is_valid,
            },
        )
        return ProposedPaymentValidation(
            invoice_id=invoice.id,
            proposed_amount=proposed_amount,
            is_valid=is_valid,
            warnings=tuple(warnings),
            projected_balance=projected_balance,
            projected_status=projected_status,
            current_balance=current.balance,
            invoice_cancelled=invoice.status == InvoiceStatus.CANCELLED,
        )
