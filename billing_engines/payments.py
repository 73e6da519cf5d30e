"""
Payment Ledger.

Pure functions with deterministic behavior. No I/O.

Payments are append-only facts.  Only payments attached to an invoice take
part in its reconciliation:

    total_applied        = sum(payments) - sum(refunds)
    tax_relevant_applied = the same, excluding exclude_from_tax records

Expenses are recorded with the same shape but never count toward what a
client has paid.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from uuid import UUID

from billing_kernel.domain.dtos import Invoice, Payment, PaymentType
from billing_kernel.domain.values import Money
from billing_kernel.exceptions import (
    CurrencyMismatchError,
    InvalidAmountError,
    InvalidPaymentError,
    InvoiceCancelledError,
)
from billing_kernel.logging_config import get_logger

logger = get_logger("engines.payments")


@dataclass(frozen=True)
class PaymentTotals:
    total_applied: Money
    tax_relevant_applied: Money
    payment_count: int
    refund_count: int


@dataclass(frozen=True)
class PaymentBreakdown:
    """Payments on one invoice, newest first, with their totals."""

    invoice_id: UUID
    payments: tuple[Payment, ...]
    totals: PaymentTotals
    balance: Money


def _signed(payment: Payment) -> Money:
    if payment.payment_type == PaymentType.REFUND:
        return -payment.amount
    return payment.amount


class PaymentLedger:
    """Records payments and sums what has been applied to an invoice."""

    def record(
        self,
        *,
        payment_id: UUID,
        account_id: UUID,
        amount: Money,
        payment_type: PaymentType,
        payment_date: date,
        invoice: Invoice | None = None,
        client_id: UUID | None = None,
        exclude_from_tax: bool = False,
        payment_method: str | None = None,
        transaction_id: str | None = None,
        notes: str | None = None,
    ) -> Payment:
        """
        Validate and build a new payment record.

        Raises:
            InvalidAmountError: amount is zero, negative, or finer than the
                currency's minor unit.
            InvalidPaymentError: a refund without an invoice.
            InvoiceCancelledError: the invoice is cancelled.
            CurrencyMismatchError: amount currency differs from the invoice.
        """
        if not amount.is_positive:
            raise InvalidAmountError(str(amount.amount))
        if amount.round().amount != amount.amount:
            raise InvalidAmountError(
                str(amount.amount),
                f"more decimal places than {amount.currency.code} allows",
            )
        if payment_type == PaymentType.REFUND and invoice is None:
            raise InvalidPaymentError("a refund must reference an invoice")

        if invoice is not None:
            if invoice.is_cancelled:
                logger.warning(
                    "payment_rejected_invoice_cancelled",
                    extra={"invoice_id": str(invoice.id), "amount": str(amount.amount)},
                )
                raise InvoiceCancelledError(str(invoice.id))
            if amount.currency != invoice.currency:
                raise CurrencyMismatchError(invoice.currency.code, amount.currency.code)
            client_id = client_id or invoice.client_id

        payment = Payment(
            id=payment_id,
            account_id=account_id,
            invoice_id=invoice.id if invoice is not None else None,
            client_id=client_id,
            amount=amount,
            payment_type=payment_type,
            payment_date=payment_date,
            exclude_from_tax=exclude_from_tax,
            payment_method=payment_method,
            transaction_id=transaction_id,
            notes=notes,
        )
        logger.info(
            "payment_recorded",
            extra={
                "payment_id": str(payment.id),
                "invoice_id": str(payment.invoice_id) if payment.invoice_id else None,
                "payment_type": payment_type.value,
                "amount": str(amount.amount),
                "currency": amount.currency.code,
            },
        )
        return payment

    def applied(self, invoice: Invoice, payments: Sequence[Payment]) -> list[Payment]:
        """Payments and refunds attached to ``invoice``; expenses excluded."""
        return [
            p
            for p in payments
            if p.invoice_id == invoice.id and p.payment_type != PaymentType.EXPENSE
        ]

    def totals(self, invoice: Invoice, payments: Sequence[Payment]) -> PaymentTotals:
        total = Money.zero(invoice.currency).round()
        tax_relevant = total
        payment_count = 0
        refund_count = 0
        for payment in self.applied(invoice, payments):
            if payment.amount.currency != invoice.currency:
                raise CurrencyMismatchError(
                    invoice.currency.code, payment.amount.currency.code
                )
            signed = _signed(payment)
            total = total + signed
            if not payment.exclude_from_tax:
                tax_relevant = tax_relevant + signed
            if payment.payment_type == PaymentType.REFUND:
                refund_count += 1
            else:
                payment_count += 1
        return PaymentTotals(
            total_applied=total,
            tax_relevant_applied=tax_relevant,
            payment_count=payment_count,
            refund_count=refund_count,
        )

    def amount_paid(self, invoice: Invoice, payments: Sequence[Payment]) -> Money:
        return self.totals(invoice, payments).total_applied

    def breakdown(self, invoice: Invoice, payments: Sequence[Payment]) -> PaymentBreakdown:
        applied = self.applied(invoice, payments)
        ordered = sorted(
            applied,
            key=lambda p: (
                p.payment_date,
                p.recorded_at.timestamp() if p.recorded_at else 0.0,
            ),
            reverse=True,
        )
        totals = self.totals(invoice, applied)
        return PaymentBreakdown(
            invoice_id=invoice.id,
            payments=tuple(ordered),
            totals=totals,
            balance=invoice.total_amount - totals.total_applied,
        )
