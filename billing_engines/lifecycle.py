"""
Invoice Lifecycle.

Pure functions with deterministic behavior. No I/O.

Only three statuses are persisted:

    draft --send--> sent --cancel--> cancelled
      \\                                 ^
       +-------------cancel-------------+

Paid, partially paid and overdue are projections computed by
``display_status`` at read time from the payments and the current date, so
the stored status can never drift from the payment ledger.

Invoice numbers (``INV-YYYYMMDD-NNN``) are assigned once, at draft
creation, from the per-account ``InvoiceNumberSequence``.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date
from decimal import Decimal
from uuid import UUID

from billing_kernel.domain.dtos import DisplayStatus, Invoice, InvoiceStatus
from billing_kernel.domain.values import Currency, Money
from billing_kernel.domain.workflow import Transition, Workflow
from billing_kernel.exceptions import (
    AlreadyCancelledError,
    InvalidTransitionError,
    InvoiceHasDependentsError,
    InvoiceNotEditableError,
    InvoiceValidationError,
)
from billing_kernel.logging_config import get_logger

logger = get_logger("engines.lifecycle")

__all__ = [
    "INVOICE_WORKFLOW",
    "cancel",
    "create_draft",
    "display_status",
    "ensure_deletable",
    "ensure_items_editable",
    "format_invoice_number",
    "send",
]


INVOICE_WORKFLOW = Workflow(
    name="invoice",
    description="Invoice lifecycle",
    initial_state=InvoiceStatus.DRAFT.value,
    states=(
        InvoiceStatus.DRAFT.value,
        InvoiceStatus.SENT.value,
        InvoiceStatus.CANCELLED.value,
    ),
    transitions=(
        Transition(from_state="draft", to_state="sent", action="send"),
        Transition(from_state="draft", to_state="cancelled", action="cancel"),
        Transition(from_state="sent", to_state="cancelled", action="cancel"),
    ),
    terminal_states=(InvoiceStatus.CANCELLED.value,),
)


def format_invoice_number(
    issue_date: date, sequence: int, prefix: str = "INV", width: int = 3
) -> str:
    """``INV-20240115-001``; sequences wider than ``width`` digits just grow."""
    if sequence <= 0:
        raise ValueError("Invoice sequence must be positive")
    return f"{prefix}-{issue_date:%Y%m%d}-{sequence:0{width}d}"


def create_draft(
    *,
    invoice_id: UUID,
    account_id: UUID,
    client_id: UUID,
    invoice_number: str,
    issue_date: date,
    due_date: date,
    currency: Currency | str,
    tax_rate: Decimal = Decimal("0"),
    exclude_from_tax: bool = False,
    project_id: UUID | None = None,
    invoice_headline: str | None = None,
    invoice_text: str | None = None,
    footer_text: str | None = None,
    notes: str | None = None,
    delivery_date: str | None = None,
) -> Invoice:
    """Build an empty draft invoice with zero totals."""
    if not invoice_number or not invoice_number.strip():
        raise InvoiceValidationError("invoice_number", "must not be empty")
    if due_date < issue_date:
        raise InvoiceValidationError("due_date", "must not be before issue_date")
    if not isinstance(tax_rate, Decimal):
        raise InvoiceValidationError("tax_rate", "must be a Decimal")
    if tax_rate < 0:
        raise InvoiceValidationError("tax_rate", "must not be negative")

    currency = currency if isinstance(currency, Currency) else Currency(currency)
    zero = Money.zero(currency).round()
    invoice = Invoice(
        id=invoice_id,
        account_id=account_id,
        client_id=client_id,
        project_id=project_id,
        invoice_number=invoice_number.strip(),
        status=InvoiceStatus.DRAFT,
        issue_date=issue_date,
        due_date=due_date,
        currency=currency,
        sub_total=zero,
        tax_rate=tax_rate,
        tax_amount=zero,
        total_amount=zero,
        exclude_from_tax=exclude_from_tax,
        invoice_headline=invoice_headline,
        invoice_text=invoice_text,
        footer_text=footer_text,
        notes=notes,
        delivery_date=delivery_date,
    )
    logger.info(
        "invoice_draft_created",
        extra={
            "invoice_id": str(invoice.id),
            "invoice_number": invoice.invoice_number,
            "client_id": str(client_id),
            "currency": currency.code,
        },
    )
    return invoice


def _transition(invoice: Invoice, action: str) -> Invoice:
    transition = INVOICE_WORKFLOW.find_transition(invoice.status.value, action)
    if transition is None:
        logger.warning(
            "invoice_transition_rejected",
            extra={
                "invoice_id": str(invoice.id),
                "current_status": invoice.status.value,
                "action": action,
            },
        )
        raise InvalidTransitionError(str(invoice.id), invoice.status.value, action)

    logger.info(
        "invoice_status_changed",
        extra={
            "invoice_id": str(invoice.id),
            "from_status": transition.from_state,
            "to_status": transition.to_state,
            "action": action,
        },
    )
    return replace(invoice, status=InvoiceStatus(transition.to_state))


def send(invoice: Invoice) -> Invoice:
    """draft -> sent.  Any other state raises InvalidTransitionError."""
    return _transition(invoice, "send")


def cancel(invoice: Invoice) -> Invoice:
    """
    draft|sent -> cancelled.

    Cancelling twice is reported, not ignored: AlreadyCancelledError
    carries the current status so the caller can show it.
    """
    if invoice.is_cancelled:
        raise AlreadyCancelledError(str(invoice.id))
    return _transition(invoice, "cancel")


def ensure_items_editable(invoice: Invoice) -> None:
    """Items change directly only on drafts; issued invoices need a correction."""
    if not invoice.is_draft:
        raise InvoiceNotEditableError(str(invoice.id), invoice.status.value)


def ensure_deletable(invoice: Invoice, payment_count: int) -> None:
    """Only drafts without payments may be deleted."""
    if not invoice.is_draft or payment_count > 0:
        raise InvoiceHasDependentsError(
            str(invoice.id), invoice.status.value, payment_count
        )


def display_status(
    invoice: Invoice,
    amount_paid: Money,
    threshold: Money,
    as_of: date,
) -> DisplayStatus:
    """
    Status shown to users, derived at read time.

    Priority: cancelled and draft pass through; then paid (balance within
    threshold, or nothing to pay), overdue (past due with a balance),
    partially paid (something received), sent.
    """
    if invoice.status == InvoiceStatus.CANCELLED:
        return DisplayStatus.CANCELLED
    if invoice.status == InvoiceStatus.DRAFT:
        return DisplayStatus.DRAFT

    balance = invoice.total_amount - amount_paid
    if invoice.total_amount.is_zero or balance <= threshold:
        return DisplayStatus.PAID
    if as_of > invoice.due_date:
        return DisplayStatus.OVERDUE
    if amount_paid.is_positive:
        return DisplayStatus.PARTIALLY_PAID
    return DisplayStatus.SENT
