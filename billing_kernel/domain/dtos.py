"""
DTOs -- Frozen billing data structures.

Responsibility:
    The nouns that flow between selectors, engines and services: invoices
    and their line items, payments, time entries, projects, and the inputs
    that describe a requested change (``LineItemSpec``, ``InvoiceChanges``).

Architecture position:
    Kernel > Domain -- pure data, zero I/O.  Engines accept and return these
    objects and never see ORM entities; ``to_dto()`` / ``from_dto()`` on the
    ORM models are the only converters.

Invariants:
    - Every monetary field is ``Money``, never a bare Decimal or float.
    - Only ``draft``, ``sent`` and ``cancelled`` are persisted statuses;
      paid, partially paid and overdue are derived (see ``DisplayStatus``).
    - Instances are immutable.  An engine that "changes" an invoice returns
      a new ``Invoice``; the input is untouched, which is what makes line
      item replacement all-or-nothing.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from billing_kernel.domain.values import Currency, Money


class InvoiceStatus(str, Enum):
    """Persisted invoice lifecycle states."""

    DRAFT = "draft"
    SENT = "sent"
    CANCELLED = "cancelled"


class DisplayStatus(str, Enum):
    """Read-time status shown to users; never stored."""

    DRAFT = "draft"
    SENT = "sent"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class PaymentType(str, Enum):
    PAYMENT = "payment"
    REFUND = "refund"
    EXPENSE = "expense"


class RateType(str, Enum):
    HOURLY = "hourly"
    DAILY = "daily"
    FIXED = "fixed"


class BillingStatus(str, Enum):
    """Reconciliation classification of an invoice against its payments."""

    VALID = "valid"
    UNDERBILLED = "underbilled"
    OVERBILLED = "overbilled"


@dataclass(frozen=True, slots=True)
class LineItemSpec:
    """
    A requested line item, before the ledger assigns an id and total.

    ``total_price`` is optional.  When given it must equal
    ``round(quantity * unit_price)`` exactly; it is checked, never fixed up.
    """

    description: str
    quantity: Decimal
    unit_price: Money
    total_price: Money | None = None
    rate_type: RateType = RateType.FIXED
    time_entry_ids: tuple[UUID, ...] = ()


@dataclass(frozen=True, slots=True)
class LineItem:
    """A line item owned by exactly one invoice."""

    id: UUID
    description: str
    quantity: Decimal
    unit_price: Money
    total_price: Money
    rate_type: RateType = RateType.FIXED
    time_entry_ids: tuple[UUID, ...] = ()

    @property
    def source_time_entry_id(self) -> UUID | None:
        """First billed time entry, or None for manual items."""
        return self.time_entry_ids[0] if self.time_entry_ids else None


@dataclass(frozen=True, slots=True)
class Invoice:
    """
    An invoice with its line items and derived totals.

    ``sub_total``, ``tax_amount`` and ``total_amount`` are set only by
    ``LineItemLedger.recompute_totals``.
    """

    id: UUID
    account_id: UUID
    client_id: UUID
    invoice_number: str
    status: InvoiceStatus
    issue_date: date
    due_date: date
    currency: Currency
    sub_total: Money
    tax_rate: Decimal
    tax_amount: Money
    total_amount: Money
    exclude_from_tax: bool = False
    items: tuple[LineItem, ...] = ()
    project_id: UUID | None = None
    correction_of_invoice_id: UUID | None = None
    corrected_by_invoice_id: UUID | None = None
    correction_reason: str | None = None
    correction_date: date | None = None
    original_snapshot: dict[str, Any] | None = field(default=None, hash=False)
    invoice_headline: str | None = None
    invoice_text: str | None = None
    footer_text: str | None = None
    notes: str | None = None
    delivery_date: str | None = None

    @property
    def is_draft(self) -> bool:
        return self.status == InvoiceStatus.DRAFT

    @property
    def is_cancelled(self) -> bool:
        return self.status == InvoiceStatus.CANCELLED

    @property
    def billed_time_entry_ids(self) -> frozenset[UUID]:
        return frozenset(tid for item in self.items for tid in item.time_entry_ids)


@dataclass(frozen=True, slots=True)
class Payment:
    """
    A recorded payment, refund or expense.  Append-only.

    Payments without ``invoice_id`` are account-level records and never
    take part in invoice reconciliation.
    """

    id: UUID
    account_id: UUID
    amount: Money
    payment_type: PaymentType
    payment_date: date
    invoice_id: UUID | None = None
    client_id: UUID | None = None
    exclude_from_tax: bool = False
    payment_method: str | None = None
    transaction_id: str | None = None
    notes: str | None = None
    recorded_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class TimeEntry:
    """Tracked work; read-only input to invoice generation."""

    id: UUID
    entry_date: date
    description: str = ""
    project_id: UUID | None = None
    duration_hours: Decimal | None = None
    started_at: datetime | None = None
    ended_at: datetime | None = None
    hourly_rate: Decimal | None = None
    task_name: str | None = None
    is_billable: bool = True


@dataclass(frozen=True, slots=True)
class Project:
    """Project master data; read-only input."""

    id: UUID
    name: str
    currency: Currency
    client_id: UUID | None = None
    hourly_rate: Decimal | None = None


@dataclass(frozen=True, slots=True)
class InvoiceChanges:
    """
    Requested edits for a correction.  ``None`` means "keep the source value".

    ``items``, when given, fully replaces the source line items.
    """

    reason: str
    issue_date: date | None = None
    due_date: date | None = None
    invoice_headline: str | None = None
    invoice_text: str | None = None
    footer_text: str | None = None
    notes: str | None = None
    items: tuple[LineItemSpec, ...] | None = None
    tax_rate: Decimal | None = None
    exclude_from_tax: bool | None = None
