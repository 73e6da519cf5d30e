"""
Invoice ORM models (``billing_kernel.models.invoice``).

Maps the frozen ``Invoice`` and ``LineItem`` DTOs to the ``invoices``,
``invoice_line_items`` and ``invoice_line_item_time_entries`` tables.

Guarantees:
    - invoice_number is unique per account.
    - correction_of_invoice_id is unique: an invoice is corrected directly
      at most once.
    - a time entry appears at most once on any one invoice.
    - money is stored as an amount column plus the invoice currency and
      re-rounded to currency scale on load.
"""

from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from billing_kernel.db.base import TrackedBase
from billing_kernel.domain.values import plain_decimal


class InvoiceModel(TrackedBase):
    """ORM model for invoices.  Line items live in a child table."""

    __tablename__ = "invoices"

    __table_args__ = (
        UniqueConstraint(
            "account_id", "invoice_number", name="uq_invoices_account_number"
        ),
        UniqueConstraint(
            "correction_of_invoice_id", name="uq_invoices_correction_of"
        ),
        Index("idx_invoices_client_id", "client_id"),
        Index("idx_invoices_status", "status"),
    )

    account_id: Mapped[UUID] = mapped_column(nullable=False)
    client_id: Mapped[UUID] = mapped_column(nullable=False)
    project_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("projects.id"), nullable=True
    )
    invoice_number: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="draft")
    issue_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    sub_total: Mapped[Decimal] = mapped_column(nullable=False)
    tax_rate: Mapped[Decimal] = mapped_column(nullable=False)
    tax_amount: Mapped[Decimal] = mapped_column(nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(nullable=False)
    exclude_from_tax: Mapped[bool] = mapped_column(Boolean, default=False)

    correction_of_invoice_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("invoices.id"), nullable=True
    )
    corrected_by_invoice_id: Mapped[UUID | None] = mapped_column(nullable=True)
    correction_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    correction_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    original_snapshot: Mapped[dict[str, Any] | None] = mapped_column(
        JSON, nullable=True
    )

    invoice_headline: Mapped[str | None] = mapped_column(String(255), nullable=True)
    invoice_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    footer_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    delivery_date: Mapped[str | None] = mapped_column(String(7), nullable=True)

    items: Mapped[list["LineItemModel"]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="LineItemModel.position",
    )

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from billing_kernel.domain.dtos import Invoice, InvoiceStatus
        from billing_kernel.domain.values import Currency, Money

        currency = Currency(self.currency)
        return Invoice(
            id=self.id,
            account_id=self.account_id,
            client_id=self.client_id,
            project_id=self.project_id,
            invoice_number=self.invoice_number,
            status=InvoiceStatus(self.status),
            issue_date=self.issue_date,
            due_date=self.due_date,
            currency=currency,
            sub_total=Money(self.sub_total, currency).quantized(),
            tax_rate=plain_decimal(self.tax_rate),
            tax_amount=Money(self.tax_amount, currency).quantized(),
            total_amount=Money(self.total_amount, currency).quantized(),
            exclude_from_tax=self.exclude_from_tax,
            items=tuple(item.to_dto(currency) for item in self.items),
            correction_of_invoice_id=self.correction_of_invoice_id,
            corrected_by_invoice_id=self.corrected_by_invoice_id,
            correction_reason=self.correction_reason,
            correction_date=self.correction_date,
            original_snapshot=self.original_snapshot,
            invoice_headline=self.invoice_headline,
            invoice_text=self.invoice_text,
            footer_text=self.footer_text,
            notes=self.notes,
            delivery_date=self.delivery_date,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID | None = None) -> "InvoiceModel":
        """Create ORM model (with its items) from a frozen dataclass."""
        model = cls(id=dto.id, account_id=dto.account_id, created_by_id=created_by_id)
        model.apply_dto(dto)
        return model

    def apply_dto(self, dto) -> None:
        """Copy header fields from ``dto``.  Items are synced separately."""
        self.client_id = dto.client_id
        self.project_id = dto.project_id
        self.invoice_number = dto.invoice_number
        self.status = dto.status.value
        self.issue_date = dto.issue_date
        self.due_date = dto.due_date
        self.currency = dto.currency.code
        self.sub_total = dto.sub_total.amount
        self.tax_rate = dto.tax_rate
        self.tax_amount = dto.tax_amount.amount
        self.total_amount = dto.total_amount.amount
        self.exclude_from_tax = dto.exclude_from_tax
        self.correction_of_invoice_id = dto.correction_of_invoice_id
        self.corrected_by_invoice_id = dto.corrected_by_invoice_id
        self.correction_reason = dto.correction_reason
        self.correction_date = dto.correction_date
        self.original_snapshot = dto.original_snapshot
        self.invoice_headline = dto.invoice_headline
        self.invoice_text = dto.invoice_text
        self.footer_text = dto.footer_text
        self.notes = dto.notes
        self.delivery_date = dto.delivery_date

    def build_items(self, items, start: int = 0) -> list["LineItemModel"]:
        return [
            LineItemModel.from_dto(item, invoice_id=self.id, position=position)
            for position, item in enumerate(items, start=start)
        ]

    def __repr__(self) -> str:
        return f"<InvoiceModel {self.invoice_number} [{self.status}]>"


class LineItemModel(TrackedBase):
    """ORM model for invoice line items."""

    __tablename__ = "invoice_line_items"

    __table_args__ = (
        Index("idx_invoice_line_items_invoice_id", "invoice_id"),
    )

    invoice_id: Mapped[UUID] = mapped_column(
        ForeignKey("invoices.id"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    quantity: Mapped[Decimal] = mapped_column(nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(nullable=False)
    total_price: Mapped[Decimal] = mapped_column(nullable=False)
    rate_type: Mapped[str] = mapped_column(String(10), default="fixed")

    invoice: Mapped["InvoiceModel"] = relationship(back_populates="items")
    time_entry_links: Mapped[list["LineItemTimeEntryModel"]] = relationship(
        back_populates="line_item",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="LineItemTimeEntryModel.position",
    )

    def to_dto(self, currency):
        from billing_kernel.domain.dtos import LineItem, RateType
        from billing_kernel.domain.values import Money

        return LineItem(
            id=self.id,
            description=self.description,
            quantity=plain_decimal(self.quantity),
            unit_price=Money(plain_decimal(self.unit_price), currency),
            total_price=Money(self.total_price, currency).quantized(),
            rate_type=RateType(self.rate_type),
            time_entry_ids=tuple(link.time_entry_id for link in self.time_entry_links),
        )

    @classmethod
    def from_dto(cls, dto, invoice_id: UUID, position: int) -> "LineItemModel":
        model = cls(
            id=dto.id,
            invoice_id=invoice_id,
            position=position,
            description=dto.description,
            quantity=dto.quantity,
            unit_price=dto.unit_price.amount,
            total_price=dto.total_price.amount,
            rate_type=dto.rate_type.value,
        )
        model.time_entry_links = [
            LineItemTimeEntryModel(
                invoice_id=invoice_id,
                line_item_id=dto.id,
                time_entry_id=time_entry_id,
                position=n,
            )
            for n, time_entry_id in enumerate(dto.time_entry_ids)
        ]
        return model

    def __repr__(self) -> str:
        return f"<LineItemModel {self.description!r} {self.total_price}>"


class LineItemTimeEntryModel(TrackedBase):
    """Link from a line item to each time entry it bills."""

    __tablename__ = "invoice_line_item_time_entries"

    __table_args__ = (
        UniqueConstraint(
            "invoice_id", "time_entry_id", name="uq_line_item_time_entry_per_invoice"
        ),
        Index("idx_line_item_time_entries_time_entry_id", "time_entry_id"),
    )

    invoice_id: Mapped[UUID] = mapped_column(
        ForeignKey("invoices.id"), nullable=False
    )
    line_item_id: Mapped[UUID] = mapped_column(
        ForeignKey("invoice_line_items.id"), nullable=False
    )
    time_entry_id: Mapped[UUID] = mapped_column(
        ForeignKey("time_entries.id"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    line_item: Mapped["LineItemModel"] = relationship(back_populates="time_entry_links")
