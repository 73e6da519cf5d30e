"""
Payment ORM model (``billing_kernel.models.payment``).

Payments are append-only.  The table enforces the two structural rules that
do not depend on invoice state: amounts are strictly positive and a refund
is always attributed to an invoice.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from billing_kernel.db.base import TrackedBase


class PaymentModel(TrackedBase):
    """ORM model for payments, refunds and expenses."""

    __tablename__ = "payments"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_payments_amount_positive"),
        CheckConstraint(
            "payment_type <> 'refund' OR invoice_id IS NOT NULL",
            name="ck_payments_refund_has_invoice",
        ),
        Index("idx_payments_invoice_id", "invoice_id"),
        Index("idx_payments_client_id", "client_id"),
    )

    account_id: Mapped[UUID] = mapped_column(nullable=False)
    invoice_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("invoices.id"), nullable=True
    )
    client_id: Mapped[UUID | None] = mapped_column(nullable=True)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    payment_type: Mapped[str] = mapped_column(String(10), nullable=False)
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    exclude_from_tax: Mapped[bool] = mapped_column(Boolean, default=False)
    payment_method: Mapped[str | None] = mapped_column(String(50), nullable=True)
    transaction_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from billing_kernel.domain.dtos import Payment, PaymentType
        from billing_kernel.domain.values import Money

        return Payment(
            id=self.id,
            account_id=self.account_id,
            invoice_id=self.invoice_id,
            client_id=self.client_id,
            amount=Money(self.amount, self.currency).quantized(),
            payment_type=PaymentType(self.payment_type),
            payment_date=self.payment_date,
            exclude_from_tax=self.exclude_from_tax,
            payment_method=self.payment_method,
            transaction_id=self.transaction_id,
            notes=self.notes,
            recorded_at=self.created_at,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID | None = None) -> "PaymentModel":
        """Create ORM model from frozen dataclass."""
        return cls(
            id=dto.id,
            account_id=dto.account_id,
            invoice_id=dto.invoice_id,
            client_id=dto.client_id,
            amount=dto.amount.amount,
            currency=dto.amount.currency.code,
            payment_type=dto.payment_type.value,
            payment_date=dto.payment_date,
            exclude_from_tax=dto.exclude_from_tax,
            payment_method=dto.payment_method,
            transaction_id=dto.transaction_id,
            notes=dto.notes,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return f"<PaymentModel {self.payment_type} {self.amount} {self.currency}>"
