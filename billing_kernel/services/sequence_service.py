"""
InvoiceNumberSequence -- per-account invoice numbering via a locked counter.

Responsibility:
    Hands out the next invoice sequence for an account; the lifecycle engine
    formats it as ``INV-YYYYMMDD-NNN``.  One counter row per account is locked with
    ``SELECT ... FOR UPDATE``, incremented and read back inside the caller's
    transaction, so two concurrent drafts never share a number.

Guarantees:
    - Strictly increasing per account.  The max-plus-one query over
      ``invoices`` is never used.
    - The increment is only visible when the caller commits; a rolled-back
      draft returns its number.
    - A number, once assigned to an invoice, is never regenerated.

Non-goals:
    - Does NOT commit; the caller owns the transaction.
"""

from uuid import UUID

from sqlalchemy import Integer, select
from sqlalchemy.orm import Mapped, Session, mapped_column

from billing_kernel.db.base import Base
from billing_kernel.logging_config import get_logger

logger = get_logger("services.sequence")


class InvoiceNumberCounter(Base):
    """One row per account holding the last issued invoice sequence."""

    __tablename__ = "invoice_number_counters"

    account_id: Mapped[UUID] = mapped_column(nullable=False, unique=True)
    current_value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class InvoiceNumberSequence:
    """
    Allocates invoice sequences for an account.

    Usage:
        seq = InvoiceNumberSequence(session)
        value = seq.next_value(account_id)
    """

    def __init__(self, session: Session):
        self._session = session

    def next_value(self, account_id: UUID) -> int:
        """Lock the account's counter (creating it on first use) and increment."""
        counter = self._session.execute(
            select(InvoiceNumberCounter)
            .where(InvoiceNumberCounter.account_id == account_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

        if counter is None:
            counter = InvoiceNumberCounter(account_id=account_id, current_value=0)
            self._session.add(counter)

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "invoice_sequence_allocated",
            extra={"account_id": str(account_id), "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, account_id: UUID) -> int:
        """Last allocated value, 0 when the account has no invoices yet."""
        value = self._session.execute(
            select(InvoiceNumberCounter.current_value).where(
                InvoiceNumberCounter.account_id == account_id
            )
        ).scalar_one_or_none()
        return value or 0
