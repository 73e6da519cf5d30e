"""
Invoice and payment read queries.

Every result is a frozen DTO built at query time; nothing here caches, so a
billing status computed from these reads is a point-in-time snapshot.
"""

from uuid import UUID

from sqlalchemy import func, or_, select

from billing_kernel.domain.dtos import Invoice, Payment
from billing_kernel.exceptions import InvoiceNotFoundError
from billing_kernel.models.invoice import InvoiceModel
from billing_kernel.models.payment import PaymentModel
from billing_kernel.selectors.base import BaseSelector


class InvoiceSelector(BaseSelector):
    """Queries over invoices and the payments attached to them."""

    def get(self, invoice_id: UUID) -> Invoice:
        """Raises InvoiceNotFoundError for unknown ids."""
        model = self.session.get(InvoiceModel, invoice_id)
        if model is None:
            raise InvoiceNotFoundError(str(invoice_id))
        return model.to_dto()

    def find(self, invoice_id: UUID) -> Invoice | None:
        model = self.session.get(InvoiceModel, invoice_id)
        return model.to_dto() if model is not None else None

    def get_by_number(self, account_id: UUID, invoice_number: str) -> Invoice | None:
        model = self.session.execute(
            select(InvoiceModel).where(
                InvoiceModel.account_id == account_id,
                InvoiceModel.invoice_number == invoice_number,
            )
        ).scalar_one_or_none()
        return model.to_dto() if model is not None else None

    def list_for_client(self, client_id: UUID) -> list[Invoice]:
        """Invoices for a client, oldest issue date first."""
        models = self.session.execute(
            select(InvoiceModel)
            .where(InvoiceModel.client_id == client_id)
            .order_by(InvoiceModel.issue_date, InvoiceModel.invoice_number)
        ).scalars()
        return [m.to_dto() for m in models]

    def payments_for_invoice(self, invoice_id: UUID) -> list[Payment]:
        models = self.session.execute(
            select(PaymentModel)
            .where(PaymentModel.invoice_id == invoice_id)
            .order_by(PaymentModel.payment_date, PaymentModel.created_at)
        ).scalars()
        return [m.to_dto() for m in models]

    def payments_for_invoices(self, invoice_ids: list[UUID]) -> list[Payment]:
        if not invoice_ids:
            return []
        models = self.session.execute(
            select(PaymentModel)
            .where(PaymentModel.invoice_id.in_(invoice_ids))
            .order_by(PaymentModel.payment_date, PaymentModel.created_at)
        ).scalars()
        return [m.to_dto() for m in models]

    def payment_count(self, invoice_id: UUID) -> int:
        return self.session.execute(
            select(func.count(PaymentModel.id)).where(
                PaymentModel.invoice_id == invoice_id
            )
        ).scalar_one()

    def correction_family(self, invoice_id: UUID) -> list[Invoice]:
        """
        Every invoice reachable from ``invoice_id`` through correction links,
        in either direction.  Traversal stops when no new ids turn up, so a
        corrupted cyclic chain still terminates here; the engine reports it.
        """
        seen: dict[UUID, Invoice] = {}
        frontier = {invoice_id}
        while frontier:
            models = self.session.execute(
                select(InvoiceModel).where(
                    or_(
                        InvoiceModel.id.in_(frontier),
                        InvoiceModel.correction_of_invoice_id.in_(frontier),
                    )
                )
            ).scalars()
            next_frontier: set[UUID] = set()
            for model in models:
                if model.id in seen:
                    continue
                dto = model.to_dto()
                seen[dto.id] = dto
                for linked in (dto.correction_of_invoice_id, dto.corrected_by_invoice_id):
                    if linked is not None and linked not in seen:
                        next_frontier.add(linked)
            frontier = next_frontier - set(seen)
        if invoice_id not in seen:
            raise InvoiceNotFoundError(str(invoice_id))
        return list(seen.values())
