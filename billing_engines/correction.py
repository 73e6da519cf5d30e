"""
Correction Manager.

Pure functions with deterministic behavior. No I/O.

An issued invoice is never edited in place.  A correction produces a new
invoice that supersedes it:

    source (sent)                     correction (sent)
    corrected_by_invoice_id ------->  id
    id                      <-------  correction_of_invoice_id
    original_snapshot                 original_snapshot (copy)
                                      correction_reason, correction_date

The source keeps its items, totals and payments.  It only gains the link
to the correction and ``original_snapshot``, its own fields as issued.  A
source that is itself a correction swaps its predecessor's snapshot for
its own; the predecessor still holds the earlier one.

Payments already recorded against the source stay there and are reported
as a warning.

Correction chains (A corrected by B corrected by C) are read with
``correction_chain``; nothing collapses or rewrites them.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from billing_kernel.domain.dtos import (
    Invoice,
    InvoiceChanges,
    InvoiceStatus,
    LineItemSpec,
    Payment,
)
from billing_kernel.domain.serialization import invoice_to_dict
from billing_kernel.exceptions import (
    CorrectionCycleError,
    CorrectionReasonRequiredError,
    InvoiceNotFoundError,
    InvoiceValidationError,
    NotCorrectableError,
)
from billing_kernel.logging_config import get_logger
from billing_engines.line_items import LineItemLedger
from billing_engines.payments import PaymentLedger

logger = get_logger("engines.correction")

_SNAPSHOT_EXCLUDED = ("original_snapshot", "corrected_by_invoice_id")


@dataclass(frozen=True)
class CorrectionResult:
    source: Invoice
    correction: Invoice
    warnings: tuple[str, ...] = ()


def snapshot(invoice: Invoice) -> dict:
    """The source invoice as issued: dates, texts, totals and items."""
    data = invoice_to_dict(invoice)
    for key in _SNAPSHOT_EXCLUDED:
        data.pop(key, None)
    return data


def _as_spec(item) -> LineItemSpec:
    return LineItemSpec(
        description=item.description,
        quantity=item.quantity,
        unit_price=item.unit_price,
        total_price=item.total_price,
        rate_type=item.rate_type,
        time_entry_ids=item.time_entry_ids,
    )


def _pick(new, old):
    return old if new is None else new


class CorrectionManager:
    """Builds superseding invoices and reads correction chains."""

    def __init__(
        self,
        ledger: LineItemLedger | None = None,
        payments: PaymentLedger | None = None,
        id_factory: Callable[[], UUID] = uuid4,
        correction_status: InvoiceStatus = InvoiceStatus.SENT,
    ):
        self._ledger = ledger or LineItemLedger()
        self._payments = payments or PaymentLedger()
        self._id_factory = id_factory
        self._correction_status = correction_status

    def ensure_correctable(self, source: Invoice) -> None:
        if source.status in (InvoiceStatus.DRAFT, InvoiceStatus.CANCELLED):
            reason = (
                "drafts are edited directly"
                if source.status == InvoiceStatus.DRAFT
                else "cancelled invoices cannot be corrected"
            )
            raise NotCorrectableError(str(source.id), source.status.value, reason)
        if source.corrected_by_invoice_id is not None:
            raise NotCorrectableError(
                str(source.id),
                source.status.value,
                f"already corrected by invoice {source.corrected_by_invoice_id}",
            )

    def correct(
        self,
        source: Invoice,
        changes: InvoiceChanges,
        *,
        correction_number: str,
        correction_date: date,
        payments: Sequence[Payment] = (),
    ) -> CorrectionResult:
        """
        Create the correction of ``source``.

        Raises:
            NotCorrectableError: source is a draft, cancelled, or already
                superseded.
            CorrectionReasonRequiredError: ``changes.reason`` is empty.
            InvoiceValidationError: resulting due date precedes issue date.
            Line item errors from LineItemLedger for replacement items.
        """
        self.ensure_correctable(source)
        reason = (changes.reason or "").strip()
        if not reason:
            raise CorrectionReasonRequiredError(str(source.id))

        issue_date = _pick(changes.issue_date, source.issue_date)
        due_date = _pick(changes.due_date, source.due_date)
        if due_date < issue_date:
            raise InvoiceValidationError("due_date", "must not be before issue_date")

        base = replace(
            source,
            id=self._id_factory(),
            invoice_number=correction_number,
            status=self._correction_status,
            issue_date=issue_date,
            due_date=due_date,
            tax_rate=_pick(changes.tax_rate, source.tax_rate),
            exclude_from_tax=_pick(changes.exclude_from_tax, source.exclude_from_tax),
            invoice_headline=_pick(changes.invoice_headline, source.invoice_headline),
            invoice_text=_pick(changes.invoice_text, source.invoice_text),
            footer_text=_pick(changes.footer_text, source.footer_text),
            notes=_pick(changes.notes, source.notes),
            items=(),
            correction_of_invoice_id=source.id,
            corrected_by_invoice_id=None,
            correction_reason=reason,
            correction_date=correction_date,
            original_snapshot=snapshot(source),
        )
        if not isinstance(base.tax_rate, Decimal):
            raise InvoiceValidationError("tax_rate", "must be a Decimal")
        if base.tax_rate < 0:
            raise InvoiceValidationError("tax_rate", "must not be negative")

        specs = changes.items
        if specs is None:
            specs = tuple(_as_spec(item) for item in source.items)
        correction = self._ledger.replace_items(base, specs)

        updated_source = replace(
            source,
            corrected_by_invoice_id=correction.id,
            original_snapshot=base.original_snapshot,
        )

        warnings: list[str] = []
        totals = self._payments.totals(source, payments)
        applied_count = totals.payment_count + totals.refund_count
        if applied_count:
            warnings.append(
                f"Source invoice {source.invoice_number} has {applied_count} "
                f"payment(s) totalling {totals.total_applied.amount} "
                f"{source.currency.code}; they remain attached to the source"
            )

        logger.info(
            "invoice_corrected",
            extra={
                "source_invoice_id": str(source.id),
                "correction_invoice_id": str(correction.id),
                "correction_number": correction_number,
                "source_total": str(source.total_amount.amount),
                "correction_total": str(correction.total_amount.amount),
                "reason": reason,
                "warning_count": len(warnings),
            },
        )
        return CorrectionResult(
            source=updated_source,
            correction=correction,
            warnings=tuple(warnings),
        )

    def correction_chain(
        self, invoices: Sequence[Invoice], start_id: UUID
    ) -> tuple[Invoice, ...]:
        """
        The chain containing ``start_id``, from the original invoice to the
        latest correction.  Links to invoices not in ``invoices`` end the walk.
        """
        by_id = {inv.id: inv for inv in invoices}
        if start_id not in by_id:
            raise InvoiceNotFoundError(str(start_id))
        corrections_of = {
            inv.correction_of_invoice_id: inv
            for inv in invoices
            if inv.correction_of_invoice_id is not None
        }

        root = by_id[start_id]
        visited = {root.id}
        while root.correction_of_invoice_id in by_id:
            root = by_id[root.correction_of_invoice_id]
            if root.id in visited:
                raise CorrectionCycleError(str(root.id), root.status.value)
            visited.add(root.id)

        chain = [root]
        seen = {root.id}
        current = root
        while True:
            successor = by_id.get(current.corrected_by_invoice_id) or corrections_of.get(
                current.id
            )
            if successor is None:
                break
            if successor.id in seen:
                raise CorrectionCycleError(str(successor.id), successor.status.value)
            chain.append(successor)
            seen.add(successor.id)
            current = successor
        return tuple(chain)
