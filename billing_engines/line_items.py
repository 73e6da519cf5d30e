"""
Line Item Ledger.

Pure functions with deterministic behavior. No I/O.

Owns the monetary consistency of an invoice: every line item total equals
``round(quantity * unit_price)`` in the invoice currency, and the invoice
header totals are always derived from the items.

    sub_total    = sum(item.total_price)
    tax_amount   = round(sub_total * tax_rate), or 0 when exclude_from_tax
    total_amount = sub_total + tax_amount

A supplied item total that disagrees with the computed one is rejected,
never silently corrected.  Every item of a batch is validated before any is
applied, and the input invoice is immutable, so a failed add or replace
leaves the caller holding the untouched original.

Usage:
    ledger = LineItemLedger()
    invoice = ledger.replace_items(invoice, [
        LineItemSpec("Consulting", Decimal("10"), Money.of("100.00", "EUR")),
    ])
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import replace
from decimal import ROUND_HALF_EVEN, Decimal
from uuid import UUID, uuid4

from billing_kernel.domain.dtos import Invoice, LineItem, LineItemSpec
from billing_kernel.domain.values import Money, sum_money
from billing_kernel.exceptions import (
    CurrencyMismatchError,
    DuplicateTimeEntryReferenceError,
    InvalidLineItemError,
    LineItemTotalMismatchError,
)
from billing_kernel.logging_config import get_logger

logger = get_logger("engines.line_items")


class LineItemLedger:
    """Validates line items and recomputes invoice totals."""

    def __init__(
        self,
        id_factory: Callable[[], UUID] = uuid4,
        rounding: str = ROUND_HALF_EVEN,
    ):
        self._id_factory = id_factory
        self._rounding = rounding

    def expected_total(self, spec: LineItemSpec) -> Money:
        return (spec.unit_price * spec.quantity).round(self._rounding)

    def build_item(self, invoice: Invoice, spec: LineItemSpec) -> LineItem:
        """Validate one spec against ``invoice`` and turn it into a LineItem."""
        description = (spec.description or "").strip()
        if not description:
            raise InvalidLineItemError(spec.description or "", "description is required")
        if isinstance(spec.quantity, bool) or not isinstance(spec.quantity, (Decimal, int)):
            raise InvalidLineItemError(description, "quantity must be a Decimal")
        if spec.quantity < 0:
            raise InvalidLineItemError(description, "quantity must not be negative")
        if spec.unit_price.currency != invoice.currency:
            raise CurrencyMismatchError(
                invoice.currency.code, spec.unit_price.currency.code
            )
        if spec.unit_price.is_negative:
            raise InvalidLineItemError(description, "unit price must not be negative")

        expected = self.expected_total(spec)
        if spec.total_price is not None:
            if spec.total_price.currency != invoice.currency:
                raise CurrencyMismatchError(
                    invoice.currency.code, spec.total_price.currency.code
                )
            if spec.total_price.amount != expected.amount:
                logger.warning(
                    "line_item_total_mismatch",
                    extra={
                        "invoice_id": str(invoice.id),
                        "description": description,
                        "expected": str(expected.amount),
                        "supplied": str(spec.total_price.amount),
                    },
                )
                raise LineItemTotalMismatchError(
                    description,
                    expected=str(expected.amount),
                    supplied=str(spec.total_price.amount),
                    currency=invoice.currency.code,
                )

        return LineItem(
            id=self._id_factory(),
            description=description,
            quantity=spec.quantity,
            unit_price=spec.unit_price,
            total_price=expected,
            rate_type=spec.rate_type,
            time_entry_ids=tuple(spec.time_entry_ids),
        )

    def _check_time_entry_references(
        self, invoice: Invoice, items: Sequence[LineItem]
    ) -> None:
        seen: set[UUID] = set()
        for item in items:
            for time_entry_id in item.time_entry_ids:
                if time_entry_id in seen:
                    raise DuplicateTimeEntryReferenceError(
                        str(time_entry_id), str(invoice.id)
                    )
                seen.add(time_entry_id)

    def add_items(self, invoice: Invoice, specs: Sequence[LineItemSpec]) -> Invoice:
        """Append items to ``invoice`` and return the recomputed invoice."""
        new_items = tuple(self.build_item(invoice, spec) for spec in specs)
        items = invoice.items + new_items
        self._check_time_entry_references(invoice, items)

        result = self.recompute_totals(replace(invoice, items=items))
        logger.info(
            "line_items_added",
            extra={
                "invoice_id": str(invoice.id),
                "added_count": len(new_items),
                "item_count": len(items),
                "sub_total": str(result.sub_total.amount),
                "total_amount": str(result.total_amount.amount),
            },
        )
        return result

    def replace_items(self, invoice: Invoice, specs: Sequence[LineItemSpec]) -> Invoice:
        """Replace every item of ``invoice``; all-or-nothing."""
        items = tuple(self.build_item(invoice, spec) for spec in specs)
        self._check_time_entry_references(invoice, items)

        result = self.recompute_totals(replace(invoice, items=items))
        logger.info(
            "line_items_replaced",
            extra={
                "invoice_id": str(invoice.id),
                "previous_count": len(invoice.items),
                "item_count": len(items),
                "sub_total": str(result.sub_total.amount),
                "total_amount": str(result.total_amount.amount),
            },
        )
        return result

    def recompute_totals(self, invoice: Invoice) -> Invoice:
        """The only place sub_total, tax_amount and total_amount are set."""
        sub_total = sum_money((item.total_price for item in invoice.items), invoice.currency)
        if invoice.exclude_from_tax:
            tax_amount = Money.zero(invoice.currency).round(self._rounding)
        else:
            tax_amount = (sub_total * invoice.tax_rate).round(self._rounding)
        sub_total = sub_total.round(self._rounding)
        total_amount = sub_total + tax_amount

        logger.debug(
            "invoice_totals_recomputed",
            extra={
                "invoice_id": str(invoice.id),
                "sub_total": str(sub_total.amount),
                "tax_amount": str(tax_amount.amount),
                "total_amount": str(total_amount.amount),
            },
        )
        return replace(
            invoice,
            sub_total=sub_total,
            tax_amount=tax_amount,
            total_amount=total_amount,
        )
