"""
JSON-safe conversion of billing DTOs.

Decimals travel as strings and dates as ISO strings, so a document written
by ``invoice_to_dict`` can be stored in a JSON column, sent over the wire,
or kept as a correction snapshot, and ``invoice_from_dict`` rebuilds the
same totals to the last digit.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from billing_kernel.domain.dtos import (
    Invoice,
    InvoiceStatus,
    LineItem,
    Payment,
    PaymentType,
    RateType,
)
from billing_kernel.domain.values import Currency, Money


def _uuid_or_none(value: str | None) -> UUID | None:
    return UUID(value) if value else None


def _str_or_none(value: Any) -> str | None:
    return str(value) if value is not None else None


def _date_or_none(value: str | None) -> date | None:
    return date.fromisoformat(value) if value else None


def line_item_to_dict(item: LineItem) -> dict[str, Any]:
    return {
        "id": str(item.id),
        "description": item.description,
        "quantity": str(item.quantity),
        "unit_price": str(item.unit_price.amount),
        "total_price": str(item.total_price.amount),
        "rate_type": item.rate_type.value,
        "time_entry_ids": [str(t) for t in item.time_entry_ids],
    }


def line_item_from_dict(data: dict[str, Any], currency: Currency | str) -> LineItem:
    return LineItem(
        id=UUID(data["id"]),
        description=data["description"],
        quantity=Decimal(data["quantity"]),
        unit_price=Money.of(data["unit_price"], currency),
        total_price=Money.of(data["total_price"], currency),
        rate_type=RateType(data.get("rate_type", RateType.FIXED.value)),
        time_entry_ids=tuple(UUID(t) for t in data.get("time_entry_ids", ())),
    )


def invoice_to_dict(invoice: Invoice) -> dict[str, Any]:
    """Serialize an invoice, its items and correction metadata."""
    return {
        "id": str(invoice.id),
        "account_id": str(invoice.account_id),
        "client_id": str(invoice.client_id),
        "project_id": _str_or_none(invoice.project_id),
        "invoice_number": invoice.invoice_number,
        "status": invoice.status.value,
        "issue_date": invoice.issue_date.isoformat(),
        "due_date": invoice.due_date.isoformat(),
        "currency": invoice.currency.code,
        "sub_total": str(invoice.sub_total.amount),
        "tax_rate": str(invoice.tax_rate),
        "tax_amount": str(invoice.tax_amount.amount),
        "total_amount": str(invoice.total_amount.amount),
        "exclude_from_tax": invoice.exclude_from_tax,
        "items": [line_item_to_dict(item) for item in invoice.items],
        "correction_of_invoice_id": _str_or_none(invoice.correction_of_invoice_id),
        "corrected_by_invoice_id": _str_or_none(invoice.corrected_by_invoice_id),
        "correction_reason": invoice.correction_reason,
        "correction_date": (
            invoice.correction_date.isoformat() if invoice.correction_date else None
        ),
        "original_snapshot": invoice.original_snapshot,
        "invoice_headline": invoice.invoice_headline,
        "invoice_text": invoice.invoice_text,
        "footer_text": invoice.footer_text,
        "notes": invoice.notes,
        "delivery_date": invoice.delivery_date,
    }


def invoice_from_dict(data: dict[str, Any]) -> Invoice:
    currency = Currency(data["currency"])
    return Invoice(
        id=UUID(data["id"]),
        account_id=UUID(data["account_id"]),
        client_id=UUID(data["client_id"]),
        project_id=_uuid_or_none(data.get("project_id")),
        invoice_number=data["invoice_number"],
        status=InvoiceStatus(data["status"]),
        issue_date=date.fromisoformat(data["issue_date"]),
        due_date=date.fromisoformat(data["due_date"]),
        currency=currency,
        sub_total=Money.of(data["sub_total"], currency),
        tax_rate=Decimal(data["tax_rate"]),
        tax_amount=Money.of(data["tax_amount"], currency),
        total_amount=Money.of(data["total_amount"], currency),
        exclude_from_tax=bool(data.get("exclude_from_tax", False)),
        items=tuple(line_item_from_dict(i, currency) for i in data.get("items", ())),
        correction_of_invoice_id=_uuid_or_none(data.get("correction_of_invoice_id")),
        corrected_by_invoice_id=_uuid_or_none(data.get("corrected_by_invoice_id")),
        correction_reason=data.get("correction_reason"),
        correction_date=_date_or_none(data.get("correction_date")),
        original_snapshot=data.get("original_snapshot"),
        invoice_headline=data.get("invoice_headline"),
        invoice_text=data.get("invoice_text"),
        footer_text=data.get("footer_text"),
        notes=data.get("notes"),
        delivery_date=data.get("delivery_date"),
    )


def payment_to_dict(payment: Payment) -> dict[str, Any]:
    return {
        "id": str(payment.id),
        "account_id": str(payment.account_id),
        "invoice_id": _str_or_none(payment.invoice_id),
        "client_id": _str_or_none(payment.client_id),
        "amount": str(payment.amount.amount),
        "currency": payment.amount.currency.code,
        "payment_type": payment.payment_type.value,
        "payment_date": payment.payment_date.isoformat(),
        "exclude_from_tax": payment.exclude_from_tax,
        "payment_method": payment.payment_method,
        "transaction_id": payment.transaction_id,
        "notes": payment.notes,
        "recorded_at": payment.recorded_at.isoformat() if payment.recorded_at else None,
    }


def payment_from_dict(data: dict[str, Any]) -> Payment:
    recorded_at = data.get("recorded_at")
    return Payment(
        id=UUID(data["id"]),
        account_id=UUID(data["account_id"]),
        invoice_id=_uuid_or_none(data.get("invoice_id")),
        client_id=_uuid_or_none(data.get("client_id")),
        amount=Money.of(data["amount"], data["currency"]),
        payment_type=PaymentType(data["payment_type"]),
        payment_date=date.fromisoformat(data["payment_date"]),
        exclude_from_tax=bool(data.get("exclude_from_tax", False)),
        payment_method=data.get("payment_method"),
        transaction_id=data.get("transaction_id"),
        notes=data.get("notes"),
        recorded_at=datetime.fromisoformat(recorded_at) if recorded_at else None,
    )
