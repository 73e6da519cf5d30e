"""
Serialising an invoice with its items and payments to JSON and reading it
back reproduces the same totals, amount paid and billing status.
"""

import json
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from billing_engines import BillingValidator, LineItemLedger, PaymentLedger, create_draft, send
from billing_kernel.domain.dtos import LineItemSpec, PaymentType
from billing_kernel.domain.serialization import (
    invoice_from_dict,
    invoice_to_dict,
    payment_from_dict,
    payment_to_dict,
)
from billing_kernel.domain.values import Money


def _build(currency, lines, tax_rate, payments):
    invoice = create_draft(
        invoice_id=uuid4(),
        account_id=uuid4(),
        client_id=uuid4(),
        invoice_number="INV-20240115-001",
        issue_date=date(2024, 1, 15),
        due_date=date(2024, 2, 14),
        currency=currency,
        tax_rate=Decimal(tax_rate),
        invoice_headline="Services",
    )
    invoice = LineItemLedger().add_items(
        invoice,
        [
            LineItemSpec(
                f"Line {n}",
                Decimal(q),
                Money.of(p, currency),
                time_entry_ids=(uuid4(),),
            )
            for n, (q, p) in enumerate(lines)
        ],
    )
    invoice = send(invoice)
    ledger = PaymentLedger()
    recorded = [
        ledger.record(
            payment_id=uuid4(),
            account_id=invoice.account_id,
            amount=Money.of(amount, currency),
            payment_type=ptype,
            payment_date=date(2024, 1, 20),
            invoice=invoice,
            exclude_from_tax=ptype == PaymentType.REFUND,
        )
        for amount, ptype in payments
    ]
    return invoice, recorded


CASES = [
    ("EUR", [("10", "100.00"), ("1.25", "80.00")], "0.19", [("500.00", PaymentType.PAYMENT)]),
    ("EUR", [("3", "33.335")], "0.07", [("107.00", PaymentType.PAYMENT), ("0.50", PaymentType.REFUND)]),
    ("JPY", [("2", "15000")], "0.10", [("33000", PaymentType.PAYMENT)]),
    ("KWD", [("1", "12.345")], "0", []),
]


@pytest.mark.parametrize("currency,lines,tax_rate,payments", CASES)
def test_json_round_trip_preserves_reconciliation(currency, lines, tax_rate, payments):
    invoice, recorded = _build(currency, lines, tax_rate, payments)

    document = json.dumps(
        {
            "invoice": invoice_to_dict(invoice),
            "payments": [payment_to_dict(p) for p in recorded],
        }
    )
    data = json.loads(document)
    restored = invoice_from_dict(data["invoice"])
    restored_payments = [payment_from_dict(p) for p in data["payments"]]

    assert restored == invoice
    assert restored.sub_total == invoice.sub_total
    assert restored.total_amount == invoice.total_amount
    assert restored.billed_time_entry_ids == invoice.billed_time_entry_ids

    ledger = PaymentLedger()
    assert ledger.totals(restored, restored_payments) == ledger.totals(invoice, recorded)

    validator = BillingValidator()
    before = validator.status(invoice, recorded)
    after = validator.status(restored, restored_payments)
    assert after.status == before.status
    assert after.balance == before.balance


def test_recomputing_restored_invoice_changes_nothing():
    invoice, _ = _build("EUR", [("7", "19.99"), ("0.5", "120.00")], "0.19", [])
    restored = invoice_from_dict(json.loads(json.dumps(invoice_to_dict(invoice))))
    assert LineItemLedger().recompute_totals(restored) == restored
