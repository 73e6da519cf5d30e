"""Tests for the invoice lifecycle engine (billing_engines/lifecycle.py)."""

from dataclasses import replace
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from billing_engines.lifecycle import (
    INVOICE_WORKFLOW,
    cancel,
    create_draft,
    display_status,
    ensure_deletable,
    ensure_items_editable,
    format_invoice_number,
    send,
)
from billing_kernel.domain.dtos import DisplayStatus, InvoiceStatus
from billing_kernel.domain.values import Money
from billing_kernel.exceptions import (
    AlreadyCancelledError,
    InvalidTransitionError,
    InvoiceHasDependentsError,
    InvoiceNotEditableError,
    InvoiceValidationError,
)


def _draft(**overrides):
    kwargs = dict(
        invoice_id=uuid4(),
        account_id=uuid4(),
        client_id=uuid4(),
        invoice_number="INV-20240115-001",
        issue_date=date(2024, 1, 15),
        due_date=date(2024, 2, 14),
        currency="EUR",
    )
    kwargs.update(overrides)
    return create_draft(**kwargs)


def _with_total(invoice, total):
    amount = Money.of(total, "EUR")
    return replace(invoice, sub_total=amount, total_amount=amount)


THRESHOLD = Money.of("1.50", "EUR")


class TestInvoiceNumber:
    def test_format(self):
        assert format_invoice_number(date(2024, 1, 15), 1) == "INV-20240115-001"

    def test_wide_sequence_grows(self):
        assert format_invoice_number(date(2024, 1, 15), 1234) == "INV-20240115-1234"

    def test_custom_prefix_and_width(self):
        assert format_invoice_number(date(2024, 3, 1), 7, prefix="RE", width=5) == "RE-20240301-00007"

    def test_sequence_must_be_positive(self):
        with pytest.raises(ValueError):
            format_invoice_number(date(2024, 1, 15), 0)


class TestCreateDraft:
    def test_empty_draft(self):
        invoice = _draft()
        assert invoice.status == InvoiceStatus.DRAFT
        assert invoice.total_amount == Money.of("0.00", "EUR")
        assert invoice.items == ()

    def test_due_before_issue_rejected(self):
        with pytest.raises(InvoiceValidationError) as exc_info:
            _draft(due_date=date(2024, 1, 1))
        assert exc_info.value.field == "due_date"

    def test_negative_tax_rate_rejected(self):
        with pytest.raises(InvoiceValidationError):
            _draft(tax_rate=Decimal("-0.01"))

    def test_blank_number_rejected(self):
        with pytest.raises(InvoiceValidationError):
            _draft(invoice_number=" ")


class TestTransitions:
    def test_workflow_shape(self):
        assert INVOICE_WORKFLOW.actions_from("draft") == ("send", "cancel")
        assert INVOICE_WORKFLOW.actions_from("cancelled") == ()

    def test_send_draft(self):
        assert send(_draft()).status == InvoiceStatus.SENT

    def test_send_twice_rejected(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            send(send(_draft()))
        assert exc_info.value.current_status == "sent"

    def test_cancel_draft_and_sent(self):
        assert cancel(_draft()).status == InvoiceStatus.CANCELLED
        assert cancel(send(_draft())).status == InvoiceStatus.CANCELLED

    def test_cancel_twice_reports_current_status(self):
        cancelled = cancel(_draft())
        with pytest.raises(AlreadyCancelledError) as exc_info:
            cancel(cancelled)
        assert exc_info.value.current_status == "cancelled"
        assert exc_info.value.code == "ALREADY_CANCELLED"

    def test_send_cancelled_rejected(self):
        with pytest.raises(InvalidTransitionError):
            send(cancel(_draft()))

    def test_transitions_return_new_object(self):
        draft = _draft()
        send(draft)
        assert draft.status == InvoiceStatus.DRAFT


class TestGuards:
    def test_items_editable_only_on_draft(self):
        ensure_items_editable(_draft())
        with pytest.raises(InvoiceNotEditableError):
            ensure_items_editable(send(_draft()))

    def test_delete_draft_without_payments(self):
        ensure_deletable(_draft(), payment_count=0)

    def test_delete_with_payments_rejected(self):
        with pytest.raises(InvoiceHasDependentsError) as exc_info:
            ensure_deletable(_draft(), payment_count=2)
        assert exc_info.value.payment_count == 2

    def test_delete_sent_rejected(self):
        with pytest.raises(InvoiceHasDependentsError):
            ensure_deletable(send(_draft()), payment_count=0)


class TestDisplayStatus:
    AS_OF = date(2024, 1, 20)

    def _sent(self, total="100.00"):
        return _with_total(send(_draft()), total)

    def test_draft_and_cancelled_pass_through(self):
        zero = Money.zero("EUR")
        assert display_status(_draft(), zero, THRESHOLD, self.AS_OF) == DisplayStatus.DRAFT
        assert display_status(cancel(self._sent()), zero, THRESHOLD, self.AS_OF) == DisplayStatus.CANCELLED

    def test_sent_nothing_paid(self):
        status = display_status(self._sent(), Money.zero("EUR"), THRESHOLD, self.AS_OF)
        assert status == DisplayStatus.SENT

    def test_partially_paid(self):
        status = display_status(self._sent(), Money.of("40.00", "EUR"), THRESHOLD, self.AS_OF)
        assert status == DisplayStatus.PARTIALLY_PAID

    def test_paid_within_threshold(self):
        status = display_status(self._sent(), Money.of("98.50", "EUR"), THRESHOLD, self.AS_OF)
        assert status == DisplayStatus.PAID

    def test_overpaid_is_paid(self):
        status = display_status(self._sent(), Money.of("150.00", "EUR"), THRESHOLD, self.AS_OF)
        assert status == DisplayStatus.PAID

    def test_overdue_beats_partially_paid(self):
        status = display_status(
            self._sent(), Money.of("40.00", "EUR"), THRESHOLD, date(2024, 3, 1)
        )
        assert status == DisplayStatus.OVERDUE

    def test_due_date_itself_not_overdue(self):
        status = display_status(self._sent(), Money.zero("EUR"), THRESHOLD, date(2024, 2, 14))
        assert status == DisplayStatus.SENT

    def test_zero_total_is_paid(self):
        status = display_status(self._sent("0.00"), Money.zero("EUR"), THRESHOLD, date(2024, 3, 1))
        assert status == DisplayStatus.PAID
