"""
Tests for the BillingValidator.

Reconciliation thresholds, duplicate detection and the pre-commit check of
a proposed payment.
"""

from dataclasses import replace
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from billing_engines.billing_validation import BillingValidator, classify
from billing_engines.lifecycle import cancel, create_draft, send
from billing_engines.payments import PaymentLedger
from billing_kernel.domain.dtos import BillingStatus, PaymentType
from billing_kernel.domain.values import Money
from billing_kernel.exceptions import (
    CurrencyMismatchError,
    InvalidAmountError,
    InvoiceCancelledError,
    PaymentWouldOverbillError,
)

ACCOUNT = uuid4()


def _invoice(total="100.00", sent=True):
    draft = create_draft(
        invoice_id=uuid4(),
        account_id=ACCOUNT,
        client_id=uuid4(),
        invoice_number="INV-20240115-001",
        issue_date=date(2024, 1, 15),
        due_date=date(2024, 2, 14),
        currency="EUR",
    )
    amount = Money.of(total, "EUR")
    invoice = replace(draft, sub_total=amount, total_amount=amount)
    return send(invoice) if sent else invoice


def _pay(invoice, amount, payment_type=PaymentType.PAYMENT, day=20):
    return PaymentLedger().record(
        payment_id=uuid4(),
        account_id=ACCOUNT,
        amount=Money.of(amount, "EUR"),
        payment_type=payment_type,
        payment_date=date(2024, 1, day),
        invoice=invoice,
    )


@pytest.fixture
def validator():
    return BillingValidator()


class TestClassify:
    @pytest.mark.parametrize(
        "balance,expected",
        [
            ("0.00", BillingStatus.VALID),
            ("1.50", BillingStatus.VALID),
            ("-1.50", BillingStatus.VALID),
            ("1.51", BillingStatus.UNDERBILLED),
            ("-1.51", BillingStatus.OVERBILLED),
        ],
    )
    def test_threshold_boundaries(self, balance, expected):
        assert classify(Money.of(balance, "EUR"), Money.of("1.50", "EUR")) == expected


class TestStatus:
    def test_paid_in_full(self, validator):
        invoice = _invoice()
        report = validator.status(invoice, [_pay(invoice, "100.00")])
        assert report.status == BillingStatus.VALID
        assert report.balance.is_zero

    def test_overpaid_beyond_threshold(self, validator):
        invoice = _invoice()
        report = validator.status(invoice, [_pay(invoice, "102.00")])
        assert report.balance.amount == Decimal("-2.00")
        assert report.status == BillingStatus.OVERBILLED
        assert any("overbilled" in w for w in report.warnings)

    def test_overpaid_within_threshold(self, validator):
        invoice = _invoice()
        report = validator.status(invoice, [_pay(invoice, "101.00")])
        assert report.balance.amount == Decimal("-1.00")
        assert report.status == BillingStatus.VALID

    def test_outstanding_balance(self, validator):
        invoice = _invoice()
        report = validator.status(invoice, [_pay(invoice, "40.00")])
        assert report.status == BillingStatus.UNDERBILLED
        assert report.balance.amount == Decimal("60.00")

    def test_refund_reopens_balance(self, validator):
        invoice = _invoice()
        payments = [_pay(invoice, "100.00"), _pay(invoice, "20.00", PaymentType.REFUND)]
        assert validator.status(invoice, payments).status == BillingStatus.UNDERBILLED

    def test_custom_threshold(self, validator):
        invoice = _invoice()
        report = validator.status(
            invoice, [_pay(invoice, "95.00")], threshold=Money.of("5.00", "EUR")
        )
        assert report.status == BillingStatus.VALID

    def test_threshold_currency_checked(self, validator):
        invoice = _invoice()
        with pytest.raises(CurrencyMismatchError):
            validator.status(invoice, [], threshold=Money.of("1.00", "USD"))

    def test_configured_default_threshold(self):
        invoice = _invoice()
        validator = BillingValidator(default_threshold=Decimal("0"))
        report = validator.status(invoice, [_pay(invoice, "101.00")])
        assert report.status == BillingStatus.OVERBILLED

    def test_payments_on_draft_warned(self, validator):
        invoice = _invoice(sent=False)
        report = validator.status(invoice, [_pay(invoice, "10.00")])
        assert "Payments are recorded against a draft invoice" in report.warnings


class TestDuplicates:
    def test_same_amount_same_day_flagged(self, validator):
        invoice = _invoice()
        payments = [_pay(invoice, "50.00"), _pay(invoice, "50.00"), _pay(invoice, "50.00", day=21)]
        check = validator.find_duplicate_payments(payments)
        assert check.has_duplicates
        assert check.duplicate_count == 1
        assert len(check.groups[0]) == 2

    def test_refund_not_duplicate_of_payment(self, validator):
        invoice = _invoice()
        payments = [_pay(invoice, "50.00"), _pay(invoice, "50.00", PaymentType.REFUND)]
        assert not validator.find_duplicate_payments(payments).has_duplicates

    def test_status_reports_duplicates_as_warning(self, validator):
        invoice = _invoice()
        report = validator.status(invoice, [_pay(invoice, "50.00"), _pay(invoice, "50.00")])
        assert report.status == BillingStatus.VALID
        assert report.duplicates.duplicate_count == 1
        assert any("duplicate" in w for w in report.warnings)


class TestValidateProposed:
    def test_strict_overbill_on_paid_invoice(self, validator):
        invoice = _invoice()
        result = validator.validate_proposed(
            invoice, [_pay(invoice, "100.00")], Money.of("50", "EUR"), strict=True
        )
        assert result.is_valid is False
        assert result.projected_status == BillingStatus.OVERBILLED
        assert result.projected_balance.amount == Decimal("-50.00")
        with pytest.raises(PaymentWouldOverbillError):
            result.raise_if_blocking()

    def test_non_strict_overbill_only_warns(self, validator):
        invoice = _invoice()
        result = validator.validate_proposed(
            invoice, [_pay(invoice, "100.00")], Money.of("50", "EUR")
        )
        assert result.is_valid is True
        assert any("overbill" in w for w in result.warnings)
        result.raise_if_blocking()

    def test_exact_settlement(self, validator):
        invoice = _invoice()
        result = validator.validate_proposed(
            invoice, [_pay(invoice, "40.00")], Money.of("60.00", "EUR"), strict=True
        )
        assert result.is_valid
        assert result.projected_status == BillingStatus.VALID
        assert result.current_balance.amount == Decimal("60.00")

    def test_zero_is_informational(self, validator):
        result = validator.validate_proposed(_invoice(), [], Money.of("0", "EUR"))
        assert result.is_valid
        assert "Proposed amount is zero" in result.warnings

    def test_negative_rejected(self, validator):
        with pytest.raises(InvalidAmountError):
            validator.validate_proposed(_invoice(), [], Money.of("-1", "EUR"))

    def test_cancelled_invoice_invalid(self, validator):
        result = validator.validate_proposed(
            cancel(_invoice()), [], Money.of("10.00", "EUR")
        )
        assert result.is_valid is False
        with pytest.raises(InvoiceCancelledError):
            result.raise_if_blocking()

    def test_nothing_mutated(self, validator):
        invoice = _invoice()
        payments = [_pay(invoice, "10.00")]
        validator.validate_proposed(invoice, payments, Money.of("20.00", "EUR"))
        assert len(payments) == 1
        assert validator.status(invoice, payments).balance.amount == Decimal("90.00")
