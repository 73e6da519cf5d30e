"""
Invoice Service - Orchestrates billing operations via engines + kernel.

Thin glue layer that:
1. Loads invoices, payments and time entries through the selectors
2. Calls the pure engines (LineItemLedger, TimeEntryAggregator,
   PaymentLedger, BillingValidator, CorrectionManager)
3. Writes the resulting DTOs back through the ORM models

All computation lives in engines.  This service owns the transaction
boundary: every mutating operation commits on success and rolls back on any
exception before re-raising, so a failed ``replace_line_items`` or
``correct_invoice`` leaves nothing behind.

Invoice rows and the per-account number counter are read with
``SELECT ... FOR UPDATE`` before they are changed.

Usage:
    service = InvoiceService(session, clock=SystemClock())
    draft = service.create_draft_invoice(account_id, client_id)
    draft = service.add_line_items(draft.id, [
        LineItemSpec("Consulting", Decimal("10"), Money.of("100.00", "EUR")),
    ])
    service.send_invoice(draft.id)
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from billing_config import BillingConfig
from billing_engines import (
    AggregationResult,
    BillingStatusReport,
    BillingValidator,
    CorrectionManager,
    CorrectionResult,
    DuplicatePaymentCheck,
    LineItemLedger,
    PaymentBreakdown,
    PaymentLedger,
    ProposedPaymentValidation,
    TimeEntryAggregator,
    cancel,
    create_draft,
    display_status,
    ensure_deletable,
    ensure_items_editable,
    format_invoice_number,
    send,
)
from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.domain.dtos import (
    DisplayStatus,
    Invoice,
    InvoiceChanges,
    InvoiceStatus,
    LineItemSpec,
    Payment,
    PaymentType,
    RateType,
)
from billing_kernel.domain.values import Currency, Money
from billing_kernel.exceptions import CurrencyMismatchError, InvoiceNotFoundError
from billing_kernel.logging_config import LogContext, get_logger
from billing_kernel.models.invoice import InvoiceModel
from billing_kernel.models.payment import PaymentModel
from billing_kernel.selectors.invoice_selector import InvoiceSelector
from billing_kernel.selectors.time_entry_selector import TimeEntrySelector
from billing_kernel.services.sequence_service import InvoiceNumberSequence

logger = get_logger("services.invoice")


@dataclass(frozen=True)
class GenerationResult:
    """A draft generated from time entries plus the aggregation report."""

    invoice: Invoice
    aggregation: AggregationResult


@dataclass(frozen=True)
class PaymentResult:
    payment: Payment
    warnings: tuple[str, ...] = ()


@dataclass(frozen=True)
class BillingHistoryEntry:
    """One row of a client's billing history."""

    invoice: Invoice
    display_status: DisplayStatus
    amount_paid: Money
    balance: Money


class InvoiceService:
    """
    Orchestrates invoicing, payment tracking and corrections.

    Engine composition:
    - LineItemLedger: item validation and total recomputation
    - TimeEntryAggregator: line items from tracked time
    - PaymentLedger: payment recording and applied totals
    - BillingValidator: billing status and proposed-payment checks
    - CorrectionManager: superseding invoices for issued ones

    Transaction boundary: this service commits on success, rolls back on failure.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: BillingConfig | None = None,
        actor_id: UUID | None = None,
        id_factory: Callable[[], UUID] = uuid4,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or BillingConfig.with_defaults()
        self._actor_id = actor_id
        self._id_factory = id_factory

        # Kernel collaborators (share session for atomicity)
        self._invoices = InvoiceSelector(session)
        self._time_entries = TimeEntrySelector(session)
        self._sequence = InvoiceNumberSequence(session)

        # Stateless engines
        self._ledger = LineItemLedger(id_factory=id_factory, rounding=self._config.rounding)
        self._aggregator = TimeEntryAggregator(
            hours_per_day=self._config.hours_per_day,
            rounding=self._config.rounding,
        )
        self._payments = PaymentLedger()
        self._validator = BillingValidator(
            default_threshold=self._config.default_threshold,
            ledger=self._payments,
        )
        self._corrections = CorrectionManager(
            ledger=self._ledger,
            payments=self._payments,
            id_factory=id_factory,
            correction_status=InvoiceStatus(self._config.correction_status),
        )

    # =========================================================================
    # Internal helpers
    # =========================================================================

    def _lock_invoice(self, invoice_id: UUID) -> InvoiceModel:
        model = self._session.execute(
            select(InvoiceModel)
            .where(InvoiceModel.id == invoice_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if model is None:
            raise InvoiceNotFoundError(str(invoice_id))
        return model

    def _next_number(self, account_id: UUID, issue_date: date) -> str:
        sequence = self._sequence.next_value(account_id)
        return format_invoice_number(
            issue_date,
            sequence,
            prefix=self._config.invoice_number_prefix,
            width=self._config.invoice_number_width,
        )

    def _new_draft(
        self,
        account_id: UUID,
        client_id: UUID,
        *,
        currency: Currency,
        issue_date: date | None,
        due_date: date | None,
        tax_rate: Decimal,
        exclude_from_tax: bool,
        project_id: UUID | None,
        invoice_headline: str | None,
        invoice_text: str | None,
        footer_text: str | None,
        notes: str | None,
        delivery_date: str | None = None,
    ) -> Invoice:
        issue_date = issue_date or self._clock.today()
        if due_date is None:
            due_date = issue_date + timedelta(days=self._config.default_payment_terms_days)
        return create_draft(
            invoice_id=self._id_factory(),
            account_id=account_id,
            client_id=client_id,
            invoice_number=self._next_number(account_id, issue_date),
            issue_date=issue_date,
            due_date=due_date,
            currency=currency,
            tax_rate=tax_rate,
            exclude_from_tax=exclude_from_tax,
            project_id=project_id,
            invoice_headline=invoice_headline,
            invoice_text=invoice_text,
            footer_text=footer_text,
            notes=notes,
            delivery_date=delivery_date,
        )

    def _insert(self, invoice: Invoice) -> InvoiceModel:
        model = InvoiceModel.from_dto(invoice, created_by_id=self._actor_id)
        model.items = model.build_items(invoice.items)
        self._session.add(model)
        self._session.flush()
        return model

    def _replace_stored_items(self, model: InvoiceModel, invoice: Invoice) -> None:
        model.apply_dto(invoice)
        model.items.clear()
        # Old rows and their time entry links must be gone before the new
        # ones are inserted, or the per-invoice time entry constraint trips.
        self._session.flush()
        model.items.extend(model.build_items(invoice.items))
        self._session.flush()

    def _amount(self, value: Money | Decimal | str, currency: Currency) -> Money:
        if isinstance(value, Money):
            return value
        return Money.of(value, currency)

    # =========================================================================
    # Drafts and line items
    # =========================================================================

    def create_draft_invoice(
        self,
        account_id: UUID,
        client_id: UUID,
        *,
        currency: str | Currency | None = None,
        issue_date: date | None = None,
        due_date: date | None = None,
        tax_rate: Decimal = Decimal("0"),
        exclude_from_tax: bool = False,
        project_id: UUID | None = None,
        items: Sequence[LineItemSpec] = (),
        invoice_headline: str | None = None,
        invoice_text: str | None = None,
        footer_text: str | None = None,
        notes: str | None = None,
    ) -> Invoice:
        """
        Create a draft with a freshly allocated invoice number.

        The due date defaults to issue date plus the configured payment
        terms.  A project, when given, must bill in the invoice currency.
        """
        with LogContext.bind(account_id=account_id, actor_id=self._actor_id):
            try:
                currency = Currency(str(currency or self._config.default_currency))
                if project_id is not None:
                    project = self._time_entries.get_project(project_id)
                    if project.currency != currency:
                        raise CurrencyMismatchError(currency.code, project.currency.code)

                invoice = self._new_draft(
                    account_id,
                    client_id,
                    currency=currency,
                    issue_date=issue_date,
                    due_date=due_date,
                    tax_rate=tax_rate,
                    exclude_from_tax=exclude_from_tax,
                    project_id=project_id,
                    invoice_headline=invoice_headline,
                    invoice_text=invoice_text,
                    footer_text=footer_text,
                    notes=notes,
                )
                if items:
                    invoice = self._ledger.add_items(invoice, items)
                self._insert(invoice)
                self._session.commit()
                logger.info("invoice_draft_committed", extra={
                    "invoice_id": str(invoice.id),
                    "invoice_number": invoice.invoice_number,
                    "total_amount": str(invoice.total_amount.amount),
                })
                return invoice

            except Exception:
                self._session.rollback()
                raise

    def add_line_items(
        self, invoice_id: UUID, items: Sequence[LineItemSpec]
    ) -> Invoice:
        """Append items to a draft and recompute its totals."""
        with LogContext.bind(invoice_id=invoice_id, actor_id=self._actor_id):
            try:
                model = self._lock_invoice(invoice_id)
                current = model.to_dto()
                ensure_items_editable(current)

                updated = self._ledger.add_items(current, items)
                model.apply_dto(updated)
                model.items.extend(
                    model.build_items(
                        updated.items[len(current.items):], start=len(current.items)
                    )
                )
                self._session.flush()
                self._session.commit()
                return updated

            except Exception:
                self._session.rollback()
                raise

    def replace_line_items(
        self, invoice_id: UUID, items: Sequence[LineItemSpec]
    ) -> Invoice:
        """
        Replace every item of a draft.  All-or-nothing: on any error the
        stored items and totals are exactly what they were.
        """
        with LogContext.bind(invoice_id=invoice_id, actor_id=self._actor_id):
            try:
                model = self._lock_invoice(invoice_id)
                current = model.to_dto()
                ensure_items_editable(current)

                updated = self._ledger.replace_items(current, items)
                self._replace_stored_items(model, updated)
                self._session.commit()
                return updated

            except Exception:
                self._session.rollback()
                logger.warning("line_item_replacement_rolled_back", extra={
                    "invoice_id": str(invoice_id),
                })
                raise

    def generate_from_time_entries(
        self,
        account_id: UUID,
        *,
        client_id: UUID | None = None,
        project_id: UUID | None = None,
        time_entry_ids: Sequence[UUID] | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
        rate_type: RateType = RateType.HOURLY,
        currency: str | Currency | None = None,
        issue_date: date | None = None,
        due_date: date | None = None,
        tax_rate: Decimal = Decimal("0"),
        exclude_from_tax: bool = False,
        invoice_headline: str | None = None,
        invoice_text: str | None = None,
        footer_text: str | None = None,
        notes: str | None = None,
    ) -> GenerationResult:
        """
        Create a draft billing the selected time entries.

        Entries are those of ``project_id`` (or of every project of
        ``client_id``), optionally narrowed to ``time_entry_ids`` and to an
        inclusive date range.  Entries already on a non-cancelled invoice
        are never billed again.
        """
        with LogContext.bind(account_id=account_id, actor_id=self._actor_id):
            try:
                project = (
                    self._time_entries.get_project(project_id)
                    if project_id is not None
                    else None
                )
                billed_client = self._aggregator.resolve_client(client_id, project)

                if project is not None:
                    projects = [project]
                    invoice_currency = project.currency
                else:
                    projects = self._time_entries.projects_for_client(billed_client)
                    invoice_currency = Currency(
                        str(currency or self._config.default_currency)
                    )
                if currency is not None and Currency(str(currency)) != invoice_currency:
                    raise CurrencyMismatchError(
                        invoice_currency.code, Currency(str(currency)).code
                    )

                entries = self._time_entries.entries_for_projects(
                    [p.id for p in projects],
                    time_entry_ids=list(time_entry_ids) if time_entry_ids is not None else None,
                    date_from=date_from,
                    date_to=date_to,
                )
                invoiced = self._time_entries.invoiced_entry_ids([e.id for e in entries])
                aggregation = self._aggregator.aggregate(
                    entries,
                    invoiced_entry_ids=invoiced,
                    currency=invoice_currency,
                    projects={p.id: p for p in projects},
                    client_id=billed_client,
                    rate_type=rate_type,
                )

                invoice = self._new_draft(
                    account_id,
                    billed_client,
                    currency=invoice_currency,
                    issue_date=issue_date,
                    due_date=due_date,
                    tax_rate=tax_rate,
                    exclude_from_tax=exclude_from_tax,
                    project_id=project.id if project is not None else None,
                    invoice_headline=invoice_headline,
                    invoice_text=invoice_text,
                    footer_text=footer_text,
                    notes=notes,
                    delivery_date=aggregation.delivery_date,
                )
                invoice = self._ledger.add_items(invoice, aggregation.line_items)
                self._insert(invoice)
                self._session.commit()

                logger.info("invoice_generated_from_time_entries", extra={
                    "invoice_id": str(invoice.id),
                    "invoice_number": invoice.invoice_number,
                    "client_id": str(billed_client),
                    "billed_entry_count": len(aggregation.included_entry_ids),
                    "skipped_already_invoiced": aggregation.skipped_already_invoiced,
                    "total_amount": str(invoice.total_amount.amount),
                })
                return GenerationResult(invoice=invoice, aggregation=aggregation)

            except Exception:
                self._session.rollback()
                raise

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def send_invoice(self, invoice_id: UUID) -> Invoice:
        with LogContext.bind(invoice_id=invoice_id, actor_id=self._actor_id):
            try:
                model = self._lock_invoice(invoice_id)
                sent = send(model.to_dto())
                model.apply_dto(sent)
                self._session.commit()
                return sent

            except Exception:
                self._session.rollback()
                raise

    def cancel_invoice(self, invoice_id: UUID) -> Invoice:
        """Cancel a draft or sent invoice.  A second cancel raises."""
        with LogContext.bind(invoice_id=invoice_id, actor_id=self._actor_id):
            try:
                model = self._lock_invoice(invoice_id)
                cancelled = cancel(model.to_dto())
                model.apply_dto(cancelled)
                self._session.commit()
                return cancelled

            except Exception:
                self._session.rollback()
                raise

    def delete_invoice(self, invoice_id: UUID) -> None:
        """Delete a draft that has no payments, with its items."""
        with LogContext.bind(invoice_id=invoice_id, actor_id=self._actor_id):
            try:
                model = self._lock_invoice(invoice_id)
                invoice = model.to_dto()
                ensure_deletable(invoice, self._invoices.payment_count(invoice_id))
                self._session.delete(model)
                self._session.commit()
                logger.info("invoice_deleted", extra={
                    "invoice_id": str(invoice_id),
                    "invoice_number": invoice.invoice_number,
                })

            except Exception:
                self._session.rollback()
                raise

    def correct_invoice(
        self,
        invoice_id: UUID,
        changes: InvoiceChanges,
        correction_date: date | None = None,
    ) -> CorrectionResult:
        """
        Supersede an issued invoice with a correction.

        The source keeps its items, totals and payments; it gains the link
        to the correction and its own ``original_snapshot``.  Source and
        correction are written in one transaction.
        """
        with LogContext.bind(invoice_id=invoice_id, actor_id=self._actor_id):
            try:
                model = self._lock_invoice(invoice_id)
                source = model.to_dto()
                self._corrections.ensure_correctable(source)
                payments = self._invoices.payments_for_invoice(invoice_id)

                number = self._next_number(
                    source.account_id, changes.issue_date or source.issue_date
                )
                result = self._corrections.correct(
                    source,
                    changes,
                    correction_number=number,
                    correction_date=correction_date or self._clock.today(),
                    payments=payments,
                )

                self._insert(result.correction)
                model.apply_dto(result.source)
                self._session.flush()
                self._session.commit()
                return result

            except Exception:
                self._session.rollback()
                raise

    # =========================================================================
    # Payments
    # =========================================================================

    def record_payment(
        self,
        account_id: UUID,
        amount: Money,
        *,
        invoice_id: UUID | None = None,
        payment_type: PaymentType = PaymentType.PAYMENT,
        payment_date: date | None = None,
        client_id: UUID | None = None,
        exclude_from_tax: bool = False,
        payment_method: str | None = None,
        transaction_id: str | None = None,
        notes: str | None = None,
        strict: bool = False,
    ) -> PaymentResult:
        """
        Record a payment, refund or expense.

        Payments against an invoice are checked first with the billing
        validator.  Its warnings are returned; in strict mode a payment
        that would overbill is refused with PaymentWouldOverbillError.
        """
        with LogContext.bind(
            account_id=account_id, invoice_id=invoice_id, actor_id=self._actor_id
        ):
            try:
                invoice = None
                warnings: tuple[str, ...] = ()
                if invoice_id is not None:
                    invoice = self._lock_invoice(invoice_id).to_dto()
                    if payment_type == PaymentType.PAYMENT and amount.is_positive:
                        validation = self._validator.validate_proposed(
                            invoice,
                            self._invoices.payments_for_invoice(invoice_id),
                            amount,
                            strict=strict,
                        )
                        if strict:
                            validation.raise_if_blocking()
                        warnings = validation.warnings

                payment = self._payments.record(
                    payment_id=self._id_factory(),
                    account_id=account_id,
                    amount=amount,
                    payment_type=payment_type,
                    payment_date=payment_date or self._clock.today(),
                    invoice=invoice,
                    client_id=client_id,
                    exclude_from_tax=exclude_from_tax,
                    payment_method=payment_method,
                    transaction_id=transaction_id,
                    notes=notes,
                )
                model = PaymentModel.from_dto(payment, created_by_id=self._actor_id)
                self._session.add(model)
                self._session.flush()
                stored = model.to_dto()
                self._session.commit()
                return PaymentResult(payment=stored, warnings=warnings)

            except Exception:
                self._session.rollback()
                raise

    # =========================================================================
    # Reads
    # =========================================================================

    def get_invoice(self, invoice_id: UUID) -> Invoice:
        return self._invoices.get(invoice_id)

    def billing_status(
        self, invoice_id: UUID, threshold: Money | Decimal | str | None = None
    ) -> BillingStatusReport:
        """Point-in-time reconciliation; recomputed on every call."""
        invoice = self._invoices.get(invoice_id)
        payments = self._invoices.payments_for_invoice(invoice_id)
        if threshold is not None:
            threshold = self._amount(threshold, invoice.currency)
        return self._validator.status(invoice, payments, threshold)

    def validate_payment(
        self,
        invoice_id: UUID,
        amount: Money | Decimal | str,
        threshold: Money | Decimal | str | None = None,
        strict: bool = False,
    ) -> ProposedPaymentValidation:
        """What recording ``amount`` would do.  Nothing is written."""
        invoice = self._invoices.get(invoice_id)
        payments = self._invoices.payments_for_invoice(invoice_id)
        if threshold is not None:
            threshold = self._amount(threshold, invoice.currency)
        return self._validator.validate_proposed(
            invoice,
            payments,
            self._amount(amount, invoice.currency),
            threshold=threshold,
            strict=strict,
        )

    def payment_breakdown(self, invoice_id: UUID) -> PaymentBreakdown:
        invoice = self._invoices.get(invoice_id)
        return self._payments.breakdown(
            invoice, self._invoices.payments_for_invoice(invoice_id)
        )

    def check_duplicate_payments(self, invoice_id: UUID) -> DuplicatePaymentCheck:
        invoice = self._invoices.get(invoice_id)
        payments = self._invoices.payments_for_invoice(invoice_id)
        return self._validator.find_duplicate_payments(
            self._payments.applied(invoice, payments)
        )

    def billing_history(
        self, client_id: UUID, as_of: date | None = None
    ) -> list[BillingHistoryEntry]:
        """Every invoice of a client with its display status, oldest first."""
        as_of = as_of or self._clock.today()
        invoices = self._invoices.list_for_client(client_id)
        payments = self._invoices.payments_for_invoices([inv.id for inv in invoices])

        history = []
        for invoice in invoices:
            paid = self._payments.amount_paid(invoice, payments)
            threshold = Money.of(self._config.default_threshold, invoice.currency)
            history.append(
                BillingHistoryEntry(
                    invoice=invoice,
                    display_status=display_status(invoice, paid, threshold, as_of),
                    amount_paid=paid,
                    balance=invoice.total_amount - paid,
                )
            )
        return history

    def correction_chain(self, invoice_id: UUID) -> tuple[Invoice, ...]:
        """The original invoice followed by each correction, in order."""
        family = self._invoices.correction_family(invoice_id)
        return self._corrections.correction_chain(family, invoice_id)
