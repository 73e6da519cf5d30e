"""
Module: billing_engines
Responsibility:
    Package entrypoint re-exporting the pure billing engines.  Canonical
    import surface for billing_services.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May import billing_kernel.domain, billing_kernel.exceptions and
    billing_kernel.logging_config.  MUST NOT import billing_services or the
    kernel's db/, models/, selectors/ or services/.

Invariants enforced:
    - Purity: engines never read the clock.  Dates such as ``as_of`` and
      ``correction_date`` are passed in by the caller.
    - Decimal-only arithmetic through ``Money``; floats are rejected.
    - Determinism: identical inputs produce identical outputs (apart from
      ids drawn from the injected ``id_factory``).

Usage:
    from billing_engines import LineItemLedger, BillingValidator
"""

from billing_engines.billing_validation import (
    DEFAULT_THRESHOLD,
    BillingStatusReport,
    BillingValidator,
    DuplicatePaymentCheck,
    ProposedPaymentValidation,
    classify,
)
from billing_engines.correction import CorrectionManager, CorrectionResult
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
from billing_engines.line_items import LineItemLedger
from billing_engines.payments import PaymentBreakdown, PaymentLedger, PaymentTotals
from billing_engines.time_aggregation import AggregationResult, TimeEntryAggregator

__all__ = [
    "AggregationResult",
    "BillingStatusReport",
    "BillingValidator",
    "CorrectionManager",
    "CorrectionResult",
    "DEFAULT_THRESHOLD",
    "DuplicatePaymentCheck",
    "INVOICE_WORKFLOW",
    "LineItemLedger",
    "PaymentBreakdown",
    "PaymentLedger",
    "PaymentTotals",
    "ProposedPaymentValidation",
    "TimeEntryAggregator",
    "cancel",
    "classify",
    "create_draft",
    "display_status",
    "ensure_deletable",
    "ensure_items_editable",
    "format_invoice_number",
    "send",
]
