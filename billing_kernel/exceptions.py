"""
Typed Exception Hierarchy for the Billing Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Billing errors reach three kinds of callers: HTTP handlers that map them to
status codes, UIs that decide what the user can do next, and tests.  None of
them should parse message strings.  Every error therefore has:

  1. A TYPED exception class (catch by type, not message)
  2. A CODE class attribute (machine-readable, API-safe)
  3. Structured DATA attributes (invoice id, current status, amounts)

Example:
    try:
        service.cancel_invoice(invoice_id)
    except AlreadyCancelledError as e:
        api_response(code=e.code, invoice=e.invoice_id, status=e.current_status)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    BillingKernelError (base)
    |
    +-- BillingValidationError          caller-fixable input problems
    |   +-- InvalidAmountError
    |   +-- InvalidPaymentError
    |   +-- InvalidLineItemError
    |   +-- LineItemTotalMismatchError
    |   +-- DuplicateTimeEntryReferenceError
    |   +-- InvoiceValidationError
    |   +-- CorrectionReasonRequiredError
    |   +-- AmbiguousClientError
    |   +-- NoBillableEntriesError
    |   +-- PaymentWouldOverbillError
    |
    +-- CurrencyError
    |   +-- InvalidCurrencyError
    |   +-- CurrencyMismatchError
    |
    +-- InvoiceStateError               illegal transition for current state
    |   +-- AlreadyCancelledError
    |   +-- InvoiceCancelledError
    |   +-- NotCorrectableError
    |   +-- InvoiceHasDependentsError
    |   +-- InvoiceNotEditableError
    |   +-- InvalidTransitionError
    |   +-- CorrectionCycleError
    |
    +-- NotFoundError                   stale caller state
        +-- InvoiceNotFoundError
        +-- ProjectNotFoundError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                            | When Raised
-------------|---------------------------------|--------------------------------
Validation   | INVALID_AMOUNT                  | Payment amount <= 0
             | INVALID_PAYMENT                 | Refund without invoice, bad type
             | INVALID_LINE_ITEM               | Negative quantity / unit price
             | LINE_ITEM_TOTAL_MISMATCH        | total != round(qty * price)
             | DUPLICATE_TIME_ENTRY_REFERENCE  | Same time entry billed twice
             | INVOICE_VALIDATION              | Malformed draft input
             | CORRECTION_REASON_REQUIRED      | Empty correction reason
             | AMBIGUOUS_CLIENT                | Client cannot be resolved
             | NO_BILLABLE_ENTRIES             | Nothing left to invoice
             | PAYMENT_WOULD_OVERBILL          | Strict validation blocked
-------------|---------------------------------|--------------------------------
Currency     | INVALID_CURRENCY                | Not an ISO 4217 code
             | CURRENCY_MISMATCH               | Mixed currencies
-------------|---------------------------------|--------------------------------
State        | ALREADY_CANCELLED               | Cancelling a cancelled invoice
             | INVOICE_CANCELLED               | Paying a cancelled invoice
             | NOT_CORRECTABLE                 | Correcting draft/cancelled
             | INVOICE_HAS_DEPENDENTS          | Deleting issued/paid invoice
             | INVOICE_NOT_EDITABLE            | Editing items after draft
             | INVALID_TRANSITION              | Transition not in workflow
             | CORRECTION_CYCLE                | Correction chain loops
-------------|---------------------------------|--------------------------------
Not found    | INVOICE_NOT_FOUND               | Invoice id unknown
             | PROJECT_NOT_FOUND               | Project id unknown

===============================================================================
HANDLING PATTERNS
===============================================================================

Validation errors are never retried; the caller fixes the input.  State
errors carry ``current_status`` so a UI can offer the legal next action.
Not-found errors imply the caller's view is stale.  Nothing in this kernel
retries: transient failures belong to the storage collaborator.
"""


class BillingKernelError(Exception):
    """
    Base exception for all billing kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "BILLING_KERNEL_ERROR"


# Validation exceptions


class BillingValidationError(BillingKernelError):
    """Base exception for malformed or internally inconsistent input."""

    code: str = "BILLING_VALIDATION_ERROR"


class InvalidAmountError(BillingValidationError):
    """Monetary amount is zero, negative, or otherwise unusable."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, amount: str, reason: str = "amount must be strictly positive"):
        self.amount = amount
        self.reason = reason
        super().__init__(f"Invalid amount {amount}: {reason}")


class InvalidPaymentError(BillingValidationError):
    """Payment record is structurally invalid."""

    code: str = "INVALID_PAYMENT"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid payment: {reason}")


class InvalidLineItemError(BillingValidationError):
    """Line item has a negative quantity or price, or an empty description."""

    code: str = "INVALID_LINE_ITEM"

    def __init__(self, description: str, reason: str):
        self.description = description
        self.reason = reason
        super().__init__(f"Invalid line item '{description}': {reason}")


class LineItemTotalMismatchError(BillingValidationError):
    """Supplied total_price differs from round(quantity * unit_price)."""

    code: str = "LINE_ITEM_TOTAL_MISMATCH"

    def __init__(self, description: str, expected: str, supplied: str, currency: str):
        self.description = description
        self.expected = expected
        self.supplied = supplied
        self.currency = currency
        super().__init__(
            f"Line item '{description}' total {supplied} {currency} does not "
            f"match quantity * unit_price; expected {expected} {currency}"
        )


class DuplicateTimeEntryReferenceError(BillingValidationError):
    """A time entry is referenced by more than one line item on an invoice."""

    code: str = "DUPLICATE_TIME_ENTRY_REFERENCE"

    def __init__(self, time_entry_id: str, invoice_id: str):
        self.time_entry_id = time_entry_id
        self.invoice_id = invoice_id
        super().__init__(
            f"Time entry {time_entry_id} is already billed on invoice {invoice_id}"
        )


class InvoiceValidationError(BillingValidationError):
    """Invoice header input is malformed."""

    code: str = "INVOICE_VALIDATION"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid invoice {field}: {reason}")


class CorrectionReasonRequiredError(BillingValidationError):
    """A correction was requested without a reason."""

    code: str = "CORRECTION_REASON_REQUIRED"

    def __init__(self, invoice_id: str):
        self.invoice_id = invoice_id
        super().__init__(f"Correction of invoice {invoice_id} requires a reason")


class AmbiguousClientError(BillingValidationError):
    """The client to bill cannot be resolved to exactly one client."""

    code: str = "AMBIGUOUS_CLIENT"

    def __init__(self, client_id: str | None, project_id: str | None, reason: str):
        self.client_id = client_id
        self.project_id = project_id
        self.reason = reason
        super().__init__(
            f"Cannot resolve client (client={client_id}, project={project_id}): {reason}"
        )


class NoBillableEntriesError(BillingValidationError):
    """Filtered time entries contain nothing billable and not yet invoiced."""

    code: str = "NO_BILLABLE_ENTRIES"

    def __init__(self, client_id: str, skipped_already_invoiced: int = 0):
        self.client_id = client_id
        self.skipped_already_invoiced = skipped_already_invoiced
        super().__init__(
            f"No billable time entries for client {client_id} "
            f"({skipped_already_invoiced} already invoiced)"
        )


class PaymentWouldOverbillError(BillingValidationError):
    """Strict validation: the proposed payment would overbill the invoice."""

    code: str = "PAYMENT_WOULD_OVERBILL"

    def __init__(self, invoice_id: str, proposed_amount: str, projected_balance: str):
        self.invoice_id = invoice_id
        self.proposed_amount = proposed_amount
        self.projected_balance = projected_balance
        super().__init__(
            f"Payment of {proposed_amount} would overbill invoice {invoice_id} "
            f"(projected balance {projected_balance})"
        )


# Currency exceptions


class CurrencyError(BillingKernelError):
    """Base exception for currency-related errors."""

    code: str = "CURRENCY_ERROR"


class InvalidCurrencyError(CurrencyError):
    """Currency code is not a valid ISO 4217 code."""

    code: str = "INVALID_CURRENCY"

    def __init__(self, currency: str):
        self.currency = currency
        super().__init__(f"Invalid ISO 4217 currency code: {currency!r}")


class CurrencyMismatchError(CurrencyError):
    """Attempted operation on mismatched currencies."""

    code: str = "CURRENCY_MISMATCH"

    def __init__(self, currency1: str, currency2: str):
        self.currency1 = currency1
        self.currency2 = currency2
        super().__init__(f"Currency mismatch: {currency1} vs {currency2}")


# Invoice state exceptions


class InvoiceStateError(BillingKernelError):
    """Base exception for transitions that are illegal in the current state."""

    code: str = "INVOICE_STATE_ERROR"

    def __init__(self, invoice_id: str, current_status: str, message: str):
        self.invoice_id = invoice_id
        self.current_status = current_status
        super().__init__(message)


class AlreadyCancelledError(InvoiceStateError):
    """Invoice is already cancelled."""

    code: str = "ALREADY_CANCELLED"

    def __init__(self, invoice_id: str):
        super().__init__(
            invoice_id, "cancelled", f"Invoice {invoice_id} is already cancelled"
        )


class InvoiceCancelledError(InvoiceStateError):
    """Cancelled invoices accept no further payments."""

    code: str = "INVOICE_CANCELLED"

    def __init__(self, invoice_id: str):
        super().__init__(
            invoice_id,
            "cancelled",
            f"Invoice {invoice_id} is cancelled and accepts no payments",
        )


class NotCorrectableError(InvoiceStateError):
    """Invoice cannot be corrected in its current state."""

    code: str = "NOT_CORRECTABLE"

    def __init__(self, invoice_id: str, current_status: str, reason: str):
        self.reason = reason
        super().__init__(
            invoice_id,
            current_status,
            f"Invoice {invoice_id} ({current_status}) cannot be corrected: {reason}",
        )


class InvoiceHasDependentsError(InvoiceStateError):
    """Invoice cannot be deleted: it left draft or has payments."""

    code: str = "INVOICE_HAS_DEPENDENTS"

    def __init__(self, invoice_id: str, current_status: str, payment_count: int):
        self.payment_count = payment_count
        super().__init__(
            invoice_id,
            current_status,
            f"Invoice {invoice_id} ({current_status}, {payment_count} payments) "
            f"cannot be deleted",
        )


class InvoiceNotEditableError(InvoiceStateError):
    """Line items may only change directly while the invoice is a draft."""

    code: str = "INVOICE_NOT_EDITABLE"

    def __init__(self, invoice_id: str, current_status: str):
        super().__init__(
            invoice_id,
            current_status,
            f"Invoice {invoice_id} is {current_status}; line items can only be "
            f"changed through a correction",
        )


class InvalidTransitionError(InvoiceStateError):
    """Requested action is not a transition of the invoice workflow."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, invoice_id: str, current_status: str, action: str):
        self.action = action
        super().__init__(
            invoice_id,
            current_status,
            f"Cannot {action} invoice {invoice_id} in status {current_status}",
        )


class CorrectionCycleError(InvoiceStateError):
    """Correction chain references an invoice twice."""

    code: str = "CORRECTION_CYCLE"

    def __init__(self, invoice_id: str, current_status: str):
        super().__init__(
            invoice_id,
            current_status,
            f"Correction chain through invoice {invoice_id} forms a cycle",
        )


# Not-found exceptions


class NotFoundError(BillingKernelError):
    """Base exception for entities that do not (or no longer) exist."""

    code: str = "NOT_FOUND"


class InvoiceNotFoundError(NotFoundError):
    """Invoice with given ID was not found."""

    code: str = "INVOICE_NOT_FOUND"

    def __init__(self, invoice_id: str):
        self.invoice_id = invoice_id
        super().__init__(f"Invoice with ID {invoice_id} not found")


class ProjectNotFoundError(NotFoundError):
    """Project with given ID was not found."""

    code: str = "PROJECT_NOT_FOUND"

    def __init__(self, project_id: str):
        self.project_id = project_id
        super().__init__(f"Project with ID {project_id} not found")
