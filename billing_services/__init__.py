"""
billing_services -- Package init and public API.

Responsibility:
    Stateful orchestration over the pure engines (billing_engines/) and
    the kernel's database layer.  This is the only layer that holds a
    session, commits transactions or reads the clock.

Architecture position:
    Services -- stateful orchestration over engines + kernel.

        billing_services/ -> billing_engines/  (allowed)
        billing_services/ -> billing_kernel/   (allowed)
        billing_engines/  -> billing_services/ (FORBIDDEN)
        billing_kernel/   -> billing_services/ (FORBIDDEN)
"""

from billing_services.invoice_service import (
    BillingHistoryEntry,
    GenerationResult,
    InvoiceService,
    PaymentResult,
)

__all__ = [
    "BillingHistoryEntry",
    "GenerationResult",
    "InvoiceService",
    "PaymentResult",
]
