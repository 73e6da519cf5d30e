"""Kernel services: imperative shell infrastructure shared by billing services."""

from billing_kernel.services.sequence_service import (
    InvoiceNumberCounter,
    InvoiceNumberSequence,
)

__all__ = [
    "InvoiceNumberCounter",
    "InvoiceNumberSequence",
]
