"""
Pure domain layer.

Value objects, DTOs and workflow types with NO dependencies on the ORM,
the database or I/O.  Everything here is immutable.
"""

from billing_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from billing_kernel.domain.currency import CurrencyInfo, CurrencyRegistry
from billing_kernel.domain.dtos import (
    BillingStatus,
    DisplayStatus,
    Invoice,
    InvoiceChanges,
    InvoiceStatus,
    LineItem,
    LineItemSpec,
    Payment,
    PaymentType,
    Project,
    RateType,
    TimeEntry,
)
from billing_kernel.domain.values import Currency, Money, sum_money
from billing_kernel.domain.workflow import Transition, Workflow

__all__ = [
    "BillingStatus",
    "Clock",
    "Currency",
    "CurrencyInfo",
    "CurrencyRegistry",
    "DeterministicClock",
    "DisplayStatus",
    "Invoice",
    "InvoiceChanges",
    "InvoiceStatus",
    "LineItem",
    "LineItemSpec",
    "Money",
    "Payment",
    "PaymentType",
    "Project",
    "RateType",
    "SystemClock",
    "TimeEntry",
    "Transition",
    "Workflow",
    "sum_money",
]
