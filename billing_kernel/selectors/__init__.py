"""Read-only query selectors."""

from billing_kernel.selectors.base import BaseSelector
from billing_kernel.selectors.invoice_selector import InvoiceSelector
from billing_kernel.selectors.time_entry_selector import TimeEntrySelector

__all__ = ["BaseSelector", "InvoiceSelector", "TimeEntrySelector"]
