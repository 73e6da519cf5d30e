"""
Billing Kernel

Shared foundation for the invoice billing and reconciliation engine:
- Money and currency value objects with explicit rounding
- Typed exceptions with machine-readable codes
- Structured logging
- Invoice, line item, payment and time entry DTOs
- Persistence (SQLAlchemy models, invoice number sequence, selectors)
"""

__version__ = "0.1.0"
