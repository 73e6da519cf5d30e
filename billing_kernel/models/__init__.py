"""SQLAlchemy ORM models for the billing kernel."""

from billing_kernel.models.invoice import (
    InvoiceModel,
    LineItemModel,
    LineItemTimeEntryModel,
)
from billing_kernel.models.payment import PaymentModel
from billing_kernel.models.time_tracking import ProjectModel, TimeEntryModel


def import_all_models() -> None:
    """Make sure every table is registered on ``Base.metadata``."""
    from billing_kernel.services import sequence_service  # noqa: F401


__all__ = [
    "InvoiceModel",
    "LineItemModel",
    "LineItemTimeEntryModel",
    "PaymentModel",
    "ProjectModel",
    "TimeEntryModel",
    "import_all_models",
]
