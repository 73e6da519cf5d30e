"""
Time entry and project read queries used by invoice generation.

Filtering by explicit ids or by date range happens here, before the
aggregator sees anything.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import select

from billing_kernel.domain.dtos import Project, TimeEntry
from billing_kernel.exceptions import ProjectNotFoundError
from billing_kernel.models.invoice import InvoiceModel, LineItemTimeEntryModel
from billing_kernel.models.time_tracking import ProjectModel, TimeEntryModel
from billing_kernel.selectors.base import BaseSelector


class TimeEntrySelector(BaseSelector):
    """Queries over projects, time entries and their invoice links."""

    def get_project(self, project_id: UUID) -> Project:
        model = self.session.get(ProjectModel, project_id)
        if model is None:
            raise ProjectNotFoundError(str(project_id))
        return model.to_dto()

    def projects_for_client(self, client_id: UUID) -> list[Project]:
        models = self.session.execute(
            select(ProjectModel).where(ProjectModel.client_id == client_id)
        ).scalars()
        return [m.to_dto() for m in models]

    def projects_by_id(self, project_ids: set[UUID]) -> dict[UUID, Project]:
        if not project_ids:
            return {}
        models = self.session.execute(
            select(ProjectModel).where(ProjectModel.id.in_(project_ids))
        ).scalars()
        return {m.id: m.to_dto() for m in models}

    def entries_for_projects(
        self,
        project_ids: list[UUID],
        time_entry_ids: list[UUID] | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> list[TimeEntry]:
        """
        Time entries on the given projects, optionally narrowed to explicit
        ids and an inclusive date range.  Oldest first.
        """
        if not project_ids:
            return []
        stmt = select(TimeEntryModel).where(TimeEntryModel.project_id.in_(project_ids))
        if time_entry_ids is not None:
            stmt = stmt.where(TimeEntryModel.id.in_(time_entry_ids))
        if date_from is not None:
            stmt = stmt.where(TimeEntryModel.entry_date >= date_from)
        if date_to is not None:
            stmt = stmt.where(TimeEntryModel.entry_date <= date_to)
        stmt = stmt.order_by(TimeEntryModel.entry_date, TimeEntryModel.started_at)
        return [m.to_dto() for m in self.session.execute(stmt).scalars()]

    def invoiced_entry_ids(self, time_entry_ids: list[UUID]) -> frozenset[UUID]:
        """Entries already billed on any invoice that is not cancelled."""
        if not time_entry_ids:
            return frozenset()
        rows = self.session.execute(
            select(LineItemTimeEntryModel.time_entry_id)
            .join(InvoiceModel, InvoiceModel.id == LineItemTimeEntryModel.invoice_id)
            .where(
                LineItemTimeEntryModel.time_entry_id.in_(time_entry_ids),
                InvoiceModel.status != "cancelled",
            )
        ).scalars()
        return frozenset(rows)
