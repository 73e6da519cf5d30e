"""
Project and time entry ORM models (``billing_kernel.models.time_tracking``).

Both are owned by the time-tracking side of the application; billing only
reads them.  They live here so invoice generation can join against them.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, Date, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from billing_kernel.db.base import TrackedBase
from billing_kernel.domain.values import plain_decimal


class ProjectModel(TrackedBase):
    """ORM model for projects."""

    __tablename__ = "projects"

    account_id: Mapped[UUID] = mapped_column(nullable=False)
    client_id: Mapped[UUID | None] = mapped_column(nullable=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    hourly_rate: Mapped[Decimal | None] = mapped_column(nullable=True)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    def to_dto(self):
        from billing_kernel.domain.dtos import Project
        from billing_kernel.domain.values import Currency

        return Project(
            id=self.id,
            name=self.name,
            currency=Currency(self.currency),
            client_id=self.client_id,
            hourly_rate=(
                plain_decimal(self.hourly_rate) if self.hourly_rate is not None else None
            ),
        )

    @classmethod
    def from_dto(cls, dto, account_id: UUID) -> "ProjectModel":
        return cls(
            id=dto.id,
            account_id=account_id,
            client_id=dto.client_id,
            name=dto.name,
            hourly_rate=dto.hourly_rate,
            currency=dto.currency.code,
        )


class TimeEntryModel(TrackedBase):
    """ORM model for tracked time."""

    __tablename__ = "time_entries"

    __table_args__ = (
        Index("idx_time_entries_project_id", "project_id"),
        Index("idx_time_entries_entry_date", "entry_date"),
    )

    account_id: Mapped[UUID] = mapped_column(nullable=False)
    project_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("projects.id"), nullable=True
    )
    entry_date: Mapped[date] = mapped_column(Date, nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    duration_hours: Mapped[Decimal | None] = mapped_column(nullable=True)
    started_at: Mapped[datetime | None] = mapped_column(nullable=True)
    ended_at: Mapped[datetime | None] = mapped_column(nullable=True)
    hourly_rate: Mapped[Decimal | None] = mapped_column(nullable=True)
    task_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_billable: Mapped[bool] = mapped_column(Boolean, default=True)

    def to_dto(self):
        from billing_kernel.domain.dtos import TimeEntry

        return TimeEntry(
            id=self.id,
            entry_date=self.entry_date,
            description=self.description or "",
            project_id=self.project_id,
            duration_hours=(
                plain_decimal(self.duration_hours)
                if self.duration_hours is not None
                else None
            ),
            started_at=self.started_at,
            ended_at=self.ended_at,
            hourly_rate=(
                plain_decimal(self.hourly_rate) if self.hourly_rate is not None else None
            ),
            task_name=self.task_name,
            is_billable=self.is_billable,
        )

    @classmethod
    def from_dto(cls, dto, account_id: UUID) -> "TimeEntryModel":
        return cls(
            id=dto.id,
            account_id=account_id,
            project_id=dto.project_id,
            entry_date=dto.entry_date,
            description=dto.description,
            duration_hours=dto.duration_hours,
            started_at=dto.started_at,
            ended_at=dto.ended_at,
            hourly_rate=dto.hourly_rate,
            task_name=dto.task_name,
            is_billable=dto.is_billable,
        )
