"""
Time-Entry Aggregator.

Pure functions with deterministic behavior. No I/O.

Turns tracked time into invoice line items.  Entries are grouped by
(project, task, effective rate, rate type); each group becomes one line
item that lists every time entry it bills.

    hours          = duration_hours, else ended_at - started_at, else 0
    effective rate = entry rate, else project rate, else 0
    hourly qty     = round(sum(hours), 2)
    daily qty      = round(sum(hours) / hours_per_day, 2)

Entries that are not billable, or that already sit on an invoice that is
not cancelled, are skipped and counted.  Nothing left to bill is an error
(NoBillableEntriesError), not an empty invoice.

Filtering by explicit ids or by date range is done by the selector before
aggregation.
"""

from __future__ import annotations

from collections.abc import Collection, Mapping, Sequence
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_EVEN, Decimal
from uuid import UUID

from billing_kernel.domain.dtos import LineItemSpec, Project, RateType, TimeEntry
from billing_kernel.domain.values import Currency, Money
from billing_kernel.exceptions import (
    AmbiguousClientError,
    CurrencyMismatchError,
    NoBillableEntriesError,
)
from billing_kernel.logging_config import get_logger
from billing_engines.tracer import traced_engine

logger = get_logger("engines.time_aggregation")

_TWO_PLACES = Decimal("0.01")
_SECONDS_PER_HOUR = Decimal(3600)


@dataclass(frozen=True)
class AggregationResult:
    """Line items to add plus what was left out and why."""

    line_items: tuple[LineItemSpec, ...]
    included_entry_ids: tuple[UUID, ...]
    skipped_already_invoiced: int
    skipped_non_billable: int
    earliest_entry_date: date | None

    @property
    def delivery_date(self) -> str | None:
        """``MM/YYYY`` of the earliest billed work month."""
        if self.earliest_entry_date is None:
            return None
        return f"{self.earliest_entry_date:%m/%Y}"


@dataclass
class _Group:
    description: str
    rate: Decimal
    hours: Decimal
    entry_ids: list[UUID]


def entry_hours(entry: TimeEntry) -> Decimal:
    """Duration in hours; timestamps are used only when duration is missing."""
    if entry.duration_hours:
        return entry.duration_hours
    if entry.started_at is not None and entry.ended_at is not None:
        seconds = Decimal(int((entry.ended_at - entry.started_at).total_seconds()))
        if seconds > 0:
            return seconds / _SECONDS_PER_HOUR
    return Decimal("0")


def effective_rate(entry: TimeEntry, project: Project | None) -> Decimal:
    if entry.hourly_rate is not None:
        return entry.hourly_rate
    if project is not None and project.hourly_rate is not None:
        return project.hourly_rate
    return Decimal("0")


def _describe(project: Project | None, task_name: str | None, entry: TimeEntry) -> str:
    if project is not None and task_name:
        return f"{project.name} - {task_name}"
    if project is not None:
        return project.name
    if task_name:
        return task_name
    return entry.description or f"Work on {entry.entry_date.isoformat()}"


class TimeEntryAggregator:
    """Resolves the client to bill and groups time entries into line items."""

    def __init__(
        self,
        hours_per_day: Decimal = Decimal("8"),
        rounding: str = ROUND_HALF_EVEN,
    ):
        if hours_per_day <= 0:
            raise ValueError("hours_per_day must be positive")
        self._hours_per_day = hours_per_day
        self._rounding = rounding

    def resolve_client(
        self, client_id: UUID | None, project: Project | None
    ) -> UUID:
        """
        The client to bill.  Exactly one answer or AmbiguousClientError:
        neither given, project without a client, or client and project
        disagreeing.
        """
        project_id = str(project.id) if project is not None else None
        if project is None:
            if client_id is None:
                raise AmbiguousClientError(
                    None, None, "either a client or a project is required"
                )
            return client_id
        if project.client_id is None:
            raise AmbiguousClientError(
                str(client_id) if client_id else None,
                project_id,
                "project has no client",
            )
        if client_id is not None and client_id != project.client_id:
            raise AmbiguousClientError(
                str(client_id), project_id, "project belongs to a different client"
            )
        return project.client_id

    @traced_engine(
        "time_aggregation",
        "1.0",
        fingerprint_fields=("invoiced_entry_ids", "currency", "rate_type"),
    )
    def aggregate(
        self,
        entries: Sequence[TimeEntry],
        *,
        invoiced_entry_ids: Collection[UUID],
        currency: Currency,
        projects: Mapping[UUID, Project],
        client_id: UUID,
        rate_type: RateType = RateType.HOURLY,
    ) -> AggregationResult:
        """Group billable, not-yet-invoiced entries into line item specs."""
        skipped_invoiced = 0
        skipped_non_billable = 0
        groups: dict[tuple, _Group] = {}
        included: list[UUID] = []
        earliest: date | None = None

        for entry in entries:
            if not entry.is_billable:
                skipped_non_billable += 1
                continue
            if entry.id in invoiced_entry_ids:
                skipped_invoiced += 1
                continue

            project = projects.get(entry.project_id) if entry.project_id else None
            if project is not None and project.currency != currency:
                raise CurrencyMismatchError(currency.code, project.currency.code)

            rate = effective_rate(entry, project)
            task_name = (entry.task_name or "").strip() or None
            key = (entry.project_id, task_name, rate, rate_type)
            group = groups.get(key)
            if group is None:
                group = _Group(
                    description=_describe(project, task_name, entry),
                    rate=rate,
                    hours=Decimal("0"),
                    entry_ids=[],
                )
                groups[key] = group
            group.hours += entry_hours(entry)
            group.entry_ids.append(entry.id)
            included.append(entry.id)
            if earliest is None or entry.entry_date < earliest:
                earliest = entry.entry_date

        if not groups:
            logger.warning(
                "no_billable_time_entries",
                extra={
                    "client_id": str(client_id),
                    "entry_count": len(entries),
                    "skipped_already_invoiced": skipped_invoiced,
                    "skipped_non_billable": skipped_non_billable,
                },
            )
            raise NoBillableEntriesError(str(client_id), skipped_invoiced)

        line_items = tuple(
            LineItemSpec(
                description=group.description,
                quantity=self._quantity(group.hours, rate_type),
                unit_price=Money.of(group.rate, currency),
                rate_type=rate_type,
                time_entry_ids=tuple(group.entry_ids),
            )
            for group in groups.values()
        )

        logger.info(
            "time_entries_aggregated",
            extra={
                "client_id": str(client_id),
                "line_item_count": len(line_items),
                "included_count": len(included),
                "skipped_already_invoiced": skipped_invoiced,
                "skipped_non_billable": skipped_non_billable,
                "rate_type": rate_type.value,
            },
        )
        return AggregationResult(
            line_items=line_items,
            included_entry_ids=tuple(included),
            skipped_already_invoiced=skipped_invoiced,
            skipped_non_billable=skipped_non_billable,
            earliest_entry_date=earliest,
        )

    def _quantity(self, hours: Decimal, rate_type: RateType) -> Decimal:
        if rate_type == RateType.DAILY:
            hours = hours / self._hours_per_day
        return hours.quantize(_TWO_PLACES, rounding=self._rounding)
