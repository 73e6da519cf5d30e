"""Tests for the TimeEntryAggregator (billing_engines/time_aggregation.py)."""

from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from billing_engines.time_aggregation import (
    TimeEntryAggregator,
    effective_rate,
    entry_hours,
)
from billing_kernel.domain.dtos import Project, RateType, TimeEntry
from billing_kernel.domain.values import Currency, Money
from billing_kernel.exceptions import (
    AmbiguousClientError,
    CurrencyMismatchError,
    NoBillableEntriesError,
)

EUR = Currency("EUR")
CLIENT = uuid4()


def _project(name="Website", rate="80", client_id=CLIENT, currency="EUR"):
    return Project(
        id=uuid4(),
        name=name,
        currency=Currency(currency),
        client_id=client_id,
        hourly_rate=Decimal(rate) if rate is not None else None,
    )


def _entry(project, hours="1", task=None, rate=None, billable=True, day=10):
    return TimeEntry(
        id=uuid4(),
        entry_date=date(2024, 1, day),
        project_id=project.id if project else None,
        duration_hours=Decimal(hours) if hours is not None else None,
        hourly_rate=Decimal(rate) if rate is not None else None,
        task_name=task,
        is_billable=billable,
    )


@pytest.fixture
def aggregator():
    return TimeEntryAggregator()


def _aggregate(aggregator, entries, projects, invoiced=(), rate_type=RateType.HOURLY):
    return aggregator.aggregate(
        entries,
        invoiced_entry_ids=frozenset(invoiced),
        currency=EUR,
        projects={p.id: p for p in projects},
        client_id=CLIENT,
        rate_type=rate_type,
    )


class TestHoursAndRates:
    def test_duration_preferred(self):
        entry = TimeEntry(
            id=uuid4(),
            entry_date=date(2024, 1, 10),
            duration_hours=Decimal("2.5"),
            started_at=datetime(2024, 1, 10, 9, tzinfo=timezone.utc),
            ended_at=datetime(2024, 1, 10, 10, tzinfo=timezone.utc),
        )
        assert entry_hours(entry) == Decimal("2.5")

    def test_timestamps_used_without_duration(self):
        entry = TimeEntry(
            id=uuid4(),
            entry_date=date(2024, 1, 10),
            started_at=datetime(2024, 1, 10, 9, tzinfo=timezone.utc),
            ended_at=datetime(2024, 1, 10, 10, 30, tzinfo=timezone.utc),
        )
        assert entry_hours(entry) == Decimal("1.5")

    def test_no_duration_is_zero(self):
        assert entry_hours(TimeEntry(id=uuid4(), entry_date=date(2024, 1, 10))) == 0

    def test_rate_fallback_chain(self):
        project = _project(rate="80")
        assert effective_rate(_entry(project, rate="95"), project) == Decimal("95")
        assert effective_rate(_entry(project), project) == Decimal("80")
        assert effective_rate(_entry(None), None) == Decimal("0")


class TestResolveClient:
    def test_client_only(self, aggregator):
        assert aggregator.resolve_client(CLIENT, None) == CLIENT

    def test_project_supplies_client(self, aggregator):
        assert aggregator.resolve_client(None, _project()) == CLIENT

    def test_neither_given(self, aggregator):
        with pytest.raises(AmbiguousClientError):
            aggregator.resolve_client(None, None)

    def test_project_without_client(self, aggregator):
        with pytest.raises(AmbiguousClientError):
            aggregator.resolve_client(None, _project(client_id=None))

    def test_disagreeing_client(self, aggregator):
        with pytest.raises(AmbiguousClientError) as exc_info:
            aggregator.resolve_client(uuid4(), _project())
        assert "different client" in exc_info.value.reason


class TestAggregate:
    def test_groups_by_project_and_task(self, aggregator):
        project = _project()
        entries = [
            _entry(project, "2", task="Design"),
            _entry(project, "1.5", task="Design", day=11),
            _entry(project, "3", task="Build"),
        ]
        result = _aggregate(aggregator, entries, [project])
        by_description = {i.description: i for i in result.line_items}
        assert set(by_description) == {"Website - Design", "Website - Build"}
        design = by_description["Website - Design"]
        assert design.quantity == Decimal("3.50")
        assert design.unit_price == Money.of("80", "EUR")
        assert len(design.time_entry_ids) == 2

    def test_different_rates_split_groups(self, aggregator):
        project = _project()
        entries = [_entry(project, "1"), _entry(project, "1", rate="120")]
        result = _aggregate(aggregator, entries, [project])
        assert len(result.line_items) == 2

    def test_daily_quantity(self, aggregator):
        project = _project()
        entries = [_entry(project, "8"), _entry(project, "4", day=11)]
        result = _aggregate(aggregator, entries, [project], rate_type=RateType.DAILY)
        assert result.line_items[0].quantity == Decimal("1.50")
        assert result.line_items[0].rate_type == RateType.DAILY

    def test_daily_quantity_with_custom_day(self):
        project = _project()
        result = _aggregate(
            TimeEntryAggregator(hours_per_day=Decimal("6")),
            [_entry(project, "10")],
            [project],
            rate_type=RateType.DAILY,
        )
        assert result.line_items[0].quantity == Decimal("1.67")

    def test_skips_non_billable_and_invoiced(self, aggregator):
        project = _project()
        billed = _entry(project, "1")
        entries = [billed, _entry(project, "1", billable=False), _entry(project, "2")]
        result = _aggregate(aggregator, entries, [project], invoiced=[billed.id])
        assert result.skipped_already_invoiced == 1
        assert result.skipped_non_billable == 1
        assert len(result.included_entry_ids) == 1

    def test_nothing_left_raises(self, aggregator):
        project = _project()
        entry = _entry(project)
        with pytest.raises(NoBillableEntriesError) as exc_info:
            _aggregate(aggregator, [entry], [project], invoiced=[entry.id])
        assert exc_info.value.skipped_already_invoiced == 1

    def test_empty_selection_raises(self, aggregator):
        with pytest.raises(NoBillableEntriesError):
            _aggregate(aggregator, [], [])

    def test_project_currency_must_match(self, aggregator):
        project = _project(currency="USD")
        with pytest.raises(CurrencyMismatchError):
            _aggregate(aggregator, [_entry(project)], [project])

    def test_delivery_date_is_earliest_month(self, aggregator):
        project = _project()
        entries = [_entry(project, day=20), _entry(project, day=3)]
        result = _aggregate(aggregator, entries, [project])
        assert result.earliest_entry_date == date(2024, 1, 3)
        assert result.delivery_date == "01/2024"

    def test_trace_emitted(self, aggregator, captured_logs):
        project = _project()
        _aggregate(aggregator, [_entry(project)], [project])
        traces = [r for r in captured_logs() if r["message"] == "BILLING_ENGINE_TRACE"]
        assert traces[0]["engine_name"] == "time_aggregation"
        assert len(traces[0]["input_fingerprint"]) == 16
