"""
Pytest fixtures for the billing test suite.

Provides:
- Structured logging configured once per session, plus ``captured_logs``
- A DeterministicClock pinned to 2024-01-15 12:00 UTC
- A fresh database per test (in-memory SQLite unless DATABASE_URL is set)
- An InvoiceService wired to the session, clock and default config
- Factories for projects and time entries

Environment Variables:
- DATABASE_URL: SQLAlchemy URL for the test database.  Defaults to an
  in-memory SQLite database shared through a StaticPool.
"""

import json
import logging
import os
from datetime import date
from decimal import Decimal
from io import StringIO
from typing import Generator
from uuid import UUID, uuid4

import pytest
from sqlalchemy.orm import Session

from billing_config import BillingConfig
from billing_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from billing_kernel.domain.clock import DeterministicClock
from billing_kernel.domain.currency import CurrencyRegistry
from billing_kernel.domain.dtos import Project, TimeEntry
from billing_kernel.domain.values import Currency
from billing_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from billing_kernel.models.time_tracking import ProjectModel, TimeEntryModel
from billing_services import InvoiceService

DEFAULT_DATABASE_URL = "sqlite://"

# Test actor ID for all test operations
TEST_ACTOR_ID = uuid4()


def get_database_url() -> str:
    """Get database URL from environment, or use in-memory SQLite."""
    return os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture(autouse=True)
def _reset_currency_registry():
    """Undo currency overrides registered by a test."""
    yield
    CurrencyRegistry.reset()


@pytest.fixture
def captured_logs():
    """
    Capture billing_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, invoice_service):
            invoice_service.send_invoice(invoice_id)
            logs = captured_logs()
            assert any(r["message"] == "invoice_status_changed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("billing_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Clock and configuration
# =============================================================================


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock()


@pytest.fixture
def config() -> BillingConfig:
    return BillingConfig.with_defaults()


@pytest.fixture
def eur() -> Currency:
    return Currency("EUR")


@pytest.fixture
def account_id() -> UUID:
    return uuid4()


@pytest.fixture
def client_id() -> UUID:
    return uuid4()


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def db_engine():
    """A fresh engine and schema for every test."""
    eng = init_engine_from_url(get_database_url(), echo=False)
    drop_tables()
    create_tables()
    yield eng
    drop_tables()
    reset_engine()


@pytest.fixture
def session(db_engine) -> Generator[Session, None, None]:
    s = get_session()
    yield s
    s.rollback()
    s.close()


@pytest.fixture
def invoice_service(session, clock, config) -> InvoiceService:
    return InvoiceService(session, clock=clock, config=config, actor_id=TEST_ACTOR_ID)


# =============================================================================
# Data factories
# =============================================================================


@pytest.fixture
def make_project(session, account_id):
    """Persist a project and return its DTO."""

    def _make(
        client_id: UUID | None,
        name: str = "Website",
        hourly_rate: Decimal | None = Decimal("80"),
        currency: str = "EUR",
    ) -> Project:
        project = Project(
            id=uuid4(),
            name=name,
            currency=Currency(currency),
            client_id=client_id,
            hourly_rate=hourly_rate,
        )
        session.add(ProjectModel.from_dto(project, account_id=account_id))
        session.commit()
        return project

    return _make


@pytest.fixture
def make_time_entry(session, account_id):
    """Persist a time entry and return its DTO."""

    def _make(
        project_id: UUID | None,
        hours: Decimal | str = "1",
        entry_date: date = date(2024, 1, 10),
        task_name: str | None = None,
        hourly_rate: Decimal | None = None,
        is_billable: bool = True,
        description: str = "",
    ) -> TimeEntry:
        entry = TimeEntry(
            id=uuid4(),
            entry_date=entry_date,
            description=description,
            project_id=project_id,
            duration_hours=Decimal(str(hours)),
            hourly_rate=hourly_rate,
            task_name=task_name,
            is_billable=is_billable,
        )
        session.add(TimeEntryModel.from_dto(entry, account_id=account_id))
        session.commit()
        return entry

    return _make
