"""
Pytest fixtures for the findoc test suite.

Provides:
- Structured logging configured once per session, LogContext cleared per test
- ``captured_logs`` for asserting on emitted JSON log records
- A database engine created once per session, a session per test
- Request contexts, a deterministic clock and a ready DocumentService

Environment Variables:
- DATABASE_URL: database connection URL.  If not set, tests run against
  SQLite in memory.  Tests marked ``postgres`` are skipped unless the URL
  points at PostgreSQL.
"""

import json
import logging
import os
from datetime import date, datetime, timezone
from io import StringIO
from uuid import uuid4

import pytest

from findoc_config import get_active_config
from findoc_kernel.db.base import Base
from findoc_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    init_engine_from_url,
    is_postgres,
    reset_engine,
)
from findoc_kernel.domain.clock import DeterministicClock
from findoc_kernel.domain.context import RequestContext
from findoc_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from findoc_modules.documents.models import DocumentKind
from findoc_modules.documents.service import DocumentService

DEFAULT_DATABASE_URL = "sqlite:///:memory:"

# Deterministic "now" for every service test: 1 March 2024, noon UTC
TEST_NOW = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def get_database_url() -> str:
    """Database URL from the environment, or in-memory SQLite."""
    return os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "postgres: mark test as requiring PostgreSQL"
    )


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


@pytest.fixture
def captured_logs():
    """
    Capture findoc logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, service, ctx):
            service.send(ctx, invoice.id)
            logs = captured_logs()
            assert any(r["message"] == "document_posted" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("findoc")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture(scope="session")
def db_engine():
    """Engine and tables, created once per test session."""
    engine = init_engine_from_url(get_database_url(), pool_size=5, max_overflow=5)
    create_tables()
    yield engine
    drop_tables()
    reset_engine()


@pytest.fixture
def session(db_engine):
    """
    A session per test.

    Rows are deleted after the test so committed data never leaks into the
    next one.
    """
    s = get_session()
    yield s
    s.rollback()
    for table in reversed(Base.metadata.sorted_tables):
        s.execute(table.delete())
    s.commit()
    s.close()


@pytest.fixture
def require_postgres(db_engine):
    if not is_postgres():
        pytest.skip("requires DATABASE_URL pointing at PostgreSQL")


# =============================================================================
# Domain fixtures
# =============================================================================


@pytest.fixture
def clock():
    return DeterministicClock(TEST_NOW)


@pytest.fixture
def config():
    return get_active_config()


@pytest.fixture
def ctx():
    return RequestContext(
        organization_id="org_acme",
        actor_id=uuid4(),
        organization_slug="acme",
        correlation_id="test-correlation",
    )


@pytest.fixture
def other_ctx():
    """A second, unrelated organization."""
    return RequestContext(
        organization_id="org_globex",
        actor_id=uuid4(),
        organization_slug="globex",
    )


@pytest.fixture
def service(session, config, clock):
    return DocumentService.from_session(session, config=config, clock=clock)


@pytest.fixture
def make_invoice(service, ctx):
    """Factory for DRAFT invoices with sensible defaults."""

    def _make(
        line_items=None,
        taxes=(),
        *,
        context=None,
        issue_date=date(2024, 3, 1),
        due_date=date(2024, 3, 31),
        counterparty_id=None,
        currency="NGN",
    ):
        return service.create_document(
            context or ctx,
            DocumentKind.INVOICE,
            counterparty_id=counterparty_id or uuid4(),
            currency=currency,
            issue_date=issue_date,
            due_date=due_date,
            line_items=line_items if line_items is not None else [
                {"description": "Consulting", "quantity": 2, "unit_price": "5000"},
                {"description": "Support", "quantity": 1, "unit_price": "10000"},
            ],
            taxes=taxes,
        )

    return _make


@pytest.fixture
def make_bill(service, ctx):
    """Factory for DRAFT bills with sensible defaults."""

    def _make(
        line_items=None,
        taxes=(),
        *,
        document_number=None,
        context=None,
        issue_date=date(2024, 3, 1),
        due_date=date(2024, 3, 31),
        counterparty_id=None,
    ):
        return service.create_document(
            context or ctx,
            DocumentKind.BILL,
            counterparty_id=counterparty_id or uuid4(),
            currency="NGN",
            issue_date=issue_date,
            due_date=due_date,
            document_number=document_number or f"SUP-{uuid4().hex[:8].upper()}",
            line_items=line_items if line_items is not None else [
                {"description": "Office supplies", "quantity": 4, "unit_price": "2500"},
            ],
            taxes=taxes,
        )

    return _make
