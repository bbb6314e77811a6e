"""
Pytest fixtures for the travel ledger test suite.

Provides:
- A session-scoped engine and schema, with per-test rollback isolation
- Seeded chart of accounts and an open current fiscal year
- Kernel and accounting service fixtures wired to a deterministic clock
- Captured structured logs

Environment Variables:
- DATABASE_URL: SQLAlchemy URL of the test database.  Defaults to an
  in-memory SQLite database; set a postgresql:// URL to run against
  PostgreSQL.
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

from ledger_config import get_default_config
from ledger_engines.currency import CurrencyConverter
from ledger_kernel.db.engine import (
    create_tables,
    drop_tables,
    init_engine_from_url,
    reset_engine,
)
from ledger_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from ledger_kernel.domain.clock import DeterministicClock
from ledger_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from ledger_kernel.models.account import Account
from ledger_kernel.selectors.ledger_selector import LedgerSelector
from ledger_kernel.services.account_service import AccountService
from ledger_kernel.services.fiscal_year_service import FiscalYearService
from ledger_kernel.services.journal_poster import JournalPoster
from ledger_kernel.services.sequence_service import SequenceService
from ledger_services.accounting_service import AccountingService
from ledger_services.records import (
    BookingRecord,
    FlightDetails,
    ServiceType,
)

# Test actor ID for all test operations
TEST_ACTOR_ID = uuid4()

DEFAULT_TEST_DATABASE_URL = "sqlite:///:memory:"


def get_database_url() -> str:
    return os.environ.get("DATABASE_URL", DEFAULT_TEST_DATABASE_URL)


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
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture ledger_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, poster):
            poster.post(entry_id)
            assert any(r["message"] == "journal_entry_posted" for r in captured_logs())
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("ledger_kernel")
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
# Session-scoped DB infrastructure (create engine + tables ONCE per suite)
# =============================================================================


@pytest.fixture(scope="session")
def db_engine():
    eng = init_engine_from_url(get_database_url(), echo=False)
    yield eng
    reset_engine()


@pytest.fixture(scope="session")
def db_tables(db_engine):
    """Create all tables once per session; immutability listeners stay active."""
    drop_tables()
    create_tables()
    register_immutability_listeners()
    yield
    unregister_immutability_listeners()
    drop_tables()


@pytest.fixture
def session(db_tables, db_engine) -> Generator[Session, None, None]:
    """
    Session joined to an outer transaction that is rolled back at teardown.

    ``session.commit()`` inside a test only releases a savepoint.
    """
    conn = db_engine.connect()
    trans = conn.begin()
    sess = Session(bind=conn, join_transaction_mode="create_savepoint", expire_on_commit=False)
    yield sess
    try:
        sess.close()
    finally:
        try:
            trans.rollback()
        finally:
            conn.close()


# =============================================================================
# Basic fixtures
# =============================================================================


@pytest.fixture
def test_actor_id() -> UUID:
    return TEST_ACTOR_ID


@pytest.fixture
def deterministic_clock():
    return DeterministicClock()


@pytest.fixture
def ledger_config():
    return get_default_config()


@pytest.fixture
def converter(ledger_config):
    return CurrencyConverter(ledger_config.rates(), pivot=ledger_config.pivot_currency)


# =============================================================================
# Service fixtures
# =============================================================================


@pytest.fixture
def sequence_service(session):
    return SequenceService(session)


@pytest.fixture
def account_service(session, test_actor_id):
    return AccountService(session, test_actor_id)


@pytest.fixture
def poster(session, test_actor_id, deterministic_clock):
    return JournalPoster(session, test_actor_id, clock=deterministic_clock)


@pytest.fixture
def fiscal_year_service(session, test_actor_id, deterministic_clock):
    return FiscalYearService(session, test_actor_id, clock=deterministic_clock)


@pytest.fixture
def ledger_selector(session):
    return LedgerSelector(session)


@pytest.fixture
def accounting(session, ledger_config, deterministic_clock, test_actor_id):
    return AccountingService(
        session, ledger_config, clock=deterministic_clock, actor_id=test_actor_id
    )


# =============================================================================
# Data fixtures
# =============================================================================


@pytest.fixture
def chart(session, account_service, ledger_config) -> dict[str, Account]:
    """Seed the default chart of accounts; returns accounts by code."""
    account_service.seed_chart(ledger_config.chart)
    return {
        definition.code: account_service.require_by_code(definition.code)
        for definition in ledger_config.chart
    }


@pytest.fixture
def fiscal_year_2025(chart, fiscal_year_service):
    """Open, current FY2025 (calendar year) over the seeded chart."""
    return fiscal_year_service.create(
        name="Fiscal Year 2025",
        code="FY2025",
        start_date=date(2025, 1, 1),
        end_date=date(2025, 12, 31),
        is_current=True,
    )


@pytest.fixture
def post_entry(poster, chart):
    """
    Create and post an entry between two chart codes.

    Usage::

        post_entry("1121", "4110", "500.00", date(2025, 3, 1))
    """

    def _post(debit_code, credit_code, amount, entry_date=date(2025, 6, 1),
              transaction_type="MANUAL", description="Test entry", links=None):
        return poster.create_and_post(
            description=description,
            entry_date=entry_date,
            debit_account_id=chart[debit_code].id,
            credit_account_id=chart[credit_code].id,
            amount=Decimal(str(amount)),
            transaction_type=transaction_type,
            links=links,
        )

    return _post


@pytest.fixture
def make_booking():
    """Build a BookingRecord with sensible defaults; override any field."""
    counter = {"n": 0}

    def _make(**overrides) -> BookingRecord:
        counter["n"] += 1
        n = counter["n"]
        fields = dict(
            booking_id=f"booking-{n}",
            booking_number=f"BKG-2025-{n:06d}",
            booking_date=date(2025, 3, 10),
            service_type=ServiceType.FLIGHT,
            customer_name="Layla Haddad",
            cost_amount=Decimal("800.00"),
            cost_currency="AED",
            sale_amount=Decimal("1050.00"),
            sale_currency="AED",
            cost_in_aed=Decimal("800.00"),
            sale_in_aed=Decimal("1050.00"),
            is_uae_booking=True,
            vat_applicable=True,
            agent_commission_rate=Decimal("0"),
            cs_commission_rate=Decimal("0"),
            details=FlightDetails(
                airline="Emirates",
                flight_number="EK202",
                departure_city="Dubai",
                arrival_city="New York",
            ),
        )
        fields.update(overrides)
        return BookingRecord(**fields)

    return _make
