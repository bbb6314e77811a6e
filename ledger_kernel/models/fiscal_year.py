"""
Module: ledger_kernel.models.fiscal_year
Responsibility: ORM persistence for fiscal years, their opening balances and
    the closing entries computed when a year is closed.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - FiscalYear.code is unique; date ranges never overlap and at most one
      year has is_current=True (FiscalYearService guards both).
    - status moves OPEN -> CLOSED exactly once, via a compare-and-swap
      UPDATE in FiscalYearService.close().
    - (fiscal_year_id, account_id) is unique in fiscal_year_opening_balances.
    - ClosingEntry rows are append-only (db/immutability.py).

Audit relevance:
    closing_net_income, closed_at and closed_by_id record the close.  The
    closing entries document how net income was derived; they are never
    re-posted to the live ledger.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase, UUIDString


class FiscalYearStatus(str, Enum):
    """Fiscal year status. CLOSED is terminal."""

    OPEN = "open"
    CLOSED = "closed"


class OpeningBalanceSource(str, Enum):
    MANUAL = "manual"
    CARRIED_FORWARD = "carried_forward"


class ClosingEntryType(str, Enum):
    REVENUE_CLOSE = "revenue_close"
    EXPENSE_CLOSE = "expense_close"
    RETAINED_EARNINGS = "retained_earnings"


class FiscalYear(TrackedBase):
    """An accounting year, closeable independently of the others."""

    __tablename__ = "fiscal_years"

    __table_args__ = (
        UniqueConstraint("code", name="uq_fiscal_year_code"),
        Index("idx_fiscal_year_dates", "start_date", "end_date"),
        Index("idx_fiscal_year_current", "is_current"),
    )

    code: Mapped[str] = mapped_column(String(20), nullable=False)

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    start_date: Mapped[date] = mapped_column(Date, nullable=False)

    end_date: Mapped[date] = mapped_column(Date, nullable=False)

    status: Mapped[FiscalYearStatus] = mapped_column(
        String(10),
        nullable=False,
        default=FiscalYearStatus.OPEN,
    )

    is_current: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Entries dated on or before this date are rejected
    lock_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    closing_net_income: Mapped[Decimal | None] = mapped_column(nullable=True)

    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    closed_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    previous_year_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("fiscal_years.id"),
        nullable=True,
    )

    next_year_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("fiscal_years.id"),
        nullable=True,
    )

    balances_carried_forward: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<FiscalYear {self.code} [{self.status}]>"

    @property
    def is_closed(self) -> bool:
        return self.status == FiscalYearStatus.CLOSED

    def contains_date(self, check_date: date) -> bool:
        return self.start_date <= check_date <= self.end_date

    def is_locked_for(self, entry_date: date) -> bool:
        return self.lock_date is not None and entry_date <= self.lock_date


class OpeningBalance(TrackedBase):
    """Balance of one permanent account at the start of a fiscal year."""

    __tablename__ = "fiscal_year_opening_balances"

    __table_args__ = (
        UniqueConstraint(
            "fiscal_year_id", "account_id", name="uq_opening_balance_year_account"
        ),
    )

    fiscal_year_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("fiscal_years.id"),
        nullable=False,
    )

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    debit_balance: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)

    credit_balance: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)

    balance: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)

    source: Mapped[OpeningBalanceSource] = mapped_column(String(20), nullable=False)


class ClosingEntry(TrackedBase):
    """One line of a year-end close. Documentation only, never posted."""

    __tablename__ = "fiscal_year_closing_entries"

    __table_args__ = (Index("idx_closing_entry_year", "fiscal_year_id"),)

    fiscal_year_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("fiscal_years.id"),
        nullable=False,
    )

    entry_type: Mapped[ClosingEntryType] = mapped_column(String(20), nullable=False)

    debit_account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    credit_account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    description: Mapped[str | None] = mapped_column(String(255), nullable=True)
