"""
Domain DTOs returned by kernel services.

Services hand back frozen snapshots rather than ORM instances so callers
cannot mutate ledger rows behind the poster's back, and so results survive
the session that produced them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

if TYPE_CHECKING:
    from ledger_kernel.models.account import Account as AccountModel
    from ledger_kernel.models.fiscal_year import (
        ClosingEntry as ClosingEntryModel,
        FiscalYear as FiscalYearModel,
        OpeningBalance as OpeningBalanceModel,
    )
    from ledger_kernel.models.journal import JournalEntry as JournalEntryModel


def _value(enum_or_str) -> str:
    return getattr(enum_or_str, "value", enum_or_str)


@dataclass(frozen=True)
class AccountInfo:
    """Snapshot of an account and its running balances."""

    id: UUID
    code: str
    name: str
    account_type: str
    parent_id: UUID | None
    debit_balance: Decimal
    credit_balance: Decimal
    balance: Decimal
    is_active: bool

    @classmethod
    def from_model(cls, model: AccountModel) -> AccountInfo:
        return cls(
            id=model.id,
            code=model.code,
            name=model.name,
            account_type=_value(model.account_type),
            parent_id=model.parent_id,
            debit_balance=model.debit_balance,
            credit_balance=model.credit_balance,
            balance=model.balance,
            is_active=model.is_active,
        )


@dataclass(frozen=True)
class JournalEntryInfo:
    """
    Snapshot of a journal entry.

    ``status`` and ``transaction_type`` are plain strings (the enum values).
    """

    id: UUID
    entry_number: str
    date: date
    description: str
    debit_account_id: UUID
    credit_account_id: UUID
    amount: Decimal
    transaction_type: str
    status: str
    posted_date: datetime | None
    fiscal_year_id: UUID | None
    booking_id: str | None = None
    invoice_id: str | None = None
    receipt_id: str | None = None
    reference: str | None = None

    @property
    def is_posted(self) -> bool:
        return self.status == "posted"

    @classmethod
    def from_model(cls, model: JournalEntryModel) -> JournalEntryInfo:
        return cls(
            id=model.id,
            entry_number=model.entry_number,
            date=model.date,
            description=model.description,
            debit_account_id=model.debit_account_id,
            credit_account_id=model.credit_account_id,
            amount=model.amount,
            transaction_type=_value(model.transaction_type),
            status=_value(model.status),
            posted_date=model.posted_date,
            fiscal_year_id=model.fiscal_year_id,
            booking_id=model.booking_id,
            invoice_id=model.invoice_id,
            receipt_id=model.receipt_id,
            reference=model.reference,
        )


@dataclass(frozen=True)
class FiscalYearInfo:
    """Snapshot of a fiscal year."""

    id: UUID
    code: str
    name: str
    start_date: date
    end_date: date
    status: str
    is_current: bool
    lock_date: date | None
    closing_net_income: Decimal | None
    closed_at: datetime | None
    closed_by_id: UUID | None
    previous_year_id: UUID | None
    next_year_id: UUID | None
    balances_carried_forward: bool

    @property
    def is_open(self) -> bool:
        return self.status == "open"

    @property
    def is_closed(self) -> bool:
        return self.status == "closed"

    def contains_date(self, check_date: date) -> bool:
        return self.start_date <= check_date <= self.end_date

    @classmethod
    def from_model(cls, model: FiscalYearModel) -> FiscalYearInfo:
        return cls(
            id=model.id,
            code=model.code,
            name=model.name,
            start_date=model.start_date,
            end_date=model.end_date,
            status=_value(model.status),
            is_current=model.is_current,
            lock_date=model.lock_date,
            closing_net_income=model.closing_net_income,
            closed_at=model.closed_at,
            closed_by_id=model.closed_by_id,
            previous_year_id=model.previous_year_id,
            next_year_id=model.next_year_id,
            balances_carried_forward=model.balances_carried_forward,
        )


@dataclass(frozen=True)
class OpeningBalanceInfo:
    fiscal_year_id: UUID
    account_id: UUID
    account_code: str
    debit_balance: Decimal
    credit_balance: Decimal
    balance: Decimal
    source: str

    @classmethod
    def from_model(cls, model: OpeningBalanceModel, account_code: str) -> OpeningBalanceInfo:
        return cls(
            fiscal_year_id=model.fiscal_year_id,
            account_id=model.account_id,
            account_code=account_code,
            debit_balance=model.debit_balance,
            credit_balance=model.credit_balance,
            balance=model.balance,
            source=_value(model.source),
        )


@dataclass(frozen=True)
class ClosingEntryInfo:
    fiscal_year_id: UUID
    entry_type: str
    debit_account_id: UUID
    credit_account_id: UUID
    amount: Decimal
    description: str | None = None

    @classmethod
    def from_model(cls, model: ClosingEntryModel) -> ClosingEntryInfo:
        return cls(
            fiscal_year_id=model.fiscal_year_id,
            entry_type=_value(model.entry_type),
            debit_account_id=model.debit_account_id,
            credit_account_id=model.credit_account_id,
            amount=model.amount,
            description=model.description,
        )


@dataclass(frozen=True)
class FiscalYearCloseResult:
    """
    Outcome of closing a fiscal year.

    ``net_income`` = ``total_revenue`` - ``total_expenses``; negative is a loss.
    """

    fiscal_year: FiscalYearInfo
    total_revenue: Decimal
    total_expenses: Decimal
    net_income: Decimal
    closing_entries: tuple[ClosingEntryInfo, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class AccountTotals:
    """Debit/credit totals for one account (or one subtree) over some scope."""

    account_id: UUID
    code: str
    name: str
    account_type: str
    debit_total: Decimal
    credit_total: Decimal
    balance: Decimal


@dataclass(frozen=True)
class FiscalYearSummary:
    """Activity of one fiscal year, rolled up to the root accounts."""

    fiscal_year: FiscalYearInfo
    entry_count: int
    total_amount: Decimal
    root_accounts: tuple[AccountTotals, ...]
    opening_balance_count: int
    closing_entry_count: int
