"""
Module: ledger_kernel.selectors.ledger_selector
Responsibility: Read-only ledger queries: per-account debit/credit totals,
    the trial balance report, the rolled-up account tree and lookups of
    the entries a business document produced.
Architecture position: Kernel > Selectors.  May import from models/ and
    selectors/base.py.  Used by FiscalYearService for aggregation and by
    AccountingService for duplicate guards.

Invariants checked:
    - Total debits equal total credits over any set of posted entries.
    - With no date bounds, each account's stored debit/credit balance equals
      the totals derived from its posted entries.
    A violation becomes a finding on the report; nothing is corrected.
"""

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from ledger_kernel.domain.dtos import JournalEntryInfo
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import Account
from ledger_kernel.models.journal import (
    JournalEntry,
    JournalEntryStatus,
    TransactionType,
)
from ledger_kernel.selectors.base import BaseSelector

logger = get_logger("selectors.ledger")

ZERO = Decimal("0")


@dataclass(frozen=True)
class TrialBalanceRow:
    """A single row in a trial balance report."""

    account_id: UUID
    account_code: str
    account_name: str
    account_type: str
    debit_total: Decimal
    credit_total: Decimal

    @property
    def net(self) -> Decimal:
        """Debit total minus credit total."""
        return self.debit_total - self.credit_total


@dataclass(frozen=True)
class TrialBalanceReport:
    """Trial balance over an optional inclusive date range."""

    start_date: date | None
    end_date: date | None
    rows: tuple[TrialBalanceRow, ...]
    total_debits: Decimal
    total_credits: Decimal
    findings: tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_balanced(self) -> bool:
        return self.total_debits == self.total_credits

    @property
    def difference(self) -> Decimal:
        return self.total_debits - self.total_credits


@dataclass(frozen=True)
class AccountTreeBalance:
    """An account's stored balance and the total of its whole subtree."""

    account_id: UUID
    code: str
    name: str
    account_type: str
    parent_id: UUID | None
    depth: int
    own_balance: Decimal
    rolled_up_debit: Decimal
    rolled_up_credit: Decimal
    rolled_up_balance: Decimal


class LedgerSelector(BaseSelector[JournalEntry]):
    """Queries over posted journal entries and account balances."""

    def account_totals(
        self,
        *,
        fiscal_year_id: UUID | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> dict[UUID, tuple[Decimal, Decimal]]:
        """
        Debit and credit totals per account over POSTED entries.

        Returns:
            {account_id: (debit_total, credit_total)} for every account that
            appears on at least one matching entry.
        """
        filters = [JournalEntry.status == JournalEntryStatus.POSTED]
        if fiscal_year_id is not None:
            filters.append(JournalEntry.fiscal_year_id == fiscal_year_id)
        if start_date is not None:
            filters.append(JournalEntry.date >= start_date)
        if end_date is not None:
            filters.append(JournalEntry.date <= end_date)

        totals: dict[UUID, list[Decimal]] = defaultdict(lambda: [ZERO, ZERO])

        debit_rows = self.session.execute(
            select(JournalEntry.debit_account_id, func.sum(JournalEntry.amount))
            .where(*filters)
            .group_by(JournalEntry.debit_account_id)
        ).all()
        for account_id, total in debit_rows:
            totals[account_id][0] += total or ZERO

        credit_rows = self.session.execute(
            select(JournalEntry.credit_account_id, func.sum(JournalEntry.amount))
            .where(*filters)
            .group_by(JournalEntry.credit_account_id)
        ).all()
        for account_id, total in credit_rows:
            totals[account_id][1] += total or ZERO

        return {account_id: (dr, cr) for account_id, (dr, cr) in totals.items()}

    def trial_balance(
        self,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> TrialBalanceReport:
        """
        Sum debits and credits per account over POSTED entries in range.

        Rows are ordered by account code.  An imbalance, and (for an
        unbounded report) drift between stored account balances and the
        posted entries, are reported in ``findings`` and logged at WARNING.
        """
        totals = self.account_totals(start_date=start_date, end_date=end_date)
        accounts = self._accounts_by_id(totals.keys())

        rows = tuple(
            sorted(
                (
                    TrialBalanceRow(
                        account_id=account_id,
                        account_code=accounts[account_id].code,
                        account_name=accounts[account_id].name,
                        account_type=accounts[account_id].type.value,
                        debit_total=debit,
                        credit_total=credit,
                    )
                    for account_id, (debit, credit) in totals.items()
                ),
                key=lambda row: row.account_code,
            )
        )
        total_debits = sum((row.debit_total for row in rows), ZERO)
        total_credits = sum((row.credit_total for row in rows), ZERO)

        findings: list[str] = []
        if total_debits != total_credits:
            findings.append(
                f"Total debits {total_debits} do not equal total credits {total_credits}"
            )
        if start_date is None and end_date is None:
            findings.extend(self._stored_balance_findings(totals))

        report = TrialBalanceReport(
            start_date=start_date,
            end_date=end_date,
            rows=rows,
            total_debits=total_debits,
            total_credits=total_credits,
            findings=tuple(findings),
        )
        if findings:
            logger.warning(
                "trial_balance_out_of_balance",
                extra={
                    "total_debits": str(total_debits),
                    "total_credits": str(total_credits),
                    "findings": list(findings),
                },
            )
        else:
            logger.debug(
                "trial_balance_computed",
                extra={"rows": len(rows), "total": str(total_debits)},
            )
        return report

    def _stored_balance_findings(
        self, totals: dict[UUID, tuple[Decimal, Decimal]]
    ) -> list[str]:
        findings = []
        stored_debits = ZERO
        stored_credits = ZERO
        for account in self.session.execute(select(Account).order_by(Account.code)).scalars():
            stored_debits += account.debit_balance
            stored_credits += account.credit_balance
            debit, credit = totals.get(account.id, (ZERO, ZERO))
            if account.debit_balance != debit or account.credit_balance != credit:
                findings.append(
                    f"Account {account.code} stored balances "
                    f"({account.debit_balance}/{account.credit_balance}) differ from "
                    f"posted entries ({debit}/{credit})"
                )
        if stored_debits != stored_credits:
            findings.append(
                f"Stored debit balances {stored_debits} do not equal "
                f"stored credit balances {stored_credits}"
            )
        return findings

    def account_tree_balances(self) -> list[AccountTreeBalance]:
        """
        Every account with the totals of itself plus all descendants.

        Parent accounts are never posted to directly; their figures here
        are the sum of their subtree, signed by the parent's own type.
        Ordered by code.
        """
        accounts = list(self.session.execute(select(Account).order_by(Account.code)).scalars())
        children: dict[UUID | None, list[Account]] = defaultdict(list)
        for account in accounts:
            children[account.parent_id].append(account)

        rolled: dict[UUID, tuple[Decimal, Decimal]] = {}

        def subtree(account: Account) -> tuple[Decimal, Decimal]:
            if account.id in rolled:
                return rolled[account.id]
            debit, credit = account.debit_balance, account.credit_balance
            for child in children.get(account.id, []):
                child_debit, child_credit = subtree(child)
                debit += child_debit
                credit += child_credit
            rolled[account.id] = (debit, credit)
            return debit, credit

        by_id = {account.id: account for account in accounts}

        def depth(account: Account) -> int:
            level = 0
            while account.parent_id is not None and account.parent_id in by_id:
                account = by_id[account.parent_id]
                level += 1
            return level

        result = []
        for account in accounts:
            debit, credit = subtree(account)
            if account.type.is_debit_normal:
                rolled_balance = debit - credit
            else:
                rolled_balance = credit - debit
            result.append(
                AccountTreeBalance(
                    account_id=account.id,
                    code=account.code,
                    name=account.name,
                    account_type=account.type.value,
                    parent_id=account.parent_id,
                    depth=depth(account),
                    own_balance=account.balance,
                    rolled_up_debit=debit,
                    rolled_up_credit=credit,
                    rolled_up_balance=rolled_balance,
                )
            )
        return result

    def entries_for_document(
        self,
        *,
        booking_id: str | None = None,
        invoice_id: str | None = None,
        receipt_id: str | None = None,
        transaction_types: Iterable[TransactionType] | None = None,
    ) -> list[JournalEntryInfo]:
        """Entries linked to a booking, invoice or receipt, in entry-number order."""
        query = select(JournalEntry)
        if booking_id is not None:
            query = query.where(JournalEntry.booking_id == booking_id)
        if invoice_id is not None:
            query = query.where(JournalEntry.invoice_id == invoice_id)
        if receipt_id is not None:
            query = query.where(JournalEntry.receipt_id == receipt_id)
        if transaction_types is not None:
            query = query.where(
                JournalEntry.transaction_type.in_([TransactionType(t) for t in transaction_types])
            )
        # Numbers widen past six digits; length first keeps numeric order.
        query = query.order_by(
            func.length(JournalEntry.entry_number), JournalEntry.entry_number
        )
        entries = self.session.execute(query).scalars()
        return [JournalEntryInfo.from_model(entry) for entry in entries]

    def entries_for_booking(self, booking_id: str) -> list[JournalEntryInfo]:
        return self.entries_for_document(booking_id=booking_id)

    def posted_total(self, booking_id: str, transaction_type: TransactionType) -> Decimal:
        """Sum of POSTED amounts of one type for a booking."""
        total = self.session.execute(
            select(func.sum(JournalEntry.amount)).where(
                JournalEntry.booking_id == booking_id,
                JournalEntry.transaction_type == TransactionType(transaction_type),
                JournalEntry.status == JournalEntryStatus.POSTED,
            )
        ).scalar_one_or_none()
        return total or ZERO

    def _accounts_by_id(self, account_ids: Iterable[UUID]) -> dict[UUID, Account]:
        ids = list(account_ids)
        if not ids:
            return {}
        return {
            account.id: account
            for account in self.session.execute(
                select(Account).where(Account.id.in_(ids))
            ).scalars()
        }
