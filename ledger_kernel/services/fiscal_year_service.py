"""
FiscalYearService -- fiscal year lifecycle, close and carry-forward.

Responsibility:
    Creates and maintains fiscal years, closes a year by computing its
    closing entries and net income, and seeds a successor year's opening
    balances from a closed year.

Architecture position:
    Kernel > Services.  Reads ledger totals through LedgerSelector; called
    by AccountingService and operator tooling.

Invariants enforced:
    - Year codes are unique and date ranges never overlap.
    - At most one year has is_current=True; opening a new year or calling
      set_current() demotes the previous one.
    - OPEN -> CLOSED happens once.  close() locks the year row and flips the
      status with a compare-and-swap UPDATE (... WHERE status = 'open'), so
      two concurrent closes cannot both succeed.
    - close() only aggregates POSTED entries tagged with the year being
      closed.  Closing entries are written append-only and never posted.
    - carry_forward() requires a CLOSED source and a non-CLOSED target and
      replaces the target's opening balances wholesale.
    - Flush-only; close() and carry_forward() run inside a savepoint so a
      failure leaves no half-closed year behind.

Failure modes:
    - FiscalYearNotFoundError, DuplicateFiscalYearCodeError,
      FiscalYearOverlapError, InvalidFiscalYearRangeError.
    - FiscalYearAlreadyClosedError on a second close().
    - FiscalYearNotClosedError / FiscalYearClosedError from carry_forward().
    - FiscalYearInUseError when deleting a current or referenced year.
    - AccountNotFoundError if the income-summary or retained-earnings
      account is missing from the chart.

Audit relevance:
    fiscal_year_closed logs revenue, expenses and net income; the closing
    entries persist the computation for later inspection.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from ledger_kernel.db.types import round_money, to_decimal
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import (
    AccountTotals,
    ClosingEntryInfo,
    FiscalYearCloseResult,
    FiscalYearInfo,
    FiscalYearSummary,
    OpeningBalanceInfo,
)
from ledger_kernel.exceptions import (
    DuplicateFiscalYearCodeError,
    FiscalYearAlreadyClosedError,
    FiscalYearClosedError,
    FiscalYearInUseError,
    FiscalYearNotClosedError,
    FiscalYearNotFoundError,
    FiscalYearOverlapError,
    InvalidFiscalYearRangeError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.account import Account, AccountType
from ledger_kernel.models.fiscal_year import (
    ClosingEntry,
    ClosingEntryType,
    FiscalYear,
    FiscalYearStatus,
    OpeningBalance,
    OpeningBalanceSource,
)
from ledger_kernel.models.journal import JournalEntry, JournalEntryStatus
from ledger_kernel.selectors.ledger_selector import LedgerSelector
from ledger_kernel.services.account_service import AccountService, signed_balance
from ledger_kernel.services.base import BaseService

logger = get_logger("services.fiscal_year")

ZERO = Decimal("0")

DEFAULT_INCOME_SUMMARY_CODE = "3300"
DEFAULT_RETAINED_EARNINGS_CODE = "3200"


class FiscalYearService(BaseService[FiscalYear]):
    """
    Service for the fiscal year lifecycle.

    Contract:
        Public methods return frozen DTOs.  Lifecycle methods flush within
        the caller's transaction.

    Non-goals:
        - Does NOT post closing entries to the live ledger.
        - Does NOT reopen CLOSED years.
    """

    def __init__(
        self,
        session: Session,
        actor_id: UUID,
        clock: Clock | None = None,
        income_summary_code: str = DEFAULT_INCOME_SUMMARY_CODE,
        retained_earnings_code: str = DEFAULT_RETAINED_EARNINGS_CODE,
    ):
        super().__init__(session)
        self._actor_id = actor_id
        self._clock = clock or SystemClock()
        self._income_summary_code = income_summary_code
        self._retained_earnings_code = retained_earnings_code
        self._accounts = AccountService(session, actor_id)
        self._ledger = LedgerSelector(session)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def _require(self, fiscal_year_id: UUID, for_update: bool = False) -> FiscalYear:
        query = select(FiscalYear).where(FiscalYear.id == fiscal_year_id)
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        year = self.session.execute(query).scalar_one_or_none()
        if year is None:
            raise FiscalYearNotFoundError(str(fiscal_year_id))
        return year

    def get(self, fiscal_year_id: UUID) -> FiscalYearInfo:
        return FiscalYearInfo.from_model(self._require(fiscal_year_id))

    def get_by_code(self, code: str) -> FiscalYearInfo | None:
        year = self.session.execute(
            select(FiscalYear).where(FiscalYear.code == code)
        ).scalar_one_or_none()
        return FiscalYearInfo.from_model(year) if year else None

    def get_current(self) -> FiscalYearInfo | None:
        year = self.session.execute(
            select(FiscalYear).where(FiscalYear.is_current.is_(True))
        ).scalar_one_or_none()
        return FiscalYearInfo.from_model(year) if year else None

    def list_years(self) -> list[FiscalYearInfo]:
        """All fiscal years, most recent first."""
        years = self.session.execute(
            select(FiscalYear).order_by(FiscalYear.start_date.desc())
        ).scalars()
        return [FiscalYearInfo.from_model(year) for year in years]

    # ------------------------------------------------------------------
    # Create / open
    # ------------------------------------------------------------------

    def create(
        self,
        name: str,
        code: str,
        start_date: date,
        end_date: date,
        is_current: bool = False,
    ) -> FiscalYearInfo:
        """
        Create an OPEN fiscal year.

        Raises:
            InvalidFiscalYearRangeError: start_date > end_date.
            DuplicateFiscalYearCodeError: code already used.
            FiscalYearOverlapError: range overlaps an existing year.
        """
        if start_date > end_date:
            raise InvalidFiscalYearRangeError(start_date, end_date)

        existing = self.session.execute(
            select(FiscalYear.id).where(FiscalYear.code == code)
        ).scalar_one_or_none()
        if existing is not None:
            raise DuplicateFiscalYearCodeError(code)

        self._validate_no_overlap(code, start_date, end_date)

        if is_current:
            self._demote_current()

        year = FiscalYear(
            code=code,
            name=name,
            start_date=start_date,
            end_date=end_date,
            status=FiscalYearStatus.OPEN,
            is_current=is_current,
            created_by_id=self._actor_id,
        )
        self.session.add(year)
        self.session.flush()

        logger.info(
            "fiscal_year_created",
            extra={
                "fiscal_year_code": code,
                "start_date": str(start_date),
                "end_date": str(end_date),
                "is_current": is_current,
            },
        )
        return FiscalYearInfo.from_model(year)

    def open_new(
        self,
        name: str,
        code: str,
        start_date: date,
        end_date: date,
        based_on_year_id: UUID | None = None,
    ) -> FiscalYearInfo:
        """
        Open a new current year.

        The previous current year is demoted.  When ``based_on_year_id``
        names a CLOSED year, its permanent balances are carried forward into
        the new year; an OPEN base year is recorded but not carried.
        """
        based_on = self._require(based_on_year_id) if based_on_year_id else None
        info = self.create(name, code, start_date, end_date, is_current=True)

        if based_on is not None:
            if based_on.is_closed:
                self.carry_forward(based_on.id, info.id)
            else:
                logger.info(
                    "carry_forward_deferred",
                    extra={
                        "fiscal_year_code": code,
                        "based_on_code": based_on.code,
                        "reason": "base year is still open",
                    },
                )
        return self.get(info.id)

    def _validate_no_overlap(
        self,
        code: str,
        start_date: date,
        end_date: date,
        exclude_id: UUID | None = None,
    ) -> None:
        """Two ranges overlap when start1 <= end2 and start2 <= end1."""
        query = select(FiscalYear).where(
            FiscalYear.start_date <= end_date,
            FiscalYear.end_date >= start_date,
        )
        if exclude_id is not None:
            query = query.where(FiscalYear.id != exclude_id)
        overlapping = self.session.execute(query.limit(1)).scalar_one_or_none()
        if overlapping is not None:
            raise FiscalYearOverlapError(
                code,
                overlapping.code,
                max(start_date, overlapping.start_date),
                min(end_date, overlapping.end_date),
            )

    def _demote_current(self, keep_id: UUID | None = None) -> None:
        query = update(FiscalYear).where(FiscalYear.is_current.is_(True))
        if keep_id is not None:
            query = query.where(FiscalYear.id != keep_id)
        self.session.execute(
            query.values(is_current=False, updated_by_id=self._actor_id)
        )

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def set_current(self, fiscal_year_id: UUID) -> FiscalYearInfo:
        year = self._require(fiscal_year_id, for_update=True)
        if year.is_closed:
            raise FiscalYearClosedError(year.code, "become the current year")
        self._demote_current(keep_id=year.id)
        year.is_current = True
        year.updated_by_id = self._actor_id
        self.session.flush()
        logger.info("fiscal_year_set_current", extra={"fiscal_year_code": year.code})
        return FiscalYearInfo.from_model(year)

    def update(
        self,
        fiscal_year_id: UUID,
        *,
        name: str | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        lock_date: date | None = None,
    ) -> FiscalYearInfo:
        """Edit an OPEN year. Range changes are re-validated for overlap."""
        year = self._require(fiscal_year_id, for_update=True)
        if year.is_closed:
            raise FiscalYearClosedError(year.code, "be modified")

        new_start = start_date or year.start_date
        new_end = end_date or year.end_date
        if new_start > new_end:
            raise InvalidFiscalYearRangeError(new_start, new_end)
        if (new_start, new_end) != (year.start_date, year.end_date):
            self._validate_no_overlap(year.code, new_start, new_end, exclude_id=year.id)

        if name is not None:
            year.name = name
        year.start_date = new_start
        year.end_date = new_end
        if lock_date is not None:
            year.lock_date = lock_date
        year.updated_by_id = self._actor_id
        self.session.flush()

        logger.info(
            "fiscal_year_updated",
            extra={"fiscal_year_code": year.code, "lock_date": str(year.lock_date)},
        )
        return FiscalYearInfo.from_model(year)

    def delete(self, fiscal_year_id: UUID) -> None:
        """
        Remove an unused OPEN, non-current year and its opening balances.

        Raises:
            FiscalYearClosedError: year is CLOSED.
            FiscalYearInUseError: year is current or has journal entries.
        """
        year = self._require(fiscal_year_id, for_update=True)
        if year.is_closed:
            raise FiscalYearClosedError(year.code, "be deleted")
        if year.is_current:
            raise FiscalYearInUseError(year.code, "it is the current fiscal year")

        entry_count = self.session.execute(
            select(func.count(JournalEntry.id)).where(JournalEntry.fiscal_year_id == year.id)
        ).scalar_one()
        if entry_count:
            raise FiscalYearInUseError(year.code, f"{entry_count} journal entries reference it")

        self.session.execute(
            update(FiscalYear)
            .where(FiscalYear.next_year_id == year.id)
            .values(next_year_id=None)
        )
        self.session.execute(
            update(FiscalYear)
            .where(FiscalYear.previous_year_id == year.id)
            .values(previous_year_id=None)
        )
        self.session.execute(
            delete(OpeningBalance).where(OpeningBalance.fiscal_year_id == year.id)
        )
        self.session.delete(year)
        self.session.flush()
        logger.info("fiscal_year_deleted", extra={"fiscal_year_code": year.code})

    # ------------------------------------------------------------------
    # Opening balances
    # ------------------------------------------------------------------

    def set_opening_balance(
        self,
        fiscal_year_id: UUID,
        account_code: str,
        debit_balance: Decimal,
        credit_balance: Decimal,
    ) -> OpeningBalanceInfo:
        """Record or replace a MANUAL opening balance for one account."""
        year = self._require(fiscal_year_id)
        if year.is_closed:
            raise FiscalYearClosedError(year.code, "change opening balances")

        account = self._accounts.require_by_code(account_code)
        debit_balance = to_decimal(debit_balance)
        credit_balance = to_decimal(credit_balance)

        row = self.session.execute(
            select(OpeningBalance).where(
                OpeningBalance.fiscal_year_id == year.id,
                OpeningBalance.account_id == account.id,
            )
        ).scalar_one_or_none()
        if row is None:
            row = OpeningBalance(
                fiscal_year_id=year.id,
                account_id=account.id,
                created_by_id=self._actor_id,
            )
            self.session.add(row)
        row.debit_balance = debit_balance
        row.credit_balance = credit_balance
        row.balance = signed_balance(account.account_type, debit_balance, credit_balance)
        row.source = OpeningBalanceSource.MANUAL
        row.updated_by_id = self._actor_id
        self.session.flush()
        return OpeningBalanceInfo.from_model(row, account.code)

    def opening_balances(self, fiscal_year_id: UUID) -> list[OpeningBalanceInfo]:
        """Opening balances of a year, ordered by account code."""
        rows = self.session.execute(
            select(OpeningBalance, Account.code)
            .join(Account, OpeningBalance.account_id == Account.id)
            .where(OpeningBalance.fiscal_year_id == fiscal_year_id)
            .order_by(Account.code)
        ).all()
        return [OpeningBalanceInfo.from_model(row, code) for row, code in rows]

    def closing_entries(self, fiscal_year_id: UUID) -> list[ClosingEntryInfo]:
        rows = self.session.execute(
            select(ClosingEntry)
            .where(ClosingEntry.fiscal_year_id == fiscal_year_id)
            .order_by(ClosingEntry.created_at, ClosingEntry.entry_type)
        ).scalars()
        return [ClosingEntryInfo.from_model(row) for row in rows]

    # ------------------------------------------------------------------
    # Close
    # ------------------------------------------------------------------

    def close(self, fiscal_year_id: UUID) -> FiscalYearCloseResult:
        """
        Close a fiscal year.

        1. Aggregate POSTED entries tagged with this year: credit - debit per
           REVENUE account, debit - credit per EXPENSE account.
        2. net income = total revenue - total expenses.
        3. Write REVENUE_CLOSE / EXPENSE_CLOSE entries per nonzero account
           and one RETAINED_EARNINGS entry for the net income.
        4. Compare-and-swap the year to CLOSED, clear is_current.

        Raises:
            FiscalYearAlreadyClosedError: year is already CLOSED, including
                when a concurrent close wins the compare-and-swap.
        """
        year = self._require(fiscal_year_id, for_update=True)
        with LogContext.bind(fiscal_year_id=str(year.id)):
            if year.is_closed:
                logger.warning(
                    "fiscal_year_close_rejected",
                    extra={"fiscal_year_code": year.code, "reason": "already closed"},
                )
                raise FiscalYearAlreadyClosedError(year.code)

            income_summary = self._accounts.require_by_code(self._income_summary_code)
            retained_earnings = self._accounts.require_by_code(self._retained_earnings_code)

            savepoint = self.session.begin_nested()
            try:
                totals = self._ledger.account_totals(fiscal_year_id=year.id)
                accounts = {
                    account.id: account
                    for account in self.session.execute(
                        select(Account)
                        .where(Account.id.in_(list(totals)))
                        .order_by(Account.code)
                    ).scalars()
                } if totals else {}

                closing: list[ClosingEntry] = []
                total_revenue = ZERO
                total_expenses = ZERO

                for account in accounts.values():
                    debit, credit = totals[account.id]
                    account_type = account.type
                    if account_type == AccountType.REVENUE:
                        balance = credit - debit
                        total_revenue += balance
                        if balance != ZERO:
                            closing.append(self._closing_line(
                                year, ClosingEntryType.REVENUE_CLOSE,
                                account, income_summary, balance,
                                f"Close revenue {account.code} {account.name}",
                            ))
                    elif account_type == AccountType.EXPENSE:
                        balance = debit - credit
                        total_expenses += balance
                        if balance != ZERO:
                            closing.append(self._closing_line(
                                year, ClosingEntryType.EXPENSE_CLOSE,
                                income_summary, account, balance,
                                f"Close expense {account.code} {account.name}",
                            ))

                net_income = total_revenue - total_expenses
                if net_income != ZERO:
                    closing.append(self._closing_line(
                        year, ClosingEntryType.RETAINED_EARNINGS,
                        income_summary, retained_earnings, net_income,
                        f"Transfer net income of {year.code} to retained earnings",
                    ))

                self.session.add_all(closing)
                self.session.flush()

                swapped = self.session.execute(
                    update(FiscalYear)
                    .where(
                        FiscalYear.id == year.id,
                        FiscalYear.status == FiscalYearStatus.OPEN,
                    )
                    .values(
                        status=FiscalYearStatus.CLOSED,
                        is_current=False,
                        closing_net_income=net_income,
                        closed_at=self._clock.now(),
                        closed_by_id=self._actor_id,
                        updated_by_id=self._actor_id,
                    )
                    .execution_options(synchronize_session=False)
                )
                if swapped.rowcount != 1:
                    raise FiscalYearAlreadyClosedError(year.code)
                savepoint.commit()
            except Exception:
                savepoint.rollback()
                raise

            self.session.refresh(year)
            logger.info(
                "fiscal_year_closed",
                extra={
                    "fiscal_year_code": year.code,
                    "total_revenue": str(total_revenue),
                    "total_expenses": str(total_expenses),
                    "net_income": str(net_income),
                    "closing_entries": len(closing),
                },
            )
            return FiscalYearCloseResult(
                fiscal_year=FiscalYearInfo.from_model(year),
                total_revenue=total_revenue,
                total_expenses=total_expenses,
                net_income=net_income,
                closing_entries=tuple(ClosingEntryInfo.from_model(c) for c in closing),
            )

    def _closing_line(
        self,
        year: FiscalYear,
        entry_type: ClosingEntryType,
        debit_account: Account,
        credit_account: Account,
        amount: Decimal,
        description: str,
    ) -> ClosingEntry:
        """Closing entry for ``amount``; a negative amount swaps the two sides."""
        if amount < ZERO:
            debit_account, credit_account = credit_account, debit_account
            amount = -amount
        return ClosingEntry(
            fiscal_year_id=year.id,
            entry_type=entry_type,
            debit_account_id=debit_account.id,
            credit_account_id=credit_account.id,
            amount=amount,
            description=description,
            created_by_id=self._actor_id,
        )

    # ------------------------------------------------------------------
    # Carry forward
    # ------------------------------------------------------------------

    def carry_forward(
        self, source_year_id: UUID, target_year_id: UUID
    ) -> list[OpeningBalanceInfo]:
        """
        Seed the target year's opening balances from a CLOSED source year.

        One CARRIED_FORWARD row is written per ASSET/LIABILITY/EQUITY account
        whose stored balance is nonzero, copying its debit, credit and signed
        balance.  Prior opening balances of the target are replaced.  The two
        years are linked.

        Raises:
            FiscalYearNotClosedError: source is not CLOSED.
            FiscalYearClosedError: target is CLOSED.
        """
        source = self._require(source_year_id, for_update=True)
        target = self._require(target_year_id, for_update=True)

        if not source.is_closed:
            logger.warning(
                "carry_forward_rejected",
                extra={"source_code": source.code, "reason": "source not closed"},
            )
            raise FiscalYearNotClosedError(source.code)
        if target.is_closed:
            raise FiscalYearClosedError(target.code, "receive carried-forward balances")

        savepoint = self.session.begin_nested()
        try:
            accounts = self._permanent_accounts_with_balance()

            self.session.execute(
                delete(OpeningBalance).where(OpeningBalance.fiscal_year_id == target.id)
            )
            rows: list[tuple[OpeningBalance, str]] = []
            for account in accounts:
                row = OpeningBalance(
                    fiscal_year_id=target.id,
                    account_id=account.id,
                    debit_balance=to_decimal(account.debit_balance),
                    credit_balance=to_decimal(account.credit_balance),
                    balance=to_decimal(account.balance),
                    source=OpeningBalanceSource.CARRIED_FORWARD,
                    created_by_id=self._actor_id,
                )
                self.session.add(row)
                rows.append((row, account.code))

            source.next_year_id = target.id
            source.updated_by_id = self._actor_id
            target.previous_year_id = source.id
            target.balances_carried_forward = True
            target.updated_by_id = self._actor_id
            self.session.flush()
            savepoint.commit()
        except Exception:
            savepoint.rollback()
            raise

        logger.info(
            "balances_carried_forward",
            extra={
                "source_code": source.code,
                "target_code": target.code,
                "accounts": len(rows),
            },
        )
        return [OpeningBalanceInfo.from_model(row, code) for row, code in rows]

    def _permanent_accounts_with_balance(self) -> list[Account]:
        """ASSET/LIABILITY/EQUITY accounts whose stored balance is nonzero."""
        permanent_types = [t.value for t in AccountType if t.is_permanent]
        accounts = self.session.execute(
            select(Account)
            .where(Account.account_type.in_(permanent_types))
            .order_by(Account.code)
        ).scalars()
        return [a for a in accounts if round_money(to_decimal(a.balance)) != ZERO]

    # ------------------------------------------------------------------
    # Summary
    # ------------------------------------------------------------------

    def summary(self, fiscal_year_id: UUID) -> FiscalYearSummary:
        """Entry statistics and root-account totals for one year."""
        year = self._require(fiscal_year_id)

        entry_count, total_amount = self.session.execute(
            select(func.count(JournalEntry.id), func.sum(JournalEntry.amount)).where(
                JournalEntry.fiscal_year_id == year.id,
                JournalEntry.status == JournalEntryStatus.POSTED,
            )
        ).one()

        accounts = {
            account.id: account
            for account in self.session.execute(select(Account)).scalars()
        }

        def root_of(account: Account) -> Account:
            while account.parent_id is not None and account.parent_id in accounts:
                account = accounts[account.parent_id]
            return account

        rolled: dict[UUID, list[Decimal]] = {
            account.id: [ZERO, ZERO] for account in accounts.values() if account.is_root
        }
        for account_id, (debit, credit) in self._ledger.account_totals(
            fiscal_year_id=year.id
        ).items():
            root = root_of(accounts[account_id])
            bucket = rolled.setdefault(root.id, [ZERO, ZERO])
            bucket[0] += debit
            bucket[1] += credit

        root_totals = tuple(
            AccountTotals(
                account_id=root.id,
                code=root.code,
                name=root.name,
                account_type=root.type.value,
                debit_total=rolled[root.id][0],
                credit_total=rolled[root.id][1],
                balance=signed_balance(root.account_type, *rolled[root.id]),
            )
            for root in sorted(
                (accounts[account_id] for account_id in rolled),
                key=lambda a: a.code,
            )
        )

        opening_count = self.session.execute(
            select(func.count(OpeningBalance.id)).where(
                OpeningBalance.fiscal_year_id == year.id
            )
        ).scalar_one()
        closing_count = self.session.execute(
            select(func.count(ClosingEntry.id)).where(ClosingEntry.fiscal_year_id == year.id)
        ).scalar_one()

        return FiscalYearSummary(
            fiscal_year=FiscalYearInfo.from_model(year),
            entry_count=entry_count,
            total_amount=total_amount or ZERO,
            root_accounts=root_totals,
            opening_balance_count=opening_count,
            closing_entry_count=closing_count,
        )
