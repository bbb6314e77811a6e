"""
JournalPoster -- creates double-entry records and applies them to balances.

Responsibility:
    ``create()`` writes a DRAFT entry with the next entry number.
    ``post()`` applies the entry's amount to its debit and credit accounts
    under the type-based sign rule and flips the entry to POSTED.
    ``create_and_post()`` is the compound step every business event uses.

Architecture position:
    Kernel > Services.  Called by AccountingService (ledger_services) and by
    operator tooling for manual entries.

Invariants enforced:
    - One amount, both legs: debit_account.debit_balance and
      credit_account.credit_balance grow by the same amount, so the ledger
      always has equal total debits and credits.
    - Atomic posting: the two account updates and the status flip run in a
      single savepoint.  A failure leaves no partial state behind.
    - Idempotency guard: posting a POSTED entry raises AlreadyPostedError
      and changes nothing.
    - No entries are created, posted or deleted in a CLOSED fiscal year, or
      dated on/before the year's lock date.
    - Entry numbers come from SequenceService's locked counter.

Failure modes:
    - InvalidAmountError: amount <= 0.
    - InvalidAccountError: same account on both legs, or inactive account.
    - AccountNotFoundError: unknown debit/credit account.
    - EntryNotFoundError: unknown entry id.
    - AlreadyPostedError: entry already POSTED.
    - FiscalYearNotFoundError / FiscalYearClosedError / FiscalYearLockedError.
    - ImmutabilityViolationError: delete_draft() on a POSTED entry.

Audit relevance:
    Every creation and posting is logged with entry_number, accounts and
    amount; posted_date records when balances moved.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_kernel.db.types import to_decimal
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import JournalEntryInfo
from ledger_kernel.exceptions import (
    AccountNotFoundError,
    AlreadyPostedError,
    EntryNotFoundError,
    FiscalYearClosedError,
    FiscalYearLockedError,
    FiscalYearNotFoundError,
    ImmutabilityViolationError,
    InvalidAccountError,
    InvalidAmountError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.account import Account
from ledger_kernel.models.fiscal_year import FiscalYear
from ledger_kernel.models.journal import (
    JournalEntry,
    JournalEntryStatus,
    TransactionType,
)
from ledger_kernel.services.account_service import balance_delta
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.sequence_service import SequenceService

logger = get_logger("services.journal_poster")


@dataclass(frozen=True)
class EntryLinks:
    """Back-references from an entry to the document that triggered it."""

    booking_id: str | None = None
    invoice_id: str | None = None
    receipt_id: str | None = None
    reference: str | None = None


class JournalPoster(BaseService[JournalEntry]):
    """
    Creates and posts journal entries.

    Contract:
        Flush-only.  ``post()`` uses a savepoint so its three mutations are
        all-or-nothing inside the caller's transaction.

    Non-goals:
        - Does NOT resolve chart codes or decide amounts; callers pass
          account ids and the computed amount.
        - Does NOT reverse posted entries; refunds are new entries.
    """

    def __init__(
        self,
        session: Session,
        actor_id: UUID,
        clock: Clock | None = None,
        sequence_service: SequenceService | None = None,
    ):
        super().__init__(session)
        self._actor_id = actor_id
        self._clock = clock or SystemClock()
        self._sequences = sequence_service or SequenceService(session)

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create(
        self,
        description: str,
        entry_date: date,
        debit_account_id: UUID,
        credit_account_id: UUID,
        amount: Decimal,
        transaction_type: TransactionType,
        links: EntryLinks | None = None,
        fiscal_year_id: UUID | None = None,
    ) -> JournalEntryInfo:
        """
        Create a DRAFT entry with the next entry number.

        The fiscal year is ``fiscal_year_id`` when given, else the year whose
        range contains ``entry_date``, else the current year.  An entry
        outside every year and with no current year is left unassigned.

        Returns:
            JournalEntryInfo of the new DRAFT entry.
        """
        amount = to_decimal(amount)
        if amount <= 0:
            raise InvalidAmountError(str(amount))
        if debit_account_id == credit_account_id:
            raise InvalidAccountError(
                str(debit_account_id), "debit and credit account must differ"
            )

        for account_id in (debit_account_id, credit_account_id):
            account = self.session.get(Account, account_id)
            if account is None:
                raise AccountNotFoundError(str(account_id))
            if not account.is_active:
                raise InvalidAccountError(str(account_id), "account is inactive")

        year = self._resolve_fiscal_year(entry_date, fiscal_year_id)
        if year is not None:
            self._guard_writable(year, entry_date, "create entries")

        links = links or EntryLinks()
        entry = JournalEntry(
            entry_number=self._sequences.next_entry_number(),
            date=entry_date,
            description=description,
            debit_account_id=debit_account_id,
            credit_account_id=credit_account_id,
            amount=amount,
            transaction_type=TransactionType(transaction_type),
            status=JournalEntryStatus.DRAFT,
            fiscal_year_id=year.id if year is not None else None,
            booking_id=links.booking_id,
            invoice_id=links.invoice_id,
            receipt_id=links.receipt_id,
            reference=links.reference,
            created_by_id=self._actor_id,
        )
        self.session.add(entry)
        self.session.flush()

        logger.info(
            "journal_entry_created",
            extra={
                "entry_number": entry.entry_number,
                "transaction_type": entry.transaction_type,
                "amount": str(amount),
                "fiscal_year_id": str(entry.fiscal_year_id) if entry.fiscal_year_id else None,
            },
        )
        return JournalEntryInfo.from_model(entry)

    # ------------------------------------------------------------------
    # Post
    # ------------------------------------------------------------------

    def post(self, entry_id: UUID) -> JournalEntryInfo:
        """
        Apply a DRAFT entry to both account balances and mark it POSTED.

        Postconditions:
            debit account: debit_balance += amount, balance += signed delta.
            credit account: credit_balance += amount, balance += signed delta.
            entry: status POSTED, posted_date set.
            Either all of the above happened or none did.
        """
        entry = self.session.execute(
            select(JournalEntry)
            .where(JournalEntry.id == entry_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if entry is None:
            raise EntryNotFoundError(str(entry_id))

        with LogContext.bind(entry_id=str(entry.id)):
            if entry.is_posted:
                logger.warning(
                    "journal_entry_already_posted",
                    extra={"entry_number": entry.entry_number},
                )
                raise AlreadyPostedError(str(entry.id), entry.entry_number)

            if entry.fiscal_year_id is not None:
                year = self.session.get(FiscalYear, entry.fiscal_year_id)
                if year is not None:
                    self._guard_writable(year, entry.date, "post entries")

            # Lock in id order so concurrent posts on the same pair cannot deadlock
            accounts = {
                account.id: account
                for account in self.session.execute(
                    select(Account)
                    .where(Account.id.in_([entry.debit_account_id, entry.credit_account_id]))
                    .order_by(Account.id)
                    .with_for_update()
                    .execution_options(populate_existing=True)
                ).scalars()
            }
            debit_account = accounts.get(entry.debit_account_id)
            if debit_account is None:
                raise AccountNotFoundError(str(entry.debit_account_id))
            credit_account = accounts.get(entry.credit_account_id)
            if credit_account is None:
                raise AccountNotFoundError(str(entry.credit_account_id))

            amount = entry.amount
            savepoint = self.session.begin_nested()
            try:
                debit_account.debit_balance += amount
                debit_account.balance += balance_delta(debit_account.account_type, True, amount)
                credit_account.credit_balance += amount
                credit_account.balance += balance_delta(credit_account.account_type, False, amount)

                entry.status = JournalEntryStatus.POSTED
                entry.posted_date = self._clock.now()
                entry.updated_by_id = self._actor_id
                self.session.flush()
                savepoint.commit()
            except Exception:
                savepoint.rollback()
                logger.error(
                    "journal_entry_post_failed",
                    extra={"entry_number": entry.entry_number},
                    exc_info=True,
                )
                raise

            logger.info(
                "journal_entry_posted",
                extra={
                    "entry_number": entry.entry_number,
                    "debit_account": debit_account.code,
                    "credit_account": credit_account.code,
                    "amount": str(amount),
                },
            )
            return JournalEntryInfo.from_model(entry)

    def create_and_post(
        self,
        description: str,
        entry_date: date,
        debit_account_id: UUID,
        credit_account_id: UUID,
        amount: Decimal,
        transaction_type: TransactionType,
        links: EntryLinks | None = None,
        fiscal_year_id: UUID | None = None,
    ) -> JournalEntryInfo:
        """Create an entry and post it in one savepoint; no DRAFT is left behind."""
        savepoint = self.session.begin_nested()
        try:
            draft = self.create(
                description=description,
                entry_date=entry_date,
                debit_account_id=debit_account_id,
                credit_account_id=credit_account_id,
                amount=amount,
                transaction_type=transaction_type,
                links=links,
                fiscal_year_id=fiscal_year_id,
            )
            posted = self.post(draft.id)
            savepoint.commit()
        except Exception:
            savepoint.rollback()
            raise
        return posted

    # ------------------------------------------------------------------
    # Drafts
    # ------------------------------------------------------------------

    def get(self, entry_id: UUID) -> JournalEntryInfo:
        entry = self.session.get(JournalEntry, entry_id)
        if entry is None:
            raise EntryNotFoundError(str(entry_id))
        return JournalEntryInfo.from_model(entry)

    def delete_draft(self, entry_id: UUID) -> None:
        """Remove a DRAFT entry. POSTED entries are permanent."""
        entry = self.session.get(JournalEntry, entry_id)
        if entry is None:
            raise EntryNotFoundError(str(entry_id))
        if entry.is_posted:
            raise ImmutabilityViolationError(
                entity_type="JournalEntry",
                entity_id=str(entry.id),
                reason="Posted journal entries cannot be deleted",
            )
        if entry.fiscal_year_id is not None:
            year = self.session.get(FiscalYear, entry.fiscal_year_id)
            if year is not None and year.is_closed:
                raise FiscalYearClosedError(year.code, "delete entries")

        self.session.delete(entry)
        self.session.flush()
        logger.info("journal_entry_deleted", extra={"entry_number": entry.entry_number})

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _resolve_fiscal_year(
        self, entry_date: date, fiscal_year_id: UUID | None
    ) -> FiscalYear | None:
        if fiscal_year_id is not None:
            year = self.session.get(FiscalYear, fiscal_year_id)
            if year is None:
                raise FiscalYearNotFoundError(str(fiscal_year_id))
            return year

        year = self.session.execute(
            select(FiscalYear).where(
                FiscalYear.start_date <= entry_date,
                FiscalYear.end_date >= entry_date,
            )
        ).scalar_one_or_none()
        if year is not None:
            return year

        return self.session.execute(
            select(FiscalYear).where(FiscalYear.is_current.is_(True))
        ).scalar_one_or_none()

    @staticmethod
    def _guard_writable(year: FiscalYear, entry_date: date, operation: str) -> None:
        if year.is_closed:
            logger.warning(
                "fiscal_year_closed_rejected",
                extra={"fiscal_year_code": year.code, "operation": operation},
            )
            raise FiscalYearClosedError(year.code, operation)
        if year.is_locked_for(entry_date):
            raise FiscalYearLockedError(year.code, year.lock_date, entry_date)
