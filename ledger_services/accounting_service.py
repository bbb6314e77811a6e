"""
ledger_services.accounting_service -- business events to posted entries.

Responsibility:
    Turns bookings, invoices, receipts, commissions and refunds into posted
    journal entries, and exposes the fiscal-year close, carry-forward and
    trial balance to callers outside the kernel.

Architecture position:
    Services -- orchestration over engines + kernel.  Constructs each
    kernel service once and wires them together.  No module-level state:
    an AccountingService is a value built per unit of work.

Invariants enforced:
    - Entries of one event are posted in the order cost -> revenue -> VAT
      -> commission, each in its own savepoint.
    - A kernel rejection of one entry rolls back that entry only and is
      reported as a FAILED outcome; the remaining entries still run.
    - A chart code missing from the ledger skips the entry with a WARNING
      (posting_skipped_missing_account); the business event still succeeds.
    - Duplicate events are SKIPPED: a booking with BOOKING_COST entries, an
      invoice or receipt with entries, a commission already posted, a
      refund already posted.

Failure modes:
    - Never raises for per-entry kernel errors; see PostingOutcome.
    - Facade methods (close, carry-forward) propagate kernel exceptions.

Usage:
    with session_scope() as session:
        accounting = AccountingService(session, get_default_config(), actor_id=user_id)
        outcomes = accounting.create_and_post_booking_entries(booking)
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from ledger_config.schema import LedgerConfig
from ledger_engines.currency import CurrencyConverter
from ledger_engines.financials import BookingFinancials, BookingStatus, FinancialCalculator
from ledger_kernel.db.types import ZERO, round_money, to_decimal
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import FiscalYearCloseResult, OpeningBalanceInfo
from ledger_kernel.exceptions import LedgerKernelError
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.journal import TransactionType
from ledger_kernel.selectors.ledger_selector import LedgerSelector, TrialBalanceReport
from ledger_kernel.services.account_service import AccountService
from ledger_kernel.services.fiscal_year_service import FiscalYearService
from ledger_kernel.services.journal_poster import EntryLinks, JournalPoster
from ledger_kernel.services.sequence_service import SequenceService
from ledger_services.outcomes import OutcomeStatus, PostingOutcome
from ledger_services.records import (
    BookingRecord,
    CommissionRole,
    InvoiceRecord,
    PaymentMethod,
    ReceiptRecord,
)

logger = get_logger("services.accounting")

BASE_CURRENCY = "AED"

# Used when no user is attached to the unit of work (batch jobs, CLI).
SYSTEM_ACTOR_ID = UUID("00000000-0000-0000-0000-000000000000")

_COMMISSION_TYPES = {
    CommissionRole.AGENT: TransactionType.COMMISSION_AGENT,
    CommissionRole.CS: TransactionType.COMMISSION_CS,
}

_VAT_TYPES = (
    TransactionType.BOOKING_VAT_UAE,
    TransactionType.BOOKING_VAT_NON_UAE,
    TransactionType.INVOICE_VAT_UAE,
    TransactionType.INVOICE_VAT_NON_UAE,
)

_REFUND_TYPES = (
    TransactionType.REFUND_COST,
    TransactionType.REFUND_REVENUE,
    TransactionType.REFUND_VAT,
    TransactionType.REFUND_COMMISSION_AGENT,
    TransactionType.REFUND_COMMISSION_CS,
)


class AccountingService:
    """
    Posting rules of the travel agency.

    Contract:
        Flush-only; the caller owns the transaction.  Event methods return
        one PostingOutcome per attempted entry.
    """

    def __init__(
        self,
        session: Session,
        config: LedgerConfig,
        converter: CurrencyConverter | None = None,
        clock: Clock | None = None,
        actor_id: UUID | None = None,
    ):
        self._session = session
        self._config = config
        self._clock = clock or SystemClock()
        self._actor_id = actor_id or SYSTEM_ACTOR_ID
        self._converter = converter or CurrencyConverter(
            config.rates(), pivot=config.pivot_currency
        )
        self._calculator = FinancialCalculator(config.default_vat_rate)

        self._sequences = SequenceService(session)
        self._accounts = AccountService(session, self._actor_id)
        self._poster = JournalPoster(
            session, self._actor_id, clock=self._clock, sequence_service=self._sequences
        )
        self._fiscal_years = FiscalYearService(
            session,
            self._actor_id,
            clock=self._clock,
            income_summary_code=config.closing.income_summary,
            retained_earnings_code=config.closing.retained_earnings,
        )
        self._ledger = LedgerSelector(session)

    # ------------------------------------------------------------------
    # Collaborators
    # ------------------------------------------------------------------

    @property
    def poster(self) -> JournalPoster:
        return self._poster

    @property
    def fiscal_years(self) -> FiscalYearService:
        return self._fiscal_years

    @property
    def ledger(self) -> LedgerSelector:
        return self._ledger

    @property
    def accounts(self) -> AccountService:
        return self._accounts

    @property
    def converter(self) -> CurrencyConverter:
        return self._converter

    # ------------------------------------------------------------------
    # Setup and intake helpers
    # ------------------------------------------------------------------

    def seed_chart(self) -> int:
        """Insert the configured chart of accounts; existing codes are kept."""
        return self._accounts.seed_chart(self._config.chart)

    def next_booking_number(self, booking_date: date) -> str:
        return self._sequences.next_booking_number(booking_date.year)

    def financials_for(self, booking: BookingRecord) -> BookingFinancials:
        return self._calculator.calculate(
            sale_in_aed=booking.sale_in_aed,
            cost_in_aed=booking.cost_in_aed,
            is_uae_booking=booking.is_uae_booking,
            vat_applicable=booking.vat_applicable,
            vat_rate=booking.vat_rate,
            agent_commission_rate=booking.agent_commission_rate,
            cs_commission_rate=booking.cs_commission_rate,
            status=booking.status,
        )

    # ------------------------------------------------------------------
    # Bookings
    # ------------------------------------------------------------------

    def create_and_post_booking_entries(self, booking: BookingRecord) -> list[PostingOutcome]:
        """
        Post cost, revenue, VAT and commission entries of a booking.

        REFUNDED bookings and bookings that already have cost entries are
        SKIPPED as a whole.
        """
        with LogContext.bind(booking_id=booking.booking_id):
            if BookingStatus(booking.status) == BookingStatus.REFUNDED:
                return [self._skip(
                    TransactionType.BOOKING_COST,
                    "booking is refunded; post refund entries instead",
                )]
            if self._has_entries(booking_id=booking.booking_id,
                                 types=[TransactionType.BOOKING_COST]):
                return [self._skip(
                    TransactionType.BOOKING_COST, "booking entries already posted"
                )]

            financials = self.financials_for(booking)
            mapping = self._config.mapping
            links = EntryLinks(booking_id=booking.booking_id, reference=booking.booking_number)
            summary = booking.details.summary()
            service = getattr(booking.service_type, "value", booking.service_type)
            outcomes: list[PostingOutcome] = []

            cost_code = mapping.cost_code_for(booking.service_type)
            if booking.suppliers:
                for supplier in booking.suppliers:
                    outcomes.append(self._post(
                        TransactionType.BOOKING_COST,
                        f"Booking {booking.booking_number} {service} cost - "
                        f"{supplier.supplier_name}: {summary}",
                        booking.booking_date,
                        debit_code=cost_code,
                        credit_code=mapping.accounts_payable,
                        amount=supplier.cost_in_aed,
                        links=links,
                    ))
            else:
                outcomes.append(self._post(
                    TransactionType.BOOKING_COST,
                    f"Booking {booking.booking_number} {service} cost: {summary}",
                    booking.booking_date,
                    debit_code=cost_code,
                    credit_code=mapping.accounts_payable,
                    amount=booking.cost_in_aed,
                    links=links,
                ))

            outcomes.append(self._post(
                TransactionType.BOOKING_REVENUE,
                f"Booking {booking.booking_number} {service} revenue - "
                f"{booking.customer_name}: {summary}",
                booking.booking_date,
                debit_code=mapping.accounts_receivable,
                credit_code=mapping.revenue_code_for(booking.service_type),
                amount=financials.vat.net_before_vat,
                links=links,
            ))

            vat_type = (
                TransactionType.BOOKING_VAT_UAE
                if booking.is_uae_booking
                else TransactionType.BOOKING_VAT_NON_UAE
            )
            outcomes.append(self._post(
                vat_type,
                f"Booking {booking.booking_number} VAT",
                booking.booking_date,
                debit_code=mapping.accounts_receivable,
                credit_code=mapping.vat_payable,
                amount=financials.vat.vat_amount,
                links=links,
            ))

            for role in (CommissionRole.AGENT, CommissionRole.CS):
                outcomes.append(
                    self.create_and_post_commission_entry(booking, role, financials=financials)
                )

            self._log_event("booking_entries_processed", booking.booking_number, outcomes)
            return outcomes

    def create_and_post_commission_entry(
        self,
        booking: BookingRecord,
        role: CommissionRole | str,
        financials: BookingFinancials | None = None,
    ) -> PostingOutcome:
        """Debit commission expense, credit commissions payable for one role."""
        role = CommissionRole(getattr(role, "value", role))
        transaction_type = _COMMISSION_TYPES[role]
        if self._has_entries(booking_id=booking.booking_id, types=[transaction_type]):
            return self._skip(transaction_type, "commission already posted")

        financials = financials or self.financials_for(booking)
        if role == CommissionRole.AGENT:
            amount = financials.commission.agent_commission_amount
        else:
            amount = financials.commission.cs_commission_amount

        mapping = self._config.mapping
        return self._post(
            transaction_type,
            f"Booking {booking.booking_number} {role.value.lower()} commission",
            booking.booking_date,
            debit_code=mapping.commission_expense,
            credit_code=mapping.commissions_payable,
            amount=amount,
            links=EntryLinks(booking_id=booking.booking_id, reference=booking.booking_number),
        )

    # ------------------------------------------------------------------
    # Invoices and receipts
    # ------------------------------------------------------------------

    def create_and_post_invoice_entries(self, invoice: InvoiceRecord) -> list[PostingOutcome]:
        """
        Post invoice revenue and VAT.

        Skipped when the booking already recognised revenue at booking time,
        or when the invoice has entries.
        """
        with LogContext.bind(booking_id=invoice.booking_id):
            if self._has_entries(booking_id=invoice.booking_id,
                                 types=[TransactionType.BOOKING_REVENUE]):
                return [self._skip(
                    TransactionType.INVOICE_REVENUE,
                    "revenue already recognised when the booking was posted",
                )]
            if self._has_entries(invoice_id=invoice.invoice_id):
                return [self._skip(
                    TransactionType.INVOICE_REVENUE, "invoice entries already posted"
                )]

            mapping = self._config.mapping
            links = EntryLinks(
                booking_id=invoice.booking_id,
                invoice_id=invoice.invoice_id,
                reference=invoice.invoice_number,
            )
            vat_type = (
                TransactionType.INVOICE_VAT_UAE
                if invoice.is_uae_booking
                else TransactionType.INVOICE_VAT_NON_UAE
            )
            outcomes = [
                self._post(
                    TransactionType.INVOICE_REVENUE,
                    f"Invoice {invoice.invoice_number} revenue - {invoice.customer_name}",
                    invoice.invoice_date,
                    debit_code=mapping.accounts_receivable,
                    credit_code=mapping.revenue_code_for(invoice.service_type),
                    amount=invoice.subtotal,
                    links=links,
                ),
                self._post(
                    vat_type,
                    f"Invoice {invoice.invoice_number} VAT",
                    invoice.invoice_date,
                    debit_code=mapping.accounts_receivable,
                    credit_code=mapping.vat_payable,
                    amount=invoice.vat_amount,
                    links=links,
                ),
            ]
            self._log_event("invoice_entries_processed", invoice.invoice_number, outcomes)
            return outcomes

    def create_and_post_receipt_entry(self, receipt: ReceiptRecord) -> PostingOutcome:
        """
        Debit cash or bank, credit receivables, in AED.

        CASH goes to cash on hand; a BANK receipt in USD to the USD bank
        account; anything else to the main AED bank account.
        """
        if self._has_entries(receipt_id=receipt.receipt_id):
            return self._skip(TransactionType.RECEIPT_PAYMENT, "receipt already posted")

        mapping = self._config.mapping
        method = PaymentMethod(getattr(receipt.payment_method, "value", receipt.payment_method))
        currency = receipt.currency.upper()
        if method == PaymentMethod.CASH:
            debit_code = mapping.cash
        elif method == PaymentMethod.BANK and currency == "USD":
            debit_code = mapping.bank_usd
        else:
            debit_code = mapping.bank_aed

        amount_in_aed = self._converter.convert(receipt.amount, currency, BASE_CURRENCY)
        return self._post(
            TransactionType.RECEIPT_PAYMENT,
            f"Receipt {receipt.receipt_number} ({receipt.amount} {currency}, {method.value.lower()})",
            receipt.receipt_date,
            debit_code=debit_code,
            credit_code=mapping.accounts_receivable,
            amount=amount_in_aed,
            links=EntryLinks(
                booking_id=receipt.booking_id,
                invoice_id=receipt.invoice_id,
                receipt_id=receipt.receipt_id,
                reference=receipt.receipt_number,
            ),
        )

    # ------------------------------------------------------------------
    # Refunds
    # ------------------------------------------------------------------

    def create_and_post_refund_entries(
        self, booking: BookingRecord, refund_date: date | None = None
    ) -> list[PostingOutcome]:
        """
        Reverse what was posted for a booking with new entries.

        Each refund amount is the booking's posted total of the original
        entry type.  Original entries are left untouched.
        """
        with LogContext.bind(booking_id=booking.booking_id):
            if self._has_entries(booking_id=booking.booking_id, types=_REFUND_TYPES):
                return [self._skip(TransactionType.REFUND_REVENUE, "refund already posted")]

            def posted(*types: TransactionType) -> Decimal:
                return sum(
                    (self._ledger.posted_total(booking.booking_id, t) for t in types), ZERO
                )

            cost_total = posted(TransactionType.BOOKING_COST)
            revenue_total = posted(
                TransactionType.BOOKING_REVENUE, TransactionType.INVOICE_REVENUE
            )
            vat_total = posted(*_VAT_TYPES)
            agent_total = posted(TransactionType.COMMISSION_AGENT)
            cs_total = posted(TransactionType.COMMISSION_CS)

            if not any((cost_total, revenue_total, vat_total, agent_total, cs_total)):
                return [self._skip(
                    TransactionType.REFUND_REVENUE, "nothing posted for booking"
                )]

            mapping = self._config.mapping
            entry_date = refund_date or self._clock.today()
            links = EntryLinks(booking_id=booking.booking_id, reference=booking.booking_number)
            number = booking.booking_number

            plan = (
                (TransactionType.REFUND_COST, f"Refund {number} cost",
                 mapping.accounts_payable, mapping.cost_code_for(booking.service_type),
                 cost_total),
                (TransactionType.REFUND_REVENUE, f"Refund {number} revenue",
                 mapping.revenue_code_for(booking.service_type), mapping.accounts_receivable,
                 revenue_total),
                (TransactionType.REFUND_VAT, f"Refund {number} VAT",
                 mapping.vat_payable, mapping.accounts_receivable,
                 vat_total),
                (TransactionType.REFUND_COMMISSION_AGENT, f"Refund {number} agent commission",
                 mapping.commissions_payable, mapping.commission_expense,
                 agent_total),
                (TransactionType.REFUND_COMMISSION_CS, f"Refund {number} cs commission",
                 mapping.commissions_payable, mapping.commission_expense,
                 cs_total),
            )
            outcomes = [
                self._post(
                    transaction_type,
                    description,
                    entry_date,
                    debit_code=debit_code,
                    credit_code=credit_code,
                    amount=amount,
                    links=links,
                )
                for transaction_type, description, debit_code, credit_code, amount in plan
            ]
            self._log_event("refund_entries_processed", number, outcomes)
            return outcomes

    # ------------------------------------------------------------------
    # Fiscal year and reporting facade
    # ------------------------------------------------------------------

    def close_fiscal_year(self, fiscal_year_id: UUID) -> FiscalYearCloseResult:
        return self._fiscal_years.close(fiscal_year_id)

    def carry_forward_balances(
        self, source_year_id: UUID, target_year_id: UUID
    ) -> list[OpeningBalanceInfo]:
        return self._fiscal_years.carry_forward(source_year_id, target_year_id)

    def get_trial_balance(
        self, start_date: date | None = None, end_date: date | None = None
    ) -> TrialBalanceReport:
        return self._ledger.trial_balance(start_date, end_date)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _has_entries(
        self,
        *,
        booking_id: str | None = None,
        invoice_id: str | None = None,
        receipt_id: str | None = None,
        types=None,
    ) -> bool:
        return bool(self._ledger.entries_for_document(
            booking_id=booking_id,
            invoice_id=invoice_id,
            receipt_id=receipt_id,
            transaction_types=types,
        ))

    def _skip(self, transaction_type: TransactionType, reason: str) -> PostingOutcome:
        logger.info(
            "posting_skipped",
            extra={"transaction_type": transaction_type.value, "reason": reason},
        )
        return PostingOutcome.skipped(transaction_type.value, reason)

    def _post(
        self,
        transaction_type: TransactionType,
        description: str,
        entry_date: date,
        *,
        debit_code: str,
        credit_code: str,
        amount: Decimal,
        links: EntryLinks,
    ) -> PostingOutcome:
        """Resolve both accounts and create-and-post one entry."""
        amount = round_money(to_decimal(amount))
        if amount <= ZERO:
            logger.debug(
                "posting_skipped_zero_amount",
                extra={"transaction_type": transaction_type.value, "amount": str(amount)},
            )
            return PostingOutcome.skipped(transaction_type.value, "amount is not positive")

        debit_account = self._accounts.get_by_code(debit_code)
        credit_account = self._accounts.get_by_code(credit_code)
        missing = [
            code
            for code, account in ((debit_code, debit_account), (credit_code, credit_account))
            if account is None
        ]
        if missing:
            logger.warning(
                "posting_skipped_missing_account",
                extra={
                    "transaction_type": transaction_type.value,
                    "missing_codes": missing,
                    "reference": links.reference,
                },
            )
            return PostingOutcome.skipped(
                transaction_type.value, f"account not found: {', '.join(missing)}"
            )

        try:
            entry = self._poster.create_and_post(
                description=description[:500],
                entry_date=entry_date,
                debit_account_id=debit_account.id,
                credit_account_id=credit_account.id,
                amount=amount,
                transaction_type=transaction_type,
                links=links,
            )
        except LedgerKernelError as exc:
            logger.error(
                "posting_failed",
                extra={
                    "transaction_type": transaction_type.value,
                    "error_code": exc.code,
                    "reason": str(exc),
                    "reference": links.reference,
                },
            )
            return PostingOutcome.failed(transaction_type.value, str(exc), amount=amount)

        return PostingOutcome.succeeded(transaction_type.value, entry)

    @staticmethod
    def _log_event(event: str, reference: str, outcomes: list[PostingOutcome]) -> None:
        counts = {status.value: 0 for status in OutcomeStatus}
        for outcome in outcomes:
            counts[outcome.status.value] += 1
        logger.info(event, extra={"reference": reference, **counts})
