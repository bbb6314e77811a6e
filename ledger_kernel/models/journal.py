"""
Module: ledger_kernel.models.journal
Responsibility: ORM persistence for double-entry journal entries.  One row is
    one accounting event: a single amount debited to one account and credited
    to another.
Architecture position: Kernel > Models.  May import from db/base.py and
    sibling model modules only.

Invariants enforced:
    - entry_number is unique (uq_journal_entry_number) and allocated from the
      locked sequence counter, so it is strictly increasing.
    - amount is positive and applies identically to both legs, so every
      POSTED entry contributes equally to global debits and credits.
    - POSTED entries are immutable (db/immutability.py).
    - entries never live in a CLOSED fiscal year (JournalPoster guards).

Failure modes:
    - IntegrityError on duplicate entry_number (only possible if the
      sequence counter is bypassed).
    - ImmutabilityViolationError on UPDATE/DELETE of a POSTED entry.

Audit relevance:
    booking_id, invoice_id, receipt_id and reference tie every entry back to
    the business document that produced it; transaction_type says which
    posting rule created it.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase, UUIDString


class JournalEntryStatus(str, Enum):
    """Status of a journal entry. DRAFT -> POSTED, one way."""

    DRAFT = "draft"
    POSTED = "posted"


class TransactionType(str, Enum):
    """Tag naming the posting rule that produced an entry."""

    BOOKING_COST = "BOOKING_COST"
    BOOKING_REVENUE = "BOOKING_REVENUE"
    BOOKING_VAT_UAE = "BOOKING_VAT_UAE"
    BOOKING_VAT_NON_UAE = "BOOKING_VAT_NON_UAE"
    INVOICE_REVENUE = "INVOICE_REVENUE"
    INVOICE_VAT_UAE = "INVOICE_VAT_UAE"
    INVOICE_VAT_NON_UAE = "INVOICE_VAT_NON_UAE"
    RECEIPT_PAYMENT = "RECEIPT_PAYMENT"
    COMMISSION_AGENT = "COMMISSION_AGENT"
    COMMISSION_CS = "COMMISSION_CS"
    REFUND_REVENUE = "REFUND_REVENUE"
    REFUND_VAT = "REFUND_VAT"
    REFUND_COST = "REFUND_COST"
    REFUND_COMMISSION_AGENT = "REFUND_COMMISSION_AGENT"
    REFUND_COMMISSION_CS = "REFUND_COMMISSION_CS"
    MANUAL = "MANUAL"


class JournalEntry(TrackedBase):
    """
    A single debit/credit pair.

    Contract:
        Created DRAFT by JournalPoster.create() and flipped to POSTED by
        JournalPoster.post(), which applies ``amount`` to both accounts in
        the same savepoint.  After that the row never changes.
    """

    __tablename__ = "journal_entries"

    __table_args__ = (
        UniqueConstraint("entry_number", name="uq_journal_entry_number"),
        CheckConstraint("amount > 0", name="ck_journal_entry_amount_positive"),
        Index("idx_journal_fiscal_year", "fiscal_year_id"),
        Index("idx_journal_booking", "booking_id", "transaction_type"),
        Index("idx_journal_invoice", "invoice_id"),
        Index("idx_journal_receipt", "receipt_id"),
        Index("idx_journal_date", "date"),
    )

    # JE-000001, JE-000002, ...
    entry_number: Mapped[str] = mapped_column(String(20), nullable=False)

    date: Mapped[date] = mapped_column(Date, nullable=False)

    description: Mapped[str] = mapped_column(String(500), nullable=False)

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

    transaction_type: Mapped[TransactionType] = mapped_column(String(40), nullable=False)

    status: Mapped[JournalEntryStatus] = mapped_column(
        String(10),
        nullable=False,
        default=JournalEntryStatus.DRAFT,
    )

    posted_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    fiscal_year_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("fiscal_years.id"),
        nullable=True,
    )

    # Back-references to the business documents that produced the entry
    booking_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    invoice_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    receipt_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    # Booking/invoice/receipt number as printed on the document
    reference: Mapped[str | None] = mapped_column(String(64), nullable=True)

    def __repr__(self) -> str:
        return f"<JournalEntry {self.entry_number} {self.transaction_type} {self.amount}>"

    @property
    def is_posted(self) -> bool:
        return self.status == JournalEntryStatus.POSTED

    @property
    def is_draft(self) -> bool:
        return self.status == JournalEntryStatus.DRAFT
