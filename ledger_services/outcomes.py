"""Tri-state result of one attempted posting."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from ledger_kernel.domain.dtos import JournalEntryInfo


class OutcomeStatus(str, Enum):
    SUCCEEDED = "succeeded"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class PostingOutcome:
    """
    What happened to one entry of a business event.

    SUCCEEDED carries the posted entry.  SKIPPED means nothing was needed
    or a configured account is missing.  FAILED means the kernel rejected
    the entry; its savepoint was rolled back.
    """

    transaction_type: str
    status: OutcomeStatus
    entry: JournalEntryInfo | None = None
    reason: str | None = None
    amount: Decimal | None = None

    @classmethod
    def succeeded(cls, transaction_type: str, entry: JournalEntryInfo) -> PostingOutcome:
        return cls(
            transaction_type=transaction_type,
            status=OutcomeStatus.SUCCEEDED,
            entry=entry,
            amount=entry.amount,
        )

    @classmethod
    def skipped(cls, transaction_type: str, reason: str) -> PostingOutcome:
        return cls(transaction_type=transaction_type, status=OutcomeStatus.SKIPPED, reason=reason)

    @classmethod
    def failed(
        cls, transaction_type: str, reason: str, amount: Decimal | None = None
    ) -> PostingOutcome:
        return cls(
            transaction_type=transaction_type,
            status=OutcomeStatus.FAILED,
            reason=reason,
            amount=amount,
        )

    @property
    def is_success(self) -> bool:
        return self.status == OutcomeStatus.SUCCEEDED

    @property
    def is_skipped(self) -> bool:
        return self.status == OutcomeStatus.SKIPPED

    @property
    def is_failure(self) -> bool:
        return self.status == OutcomeStatus.FAILED
