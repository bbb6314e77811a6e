"""ORM models for the ledger kernel."""

from ledger_kernel.models.account import Account, AccountType
from ledger_kernel.models.fiscal_year import (
    ClosingEntry,
    ClosingEntryType,
    FiscalYear,
    FiscalYearStatus,
    OpeningBalance,
    OpeningBalanceSource,
)
from ledger_kernel.models.journal import (
    JournalEntry,
    JournalEntryStatus,
    TransactionType,
)
from ledger_kernel.models.sequence import SequenceCounter


def import_all_models() -> None:
    """Make sure every table is registered on Base.metadata.

    Importing this package already does that; the function exists so engine
    helpers can state the dependency explicitly.
    """


__all__ = [
    "Account",
    "AccountType",
    "ClosingEntry",
    "ClosingEntryType",
    "FiscalYear",
    "FiscalYearStatus",
    "JournalEntry",
    "JournalEntryStatus",
    "OpeningBalance",
    "OpeningBalanceSource",
    "SequenceCounter",
    "TransactionType",
    "import_all_models",
]
