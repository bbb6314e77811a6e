"""Kernel services: sequence allocation, accounts, posting and fiscal years."""

from ledger_kernel.services.account_service import AccountService
from ledger_kernel.services.fiscal_year_service import FiscalYearService
from ledger_kernel.services.journal_poster import JournalPoster
from ledger_kernel.services.sequence_service import SequenceService

__all__ = [
    "AccountService",
    "FiscalYearService",
    "JournalPoster",
    "SequenceService",
]
