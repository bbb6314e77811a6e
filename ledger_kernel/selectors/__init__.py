"""Read-only ledger queries."""

from ledger_kernel.selectors.ledger_selector import (
    AccountTreeBalance,
    LedgerSelector,
    TrialBalanceReport,
    TrialBalanceRow,
)

__all__ = [
    "AccountTreeBalance",
    "LedgerSelector",
    "TrialBalanceReport",
    "TrialBalanceRow",
]
