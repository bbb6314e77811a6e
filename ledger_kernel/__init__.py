"""
Ledger Kernel

Double-entry accounting core for the travel back office:
- Chart of accounts with signed running balances
- Atomic journal posting with a locked entry-number sequence
- Fiscal-year close, closing entries and balance carry-forward
- Trial balance reporting
"""

__version__ = "0.1.0"
