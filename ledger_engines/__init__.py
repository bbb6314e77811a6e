"""
Module: ledger_engines
Responsibility:
    Pure calculation layer: currency conversion and booking financials.
Architecture position:
    Engines -- zero I/O.  May import ledger_kernel.db.types, exceptions and
    logging only.  MUST NOT import ledger_services.

Invariants enforced:
    - Decimal-only arithmetic; floats are coerced through str.
    - Determinism: identical inputs always produce identical outputs.
"""

from ledger_engines.currency import DEFAULT_PIVOT, CurrencyConverter
from ledger_engines.financials import (
    DEFAULT_VAT_RATE,
    BookingFinancials,
    BookingStatus,
    CommissionResult,
    FinancialCalculator,
    VatRegime,
    VatResult,
    calculate_commission,
    calculate_vat,
    gross_profit,
)

__all__ = [
    "DEFAULT_PIVOT",
    "DEFAULT_VAT_RATE",
    "BookingFinancials",
    "BookingStatus",
    "CommissionResult",
    "CurrencyConverter",
    "FinancialCalculator",
    "VatRegime",
    "VatResult",
    "calculate_commission",
    "calculate_vat",
    "gross_profit",
]
