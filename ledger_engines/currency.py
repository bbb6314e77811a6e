"""
Currency conversion through a pivot currency.

Every rate in the table is quoted against the pivot (AED by default):
one unit of the currency equals ``rate`` pivot units.  Converting between
two non-pivot currencies always goes amount -> pivot -> target.

Pure functions with no I/O; no rounding is applied.  Callers round at the
point a converted figure becomes a posted amount.

Usage:
    from decimal import Decimal
    from ledger_engines.currency import CurrencyConverter

    converter = CurrencyConverter({"AED": Decimal("1"), "USD": Decimal("3.67")})
    converter.convert(Decimal("100"), "USD", "AED")   # Decimal("367.00")
"""

from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal

from ledger_kernel.db.types import to_decimal
from ledger_kernel.exceptions import InvalidExchangeRateError
from ledger_kernel.logging_config import get_logger

logger = get_logger("engines.currency")

DEFAULT_PIVOT = "AED"


class CurrencyConverter:
    """
    Converts amounts with a fixed rate table.

    The table is copied at construction; use with_rates() to get a
    converter with refreshed rates.
    """

    def __init__(self, rates: Mapping[str, Decimal | int | str], pivot: str = DEFAULT_PIVOT):
        self._pivot = pivot.upper()
        table: dict[str, Decimal] = {}
        for code, rate in rates.items():
            value = to_decimal(rate)
            if value <= 0:
                raise InvalidExchangeRateError(code.upper(), str(value))
            table[code.upper()] = value
        table.setdefault(self._pivot, Decimal("1"))
        self._rates = table

    @property
    def pivot(self) -> str:
        return self._pivot

    def rate_for(self, code: str) -> Decimal | None:
        """Pivot units per unit of ``code``, or None if the code is unknown."""
        return self._rates.get(code.upper())

    def known_currencies(self) -> list[str]:
        return sorted(self._rates)

    def convert(self, amount: Decimal, from_code: str, to_code: str) -> Decimal:
        """
        Convert ``amount`` from one currency to another.

        An unknown code on either side returns ``amount`` unchanged.
        """
        amount = to_decimal(amount)
        source = from_code.upper()
        target = to_code.upper()
        if source == target:
            return amount

        from_rate = self._rates.get(source)
        to_rate = self._rates.get(target)
        if from_rate is None or to_rate is None:
            logger.debug(
                "currency_unknown",
                extra={
                    "from_currency": source,
                    "to_currency": target,
                    "unknown": [c for c, r in ((source, from_rate), (target, to_rate)) if r is None],
                },
            )
            return amount

        in_pivot = amount * from_rate
        if target == self._pivot:
            return in_pivot
        return in_pivot / to_rate

    def to_pivot(self, amount: Decimal, from_code: str) -> Decimal:
        return self.convert(amount, from_code, self._pivot)

    def with_rates(self, updates: Mapping[str, Decimal | int | str]) -> CurrencyConverter:
        """A new converter whose table is this one overlaid with ``updates``."""
        merged: dict[str, Decimal | int | str] = dict(self._rates)
        merged.update({code.upper(): rate for code, rate in updates.items()})
        logger.info(
            "currency_rates_updated",
            extra={"currencies": sorted(code.upper() for code in updates)},
        )
        return CurrencyConverter(merged, pivot=self._pivot)
