"""
Booking financials - VAT, profit and commission for one booking.

Pure functions with no I/O.  Inputs are already converted to AED; every
monetary output is rounded half-up to 2 decimals once, where it is
computed.

Order of computation:
    1. gross profit (sign inverted for REFUNDED bookings)
    2. agent and customer-service commissions on gross profit
    3. VAT by regime:
         UAE        sale is VAT-inclusive; VAT is extracted from it
         non-UAE    VAT is charged on profit after commission
         none       no VAT

Usage:
    from decimal import Decimal
    from ledger_engines.financials import FinancialCalculator

    result = FinancialCalculator().calculate(
        sale_in_aed=Decimal("1050"),
        cost_in_aed=Decimal("800"),
        is_uae_booking=True,
        vat_applicable=True,
    )
    result.vat.net_before_vat     # Decimal("1000.00")
    result.vat.vat_amount         # Decimal("50.00")
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from ledger_kernel.db.types import HUNDRED, ZERO, round_money, to_decimal

DEFAULT_VAT_RATE = Decimal("5")


class BookingStatus(str, Enum):
    """Booking lifecycle status as seen by the ledger."""

    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


class VatRegime(str, Enum):
    UAE = "uae"
    NON_UAE = "non_uae"
    NOT_APPLICABLE = "not_applicable"


@dataclass(frozen=True)
class VatResult:
    """VAT split of a booking's sale."""

    regime: VatRegime
    net_before_vat: Decimal
    vat_amount: Decimal
    total_with_vat: Decimal
    gross_profit: Decimal
    net_profit: Decimal


@dataclass(frozen=True)
class CommissionResult:
    """Commissions on gross profit."""

    agent_commission_amount: Decimal
    cs_commission_amount: Decimal
    total_commission: Decimal
    profit_after_commission: Decimal


@dataclass(frozen=True)
class BookingFinancials:
    """Everything the posting rules need about one booking."""

    sale_in_aed: Decimal
    cost_in_aed: Decimal
    vat: VatResult
    commission: CommissionResult

    @property
    def gross_profit(self) -> Decimal:
        return self.vat.gross_profit

    @property
    def net_profit(self) -> Decimal:
        return self.vat.net_profit


def gross_profit(
    sale_in_aed: Decimal,
    cost_in_aed: Decimal,
    status: BookingStatus | str = BookingStatus.CONFIRMED,
) -> Decimal:
    """Sale minus cost; cost minus sale for a REFUNDED booking."""
    if BookingStatus(status) == BookingStatus.REFUNDED:
        return round_money(cost_in_aed - sale_in_aed)
    return round_money(sale_in_aed - cost_in_aed)


def calculate_commission(
    gross: Decimal,
    agent_rate: Decimal = ZERO,
    cs_rate: Decimal = ZERO,
) -> CommissionResult:
    """Agent and customer-service commissions as percentages of gross profit."""
    agent = round_money(gross * to_decimal(agent_rate) / HUNDRED)
    cs = round_money(gross * to_decimal(cs_rate) / HUNDRED)
    total = agent + cs
    return CommissionResult(
        agent_commission_amount=agent,
        cs_commission_amount=cs,
        total_commission=total,
        profit_after_commission=gross - total,
    )


def calculate_vat(
    sale_in_aed: Decimal,
    gross: Decimal,
    profit_after_commission: Decimal,
    is_uae_booking: bool,
    vat_applicable: bool,
    vat_rate: Decimal = DEFAULT_VAT_RATE,
) -> VatResult:
    """
    VAT split under the booking's regime.

    ``is_uae_booking`` selects the regime as given; it is never inferred
    from the booking's other fields.
    """
    vat_rate = to_decimal(vat_rate)
    sale = round_money(sale_in_aed)

    if not vat_applicable:
        return VatResult(
            regime=VatRegime.NOT_APPLICABLE,
            net_before_vat=sale,
            vat_amount=round_money(ZERO),
            total_with_vat=sale,
            gross_profit=gross,
            net_profit=profit_after_commission,
        )

    if is_uae_booking:
        net_before_vat = round_money(sale_in_aed / (1 + vat_rate / HUNDRED))
        return VatResult(
            regime=VatRegime.UAE,
            net_before_vat=net_before_vat,
            vat_amount=sale - net_before_vat,
            total_with_vat=sale,
            gross_profit=gross,
            net_profit=profit_after_commission,
        )

    vat_amount = round_money(profit_after_commission * vat_rate / HUNDRED)
    return VatResult(
        regime=VatRegime.NON_UAE,
        net_before_vat=sale,
        vat_amount=vat_amount,
        total_with_vat=sale + vat_amount,
        gross_profit=gross,
        net_profit=profit_after_commission - vat_amount,
    )


class FinancialCalculator:
    """Combines profit, commission and VAT into BookingFinancials."""

    def __init__(self, default_vat_rate: Decimal = DEFAULT_VAT_RATE):
        self._default_vat_rate = to_decimal(default_vat_rate)

    def calculate(
        self,
        sale_in_aed: Decimal,
        cost_in_aed: Decimal,
        is_uae_booking: bool,
        vat_applicable: bool,
        vat_rate: Decimal | None = None,
        agent_commission_rate: Decimal = ZERO,
        cs_commission_rate: Decimal = ZERO,
        status: BookingStatus | str = BookingStatus.CONFIRMED,
    ) -> BookingFinancials:
        sale_in_aed = to_decimal(sale_in_aed)
        cost_in_aed = to_decimal(cost_in_aed)
        rate = self._default_vat_rate if vat_rate is None else to_decimal(vat_rate)

        gross = gross_profit(sale_in_aed, cost_in_aed, status)
        commission = calculate_commission(gross, agent_commission_rate, cs_commission_rate)
        vat = calculate_vat(
            sale_in_aed,
            gross,
            commission.profit_after_commission,
            is_uae_booking=is_uae_booking,
            vat_applicable=vat_applicable,
            vat_rate=rate,
        )
        return BookingFinancials(
            sale_in_aed=round_money(sale_in_aed),
            cost_in_aed=round_money(cost_in_aed),
            vat=vat,
            commission=commission,
        )
