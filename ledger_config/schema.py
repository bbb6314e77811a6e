"""
LedgerConfig schema.

Typed form of the ledger's YAML configuration: the chart-of-accounts seed,
the account codes each posting rule uses, the currency rate table, the
default VAT rate and the fiscal-year closing accounts.  The loader parses
YAML into these frozen dataclasses; services only ever see these types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

# ---------------------------------------------------------------------------
# Chart of accounts
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ChartAccountDef:
    """One account of the chart seed."""

    code: str
    name: str
    account_type: str  # asset, liability, equity, revenue, expense
    parent_code: str | None = None
    allow_manual_entry: bool = True


# ---------------------------------------------------------------------------
# Posting account mapping
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ServiceAccounts:
    """Revenue and cost account codes of one booking service type."""

    service_type: str
    revenue_code: str
    cost_code: str


@dataclass(frozen=True)
class AccountMapping:
    """Chart codes used by the booking, invoice, receipt and refund rules."""

    accounts_receivable: str = "1121"
    accounts_payable: str = "2111"
    vat_payable: str = "2121"
    commissions_payable: str = "2132"
    commission_expense: str = "6120"
    cash: str = "1111"
    bank_aed: str = "1114"
    bank_usd: str = "1115"
    fallback_revenue: str = "4180"
    fallback_cost: str = "5180"
    service_accounts: tuple[ServiceAccounts, ...] = ()

    def _for(self, service_type: str) -> ServiceAccounts | None:
        key = getattr(service_type, "value", service_type)
        for accounts in self.service_accounts:
            if accounts.service_type == key:
                return accounts
        return None

    def revenue_code_for(self, service_type: str) -> str:
        accounts = self._for(service_type)
        return accounts.revenue_code if accounts else self.fallback_revenue

    def cost_code_for(self, service_type: str) -> str:
        accounts = self._for(service_type)
        return accounts.cost_code if accounts else self.fallback_cost


# ---------------------------------------------------------------------------
# Fiscal year close
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ClosingAccounts:
    """Accounts the fiscal-year close routes net income through."""

    income_summary: str = "3300"
    retained_earnings: str = "3200"


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LedgerConfig:
    """Complete ledger configuration."""

    name: str
    version: int = 1
    pivot_currency: str = "AED"
    default_vat_rate: Decimal = Decimal("5")
    currency_rates: tuple[tuple[str, Decimal], ...] = ()
    chart: tuple[ChartAccountDef, ...] = ()
    mapping: AccountMapping = field(default_factory=AccountMapping)
    closing: ClosingAccounts = field(default_factory=ClosingAccounts)
    checksum: str = ""

    def rates(self) -> dict[str, Decimal]:
        return dict(self.currency_rates)

    def chart_codes(self) -> frozenset[str]:
        return frozenset(account.code for account in self.chart)
