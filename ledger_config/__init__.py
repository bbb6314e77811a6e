"""
Ledger configuration: YAML in, frozen dataclasses out.

    from ledger_config import get_default_config
    config = get_default_config()
    config.mapping.revenue_code_for("FLIGHT")   # "4110"
"""

from ledger_config.loader import (
    DEFAULT_CONFIG_PATH,
    compute_checksum,
    get_default_config,
    load_ledger_config,
    parse_ledger_config,
)
from ledger_config.schema import (
    AccountMapping,
    ChartAccountDef,
    ClosingAccounts,
    LedgerConfig,
    ServiceAccounts,
)

__all__ = [
    "DEFAULT_CONFIG_PATH",
    "AccountMapping",
    "ChartAccountDef",
    "ClosingAccounts",
    "LedgerConfig",
    "ServiceAccounts",
    "compute_checksum",
    "get_default_config",
    "load_ledger_config",
    "parse_ledger_config",
]
