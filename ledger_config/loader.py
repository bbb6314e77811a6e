"""
Configuration loader (``ledger_config.loader``).

Responsibility
--------------
Reads the ledger YAML file and parses it into the frozen dataclasses of
``ledger_config.schema``.  With no path, the bundled
``ledger_config/defaults/ledger.yaml`` is used.

Invariants enforced
-------------------
* Parse errors raise ``KeyError`` (missing key) or ``ValueError`` (bad
  value) with a descriptive message; required fields have no silent
  defaults.
* Every chart ``parent_code`` and both closing accounts exist in the chart.
* Rates are positive Decimals; the pivot currency is in the table.
* ``compute_checksum`` gives a deterministic SHA-256 of the raw document so
  a running ledger can report which configuration it was started with.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml

from ledger_config.schema import (
    AccountMapping,
    ChartAccountDef,
    ClosingAccounts,
    LedgerConfig,
    ServiceAccounts,
)
from ledger_kernel.logging_config import get_logger

logger = get_logger("config.loader")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults" / "ledger.yaml"

_ACCOUNT_TYPES = frozenset({"asset", "liability", "equity", "revenue", "expense"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load one YAML file; an empty file gives an empty dict."""
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_decimal(value: Any, field_name: str) -> Decimal:
    """
    Parse a Decimal from a YAML scalar.

    Floats are read through ``str`` so ``3.67`` stays ``Decimal("3.67")``.
    """
    if isinstance(value, bool):
        raise ValueError(f"{field_name}: expected a number, got {value!r}")
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"{field_name}: expected a number, got {value!r}") from exc


def parse_chart_account(data: dict[str, Any]) -> ChartAccountDef:
    account_type = str(data["type"]).lower()
    if account_type not in _ACCOUNT_TYPES:
        raise ValueError(f"Account {data['code']}: unknown type {data['type']!r}")
    parent = data.get("parent")
    return ChartAccountDef(
        code=str(data["code"]),
        name=data["name"],
        account_type=account_type,
        parent_code=str(parent) if parent is not None else None,
        allow_manual_entry=bool(data.get("allow_manual_entry", True)),
    )


def parse_mapping(data: dict[str, Any]) -> AccountMapping:
    """Parse the ``accounts`` section; omitted codes keep their defaults."""
    services = tuple(
        ServiceAccounts(
            service_type=str(service_type).upper(),
            revenue_code=str(codes["revenue"]),
            cost_code=str(codes["cost"]),
        )
        for service_type, codes in (data.get("services") or {}).items()
    )
    codes = {
        key: str(value)
        for key, value in data.items()
        if key != "services" and value is not None
    }
    unknown = set(codes) - set(AccountMapping.__dataclass_fields__)
    if unknown:
        raise ValueError(f"Unknown account mapping keys: {sorted(unknown)}")
    return AccountMapping(service_accounts=services, **codes)


def parse_closing(data: dict[str, Any]) -> ClosingAccounts:
    return ClosingAccounts(
        income_summary=str(data["income_summary"]),
        retained_earnings=str(data["retained_earnings"]),
    )


def parse_ledger_config(data: dict[str, Any]) -> LedgerConfig:
    """
    Build a LedgerConfig from a parsed YAML document.

    Raises:
        KeyError: a required key is missing.
        ValueError: a value is invalid or the chart is inconsistent.
    """
    chart = tuple(parse_chart_account(item) for item in data["chart"])
    codes = [account.code for account in chart]
    duplicates = sorted({code for code in codes if codes.count(code) > 1})
    if duplicates:
        raise ValueError(f"Duplicate chart codes: {duplicates}")
    known = set(codes)
    for account in chart:
        if account.parent_code is not None and account.parent_code not in known:
            raise ValueError(
                f"Account {account.code}: parent {account.parent_code} is not in the chart"
            )

    closing = parse_closing(data["closing"])
    for code in (closing.income_summary, closing.retained_earnings):
        if code not in known:
            raise ValueError(f"Closing account {code} is not in the chart")

    pivot = str(data.get("pivot_currency", "AED")).upper()
    rates = tuple(
        sorted(
            (str(code).upper(), parse_decimal(rate, f"currency_rates.{code}"))
            for code, rate in data["currency_rates"].items()
        )
    )
    for code, rate in rates:
        if rate <= 0:
            raise ValueError(f"currency_rates.{code}: rate must be positive, got {rate}")
    if pivot not in dict(rates):
        raise ValueError(f"Pivot currency {pivot} has no rate")

    return LedgerConfig(
        name=data["name"],
        version=int(data.get("version", 1)),
        pivot_currency=pivot,
        default_vat_rate=parse_decimal(data.get("default_vat_rate", 5), "default_vat_rate"),
        currency_rates=rates,
        chart=chart,
        mapping=parse_mapping(data.get("accounts") or {}),
        closing=closing,
        checksum=compute_checksum(data),
    )


def load_ledger_config(path: Path | str | None = None) -> LedgerConfig:
    """Load and validate a ledger configuration file (the bundled default if None)."""
    config_path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    config = parse_ledger_config(load_yaml_file(config_path))
    logger.info(
        "ledger_config_loaded",
        extra={
            "path": str(config_path),
            "config_name": config.name,
            "accounts": len(config.chart),
            "currencies": len(config.currency_rates),
            "checksum": config.checksum[:12],
        },
    )
    return config


@lru_cache(maxsize=1)
def get_default_config() -> LedgerConfig:
    """The bundled configuration, loaded once per process."""
    return load_ledger_config()


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON form of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
