#!/usr/bin/env python3
"""
Operator command line for the travel ledger.

Usage:
    python3 scripts/ledger_cli.py init-db
    python3 scripts/ledger_cli.py seed-chart [--config ledger.yaml]
    python3 scripts/ledger_cli.py trial-balance [--start 2025-01-01] [--end 2025-12-31]
    python3 scripts/ledger_cli.py open-year --code FY2025 --name "Fiscal Year 2025" \\
        --start 2025-01-01 --end 2025-12-31 [--based-on FY2024]
    python3 scripts/ledger_cli.py close-year --code FY2024
    python3 scripts/ledger_cli.py list-years

The database URL is taken from --database-url, else DATABASE_URL.
"""

import argparse
import logging
import os
import sys
from datetime import date
from decimal import Decimal

W = 78


def _fmt(v) -> str:
    d = Decimal(str(v))
    return f"{d:,.2f}"


def _iso_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"not an ISO date: {value!r}") from exc


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Travel ledger operator tool",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--database-url",
        default=os.environ.get("DATABASE_URL"),
        help="SQLAlchemy database URL (default: $DATABASE_URL)",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Ledger YAML configuration (default: bundled ledger.yaml)",
    )
    parser.add_argument("--verbose", action="store_true", help="Emit JSON logs to stderr")

    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("init-db", help="Create the ledger tables")
    commands.add_parser("seed-chart", help="Insert the configured chart of accounts")

    trial = commands.add_parser("trial-balance", help="Print the trial balance")
    trial.add_argument("--start", type=_iso_date, default=None)
    trial.add_argument("--end", type=_iso_date, default=None)

    open_year = commands.add_parser("open-year", help="Open a new current fiscal year")
    open_year.add_argument("--code", required=True)
    open_year.add_argument("--name", required=True)
    open_year.add_argument("--start", type=_iso_date, required=True)
    open_year.add_argument("--end", type=_iso_date, required=True)
    open_year.add_argument("--based-on", default=None, help="Code of the year to carry balances from")

    close_year = commands.add_parser("close-year", help="Close a fiscal year")
    close_year.add_argument("--code", required=True)

    commands.add_parser("list-years", help="List fiscal years")
    return parser


def _print_trial_balance(report) -> None:
    print()
    print("=" * W)
    print("TRIAL BALANCE".center(W))
    period = f"{report.start_date or 'beginning'} to {report.end_date or 'today'}"
    print(period.center(W))
    print("=" * W)
    print(f"  {'Code':<6} {'Account':<36} {'Debit':>15} {'Credit':>15}")
    print(f"  {'-' * 6} {'-' * 36} {'-' * 15} {'-' * 15}")
    for row in report.rows:
        print(
            f"  {row.account_code:<6} {row.account_name[:36]:<36} "
            f"{_fmt(row.debit_total):>15} {_fmt(row.credit_total):>15}"
        )
    print(f"  {'-' * 6} {'-' * 36} {'-' * 15} {'-' * 15}")
    print(f"  {'':<6} {'TOTAL':<36} {_fmt(report.total_debits):>15} {_fmt(report.total_credits):>15}")
    print()
    if report.findings:
        print("  FINDINGS:")
        for finding in report.findings:
            print(f"    - {finding}")
    else:
        print("  Balanced.")
    print()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    if not args.database_url:
        print("ERROR: no database URL (use --database-url or set DATABASE_URL)", file=sys.stderr)
        return 2

    from ledger_config import get_default_config, load_ledger_config
    from ledger_kernel.db.engine import create_tables, init_engine_from_url, session_scope
    from ledger_kernel.db.immutability import register_immutability_listeners
    from ledger_kernel.exceptions import LedgerKernelError
    from ledger_kernel.logging_config import configure_logging
    from ledger_services.accounting_service import AccountingService

    configure_logging(level=logging.DEBUG if args.verbose else logging.WARNING, stream=sys.stderr)

    config = load_ledger_config(args.config) if args.config else get_default_config()
    init_engine_from_url(args.database_url)
    register_immutability_listeners()

    if args.command == "init-db":
        create_tables()
        print("Tables created.")
        return 0

    try:
        with session_scope() as session:
            accounting = AccountingService(session, config)
            years = accounting.fiscal_years

            if args.command == "seed-chart":
                created = accounting.seed_chart()
                print(f"Seeded {created} account(s) from {config.name}.")
                return 0

            if args.command == "trial-balance":
                report = accounting.get_trial_balance(args.start, args.end)
                _print_trial_balance(report)
                return 0 if report.is_balanced and not report.findings else 1

            if args.command == "open-year":
                based_on_id = None
                if args.based_on:
                    based_on = years.get_by_code(args.based_on)
                    if based_on is None:
                        print(f"ERROR: unknown fiscal year {args.based_on}", file=sys.stderr)
                        return 1
                    based_on_id = based_on.id
                year = years.open_new(args.name, args.code, args.start, args.end, based_on_id)
                carried = " (balances carried forward)" if year.balances_carried_forward else ""
                print(f"Opened {year.code}: {year.start_date} to {year.end_date}{carried}.")
                return 0

            if args.command == "close-year":
                year = years.get_by_code(args.code)
                if year is None:
                    print(f"ERROR: unknown fiscal year {args.code}", file=sys.stderr)
                    return 1
                result = accounting.close_fiscal_year(year.id)
                print(f"Closed {year.code}.")
                print(f"  Revenue:    {_fmt(result.total_revenue):>15}")
                print(f"  Expenses:   {_fmt(result.total_expenses):>15}")
                print(f"  Net income: {_fmt(result.net_income):>15}")
                print(f"  Closing entries: {len(result.closing_entries)}")
                return 0

            if args.command == "list-years":
                listed = years.list_years()
                if not listed:
                    print("No fiscal years.")
                for year in listed:
                    marker = "*" if year.is_current else " "
                    print(
                        f" {marker} {year.code:<10} {year.start_date} .. {year.end_date}  "
                        f"{year.status.upper():<6} {year.name}"
                    )
                return 0
    except LedgerKernelError as exc:
        print(f"ERROR [{exc.code}]: {exc}", file=sys.stderr)
        return 1

    return 2


if __name__ == "__main__":
    sys.exit(main())
