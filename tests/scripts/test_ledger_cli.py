"""
Tests for the operator command line (scripts/ledger_cli.py).

Each test runs the CLI against its own SQLite file; the module-level
engine used by the rest of the suite is restored afterwards.
"""

import importlib.util
from pathlib import Path

import pytest

import ledger_kernel.db.engine as engine_module
from ledger_config import get_default_config
from ledger_kernel.db.engine import session_scope
from ledger_services.accounting_service import AccountingService

CLI_PATH = Path(__file__).resolve().parents[2] / "scripts" / "ledger_cli.py"


def _load_cli():
    spec = importlib.util.spec_from_file_location("ledger_cli", CLI_PATH)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def cli(monkeypatch, tmp_path):
    """Run the CLI against a scratch database; returns run(*args) -> exit code."""
    monkeypatch.setattr(engine_module, "_engine", None)
    monkeypatch.setattr(engine_module, "_SessionFactory", None)

    created = []
    real_init = engine_module.init_engine_from_url

    def tracking_init(*args, **kwargs):
        engine = real_init(*args, **kwargs)
        created.append(engine)
        return engine

    monkeypatch.setattr(engine_module, "init_engine_from_url", tracking_init)

    module = _load_cli()
    url = f"sqlite:///{tmp_path / 'ledger.db'}"

    def run(*args):
        return module.main(["--database-url", url, *args])

    yield run

    for engine in created:
        engine.dispose()


@pytest.fixture
def ledger_db(cli):
    assert cli("init-db") == 0
    assert cli("seed-chart") == 0
    assert cli(
        "open-year", "--code", "FY2025", "--name", "Fiscal Year 2025",
        "--start", "2025-01-01", "--end", "2025-12-31",
    ) == 0
    return cli


class TestCli:

    def test_missing_database_url(self, monkeypatch, capsys):
        monkeypatch.delenv("DATABASE_URL", raising=False)

        assert _load_cli().main(["list-years"]) == 2
        assert "no database URL" in capsys.readouterr().err

    def test_invalid_date_argument(self, cli, capsys):
        with pytest.raises(SystemExit):
            cli("trial-balance", "--start", "yesterday")
        assert "not an ISO date" in capsys.readouterr().err

    def test_init_and_seed(self, cli, capsys):
        assert cli("init-db") == 0
        assert cli("seed-chart") == 0

        out = capsys.readouterr().out
        assert "Tables created." in out
        assert f"Seeded {len(get_default_config().chart)} account(s)" in out

    def test_seed_twice_keeps_existing(self, cli, capsys):
        cli("init-db")
        cli("seed-chart")
        capsys.readouterr()

        assert cli("seed-chart") == 0
        assert "Seeded 0 account(s)" in capsys.readouterr().out

    def test_list_years(self, ledger_db, capsys):
        capsys.readouterr()

        assert ledger_db("list-years") == 0
        out = capsys.readouterr().out
        assert "* FY2025" in out
        assert "OPEN" in out

    def test_empty_trial_balance_is_balanced(self, ledger_db, capsys):
        capsys.readouterr()

        assert ledger_db("trial-balance") == 0
        out = capsys.readouterr().out
        assert "TRIAL BALANCE" in out
        assert "Balanced." in out

    def test_close_and_open_next_year(self, ledger_db, make_booking, capsys):
        with session_scope() as session:
            AccountingService(session, get_default_config()).create_and_post_booking_entries(
                make_booking()
            )

        assert ledger_db("trial-balance") == 0
        assert "1,050.00" in capsys.readouterr().out

        assert ledger_db("close-year", "--code", "FY2025") == 0
        out = capsys.readouterr().out
        assert "Closed FY2025." in out
        assert "200.00" in out

        assert ledger_db(
            "open-year", "--code", "FY2026", "--name", "Fiscal Year 2026",
            "--start", "2026-01-01", "--end", "2026-12-31", "--based-on", "FY2025",
        ) == 0
        assert "balances carried forward" in capsys.readouterr().out

    def test_close_twice_reports_error_code(self, ledger_db, capsys):
        ledger_db("close-year", "--code", "FY2025")
        capsys.readouterr()

        assert ledger_db("close-year", "--code", "FY2025") == 1
        assert "FISCAL_YEAR_ALREADY_CLOSED" in capsys.readouterr().err

    def test_unknown_year(self, ledger_db, capsys):
        assert ledger_db("close-year", "--code", "FY1999") == 1
        assert "unknown fiscal year FY1999" in capsys.readouterr().err

    def test_overlapping_year_rejected(self, ledger_db, capsys):
        code = ledger_db(
            "open-year", "--code", "FY2025B", "--name", "Overlap",
            "--start", "2025-06-01", "--end", "2026-05-31",
        )

        assert code == 1
        assert "FISCAL_YEAR_OVERLAP" in capsys.readouterr().err
