"""
Tests for the trial balance and account tree reports.
"""

from datetime import date
from decimal import Decimal

from ledger_kernel.selectors.ledger_selector import TrialBalanceRow


class TestTrialBalance:

    def test_empty_ledger_is_balanced(self, ledger_selector, chart):
        report = ledger_selector.trial_balance()

        assert report.rows == ()
        assert report.is_balanced
        assert report.findings == ()

    def test_balanced_after_postings(self, ledger_selector, post_entry, fiscal_year_2025):
        post_entry("1121", "4110", "1050.00")
        post_entry("5110", "2111", "800.00")
        post_entry("1111", "1121", "1050.00")

        report = ledger_selector.trial_balance()

        assert report.is_balanced
        assert report.difference == Decimal("0")
        assert report.total_debits == Decimal("2900")
        assert report.findings == ()

    def test_rows_ordered_by_code(self, ledger_selector, post_entry, fiscal_year_2025):
        post_entry("5110", "2111", "10.00")
        post_entry("1121", "4110", "20.00")

        codes = [row.account_code for row in ledger_selector.trial_balance().rows]
        assert codes == sorted(codes)
        assert codes == ["1121", "2111", "4110", "5110"]

    def test_row_totals(self, ledger_selector, post_entry, fiscal_year_2025):
        post_entry("1121", "4110", "300.00")
        post_entry("1111", "1121", "120.00")

        rows = {row.account_code: row for row in ledger_selector.trial_balance().rows}
        receivable = rows["1121"]
        assert receivable.debit_total == Decimal("300")
        assert receivable.credit_total == Decimal("120")
        assert receivable.net == Decimal("180")
        assert receivable.account_type == "asset"

    def test_date_range(self, ledger_selector, post_entry, fiscal_year_2025):
        post_entry("1121", "4110", "100.00", entry_date=date(2025, 1, 15))
        post_entry("1121", "4120", "200.00", entry_date=date(2025, 2, 15))
        post_entry("1121", "4130", "400.00", entry_date=date(2025, 3, 15))

        report = ledger_selector.trial_balance(date(2025, 2, 1), date(2025, 2, 28))

        assert report.total_debits == Decimal("200")
        assert [row.account_code for row in report.rows] == ["1121", "4120"]
        assert report.is_balanced

    def test_drafts_excluded(self, ledger_selector, poster, chart, fiscal_year_2025):
        poster.create(
            description="Draft",
            entry_date=date(2025, 5, 1),
            debit_account_id=chart["1121"].id,
            credit_account_id=chart["4110"].id,
            amount=Decimal("999"),
            transaction_type="MANUAL",
        )

        assert ledger_selector.trial_balance().rows == ()

    def test_stored_balance_drift_reported(
        self, session, ledger_selector, post_entry, chart, fiscal_year_2025, captured_logs
    ):
        post_entry("1121", "4110", "500.00")
        chart["1121"].debit_balance = chart["1121"].debit_balance + Decimal("5")
        session.flush()

        report = ledger_selector.trial_balance()

        assert report.is_balanced
        assert any("Account 1121" in finding for finding in report.findings)
        warnings = [
            r for r in captured_logs() if r["message"] == "trial_balance_out_of_balance"
        ]
        assert len(warnings) == 1
        assert warnings[0]["level"] == "WARNING"

    def test_row_net_property(self):
        row = TrialBalanceRow(
            account_id=None,
            account_code="2111",
            account_name="Suppliers",
            account_type="liability",
            debit_total=Decimal("40"),
            credit_total=Decimal("100"),
        )
        assert row.net == Decimal("-60")

    def test_accounting_service_facade(self, accounting, post_entry, fiscal_year_2025):
        post_entry("1121", "4110", "75.00")

        report = accounting.get_trial_balance()
        assert report.total_credits == Decimal("75")


class TestAccountTree:

    def test_rollup_through_hierarchy(self, ledger_selector, post_entry, fiscal_year_2025):
        post_entry("1111", "3100", "1000.00")
        post_entry("1114", "3100", "4000.00")
        post_entry("1121", "4110", "700.00")

        tree = {row.code: row for row in ledger_selector.account_tree_balances()}

        assert tree["1000"].depth == 0
        assert tree["1100"].depth == 1
        assert tree["1110"].depth == 2
        assert tree["1111"].depth == 3

        assert tree["1110"].rolled_up_balance == Decimal("5000")
        assert tree["1100"].rolled_up_balance == Decimal("5700")
        assert tree["1000"].rolled_up_balance == Decimal("5700")
        assert tree["3000"].rolled_up_balance == Decimal("5000")
        assert tree["4000"].rolled_up_balance == Decimal("700")

    def test_parents_hold_no_balance_of_their_own(
        self, ledger_selector, post_entry, fiscal_year_2025
    ):
        post_entry("1121", "4110", "700.00")

        tree = {row.code: row for row in ledger_selector.account_tree_balances()}
        assert tree["1120"].own_balance == Decimal("0")
        assert tree["1120"].rolled_up_balance == Decimal("700")
        assert tree["1121"].own_balance == Decimal("700")

    def test_ordered_by_code(self, ledger_selector, chart):
        codes = [row.code for row in ledger_selector.account_tree_balances()]
        assert codes == sorted(codes)
        assert len(codes) == len(chart)
