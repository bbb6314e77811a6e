"""
Tests for AccountingService posting rules.

Covers:
- Booking entries: cost, revenue, VAT and commissions with their accounts
- Supplier cost split, UAE and non-UAE VAT
- Duplicate and refunded bookings are skipped
- Missing chart accounts skip the entry with a warning
- Invoice, receipt and refund entries
- Kernel rejections surface as FAILED outcomes
"""

from dataclasses import replace
from datetime import date
from decimal import Decimal

import pytest

from ledger_engines.financials import BookingStatus
from ledger_services.accounting_service import AccountingService
from ledger_services.outcomes import OutcomeStatus
from ledger_services.records import (
    CommissionRole,
    GeneralDetails,
    InvoiceRecord,
    PaymentMethod,
    ReceiptRecord,
    ServiceType,
    SupplierCost,
)


def _statuses(outcomes):
    return [(outcome.transaction_type, outcome.status) for outcome in outcomes]


def _succeeded(outcomes):
    return {o.transaction_type: o for o in outcomes if o.is_success}


class TestBookingEntries:

    def test_uae_booking(self, accounting, make_booking, chart, fiscal_year_2025):
        outcomes = accounting.create_and_post_booking_entries(make_booking())

        assert _statuses(outcomes) == [
            ("BOOKING_COST", OutcomeStatus.SUCCEEDED),
            ("BOOKING_REVENUE", OutcomeStatus.SUCCEEDED),
            ("BOOKING_VAT_UAE", OutcomeStatus.SUCCEEDED),
            ("COMMISSION_AGENT", OutcomeStatus.SKIPPED),
            ("COMMISSION_CS", OutcomeStatus.SKIPPED),
        ]
        posted = _succeeded(outcomes)
        assert posted["BOOKING_COST"].amount == Decimal("800.00")
        assert posted["BOOKING_REVENUE"].amount == Decimal("1000.00")
        assert posted["BOOKING_VAT_UAE"].amount == Decimal("50.00")

        assert chart["5110"].balance == Decimal("800")
        assert chart["2111"].balance == Decimal("800")
        assert chart["4110"].balance == Decimal("1000")
        assert chart["2121"].balance == Decimal("50")
        assert chart["1121"].balance == Decimal("1050")

    def test_entries_carry_booking_links(self, accounting, make_booking, fiscal_year_2025):
        booking = make_booking()
        accounting.create_and_post_booking_entries(booking)

        entries = accounting.ledger.entries_for_booking(booking.booking_id)
        assert len(entries) == 3
        assert all(entry.reference == booking.booking_number for entry in entries)
        assert all(entry.is_posted for entry in entries)
        revenue = next(e for e in entries if e.transaction_type == "BOOKING_REVENUE")
        assert "Layla Haddad" in revenue.description
        assert "Emirates EK202" in revenue.description

    def test_non_uae_booking_with_commissions(
        self, accounting, make_booking, chart, fiscal_year_2025
    ):
        booking = make_booking(
            sale_amount=Decimal("1500"),
            sale_in_aed=Decimal("1500"),
            cost_amount=Decimal("500"),
            cost_in_aed=Decimal("500"),
            is_uae_booking=False,
            agent_commission_rate=Decimal("12"),
            cs_commission_rate=Decimal("8"),
        )

        outcomes = accounting.create_and_post_booking_entries(booking)

        posted = _succeeded(outcomes)
        assert sorted(posted) == [
            "BOOKING_COST",
            "BOOKING_REVENUE",
            "BOOKING_VAT_NON_UAE",
            "COMMISSION_AGENT",
            "COMMISSION_CS",
        ]
        assert posted["BOOKING_REVENUE"].amount == Decimal("1500.00")
        assert posted["BOOKING_VAT_NON_UAE"].amount == Decimal("40.00")
        assert posted["COMMISSION_AGENT"].amount == Decimal("120.00")
        assert posted["COMMISSION_CS"].amount == Decimal("80.00")
        assert chart["6120"].balance == Decimal("200")
        assert chart["2132"].balance == Decimal("200")

    def test_vat_not_applicable(self, accounting, make_booking, fiscal_year_2025):
        outcomes = accounting.create_and_post_booking_entries(
            make_booking(vat_applicable=False)
        )

        posted = _succeeded(outcomes)
        assert posted["BOOKING_REVENUE"].amount == Decimal("1050.00")
        assert "BOOKING_VAT_UAE" not in posted

    def test_supplier_costs_posted_separately(
        self, accounting, make_booking, chart, fiscal_year_2025
    ):
        booking = make_booking(
            suppliers=(
                SupplierCost(supplier_name="Emirates", cost_in_aed=Decimal("500")),
                SupplierCost(supplier_name="Marriott", cost_in_aed=Decimal("300")),
            )
        )

        outcomes = accounting.create_and_post_booking_entries(booking)

        costs = [o for o in outcomes if o.transaction_type == "BOOKING_COST"]
        assert [o.amount for o in costs] == [Decimal("500.00"), Decimal("300.00")]
        assert "Marriott" in costs[1].entry.description
        assert chart["5110"].balance == Decimal("800")

    def test_hotel_booking_uses_hotel_accounts(
        self, accounting, make_booking, chart, fiscal_year_2025
    ):
        accounting.create_and_post_booking_entries(
            make_booking(service_type=ServiceType.HOTEL, details=GeneralDetails())
        )

        assert chart["4120"].balance == Decimal("1000")
        assert chart["5120"].balance == Decimal("800")
        assert chart["4110"].balance == Decimal("0")

    def test_refunded_booking_skipped(self, accounting, make_booking, fiscal_year_2025):
        outcomes = accounting.create_and_post_booking_entries(
            make_booking(status=BookingStatus.REFUNDED)
        )

        assert len(outcomes) == 1
        assert outcomes[0].is_skipped
        assert "refund" in outcomes[0].reason

    def test_duplicate_booking_skipped(self, accounting, make_booking, chart, fiscal_year_2025):
        booking = make_booking()
        accounting.create_and_post_booking_entries(booking)

        outcomes = accounting.create_and_post_booking_entries(booking)

        assert len(outcomes) == 1
        assert outcomes[0].is_skipped
        assert chart["4110"].balance == Decimal("1000")

    def test_missing_account_skips_entry(
        self, session, ledger_config, deterministic_clock, test_actor_id,
        make_booking, chart, fiscal_year_2025, captured_logs,
    ):
        config = replace(
            ledger_config, mapping=replace(ledger_config.mapping, fallback_revenue="9999")
        )
        accounting = AccountingService(
            session, config, clock=deterministic_clock, actor_id=test_actor_id
        )

        outcomes = accounting.create_and_post_booking_entries(
            make_booking(service_type=ServiceType.OTHER, details=GeneralDetails("Insurance"))
        )

        by_type = {o.transaction_type: o for o in outcomes}
        assert by_type["BOOKING_COST"].is_success
        assert by_type["BOOKING_REVENUE"].is_skipped
        assert by_type["BOOKING_REVENUE"].reason == "account not found: 9999"
        assert by_type["BOOKING_VAT_UAE"].is_success
        assert chart["5180"].balance == Decimal("800")

        warnings = [
            r for r in captured_logs() if r["message"] == "posting_skipped_missing_account"
        ]
        assert len(warnings) == 1
        assert warnings[0]["missing_codes"] == ["9999"]

    def test_closed_year_reports_failures(
        self, accounting, fiscal_year_service, make_booking, chart, fiscal_year_2025,
        captured_logs,
    ):
        fy2024 = fiscal_year_service.create(
            name="Fiscal Year 2024",
            code="FY2024",
            start_date=date(2024, 1, 1),
            end_date=date(2024, 12, 31),
        )
        fiscal_year_service.close(fy2024.id)

        outcomes = accounting.create_and_post_booking_entries(
            make_booking(booking_date=date(2024, 6, 1))
        )

        failed = [o for o in outcomes if o.is_failure]
        assert [o.transaction_type for o in failed] == [
            "BOOKING_COST",
            "BOOKING_REVENUE",
            "BOOKING_VAT_UAE",
        ]
        assert failed[0].amount == Decimal("800.00")
        assert chart["5110"].balance == Decimal("0")
        errors = [r for r in captured_logs() if r["message"] == "posting_failed"]
        assert {r["error_code"] for r in errors} == {"FISCAL_YEAR_CLOSED"}

    def test_booking_context_logged(
        self, accounting, make_booking, fiscal_year_2025, captured_logs
    ):
        booking = make_booking()
        accounting.create_and_post_booking_entries(booking)

        posted = [r for r in captured_logs() if r["message"] == "journal_entry_posted"]
        assert len(posted) == 3
        assert all(r["booking_id"] == booking.booking_id for r in posted)

        summary = [r for r in captured_logs() if r["message"] == "booking_entries_processed"]
        assert summary[0]["succeeded"] == 3
        assert summary[0]["skipped"] == 2


class TestCommissionEntries:

    def test_single_role(self, accounting, make_booking, chart, fiscal_year_2025):
        booking = make_booking(agent_commission_rate=Decimal("10"))

        outcome = accounting.create_and_post_commission_entry(booking, CommissionRole.AGENT)

        assert outcome.is_success
        assert outcome.amount == Decimal("25.00")
        assert chart["6120"].balance == Decimal("25")

    def test_role_given_as_string(self, accounting, make_booking, fiscal_year_2025):
        booking = make_booking(cs_commission_rate=Decimal("4"))

        outcome = accounting.create_and_post_commission_entry(booking, "CS")

        assert outcome.transaction_type == "COMMISSION_CS"
        assert outcome.amount == Decimal("10.00")

    def test_commission_posted_once(self, accounting, make_booking, fiscal_year_2025):
        booking = make_booking(agent_commission_rate=Decimal("10"))
        accounting.create_and_post_commission_entry(booking, CommissionRole.AGENT)

        again = accounting.create_and_post_commission_entry(booking, CommissionRole.AGENT)
        assert again.is_skipped


class TestInvoiceEntries:

    @pytest.fixture
    def invoice(self):
        return InvoiceRecord(
            invoice_id="inv-1",
            invoice_number="INV-2025-000001",
            invoice_date=date(2025, 3, 12),
            booking_id="legacy-booking",
            service_type=ServiceType.VISA,
            subtotal=Decimal("400.00"),
            vat_amount=Decimal("20.00"),
            customer_name="Omar Said",
        )

    def test_invoice_posts_revenue_and_vat(self, accounting, invoice, chart, fiscal_year_2025):
        outcomes = accounting.create_and_post_invoice_entries(invoice)

        assert _statuses(outcomes) == [
            ("INVOICE_REVENUE", OutcomeStatus.SUCCEEDED),
            ("INVOICE_VAT_UAE", OutcomeStatus.SUCCEEDED),
        ]
        assert chart["4130"].balance == Decimal("400")
        assert chart["2121"].balance == Decimal("20")
        assert chart["1121"].balance == invoice.total

    def test_non_uae_invoice_vat_type(self, accounting, invoice, fiscal_year_2025):
        outcomes = accounting.create_and_post_invoice_entries(
            replace(invoice, is_uae_booking=False)
        )
        assert outcomes[1].transaction_type == "INVOICE_VAT_NON_UAE"

    def test_revenue_already_recognised_at_booking(
        self, accounting, make_booking, invoice, chart, fiscal_year_2025
    ):
        booking = make_booking()
        accounting.create_and_post_booking_entries(booking)

        outcomes = accounting.create_and_post_invoice_entries(
            replace(invoice, booking_id=booking.booking_id)
        )

        assert len(outcomes) == 1
        assert outcomes[0].is_skipped
        assert chart["1121"].balance == Decimal("1050")

    def test_duplicate_invoice_skipped(self, accounting, invoice, chart, fiscal_year_2025):
        accounting.create_and_post_invoice_entries(invoice)

        outcomes = accounting.create_and_post_invoice_entries(invoice)

        assert outcomes[0].is_skipped
        assert chart["4130"].balance == Decimal("400")


class TestReceiptEntries:

    def _receipt(self, **overrides):
        fields = dict(
            receipt_id="rcpt-1",
            receipt_number="RCT-2025-000001",
            receipt_date=date(2025, 3, 20),
            amount=Decimal("500.00"),
            currency="AED",
            payment_method=PaymentMethod.CASH,
            invoice_id="inv-1",
        )
        fields.update(overrides)
        return ReceiptRecord(**fields)

    @pytest.mark.parametrize(
        "method,currency,account_code",
        [
            (PaymentMethod.CASH, "AED", "1111"),
            (PaymentMethod.CASH, "USD", "1111"),
            (PaymentMethod.BANK, "USD", "1115"),
            (PaymentMethod.BANK, "AED", "1114"),
            (PaymentMethod.CARD, "AED", "1114"),
            (PaymentMethod.CHEQUE, "EUR", "1114"),
        ],
    )
    def test_debit_account_by_method(
        self, accounting, chart, fiscal_year_2025, method, currency, account_code
    ):
        outcome = accounting.create_and_post_receipt_entry(
            self._receipt(payment_method=method, currency=currency)
        )

        assert outcome.is_success
        assert outcome.entry.debit_account_id == chart[account_code].id
        assert outcome.entry.credit_account_id == chart["1121"].id

    def test_foreign_currency_converted_to_aed(self, accounting, chart, fiscal_year_2025):
        outcome = accounting.create_and_post_receipt_entry(
            self._receipt(amount=Decimal("100"), currency="usd", payment_method=PaymentMethod.BANK)
        )

        assert outcome.amount == Decimal("367.00")
        assert chart["1115"].balance == Decimal("367")
        assert outcome.entry.receipt_id == "rcpt-1"
        assert outcome.entry.invoice_id == "inv-1"

    def test_duplicate_receipt_skipped(self, accounting, chart, fiscal_year_2025):
        accounting.create_and_post_receipt_entry(self._receipt())

        outcome = accounting.create_and_post_receipt_entry(self._receipt())

        assert outcome.is_skipped
        assert chart["1111"].balance == Decimal("500")


class TestRefundEntries:

    def test_refund_reverses_posted_totals(
        self, accounting, make_booking, chart, fiscal_year_2025
    ):
        booking = make_booking(agent_commission_rate=Decimal("10"))
        accounting.create_and_post_booking_entries(booking)

        outcomes = accounting.create_and_post_refund_entries(
            booking, refund_date=date(2025, 4, 1)
        )

        assert _statuses(outcomes) == [
            ("REFUND_COST", OutcomeStatus.SUCCEEDED),
            ("REFUND_REVENUE", OutcomeStatus.SUCCEEDED),
            ("REFUND_VAT", OutcomeStatus.SUCCEEDED),
            ("REFUND_COMMISSION_AGENT", OutcomeStatus.SUCCEEDED),
            ("REFUND_COMMISSION_CS", OutcomeStatus.SKIPPED),
        ]
        for code in ("1121", "2111", "2121", "2132", "4110", "5110", "6120"):
            assert chart[code].balance == Decimal("0"), code

    def test_original_entries_untouched(self, accounting, make_booking, fiscal_year_2025):
        booking = make_booking()
        accounting.create_and_post_booking_entries(booking)
        before = accounting.ledger.entries_for_booking(booking.booking_id)

        accounting.create_and_post_refund_entries(booking, refund_date=date(2025, 4, 1))

        after = accounting.ledger.entries_for_booking(booking.booking_id)
        assert after[: len(before)] == before
        assert len(after) == len(before) + 3

    def test_refund_posted_once(self, accounting, make_booking, chart, fiscal_year_2025):
        booking = make_booking()
        accounting.create_and_post_booking_entries(booking)
        accounting.create_and_post_refund_entries(booking, refund_date=date(2025, 4, 1))

        outcomes = accounting.create_and_post_refund_entries(
            booking, refund_date=date(2025, 4, 2)
        )

        assert len(outcomes) == 1
        assert outcomes[0].is_skipped
        assert chart["4110"].balance == Decimal("0")

    def test_nothing_to_refund(self, accounting, make_booking, fiscal_year_2025):
        outcomes = accounting.create_and_post_refund_entries(make_booking())

        assert len(outcomes) == 1
        assert outcomes[0].reason == "nothing posted for booking"
