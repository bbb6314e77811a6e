"""
Tests for the locked sequence counter.

Entry and booking numbers come from a counter row that is locked,
incremented and written in one step, never from reading the last row.
"""

from datetime import date

from ledger_kernel.models.sequence import SequenceCounter
from ledger_kernel.services.sequence_service import SequenceService


class TestSequenceService:

    def test_first_value_is_one(self, sequence_service):
        assert sequence_service.next_value("test_seq") == 1

    def test_values_strictly_increase(self, sequence_service):
        values = [sequence_service.next_value("test_seq") for _ in range(5)]
        assert values == [1, 2, 3, 4, 5]

    def test_sequences_are_independent(self, sequence_service):
        sequence_service.next_value("a")
        sequence_service.next_value("a")
        assert sequence_service.next_value("b") == 1
        assert sequence_service.current_value("a") == 2

    def test_current_value_of_unknown_sequence(self, sequence_service):
        assert sequence_service.current_value("never_used") is None

    def test_counter_row_persisted(self, session, sequence_service):
        sequence_service.next_value("persisted")
        sequence_service.next_value("persisted")

        counter = session.query(SequenceCounter).filter_by(name="persisted").one()
        assert counter.current_value == 2

    def test_two_services_share_counter(self, session):
        first = SequenceService(session)
        second = SequenceService(session)

        assert first.next_value("shared") == 1
        assert second.next_value("shared") == 2
        assert first.next_value("shared") == 3


class TestNumberFormats:

    def test_entry_numbers(self, sequence_service):
        assert sequence_service.next_entry_number() == "JE-000001"
        assert sequence_service.next_entry_number() == "JE-000002"

    def test_booking_numbers_restart_each_year(self, sequence_service):
        assert sequence_service.next_booking_number(2025) == "BKG-2025-000001"
        assert sequence_service.next_booking_number(2025) == "BKG-2025-000002"
        assert sequence_service.next_booking_number(2026) == "BKG-2026-000001"

    def test_accounting_service_booking_number(self, accounting):
        assert accounting.next_booking_number(date(2025, 7, 1)) == "BKG-2025-000001"
        assert accounting.next_booking_number(date(2025, 8, 1)) == "BKG-2025-000002"

    def test_entry_numbers_follow_postings(self, poster, fiscal_year_2025, post_entry):
        first = post_entry("1121", "4110", "10.00")
        second = post_entry("1121", "4110", "20.00")

        assert first.entry_number == "JE-000001"
        assert second.entry_number == "JE-000002"
