"""
Tests for booking, invoice and receipt input records.
"""

from datetime import date
from decimal import Decimal

import pytest

from ledger_services.records import (
    NOT_SPECIFIED,
    CruiseDetails,
    FlightDetails,
    GeneralDetails,
    HotelDetails,
    InvoiceRecord,
    ServiceType,
    TransferDetails,
    VisaDetails,
    parse_service_details,
)


class TestParseServiceDetails:

    def test_flight_snake_case(self):
        details = parse_service_details(
            ServiceType.FLIGHT,
            {
                "airline": "Emirates",
                "flight_number": "EK202",
                "departure_city": "Dubai",
                "arrival_city": "New York",
            },
        )

        assert details == FlightDetails("Emirates", "EK202", "Dubai", "New York")
        assert details.summary() == "Emirates EK202, Dubai -> New York"

    def test_flight_camel_case(self):
        details = parse_service_details(
            "FLIGHT",
            {"airline": "flydubai", "flightNumber": "FZ1", "departureCity": "Dubai", "arrivalCity": "Muscat"},
        )

        assert details.flight_number == "FZ1"
        assert details.arrival_city == "Muscat"

    def test_hotel_dates_parsed(self):
        details = parse_service_details(
            ServiceType.HOTEL,
            {"hotelName": "Atlantis", "checkIn": "2025-03-10T14:00:00", "checkOut": "2025-03-14"},
        )

        assert isinstance(details, HotelDetails)
        assert details.check_in == date(2025, 3, 10)
        assert details.nights == 4
        assert details.summary() == "Atlantis, 2025-03-10 to 2025-03-14"

    def test_hotel_invalid_date(self):
        with pytest.raises(ValueError):
            parse_service_details(ServiceType.HOTEL, {"check_in": "next tuesday"})

    def test_visa(self):
        details = parse_service_details(ServiceType.VISA, {"country": "UK", "visaType": "Tourist"})

        assert details == VisaDetails(country="UK", visa_type="Tourist")
        assert details.summary() == "Tourist visa, UK"

    def test_transfer_route_fallback(self):
        details = parse_service_details(ServiceType.TRANSFER, {"route": "Airport shuttle"})

        assert isinstance(details, TransferDetails)
        assert details.summary() == "Airport shuttle"

    def test_transfer_origin_destination(self):
        details = parse_service_details(ServiceType.TRANSFER, {"from": "DXB", "to": "Marina"})
        assert details.summary() == "DXB -> Marina"

    def test_cruise(self):
        details = parse_service_details(
            ServiceType.CRUISE, {"cruiseName": "Gulf Explorer", "shipName": "MSC World"}
        )

        assert isinstance(details, CruiseDetails)
        assert details.summary() == "Gulf Explorer aboard MSC World"

    @pytest.mark.parametrize(
        "service_type",
        [
            ServiceType.RENTAL_CAR,
            ServiceType.PACKAGE,
            ServiceType.TRAIN,
            ServiceType.ACTIVITY,
            ServiceType.UMRAH,
            ServiceType.OTHER,
        ],
    )
    def test_general_services(self, service_type):
        details = parse_service_details(service_type, {"description": "  Desert safari  "})

        assert details == GeneralDetails(description="Desert safari")

    def test_unknown_keys_ignored_and_missing_empty(self):
        details = parse_service_details(ServiceType.FLIGHT, {"seat": "12A"})

        assert details == FlightDetails()
        assert details.summary() == NOT_SPECIFIED

    def test_none_payload(self):
        assert parse_service_details(ServiceType.OTHER, None).summary() == NOT_SPECIFIED

    def test_unknown_service_type(self):
        with pytest.raises(ValueError):
            parse_service_details("SPACEFLIGHT", {})


class TestSummaries:

    def test_flight_route_without_carrier(self):
        assert FlightDetails(departure_city="Dubai").summary() == "Dubai -> ?"

    def test_hotel_without_dates(self):
        details = HotelDetails(hotel_name="Atlantis")

        assert details.nights is None
        assert details.summary() == "Atlantis"

    def test_visa_country_only(self):
        assert VisaDetails(country="Schengen").summary() == "Schengen"

    def test_cruise_name_only(self):
        assert CruiseDetails(cruise_name="Gulf Explorer").summary() == "Gulf Explorer"


class TestInvoiceRecord:

    def test_total(self):
        invoice = InvoiceRecord(
            invoice_id="inv-9",
            invoice_number="INV-2025-000009",
            invoice_date=date(2025, 5, 1),
            booking_id="b-9",
            service_type=ServiceType.HOTEL,
            subtotal=Decimal("1000.00"),
            vat_amount=Decimal("50.00"),
        )
        assert invoice.total == Decimal("1050.00")


class TestBookingRecord:

    def test_defaults(self, make_booking):
        booking = make_booking(agent_commission_rate=Decimal("0"))

        assert booking.status == "CONFIRMED"
        assert booking.vat_rate is None
        assert booking.suppliers == ()
        assert booking.reference == booking.booking_number
