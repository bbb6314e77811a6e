"""
Input records consumed by the accounting service.

These are the financial projections of the back office's bookings,
invoices and receipts.  Validation of the raw documents happens upstream;
the ledger only needs the figures and references below.

Booking service details form a tagged union keyed by ServiceType.  Each
variant renders a one-line ``summary()`` used in journal descriptions.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping, Union

from ledger_engines.financials import BookingStatus

NOT_SPECIFIED = "Not specified"


class ServiceType(str, Enum):
    FLIGHT = "FLIGHT"
    HOTEL = "HOTEL"
    VISA = "VISA"
    TRANSFER = "TRANSFER"
    RENTAL_CAR = "RENTAL_CAR"
    CRUISE = "CRUISE"
    PACKAGE = "PACKAGE"
    TRAIN = "TRAIN"
    ACTIVITY = "ACTIVITY"
    UMRAH = "UMRAH"
    OTHER = "OTHER"


class PaymentMethod(str, Enum):
    CASH = "CASH"
    BANK = "BANK"
    CARD = "CARD"
    CHEQUE = "CHEQUE"


class CommissionRole(str, Enum):
    AGENT = "AGENT"
    CS = "CS"


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _or_default(*parts: str, sep: str = " ") -> str:
    text = sep.join(part for part in parts if part)
    return text or NOT_SPECIFIED


# ---------------------------------------------------------------------------
# Service details
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FlightDetails:
    airline: str = ""
    flight_number: str = ""
    departure_city: str = ""
    arrival_city: str = ""

    def summary(self) -> str:
        carrier = _or_default(self.airline, self.flight_number)
        if self.departure_city or self.arrival_city:
            route = f"{self.departure_city or '?'} -> {self.arrival_city or '?'}"
            return f"{carrier}, {route}" if carrier != NOT_SPECIFIED else route
        return carrier


@dataclass(frozen=True)
class HotelDetails:
    hotel_name: str = ""
    check_in: date | None = None
    check_out: date | None = None

    @property
    def nights(self) -> int | None:
        if self.check_in is None or self.check_out is None:
            return None
        return (self.check_out - self.check_in).days

    def summary(self) -> str:
        name = _or_default(self.hotel_name)
        if self.check_in and self.check_out:
            return f"{name}, {self.check_in.isoformat()} to {self.check_out.isoformat()}"
        return name


@dataclass(frozen=True)
class VisaDetails:
    country: str = ""
    visa_type: str = ""

    def summary(self) -> str:
        kind = f"{self.visa_type} visa" if self.visa_type else ""
        return _or_default(kind, self.country, sep=", ")


@dataclass(frozen=True)
class TransferDetails:
    origin: str = ""
    destination: str = ""
    route: str = ""

    def summary(self) -> str:
        if self.origin or self.destination:
            return f"{self.origin or '?'} -> {self.destination or '?'}"
        return _or_default(self.route)


@dataclass(frozen=True)
class CruiseDetails:
    cruise_name: str = ""
    ship_name: str = ""

    def summary(self) -> str:
        return _or_default(self.cruise_name, self.ship_name, sep=" aboard ")


@dataclass(frozen=True)
class GeneralDetails:
    """Details of RENTAL_CAR, PACKAGE, TRAIN, ACTIVITY, UMRAH and OTHER services."""

    description: str = ""

    def summary(self) -> str:
        return _or_default(self.description)


ServiceDetails = Union[
    FlightDetails,
    HotelDetails,
    VisaDetails,
    TransferDetails,
    CruiseDetails,
    GeneralDetails,
]


def _parse_date(value: Any) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def parse_service_details(
    service_type: ServiceType | str, payload: Mapping[str, Any] | None
) -> ServiceDetails:
    """
    Build the details variant of ``service_type`` from a raw mapping.

    Unknown keys are ignored and missing keys are empty.  camelCase keys as
    sent by the back office are accepted alongside snake_case ones.

    Raises:
        ValueError: ``service_type`` is not a ServiceType, or a date field
            is not an ISO date.
    """
    kind = ServiceType(getattr(service_type, "value", service_type))
    data = dict(payload or {})

    def get(*keys: str) -> Any:
        for key in keys:
            if data.get(key) not in (None, ""):
                return data[key]
        return None

    if kind == ServiceType.FLIGHT:
        return FlightDetails(
            airline=_text(get("airline")),
            flight_number=_text(get("flight_number", "flightNumber")),
            departure_city=_text(get("departure_city", "departureCity", "from")),
            arrival_city=_text(get("arrival_city", "arrivalCity", "to")),
        )
    if kind == ServiceType.HOTEL:
        return HotelDetails(
            hotel_name=_text(get("hotel_name", "hotelName")),
            check_in=_parse_date(get("check_in", "checkIn")),
            check_out=_parse_date(get("check_out", "checkOut")),
        )
    if kind == ServiceType.VISA:
        return VisaDetails(
            country=_text(get("country")),
            visa_type=_text(get("visa_type", "visaType")),
        )
    if kind == ServiceType.TRANSFER:
        return TransferDetails(
            origin=_text(get("origin", "from")),
            destination=_text(get("destination", "to")),
            route=_text(get("route")),
        )
    if kind == ServiceType.CRUISE:
        return CruiseDetails(
            cruise_name=_text(get("cruise_name", "cruiseName")),
            ship_name=_text(get("ship_name", "shipName")),
        )
    return GeneralDetails(description=_text(get("description", "details")))


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SupplierCost:
    """One supplier's share of a booking's cost, already in AED."""

    supplier_name: str
    cost_in_aed: Decimal
    supplier_id: str | None = None


@dataclass(frozen=True)
class BookingRecord:
    """Financial projection of one booking."""

    booking_id: str
    booking_number: str
    booking_date: date
    service_type: ServiceType
    customer_name: str
    cost_amount: Decimal
    cost_currency: str
    sale_amount: Decimal
    sale_currency: str
    cost_in_aed: Decimal
    sale_in_aed: Decimal
    is_uae_booking: bool = True
    vat_applicable: bool = True
    vat_rate: Decimal | None = None
    agent_commission_rate: Decimal = Decimal("0")
    cs_commission_rate: Decimal = Decimal("0")
    status: BookingStatus = BookingStatus.CONFIRMED
    details: ServiceDetails = field(default_factory=GeneralDetails)
    suppliers: tuple[SupplierCost, ...] = ()

    @property
    def reference(self) -> str:
        return self.booking_number


@dataclass(frozen=True)
class InvoiceRecord:
    """A customer invoice raised for a booking."""

    invoice_id: str
    invoice_number: str
    invoice_date: date
    booking_id: str
    service_type: ServiceType
    subtotal: Decimal
    vat_amount: Decimal
    is_uae_booking: bool = True
    customer_name: str = ""

    @property
    def total(self) -> Decimal:
        return self.subtotal + self.vat_amount


@dataclass(frozen=True)
class ReceiptRecord:
    """Money received against an invoice."""

    receipt_id: str
    receipt_number: str
    receipt_date: date
    amount: Decimal
    currency: str = "AED"
    payment_method: PaymentMethod = PaymentMethod.CASH
    invoice_id: str | None = None
    booking_id: str | None = None
    customer_name: str = ""
