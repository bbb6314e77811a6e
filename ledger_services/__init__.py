"""
Outer orchestration: business events in, posted journal entries out.

    from ledger_services import AccountingService, BookingRecord
"""

from ledger_services.accounting_service import SYSTEM_ACTOR_ID, AccountingService
from ledger_services.outcomes import OutcomeStatus, PostingOutcome
from ledger_services.records import (
    BookingRecord,
    CommissionRole,
    CruiseDetails,
    FlightDetails,
    GeneralDetails,
    HotelDetails,
    InvoiceRecord,
    PaymentMethod,
    ReceiptRecord,
    ServiceDetails,
    ServiceType,
    SupplierCost,
    TransferDetails,
    VisaDetails,
    parse_service_details,
)

__all__ = [
    "SYSTEM_ACTOR_ID",
    "AccountingService",
    "BookingRecord",
    "CommissionRole",
    "CruiseDetails",
    "FlightDetails",
    "GeneralDetails",
    "HotelDetails",
    "InvoiceRecord",
    "OutcomeStatus",
    "PaymentMethod",
    "PostingOutcome",
    "ReceiptRecord",
    "ServiceDetails",
    "ServiceType",
    "SupplierCost",
    "TransferDetails",
    "VisaDetails",
    "parse_service_details",
]
