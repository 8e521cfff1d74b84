"""Pydantic schemas for reservation records and API validation."""

from venservice.schemas.catalog import Route, Schedule, Seat, SeatStatus, VehicleType
from venservice.schemas.payment import (
    BankTransferPayment,
    CardPayment,
    CashPayment,
    MobileWalletPayment,
    PaymentDetails,
    PaymentMethod,
)
from venservice.schemas.reservation import (
    DateRange,
    PassengerDetails,
    PriceBreakdown,
    ReservationCreateRequest,
    ReservationDraft,
    ReservationEventRequest,
    ReservationResponse,
    ReservationState,
    ReservationStep,
    SeatMapResponse,
)

__all__ = [
    # Catalog
    "Route",
    "Schedule",
    "Seat",
    "SeatStatus",
    "VehicleType",
    # Payment
    "BankTransferPayment",
    "CardPayment",
    "CashPayment",
    "MobileWalletPayment",
    "PaymentDetails",
    "PaymentMethod",
    # Reservation
    "DateRange",
    "PassengerDetails",
    "PriceBreakdown",
    "ReservationDraft",
    "ReservationState",
    "ReservationStep",
    # API
    "ReservationCreateRequest",
    "ReservationEventRequest",
    "ReservationResponse",
    "SeatMapResponse",
]
