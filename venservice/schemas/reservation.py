"""Reservation draft, machine snapshot and API schemas."""

from datetime import date, datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field

from venservice.schemas.catalog import Route, Schedule, Seat
from venservice.schemas.payment import PaymentDetails, PaymentMethod


class ReservationStep(str, Enum):
    """Position of a reservation in the booking flow."""

    IDLE = "idle"
    SELECTING_ROUTE = "selecting-route"
    SELECTING_DATETIME = "selecting-datetime"
    PASSENGER_DETAILS = "passenger-details"
    PAYMENT = "payment"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class PassengerDetails(BaseModel):
    """Passenger contact details as entered; checked by the passenger guard."""

    model_config = ConfigDict(frozen=True)

    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    cnic: str | None = None


class DateRange(BaseModel):
    """Rental period used instead of discrete seats."""

    model_config = ConfigDict(frozen=True)

    start_date: date
    end_date: date

    @computed_field
    @property
    def days(self) -> int:
        """Number of rental days (never negative)."""
        return max((self.end_date - self.start_date).days, 0)


class PriceBreakdown(BaseModel):
    """Pricing computed from the route fare, unit count and payment method."""

    model_config = ConfigDict(frozen=True)

    subtotal: int
    fee: int
    total: int


class ReservationDraft(BaseModel):
    """The accumulating, partially filled reservation."""

    model_config = ConfigDict(frozen=True)

    selected_route: Route | None = None
    selected_schedule: Schedule | None = None
    selected_seats: tuple[Seat, ...] = ()
    seat_holds: dict[str, datetime] = Field(default_factory=dict)
    date_range: DateRange | None = None
    passenger: PassengerDetails | None = None
    payment: PaymentDetails | None = None
    total_amount: int = 0
    confirmation_id: str | None = None

    @property
    def seat_ids(self) -> list[str]:
        return [seat.id for seat in self.selected_seats]

    @property
    def unit_count(self) -> int:
        """Seats held, or rental days when a date range is used."""
        if self.date_range is not None:
            return self.date_range.days
        return len(self.selected_seats)

    @property
    def payment_method(self) -> PaymentMethod | None:
        if self.payment is None:
            return None
        return PaymentMethod(self.payment.method)


class ReservationState(BaseModel):
    """Immutable snapshot returned by every dispatch."""

    model_config = ConfigDict(frozen=True)

    step: ReservationStep = ReservationStep.IDLE
    draft: ReservationDraft = Field(default_factory=ReservationDraft)
    validation_errors: dict[str, str] = Field(default_factory=dict)
    is_submitting: bool = False
    submit_error: str | None = None


# ==================== API ====================


class ReservationEventRequest(BaseModel):
    """Event posted by a client.

    Routes, schedules and seats are referenced by id and resolved from the
    catalog; the client never supplies fares or seat states.
    """

    type: Literal[
        "SELECT_ROUTE",
        "SELECT_SCHEDULE",
        "SELECT_SEAT",
        "DESELECT_SEAT",
        "TOGGLE_SEAT",
        "SET_DATES",
        "SET_PASSENGER",
        "SET_PAYMENT",
        "NEXT",
        "PREV",
        "GOTO",
        "CONFIRM",
        "CANCEL",
        "RESET",
    ]
    route_id: str | None = None
    schedule_id: str | None = None
    seat_id: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    passenger: PassengerDetails | None = None
    method: str | None = None
    fields: dict[str, Any] = Field(default_factory=dict)
    step: ReservationStep | None = None


class ReservationCreateRequest(BaseModel):
    """Start a reservation, optionally resuming a previous session's draft."""

    session_id: str | None = Field(default=None, max_length=64)


class SeatMapResponse(BaseModel):
    """Seat layout for the selected departure."""

    schedule_id: str | None
    seats: list[Seat]
    available_count: int


class ReservationResponse(BaseModel):
    """Reservation session snapshot."""

    session_id: str
    state: ReservationState
    seat_map: SeatMapResponse
    price: PriceBreakdown
    currency: str
    hold_expires_at: datetime | None = None
