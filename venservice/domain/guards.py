"""Step-completion guards.

Each guard returns None when the draft may leave its step, or an error map
that the machine merges into ``validation_errors`` as-is.
"""

from collections.abc import Callable
from datetime import datetime

from venservice.domain.payment_validation import revalidate_payment
from venservice.schemas.reservation import PassengerDetails, ReservationDraft, ReservationStep
from venservice.utils.validators import validate_cnic, validate_email, validate_pakistani_phone

ValidationErrors = dict[str, str]
Guard = Callable[[ReservationDraft, datetime], ValidationErrors | None]


def validate_passenger(passenger: PassengerDetails) -> ValidationErrors:
    """Check passenger contact details.

    Returns:
        dict: field -> message, empty when valid
    """
    errors: ValidationErrors = {}

    first_name = passenger.first_name.strip()
    if not first_name:
        errors["first_name"] = "First name is required."
    elif len(first_name) < 2:
        errors["first_name"] = "First name must be at least 2 characters."

    last_name = passenger.last_name.strip()
    if not last_name:
        errors["last_name"] = "Last name is required."
    elif len(last_name) < 2:
        errors["last_name"] = "Last name must be at least 2 characters."

    if not passenger.email.strip():
        errors["email"] = "Email address is required."
    elif not validate_email(passenger.email):
        errors["email"] = "Enter a valid email address."

    if not passenger.phone.strip():
        errors["phone"] = "Phone number is required."
    elif not validate_pakistani_phone(passenger.phone):
        errors["phone"] = "Enter a valid Pakistani phone number (e.g. 03001234567)."

    if passenger.cnic and not validate_cnic(passenger.cnic):
        errors["cnic"] = "CNIC format: 12345-1234567-1"

    return errors


def guard_route(draft: ReservationDraft, now: datetime) -> ValidationErrors | None:
    if draft.selected_route is None:
        return {"route": "Please select a route to continue."}
    return None


def guard_schedule(draft: ReservationDraft, now: datetime) -> ValidationErrors | None:
    if draft.selected_schedule is None:
        return {"schedule": "Please select a departure to continue."}

    if draft.date_range is not None:
        if draft.date_range.days < 1:
            return {"dates": "Rental must be at least 1 day."}
        if draft.date_range.start_date < now.date():
            return {"dates": "Start date cannot be in the past."}
        return None

    if not draft.selected_seats:
        return {"seats": "Please select at least one seat."}
    return None


def guard_passenger(draft: ReservationDraft, now: datetime) -> ValidationErrors | None:
    if draft.passenger is None:
        return {"passenger": "Please enter passenger details."}
    return validate_passenger(draft.passenger) or None


def guard_payment(draft: ReservationDraft, now: datetime) -> ValidationErrors | None:
    if draft.payment is None:
        return {"payment": "Please enter payment details."}
    result = revalidate_payment(draft.payment, now)
    return None if result.success else result.errors


STEP_GUARDS: dict[ReservationStep, Guard] = {
    ReservationStep.SELECTING_ROUTE: guard_route,
    ReservationStep.SELECTING_DATETIME: guard_schedule,
    ReservationStep.PASSENGER_DETAILS: guard_passenger,
    ReservationStep.PAYMENT: guard_payment,
}


def can_leave_step(step: ReservationStep, draft: ReservationDraft, now: datetime) -> ValidationErrors | None:
    """Run the guard for ``step``; steps without a guard always pass."""
    guard = STEP_GUARDS.get(step)
    return guard(draft, now) if guard else None
