"""Reservation endpoints.

Every endpoint answers with the session's full snapshot. A transition the
machine refuses is still a 200; the reasons are in ``validation_errors``.
"""

from fastapi import APIRouter, Body, status

from venservice.api.deps import RegistryDep, SessionDep, build_reservation_response
from venservice.core.exceptions import ValidationError
from venservice.schemas.reservation import (
    ReservationCreateRequest,
    ReservationEventRequest,
    ReservationResponse,
    ReservationState,
)
from venservice.services.reservation_service import ReservationSession

router = APIRouter()

# Events that carry no payload.
SIMPLE_EVENTS = {
    "NEXT": ReservationSession.next,
    "PREV": ReservationSession.prev,
    "CONFIRM": ReservationSession.confirm,
    "CANCEL": ReservationSession.cancel,
    "RESET": ReservationSession.reset,
}


def _require(value, field: str, event_type: str):
    if value is None:
        raise ValidationError(
            detail=f"{field} is required for {event_type}",
            errors={field: "This field is required."},
        )
    return value


async def apply_event(session: ReservationSession, event: ReservationEventRequest) -> ReservationState:
    """Translate a client event into a session operation.

    Routes, schedules and seats are looked up by id; unknown route or
    schedule ids raise NotFoundError.
    """
    event_type = event.type

    if event_type in SIMPLE_EVENTS:
        return SIMPLE_EVENTS[event_type](session)
    if event_type == "SELECT_ROUTE":
        return await session.select_route(_require(event.route_id, "route_id", event_type))
    if event_type == "SELECT_SCHEDULE":
        return await session.select_schedule(_require(event.schedule_id, "schedule_id", event_type))
    if event_type == "SELECT_SEAT":
        return session.select_seat(_require(event.seat_id, "seat_id", event_type))
    if event_type == "DESELECT_SEAT":
        return session.deselect_seat(_require(event.seat_id, "seat_id", event_type))
    if event_type == "TOGGLE_SEAT":
        return session.toggle_seat(_require(event.seat_id, "seat_id", event_type))
    if event_type == "SET_DATES":
        return session.set_dates(
            _require(event.start_date, "start_date", event_type),
            _require(event.end_date, "end_date", event_type),
        )
    if event_type == "SET_PASSENGER":
        return session.set_passenger(_require(event.passenger, "passenger", event_type))
    if event_type == "SET_PAYMENT":
        return session.set_payment(event.method, event.fields)
    if event_type == "GOTO":
        return session.goto(_require(event.step, "step", event_type))

    raise ValidationError(detail=f"Unsupported event {event_type}")


@router.post("", response_model=ReservationResponse, status_code=status.HTTP_201_CREATED)
async def create_reservation(
    registry: RegistryDep,
    request: ReservationCreateRequest | None = Body(default=None),
) -> ReservationResponse:
    """Start a reservation session.

    Passing a previous ``session_id`` resumes its stored draft.
    """
    session = await registry.create(request.session_id if request else None)
    return build_reservation_response(session)


@router.get("/{session_id}", response_model=ReservationResponse)
async def get_reservation(session: SessionDep) -> ReservationResponse:
    """Get the current snapshot of a reservation session."""
    return build_reservation_response(session)


@router.post("/{session_id}/events", response_model=ReservationResponse)
async def post_event(session: SessionDep, event: ReservationEventRequest) -> ReservationResponse:
    """Apply one event to a reservation session."""
    async with session.lock:
        await apply_event(session, event)
    return build_reservation_response(session)


@router.post("/{session_id}/submit", response_model=ReservationResponse)
async def submit_reservation(session: SessionDep) -> ReservationResponse:
    """Submit the reservation to the booking backend.

    Failures leave the session on the payment step with ``submit_error``.
    """
    await session.submit()
    return build_reservation_response(session)


@router.delete("/{session_id}", response_model=ReservationResponse)
async def discard_reservation(session: SessionDep, registry: RegistryDep) -> ReservationResponse:
    """Reset the session, clear its stored draft and end it."""
    await registry.discard(session.session_id)
    return build_reservation_response(session)
