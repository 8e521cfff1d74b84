"""API dependencies for reservation sessions and the catalog."""

from typing import Annotated

from fastapi import Depends

from venservice.config import settings
from venservice.schemas.reservation import ReservationResponse, SeatMapResponse
from venservice.services.catalog_service import RouteCatalog
from venservice.services.reservation_service import (
    ReservationSession,
    ReservationSessionRegistry,
    get_registry,
)


def get_reservation_registry() -> ReservationSessionRegistry:
    """Get the process-wide session registry."""
    return get_registry()


def get_catalog(
    registry: Annotated[ReservationSessionRegistry, Depends(get_reservation_registry)],
) -> RouteCatalog:
    """Get the catalog the sessions resolve ids against."""
    return registry.catalog


def get_reservation_session(
    session_id: str,
    registry: Annotated[ReservationSessionRegistry, Depends(get_reservation_registry)],
) -> ReservationSession:
    """Get a live session or raise NotFoundError."""
    return registry.get(session_id)


def build_reservation_response(session: ReservationSession) -> ReservationResponse:
    """Snapshot, seat map and price of a session."""
    seat_map = session.seat_map
    return ReservationResponse(
        session_id=session.session_id,
        state=session.state,
        seat_map=SeatMapResponse(
            schedule_id=seat_map.schedule_id,
            seats=list(seat_map.seats),
            available_count=seat_map.available_count,
        ),
        price=session.price,
        currency=settings.currency,
        hold_expires_at=session.hold_expires_at,
    )


RegistryDep = Annotated[ReservationSessionRegistry, Depends(get_reservation_registry)]
CatalogDep = Annotated[RouteCatalog, Depends(get_catalog)]
SessionDep = Annotated[ReservationSession, Depends(get_reservation_session)]
