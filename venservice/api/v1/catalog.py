"""Catalog endpoints for route and departure discovery."""

from fastapi import APIRouter

from venservice.api.deps import CatalogDep
from venservice.core.exceptions import NotFoundError
from venservice.domain.seat_map import SeatMap
from venservice.schemas.catalog import Route, Schedule
from venservice.schemas.reservation import SeatMapResponse

router = APIRouter()


@router.get("/routes", response_model=list[Route])
async def list_routes(catalog: CatalogDep) -> list[Route]:
    """List bookable routes."""
    return await catalog.list_routes()


@router.get("/routes/{route_id}", response_model=Route)
async def get_route(route_id: str, catalog: CatalogDep) -> Route:
    """Get a route by ID."""
    route = await catalog.get_route(route_id)
    if not route:
        raise NotFoundError("Route", route_id)
    return route


@router.get("/routes/{route_id}/schedules", response_model=list[Schedule])
async def list_schedules(route_id: str, catalog: CatalogDep) -> list[Schedule]:
    """List departures of a route, earliest first."""
    if not await catalog.get_route(route_id):
        raise NotFoundError("Route", route_id)
    return await catalog.list_schedules(route_id)


@router.get("/schedules/{schedule_id}/seats", response_model=SeatMapResponse)
async def get_seat_layout(schedule_id: str, catalog: CatalogDep) -> SeatMapResponse:
    """Seat layout of a departure as published by the catalog."""
    if not await catalog.get_schedule(schedule_id):
        raise NotFoundError("Schedule", schedule_id)

    seat_map = SeatMap.from_catalog(schedule_id, await catalog.list_seats(schedule_id))
    return SeatMapResponse(
        schedule_id=schedule_id,
        seats=list(seat_map.seats),
        available_count=seat_map.available_count,
    )
