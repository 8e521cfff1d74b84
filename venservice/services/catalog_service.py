"""Route, schedule and seat catalog.

The catalog is read-only from the reservation side: it supplies routes with
their fares, departures with seat counts, and the seat layout of each
departure. Nothing here is cached.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import UTC, date, datetime, time, timedelta, timezone

import httpx
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from venservice.config import settings
from venservice.core.exceptions import ExternalServiceError
from venservice.schemas.catalog import Route, Schedule, Seat, SeatStatus, VehicleType

logger = logging.getLogger(__name__)

# Departure times are published in Pakistan Standard Time.
PKT = timezone(timedelta(hours=5), "PKT")

SEATS_PER_ROW = 4

# 5 rows x 4 seats; "disabled" seats are out of service on the demo van.
VAN_LAYOUT: list[SeatStatus] = [
    SeatStatus.BOOKED, SeatStatus.AVAILABLE, SeatStatus.AVAILABLE, SeatStatus.AVAILABLE,
    SeatStatus.AVAILABLE, SeatStatus.DISABLED, SeatStatus.AVAILABLE, SeatStatus.BOOKED,
    SeatStatus.AVAILABLE, SeatStatus.AVAILABLE, SeatStatus.BOOKED, SeatStatus.AVAILABLE,
    SeatStatus.AVAILABLE, SeatStatus.AVAILABLE, SeatStatus.AVAILABLE, SeatStatus.AVAILABLE,
    SeatStatus.BOOKED, SeatStatus.AVAILABLE, SeatStatus.AVAILABLE, SeatStatus.DISABLED,
]

# (id, origin, destination, fare PKR, departure, duration hours, distance km, seats left)
POPULAR_ROUTES = [
    ("khi-isb", "Karachi", "Islamabad", 3500, time(8, 0), 18, 1410, 7),
    ("lhr-pew", "Lahore", "Peshawar", 1800, time(10, 30), 5, 430, 3),
    ("isb-khi", "Islamabad", "Karachi", 3500, time(18, 0), 18, 1410, 12),
    ("pew-lhr", "Peshawar", "Lahore", 1800, time(7, 0), 5, 430, 0),
    ("mul-lhr", "Multan", "Lahore", 1200, time(9, 0), 4, 340, 9),
    ("qta-khi", "Quetta", "Karachi", 2200, time(23, 0), 10, 690, 5),
]

DEFAULT_AMENITIES = ("AC", "Reclining seats", "Mobile charging")

SCHEDULE_DAYS_AHEAD = 3


def seat_label(index: int) -> str:
    """Label for a 0-based seat index: row letter, then column (index 5 -> 'B-2')."""
    row = chr(ord("A") + index // SEATS_PER_ROW)
    return f"{row}-{index % SEATS_PER_ROW + 1}"


def build_seat_layout(schedule_id: str, seats_left: int) -> list[Seat]:
    """Build the van layout with exactly ``seats_left`` seats open.

    Open seats beyond ``seats_left`` are marked booked from the back row
    forwards.
    """
    statuses = list(VAN_LAYOUT)
    open_indexes = [i for i, status in enumerate(statuses) if status == SeatStatus.AVAILABLE]
    for index in reversed(open_indexes[max(seats_left, 0):]):
        statuses[index] = SeatStatus.BOOKED

    return [
        Seat(id=f"{schedule_id}:{seat_label(i)}", label=seat_label(i), status=status)
        for i, status in enumerate(statuses)
    ]


class RouteCatalog(ABC):
    """Read-only source of routes, departures and seat layouts."""

    @abstractmethod
    async def list_routes(self) -> list[Route]:
        pass

    @abstractmethod
    async def get_route(self, route_id: str) -> Route | None:
        pass

    @abstractmethod
    async def list_schedules(self, route_id: str) -> list[Schedule]:
        pass

    @abstractmethod
    async def get_schedule(self, schedule_id: str) -> Schedule | None:
        pass

    @abstractmethod
    async def list_seats(self, schedule_id: str) -> list[Seat]:
        """Seat layout of a departure; empty for an unknown departure."""
        pass

    async def close(self) -> None:
        return None


class InMemoryCatalog(RouteCatalog):
    """Catalog held in process memory.

    Without arguments it is seeded with the operator's popular routes and a
    daily departure for each of the next few days.
    """

    def __init__(
        self,
        routes: list[Route] | None = None,
        schedules: list[Schedule] | None = None,
        seats: dict[str, list[Seat]] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if routes is None:
            today = (clock() if clock else datetime.now(UTC)).astimezone(PKT).date()
            routes, schedules, seats = build_default_catalog(today)

        self._routes = {route.id: route for route in routes}
        self._schedules = {schedule.id: schedule for schedule in schedules or []}
        self._seats = dict(seats or {})

    async def list_routes(self) -> list[Route]:
        return list(self._routes.values())

    async def get_route(self, route_id: str) -> Route | None:
        return self._routes.get(route_id)

    async def list_schedules(self, route_id: str) -> list[Schedule]:
        schedules = [s for s in self._schedules.values() if s.route_id == route_id]
        return sorted(schedules, key=lambda s: s.departure_at)

    async def get_schedule(self, schedule_id: str) -> Schedule | None:
        return self._schedules.get(schedule_id)

    async def list_seats(self, schedule_id: str) -> list[Seat]:
        return list(self._seats.get(schedule_id, []))


def build_default_catalog(
    start: date,
    days: int = SCHEDULE_DAYS_AHEAD,
) -> tuple[list[Route], list[Schedule], dict[str, list[Seat]]]:
    """Seed data: popular routes with one departure per day.

    Args:
        start: First departure date (PKT)
        days: Number of daily departures per route

    Returns:
        tuple: (routes, schedules, seats keyed by schedule id)
    """
    routes: list[Route] = []
    schedules: list[Schedule] = []
    seats: dict[str, list[Seat]] = {}
    service_seats = sum(1 for status in VAN_LAYOUT if status != SeatStatus.DISABLED)

    for route_id, origin, destination, fare, departs, hours, km, seats_left in POPULAR_ROUTES:
        routes.append(
            Route(
                id=route_id,
                name=f"{origin} to {destination}",
                origin=origin,
                destination=destination,
                distance_km=km,
                duration_minutes=hours * 60,
                base_price=fare * 100,  # PKR -> paisa
                amenities=DEFAULT_AMENITIES,
                is_popular=True,
            )
        )

        for offset in range(days):
            day = start + timedelta(days=offset)
            departure_at = datetime.combine(day, departs, tzinfo=PKT)
            schedule_id = f"{route_id}-{day:%Y%m%d}-{departs:%H%M}"
            layout = build_seat_layout(schedule_id, seats_left)
            booked = sum(1 for seat in layout if seat.status == SeatStatus.BOOKED)
            schedules.append(
                Schedule(
                    id=schedule_id,
                    route_id=route_id,
                    departure_at=departure_at,
                    arrival_at=departure_at + timedelta(hours=hours),
                    total_seats=service_seats,
                    booked_seats=booked,
                    vehicle_type=VehicleType.VAN,
                )
            )
            seats[schedule_id] = layout

    return routes, schedules, seats


class HttpCatalog(RouteCatalog):
    """Catalog served by the operator's inventory API."""

    _routes_adapter = TypeAdapter(list[Route])
    _schedules_adapter = TypeAdapter(list[Schedule])
    _seats_adapter = TypeAdapter(list[Seat])

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = (base_url or settings.catalog_api_url).rstrip("/")
        self.timeout = timeout or settings.gateway_timeout_seconds
        self._http_client = client

    @property
    def http_client(self) -> httpx.AsyncClient:
        """Lazy-load HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.timeout)
        return self._http_client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()

    async def _get(self, path: str) -> httpx.Response:
        try:
            response = await self.http_client.get(f"{self.base_url}{path}")
        except httpx.HTTPError as e:
            logger.warning(f"Catalog request {path} failed: {e}")
            raise ExternalServiceError("catalog", "Could not load routes. Please try again.")

        if response.status_code != 404 and response.is_error:
            logger.warning(f"Catalog request {path} answered {response.status_code}")
            raise ExternalServiceError("catalog", f"Unexpected response ({response.status_code})")
        return response

    def _parse(self, adapter: TypeAdapter, response: httpx.Response, path: str):
        try:
            return adapter.validate_json(response.content)
        except PydanticValidationError as e:
            logger.error(f"Catalog returned malformed data for {path}: {e}")
            raise ExternalServiceError("catalog", "Malformed catalog data")

    async def list_routes(self) -> list[Route]:
        response = await self._get("/routes")
        if response.status_code == 404:
            return []
        return self._parse(self._routes_adapter, response, "/routes")

    async def get_route(self, route_id: str) -> Route | None:
        path = f"/routes/{route_id}"
        response = await self._get(path)
        if response.status_code == 404:
            return None
        return self._parse(TypeAdapter(Route), response, path)

    async def list_schedules(self, route_id: str) -> list[Schedule]:
        path = f"/routes/{route_id}/schedules"
        response = await self._get(path)
        if response.status_code == 404:
            return []
        return self._parse(self._schedules_adapter, response, path)

    async def get_schedule(self, schedule_id: str) -> Schedule | None:
        path = f"/schedules/{schedule_id}"
        response = await self._get(path)
        if response.status_code == 404:
            return None
        return self._parse(TypeAdapter(Schedule), response, path)

    async def list_seats(self, schedule_id: str) -> list[Seat]:
        path = f"/schedules/{schedule_id}/seats"
        response = await self._get(path)
        if response.status_code == 404:
            return []
        return self._parse(self._seats_adapter, response, path)


def get_catalog() -> RouteCatalog:
    """Build the configured catalog."""
    if settings.catalog_backend == "http":
        return HttpCatalog()
    return InMemoryCatalog()
