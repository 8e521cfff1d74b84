"""Shared fixtures: a controllable clock and a small catalog."""

from datetime import UTC, datetime, timedelta

import pytest

from venservice.domain.reservation_state import ReservationMachine
from venservice.schemas.catalog import Route, Schedule, Seat, SeatStatus
from venservice.schemas.reservation import PassengerDetails
from venservice.services.draft_storage import InMemoryDraftStorage

FIXED_NOW = datetime(2026, 3, 10, 9, 0, tzinfo=UTC)

VALID_CARD = {
    "card_number": "4532 0151 1283 0366",
    "card_holder": "Ayesha Khan",
    "expiry": "12/30",
    "cvv": "123",
}


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = FIXED_NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def route() -> Route:
    return Route(
        id="khi-isb",
        name="Karachi to Islamabad",
        origin="Karachi",
        destination="Islamabad",
        base_price=1000,
    )


@pytest.fixture
def schedule(route) -> Schedule:
    return Schedule(
        id="khi-isb-0800",
        route_id=route.id,
        departure_at=FIXED_NOW + timedelta(days=1),
        arrival_at=FIXED_NOW + timedelta(days=1, hours=18),
        total_seats=20,
        booked_seats=2,
    )


@pytest.fixture
def seats() -> list[Seat]:
    return [
        Seat(id="A-1", label="A-1", status=SeatStatus.BOOKED),
        Seat(id="A-2", label="A-2"),
        Seat(id="A-3", label="A-3"),
        Seat(id="A-4", label="A-4"),
        Seat(id="B-1", label="B-1", status=SeatStatus.DISABLED),
    ]


@pytest.fixture
def passenger() -> PassengerDetails:
    return PassengerDetails(
        first_name="Ayesha",
        last_name="Khan",
        email="ayesha.khan@example.com",
        phone="03001234567",
    )


@pytest.fixture
def storage() -> InMemoryDraftStorage:
    return InMemoryDraftStorage()


@pytest.fixture
def machine(storage, clock) -> ReservationMachine:
    return ReservationMachine(storage=storage, clock=clock)
