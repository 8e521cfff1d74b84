"""Route, schedule and seat records supplied by the catalog."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, computed_field


class SeatStatus(str, Enum):
    """Seat states. Only available <-> selected is changed locally."""

    AVAILABLE = "available"
    SELECTED = "selected"
    BOOKED = "booked"
    DISABLED = "disabled"


class VehicleType(str, Enum):
    """Vehicle classes operated on a route."""

    BUS = "bus"
    VAN = "van"
    PREMIER = "premier"


class Route(BaseModel):
    """Origin/destination pair with its base fare."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    origin: str
    destination: str
    distance_km: int = Field(default=0, ge=0)
    duration_minutes: int = Field(default=0, ge=0)
    base_price: int = Field(..., ge=0)  # paisa, per seat
    amenities: tuple[str, ...] = ()
    is_popular: bool = False


class Schedule(BaseModel):
    """A departure instance of a route."""

    model_config = ConfigDict(frozen=True)

    id: str
    route_id: str
    departure_at: datetime
    arrival_at: datetime
    total_seats: int = Field(..., ge=0)
    booked_seats: int = Field(default=0, ge=0)
    vehicle_type: VehicleType = VehicleType.VAN

    @computed_field
    @property
    def seats_left(self) -> int:
        """Seats not yet sold on this departure."""
        return max(self.total_seats - self.booked_seats, 0)


class Seat(BaseModel):
    """One seat on a departure."""

    model_config = ConfigDict(frozen=True)

    id: str
    label: str
    status: SeatStatus = SeatStatus.AVAILABLE
    price: int | None = None  # override from base fare, display only

    @property
    def is_locked(self) -> bool:
        """Booked or disabled seats are never mutated locally."""
        return self.status in (SeatStatus.BOOKED, SeatStatus.DISABLED)
