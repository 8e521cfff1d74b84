"""Seat selection store for one departure.

Only available <-> selected changes locally. Booked and disabled seats come
from the catalog and are never touched; asking to toggle them (or an unknown
seat) returns the same map unchanged.
"""

from datetime import datetime, timedelta

from pydantic import BaseModel, ConfigDict, Field

from venservice.schemas.catalog import Seat, SeatStatus

SEAT_TRANSITIONS = {
    SeatStatus.AVAILABLE: SeatStatus.SELECTED,
    SeatStatus.SELECTED: SeatStatus.AVAILABLE,
}


class SeatMap(BaseModel):
    """Immutable seat layout plus the seats held by this session."""

    model_config = ConfigDict(frozen=True)

    schedule_id: str | None = None
    seats: tuple[Seat, ...] = ()
    holds: dict[str, datetime] = Field(default_factory=dict)

    @classmethod
    def from_catalog(cls, schedule_id: str, seats: list[Seat]) -> "SeatMap":
        """Build a map from catalog seats.

        A catalog never hands out ``selected``; such seats start available.
        """
        normalized = tuple(
            seat.model_copy(update={"status": SeatStatus.AVAILABLE})
            if seat.status == SeatStatus.SELECTED
            else seat
            for seat in seats
        )
        return cls(schedule_id=schedule_id, seats=normalized)

    def get(self, seat_id: str) -> Seat | None:
        for seat in self.seats:
            if seat.id == seat_id:
                return seat
        return None

    @property
    def selected_ids(self) -> list[str]:
        return [seat.id for seat in self.seats if seat.status == SeatStatus.SELECTED]

    @property
    def available_count(self) -> int:
        return sum(1 for seat in self.seats if seat.status == SeatStatus.AVAILABLE)

    def toggle(self, seat_id: str, now: datetime) -> "SeatMap":
        """Flip a seat between available and selected.

        Args:
            seat_id: Seat to toggle
            now: Hold start for a newly selected seat

        Returns:
            SeatMap: New map, or this map when the seat is protected or unknown
        """
        seat = self.get(seat_id)
        if seat is None or seat.status not in SEAT_TRANSITIONS:
            return self

        target = SEAT_TRANSITIONS[seat.status]
        holds = dict(self.holds)
        if target == SeatStatus.SELECTED:
            holds[seat_id] = now
        else:
            holds.pop(seat_id, None)

        return self._with_status({seat_id: target}, holds)

    def release(self, seat_ids: list[str]) -> "SeatMap":
        """Return held seats to available."""
        held = [sid for sid in seat_ids if sid in self.selected_ids]
        if not held:
            return self
        holds = {sid: at for sid, at in self.holds.items() if sid not in held}
        return self._with_status({sid: SeatStatus.AVAILABLE for sid in held}, holds)

    def expired_holds(self, now: datetime, hold_duration: timedelta) -> list[str]:
        """Seats whose hold started at or before ``now - hold_duration``."""
        cutoff = now - hold_duration
        return [sid for sid, held_at in self.holds.items() if held_at <= cutoff]

    def expire_holds(self, now: datetime, hold_duration: timedelta) -> tuple["SeatMap", list[str]]:
        """Release stale holds.

        Returns:
            tuple: (new map, released seat ids)
        """
        expired = self.expired_holds(now, hold_duration)
        return self.release(expired), expired

    def _with_status(self, updates: dict[str, SeatStatus], holds: dict[str, datetime]) -> "SeatMap":
        seats = tuple(
            seat.model_copy(update={"status": updates[seat.id]}) if seat.id in updates else seat
            for seat in self.seats
        )
        return self.model_copy(update={"seats": seats, "holds": holds})
