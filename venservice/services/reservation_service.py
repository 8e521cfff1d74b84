"""Reservation sessions.

A session is one client's reservation machine plus the seat map of the
departure it is looking at. The registry hosts sessions in the API process,
serializes operations on a session with its lock, and sweeps expired seat
holds and idle sessions.
"""

import asyncio
import logging
from collections.abc import Callable
from datetime import UTC, date, datetime, timedelta

from venservice.config import settings
from venservice.core.exceptions import NotFoundError
from venservice.domain.pricing import FeePolicy, price_draft
from venservice.domain.reservation_state import (
    Cancel,
    Confirm,
    DeselectSeat,
    ExpireHolds,
    GoTo,
    Next,
    Prev,
    RefreshCatalog,
    ReservationEvent,
    ReservationMachine,
    Reset,
    SelectRoute,
    SelectSchedule,
    SelectSeat,
    SetDates,
    SetPassenger,
    SetPayment,
    SubmitFailed,
    SubmitStarted,
    SubmitSucceeded,
)
from venservice.domain.seat_map import SeatMap
from venservice.gateways.base import SubmissionGateway, SubmissionResult
from venservice.schemas.catalog import SeatStatus
from venservice.schemas.reservation import (
    DateRange,
    PassengerDetails,
    PriceBreakdown,
    ReservationState,
    ReservationStep,
)
from venservice.services.catalog_service import RouteCatalog, get_catalog
from venservice.services.draft_storage import DraftStorage, get_draft_storage
from venservice.services.gateway_service import gateway_service
from venservice.utils.booking_number import generate_session_id, make_confirmation_id_factory

logger = logging.getLogger(__name__)

SUBMISSION_FAILED_MESSAGE = "We could not confirm your booking. Please try again."
SUBMISSION_INTERRUPTED_MESSAGE = "Confirmation was interrupted. Please try again."


def _is_open(seat_map: SeatMap, seat_id: str) -> bool:
    seat = seat_map.get(seat_id)
    return seat is not None and seat.status == SeatStatus.AVAILABLE


class ReservationSession:
    """One client's reservation flow."""

    def __init__(
        self,
        session_id: str,
        catalog: RouteCatalog,
        gateway: SubmissionGateway,
        storage: DraftStorage | None = None,
        clock: Callable[[], datetime] | None = None,
        id_factory: Callable[[], str] | None = None,
        fee_policy: FeePolicy = FeePolicy.CARD_ONLY,
        hold_duration: timedelta | None = None,
    ) -> None:
        self.session_id = session_id
        self.catalog = catalog
        self.gateway = gateway
        self.lock = asyncio.Lock()
        self._clock = clock or (lambda: datetime.now(UTC))
        self.machine = ReservationMachine(
            storage=storage,
            id_factory=id_factory
            or make_confirmation_id_factory(prefix=settings.confirmation_prefix, clock=self._clock),
            clock=self._clock,
            fee_policy=fee_policy,
            hold_duration=hold_duration or timedelta(minutes=settings.seat_hold_minutes),
        )
        self.seat_map = SeatMap()
        self.last_activity = self._clock()

    @property
    def state(self) -> ReservationState:
        return self.machine.state

    @property
    def price(self) -> PriceBreakdown:
        return price_draft(self.state.draft, self.machine.fee_policy)

    @property
    def hold_expires_at(self) -> datetime | None:
        """When the oldest seat hold lapses, if any seat is held."""
        holds = self.state.draft.seat_holds
        if not holds:
            return None
        return min(holds.values()) + self.machine.hold_duration

    def dispatch(self, event: ReservationEvent) -> ReservationState:
        """Forward an event to the machine and keep the seat map in step."""
        self.last_activity = self._clock()
        state = self.machine.dispatch(event)
        self._sync_seat_map()
        return state

    def _sync_seat_map(self) -> None:
        draft = self.state.draft
        schedule = draft.selected_schedule
        if schedule is None or self.seat_map.schedule_id != schedule.id:
            if schedule is None:
                self.seat_map = SeatMap()
            return

        stale = [sid for sid in self.seat_map.selected_ids if sid not in draft.seat_ids]
        seat_map = self.seat_map.release(stale)
        for seat_id in draft.seat_ids:
            if seat_id not in seat_map.selected_ids:
                seat_map = seat_map.toggle(seat_id, draft.seat_holds.get(seat_id, self._clock()))
        self.seat_map = seat_map

    async def load_seat_map(self) -> None:
        """Fetch the layout of the selected departure from the catalog."""
        schedule = self.state.draft.selected_schedule
        if schedule is None:
            self.seat_map = SeatMap()
            return
        if self.seat_map.schedule_id == schedule.id:
            return
        seats = await self.catalog.list_seats(schedule.id)
        self.seat_map = SeatMap.from_catalog(schedule.id, seats)
        self._sync_seat_map()

    async def refresh_from_catalog(self) -> ReservationState:
        """Re-check a restored draft against the catalog.

        The route and departure are replaced by the catalog's current
        records, so the fare is repriced, and seats booked elsewhere since the
        draft was saved are dropped.
        """
        draft = self.state.draft
        if draft.selected_route is None:
            return self.state

        route = await self.catalog.get_route(draft.selected_route.id)
        schedule = None
        unavailable: tuple[str, ...] = ()
        if route is not None and draft.selected_schedule is not None:
            schedule = await self.catalog.get_schedule(draft.selected_schedule.id)
            if schedule is not None:
                seat_map = SeatMap.from_catalog(schedule.id, await self.catalog.list_seats(schedule.id))
                unavailable = tuple(sid for sid in draft.seat_ids if not _is_open(seat_map, sid))
                self.seat_map = seat_map

        state = self.dispatch(RefreshCatalog(route=route, schedule=schedule, unavailable_seat_ids=unavailable))
        await self.load_seat_map()
        return state

    # ---------- selection ----------

    async def select_route(self, route_id: str) -> ReservationState:
        route = await self.catalog.get_route(route_id)
        if route is None:
            raise NotFoundError("Route", route_id)
        return self.dispatch(SelectRoute(route))

    async def select_schedule(self, schedule_id: str) -> ReservationState:
        schedule = await self.catalog.get_schedule(schedule_id)
        if schedule is None:
            raise NotFoundError("Schedule", schedule_id)
        state = self.dispatch(SelectSchedule(schedule))
        await self.load_seat_map()
        return state

    def select_seat(self, seat_id: str) -> ReservationState:
        """Select a seat from the current seat map.

        Unknown seats are ignored like protected ones.
        """
        seat = self.seat_map.get(seat_id)
        if seat is None:
            return self.state
        return self.dispatch(SelectSeat(seat))

    def deselect_seat(self, seat_id: str) -> ReservationState:
        return self.dispatch(DeselectSeat(seat_id))

    def toggle_seat(self, seat_id: str) -> ReservationState:
        if seat_id in self.state.draft.seat_ids:
            return self.deselect_seat(seat_id)
        return self.select_seat(seat_id)

    def set_dates(self, start_date: date, end_date: date) -> ReservationState:
        return self.dispatch(SetDates(DateRange(start_date=start_date, end_date=end_date)))

    def set_passenger(self, passenger: PassengerDetails) -> ReservationState:
        return self.dispatch(SetPassenger(passenger))

    def set_payment(self, method: str, fields: dict | None = None) -> ReservationState:
        return self.dispatch(SetPayment(method=method, fields=fields or {}))

    # ---------- navigation ----------

    def next(self) -> ReservationState:
        return self.dispatch(Next())

    def prev(self) -> ReservationState:
        return self.dispatch(Prev())

    def goto(self, step: ReservationStep) -> ReservationState:
        return self.dispatch(GoTo(step))

    def confirm(self) -> ReservationState:
        return self.dispatch(Confirm())

    def cancel(self) -> ReservationState:
        return self.dispatch(Cancel())

    def reset(self) -> ReservationState:
        return self.dispatch(Reset())

    def expire_holds(self, now: datetime | None = None) -> list[str]:
        """Release lapsed seat holds.

        Returns:
            list: Released seat ids
        """
        now = now or self._clock()
        self.seat_map, released = self.seat_map.expire_holds(now, self.machine.hold_duration)
        before = set(self.state.draft.seat_ids)
        state = self.machine.dispatch(ExpireHolds(now))
        self._sync_seat_map()
        return sorted(set(released) | (before - set(state.draft.seat_ids)))

    # ---------- submission ----------

    async def submit(self) -> ReservationState:
        """Send the finished draft to the submission gateway.

        The lock is released while the gateway call is in flight so that
        concurrent events are answered (and refused) instead of queued.
        """
        async with self.lock:
            already_submitting = self.state.is_submitting
            state = self.dispatch(SubmitStarted())
            if already_submitting or not state.is_submitting:
                return state
            draft = state.draft

        try:
            result = await self.gateway.submit(draft)
        except asyncio.CancelledError:
            self.dispatch(SubmitFailed(SUBMISSION_INTERRUPTED_MESSAGE))
            raise
        except Exception as e:
            logger.error(f"Submission gateway error for session {self.session_id}: {e}")
            result = SubmissionResult(success=False, error_message=SUBMISSION_FAILED_MESSAGE)

        async with self.lock:
            if result.success and result.confirmation_id:
                return self.dispatch(SubmitSucceeded(result.confirmation_id))
            return self.dispatch(SubmitFailed(result.error_message or SUBMISSION_FAILED_MESSAGE))


class ReservationSessionRegistry:
    """In-process home of reservation sessions."""

    def __init__(
        self,
        catalog: RouteCatalog | None = None,
        gateway: SubmissionGateway | None = None,
        storage_factory: Callable[[str], DraftStorage] | None = None,
        clock: Callable[[], datetime] | None = None,
        fee_policy: FeePolicy | None = None,
        hold_duration: timedelta | None = None,
        idle_timeout: timedelta | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self.catalog = catalog or get_catalog()
        self.gateway = gateway or gateway_service.gateway
        self.storage_factory = storage_factory or get_draft_storage
        self._clock = clock or (lambda: datetime.now(UTC))
        self.fee_policy = fee_policy or FeePolicy(settings.fee_policy)
        self.hold_duration = hold_duration or timedelta(minutes=settings.seat_hold_minutes)
        self.idle_timeout = idle_timeout or timedelta(minutes=settings.session_idle_minutes)
        # One factory for every session so confirmation numbers never repeat across sessions.
        self.id_factory = id_factory or make_confirmation_id_factory(
            prefix=settings.confirmation_prefix, clock=self._clock
        )
        self._sessions: dict[str, ReservationSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    async def create(self, session_id: str | None = None) -> ReservationSession:
        """Start a session, resuming the stored draft of ``session_id`` if any.

        An id that is already live returns that session.
        """
        if session_id and session_id in self._sessions:
            return self._sessions[session_id]

        session_id = session_id or generate_session_id()
        session = ReservationSession(
            session_id=session_id,
            catalog=self.catalog,
            gateway=self.gateway,
            storage=self.storage_factory(session_id),
            clock=self._clock,
            id_factory=self.id_factory,
            fee_policy=self.fee_policy,
            hold_duration=self.hold_duration,
        )
        await session.refresh_from_catalog()
        self._sessions[session_id] = session
        logger.info(f"Reservation session {session_id} started at step {session.state.step.value}")
        return session

    def get(self, session_id: str) -> ReservationSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise NotFoundError("Reservation session", session_id)
        return session

    async def discard(self, session_id: str) -> ReservationState:
        """Reset a session (clearing its stored draft) and forget it.

        A session with a submission in flight is kept; the refused snapshot is
        returned and the client may discard it once the submission settles.
        """
        session = self.get(session_id)
        async with session.lock:
            state = session.reset()
        if state.is_submitting:
            return state
        self._sessions.pop(session_id, None)
        logger.info(f"Reservation session {session_id} discarded")
        return state

    async def expire_holds(self, now: datetime | None = None) -> int:
        """Release lapsed holds in every session.

        Returns:
            int: Number of seats released
        """
        now = now or self._clock()
        released = 0
        for session in list(self._sessions.values()):
            async with session.lock:
                released += len(session.expire_holds(now))
        return released

    def discard_idle(self, now: datetime | None = None) -> int:
        """Forget sessions with no activity within the idle timeout.

        Stored drafts are left to their TTL so the client can still resume.
        """
        cutoff = (now or self._clock()) - self.idle_timeout
        idle = [
            sid
            for sid, session in self._sessions.items()
            if session.last_activity <= cutoff and not session.state.is_submitting
        ]
        for sid in idle:
            self._sessions.pop(sid, None)
        if idle:
            logger.info(f"Dropped {len(idle)} idle reservation session(s)")
        return len(idle)

    async def close(self) -> None:
        await self.catalog.close()
        await self.gateway.close()


_registry: ReservationSessionRegistry | None = None


def get_registry() -> ReservationSessionRegistry:
    """Process-wide registry, built on first use."""
    global _registry
    if _registry is None:
        _registry = ReservationSessionRegistry()
    return _registry
