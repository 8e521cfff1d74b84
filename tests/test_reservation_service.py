"""Tests for reservation sessions and the session registry."""

import asyncio
from datetime import timedelta

import pytest

from venservice.core.background_tasks import run_hold_sweep
from venservice.core.exceptions import NotFoundError
from venservice.domain.reservation_state import SUBMISSION_IN_PROGRESS
from venservice.gateways.base import SubmissionGateway, SubmissionResult
from venservice.gateways.mock import MockSubmissionGateway
from venservice.schemas.catalog import SeatStatus
from venservice.schemas.reservation import ReservationStep
from venservice.services.catalog_service import InMemoryCatalog
from venservice.services.draft_storage import InMemoryDraftStorage
from venservice.services.reservation_service import (
    SUBMISSION_FAILED_MESSAGE,
    ReservationSessionRegistry,
)

from conftest import VALID_CARD


class BlockingGateway(SubmissionGateway):
    """Holds every submission until released."""

    def __init__(self):
        self.release = asyncio.Event()

    @property
    def gateway_type(self):
        return "blocking"

    async def submit(self, draft):
        await self.release.wait()
        return SubmissionResult(success=True, confirmation_id="VEN-SLOW1")


class BrokenGateway(SubmissionGateway):
    @property
    def gateway_type(self):
        return "broken"

    async def submit(self, draft):
        raise RuntimeError("socket closed")


@pytest.fixture
def stores() -> dict[str, InMemoryDraftStorage]:
    return {}


def make_registry(clock, stores, gateway=None, catalog=None) -> ReservationSessionRegistry:
    return ReservationSessionRegistry(
        catalog=catalog or InMemoryCatalog(clock=clock),
        gateway=gateway or MockSubmissionGateway(delay_seconds=0),
        storage_factory=lambda sid: stores.setdefault(sid, InMemoryDraftStorage()),
        clock=clock,
        idle_timeout=timedelta(minutes=30),
    )


@pytest.fixture
def registry(clock, stores) -> ReservationSessionRegistry:
    return make_registry(clock, stores)


async def reach_payment(session, passenger, method="card", fields=VALID_CARD, seat_count=2):
    await session.select_route("khi-isb")
    schedule = (await session.catalog.list_schedules("khi-isb"))[0]
    await session.select_schedule(schedule.id)
    open_seats = [s for s in session.seat_map.seats if s.status == SeatStatus.AVAILABLE]
    for seat in open_seats[:seat_count]:
        session.toggle_seat(seat.id)
    session.set_passenger(passenger)
    return session.set_payment(method, fields)


async def test_create_and_get(registry):
    session = await registry.create()

    assert registry.get(session.session_id) is session
    assert session.state.step == ReservationStep.IDLE
    assert len(registry) == 1


async def test_unknown_session(registry):
    with pytest.raises(NotFoundError):
        registry.get("rs_missing")


async def test_unknown_route_and_schedule(registry):
    session = await registry.create()

    with pytest.raises(NotFoundError):
        await session.select_route("nowhere")
    await session.select_route("khi-isb")
    with pytest.raises(NotFoundError):
        await session.select_schedule("nowhere")


async def test_seat_map_follows_selection(registry, passenger):
    session = await registry.create()
    state = await reach_payment(session, passenger)

    assert state.step == ReservationStep.PAYMENT
    assert sorted(session.seat_map.selected_ids) == sorted(state.draft.seat_ids)
    assert session.price.total == 735000  # 2 x 3500 PKR + 5% card fee
    assert session.hold_expires_at == session._clock() + timedelta(minutes=5)

    seat_id = state.draft.seat_ids[0]
    session.toggle_seat(seat_id)
    assert seat_id not in session.seat_map.selected_ids
    assert session.seat_map.get(seat_id).status == SeatStatus.AVAILABLE


async def test_booked_and_unknown_seats_are_ignored(registry):
    session = await registry.create()
    await session.select_route("khi-isb")
    schedule = (await session.catalog.list_schedules("khi-isb"))[0]
    state = await session.select_schedule(schedule.id)
    booked = next(s for s in session.seat_map.seats if s.status == SeatStatus.BOOKED)

    assert session.select_seat(booked.id) is state
    assert session.select_seat("Z-9") is state


async def test_submit_success(registry, stores, passenger):
    session = await registry.create()
    await reach_payment(session, passenger)

    state = await session.submit()

    assert state.step == ReservationStep.CONFIRMED
    assert state.draft.confirmation_id.startswith("VEN-")
    assert stores[session.session_id].raw is None


async def test_submit_failure_stays_on_payment(clock, stores, passenger):
    registry = make_registry(clock, stores, MockSubmissionGateway(delay_seconds=0, fail_with="Bus cancelled"))
    session = await registry.create()
    await reach_payment(session, passenger)

    state = await session.submit()

    assert state.step == ReservationStep.PAYMENT
    assert state.submit_error == "Bus cancelled"
    assert not state.is_submitting


async def test_gateway_exception_becomes_failure(clock, stores, passenger):
    registry = make_registry(clock, stores, BrokenGateway())
    session = await registry.create()
    await reach_payment(session, passenger)

    state = await session.submit()

    assert state.submit_error == SUBMISSION_FAILED_MESSAGE


async def test_submit_refused_before_payment(registry):
    session = await registry.create()
    await session.select_route("khi-isb")

    state = await session.submit()

    assert state.step == ReservationStep.SELECTING_DATETIME
    assert not state.is_submitting


async def test_events_rejected_during_submission(clock, stores, passenger):
    gateway = BlockingGateway()
    registry = make_registry(clock, stores, gateway)
    session = await registry.create()
    await reach_payment(session, passenger)

    task = asyncio.create_task(session.submit())
    await asyncio.sleep(0)
    assert session.state.is_submitting

    assert session.cancel().validation_errors == SUBMISSION_IN_PROGRESS
    assert (await session.submit()).validation_errors == SUBMISSION_IN_PROGRESS

    gateway.release.set()
    state = await task
    assert state.step == ReservationStep.CONFIRMED
    assert state.draft.confirmation_id == "VEN-SLOW1"


async def test_hold_sweep_releases_seats(registry, clock, passenger):
    session = await registry.create()
    await reach_payment(session, passenger, method="cash", fields={})

    assert await run_hold_sweep(registry) == 0
    clock.advance(minutes=5)
    assert await run_hold_sweep(registry) == 2

    assert session.state.draft.selected_seats == ()
    assert session.seat_map.selected_ids == []
    assert session.state.step == ReservationStep.SELECTING_DATETIME
    assert session.hold_expires_at is None


async def test_resume_by_session_id(clock, stores, passenger):
    first = make_registry(clock, stores)
    session = await first.create()
    await reach_payment(session, passenger, method="cash", fields={})

    # A new process with the same draft store
    second = make_registry(clock, stores)
    resumed = await second.create(session.session_id)

    assert resumed.state.step == ReservationStep.PAYMENT
    assert resumed.state.draft.payment is None
    assert sorted(resumed.seat_map.selected_ids) == sorted(session.state.draft.seat_ids)


async def test_resume_drops_seats_booked_elsewhere(clock, stores, passenger):
    first = make_registry(clock, stores)
    session = await first.create()
    state = await reach_payment(session, passenger, method="cash", fields={})
    taken, kept = state.draft.seat_ids
    schedule_id = state.draft.selected_schedule.id

    # Another customer books one of the held seats and the fare changes.
    catalog = InMemoryCatalog(clock=clock)
    catalog._seats[schedule_id] = [
        seat.model_copy(update={"status": SeatStatus.BOOKED}) if seat.id == taken else seat
        for seat in catalog._seats[schedule_id]
    ]
    catalog._routes["khi-isb"] = catalog._routes["khi-isb"].model_copy(update={"base_price": 400000})

    resumed = await make_registry(clock, stores, catalog=catalog).create(session.session_id)

    assert resumed.state.draft.seat_ids == [kept]
    assert "seats" in resumed.state.validation_errors
    assert resumed.seat_map.get(taken).status == SeatStatus.BOOKED
    assert resumed.seat_map.selected_ids == [kept]
    assert resumed.state.draft.total_amount == 400000
    assert resumed.state.step == ReservationStep.PAYMENT
    assert stores[session.session_id].load().seat_ids == [kept]


async def test_resume_after_route_withdrawn(clock, stores, passenger):
    session = await make_registry(clock, stores).create()
    await reach_payment(session, passenger, method="cash", fields={})
    catalog = InMemoryCatalog(clock=clock)
    del catalog._routes["khi-isb"]

    resumed = await make_registry(clock, stores, catalog=catalog).create(session.session_id)

    assert resumed.state.step == ReservationStep.IDLE
    assert resumed.state.draft.selected_route is None
    assert "route" in resumed.state.validation_errors


async def test_confirmation_ids_are_unique_across_sessions(registry, passenger):
    first = await registry.create()
    second = await registry.create()
    await reach_payment(first, passenger)
    await reach_payment(second, passenger)

    # Same clock reading for both
    ids = {first.confirm().draft.confirmation_id, second.confirm().draft.confirmation_id}

    assert len(ids) == 2

async def test_create_with_live_id_returns_same_session(registry):
    session = await registry.create()

    assert await registry.create(session.session_id) is session


async def test_discard_resets_and_forgets(registry, stores, passenger):
    session = await registry.create()
    await reach_payment(session, passenger)

    state = await registry.discard(session.session_id)

    assert state.step == ReservationStep.IDLE
    assert stores[session.session_id].raw is None
    with pytest.raises(NotFoundError):
        registry.get(session.session_id)


async def test_idle_sessions_are_dropped(registry, clock):
    stale = await registry.create()
    clock.advance(minutes=20)
    fresh = await registry.create()
    clock.advance(minutes=10)

    assert registry.discard_idle() == 1
    assert registry.get(fresh.session_id) is fresh
    with pytest.raises(NotFoundError):
        registry.get(stale.session_id)


async def test_discard_waits_for_inflight_submission(clock, stores, passenger):
    gateway = BlockingGateway()
    registry = make_registry(clock, stores, gateway)
    session = await registry.create()
    await reach_payment(session, passenger)
    task = asyncio.create_task(session.submit())
    await asyncio.sleep(0)

    state = await registry.discard(session.session_id)

    assert state.validation_errors == SUBMISSION_IN_PROGRESS
    assert registry.get(session.session_id) is session
    assert stores[session.session_id].raw is not None

    gateway.release.set()
    assert (await task).step == ReservationStep.CONFIRMED
    assert stores[session.session_id].raw is None
    assert (await registry.discard(session.session_id)).step == ReservationStep.IDLE
