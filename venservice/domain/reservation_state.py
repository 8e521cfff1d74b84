"""Reservation state machine.

Drives one client through route, departure/seat, passenger and payment
steps to a confirmation. ``dispatch`` is the only entry point; it returns a
new immutable snapshot and never raises. A refused transition comes back as
a snapshot with ``validation_errors`` filled in and the step unchanged; an
event that makes no sense for the current step returns the snapshot as-is.
"""

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any, Union

from venservice.domain.guards import ValidationErrors, can_leave_step, validate_passenger
from venservice.domain.payment_validation import validate_payment_details
from venservice.domain.pricing import DEFAULT_FEE_POLICY, FeePolicy, price_draft
from venservice.schemas.catalog import Route, Schedule, Seat, SeatStatus
from venservice.schemas.payment import PaymentMethod
from venservice.schemas.reservation import (
    DateRange,
    PassengerDetails,
    ReservationDraft,
    ReservationState,
    ReservationStep,
)
from venservice.services.draft_storage import DraftStorage, NullDraftStorage
from venservice.utils.booking_number import make_confirmation_id_factory

logger = logging.getLogger(__name__)

STEP_ORDER = [
    ReservationStep.IDLE,
    ReservationStep.SELECTING_ROUTE,
    ReservationStep.SELECTING_DATETIME,
    ReservationStep.PASSENGER_DETAILS,
    ReservationStep.PAYMENT,
    ReservationStep.CONFIRMED,
]

TERMINAL_STEPS = {ReservationStep.CONFIRMED, ReservationStep.CANCELLED}

DEFAULT_HOLD_DURATION = timedelta(minutes=5)

SUBMISSION_IN_PROGRESS = {"submission": "A submission is already in progress. Please wait."}


def step_index(step: ReservationStep) -> int:
    """Position in STEP_ORDER; cancelled sits outside the order."""
    return STEP_ORDER.index(step) if step in STEP_ORDER else -1


# ==================== EVENTS ====================


@dataclass(frozen=True)
class SelectRoute:
    route: Route


@dataclass(frozen=True)
class SelectSchedule:
    schedule: Schedule


@dataclass(frozen=True)
class SelectSeat:
    seat: Seat


@dataclass(frozen=True)
class DeselectSeat:
    seat_id: str


@dataclass(frozen=True)
class SetDates:
    date_range: DateRange


@dataclass(frozen=True)
class SetPassenger:
    passenger: PassengerDetails


@dataclass(frozen=True)
class SetPayment:
    method: str | PaymentMethod
    fields: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Next:
    pass


@dataclass(frozen=True)
class Prev:
    pass


@dataclass(frozen=True)
class GoTo:
    step: ReservationStep


@dataclass(frozen=True)
class Confirm:
    pass


@dataclass(frozen=True)
class Cancel:
    pass


@dataclass(frozen=True)
class Reset:
    pass


@dataclass(frozen=True)
class ExpireHolds:
    """Release seats held longer than the hold duration."""

    now: datetime


@dataclass(frozen=True)
class RefreshCatalog:
    """Current catalog records for a restored draft.

    ``route`` or ``schedule`` is None when the catalog no longer has it.
    ``unavailable_seat_ids`` are held seats the catalog now shows as taken.
    """

    route: Route | None
    schedule: Schedule | None = None
    unavailable_seat_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class SubmitStarted:
    pass


@dataclass(frozen=True)
class SubmitSucceeded:
    confirmation_id: str


@dataclass(frozen=True)
class SubmitFailed:
    message: str


ReservationEvent = Union[
    SelectRoute,
    SelectSchedule,
    SelectSeat,
    DeselectSeat,
    SetDates,
    SetPassenger,
    SetPayment,
    Next,
    Prev,
    GoTo,
    Confirm,
    Cancel,
    Reset,
    ExpireHolds,
    RefreshCatalog,
    SubmitStarted,
    SubmitSucceeded,
    SubmitFailed,
]

# Only the settlement of an in-flight submission may change a submitting state.
SETTLEMENT_EVENTS = (SubmitSucceeded, SubmitFailed)


# ==================== MACHINE ====================


class ReservationMachine:
    """Guarded reservation flow for a single client."""

    def __init__(
        self,
        storage: DraftStorage | None = None,
        id_factory: Callable[[], str] | None = None,
        clock: Callable[[], datetime] | None = None,
        fee_policy: FeePolicy = DEFAULT_FEE_POLICY,
        hold_duration: timedelta = DEFAULT_HOLD_DURATION,
    ) -> None:
        self._storage = storage or NullDraftStorage()
        self._clock = clock or (lambda: datetime.now(UTC))
        self._id_factory = id_factory or make_confirmation_id_factory(clock=self._clock)
        self._fee_policy = fee_policy
        self._hold_duration = hold_duration
        self._state = self._rehydrate()

    @property
    def state(self) -> ReservationState:
        return self._state

    @property
    def fee_policy(self) -> FeePolicy:
        return self._fee_policy

    @property
    def hold_duration(self) -> timedelta:
        return self._hold_duration

    def dispatch(self, event: ReservationEvent) -> ReservationState:
        """Apply an event and return the resulting snapshot."""
        current = self._state
        handler = self._handlers.get(type(event))
        if handler is None:
            logger.warning(f"Ignoring unknown reservation event {type(event).__name__}")
            return current

        if current.is_submitting and not isinstance(event, SETTLEMENT_EVENTS):
            if isinstance(event, (ExpireHolds, RefreshCatalog)):
                return current
            new_state = self._reject(current, SUBMISSION_IN_PROGRESS)
        else:
            new_state = handler(self, current, event)

        # RESET and confirmation clear storage themselves.
        if (
            new_state.draft is not current.draft
            and new_state.step not in TERMINAL_STEPS
            and not isinstance(event, Reset)
        ):
            self._storage.save(new_state.draft)

        self._state = new_state
        return new_state

    # ---------- helpers ----------

    def _now(self) -> datetime:
        return self._clock()

    def _priced(self, draft: ReservationDraft) -> ReservationDraft:
        breakdown = price_draft(draft, self._fee_policy)
        if breakdown.total == draft.total_amount:
            return draft
        return draft.model_copy(update={"total_amount": breakdown.total})

    def _reject(self, state: ReservationState, errors: ValidationErrors) -> ReservationState:
        logger.debug(f"Reservation transition refused at {state.step.value}: {sorted(errors)}")
        return state.model_copy(update={"validation_errors": dict(errors)})

    def _guard_until(self, draft: ReservationDraft, target: ReservationStep) -> ValidationErrors | None:
        """Run every guard from selecting-route up to (not including) ``target``."""
        for step in STEP_ORDER[1 : step_index(target)]:
            errors = can_leave_step(step, draft, self._now())
            if errors:
                return errors
        return None

    def _resume_step(self, draft: ReservationDraft) -> ReservationStep:
        """Furthest step a restored draft may resume at."""
        if draft.selected_route is None:
            return ReservationStep.IDLE
        step = ReservationStep.SELECTING_DATETIME
        for candidate in (ReservationStep.SELECTING_DATETIME, ReservationStep.PASSENGER_DETAILS):
            if can_leave_step(candidate, draft, self._now()):
                break
            step = STEP_ORDER[step_index(candidate) + 1]
        return step

    def _rehydrate(self) -> ReservationState:
        draft = self._storage.load()
        if draft is None:
            return ReservationState()

        # Totals and confirmations are never trusted from storage.
        draft = self._priced(draft.model_copy(update={"confirmation_id": None, "payment": None}))
        step = self._resume_step(draft)
        logger.info(f"Restored reservation draft at step {step.value}")
        return ReservationState(step=step, draft=draft)

    # ---------- handlers ----------

    def _on_select_route(self, state: ReservationState, event: SelectRoute) -> ReservationState:
        base = ReservationDraft() if state.step in TERMINAL_STEPS else state.draft
        draft = base.model_copy(
            update={
                "selected_route": event.route,
                "selected_schedule": None,
                "selected_seats": (),
                "seat_holds": {},
                "date_range": None,
                "confirmation_id": None,
            }
        )
        return ReservationState(
            step=ReservationStep.SELECTING_DATETIME,
            draft=self._priced(draft),
        )

    def _on_select_schedule(self, state: ReservationState, event: SelectSchedule) -> ReservationState:
        if state.step in TERMINAL_STEPS:
            return state
        route = state.draft.selected_route
        if route is None:
            return self._reject(state, {"route": "Please select a route before choosing a departure."})
        if event.schedule.route_id != route.id:
            return self._reject(state, {"schedule": "This departure does not belong to the selected route."})

        update: dict[str, Any] = {"selected_schedule": event.schedule}
        previous = state.draft.selected_schedule
        if previous is None or previous.id != event.schedule.id:
            update.update({"selected_seats": (), "seat_holds": {}, "date_range": None})

        draft = self._priced(state.draft.model_copy(update=update))
        return state.model_copy(
            update={
                "step": ReservationStep.PASSENGER_DETAILS,
                "draft": draft,
                "validation_errors": {},
            }
        )

    def _on_select_seat(self, state: ReservationState, event: SelectSeat) -> ReservationState:
        seat = event.seat
        if state.step in TERMINAL_STEPS or seat.is_locked or seat.id in state.draft.seat_ids:
            return state

        schedule = state.draft.selected_schedule
        if schedule is None:
            return self._reject(state, {"schedule": "Select a departure before choosing seats."})
        if len(state.draft.selected_seats) >= schedule.seats_left:
            return self._reject(state, {"seats": f"Only {schedule.seats_left} seat(s) left on this departure."})

        holds = {**state.draft.seat_holds, seat.id: self._now()}
        draft = state.draft.model_copy(
            update={
                "selected_seats": (*state.draft.selected_seats, seat.model_copy(update={"status": SeatStatus.SELECTED})),
                "seat_holds": holds,
                "date_range": None,
            }
        )
        return state.model_copy(update={"draft": self._priced(draft), "validation_errors": {}})

    def _on_deselect_seat(self, state: ReservationState, event: DeselectSeat) -> ReservationState:
        if state.step in TERMINAL_STEPS or event.seat_id not in state.draft.seat_ids:
            return state

        draft = state.draft.model_copy(
            update={
                "selected_seats": tuple(s for s in state.draft.selected_seats if s.id != event.seat_id),
                "seat_holds": {sid: at for sid, at in state.draft.seat_holds.items() if sid != event.seat_id},
            }
        )
        return state.model_copy(update={"draft": self._priced(draft), "validation_errors": {}})

    def _on_set_dates(self, state: ReservationState, event: SetDates) -> ReservationState:
        if state.step in TERMINAL_STEPS:
            return state
        if state.draft.selected_schedule is None:
            return self._reject(state, {"schedule": "Select a departure before choosing dates."})

        draft = state.draft.model_copy(
            update={"date_range": event.date_range, "selected_seats": (), "seat_holds": {}}
        )
        return state.model_copy(update={"draft": self._priced(draft), "validation_errors": {}})

    def _on_set_passenger(self, state: ReservationState, event: SetPassenger) -> ReservationState:
        if state.step in TERMINAL_STEPS:
            return state

        draft = state.draft.model_copy(update={"passenger": event.passenger})
        errors = validate_passenger(event.passenger)
        if errors:
            return state.model_copy(update={"draft": draft, "validation_errors": errors})

        step = state.step
        if step == ReservationStep.PASSENGER_DETAILS:
            step = ReservationStep.PAYMENT
        return state.model_copy(update={"step": step, "draft": draft, "validation_errors": {}})

    def _on_set_payment(self, state: ReservationState, event: SetPayment) -> ReservationState:
        if state.step in TERMINAL_STEPS:
            return state

        result = validate_payment_details(event.method, event.fields, self._now())
        draft = self._priced(state.draft.model_copy(update={"payment": result.data}))
        return state.model_copy(
            update={
                "draft": draft,
                "validation_errors": {} if result.success else result.errors,
                "submit_error": None,
            }
        )

    def _on_next(self, state: ReservationState, event: Next) -> ReservationState:
        # Leaving payment happens through CONFIRM only.
        if state.step in TERMINAL_STEPS or state.step == ReservationStep.PAYMENT:
            return state

        errors = can_leave_step(state.step, state.draft, self._now())
        if errors:
            return self._reject(state, errors)
        target = STEP_ORDER[step_index(state.step) + 1]
        return state.model_copy(update={"step": target, "validation_errors": {}})

    def _on_prev(self, state: ReservationState, event: Prev) -> ReservationState:
        if state.step in TERMINAL_STEPS:
            return state
        target = STEP_ORDER[max(step_index(state.step) - 1, 0)]
        return state.model_copy(update={"step": target, "validation_errors": {}})

    def _on_goto(self, state: ReservationState, event: GoTo) -> ReservationState:
        if state.step in TERMINAL_STEPS or event.step in TERMINAL_STEPS:
            return state

        current, target = step_index(state.step), step_index(event.step)
        if target > current:
            for step in STEP_ORDER[current:target]:
                errors = can_leave_step(step, state.draft, self._now())
                if errors:
                    return self._reject(state, errors)
        return state.model_copy(update={"step": event.step, "validation_errors": {}})

    def _on_confirm(self, state: ReservationState, event: Confirm) -> ReservationState:
        if state.step != ReservationStep.PAYMENT:
            return state

        errors = self._guard_until(state.draft, ReservationStep.CONFIRMED)
        if errors:
            return self._reject(state, errors)

        confirmation_id = self._id_factory()
        self._storage.clear()
        logger.info(f"Reservation confirmed: {confirmation_id} ({state.draft.total_amount} paisa)")
        return state.model_copy(
            update={
                "step": ReservationStep.CONFIRMED,
                "draft": state.draft.model_copy(update={"confirmation_id": confirmation_id}),
                "validation_errors": {},
                "submit_error": None,
            }
        )

    def _on_cancel(self, state: ReservationState, event: Cancel) -> ReservationState:
        if state.step in TERMINAL_STEPS:
            return state
        logger.info(f"Reservation cancelled at step {state.step.value}")
        return state.model_copy(update={"step": ReservationStep.CANCELLED, "validation_errors": {}})

    def _on_reset(self, state: ReservationState, event: Reset) -> ReservationState:
        self._storage.clear()
        return ReservationState()

    def _on_expire_holds(self, state: ReservationState, event: ExpireHolds) -> ReservationState:
        if state.step in TERMINAL_STEPS:
            return state

        cutoff = event.now - self._hold_duration
        expired = {sid for sid, held_at in state.draft.seat_holds.items() if held_at <= cutoff}
        if not expired:
            return state

        labels = [s.label for s in state.draft.selected_seats if s.id in expired]
        draft = self._priced(
            state.draft.model_copy(
                update={
                    "selected_seats": tuple(s for s in state.draft.selected_seats if s.id not in expired),
                    "seat_holds": {sid: at for sid, at in state.draft.seat_holds.items() if sid not in expired},
                }
            )
        )
        step = state.step
        if step_index(step) > step_index(ReservationStep.SELECTING_DATETIME) and can_leave_step(
            ReservationStep.SELECTING_DATETIME, draft, event.now
        ):
            step = ReservationStep.SELECTING_DATETIME
        logger.info(f"Released {len(expired)} expired seat hold(s)")
        return state.model_copy(
            update={
                "step": step,
                "draft": draft,
                "validation_errors": {
                    "seats": f"Hold expired for seat(s) {', '.join(labels)}. Please select again."
                },
            }
        )

    def _on_refresh_catalog(self, state: ReservationState, event: RefreshCatalog) -> ReservationState:
        draft = state.draft
        if state.step in TERMINAL_STEPS or draft.selected_route is None:
            return state

        if event.route is None:
            logger.info(f"Restored route {draft.selected_route.id} is no longer offered")
            return ReservationState(
                validation_errors={"route": "This route is no longer offered. Please choose another."}
            )

        errors: ValidationErrors = {}
        update: dict[str, Any] = {"selected_route": event.route}
        schedule = event.schedule
        if draft.selected_schedule is not None:
            if schedule is None or schedule.route_id != event.route.id:
                update.update({"selected_schedule": None, "selected_seats": (), "seat_holds": {}, "date_range": None})
                errors["schedule"] = "This departure is no longer available. Please choose another."
            else:
                update["selected_schedule"] = schedule
                taken = set(event.unavailable_seat_ids) & set(draft.seat_ids)
                if taken:
                    labels = [s.label for s in draft.selected_seats if s.id in taken]
                    update["selected_seats"] = tuple(s for s in draft.selected_seats if s.id not in taken)
                    update["seat_holds"] = {sid: at for sid, at in draft.seat_holds.items() if sid not in taken}
                    errors["seats"] = f"Seat(s) {', '.join(labels)} were taken in the meantime. Please select again."

        refreshed = self._priced(draft.model_copy(update=update))
        if refreshed == draft:
            return state

        step = state.step
        resume = self._resume_step(refreshed)
        if step_index(resume) < step_index(step):
            step = resume
        if errors:
            logger.info(f"Restored draft refreshed from catalog: {sorted(errors)}")
        return state.model_copy(update={"step": step, "draft": refreshed, "validation_errors": errors})

    def _on_submit_started(self, state: ReservationState, event: SubmitStarted) -> ReservationState:
        if state.step != ReservationStep.PAYMENT:
            return state
        errors = self._guard_until(state.draft, ReservationStep.CONFIRMED)
        if errors:
            return self._reject(state, errors)
        return state.model_copy(update={"is_submitting": True, "submit_error": None, "validation_errors": {}})

    def _on_submit_succeeded(self, state: ReservationState, event: SubmitSucceeded) -> ReservationState:
        if not state.is_submitting:
            return state
        self._storage.clear()
        logger.info(f"Reservation confirmed by gateway: {event.confirmation_id}")
        return state.model_copy(
            update={
                "step": ReservationStep.CONFIRMED,
                "draft": state.draft.model_copy(update={"confirmation_id": event.confirmation_id}),
                "is_submitting": False,
                "submit_error": None,
                "validation_errors": {},
            }
        )

    def _on_submit_failed(self, state: ReservationState, event: SubmitFailed) -> ReservationState:
        if not state.is_submitting:
            return state
        logger.warning(f"Reservation submission failed: {event.message}")
        return state.model_copy(update={"is_submitting": False, "submit_error": event.message})

    _handlers: dict[type, Callable[["ReservationMachine", ReservationState, Any], ReservationState]] = {
        SelectRoute: _on_select_route,
        SelectSchedule: _on_select_schedule,
        SelectSeat: _on_select_seat,
        DeselectSeat: _on_deselect_seat,
        SetDates: _on_set_dates,
        SetPassenger: _on_set_passenger,
        SetPayment: _on_set_payment,
        Next: _on_next,
        Prev: _on_prev,
        GoTo: _on_goto,
        Confirm: _on_confirm,
        Cancel: _on_cancel,
        Reset: _on_reset,
        ExpireHolds: _on_expire_holds,
        RefreshCatalog: _on_refresh_catalog,
        SubmitStarted: _on_submit_started,
        SubmitSucceeded: _on_submit_succeeded,
        SubmitFailed: _on_submit_failed,
    }
