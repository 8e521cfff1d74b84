"""Tests for the seat selection store."""

from datetime import timedelta

from venservice.domain.seat_map import SeatMap
from venservice.schemas.catalog import Seat, SeatStatus

from conftest import FIXED_NOW

HOLD = timedelta(minutes=5)


def make_map(seats) -> SeatMap:
    return SeatMap.from_catalog("khi-isb-0800", seats)


def test_from_catalog_resets_selected_seats():
    seat_map = make_map([Seat(id="A-2", label="A-2", status=SeatStatus.SELECTED)])

    assert seat_map.get("A-2").status == SeatStatus.AVAILABLE
    assert seat_map.holds == {}


def test_toggle_selects_and_records_hold(seats):
    seat_map = make_map(seats).toggle("A-2", FIXED_NOW)

    assert seat_map.get("A-2").status == SeatStatus.SELECTED
    assert seat_map.selected_ids == ["A-2"]
    assert seat_map.holds == {"A-2": FIXED_NOW}
    assert seat_map.available_count == 2


def test_toggle_twice_restores_map(seats):
    original = make_map(seats)

    assert original.toggle("A-2", FIXED_NOW).toggle("A-2", FIXED_NOW) == original


def test_protected_and_unknown_seats_are_untouched(seats):
    seat_map = make_map(seats)

    assert seat_map.toggle("A-1", FIXED_NOW) is seat_map
    assert seat_map.toggle("B-1", FIXED_NOW) is seat_map
    assert seat_map.toggle("Z-9", FIXED_NOW) is seat_map


def test_original_map_is_not_mutated(seats):
    seat_map = make_map(seats)
    seat_map.toggle("A-2", FIXED_NOW)

    assert seat_map.selected_ids == []


def test_expire_holds_releases_only_stale_seats(seats):
    seat_map = make_map(seats).toggle("A-2", FIXED_NOW).toggle("A-3", FIXED_NOW + timedelta(minutes=3))

    released_map, released = seat_map.expire_holds(FIXED_NOW + HOLD, HOLD)

    assert released == ["A-2"]
    assert released_map.selected_ids == ["A-3"]
    assert released_map.get("A-2").status == SeatStatus.AVAILABLE
    assert "A-2" not in released_map.holds


def test_expire_holds_with_nothing_stale(seats):
    seat_map = make_map(seats).toggle("A-2", FIXED_NOW)

    released_map, released = seat_map.expire_holds(FIXED_NOW + timedelta(minutes=4), HOLD)

    assert released == []
    assert released_map is seat_map
