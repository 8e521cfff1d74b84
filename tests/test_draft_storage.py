"""Tests for draft persistence adapters."""

import logging

import redis

from venservice.domain.reservation_state import ReservationMachine, SelectRoute
from venservice.schemas.reservation import ReservationDraft, ReservationState
from venservice.services.draft_storage import (
    InMemoryDraftStorage,
    NullDraftStorage,
    RedisDraftStorage,
    deserialize_draft,
    serialize_draft,
)


class DictRedis:
    """Enough of a redis client for the storage adapter."""

    def __init__(self):
        self.data: dict[str, str] = {}
        self.ttls: dict[str, int] = {}

    def set(self, key, value, ex=None):
        self.data[key] = value
        self.ttls[key] = ex

    def get(self, key):
        return self.data.get(key)

    def delete(self, key):
        self.data.pop(key, None)


class DownRedis:
    def set(self, *args, **kwargs):
        raise redis.ConnectionError("connection refused")

    def get(self, *args, **kwargs):
        raise redis.ConnectionError("connection refused")

    def delete(self, *args, **kwargs):
        raise redis.ConnectionError("connection refused")


def test_serialization_skips_payment(route):
    draft = ReservationDraft(selected_route=route, total_amount=1000)

    restored = deserialize_draft(serialize_draft(draft))

    assert restored == draft
    assert "payment" not in serialize_draft(draft)


def test_unreadable_draft_counts_as_none(caplog):
    with caplog.at_level(logging.WARNING):
        assert deserialize_draft("{not json") is None
    assert "unreadable" in caplog.text


def test_in_memory_round_trip(route):
    storage = InMemoryDraftStorage()
    draft = ReservationDraft(selected_route=route)

    storage.save(draft)
    assert storage.load() == draft

    storage.clear()
    assert storage.load() is None


def test_null_storage_keeps_nothing(route):
    storage = NullDraftStorage()
    storage.save(ReservationDraft(selected_route=route))

    assert storage.load() is None


def test_redis_storage_uses_key_and_ttl(route):
    client = DictRedis()
    storage = RedisDraftStorage(key="venservice:booking_draft:rs_1", client=client, ttl_seconds=120)

    storage.save(ReservationDraft(selected_route=route))

    assert "venservice:booking_draft:rs_1" in client.data
    assert client.ttls["venservice:booking_draft:rs_1"] == 120
    assert storage.load().selected_route == route

    storage.clear()
    assert storage.load() is None


def test_redis_outage_degrades_silently(route, caplog):
    storage = RedisDraftStorage(key="k", client=DownRedis())

    with caplog.at_level(logging.WARNING):
        storage.save(ReservationDraft(selected_route=route))
        assert storage.load() is None
        storage.clear()

    assert "Draft storage unavailable" in caplog.text


def test_machine_keeps_working_without_storage(route, clock):
    machine = ReservationMachine(storage=RedisDraftStorage(key="k", client=DownRedis()), clock=clock)

    assert machine.state == ReservationState()
    assert machine.dispatch(SelectRoute(route)).draft.selected_route == route


def test_corrupt_redis_value_starts_fresh(clock):
    client = DictRedis()
    client.data["k"] = '{"selected_seats": "oops"}'

    machine = ReservationMachine(storage=RedisDraftStorage(key="k", client=client), clock=clock)

    assert machine.state == ReservationState()
