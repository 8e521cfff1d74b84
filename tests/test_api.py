"""API tests for the catalog and reservation endpoints."""

import pytest
from fastapi.testclient import TestClient

from venservice.api.deps import get_reservation_registry
from venservice.core.exceptions import ValidationError
from venservice.gateways.mock import MockSubmissionGateway
from venservice.main import app
from venservice.services.catalog_service import InMemoryCatalog
from venservice.services.draft_storage import InMemoryDraftStorage
from venservice.services.reservation_service import ReservationSessionRegistry

from conftest import VALID_CARD

API = "/api/v1"


@pytest.fixture
def registry(clock) -> ReservationSessionRegistry:
    return ReservationSessionRegistry(
        catalog=InMemoryCatalog(clock=clock),
        gateway=MockSubmissionGateway(delay_seconds=0),
        storage_factory=lambda sid: InMemoryDraftStorage(),
        clock=clock,
    )


@pytest.fixture
def client(registry):
    app.dependency_overrides[get_reservation_registry] = lambda: registry
    yield TestClient(app)
    app.dependency_overrides.clear()


def start(client) -> str:
    response = client.post(f"{API}/reservations")
    assert response.status_code == 201
    return response.json()["session_id"]


def send(client, session_id, **event) -> dict:
    response = client.post(f"{API}/reservations/{session_id}/events", json=event)
    assert response.status_code == 200, response.text
    return response.json()


def first_schedule(client, route_id="khi-isb") -> dict:
    return client.get(f"{API}/routes/{route_id}/schedules").json()[0]


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert "X-Request-ID" in response.headers
    assert "X-Response-Time" in response.headers


class TestCatalog:
    def test_list_routes(self, client):
        routes = client.get(f"{API}/routes").json()

        assert {route["id"] for route in routes} >= {"khi-isb", "mul-lhr"}

    def test_schedules_and_seats(self, client):
        schedule = first_schedule(client)

        layout = client.get(f"{API}/schedules/{schedule['id']}/seats").json()

        assert len(layout["seats"]) == 20
        assert layout["available_count"] == schedule["seats_left"]

    def test_unknown_route(self, client):
        response = client.get(f"{API}/routes/nowhere/schedules")

        assert response.status_code == 404
        assert "nowhere" in response.json()["detail"]

    def test_unknown_schedule(self, client):
        assert client.get(f"{API}/schedules/nowhere/seats").status_code == 404


class TestReservationFlow:
    def test_full_card_flow(self, client, passenger):
        session_id = start(client)

        body = send(client, session_id, type="SELECT_ROUTE", route_id="mul-lhr")
        assert body["state"]["step"] == "selecting-datetime"

        body = send(client, session_id, type="SELECT_SCHEDULE", schedule_id=first_schedule(client, "mul-lhr")["id"])
        assert body["state"]["step"] == "passenger-details"
        open_seats = [s["id"] for s in body["seat_map"]["seats"] if s["status"] == "available"]

        send(client, session_id, type="TOGGLE_SEAT", seat_id=open_seats[0])
        body = send(client, session_id, type="SELECT_SEAT", seat_id=open_seats[1])
        assert body["price"]["total"] == 240000
        assert body["hold_expires_at"] is not None

        body = send(client, session_id, type="SET_PASSENGER", passenger=passenger.model_dump())
        assert body["state"]["step"] == "payment"

        body = send(client, session_id, type="SET_PAYMENT", method="card", fields=VALID_CARD)
        assert body["state"]["validation_errors"] == {}
        assert body["price"] == {"subtotal": 240000, "fee": 12000, "total": 252000}
        assert body["state"]["draft"]["payment"]["card_number"] == "************0366"
        assert "4532015112830366" not in str(body)

        response = client.post(f"{API}/reservations/{session_id}/submit")
        assert response.status_code == 200
        state = response.json()["state"]
        assert state["step"] == "confirmed"
        assert state["draft"]["confirmation_id"].startswith("VEN-")

    def test_rejection_is_a_200_with_errors(self, client):
        session_id = start(client)
        send(client, session_id, type="SELECT_ROUTE", route_id="khi-isb")

        body = send(client, session_id, type="NEXT")

        assert body["state"]["step"] == "selecting-datetime"
        assert "schedule" in body["state"]["validation_errors"]

    def test_invalid_payment_errors(self, client):
        session_id = start(client)

        body = send(client, session_id, type="SET_PAYMENT", method="easypaisa", fields={"phone_number": "123"})

        assert set(body["state"]["validation_errors"]) == {"phone_number", "account_title"}

    def test_get_and_delete(self, client):
        session_id = start(client)
        send(client, session_id, type="SELECT_ROUTE", route_id="khi-isb")

        assert client.get(f"{API}/reservations/{session_id}").json()["state"]["step"] == "selecting-datetime"

        response = client.delete(f"{API}/reservations/{session_id}")
        assert response.status_code == 200
        assert response.json()["state"]["step"] == "idle"
        assert client.get(f"{API}/reservations/{session_id}").status_code == 404


class TestErrors:
    def test_unknown_session(self, client):
        response = client.post(f"{API}/reservations/rs_missing/events", json={"type": "NEXT"})

        assert response.status_code == 404

    def test_unknown_route_id(self, client):
        session_id = start(client)

        response = client.post(
            f"{API}/reservations/{session_id}/events", json={"type": "SELECT_ROUTE", "route_id": "nowhere"}
        )

        assert response.status_code == 404

    def test_missing_event_field(self, client):
        session_id = start(client)

        response = client.post(f"{API}/reservations/{session_id}/events", json={"type": "SELECT_SEAT"})

        assert response.status_code == 422
        assert response.json()["errors"] == {"seat_id": "This field is required."}

    def test_unknown_event_type(self, client):
        session_id = start(client)

        response = client.post(f"{API}/reservations/{session_id}/events", json={"type": "TELEPORT"})

        assert response.status_code == 422


def test_validation_error_uses_current_status_constant(recwarn):
    error = ValidationError(errors={"seat_id": "This field is required."})

    assert error.status_code == 422
    assert not [w for w in recwarn if issubclass(w.category, DeprecationWarning)]
