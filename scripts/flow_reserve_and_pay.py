#!/usr/bin/env python3
"""
Complete reservation and payment flow script.

DO NOT ADD BUSINESS LOGIC HERE.
This script only orchestrates API calls.
All rules live in the backend.

Usage:
    python scripts/flow_reserve_and_pay.py --route-id khi-isb
    python scripts/flow_reserve_and_pay.py --route-id mul-lhr --seats 2 --method cash

Flow:
    1. List routes
    2. Start a reservation session
    3. Select route
    4. Select the first departure
    5. Select seats
    6. Enter passenger details
    7. Enter payment details
    8. Submit
"""

import argparse
import json
import sys

import httpx

BASE_URL = "http://localhost:8000"
API = f"{BASE_URL}/api/v1"

TEST_PASSENGER = {
    "first_name": "Ayesha",
    "last_name": "Khan",
    "email": "ayesha.khan@example.com",
    "phone": "03001234567",
}

TEST_PAYMENTS = {
    "card": {"card_number": "4532015112830366", "card_holder": "AYESHA KHAN", "expiry": "12/30", "cvv": "123"},
    "easypaisa": {"phone_number": "03001234567", "account_title": "Ayesha Khan"},
    "jazzcash": {"phone_number": "03001234567", "account_title": "Ayesha Khan"},
    "bank_transfer": {
        "iban": "PK36SCBL0000001123456702",
        "account_title": "Ayesha Khan",
        "bank_name": "Standard Chartered",
    },
    "cash": {},
}


def api_request(method: str, endpoint: str, data: dict | None = None) -> dict:
    """Make API request."""
    url = f"{API}{endpoint}"

    if method == "GET":
        response = httpx.get(url, timeout=30.0)
    elif method == "POST":
        response = httpx.post(url, json=data or {}, timeout=30.0)
    else:
        raise ValueError(f"Unknown method: {method}")

    return {"status": response.status_code, "data": response.json() if response.text else {}}


def send_event(session_id: str, event: dict) -> dict:
    return api_request("POST", f"/reservations/{session_id}/events", event)


def print_step(step: int, title: str):
    """Print step header."""
    print(f"\n{'='*60}")
    print(f"STEP {step}: {title}")
    print("="*60)


def print_state(result: dict) -> bool:
    """Print the reservation snapshot; False on HTTP or validation errors."""
    if result["status"] >= 400:
        print(f"ERROR ({result['status']}): {json.dumps(result['data'], indent=2)}")
        return False

    state = result["data"]["state"]
    price = result["data"]["price"]
    print(f"Step: {state['step']}")
    print(f"Seats: {[seat['label'] for seat in state['draft']['selected_seats']]}")
    print(f"Total: {price['total'] / 100:.2f} {result['data']['currency']} (fee {price['fee'] / 100:.2f})")
    if state["validation_errors"]:
        print(f"Validation errors: {json.dumps(state['validation_errors'], indent=2)}")
        return False
    if state["submit_error"]:
        print(f"Submit error: {state['submit_error']}")
        return False
    return True


def main():
    parser = argparse.ArgumentParser(description="Complete reservation and payment flow")
    parser.add_argument("--route-id", required=True, help="Route ID (e.g. khi-isb)")
    parser.add_argument("--seats", type=int, default=1, help="Number of seats")
    parser.add_argument("--method", default="card", choices=sorted(TEST_PAYMENTS), help="Payment method")
    args = parser.parse_args()

    # Step 1: List routes
    print_step(1, "List routes")
    routes = api_request("GET", "/routes")
    for route in routes["data"]:
        print(f"  {route['id']}: {route['name']} ({route['base_price'] / 100:.0f} PKR)")

    # Step 2: Start session
    print_step(2, "Start reservation session")
    created = api_request("POST", "/reservations")
    if created["status"] != 201:
        print(f"ERROR: {created}")
        sys.exit(1)
    session_id = created["data"]["session_id"]
    print(f"Session: {session_id}")

    # Step 3: Select route
    print_step(3, "Select route")
    if not print_state(send_event(session_id, {"type": "SELECT_ROUTE", "route_id": args.route_id})):
        sys.exit(1)

    # Step 4: Select departure
    print_step(4, "Select first departure")
    schedules = api_request("GET", f"/routes/{args.route_id}/schedules")["data"]
    open_schedules = [s for s in schedules if s["seats_left"] >= args.seats]
    if not open_schedules:
        print(f"ERROR: No departure with {args.seats} seat(s) left")
        sys.exit(1)
    schedule = open_schedules[0]
    print(f"Departure {schedule['id']} at {schedule['departure_at']}")
    result = send_event(session_id, {"type": "SELECT_SCHEDULE", "schedule_id": schedule["id"]})
    if not print_state(result):
        sys.exit(1)

    # Step 5: Select seats
    print_step(5, f"Select {args.seats} seat(s)")
    open_seats = [s for s in result["data"]["seat_map"]["seats"] if s["status"] == "available"]
    for seat in open_seats[: args.seats]:
        result = send_event(session_id, {"type": "SELECT_SEAT", "seat_id": seat["id"]})
    if not print_state(result):
        sys.exit(1)

    # Step 6: Passenger
    print_step(6, "Enter passenger details")
    if not print_state(send_event(session_id, {"type": "SET_PASSENGER", "passenger": TEST_PASSENGER})):
        sys.exit(1)

    # Step 7: Payment
    print_step(7, f"Enter {args.method} payment")
    result = send_event(
        session_id,
        {"type": "SET_PAYMENT", "method": args.method, "fields": TEST_PAYMENTS[args.method]},
    )
    if not print_state(result):
        sys.exit(1)

    # Step 8: Submit
    print_step(8, "Submit reservation")
    result = api_request("POST", f"/reservations/{session_id}/submit")
    if not print_state(result):
        sys.exit(1)

    print("\n" + "="*60)
    print("RESERVATION CONFIRMED")
    print("="*60)
    print(f"Confirmation: {result['data']['state']['draft']['confirmation_id']}")


if __name__ == "__main__":
    main()
