from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from hotelbook.api.deps import get_booking_service, get_payment_service
from hotelbook.main import app

PREFIX = "/api/v1"


def _stay(**overrides) -> dict:
    check_in = date.today() + timedelta(days=10)
    stay = {
        "room_id": "room-101",
        "check_in": check_in.isoformat(),
        "check_out": (check_in + timedelta(days=3)).isoformat(),
        "guests": 2,
        "food": {"kind": "flat", "plan": "Breakfast"},
    }
    stay.update(overrides)
    return stay


@pytest.fixture
def client(booking_service, payment_service):
    app.dependency_overrides[get_booking_service] = lambda: booking_service
    app.dependency_overrides[get_payment_service] = lambda: payment_service
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides = {}


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert "X-Request-ID" in response.headers


def test_calculate_price_preview(client):
    response = client.post(f"{PREFIX}/bookings/calculate", json={"stay": _stay()})

    assert response.status_code == 200
    body = response.json()
    assert body["nights"] == 3
    assert Decimal(body["total"]) == Decimal("102480")
    assert [item["type"] for item in body["line_items"]] == ["room", "food", "tax", "service"]


def test_calculate_with_itemized_meals(client):
    food = {
        "kind": "itemized",
        "lines": [{"item_id": "m1", "name": "Kottu", "unit_price": "1500", "quantity": 2}],
    }

    response = client.post(f"{PREFIX}/bookings/calculate", json={"stay": _stay(food=food)})

    assert response.status_code == 200
    assert Decimal(response.json()["food_cost"]) == Decimal("3000")


def test_create_and_fetch_booking(client):
    created = client.post(
        f"{PREFIX}/bookings/",
        json={"guest_id": "guest-1", "stay": _stay(), "payment_method": "cash"},
        headers={"Idempotency-Key": "req-1"},
    )
    retried = client.post(
        f"{PREFIX}/bookings/",
        json={"guest_id": "guest-1", "stay": _stay(), "payment_method": "cash"},
        headers={"Idempotency-Key": "req-1"},
    )

    assert created.status_code == 201
    assert retried.json()["id"] == created.json()["id"]
    assert created.json()["status"] == "Pending Approval"

    fetched = client.get(f"{PREFIX}/bookings/{created.json()['id']}")
    assert fetched.status_code == 200
    assert fetched.json()["booking_number"] == created.json()["booking_number"]


def test_create_booking_returns_all_validation_errors(client):
    same_day = _stay()
    same_day["check_out"] = same_day["check_in"]
    same_day["guests"] = 4

    response = client.post(
        f"{PREFIX}/bookings/", json={"guest_id": "guest-1", "stay": same_day}
    )

    assert response.status_code == 422
    assert response.json()["errors"] == [
        "Check-out date must be after check-in date",
        "Maximum 2 guests allowed for this room",
    ]


def test_unknown_booking_is_404(client):
    response = client.get(f"{PREFIX}/bookings/does-not-exist")

    assert response.status_code == 404


def test_invalid_transition_is_409(client):
    created = client.post(
        f"{PREFIX}/bookings/", json={"guest_id": "guest-1", "stay": _stay()}
    ).json()

    cancelled = client.post(f"{PREFIX}/bookings/{created['id']}/cancel", json={"reason": "Plans changed"})
    response = client.post(
        f"{PREFIX}/bookings/{created['id']}/status", json={"status": "Pending Approval"}
    )

    assert cancelled.json()["status"] == "Cancelled"
    assert response.status_code == 409
    assert client.get(f"{PREFIX}/bookings/{created['id']}").json()["status"] == "Cancelled"


def test_overlapping_booking_is_409(client):
    client.post(f"{PREFIX}/bookings/", json={"guest_id": "guest-1", "stay": _stay()})

    response = client.post(
        f"{PREFIX}/bookings/", json={"guest_id": "guest-2", "stay": _stay(guests=1)}
    )

    assert response.status_code == 409


def test_admin_approval_then_cash_payment(client):
    created = client.post(
        f"{PREFIX}/bookings/", json={"guest_id": "guest-1", "stay": _stay()}
    ).json()

    waiting = client.post(f"{PREFIX}/payments/{created['id']}/initiate", json={"method": "cash"})
    approved = client.post(f"{PREFIX}/bookings/{created['id']}/approve")
    paid = client.post(f"{PREFIX}/payments/{created['id']}/initiate", json={"method": "cash"})

    assert waiting.json()["awaiting_approval"] is True
    assert approved.json()["status"] == "Approved - Payment Pending"
    assert paid.status_code == 200
    assert paid.json()["booking"]["status"] == "Confirmed"
    assert paid.json()["session"] is None


def test_approval_can_settle_cash_in_one_step(client):
    created = client.post(
        f"{PREFIX}/bookings/", json={"guest_id": "guest-1", "stay": _stay()}
    ).json()

    approved = client.post(
        f"{PREFIX}/bookings/{created['id']}/approve", json={"initiate_payment": True}
    )

    assert approved.status_code == 200
    assert approved.json()["status"] == "Confirmed"


def test_cancel_then_rebook_the_same_stay(client):
    payload = {"guest_id": "guest-1", "stay": _stay()}
    first = client.post(f"{PREFIX}/bookings/", json=payload).json()

    client.post(f"{PREFIX}/bookings/{first['id']}/cancel", json={"guest_initiated": True})
    second = client.post(f"{PREFIX}/bookings/", json=payload)

    assert second.status_code == 201
    assert second.json()["id"] != first["id"]
    assert second.json()["status"] == "Pending Approval"


def test_card_payment_returns_gateway_form(client):
    created = client.post(
        f"{PREFIX}/bookings/",
        json={"guest_id": "guest-1", "stay": _stay(), "payment_method": "card"},
    ).json()

    response = client.post(f"{PREFIX}/payments/{created['id']}/initiate", json={"method": "card"})

    assert response.status_code == 200
    body = response.json()
    assert body["booking"]["status"] == "Approved - Payment Processing"
    assert body["session"]["params"]["order_id"] == body["session"]["order_reference"]


def test_webhook_confirms_card_payment(client, gateways):
    created = client.post(
        f"{PREFIX}/bookings/",
        json={"guest_id": "guest-1", "stay": _stay(), "payment_method": "card"},
    ).json()
    session = client.post(
        f"{PREFIX}/payments/{created['id']}/initiate", json={"method": "card"}
    ).json()["session"]
    gateway = gateways._get_gateway("payhere")
    form = {
        "merchant_id": gateway.merchant_id,
        "order_id": session["order_reference"],
        "payment_id": "320025071278",
        "payhere_amount": session["params"]["amount"],
        "payhere_currency": "LKR",
        "status_code": "2",
        "md5sig": gateway.generate_notify_signature(
            session["order_reference"], session["params"]["amount"], "LKR", "2"
        ),
    }

    response = client.post(f"{PREFIX}/webhooks/payhere", data=form)

    assert response.status_code == 200
    assert response.json()["status"] == "Confirmed"


def test_webhook_with_bad_signature_is_402(client):
    response = client.post(
        f"{PREFIX}/webhooks/payhere",
        data={"merchant_id": "1221149", "order_id": "HB-X-1", "status_code": "2"},
    )

    assert response.status_code == 402
