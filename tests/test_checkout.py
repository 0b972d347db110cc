import json

from models.booking import Booking
from models.payment import Payment
from utils.booking_store import insert_pending_bookings
from utils.errors import StoreError

from tests.conftest import add_booking, future, login


def _line(day, slot="morning", room="room1", **extra):
    return {"date": day.isoformat(), "slot": slot, "room": room, **extra}


def test_checkout_creates_pending_rows_and_session(user_client, user, gateway):
    day1, day2 = future(20), future(21)
    resp = user_client.post("/checkout/sessions", json={"items": [
        _line(day1, "fullday", "large"),
        _line(day2, "afternoon", "room2"),
    ]})
    assert resp.status_code == 201, resp.get_json()
    body = resp.get_json()

    assert body["total"] == 140 + 50
    assert body["currency"] == "eur"
    assert body["url"].startswith("https://checkout.stripe.test/")

    rows = Booking.query.filter_by(checkout_session_id=body["session_id"]).all()
    assert len(rows) == 2
    assert {r.status for r in rows} == {"pending_payment"}
    assert all(r.user_id == user.id for r in rows)

    payment = Payment.query.filter_by(stripe_session_id=body["session_id"]).one()
    assert payment.amount == 190
    assert payment.status == "INIT"

    session = gateway.sessions[0]
    assert session["metadata"]["payment_id"] == str(payment.id)
    assert json.loads(session["metadata"]["dates"]) == [day1.isoformat(), day2.isoformat()]
    assert "{CHECKOUT_SESSION_ID}" in session["success_url"]
    assert session["customer_email"] == user.email


def test_client_price_is_ignored(user_client, gateway):
    resp = user_client.post("/checkout/sessions", json={"items": [_line(future(), price=1)], "total": 1})
    assert resp.status_code == 201
    assert resp.get_json()["total"] == 50
    assert resp.get_json()["bookings"][0]["price"] == 50
    assert gateway.sessions[0]["line_items"][0]["price_data"]["unit_amount"] == 5000


def test_empty_cart_rejected(user_client):
    for payload in ({"items": []}, {}, {"items": "nope"}):
        resp = user_client.post("/checkout/sessions", json=payload)
        assert resp.status_code == 400
    assert Payment.query.count() == 0


def test_invalid_lines_rejected(user_client):
    assert user_client.post("/checkout/sessions", json={"items": [_line(future(), room="attic")]}).status_code == 400
    assert user_client.post("/checkout/sessions", json={"items": [{"date": "tomorrow", "slot": "morning", "room": "room1"}]}).status_code == 400
    assert user_client.post("/checkout/sessions", json={"items": [_line(future(-1))]}).status_code == 400
    for bad in ({"slot": 5}, {"room": ["large"]}, {"slot": {"name": "morning"}}):
        resp = user_client.post("/checkout/sessions", json={"items": [{**_line(future()), **bad}]})
        assert resp.status_code == 400
        assert resp.get_json()["line"] == 0
    assert Booking.query.count() == 0


def test_one_unavailable_line_rejects_whole_cart(user_client, other_user, gateway):
    day = future()
    add_booking(other_user, day, "morning", "large")

    resp = user_client.post("/checkout/sessions", json={"items": [
        _line(day, "afternoon", "room1"),
        _line(day, "morning", "room1"),
    ]})
    assert resp.status_code == 409
    body = resp.get_json()
    assert body["line"] == 1
    assert body["slot"] == "morning" and body["room"] == "room1"

    assert Booking.query.count() == 1
    assert Payment.query.count() == 0
    assert gateway.sessions == []


def test_cart_cannot_conflict_with_itself(user_client):
    day = future()
    resp = user_client.post("/checkout/sessions", json={"items": [
        _line(day, "fullday", "large"),
        _line(day, "morning", "room2"),
    ]})
    assert resp.status_code == 409
    assert resp.get_json()["line"] == 1


def test_pending_rows_do_not_block(user_client, other_user):
    day = future()
    add_booking(other_user, day, "morning", "room1", status="pending_payment")
    resp = user_client.post("/checkout/sessions", json={"items": [_line(day, "morning", "room1")]})
    assert resp.status_code == 201


def test_provider_failure_releases_pending_rows(user_client, gateway):
    gateway.fail = True
    resp = user_client.post("/checkout/sessions", json={"items": [_line(future())]})
    assert resp.status_code == 502

    booking = Booking.query.one()
    assert booking.status == "cancelled"
    assert booking.cancel_reason == "checkout_failed"
    assert Payment.query.one().status == "FAILED"


def test_unapproved_account_cannot_checkout(app, pending_user):
    client = login(app, pending_user.email)
    resp = client.post("/checkout/sessions", json={"items": [_line(future())]})
    assert resp.status_code == 403
    assert resp.get_json()["account_status"] == "pending"


def test_checkout_requires_csrf_header(user_client):
    resp = user_client.client.post("/checkout/sessions", json={"items": [_line(future())]})
    assert resp.status_code == 403


def test_store_failure_mid_cart_cancels_saved_rows(user_client, gateway, monkeypatch):
    def save_first_then_fail(rows):
        rows = list(rows)
        saved = insert_pending_bookings(rows[:1])
        err = StoreError("Could not save booking", line=1)
        err.inserted = saved
        raise err

    monkeypatch.setattr("utils.checkout.insert_pending_bookings", save_first_then_fail)
    day = future()
    resp = user_client.post("/checkout/sessions", json={"items": [
        _line(day, "morning", "room1"),
        _line(day, "afternoon", "room2"),
    ]})
    assert resp.status_code == 500
    assert resp.get_json()["line"] == 1

    booking = Booking.query.one()
    assert booking.slot == "morning"
    assert booking.status == "cancelled"
    assert booking.cancel_reason == "checkout_failed"
    assert Payment.query.one().status == "FAILED"
    assert gateway.sessions == []
