import pytest

from models.booking import Booking
from utils.booking_store import (
    find_bookings_by_session_id,
    insert_pending_bookings,
    query_confirmed_bookings,
    update_booking_status,
)
from utils.errors import StoreError

from tests.conftest import add_booking, future


def test_query_confirmed_filters_by_exact_date_and_status(app, user):
    day = future()
    add_booking(user, day, "morning", "room1")
    add_booking(user, day, "afternoon", "room1", status="pending_payment")
    add_booking(user, future(31), "morning", "room2")

    rows = query_confirmed_bookings(day)
    assert [(r.slot, r.room) for r in rows] == [("morning", "room1")]


def test_insert_and_find_by_session(app, user):
    day = future()
    rows = insert_pending_bookings([
        {"user_id": user.id, "date": day, "slot": "morning", "room": "room1", "price": 50, "checkout_session_id": "cs_1"},
        {"user_id": user.id, "date": day, "slot": "afternoon", "room": "room1", "price": 50, "checkout_session_id": "cs_1"},
    ])
    assert [r.status for r in rows] == ["pending_payment", "pending_payment"]
    assert [r.id for r in find_bookings_by_session_id("cs_1")] == [r.id for r in rows]
    assert find_bookings_by_session_id(None) == []


def test_insert_failure_reports_rows_already_saved(app, user):
    day = future()
    with pytest.raises(StoreError) as info:
        insert_pending_bookings([
            {"user_id": user.id, "date": day, "slot": "morning", "room": "room1", "price": 50},
            {"user_id": user.id, "date": day, "slot": "morning", "room": "room1", "price": -5},
        ])
    assert info.value.details["line"] == 1
    assert len(info.value.inserted) == 1
    assert Booking.query.count() == 1


def test_update_status(app, user):
    booking = add_booking(user, future(), "morning", "room1", status="pending_payment")
    updated = update_booking_status(booking.id, "confirmed", payment_ref="pi_42")
    assert updated.status == "confirmed"
    assert updated.payment_intent_id == "pi_42"
    assert updated.confirmed_at is not None

    with pytest.raises(ValueError):
        update_booking_status(booking.id, "archived")
    with pytest.raises(StoreError):
        update_booking_status("missing", "confirmed")
