from datetime import date, datetime, timedelta
from types import SimpleNamespace

from utils.cancellation import can_cancel, refund_percentage

from tests.conftest import add_booking, future

NOW = datetime(2026, 3, 1, 10, 30)


def _booking(days_ahead, status="confirmed"):
    return SimpleNamespace(status=status, date=(NOW + timedelta(days=days_ahead)).date())


def test_cancel_boundary():
    assert can_cancel(_booking(8), NOW) is True
    assert can_cancel(_booking(7), NOW) is False
    assert can_cancel(_booking(6), NOW) is False


def test_cancelled_booking_never_cancellable():
    assert can_cancel(_booking(60, status="cancelled"), NOW) is False


def test_booking_date_read_as_local_midnight():
    # 8 days ahead at 23:59 still leaves just over 7 days until midnight
    late = datetime(2026, 3, 1, 23, 59)
    booking = SimpleNamespace(status="confirmed", date=date(2026, 3, 9))
    assert can_cancel(booking, late) is True


def test_refund_tiers():
    assert refund_percentage(_booking(10), NOW) == 100
    assert refund_percentage(_booking(5), NOW) == 50
    assert refund_percentage(SimpleNamespace(status="confirmed", date=date(2026, 3, 4)), NOW) == 50
    assert refund_percentage(_booking(1), NOW) == 0


# ---------- endpoint ----------

def test_owner_cancels_far_booking(user_client, user, db, sent_emails):
    booking = add_booking(user, future(30), "morning", "room1")

    resp = user_client.post(f"/bookings/{booking.id}/cancel", json={"reason": "holiday"})
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["refund_percentage"] == 100
    assert body["booking"]["status"] == "cancelled"
    assert body["booking"]["cancel_reason"] == "holiday"
    assert len(sent_emails) == 1
    assert sent_emails[0]["to"] == user.email


def test_cancel_inside_window_refused(user_client, user):
    booking = add_booking(user, future(3), "morning", "room1")
    resp = user_client.post(f"/bookings/{booking.id}/cancel")
    assert resp.status_code == 403


def test_cancel_other_users_booking_hidden(user_client, other_user):
    booking = add_booking(other_user, future(30), "morning", "room1")
    resp = user_client.post(f"/bookings/{booking.id}/cancel")
    assert resp.status_code == 404


def test_only_confirmed_bookings_cancellable_by_owner(user_client, user):
    for status in ("pending_payment", "conflict_paid", "cancelled"):
        booking = add_booking(user, future(30), "morning", "room1", status=status)
        resp = user_client.post(f"/bookings/{booking.id}/cancel")
        assert resp.status_code == 400


def test_cancellation_survives_email_failure(user_client, user, db):
    from models.notification_event import NotificationEvent

    booking = add_booking(user, future(30), "morning", "room1")
    resp = user_client.post(f"/bookings/{booking.id}/cancel")
    assert resp.status_code == 200

    event = NotificationEvent.query.filter_by(booking_id=booking.id).one()
    assert event.status == "FAILED"
    assert event.last_error == "Email not configured"


def test_my_bookings_flags_cancellable(user_client, user):
    add_booking(user, future(30), "morning", "room1")
    add_booking(user, future(2), "afternoon", "room2")

    rows = user_client.get("/bookings/me").get_json()
    flags = {r["date"]: r["can_cancel"] for r in rows}
    assert flags[future(30).isoformat()] is True
    assert flags[future(2).isoformat()] is False
    assert all(len(r["access_code"]) == 6 for r in rows)
