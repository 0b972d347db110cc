from models import db
from models.booking import Booking
from models.notification_event import NotificationEvent
from models.user import User
from security.admin_policy import AdminPolicy

from tests.conftest import add_booking, future


def test_policy_from_config():
    policy = AdminPolicy.from_config({"ADMIN_EMAILS": " Boss@Example.com , ops@example.com,"})

    class Identity:
        email = "boss@example.com"

    assert policy.is_authorized(Identity()) is True
    assert policy.is_authorized(None) is False
    assert AdminPolicy.from_config({}).is_authorized(Identity()) is False


def test_non_admin_forbidden(user_client):
    assert user_client.get("/admin/accounts").status_code == 403
    assert user_client.get("/admin/bookings/conflicts").status_code == 403


def test_admin_requires_login(app):
    assert app.test_client().get("/admin/accounts").status_code == 401


def test_approve_account_enables_checkout(app, admin_client, pending_user, sent_emails):
    pending = admin_client.get("/admin/accounts?status=pending").get_json()
    assert [u["email"] for u in pending] == [pending_user.email]

    resp = admin_client.post(f"/admin/accounts/{pending_user.id}/approve", json={"notes": "documents ok"})
    assert resp.status_code == 200
    assert resp.get_json()["account_status"] == "approved"
    assert db.session.get(User, pending_user.id).is_approved
    assert sent_emails[0]["to"] == pending_user.email


def test_reject_account_with_notes(admin_client, pending_user, sent_emails):
    resp = admin_client.post(f"/admin/accounts/{pending_user.id}/reject", json={"notes": "ID unreadable"})
    assert resp.status_code == 200
    assert resp.get_json()["validation_notes"] == "ID unreadable"
    assert "ID unreadable" in sent_emails[0]["body"]


def test_conflict_queue_and_resolution(admin_client, user):
    conflict = add_booking(user, future(), "morning", "room1", status="conflict_paid", payment_intent_id="pi_9")
    add_booking(user, future(), "afternoon", "room1")

    queue = admin_client.get("/admin/bookings/conflicts").get_json()
    assert [b["id"] for b in queue] == [conflict.id]
    assert queue[0]["payment_intent_id"] == "pi_9"

    bad = admin_client.post(f"/admin/bookings/{conflict.id}/resolve-conflict", json={"resolution": "ignored"})
    assert bad.status_code == 400

    resp = admin_client.post(f"/admin/bookings/{conflict.id}/resolve-conflict",
                             json={"resolution": "refunded", "note": "refund re_123"})
    assert resp.status_code == 200
    booking = db.session.get(Booking, conflict.id)
    assert booking.status == "cancelled"
    assert booking.cancel_reason == "conflict_refunded: refund re_123"

    again = admin_client.post(f"/admin/bookings/{conflict.id}/resolve-conflict", json={"resolution": "refunded"})
    assert again.status_code == 400


def test_admin_cancel_skips_window_and_reports_refund(admin_client, user):
    booking = add_booking(user, future(3), "fullday", "large", price=140)

    resp = admin_client.post(f"/admin/bookings/{booking.id}/cancel", json={"reason": "water damage"})
    assert resp.status_code == 200
    assert resp.get_json()["refund_percentage"] == 50
    assert db.session.get(Booking, booking.id).status == "cancelled"
    assert NotificationEvent.query.filter_by(booking_id=booking.id, event_type="BOOKING_CANCELLED").count() == 1


def test_list_bookings_filter(admin_client, user):
    add_booking(user, future(), "morning", "room1")
    add_booking(user, future(), "afternoon", "room1", status="pending_payment")

    rows = admin_client.get("/admin/bookings?status=pending_payment").get_json()
    assert len(rows) == 1 and rows[0]["status"] == "pending_payment"
    assert admin_client.get("/admin/bookings?status=bogus").status_code == 400
