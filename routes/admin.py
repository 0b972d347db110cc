from datetime import datetime

from flask import Blueprint, jsonify, g, request

from models import db
from models.booking import Booking, BOOKING_STATUSES, STATUS_CANCELLED, STATUS_CONFIRMED, STATUS_CONFLICT_PAID
from models.payment import Payment
from models.user import User, ACCOUNT_APPROVED, ACCOUNT_PENDING, ACCOUNT_REJECTED
from security.admin_policy import require_admin
from utils.audit import log_event
from utils.cancellation import refund_percentage
from utils.notifications import dispatch_events, enqueue_account_decision, enqueue_booking_cancelled

admin_bp = Blueprint("admin", __name__, url_prefix="/admin")

ACCOUNT_STATUSES = (ACCOUNT_PENDING, ACCOUNT_APPROVED, ACCOUNT_REJECTED)


def _account_payload(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "account_status": user.account_status,
        "validation_notes": user.validation_notes,
        "validated_at": user.validated_at.isoformat() if user.validated_at else None,
        "created_at": user.created_at.isoformat(),
    }


def _admin_booking_payload(b: Booking) -> dict:
    item = b.to_dict()
    item["user_id"] = b.user_id
    item["user_email"] = b.user.email if b.user else None
    item["payment_intent_id"] = b.payment_intent_id
    return item


# ---------- accounts: approval workflow ----------
@admin_bp.get("/accounts")
@require_admin
def list_accounts():
    status = request.args.get("status")
    q = User.query
    if status:
        if status not in ACCOUNT_STATUSES:
            return jsonify(error="Unknown account status"), 400
        q = q.filter_by(account_status=status)
    users = q.order_by(User.created_at.desc()).limit(200).all()
    return jsonify([_account_payload(u) for u in users]), 200


def _decide_account(user_id: int, approved: bool):
    data = request.get_json(silent=True) or {}
    notes = (data.get("notes") or "").strip()[:255] or None

    user = db.session.get(User, user_id)
    if not user:
        return jsonify(error="User not found"), 404

    user.account_status = ACCOUNT_APPROVED if approved else ACCOUNT_REJECTED
    user.validation_notes = notes
    user.validated_at = datetime.utcnow()
    event = enqueue_account_decision(user, approved, notes)
    db.session.commit()

    log_event("ACCOUNT_APPROVED" if approved else "ACCOUNT_REJECTED",
              user_id=g.user.id, entity="user", entity_id=user.id, metadata={"notes": notes})
    dispatch_events([event])
    return jsonify(_account_payload(user)), 200


@admin_bp.post("/accounts/<int:user_id>/approve")
@require_admin
def approve_account(user_id: int):
    return _decide_account(user_id, approved=True)


@admin_bp.post("/accounts/<int:user_id>/reject")
@require_admin
def reject_account(user_id: int):
    return _decide_account(user_id, approved=False)


# ---------- bookings ----------
@admin_bp.get("/bookings")
@require_admin
def list_bookings():
    status = request.args.get("status")
    q = Booking.query
    if status:
        if status not in BOOKING_STATUSES:
            return jsonify(error="Unknown status"), 400
        q = q.filter_by(status=status)

    rows = q.order_by(Booking.date.desc(), Booking.created_at.desc()).limit(200).all()
    return jsonify([_admin_booking_payload(b) for b in rows]), 200


@admin_bp.get("/bookings/conflicts")
@require_admin
def list_conflicts():
    """Paid bookings whose slot was lost; each needs a manual refund or reassignment."""
    rows = (
        Booking.query
        .filter_by(status=STATUS_CONFLICT_PAID)
        .order_by(Booking.created_at.asc())
        .all()
    )
    out = []
    for b in rows:
        item = _admin_booking_payload(b)
        payment = db.session.get(Payment, b.payment_id) if b.payment_id else None
        item["customer_email"] = payment.customer_email if payment else None
        out.append(item)
    return jsonify(out), 200


@admin_bp.post("/bookings/<booking_id>/resolve-conflict")
@require_admin
def resolve_conflict(booking_id: str):
    data = request.get_json(silent=True) or {}
    resolution = (data.get("resolution") or "").strip()
    note = (data.get("note") or "").strip()[:200] or None

    if resolution not in ("refunded", "reassigned"):
        return jsonify(error="resolution must be 'refunded' or 'reassigned'"), 400

    booking = db.session.get(Booking, booking_id)
    if not booking:
        return jsonify(error="Booking not found"), 404
    if booking.status != STATUS_CONFLICT_PAID:
        return jsonify(error="Booking is not a paid conflict"), 400

    booking.status = STATUS_CANCELLED
    booking.cancelled_at = datetime.utcnow()
    booking.cancel_reason = f"conflict_{resolution}" + (f": {note}" if note else "")
    db.session.commit()

    log_event("BOOKING_CONFLICT_RESOLVED", user_id=g.user.id, entity="booking", entity_id=booking.id,
              metadata={"resolution": resolution, "note": note})
    return jsonify(_admin_booking_payload(booking)), 200


@admin_bp.post("/bookings/<booking_id>/cancel")
@require_admin
def admin_cancel_booking(booking_id: str):
    data = request.get_json(silent=True) or {}
    reason = (data.get("reason") or "").strip()[:255] or "Admin cancellation"

    booking = db.session.get(Booking, booking_id)
    if not booking:
        return jsonify(error="Booking not found"), 404
    if booking.status != STATUS_CONFIRMED:
        return jsonify(error="Booking not cancellable"), 400

    refund = refund_percentage(booking, datetime.now())
    booking.status = STATUS_CANCELLED
    booking.cancelled_at = datetime.utcnow()
    booking.cancel_reason = reason
    event = enqueue_booking_cancelled(booking, booking.user.email, refund)
    db.session.commit()

    log_event("ADMIN_BOOKING_CANCEL", user_id=g.user.id, entity="booking", entity_id=booking.id,
              metadata={"reason": reason, "refund_percentage": refund})
    dispatch_events([event])
    return jsonify(message="Cancelled by admin", refund_percentage=refund, booking=_admin_booking_payload(booking)), 200
