from datetime import datetime

from flask import Blueprint, request, jsonify, current_app, g

from models import db
from models.booking import Booking, BOOKING_STATUSES, STATUS_CANCELLED, STATUS_CONFIRMED
from utils.audit import log_event
from utils.auth_context import login_required
from utils.cancellation import can_cancel, refund_percentage
from utils.notifications import dispatch_events, enqueue_booking_cancelled

bookings_bp = Blueprint("bookings", __name__, url_prefix="/bookings")


# ---------- view my bookings ----------
@bookings_bp.get("/me")
@login_required
def my_bookings():
    status = request.args.get("status")
    q = Booking.query.filter_by(user_id=g.user.id)
    if status:
        if status not in BOOKING_STATUSES:
            return jsonify(error="Unknown status"), 400
        q = q.filter_by(status=status)

    rows = q.order_by(Booking.date.desc(), Booking.created_at.desc()).all()
    now = datetime.now()
    min_days = current_app.config.get("CANCEL_MIN_DAYS", 7)

    out = []
    for b in rows:
        item = b.to_dict()
        item["can_cancel"] = b.status == STATUS_CONFIRMED and can_cancel(b, now, min_days)
        if b.status == STATUS_CONFIRMED:
            item["access_code"] = b.access_code
        out.append(item)
    return jsonify(out), 200


# ---------- cancel (policy window) ----------
@bookings_bp.post("/<booking_id>/cancel")
@login_required
def cancel_booking(booking_id: str):
    data = request.get_json(silent=True) or {}
    reason = (data.get("reason") or "").strip()[:255] or None

    booking = db.session.get(Booking, booking_id)
    if not booking or booking.user_id != g.user.id:
        return jsonify(error="Booking not found"), 404

    if booking.status != STATUS_CONFIRMED:
        return jsonify(error="Booking not cancellable"), 400

    now = datetime.now()
    min_days = current_app.config.get("CANCEL_MIN_DAYS", 7)
    if not can_cancel(booking, now, min_days):
        return jsonify(error=f"Cancellation only possible more than {min_days} days before the booking"), 403

    refund = refund_percentage(booking, now)
    booking.status = STATUS_CANCELLED
    booking.cancelled_at = datetime.utcnow()
    booking.cancel_reason = reason
    event = enqueue_booking_cancelled(booking, g.user.email, refund)
    db.session.commit()

    log_event("BOOKING_CANCEL", user_id=g.user.id, entity="booking", entity_id=booking.id,
              metadata={"reason": reason, "refund_percentage": refund})
    dispatch_events([event])
    return jsonify(message="Cancelled", refund_percentage=refund, booking=booking.to_dict()), 200
