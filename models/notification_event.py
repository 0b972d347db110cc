from datetime import datetime
from models.db import db

EVENT_BOOKING_CONFIRMED = "BOOKING_CONFIRMED"
EVENT_BOOKING_CANCELLED = "BOOKING_CANCELLED"
EVENT_ACCOUNT_APPROVED = "ACCOUNT_APPROVED"
EVENT_ACCOUNT_REJECTED = "ACCOUNT_REJECTED"
EVENT_ACCOUNT_PENDING_REVIEW = "ACCOUNT_PENDING_REVIEW"


class NotificationEvent(db.Model):
    """Outbox row written in the same transaction as the state change it announces."""

    __tablename__ = "notification_events"

    id = db.Column(db.Integer, primary_key=True)
    event_type = db.Column(db.String(40), nullable=False, index=True)
    # one event per (type, aggregate); a replayed webhook cannot enqueue a second email
    idempotency_key = db.Column(db.String(320), nullable=False, unique=True)

    recipient = db.Column(db.String(255), nullable=True)
    booking_id = db.Column(db.String(36), db.ForeignKey("bookings.id"), nullable=True, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    payload_json = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(20), nullable=False, default="PENDING", index=True)  # PENDING, SENT, FAILED
    attempts = db.Column(db.Integer, default=0, nullable=False)
    last_error = db.Column(db.String(500), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    sent_at = db.Column(db.DateTime, nullable=True)
