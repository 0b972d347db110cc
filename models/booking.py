import uuid
from datetime import datetime
from models.db import db

# Slot shapes and rooms bookable in the practice
SLOTS = ("morning", "afternoon", "fullday")
ROOMS = ("room1", "room2", "large")

STATUS_PENDING = "pending_payment"
STATUS_CONFIRMED = "confirmed"
STATUS_CANCELLED = "cancelled"
STATUS_CONFLICT_PAID = "conflict_paid"
BOOKING_STATUSES = (STATUS_PENDING, STATUS_CONFIRMED, STATUS_CANCELLED, STATUS_CONFLICT_PAID)


class Booking(db.Model):
    __tablename__ = "bookings"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    payment_id = db.Column(db.Integer, db.ForeignKey("payments.id"), nullable=True, index=True)

    date = db.Column(db.Date, nullable=False, index=True)
    slot = db.Column(db.String(16), nullable=False)
    room = db.Column(db.String(16), nullable=False)
    price = db.Column(db.Integer, nullable=False)  # euros, from the pricing table only

    status = db.Column(db.String(20), nullable=False, default=STATUS_PENDING, index=True)
    # status values: pending_payment, confirmed, cancelled, conflict_paid

    payment_intent_id = db.Column(db.String(255), nullable=True, index=True)
    checkout_session_id = db.Column(db.String(255), nullable=True, index=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    confirmed_at = db.Column(db.DateTime, nullable=True)
    cancelled_at = db.Column(db.DateTime, nullable=True)
    cancel_reason = db.Column(db.String(255), nullable=True)

    user = db.relationship("User", backref=db.backref("bookings", lazy=True))

    __table_args__ = (
        db.CheckConstraint("price >= 0", name="ck_booking_price_non_negative"),
        db.Index("ix_bookings_date_status", "date", "status"),
    )

    @property
    def access_code(self) -> str:
        return (self.id or "")[:6].upper()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "date": self.date.isoformat(),
            "slot": self.slot,
            "room": self.room,
            "price": self.price,
            "status": self.status,
            "checkout_session_id": self.checkout_session_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "confirmed_at": self.confirmed_at.isoformat() if self.confirmed_at else None,
            "cancelled_at": self.cancelled_at.isoformat() if self.cancelled_at else None,
            "cancel_reason": self.cancel_reason,
        }
