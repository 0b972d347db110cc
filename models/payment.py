from datetime import datetime
from models.db import db

class Payment(db.Model):
    __tablename__ = "payments"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    provider = db.Column(db.String(20), nullable=False, default="STRIPE")
    amount = db.Column(db.Integer, nullable=False)   # euros, sum of the cart lines
    currency = db.Column(db.String(10), nullable=False, default="eur")

    status = db.Column(db.String(20), nullable=False, default="INIT")  # INIT, PAID, FAILED
    stripe_session_id = db.Column(db.String(255), nullable=True, unique=True, index=True)
    payment_intent_id = db.Column(db.String(255), nullable=True)

    customer_email = db.Column(db.String(255), nullable=True)
    customer_name = db.Column(db.String(160), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    paid_at = db.Column(db.DateTime, nullable=True)

    bookings = db.relationship("Booking", backref="payment", lazy=True)
