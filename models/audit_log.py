from datetime import datetime
from models.db import db

class AuditLog(db.Model):
    __tablename__ = "audit_logs"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, nullable=True)  # null for webhook and CLI events
    action = db.Column(db.String(80), nullable=False)  # e.g. CHECKOUT_CREATED, BOOKING_CONFLICT_PAID
    entity = db.Column(db.String(80), nullable=True)   # e.g. booking, payment
    entity_id = db.Column(db.String(80), nullable=True)

    ip = db.Column(db.String(64), nullable=True)
    metadata_json = db.Column(db.Text, nullable=True)

    timestamp = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
