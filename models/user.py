from datetime import datetime
from models.db import db

ACCOUNT_PENDING = "pending"
ACCOUNT_APPROVED = "approved"
ACCOUNT_REJECTED = "rejected"


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)

    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    first_name = db.Column(db.String(80), nullable=True)
    last_name = db.Column(db.String(80), nullable=True)

    # professionals are reviewed by an admin before they may book
    account_status = db.Column(db.String(20), nullable=False, default=ACCOUNT_PENDING)
    validation_notes = db.Column(db.String(255), nullable=True)
    validated_at = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    @property
    def display_name(self) -> str:
        parts = [p for p in (self.first_name, self.last_name) if p]
        return " ".join(parts) or self.email

    @property
    def is_approved(self) -> bool:
        return self.account_status == ACCOUNT_APPROVED
