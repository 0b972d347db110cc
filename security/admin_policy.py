from functools import wraps
from typing import Iterable

from flask import current_app, g, jsonify


class AdminPolicy:
    """Decides who may use the admin endpoints, from a configured email allowlist."""

    def __init__(self, allowed_emails: Iterable[str] = ()):
        self.allowed_emails = {e.strip().lower() for e in allowed_emails if e and e.strip()}

    @classmethod
    def from_config(cls, config) -> "AdminPolicy":
        raw = config.get("ADMIN_EMAILS") or ""
        if isinstance(raw, str):
            raw = raw.split(",")
        return cls(raw)

    def is_authorized(self, identity) -> bool:
        email = getattr(identity, "email", None) if identity is not None else None
        return bool(email) and email.strip().lower() in self.allowed_emails


def get_admin_policy() -> AdminPolicy:
    return current_app.extensions["admin_policy"]


def require_admin(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        user = getattr(g, "user", None)
        if user is None:
            return jsonify(error="Authentication required"), 401
        if not get_admin_policy().is_authorized(user):
            return jsonify(error="Forbidden"), 403
        return fn(*args, **kwargs)
    return wrapper
