import secrets

from flask import Blueprint, request, jsonify, current_app, g

from models import db
from models.user import User
from security.csrf import issue_csrf_token
from security.password import hash_password, verify_password
from security.session import create_session, revoke_session
from security.admin_policy import get_admin_policy
from utils.audit import log_event
from utils.auth_context import login_required
from utils.notifications import dispatch_events, enqueue_account_pending_review

auth_bp = Blueprint("auth", __name__, url_prefix="/auth")

MIN_PASSWORD_LENGTH = 10


def _is_valid_email(email: str) -> bool:
    return isinstance(email, str) and "@" in email and len(email) <= 255


def _clean_name(value):
    if value is None:
        return None
    if not isinstance(value, str) or len(value.strip()) > 80:
        raise ValueError
    return value.strip() or None


def _user_payload(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "account_status": user.account_status,
        "is_admin": get_admin_policy().is_authorized(user),
    }


@auth_bp.post("/register")
def register():
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""

    if not _is_valid_email(email):
        return jsonify(error="Invalid email"), 400
    if len(password) < MIN_PASSWORD_LENGTH:
        return jsonify(error=f"Password must be at least {MIN_PASSWORD_LENGTH} characters"), 400
    try:
        first_name = _clean_name(data.get("first_name"))
        last_name = _clean_name(data.get("last_name"))
    except ValueError:
        return jsonify(error="Invalid name"), 400

    if User.query.filter_by(email=email).first():
        log_event("REGISTER_FAIL_EMAIL_EXISTS", metadata={"email": email})
        return jsonify(error="Email already registered"), 409

    user = User(
        email=email,
        password_hash=hash_password(password),
        first_name=first_name,
        last_name=last_name,
    )
    db.session.add(user)
    db.session.flush()
    events = enqueue_account_pending_review(user, get_admin_policy().allowed_emails)
    db.session.commit()
    log_event("REGISTER_SUCCESS", user_id=user.id)
    dispatch_events(events)

    return jsonify(message="Registered successfully", account_status=user.account_status), 201


@auth_bp.post("/login")
def login():
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""

    user = User.query.filter_by(email=email).first()
    if not user or not verify_password(password, user.password_hash):
        log_event("LOGIN_FAIL", user_id=user.id if user else None, metadata={"email": email})
        return jsonify(error="Invalid credentials"), 401

    raw_token = create_session(user.id)
    cookie_name = current_app.config.get("AUTH_COOKIE_NAME", "theraspace_session")

    # returned in the body as well for clients that cannot read cookies
    csrf_token = secrets.token_urlsafe(32)
    resp = jsonify(message="Login OK", user=_user_payload(user), csrf_token=csrf_token)
    resp.set_cookie(
        cookie_name,
        raw_token,
        httponly=True,
        secure=current_app.config.get("SESSION_COOKIE_SECURE", False),
        samesite=current_app.config.get("SESSION_COOKIE_SAMESITE", "Lax"),
        max_age=current_app.config.get("SESSION_LIFETIME_SECONDS", 8 * 60 * 60),
        path="/",
    )
    issue_csrf_token(resp, csrf_token)

    log_event("LOGIN_SUCCESS", user_id=user.id)
    return resp, 200


@auth_bp.get("/me")
@login_required
def me():
    return jsonify(_user_payload(g.user)), 200


@auth_bp.post("/logout")
@login_required
def logout():
    cookie_name = current_app.config.get("AUTH_COOKIE_NAME", "theraspace_session")
    revoke_session(request.cookies.get(cookie_name))
    log_event("LOGOUT", user_id=g.user.id)

    resp = jsonify(message="Logged out")
    resp.delete_cookie(cookie_name, path="/")
    return resp, 200
