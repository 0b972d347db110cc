import hashlib
import hmac
import json
import time
from datetime import date, timedelta

import pytest

from app import create_app
from models import db as _db
from models.booking import Booking, STATUS_CONFIRMED
from models.user import User, ACCOUNT_APPROVED, ACCOUNT_PENDING
from security.password import hash_password
from utils.payments import StripeGateway

WEBHOOK_SECRET = "whsec_test_secret"
PASSWORD = "correct-horse-battery"
ADMIN_EMAIL = "admin@theraspace.test"


class FakeGateway(StripeGateway):
    """Records checkout sessions instead of calling Stripe; signature checks stay real."""

    def __init__(self):
        super().__init__(api_key=None)
        self.sessions = []
        self.fail = False

    def create_checkout_session(self, line_items, success_url, cancel_url, customer_email, metadata):
        if self.fail:
            raise RuntimeError("stripe unavailable")
        session_id = f"cs_test_{len(self.sessions) + 1}"
        self.sessions.append({
            "id": session_id,
            "line_items": line_items,
            "success_url": success_url,
            "cancel_url": cancel_url,
            "customer_email": customer_email,
            "metadata": metadata,
        })
        return {"id": session_id, "url": f"https://checkout.stripe.test/{session_id}"}


class ApiClient:
    """Test client that sends the CSRF header on state-changing requests."""

    def __init__(self, client, csrf_token=None):
        self.client = client
        self.csrf_token = csrf_token

    def get(self, url, **kwargs):
        return self.client.get(url, **kwargs)

    def post(self, url, json=None, **kwargs):
        headers = dict(kwargs.pop("headers", {}) or {})
        if self.csrf_token:
            headers.setdefault("X-CSRF-Token", self.csrf_token)
        return self.client.post(url, json=json, headers=headers, **kwargs)


@pytest.fixture
def app():
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": "sqlite://",
        "STRIPE_WEBHOOK_SECRET": WEBHOOK_SECRET,
        "ADMIN_EMAILS": ADMIN_EMAIL,
        "SITE_URL": "https://theraspace.test",
        "SMTP_HOST": None,
    })
    app.extensions["payment_gateway"] = FakeGateway()

    with app.app_context():
        _db.create_all()
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def db(app):
    return _db


@pytest.fixture
def gateway(app):
    return app.extensions["payment_gateway"]


@pytest.fixture
def sent_emails(monkeypatch):
    sent = []

    def fake_send(to_email, subject, body):
        sent.append({"to": to_email, "subject": subject, "body": body})
        return True, None

    monkeypatch.setattr("utils.notifications.send_email", fake_send)
    return sent


def make_user(email, status=ACCOUNT_APPROVED, first_name="Alice", last_name="Martin"):
    user = User(
        email=email,
        password_hash=hash_password(PASSWORD, rounds=4),
        first_name=first_name,
        last_name=last_name,
        account_status=status,
    )
    _db.session.add(user)
    _db.session.commit()
    return user


def login(app, email) -> ApiClient:
    client = app.test_client()
    resp = client.post("/auth/login", json={"email": email, "password": PASSWORD})
    assert resp.status_code == 200, resp.get_json()
    return ApiClient(client, resp.get_json()["csrf_token"])


def add_booking(user, day, slot, room, status=STATUS_CONFIRMED, price=50, **kwargs):
    booking = Booking(user_id=user.id, date=day, slot=slot, room=room, price=price, status=status, **kwargs)
    _db.session.add(booking)
    _db.session.commit()
    return booking


def future(days=30) -> date:
    return date.today() + timedelta(days=days)


def signed_webhook(client, event: dict, secret=WEBHOOK_SECRET, timestamp=None):
    payload = json.dumps(event)
    timestamp = timestamp or int(time.time())
    signature = hmac.new(secret.encode("utf-8"), f"{timestamp}.{payload}".encode("utf-8"), hashlib.sha256).hexdigest()
    return client.post(
        "/webhooks/stripe",
        data=payload,
        headers={"Stripe-Signature": f"t={timestamp},v1={signature}", "Content-Type": "application/json"},
    )


def completed_event(session_id, metadata=None, payment_intent="pi_test_1", email="alice@example.com"):
    return {
        "id": "evt_test_completed",
        "type": "checkout.session.completed",
        "data": {"object": {
            "id": session_id,
            "object": "checkout.session",
            "payment_intent": payment_intent,
            "customer_email": email,
            "metadata": metadata or {},
        }},
    }


@pytest.fixture
def user(app):
    return make_user("alice@example.com")


@pytest.fixture
def other_user(app):
    return make_user("bob@example.com", first_name="Bob", last_name="Durand")


@pytest.fixture
def pending_user(app):
    return make_user("carol@example.com", status=ACCOUNT_PENDING, first_name="Carol")


@pytest.fixture
def admin(app):
    return make_user(ADMIN_EMAIL, first_name="Admin")


@pytest.fixture
def user_client(app, user):
    return login(app, user.email)


@pytest.fixture
def admin_client(app, admin):
    return login(app, admin.email)
