import logging

import click
from flask import Flask, request, g, jsonify
from flask_migrate import Migrate

from config import Config
from models import db
from models.booking import Booking, STATUS_CONFLICT_PAID
from routes import (
    health_bp,
    auth_bp,
    availability_bp,
    checkout_bp,
    bookings_bp,
    webhook_bp,
    admin_bp,
)
from security.admin_policy import AdminPolicy
from security.csrf import require_csrf
from utils.auth_context import load_current_user
from utils.errors import BookingError
from utils.notifications import dispatch_pending
from utils.payments import StripeGateway


CSRF_EXEMPT_PATHS = {
    "/auth/login",
    "/auth/register",
    "/health",
    "/webhooks/stripe",
}


def create_app(config_overrides=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    app.logger.setLevel(getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO))

    # Register routes
    app.register_blueprint(health_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(availability_bp)
    app.register_blueprint(checkout_bp)
    app.register_blueprint(bookings_bp)
    app.register_blueprint(webhook_bp)
    app.register_blueprint(admin_bp)

    # Database init
    db.init_app(app)

    # Migrations
    Migrate(app, db)

    # Collaborators, replaceable in tests
    app.extensions["payment_gateway"] = StripeGateway(app.config.get("STRIPE_SECRET_KEY"))
    app.extensions["admin_policy"] = AdminPolicy.from_config(app.config)

    @app.before_request
    def _load_user():
        load_current_user()

    @app.before_request
    def _csrf_protect():
        # Only protect state-changing requests
        if request.method in ("POST", "PUT", "PATCH", "DELETE"):
            if request.path in CSRF_EXEMPT_PATHS:
                return None

            # Only enforce CSRF if user is already authenticated (cookie session)
            if getattr(g, "user", None) is not None:
                failure = require_csrf()
                if failure:
                    return failure

    @app.errorhandler(BookingError)
    def _booking_error(exc):
        if exc.status_code >= 500:
            app.logger.error("%s: %s", type(exc).__name__, exc.to_dict())
        return jsonify(exc.to_dict()), exc.status_code

    @app.after_request
    def add_security_headers(resp):
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"
        resp.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"
        resp.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
        return resp

    register_cli(app)

    return app

#-------------------------

def register_cli(app):
    @app.cli.command("dispatch-notifications")
    @click.option("--limit", default=100, show_default=True, help="Maximum events to deliver.")
    @click.option("--retry-failed", is_flag=True, help="Also retry events that failed before.")
    def dispatch_notifications(limit, retry_failed):
        """Deliver queued booking and account emails."""
        counts = dispatch_pending(limit=limit, retry_failed=retry_failed)
        click.echo(f"sent={counts['sent']} failed={counts['failed']}")

    @app.cli.command("list-conflicts")
    def list_conflicts():
        """Print paid bookings that lost their slot and need a manual refund."""
        rows = Booking.query.filter_by(status=STATUS_CONFLICT_PAID).order_by(Booking.created_at.asc()).all()
        if not rows:
            click.echo("No paid conflicts")
            return
        for b in rows:
            click.echo(f"{b.id}  {b.date.isoformat()}  {b.slot:<9}  {b.room:<5}  {b.price}€  "
                       f"user={b.user_id}  payment={b.payment_intent_id or '-'}")

#-------------------------


if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5002)
