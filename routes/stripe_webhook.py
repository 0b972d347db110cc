import stripe
from flask import Blueprint, request, jsonify, current_app

from models.notification_event import NotificationEvent
from utils.audit import log_event
from utils.notifications import booking_confirmed_key, dispatch_events
from utils.reconcile import OUTCOME_CONFIRMED, expire_checkout_session, reconcile_checkout_session

webhook_bp = Blueprint("webhook", __name__, url_prefix="/webhooks")


@webhook_bp.post("/stripe")
def stripe_webhook():
    endpoint_secret = current_app.config.get("STRIPE_WEBHOOK_SECRET")
    sig_header = request.headers.get("Stripe-Signature")
    payload = request.get_data()

    if not endpoint_secret:
        current_app.logger.error("STRIPE_WEBHOOK_SECRET not configured")
        return jsonify(error="Webhook secret not configured"), 500

    if not sig_header:
        log_event("WEBHOOK_SIGNATURE_MISSING", entity="webhook")
        return jsonify(error="No signature"), 400

    gateway = current_app.extensions["payment_gateway"]
    try:
        event = gateway.construct_event(payload, sig_header, endpoint_secret)
    except (ValueError, stripe.SignatureVerificationError) as exc:
        current_app.logger.warning("Stripe webhook rejected: %s", exc)
        log_event("WEBHOOK_SIGNATURE_INVALID", entity="webhook")
        return jsonify(error="Invalid webhook signature"), 400

    event_type = event.get("type")
    session = (event.get("data") or {}).get("object") or {}
    session_id = session.get("id")
    meta = session.get("metadata") or {}

    if event_type == "checkout.session.completed":
        result = reconcile_checkout_session(
            session_id=session_id,
            payment_reference=session.get("payment_intent"),
            customer_email=session.get("customer_email")
            or (session.get("customer_details") or {}).get("email"),
            metadata=meta,
        )
        log_event(
            "PAYMENT_PAID",
            entity="checkout_session",
            entity_id=session_id,
            metadata={"outcomes": [r["outcome"] for r in result["results"]]},
        )
        if "warning" in result:
            current_app.logger.warning("Checkout session %s settled with problems: %s", session_id, result["results"])

        # confirmations are already committed; delivery problems stay on the outbox
        keys = [booking_confirmed_key(r["booking_id"]) for r in result["results"] if r["outcome"] == OUTCOME_CONFIRMED]
        if keys:
            dispatch_events(NotificationEvent.query.filter(NotificationEvent.idempotency_key.in_(keys)).all())
        return jsonify(received=True, **result), 200

    if event_type == "checkout.session.expired":
        result = expire_checkout_session(session_id, meta)
        log_event("PAYMENT_EXPIRED", entity="checkout_session", entity_id=session_id, metadata=result)
        return jsonify(received=True, **result), 200

    return jsonify(received=True), 200
