from flask import Blueprint, request, jsonify, current_app, g

from utils.audit import log_event
from utils.auth_context import approved_account_required
from utils.checkout import create_checkout

checkout_bp = Blueprint("checkout", __name__, url_prefix="/checkout")


@checkout_bp.post("/sessions")
@approved_account_required
def create_checkout_session():
    data = request.get_json(silent=True) or {}
    lines = data.get("items")
    email = (data.get("email") or g.user.email or "").strip().lower()
    name = (data.get("name") or g.user.display_name or "").strip()

    gateway = current_app.extensions["payment_gateway"]
    result = create_checkout(g.user, lines, email, name, gateway)

    log_event(
        "CHECKOUT_CREATED",
        user_id=g.user.id,
        entity="payment",
        entity_id=result["payment_id"],
        metadata={"stripe_session_id": result["session_id"], "lines": len(result["bookings"])},
    )
    return jsonify(result), 201
