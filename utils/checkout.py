"""
Cart checkout: validate every requested (date, slot, room) line, price it
server-side, persist pending_payment rows and open a Stripe Checkout Session.

Pending rows are written before the session is created so that a store
failure never leaves a payable session behind. If the payment provider then
fails, the pending rows are cancelled again.
"""
import json
from datetime import date, datetime
from typing import List

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from models import db
from models.booking import STATUS_CANCELLED
from models.payment import Payment
from utils.availability import is_available, validate_slot_room
from utils.booking_store import insert_pending_bookings, query_confirmed_bookings, update_booking_status
from utils.errors import PaymentProviderError, SlotConflictError, StoreError, ValidationError
from utils.payments import build_line_items
from utils.pricing import price_for


def parse_date(value) -> date:
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    try:
        return date.fromisoformat(str(value))
    except (TypeError, ValueError):
        raise ValidationError("Invalid date. Use YYYY-MM-DD", value=value)


def _text_field(line: dict, name: str, index: int) -> str:
    value = line.get(name)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError(f"Invalid {name}", line=index)
    return value.strip()


def parse_cart(lines, max_lines: int = None, today: date = None) -> List[dict]:
    """
    Normalizes raw cart lines into {date, slot, room} dicts.
    Any client-supplied price on a line is ignored.
    """
    if not isinstance(lines, list) or not lines:
        raise ValidationError("Cart is empty")
    if max_lines and len(lines) > max_lines:
        raise ValidationError(f"Cart is limited to {max_lines} bookings")

    today = today or date.today()
    parsed = []
    for index, line in enumerate(lines):
        if not isinstance(line, dict):
            raise ValidationError("Each cart line must be an object", line=index)
        day = parse_date(line.get("date"))
        slot = _text_field(line, "slot", index)
        room = _text_field(line, "room", index)
        validate_slot_room(slot, room)
        if day < today:
            raise ValidationError("Cannot book a past date", line=index, date=day.isoformat())
        parsed.append({"date": day, "slot": slot, "room": room})
    return parsed


def check_cart_availability(cart: List[dict]) -> None:
    """
    Re-runs the availability rules for every line against the confirmed
    bookings in the store. Earlier lines of the same cart count as taken.
    Raises SlotConflictError on the first line that cannot be booked.
    """
    confirmed_by_day = {}
    for index, line in enumerate(cart):
        day = line["date"]
        if day not in confirmed_by_day:
            confirmed_by_day[day] = [(b.slot, b.room) for b in query_confirmed_bookings(day)]

        if not is_available(confirmed_by_day[day], line["slot"], line["room"]):
            raise SlotConflictError(
                "Slot no longer available",
                line=index,
                date=day.isoformat(),
                slot=line["slot"],
                room=line["room"],
            )
        confirmed_by_day[day].append((line["slot"], line["room"]))


def _cancel_rows(rows, reason: str) -> None:
    for row in rows:
        try:
            update_booking_status(row.id, STATUS_CANCELLED, reason=reason)
        except StoreError:
            current_app.logger.exception("Could not cancel pending booking %s", row.id)


def create_checkout(user, lines, customer_email: str, customer_name: str, gateway) -> dict:
    cfg = current_app.config
    cart = parse_cart(lines, max_lines=cfg.get("MAX_CART_LINES"))
    check_cart_availability(cart)

    for line in cart:
        line["price"] = price_for(line["slot"], line["room"])
    total = sum(line["price"] for line in cart)
    currency = cfg.get("CURRENCY", "eur")

    payment = Payment(
        user_id=user.id,
        provider="STRIPE",
        amount=total,
        currency=currency,
        status="INIT",
        customer_email=customer_email,
        customer_name=customer_name,
    )
    db.session.add(payment)
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StoreError("Could not start checkout") from exc

    try:
        rows = insert_pending_bookings(
            {"user_id": user.id, "payment_id": payment.id, **line} for line in cart
        )
    except StoreError as exc:
        _cancel_rows(getattr(exc, "inserted", []), "checkout_failed")
        payment.status = "FAILED"
        db.session.commit()
        current_app.logger.error("Checkout %s aborted while saving bookings: %s", payment.id, exc.details)
        raise

    site = cfg.get("SITE_URL", "").rstrip("/")
    metadata = {
        "payment_id": str(payment.id),
        "user_id": str(user.id),
        # full detail lives in the pending rows; metadata values are size limited
        "dates": json.dumps(sorted({line["date"].isoformat() for line in cart})),
    }

    try:
        session = gateway.create_checkout_session(
            line_items=build_line_items(rows, currency),
            success_url=f"{site}/reservation/success?session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{site}/reservation/cancel",
            customer_email=customer_email,
            metadata=metadata,
        )
    except Exception as exc:
        current_app.logger.exception("Payment session creation failed for checkout %s", payment.id)
        _cancel_rows(rows, "checkout_failed")
        payment.status = "FAILED"
        db.session.commit()
        raise PaymentProviderError("Payment service unavailable") from exc

    payment.stripe_session_id = session["id"]
    for row in rows:
        row.checkout_session_id = session["id"]
    try:
        db.session.commit()
    except SQLAlchemyError:
        # the webhook still finds the rows through metadata.payment_id
        db.session.rollback()
        current_app.logger.error(
            "Payment session %s created but not recorded on checkout %s", session["id"], payment.id
        )

    return {
        "session_id": session["id"],
        "url": session["url"],
        "payment_id": payment.id,
        "total": total,
        "currency": currency,
        "bookings": [row.to_dict() for row in rows],
    }
