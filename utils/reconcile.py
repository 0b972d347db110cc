"""
Turns a completed Stripe Checkout Session into confirmed bookings.

Each pending row is re-checked against the bookings confirmed *now*. Rows
whose slot was taken in the meantime become conflict_paid: the money has
been captured but no reservation exists, and an operator has to refund or
reassign by hand. Rows that already left pending_payment are left alone so a
redelivered event is a no-op.
"""
import json
from datetime import datetime
from typing import List, Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from models import db
from models.booking import (
    Booking,
    STATUS_CANCELLED,
    STATUS_CONFIRMED,
    STATUS_CONFLICT_PAID,
    STATUS_PENDING,
)
from models.payment import Payment
from models.user import User
from utils.audit import log_event
from utils.availability import is_available
from utils.booking_store import (
    find_bookings_by_payment_id,
    find_bookings_by_session_id,
    query_confirmed_bookings,
    update_booking_status,
)
from utils.checkout import parse_date
from utils.errors import StoreError, ValidationError
from utils.notifications import enqueue_booking_confirmed
from utils.pricing import price_for

OUTCOME_CONFIRMED = "confirmed"
OUTCOME_CONFLICT = "conflict_paid"
OUTCOME_UNCHANGED = "unchanged"
OUTCOME_NOT_FOUND = "not_found"
OUTCOME_ERROR = "error"


def _find_payment(session_id: Optional[str], metadata: dict) -> Optional[Payment]:
    payment = None
    payment_id = metadata.get("payment_id")
    if payment_id and str(payment_id).isdigit():
        payment = db.session.get(Payment, int(payment_id))
    if payment is None and session_id:
        payment = Payment.query.filter_by(stripe_session_id=session_id).first()
    return payment


def _result(booking, outcome: str, **extra) -> dict:
    out = {
        "booking_id": booking.id if booking is not None else None,
        "date": booking.date.isoformat() if booking is not None else extra.pop("date", None),
        "outcome": outcome,
    }
    out.update(extra)
    return out


def _settle_row(booking: Booking, payment_reference: Optional[str], recipient: Optional[str],
                name: Optional[str]) -> dict:
    if booking.status != STATUS_PENDING:
        return _result(booking, OUTCOME_UNCHANGED, status=booking.status)

    # the row is still pending, so it is not part of the confirmed set
    confirmed = query_confirmed_bookings(booking.date)
    if is_available(confirmed, booking.slot, booking.room):
        booking.status = STATUS_CONFIRMED
        booking.confirmed_at = datetime.utcnow()
        booking.payment_intent_id = payment_reference
        enqueue_booking_confirmed(booking, recipient or booking.user.email, name)
        outcome = OUTCOME_CONFIRMED
    else:
        booking.status = STATUS_CONFLICT_PAID
        booking.payment_intent_id = payment_reference
        outcome = OUTCOME_CONFLICT

    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Could not settle booking %s", booking.id)
        return _result(booking, OUTCOME_ERROR)

    if outcome == OUTCOME_CONFLICT:
        current_app.logger.warning(
            "Paid booking %s lost its slot (%s %s %s), manual refund required",
            booking.id, booking.date.isoformat(), booking.slot, booking.room,
        )
        log_event(
            "BOOKING_CONFLICT_PAID",
            user_id=booking.user_id,
            entity="booking",
            entity_id=booking.id,
            metadata={"payment_reference": payment_reference, "session": booking.checkout_session_id},
        )
    else:
        log_event("BOOKING_CONFIRMED", user_id=booking.user_id, entity="booking", entity_id=booking.id)
    return _result(booking, outcome)


def _settle_legacy(metadata: dict, payment_reference: Optional[str], recipient: Optional[str],
                   session_id: Optional[str]) -> List[dict]:
    """
    Single-slot sessions created before cart checkout: the booking is built
    from the session metadata, with the price taken from the pricing table.
    """
    user_id = metadata.get("user_id") or metadata.get("userId")
    slot = metadata.get("slot")
    room = metadata.get("room")

    dates = []
    if metadata.get("dates"):
        try:
            dates = json.loads(metadata["dates"])
        except (TypeError, ValueError):
            current_app.logger.error("Unreadable dates metadata on session %s", session_id)
            dates = []
    elif metadata.get("date"):
        dates = [metadata["date"]]

    user = db.session.get(User, int(user_id)) if user_id and str(user_id).isdigit() else None
    if user is None or not dates or not slot or not room:
        return [_result(None, OUTCOME_NOT_FOUND, date=None)]

    name = metadata.get("name") or user.display_name
    results = []
    for raw in dates:
        try:
            day = parse_date(raw)
            price = price_for(slot, room)
        except ValidationError as exc:
            results.append(_result(None, OUTCOME_ERROR, date=str(raw), error=exc.message))
            continue

        existing = None
        if session_id:
            existing = Booking.query.filter_by(checkout_session_id=session_id, date=day).first()
        if existing is None and payment_reference:
            existing = Booking.query.filter_by(payment_intent_id=payment_reference, date=day).first()
        if existing is not None:
            results.append(_result(existing, OUTCOME_UNCHANGED, status=existing.status))
            continue

        booking = Booking(
            user_id=user.id,
            date=day,
            slot=slot,
            room=room,
            price=price,
            status=STATUS_PENDING,
            checkout_session_id=session_id,
        )
        db.session.add(booking)
        try:
            db.session.flush()
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.exception("Could not record legacy booking for %s", day)
            results.append(_result(None, OUTCOME_ERROR, date=day.isoformat()))
            continue
        results.append(_settle_row(booking, payment_reference, recipient or user.email, name))
    return results


def reconcile_checkout_session(session_id: Optional[str], payment_reference: Optional[str],
                               customer_email: Optional[str], metadata: Optional[dict]) -> dict:
    """
    Settles every booking tied to a completed checkout session.

    Returns {"session_id", "results": [{booking_id, date, outcome}], "warning"?}.
    A session with no bookings yields a single not_found result; that is
    final for this delivery and is not retried.
    """
    metadata = metadata or {}
    payment = _find_payment(session_id, metadata)

    rows = find_bookings_by_session_id(session_id)
    if not rows and payment is not None:
        rows = find_bookings_by_payment_id(payment.id)

    recipient = customer_email or (payment.customer_email if payment else None)
    name = payment.customer_name if payment else None

    if rows:
        results = [_settle_row(row, payment_reference, recipient, name) for row in rows]
    elif metadata.get("slot") and metadata.get("room"):
        results = _settle_legacy(metadata, payment_reference, recipient, session_id)
    else:
        current_app.logger.error("No bookings found for paid session %s", session_id)
        log_event("PAYMENT_BOOKINGS_NOT_FOUND", entity="payment",
                  entity_id=payment.id if payment else session_id,
                  metadata={"session": session_id})
        results = [_result(None, OUTCOME_NOT_FOUND, date=None)]

    if payment is not None and payment.status != "PAID":
        payment.status = "PAID"
        payment.paid_at = datetime.utcnow()
        payment.payment_intent_id = payment_reference
        if session_id and not payment.stripe_session_id:
            payment.stripe_session_id = session_id
        db.session.commit()

    out = {"session_id": session_id, "results": results}
    problems = [r for r in results if r["outcome"] in (OUTCOME_CONFLICT, OUTCOME_NOT_FOUND, OUTCOME_ERROR)]
    if problems:
        out["warning"] = "Some bookings could not be confirmed"
    return out


def expire_checkout_session(session_id: Optional[str], metadata: Optional[dict]) -> dict:
    """Releases the pending rows of a checkout session Stripe let expire."""
    metadata = metadata or {}
    payment = _find_payment(session_id, metadata)

    rows = find_bookings_by_session_id(session_id)
    if not rows and payment is not None:
        rows = find_bookings_by_payment_id(payment.id)

    released = 0
    for row in rows:
        if row.status != STATUS_PENDING:
            continue
        try:
            update_booking_status(row.id, STATUS_CANCELLED, reason="payment_expired")
            released += 1
        except StoreError:
            current_app.logger.exception("Could not release pending booking %s", row.id)

    if payment is not None and payment.status == "INIT":
        payment.status = "FAILED"
        db.session.commit()

    return {"session_id": session_id, "released": released}
