"""
Notification outbox.

State-changing code calls `enqueue_*` inside its own transaction; delivery
happens afterwards in `dispatch_pending`, where a failed send is recorded on
the outbox row and never touches the booking it announces.
"""
import json
from datetime import datetime

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from models import db
from models.notification_event import (
    NotificationEvent,
    EVENT_ACCOUNT_APPROVED,
    EVENT_ACCOUNT_PENDING_REVIEW,
    EVENT_ACCOUNT_REJECTED,
    EVENT_BOOKING_CANCELLED,
    EVENT_BOOKING_CONFIRMED,
)
from utils.emailer import send_email
from utils.pricing import ROOM_LABELS, SLOT_LABELS

MAX_ATTEMPTS = 5


def _enqueue(event_type, key, recipient, payload, booking_id=None, user_id=None):
    existing = NotificationEvent.query.filter_by(idempotency_key=key).first()
    if existing:
        return existing
    event = NotificationEvent(
        event_type=event_type,
        idempotency_key=key,
        recipient=recipient,
        booking_id=booking_id,
        user_id=user_id,
        payload_json=json.dumps(payload, default=str),
    )
    db.session.add(event)
    return event


def booking_details(booking, name=None) -> dict:
    return {
        "booking_id": booking.id,
        "date": booking.date.isoformat(),
        "slot": booking.slot,
        "room": booking.room,
        "price": booking.price,
        "access_code": booking.access_code,
        "name": name or (booking.user.display_name if booking.user else ""),
    }


def booking_confirmed_key(booking_id) -> str:
    return f"booking_confirmed:{booking_id}"


def enqueue_booking_confirmed(booking, recipient, name=None):
    return _enqueue(
        EVENT_BOOKING_CONFIRMED,
        booking_confirmed_key(booking.id),
        recipient,
        booking_details(booking, name),
        booking_id=booking.id,
        user_id=booking.user_id,
    )


def enqueue_booking_cancelled(booking, recipient, refund_percentage=None):
    payload = booking_details(booking)
    payload["refund_percentage"] = refund_percentage
    return _enqueue(
        EVENT_BOOKING_CANCELLED,
        f"booking_cancelled:{booking.id}",
        recipient,
        payload,
        booking_id=booking.id,
        user_id=booking.user_id,
    )


def enqueue_account_decision(user, approved: bool, notes=None):
    event_type = EVENT_ACCOUNT_APPROVED if approved else EVENT_ACCOUNT_REJECTED
    # a user may be reviewed more than once, key on the review timestamp
    stamp = (user.validated_at or datetime.utcnow()).isoformat()
    return _enqueue(
        event_type,
        f"{event_type.lower()}:{user.id}:{stamp}",
        user.email,
        {"name": user.display_name, "notes": notes},
        user_id=user.id,
    )


def enqueue_account_pending_review(user, admin_emails) -> list:
    """One event per admin address, so a bad mailbox does not hold back the others."""
    details = {
        "user_id": user.id,
        "name": user.display_name,
        "email": user.email,
        "registered_at": user.created_at.isoformat() if user.created_at else None,
    }
    return [
        _enqueue(
            EVENT_ACCOUNT_PENDING_REVIEW,
            f"account_pending_review:{user.id}:{admin_email}",
            admin_email,
            details,
            user_id=user.id,
        )
        for admin_email in sorted(admin_emails)
    ]


# ---------- message bodies ----------

def _labels(details):
    return SLOT_LABELS.get(details.get("slot"), details.get("slot")), ROOM_LABELS.get(details.get("room"), details.get("room"))


def send_booking_confirmed(email: str, details: dict):
    slot_label, room_label = _labels(details)
    site = current_app.config.get("SITE_URL", "").rstrip("/")
    body = (
        f"Bonjour {details.get('name', '')},\n\n"
        "Votre réservation est confirmée.\n\n"
        f"Date : {details['date']}\n"
        f"Créneau : {slot_label}\n"
        f"Salle : {room_label}\n"
        f"Prix : {details['price']}€\n\n"
        f"Code d'accès : {details['access_code']}\n\n"
        f"Voir vos réservations : {site}/mes-reservations\n"
    )
    return send_email(email, "Confirmation de votre réservation", body)


def send_booking_cancelled(email: str, details: dict):
    slot_label, room_label = _labels(details)
    body = (
        f"Bonjour {details.get('name', '')},\n\n"
        "Votre réservation a bien été annulée.\n\n"
        f"Date : {details['date']}\n"
        f"Créneau : {slot_label}\n"
        f"Salle : {room_label}\n"
    )
    if details.get("refund_percentage") is not None:
        body += f"\nRemboursement prévu : {details['refund_percentage']}%\n"
    return send_email(email, "Annulation de votre réservation", body)


def send_account_decision(email: str, details: dict, approved: bool):
    if approved:
        subject = "Votre compte a été validé"
        body = f"Bonjour {details.get('name', '')},\n\nVotre compte est validé, vous pouvez réserver une salle.\n"
    else:
        subject = "Votre compte n'a pas été validé"
        body = f"Bonjour {details.get('name', '')},\n\nVotre compte n'a pas pu être validé.\n"
        if details.get("notes"):
            body += f"\nMotif : {details['notes']}\n"
    return send_email(email, subject, body)


def send_account_pending_review(email: str, details: dict):
    site = current_app.config.get("SITE_URL", "").rstrip("/")
    body = (
        "Un nouveau compte attend votre validation.\n\n"
        f"Nom : {details.get('name', '')}\n"
        f"Email : {details.get('email', '')}\n"
        f"Inscrit le : {details.get('registered_at') or '-'}\n\n"
        f"Valider le compte : {site}/admin\n"
    )
    return send_email(email, "Nouveau compte à valider", body)


_SENDERS = {
    EVENT_BOOKING_CONFIRMED: send_booking_confirmed,
    EVENT_BOOKING_CANCELLED: send_booking_cancelled,
    EVENT_ACCOUNT_PENDING_REVIEW: send_account_pending_review,
    EVENT_ACCOUNT_APPROVED: lambda email, details: send_account_decision(email, details, True),
    EVENT_ACCOUNT_REJECTED: lambda email, details: send_account_decision(email, details, False),
}


def deliver(event: NotificationEvent) -> bool:
    sender = _SENDERS.get(event.event_type)
    details = json.loads(event.payload_json) if event.payload_json else {}
    event.attempts += 1

    if sender is None:
        sent, error = False, f"No sender for {event.event_type}"
    else:
        try:
            sent, error = sender(event.recipient, details)
        except Exception as exc:  # smtp, template or payload errors
            sent, error = False, str(exc)

    if sent:
        event.status = "SENT"
        event.sent_at = datetime.utcnow()
        event.last_error = None
    else:
        event.status = "FAILED"
        event.last_error = (error or "unknown error")[:500]
        current_app.logger.warning(
            "Notification %s (%s) not delivered: %s", event.id, event.event_type, event.last_error
        )
    return sent


def dispatch_pending(limit: int = 50, retry_failed: bool = False) -> dict:
    """Delivers queued notifications. Returns counts of sent and failed events."""
    statuses = ["PENDING", "FAILED"] if retry_failed else ["PENDING"]
    events = (
        NotificationEvent.query
        .filter(NotificationEvent.status.in_(statuses), NotificationEvent.attempts < MAX_ATTEMPTS)
        .order_by(NotificationEvent.created_at.asc())
        .limit(limit)
        .all()
    )

    return _deliver_all(events)


def dispatch_events(events) -> dict:
    """
    Delivers only the given events, typically the ones the current request
    just committed. Anything else stays queued for `flask dispatch-notifications`.
    """
    events = [e for e in events if e is not None and e.status == "PENDING"]
    return _deliver_all(events)


def _deliver_all(events) -> dict:
    counts = {"sent": 0, "failed": 0}
    for event in events:
        ok = deliver(event)
        counts["sent" if ok else "failed"] += 1
        try:
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.exception("Could not record delivery of notification %s", event.id)
    return counts
