"""
Row-level access to the bookings table.

Every write commits a single row. A cart is never wrapped in one
transaction, so callers must surface partial results themselves.
"""
from datetime import date, datetime
from typing import Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from models import db
from models.booking import Booking, BOOKING_STATUSES, STATUS_CANCELLED, STATUS_CONFIRMED, STATUS_PENDING
from utils.errors import StoreError


def query_confirmed_bookings(day: date) -> List[Booking]:
    return (
        Booking.query
        .filter(Booking.date == day, Booking.status == STATUS_CONFIRMED)
        .all()
    )


def insert_pending_bookings(rows: Iterable[dict]) -> List[Booking]:
    """
    Inserts one pending_payment row per dict, committing each on its own.

    On failure the rows inserted so far are attached to the raised
    StoreError as `inserted` so the caller can compensate.
    """
    inserted: List[Booking] = []
    for index, row in enumerate(rows):
        booking = Booking(status=STATUS_PENDING, **row)
        db.session.add(booking)
        try:
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            err = StoreError("Could not save booking", line=index)
            err.inserted = inserted
            raise err from exc
        inserted.append(booking)
    return inserted


def update_booking_status(booking_id: str, new_status: str, payment_ref: Optional[str] = None,
                          reason: Optional[str] = None) -> Booking:
    if new_status not in BOOKING_STATUSES:
        raise ValueError(f"Unknown booking status {new_status!r}")

    booking = db.session.get(Booking, booking_id)
    if booking is None:
        raise StoreError("Booking not found", booking_id=booking_id)

    now = datetime.utcnow()
    booking.status = new_status
    if payment_ref:
        booking.payment_intent_id = payment_ref
    if new_status == STATUS_CONFIRMED:
        booking.confirmed_at = now
    elif new_status == STATUS_CANCELLED:
        booking.cancelled_at = now
        booking.cancel_reason = reason

    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StoreError("Could not update booking", booking_id=booking_id) from exc
    return booking


def find_bookings_by_session_id(session_id: str) -> List[Booking]:
    if not session_id:
        return []
    return (
        Booking.query
        .filter_by(checkout_session_id=session_id)
        .order_by(Booking.date.asc(), Booking.created_at.asc())
        .all()
    )


def find_bookings_by_payment_id(payment_id: int) -> List[Booking]:
    return (
        Booking.query
        .filter_by(payment_id=payment_id)
        .order_by(Booking.date.asc(), Booking.created_at.asc())
        .all()
    )
