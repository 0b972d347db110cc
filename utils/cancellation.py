from datetime import date, datetime, timedelta

from models.booking import STATUS_CANCELLED

CANCEL_MIN_DAYS = 7
PARTIAL_REFUND_HOURS = 48


def _slot_start(booking_date: date) -> datetime:
    # booking dates are local calendar days, read as local midnight
    return datetime(booking_date.year, booking_date.month, booking_date.day)


def days_until(booking, now: datetime) -> float:
    return (_slot_start(booking.date) - now) / timedelta(days=1)


def can_cancel(booking, now: datetime, min_days: int = CANCEL_MIN_DAYS) -> bool:
    """A booking is cancellable while strictly more than `min_days` days remain."""
    if booking.status == STATUS_CANCELLED:
        return False
    return days_until(booking, now) > min_days


def refund_percentage(booking, now: datetime) -> int:
    """
    Refund tier advertised in the terms of sale:
    100% above 7 days, 50% between 7 days and 48 hours, nothing below 48 hours.
    Informational only; refunds are issued by an operator.
    """
    remaining = _slot_start(booking.date) - now
    if remaining > timedelta(days=CANCEL_MIN_DAYS):
        return 100
    if remaining >= timedelta(hours=PARTIAL_REFUND_HOURS):
        return 50
    return 0
