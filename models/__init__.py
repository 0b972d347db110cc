from .db import db
from .user import User
from .session import Session
from .payment import Payment
from .booking import Booking
from .notification_event import NotificationEvent
from .audit_log import AuditLog
