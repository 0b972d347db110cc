from .health import health_bp
from .auth import auth_bp
from .availability import availability_bp
from .checkout import checkout_bp
from .bookings import bookings_bp
from .stripe_webhook import webhook_bp
from .admin import admin_bp
