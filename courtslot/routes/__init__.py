from .health import health_bp
from .courts import court_bp as courts_bp
from .cart import cart_bp
from .booking import booking_bp as bookings_bp
from .waitlist import waitlist_bp
from .admin import admin_bp
