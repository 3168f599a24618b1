from .db import db
from .user import User, Role, user_roles
from .audit_log import AuditLog
from .session import Session
from .court import Court
from .holiday import Holiday
from .cart_transaction import CartTransaction
from .cart_item import CartItem
from .booking import Booking
from .waitlist_entry import WaitlistEntry
