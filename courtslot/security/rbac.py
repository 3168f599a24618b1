from functools import wraps
from flask import g

from courtslot.models.user import LEVEL_ADMIN, LEVEL_STAFF
from courtslot.services.errors import AuthenticationError, AuthorizationError

def require_roles(*role_names: str):
    """
    Route guard on role names, e.g. @require_roles("ADMIN", "STAFF").
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            user = getattr(g, "user", None)
            if user is None:
                raise AuthenticationError("Authentication required")
            if not user.role_names.intersection(role_names):
                raise AuthorizationError("Forbidden")
            return fn(*args, **kwargs)
        return wrapper
    return decorator

def ensure_role(actor, *levels: str):
    """Service-level guard: raises AuthorizationError unless actor.role is one of `levels`."""
    if actor is None or actor.role not in levels:
        raise AuthorizationError("You are not allowed to do this")

def ensure_staff(actor):
    ensure_role(actor, LEVEL_STAFF, LEVEL_ADMIN)

def ensure_admin(actor):
    ensure_role(actor, LEVEL_ADMIN)
