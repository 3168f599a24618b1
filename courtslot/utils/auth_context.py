from functools import wraps
from flask import g

from courtslot.security.session import get_session_from_request
from courtslot.services.errors import AuthenticationError

def load_current_user():
    """before_request hook: resolves the session cookie into g.session / g.user."""
    g.session = get_session_from_request()
    g.user = g.session.user if g.session is not None else None

def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if getattr(g, "user", None) is None:
            raise AuthenticationError("Authentication required")
        return fn(*args, **kwargs)
    return wrapper
