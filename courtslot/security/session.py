import hashlib
import secrets
from datetime import timedelta
from flask import current_app, has_request_context, request

from courtslot.models import db
from courtslot.models.session import Session
from courtslot.utils import clock

def _hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()

def create_session(user_id: int) -> str:
    """
    Issues a session for an already authenticated user and returns the raw
    cookie value. Sign-in itself happens in the auth service.
    """
    raw_token = secrets.token_urlsafe(32)
    lifetime = current_app.config.get("SESSION_LIFETIME_SECONDS", 28800)

    row = Session(
        user_id=user_id,
        token_hash=_hash_token(raw_token),
        expires_at=clock.now() + timedelta(seconds=lifetime),
    )
    if has_request_context():
        row.ip = request.headers.get("X-Forwarded-For", request.remote_addr)
        row.user_agent = (request.headers.get("User-Agent") or "")[:255] or None

    db.session.add(row)
    db.session.commit()
    return raw_token

def get_session_from_request():
    raw_token = request.cookies.get(current_app.config.get("AUTH_COOKIE_NAME", "courtslot_session"))
    if not raw_token:
        return None

    sess = Session.query.filter_by(token_hash=_hash_token(raw_token)).first()
    now = clock.now()
    if sess is None or not sess.is_live(now, current_app.config.get("IDLE_TIMEOUT_SECONDS", 1200)):
        return None

    sess.touch(now)
    db.session.commit()
    return sess
