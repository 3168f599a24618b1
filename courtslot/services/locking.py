import logging
import threading
from contextlib import contextmanager

from flask import current_app

from courtslot.models import db
from courtslot.models.court import Court
from courtslot.services.errors import ConflictError

logger = logging.getLogger(__name__)

_registry_guard = threading.Lock()
_court_locks = {}
_local = threading.local()


def _lock_for(court_id: int):
    with _registry_guard:
        lock = _court_locks.get(court_id)
        if lock is None:
            lock = _court_locks[court_id] = threading.RLock()
        return lock


def depth() -> int:
    return getattr(_local, "depth", 0)


@contextmanager
def locked_transaction(*court_ids):
    """One unit of work holding every listed court.

    Courts are taken in ascending id order, in-process first and then as
    database row locks. Only the outermost scope commits or rolls back.
    """
    ids = sorted({int(c) for c in court_ids if c is not None})
    timeout = current_app.config.get("LOCK_TIMEOUT_SECONDS", 10)
    outer = depth()

    held = []
    try:
        for court_id in ids:
            lock = _lock_for(court_id)
            if not lock.acquire(timeout=timeout):
                logger.warning("lock timeout on court %s after %ss", court_id, timeout)
                raise ConflictError("Court is busy, please try again", conflict_type="court", conflict_id=court_id)
            held.append(lock)

        if outer == 0:
            # anything read before the locks were held may be stale
            db.session.expire_all()
        if ids:
            (
                Court.query
                .filter(Court.id.in_(ids))
                .order_by(Court.id)
                .with_for_update()
                .all()
            )

        _local.depth = outer + 1
        try:
            yield
            if outer == 0:
                db.session.commit()
        except Exception:
            if outer == 0:
                db.session.rollback()
            raise
        finally:
            _local.depth = outer
    finally:
        for lock in reversed(held):
            lock.release()
