import logging

from courtslot.models import db
from courtslot.models.user import Role, ROLE_ADMIN, ROLE_PLAYER, ROLE_STAFF

logger = logging.getLogger(__name__)

DEFAULT_ROLES = (ROLE_PLAYER, ROLE_STAFF, ROLE_ADMIN)

def seed_roles():
    """Creates whichever of PLAYER / STAFF / ADMIN is missing. Safe to call on every startup."""
    existing = {name for (name,) in db.session.query(Role.name)}
    missing = [name for name in DEFAULT_ROLES if name not in existing]
    if not missing:
        return
    db.session.add_all(Role(name=name) for name in missing)
    db.session.commit()
    logger.info("seeded roles: %s", ", ".join(missing))
