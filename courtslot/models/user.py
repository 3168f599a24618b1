from courtslot.models.db import db
from courtslot.utils import clock

ROLE_PLAYER = "PLAYER"
ROLE_STAFF = "STAFF"
ROLE_ADMIN = "ADMIN"

# requester levels used by the reservation engine
LEVEL_REGULAR = "regular"
LEVEL_STAFF = "staff"
LEVEL_ADMIN = "admin"

# association table for many-to-many User <-> Role
user_roles = db.Table(
    "user_roles",
    db.Column("user_id", db.Integer, db.ForeignKey("users.id"), primary_key=True),
    db.Column("role_id", db.Integer, db.ForeignKey("roles.id"), primary_key=True),
)

class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)

    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    full_name = db.Column(db.String(120), nullable=True)
    phone_number = db.Column(db.String(30), nullable=True)

    created_at = db.Column(db.DateTime, default=lambda: clock.now(), nullable=False)

    roles = db.relationship("Role", secondary=user_roles, back_populates="users")

    @property
    def role_names(self):
        return {r.name for r in self.roles}

    @property
    def role(self) -> str:
        names = self.role_names
        if ROLE_ADMIN in names:
            return LEVEL_ADMIN
        if ROLE_STAFF in names:
            return LEVEL_STAFF
        return LEVEL_REGULAR

    @property
    def is_privileged(self) -> bool:
        return self.role in (LEVEL_STAFF, LEVEL_ADMIN)

    @property
    def display_name(self) -> str:
        return self.full_name or self.email

class Role(db.Model):
    __tablename__ = "roles"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(50), unique=True, nullable=False)  # PLAYER, STAFF, ADMIN

    users = db.relationship("User", secondary=user_roles, back_populates="roles")
