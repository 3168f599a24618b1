from courtslot.models.db import db
from courtslot.utils import clock

class Court(db.Model):
    __tablename__ = "courts"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False, unique=True)
    location = db.Column(db.String(160), nullable=True)
    description = db.Column(db.Text, nullable=True)

    # price per hour in the smallest currency unit, fed to the pricing collaborator
    hourly_rate = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=lambda: clock.now(), nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "location": self.location,
            "description": self.description,
            "hourly_rate": self.hourly_rate,
            "is_active": self.is_active,
        }
