import json

from courtslot.models.db import db
from courtslot.utils import clock

class AuditLog(db.Model):
    """One row per state change in the reservation lifecycle, written in the same transaction."""
    __tablename__ = "audit_logs"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, nullable=True)  # None for sweeps
    action = db.Column(db.String(80), nullable=False)  # e.g. CART_ITEM_ADD, BOOKING_APPROVE
    entity = db.Column(db.String(80), nullable=True)   # booking, cart, cart_item, waitlist, court
    entity_id = db.Column(db.String(80), nullable=True)

    ip = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.String(255), nullable=True)
    metadata_json = db.Column(db.Text, nullable=True)

    timestamp = db.Column(db.DateTime, default=lambda: clock.now(), nullable=False)

    __table_args__ = (
        db.Index("ix_audit_logs_entity", "entity", "entity_id"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "user_id": self.user_id,
            "action": self.action,
            "entity": self.entity,
            "entity_id": self.entity_id,
            "metadata": json.loads(self.metadata_json) if self.metadata_json else None,
        }
