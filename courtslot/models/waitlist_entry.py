from courtslot.models.db import db
from courtslot.utils import clock

class WaitlistEntry(db.Model):
    __tablename__ = "booking_waitlists"

    STATUS_PENDING = "pending"
    STATUS_NOTIFIED = "notified"
    STATUS_CONVERTED = "converted"
    STATUS_CANCELLED = "cancelled"
    STATUS_EXPIRED = "expired"

    OPEN_STATUSES = (STATUS_PENDING, STATUS_NOTIFIED)

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    court_id = db.Column(db.Integer, db.ForeignKey("courts.id"), nullable=False, index=True)
    sport = db.Column(db.String(60), nullable=True)

    start_time = db.Column(db.DateTime, nullable=False)
    end_time = db.Column(db.DateTime, nullable=False)
    price = db.Column(db.Integer, nullable=False, default=0)
    number_of_players = db.Column(db.Integer, nullable=False, default=1)

    # creation rank inside (court_id, start_time, end_time); never renumbered
    position = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(20), nullable=False, default=STATUS_PENDING, index=True)

    # what currently blocks this entry: a pending booking, or a pending cart that holds the slot
    pending_booking_id = db.Column(db.Integer, db.ForeignKey("bookings.id"), nullable=True, index=True)
    pending_cart_transaction_id = db.Column(db.Integer, db.ForeignKey("cart_transactions.id"), nullable=True, index=True)
    converted_cart_transaction_id = db.Column(db.Integer, db.ForeignKey("cart_transactions.id"), nullable=True)

    notified_at = db.Column(db.DateTime, nullable=True)
    expires_at = db.Column(db.DateTime, nullable=True)

    booking_for_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    booking_for_user_name = db.Column(db.String(120), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, default=lambda: clock.now(), nullable=False)

    __table_args__ = (
        db.UniqueConstraint("court_id", "start_time", "end_time", "position", name="uq_waitlist_slot_position"),
        db.Index("ix_waitlist_slot_status", "court_id", "start_time", "end_time", "status"),
    )

    user = db.relationship("User", foreign_keys=[user_id])

    @property
    def key(self):
        return (self.court_id, self.start_time, self.end_time)

    def to_dict(self):
        return {
            "id": self.id,
            "court_id": self.court_id,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "price": self.price,
            "position": self.position,
            "status": self.status,
            "pending_booking_id": self.pending_booking_id,
            "pending_cart_transaction_id": self.pending_cart_transaction_id,
            "converted_cart_transaction_id": self.converted_cart_transaction_id,
            "notified_at": self.notified_at.isoformat() if self.notified_at else None,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }
