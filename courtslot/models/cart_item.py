from courtslot.models.db import db
from courtslot.utils import clock

class CartItem(db.Model):
    __tablename__ = "cart_items"

    STATUS_PENDING = "pending"
    STATUS_APPROVED = "approved"
    STATUS_REJECTED = "rejected"
    STATUS_CANCELLED = "cancelled"
    STATUS_COMPLETED = "completed"
    STATUS_EXPIRED = "expired"

    id = db.Column(db.Integer, primary_key=True)
    cart_transaction_id = db.Column(
        db.Integer, db.ForeignKey("cart_transactions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    court_id = db.Column(db.Integer, db.ForeignKey("courts.id"), nullable=False, index=True)
    sport = db.Column(db.String(60), nullable=True)

    # what the user asked for ...
    booking_date = db.Column(db.Date, nullable=False)
    start_time = db.Column(db.Time, nullable=False)
    end_time = db.Column(db.Time, nullable=False)
    # ... and the normalised absolute interval every comparison uses
    start_at = db.Column(db.DateTime, nullable=False, index=True)
    end_at = db.Column(db.DateTime, nullable=False)

    price = db.Column(db.Integer, nullable=False, default=0)
    number_of_players = db.Column(db.Integer, nullable=False, default=1)

    status = db.Column(db.String(20), nullable=False, default=STATUS_PENDING, index=True)

    booking_waitlist_id = db.Column(db.Integer, nullable=True)
    booking_for_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    booking_for_user_name = db.Column(db.String(120), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, default=lambda: clock.now(), nullable=False)

    cart = db.relationship("CartTransaction", back_populates="items")
    court = db.relationship("Court")

    def to_dict(self):
        return {
            "id": self.id,
            "cart_transaction_id": self.cart_transaction_id,
            "court_id": self.court_id,
            "sport": self.sport,
            "booking_date": self.booking_date.isoformat(),
            "start_time": self.start_time.strftime("%H:%M"),
            "end_time": self.end_time.strftime("%H:%M"),
            "start_at": self.start_at.isoformat(),
            "end_at": self.end_at.isoformat(),
            "price": self.price,
            "number_of_players": self.number_of_players,
            "status": self.status,
            "booking_for_user_id": self.booking_for_user_id,
            "booking_for_user_name": self.booking_for_user_name,
        }
