from courtslot.models.db import db
from courtslot.utils import clock

class CartTransaction(db.Model):
    __tablename__ = "cart_transactions"

    STATUS_PENDING = "pending"
    STATUS_COMPLETED = "completed"
    STATUS_CANCELLED = "cancelled"
    STATUS_EXPIRED = "expired"

    APPROVAL_PENDING = "pending"
    APPROVAL_APPROVED = "approved"
    APPROVAL_REJECTED = "rejected"

    PAYMENT_UNPAID = "unpaid"
    PAYMENT_PAID = "paid"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    booking_for_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    booking_for_user_name = db.Column(db.String(120), nullable=True)

    total_price = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(db.String(20), nullable=False, default=STATUS_PENDING, index=True)
    approval_status = db.Column(db.String(20), nullable=False, default=APPROVAL_PENDING, index=True)

    payment_method = db.Column(db.String(20), nullable=False, default="pending")
    payment_status = db.Column(db.String(20), nullable=False, default=PAYMENT_UNPAID)
    payment_reference = db.Column(db.String(120), nullable=True)
    proof_of_payment = db.Column(db.String(255), nullable=True)  # stored path, not the bytes
    paid_at = db.Column(db.DateTime, nullable=True)

    approved_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    approved_at = db.Column(db.DateTime, nullable=True)
    rejection_reason = db.Column(db.String(500), nullable=True)

    attendance_status = db.Column(db.String(20), nullable=False, default="not_set")

    # set when the cart was spawned by a waitlist promotion
    booking_waitlist_id = db.Column(db.Integer, nullable=True, index=True)

    created_at = db.Column(db.DateTime, default=lambda: clock.now(), nullable=False)
    updated_at = db.Column(db.DateTime, default=lambda: clock.now(), onupdate=lambda: clock.now(), nullable=False)

    user = db.relationship("User", foreign_keys=[user_id])
    items = db.relationship(
        "CartItem",
        back_populates="cart",
        cascade="all, delete-orphan",
        order_by="CartItem.start_at",
    )
    bookings = db.relationship("Booking", back_populates="cart", order_by="Booking.start_time")

    @property
    def pending_items(self):
        return [i for i in self.items if i.status == "pending"]

    def recalculate_total(self):
        self.total_price = sum(i.price for i in self.pending_items)
        return self.total_price

    def to_dict(self, with_items=True):
        data = {
            "id": self.id,
            "user_id": self.user_id,
            "total_price": self.total_price,
            "status": self.status,
            "approval_status": self.approval_status,
            "payment_method": self.payment_method,
            "payment_status": self.payment_status,
            "paid_at": self.paid_at.isoformat() if self.paid_at else None,
            "approved_at": self.approved_at.isoformat() if self.approved_at else None,
            "rejection_reason": self.rejection_reason,
            "booking_waitlist_id": self.booking_waitlist_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
        if with_items:
            data["items"] = [i.to_dict() for i in self.items if i.status != "cancelled"]
            data["booking_ids"] = [b.id for b in self.bookings]
        return data
