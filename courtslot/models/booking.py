import secrets

from courtslot.models.db import db
from courtslot.utils import clock

class Booking(db.Model):
    __tablename__ = "bookings"

    STATUS_PENDING = "pending"
    STATUS_APPROVED = "approved"
    STATUS_REJECTED = "rejected"
    STATUS_CANCELLED = "cancelled"
    STATUS_COMPLETED = "completed"
    STATUS_CHECKED_IN = "checked_in"

    # statuses that occupy the court
    BLOCKING_STATUSES = (STATUS_PENDING, STATUS_APPROVED, STATUS_CHECKED_IN, STATUS_COMPLETED)
    # the slot is definitively gone
    CONFIRMED_STATUSES = (STATUS_APPROVED, STATUS_CHECKED_IN, STATUS_COMPLETED)

    ATTENDANCE_STATUSES = ("not_set", "showed_up", "no_show")

    id = db.Column(db.Integer, primary_key=True)

    court_id = db.Column(db.Integer, db.ForeignKey("courts.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    booking_for_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    booking_for_user_name = db.Column(db.String(120), nullable=True)

    # weak references: the cart and waitlist entry are looked up by id, never owned
    cart_transaction_id = db.Column(db.Integer, db.ForeignKey("cart_transactions.id"), nullable=True, index=True)
    booking_waitlist_id = db.Column(db.Integer, nullable=True, index=True)

    sport = db.Column(db.String(60), nullable=True)
    start_time = db.Column(db.DateTime, nullable=False, index=True)
    end_time = db.Column(db.DateTime, nullable=False)

    total_price = db.Column(db.Integer, nullable=False, default=0)
    number_of_players = db.Column(db.Integer, nullable=False, default=1)

    status = db.Column(db.String(20), nullable=False, default=STATUS_PENDING, index=True)

    payment_method = db.Column(db.String(20), nullable=False, default="pending")
    payment_status = db.Column(db.String(20), nullable=False, default="unpaid")
    paid_at = db.Column(db.DateTime, nullable=True)
    proof_of_payment = db.Column(db.String(255), nullable=True)

    qr_code = db.Column(db.String(120), nullable=True, unique=True, index=True)
    checked_in_at = db.Column(db.DateTime, nullable=True)
    attendance_status = db.Column(db.String(20), nullable=False, default="not_set")
    attendance_scan_count = db.Column(db.Integer, nullable=False, default=0)

    notes = db.Column(db.Text, nullable=True)
    cancelled_at = db.Column(db.DateTime, nullable=True)
    cancel_reason = db.Column(db.String(500), nullable=True)

    created_at = db.Column(db.DateTime, default=lambda: clock.now(), nullable=False)
    updated_at = db.Column(db.DateTime, default=lambda: clock.now(), onupdate=lambda: clock.now(), nullable=False)

    __table_args__ = (
        db.Index("ix_bookings_court_window", "court_id", "start_time", "end_time"),
    )

    user = db.relationship("User", foreign_keys=[user_id])
    booking_for_user = db.relationship("User", foreign_keys=[booking_for_user_id])
    court = db.relationship("Court")
    cart = db.relationship("CartTransaction", back_populates="bookings")

    @property
    def is_confirmed(self) -> bool:
        return self.status in self.CONFIRMED_STATUSES

    @property
    def recipient_email(self):
        # the player the booking is for gets the mail, else whoever booked it
        if self.booking_for_user is not None and self.booking_for_user.email:
            return self.booking_for_user.email
        return self.user.email if self.user else None

    def generate_qr_code(self) -> str:
        if not self.qr_code:
            self.qr_code = f"BK{self.id}_{int(clock.now().timestamp())}_{secrets.token_hex(8)}"
        return self.qr_code

    def append_note(self, text: str):
        self.notes = f"{self.notes}\n\n{text}" if self.notes else text

    def to_dict(self):
        return {
            "id": self.id,
            "court_id": self.court_id,
            "user_id": self.user_id,
            "booking_for_user_id": self.booking_for_user_id,
            "booking_for_user_name": self.booking_for_user_name,
            "cart_transaction_id": self.cart_transaction_id,
            "booking_waitlist_id": self.booking_waitlist_id,
            "sport": self.sport,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "total_price": self.total_price,
            "number_of_players": self.number_of_players,
            "status": self.status,
            "payment_status": self.payment_status,
            "attendance_status": self.attendance_status,
            "attendance_scan_count": self.attendance_scan_count,
            "qr_code": self.qr_code if self.is_confirmed else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "cancelled_at": self.cancelled_at.isoformat() if self.cancelled_at else None,
        }
