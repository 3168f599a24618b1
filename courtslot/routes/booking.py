from flask import Blueprint, request, jsonify, g

from courtslot.models.booking import Booking
from courtslot.models.cart_transaction import CartTransaction
from courtslot.services import approvals, effects
from courtslot.utils.auth_context import login_required

booking_bp = Blueprint("booking", __name__)


# ---------- PLAYERS: cancel booking (policy window) ----------
@booking_bp.post("/bookings/<int:booking_id>/cancel")
@login_required
def cancel_booking(booking_id: int):
    data = request.get_json(silent=True) or {}
    reason = (data.get("reason") or "").strip() or None

    outcome = effects.run(approvals.cancel_booking(booking_id, g.user, reason))
    return jsonify(outcome.to_dict()), 200


# ---------- PLAYERS: view my bookings ----------
@booking_bp.get("/bookings/me")
@login_required
def my_bookings():
    # optional: status filter
    status = request.args.get("status")
    q = Booking.query.filter_by(user_id=g.user.id)
    if status:
        q = q.filter_by(status=status)

    rows = q.order_by(Booking.start_time.desc()).all()
    return jsonify([b.to_dict() for b in rows]), 200


@booking_bp.get("/transactions/me")
@login_required
def my_transactions():
    rows = (
        CartTransaction.query
        .filter(
            CartTransaction.user_id == g.user.id,
            CartTransaction.status != CartTransaction.STATUS_PENDING,
        )
        .order_by(CartTransaction.created_at.desc())
        .all()
    )
    return jsonify([t.to_dict() for t in rows]), 200
