from datetime import datetime, timedelta
from sqlalchemy.exc import IntegrityError

from flask import Blueprint, jsonify, g, request

from courtslot.models import db
from courtslot.models.audit_log import AuditLog
from courtslot.models.booking import Booking
from courtslot.models.cart_transaction import CartTransaction
from courtslot.models.holiday import Holiday
from courtslot.security.rbac import require_roles
from courtslot.services import approvals, effects
from courtslot.services.intervals import parse_date
from courtslot.utils.audit import log_event

admin_bp = Blueprint("admin", __name__, url_prefix="/admin")


def _reason():
    data = request.get_json(silent=True) or {}
    return (data.get("reason") or "").strip() or None


# ---------- STAFF/ADMIN: review queue ----------
@admin_bp.get("/transactions/pending")
@require_roles("ADMIN", "STAFF")
def pending_transactions():
    rows = (
        CartTransaction.query
        .filter(
            CartTransaction.status == CartTransaction.STATUS_COMPLETED,
            CartTransaction.approval_status == CartTransaction.APPROVAL_PENDING,
        )
        .order_by(CartTransaction.created_at.asc())
        .limit(200)
        .all()
    )
    return jsonify([t.to_dict() for t in rows]), 200


@admin_bp.get("/bookings")
@require_roles("ADMIN", "STAFF")
def list_bookings():
    status = request.args.get("status")
    court_id = request.args.get("court_id", type=int)
    date_str = request.args.get("date")  # YYYY-MM-DD

    q = Booking.query
    if status:
        q = q.filter(Booking.status == status)
    if court_id:
        q = q.filter(Booking.court_id == court_id)
    if date_str:
        day = parse_date(date_str)
        start = datetime(day.year, day.month, day.day)
        q = q.filter(Booking.start_time >= start, Booking.start_time < start + timedelta(days=1))

    rows = q.order_by(Booking.start_time.asc()).limit(200).all()
    return jsonify([b.to_dict() for b in rows]), 200


# ---------- STAFF/ADMIN: approve / reject ----------
@admin_bp.post("/bookings/<int:booking_id>/approve")
@require_roles("ADMIN", "STAFF")
def approve_booking(booking_id: int):
    outcome = effects.run(approvals.approve_booking(booking_id, g.user))
    return jsonify(outcome.to_dict()), 200


@admin_bp.post("/bookings/<int:booking_id>/reject")
@require_roles("ADMIN", "STAFF")
def reject_booking(booking_id: int):
    outcome = effects.run(approvals.reject_booking(booking_id, g.user, _reason()))
    return jsonify(outcome.to_dict()), 200


@admin_bp.post("/transactions/<int:cart_id>/approve")
@require_roles("ADMIN", "STAFF")
def approve_transaction(cart_id: int):
    outcome = effects.run(approvals.approve_cart(cart_id, g.user))
    return jsonify(outcome.to_dict()), 200


@admin_bp.post("/transactions/<int:cart_id>/reject")
@require_roles("ADMIN", "STAFF")
def reject_transaction(cart_id: int):
    outcome = effects.run(approvals.reject_cart(cart_id, g.user, _reason()))
    return jsonify(outcome.to_dict()), 200


# ---------- STAFF/ADMIN: front desk ----------
@admin_bp.post("/check-in")
@require_roles("ADMIN", "STAFF")
def check_in():
    data = request.get_json(silent=True) or {}
    outcome = effects.run(approvals.check_in(data.get("qr_code"), g.user))
    return jsonify(outcome.to_dict()), 200


@admin_bp.post("/bookings/<int:booking_id>/attendance")
@require_roles("ADMIN")
def update_attendance(booking_id: int):
    data = request.get_json(silent=True) or {}
    outcome = effects.run(approvals.update_attendance(booking_id, g.user, data.get("attendance_status")))
    return jsonify(outcome.to_dict()), 200


# ---------- ADMIN: holidays ----------
@admin_bp.get("/holidays")
@require_roles("ADMIN", "STAFF")
def list_holidays():
    rows = Holiday.query.order_by(Holiday.date.asc()).all()
    return jsonify([{"id": h.id, "date": h.date.isoformat(), "name": h.name} for h in rows]), 200


@admin_bp.post("/holidays")
@require_roles("ADMIN")
def create_holiday():
    data = request.get_json(silent=True) or {}
    name = (data.get("name") or "").strip()
    if not name or not data.get("date"):
        return jsonify(error="date and name are required"), 400

    holiday = Holiday(date=parse_date(data["date"]), name=name)
    db.session.add(holiday)
    try:
        db.session.flush()
    except IntegrityError:
        db.session.rollback()
        return jsonify(error="Holiday already exists for that date"), 409

    log_event("HOLIDAY_CREATE", user_id=g.user.id, entity="holiday", entity_id=holiday.id)
    db.session.commit()
    return jsonify(id=holiday.id, date=holiday.date.isoformat(), name=holiday.name), 201


@admin_bp.delete("/holidays/<int:holiday_id>")
@require_roles("ADMIN")
def delete_holiday(holiday_id: int):
    holiday = db.session.get(Holiday, holiday_id)
    if not holiday:
        return jsonify(error="Holiday not found"), 404
    db.session.delete(holiday)
    log_event("HOLIDAY_DELETE", user_id=g.user.id, entity="holiday", entity_id=holiday_id)
    db.session.commit()
    return jsonify(message="Deleted"), 200


# ---------- ADMIN: audit trail ----------
@admin_bp.get("/audit-logs")
@require_roles("ADMIN")
def list_audit_logs():
    limit = request.args.get("limit", type=int) or 200
    limit = max(1, min(limit, 500))

    q = AuditLog.query
    for field in ("action", "entity", "entity_id"):
        value = request.args.get(field)
        if value:
            q = q.filter(getattr(AuditLog, field) == value)
    user_id = request.args.get("user_id", type=int)
    if user_id is not None:
        q = q.filter(AuditLog.user_id == user_id)

    rows = q.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc()).limit(limit).all()
    return jsonify([r.to_dict() for r in rows]), 200
