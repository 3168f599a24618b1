from sqlalchemy.exc import IntegrityError

from flask import Blueprint, request, jsonify, g

from courtslot.models import db
from courtslot.models.court import Court
from courtslot.security.rbac import require_roles
from courtslot.services import calendar
from courtslot.services.intervals import parse_date
from courtslot.utils.auth_context import login_required
from courtslot.utils.audit import log_event

court_bp = Blueprint("court", __name__, url_prefix="/courts")


# ---------- STAFF/ADMIN: manage courts ----------
@court_bp.post("")
@require_roles("ADMIN", "STAFF")
def create_court():
    data = request.get_json(silent=True) or {}
    name = (data.get("name") or "").strip()
    location = (data.get("location") or "").strip() or None
    description = (data.get("description") or "").strip() or None
    try:
        hourly_rate = int(data.get("hourly_rate") or 0)
    except (TypeError, ValueError):
        return jsonify(error="hourly_rate must be an integer"), 400

    if not name:
        return jsonify(error="Court name required"), 400
    if hourly_rate < 0:
        return jsonify(error="hourly_rate cannot be negative"), 400

    c = Court(name=name, location=location, description=description, hourly_rate=hourly_rate)
    db.session.add(c)
    try:
        db.session.flush()
    except IntegrityError:
        db.session.rollback()
        return jsonify(error="Court name already exists"), 409

    log_event("COURT_CREATE", user_id=g.user.id, entity="court", entity_id=c.id)
    db.session.commit()
    return jsonify(c.to_dict()), 201


@court_bp.patch("/<int:court_id>")
@require_roles("ADMIN")
def update_court(court_id: int):
    court = db.session.get(Court, court_id)
    if not court:
        return jsonify(error="Court not found"), 404

    data = request.get_json(silent=True) or {}
    if "hourly_rate" in data:
        try:
            court.hourly_rate = int(data["hourly_rate"])
        except (TypeError, ValueError):
            return jsonify(error="hourly_rate must be an integer"), 400
    if "is_active" in data:
        court.is_active = bool(data["is_active"])
    for field in ("location", "description"):
        if field in data:
            setattr(court, field, (data[field] or "").strip() or None)

    log_event("COURT_UPDATE", user_id=g.user.id, entity="court", entity_id=court.id, metadata=data)
    db.session.commit()
    return jsonify(court.to_dict()), 200


# ---------- PLAYERS: browse courts ----------
@court_bp.get("")
@login_required
def list_courts():
    courts = Court.query.filter_by(is_active=True).order_by(Court.name).all()
    return jsonify([c.to_dict() for c in courts]), 200


@court_bp.get("/<int:court_id>/availability")
@login_required
def availability(court_id: int):
    court = db.session.get(Court, court_id)
    if not court or not court.is_active:
        return jsonify(error="Court not found"), 404

    date_str = request.args.get("date")
    if not date_str:
        return jsonify(error="date required (YYYY-MM-DD)"), 400
    day = parse_date(date_str)

    return jsonify(court=court.to_dict(), date=day.isoformat(), slots=calendar.availability(court, day)), 200
