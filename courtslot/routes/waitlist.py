from flask import Blueprint, request, jsonify, g

from courtslot.models.waitlist_entry import WaitlistEntry
from courtslot.services import effects
from courtslot.services import waitlist as waitlist_service
from courtslot.utils.auth_context import login_required

waitlist_bp = Blueprint("waitlist", __name__, url_prefix="/waitlist")


@waitlist_bp.get("/me")
@login_required
def my_entries():
    q = WaitlistEntry.query.filter_by(user_id=g.user.id)
    status = request.args.get("status")
    if status:
        q = q.filter_by(status=status)
    rows = q.order_by(WaitlistEntry.created_at.desc()).all()
    return jsonify([e.to_dict() for e in rows]), 200


@waitlist_bp.post("/<int:entry_id>/cancel")
@login_required
def cancel_entry(entry_id: int):
    outcome = effects.run(waitlist_service.cancel_entry(entry_id, g.user))
    return jsonify(outcome.to_dict()), 200
