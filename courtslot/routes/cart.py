from flask import Blueprint, request, jsonify, g

from courtslot.services import cart as cart_service
from courtslot.services import committer, effects, resolver
from courtslot.services.outcomes import TimeSlotRequest, Waitlisted
from courtslot.utils.auth_context import login_required

cart_bp = Blueprint("cart", __name__)


# ---------- PLAYERS: build a cart ----------
@cart_bp.post("/cart/items")
@login_required
def add_item():
    data = request.get_json(silent=True) or {}
    outcome = effects.run(resolver.submit_reservation_request(g.user, TimeSlotRequest.from_dict(data)))
    code = 202 if isinstance(outcome, Waitlisted) else 201
    return jsonify(outcome.to_dict()), code


@cart_bp.get("/cart")
@login_required
def view_cart():
    items = cart_service.list_pending_items(g.user)
    return jsonify(
        items=[i.to_dict() for i in items],
        total_price=sum(i.price for i in items),
    ), 200


@cart_bp.get("/cart/count")
@login_required
def count_items():
    return jsonify(count=cart_service.count_pending_items(g.user)), 200


@cart_bp.delete("/cart/items/<int:item_id>")
@login_required
def remove_item(item_id: int):
    outcome = effects.run(cart_service.remove_item(item_id, g.user))
    return jsonify(outcome.to_dict()), 200


@cart_bp.delete("/cart")
@login_required
def clear_cart():
    outcome = effects.run(cart_service.clear_cart(g.user))
    return jsonify(outcome.to_dict()), 200


# ---------- PLAYERS: checkout + payment ----------
@cart_bp.post("/cart/checkout")
@login_required
def checkout():
    data = request.get_json(silent=True) or {}
    cart_id = data.get("cart_transaction_id")
    if not cart_id:
        latest = cart_service.latest_pending_cart(g.user.id)
        if latest is None:
            return jsonify(error="Cart is empty"), 400
        cart_id = latest.id
    try:
        cart_id = int(cart_id)
    except (TypeError, ValueError):
        return jsonify(error="cart_transaction_id must be an integer"), 400

    outcome = committer.checkout(
        cart_id,
        g.user,
        selected_item_ids=data.get("item_ids"),
        payment_method=data.get("payment_method") or "pending",
        payment_reference=data.get("payment_reference"),
        proof_of_payment=data.get("proof_of_payment"),
    )
    effects.run(outcome)
    return jsonify(outcome.to_dict()), 201


@cart_bp.post("/transactions/<int:cart_id>/payment")
@login_required
def submit_payment(cart_id: int):
    # JSON with a base64 / data-URL proof, or multipart with a "proof" file
    if request.files.get("proof"):
        data = request.form
        proof = request.files["proof"]
    else:
        data = request.get_json(silent=True) or {}
        proof = data.get("proof_of_payment")

    outcome = committer.submit_payment(
        cart_id,
        g.user,
        payment_method=data.get("payment_method") or "gcash",
        proof_of_payment=proof,
        payment_reference=data.get("payment_reference"),
    )
    effects.run(outcome)
    return jsonify(outcome.to_dict()), 200
