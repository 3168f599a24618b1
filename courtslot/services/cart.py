import logging
from datetime import timedelta

from flask import current_app

from courtslot.models import db
from courtslot.models.booking import Booking
from courtslot.models.cart_item import CartItem
from courtslot.models.cart_transaction import CartTransaction
from courtslot.models.user import LEVEL_REGULAR
from courtslot.services import business_hours, effects, waitlist
from courtslot.services.errors import NotFoundError, StateError
from courtslot.services.locking import locked_transaction
from courtslot.services.outcomes import Cancelled, SweepReport
from courtslot.utils import clock
from courtslot.utils.audit import log_event

logger = logging.getLogger(__name__)


def _pending_carts(user_id):
    return (
        CartTransaction.query
        .filter_by(user_id=user_id, status=CartTransaction.STATUS_PENDING)
        .order_by(CartTransaction.created_at.desc(), CartTransaction.id.desc())
        .all()
    )


def latest_pending_cart(user_id, create=False):
    carts = _pending_carts(user_id)
    if carts:
        return carts[0]
    if not create:
        return None
    cart = CartTransaction(user_id=user_id, status=CartTransaction.STATUS_PENDING)
    db.session.add(cart)
    db.session.flush()
    return cart


def admit(requester, request, start, end, price):
    """Adds a line-item to the requester's latest pending cart. Caller holds the court lock."""
    cart = latest_pending_cart(requester.id, create=True)
    item = CartItem(
        cart=cart,
        user_id=requester.id,
        court_id=request.court_id,
        sport=request.sport,
        booking_date=start.date(),
        start_time=start.time(),
        end_time=end.time(),
        start_at=start,
        end_at=end,
        price=price,
        number_of_players=request.number_of_players,
        status=CartItem.STATUS_PENDING,
        booking_for_user_id=request.booking_for_user_id,
        booking_for_user_name=request.booking_for_user_name,
        notes=request.notes,
    )
    db.session.add(item)
    cart.recalculate_total()
    cart.updated_at = clock.now()
    db.session.flush()

    log_event(
        "CART_ITEM_ADD", user_id=requester.id, entity="cart_item", entity_id=item.id,
        metadata={"cart_id": cart.id, "court_id": item.court_id, "start": start, "end": end, "price": price},
    )
    return item, cart


def pending_items_query(user_id):
    return (
        CartItem.query
        .join(CartTransaction, CartItem.cart_transaction_id == CartTransaction.id)
        .filter(
            CartTransaction.user_id == user_id,
            CartTransaction.status == CartTransaction.STATUS_PENDING,
            CartItem.status == CartItem.STATUS_PENDING,
        )
    )


def list_pending_items(user):
    return pending_items_query(user.id).order_by(CartItem.start_at, CartItem.court_id).all()


def count_pending_items(user) -> int:
    return pending_items_query(user.id).count()


def _release_items(items, status):
    """Marks items and frees their slots for the waitlist. Returns (promoted, effects)."""
    promoted, out = [], []
    for item in items:
        item.status = status
    db.session.flush()
    for item in items:
        p, fx = waitlist.release_slot(item.court_id, item.start_at, item.end_at)
        promoted.extend(p)
        out.extend(fx)
    return promoted, out


def _close_if_empty(cart, status):
    if not cart.pending_items:
        cart.status = status
    cart.recalculate_total()


def remove_item(item_id, actor):
    item = db.session.get(CartItem, item_id)
    if item is None or (item.user_id != actor.id and not actor.is_privileged):
        raise NotFoundError("Cart item not found")

    with locked_transaction(item.court_id):
        item = db.session.get(CartItem, item_id, populate_existing=True, with_for_update=True)
        cart = item.cart
        if item.status != CartItem.STATUS_PENDING or cart.status != CartTransaction.STATUS_PENDING:
            raise StateError("Only items in an open cart can be removed")

        promoted, out = _release_items([item], CartItem.STATUS_CANCELLED)
        _close_if_empty(cart, CartTransaction.STATUS_CANCELLED)
        cart.updated_at = clock.now()
        log_event("CART_ITEM_REMOVE", user_id=actor.id, entity="cart_item", entity_id=item.id,
                  metadata={"cart_id": cart.id})

    return Cancelled("cart_item", item_id, promoted=promoted, effects=out)


def clear_cart(actor):
    carts = _pending_carts(actor.id)
    court_ids = {i.court_id for c in carts for i in c.pending_items}

    promoted, out, cleared = [], [], []
    with locked_transaction(*court_ids):
        for cart in _pending_carts(actor.id):
            p, fx = _release_items(cart.pending_items, CartItem.STATUS_CANCELLED)
            promoted.extend(p)
            out.extend(fx)
            cart.status = CartTransaction.STATUS_CANCELLED
            cart.recalculate_total()
            cleared.append(cart.id)
        if cleared:
            log_event("CART_CLEAR", user_id=actor.id, entity="cart", metadata={"cart_ids": cleared})

    return Cancelled("cart", cleared[0] if cleared else None, promoted=promoted, effects=out)


def expire_stale_carts(now=None):
    now = now or clock.now()
    cutoff = now - timedelta(minutes=current_app.config.get("CART_EXPIRY_MINUTES", 60))
    report = SweepReport("expire-carts")

    stale = (
        CartTransaction.query
        .filter(
            CartTransaction.status == CartTransaction.STATUS_PENDING,
            CartTransaction.updated_at < cutoff,
        )
        .order_by(CartTransaction.updated_at)
        .all()
    )

    for candidate in stale:
        if candidate.user is not None and candidate.user.role != LEVEL_REGULAR:
            continue
        court_ids = {i.court_id for i in candidate.pending_items}
        with locked_transaction(*court_ids):
            cart = db.session.get(CartTransaction, candidate.id, populate_existing=True, with_for_update=True)
            if cart.status != CartTransaction.STATUS_PENDING or cart.updated_at >= cutoff:
                continue

            promoted, out = _release_items(cart.pending_items, CartItem.STATUS_EXPIRED)
            cart.status = CartTransaction.STATUS_EXPIRED
            log_event("CART_EXPIRE", user_id=None, entity="cart", entity_id=cart.id)
            report.expired_ids.append(cart.id)
            report.promoted.extend(promoted)
            report.effects.extend(out)

    if report.expired_ids:
        logger.info("expired %d idle carts", len(report.expired_ids))
    return report


def expire_unpaid_transactions(now=None):
    """Checked-out carts nobody paid for within the business-hours deadline give their slots back."""
    now = now or clock.now()
    report = SweepReport("expire-transactions")

    candidates = (
        CartTransaction.query
        .filter(
            CartTransaction.status == CartTransaction.STATUS_COMPLETED,
            CartTransaction.approval_status == CartTransaction.APPROVAL_PENDING,
            CartTransaction.payment_status == CartTransaction.PAYMENT_UNPAID,
            CartTransaction.proof_of_payment.is_(None),
            CartTransaction.booking_waitlist_id.is_(None),
        )
        .order_by(CartTransaction.created_at)
        .all()
    )

    for candidate in candidates:
        if not business_hours.should_expire(candidate, now):
            continue
        court_ids = {b.court_id for b in candidate.bookings}
        with locked_transaction(*court_ids):
            cart = db.session.get(CartTransaction, candidate.id, populate_existing=True, with_for_update=True)
            if (
                cart.status != CartTransaction.STATUS_COMPLETED
                or cart.approval_status != CartTransaction.APPROVAL_PENDING
                or not business_hours.should_expire(cart, now)
            ):
                continue

            cart.status = CartTransaction.STATUS_EXPIRED
            cart.approval_status = CartTransaction.APPROVAL_REJECTED
            cart.rejection_reason = "Payment not received in time"
            for item in cart.items:
                if item.status == CartItem.STATUS_COMPLETED:
                    item.status = CartItem.STATUS_EXPIRED

            freed = []
            for booking in cart.bookings:
                if booking.status == Booking.STATUS_PENDING:
                    booking.status = Booking.STATUS_REJECTED
                    booking.cancel_reason = cart.rejection_reason
                    freed.append(booking)
                    report.effects.append(effects.broadcast(
                        "booking_status_changed", booking_id=booking.id, status=booking.status,
                    ))
            db.session.flush()

            for booking in freed:
                promoted, out = waitlist.release_slot(booking.court_id, booking.start_time, booking.end_time, now)
                report.promoted.extend(promoted)
                report.effects.extend(out)

            log_event("TRANSACTION_EXPIRE", user_id=None, entity="cart", entity_id=cart.id,
                      metadata={"bookings": [b.id for b in freed]})
            report.expired_ids.append(cart.id)

    if report.expired_ids:
        logger.info("expired %d unpaid transactions", len(report.expired_ids))
    return report
