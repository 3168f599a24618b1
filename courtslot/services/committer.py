import logging
from dataclasses import dataclass, field
from datetime import date, datetime

from courtslot.models import db
from courtslot.models.booking import Booking
from courtslot.models.cart_item import CartItem
from courtslot.models.cart_transaction import CartTransaction
from courtslot.models.waitlist_entry import WaitlistEntry
from courtslot.services import calendar, effects, storage, waitlist
from courtslot.services.errors import ConflictError, NotFoundError, StateError, ValidationError
from courtslot.services.locking import locked_transaction
from courtslot.services.outcomes import Committed, PaymentRecorded
from courtslot.utils import clock
from courtslot.utils.audit import log_event

logger = logging.getLogger(__name__)

PAYMENT_METHODS = ("pending", "cash", "gcash", "bank_transfer", "card")


@dataclass
class SlotGroup:
    court_id: int
    booking_date: date
    start: datetime
    end: datetime
    items: list = field(default_factory=list)

    @property
    def price(self) -> int:
        return sum(i.price for i in self.items)

    @property
    def number_of_players(self) -> int:
        return max(i.number_of_players for i in self.items)

    def extends(self, item) -> bool:
        return (
            item.court_id == self.court_id
            and item.booking_date == self.booking_date
            and item.start_at == self.end
        )


def group_line_items(items):
    """Contiguous items on the same court and day collapse into one group."""
    groups = []
    for item in sorted(items, key=lambda i: (i.court_id, i.booking_date, i.start_at)):
        if groups and groups[-1].extends(item):
            groups[-1].items.append(item)
            groups[-1].end = item.end_at
        else:
            groups.append(SlotGroup(item.court_id, item.booking_date, item.start_at, item.end_at, [item]))
    return groups


def _owned_cart(cart_id, actor):
    cart = db.session.get(CartTransaction, cart_id)
    if cart is None or (cart.user_id != actor.id and not actor.is_privileged):
        raise NotFoundError("Cart not found")
    return cart


def _check_method(payment_method):
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(f"payment_method must be one of {', '.join(PAYMENT_METHODS)}")


def _booking_for(group, cart):
    first = group.items[0]
    return Booking(
        court_id=group.court_id,
        user_id=cart.user_id,
        booking_for_user_id=first.booking_for_user_id,
        booking_for_user_name=first.booking_for_user_name,
        cart_transaction_id=cart.id,
        sport=first.sport,
        start_time=group.start,
        end_time=group.end,
        total_price=group.price,
        number_of_players=group.number_of_players,
        status=Booking.STATUS_PENDING,
        payment_method=cart.payment_method,
        payment_status=cart.payment_status,
        paid_at=cart.paid_at,
        proof_of_payment=cart.proof_of_payment,
        notes=first.notes,
    )


def checkout(cart_id, actor, selected_item_ids=None, payment_method="pending",
             payment_reference=None, proof_of_payment=None):
    _check_method(payment_method)
    cart = _owned_cart(cart_id, actor)
    court_ids = {i.court_id for i in cart.pending_items}

    stored = None
    try:
        with locked_transaction(*court_ids):
            cart = db.session.get(CartTransaction, cart_id, populate_existing=True, with_for_update=True)
            if cart.status != CartTransaction.STATUS_PENDING:
                raise StateError(f"Cart is already {cart.status}")

            pending = cart.pending_items
            if selected_item_ids is not None:
                if not selected_item_ids:
                    raise ValidationError("Select at least one item to check out")
                wanted = {int(i) for i in selected_item_ids}
                selected = [i for i in pending if i.id in wanted]
                if len(selected) != len(wanted):
                    raise ValidationError("Some selected items are not in this cart")
            else:
                selected = list(pending)
            if not selected:
                raise ValidationError("Cart is empty")
            if {i.court_id for i in selected} - court_ids:
                raise StateError("Cart changed during checkout, please retry")

            groups = group_line_items(selected)
            for group in groups:
                conflict = calendar.find_conflict(group.court_id, group.start, group.end)
                if conflict is not None:
                    raise ConflictError(
                        f"Court {group.court_id} {group.start:%Y-%m-%d %H:%M}-{group.end:%H:%M} is no longer available",
                        conflict_type="booking", conflict_id=conflict.id,
                    )

            if proof_of_payment:
                stored = storage.store_payment_evidence(proof_of_payment, f"cart{cart.id}")

            now = clock.now()
            cart.total_price = sum(i.price for i in selected)
            cart.status = CartTransaction.STATUS_COMPLETED
            cart.payment_method = payment_method
            cart.payment_reference = payment_reference
            if stored:
                cart.proof_of_payment = stored
                cart.payment_status = CartTransaction.PAYMENT_PAID
                cart.paid_at = now

            bookings = []
            for group in groups:
                booking = _booking_for(group, cart)
                db.session.add(booking)
                bookings.append(booking)
            for item in selected:
                item.status = CartItem.STATUS_COMPLETED
            db.session.flush()

            successor = None
            leftovers = [i for i in pending if i not in selected]
            if leftovers:
                successor = CartTransaction(user_id=cart.user_id, status=CartTransaction.STATUS_PENDING)
                db.session.add(successor)
                for item in leftovers:
                    item.cart = successor
                successor.recalculate_total()
                db.session.flush()

            waitlist.repoint_from_cart(cart, bookings, successor)

            log_event(
                "CART_CHECKOUT", user_id=actor.id, entity="cart", entity_id=cart.id,
                metadata={
                    "bookings": [b.id for b in bookings],
                    "successor_cart_id": successor.id if successor else None,
                    "paid": bool(stored),
                },
            )
            out = [
                effects.broadcast("booking_created", booking_id=b.id, court_id=b.court_id, status=b.status)
                for b in bookings
            ]
    except Exception:
        storage.discard(stored)
        raise

    logger.info("cart %s checked out into %d booking(s)", cart_id, len(bookings))
    return Committed(cart, bookings, successor, effects=out)


def submit_payment(cart_id, actor, payment_method, proof_of_payment, payment_reference=None):
    _check_method(payment_method)
    if not proof_of_payment:
        raise ValidationError("proof_of_payment required")
    cart = _owned_cart(cart_id, actor)
    court_ids = {b.court_id for b in cart.bookings}

    stored = None
    try:
        with locked_transaction(*court_ids):
            cart = db.session.get(CartTransaction, cart_id, populate_existing=True, with_for_update=True)
            if cart.status == CartTransaction.STATUS_PENDING:
                raise StateError("Check out the cart before paying")
            if cart.approval_status == CartTransaction.APPROVAL_REJECTED or cart.status in (
                CartTransaction.STATUS_CANCELLED, CartTransaction.STATUS_EXPIRED,
            ):
                raise StateError("This transaction is no longer payable")
            if cart.payment_status == CartTransaction.PAYMENT_PAID:
                raise StateError("This transaction is already paid")

            stored = storage.store_payment_evidence(proof_of_payment, f"cart{cart.id}")
            now = clock.now()
            cart.proof_of_payment = stored
            cart.payment_method = payment_method
            cart.payment_reference = payment_reference
            cart.payment_status = CartTransaction.PAYMENT_PAID
            cart.paid_at = now
            for booking in cart.bookings:
                if booking.status in Booking.BLOCKING_STATUSES:
                    booking.proof_of_payment = stored
                    booking.payment_method = payment_method
                    booking.payment_status = CartTransaction.PAYMENT_PAID
                    booking.paid_at = now

            if cart.booking_waitlist_id is not None:
                entry = db.session.get(WaitlistEntry, cart.booking_waitlist_id)
                if entry is not None and entry.status == WaitlistEntry.STATUS_NOTIFIED:
                    entry.status = WaitlistEntry.STATUS_CONVERTED
                    entry.converted_cart_transaction_id = cart.id
                    log_event("WAITLIST_CONVERT", user_id=actor.id, entity="waitlist", entity_id=entry.id)

            log_event("PAYMENT_SUBMIT", user_id=actor.id, entity="cart", entity_id=cart.id,
                      metadata={"method": payment_method, "reference": payment_reference})
            out = [effects.broadcast("payment_submitted", cart_id=cart.id,
                                     booking_ids=[b.id for b in cart.bookings])]
    except Exception:
        storage.discard(stored)
        raise

    return PaymentRecorded(cart, effects=out)
