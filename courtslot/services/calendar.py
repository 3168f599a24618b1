from flask import current_app

from courtslot.models.booking import Booking
from courtslot.models.cart_item import CartItem
from courtslot.models.cart_transaction import CartTransaction
from courtslot.services import pricing
from courtslot.services.intervals import generate_slots, overlaps
from courtslot.utils import clock

AVAILABLE = "available"
WAITLIST_AVAILABLE = "waitlist_available"
BOOKED = "booked"


def is_hard(booking) -> bool:
    return booking.status in Booking.CONFIRMED_STATUSES


def _booking_query(court_id, start, end, exclude_booking_ids=()):
    q = Booking.query.filter(
        Booking.court_id == court_id,
        Booking.status.in_(Booking.BLOCKING_STATUSES),
        Booking.start_time < end,
        Booking.end_time > start,
    )
    ids = [i for i in exclude_booking_ids if i is not None]
    if ids:
        q = q.filter(Booking.id.notin_(ids))
    return q


def find_conflicts(court_id, start, end, exclude_booking_ids=()):
    return _booking_query(court_id, start, end, exclude_booking_ids).order_by(Booking.start_time, Booking.id).all()


def find_conflict(court_id, start, end, exclude_booking_id=None):
    """The booking that blocks [start, end) on the court, preferring a confirmed one."""
    conflicts = find_conflicts(court_id, start, end, exclude_booking_ids=(exclude_booking_id,))
    for booking in conflicts:
        if is_hard(booking):
            return booking
    return conflicts[0] if conflicts else None


def find_conflicting_items(court_id, start, end, exclude_cart_id=None):
    """Pending line-items of pending carts holding any part of [start, end)."""
    q = (
        CartItem.query
        .join(CartTransaction, CartItem.cart_transaction_id == CartTransaction.id)
        .filter(
            CartItem.court_id == court_id,
            CartItem.status == CartItem.STATUS_PENDING,
            CartTransaction.status == CartTransaction.STATUS_PENDING,
            CartItem.start_at < end,
            CartItem.end_at > start,
        )
    )
    if exclude_cart_id is not None:
        q = q.filter(CartItem.cart_transaction_id != exclude_cart_id)
    return q.order_by(CartItem.created_at, CartItem.id).all()


def availability(court, day):
    open_str = current_app.config.get("OPEN_TIME", "08:00")
    close_str = current_app.config.get("CLOSE_TIME", "00:00")
    step = current_app.config.get("SLOT_MINUTES", 60)

    slots = generate_slots(day, open_str, close_str, step)
    if not slots:
        return []
    window_start, window_end = slots[0][0], slots[-1][1]

    bookings = find_conflicts(court.id, window_start, window_end)
    items = find_conflicting_items(court.id, window_start, window_end)
    now = clock.now()

    rows = []
    for start, end in slots:
        hits = [b for b in bookings if overlaps(b.start_time, b.end_time, start, end)]
        held = any(overlaps(i.start_at, i.end_at, start, end) for i in items)

        if any(is_hard(b) for b in hits):
            status = BOOKED
        elif hits or held:
            status = WAITLIST_AVAILABLE
        else:
            status = AVAILABLE

        rows.append({
            "start": start.isoformat(),
            "end": end.isoformat(),
            "start_time": start.strftime("%H:%M"),
            "end_time": end.strftime("%H:%M"),
            "status": status,
            "available": status == AVAILABLE,
            "is_past": start < now,
            "price": pricing.price(court, start, end),
        })
    return rows
