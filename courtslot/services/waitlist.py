import logging

from sqlalchemy import func

from courtslot.models import db
from courtslot.models.booking import Booking
from courtslot.models.cart_item import CartItem
from courtslot.models.cart_transaction import CartTransaction
from courtslot.models.waitlist_entry import WaitlistEntry
from courtslot.services import business_hours, calendar, effects
from courtslot.services.errors import NotFoundError, StateError
from courtslot.services.intervals import overlaps
from courtslot.services.locking import locked_transaction
from courtslot.services.outcomes import Cancelled, SweepReport
from courtslot.utils import clock
from courtslot.utils.audit import log_event

logger = logging.getLogger(__name__)

PROMOTED = "promoted"
REPOINTED = "repointed"
CANCELLED = "cancelled"


def find_open_entry(user_id, court_id, start, end):
    return WaitlistEntry.query.filter(
        WaitlistEntry.user_id == user_id,
        WaitlistEntry.court_id == court_id,
        WaitlistEntry.start_time == start,
        WaitlistEntry.end_time == end,
        WaitlistEntry.status.in_(WaitlistEntry.OPEN_STATUSES),
    ).first()


def _next_position(court_id, start, end) -> int:
    top = (
        db.session.query(func.max(WaitlistEntry.position))
        .filter(
            WaitlistEntry.court_id == court_id,
            WaitlistEntry.start_time == start,
            WaitlistEntry.end_time == end,
        )
        .scalar()
    )
    return (top or 0) + 1


def _point_at(entry, blocker):
    if isinstance(blocker, Booking):
        entry.pending_booking_id = blocker.id
        entry.pending_cart_transaction_id = blocker.cart_transaction_id
    else:
        entry.pending_booking_id = None
        entry.pending_cart_transaction_id = blocker.cart_transaction_id


def enqueue(requester, request, start, end, price, blocker):
    entry = WaitlistEntry(
        user_id=requester.id,
        court_id=request.court_id,
        sport=request.sport,
        start_time=start,
        end_time=end,
        price=price,
        number_of_players=request.number_of_players,
        position=_next_position(request.court_id, start, end),
        status=WaitlistEntry.STATUS_PENDING,
        booking_for_user_id=request.booking_for_user_id,
        booking_for_user_name=request.booking_for_user_name,
        notes=request.notes,
    )
    _point_at(entry, blocker)
    db.session.add(entry)
    db.session.flush()

    log_event(
        "WAITLIST_JOIN", user_id=requester.id, entity="waitlist", entity_id=entry.id,
        metadata={"court_id": entry.court_id, "start": start, "end": end, "position": entry.position},
    )
    logger.info("user %s waitlisted at position %s for court %s %s-%s",
                requester.id, entry.position, entry.court_id, start, end)
    return entry


def head_of_queue(court_id, start, end):
    return (
        WaitlistEntry.query
        .filter(
            WaitlistEntry.court_id == court_id,
            WaitlistEntry.start_time == start,
            WaitlistEntry.end_time == end,
            WaitlistEntry.status == WaitlistEntry.STATUS_PENDING,
        )
        .order_by(WaitlistEntry.position.asc())
        .first()
    )


def _entry_context(entry, **extra):
    user = entry.user
    ctx = {
        "name": entry.booking_for_user_name or (user.display_name if user else "player"),
        "court": f"court {entry.court_id}",
        "start": entry.start_time.strftime("%Y-%m-%d %H:%M"),
        "end": entry.end_time.strftime("%Y-%m-%d %H:%M"),
    }
    ctx.update(extra)
    return ctx


def _release_spawned(entry, status):
    """Cancels whatever a promotion created for this entry. Returns the freed booking, if any."""
    if entry.converted_cart_transaction_id is None:
        return None
    cart = db.session.get(CartTransaction, entry.converted_cart_transaction_id)
    if cart is None:
        return None

    cart.status = status
    for item in cart.items:
        if item.status not in (CartItem.STATUS_CANCELLED, CartItem.STATUS_REJECTED):
            item.status = status

    freed = None
    for booking in cart.bookings:
        if booking.status in Booking.BLOCKING_STATUSES:
            booking.status = Booking.STATUS_CANCELLED
            booking.cancelled_at = clock.now()
            booking.cancel_reason = f"waitlist entry {status}"
            freed = booking
    return freed


def _cancel(entry, actor_id=None, reason="blocker approved"):
    entry.status = WaitlistEntry.STATUS_CANCELLED
    _release_spawned(entry, CartTransaction.STATUS_CANCELLED)
    log_event("WAITLIST_CANCEL", user_id=actor_id, entity="waitlist", entity_id=entry.id,
              metadata={"reason": reason})
    logger.info("waitlist entry %s cancelled: %s", entry.id, reason)

    out = [effects.broadcast("waitlist_cancelled", waitlist_id=entry.id, court_id=entry.court_id)]
    if entry.user is not None:
        out.append(effects.mail(entry.user.email, "waitlist_cancelled", **_entry_context(entry)))
    return out


def on_blocker_approved(booking, actor_id=None):
    """The booking is now confirmed: every open entry it blocks is cancelled.

    That covers entries pointing at it and any other open entry overlapping its
    interval, except the entry the booking was spawned for.
    """
    out = []
    entries = (
        WaitlistEntry.query
        .filter(
            WaitlistEntry.status.in_(WaitlistEntry.OPEN_STATUSES),
            db.or_(
                WaitlistEntry.pending_booking_id == booking.id,
                db.and_(
                    WaitlistEntry.court_id == booking.court_id,
                    WaitlistEntry.start_time < booking.end_time,
                    WaitlistEntry.end_time > booking.start_time,
                ),
            ),
        )
        .order_by(WaitlistEntry.position, WaitlistEntry.id)
        .all()
    )
    for entry in entries:
        if entry.id == booking.booking_waitlist_id:
            continue
        out.extend(_cancel(entry, actor_id, reason=f"booking {booking.id} approved"))
    return out


def close_spawning_entry(booking, status):
    """A booking spawned by a promotion left the calendar: its notified entry closes with it."""
    if booking.booking_waitlist_id is None:
        return None
    entry = db.session.get(WaitlistEntry, booking.booking_waitlist_id)
    if entry is None or entry.status != WaitlistEntry.STATUS_NOTIFIED:
        return None
    entry.status = status
    log_event("WAITLIST_CLOSE", user_id=None, entity="waitlist", entity_id=entry.id,
              metadata={"booking_id": booking.id, "status": status})
    return entry


def _spawn(entry, now):
    cart = CartTransaction(
        user_id=entry.user_id,
        booking_for_user_id=entry.booking_for_user_id,
        booking_for_user_name=entry.booking_for_user_name,
        total_price=entry.price,
        status=CartTransaction.STATUS_COMPLETED,
        approval_status=CartTransaction.APPROVAL_PENDING,
        payment_status=CartTransaction.PAYMENT_UNPAID,
        booking_waitlist_id=entry.id,
    )
    db.session.add(cart)
    db.session.flush()

    db.session.add(CartItem(
        cart_transaction_id=cart.id,
        user_id=entry.user_id,
        court_id=entry.court_id,
        sport=entry.sport,
        booking_date=entry.start_time.date(),
        start_time=entry.start_time.time(),
        end_time=entry.end_time.time(),
        start_at=entry.start_time,
        end_at=entry.end_time,
        price=entry.price,
        number_of_players=entry.number_of_players,
        status=CartItem.STATUS_COMPLETED,
        booking_waitlist_id=entry.id,
        booking_for_user_id=entry.booking_for_user_id,
        booking_for_user_name=entry.booking_for_user_name,
        notes=entry.notes,
    ))
    booking = Booking(
        court_id=entry.court_id,
        user_id=entry.user_id,
        booking_for_user_id=entry.booking_for_user_id,
        booking_for_user_name=entry.booking_for_user_name,
        cart_transaction_id=cart.id,
        booking_waitlist_id=entry.id,
        sport=entry.sport,
        start_time=entry.start_time,
        end_time=entry.end_time,
        total_price=entry.price,
        number_of_players=entry.number_of_players,
        status=Booking.STATUS_PENDING,
        notes=entry.notes,
    )
    db.session.add(booking)

    entry.status = WaitlistEntry.STATUS_NOTIFIED
    entry.notified_at = now
    entry.expires_at = business_hours.payment_deadline(now)
    entry.pending_booking_id = None
    entry.pending_cart_transaction_id = None
    entry.converted_cart_transaction_id = cart.id
    db.session.flush()
    return booking


def promote(entry, now=None):
    """Re-checks the calendar for `entry` and acts on what it finds.

    Returns (result, effects) with result one of PROMOTED, REPOINTED, CANCELLED.
    """
    now = now or clock.now()
    blocker = calendar.find_conflict(entry.court_id, entry.start_time, entry.end_time)

    if blocker is not None and calendar.is_hard(blocker):
        return CANCELLED, _cancel(entry, reason=f"slot confirmed by booking {blocker.id}")

    if blocker is None:
        items = calendar.find_conflicting_items(entry.court_id, entry.start_time, entry.end_time)
        blocker = items[0] if items else None

    if blocker is not None:
        _point_at(entry, blocker)
        logger.info("waitlist entry %s still blocked, now waiting on %s %s",
                    entry.id, type(blocker).__name__, blocker.id)
        return REPOINTED, []

    booking = _spawn(entry, now)
    # the rest of the queue now waits on the head's booking
    behind = WaitlistEntry.query.filter(
        WaitlistEntry.court_id == entry.court_id,
        WaitlistEntry.start_time == entry.start_time,
        WaitlistEntry.end_time == entry.end_time,
        WaitlistEntry.status == WaitlistEntry.STATUS_PENDING,
        WaitlistEntry.id != entry.id,
    ).all()
    for other in behind:
        _point_at(other, booking)
    log_event("WAITLIST_PROMOTE", user_id=None, entity="waitlist", entity_id=entry.id,
              metadata={"booking_id": booking.id, "expires_at": entry.expires_at})
    logger.info("waitlist entry %s promoted, booking %s pending payment until %s",
                entry.id, booking.id, entry.expires_at)

    out = [effects.broadcast("waitlist_promoted", waitlist_id=entry.id, booking_id=booking.id,
                             court_id=entry.court_id)]
    if entry.user is not None:
        out.append(effects.mail(
            entry.user.email, "waitlist_notified",
            **_entry_context(entry, expires_at=entry.expires_at.strftime("%Y-%m-%d %H:%M")),
        ))
    return PROMOTED, out


def release_slot(court_id, start, end, now=None):
    """Part of a court was freed: the head of each waiting key overlapping it gets a chance.

    Must run inside locked_transaction(court_id). Returns (promoted entries, effects).
    """
    candidates = (
        WaitlistEntry.query
        .filter(
            WaitlistEntry.court_id == court_id,
            WaitlistEntry.status == WaitlistEntry.STATUS_PENDING,
            WaitlistEntry.start_time < end,
            WaitlistEntry.end_time > start,
        )
        .order_by(WaitlistEntry.created_at, WaitlistEntry.position, WaitlistEntry.id)
        .all()
    )

    promoted, out, seen = [], [], set()
    for candidate in candidates:
        if candidate.key in seen:
            continue
        seen.add(candidate.key)

        # a hard conflict cancels the head; the next one would meet the same booking
        while True:
            head = head_of_queue(*candidate.key)
            if head is None:
                break
            result, fx = promote(head, now)
            out.extend(fx)
            if result == PROMOTED:
                promoted.append(head)
            if result != CANCELLED:
                break
    return promoted, out


def repoint_from_cart(cart, bookings, successor=None):
    """Entries waiting on line-items of a checked-out cart now wait on what replaced them."""
    entries = WaitlistEntry.query.filter(
        WaitlistEntry.pending_cart_transaction_id == cart.id,
        WaitlistEntry.pending_booking_id.is_(None),
        WaitlistEntry.status == WaitlistEntry.STATUS_PENDING,
    ).all()

    for entry in entries:
        target = next(
            (b for b in bookings
             if b.court_id == entry.court_id and overlaps(b.start_time, b.end_time, entry.start_time, entry.end_time)),
            None,
        )
        if target is None and successor is not None:
            target = next(
                (i for i in successor.items
                 if i.court_id == entry.court_id and overlaps(i.start_at, i.end_at, entry.start_time, entry.end_time)),
                None,
            )
        if target is not None:
            _point_at(entry, target)
    return entries


def cancel_entry(entry_id, actor):
    entry = db.session.get(WaitlistEntry, entry_id)
    if entry is None or (entry.user_id != actor.id and not actor.is_privileged):
        raise NotFoundError("Waitlist entry not found")

    with locked_transaction(entry.court_id):
        entry = db.session.get(WaitlistEntry, entry_id, populate_existing=True, with_for_update=True)
        if entry.status not in WaitlistEntry.OPEN_STATUSES:
            raise StateError(f"Waitlist entry is already {entry.status}")

        was_notified = entry.status == WaitlistEntry.STATUS_NOTIFIED
        entry.status = WaitlistEntry.STATUS_CANCELLED
        freed = _release_spawned(entry, CartTransaction.STATUS_CANCELLED)
        log_event("WAITLIST_LEAVE", user_id=actor.id, entity="waitlist", entity_id=entry.id)

        promoted, out = [], []
        if was_notified and freed is not None:
            promoted, out = release_slot(freed.court_id, freed.start_time, freed.end_time)
        out.append(effects.broadcast("waitlist_cancelled", waitlist_id=entry.id, court_id=entry.court_id))

    return Cancelled("waitlist", entry.id, promoted=promoted, effects=out)


def expire_notified_entries(now=None):
    now = now or clock.now()
    due = (
        WaitlistEntry.query
        .filter(
            WaitlistEntry.status == WaitlistEntry.STATUS_NOTIFIED,
            WaitlistEntry.expires_at <= now,
        )
        .order_by(WaitlistEntry.expires_at, WaitlistEntry.id)
        .all()
    )
    report = SweepReport("expire-waitlist")

    for candidate in due:
        with locked_transaction(candidate.court_id):
            entry = db.session.get(WaitlistEntry, candidate.id, populate_existing=True, with_for_update=True)
            if entry.status != WaitlistEntry.STATUS_NOTIFIED or entry.expires_at > now:
                continue

            entry.status = WaitlistEntry.STATUS_EXPIRED
            freed = _release_spawned(entry, CartTransaction.STATUS_EXPIRED)
            log_event("WAITLIST_EXPIRE", user_id=None, entity="waitlist", entity_id=entry.id)
            report.expired_ids.append(entry.id)

            if freed is not None:
                promoted, out = release_slot(freed.court_id, freed.start_time, freed.end_time, now)
                report.promoted.extend(promoted)
                report.effects.extend(out)

    if report.expired_ids:
        logger.info("expired %d notified waitlist entries", len(report.expired_ids))
    return report
