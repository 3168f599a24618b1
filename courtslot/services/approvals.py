import logging
from datetime import timedelta

from flask import current_app

from courtslot.models import db
from courtslot.models.booking import Booking
from courtslot.models.cart_item import CartItem
from courtslot.models.cart_transaction import CartTransaction
from courtslot.models.waitlist_entry import WaitlistEntry
from courtslot.security.rbac import ensure_admin, ensure_staff
from courtslot.services import calendar, effects, waitlist
from courtslot.services.errors import AuthorizationError, ConflictError, NotFoundError, StateError, ValidationError
from courtslot.services.intervals import overlaps
from courtslot.services.locking import locked_transaction
from courtslot.services.outcomes import ApprovalResult, AttendanceUpdated, Cancelled, CheckedIn, RejectionResult
from courtslot.utils import clock
from courtslot.utils.audit import log_event

logger = logging.getLogger(__name__)

TERMINAL = (Booking.STATUS_REJECTED, Booking.STATUS_CANCELLED)


def _get_booking(booking_id):
    booking = db.session.get(Booking, booking_id)
    if booking is None:
        raise NotFoundError("Booking not found")
    return booking


def _reread(model, pk):
    return db.session.get(model, pk, populate_existing=True, with_for_update=True)


def _items_of(booking):
    """Line-items of the booking's cart that the booking covers."""
    if booking.cart is None:
        return []
    return [
        i for i in booking.cart.items
        if i.court_id == booking.court_id and overlaps(i.start_at, i.end_at, booking.start_time, booking.end_time)
    ]


def _status_effect(booking):
    return effects.broadcast("booking_status_changed", booking_id=booking.id,
                             court_id=booking.court_id, status=booking.status)


def _sync_cart_approval(cart, actor):
    if cart is None:
        return
    live = [b for b in cart.bookings if b.status != Booking.STATUS_CANCELLED]
    if live and all(b.is_confirmed for b in live):
        cart.approval_status = CartTransaction.APPROVAL_APPROVED
        cart.approved_by = actor.id
        cart.approved_at = clock.now()
    elif live and all(b.status == Booking.STATUS_REJECTED for b in live):
        cart.approval_status = CartTransaction.APPROVAL_REJECTED


def _approve(booking, actor):
    if booking.status in TERMINAL:
        raise StateError(f"Booking {booking.id} is {booking.status} and cannot be approved")

    clash = calendar.find_conflicts(booking.court_id, booking.start_time, booking.end_time,
                                    exclude_booking_ids=(booking.id,))
    confirmed = next((b for b in clash if calendar.is_hard(b)), None)
    if confirmed is not None:
        raise ConflictError("Another confirmed booking holds this slot",
                            conflict_type="booking", conflict_id=confirmed.id)

    booking.status = Booking.STATUS_APPROVED
    db.session.flush()
    booking.generate_qr_code()
    for item in _items_of(booking):
        if item.status in (CartItem.STATUS_PENDING, CartItem.STATUS_COMPLETED):
            item.status = CartItem.STATUS_APPROVED

    log_event("BOOKING_APPROVE", user_id=actor.id, entity="booking", entity_id=booking.id)
    out = [
        _status_effect(booking),
        effects.mail(booking.recipient_email, "booking_approved",
                     **effects.booking_context(booking, qr_code=booking.qr_code)),
    ]
    out.extend(waitlist.on_blocker_approved(booking, actor.id))
    return out


def approve_booking(booking_id, actor):
    ensure_staff(actor)
    booking = _get_booking(booking_id)

    with locked_transaction(booking.court_id):
        booking = _reread(Booking, booking_id)
        if booking.is_confirmed:
            return ApprovalResult([booking], already=True)
        out = _approve(booking, actor)
        _sync_cart_approval(booking.cart, actor)

    logger.info("booking %s approved by %s", booking_id, actor.id)
    return ApprovalResult([booking], effects=out)


def approve_cart(cart_id, actor):
    ensure_staff(actor)
    cart = db.session.get(CartTransaction, cart_id)
    if cart is None:
        raise NotFoundError("Transaction not found")

    with locked_transaction(*{b.court_id for b in cart.bookings}):
        cart = _reread(CartTransaction, cart_id)
        if cart.approval_status == CartTransaction.APPROVAL_APPROVED:
            return ApprovalResult(list(cart.bookings), already=True)
        if cart.approval_status == CartTransaction.APPROVAL_REJECTED:
            raise StateError("Transaction was rejected and cannot be approved")
        if cart.status != CartTransaction.STATUS_COMPLETED:
            raise StateError("Only checked-out transactions can be approved")

        out = []
        for booking in cart.bookings:
            if booking.status == Booking.STATUS_PENDING:
                out.extend(_approve(booking, actor))
        cart.approval_status = CartTransaction.APPROVAL_APPROVED
        cart.approved_by = actor.id
        cart.approved_at = clock.now()
        log_event("TRANSACTION_APPROVE", user_id=actor.id, entity="cart", entity_id=cart.id)
        bookings = list(cart.bookings)

    logger.info("transaction %s approved by %s", cart_id, actor.id)
    return ApprovalResult(bookings, effects=out)


def _reject(booking, actor, reason):
    if booking.status == Booking.STATUS_CANCELLED:
        raise StateError(f"Booking {booking.id} is cancelled")
    if booking.status in (Booking.STATUS_CHECKED_IN, Booking.STATUS_COMPLETED):
        raise StateError(f"Booking {booking.id} is already {booking.status}")
    if booking.status == Booking.STATUS_APPROVED:
        try:
            ensure_admin(actor)
        except AuthorizationError:
            raise AuthorizationError("Only an admin can reject an approved booking")

    booking.status = Booking.STATUS_REJECTED
    if reason:
        booking.append_note(f"Rejected: {reason}")
    for item in _items_of(booking):
        if item.status != CartItem.STATUS_CANCELLED:
            item.status = CartItem.STATUS_REJECTED
    waitlist.close_spawning_entry(booking, WaitlistEntry.STATUS_EXPIRED)
    db.session.flush()

    log_event("BOOKING_REJECT", user_id=actor.id, entity="booking", entity_id=booking.id,
              metadata={"reason": reason})
    promoted, out = waitlist.release_slot(booking.court_id, booking.start_time, booking.end_time)
    out[:0] = [
        _status_effect(booking),
        effects.mail(booking.recipient_email, "booking_rejected",
                     **effects.booking_context(booking, reason=reason or "not given")),
    ]
    return promoted, out


def reject_booking(booking_id, actor, reason=None):
    ensure_staff(actor)
    booking = _get_booking(booking_id)

    with locked_transaction(booking.court_id):
        booking = _reread(Booking, booking_id)
        if booking.status == Booking.STATUS_REJECTED:
            return RejectionResult([booking], already=True)
        promoted, out = _reject(booking, actor, reason)
        if booking.cart is not None and reason:
            booking.cart.rejection_reason = reason
        _sync_cart_approval(booking.cart, actor)

    logger.info("booking %s rejected by %s", booking_id, actor.id)
    return RejectionResult([booking], promoted=promoted, effects=out)


def reject_cart(cart_id, actor, reason=None):
    ensure_staff(actor)
    cart = db.session.get(CartTransaction, cart_id)
    if cart is None:
        raise NotFoundError("Transaction not found")

    with locked_transaction(*{b.court_id for b in cart.bookings}):
        cart = _reread(CartTransaction, cart_id)
        if cart.approval_status == CartTransaction.APPROVAL_REJECTED:
            return RejectionResult(list(cart.bookings), already=True)
        if cart.status != CartTransaction.STATUS_COMPLETED:
            raise StateError("Only checked-out transactions can be rejected")

        promoted, out = [], []
        for booking in cart.bookings:
            if booking.status in (Booking.STATUS_PENDING, Booking.STATUS_APPROVED):
                p, fx = _reject(booking, actor, reason)
                promoted.extend(p)
                out.extend(fx)
        cart.approval_status = CartTransaction.APPROVAL_REJECTED
        cart.rejection_reason = reason
        log_event("TRANSACTION_REJECT", user_id=actor.id, entity="cart", entity_id=cart.id,
                  metadata={"reason": reason})
        bookings = list(cart.bookings)

    logger.info("transaction %s rejected by %s", cart_id, actor.id)
    return RejectionResult(bookings, promoted=promoted, effects=out)


def cancel_booking(booking_id, actor, reason=None):
    booking = _get_booking(booking_id)
    if booking.user_id != actor.id and not actor.is_privileged:
        raise NotFoundError("Booking not found")

    with locked_transaction(booking.court_id):
        booking = _reread(Booking, booking_id)
        if booking.status not in (Booking.STATUS_PENDING, Booking.STATUS_APPROVED):
            raise StateError("Booking not cancellable")

        cutoff_hours = current_app.config.get("CANCEL_CUTOFF_HOURS", 12)
        now = clock.now()
        if not actor.is_privileged and booking.start_time - now < timedelta(hours=cutoff_hours):
            raise AuthorizationError(f"Cancellation not allowed within {cutoff_hours} hours of start")

        booking.status = Booking.STATUS_CANCELLED
        booking.cancelled_at = now
        booking.cancel_reason = reason
        for item in _items_of(booking):
            item.status = CartItem.STATUS_CANCELLED

        waitlist.close_spawning_entry(booking, WaitlistEntry.STATUS_CANCELLED)
        db.session.flush()

        log_event("BOOKING_CANCEL", user_id=actor.id, entity="booking", entity_id=booking.id,
                  metadata={"reason": reason})
        promoted, out = waitlist.release_slot(booking.court_id, booking.start_time, booking.end_time)
        out[:0] = [
            _status_effect(booking),
            effects.mail(booking.recipient_email, "booking_cancelled", **effects.booking_context(booking)),
        ]

    return Cancelled("booking", booking_id, promoted=promoted, effects=out)


def check_in(code, actor):
    ensure_staff(actor)
    code = (code or "").strip()
    if not code:
        raise ValidationError("qr_code required")
    booking = Booking.query.filter_by(qr_code=code).first()
    if booking is None:
        raise NotFoundError("Unknown booking code")

    with locked_transaction(booking.court_id):
        booking = _reread(Booking, booking.id)
        if booking.status not in (Booking.STATUS_APPROVED, Booking.STATUS_CHECKED_IN):
            raise StateError(f"Booking is {booking.status}, check-in denied")

        now = clock.now()
        grace = timedelta(minutes=current_app.config.get("CHECKIN_GRACE_MINUTES", 30))
        if now < booking.start_time - grace:
            raise StateError("Too early to check in")
        if now >= booking.end_time:
            raise StateError("Booking has already ended")
        if booking.attendance_scan_count >= booking.number_of_players:
            raise StateError("All players are already checked in")

        booking.attendance_scan_count += 1
        if booking.attendance_scan_count == 1:
            booking.status = Booking.STATUS_CHECKED_IN
            booking.checked_in_at = now
            booking.attendance_status = "showed_up"
            if booking.cart is not None:
                booking.cart.attendance_status = "showed_up"
        if booking.attendance_scan_count >= booking.number_of_players:
            booking.status = Booking.STATUS_COMPLETED

        log_event("BOOKING_CHECK_IN", user_id=actor.id, entity="booking", entity_id=booking.id,
                  metadata={"scan": booking.attendance_scan_count})
        scans = booking.attendance_scan_count

    return CheckedIn(booking, scans, effects=[_status_effect(booking)])


def update_attendance(booking_id, actor, attendance_status):
    ensure_admin(actor)
    if attendance_status not in Booking.ATTENDANCE_STATUSES:
        raise ValidationError(f"attendance_status must be one of {', '.join(Booking.ATTENDANCE_STATUSES)}")
    booking = _get_booking(booking_id)

    with locked_transaction(booking.court_id):
        booking = _reread(Booking, booking_id)
        if not booking.is_confirmed:
            raise StateError("Attendance can only be set on approved bookings")
        booking.attendance_status = attendance_status
        if booking.cart is not None:
            booking.cart.attendance_status = attendance_status
        log_event("BOOKING_ATTENDANCE", user_id=actor.id, entity="booking", entity_id=booking.id,
                  metadata={"attendance_status": attendance_status})

    return AttendanceUpdated(booking)
