import logging

from flask import current_app

from courtslot.models import db
from courtslot.models.booking import Booking
from courtslot.models.court import Court
from courtslot.models.user import User
from courtslot.services import calendar, cart, pricing, waitlist
from courtslot.services.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from courtslot.services.intervals import duration_minutes, normalize
from courtslot.services.locking import locked_transaction
from courtslot.services.outcomes import Admitted, Waitlisted
from courtslot.utils import clock
from courtslot.utils.audit import log_event

logger = logging.getLogger(__name__)


def _kind(blocker):
    return "booking" if isinstance(blocker, Booking) else "cart_item"


def _validate(requester, request):
    court = db.session.get(Court, request.court_id)
    if court is None or not court.is_active:
        raise NotFoundError("Court not found")

    start, end = normalize(request.booking_date, request.start, request.end)

    max_hours = current_app.config.get("MAX_SLOT_HOURS", 8)
    if duration_minutes(start, end) > max_hours * 60:
        raise ValidationError(f"A reservation cannot be longer than {max_hours} hours")
    if start < clock.now():
        raise ValidationError("Cannot book past/started slots")
    if request.number_of_players < 1:
        raise ValidationError("number_of_players must be at least 1")
    if request.price is not None and request.price < 0:
        raise ValidationError("price cannot be negative")

    if request.booking_for_user_id is not None and request.booking_for_user_id != requester.id:
        if not requester.is_privileged:
            raise AuthorizationError("Only staff can book on behalf of another player")
        if db.session.get(User, request.booking_for_user_id) is None:
            raise NotFoundError("Player to book for not found")

    return court, start, end


def submit_reservation_request(requester, request):
    """Admits, waitlists or refuses (ConflictError) one requested slot.

    The conflict check and the write happen under the court lock in one
    transaction, so two identical requests can never both be admitted.
    """
    court, start, end = _validate(requester, request)
    price = request.price if request.price is not None else pricing.price(court, start, end)

    with locked_transaction(court.id):
        held = calendar.find_conflicting_items(court.id, start, end)
        if any(i.cart.user_id == requester.id for i in held):
            raise ConflictError("This slot is already in your cart", conflict_type="cart_item",
                                conflict_id=next(i.id for i in held if i.cart.user_id == requester.id))

        entry = waitlist.find_open_entry(requester.id, court.id, start, end)
        if entry is not None:
            raise ConflictError("You are already on the waitlist for this slot",
                                conflict_type="waitlist", conflict_id=entry.id)

        blocker = calendar.find_conflict(court.id, start, end)
        if blocker is not None and calendar.is_hard(blocker):
            logger.info("request by user %s for court %s %s-%s refused: booking %s is %s",
                        requester.id, court.id, start, end, blocker.id, blocker.status)
            raise ConflictError("This slot is already booked", conflict_type="booking", conflict_id=blocker.id)

        if blocker is not None and blocker.user_id == requester.id:
            raise ConflictError("You already have a booking for this slot",
                                conflict_type="booking", conflict_id=blocker.id)

        soft = blocker if blocker is not None else (held[0] if held else None)

        if soft is None:
            item, owner_cart = cart.admit(requester, request, start, end, price)
            outcome = Admitted(item, owner_cart)

        elif requester.is_privileged:
            item, owner_cart = cart.admit(requester, request, start, end, price)
            log_event("RESERVATION_OVERBOOK", user_id=requester.id, entity="cart_item", entity_id=item.id,
                      metadata={"blocker": _kind(soft), "blocker_id": soft.id})
            logger.warning("%s %s overbooked court %s %s-%s over pending %s %s",
                           requester.role, requester.id, court.id, start, end, _kind(soft), soft.id)
            outcome = Admitted(item, owner_cart, overbooked=True)

        elif not current_app.config.get("WAITLIST_ENABLED", True):
            raise ConflictError("This slot is pending for another player",
                                conflict_type=_kind(soft), conflict_id=soft.id)

        else:
            outcome = Waitlisted(waitlist.enqueue(requester, request, start, end, price, soft))

    return outcome
