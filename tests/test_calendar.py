from datetime import timedelta

from conftest import TOMORROW, at

from courtslot.models.booking import Booking
from courtslot.services import calendar, resolver


def test_cancelled_and_rejected_bookings_never_block(court, player, make_booking):
    make_booking(court, player, at(9), at(10), status=Booking.STATUS_CANCELLED)
    make_booking(court, player, at(9), at(10), status=Booking.STATUS_REJECTED)
    assert calendar.find_conflict(court.id, at(9), at(10)) is None


def test_confirmed_booking_is_preferred_over_pending(court, player, other_player, make_booking):
    make_booking(court, player, at(9), at(10), status=Booking.STATUS_PENDING)
    approved = make_booking(court, other_player, at(9, 30), at(10, 30), status=Booking.STATUS_APPROVED)

    conflict = calendar.find_conflict(court.id, at(9), at(11))
    assert conflict.id == approved.id
    assert calendar.is_hard(conflict)


def test_checked_in_booking_is_a_hard_conflict(court, player, make_booking):
    booking = make_booking(court, player, at(9), at(10), status=Booking.STATUS_CHECKED_IN)
    assert calendar.is_hard(calendar.find_conflict(court.id, at(9), at(10)))
    assert calendar.find_conflict(court.id, at(9), at(10), exclude_booking_id=booking.id) is None


def test_midnight_crossing_booking_blocks_next_morning(court, player, make_booking):
    make_booking(court, player, at(23), at(0, 30, day=TOMORROW + timedelta(days=1)),
                 status=Booking.STATUS_APPROVED)
    next_day = TOMORROW + timedelta(days=1)
    assert calendar.find_conflict(court.id, at(0, day=next_day), at(1, day=next_day)) is not None
    assert calendar.find_conflict(court.id, at(1, day=next_day), at(2, day=next_day)) is None


def test_pending_cart_items_show_up_as_holds(court, player, slot):
    outcome = resolver.submit_reservation_request(player, slot(court, "18:00", "19:00"))
    held = calendar.find_conflicting_items(court.id, at(18, 30), at(19, 30))
    assert [i.id for i in held] == [outcome.item.id]
    assert calendar.find_conflicting_items(court.id, at(18), at(19), exclude_cart_id=outcome.cart.id) == []


def test_availability_marks_each_slot(app, court, player, other_player, make_booking, slot):
    make_booking(court, player, at(9), at(10), status=Booking.STATUS_APPROVED)
    make_booking(court, other_player, at(11), at(12), status=Booking.STATUS_PENDING)
    resolver.submit_reservation_request(other_player, slot(court, "14:00", "15:00"))

    rows = {r["start_time"]: r for r in calendar.availability(court, TOMORROW)}
    assert len(rows) == 16
    assert rows["09:00"]["status"] == calendar.BOOKED
    assert rows["11:00"]["status"] == calendar.WAITLIST_AVAILABLE
    assert rows["14:00"]["status"] == calendar.WAITLIST_AVAILABLE
    assert rows["10:00"]["status"] == calendar.AVAILABLE
    assert rows["10:00"]["available"] is True
    assert rows["10:00"]["price"] == 500
