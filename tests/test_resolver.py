from datetime import timedelta

import pytest
from conftest import TOMORROW, at

from courtslot.models.booking import Booking
from courtslot.models.cart_transaction import CartTransaction
from courtslot.models.waitlist_entry import WaitlistEntry
from courtslot.services import resolver
from courtslot.services.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from courtslot.services.outcomes import Admitted, Waitlisted


def test_free_slot_is_admitted_into_a_new_cart(court, player, slot):
    outcome = resolver.submit_reservation_request(player, slot(court, "09:00", "10:00"))

    assert isinstance(outcome, Admitted)
    assert outcome.cart.user_id == player.id
    assert outcome.cart.status == CartTransaction.STATUS_PENDING
    assert outcome.item.start_at == at(9)
    assert outcome.item.price == 500  # hourly rate when no price is given
    assert outcome.overbooked is False


def test_later_items_join_the_same_pending_cart(court, player, slot):
    first = resolver.submit_reservation_request(player, slot(court, "09:00", "10:00"))
    second = resolver.submit_reservation_request(player, slot(court, "10:00", "11:00", price=700))

    assert first.cart.id == second.cart.id
    assert second.cart.total_price == 1200


def test_hard_conflict_is_refused_for_every_role(court, player, admin, other_player, make_booking, slot):
    booking = make_booking(court, other_player, at(9), at(10), status=Booking.STATUS_APPROVED)

    for requester in (player, admin):
        with pytest.raises(ConflictError) as exc:
            resolver.submit_reservation_request(requester, slot(court, "09:30", "10:30"))
        assert exc.value.conflict_id == booking.id
        assert exc.value.status_code == 409


def test_soft_conflict_waitlists_regular_users_in_order(court, player, other_player, third_player, slot):
    resolver.submit_reservation_request(player, slot(court, "09:00", "10:00"))

    second = resolver.submit_reservation_request(other_player, slot(court, "09:00", "10:00"))
    third = resolver.submit_reservation_request(third_player, slot(court, "09:00", "10:00"))

    assert isinstance(second, Waitlisted) and second.position == 1
    assert isinstance(third, Waitlisted) and third.position == 2
    assert second.entry.pending_cart_transaction_id is not None
    assert second.entry.pending_booking_id is None


def test_pending_booking_waitlists_with_a_pointer_to_it(court, player, other_player, make_booking, slot):
    blocker = make_booking(court, player, at(9), at(10))
    outcome = resolver.submit_reservation_request(other_player, slot(court, "09:00", "10:00"))
    assert isinstance(outcome, Waitlisted)
    assert outcome.entry.pending_booking_id == blocker.id


def test_staff_overbook_a_pending_hold(court, player, staff, slot):
    resolver.submit_reservation_request(player, slot(court, "09:00", "10:00"))
    outcome = resolver.submit_reservation_request(staff, slot(court, "09:00", "10:00"))

    assert isinstance(outcome, Admitted)
    assert outcome.overbooked is True
    assert WaitlistEntry.query.count() == 0


def test_same_slot_twice_in_own_cart_is_refused(court, player, slot):
    resolver.submit_reservation_request(player, slot(court, "09:00", "10:00"))
    with pytest.raises(ConflictError, match="already in your cart"):
        resolver.submit_reservation_request(player, slot(court, "09:30", "10:30"))


def test_joining_the_same_waitlist_twice_is_refused(court, player, other_player, slot):
    resolver.submit_reservation_request(player, slot(court, "09:00", "10:00"))
    resolver.submit_reservation_request(other_player, slot(court, "09:00", "10:00"))
    with pytest.raises(ConflictError, match="already on the waitlist"):
        resolver.submit_reservation_request(other_player, slot(court, "09:00", "10:00"))


def test_waitlist_disabled_turns_soft_conflicts_into_refusals(app, court, player, other_player, slot):
    app.config["WAITLIST_ENABLED"] = False
    resolver.submit_reservation_request(player, slot(court, "09:00", "10:00"))
    with pytest.raises(ConflictError):
        resolver.submit_reservation_request(other_player, slot(court, "09:00", "10:00"))


def test_midnight_crossing_booking_conflicts_with_next_day(court, player, other_player, make_booking, slot):
    next_day = TOMORROW + timedelta(days=1)
    make_booking(court, player, at(23), at(0, 30, day=next_day), status=Booking.STATUS_APPROVED)
    with pytest.raises(ConflictError):
        resolver.submit_reservation_request(other_player, slot(court, "00:00", "01:00", day=next_day))


def test_request_crossing_midnight_is_admitted_with_next_day_end(court, player, slot):
    outcome = resolver.submit_reservation_request(player, slot(court, "23:00", "00:30"))
    assert outcome.item.end_at == at(0, 30, day=TOMORROW + timedelta(days=1))


def test_validation(court, player, slot, clock):
    with pytest.raises(ValidationError):
        resolver.submit_reservation_request(player, slot(court, "09:00", "10:00", day=clock.now().date()))
    with pytest.raises(ValidationError):
        resolver.submit_reservation_request(player, slot(court, "08:00", "17:00"))
    with pytest.raises(ValidationError):
        resolver.submit_reservation_request(player, slot(court, "09:00", "10:00", number_of_players=0))
    with pytest.raises(ValidationError):
        resolver.submit_reservation_request(player, slot(court, "09:00", "10:00", price=-1))


def test_unknown_or_inactive_court(app, court, player, slot):
    missing = slot(court, "09:00", "10:00")
    missing.court_id = 999
    with pytest.raises(NotFoundError):
        resolver.submit_reservation_request(player, missing)

    court.is_active = False
    with pytest.raises(NotFoundError):
        resolver.submit_reservation_request(player, slot(court, "09:00", "10:00"))


def test_only_staff_book_for_someone_else(court, player, other_player, staff, slot):
    with pytest.raises(AuthorizationError):
        resolver.submit_reservation_request(player, slot(court, "09:00", "10:00", booking_for_user_id=other_player.id))

    outcome = resolver.submit_reservation_request(
        staff, slot(court, "09:00", "10:00", booking_for_user_id=other_player.id, booking_for_user_name="Bob"),
    )
    assert outcome.item.booking_for_user_id == other_player.id
