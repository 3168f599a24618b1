import pytest
from conftest import at

from courtslot.models import db
from courtslot.models.booking import Booking
from courtslot.models.cart_item import CartItem
from courtslot.models.cart_transaction import CartTransaction
from courtslot.services import approvals
from courtslot.services.errors import AuthorizationError, ConflictError, NotFoundError, StateError


def test_approve_booking_confirms_it_and_its_cart(court, player, staff, checked_out):
    committed = checked_out(player, court, ("09:00", "10:00"))
    booking = committed.bookings[0]

    result = approvals.approve_booking(booking.id, staff)

    assert result.outcome == "approved"
    booking = db.session.get(Booking, booking.id)
    assert booking.status == Booking.STATUS_APPROVED
    assert booking.qr_code.startswith(f"BK{booking.id}_")
    assert booking.cart.approval_status == CartTransaction.APPROVAL_APPROVED
    assert booking.cart.approved_by == staff.id
    assert {i.status for i in booking.cart.items} == {CartItem.STATUS_APPROVED}
    assert any(e.kind == "mail" for e in result.effects)


def test_second_approval_is_a_no_op(court, player, staff, checked_out):
    booking = checked_out(player, court, ("09:00", "10:00")).bookings[0]
    approvals.approve_booking(booking.id, staff)
    qr = db.session.get(Booking, booking.id).qr_code

    again = approvals.approve_booking(booking.id, staff)

    assert again.already is True
    assert again.outcome == "already_approved"
    assert again.effects == []
    assert db.session.get(Booking, booking.id).qr_code == qr


def test_approve_cart_approves_every_booking(court, player, admin, checked_out):
    committed = checked_out(player, court, ("09:00", "10:00"), ("13:00", "14:00"))

    result = approvals.approve_cart(committed.cart.id, admin)

    assert len(result.bookings) == 2
    assert all(b.status == Booking.STATUS_APPROVED for b in result.bookings)
    assert approvals.approve_cart(committed.cart.id, admin).already is True


def test_players_cannot_approve(court, player, checked_out):
    booking = checked_out(player, court, ("09:00", "10:00")).bookings[0]
    with pytest.raises(AuthorizationError):
        approvals.approve_booking(booking.id, player)


def test_unknown_booking(staff, app):
    with pytest.raises(NotFoundError):
        approvals.approve_booking(12345, staff)


def test_reject_then_approve_is_a_state_error(court, player, staff, checked_out):
    booking = checked_out(player, court, ("09:00", "10:00")).bookings[0]

    result = approvals.reject_booking(booking.id, staff, "no payment")
    assert result.outcome == "rejected"
    booking = db.session.get(Booking, booking.id)
    assert booking.status == Booking.STATUS_REJECTED
    assert booking.cart.approval_status == CartTransaction.APPROVAL_REJECTED
    assert booking.cart.rejection_reason == "no payment"
    assert "no payment" in booking.notes

    assert approvals.reject_booking(booking.id, staff).already is True
    with pytest.raises(StateError):
        approvals.approve_booking(booking.id, staff)


def test_only_admin_rejects_an_approved_booking(court, player, staff, admin, checked_out):
    booking = checked_out(player, court, ("09:00", "10:00")).bookings[0]
    approvals.approve_booking(booking.id, staff)

    with pytest.raises(AuthorizationError):
        approvals.reject_booking(booking.id, staff, "double booked")
    assert db.session.get(Booking, booking.id).status == Booking.STATUS_APPROVED

    approvals.reject_booking(booking.id, admin, "double booked")
    assert db.session.get(Booking, booking.id).status == Booking.STATUS_REJECTED


def test_approval_refuses_to_double_confirm_a_slot(court, player, other_player, staff, make_booking, checked_out):
    booking = checked_out(player, court, ("09:00", "10:00")).bookings[0]
    # a confirmed booking that slipped in around the checkout
    make_booking(court, other_player, at(9), at(10), status=Booking.STATUS_APPROVED)

    with pytest.raises(ConflictError):
        approvals.approve_booking(booking.id, staff)
    assert db.session.get(Booking, booking.id).status == Booking.STATUS_PENDING


def test_reject_cart(court, player, staff, checked_out):
    committed = checked_out(player, court, ("09:00", "10:00"), ("13:00", "14:00"))
    result = approvals.reject_cart(committed.cart.id, staff, "invalid proof")

    assert {b.status for b in result.bookings} == {Booking.STATUS_REJECTED}
    cart = db.session.get(CartTransaction, committed.cart.id)
    assert cart.approval_status == CartTransaction.APPROVAL_REJECTED
    assert {i.status for i in cart.items} == {CartItem.STATUS_REJECTED}


def test_owner_cancels_outside_the_cutoff(court, player, other_player, clock, checked_out):
    booking = checked_out(player, court, ("20:00", "21:00")).bookings[0]

    with pytest.raises(NotFoundError):
        approvals.cancel_booking(booking.id, other_player)

    result = approvals.cancel_booking(booking.id, player, "rain")
    assert result.entity == "booking"
    booking = db.session.get(Booking, booking.id)
    assert booking.status == Booking.STATUS_CANCELLED
    assert booking.cancel_reason == "rain"
    assert booking.cancelled_at == clock.now()


def test_cancel_inside_the_cutoff_is_refused(court, player, clock, checked_out):
    booking = checked_out(player, court, ("09:00", "10:00")).bookings[0]
    clock.set(at(0))  # nine hours before start
    with pytest.raises(AuthorizationError):
        approvals.cancel_booking(booking.id, player)


class TestCheckIn:
    def _approved(self, court, player, staff, checked_out, players=2):
        booking = checked_out(player, court, ("09:00", "10:00"), number_of_players=players).bookings[0]
        approvals.approve_booking(booking.id, staff)
        return db.session.get(Booking, booking.id)

    def test_scans_until_every_player_is_in(self, court, player, staff, clock, checked_out):
        booking = self._approved(court, player, staff, checked_out)
        clock.set(at(8, 45))

        first = approvals.check_in(booking.qr_code, staff)
        assert first.players_checked_in == 1
        assert first.booking.status == Booking.STATUS_CHECKED_IN
        assert first.booking.attendance_status == "showed_up"
        assert first.booking.checked_in_at == at(8, 45)

        second = approvals.check_in(booking.qr_code, staff)
        assert second.players_checked_in == 2
        assert second.booking.status == Booking.STATUS_COMPLETED

        with pytest.raises(StateError):
            approvals.check_in(booking.qr_code, staff)

    def test_outside_the_window(self, court, player, staff, clock, checked_out):
        booking = self._approved(court, player, staff, checked_out)

        clock.set(at(8, 0))
        with pytest.raises(StateError, match="early"):
            approvals.check_in(booking.qr_code, staff)

        clock.set(at(10, 0))
        with pytest.raises(StateError, match="ended"):
            approvals.check_in(booking.qr_code, staff)

    def test_unknown_code(self, court, player, staff, checked_out):
        checked_out(player, court, ("09:00", "10:00"))
        with pytest.raises(NotFoundError):
            approvals.check_in("BK-nope", staff)

    def test_players_cannot_scan(self, court, player, staff, checked_out):
        booking = self._approved(court, player, staff, checked_out)
        with pytest.raises(AuthorizationError):
            approvals.check_in(booking.qr_code, player)


def test_attendance_is_admin_only(court, player, staff, admin, checked_out):
    booking = checked_out(player, court, ("09:00", "10:00")).bookings[0]
    with pytest.raises(StateError):
        approvals.update_attendance(booking.id, admin, "no_show")

    approvals.approve_booking(booking.id, staff)
    with pytest.raises(AuthorizationError):
        approvals.update_attendance(booking.id, staff, "no_show")

    result = approvals.update_attendance(booking.id, admin, "no_show")
    assert result.booking.attendance_status == "no_show"
    assert result.booking.cart.attendance_status == "no_show"
