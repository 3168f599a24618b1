import os
from datetime import date, datetime
from types import SimpleNamespace

import pytest
from conftest import PNG_PROOF, at

from courtslot.models import db
from courtslot.models.booking import Booking
from courtslot.models.cart_item import CartItem
from courtslot.models.cart_transaction import CartTransaction
from courtslot.services import committer, resolver
from courtslot.services.errors import ConflictError, NotFoundError, StateError, ValidationError


def _item(court_id, day, start_hour, end_hour, price=500, players=1):
    return SimpleNamespace(
        court_id=court_id,
        booking_date=day,
        start_at=datetime.combine(day, datetime.min.time()).replace(hour=start_hour),
        end_at=datetime.combine(day, datetime.min.time()).replace(hour=end_hour),
        price=price,
        number_of_players=players,
    )


def test_contiguous_items_become_one_group():
    day = date(2030, 3, 5)
    items = [_item(1, day, 11, 12, 300), _item(1, day, 9, 10, 100, players=4), _item(1, day, 10, 11, 200)]

    groups = committer.group_line_items(items)

    assert len(groups) == 1
    assert groups[0].start.hour == 9 and groups[0].end.hour == 12
    assert groups[0].price == 600
    assert groups[0].number_of_players == 4


def test_gaps_courts_and_days_split_groups():
    day = date(2030, 3, 5)
    assert len(committer.group_line_items([_item(1, day, 9, 10), _item(1, day, 14, 15)])) == 2
    assert len(committer.group_line_items([_item(1, day, 9, 10), _item(2, day, 10, 11)])) == 2
    assert len(committer.group_line_items([_item(1, day, 9, 10), _item(1, date(2030, 3, 6), 10, 11)])) == 2


def _fill(player, court, slot, *hours):
    outcome = None
    for start, end in hours:
        outcome = resolver.submit_reservation_request(player, slot(court, start, end))
    return outcome.cart


def test_checkout_creates_one_booking_per_group(court, player, slot):
    cart = _fill(player, court, slot, ("09:00", "10:00"), ("10:00", "11:00"), ("14:00", "15:00"))

    committed = committer.checkout(cart.id, player)

    assert committed.cart.status == CartTransaction.STATUS_COMPLETED
    assert committed.cart.payment_status == CartTransaction.PAYMENT_UNPAID
    assert committed.successor_cart is None
    assert [(b.start_time, b.end_time, b.total_price) for b in committed.bookings] == [
        (at(9), at(11), 1000),
        (at(14), at(15), 500),
    ]
    assert all(b.status == Booking.STATUS_PENDING for b in committed.bookings)
    assert {i.status for i in committed.cart.items} == {CartItem.STATUS_COMPLETED}
    assert committed.effects  # broadcasts wait for the caller


def test_partial_checkout_moves_leftovers_to_a_successor_cart(court, player, slot):
    cart = _fill(player, court, slot, ("09:00", "10:00"), ("12:00", "13:00"))
    first = next(i for i in cart.items if i.start_at == at(9))

    committed = committer.checkout(cart.id, player, selected_item_ids=[first.id])

    assert len(committed.bookings) == 1
    successor = committed.successor_cart
    assert successor.status == CartTransaction.STATUS_PENDING
    assert [i.start_at for i in successor.items] == [at(12)]
    assert successor.total_price == 500
    assert committed.cart.total_price == 500


def test_checkout_aborts_without_partial_writes_on_conflict(court, player, other_player, make_booking, slot):
    cart = _fill(player, court, slot, ("09:00", "10:00"), ("15:00", "16:00"))
    make_booking(court, other_player, at(15), at(16), status=Booking.STATUS_APPROVED)

    with pytest.raises(ConflictError):
        committer.checkout(cart.id, player)

    cart = db.session.get(CartTransaction, cart.id)
    assert cart.status == CartTransaction.STATUS_PENDING
    assert {i.status for i in cart.items} == {CartItem.STATUS_PENDING}
    assert Booking.query.filter_by(user_id=player.id).count() == 0


def test_checkout_with_proof_marks_paid_and_stores_the_file(app, court, player, slot):
    cart = _fill(player, court, slot, ("09:00", "10:00"))

    committed = committer.checkout(cart.id, player, payment_method="gcash", proof_of_payment=PNG_PROOF)

    assert committed.cart.payment_status == CartTransaction.PAYMENT_PAID
    assert committed.cart.paid_at is not None
    assert committed.bookings[0].payment_status == "paid"
    assert os.path.exists(os.path.join(app.config["UPLOAD_FOLDER"], committed.cart.proof_of_payment))


def test_bad_proof_aborts_the_whole_checkout(court, player, slot):
    cart = _fill(player, court, slot, ("09:00", "10:00"))

    with pytest.raises(ValidationError):
        committer.checkout(cart.id, player, payment_method="gcash", proof_of_payment="data:image/png;base64,@@@")

    assert db.session.get(CartTransaction, cart.id).status == CartTransaction.STATUS_PENDING
    assert Booking.query.count() == 0


def test_checkout_guards(court, player, other_player, slot):
    cart = _fill(player, court, slot, ("09:00", "10:00"))

    with pytest.raises(NotFoundError):
        committer.checkout(cart.id, other_player)
    with pytest.raises(ValidationError):
        committer.checkout(cart.id, player, payment_method="barter")

    committer.checkout(cart.id, player)
    with pytest.raises(StateError):
        committer.checkout(cart.id, player)


def test_empty_selection_checks_out_nothing(court, player, slot):
    cart = _fill(player, court, slot, ("09:00", "10:00"))

    with pytest.raises(ValidationError):
        committer.checkout(cart.id, player, selected_item_ids=[])

    assert db.session.get(CartTransaction, cart.id).status == CartTransaction.STATUS_PENDING
    assert Booking.query.count() == 0


def test_submit_payment_after_checkout(court, player, slot):
    cart = _fill(player, court, slot, ("09:00", "10:00"))
    with pytest.raises(StateError):
        committer.submit_payment(cart.id, player, "gcash", PNG_PROOF)

    committed = committer.checkout(cart.id, player)
    paid = committer.submit_payment(cart.id, player, "gcash", PNG_PROOF, payment_reference="REF-1")

    assert paid.cart.payment_status == CartTransaction.PAYMENT_PAID
    assert paid.cart.payment_reference == "REF-1"
    assert db.session.get(Booking, committed.bookings[0].id).payment_status == "paid"

    with pytest.raises(StateError):
        committer.submit_payment(cart.id, player, "gcash", PNG_PROOF)
