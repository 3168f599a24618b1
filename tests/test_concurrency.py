import threading

from courtslot.models import db
from courtslot.models.booking import Booking
from courtslot.models.cart_item import CartItem
from courtslot.models.user import User
from courtslot.services import committer, resolver
from courtslot.services.errors import ReservationError


def _race(app, workers):
    barrier = threading.Barrier(len(workers))
    results = [None] * len(workers)

    def run(index, fn):
        with app.app_context():
            barrier.wait()
            try:
                results[index] = fn()
            except ReservationError as exc:
                results[index] = exc
            finally:
                db.session.remove()

    threads = [threading.Thread(target=run, args=(i, fn)) for i, fn in enumerate(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)
    return results


def test_identical_requests_admit_exactly_one(app, court, make_user, slot):
    user_ids = [make_user(f"racer{i}@example.com").id for i in range(4)]
    request = slot(court, "19:00", "20:00")

    def attempt(user_id):
        def _go():
            outcome = resolver.submit_reservation_request(db.session.get(User, user_id), request)
            return outcome.outcome
        return _go

    results = _race(app, [attempt(uid) for uid in user_ids])

    assert results.count("admitted") == 1
    assert results.count("waitlisted") == 3
    assert CartItem.query.filter_by(status="pending").count() == 1


def test_concurrent_checkouts_of_the_same_slot_book_it_once(app, court, make_user, staff, slot):
    # staff may both hold the slot, only one checkout can turn it into a booking
    other_staff = make_user("desk2@example.com", "STAFF")
    carts = [
        resolver.submit_reservation_request(user, slot(court, "19:00", "20:00")).cart.id
        for user in (staff, other_staff)
    ]
    owners = [staff.id, other_staff.id]

    def attempt(cart_id, owner_id):
        def _go():
            return committer.checkout(cart_id, db.session.get(User, owner_id)).outcome
        return _go

    results = _race(app, [attempt(c, o) for c, o in zip(carts, owners)])

    assert results.count("committed") == 1
    assert sum(isinstance(r, ReservationError) and r.status_code == 409 for r in results) == 1
    assert Booking.query.filter_by(court_id=court.id).count() == 1
