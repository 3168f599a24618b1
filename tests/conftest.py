import base64
from datetime import date, datetime, timedelta

import pytest

from courtslot import create_app
from courtslot.models import db
from courtslot.models.booking import Booking
from courtslot.models.court import Court
from courtslot.models.user import Role, User
from courtslot.security.session import create_session
from courtslot.services.outcomes import TimeSlotRequest
from courtslot.utils import clock as clock_module

# a Monday inside business hours
START = datetime(2030, 3, 4, 10, 0)
TOMORROW = date(2030, 3, 5)

PNG_PROOF = "data:image/png;base64," + base64.b64encode(b"\x89PNG\r\n\x1a\nproof").decode()


class FrozenClock:
    def __init__(self, moment):
        self.moment = moment

    def now(self):
        return self.moment

    def set(self, moment):
        self.moment = moment

    def advance(self, **kwargs):
        self.moment += timedelta(**kwargs)
        return self.moment


@pytest.fixture
def clock(monkeypatch):
    frozen = FrozenClock(START)
    monkeypatch.setattr(clock_module, "now", frozen.now)
    return frozen


@pytest.fixture
def app(tmp_path, clock):
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": "sqlite:///" + str(tmp_path / "courtslot-test.db"),
        "SQLALCHEMY_ENGINE_OPTIONS": {"connect_args": {"check_same_thread": False}},
        "CREATE_TABLES_ON_STARTUP": True,
        "UPLOAD_FOLDER": str(tmp_path / "uploads"),
        "SMTP_HOST": None,
        "LOCK_TIMEOUT_SECONDS": 5,
        "LOG_LEVEL": "DEBUG",
    })
    with app.app_context():
        yield app
        db.session.remove()
        db.engine.dispose()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    def _make(email, *roles, full_name=None):
        user = User(email=email, full_name=full_name or email.split("@")[0].title())
        for name in roles or ("PLAYER",):
            user.roles.append(Role.query.filter_by(name=name).one())
        db.session.add(user)
        db.session.commit()
        return user
    return _make


@pytest.fixture
def player(make_user):
    return make_user("alice@example.com")


@pytest.fixture
def other_player(make_user):
    return make_user("bob@example.com")


@pytest.fixture
def third_player(make_user):
    return make_user("carol@example.com")


@pytest.fixture
def staff(make_user):
    return make_user("desk@example.com", "STAFF")


@pytest.fixture
def admin(make_user):
    return make_user("boss@example.com", "ADMIN")


@pytest.fixture
def court(app):
    c = Court(name="Court 1", location="North hall", hourly_rate=500)
    db.session.add(c)
    db.session.commit()
    return c


@pytest.fixture
def slot():
    def _slot(court, start, end, day=TOMORROW, **kwargs):
        return TimeSlotRequest(
            court_id=court.id,
            booking_date=day.isoformat(),
            start=start,
            end=end,
            **kwargs,
        )
    return _slot


@pytest.fixture
def make_booking(app):
    def _make(court, user, start, end, status=Booking.STATUS_PENDING, **kwargs):
        booking = Booking(
            court_id=court.id,
            user_id=user.id,
            start_time=start,
            end_time=end,
            total_price=kwargs.pop("total_price", 500),
            status=status,
            **kwargs,
        )
        db.session.add(booking)
        db.session.commit()
        return booking
    return _make


@pytest.fixture
def login(app):
    """Returns a test client carrying a fresh session cookie for the user."""
    def _login(user):
        client = app.test_client()
        client.set_cookie(app.config["AUTH_COOKIE_NAME"], create_session(user.id))
        return client
    return _login


def at(hour, minute=0, day=TOMORROW):
    return datetime.combine(day, datetime.min.time()).replace(hour=hour, minute=minute)


@pytest.fixture
def checked_out(slot):
    """Adds the slots to the user's cart, checks out, returns the Committed outcome."""
    from courtslot.services import committer, resolver

    def _checkout(user, court, *hours, **kwargs):
        cart = None
        for start, end in hours:
            cart = resolver.submit_reservation_request(user, slot(court, start, end, **kwargs)).cart
        return committer.checkout(cart.id, user)
    return _checkout
