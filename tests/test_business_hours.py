from datetime import date, datetime

from courtslot.models import db
from courtslot.models.holiday import Holiday
from courtslot.services import business_hours


def test_inside_business_hours_the_clock_runs_now(app):
    assert business_hours.payment_deadline(datetime(2030, 3, 4, 10, 15)) == datetime(2030, 3, 4, 11, 15)


def test_before_opening_starts_at_opening(app):
    assert business_hours.payment_deadline(datetime(2030, 3, 4, 6, 30)) == datetime(2030, 3, 4, 9, 0)


def test_after_closing_rolls_to_next_working_day(app):
    assert business_hours.payment_deadline(datetime(2030, 3, 4, 17, 0)) == datetime(2030, 3, 5, 9, 0)


def test_saturday_evening_skips_sunday(app):
    # 2030-03-09 is a Saturday
    assert business_hours.payment_deadline(datetime(2030, 3, 9, 20, 0)) == datetime(2030, 3, 11, 9, 0)


def test_holidays_are_skipped(app):
    db.session.add(Holiday(date=date(2030, 3, 5), name="Founders day"))
    db.session.commit()

    assert not business_hours.is_working_day(date(2030, 3, 5))
    assert business_hours.payment_deadline(datetime(2030, 3, 4, 18, 0)) == datetime(2030, 3, 6, 9, 0)
    assert business_hours.payment_deadline(datetime(2030, 3, 5, 11, 0)) == datetime(2030, 3, 6, 9, 0)


def test_window_is_configurable(app):
    app.config["WAITLIST_PAYMENT_MINUTES"] = 30
    assert business_hours.payment_deadline(datetime(2030, 3, 4, 10, 0)) == datetime(2030, 3, 4, 10, 30)
