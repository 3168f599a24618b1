from datetime import datetime, timedelta

from flask import current_app

from courtslot.models.holiday import Holiday
from courtslot.models.user import LEVEL_REGULAR


def _hours():
    start = current_app.config.get("BUSINESS_START_HOUR", 8)
    end = current_app.config.get("BUSINESS_END_HOUR", 17)
    return start, end


def _window():
    return timedelta(minutes=current_app.config.get("WAITLIST_PAYMENT_MINUTES", 60))


def is_working_day(day) -> bool:
    if isinstance(day, datetime):
        day = day.date()
    # Sundays and holidays are closed
    return day.weekday() != 6 and not Holiday.is_holiday(day)


def next_working_day(day):
    if isinstance(day, datetime):
        day = day.date()
    while not is_working_day(day):
        day += timedelta(days=1)
    return day


def is_within_business_hours(moment: datetime) -> bool:
    start, end = _hours()
    return is_working_day(moment) and start <= moment.hour < end


def payment_deadline(created_at: datetime) -> datetime:
    """When an unpaid hold created at `created_at` lapses.

    Inside business hours the clock runs immediately. Outside them it starts at
    the next opening, so a hold made at night is due an hour after opening.
    """
    start, end = _hours()
    window = _window()

    if not is_working_day(created_at) or created_at.hour >= end:
        opening_day = next_working_day(created_at.date() + timedelta(days=1))
        return datetime.combine(opening_day, datetime.min.time()).replace(hour=start) + window

    if created_at.hour < start:
        return created_at.replace(hour=start, minute=0, second=0, microsecond=0) + window

    return created_at + window


def is_expired(created_at: datetime, now: datetime) -> bool:
    return now >= payment_deadline(created_at)


def is_exempt_from_expiration(cart) -> bool:
    if cart.user is not None and cart.user.role != LEVEL_REGULAR:
        return True
    if cart.proof_of_payment:
        return True
    return cart.approval_status == cart.APPROVAL_APPROVED


def should_expire(cart, now: datetime) -> bool:
    if is_exempt_from_expiration(cart):
        return False
    return is_expired(cart.created_at, now)
