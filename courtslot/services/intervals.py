from datetime import date, datetime, time, timedelta

from courtslot.services.errors import ValidationError


def overlaps(a_start, a_end, b_start, b_end) -> bool:
    # half-open: [09:00, 10:00) and [10:00, 11:00) do not touch
    return a_start < b_end and b_start < a_end


def parse_time(value) -> time:
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)
    raw = (value or "").strip() if isinstance(value, str) else ""
    try:
        return datetime.strptime(raw, "%H:%M").time()
    except ValueError:
        raise ValidationError(f"Invalid time {value!r}. Use HH:MM")


def parse_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat((value or "").strip())
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid date {value!r}. Use YYYY-MM-DD")


def normalize(day, start, end):
    """Absolute (start, end) for a booking day; an end at or before the start belongs to the next day."""
    day = parse_date(day)
    start_dt = datetime.combine(day, parse_time(start))
    end_dt = datetime.combine(day, parse_time(end))
    if end_dt <= start_dt:
        end_dt += timedelta(days=1)
    return start_dt, end_dt


def duration_minutes(start: datetime, end: datetime) -> int:
    return int((end - start).total_seconds() // 60)


def generate_slots(day, open_str: str, close_str: str, step_minutes: int):
    if step_minutes <= 0:
        raise ValidationError("Slot length must be positive")
    open_dt, close_dt = normalize(day, open_str, close_str)
    step = timedelta(minutes=step_minutes)

    slots = []
    cursor = open_dt
    while cursor + step <= close_dt:
        slots.append((cursor, cursor + step))
        cursor += step
    return slots
