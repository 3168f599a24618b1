from courtslot.services.intervals import duration_minutes


def price(court, start, end) -> int:
    """Default pricing: the court's hourly rate, prorated by the minute."""
    minutes = duration_minutes(start, end)
    return (court.hourly_rate or 0) * minutes // 60
