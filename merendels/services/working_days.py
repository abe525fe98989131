from __future__ import annotations

from datetime import date, timedelta

from merendels.models.enums import RequestType

# Maximum working days a single request may cover, per request type.
MAX_WORKING_DAYS = {
    RequestType.HOLIDAY: 30,
    RequestType.PERMIT: 5,
}

_SATURDAY = 5


def count_working_days(start_date: date, end_date: date) -> int:
    """Count Monday-to-Friday dates in the inclusive range [start_date, end_date].

    Returns 0 when the range is empty or covers only a weekend.
    """
    if end_date < start_date:
        return 0

    total_days = (end_date - start_date).days + 1
    full_weeks, remainder = divmod(total_days, 7)
    working_days = full_weeks * 5

    # Walk the leftover partial week.
    current_date = start_date + timedelta(days=full_weeks * 7)
    for _ in range(remainder):
        if current_date.weekday() < _SATURDAY:
            working_days += 1
        current_date += timedelta(days=1)

    return working_days
