from __future__ import annotations

from datetime import date, timedelta

_SATURDAY = 5


def count_business_days(start_date: date, end_date: date) -> int:
    """Count Monday-Friday dates in the inclusive range [start_date, end_date].

    Returns 0 when end_date precedes start_date. No holiday calendar is applied.
    """
    if end_date < start_date:
        return 0

    total_days = (end_date - start_date).days + 1
    full_weeks, remainder = divmod(total_days, 7)
    business_days = full_weeks * 5

    current = start_date + timedelta(days=full_weeks * 7)
    for offset in range(remainder):
        if (current + timedelta(days=offset)).weekday() < _SATURDAY:
            business_days += 1

    return business_days
