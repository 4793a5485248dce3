"""Pure date/time helpers shared by the slot generator and reservation engine.

Every instant handled by the service is an aware UTC datetime. Wall-clock
inputs (a calendar date plus an ``HH:MM`` time of day) are combined as if the
clock were already UTC; there is no timezone or DST adjustment.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Callable

Clock = Callable[[], datetime]

ONE_DAY = timedelta(days=1)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def combine_utc(day: date, time_of_day: time) -> datetime:
    return datetime.combine(day, time_of_day.replace(tzinfo=None), tzinfo=timezone.utc)


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Half-open interval test: [a_start, a_end) and [b_start, b_end) share an instant.

    Storage-side conflict checks run the same predicate as a query in
    :func:`slotbook.services.slot_store.find_overlapping_slot`.
    """
    return to_utc(a_start) < to_utc(b_end) and to_utc(b_start) < to_utc(a_end)
