from datetime import date, datetime, time, timedelta, timezone

import pytest

from slotbook.core.time_range import combine_utc, overlaps, to_utc


def at(hour: int, minute: int = 0) -> datetime:
    return datetime(2025, 9, 1, hour, minute, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    ('a_start', 'a_end', 'b_start', 'b_end', 'expected'),
    [
        (at(9), at(10), at(9, 30), at(10, 30), True),
        (at(9), at(10), at(8), at(11), True),
        (at(9), at(10), at(9), at(10), True),
        (at(9), at(10), at(10), at(11), False),
        (at(10), at(11), at(9), at(10), False),
        (at(9), at(10), at(11), at(12), False),
    ],
)
def test_overlaps_uses_half_open_intervals(a_start, a_end, b_start, b_end, expected) -> None:
    assert overlaps(a_start, a_end, b_start, b_end) is expected
    assert overlaps(b_start, b_end, a_start, a_end) is expected


def test_overlaps_compares_instants_across_offsets() -> None:
    minus_three = timezone(timedelta(hours=-3))

    assert overlaps(at(12), at(13), datetime(2025, 9, 1, 9, 30, tzinfo=minus_three), datetime(2025, 9, 1, 11, tzinfo=minus_three))
    assert not overlaps(at(12), at(13), datetime(2025, 9, 1, 8, tzinfo=minus_three), datetime(2025, 9, 1, 9, tzinfo=minus_three))


def test_to_utc_treats_naive_values_as_utc() -> None:
    assert to_utc(datetime(2025, 9, 1, 9, 0)) == at(9)
    assert to_utc(datetime(2025, 9, 1, 9, 0)).tzinfo == timezone.utc


def test_to_utc_converts_aware_values() -> None:
    plus_two = timezone(timedelta(hours=2))

    converted = to_utc(datetime(2025, 9, 1, 11, 0, tzinfo=plus_two))

    assert converted == at(9)
    assert converted.utcoffset() == timedelta(0)


def test_combine_utc_reads_wall_clock_as_utc() -> None:
    assert combine_utc(date(2025, 9, 1), time(9, 0)) == at(9)


def test_combine_utc_ignores_time_offset() -> None:
    assert combine_utc(date(2025, 9, 1), time(9, 0, tzinfo=timezone(timedelta(hours=5)))) == at(9)
