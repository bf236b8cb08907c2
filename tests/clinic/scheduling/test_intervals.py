from datetime import time

import pytest

from clinic.scheduling.errors import InvalidInterval, InvalidTimeFormat
from clinic.scheduling.intervals import Interval, TimeOfDay, contains, overlaps, parse_interval, parse_time_of_day


def iv(start: str, end: str) -> Interval:
    return parse_interval(start, end)


def test_parse_time_of_day_counts_minutes_since_midnight() -> None:
    assert parse_time_of_day('00:00') == TimeOfDay(0)
    assert parse_time_of_day('09:30') == TimeOfDay(570)
    assert parse_time_of_day(' 23:59 ') == TimeOfDay(1439)


@pytest.mark.parametrize('value', ['9:00', '24:00', '12:60', '12-30', '1230', '', '12:3', 'ab:cd', '12:30:00'])
def test_parse_time_of_day_rejects_malformed_values(value: str) -> None:
    with pytest.raises(InvalidTimeFormat):
        parse_time_of_day(value)


def test_time_of_day_round_trips_through_datetime_time() -> None:
    value = TimeOfDay.from_time(time(14, 5))

    assert value.minutes == 845
    assert value.to_time() == time(14, 5)
    assert str(value) == '14:05'


def test_time_of_day_rejects_out_of_range_minutes() -> None:
    with pytest.raises(ValueError):
        TimeOfDay(1440)
    with pytest.raises(ValueError):
        TimeOfDay(-1)


@pytest.mark.parametrize(('start', 'end'), [('10:00', '10:00'), ('10:00', '09:59'), ('23:59', '00:00')])
def test_parse_interval_rejects_empty_and_inverted_ranges(start: str, end: str) -> None:
    with pytest.raises(InvalidInterval):
        parse_interval(start, end)


def test_parse_interval_reports_format_before_ordering() -> None:
    with pytest.raises(InvalidTimeFormat):
        parse_interval('25:00', '09:00')


def test_interval_exposes_duration() -> None:
    assert iv('09:15', '10:00').duration_minutes == 45
    assert str(iv('09:15', '10:00')) == '09:15-10:00'


def test_touching_intervals_do_not_overlap() -> None:
    assert overlaps(iv('09:00', '10:00'), iv('10:00', '11:00')) is False


def test_partially_covering_intervals_overlap() -> None:
    assert overlaps(iv('09:00', '10:30'), iv('10:00', '11:00')) is True


@pytest.mark.parametrize(
    ('a', 'b'),
    [
        (('09:00', '10:00'), ('10:00', '11:00')),
        (('09:00', '10:30'), ('10:00', '11:00')),
        (('09:00', '17:00'), ('12:00', '13:00')),
        (('09:00', '10:00'), ('09:00', '10:00')),
        (('08:00', '08:30'), ('16:00', '17:00')),
    ],
)
def test_overlap_is_symmetric(a: tuple[str, str], b: tuple[str, str]) -> None:
    assert overlaps(iv(*a), iv(*b)) == overlaps(iv(*b), iv(*a))


def test_nested_interval_overlaps_its_container() -> None:
    assert overlaps(iv('09:00', '17:00'), iv('12:00', '12:15')) is True


def test_containment_is_inclusive_at_bounds() -> None:
    window = iv('09:00', '17:00')

    assert contains(window, iv('09:00', '17:00')) is True
    assert contains(window, iv('08:59', '17:00')) is False
    assert contains(window, iv('09:00', '17:01')) is False
    assert contains(window, iv('16:00', '17:00')) is True
