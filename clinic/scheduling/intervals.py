"""Time-of-day values and half-open intervals on a single day.

Every conflict check in the service, for weekly schedule windows and for
dated appointments alike, goes through ``overlaps`` and ``contains``.
"""

import re
from dataclasses import dataclass
from datetime import time

from clinic.scheduling.errors import InvalidInterval, InvalidTimeFormat

MINUTES_PER_DAY = 24 * 60

TIME_PATTERN = re.compile(r'^([01][0-9]|2[0-3]):([0-5][0-9])$')


@dataclass(frozen=True, order=True)
class TimeOfDay:
    """Wall-clock time with minute precision, stored as minutes since midnight."""

    minutes: int

    def __post_init__(self) -> None:
        if not 0 <= self.minutes < MINUTES_PER_DAY:
            raise ValueError(f'TimeOfDay must be within 0..{MINUTES_PER_DAY - 1} minutes, got {self.minutes}.')

    @classmethod
    def from_time(cls, value: time) -> 'TimeOfDay':
        return cls(value.hour * 60 + value.minute)

    def to_time(self) -> time:
        return time(self.minutes // 60, self.minutes % 60)

    def __str__(self) -> str:
        return f'{self.minutes // 60:02d}:{self.minutes % 60:02d}'


@dataclass(frozen=True)
class Interval:
    """Half-open ``[start, end)`` range; back-to-back intervals do not overlap."""

    start: TimeOfDay
    end: TimeOfDay

    def __post_init__(self) -> None:
        if self.end <= self.start:
            raise InvalidInterval()

    @classmethod
    def from_times(cls, start: time, end: time) -> 'Interval':
        return cls(TimeOfDay.from_time(start), TimeOfDay.from_time(end))

    @property
    def duration_minutes(self) -> int:
        return self.end.minutes - self.start.minutes

    def __str__(self) -> str:
        return f'{self.start}-{self.end}'


def parse_time_of_day(value: str) -> TimeOfDay:
    if not isinstance(value, str):
        raise InvalidTimeFormat(repr(value))

    match = TIME_PATTERN.match(value.strip())
    if match is None:
        raise InvalidTimeFormat(value)

    hours, minutes = (int(part) for part in match.groups())
    return TimeOfDay(hours * 60 + minutes)


def parse_interval(start: str, end: str) -> Interval:
    """Parse a pair of ``HH:MM`` strings.

    Raises ``InvalidTimeFormat`` if either string is malformed and
    ``InvalidInterval`` if the end is not strictly after the start.
    """
    return Interval(parse_time_of_day(start), parse_time_of_day(end))


def overlaps(a: Interval, b: Interval) -> bool:
    return a.start < b.end and b.start < a.end


def contains(window: Interval, candidate: Interval) -> bool:
    return window.start <= candidate.start and window.end >= candidate.end
