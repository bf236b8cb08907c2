"""Checks a candidate booking or schedule window against existing records.

The caller supplies snapshots it has already loaded; nothing here touches
the database. The checks are advisory unless the caller runs them inside
the transaction that writes the result.
"""

from dataclasses import dataclass
from datetime import date
from typing import Iterable

from clinic.scheduling.errors import AppointmentConflict, ScheduleConflict, StaffUnavailable
from clinic.scheduling.intervals import Interval, contains, overlaps
from clinic.scheduling.lifecycle import ACTIVE_STATUSES, AppointmentStatus


@dataclass(frozen=True)
class WeeklyAvailability:
    staff_id: int
    day_of_week: int
    interval: Interval
    available: bool = True
    id: int | None = None

    def __post_init__(self) -> None:
        if not 0 <= self.day_of_week <= 6:
            raise ValueError('day_of_week must be between 0 (Sunday) and 6 (Saturday).')


@dataclass(frozen=True)
class AppointmentSnapshot:
    id: int
    staff_id: int
    appointment_date: date
    interval: Interval
    status: AppointmentStatus = AppointmentStatus.PENDING
    patient_id: int | None = None


@dataclass(frozen=True)
class AppointmentCandidate:
    staff_id: int
    appointment_date: date
    interval: Interval


def day_of_week(value: date) -> int:
    """Weekday with Sunday as 0, matching the schedule table encoding."""
    return value.isoweekday() % 7


def find_covering_window(
    candidate: AppointmentCandidate,
    existing_windows: Iterable[WeeklyAvailability],
) -> WeeklyAvailability | None:
    weekday = day_of_week(candidate.appointment_date)
    for window in existing_windows:
        if (
            window.staff_id == candidate.staff_id
            and window.day_of_week == weekday
            and window.available
            and contains(window.interval, candidate.interval)
        ):
            return window
    return None


def find_conflicting_appointment(
    candidate: AppointmentCandidate,
    existing_appointments: Iterable[AppointmentSnapshot],
    exclude_appointment_id: int | None = None,
) -> AppointmentSnapshot | None:
    active = [
        appointment
        for appointment in existing_appointments
        if appointment.staff_id == candidate.staff_id
        and appointment.appointment_date == candidate.appointment_date
        and AppointmentStatus(appointment.status) in ACTIVE_STATUSES
        and appointment.id != exclude_appointment_id
    ]
    for appointment in sorted(active, key=lambda item: (item.interval.start, item.id)):
        if overlaps(appointment.interval, candidate.interval):
            return appointment
    return None


def validate(
    candidate: AppointmentCandidate,
    existing_windows: Iterable[WeeklyAvailability],
    existing_appointments: Iterable[AppointmentSnapshot],
    exclude_appointment_id: int | None = None,
) -> None:
    """Raise if ``candidate`` cannot be booked.

    The interval has to fit inside one available window for the staff
    member's weekday (``StaffUnavailable``) and must not overlap a pending
    or confirmed appointment of the same staff member on the same date
    (``AppointmentConflict``). Pass ``exclude_appointment_id`` when
    validating an update so the appointment does not collide with itself.
    """
    if find_covering_window(candidate, existing_windows) is None:
        raise StaffUnavailable(candidate.staff_id)

    conflict = find_conflicting_appointment(candidate, existing_appointments, exclude_appointment_id)
    if conflict is not None:
        raise AppointmentConflict(conflict.id)


def validate_schedule_window(
    candidate: WeeklyAvailability,
    existing_windows: Iterable[WeeklyAvailability],
    exclude_window_id: int | None = None,
) -> None:
    if not candidate.available:
        return

    for window in existing_windows:
        if (
            window.staff_id == candidate.staff_id
            and window.day_of_week == candidate.day_of_week
            and window.available
            and (exclude_window_id is None or window.id != exclude_window_id)
            and overlaps(window.interval, candidate.interval)
        ):
            raise ScheduleConflict(window.id)
