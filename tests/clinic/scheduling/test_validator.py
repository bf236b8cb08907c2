from datetime import date

import pytest

from clinic.scheduling.errors import AppointmentConflict, ScheduleConflict, StaffUnavailable
from clinic.scheduling.intervals import parse_interval
from clinic.scheduling.lifecycle import AppointmentStatus
from clinic.scheduling.validator import (
    AppointmentCandidate,
    AppointmentSnapshot,
    WeeklyAvailability,
    day_of_week,
    validate,
    validate_schedule_window,
)

STAFF_ID = 7
MONDAY = date(2026, 1, 5)
TUESDAY = date(2026, 1, 6)

MONDAY_SHIFT = WeeklyAvailability(staff_id=STAFF_ID, day_of_week=1, interval=parse_interval('09:00', '17:00'), id=1)


def candidate(start: str, end: str, appointment_date: date = MONDAY, staff_id: int = STAFF_ID) -> AppointmentCandidate:
    return AppointmentCandidate(staff_id=staff_id, appointment_date=appointment_date, interval=parse_interval(start, end))


def booked(
    appointment_id: int,
    start: str,
    end: str,
    status: AppointmentStatus = AppointmentStatus.PENDING,
    appointment_date: date = MONDAY,
    staff_id: int = STAFF_ID,
) -> AppointmentSnapshot:
    return AppointmentSnapshot(
        id=appointment_id,
        staff_id=staff_id,
        appointment_date=appointment_date,
        interval=parse_interval(start, end),
        status=status,
    )


@pytest.mark.parametrize(
    ('value', 'expected'),
    [
        (date(2026, 1, 4), 0),
        (date(2026, 1, 5), 1),
        (date(2026, 1, 9), 5),
        (date(2026, 1, 10), 6),
    ],
)
def test_day_of_week_starts_on_sunday(value: date, expected: int) -> None:
    assert day_of_week(value) == expected


def test_weekly_availability_rejects_unknown_weekday() -> None:
    with pytest.raises(ValueError):
        WeeklyAvailability(staff_id=STAFF_ID, day_of_week=7, interval=parse_interval('09:00', '10:00'))


def test_accepts_candidate_inside_shift_with_no_bookings() -> None:
    validate(candidate('09:00', '10:00'), [MONDAY_SHIFT], [])


def test_rejects_candidate_outside_shift() -> None:
    with pytest.raises(StaffUnavailable):
        validate(candidate('18:00', '19:00'), [MONDAY_SHIFT], [])


def test_rejects_candidate_spilling_past_shift_end() -> None:
    with pytest.raises(StaffUnavailable):
        validate(candidate('16:30', '17:30'), [MONDAY_SHIFT], [])


def test_rejects_candidate_on_a_day_without_windows() -> None:
    with pytest.raises(StaffUnavailable):
        validate(candidate('09:00', '10:00', appointment_date=TUESDAY), [MONDAY_SHIFT], [])


def test_ignores_windows_of_other_staff_members() -> None:
    other = WeeklyAvailability(staff_id=99, day_of_week=1, interval=parse_interval('09:00', '17:00'))

    with pytest.raises(StaffUnavailable):
        validate(candidate('09:00', '10:00'), [other], [])


def test_ignores_unavailable_windows() -> None:
    blocked = WeeklyAvailability(staff_id=STAFF_ID, day_of_week=1, interval=parse_interval('09:00', '17:00'), available=False)

    with pytest.raises(StaffUnavailable):
        validate(candidate('09:00', '10:00'), [blocked], [])


def test_candidate_only_needs_to_fit_one_of_several_shifts() -> None:
    windows = [
        WeeklyAvailability(staff_id=STAFF_ID, day_of_week=1, interval=parse_interval('08:00', '12:00')),
        WeeklyAvailability(staff_id=STAFF_ID, day_of_week=1, interval=parse_interval('14:00', '18:00')),
    ]

    validate(candidate('15:00', '16:00'), windows, [])
    with pytest.raises(StaffUnavailable):
        validate(candidate('11:30', '14:30'), windows, [])


def test_reports_overlapping_booking() -> None:
    with pytest.raises(AppointmentConflict) as exception_info:
        validate(candidate('09:30', '10:30'), [MONDAY_SHIFT], [booked(41, '09:00', '10:00')])

    assert exception_info.value.appointment_id == 41


def test_reports_earliest_of_several_conflicts() -> None:
    appointments = [booked(52, '10:00', '11:00'), booked(51, '09:00', '10:00')]

    with pytest.raises(AppointmentConflict) as exception_info:
        validate(candidate('09:30', '10:30'), [MONDAY_SHIFT], appointments)

    assert exception_info.value.appointment_id == 51


def test_accepts_back_to_back_booking() -> None:
    validate(candidate('10:00', '11:00'), [MONDAY_SHIFT], [booked(41, '09:00', '10:00', AppointmentStatus.CONFIRMED)])


@pytest.mark.parametrize('status', [AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW])
def test_closed_appointments_do_not_block_the_slot(status: AppointmentStatus) -> None:
    validate(candidate('09:00', '10:00'), [MONDAY_SHIFT], [booked(41, '09:00', '10:00', status)])


def test_bookings_on_other_dates_or_staff_do_not_conflict() -> None:
    appointments = [
        booked(41, '09:00', '10:00', appointment_date=date(2026, 1, 12)),
        booked(42, '09:00', '10:00', staff_id=99),
    ]

    validate(candidate('09:00', '10:00'), [MONDAY_SHIFT], appointments)


def test_update_does_not_conflict_with_itself() -> None:
    existing = [booked(41, '09:00', '10:00')]

    validate(candidate('09:00', '10:00'), [MONDAY_SHIFT], existing, exclude_appointment_id=41)
    with pytest.raises(AppointmentConflict):
        validate(candidate('09:00', '10:00'), [MONDAY_SHIFT], existing)


def test_availability_is_checked_before_conflicts() -> None:
    with pytest.raises(StaffUnavailable):
        validate(candidate('17:00', '18:00'), [MONDAY_SHIFT], [booked(41, '17:00', '18:00')])


def test_schedule_window_rejects_overlap_with_available_window() -> None:
    new_window = WeeklyAvailability(staff_id=STAFF_ID, day_of_week=1, interval=parse_interval('16:00', '18:00'))

    with pytest.raises(ScheduleConflict) as exception_info:
        validate_schedule_window(new_window, [MONDAY_SHIFT])

    assert exception_info.value.schedule_id == 1


def test_schedule_window_accepts_touching_window() -> None:
    new_window = WeeklyAvailability(staff_id=STAFF_ID, day_of_week=1, interval=parse_interval('17:00', '19:00'))

    validate_schedule_window(new_window, [MONDAY_SHIFT])


def test_schedule_window_ignores_other_days_and_staff() -> None:
    existing = [
        WeeklyAvailability(staff_id=STAFF_ID, day_of_week=2, interval=parse_interval('09:00', '17:00'), id=2),
        WeeklyAvailability(staff_id=99, day_of_week=1, interval=parse_interval('09:00', '17:00'), id=3),
    ]
    new_window = WeeklyAvailability(staff_id=STAFF_ID, day_of_week=1, interval=parse_interval('09:00', '17:00'))

    validate_schedule_window(new_window, existing)


def test_unavailable_windows_never_conflict() -> None:
    blocked = WeeklyAvailability(staff_id=STAFF_ID, day_of_week=1, interval=parse_interval('12:00', '13:00'), available=False)

    validate_schedule_window(blocked, [MONDAY_SHIFT])
    validate_schedule_window(
        WeeklyAvailability(staff_id=STAFF_ID, day_of_week=1, interval=parse_interval('12:00', '13:00')),
        [blocked],
    )


def test_schedule_window_update_excludes_itself() -> None:
    moved = WeeklyAvailability(staff_id=STAFF_ID, day_of_week=1, interval=parse_interval('10:00', '18:00'), id=1)

    validate_schedule_window(moved, [MONDAY_SHIFT], exclude_window_id=1)
