import pytest

from clinic.scheduling.errors import AlreadyCancelled, ImmutableAppointment, TerminalState
from clinic.scheduling.lifecycle import (
    AppointmentStatus,
    can_delete,
    can_edit_times,
    cancel,
    ensure_editable,
    transition,
)


@pytest.mark.parametrize('current', [AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED])
@pytest.mark.parametrize('target', list(AppointmentStatus))
def test_open_appointments_may_move_to_any_status(current: AppointmentStatus, target: AppointmentStatus) -> None:
    assert transition(current, target) is target


@pytest.mark.parametrize('current', [AppointmentStatus.COMPLETED, AppointmentStatus.NO_SHOW])
@pytest.mark.parametrize('target', list(AppointmentStatus))
def test_closed_appointments_cannot_move(current: AppointmentStatus, target: AppointmentStatus) -> None:
    with pytest.raises(TerminalState):
        transition(current, target)


def test_cancelled_appointment_reports_already_cancelled_on_repeat() -> None:
    with pytest.raises(AlreadyCancelled):
        transition(AppointmentStatus.CANCELLED, AppointmentStatus.CANCELLED)


@pytest.mark.parametrize('target', ['pending', 'confirmed', 'completed', 'no_show'])
def test_cancelled_appointment_cannot_be_reopened(target: str) -> None:
    with pytest.raises(TerminalState):
        transition('cancelled', target)


def test_transition_accepts_stored_string_values() -> None:
    assert transition('pending', 'confirmed') is AppointmentStatus.CONFIRMED


def test_cancel_appends_reason_to_existing_notes() -> None:
    status, notes = cancel(AppointmentStatus.PENDING, 'First visit', 'patient requested')

    assert status is AppointmentStatus.CANCELLED
    assert notes == 'First visit\nCancellation reason: patient requested'


def test_cancel_without_notes_starts_with_reason() -> None:
    _, notes = cancel('confirmed', None, '  patient requested ')

    assert notes == 'Cancellation reason: patient requested'


@pytest.mark.parametrize('reason', [None, '', '   '])
def test_cancel_without_reason_keeps_notes(reason: str | None) -> None:
    _, notes = cancel('pending', 'Bring previous reports', reason)

    assert notes == 'Bring previous reports'


def test_second_cancel_fails_with_already_cancelled() -> None:
    status, notes = cancel('pending', None, 'patient requested')

    assert 'patient requested' in notes
    with pytest.raises(AlreadyCancelled):
        cancel(status, notes, 'again')


@pytest.mark.parametrize(
    ('status', 'expected'),
    [
        ('pending', True),
        ('confirmed', True),
        ('no_show', True),
        ('completed', False),
        ('cancelled', False),
    ],
)
def test_can_edit_times(status: str, expected: bool) -> None:
    assert can_edit_times(status) is expected


@pytest.mark.parametrize('field', ['appointment_date', 'interval', 'staff_id', 'patient_id'])
def test_completed_appointment_rejects_core_changes(field: str) -> None:
    with pytest.raises(ImmutableAppointment):
        ensure_editable(AppointmentStatus.COMPLETED, {field})


def test_closed_appointment_accepts_note_only_changes() -> None:
    ensure_editable('cancelled', set())
    ensure_editable('completed', {'notes', 'consultation_type'})


def test_open_appointment_accepts_core_changes() -> None:
    ensure_editable('pending', {'interval', 'appointment_date'})


@pytest.mark.parametrize('status', list(AppointmentStatus))
def test_appointments_can_always_be_deleted(status: AppointmentStatus) -> None:
    assert can_delete(status) is True
