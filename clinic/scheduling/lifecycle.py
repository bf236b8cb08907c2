"""Appointment status transitions and the guards tied to them."""

from enum import Enum
from typing import Iterable

from clinic.scheduling.errors import AlreadyCancelled, ImmutableAppointment, TerminalState

CANCELLATION_NOTE_PREFIX = 'Cancellation reason:'


class AppointmentStatus(str, Enum):
    PENDING = 'pending'
    CONFIRMED = 'confirmed'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'
    NO_SHOW = 'no_show'


ACTIVE_STATUSES = frozenset({AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED})
TERMINAL_STATUSES = frozenset({
    AppointmentStatus.COMPLETED,
    AppointmentStatus.CANCELLED,
    AppointmentStatus.NO_SHOW,
})
LOCKED_STATUSES = frozenset({AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED})

# Fields that move an appointment in time or between people.
CORE_FIELDS = frozenset({'appointment_date', 'interval', 'start_time', 'end_time', 'staff_id', 'patient_id'})


def transition(current: AppointmentStatus | str, target: AppointmentStatus | str) -> AppointmentStatus:
    """Return ``target`` if an appointment in ``current`` may move to it.

    Pending and confirmed appointments may move to any status; the graph is
    deliberately permissive. Terminal statuses never move again.
    """
    current = AppointmentStatus(current)
    target = AppointmentStatus(target)

    if current is AppointmentStatus.CANCELLED:
        if target is AppointmentStatus.CANCELLED:
            raise AlreadyCancelled()
        raise TerminalState(current.value)

    if current in TERMINAL_STATUSES:
        raise TerminalState(current.value)

    return target


def append_cancellation_reason(notes: str | None, reason: str | None) -> str | None:
    normalized_reason = (reason or '').strip()
    if not normalized_reason:
        return notes

    line = f'{CANCELLATION_NOTE_PREFIX} {normalized_reason}'
    if notes and notes.strip():
        return f'{notes.rstrip()}\n{line}'
    return line


def cancel(
    current: AppointmentStatus | str,
    notes: str | None = None,
    reason: str | None = None,
) -> tuple[AppointmentStatus, str | None]:
    status = transition(current, AppointmentStatus.CANCELLED)
    return status, append_cancellation_reason(notes, reason)


def can_edit_times(status: AppointmentStatus | str) -> bool:
    return AppointmentStatus(status) not in LOCKED_STATUSES


def ensure_editable(status: AppointmentStatus | str, changed_fields: Iterable[str]) -> None:
    """Reject changes to the date, times or people of a closed appointment."""
    if can_edit_times(status):
        return

    if CORE_FIELDS.intersection(changed_fields):
        raise ImmutableAppointment(AppointmentStatus(status).value)


def can_delete(_status: AppointmentStatus | str) -> bool:
    # Appointments have no dependent rows, so hard deletion is always allowed.
    return True
