"""Domain failures raised by the scheduling core."""


class SchedulingError(Exception):
    """Base class for every expected scheduling rejection."""

    code = 'scheduling_error'

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidTimeFormat(SchedulingError):
    code = 'invalid_time_format'

    def __init__(self, value: str):
        super().__init__('Invalid time format (HH:MM).')
        self.value = value


class InvalidInterval(SchedulingError):
    code = 'invalid_interval'

    def __init__(self, message: str = 'End time must be after start time.'):
        super().__init__(message)


class StaffUnavailable(SchedulingError):
    code = 'staff_unavailable'

    def __init__(self, staff_id: int):
        super().__init__('The staff member has no availability on that day and time.')
        self.staff_id = staff_id


class AppointmentConflict(SchedulingError):
    code = 'appointment_conflict'

    def __init__(self, appointment_id: int):
        super().__init__(
            f'The staff member already has a pending or confirmed appointment at that time (#{appointment_id}).'
        )
        self.appointment_id = appointment_id


class ScheduleConflict(SchedulingError):
    code = 'schedule_conflict'

    def __init__(self, schedule_id: int | None):
        super().__init__('A schedule for this day already overlaps the given hours.')
        self.schedule_id = schedule_id


class ImmutableAppointment(SchedulingError):
    code = 'immutable_appointment'

    def __init__(self, status: str):
        super().__init__(f'A {status} appointment cannot be rescheduled or reassigned.')
        self.status = status


class TransitionError(SchedulingError):
    code = 'transition_error'


class TerminalState(TransitionError):
    code = 'terminal_state'

    def __init__(self, status: str):
        super().__init__(f'The appointment is already {status} and its status can no longer change.')
        self.status = status


class AlreadyCancelled(TransitionError):
    code = 'already_cancelled'

    def __init__(self):
        super().__init__('The appointment is already cancelled.')
