import logging
import math
from datetime import date

from fastapi import HTTPException, status
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session

from clinic.database import SessionLocal, ensure_appointment_schema, ensure_schedule_schema
from clinic.models.appointment import Appointment
from clinic.models.consultation_room import ConsultationRoom
from clinic.models.patient import Patient
from clinic.models.schedule import Schedule
from clinic.models.staff import Staff
from clinic.scheduling.errors import InvalidInterval, InvalidTimeFormat, SchedulingError
from clinic.scheduling.intervals import Interval, parse_interval
from clinic.scheduling.lifecycle import ACTIVE_STATUSES, AppointmentStatus
from clinic.scheduling.validator import AppointmentSnapshot, WeeklyAvailability

logger = logging.getLogger(__name__)

DATABASE_UNAVAILABLE_DETAIL = 'Database unavailable. Verify DATABASE_URL and database credentials.'


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def ensure_database_ready() -> None:
    try:
        ensure_schedule_schema()
        ensure_appointment_schema()
    except SQLAlchemyError as exc:
        logger.exception('Database schema check failed.')
        raise database_unavailable() from exc


def database_unavailable() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=DATABASE_UNAVAILABLE_DETAIL,
    )


def to_http_exception(exc: SchedulingError) -> HTTPException:
    if isinstance(exc, (InvalidTimeFormat, InvalidInterval)):
        status_code = status.HTTP_400_BAD_REQUEST
    else:
        status_code = status.HTTP_409_CONFLICT
    return HTTPException(status_code=status_code, detail=exc.message)


def parse_request_interval(start_time: str, end_time: str) -> Interval:
    try:
        return parse_interval(start_time, end_time)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc


def get_active_staff(db: Session, staff_id: int, lock: bool = False) -> Staff:
    # Locking the staff row serialises every booking and schedule write for that person.
    query = db.query(Staff).filter(Staff.id == staff_id)
    if lock:
        query = query.with_for_update()
    staff = query.first()

    if staff is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Staff member not found.',
        )
    if not staff.active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='The staff member is inactive.',
        )
    return staff


def get_active_patient(db: Session, patient_id: int) -> Patient:
    patient = db.query(Patient).filter(Patient.id == patient_id).first()

    if patient is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Patient not found.',
        )
    if not patient.active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='The patient is inactive.',
        )
    return patient


def get_active_consultation_room(db: Session, room_id: int) -> ConsultationRoom:
    room = db.query(ConsultationRoom).filter(ConsultationRoom.id == room_id).first()

    if room is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Consultation room not found.',
        )
    if not room.active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='The consultation room is inactive.',
        )
    return room


def to_availability(schedule: Schedule) -> WeeklyAvailability:
    return WeeklyAvailability(
        id=schedule.id,
        staff_id=schedule.staff_id,
        day_of_week=schedule.day_of_week,
        interval=Interval.from_times(schedule.start_time, schedule.end_time),
        available=bool(schedule.available),
    )


def to_snapshot(appointment: Appointment) -> AppointmentSnapshot:
    return AppointmentSnapshot(
        id=appointment.id,
        staff_id=appointment.staff_id,
        patient_id=appointment.patient_id,
        appointment_date=appointment.appointment_date,
        interval=Interval.from_times(appointment.start_time, appointment.end_time),
        status=AppointmentStatus(appointment.status),
    )


def load_staff_windows(db: Session, staff_id: int, day_of_week: int) -> list[WeeklyAvailability]:
    schedules = db.query(Schedule).filter(
        Schedule.staff_id == staff_id,
        Schedule.day_of_week == day_of_week,
    ).order_by(Schedule.start_time.asc()).all()

    return [to_availability(schedule) for schedule in schedules]


def load_staff_appointments(db: Session, staff_id: int, appointment_date: date) -> list[AppointmentSnapshot]:
    appointments = db.query(Appointment).filter(
        Appointment.staff_id == staff_id,
        Appointment.appointment_date == appointment_date,
        Appointment.status.in_([active_status.value for active_status in ACTIVE_STATUSES]),
    ).order_by(Appointment.start_time.asc()).all()

    return [to_snapshot(appointment) for appointment in appointments]


class PaginationResponse(BaseModel):
    page: int
    page_size: int
    total_items: int
    total_pages: int
    has_next_page: bool
    has_previous_page: bool


class DeleteResponse(BaseModel):
    id: int
    deleted: bool
    deactivated: bool
    message: str


def paginate(query: Query, page: int, page_size: int) -> tuple[list, PaginationResponse]:
    """Return one page of an already ordered query plus its pagination summary."""
    total_items = query.count()
    items = query.offset((page - 1) * page_size).limit(page_size).all()
    total_pages = math.ceil(total_items / page_size) if total_items else 0

    return items, PaginationResponse(
        page=page,
        page_size=page_size,
        total_items=total_items,
        total_pages=total_pages,
        has_next_page=page < total_pages,
        has_previous_page=page > 1,
    )


def normalize_search(search: str | None) -> str | None:
    if search is None:
        return None
    normalized = search.strip()
    return f'%{normalized}%' if normalized else None


def normalize_optional_text(value: str | None) -> str | None:
    if value is None:
        return None
    normalized = value.strip()
    return normalized or None


def normalize_name(value: str) -> str:
    normalized = value.strip()
    if len(normalized) < 2:
        raise ValueError('Names must be at least 2 characters long.')
    if len(normalized) > 100:
        raise ValueError('Names must be 100 characters or fewer.')
    return normalized


def normalize_email(value: str) -> str:
    normalized = value.strip().lower()
    local, _, domain = normalized.partition('@')
    if not local or '.' not in domain or ' ' in normalized:
        raise ValueError('Invalid email address.')
    if len(normalized) > 150:
        raise ValueError('Email must be 150 characters or fewer.')
    return normalized
