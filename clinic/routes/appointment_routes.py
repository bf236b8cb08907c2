import logging
from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic.core import config
from clinic.models.appointment import Appointment
from clinic.routes.common import (
    PaginationResponse,
    database_unavailable,
    ensure_database_ready,
    get_active_consultation_room,
    get_active_patient,
    get_active_staff,
    get_db,
    load_staff_appointments,
    load_staff_windows,
    normalize_optional_text,
    paginate,
    parse_request_interval,
    to_http_exception,
)
from clinic.scheduling.errors import SchedulingError
from clinic.scheduling.intervals import Interval, TimeOfDay
from clinic.scheduling.lifecycle import (
    AppointmentStatus,
    can_delete,
    cancel,
    ensure_editable,
    transition,
)
from clinic.scheduling.validator import AppointmentCandidate, day_of_week, validate

router = APIRouter(tags=['appointments'])

logger = logging.getLogger(__name__)

SORT_COLUMNS = {
    'appointment_date': Appointment.appointment_date,
    'start_time': Appointment.start_time,
    'status': Appointment.status,
}


class AppointmentRequest(BaseModel):
    patient_id: int = Field(gt=0)
    staff_id: int = Field(gt=0)
    appointment_date: date
    start_time: str
    end_time: str
    status: AppointmentStatus = AppointmentStatus.PENDING
    consultation_type: str | None = None
    notes: str | None = None
    consultation_room_id: int | None = Field(default=None, gt=0)

    @field_validator('consultation_type')
    @classmethod
    def validate_consultation_type(cls, value: str | None) -> str | None:
        normalized = normalize_optional_text(value)
        if normalized is not None and len(normalized) > 50:
            raise ValueError('Consultation type must be 50 characters or fewer.')
        return normalized

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        normalized = normalize_optional_text(value)
        if normalized is not None and len(normalized) > config.MAX_APPOINTMENT_NOTES_LENGTH:
            raise ValueError(f'Notes must be {config.MAX_APPOINTMENT_NOTES_LENGTH} characters or fewer.')
        return normalized


class StatusUpdateRequest(BaseModel):
    status: AppointmentStatus


class CancelAppointmentRequest(BaseModel):
    reason: str | None = None

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str | None) -> str | None:
        normalized = normalize_optional_text(value)
        if normalized is not None and len(normalized) > config.MAX_CANCELLATION_REASON_LENGTH:
            raise ValueError(
                f'Cancellation reason must be {config.MAX_CANCELLATION_REASON_LENGTH} characters or fewer.'
            )
        return normalized


class AppointmentResponse(BaseModel):
    id: int
    patient_id: int
    staff_id: int
    appointment_date: date
    start_time: str
    end_time: str
    status: AppointmentStatus
    consultation_type: str | None = None
    notes: str | None = None
    consultation_room_id: int | None = None
    created_at: datetime | None = None


class AppointmentPageResponse(BaseModel):
    appointments: list[AppointmentResponse]
    pagination: PaginationResponse


def to_appointment_response(appointment: Appointment) -> AppointmentResponse:
    return AppointmentResponse(
        id=appointment.id,
        patient_id=appointment.patient_id,
        staff_id=appointment.staff_id,
        appointment_date=appointment.appointment_date,
        start_time=str(TimeOfDay.from_time(appointment.start_time)),
        end_time=str(TimeOfDay.from_time(appointment.end_time)),
        status=AppointmentStatus(appointment.status),
        consultation_type=appointment.consultation_type,
        notes=appointment.notes,
        consultation_room_id=appointment.consultation_room_id,
        created_at=appointment.created_at,
    )


def get_appointment_or_404(db: Session, appointment_id: int, lock: bool = False) -> Appointment:
    query = db.query(Appointment).filter(Appointment.id == appointment_id)
    if lock:
        query = query.with_for_update()
    appointment = query.first()

    if appointment is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Appointment not found.',
        )
    return appointment


def changed_core_fields(appointment: Appointment, data: AppointmentRequest, interval: Interval) -> set[str]:
    stored_interval = Interval.from_times(appointment.start_time, appointment.end_time)
    changed: set[str] = set()

    if appointment.appointment_date != data.appointment_date:
        changed.add('appointment_date')
    if stored_interval != interval:
        changed.add('interval')
    if appointment.staff_id != data.staff_id:
        changed.add('staff_id')
    if appointment.patient_id != data.patient_id:
        changed.add('patient_id')

    return changed


def check_references(db: Session, data: AppointmentRequest) -> None:
    get_active_staff(db, data.staff_id, lock=True)
    get_active_patient(db, data.patient_id)
    if data.consultation_room_id is not None:
        get_active_consultation_room(db, data.consultation_room_id)


def check_booking(
    db: Session,
    data: AppointmentRequest,
    interval: Interval,
    exclude_appointment_id: int | None = None,
) -> None:
    candidate = AppointmentCandidate(
        staff_id=data.staff_id,
        appointment_date=data.appointment_date,
        interval=interval,
    )
    validate(
        candidate,
        load_staff_windows(db, data.staff_id, day_of_week(data.appointment_date)),
        load_staff_appointments(db, data.staff_id, data.appointment_date),
        exclude_appointment_id=exclude_appointment_id,
    )


def apply_request(appointment: Appointment, data: AppointmentRequest, interval: Interval) -> None:
    appointment.patient_id = data.patient_id
    appointment.staff_id = data.staff_id
    appointment.appointment_date = data.appointment_date
    appointment.start_time = interval.start.to_time()
    appointment.end_time = interval.end.to_time()
    appointment.status = data.status.value
    appointment.consultation_type = data.consultation_type
    appointment.notes = data.notes
    appointment.consultation_room_id = data.consultation_room_id


@router.get('', response_model=AppointmentPageResponse)
def list_appointments(
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=config.DEFAULT_PAGE_SIZE, ge=1, le=config.MAX_PAGE_SIZE),
    patient_id: int | None = Query(default=None, gt=0),
    staff_id: int | None = Query(default=None, gt=0),
    appointment_status: AppointmentStatus | None = Query(default=None, alias='status'),
    date_from: date | None = Query(default=None),
    date_to: date | None = Query(default=None),
    sort_by: str = Query(default='appointment_date', pattern='^(appointment_date|start_time|status)$'),
    sort_order: str = Query(default='asc', pattern='^(asc|desc)$'),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        query = db.query(Appointment)
        if patient_id is not None:
            query = query.filter(Appointment.patient_id == patient_id)
        if staff_id is not None:
            query = query.filter(Appointment.staff_id == staff_id)
        if appointment_status is not None:
            query = query.filter(Appointment.status == appointment_status.value)
        if date_from is not None:
            query = query.filter(Appointment.appointment_date >= date_from)
        if date_to is not None:
            query = query.filter(Appointment.appointment_date <= date_to)

        sort_column = SORT_COLUMNS[sort_by]
        ordering = sort_column.desc() if sort_order == 'desc' else sort_column.asc()
        appointments, pagination = paginate(
            query.order_by(ordering, Appointment.start_time.asc(), Appointment.id.asc()),
            page,
            page_size,
        )

        return AppointmentPageResponse(
            appointments=[to_appointment_response(appointment) for appointment in appointments],
            pagination=pagination,
        )
    except SQLAlchemyError as exc:
        logger.exception('Failed to list appointments.')
        raise database_unavailable() from exc


@router.post('', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(data: AppointmentRequest, db: Session = Depends(get_db)):
    interval = parse_request_interval(data.start_time, data.end_time)

    ensure_database_ready()

    try:
        check_references(db, data)
        check_booking(db, data, interval)

        appointment = Appointment()
        apply_request(appointment, data, interval)
        db.add(appointment)
        db.commit()
        db.refresh(appointment)

        logger.info(
            'Created appointment %s for staff %s on %s (%s).',
            appointment.id,
            data.staff_id,
            data.appointment_date,
            interval,
        )
        return to_appointment_response(appointment)
    except SchedulingError as exc:
        db.rollback()
        logger.info('Rejected appointment for staff %s on %s: %s', data.staff_id, data.appointment_date, exc.message)
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to create appointment.')
        raise database_unavailable() from exc


@router.put('/{appointment_id}', response_model=AppointmentResponse)
def update_appointment(appointment_id: int, data: AppointmentRequest, db: Session = Depends(get_db)):
    interval = parse_request_interval(data.start_time, data.end_time)

    ensure_database_ready()

    try:
        appointment = get_appointment_or_404(db, appointment_id, lock=True)
        changed = changed_core_fields(appointment, data, interval)

        ensure_editable(appointment.status, changed)
        if data.status.value != appointment.status:
            transition(appointment.status, data.status)

        # An edit that keeps date, times and people leaves an already validated booking in place.
        if changed:
            check_references(db, data)
            check_booking(db, data, interval, exclude_appointment_id=appointment_id)
        elif data.consultation_room_id is not None and data.consultation_room_id != appointment.consultation_room_id:
            get_active_consultation_room(db, data.consultation_room_id)

        apply_request(appointment, data, interval)
        db.commit()
        db.refresh(appointment)

        logger.info('Updated appointment %s.', appointment_id)
        return to_appointment_response(appointment)
    except SchedulingError as exc:
        db.rollback()
        logger.info('Rejected update of appointment %s: %s', appointment_id, exc.message)
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to update appointment %s.', appointment_id)
        raise database_unavailable() from exc


@router.post('/{appointment_id}/status', response_model=AppointmentResponse)
def update_appointment_status(appointment_id: int, data: StatusUpdateRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        appointment = get_appointment_or_404(db, appointment_id, lock=True)

        # Date, times and people are untouched, so the booking is not re-validated.
        appointment.status = transition(appointment.status, data.status).value
        db.commit()
        db.refresh(appointment)

        logger.info('Appointment %s is now %s.', appointment_id, appointment.status)
        return to_appointment_response(appointment)
    except SchedulingError as exc:
        db.rollback()
        logger.info('Rejected status change of appointment %s: %s', appointment_id, exc.message)
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to change status of appointment %s.', appointment_id)
        raise database_unavailable() from exc


@router.post('/{appointment_id}/cancel', response_model=AppointmentResponse)
def cancel_appointment(appointment_id: int, data: CancelAppointmentRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        appointment = get_appointment_or_404(db, appointment_id, lock=True)

        new_status, notes = cancel(appointment.status, appointment.notes, data.reason)
        appointment.status = new_status.value
        appointment.notes = notes
        db.commit()
        db.refresh(appointment)

        logger.info('Cancelled appointment %s.', appointment_id)
        return to_appointment_response(appointment)
    except SchedulingError as exc:
        db.rollback()
        logger.info('Rejected cancellation of appointment %s: %s', appointment_id, exc.message)
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to cancel appointment %s.', appointment_id)
        raise database_unavailable() from exc


@router.delete('/{appointment_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_appointment(appointment_id: int, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        appointment = get_appointment_or_404(db, appointment_id)
        if appointment.status == AppointmentStatus.COMPLETED.value:
            logger.warning('Deleting completed appointment %s.', appointment_id)

        if can_delete(appointment.status):
            db.delete(appointment)
            db.commit()
            logger.info('Deleted appointment %s.', appointment_id)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to delete appointment %s.', appointment_id)
        raise database_unavailable() from exc
