import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from clinic.core import config
from clinic.models.appointment import Appointment
from clinic.models.schedule import Schedule
from clinic.models.staff import Staff
from clinic.routes.common import (
    DeleteResponse,
    PaginationResponse,
    database_unavailable,
    ensure_database_ready,
    get_db,
    normalize_email,
    normalize_name,
    normalize_optional_text,
    normalize_search,
    paginate,
)

router = APIRouter(tags=['staff'])

logger = logging.getLogger(__name__)

EMAIL_TAKEN_DETAIL = 'A staff member with that email already exists.'


class StaffRequest(BaseModel):
    first_name: str
    last_name: str
    email: str
    phone: str | None = None
    specialty: str | None = None
    active: bool = True

    @field_validator('first_name', 'last_name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        return normalize_name(value)

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        return normalize_email(value)

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, value: str | None) -> str | None:
        normalized = normalize_optional_text(value)
        if normalized is not None and len(normalized) > 20:
            raise ValueError('Phone must be 20 characters or fewer.')
        return normalized

    @field_validator('specialty')
    @classmethod
    def validate_specialty(cls, value: str | None) -> str | None:
        normalized = normalize_optional_text(value)
        if normalized is not None and len(normalized) > 100:
            raise ValueError('Specialty must be 100 characters or fewer.')
        return normalized


class StaffResponse(BaseModel):
    id: int
    first_name: str
    last_name: str
    email: str
    phone: str | None = None
    specialty: str | None = None
    active: bool


class StaffPageResponse(BaseModel):
    staff: list[StaffResponse]
    pagination: PaginationResponse


def to_staff_response(staff: Staff) -> StaffResponse:
    return StaffResponse(
        id=staff.id,
        first_name=staff.first_name,
        last_name=staff.last_name,
        email=staff.email,
        phone=staff.phone,
        specialty=staff.specialty,
        active=staff.active,
    )


def get_staff_or_404(db: Session, staff_id: int) -> Staff:
    staff = db.query(Staff).filter(Staff.id == staff_id).first()
    if staff is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Staff member not found.',
        )
    return staff


def ensure_email_available(db: Session, email: str, staff_id: int | None = None) -> None:
    query = db.query(Staff.id).filter(Staff.email == email)
    if staff_id is not None:
        query = query.filter(Staff.id != staff_id)

    if query.first() is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=EMAIL_TAKEN_DETAIL)


def apply_request(staff: Staff, data: StaffRequest) -> None:
    staff.first_name = data.first_name
    staff.last_name = data.last_name
    staff.email = data.email
    staff.phone = data.phone
    staff.specialty = data.specialty
    staff.active = data.active


@router.get('', response_model=StaffPageResponse)
def list_staff(
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=config.DEFAULT_PAGE_SIZE, ge=1, le=config.MAX_PAGE_SIZE),
    search: str | None = Query(default=None),
    active_only: bool = Query(default=False),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        query = db.query(Staff)
        pattern = normalize_search(search)
        if pattern is not None:
            query = query.filter(or_(
                Staff.first_name.ilike(pattern),
                Staff.last_name.ilike(pattern),
                Staff.email.ilike(pattern),
                Staff.specialty.ilike(pattern),
            ))
        if active_only:
            query = query.filter(Staff.active.is_(True))

        staff, pagination = paginate(
            query.order_by(Staff.last_name.asc(), Staff.first_name.asc(), Staff.id.asc()),
            page,
            page_size,
        )

        return StaffPageResponse(
            staff=[to_staff_response(member) for member in staff],
            pagination=pagination,
        )
    except SQLAlchemyError as exc:
        logger.exception('Failed to list staff.')
        raise database_unavailable() from exc


@router.get('/{staff_id}', response_model=StaffResponse)
def get_staff(staff_id: int, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return to_staff_response(get_staff_or_404(db, staff_id))
    except SQLAlchemyError as exc:
        logger.exception('Failed to load staff member %s.', staff_id)
        raise database_unavailable() from exc


@router.post('', response_model=StaffResponse, status_code=status.HTTP_201_CREATED)
def create_staff(data: StaffRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        ensure_email_available(db, data.email)

        staff = Staff()
        apply_request(staff, data)
        db.add(staff)
        db.commit()
        db.refresh(staff)

        logger.info('Created staff member %s.', staff.id)
        return to_staff_response(staff)
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=EMAIL_TAKEN_DETAIL) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to create staff member.')
        raise database_unavailable() from exc


@router.put('/{staff_id}', response_model=StaffResponse)
def update_staff(staff_id: int, data: StaffRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        staff = get_staff_or_404(db, staff_id)
        ensure_email_available(db, data.email, staff_id=staff_id)

        apply_request(staff, data)
        db.commit()
        db.refresh(staff)

        logger.info('Updated staff member %s.', staff_id)
        return to_staff_response(staff)
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=EMAIL_TAKEN_DETAIL) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to update staff member %s.', staff_id)
        raise database_unavailable() from exc


@router.delete('/{staff_id}', response_model=DeleteResponse)
def delete_staff(staff_id: int, db: Session = Depends(get_db)):
    """Delete a staff member, or deactivate them when schedules or appointments refer to them."""
    ensure_database_ready()

    try:
        staff = get_staff_or_404(db, staff_id)
        schedule_count = db.query(Schedule).filter(Schedule.staff_id == staff_id).count()
        appointment_count = db.query(Appointment).filter(Appointment.staff_id == staff_id).count()

        if schedule_count or appointment_count:
            staff.active = False
            db.commit()

            logger.info(
                'Deactivated staff member %s (%s schedules, %s appointments).',
                staff_id,
                schedule_count,
                appointment_count,
            )
            return DeleteResponse(
                id=staff_id,
                deleted=False,
                deactivated=True,
                message=(
                    f'Staff member deactivated. They have {schedule_count} schedule(s) '
                    f'and {appointment_count} appointment(s) on record.'
                ),
            )

        db.delete(staff)
        db.commit()

        logger.info('Deleted staff member %s.', staff_id)
        return DeleteResponse(id=staff_id, deleted=True, deactivated=False, message='Staff member deleted.')
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to delete staff member %s.', staff_id)
        raise database_unavailable() from exc
