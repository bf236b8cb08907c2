import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from clinic.core import config
from clinic.models.appointment import Appointment
from clinic.models.patient import Patient
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

router = APIRouter(tags=['patients'])

logger = logging.getLogger(__name__)

EMAIL_TAKEN_DETAIL = 'A patient with that email already exists.'


class PatientRequest(BaseModel):
    first_name: str
    last_name: str
    email: str
    phone: str | None = None
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


class PatientResponse(BaseModel):
    id: int
    first_name: str
    last_name: str
    email: str
    phone: str | None = None
    active: bool


class PatientPageResponse(BaseModel):
    patients: list[PatientResponse]
    pagination: PaginationResponse


def to_patient_response(patient: Patient) -> PatientResponse:
    return PatientResponse(
        id=patient.id,
        first_name=patient.first_name,
        last_name=patient.last_name,
        email=patient.email,
        phone=patient.phone,
        active=patient.active,
    )


def get_patient_or_404(db: Session, patient_id: int) -> Patient:
    patient = db.query(Patient).filter(Patient.id == patient_id).first()
    if patient is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Patient not found.',
        )
    return patient


def ensure_email_available(db: Session, email: str, patient_id: int | None = None) -> None:
    query = db.query(Patient.id).filter(Patient.email == email)
    if patient_id is not None:
        query = query.filter(Patient.id != patient_id)

    if query.first() is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=EMAIL_TAKEN_DETAIL)


@router.get('', response_model=PatientPageResponse)
def list_patients(
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=config.DEFAULT_PAGE_SIZE, ge=1, le=config.MAX_PAGE_SIZE),
    search: str | None = Query(default=None),
    active_only: bool = Query(default=False),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        query = db.query(Patient)
        pattern = normalize_search(search)
        if pattern is not None:
            query = query.filter(or_(
                Patient.first_name.ilike(pattern),
                Patient.last_name.ilike(pattern),
                Patient.email.ilike(pattern),
                Patient.phone.ilike(pattern),
            ))
        if active_only:
            query = query.filter(Patient.active.is_(True))

        patients, pagination = paginate(
            query.order_by(Patient.last_name.asc(), Patient.first_name.asc(), Patient.id.asc()),
            page,
            page_size,
        )

        return PatientPageResponse(
            patients=[to_patient_response(patient) for patient in patients],
            pagination=pagination,
        )
    except SQLAlchemyError as exc:
        logger.exception('Failed to list patients.')
        raise database_unavailable() from exc


@router.get('/{patient_id}', response_model=PatientResponse)
def get_patient(patient_id: int, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return to_patient_response(get_patient_or_404(db, patient_id))
    except SQLAlchemyError as exc:
        logger.exception('Failed to load patient %s.', patient_id)
        raise database_unavailable() from exc


@router.post('', response_model=PatientResponse, status_code=status.HTTP_201_CREATED)
def create_patient(data: PatientRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        ensure_email_available(db, data.email)

        patient = Patient(**data.model_dump())
        db.add(patient)
        db.commit()
        db.refresh(patient)

        logger.info('Created patient %s.', patient.id)
        return to_patient_response(patient)
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=EMAIL_TAKEN_DETAIL) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to create patient.')
        raise database_unavailable() from exc


@router.put('/{patient_id}', response_model=PatientResponse)
def update_patient(patient_id: int, data: PatientRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        patient = get_patient_or_404(db, patient_id)
        ensure_email_available(db, data.email, patient_id=patient_id)

        for field, value in data.model_dump().items():
            setattr(patient, field, value)
        db.commit()
        db.refresh(patient)

        logger.info('Updated patient %s.', patient_id)
        return to_patient_response(patient)
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=EMAIL_TAKEN_DETAIL) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to update patient %s.', patient_id)
        raise database_unavailable() from exc


@router.delete('/{patient_id}', response_model=DeleteResponse)
def delete_patient(patient_id: int, db: Session = Depends(get_db)):
    """Delete a patient, or deactivate them when they have appointments on record."""
    ensure_database_ready()

    try:
        patient = get_patient_or_404(db, patient_id)
        appointment_count = db.query(Appointment).filter(Appointment.patient_id == patient_id).count()

        if appointment_count:
            patient.active = False
            db.commit()

            logger.info('Deactivated patient %s (%s appointments).', patient_id, appointment_count)
            return DeleteResponse(
                id=patient_id,
                deleted=False,
                deactivated=True,
                message=f'Patient deactivated. They have {appointment_count} appointment(s) on record.',
            )

        db.delete(patient)
        db.commit()

        logger.info('Deleted patient %s.', patient_id)
        return DeleteResponse(id=patient_id, deleted=True, deactivated=False, message='Patient deleted.')
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to delete patient %s.', patient_id)
        raise database_unavailable() from exc
