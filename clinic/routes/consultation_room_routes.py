import logging
import re

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from clinic.core import config
from clinic.models.appointment import Appointment
from clinic.models.consultation_room import ConsultationRoom
from clinic.routes.common import (
    DeleteResponse,
    PaginationResponse,
    database_unavailable,
    ensure_database_ready,
    get_db,
    normalize_optional_text,
    normalize_search,
    paginate,
)

router = APIRouter(tags=['consultation-rooms'])

logger = logging.getLogger(__name__)

ROOM_CODE_PATTERN = re.compile(r'^[A-Z0-9-]{1,20}$')
CODE_TAKEN_DETAIL = 'A consultation room with that code already exists.'


class ConsultationRoomRequest(BaseModel):
    code: str
    name: str
    location: str | None = None
    active: bool = True

    @field_validator('code')
    @classmethod
    def validate_code(cls, value: str) -> str:
        normalized = value.strip().upper()
        if not ROOM_CODE_PATTERN.match(normalized):
            raise ValueError('Room codes use 1-20 letters, digits or hyphens.')
        return normalized

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Name is required.')
        if len(normalized) > 100:
            raise ValueError('Name must be 100 characters or fewer.')
        return normalized

    @field_validator('location')
    @classmethod
    def validate_location(cls, value: str | None) -> str | None:
        normalized = normalize_optional_text(value)
        if normalized is not None and len(normalized) > 200:
            raise ValueError('Location must be 200 characters or fewer.')
        return normalized


class ConsultationRoomResponse(BaseModel):
    id: int
    code: str
    name: str
    location: str | None = None
    active: bool


class ConsultationRoomPageResponse(BaseModel):
    consultation_rooms: list[ConsultationRoomResponse]
    pagination: PaginationResponse


def to_room_response(room: ConsultationRoom) -> ConsultationRoomResponse:
    return ConsultationRoomResponse(
        id=room.id,
        code=room.code,
        name=room.name,
        location=room.location,
        active=room.active,
    )


def get_room_or_404(db: Session, room_id: int) -> ConsultationRoom:
    room = db.query(ConsultationRoom).filter(ConsultationRoom.id == room_id).first()
    if room is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Consultation room not found.',
        )
    return room


def ensure_code_available(db: Session, code: str, room_id: int | None = None) -> None:
    query = db.query(ConsultationRoom.id).filter(ConsultationRoom.code == code)
    if room_id is not None:
        query = query.filter(ConsultationRoom.id != room_id)

    if query.first() is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=CODE_TAKEN_DETAIL)


@router.get('', response_model=ConsultationRoomPageResponse)
def list_consultation_rooms(
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=config.DEFAULT_PAGE_SIZE, ge=1, le=config.MAX_PAGE_SIZE),
    search: str | None = Query(default=None),
    active_only: bool = Query(default=False),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        query = db.query(ConsultationRoom)
        pattern = normalize_search(search)
        if pattern is not None:
            query = query.filter(or_(
                ConsultationRoom.code.ilike(pattern),
                ConsultationRoom.name.ilike(pattern),
                ConsultationRoom.location.ilike(pattern),
            ))
        if active_only:
            query = query.filter(ConsultationRoom.active.is_(True))

        rooms, pagination = paginate(
            query.order_by(ConsultationRoom.code.asc(), ConsultationRoom.id.asc()),
            page,
            page_size,
        )

        return ConsultationRoomPageResponse(
            consultation_rooms=[to_room_response(room) for room in rooms],
            pagination=pagination,
        )
    except SQLAlchemyError as exc:
        logger.exception('Failed to list consultation rooms.')
        raise database_unavailable() from exc


@router.post('', response_model=ConsultationRoomResponse, status_code=status.HTTP_201_CREATED)
def create_consultation_room(data: ConsultationRoomRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        ensure_code_available(db, data.code)

        room = ConsultationRoom(**data.model_dump())
        db.add(room)
        db.commit()
        db.refresh(room)

        logger.info('Created consultation room %s (%s).', room.id, room.code)
        return to_room_response(room)
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=CODE_TAKEN_DETAIL) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to create consultation room.')
        raise database_unavailable() from exc


@router.put('/{room_id}', response_model=ConsultationRoomResponse)
def update_consultation_room(room_id: int, data: ConsultationRoomRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        room = get_room_or_404(db, room_id)
        ensure_code_available(db, data.code, room_id=room_id)

        for field, value in data.model_dump().items():
            setattr(room, field, value)
        db.commit()
        db.refresh(room)

        logger.info('Updated consultation room %s.', room_id)
        return to_room_response(room)
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=CODE_TAKEN_DETAIL) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to update consultation room %s.', room_id)
        raise database_unavailable() from exc


@router.delete('/{room_id}', response_model=DeleteResponse)
def delete_consultation_room(room_id: int, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        room = get_room_or_404(db, room_id)
        appointment_count = db.query(Appointment).filter(Appointment.consultation_room_id == room_id).count()

        if appointment_count:
            room.active = False
            db.commit()

            logger.info('Deactivated consultation room %s (%s appointments).', room_id, appointment_count)
            return DeleteResponse(
                id=room_id,
                deleted=False,
                deactivated=True,
                message=f'Consultation room deactivated. It has {appointment_count} appointment(s) on record.',
            )

        db.delete(room)
        db.commit()

        logger.info('Deleted consultation room %s.', room_id)
        return DeleteResponse(id=room_id, deleted=True, deactivated=False, message='Consultation room deleted.')
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to delete consultation room %s.', room_id)
        raise database_unavailable() from exc
