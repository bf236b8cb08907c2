import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic.core import config
from clinic.models.schedule import Schedule
from clinic.routes.common import (
    PaginationResponse,
    database_unavailable,
    ensure_database_ready,
    get_active_staff,
    get_db,
    load_staff_windows,
    paginate,
    parse_request_interval,
    to_http_exception,
)
from clinic.scheduling.errors import SchedulingError
from clinic.scheduling.intervals import TimeOfDay
from clinic.scheduling.validator import WeeklyAvailability, validate_schedule_window

router = APIRouter(tags=['schedules'])

logger = logging.getLogger(__name__)


class ScheduleRequest(BaseModel):
    staff_id: int = Field(gt=0)
    day_of_week: int = Field(ge=0, le=6)
    start_time: str
    end_time: str
    available: bool = True


class ScheduleResponse(BaseModel):
    id: int
    staff_id: int
    day_of_week: int
    start_time: str
    end_time: str
    available: bool


class SchedulePageResponse(BaseModel):
    schedules: list[ScheduleResponse]
    pagination: PaginationResponse


def to_schedule_response(schedule: Schedule) -> ScheduleResponse:
    return ScheduleResponse(
        id=schedule.id,
        staff_id=schedule.staff_id,
        day_of_week=schedule.day_of_week,
        start_time=str(TimeOfDay.from_time(schedule.start_time)),
        end_time=str(TimeOfDay.from_time(schedule.end_time)),
        available=schedule.available,
    )


def get_schedule_or_404(db: Session, schedule_id: int) -> Schedule:
    schedule = db.query(Schedule).filter(Schedule.id == schedule_id).first()
    if schedule is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Schedule not found.',
        )
    return schedule


@router.get('', response_model=SchedulePageResponse)
def list_schedules(
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=config.DEFAULT_PAGE_SIZE, ge=1, le=config.MAX_PAGE_SIZE),
    staff_id: int | None = Query(default=None, gt=0),
    day_of_week: int | None = Query(default=None, ge=0, le=6),
    available_only: bool = Query(default=False),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        query = db.query(Schedule)
        if staff_id is not None:
            query = query.filter(Schedule.staff_id == staff_id)
        if day_of_week is not None:
            query = query.filter(Schedule.day_of_week == day_of_week)
        if available_only:
            query = query.filter(Schedule.available.is_(True))

        schedules, pagination = paginate(
            query.order_by(
                Schedule.day_of_week.asc(),
                Schedule.start_time.asc(),
                Schedule.id.asc(),
            ),
            page,
            page_size,
        )

        return SchedulePageResponse(
            schedules=[to_schedule_response(schedule) for schedule in schedules],
            pagination=pagination,
        )
    except SQLAlchemyError as exc:
        logger.exception('Failed to list schedules.')
        raise database_unavailable() from exc


@router.post('', response_model=ScheduleResponse, status_code=status.HTTP_201_CREATED)
def create_schedule(data: ScheduleRequest, db: Session = Depends(get_db)):
    interval = parse_request_interval(data.start_time, data.end_time)

    ensure_database_ready()

    try:
        get_active_staff(db, data.staff_id, lock=True)

        candidate = WeeklyAvailability(
            staff_id=data.staff_id,
            day_of_week=data.day_of_week,
            interval=interval,
            available=data.available,
        )
        validate_schedule_window(candidate, load_staff_windows(db, data.staff_id, data.day_of_week))

        schedule = Schedule(
            staff_id=data.staff_id,
            day_of_week=data.day_of_week,
            start_time=interval.start.to_time(),
            end_time=interval.end.to_time(),
            available=data.available,
        )
        db.add(schedule)
        db.commit()
        db.refresh(schedule)

        logger.info('Created schedule %s for staff %s on day %s (%s).', schedule.id, data.staff_id, data.day_of_week, interval)
        return to_schedule_response(schedule)
    except SchedulingError as exc:
        db.rollback()
        logger.info('Rejected schedule for staff %s: %s', data.staff_id, exc.message)
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to create schedule.')
        raise database_unavailable() from exc


@router.put('/{schedule_id}', response_model=ScheduleResponse)
def update_schedule(schedule_id: int, data: ScheduleRequest, db: Session = Depends(get_db)):
    interval = parse_request_interval(data.start_time, data.end_time)

    ensure_database_ready()

    try:
        schedule = get_schedule_or_404(db, schedule_id)
        get_active_staff(db, data.staff_id, lock=True)

        candidate = WeeklyAvailability(
            id=schedule_id,
            staff_id=data.staff_id,
            day_of_week=data.day_of_week,
            interval=interval,
            available=data.available,
        )
        validate_schedule_window(
            candidate,
            load_staff_windows(db, data.staff_id, data.day_of_week),
            exclude_window_id=schedule_id,
        )

        schedule.staff_id = data.staff_id
        schedule.day_of_week = data.day_of_week
        schedule.start_time = interval.start.to_time()
        schedule.end_time = interval.end.to_time()
        schedule.available = data.available
        db.commit()
        db.refresh(schedule)

        logger.info('Updated schedule %s.', schedule_id)
        return to_schedule_response(schedule)
    except SchedulingError as exc:
        db.rollback()
        logger.info('Rejected update of schedule %s: %s', schedule_id, exc.message)
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to update schedule %s.', schedule_id)
        raise database_unavailable() from exc


@router.delete('/{schedule_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_schedule(schedule_id: int, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        schedule = get_schedule_or_404(db, schedule_id)
        db.delete(schedule)
        db.commit()

        logger.info('Deleted schedule %s.', schedule_id)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to delete schedule %s.', schedule_id)
        raise database_unavailable() from exc
