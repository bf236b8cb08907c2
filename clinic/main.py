import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from clinic.core import config
from clinic.database import Base, engine, ensure_appointment_schema, ensure_schedule_schema
from clinic.models import appointment, consultation_room, patient, schedule, staff  # noqa: F401
from clinic.routes import appointment_routes, consultation_room_routes, patient_routes, schedule_routes, staff_routes

logging.basicConfig(
    level=config.LOG_LEVEL,
    format='%(asctime)s %(levelname)s %(name)s: %(message)s',
)

config.validate_runtime_config()

app = FastAPI(title='Clinic Scheduling API')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

logger = logging.getLogger(__name__)


@app.on_event('startup')
def initialize_database() -> None:
    try:
        Base.metadata.create_all(bind=engine)
        ensure_schedule_schema()
        ensure_appointment_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')


@app.get('/')
def root():
    return {'status': 'Clinic Scheduling API Running'}


app.include_router(schedule_routes.router, prefix='/schedules')
app.include_router(appointment_routes.router, prefix='/appointments')
app.include_router(staff_routes.router, prefix='/staff')
app.include_router(patient_routes.router, prefix='/patients')
app.include_router(consultation_room_routes.router, prefix='/consultation-rooms')
