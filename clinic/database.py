from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker

from clinic.core import config

engine = create_engine(config.DATABASE_URL, echo=config.DATABASE_ECHO)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_schedule_schema_checked = False
_appointment_schema_checked = False


def ensure_schedule_schema() -> None:
    global _schedule_schema_checked

    if _schedule_schema_checked:
        return

    with _schema_lock:
        if _schedule_schema_checked:
            return

        inspector = inspect(engine)

        if 'schedules' not in inspector.get_table_names():
            _schedule_schema_checked = True
            return

        with engine.begin() as connection:
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_schedules_staff_day ON schedules(staff_id, day_of_week)')
            )

        _schedule_schema_checked = True


def ensure_appointment_schema() -> None:
    global _appointment_schema_checked

    if _appointment_schema_checked:
        return

    with _schema_lock:
        if _appointment_schema_checked:
            return

        inspector = inspect(engine)

        if 'appointments' not in inspector.get_table_names():
            _appointment_schema_checked = True
            return

        with engine.begin() as connection:
            connection.execute(
                text(
                    'CREATE INDEX IF NOT EXISTS idx_appointments_staff_date '
                    'ON appointments(staff_id, appointment_date)'
                )
            )
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_appointments_status_date ON appointments(status, appointment_date)')
            )

        _appointment_schema_checked = True
