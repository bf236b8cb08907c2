import os
from datetime import time

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from clinic.database import Base  # noqa: E402
from clinic.models.appointment import Appointment  # noqa: E402
from clinic.models.consultation_room import ConsultationRoom  # noqa: E402
from clinic.models.patient import Patient  # noqa: E402
from clinic.models.schedule import Schedule  # noqa: E402
from clinic.models.staff import Staff  # noqa: E402

TABLES = [
    Staff.__table__,
    Patient.__table__,
    ConsultationRoom.__table__,
    Schedule.__table__,
    Appointment.__table__,
]


@pytest.fixture
def clinic_db(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr('clinic.routes.schedule_routes.ensure_database_ready', lambda: None)
    monkeypatch.setattr('clinic.routes.appointment_routes.ensure_database_ready', lambda: None)
    monkeypatch.setattr('clinic.routes.staff_routes.ensure_database_ready', lambda: None)
    monkeypatch.setattr('clinic.routes.patient_routes.ensure_database_ready', lambda: None)
    monkeypatch.setattr('clinic.routes.consultation_room_routes.ensure_database_ready', lambda: None)

    engine = create_engine('sqlite:///:memory:')
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine, tables=TABLES)

    db = testing_session_local()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine, tables=list(reversed(TABLES)))


@pytest.fixture
def staff_member(clinic_db) -> Staff:
    staff = Staff(first_name='Ana', last_name='Rojas', email='ana.rojas@clinic.test', specialty='Clinical psychology')
    clinic_db.add(staff)
    clinic_db.commit()
    clinic_db.refresh(staff)
    return staff


@pytest.fixture
def patient(clinic_db) -> Patient:
    record = Patient(first_name='Luis', last_name='Mena', email='luis.mena@example.test')
    clinic_db.add(record)
    clinic_db.commit()
    clinic_db.refresh(record)
    return record


@pytest.fixture
def monday_shift(clinic_db, staff_member) -> Schedule:
    schedule = Schedule(
        staff_id=staff_member.id,
        day_of_week=1,
        start_time=time(9, 0),
        end_time=time(17, 0),
        available=True,
    )
    clinic_db.add(schedule)
    clinic_db.commit()
    clinic_db.refresh(schedule)
    return schedule
