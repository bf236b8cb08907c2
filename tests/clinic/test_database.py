import os

import pytest
from sqlalchemy import create_engine, inspect

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from clinic import database  # noqa: E402
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
def schema_engine(monkeypatch: pytest.MonkeyPatch):
    engine = create_engine('sqlite:///:memory:')
    monkeypatch.setattr(database, 'engine', engine)
    monkeypatch.setattr(database, '_schedule_schema_checked', False)
    monkeypatch.setattr(database, '_appointment_schema_checked', False)
    yield engine
    engine.dispose()


def test_ensure_schema_adds_indexes_to_existing_tables(schema_engine) -> None:
    database.Base.metadata.create_all(bind=schema_engine, tables=TABLES)

    database.ensure_schedule_schema()
    database.ensure_appointment_schema()

    inspector = inspect(schema_engine)
    schedule_indexes = {index['name'] for index in inspector.get_indexes('schedules')}
    appointment_indexes = {index['name'] for index in inspector.get_indexes('appointments')}
    assert 'idx_schedules_staff_day' in schedule_indexes
    assert {'idx_appointments_staff_date', 'idx_appointments_status_date'} <= appointment_indexes
    assert database._appointment_schema_checked is True


def test_ensure_schema_skips_missing_tables(schema_engine) -> None:
    database.ensure_schedule_schema()
    database.ensure_appointment_schema()

    assert inspect(schema_engine).get_table_names() == []
    assert database._schedule_schema_checked is True
