import os
from datetime import datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from medassist.database import Base  # noqa: E402
from medassist.models.appointment import STATUS_SCHEDULED, Appointment  # noqa: E402
from medassist.models.doctor import Doctor  # noqa: E402
from medassist.models.user import User  # noqa: E402


@pytest.fixture
def db():
    engine = create_engine('sqlite:///:memory:')
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine, tables=[User.__table__, Doctor.__table__, Appointment.__table__])

    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine, tables=[Appointment.__table__, Doctor.__table__, User.__table__])


def _add(db, instance):
    db.add(instance)
    db.commit()
    db.refresh(instance)
    return instance


@pytest.fixture
def patient(db) -> User:
    return _add(db, User(email='patient@example.com', name='Rahim', role='patient'))


@pytest.fixture
def other_patient(db) -> User:
    return _add(db, User(email='other@example.com', name='Karim', role='patient'))


@pytest.fixture
def admin(db) -> User:
    return _add(db, User(email='admin@example.com', name='Clinic Admin', role='admin'))


@pytest.fixture
def doctor(db) -> Doctor:
    return _add(db, Doctor(name='Dr. Ayesha Rahman', specialization='Cardiology', hospital='City Hospital'))


@pytest.fixture
def other_doctor(db) -> Doctor:
    return _add(db, Doctor(name='Dr. Tanvir Hasan', specialization='Dermatology'))


@pytest.fixture
def book(db, doctor, patient):
    """Insert an appointment directly, bypassing the conflict check."""

    def _book(
        start_time: datetime,
        duration_minutes: int = 30,
        status: str = STATUS_SCHEDULED,
        doctor_id: str | None = None,
        patient_id: str | None = None,
    ) -> Appointment:
        return _add(
            db,
            Appointment(
                doctor_id=doctor_id or doctor.id,
                patient_id=patient_id or patient.id,
                start_time=start_time,
                duration_minutes=duration_minutes,
                status=status,
            ),
        )

    return _book
