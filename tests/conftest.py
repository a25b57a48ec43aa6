import pytest
from datetime import datetime
from itertools import count
from sqlalchemy.orm import sessionmaker

from clinic_booking.core.database import Base, build_engine
from clinic_booking.core.locks import LocalLockTable
from clinic_booking.models.appointment import Appointment, AppointmentStatus
from clinic_booking.models.doctor import Doctor
from clinic_booking.models.patient import Patient
from clinic_booking.services.booking_service import BookingCoordinator


class FixedClock:
    """Settable time source."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


_ids = count(1)


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'booking.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def clock():
    return FixedClock(datetime(2025, 5, 1, 8, 0))


@pytest.fixture
def locks():
    return LocalLockTable(timeout=5)


@pytest.fixture
def coordinator(db, locks, clock):
    return BookingCoordinator(db, locks, clock=clock, max_per_day=10)


@pytest.fixture
def make_patient(db):
    def factory(**fields):
        n = next(_ids)
        data = {"first_name": "Patient", "last_name": f"No{n}", "email": f"patient{n}@example.com"}
        data.update(fields)
        patient = Patient(**data)
        db.add(patient)
        db.commit()
        db.refresh(patient)
        return patient
    return factory


@pytest.fixture
def make_doctor(db):
    def factory(**fields):
        n = next(_ids)
        data = {
            "first_name": "Doctor",
            "last_name": f"No{n}",
            "specialization": "Cardiology",
            "license_number": f"LIC-{n:05d}",
        }
        data.update(fields)
        doctor = Doctor(**data)
        db.add(doctor)
        db.commit()
        db.refresh(doctor)
        return doctor
    return factory


@pytest.fixture
def make_appointment(db):
    """Insert an appointment directly, bypassing the booking checks."""
    def factory(patient, doctor, at, status=AppointmentStatus.SCHEDULED):
        appointment = Appointment(
            patient_id=patient.id,
            doctor_id=doctor.id,
            appointment_date=at,
            status=status,
        )
        db.add(appointment)
        db.commit()
        db.refresh(appointment)
        return appointment
    return factory
