from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import List

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..core.exceptions import ResourceKind, ResourceNotFound
from ..models.appointment import Appointment, AppointmentStatus
from .directory import ResourceDirectory


def shift(at: datetime, delta: timedelta) -> datetime:
    """Add delta to at, clamped to the representable datetime range."""
    try:
        return at + delta
    except OverflowError:
        return datetime.max if delta > timedelta(0) else datetime.min


@dataclass(frozen=True)
class ScheduleWindow:
    """A resource's schedule between two instants, both ends inclusive."""

    kind: ResourceKind
    resource_id: int
    start: datetime
    end: datetime

    @classmethod
    def around(cls, kind: ResourceKind, resource_id: int, at: datetime, radius: timedelta) -> "ScheduleWindow":
        return cls(kind, resource_id, shift(at, -radius), shift(at, radius))


class ScheduleQuery:
    """Reads of existing appointments, always against the database."""

    def __init__(self, db: Session):
        self.db = db

    def find_overlapping(
        self,
        kind: ResourceKind,
        resource_id: int,
        window_start: datetime,
        window_end: datetime,
    ) -> List[Appointment]:
        """Non-cancelled appointments of the resource inside the window."""
        if kind == ResourceKind.PATIENT:
            owner = Appointment.patient_id
        elif kind == ResourceKind.DOCTOR:
            owner = Appointment.doctor_id
        else:
            raise ValueError(f"Schedules are kept for patients and doctors, not {kind}")

        return (
            self.db.query(Appointment)
            .filter(
                owner == resource_id,
                Appointment.appointment_date >= window_start,
                Appointment.appointment_date <= window_end,
                Appointment.status != AppointmentStatus.CANCELLED,
            )
            .order_by(Appointment.appointment_date)
            .populate_existing()
            .all()
        )

    def find_in_window(self, window: ScheduleWindow) -> List[Appointment]:
        return self.find_overlapping(window.kind, window.resource_id, window.start, window.end)

    def get(self, appointment_id: int) -> Appointment:
        appointment = self.db.query(Appointment).filter(Appointment.id == appointment_id).first()
        if not appointment:
            raise ResourceNotFound(ResourceKind.APPOINTMENT, appointment_id)
        return appointment

    def get_for_update(self, appointment_id: int) -> Appointment:
        """Read an appointment row with FOR UPDATE, held until commit or rollback."""
        appointment = (
            self.db.query(Appointment)
            .filter(Appointment.id == appointment_id)
            .with_for_update()
            .populate_existing()
            .first()
        )
        if not appointment:
            raise ResourceNotFound(ResourceKind.APPOINTMENT, appointment_id)
        return appointment

    def list_all(self) -> List[Appointment]:
        return self.db.query(Appointment).order_by(Appointment.appointment_date).all()

    def list_for_patient(self, patient_id: int) -> List[Appointment]:
        ResourceDirectory(self.db).get_patient(patient_id)
        return (
            self.db.query(Appointment)
            .filter(Appointment.patient_id == patient_id)
            .order_by(Appointment.appointment_date)
            .all()
        )

    def list_for_doctor(self, doctor_id: int) -> List[Appointment]:
        ResourceDirectory(self.db).get_doctor(doctor_id)
        return (
            self.db.query(Appointment)
            .filter(Appointment.doctor_id == doctor_id)
            .order_by(Appointment.appointment_date)
            .all()
        )


class CapacityCounter:
    def __init__(self, db: Session):
        self.db = db

    def count_for_day(self, doctor_id: int, day: date) -> int:
        """Count the doctor's non-cancelled appointments on a calendar day."""
        start_of_day = datetime.combine(day, time.min)
        end_of_day = shift(start_of_day, timedelta(days=1))
        # The last representable day has no following midnight
        if end_of_day == datetime.max:
            before_end = Appointment.appointment_date <= end_of_day
        else:
            before_end = Appointment.appointment_date < end_of_day

        return (
            self.db.query(func.count(Appointment.id))
            .filter(
                Appointment.doctor_id == doctor_id,
                Appointment.appointment_date >= start_of_day,
                before_end,
                Appointment.status != AppointmentStatus.CANCELLED,
            )
            .scalar()
        )
