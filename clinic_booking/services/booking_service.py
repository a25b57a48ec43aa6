from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session
from datetime import datetime, timedelta
from typing import Optional
import logging

from ..core.clock import Clock, utcnow, to_naive_utc
from ..core.exceptions import (
    ResourceKind, InvalidBookingTime, PatientConflict, DoctorConflict,
    CapacityExceeded, TransientUnavailable
)
from ..core.locks import DoctorLockTable
from ..models.appointment import Appointment, AppointmentStatus
from .directory import ResourceDirectory
from .schedule import ScheduleQuery, ScheduleWindow, CapacityCounter

logger = logging.getLogger(__name__)

class BookingCoordinator:
    """
    Creates appointments without double-booking a doctor.

    The conflict checks, the capacity check and the insert run while holding
    the doctor's entry in the lock table and the doctor's row lock, and the
    commit happens before either is released. A concurrent booking for the
    same doctor therefore re-reads the schedule after this one is durable.
    Patient-side checks are plain reads: two bookings for the same patient
    with different doctors are not serialized against each other.
    """

    def __init__(
        self,
        db: Session,
        locks: DoctorLockTable,
        clock: Clock = utcnow,
        max_per_day: int = 10,
        patient_window: timedelta = timedelta(hours=1),
        doctor_window: timedelta = timedelta(minutes=30),
    ):
        self.db = db
        self.locks = locks
        self.clock = clock
        self.max_per_day = max_per_day
        self.patient_window = patient_window
        self.doctor_window = doctor_window

        self.directory = ResourceDirectory(db)
        self.schedule = ScheduleQuery(db)
        self.capacity = CapacityCounter(db)

    def book(
        self,
        patient_id: int,
        doctor_id: int,
        appointment_time: datetime,
        reason: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Appointment:
        """Book an appointment in SCHEDULED status or raise a BookingError."""
        logger.info(f"Booking appointment for patient ID: {patient_id}, doctor ID: {doctor_id}")
        try:
            self.directory.get_patient(patient_id)
            self.directory.get_doctor(doctor_id)

            try:
                appointment_time = to_naive_utc(appointment_time)
            except OverflowError:
                raise InvalidBookingTime("Appointment time is out of range") from None
            if appointment_time <= self.clock():
                raise InvalidBookingTime()
        except OperationalError as e:
            self.db.rollback()
            logger.error(f"Store aborted lookup for booking with doctor {doctor_id}: {str(e)}")
            raise TransientUnavailable() from e
        except Exception:
            self.db.rollback()
            raise

        # End the lookup transaction so the checks under the lock start a fresh one
        self.db.rollback()

        with self.locks.hold(doctor_id):
            try:
                appointment = self._check_and_create(
                    patient_id, doctor_id, appointment_time, reason, notes
                )
            except OperationalError as e:
                self.db.rollback()
                logger.error(f"Store aborted booking for doctor {doctor_id}: {str(e)}")
                raise TransientUnavailable() from e
            except Exception:
                self.db.rollback()
                raise

        self.db.refresh(appointment)
        logger.info(f"Appointment booked successfully with ID: {appointment.id}")
        return appointment

    def _check_and_create(
        self,
        patient_id: int,
        doctor_id: int,
        appointment_time: datetime,
        reason: Optional[str],
        notes: Optional[str],
    ) -> Appointment:
        # Row lock joins the lock table entry for stores that honour FOR UPDATE
        self.directory.lock_doctor(doctor_id)

        patient_window = ScheduleWindow.around(
            ResourceKind.PATIENT, patient_id, appointment_time, self.patient_window
        )
        if self.schedule.find_in_window(patient_window):
            logger.warning(f"Patient {patient_id} has a conflicting appointment near {appointment_time}")
            raise PatientConflict()

        doctor_window = ScheduleWindow.around(
            ResourceKind.DOCTOR, doctor_id, appointment_time, self.doctor_window
        )
        if self.schedule.find_in_window(doctor_window):
            logger.warning(f"Doctor {doctor_id} is not available at {appointment_time}")
            raise DoctorConflict()

        booked_today = self.capacity.count_for_day(doctor_id, appointment_time.date())
        if booked_today >= self.max_per_day:
            logger.warning(
                f"Doctor {doctor_id} has {booked_today} appointments on {appointment_time.date()}, "
                f"limit is {self.max_per_day}"
            )
            raise CapacityExceeded()

        appointment = Appointment(
            patient_id=patient_id,
            doctor_id=doctor_id,
            appointment_date=appointment_time,
            status=AppointmentStatus.SCHEDULED,
            reason=reason,
            notes=notes,
        )
        self.db.add(appointment)
        self.db.commit()
        return appointment
