from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session
from contextlib import contextmanager
from typing import Iterator, Optional
import logging

from ..core.exceptions import InvalidStatus, AlreadyCancelled, TransientUnavailable
from ..models.appointment import Appointment, AppointmentStatus
from .schedule import ScheduleQuery

logger = logging.getLogger(__name__)

class AppointmentLifecycle:
    """
    Status changes of booked appointments.

    Any of the recognised statuses may be set from any other; the only guard
    is that a cancelled appointment cannot be cancelled again.
    """

    def __init__(self, db: Session):
        self.db = db
        self.schedule = ScheduleQuery(db)

    def update_status(self, appointment_id: int, new_status: str) -> Appointment:
        logger.info(f"Updating appointment ID: {appointment_id} status to: {new_status}")

        try:
            status = AppointmentStatus.parse(new_status)
        except KeyError:
            raise InvalidStatus(new_status) from None

        with self._locked(appointment_id) as appointment:
            appointment.status = status

        logger.info("Appointment status updated successfully")
        return appointment

    def cancel(self, appointment_id: int) -> Appointment:
        logger.info(f"Cancelling appointment with ID: {appointment_id}")

        with self._locked(appointment_id) as appointment:
            if appointment.status == AppointmentStatus.CANCELLED:
                raise AlreadyCancelled()
            appointment.status = AppointmentStatus.CANCELLED

        logger.info(f"Appointment cancelled successfully with ID: {appointment_id}")
        return appointment

    def update_notes(self, appointment_id: int, notes: Optional[str]) -> Appointment:
        with self._locked(appointment_id) as appointment:
            appointment.notes = notes
        return appointment

    @contextmanager
    def _locked(self, appointment_id: int) -> Iterator[Appointment]:
        """Yield the row under FOR UPDATE; commit on exit, roll back on error."""
        try:
            appointment = self.schedule.get_for_update(appointment_id)
            yield appointment
            self.db.commit()
        except OperationalError as e:
            self.db.rollback()
            logger.error(f"Store aborted update of appointment {appointment_id}: {str(e)}")
            raise TransientUnavailable() from e
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(appointment)
