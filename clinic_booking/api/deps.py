from fastapi import Depends
from sqlalchemy.orm import Session
from datetime import timedelta
from functools import lru_cache

from ..core.clock import Clock, utcnow
from ..core.config import settings
from ..core.database import get_db, get_redis
from ..core.locks import DoctorLockTable, build_lock_table
from ..services.booking_service import BookingCoordinator
from ..services.lifecycle_service import AppointmentLifecycle
from ..services.schedule import ScheduleQuery
from ..services.directory import ResourceDirectory

def get_clock() -> Clock:
    """Time source for the future-time check."""
    return utcnow

@lru_cache()
def get_lock_table() -> DoctorLockTable:
    """Process-wide doctor lock table, built once from settings."""
    return build_lock_table(
        settings.LOCK_BACKEND,
        timeout=settings.LOCK_TIMEOUT_SECONDS,
        lease=settings.LOCK_LEASE_SECONDS,
        client=get_redis() if settings.LOCK_BACKEND == "redis" else None,
    )

async def get_booking_coordinator(
    db: Session = Depends(get_db),
    locks: DoctorLockTable = Depends(get_lock_table),
    clock: Clock = Depends(get_clock),
) -> BookingCoordinator:
    return BookingCoordinator(
        db,
        locks,
        clock=clock,
        max_per_day=settings.MAX_APPOINTMENTS_PER_DAY,
        patient_window=timedelta(minutes=settings.PATIENT_WINDOW_MINUTES),
        doctor_window=timedelta(minutes=settings.DOCTOR_WINDOW_MINUTES),
    )

async def get_lifecycle(db: Session = Depends(get_db)) -> AppointmentLifecycle:
    return AppointmentLifecycle(db)

async def get_schedule(db: Session = Depends(get_db)) -> ScheduleQuery:
    return ScheduleQuery(db)

async def get_directory(db: Session = Depends(get_db)) -> ResourceDirectory:
    return ResourceDirectory(db)
