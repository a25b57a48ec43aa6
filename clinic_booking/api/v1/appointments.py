from fastapi import APIRouter, Depends, Query, status
from typing import List
import logging

from ...api.deps import get_booking_coordinator, get_lifecycle, get_schedule
from ...services.booking_service import BookingCoordinator
from ...services.lifecycle_service import AppointmentLifecycle
from ...services.schedule import ScheduleQuery
from ...schemas.appointment import (
    AppointmentCreate, AppointmentNotesUpdate, AppointmentResponse
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/appointments", tags=["Appointments"])

@router.post("", response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def book_appointment(
    booking: AppointmentCreate,
    coordinator: BookingCoordinator = Depends(get_booking_coordinator)
):
    """Book an appointment; the doctor's schedule is locked while checking and saving."""
    logger.info("POST /appointments - Booking new appointment")
    appointment = coordinator.book(
        booking.patient_id,
        booking.doctor_id,
        booking.appointment_date,
        reason=booking.reason,
        notes=booking.notes,
    )
    return AppointmentResponse.model_validate(appointment)

@router.get("", response_model=List[AppointmentResponse])
def list_appointments(schedule: ScheduleQuery = Depends(get_schedule)):
    """List all appointments ordered by time."""
    return [AppointmentResponse.model_validate(a) for a in schedule.list_all()]

@router.get("/patient/{patient_id}", response_model=List[AppointmentResponse])
def list_patient_appointments(
    patient_id: int,
    schedule: ScheduleQuery = Depends(get_schedule)
):
    """List a patient's appointments."""
    return [AppointmentResponse.model_validate(a) for a in schedule.list_for_patient(patient_id)]

@router.get("/doctor/{doctor_id}", response_model=List[AppointmentResponse])
def list_doctor_appointments(
    doctor_id: int,
    schedule: ScheduleQuery = Depends(get_schedule)
):
    """List a doctor's appointments."""
    return [AppointmentResponse.model_validate(a) for a in schedule.list_for_doctor(doctor_id)]

@router.get("/{appointment_id}", response_model=AppointmentResponse)
def get_appointment(
    appointment_id: int,
    schedule: ScheduleQuery = Depends(get_schedule)
):
    """Get appointment by ID."""
    return AppointmentResponse.model_validate(schedule.get(appointment_id))

@router.put("/{appointment_id}/status", response_model=AppointmentResponse)
def update_appointment_status(
    appointment_id: int,
    new_status: str = Query(..., alias="status"),
    lifecycle: AppointmentLifecycle = Depends(get_lifecycle)
):
    """Change the status of an appointment."""
    logger.info(f"PUT /appointments/{appointment_id}/status - Updating status to: {new_status}")
    return AppointmentResponse.model_validate(
        lifecycle.update_status(appointment_id, new_status)
    )

@router.patch("/{appointment_id}/notes", response_model=AppointmentResponse)
def update_appointment_notes(
    appointment_id: int,
    update: AppointmentNotesUpdate,
    lifecycle: AppointmentLifecycle = Depends(get_lifecycle)
):
    """Replace the notes of an appointment."""
    return AppointmentResponse.model_validate(
        lifecycle.update_notes(appointment_id, update.notes)
    )

@router.delete("/{appointment_id}", response_model=AppointmentResponse)
def cancel_appointment(
    appointment_id: int,
    lifecycle: AppointmentLifecycle = Depends(get_lifecycle)
):
    """Cancel an existing appointment."""
    logger.info(f"DELETE /appointments/{appointment_id} - Cancelling appointment")
    return AppointmentResponse.model_validate(lifecycle.cancel(appointment_id))
