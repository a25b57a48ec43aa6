from fastapi import status
from typing import Any, Dict
from enum import Enum


class ResourceKind(str, Enum):
    PATIENT = "patient"
    DOCTOR = "doctor"
    APPOINTMENT = "appointment"


class BookingError(Exception):
    """Base class for business-rule failures reported to the caller.

    Subclasses set the HTTP status and a stable error code; the exception
    handler in ``main`` renders them as JSON.
    """

    status_code: int = status.HTTP_400_BAD_REQUEST
    error: str = "booking_error"
    message: str = "Booking request rejected"

    def __init__(self, message: str = None):
        self.message = message or self.message
        super().__init__(self.message)

    def details(self) -> Dict[str, Any]:
        return {}


class ResourceNotFound(BookingError):
    status_code = status.HTTP_404_NOT_FOUND
    error = "resource_not_found"

    def __init__(self, kind: ResourceKind, resource_id: int):
        self.kind = ResourceKind(kind)
        self.resource_id = resource_id
        super().__init__(
            f"{self.kind.value.capitalize()} not found with ID: {resource_id}"
        )

    def details(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "id": self.resource_id}


class InvalidBookingTime(BookingError):
    error = "invalid_booking_time"
    message = "Appointment time must be in the future"


class PatientConflict(BookingError):
    status_code = status.HTTP_409_CONFLICT
    error = "patient_conflict"
    message = "Patient has a conflicting appointment at this time"


class DoctorConflict(BookingError):
    status_code = status.HTTP_409_CONFLICT
    error = "doctor_conflict"
    message = "Doctor is not available at this time"


class CapacityExceeded(BookingError):
    status_code = status.HTTP_409_CONFLICT
    error = "capacity_exceeded"
    message = "Doctor has reached maximum appointments for this day"


class InvalidStatus(BookingError):
    error = "invalid_status"

    def __init__(self, value: str):
        self.value = value
        super().__init__(f"Invalid appointment status: {value}")

    def details(self) -> Dict[str, Any]:
        return {"value": self.value}


class AlreadyCancelled(BookingError):
    status_code = status.HTTP_409_CONFLICT
    error = "already_cancelled"
    message = "Appointment is already cancelled"


class TransientUnavailable(BookingError):
    """Lock wait or store abort; nothing was written, the caller may retry."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    error = "transient_unavailable"
    message = "Booking temporarily unavailable, please retry"
