from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import datetime

from ..core.clock import to_naive_utc
from ..models.appointment import AppointmentStatus


class AppointmentCreate(BaseModel):
    patient_id: int
    doctor_id: int
    appointment_date: datetime
    reason: Optional[str] = Field(None, max_length=2000)
    notes: Optional[str] = Field(None, max_length=4000)

    @field_validator("appointment_date")
    @classmethod
    def normalize_timezone(cls, value: datetime) -> datetime:
        try:
            return to_naive_utc(value)
        except OverflowError:
            raise ValueError("appointment_date is out of range") from None


class AppointmentNotesUpdate(BaseModel):
    notes: Optional[str] = Field(None, max_length=4000)


class AppointmentResponse(BaseModel):
    id: int
    patient_id: int
    doctor_id: int
    appointment_date: datetime
    status: AppointmentStatus
    reason: Optional[str]
    notes: Optional[str]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True
