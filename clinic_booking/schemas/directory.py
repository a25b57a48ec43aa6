from pydantic import BaseModel
from typing import Optional
from datetime import datetime


class PatientResponse(BaseModel):
    id: int
    first_name: str
    last_name: str
    date_of_birth: Optional[datetime]
    gender: Optional[str]
    email: Optional[str]
    phone_number: Optional[str]

    class Config:
        from_attributes = True


class DoctorResponse(BaseModel):
    id: int
    first_name: str
    last_name: str
    specialization: str
    license_number: str
    years_of_experience: Optional[int]
    qualification: Optional[str]
    email: Optional[str]
    phone_number: Optional[str]
    is_available: bool

    class Config:
        from_attributes = True
