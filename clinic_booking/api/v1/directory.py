from fastapi import APIRouter, Depends

from ...api.deps import get_directory
from ...services.directory import ResourceDirectory
from ...schemas.directory import PatientResponse, DoctorResponse

router = APIRouter(tags=["Directory"])

@router.get("/patients/{patient_id}", response_model=PatientResponse)
def get_patient(
    patient_id: int,
    directory: ResourceDirectory = Depends(get_directory)
):
    """Look up a patient."""
    return PatientResponse.model_validate(directory.get_patient(patient_id))

@router.get("/doctors/{doctor_id}", response_model=DoctorResponse)
def get_doctor(
    doctor_id: int,
    directory: ResourceDirectory = Depends(get_directory)
):
    """Look up a doctor."""
    return DoctorResponse.model_validate(directory.get_doctor(doctor_id))
