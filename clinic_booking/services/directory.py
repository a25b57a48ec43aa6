from sqlalchemy.orm import Session

from ..core.exceptions import ResourceKind, ResourceNotFound
from ..models.doctor import Doctor
from ..models.patient import Patient

class ResourceDirectory:
    """Read-only lookups of the two parties of a booking."""

    def __init__(self, db: Session):
        self.db = db

    def get_patient(self, patient_id: int) -> Patient:
        patient = self.db.query(Patient).filter(Patient.id == patient_id).first()
        if not patient:
            raise ResourceNotFound(ResourceKind.PATIENT, patient_id)
        return patient

    def get_doctor(self, doctor_id: int) -> Doctor:
        doctor = self.db.query(Doctor).filter(Doctor.id == doctor_id).first()
        if not doctor:
            raise ResourceNotFound(ResourceKind.DOCTOR, doctor_id)
        return doctor

    def lock_doctor(self, doctor_id: int) -> Doctor:
        """Re-read the doctor row with FOR UPDATE, held until commit or rollback."""
        doctor = (
            self.db.query(Doctor)
            .filter(Doctor.id == doctor_id)
            .with_for_update()
            .populate_existing()
            .first()
        )
        if not doctor:
            raise ResourceNotFound(ResourceKind.DOCTOR, doctor_id)
        return doctor
