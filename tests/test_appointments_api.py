import pytest
from fastapi.testclient import TestClient
from datetime import datetime

from clinic_booking.main import app
from clinic_booking.core.database import get_db
from clinic_booking.core.locks import LocalLockTable
from clinic_booking.api.deps import get_clock, get_lock_table


@pytest.fixture
def client(session_factory, clock):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    locks = LocalLockTable(timeout=5)
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_lock_table] = lambda: locks

    with TestClient(app, base_url="http://testserver") as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def parties(make_patient, make_doctor):
    return make_patient(), make_doctor()


def booking(patient, doctor, when="2025-06-01T10:00:00", **extra):
    data = {
        "patient_id": patient.id,
        "doctor_id": doctor.id,
        "appointment_date": when,
        "reason": "Annual checkup",
    }
    data.update(extra)
    return data


class TestBookingEndpoint:

    def test_book_appointment(self, client, parties):
        patient, doctor = parties

        response = client.post("/api/v1/appointments", json=booking(patient, doctor, notes="First visit"))
        assert response.status_code == 201

        data = response.json()
        assert data["status"] == "scheduled"
        assert data["patient_id"] == patient.id
        assert data["doctor_id"] == doctor.id
        assert data["appointment_date"] == "2025-06-01T10:00:00"
        assert data["reason"] == "Annual checkup"
        assert data["notes"] == "First visit"
        assert "X-Process-Time" in response.headers

    def test_missing_patient(self, client, make_doctor):
        doctor = make_doctor()

        response = client.post("/api/v1/appointments", json={
            "patient_id": 999,
            "doctor_id": doctor.id,
            "appointment_date": "2025-06-01T10:00:00",
        })
        assert response.status_code == 404

        data = response.json()
        assert data["error"] == "resource_not_found"
        assert data["kind"] == "patient"
        assert data["id"] == 999

    def test_past_time(self, client, parties):
        patient, doctor = parties

        response = client.post("/api/v1/appointments", json=booking(patient, doctor, when="2025-04-30T10:00:00"))
        assert response.status_code == 400
        assert response.json()["error"] == "invalid_booking_time"

    def test_patient_conflict_reported_first(self, client, parties):
        patient, doctor = parties
        client.post("/api/v1/appointments", json=booking(patient, doctor))

        response = client.post("/api/v1/appointments", json=booking(patient, doctor, when="2025-06-01T10:20:00"))
        assert response.status_code == 409
        assert response.json()["error"] == "patient_conflict"

    def test_doctor_conflict(self, client, parties, make_patient):
        patient, doctor = parties
        client.post("/api/v1/appointments", json=booking(patient, doctor))

        response = client.post("/api/v1/appointments", json=booking(make_patient(), doctor, when="2025-06-01T10:30:00"))
        assert response.status_code == 409
        assert response.json()["error"] == "doctor_conflict"

    def test_capacity_exceeded(self, client, make_patient, make_doctor):
        doctor = make_doctor()
        for hour in range(8, 18):
            response = client.post(
                "/api/v1/appointments",
                json=booking(make_patient(), doctor, when=f"2025-06-01T{hour:02d}:00:00")
            )
            assert response.status_code == 201

        response = client.post("/api/v1/appointments", json=booking(make_patient(), doctor, when="2025-06-01T19:00:00"))
        assert response.status_code == 409
        assert response.json()["error"] == "capacity_exceeded"

    def test_invalid_payload(self, client):
        response = client.post("/api/v1/appointments", json={"patient_id": 1})
        assert response.status_code == 422

    def test_timezone_offset_is_converted(self, client, parties):
        patient, doctor = parties

        response = client.post("/api/v1/appointments", json=booking(patient, doctor, when="2025-06-01T12:00:00+02:00"))
        assert response.status_code == 201
        assert response.json()["appointment_date"] == "2025-06-01T10:00:00"


class TestLifecycleEndpoints:

    def _book(self, client, patient, doctor, when="2025-06-01T10:00:00"):
        response = client.post("/api/v1/appointments", json=booking(patient, doctor, when=when))
        assert response.status_code == 201
        return response.json()["id"]

    def test_update_status(self, client, parties):
        appointment_id = self._book(client, *parties)

        response = client.put(f"/api/v1/appointments/{appointment_id}/status", params={"status": "IN_PROGRESS"})
        assert response.status_code == 200
        assert response.json()["status"] == "in_progress"

    def test_update_status_invalid(self, client, parties):
        appointment_id = self._book(client, *parties)

        response = client.put(f"/api/v1/appointments/{appointment_id}/status", params={"status": "finished"})
        assert response.status_code == 400

        data = response.json()
        assert data["error"] == "invalid_status"
        assert data["value"] == "finished"

    def test_update_status_missing_appointment(self, client):
        response = client.put("/api/v1/appointments/777/status", params={"status": "confirmed"})
        assert response.status_code == 404
        assert response.json()["kind"] == "appointment"

    def test_cancel(self, client, parties):
        appointment_id = self._book(client, *parties)

        response = client.delete(f"/api/v1/appointments/{appointment_id}")
        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"

        response = client.delete(f"/api/v1/appointments/{appointment_id}")
        assert response.status_code == 409
        assert response.json()["error"] == "already_cancelled"

    def test_cancel_then_rebook_same_slot(self, client, parties, make_patient):
        patient, doctor = parties
        appointment_id = self._book(client, patient, doctor)
        client.delete(f"/api/v1/appointments/{appointment_id}")

        response = client.post("/api/v1/appointments", json=booking(make_patient(), doctor))
        assert response.status_code == 201

    def test_update_notes(self, client, parties):
        appointment_id = self._book(client, *parties)

        response = client.patch(f"/api/v1/appointments/{appointment_id}/notes", json={"notes": "Allergic to latex"})
        assert response.status_code == 200
        assert response.json()["notes"] == "Allergic to latex"


class TestQueryEndpoints:

    def test_get_appointment(self, client, parties):
        patient, doctor = parties
        created = client.post("/api/v1/appointments", json=booking(patient, doctor)).json()

        response = client.get(f"/api/v1/appointments/{created['id']}")
        assert response.status_code == 200
        assert response.json() == created

    def test_get_missing_appointment(self, client):
        response = client.get("/api/v1/appointments/31337")
        assert response.status_code == 404
        assert response.json()["error"] == "resource_not_found"

    def test_list_by_patient_and_doctor(self, client, make_patient, make_doctor):
        patient = make_patient()
        doctor_a, doctor_b = make_doctor(), make_doctor()
        client.post("/api/v1/appointments", json=booking(patient, doctor_a, when="2025-06-01T09:00:00"))
        client.post("/api/v1/appointments", json=booking(patient, doctor_b, when="2025-06-01T14:00:00"))

        response = client.get(f"/api/v1/appointments/patient/{patient.id}")
        assert response.status_code == 200
        assert [a["doctor_id"] for a in response.json()] == [doctor_a.id, doctor_b.id]

        response = client.get(f"/api/v1/appointments/doctor/{doctor_b.id}")
        assert [a["appointment_date"] for a in response.json()] == ["2025-06-01T14:00:00"]

        response = client.get("/api/v1/appointments")
        assert len(response.json()) == 2

    def test_list_for_missing_doctor(self, client):
        response = client.get("/api/v1/appointments/doctor/555")
        assert response.status_code == 404
        assert response.json()["kind"] == "doctor"


class TestDirectoryEndpoints:

    def test_get_patient(self, client, make_patient):
        patient = make_patient(first_name="Ada", date_of_birth=datetime(1990, 1, 1))

        response = client.get(f"/api/v1/patients/{patient.id}")
        assert response.status_code == 200
        assert response.json()["first_name"] == "Ada"

    def test_get_doctor(self, client, make_doctor):
        doctor = make_doctor(specialization="Dermatology")

        response = client.get(f"/api/v1/doctors/{doctor.id}")
        assert response.status_code == 200
        data = response.json()
        assert data["specialization"] == "Dermatology"
        assert data["is_available"] is True

    def test_get_missing_doctor(self, client):
        response = client.get("/api/v1/doctors/404")
        assert response.status_code == 404
        assert response.json()["kind"] == "doctor"


class TestServiceEndpoints:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_info(self, client):
        response = client.get("/api/v1/info")
        assert response.status_code == 200
        assert response.json()["max_appointments_per_day"] == 10

    def test_unknown_route(self, client):
        response = client.get("/api/v1/nothing-here")
        assert response.status_code == 404
        assert response.json()["error"] == "Not Found"


class TestUnavailable:

    def test_lock_timeout_returns_503(self, client, parties):
        patient, doctor = parties
        busy = LocalLockTable(timeout=0.05)
        app.dependency_overrides[get_lock_table] = lambda: busy

        doctor_lock = busy._lock_for(doctor.id)
        doctor_lock.acquire()
        try:
            response = client.post("/api/v1/appointments", json=booking(patient, doctor))
        finally:
            doctor_lock.release()

        assert response.status_code == 503
        assert response.json()["error"] == "transient_unavailable"

        # Nothing was written, so the same request succeeds once the lock is free
        response = client.post("/api/v1/appointments", json=booking(patient, doctor))
        assert response.status_code == 201

    def test_aware_time_beyond_range_is_rejected(self, client, parties):
        patient, doctor = parties

        response = client.post(
            "/api/v1/appointments",
            json=booking(patient, doctor, when="9999-12-31T23:45:00-05:00")
        )
        assert response.status_code == 422

    def test_last_representable_slot(self, client, parties):
        patient, doctor = parties

        response = client.post("/api/v1/appointments", json=booking(patient, doctor, when="9999-12-31T23:45:00"))
        assert response.status_code == 201
