import pytest
from datetime import timedelta

from clinic.core.config import settings
from clinic.core.security import utcnow
from clinic.models.appointment import Appointment, AppointmentStatus

from .helpers import API


def at(days, hour=10, minute=0):
    """ISO string for ``days`` from today at hour:minute."""
    moment = (utcnow() + timedelta(days=days)).replace(
        hour=hour, minute=minute, second=0, microsecond=0
    )
    return moment.isoformat()


def set_status(client, doctor, appointment_id, status, notes=None):
    body = {"status": status}
    if notes is not None:
        body["notes"] = notes
    return client.patch(
        f"{API}/doctors/appointments/{appointment_id}", json=body, headers=doctor["headers"]
    )


class TestBooking:

    def test_book_appointment(self, client, patient, doctor, future_time):
        response = client.post(
            f"{API}/patients/appointments",
            json={"doctorId": doctor["doctor_id"], "dateTime": future_time, "reason": "Migraine"},
            headers=patient["headers"]
        )
        assert response.status_code == 201

        data = response.json()
        assert data["status"] == "scheduled"
        assert data["doctorId"] == doctor["doctor_id"]
        assert data["patientId"] == patient["patient_id"]
        assert data["dateTime"] == future_time
        assert data["reason"] == "Migraine"
        assert data["notes"] is None

    def test_reason_defaults(self, patient, doctor, book, future_time):
        assert book(patient, doctor, future_time)["reason"] == "General checkup"

    def test_booked_appointment_is_listed(self, client, patient, doctor, book, future_time):
        book(patient, doctor, future_time)

        response = client.get(f"{API}/patients/appointments", headers=patient["headers"])
        assert response.status_code == 200
        assert [(a["status"], a["dateTime"]) for a in response.json()] == [("scheduled", future_time)]

    def test_booking_through_appointments_prefix(self, client, patient, doctor, future_time):
        response = client.post(
            f"{API}/appointments/patients/appointments",
            json={"doctorId": doctor["doctor_id"], "dateTime": future_time},
            headers=patient["headers"]
        )
        assert response.status_code == 201

    def test_past_dates_can_be_booked(self, patient, doctor, book):
        assert book(patient, doctor, at(-1))["status"] == "scheduled"

    def test_timezone_offset_is_normalized(self, patient, doctor, book):
        data = book(patient, doctor, "2030-01-01T10:00:00+02:00")
        assert data["dateTime"] == "2030-01-01T08:00:00"

        data = book(patient, doctor, "2030-01-01T10:00:00Z")
        assert data["dateTime"] == "2030-01-01T10:00:00"

    def test_unknown_doctor(self, client, patient, future_time):
        response = client.post(
            f"{API}/patients/appointments",
            json={"doctorId": 9999, "dateTime": future_time},
            headers=patient["headers"]
        )
        assert response.status_code == 404
        assert response.json()["message"] == "Doctor not found"

    def test_invalid_date(self, client, patient, doctor):
        response = client.post(
            f"{API}/patients/appointments",
            json={"doctorId": doctor["doctor_id"], "dateTime": "next tuesday"},
            headers=patient["headers"]
        )
        assert response.status_code == 400
        assert response.json()["error"] == "InvalidArgument"
        assert response.json()["message"] == "Invalid date format"

    def test_missing_date(self, client, patient, doctor):
        response = client.post(
            f"{API}/patients/appointments",
            json={"doctorId": doctor["doctor_id"]},
            headers=patient["headers"]
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Date and time are required"

    def test_double_booking_allowed_by_default(self, patient, other_patient, doctor, book, future_time):
        book(patient, doctor, future_time)
        assert book(other_patient, doctor, future_time)["status"] == "scheduled"

    def test_double_booking_rejected_when_enabled(
        self, client, patient, other_patient, doctor, book, future_time, monkeypatch
    ):
        monkeypatch.setattr(settings, "PREVENT_DOUBLE_BOOKING", True)
        first = book(patient, doctor, future_time)

        payload = {"doctorId": doctor["doctor_id"], "dateTime": future_time}
        response = client.post(
            f"{API}/patients/appointments", json=payload, headers=other_patient["headers"]
        )
        assert response.status_code == 400
        assert response.json()["error"] == "InvalidState"
        assert response.json()["message"] == "Time slot is already booked"

        # Once cancelled the slot can be taken again
        client.delete(f"{API}/patients/appointments/{first['id']}", headers=patient["headers"])
        response = client.post(
            f"{API}/patients/appointments", json=payload, headers=other_patient["headers"]
        )
        assert response.status_code == 201


class TestQueries:

    def test_patient_list_is_most_recent_first(self, client, patient, doctor, book):
        for days in (3, 10, 5):
            book(patient, doctor, at(days))

        response = client.get(f"{API}/patients/appointments", headers=patient["headers"])
        assert [a["dateTime"] for a in response.json()] == [at(10), at(5), at(3)]

        response = client.get(f"{API}/appointments/patients/appointments", headers=patient["headers"])
        assert [a["dateTime"] for a in response.json()] == [at(10), at(5), at(3)]

    def test_dashboard_is_soonest_first(self, client, patient, doctor, book):
        for days in (3, 10, 5):
            book(patient, doctor, at(days))

        response = client.get(f"{API}/patients/dashboard", headers=patient["headers"])
        assert [a["dateTime"] for a in response.json()["appointments"]] == [at(3), at(5), at(10)]

    def test_doctor_list_is_most_recent_first(self, client, patient, other_patient, doctor, book):
        book(patient, doctor, at(2))
        book(other_patient, doctor, at(4))

        for url in (f"{API}/doctors/appointments", f"{API}/appointments/doctors/appointments"):
            response = client.get(url, headers=doctor["headers"])
            assert response.status_code == 200
            assert [a["dateTime"] for a in response.json()] == [at(4), at(2)]

    def test_lists_are_per_party(self, client, patient, other_patient, doctor, other_doctor, book):
        book(patient, doctor, at(2))
        book(other_patient, other_doctor, at(3))

        mine = client.get(f"{API}/patients/appointments", headers=patient["headers"]).json()
        assert [a["doctorId"] for a in mine] == [doctor["doctor_id"]]

        theirs = client.get(f"{API}/doctors/appointments", headers=other_doctor["headers"]).json()
        assert [a["patientId"] for a in theirs] == [other_patient["patient_id"]]

    def test_get_by_id(self, client, patient, other_patient, doctor, book, future_time):
        appointment = book(patient, doctor, future_time)
        url = f"{API}/appointments/patients/appointments/{appointment['id']}"

        response = client.get(url, headers=patient["headers"])
        assert response.status_code == 200
        assert response.json()["id"] == appointment["id"]

        assert client.get(url, headers=other_patient["headers"]).status_code == 404


class TestCancel:

    def test_cancel(self, client, patient, doctor, book, future_time):
        appointment = book(patient, doctor, future_time)

        response = client.delete(
            f"{API}/patients/appointments/{appointment['id']}", headers=patient["headers"]
        )
        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"

    def test_cancel_twice(self, client, patient, doctor, book, future_time):
        appointment = book(patient, doctor, future_time)
        url = f"{API}/patients/appointments/{appointment['id']}"

        assert client.delete(url, headers=patient["headers"]).status_code == 200

        response = client.delete(url, headers=patient["headers"])
        assert response.status_code == 400
        assert response.json()["error"] == "InvalidState"
        assert response.json()["message"] == "Appointment is already cancelled"

    def test_cancel_past_appointment(self, client, patient, doctor, book):
        appointment = book(patient, doctor, at(-1))

        response = client.delete(
            f"{API}/patients/appointments/{appointment['id']}", headers=patient["headers"]
        )
        assert response.status_code == 400
        assert response.json()["error"] == "InvalidState"
        assert response.json()["message"] == "Cannot cancel a past appointment"

    @pytest.mark.parametrize("status", ["completed", "cancelled"])
    def test_cancel_past_terminal_appointment(self, client, patient, doctor, book, status):
        appointment = book(patient, doctor, at(-1))
        set_status(client, doctor, appointment["id"], status)

        response = client.delete(
            f"{API}/patients/appointments/{appointment['id']}", headers=patient["headers"]
        )
        assert response.status_code == 400
        assert response.json()["error"] == "InvalidState"

    def test_cancel_completed_appointment(self, client, patient, doctor, book, future_time):
        appointment = book(patient, doctor, future_time)
        set_status(client, doctor, appointment["id"], "completed")

        response = client.delete(
            f"{API}/patients/appointments/{appointment['id']}", headers=patient["headers"]
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Cannot cancel a completed appointment"

    def test_cancel_someone_elses_appointment(self, client, patient, other_patient, doctor, book, future_time, db_session):
        appointment = book(patient, doctor, future_time)

        response = client.delete(
            f"{API}/patients/appointments/{appointment['id']}", headers=other_patient["headers"]
        )
        assert response.status_code == 404
        assert response.json()["error"] == "NotFound"

        stored = db_session.query(Appointment).filter(Appointment.id == appointment["id"]).one()
        assert stored.status == AppointmentStatus.SCHEDULED

    def test_cancel_unknown_appointment(self, client, patient):
        response = client.delete(f"{API}/patients/appointments/9999", headers=patient["headers"])
        assert response.status_code == 404

    def test_doctor_cannot_use_patient_cancel(self, client, patient, doctor, book, future_time):
        appointment = book(patient, doctor, future_time)

        response = client.delete(
            f"{API}/patients/appointments/{appointment['id']}", headers=doctor["headers"]
        )
        assert response.status_code == 403


class TestUpdateStatus:

    def test_complete_with_notes(self, client, patient, doctor, book, future_time):
        appointment = book(patient, doctor, future_time)

        response = set_status(client, doctor, appointment["id"], "completed", notes="Rest and fluids")
        assert response.status_code == 200
        assert response.json()["status"] == "completed"
        assert response.json()["notes"] == "Rest and fluids"

    def test_notes_are_overwritten_not_appended(self, client, patient, doctor, book, future_time):
        appointment = book(patient, doctor, future_time)
        set_status(client, doctor, appointment["id"], "scheduled", notes="first")

        response = set_status(client, doctor, appointment["id"], "scheduled", notes="second")
        assert response.json()["notes"] == "second"

        response = set_status(client, doctor, appointment["id"], "scheduled")
        assert response.json()["notes"] == "second"

    def test_other_doctor_gets_not_found(self, client, patient, doctor, other_doctor, book, future_time):
        appointment = book(patient, doctor, future_time)

        response = set_status(client, other_doctor, appointment["id"], "completed")
        assert response.status_code == 404
        assert response.json()["error"] == "NotFound"

    def test_invalid_status(self, client, patient, doctor, book, future_time):
        appointment = book(patient, doctor, future_time)

        response = set_status(client, doctor, appointment["id"], "postponed")
        assert response.status_code == 400
        assert response.json()["error"] == "InvalidArgument"
        assert response.json()["message"] == "Invalid status value"

    def test_terminal_status_can_be_reopened(self, client, patient, doctor, book, future_time):
        appointment = book(patient, doctor, future_time)
        set_status(client, doctor, appointment["id"], "completed")

        response = set_status(client, doctor, appointment["id"], "scheduled")
        assert response.status_code == 200
        assert response.json()["status"] == "scheduled"

    def test_patient_cannot_update_status(self, client, patient, doctor, book, future_time):
        appointment = book(patient, doctor, future_time)

        response = client.patch(
            f"{API}/doctors/appointments/{appointment['id']}",
            json={"status": "completed"},
            headers=patient["headers"]
        )
        assert response.status_code == 403
