import pytest
from datetime import time

from clinic.core.config import SlotWindow, settings
from clinic.services.slot_service import parse_slot_date, slot_label
from clinic.core.exceptions import InvalidArgumentError

from .helpers import API

ALL_SLOTS = [
    "09:00", "09:30", "10:00", "10:30", "11:00", "11:30", "12:00", "12:30",
    "13:00", "13:30", "14:00", "14:30", "15:00", "15:30", "16:00", "16:30",
]

# A Monday
DAY = "2024-06-10"


def slots_url(doctor, day=DAY):
    url = f"{API}/appointments/doctors/{doctor['doctor_id']}/available-slots"
    return f"{url}?date={day}" if day is not None else url


class TestSlotWindow:

    def test_default_window(self):
        assert SlotWindow().labels() == ALL_SLOTS

    def test_alternate_window(self):
        window = SlotWindow(start=time(8, 0), end=time(10, 0), step_minutes=20)
        assert window.labels() == ["08:00", "08:20", "08:40", "09:00", "09:20", "09:40"]

    def test_empty_window(self):
        assert SlotWindow(start=time(12, 0), end=time(12, 0)).labels() == []

    def test_step_must_be_positive(self):
        with pytest.raises(ValueError):
            SlotWindow(step_minutes=0)

    def test_settings_window(self):
        assert settings.slot_window.labels() == ALL_SLOTS


class TestSlotHelpers:

    def test_parse_date(self):
        assert parse_slot_date("2024-06-10").isoformat() == "2024-06-10"

    @pytest.mark.parametrize("value", [None, "", "10/06/2024", "2024-13-01", "tomorrow"])
    def test_parse_date_rejects(self, value):
        with pytest.raises(InvalidArgumentError):
            parse_slot_date(value)

    def test_label_truncates_seconds(self):
        from datetime import datetime
        assert slot_label(datetime(2024, 6, 10, 10, 0, 59)) == "10:00"


class TestAvailableSlots:

    def test_no_bookings_returns_full_day(self, client, patient, doctor):
        response = client.get(slots_url(doctor), headers=patient["headers"])
        assert response.status_code == 200
        assert response.json() == ALL_SLOTS

    def test_booked_slot_is_removed(self, client, patient, doctor, book):
        book(patient, doctor, f"{DAY}T10:00:00")

        slots = client.get(slots_url(doctor), headers=patient["headers"]).json()
        assert len(slots) == 15
        assert "10:00" not in slots
        assert slots[:3] == ["09:00", "09:30", "10:30"]
        assert slots[-1] == "16:30"

    def test_cancelled_slot_is_free_again(self, client, patient, doctor, book):
        appointment = book(patient, doctor, f"{DAY}T14:30:00")
        assert "14:30" not in client.get(slots_url(doctor), headers=patient["headers"]).json()

        response = client.patch(
            f"{API}/doctors/appointments/{appointment['id']}",
            json={"status": "cancelled"},
            headers=doctor["headers"]
        )
        assert response.status_code == 200

        assert client.get(slots_url(doctor), headers=patient["headers"]).json() == ALL_SLOTS

    def test_completed_slot_is_free_again(self, client, patient, doctor, book):
        appointment = book(patient, doctor, f"{DAY}T09:00:00")
        client.patch(
            f"{API}/doctors/appointments/{appointment['id']}",
            json={"status": "completed"},
            headers=doctor["headers"]
        )

        assert client.get(slots_url(doctor), headers=patient["headers"]).json() == ALL_SLOTS

    def test_duplicate_bookings_remove_one_label(self, client, patient, other_patient, doctor, book):
        book(patient, doctor, f"{DAY}T11:00:00")
        book(other_patient, doctor, f"{DAY}T11:00:00")

        slots = client.get(slots_url(doctor), headers=patient["headers"]).json()
        assert slots == [s for s in ALL_SLOTS if s != "11:00"]

    def test_off_grid_booking_blocks_nothing(self, client, patient, doctor, book):
        book(patient, doctor, f"{DAY}T10:15:00")

        assert client.get(slots_url(doctor), headers=patient["headers"]).json() == ALL_SLOTS

    def test_other_days_and_doctors_do_not_block(self, client, patient, doctor, other_doctor, book):
        book(patient, doctor, "2024-06-11T10:00:00")
        book(patient, other_doctor, f"{DAY}T10:00:00")

        assert client.get(slots_url(doctor), headers=patient["headers"]).json() == ALL_SLOTS

    def test_doctor_can_see_slots(self, client, doctor, patient, book):
        book(patient, doctor, f"{DAY}T16:30:00")

        slots = client.get(slots_url(doctor), headers=doctor["headers"]).json()
        assert slots == ALL_SLOTS[:-1]

    def test_missing_date(self, client, patient, doctor):
        response = client.get(slots_url(doctor, day=None), headers=patient["headers"])
        assert response.status_code == 400
        assert response.json()["error"] == "InvalidArgument"
        assert response.json()["message"] == "Date is required"

    def test_unparseable_date(self, client, patient, doctor):
        response = client.get(slots_url(doctor, day="not-a-date"), headers=patient["headers"])
        assert response.status_code == 400

    def test_unknown_doctor(self, client, patient):
        response = client.get(
            f"{API}/appointments/doctors/9999/available-slots?date={DAY}",
            headers=patient["headers"]
        )
        assert response.status_code == 404
        assert response.json()["error"] == "NotFound"

    def test_requires_credential(self, client, doctor):
        assert client.get(slots_url(doctor)).status_code == 401

    def test_configured_window(self, client, patient, doctor, book, monkeypatch):
        monkeypatch.setattr(settings, "SLOT_START", time(8, 0))
        monkeypatch.setattr(settings, "SLOT_END", time(10, 0))
        monkeypatch.setattr(settings, "SLOT_STEP_MINUTES", 60)
        book(patient, doctor, f"{DAY}T08:00:00")

        assert client.get(slots_url(doctor), headers=patient["headers"]).json() == ["09:00"]


class TestSlotsWithAvailability:

    @pytest.fixture(autouse=True)
    def respect_availability(self, monkeypatch):
        monkeypatch.setattr(settings, "SLOTS_RESPECT_AVAILABILITY", True)

    def test_default_hours_cover_monday(self, client, patient, doctor):
        assert client.get(slots_url(doctor), headers=patient["headers"]).json() == ALL_SLOTS

    def test_day_without_hours_is_empty(self, client, patient, doctor):
        # 2024-06-13 is a Thursday
        response = client.get(slots_url(doctor, day="2024-06-13"), headers=patient["headers"])
        assert response.json() == []

    def test_slots_clipped_to_hours(self, client, patient, doctor, book):
        response = client.put(
            f"{API}/doctors/{doctor['doctor_id']}/availability",
            json={"availability": [
                {"day": "Monday", "startTime": "10:00", "endTime": "12:15"},
                {"day": "Monday", "startTime": "15:30", "endTime": "16:30"},
            ]},
            headers=doctor["headers"]
        )
        assert response.status_code == 200
        book(patient, doctor, f"{DAY}T10:30:00")

        slots = client.get(slots_url(doctor), headers=patient["headers"]).json()
        assert slots == ["10:00", "11:00", "11:30", "15:30", "16:00"]
