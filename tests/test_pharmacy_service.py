"""Unit tests for pharmacy/service.py and pharmacy/store.py.

Covers:
- issue_prescription(): patient lookup by MedTrack ID, required fields, non-patient target
- search_patient(): returns patient and prescriptions newest first; unknown id -> NotFound
- dispense_prescription(): stamps date/pharmacist/remarks; re-dispense -> AlreadyDispensed;
  unknown id -> NotFound
- mark_dispensed() is a conditional write (second call changes nothing)
"""

import pytest

from auth.models import User
from auth.store import UserStore
from core.errors import AlreadyDispensed, NotFound, ValidationError
from pharmacy.models import Prescription
from pharmacy.service import dispense_prescription, issue_prescription, search_patient
from pharmacy.store import PrescriptionStore


def _make_user(store: UserStore, role: str, n: int) -> User:
    return store.create_user(
        User(
            name=f"{role} {n}",
            email=f"{role}{n}@example.com",
            phone=f"80000000{n:02d}",
            aadhaar=f"5555000000{n:02d}",
            role=role,
            hashed_password="$2b$04$placeholderhash",
        )
    )


@pytest.fixture
def people(user_store: UserStore) -> dict:
    return {
        "patient": _make_user(user_store, "patient", 1),
        "doctor": _make_user(user_store, "doctor", 2),
        "pharmacist": _make_user(user_store, "pharmacist", 3),
    }


def _issue(user_store, prescription_store, people, diagnosis="Flu") -> Prescription:
    return issue_prescription(
        user_store,
        prescription_store,
        doctor_id=people["doctor"].id,
        med_track_id=people["patient"].med_track_id,
        diagnosis=diagnosis,
        medicine_names=["Paracetamol 500mg", "  ", "ORS"],
        notes="Twice daily",
    )


class TestIssuePrescription:
    def test_creates_pending_prescription(self, user_store, prescription_store, people) -> None:
        rx = _issue(user_store, prescription_store, people)
        assert rx.id is not None
        assert rx.patient_id == people["patient"].id
        assert rx.med_track_id == people["patient"].med_track_id
        assert rx.doctor_id == people["doctor"].id
        assert rx.medicine_names == ["Paracetamol 500mg", "ORS"]
        assert rx.issue_date
        assert rx.dispense_date is None

    def test_lowercase_med_track_id_accepted(self, user_store, prescription_store, people) -> None:
        rx = issue_prescription(
            user_store,
            prescription_store,
            doctor_id=people["doctor"].id,
            med_track_id=people["patient"].med_track_id.lower(),
            diagnosis="Cold",
            medicine_names=["Cetirizine"],
        )
        assert rx.patient_id == people["patient"].id

    @pytest.mark.parametrize(
        "diagnosis, medicines",
        [(None, ["A"]), ("  ", ["A"]), ("Flu", []), ("Flu", ["", "  "])],
    )
    def test_required_fields(self, user_store, prescription_store, people, diagnosis, medicines) -> None:
        with pytest.raises(ValidationError):
            issue_prescription(
                user_store,
                prescription_store,
                doctor_id=people["doctor"].id,
                med_track_id=people["patient"].med_track_id,
                diagnosis=diagnosis,
                medicine_names=medicines,
            )

    def test_target_must_be_a_patient(self, user_store, prescription_store, people) -> None:
        with pytest.raises(NotFound) as excinfo:
            issue_prescription(
                user_store,
                prescription_store,
                doctor_id=people["doctor"].id,
                med_track_id=people["pharmacist"].med_track_id,
                diagnosis="Flu",
                medicine_names=["A"],
            )
        assert excinfo.value.message == "Patient not found"


class TestSearchPatient:
    def test_returns_patient_and_prescriptions_newest_first(self, user_store, prescription_store, people) -> None:
        first = _issue(user_store, prescription_store, people, diagnosis="First")
        second = _issue(user_store, prescription_store, people, diagnosis="Second")
        patient, items = search_patient(user_store, prescription_store, people["patient"].med_track_id)
        assert patient.id == people["patient"].id
        assert [rx.id for rx in items] == [second.id, first.id]

    def test_unknown_med_track_id(self, user_store, prescription_store, people) -> None:
        with pytest.raises(NotFound):
            search_patient(user_store, prescription_store, "MT00000000")

    def test_blank_med_track_id(self, user_store, prescription_store) -> None:
        with pytest.raises(ValidationError):
            search_patient(user_store, prescription_store, "   ")


class TestDispense:
    def test_dispense_sets_fields(self, user_store, prescription_store, people) -> None:
        rx = _issue(user_store, prescription_store, people)
        updated = dispense_prescription(prescription_store, rx.id, people["pharmacist"].id, " Collected ")
        assert updated.dispense_date is not None
        assert updated.dispensed_by == people["pharmacist"].id
        assert updated.dispense_remarks == "Collected"
        assert updated.is_dispensed

    def test_remarks_optional(self, user_store, prescription_store, people) -> None:
        rx = _issue(user_store, prescription_store, people)
        updated = dispense_prescription(prescription_store, rx.id, people["pharmacist"].id)
        assert updated.dispense_remarks is None
        assert updated.dispense_date is not None

    def test_redispense_rejected_and_first_record_kept(self, user_store, prescription_store, people) -> None:
        rx = _issue(user_store, prescription_store, people)
        first = dispense_prescription(prescription_store, rx.id, people["pharmacist"].id, "first")
        with pytest.raises(AlreadyDispensed) as excinfo:
            dispense_prescription(prescription_store, rx.id, 999, "second")
        assert excinfo.value.status_code == 409
        again = prescription_store.get_prescription(rx.id)
        assert again.dispense_date == first.dispense_date
        assert again.dispensed_by == people["pharmacist"].id
        assert again.dispense_remarks == "first"

    def test_unknown_prescription(self, prescription_store) -> None:
        with pytest.raises(NotFound) as excinfo:
            dispense_prescription(prescription_store, 12345, 1)
        assert excinfo.value.message == "Prescription not found"

    def test_mark_dispensed_is_conditional(self, user_store, prescription_store, people) -> None:
        rx = _issue(user_store, prescription_store, people)
        assert prescription_store.mark_dispensed(rx.id, 1) is True
        assert prescription_store.mark_dispensed(rx.id, 2) is False
        assert prescription_store.mark_dispensed(9999, 1) is False

    def test_lost_race_reports_already_dispensed(self, user_store, prescription_store, people, monkeypatch) -> None:
        """Another pharmacist dispenses between the read and the conditional write."""
        rx = _issue(user_store, prescription_store, people)
        real_get = prescription_store.get_prescription
        state = {"first": True}

        def stale_get(prescription_id):
            fetched = real_get(prescription_id)
            if state["first"]:
                state["first"] = False
                prescription_store.mark_dispensed(prescription_id, 77)
            return fetched

        monkeypatch.setattr(prescription_store, "get_prescription", stale_get)
        with pytest.raises(AlreadyDispensed):
            dispense_prescription(prescription_store, rx.id, people["pharmacist"].id)
