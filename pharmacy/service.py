"""
pharmacy/service.py -- Prescription workflow operations.

Plain functions over the two stores. Role checks are NOT done here: the
routes gate every call with auth.dependencies.require_role() before these
functions run, so the ids passed in are already-verified token subjects.

Re-dispense policy: dispensing a prescription that already has a
dispense_date raises AlreadyDispensed (409). The earlier dispense record is
never overwritten.
"""

from __future__ import annotations

import logging

from auth.models import User
from auth.store import UserStore
from core.errors import AlreadyDispensed, NotFound, ValidationError
from pharmacy.models import Prescription
from pharmacy.store import PrescriptionStore

logger = logging.getLogger("medtrack.pharmacy")


def _get_patient(users: UserStore, med_track_id: str) -> User:
    patient = users.get_by_med_track_id(med_track_id.strip())
    if patient is None or patient.role != "patient":
        raise NotFound("Patient not found")
    return patient


def search_patient(
    users: UserStore,
    prescriptions: PrescriptionStore,
    med_track_id: str,
) -> tuple[User, list[Prescription]]:
    """Return a patient and their prescriptions (newest first) by MedTrack ID."""
    if not med_track_id or not med_track_id.strip():
        raise ValidationError("Please enter a MedTrack ID")
    patient = _get_patient(users, med_track_id)
    return patient, prescriptions.list_for_patient(patient.id)


def issue_prescription(
    users: UserStore,
    prescriptions: PrescriptionStore,
    doctor_id: int,
    med_track_id: str | None,
    diagnosis: str | None,
    medicine_names: list[str] | None,
    notes: str | None = None,
) -> Prescription:
    """Create a prescription for the patient identified by MedTrack ID."""
    medicines = [m.strip() for m in (medicine_names or []) if m and m.strip()]
    if not med_track_id or not diagnosis or not diagnosis.strip() or not medicines:
        raise ValidationError("Missing required fields")

    patient = _get_patient(users, med_track_id)
    rx_id = prescriptions.create_prescription(
        Prescription(
            patient_id=patient.id,
            med_track_id=patient.med_track_id,
            doctor_id=doctor_id,
            diagnosis=diagnosis.strip(),
            medicine_names=medicines,
            notes=notes,
        )
    )
    logger.info("Doctor %s issued prescription %s for %s", doctor_id, rx_id, patient.med_track_id)
    return prescriptions.get_prescription(rx_id)


def dispense_prescription(
    prescriptions: PrescriptionStore,
    prescription_id: int,
    pharmacist_id: int,
    remarks: str | None = None,
) -> Prescription:
    """Mark a pending prescription as dispensed and return the updated record.

    Raises NotFound for an unknown id and AlreadyDispensed when the
    prescription was dispensed earlier (including by a concurrent request
    that won the conditional update).
    """
    existing = prescriptions.get_prescription(prescription_id)
    if existing is None:
        raise NotFound("Prescription not found")
    if existing.is_dispensed:
        raise AlreadyDispensed()

    remarks = remarks.strip() if remarks and remarks.strip() else None
    if not prescriptions.mark_dispensed(prescription_id, pharmacist_id, remarks):
        raise AlreadyDispensed()

    logger.info("Pharmacist %s dispensed prescription %s", pharmacist_id, prescription_id)
    return prescriptions.get_prescription(prescription_id)
