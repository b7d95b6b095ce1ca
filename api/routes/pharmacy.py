"""
api/routes/pharmacy.py -- Pharmacist patient search and dispense endpoints.

Routes:
  GET  /pharmacy/prescriptions/patient/{med_track_id}  -- patient + prescriptions
  POST /pharmacy/dispense/{prescription_id}             -- mark dispensed

Every route requires a pharmacist token (router-level dependency), so a
missing or invalid token is rejected with 401 and a non-pharmacist with 403
before any store is touched.
"""

from fastapi import APIRouter, Depends, Request

from api.limiter import limiter
from api.models import DispenseRequest, PatientPrescriptionsResponse, PrescriptionResponse, UserResponse
from auth.dependencies import require_pharmacist
from auth.models import TokenClaims
from auth.store import UserStore
from pharmacy.service import dispense_prescription, search_patient
from pharmacy.store import PrescriptionStore

router = APIRouter(prefix="/pharmacy", dependencies=[Depends(require_pharmacist)])


@router.get("/prescriptions/patient/{med_track_id}", response_model=PatientPrescriptionsResponse)
@limiter.limit("60/minute")
def get_patient_prescriptions(request: Request, med_track_id: str) -> PatientPrescriptionsResponse:
    """Look up a patient by MedTrack ID and list their prescriptions, newest first."""
    users: UserStore = request.app.state.user_store
    prescriptions: PrescriptionStore = request.app.state.prescription_store
    patient, items = search_patient(users, prescriptions, med_track_id)
    return PatientPrescriptionsResponse(
        patient=UserResponse.from_user(patient),
        prescriptions=[PrescriptionResponse.from_prescription(rx) for rx in items],
    )


@router.post("/dispense/{prescription_id}", response_model=PrescriptionResponse)
@limiter.limit("30/minute")
def dispense(
    request: Request,
    prescription_id: int,
    body: DispenseRequest | None = None,
    claims: TokenClaims = Depends(require_pharmacist),
) -> PrescriptionResponse:
    """Dispense a pending prescription, recording who did it and optional remarks.

    404 for an unknown prescription, 409 if it was already dispensed.
    """
    prescriptions: PrescriptionStore = request.app.state.prescription_store
    remarks = body.remarks if body is not None else None
    updated = dispense_prescription(prescriptions, prescription_id, claims.subject, remarks)
    return PrescriptionResponse.from_prescription(updated)
