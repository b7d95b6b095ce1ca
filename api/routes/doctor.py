"""
api/routes/doctor.py -- Prescription issuing for doctors.

Routes:
  POST /doctor/prescriptions  -- issue a prescription to a patient by MedTrack ID
  GET  /doctor/prescriptions  -- prescriptions issued by the calling doctor
"""

from fastapi import APIRouter, Depends, Request

from api.models import PrescriptionCreate, PrescriptionResponse
from auth.dependencies import require_doctor
from auth.models import TokenClaims
from auth.store import UserStore
from pharmacy.service import issue_prescription
from pharmacy.store import PrescriptionStore

router = APIRouter(prefix="/doctor")


@router.post("/prescriptions", response_model=PrescriptionResponse, status_code=201)
def create_prescription(
    request: Request,
    body: PrescriptionCreate,
    claims: TokenClaims = Depends(require_doctor),
) -> PrescriptionResponse:
    """Issue a prescription. The patient must exist and have the patient role."""
    users: UserStore = request.app.state.user_store
    prescriptions: PrescriptionStore = request.app.state.prescription_store
    rx = issue_prescription(
        users,
        prescriptions,
        doctor_id=claims.subject,
        med_track_id=body.med_track_id,
        diagnosis=body.diagnosis,
        medicine_names=body.medicine_names,
        notes=body.notes,
    )
    return PrescriptionResponse.from_prescription(rx)


@router.get("/prescriptions", response_model=list[PrescriptionResponse])
def list_issued(request: Request, claims: TokenClaims = Depends(require_doctor)) -> list[PrescriptionResponse]:
    prescriptions: PrescriptionStore = request.app.state.prescription_store
    return [PrescriptionResponse.from_prescription(rx) for rx in prescriptions.list_by_doctor(claims.subject)]
