"""
api/routes/user.py -- Endpoints for the signed-in user's own records.

Routes:
  GET /user/prescriptions  -- the caller's prescriptions, newest first
"""

from fastapi import APIRouter, Depends, Request

from api.models import PrescriptionResponse
from auth.dependencies import get_token_claims
from auth.models import TokenClaims
from pharmacy.store import PrescriptionStore

router = APIRouter(prefix="/user")


@router.get("/prescriptions", response_model=list[PrescriptionResponse])
def my_prescriptions(
    request: Request,
    claims: TokenClaims = Depends(get_token_claims),
) -> list[PrescriptionResponse]:
    # Scoped by token subject; a patient can never list someone else's records.
    prescriptions: PrescriptionStore = request.app.state.prescription_store
    return [PrescriptionResponse.from_prescription(rx) for rx in prescriptions.list_for_patient(claims.subject)]
