"""
API request and response models for the MedTrack REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in auth/models.py and
pharmacy/models.py, which own the internal domain representation. Route
handlers map between the two via the from_* factory methods.

Wire format: JSON keys are camelCase (medTrackId, createdAt, dispenseDate)
to match the browser client; Python attributes stay snake_case. Request
models accept either spelling.

Request fields the services validate themselves (required signup/login
fields) are Optional here, so an omitted field produces the service's 400
"Missing required fields" rather than a framework 422.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from auth.models import User
from pharmacy.models import Prescription

# Upper bound on request size only. The 72-byte bcrypt limit is checked by
# AuthService, which counts UTF-8 bytes rather than characters.
_MAX_PASSWORD_LENGTH = 256


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class SignupRequest(_CamelModel):
    """Request body for POST /auth/signup."""

    name: Optional[str] = Field(default=None, max_length=255)
    phone: Optional[str] = Field(default=None, max_length=32)
    email: Optional[str] = Field(default=None, max_length=255)
    aadhaar: Optional[str] = Field(default=None, max_length=32)
    password: Optional[str] = Field(default=None, max_length=_MAX_PASSWORD_LENGTH)
    role: Optional[str] = Field(default=None, max_length=30)


class LoginRequest(_CamelModel):
    """Request body for POST /auth/login. identifier is an email or a phone number."""

    identifier: Optional[str] = Field(default=None, max_length=255)
    password: Optional[str] = Field(default=None, max_length=_MAX_PASSWORD_LENGTH)


class DispenseRequest(_CamelModel):
    """Request body for POST /pharmacy/dispense/{prescription_id}."""

    remarks: Optional[str] = Field(default=None, max_length=1000)


class PrescriptionCreate(_CamelModel):
    """Request body for POST /doctor/prescriptions."""

    med_track_id: Optional[str] = Field(default=None, max_length=16)
    diagnosis: Optional[str] = Field(default=None, max_length=1000)
    medicine_names: list[str] = Field(default_factory=list, max_length=50)
    notes: Optional[str] = Field(default=None, max_length=2000)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserResponse(_CamelModel):
    """Public projection of a User. Never carries the password hash or aadhaar."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: int
    name: str
    email: str
    phone: str
    role: str
    med_track_id: str
    created_at: str

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            phone=user.phone,
            role=user.role,
            med_track_id=user.med_track_id,
            created_at=user.created_at or "",
        )


class AuthResponse(_CamelModel):
    """Response for POST /auth/signup and POST /auth/login."""

    message: str
    token: str
    user: UserResponse


class PrescriptionResponse(_CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: int
    patient_id: int
    med_track_id: str
    doctor_id: int
    diagnosis: str
    medicine_names: list[str]
    notes: Optional[str] = None
    issue_date: str
    dispense_date: Optional[str] = None
    dispensed_by: Optional[int] = None
    dispense_remarks: Optional[str] = None

    @classmethod
    def from_prescription(cls, rx: Prescription) -> "PrescriptionResponse":
        return cls(
            id=rx.id,
            patient_id=rx.patient_id,
            med_track_id=rx.med_track_id,
            doctor_id=rx.doctor_id,
            diagnosis=rx.diagnosis,
            medicine_names=rx.medicine_names,
            notes=rx.notes,
            issue_date=rx.issue_date,
            dispense_date=rx.dispense_date,
            dispensed_by=rx.dispensed_by,
            dispense_remarks=rx.dispense_remarks,
        )


class PatientPrescriptionsResponse(_CamelModel):
    """Response for GET /pharmacy/prescriptions/patient/{med_track_id}."""

    patient: UserResponse
    prescriptions: list[PrescriptionResponse]


class ErrorResponse(BaseModel):
    """Error envelope returned on every 4xx/5xx response."""

    model_config = ConfigDict(frozen=True)

    message: str


class HealthResponse(BaseModel):
    """Response for GET /health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
