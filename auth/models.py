"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and services
do the work; these only own the shape.

Layer rule: no imports from api/ or pharmacy/.
"""

from __future__ import annotations

from dataclasses import dataclass

ROLES: tuple[str, ...] = ("patient", "doctor", "pharmacist", "admin")
DEFAULT_ROLE = "patient"


@dataclass
class User:
    """A registered person: patient, doctor, pharmacist or admin.

    email, phone and aadhaar are each globally unique (enforced by the store).
    med_track_id is the patient-facing identifier pharmacists search by; the
    store assigns it on insert and it never changes afterwards.

    hashed_password is carried for login verification only and must never be
    copied into a response model.
    """

    name: str
    email: str
    phone: str
    aadhaar: str
    role: str = DEFAULT_ROLE
    id: int | None = None
    hashed_password: str | None = None
    med_track_id: str | None = None
    created_at: str | None = None


@dataclass(frozen=True)
class TokenClaims:
    """Verified identity carried by a session token."""

    subject: int  # User.id
    role: str
    med_track_id: str | None
    issued_at: int  # epoch seconds
    expires_at: int  # epoch seconds


@dataclass(frozen=True)
class AuthResult:
    """What signup and login hand back to the route layer."""

    token: str
    user: User
