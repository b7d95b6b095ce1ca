"""
core/errors.py -- Domain error taxonomy for MedTrack.

Every error a caller can provoke is a MedTrackError subclass carrying the
HTTP status it maps to and a client-safe message. Stores and services raise
these; api/main.py turns them into {"message": ...} responses at the
handler boundary. Nothing in here knows about FastAPI.

Layer rule: core/ is the kernel and has no reverse dependencies.
"""

from __future__ import annotations


class MedTrackError(Exception):
    """Base class for all domain errors. Never raised directly."""

    status_code: int = 500
    default_message: str = "Server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(MedTrackError):
    """Missing or malformed input."""

    status_code = 400
    default_message = "Missing required fields"


class DuplicateField(MedTrackError):
    """A uniqueness constraint was violated. `field` names the offender."""

    status_code = 409

    def __init__(self, field: str) -> None:
        self.field = field
        super().__init__(f"Duplicate {field}")


class InvalidCredentials(MedTrackError):
    status_code = 400
    default_message = "Invalid credentials"


class Unauthenticated(MedTrackError):
    status_code = 401
    default_message = "Authentication required"


class InvalidToken(Unauthenticated):
    """Bad signature, malformed token, or missing identity claims."""

    default_message = "Invalid token"


class ExpiredToken(Unauthenticated):
    default_message = "Token expired"


class Forbidden(MedTrackError):
    status_code = 403
    default_message = "Forbidden"


class NotFound(MedTrackError):
    status_code = 404
    default_message = "Not found"


class AlreadyDispensed(MedTrackError):
    """Dispensing a prescription that already carries a dispense date."""

    status_code = 409
    default_message = "Prescription already dispensed"


class ServerError(MedTrackError):
    status_code = 500
    default_message = "Server error"
