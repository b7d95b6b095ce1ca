"""
auth/service.py -- Signup and login orchestration.

AuthService ties the credential store, bcrypt hashing and the token issuer
together. It raises core.errors exceptions only; mapping them to HTTP status
codes is the route layer's job.

Timing equalization: login always runs bcrypt, even for an identifier that is
not registered (against a dummy hash computed once at construction with the
configured cost). Unknown identifier and wrong password are therefore
indistinguishable by message, status or response time.

bcrypt is CPU-bound. Callers inside an event loop must run signup()/login()
in a worker thread; the FastAPI routes do so by being plain `def` handlers.
"""

from __future__ import annotations

import logging

from auth.models import DEFAULT_ROLE, ROLES, AuthResult, User
from auth.passwords import MAX_PASSWORD_BYTES, hash_password, password_too_long, verify_password
from auth.store import UserStore
from auth.tokens import TokenIssuer
from core.errors import InvalidCredentials, ValidationError

logger = logging.getLogger("medtrack.auth")


def _blank(value: str | None) -> bool:
    return value is None or not str(value).strip()


class AuthService:
    def __init__(self, store: UserStore, issuer: TokenIssuer, bcrypt_rounds: int = 10) -> None:
        self.store = store
        self.issuer = issuer
        self.bcrypt_rounds = bcrypt_rounds
        self._dummy_hash = hash_password("medtrack_timing_dummy", bcrypt_rounds)

    def signup(
        self,
        name: str | None,
        phone: str | None,
        email: str | None,
        aadhaar: str | None,
        password: str | None,
        role: str | None = None,
    ) -> AuthResult:
        """Register a new user and issue their first token.

        Raises ValidationError for missing fields, a password over 72 UTF-8
        bytes or an unknown role, and DuplicateField when email, phone or
        aadhaar is already registered.
        """
        if any(_blank(v) for v in (name, phone, email, aadhaar, password)):
            raise ValidationError("Missing required fields")
        if password_too_long(password):
            raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")

        role = role.strip().lower() if not _blank(role) else DEFAULT_ROLE
        if role not in ROLES:
            raise ValidationError("Invalid role")

        candidate = User(
            name=name.strip(),
            phone=phone.strip(),
            email=email.strip().lower(),
            aadhaar=aadhaar.strip(),
            role=role,
            hashed_password=hash_password(password, self.bcrypt_rounds),
        )
        user = self.store.create_user(candidate)
        logger.info("Signup: user %s registered as %s (%s)", user.id, user.role, user.med_track_id)
        return AuthResult(token=self.issuer.issue(user), user=user)

    def login(self, identifier: str | None, password: str | None) -> AuthResult:
        """Authenticate by email or phone plus password.

        Raises ValidationError when either value is missing and
        InvalidCredentials for an unknown identifier or a wrong password.
        """
        if _blank(identifier) or _blank(password):
            raise ValidationError("Missing credentials")
        if password_too_long(password):
            # No stored hash can match it; identical to a wrong password.
            logger.info("Login failed: over-long password")
            raise InvalidCredentials()

        identifier = identifier.strip()
        if "@" in identifier:
            identifier = identifier.lower()

        user = self.store.find_by_email_or_phone(identifier)
        if user is None or not user.hashed_password:
            # Do NOT return before running bcrypt
            verify_password(password, self._dummy_hash)
            logger.info("Login failed: unknown identifier")
            raise InvalidCredentials()
        if not verify_password(password, user.hashed_password):
            logger.info("Login failed: bad password for user %s", user.id)
            raise InvalidCredentials()

        logger.info("Login: user %s (%s)", user.id, user.role)
        return AuthResult(token=self.issuer.issue(user), user=user)
