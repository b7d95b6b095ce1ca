"""
auth/tokens.py -- Session token issue and verification.

Security design decisions:
  JWT: python-jose with HS256. Tokens carry sub (user id), role, medTrackId,
       iat and exp. Nothing is stored server-side: a token is valid until its
       exp claim passes, and there is no revocation list.

  Secret: TokenIssuer takes the signing secret as a constructor argument
       instead of reading it at import time, so tests can build issuers with
       their own keys. get_token_issuer() builds the process-wide instance
       from core.config.get_settings() exactly once.

  Failures: verify() raises ExpiredToken when exp has passed and InvalidToken
       for everything else (bad signature, garbage input, missing claims).
       The route guard turns both into 401.

Layer rule: no imports from api/ or pharmacy/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from functools import lru_cache

from jose import ExpiredSignatureError, JWTError, jwt

from auth.models import TokenClaims, User
from core.config import get_settings
from core.errors import ExpiredToken, InvalidToken

logger = logging.getLogger("medtrack.auth")

_ALGORITHM = "HS256"
_DEFAULT_LIFETIME = timedelta(days=30)


class TokenIssuer:
    """Creates and verifies signed session tokens.

    Usage:
        issuer = TokenIssuer(secret="...at least 32 chars...")
        token = issuer.issue(user)
        claims = issuer.verify(token)
    """

    def __init__(self, secret: str, lifetime: timedelta = _DEFAULT_LIFETIME) -> None:
        if not secret:
            raise ValueError("TokenIssuer requires a signing secret.")
        self._secret = secret
        self.lifetime = lifetime

    def issue(self, user: User, now: datetime | None = None) -> str:
        """Encode a signed token for the given stored user.

        now is only overridden by tests that need a token issued in the past.
        """
        if user.id is None:
            raise ValueError("Cannot issue a token for an unsaved user.")
        issued = now or datetime.now(timezone.utc)
        payload = {
            "sub": str(user.id),
            "role": user.role,
            "medTrackId": user.med_track_id,
            "iat": int(issued.timestamp()),
            "exp": int((issued + self.lifetime).timestamp()),
        }
        return jwt.encode(payload, self._secret, algorithm=_ALGORITHM)

    def verify(self, token: str) -> TokenClaims:
        """Decode and verify a token. Returns its claims or raises."""
        try:
            payload = jwt.decode(token, self._secret, algorithms=[_ALGORITHM])
        except ExpiredSignatureError as exc:
            raise ExpiredToken() from exc
        except JWTError as exc:
            raise InvalidToken() from exc

        try:
            return TokenClaims(
                subject=int(payload["sub"]),
                role=str(payload["role"]),
                med_track_id=payload.get("medTrackId"),
                issued_at=int(payload["iat"]),
                expires_at=int(payload["exp"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            logger.info("Token rejected: missing or malformed identity claims")
            raise InvalidToken() from exc


@lru_cache
def get_token_issuer() -> TokenIssuer:
    """Return the process-wide TokenIssuer built from settings."""
    settings = get_settings()
    return TokenIssuer(settings.jwt_secret, timedelta(days=settings.token_expire_days))
