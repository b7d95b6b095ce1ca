"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Only one auth method exists: the Authorization: Bearer <token> header. The
guard is stateless -- it trusts the verified token claims and never hits the
database, so role checks cost one HMAC verification per request.

get_token_claims() raises Unauthenticated (401) for a missing header or an
invalid/expired token, before any route logic runs. On success the claims are
also attached to request.state.identity for downstream use.

require_role(*roles) wraps get_token_claims() and raises Forbidden (403) if
the caller's role is not in the allowed set.

Layer rule: auth/dependencies.py may import from fastapi because it is part of
the FastAPI dependency injection system. No imports from api/ or pharmacy/.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from fastapi import Depends, Request

from auth.models import TokenClaims
from auth.tokens import get_token_issuer
from core.errors import ExpiredToken, Forbidden, InvalidToken, Unauthenticated

logger = logging.getLogger("medtrack.auth")

_BEARER_PREFIX = "bearer "


def _bearer_token(request: Request) -> str | None:
    header = request.headers.get("Authorization", "")
    if header[: len(_BEARER_PREFIX)].lower() != _BEARER_PREFIX:
        return None
    token = header[len(_BEARER_PREFIX) :].strip()
    return token or None


def get_token_claims(request: Request) -> TokenClaims:
    """Require a valid bearer token. Raises Unauthenticated otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(claims: TokenClaims = Depends(get_token_claims)): ...
    """
    token = _bearer_token(request)
    if token is None:
        raise Unauthenticated("Authentication required")

    issuer = getattr(request.app.state, "token_issuer", None) or get_token_issuer()
    try:
        claims = issuer.verify(token)
    except ExpiredToken as exc:
        logger.info("Rejected expired token on %s", request.url.path)
        raise Unauthenticated("Token expired") from exc
    except InvalidToken as exc:
        logger.info("Rejected invalid token on %s", request.url.path)
        raise Unauthenticated("Invalid token") from exc

    request.state.identity = claims
    return claims


def require_role(*roles: str) -> Callable[..., TokenClaims]:
    """Build a dependency that admits only the given roles.

    Use as a FastAPI dependency:
        @router.post("/dispense/{id}")
        def route(claims: TokenClaims = Depends(require_role("pharmacist"))): ...
    """
    allowed = frozenset(roles)

    def check_role(claims: TokenClaims = Depends(get_token_claims)) -> TokenClaims:
        if claims.role not in allowed:
            logger.info("Forbidden: user %s with role %s needs one of %s", claims.subject, claims.role, sorted(allowed))
            raise Forbidden(f"{' or '.join(sorted(allowed)).capitalize()} access required")
        return claims

    return check_role


require_pharmacist = require_role("pharmacist")
require_doctor = require_role("doctor")
