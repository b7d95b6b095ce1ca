"""
api/routes/auth.py -- Signup, login and profile endpoints.

Routes:
  POST /auth/signup   -- register; returns 201 {message, token, user}
  POST /auth/login    -- email-or-phone + password; returns 200 {message, token, user}
  GET  /auth/me       -- profile of the token's subject (requires auth)

Security:
  POST /login is rate-limited per client IP (LOGIN_RATE_LIMIT).
  AuthService.login() equalizes timing between unknown identifier and wrong
  password -- never inline store lookup + verify_password here.
  Cache-Control: no-store on every response that carries a token.

signup and login are plain `def` handlers: bcrypt is CPU-bound and
FastAPI runs sync handlers in its threadpool, off the event loop.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter
from api.models import AuthResponse, LoginRequest, SignupRequest, UserResponse
from auth.dependencies import get_token_claims
from auth.models import AuthResult, TokenClaims
from auth.service import AuthService
from auth.store import UserStore
from core.config import get_settings
from core.errors import NotFound

# Auth policy:
# - POST /auth/signup: public
# - POST /auth/login:  public, rate limited
# - GET  /auth/me:     requires a valid bearer token
router = APIRouter()


def _auth_response(result: AuthResult, message: str, status_code: int) -> JSONResponse:
    resp = JSONResponse(
        status_code=status_code,
        content=AuthResponse(
            message=message,
            token=result.token,
            user=UserResponse.from_user(result.user),
        ).model_dump(by_alias=True),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/auth/signup", response_model=AuthResponse, status_code=201)
def signup(request: Request, body: SignupRequest) -> JSONResponse:
    """Create an account and return a session token for it.

    Missing fields -> 400; email/phone/aadhaar already registered -> 409
    "Duplicate <field>".
    """
    service: AuthService = request.app.state.auth_service
    result = service.signup(
        name=body.name,
        phone=body.phone,
        email=body.email,
        aadhaar=body.aadhaar,
        password=body.password,
        role=body.role,
    )
    return _auth_response(result, "Signup successful", 201)


@router.post("/auth/login", response_model=AuthResponse)
@limiter.limit(get_settings().login_rate_limit)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with an email or phone number and a password.

    Unknown identifier and wrong password both return 400 "Invalid
    credentials" so the response does not reveal which accounts exist.
    """
    service: AuthService = request.app.state.auth_service
    result = service.login(body.identifier, body.password)
    return _auth_response(result, "Login successful", 200)


@router.get("/auth/me", response_model=UserResponse)
def me(request: Request, claims: TokenClaims = Depends(get_token_claims)) -> UserResponse:
    """Return the profile of the currently authenticated user."""
    user_store: UserStore = request.app.state.user_store
    user = user_store.get_by_id(claims.subject)
    if user is None:
        raise NotFound("User not found")
    return UserResponse.from_user(user)
