"""
api/main.py -- FastAPI application entry point for MedTrack.

Run with:  uvicorn asgi:app --reload
           python asgi.py

Middleware stack (outermost to innermost):
  1. CORSMiddleware    -- allows the browser client at FRONTEND_URL
  2. SlowAPIMiddleware -- enforces per-route rate limits from api.limiter

Lifespan opens the credential and prescription stores, builds the token
issuer and AuthService once, and disposes the stores on shutdown.

Error contract: every error response is {"message": ...}. Domain errors from
core.errors carry their own status code; anything unexpected is logged here
and returned as a generic 500 with no internal detail.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.models import ErrorResponse, HealthResponse
from api.routes.auth import router as auth_router
from api.routes.doctor import router as doctor_router
from api.routes.pharmacy import router as pharmacy_router
from api.routes.user import router as user_router
from auth.service import AuthService
from auth.store import UserStore
from auth.tokens import get_token_issuer
from core.config import get_settings
from core.errors import MedTrackError, ServerError
from pharmacy.store import PrescriptionStore

API_VERSION = "1.0.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("medtrack.api")

_settings = get_settings()


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open stores and build services on startup; dispose them on shutdown."""
    logger.info("MedTrack API starting up")
    app.state.user_store = UserStore(_settings.database_url)
    app.state.prescription_store = PrescriptionStore(_settings.database_url)
    app.state.token_issuer = get_token_issuer()
    app.state.auth_service = AuthService(
        app.state.user_store,
        app.state.token_issuer,
        bcrypt_rounds=_settings.bcrypt_rounds,
    )
    logger.info("Stores initialized (bcrypt_rounds=%d)", _settings.bcrypt_rounds)

    yield

    app.state.prescription_store.close()
    app.state.user_store.close()
    logger.info("MedTrack API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="MedTrack API",
    description="Patient, doctor and pharmacist records: signup, prescriptions and dispensing.",
    version=API_VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
# ---------------------------------------------------------------------------

app.add_middleware(
    CORSMiddleware,
    allow_origins=[_settings.frontend_url],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, tags=["Auth"])
app.include_router(pharmacy_router, tags=["Pharmacy"])
app.include_router(doctor_router, tags=["Doctor"])
app.include_router(user_router, tags=["User"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so clients read
# response.data.message regardless of status.
# ---------------------------------------------------------------------------


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(message=message).model_dump())


@app.exception_handler(MedTrackError)
async def domain_error_handler(request: Request, exc: MedTrackError) -> JSONResponse:
    """Map core.errors exceptions to their status code and client-safe message."""
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
        return _error(exc.status_code, ServerError.default_message)
    return _error(exc.status_code, exc.message)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed JSON, wrong types or over-long fields -> 400."""
    logger.info("Request validation failed on %s: %s", request.url.path, exc.errors())
    return _error(400, "Invalid request body")


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with Retry-After when a rate limit is exceeded."""
    response = _error(429, "Too many requests")
    response.headers["Retry-After"] = str(int(getattr(exc, "retry_after", 60)))
    return response


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Framework-raised errors (unknown route 404, wrong method 405)."""
    message = "Not found" if exc.status_code == 404 else str(exc.detail)
    response = _error(exc.status_code, message)
    if exc.headers:
        response.headers.update(exc.headers)
    return response


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unexpected errors.

    The exception and traceback go to the server log only; the client gets a
    fixed generic message.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error(500, ServerError.default_message)


# ---------------------------------------------------------------------------
# Health endpoint
# ---------------------------------------------------------------------------


@app.get("/health", tags=["Health"])
async def health() -> HealthResponse:
    """Return API liveness and current version. No auth, no rate limit."""
    return HealthResponse(version=API_VERSION)
