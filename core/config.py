"""
core/config.py -- MedTrack settings, read once from the environment.

All environment variable reads for MedTrack happen here. No module should
read os.environ itself; everything goes through get_settings().

Design patterns used:
  lru_cache singleton: the first get_settings() call builds Settings and
      later calls reuse that instance.

  BaseSettings (pydantic-settings): each field is filled from the
      environment or a local .env file, upper-cased
      (e.g. jwt_secret -> JWT_SECRET, bcrypt_rounds -> BCRYPT_ROUNDS).

  @model_validator(mode="after"): DEBUG-conditional JWT_SECRET handling. Dev
      mode generates a throwaway key with a warning; production mode refuses
      to start without one.

Layer rule: core/ is the kernel. This module may not import from api/,
auth/, or pharmacy/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("medtrack.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'medtrack.db'}"


class Settings(BaseSettings):
    """MedTrack configuration.

    Every field has a default, so the test suite can build Settings()
    without a .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    host: str = "127.0.0.1"
    port: int = 4000

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    # Empty string means "not configured"; the validator
    # below replaces it or refuses to start.
    jwt_secret: str = ""
    token_expire_days: int = Field(default=30, ge=1)
    # bcrypt accepts cost factors 4..31; every +1 doubles the hashing time.
    bcrypt_rounds: int = Field(default=10, ge=4, le=31)
    login_rate_limit: str = "10/minute"
    rate_limit_enabled: bool = True

    # ------------------------------------------------------------------
    # Browser clients
    # ------------------------------------------------------------------

    frontend_url: str = "http://localhost:3000"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_jwt_secret(self) -> "Settings":
        """Enforce the JWT_SECRET policy.

        DEBUG=true: generate a throwaway key and log a warning.
            Tokens will not survive a restart.

        Production mode: refuse to start if JWT_SECRET is missing, since a
            random key would silently log every patient out on restart.

        Both modes: reject keys shorter than 32 characters.
        """
        if not self.jwt_secret:
            if self.debug:
                self.jwt_secret = secrets.token_hex(32)
                logger.warning("Using auto-generated JWT_SECRET. Sessions will not persist across restarts.")
            else:
                raise ValueError(
                    "JWT_SECRET is required in production mode. "
                    "Set JWT_SECRET in your environment or .env file, "
                    "or set DEBUG=true for local development."
                )
        if len(self.jwt_secret) < 32:
            raise ValueError("JWT_SECRET must be at least 32 characters.")
        return self

    @property
    def token_expire_seconds(self) -> int:
        return self.token_expire_days * 24 * 60 * 60


@lru_cache
def get_settings() -> Settings:
    """Return the cached Settings instance.

    Tests that change environment variables must call
    get_settings.cache_clear() first.
    """
    return Settings()
