"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for the back office happen here. No module
should call os.getenv() or os.environ.get() directly.

Design patterns used:
  Explicit settings object: Settings is constructed once at process start
      (asgi.py via get_settings()) and handed to create_app(), which stores it
      on app.state and passes it to the components that need it. Nothing in
      auth/ reads configuration at import time.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file. Field names map to env var names
      (e.g. secret_key -> SECRET_KEY).

  @model_validator(mode="after"): cross-field validation once all fields are
      resolved. Debug mode may generate a throwaway signing key; production
      refuses to start without one.

Security notes:
  There is no hard-coded fallback signing key. A missing SECRET_KEY outside
  debug mode is a startup failure, and a debug key is random per process.

  SECRET_KEY shorter than 32 chars is rejected outright.

  BCRYPT_ROUNDS below 10 is rejected outside debug mode so the password
  hash stays expensive enough to resist offline brute force.

Layer rule: core/ is the kernel. This module may not import from api/ or
auth/.
"""

import logging
import secrets
from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("carz.config")

# bcrypt accepts 4..31; anything below this is only acceptable for tests.
MIN_PRODUCTION_BCRYPT_ROUNDS = 10


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    Environment variable name mapping: field names are uppercased automatically.
    E.g. `secret_key` reads from SECRET_KEY, `debug` reads from DEBUG.
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
    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    secret_key: str = ""
    database_url: str = "sqlite:///carz_admin.db"
    cors_origins: list[str] = [
        "http://localhost:5173",
        "http://localhost:5174",
        "http://localhost:5175",
    ]

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    # One day, same as the storefront's original session length.
    token_expire_seconds: int = Field(default=86400, gt=0)
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce the SECRET_KEY policy.

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Tokens will not survive restart -- acceptable for local dev.

        Production mode (DEBUG=false or not set): refuse to start if
            SECRET_KEY is missing.

        Both modes: reject keys shorter than 32 characters.
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning("Using auto-generated SECRET_KEY. Tokens will not persist across restarts.")
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self

    @model_validator(mode="after")
    def validate_work_factor(self) -> "Settings":
        """Reject a cheap bcrypt work factor outside debug mode."""
        if not self.debug and self.bcrypt_rounds < MIN_PRODUCTION_BCRYPT_ROUNDS:
            raise ValueError(f"BCRYPT_ROUNDS must be at least {MIN_PRODUCTION_BCRYPT_ROUNDS} in production mode.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide Settings instance, built on first call.

    Only the process entry points (asgi.py, scripts/) call this. Application
    code receives the instance explicitly through create_app().

    In tests: construct Settings(...) directly instead, or call
    get_settings.cache_clear() to re-read the environment.
    """
    return Settings()
