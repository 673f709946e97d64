"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for tokenward happen here. No module should
call os.getenv() or os.environ.get() directly. The API lifespan and the CLI
call get_settings() once and pass the resulting Settings object into the
TokenService, ActivationMailer and AuthService constructors.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. secret_key -> SECRET_KEY, smtp_port -> SMTP_PORT).

  @model_validator(mode="after"): DEBUG-conditional SECRET_KEY logic. Dev mode
      generates a key with a warning; production mode refuses to start without
      one.

Security notes:
  SECRET_KEY shorter than 32 chars is rejected outright. Access and refresh
  JWTs are both signed with it.

  PASSWORD_HASH_ROUNDS is the bcrypt cost factor. The historical deployment
  ran with 5; raise it in production. bcrypt itself accepts 4..31.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("tokenward.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'auth' / 'tokenward_auth.db'}"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file (DEBUG=true still required for the
    secret key to be generated).
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
    # Public base URL of this API. Activation links are built from it.
    api_url: str = "http://localhost:8000"
    # Browser origin of the frontend (CORS with credentials for the cookie).
    client_url: str = "http://localhost:3000"
    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # Tokens and passwords
    # ------------------------------------------------------------------

    access_token_expire_seconds: int = 30 * 60
    refresh_token_expire_seconds: int = 30 * 24 * 60 * 60
    password_hash_rounds: int = 5
    secure_cookies: bool = False
    default_role: str = "USER"

    # ------------------------------------------------------------------
    # Outbound mail (empty SMTP_HOST means dev mode: mails are logged)
    # ------------------------------------------------------------------

    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_use_tls: bool = True
    from_email: str = ""

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @field_validator("password_hash_rounds")
    @classmethod
    def validate_hash_rounds(cls, value: int) -> int:
        """bcrypt.gensalt() only accepts log rounds in 4..31."""
        if not 4 <= value <= 31:
            raise ValueError("PASSWORD_HASH_ROUNDS must be between 4 and 31.")
        return value

    @field_validator("access_token_expire_seconds", "refresh_token_expire_seconds")
    @classmethod
    def validate_ttl(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("Token lifetimes must be positive.")
        return value

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce the SECRET_KEY policy.

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Every token is invalidated on restart -- acceptable for local dev.

        Production mode: refuse to start if SECRET_KEY is missing. A random
            key would silently log every user out on each deploy.

        Both modes: reject keys shorter than 32 characters.
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning("WARNING: Using auto-generated SECRET_KEY. Tokens will not survive restarts.")
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self

    @property
    def sender_address(self) -> str:
        """Address used in the From header; falls back to the SMTP login."""
        return self.from_email or self.smtp_user


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables, or construct Settings(...)
    directly and pass it to the services.
    """
    return Settings()
