"""Service configuration (pydantic-settings).

Values come from the process environment, then ``.env.<APP_ENV>``, then
``.env``. Import pacing defaults match what the portal was tuned against:
batches of 5, records staggered 0.5 s apart, 2 s between batches, up to 3
retries with 1 s / 2 s / 4 s backoff.
"""
import os
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENV_ALIASES = {"development": "dev", "production": "prod"}


def _env_files() -> tuple[str, ...]:
    """Existing dotenv files, base first so the environment-specific one wins."""
    app_env = os.getenv("APP_ENV", "").lower()
    candidates = [".env"]
    if app_env:
        candidates.append(f".env.{_ENV_ALIASES.get(app_env, app_env)}")
    return tuple(name for name in candidates if Path(name).is_file())


def _split_csv(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=_env_files() or None,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- service ---
    APP_NAME: str = "specialist-admin-service"
    APP_VERSION: str = "1.0.0"
    APP_ENV: Literal["development", "staging", "production"] = "development"
    DEBUG: bool = False
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    CORS_ORIGINS: str = "*"
    CORS_ALLOW_CREDENTIALS: bool = False
    CORS_ALLOW_METHODS: str = "GET,POST,PATCH,OPTIONS"

    # --- firebase ---
    FIREBASE_PROJECT_ID: str = ""
    FIREBASE_DATABASE_URL: str = Field(
        default="",
        description="Realtime Database URL, e.g. https://<project>-default-rtdb.firebaseio.com",
    )
    FIREBASE_CREDENTIALS_PATH: str = Field(
        default="",
        description="Service-account JSON; empty means application default credentials",
    )
    FIREBASE_WEB_API_KEY: str = Field(
        default="",
        description="Web API key used by the Identity Toolkit REST backend",
    )
    IDENTITY_API_BASE_URL: str = "https://identitytoolkit.googleapis.com/v1"
    IDENTITY_API_TIMEOUT: float = Field(default=15.0, ge=1.0)

    DOCUMENT_STORE_BACKEND: Literal["firebase", "memory"] = "firebase"
    IDENTITY_BACKEND: Literal["rest", "admin"] = Field(
        default="rest",
        description=(
            "'rest': sign-up replaces the active session, so the operator is "
            "re-authenticated after every account. 'admin': service-account "
            "creation, no session swap."
        ),
    )

    # --- bulk import ---
    IMPORT_BATCH_SIZE: int = Field(default=5, ge=1, le=50)
    IMPORT_RECORD_DELAY_SECONDS: float = Field(
        default=0.5, ge=0.0, description="Start offset between records of one batch"
    )
    IMPORT_BATCH_DELAY_SECONDS: float = Field(
        default=2.0, ge=0.0, description="Pause after every batch except the last"
    )
    IMPORT_MAX_RETRIES: int = Field(
        default=3, ge=0, le=10, description="Extra attempts for network-class failures"
    )
    IMPORT_RETRY_BASE_DELAY_SECONDS: float = Field(default=1.0, ge=0.0)
    IMPORT_MAX_ROWS: int = Field(default=500, ge=1)
    IMPORT_SEND_WELCOME_EMAIL: bool = True

    # --- fees / notifications ---
    MAX_PROFESSIONAL_FEE: float = Field(default=100000.0, gt=0)
    NOTIFICATION_EXPIRY_DAYS: int = Field(default=30, ge=1)

    # --- email (aiosmtplib) ---
    EMAIL_ENABLED: bool = False
    SMTP_HOST: str = ""
    SMTP_PORT: int = Field(default=587, ge=1, le=65535)
    SMTP_USERNAME: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_USE_TLS: bool = Field(default=True, description="STARTTLS upgrade")
    SMTP_USE_SSL: bool = Field(default=False, description="Implicit TLS, usually port 465")
    EMAIL_FROM_ADDRESS: str = ""
    EMAIL_FROM_NAME: str = "Specialist Portal"
    EMAIL_TEMPLATES_PATH: str = "config/email_templates.yaml"
    EMAIL_TIMEOUT_SECONDS: int = Field(default=10, ge=1, le=60)
    PORTAL_LOGIN_URL: str = "http://localhost:3000/login"

    @property
    def cors_origins_list(self) -> list[str]:
        return ["*"] if self.CORS_ORIGINS.strip() == "*" else _split_csv(self.CORS_ORIGINS)

    @property
    def cors_methods_list(self) -> list[str]:
        return _split_csv(self.CORS_ALLOW_METHODS)

    @property
    def is_production(self) -> bool:
        return self.APP_ENV == "production"

    @property
    def is_development(self) -> bool:
        return self.APP_ENV == "development"

    @model_validator(mode="after")
    def _check_cors(self) -> "Settings":
        if self.CORS_ALLOW_CREDENTIALS and self.cors_origins_list == ["*"]:
            raise ValueError("CORS_ALLOW_CREDENTIALS requires an explicit CORS_ORIGINS list, not '*'")
        return self

    @model_validator(mode="after")
    def _check_production(self) -> "Settings":
        if not self.is_production:
            return self
        problems = []
        if self.DEBUG:
            problems.append("DEBUG must be off")
        if self.DOCUMENT_STORE_BACKEND != "firebase":
            problems.append("DOCUMENT_STORE_BACKEND must be 'firebase'")
        if not (self.FIREBASE_PROJECT_ID and self.FIREBASE_DATABASE_URL):
            problems.append("FIREBASE_PROJECT_ID and FIREBASE_DATABASE_URL are required")
        if self.IDENTITY_BACKEND == "rest" and not self.FIREBASE_WEB_API_KEY:
            problems.append("FIREBASE_WEB_API_KEY is required for IDENTITY_BACKEND='rest'")
        if problems:
            raise ValueError("Invalid production settings: " + "; ".join(problems))
        return self


@lru_cache
def get_settings() -> Settings:
    """Process-wide settings; tests call ``get_settings.cache_clear()``."""
    return Settings()
