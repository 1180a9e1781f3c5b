# Central place for all configurable settings. We use Pydantic's
# BaseSettings so values can be read from env vars or a .env file.
# Gateway credentials live here and nowhere else in the codebase.

import json
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def safe_json_loads(value):
    try:
        return json.loads(value)
    except Exception:
        return value


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_json_loads=safe_json_loads,
    )

    # Deployment environment name. "production"/"prod" turns on the
    # stricter startup checks.
    ENVIRONMENT: str = "development"

    # Core DB connection string, like sqlite:///./app.db or Postgres URL.
    # Only the proxy process holds it; the UI never talks to the DB.
    DATABASE_URL: str

    # Toggle SQLAlchemy echo logs. Useful for debugging queries locally.
    DB_ECHO: bool = False

    # Fernet key (base64, or 32 raw bytes) used to encrypt gateway tokens at rest.
    INTEGRATION_ENCRYPTION_KEY: Optional[str] = None

    # UAZAPI gateway endpoint and admin credential used for /instance/init.
    GATEWAY_PROVIDER: str = "uazapi"
    UAZAPI_BASE_URL: str = "https://free.uazapi.com"
    UAZAPI_ADMIN_TOKEN: Optional[str] = None
    UAZAPI_SYSTEM_NAME: str = "apilocal"

    # Upper bound for every gateway call, in seconds. Hung calls are
    # aborted and reported as timeouts, never retried automatically.
    GATEWAY_TIMEOUT_SECONDS: float = Field(default=15.0, gt=0)

    # Instance names are "<prefix>-<tenant id>".
    INSTANCE_NAME_PREFIX: str = "mordomozap"

    # start-connection echoes the fresh gateway token as "apiKey".
    # Kept on for wire compatibility; flagged as insecure in production.
    GATEWAY_TOKEN_RETURN_IN_RESPONSE: bool = True

    # One poll interval for every connection state manager (settings page
    # and onboarding alike).
    CONNECTION_POLL_INTERVAL_SECONDS: float = Field(default=5.0, gt=0)

    # Where the state manager reaches the proxy, and how long it waits.
    PROXY_BASE_URL: str = "http://localhost:8000"
    PROXY_TIMEOUT_SECONDS: float = Field(default=30.0, gt=0)

    # Batch size for the background status sweep job.
    STATUS_SWEEP_BATCH_SIZE: int = Field(default=100, gt=0)
    STATUS_SWEEP_INTERVAL_SECONDS: float = Field(default=60.0, gt=0)

    # Request correlation header name.
    REQUEST_ID_HEADER: str = "X-Request-ID"

    # Browser origins allowed to call the proxy.
    CORS_ALLOW_ORIGINS: List[str] = Field(
        default_factory=lambda: [
            "http://localhost:3000",
            "http://localhost:5173",
        ]
    )

    @field_validator("CORS_ALLOW_ORIGINS", mode="before")
    @classmethod
    def _parse_list_values(cls, value):
        if isinstance(value, str):
            parts = [p.strip() for p in value.split(",") if p.strip()]
            return parts
        return value

    @field_validator("UAZAPI_BASE_URL", "PROXY_BASE_URL", mode="after")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


# Instantiate a single settings object for app-wide import.
# Any module can just `from mordomozap.core.config import settings`.
settings = Settings()
