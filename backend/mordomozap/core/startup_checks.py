"""
Startup-time checks for required configuration.
"""

from __future__ import annotations

from mordomozap.core.config import settings


def _is_production() -> bool:
    env = (settings.ENVIRONMENT or "").strip().lower()
    return env in {"production", "prod"}


def _has_placeholder_secret(value: str | None) -> bool:
    if not value:
        return True
    lowered = value.strip().lower()
    return lowered in {"changeme", "secret", "admin", "demo-key"}


def run_startup_checks() -> None:
    missing: list[str] = []
    insecure: list[str] = []

    if not settings.DATABASE_URL:
        missing.append("DATABASE_URL")
    if not settings.UAZAPI_BASE_URL:
        missing.append("UAZAPI_BASE_URL")

    if _is_production():
        if not settings.INTEGRATION_ENCRYPTION_KEY:
            missing.append("INTEGRATION_ENCRYPTION_KEY")
        if _has_placeholder_secret(settings.UAZAPI_ADMIN_TOKEN):
            insecure.append("UAZAPI_ADMIN_TOKEN")
        if settings.GATEWAY_TOKEN_RETURN_IN_RESPONSE:
            insecure.append("GATEWAY_TOKEN_RETURN_IN_RESPONSE")
        if settings.UAZAPI_BASE_URL and not settings.UAZAPI_BASE_URL.startswith("https://"):
            insecure.append("UAZAPI_BASE_URL")

    if missing or insecure:
        parts = []
        if missing:
            parts.append(f"Missing required settings: {', '.join(sorted(set(missing)))}")
        if insecure:
            parts.append(f"Insecure settings detected: {', '.join(sorted(set(insecure)))}")
        raise RuntimeError("Startup checks failed. " + " ".join(parts))
