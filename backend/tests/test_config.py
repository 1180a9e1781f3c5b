import os

import pytest
from pydantic import ValidationError

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("INTEGRATION_ENCRYPTION_KEY", "a" * 32)
os.environ["SKIP_MIGRATIONS"] = "1"

from mordomozap.core.config import Settings
from mordomozap.core.integrations import build_instance_name


def _clear_gateway_env(monkeypatch):
    for key in (
        "UAZAPI_BASE_URL",
        "UAZAPI_ADMIN_TOKEN",
        "GATEWAY_TIMEOUT_SECONDS",
        "CONNECTION_POLL_INTERVAL_SECONDS",
        "GATEWAY_TOKEN_RETURN_IN_RESPONSE",
        "CORS_ALLOW_ORIGINS",
        "INSTANCE_NAME_PREFIX",
    ):
        monkeypatch.delenv(key, raising=False)


def test_settings_defaults(monkeypatch):
    _clear_gateway_env(monkeypatch)
    cfg = Settings(_env_file=None)
    assert cfg.UAZAPI_BASE_URL == "https://free.uazapi.com"
    assert cfg.UAZAPI_SYSTEM_NAME == "apilocal"
    assert cfg.GATEWAY_TIMEOUT_SECONDS == 15
    assert cfg.CONNECTION_POLL_INTERVAL_SECONDS == 5
    assert cfg.INSTANCE_NAME_PREFIX == "mordomozap"
    assert cfg.GATEWAY_TOKEN_RETURN_IN_RESPONSE is True
    assert cfg.CORS_ALLOW_ORIGINS == ["http://localhost:3000", "http://localhost:5173"]


def test_settings_env_overrides(monkeypatch):
    monkeypatch.setenv("UAZAPI_BASE_URL", "https://gw.example.com/")
    monkeypatch.setenv("UAZAPI_ADMIN_TOKEN", "admin-override")
    monkeypatch.setenv("GATEWAY_TIMEOUT_SECONDS", "8")
    monkeypatch.setenv("GATEWAY_TOKEN_RETURN_IN_RESPONSE", "false")
    monkeypatch.setenv("CORS_ALLOW_ORIGINS", '["https://app.example.com", "https://admin.example.com"]')
    cfg = Settings(_env_file=None)
    assert cfg.UAZAPI_BASE_URL == "https://gw.example.com"
    assert cfg.UAZAPI_ADMIN_TOKEN == "admin-override"
    assert cfg.GATEWAY_TIMEOUT_SECONDS == 8
    assert cfg.GATEWAY_TOKEN_RETURN_IN_RESPONSE is False
    assert cfg.CORS_ALLOW_ORIGINS == ["https://app.example.com", "https://admin.example.com"]


def test_settings_reject_non_positive_intervals(monkeypatch):
    monkeypatch.setenv("CONNECTION_POLL_INTERVAL_SECONDS", "0")
    with pytest.raises(ValidationError):
        Settings(_env_file=None)


def test_build_instance_name():
    assert build_instance_name("T1") == "mordomozap-T1"
    assert build_instance_name(" T1 ", prefix="acme") == "acme-T1"
    with pytest.raises(ValueError):
        build_instance_name("  ")
