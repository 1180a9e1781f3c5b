import os

import pytest

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("INTEGRATION_ENCRYPTION_KEY", "a" * 32)
os.environ["SKIP_MIGRATIONS"] = "1"

from mordomozap.core.crypto import decrypt_secret, encrypt_secret
from mordomozap.crud.whatsapp_integrations import (
    get_api_key,
    get_integration,
    invalidate_credentials,
    list_integrations_by_status,
    mark_connected,
    mark_disconnected,
    mark_pending,
    record_error,
    save_pending_connection,
    upsert_integration,
)
from tests.factories import make_integration, make_session_factory, make_tenant_id


def test_secret_encryption_round_trip():
    token = encrypt_secret("tok-1")
    assert token != "tok-1"
    assert decrypt_secret(token) == "tok-1"
    with pytest.raises(ValueError):
        decrypt_secret("not-a-fernet-token")


def test_save_pending_connection_encrypts_token():
    SessionLocal = make_session_factory("crud_pending")
    with SessionLocal() as db:
        integration = save_pending_connection(
            db,
            "T1",
            instance_name="mordomozap-T1",
            api_key="tok-1",
            qr_code_base64="QRDATA==",
        )
        assert integration.status == "pending"
        assert integration.qr_code_base64 == "QRDATA=="
        assert integration.api_key_encrypted
        assert integration.api_key_encrypted != "tok-1"
        assert get_api_key(integration) == "tok-1"
        assert integration.has_credentials is True
        assert integration.connected_at is None


def test_one_record_per_tenant():
    SessionLocal = make_session_factory("crud_unique")
    with SessionLocal() as db:
        first = save_pending_connection(db, "T1", instance_name="mordomozap-T1", api_key="tok-1", qr_code_base64="A")
        second = save_pending_connection(db, "T1", instance_name="mordomozap-T1", api_key="tok-2", qr_code_base64="B")
        assert first.id == second.id
        assert get_api_key(get_integration(db, "T1")) == "tok-2"
        assert get_integration(db, "T1").qr_code_base64 == "B"


def test_connected_clears_qr_and_sets_connected_at():
    SessionLocal = make_session_factory("crud_connected")
    with SessionLocal() as db:
        tenant_id = make_tenant_id()
        make_integration(db, tenant_id=tenant_id, api_key="tok-1", status="pending", qr_code_base64="QR")
        integration = mark_connected(db, tenant_id)
        assert integration.status == "connected"
        assert integration.qr_code_base64 is None
        assert integration.connected_at is not None

        integration = mark_disconnected(db, tenant_id)
        assert integration.status == "disconnected"
        assert integration.connected_at is None
        # Plain disconnect keeps the token so reconnect stays possible.
        assert get_api_key(integration) == "tok-1"


def test_qr_cannot_be_stored_outside_pending():
    SessionLocal = make_session_factory("crud_qr")
    with SessionLocal() as db:
        integration = make_integration(db, api_key="tok-1", status="connected", qr_code_base64="QR")
        assert integration.qr_code_base64 is None


def test_mark_disconnected_can_clear_credentials():
    SessionLocal = make_session_factory("crud_clear")
    with SessionLocal() as db:
        tenant_id = make_tenant_id()
        make_integration(db, tenant_id=tenant_id, api_key="tok-1", status="pending", qr_code_base64="QR")
        integration = mark_disconnected(db, tenant_id, clear_credentials=True)
        assert integration.api_key_encrypted is None
        assert integration.qr_code_base64 is None
        assert integration.has_credentials is False


def test_invalidate_credentials_resets_record():
    SessionLocal = make_session_factory("crud_invalidate")
    with SessionLocal() as db:
        tenant_id = make_tenant_id()
        make_integration(db, tenant_id=tenant_id, api_key="tok-1", status="pending", qr_code_base64="QR")
        integration = invalidate_credentials(db, tenant_id, source="status", reason="401 from gateway")
        assert integration.status == "disconnected"
        assert integration.api_key_encrypted is None
        assert integration.qr_code_base64 is None
        assert integration.last_error == "401 from gateway"


def test_mark_helpers_ignore_missing_records():
    SessionLocal = make_session_factory("crud_missing")
    with SessionLocal() as db:
        assert mark_pending(db, "nobody", "QR") is None
        assert mark_connected(db, "nobody") is None
        assert mark_disconnected(db, "nobody", clear_credentials=True) is None
        assert invalidate_credentials(db, "nobody", source="status") is None
        assert record_error(db, "nobody", "boom") is None
        assert get_integration(db, "nobody") is None


def test_upsert_rejects_unknown_fields_and_statuses():
    SessionLocal = make_session_factory("crud_validation")
    with SessionLocal() as db:
        with pytest.raises(ValueError):
            upsert_integration(db, "T1", token="tok-1")
        with pytest.raises(ValueError):
            upsert_integration(db, "T1", status="paired")
        db.rollback()
        with pytest.raises(ValueError):
            upsert_integration(db, "T2", provider="twilio")


def test_record_error_keeps_status():
    SessionLocal = make_session_factory("crud_error")
    with SessionLocal() as db:
        tenant_id = make_tenant_id()
        make_integration(db, tenant_id=tenant_id, api_key="tok-1", status="pending", qr_code_base64="QR")
        integration = record_error(db, tenant_id, "gateway down")
        assert integration.status == "pending"
        assert integration.qr_code_base64 == "QR"
        assert integration.last_error == "gateway down"


def test_list_integrations_by_status_pages_by_id():
    SessionLocal = make_session_factory("crud_list")
    with SessionLocal() as db:
        ids = []
        for index in range(3):
            ids.append(make_integration(db, tenant_id=f"T{index}", api_key="tok", status="pending", qr_code_base64="QR").id)
        make_integration(db, tenant_id="idle", status="disconnected")

        first = list_integrations_by_status(db, ["pending", "connected"], limit=2)
        assert [row.id for row in first] == ids[:2]
        rest = list_integrations_by_status(db, ["pending", "connected"], limit=2, after_id=first[-1].id)
        assert [row.id for row in rest] == ids[2:]


def test_status_changed_at_moves_only_on_status_changes(monkeypatch):
    from datetime import datetime

    from mordomozap.models import mixins

    SessionLocal = make_session_factory("crud_status_changed")
    with SessionLocal() as db:
        tenant_id = make_tenant_id()
        integration = make_integration(db, tenant_id=tenant_id, api_key="tok-1", status="pending", qr_code_base64="QR")
        assert integration.status_changed_at is not None

        monkeypatch.setattr(mixins, "utcnow", lambda: datetime(2030, 1, 1))
        integration = mark_connected(db, tenant_id)
        assert integration.status_changed_at == datetime(2030, 1, 1)

        monkeypatch.setattr(mixins, "utcnow", lambda: datetime(2031, 1, 1))
        integration = mark_connected(db, tenant_id)
        assert integration.status == "connected"
        assert integration.status_changed_at == datetime(2030, 1, 1)
