import os

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("INTEGRATION_ENCRYPTION_KEY", "a" * 32)
os.environ["SKIP_MIGRATIONS"] = "1"

from mordomozap.crud.whatsapp_integrations import get_integration
from mordomozap.gateway.base import InstanceStatus
from mordomozap.gateway.errors import InvalidTokenError
from mordomozap.jobs.status_sweep import run_status_sweep
from tests.factories import FakeGateway, make_integration, make_session_factory


def test_status_sweep_reconciles_active_records():
    SessionLocal = make_session_factory("status_sweep")
    gateway = FakeGateway(
        statuses=[
            InstanceStatus(connected=True),
            InstanceStatus(connected=False),
            InstanceStatus(connected=False, pairing_artifact="NEWQR"),
        ]
    )
    with SessionLocal() as db:
        make_integration(db, tenant_id="T1", api_key="tok-1", status="pending", qr_code_base64="QR1")
        make_integration(db, tenant_id="T2", api_key="tok-2", status="connected")
        make_integration(db, tenant_id="T3", api_key="tok-3", status="pending", qr_code_base64="QR3")
        make_integration(db, tenant_id="idle", api_key="tok-4", status="disconnected")

        processed = run_status_sweep(db, gateway, batch_size=2)

    assert processed == 3
    assert [call[1] for call in gateway.calls] == ["tok-1", "tok-2", "tok-3"]
    with SessionLocal() as db:
        assert get_integration(db, "T1").status == "connected"
        assert get_integration(db, "T2").status == "disconnected"
        assert get_integration(db, "T3").qr_code_base64 == "NEWQR"
        assert get_integration(db, "idle").status == "disconnected"


def test_status_sweep_clears_revoked_tokens():
    SessionLocal = make_session_factory("status_sweep_revoked")
    gateway = FakeGateway()
    gateway.status_error = InvalidTokenError("dead token", status_code=401)
    with SessionLocal() as db:
        make_integration(db, tenant_id="T1", api_key="tok-1", status="connected")
        assert run_status_sweep(db, gateway) == 1

    with SessionLocal() as db:
        integration = get_integration(db, "T1")
        assert integration.status == "disconnected"
        assert integration.api_key_encrypted is None
