from uuid import uuid4

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from mordomozap.core.db import Base
from mordomozap.crud.whatsapp_integrations import upsert_integration
from mordomozap.gateway.base import InstanceCredentials, InstanceStatus, WhatsAppGateway


def make_session_factory(prefix: str = "whatsapp"):
    db_url = f"sqlite:///./{prefix}_{uuid4().hex}.db"
    engine = create_engine(
        db_url,
        connect_args={"check_same_thread": False},
        future=True,
    )
    SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    Base.metadata.create_all(bind=engine)
    return SessionLocal


def make_tenant_id() -> str:
    return f"tenant-{uuid4().hex[:8]}"


def make_integration(db, *, tenant_id: str | None = None, **fields):
    tenant_id = tenant_id or make_tenant_id()
    fields.setdefault("instance_name", f"mordomozap-{tenant_id}")
    return upsert_integration(db, tenant_id, **fields)


class FakeGateway(WhatsAppGateway):
    """Scripted gateway; each attribute is a value to return or an exception to raise."""

    provider = "fake"

    def __init__(
        self,
        *,
        token: str = "tok-1",
        instance_name: str | None = None,
        artifact: str = "QRDATA==",
        statuses=None,
    ):
        self.token = token
        self.instance_name = instance_name
        self.artifact = artifact
        self.statuses = list(statuses or [])
        self.init_error = None
        self.connect_error = None
        self.status_error = None
        self.logout_error = None
        self.send_error = None
        self.calls = []

    def _raise(self, error):
        if error is not None:
            raise error

    def initialize_instance(self, instance_name):
        self.calls.append(("initialize_instance", instance_name))
        self._raise(self.init_error)
        return InstanceCredentials(
            instance_token=self.token,
            instance_name=self.instance_name or instance_name,
        )

    def request_pairing_artifact(self, token):
        self.calls.append(("request_pairing_artifact", token))
        self._raise(self.connect_error)
        return self.artifact

    def fetch_status(self, token):
        self.calls.append(("fetch_status", token))
        self._raise(self.status_error)
        if self.statuses:
            return self.statuses.pop(0)
        return InstanceStatus(connected=False)

    def terminate_session(self, token):
        self.calls.append(("terminate_session", token))
        self._raise(self.logout_error)

    def send_message(self, token, recipient, body):
        self.calls.append(("send_message", token, recipient, body))
        self._raise(self.send_error)

    def operations(self):
        return [call[0] for call in self.calls]
