from sqlalchemy import CheckConstraint, Column, DateTime, Integer, String, Text

from mordomozap.core.db import Base
from mordomozap.models.enums import ConnectionStatusEnum, GatewayProviderEnum
from mordomozap.models.mixins import ConnectionTimestampsMixin


class WhatsAppIntegration(ConnectionTimestampsMixin, Base):
    __tablename__ = "whatsapp_integrations"
    __table_args__ = (
        CheckConstraint(
            "status IN ('disconnected', 'pending', 'connected', 'error')",
            name="ck_whatsapp_integrations_status",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    # Tenants live in the external auth/data provider; only the id is kept.
    tenant_id = Column(String, nullable=False, unique=True, index=True)
    provider = Column(String, nullable=False, default=GatewayProviderEnum.UAZAPI.value)
    instance_name = Column(String, nullable=True)
    api_key_encrypted = Column(Text, nullable=True)
    status = Column(String, nullable=False, default=ConnectionStatusEnum.DISCONNECTED.value)
    qr_code_base64 = Column(Text, nullable=True)
    connected_at = Column(DateTime, nullable=True)
    last_error = Column(Text, nullable=True)

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_key_encrypted)
