from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TenantRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    tenant_id: Optional[str] = Field(default=None, alias="tenantId")

    @field_validator("tenant_id", mode="before")
    @classmethod
    def _coerce_tenant_id(cls, value):
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value


class SendTestRequest(TenantRequest):
    to: Optional[str] = None
    message: Optional[str] = None


class StatusResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    connected: bool
    status: str
    qr_code_base64: Optional[str] = Field(default=None, alias="qrCodeBase64")
    # None when the store could not be read.
    has_credentials: Optional[bool] = Field(default=False, alias="hasCredentials")


class StartConnectionResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    instance_name: str = Field(alias="instanceName")
    api_key: Optional[str] = Field(default=None, alias="apiKey")
    qr_code_base64: str = Field(alias="qrCodeBase64")


class ReconnectResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    qr_code_base64: str = Field(alias="qrCodeBase64")


class SuccessResponse(BaseModel):
    success: bool = True


class IntegrationRead(BaseModel):
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    tenant_id: str = Field(alias="tenantId")
    provider: str
    instance_name: Optional[str] = Field(default=None, alias="instanceName")
    status: str
    qr_code_base64: Optional[str] = Field(default=None, alias="qrCodeBase64")
    has_credentials: bool = Field(default=False, alias="hasCredentials")
    connected_at: Optional[datetime] = Field(default=None, alias="connectedAt")
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")
    status_changed_at: Optional[datetime] = Field(default=None, alias="statusChangedAt")
    last_error: Optional[str] = Field(default=None, alias="lastError")
