from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from mordomozap.core.db import get_db
from mordomozap.gateway import get_gateway_client
from mordomozap.gateway.base import WhatsAppGateway
from mordomozap.schemas.whatsapp import (
    IntegrationRead,
    ReconnectResponse,
    SendTestRequest,
    StartConnectionResponse,
    StatusResponse,
    SuccessResponse,
    TenantRequest,
)
from mordomozap.services.connection_proxy import ConnectionProxy
from mordomozap.tenancy.resolution import require_tenant_id


router = APIRouter(tags=["whatsapp"])


def get_gateway() -> WhatsAppGateway:
    return get_gateway_client()


def get_connection_proxy(
    db: Session = Depends(get_db),
    gateway: WhatsAppGateway = Depends(get_gateway),
) -> ConnectionProxy:
    return ConnectionProxy(db, gateway)


@router.post("/status", response_model=StatusResponse)
def status_endpoint(
    payload: TenantRequest,
    request: Request,
    proxy: ConnectionProxy = Depends(get_connection_proxy),
):
    tenant_id = require_tenant_id(request, payload.tenant_id)
    return proxy.status(tenant_id)


@router.post("/start-connection", response_model=StartConnectionResponse, response_model_exclude_none=True)
def start_connection_endpoint(
    payload: TenantRequest,
    request: Request,
    proxy: ConnectionProxy = Depends(get_connection_proxy),
):
    tenant_id = require_tenant_id(request, payload.tenant_id)
    return proxy.start_connection(tenant_id)


@router.post("/reconnect", response_model=ReconnectResponse)
def reconnect_endpoint(
    payload: TenantRequest,
    request: Request,
    proxy: ConnectionProxy = Depends(get_connection_proxy),
):
    tenant_id = require_tenant_id(request, payload.tenant_id)
    return proxy.reconnect(tenant_id)


@router.post("/disconnect", response_model=SuccessResponse)
def disconnect_endpoint(
    payload: TenantRequest,
    request: Request,
    proxy: ConnectionProxy = Depends(get_connection_proxy),
):
    tenant_id = require_tenant_id(request, payload.tenant_id)
    return proxy.disconnect(tenant_id)


@router.post("/send-test", response_model=SuccessResponse)
def send_test_endpoint(
    payload: SendTestRequest,
    request: Request,
    proxy: ConnectionProxy = Depends(get_connection_proxy),
):
    tenant_id = require_tenant_id(request, payload.tenant_id)
    return proxy.send_test(tenant_id, payload.to, payload.message)


@router.post("/integration", response_model=IntegrationRead)
def integration_endpoint(
    payload: TenantRequest,
    request: Request,
    proxy: ConnectionProxy = Depends(get_connection_proxy),
):
    tenant_id = require_tenant_id(request, payload.tenant_id)
    return proxy.integration(tenant_id)
