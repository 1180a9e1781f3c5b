"""
Connection proxy: the only code path that holds a tenant's gateway token.

The API layer resolves the tenant id and hands it here; this module loads
the stored credentials, calls the gateway, normalizes failures into
``ProxyError`` payloads and writes status transitions back to the store.

Error policy:

* ``status`` and ``disconnect`` never fail towards the caller.
* ``start_connection``, ``reconnect`` and ``send_test`` raise ``ProxyError``
  subclasses with distinguishable codes.
* An ``InvalidTokenError`` on a stored token always clears the token and QR
  code and marks the record disconnected, whichever operation observed it.
* Store failures (an undecryptable token, a failed commit) roll the session
  back and surface as ``InternalProxyError``.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager

from sqlalchemy.orm import Session

from mordomozap.core.config import settings
from mordomozap.core.errors import (
    BadRequestError,
    CredentialsRevokedError,
    IntegrationNotFoundError,
    InternalProxyError,
    MissingCredentialsError,
    UpstreamError,
)
from mordomozap.core.integrations import build_instance_name
from mordomozap.crud.whatsapp_integrations import (
    get_api_key,
    get_integration,
    invalidate_credentials,
    mark_connected,
    mark_disconnected,
    mark_pending,
    record_error,
    save_pending_connection,
)
from mordomozap.gateway.base import WhatsAppGateway
from mordomozap.gateway.errors import (
    GatewayConnectError,
    GatewayError,
    GatewayInitError,
    GatewayTimeoutError,
    InvalidTokenError,
    SendError,
)
from mordomozap.models.enums import ConnectionStatusEnum
from mordomozap.models.whatsapp_integrations import WhatsAppIntegration
from mordomozap.schemas.whatsapp import (
    IntegrationRead,
    ReconnectResponse,
    StartConnectionResponse,
    StatusResponse,
    SuccessResponse,
)


logger = logging.getLogger(__name__)

TIMEOUT_MESSAGE = "Gateway timeout. Check your network and try again."


def _status_response(integration: WhatsAppIntegration | None) -> StatusResponse:
    if integration is None:
        return StatusResponse(
            connected=False,
            status=ConnectionStatusEnum.DISCONNECTED.value,
        )
    return StatusResponse(
        connected=integration.status == ConnectionStatusEnum.CONNECTED.value,
        status=integration.status,
        qr_code_base64=integration.qr_code_base64,
        has_credentials=integration.has_credentials,
    )


def _disconnected_response(has_credentials: bool | None) -> StatusResponse:
    return StatusResponse(
        connected=False,
        status=ConnectionStatusEnum.DISCONNECTED.value,
        has_credentials=has_credentials,
    )


class ConnectionProxy:
    def __init__(self, db: Session, gateway: WhatsAppGateway) -> None:
        self.db = db
        self.gateway = gateway

    @contextmanager
    def _store(self, tenant_id: str, operation: str):
        try:
            yield
        except Exception as exc:
            self.db.rollback()
            logger.exception(
                "whatsapp.store_failed",
                extra={"tenant_id": tenant_id, "operation": operation},
            )
            raise InternalProxyError("Failed to access the stored WhatsApp connection.") from exc

    def _load(self, tenant_id: str) -> tuple[WhatsAppIntegration | None, str | None]:
        integration = get_integration(self.db, tenant_id)
        return integration, get_api_key(integration)

    def _load_token(self, tenant_id: str, operation: str) -> str:
        with self._store(tenant_id, operation):
            _, token = self._load(tenant_id)
        if not token:
            raise MissingCredentialsError()
        return token

    def _invalidate(self, tenant_id: str, *, source: str, exc: GatewayError) -> None:
        with self._store(tenant_id, source):
            invalidate_credentials(self.db, tenant_id, source=source, reason=exc.message)

    def _remember_failure(self, tenant_id: str, exc: Exception) -> None:
        try:
            record_error(self.db, tenant_id, str(exc))
        except Exception:
            self.db.rollback()
            logger.exception("whatsapp.record_error_failed", extra={"tenant_id": tenant_id})

    def status(self, tenant_id: str) -> StatusResponse:
        try:
            return self._status(tenant_id)
        except Exception:
            # Status checks must never block the UI.
            self.db.rollback()
            logger.exception("whatsapp.status_failed", extra={"tenant_id": tenant_id})
            # Unknown, not revoked: the caller keeps what it last saw.
            return _disconnected_response(None)

    def _status(self, tenant_id: str) -> StatusResponse:
        integration, token = self._load(tenant_id)
        if not token:
            return _status_response(integration)

        try:
            result = self.gateway.fetch_status(token)
        except InvalidTokenError as exc:
            self._invalidate(tenant_id, source="status", exc=exc)
            return _disconnected_response(False)
        except GatewayError as exc:
            logger.warning(
                "whatsapp.status_check_failed",
                extra={"tenant_id": tenant_id, "error": exc.message},
            )
            response = _status_response(integration)
            response.connected = False
            return response

        if result.connected:
            integration = mark_connected(self.db, tenant_id)
        elif integration.status == ConnectionStatusEnum.PENDING.value:
            # Not scanned yet. The QR may only now be available.
            if result.pairing_artifact and result.pairing_artifact != integration.qr_code_base64:
                integration = mark_pending(self.db, tenant_id, result.pairing_artifact)
        elif integration.status == ConnectionStatusEnum.CONNECTED.value:
            integration = mark_disconnected(self.db, tenant_id)
        return _status_response(integration)

    def start_connection(self, tenant_id: str) -> StartConnectionResponse:
        instance_name = build_instance_name(tenant_id)
        try:
            credentials = self.gateway.initialize_instance(instance_name)
            artifact = self.gateway.request_pairing_artifact(credentials.instance_token)
        except GatewayTimeoutError as exc:
            raise UpstreamError("gateway_timeout", TIMEOUT_MESSAGE) from exc
        except GatewayInitError as exc:
            logger.warning(
                "whatsapp.instance_init_failed",
                extra={"tenant_id": tenant_id, "error": exc.message},
            )
            raise UpstreamError(
                "gateway_init_failed",
                "Failed to initialize the WhatsApp instance.",
            ) from exc
        except (GatewayConnectError, InvalidTokenError) as exc:
            logger.warning(
                "whatsapp.pairing_failed",
                extra={"tenant_id": tenant_id, "error": exc.message},
            )
            raise UpstreamError(
                "gateway_connect_failed",
                "Failed to get a QR code for the new WhatsApp instance.",
            ) from exc
        except GatewayError as exc:
            raise UpstreamError("gateway_error", "The WhatsApp gateway request failed.") from exc
        except Exception as exc:
            logger.exception("whatsapp.start_connection_crashed", extra={"tenant_id": tenant_id})
            raise InternalProxyError() from exc

        # Persist only once both gateway steps succeeded.
        with self._store(tenant_id, "start_connection"):
            save_pending_connection(
                self.db,
                tenant_id,
                instance_name=credentials.instance_name,
                api_key=credentials.instance_token,
                qr_code_base64=artifact,
            )
        logger.info(
            "whatsapp.connection_started",
            extra={"tenant_id": tenant_id, "instance_name": credentials.instance_name},
        )
        return StartConnectionResponse(
            instance_name=credentials.instance_name,
            api_key=credentials.instance_token if settings.GATEWAY_TOKEN_RETURN_IN_RESPONSE else None,
            qr_code_base64=artifact,
        )

    def reconnect(self, tenant_id: str) -> ReconnectResponse:
        token = self._load_token(tenant_id, "reconnect")
        try:
            artifact = self.gateway.request_pairing_artifact(token)
        except InvalidTokenError as exc:
            self._invalidate(tenant_id, source="reconnect", exc=exc)
            raise CredentialsRevokedError() from exc
        except GatewayTimeoutError as exc:
            self._remember_failure(tenant_id, exc)
            raise UpstreamError("gateway_timeout", TIMEOUT_MESSAGE) from exc
        except GatewayError as exc:
            self._remember_failure(tenant_id, exc)
            raise UpstreamError("gateway_connect_failed", "Failed to reconnect.") from exc
        except Exception as exc:
            logger.exception("whatsapp.reconnect_crashed", extra={"tenant_id": tenant_id})
            raise InternalProxyError() from exc

        with self._store(tenant_id, "reconnect"):
            mark_pending(self.db, tenant_id, artifact)
        logger.info("whatsapp.reconnect_started", extra={"tenant_id": tenant_id})
        return ReconnectResponse(qr_code_base64=artifact)

    def disconnect(self, tenant_id: str) -> SuccessResponse:
        try:
            _, token = self._load(tenant_id)
            if token:
                try:
                    self.gateway.terminate_session(token)
                except GatewayError as exc:
                    logger.warning(
                        "whatsapp.logout_failed",
                        extra={"tenant_id": tenant_id, "error": exc.message},
                    )
            mark_disconnected(self.db, tenant_id, clear_credentials=True)
        except Exception:
            # Disconnecting must never be blocked, not even by the store.
            self.db.rollback()
            logger.exception("whatsapp.disconnect_failed", extra={"tenant_id": tenant_id})
        return SuccessResponse()

    def send_test(self, tenant_id: str, to: str | None, message: str | None) -> SuccessResponse:
        recipient = (to or "").strip()
        body = (message or "").strip()
        if not recipient or not body:
            raise BadRequestError("Missing required parameters")
        token = self._load_token(tenant_id, "send_test")
        try:
            self.gateway.send_message(token, recipient, body)
        except InvalidTokenError as exc:
            self._invalidate(tenant_id, source="send_test", exc=exc)
            raise CredentialsRevokedError() from exc
        except GatewayTimeoutError as exc:
            raise UpstreamError("gateway_timeout", TIMEOUT_MESSAGE) from exc
        except SendError as exc:
            raise UpstreamError("send_failed", exc.message or "Failed to send test message.") from exc
        except GatewayError as exc:
            raise UpstreamError("send_failed", "Failed to send test message.") from exc
        except Exception as exc:
            logger.exception("whatsapp.send_test_crashed", extra={"tenant_id": tenant_id})
            raise InternalProxyError() from exc
        return SuccessResponse()

    def integration(self, tenant_id: str) -> IntegrationRead:
        integration = get_integration(self.db, tenant_id)
        if integration is None:
            raise IntegrationNotFoundError()
        return IntegrationRead(
            tenant_id=integration.tenant_id,
            provider=integration.provider,
            instance_name=integration.instance_name,
            status=integration.status,
            qr_code_base64=integration.qr_code_base64,
            has_credentials=integration.has_credentials,
            connected_at=integration.connected_at,
            created_at=integration.created_at,
            updated_at=integration.updated_at,
            status_changed_at=integration.status_changed_at,
            last_error=integration.last_error,
        )
