from __future__ import annotations

import logging
from time import monotonic
from typing import Any

import requests

from mordomozap.core.config import settings
from mordomozap.core.metrics import record_gateway_call
from mordomozap.core.tracing import Span, trace_span
from mordomozap.gateway.base import InstanceCredentials, InstanceStatus, WhatsAppGateway
from mordomozap.gateway.errors import (
    GatewayConnectError,
    GatewayError,
    GatewayInitError,
    GatewayTimeoutError,
    InvalidTokenError,
    LogoutError,
    SendError,
)
from mordomozap.gateway.normalize import (
    extract_error_text,
    extract_instance_credentials,
    extract_pairing_artifact,
    normalize_connected,
)


logger = logging.getLogger(__name__)

_AUTH_FAILURE_CODES = {401, 403}


def _json_or_none(resp: requests.Response) -> Any:
    try:
        return resp.json()
    except ValueError:
        return None


def _error_text(resp: requests.Response) -> str | None:
    text = extract_error_text(_json_or_none(resp))
    if text:
        return text
    return (resp.text or "").strip()[:500] or None


class UazapiClient(WhatsAppGateway):
    """
    Thin wrapper over the UAZAPI instance/message endpoints.

    Every call is bounded by ``timeout`` seconds. A timeout surfaces as
    ``GatewayTimeoutError`` and is never retried here.
    """

    provider = "uazapi"

    def __init__(
        self,
        base_url: str | None = None,
        admin_token: str | None = None,
        *,
        timeout: float | None = None,
        system_name: str | None = None,
    ) -> None:
        self.base_url = (base_url or settings.UAZAPI_BASE_URL).rstrip("/")
        self.admin_token = admin_token if admin_token is not None else settings.UAZAPI_ADMIN_TOKEN
        self.timeout = float(timeout or settings.GATEWAY_TIMEOUT_SECONDS)
        self.system_name = system_name or settings.UAZAPI_SYSTEM_NAME

    def _request(
        self,
        operation: str,
        method: str,
        path: str,
        *,
        headers: dict[str, str],
        error_cls: type[GatewayError],
        json_body: dict[str, Any] | None = None,
    ) -> requests.Response:
        url = f"{self.base_url}{path}"
        start = monotonic()
        with trace_span("gateway.request", provider=self.provider, operation=operation, path=path) as span:
            try:
                resp = requests.request(
                    method,
                    url,
                    headers=headers,
                    json=json_body,
                    timeout=self.timeout,
                )
            except requests.Timeout as exc:
                self._record(span, operation, "timeout", start)
                raise GatewayTimeoutError(
                    f"Gateway {operation} timed out after {self.timeout:g}s"
                ) from exc
            except requests.RequestException as exc:
                self._record(span, operation, "network_error", start)
                raise error_cls(f"Gateway {operation} request failed: {exc}") from exc

            if resp.status_code in _AUTH_FAILURE_CODES:
                outcome = "invalid_token"
            elif resp.status_code >= 400:
                outcome = "http_error"
            else:
                outcome = "ok"
            self._record(span, operation, outcome, start, status_code=resp.status_code)

        if outcome != "ok":
            logger.info(
                "gateway.non_success",
                extra={"operation": operation, "status_code": resp.status_code},
            )
        return resp

    def _record(
        self,
        span: Span,
        operation: str,
        outcome: str,
        start: float,
        *,
        status_code: int | None = None,
    ) -> None:
        span.annotate(outcome=outcome, status_code=status_code)
        record_gateway_call(
            provider=self.provider,
            operation=operation,
            outcome=outcome,
            duration_seconds=monotonic() - start,
        )

    def _raise_for_token(self, resp: requests.Response, operation: str) -> None:
        if resp.status_code in _AUTH_FAILURE_CODES:
            raise InvalidTokenError(
                f"Invalid token: gateway {operation} responded with {resp.status_code}",
                status_code=resp.status_code,
                detail=_error_text(resp),
            )

    def initialize_instance(self, instance_name: str) -> InstanceCredentials:
        if not self.admin_token:
            raise GatewayInitError("UAZAPI admin token is not configured")
        resp = self._request(
            "initialize_instance",
            "POST",
            "/instance/init",
            headers={"admintoken": self.admin_token, "Content-Type": "application/json"},
            json_body={"name": instance_name, "systemName": self.system_name},
            error_cls=GatewayInitError,
        )
        if resp.status_code >= 300:
            detail = _error_text(resp)
            raise GatewayInitError(
                f"Gateway /instance/init failed with status {resp.status_code}: {detail or 'no body'}",
                status_code=resp.status_code,
                detail=detail,
            )
        token, name = extract_instance_credentials(_json_or_none(resp))
        if not token or not name:
            raise GatewayInitError("Invalid response from gateway /instance/init")
        return InstanceCredentials(instance_token=token, instance_name=name)

    def request_pairing_artifact(self, token: str) -> str:
        resp = self._request(
            "request_pairing_artifact",
            "POST",
            "/instance/connect",
            headers={"token": token, "Content-Type": "application/json"},
            json_body={},
            error_cls=GatewayConnectError,
        )
        self._raise_for_token(resp, "/instance/connect")
        if resp.status_code >= 300:
            detail = _error_text(resp)
            raise GatewayConnectError(
                f"Gateway /instance/connect failed with status {resp.status_code}: {detail or 'no body'}",
                status_code=resp.status_code,
                detail=detail,
            )
        artifact = extract_pairing_artifact(_json_or_none(resp))
        if not artifact:
            raise GatewayConnectError("Failed to get QR code from gateway /instance/connect")
        return artifact

    def fetch_status(self, token: str) -> InstanceStatus:
        resp = self._request(
            "query_status",
            "GET",
            "/instance/status",
            headers={"token": token},
            error_cls=GatewayError,
        )
        self._raise_for_token(resp, "/instance/status")
        if resp.status_code >= 300:
            return InstanceStatus(connected=False)
        payload = _json_or_none(resp)
        connected = normalize_connected(payload)
        artifact = None if connected else extract_pairing_artifact(payload)
        return InstanceStatus(connected=connected, pairing_artifact=artifact)

    def terminate_session(self, token: str) -> None:
        resp = self._request(
            "terminate_session",
            "POST",
            "/instance/logout",
            headers={"token": token},
            error_cls=LogoutError,
        )
        self._raise_for_token(resp, "/instance/logout")
        if resp.status_code >= 300:
            raise LogoutError(
                f"Gateway /instance/logout failed with status {resp.status_code}",
                status_code=resp.status_code,
                detail=_error_text(resp),
            )

    def send_message(self, token: str, recipient: str, body: str) -> None:
        resp = self._request(
            "send_message",
            "POST",
            "/message/sendText",
            headers={"token": token, "Content-Type": "application/json"},
            json_body={"number": recipient, "message": body},
            error_cls=SendError,
        )
        self._raise_for_token(resp, "/message/sendText")
        if resp.status_code >= 300:
            detail = _error_text(resp)
            raise SendError(
                detail or f"Failed with status {resp.status_code}",
                status_code=resp.status_code,
                detail=detail,
            )
