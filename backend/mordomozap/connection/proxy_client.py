from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

import requests

from mordomozap.connection.errors import ConnectionActionError, MissingCredentialsError
from mordomozap.connection.state import ConnectionStatus
from mordomozap.core.config import settings
from mordomozap.core.versioning import WHATSAPP_PROXY_PREFIX


@dataclass(frozen=True)
class StatusSnapshot:
    connected: bool
    # None when the proxy only answered {"connected": false}.
    status: ConnectionStatus | None = None
    qr_code_base64: str | None = None
    has_credentials: bool | None = None


@dataclass(frozen=True)
class PairingResult:
    qr_code_base64: str
    instance_name: str | None = None


class ConnectionBackend(Protocol):
    def status(self, tenant_id: str) -> StatusSnapshot:
        ...

    def start_connection(self, tenant_id: str) -> PairingResult:
        ...

    def reconnect(self, tenant_id: str) -> PairingResult:
        ...

    def disconnect(self, tenant_id: str) -> None:
        ...

    def send_test(self, tenant_id: str, to: str, message: str) -> None:
        ...


def _error_from_response(status_code: int, body: dict[str, Any]) -> ConnectionActionError:
    message = body.get("error") or f"Connection service responded with {status_code}"
    code = body.get("code") or ("internal_error" if status_code >= 500 else "bad_request")
    if code == "missing_credentials":
        return MissingCredentialsError(message)
    return ConnectionActionError(message, code=code, status_code=status_code)


def _parse_status(value: Any) -> ConnectionStatus | None:
    if not value:
        return None
    try:
        return ConnectionStatus(value)
    except ValueError:
        return None


class ProxyConnectionClient:
    """
    HTTP client for the connection proxy, used by the state manager.

    Responses are reduced to what the dashboard may see; the gateway token
    returned by start-connection is dropped here.
    """

    def __init__(
        self,
        base_url: str | None = None,
        *,
        timeout: float | None = None,
        session: Any | None = None,
        prefix: str = WHATSAPP_PROXY_PREFIX,
    ) -> None:
        self.base_url = (base_url or settings.PROXY_BASE_URL).rstrip("/")
        self.timeout = float(timeout or settings.PROXY_TIMEOUT_SECONDS)
        self.session = session or requests.Session()
        self.prefix = prefix

    def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        url = f"{self.base_url}{self.prefix}{path}"
        try:
            resp = self.session.post(url, json=payload, timeout=self.timeout)
        except requests.Timeout as exc:
            raise ConnectionActionError(
                "The request timed out. Try again.",
                code="gateway_timeout",
            ) from exc
        except requests.RequestException as exc:
            raise ConnectionActionError(
                "Could not reach the connection service.",
                code="network_error",
            ) from exc
        try:
            body = resp.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        if resp.status_code >= 400:
            raise _error_from_response(resp.status_code, body)
        return body

    def status(self, tenant_id: str) -> StatusSnapshot:
        body = self._post("/status", {"tenantId": tenant_id})
        has_credentials = body.get("hasCredentials")
        return StatusSnapshot(
            connected=bool(body.get("connected")),
            status=_parse_status(body.get("status")),
            qr_code_base64=body.get("qrCodeBase64") or None,
            has_credentials=bool(has_credentials) if has_credentials is not None else None,
        )

    def _pairing(self, body: dict[str, Any]) -> PairingResult:
        qr_code = body.get("qrCodeBase64")
        if not qr_code:
            raise ConnectionActionError(
                "Invalid response from the connection service.",
                code="invalid_response",
            )
        return PairingResult(qr_code_base64=qr_code, instance_name=body.get("instanceName"))

    def start_connection(self, tenant_id: str) -> PairingResult:
        return self._pairing(self._post("/start-connection", {"tenantId": tenant_id}))

    def reconnect(self, tenant_id: str) -> PairingResult:
        return self._pairing(self._post("/reconnect", {"tenantId": tenant_id}))

    def disconnect(self, tenant_id: str) -> None:
        self._post("/disconnect", {"tenantId": tenant_id})

    def send_test(self, tenant_id: str, to: str, message: str) -> None:
        self._post("/send-test", {"tenantId": tenant_id, "to": to, "message": message})
