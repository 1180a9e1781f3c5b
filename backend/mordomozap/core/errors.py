"""
Error payloads returned by the connection proxy.

Every failure leaves the proxy as ``{"error": <message>, "code": <code>}``
with the code mirrored in the ``X-Error-Code`` header, so the UI can branch
("start fresh" vs "try again") without parsing messages.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass
class ProxyError(Exception):
    code: str
    message: str
    status_code: int

    def __post_init__(self) -> None:
        super().__init__(self.message)

    def to_payload(self) -> dict[str, Any]:
        return {"error": self.message, "code": self.code}


class MissingTenantError(ProxyError):
    def __init__(self, message: str = "Tenant ID is required"):
        super().__init__(code="missing_tenant", message=message, status_code=400)


class BadRequestError(ProxyError):
    def __init__(self, message: str):
        super().__init__(code="bad_request", message=message, status_code=400)


class MissingCredentialsError(ProxyError):
    def __init__(self, message: str = "Connection credentials not found. Start a new connection."):
        super().__init__(code="missing_credentials", message=message, status_code=404)


class IntegrationNotFoundError(ProxyError):
    def __init__(self, message: str = "WhatsApp integration not found"):
        super().__init__(code="integration_not_found", message=message, status_code=404)


class CredentialsRevokedError(ProxyError):
    def __init__(self, message: str = "Invalid token. The connection was reset; start a new connection."):
        super().__init__(code="invalid_token", message=message, status_code=401)


class UpstreamError(ProxyError):
    """Gateway answered badly or not at all."""

    def __init__(self, code: str, message: str):
        super().__init__(code=code, message=message, status_code=502)


class InternalProxyError(ProxyError):
    def __init__(self, message: str = "Unexpected error while talking to the WhatsApp gateway"):
        super().__init__(code="internal_error", message=message, status_code=500)
