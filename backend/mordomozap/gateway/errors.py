"""
Failures raised by the WhatsApp gateway client.

``InvalidTokenError`` is not a subclass of the per-operation errors: a
401/403 means the stored token is dead and must be invalidated, while the
others only mean "this attempt failed".
"""

from __future__ import annotations


class GatewayError(Exception):
    """Base class for every gateway failure."""

    def __init__(self, message: str, *, status_code: int | None = None, detail: str | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.detail = detail


class GatewayInitError(GatewayError):
    """Instance initialization was refused or returned an unusable body."""


class GatewayConnectError(GatewayError):
    """Pairing artifact could not be produced."""


class InvalidTokenError(GatewayError):
    """The gateway rejected the instance token (HTTP 401/403)."""


class GatewayTimeoutError(GatewayError):
    """No response within the configured bound."""


class SendError(GatewayError):
    """Message delivery was refused; ``detail`` carries the gateway's text."""


class LogoutError(GatewayError):
    """Session termination failed. Callers treat this as non-fatal."""
