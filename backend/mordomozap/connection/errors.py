"""
Errors surfaced to the dashboard by the connection state manager.
"""

from __future__ import annotations


class ConnectionActionError(Exception):
    """A user action (connect, reconnect, send) failed; ``code`` mirrors the proxy."""

    def __init__(self, message: str, *, code: str = "internal_error", status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code

    @property
    def requires_fresh_start(self) -> bool:
        return self.code in {"invalid_token", "missing_credentials"}

    @property
    def is_timeout(self) -> bool:
        return self.code == "gateway_timeout"


class MissingCredentialsError(ConnectionActionError):
    def __init__(self, message: str = "Credentials not found. Start a new connection via QR code."):
        super().__init__(message, code="missing_credentials", status_code=404)


class InvalidTransitionError(Exception):
    def __init__(self, current: str, target: str):
        super().__init__(f"Invalid connection transition: {current} -> {target}")
        self.current = current
        self.target = target
