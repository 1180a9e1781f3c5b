"""
Serializable connection state rendered by the dashboard.

The state never carries the gateway token; the UI only learns whether
credentials exist (``has_credentials``), which decides if "reconnect" is
offered next to "start fresh".
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from typing import Any

from mordomozap.models.enums import ConnectionStatusEnum


ConnectionStatus = ConnectionStatusEnum

_ALLOWED_TRANSITIONS: dict[ConnectionStatus, set[ConnectionStatus]] = {
    ConnectionStatus.DISCONNECTED: {ConnectionStatus.PENDING},
    ConnectionStatus.PENDING: {
        ConnectionStatus.PENDING,
        ConnectionStatus.CONNECTED,
        ConnectionStatus.DISCONNECTED,
    },
    ConnectionStatus.CONNECTED: {ConnectionStatus.DISCONNECTED},
    ConnectionStatus.ERROR: {ConnectionStatus.PENDING, ConnectionStatus.DISCONNECTED},
}


def can_transition(current: ConnectionStatus, target: ConnectionStatus) -> bool:
    if target == ConnectionStatus.ERROR:
        return True
    if target == current == ConnectionStatus.DISCONNECTED:
        return True
    return target in _ALLOWED_TRANSITIONS.get(current, set())


@dataclass(frozen=True)
class ConnectionState:
    tenant_id: str
    status: ConnectionStatus = ConnectionStatus.DISCONNECTED
    qr_code_base64: str | None = None
    has_credentials: bool = False
    last_error: str | None = None
    error_code: str | None = None
    busy: bool = False
    polling: bool = False
    loaded: bool = False

    @property
    def awaiting_artifact(self) -> bool:
        # Rendered as a spinner, not as an error.
        return self.status == ConnectionStatus.PENDING and not self.qr_code_base64

    @property
    def can_reconnect(self) -> bool:
        return self.has_credentials and self.status != ConnectionStatus.CONNECTED

    def evolve(self, **changes: Any) -> "ConnectionState":
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["status"] = self.status.value
        return payload

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "ConnectionState":
        data = dict(payload)
        data["status"] = ConnectionStatus(data.get("status") or ConnectionStatus.DISCONNECTED.value)
        known = set(cls.__dataclass_fields__)
        return cls(**{key: value for key, value in data.items() if key in known})
