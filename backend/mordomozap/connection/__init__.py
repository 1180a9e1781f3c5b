from mordomozap.connection.errors import (
    ConnectionActionError,
    InvalidTransitionError,
    MissingCredentialsError,
)
from mordomozap.connection.manager import ConnectionStateManager
from mordomozap.connection.proxy_client import PairingResult, ProxyConnectionClient, StatusSnapshot
from mordomozap.connection.scheduler import ThreadScheduler
from mordomozap.connection.state import ConnectionState, ConnectionStatus

__all__ = [
    "ConnectionActionError",
    "ConnectionState",
    "ConnectionStateManager",
    "ConnectionStatus",
    "InvalidTransitionError",
    "MissingCredentialsError",
    "PairingResult",
    "ProxyConnectionClient",
    "StatusSnapshot",
    "ThreadScheduler",
]
