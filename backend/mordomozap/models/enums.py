from enum import Enum

# Stored as strings (native enums disabled for easier evolution).


class ConnectionStatusEnum(str, Enum):
    DISCONNECTED = "disconnected"
    PENDING = "pending"
    CONNECTED = "connected"
    ERROR = "error"


class GatewayProviderEnum(str, Enum):
    UAZAPI = "uazapi"
