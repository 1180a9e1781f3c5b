from mordomozap.core.config import settings
from mordomozap.gateway.base import InstanceCredentials, InstanceStatus, WhatsAppGateway
from mordomozap.gateway.client import UazapiClient


_GATEWAY_REGISTRY: dict[str, type[WhatsAppGateway]] = {
    "uazapi": UazapiClient,
}


def get_gateway_client(provider: str | None = None) -> WhatsAppGateway:
    key = str(provider or settings.GATEWAY_PROVIDER).strip().lower()
    gateway_cls = _GATEWAY_REGISTRY.get(key)
    if gateway_cls is None:
        raise ValueError(f"Unsupported gateway provider: {key}")
    return gateway_cls()
