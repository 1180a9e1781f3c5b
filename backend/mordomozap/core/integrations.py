from mordomozap.core.config import settings
from mordomozap.models.enums import ConnectionStatusEnum, GatewayProviderEnum


ALLOWED_PROVIDERS = {provider.value for provider in GatewayProviderEnum}

ALLOWED_CONNECTION_STATUSES = {status.value for status in ConnectionStatusEnum}


def validate_provider(value: str) -> None:
    if value not in ALLOWED_PROVIDERS:
        raise ValueError(f"Unsupported gateway provider: {value}")


def validate_connection_status(value: str) -> None:
    if value not in ALLOWED_CONNECTION_STATUSES:
        raise ValueError(f"Unsupported connection status: {value}")


def build_instance_name(tenant_id: str, prefix: str | None = None) -> str:
    """Gateway instance names are derived from the tenant id, never chosen."""
    tenant_value = (tenant_id or "").strip()
    if not tenant_value:
        raise ValueError("tenant_id is required to derive an instance name")
    return f"{prefix or settings.INSTANCE_NAME_PREFIX}-{tenant_value}"
