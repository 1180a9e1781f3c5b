import logging
from typing import Iterable

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from mordomozap.core.config import settings
from mordomozap.core.crypto import decrypt_secret, encrypt_secret
from mordomozap.core.integrations import validate_connection_status, validate_provider
from mordomozap.core.metrics import record_credential_invalidation, record_status_transition
from mordomozap.core.time import utcnow
from mordomozap.models.enums import ConnectionStatusEnum
from mordomozap.models.whatsapp_integrations import WhatsAppIntegration


logger = logging.getLogger(__name__)

_UPSERT_FIELDS = {
    "provider",
    "instance_name",
    "api_key",
    "status",
    "qr_code_base64",
    "last_error",
}


def get_integration(db: Session, tenant_id: str) -> WhatsAppIntegration | None:
    return (
        db.query(WhatsAppIntegration)
        .filter(WhatsAppIntegration.tenant_id == tenant_id)
        .first()
    )


def get_api_key(integration: WhatsAppIntegration | None) -> str | None:
    if integration is None or not integration.api_key_encrypted:
        return None
    return decrypt_secret(integration.api_key_encrypted)


def _apply_status(integration: WhatsAppIntegration, status: str) -> None:
    # QR only lives while pending; connected_at only while connected.
    validate_connection_status(status)
    previous = integration.status
    integration.status = status
    if status != ConnectionStatusEnum.PENDING.value:
        integration.qr_code_base64 = None
    if status == ConnectionStatusEnum.CONNECTED.value:
        if previous != status or integration.connected_at is None:
            integration.connected_at = utcnow()
    else:
        integration.connected_at = None
    record_status_transition(previous, status)


def upsert_integration(db: Session, tenant_id: str, **fields) -> WhatsAppIntegration:
    """
    Create or update the single integration record of a tenant.

    Only the keys passed are written; ``api_key`` is encrypted before it is
    stored and ``None`` clears it. Status invariants are re-applied on every
    write, so a QR code can never outlive the pending state.
    """
    unknown = set(fields) - _UPSERT_FIELDS
    if unknown:
        raise ValueError(f"Unsupported integration fields: {', '.join(sorted(unknown))}")

    integration = get_integration(db, tenant_id)
    created = integration is None
    if created:
        integration = WhatsAppIntegration(
            tenant_id=tenant_id,
            provider=settings.GATEWAY_PROVIDER,
            status=ConnectionStatusEnum.DISCONNECTED.value,
        )
        db.add(integration)

    if "provider" in fields:
        validate_provider(fields["provider"])
        integration.provider = fields["provider"]
    if "instance_name" in fields:
        integration.instance_name = fields["instance_name"]
    if "api_key" in fields:
        api_key = fields["api_key"]
        integration.api_key_encrypted = encrypt_secret(api_key) if api_key else None
    if "qr_code_base64" in fields:
        integration.qr_code_base64 = fields["qr_code_base64"] or None
    if "last_error" in fields:
        integration.last_error = fields["last_error"]
    _apply_status(integration, fields.get("status") or integration.status)

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        if not created:
            raise
        # Lost an insert race for the same tenant; last write wins.
        return upsert_integration(db, tenant_id, **fields)
    db.refresh(integration)
    return integration


def save_pending_connection(
    db: Session,
    tenant_id: str,
    *,
    instance_name: str,
    api_key: str,
    qr_code_base64: str,
) -> WhatsAppIntegration:
    return upsert_integration(
        db,
        tenant_id,
        provider=settings.GATEWAY_PROVIDER,
        instance_name=instance_name,
        api_key=api_key,
        status=ConnectionStatusEnum.PENDING.value,
        qr_code_base64=qr_code_base64,
        last_error=None,
    )


def mark_pending(
    db: Session,
    tenant_id: str,
    qr_code_base64: str | None,
) -> WhatsAppIntegration | None:
    integration = get_integration(db, tenant_id)
    if integration is None:
        return None
    return upsert_integration(
        db,
        tenant_id,
        status=ConnectionStatusEnum.PENDING.value,
        qr_code_base64=qr_code_base64,
        last_error=None,
    )


def mark_connected(db: Session, tenant_id: str) -> WhatsAppIntegration | None:
    integration = get_integration(db, tenant_id)
    if integration is None:
        return None
    return upsert_integration(
        db,
        tenant_id,
        status=ConnectionStatusEnum.CONNECTED.value,
        last_error=None,
    )


def mark_disconnected(
    db: Session,
    tenant_id: str,
    *,
    clear_credentials: bool = False,
) -> WhatsAppIntegration | None:
    integration = get_integration(db, tenant_id)
    if integration is None:
        return None
    fields = {"status": ConnectionStatusEnum.DISCONNECTED.value}
    if clear_credentials:
        fields["api_key"] = None
    return upsert_integration(db, tenant_id, **fields)


def invalidate_credentials(
    db: Session,
    tenant_id: str,
    *,
    source: str,
    reason: str | None = None,
) -> WhatsAppIntegration | None:
    integration = get_integration(db, tenant_id)
    if integration is None:
        return None
    logger.warning(
        "whatsapp.credentials_invalidated",
        extra={"tenant_id": tenant_id, "source": source, "reason": reason},
    )
    record_credential_invalidation(source)
    return upsert_integration(
        db,
        tenant_id,
        api_key=None,
        status=ConnectionStatusEnum.DISCONNECTED.value,
        last_error=reason or "Gateway rejected the instance token",
    )


def record_error(db: Session, tenant_id: str, message: str) -> WhatsAppIntegration | None:
    integration = get_integration(db, tenant_id)
    if integration is None:
        return None
    return upsert_integration(db, tenant_id, last_error=message)


def list_integrations_by_status(
    db: Session,
    statuses: Iterable[str],
    *,
    limit: int = 100,
    after_id: int | None = None,
) -> list[WhatsAppIntegration]:
    query = db.query(WhatsAppIntegration).filter(
        WhatsAppIntegration.status.in_(list(statuses))
    )
    if after_id is not None:
        query = query.filter(WhatsAppIntegration.id > after_id)
    return query.order_by(WhatsAppIntegration.id.asc()).limit(limit).all()
