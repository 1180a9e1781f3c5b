from .whatsapp_integrations import (
    get_api_key,
    get_integration,
    invalidate_credentials,
    list_integrations_by_status,
    mark_connected,
    mark_disconnected,
    mark_pending,
    record_error,
    save_pending_connection,
    upsert_integration,
)
