from __future__ import annotations

import argparse
import logging
from time import sleep

from sqlalchemy.orm import Session

from mordomozap.core.config import settings
from mordomozap.core.db import SessionLocal
from mordomozap.core.metrics import record_job_run
from mordomozap.core.tracing import trace_span
from mordomozap.crud.whatsapp_integrations import list_integrations_by_status
from mordomozap.gateway import get_gateway_client
from mordomozap.gateway.base import WhatsAppGateway
from mordomozap.models.enums import ConnectionStatusEnum
from mordomozap.services.connection_proxy import ConnectionProxy


logger = logging.getLogger(__name__)

SWEPT_STATUSES = (ConnectionStatusEnum.PENDING.value, ConnectionStatusEnum.CONNECTED.value)


def run_status_sweep(
    db: Session,
    gateway: WhatsAppGateway,
    *,
    batch_size: int | None = None,
) -> int:
    """Re-check every pending or connected integration against the gateway.

    Runs the same status reconciliation as the dashboard poll, so revoked
    tokens get cleared even when nobody has the page open.
    """
    batch_size = int(batch_size or settings.STATUS_SWEEP_BATCH_SIZE)
    proxy = ConnectionProxy(db, gateway)
    processed = 0
    after_id = None
    while True:
        batch = list_integrations_by_status(db, SWEPT_STATUSES, limit=batch_size, after_id=after_id)
        if not batch:
            break
        # Capture ids first; the proxy commits and expires the rows.
        rows = [(integration.id, integration.tenant_id) for integration in batch]
        for _, tenant_id in rows:
            with trace_span("whatsapp.status_sweep", tenant_id=tenant_id) as span:
                result = proxy.status(tenant_id)
                span.annotate(connection_status=result.status, has_credentials=result.has_credentials)
            processed += 1
        after_id = rows[-1][0]
        if len(rows) < batch_size:
            break
    return processed


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Reconcile stored WhatsApp connection statuses.")
    parser.add_argument("--once", action="store_true", help="Run once and exit.")
    parser.add_argument("--batch-size", type=int, default=None)
    parser.add_argument("--poll-interval", type=float, default=None)
    return parser.parse_args()


def main() -> None:
    args = _parse_args()
    poll_interval = (
        float(args.poll_interval)
        if args.poll_interval is not None
        else float(settings.STATUS_SWEEP_INTERVAL_SECONDS)
    )
    gateway = get_gateway_client()
    while True:
        processed = 0
        success = True
        try:
            with SessionLocal() as db:
                processed = run_status_sweep(db, gateway, batch_size=args.batch_size)
            logger.info("Status sweep complete. processed=%s", processed)
        except Exception:
            success = False
            logger.exception("Status sweep failed")
            raise
        finally:
            record_job_run(job_name="whatsapp_status_sweep", success=success)
        if args.once:
            break
        sleep(max(0.1, poll_interval))


if __name__ == "__main__":
    main()
