"""Order synchronization tasks."""

from typing import Any

import structlog
from celery import shared_task
from sqlalchemy.orm import Session, sessionmaker

from order_sync.clients.orders_api import OrderFetcher, OrdersApiClient, iter_pages
from order_sync.config import Settings, get_settings
from order_sync.infrastructure.database.connection import get_session_factory
from order_sync.infrastructure.database.models import SyncStatus
from order_sync.services.bulk_writer import utcnow
from order_sync.services.order_import import OrderImportService
from order_sync.services.report import RunTotals
from shared.constants import ORDERS_SYNC_ID

logger = structlog.get_logger()


@shared_task(bind=True, max_retries=3, default_retry_delay=300)
def sync_orders_from_ecommerce(self, force_update: bool = False) -> dict:
    """
    Synchronize orders from the remote order API.

    This task:
    1. Marks the orders sync stream as running
    2. Streams order pages from the remote API through the import engine
    3. Records idle (or error) status with the number of orders processed

    Returns:
        dict: Run totals
    """
    settings = get_settings()
    logger.info("Starting order sync from remote API", force_update=force_update)

    try:
        with OrdersApiClient(settings) as client:
            return run_order_sync(
                client, get_session_factory(), settings, force_update=force_update
            )
    except Exception as e:
        logger.error(
            "Order sync failed",
            error=str(e),
            retries=self.request.retries,
        )
        raise self.retry(exc=e)


def run_order_sync(
    fetcher: OrderFetcher,
    session_factory: sessionmaker[Session],
    settings: Settings | None = None,
    force_update: bool = False,
) -> dict[str, Any]:
    """Import every page the fetcher yields, one engine call per page."""
    settings = settings or get_settings()
    totals = RunTotals()

    with session_factory() as session:
        _update_sync_status(session, "running")
        service = OrderImportService(session, settings)
        page_number = None

        try:
            for page in iter_pages(
                fetcher,
                page_size=settings.orders_api_page_size,
                max_pages=settings.sync_max_pages,
            ):
                page_number = page.paging.page
                report = service.import_batch(page.orders, force_update=force_update)
                totals.add(report)
                logger.info(
                    "Order page synced",
                    page=page_number,
                    processed=totals.processed,
                    created=totals.created,
                    updated=totals.updated,
                    failed=totals.failed,
                    elapsed_seconds=round(totals.elapsed_seconds, 2),
                )
        except Exception as e:
            session.rollback()
            _update_sync_status(
                session,
                "error",
                records_synced=totals.processed,
                cursor=str(page_number) if page_number else None,
                error_message=str(e),
            )
            raise

        _update_sync_status(
            session,
            "idle",
            records_synced=totals.processed,
            cursor=str(page_number) if page_number else None,
        )

    summary = totals.to_dict()
    logger.info("Order sync completed", **summary)
    return summary


def _update_sync_status(
    session: Session,
    status: str,
    records_synced: int = 0,
    cursor: str | None = None,
    error_message: str | None = None,
) -> None:
    """Upsert the orders row of ``sync_status`` and commit."""
    now = utcnow()
    row = session.get(SyncStatus, ORDERS_SYNC_ID)
    if row is None:
        row = SyncStatus(id=ORDERS_SYNC_ID, records_synced=0)
        session.add(row)

    row.status = status
    row.updated_at = now
    row.error_message = error_message
    if records_synced > 0:
        row.records_synced = records_synced
    if cursor is not None:
        row.last_sync_cursor = cursor
    if status == "idle":
        row.last_sync_at = now
    session.commit()
