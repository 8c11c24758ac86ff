"""Order import engine.

Runs one page of raw remote orders through the pipeline:

    normalize -> deduplicate -> load existing rows -> partition
        -> write orders -> reconcile child relations -> report

The service holds no state between calls; each ``import_batch`` is a
function of the input page and the current database contents.
"""

from collections.abc import Callable, Iterable, Sequence
from typing import Any, Literal

import structlog
from sqlalchemy.orm import Session

from order_sync.config import Settings, get_settings
from order_sync.exceptions import DuplicateOrderError
from order_sync.services.bulk_writer import OrderBulkWriter
from order_sync.services.deduplication import deduplicate
from order_sync.services.existing_orders import ExistingOrderIndex
from order_sync.services.import_record import ImportRecord
from order_sync.services.normalizer import normalize_orders
from order_sync.services.partitioner import partition
from order_sync.services.relationships import (
    ReconcileOutcome,
    RelationHandler,
    RelationshipReconciler,
)
from order_sync.services.report import RunTimer, SyncRunReport

logger = structlog.get_logger()

BatchListener = Callable[[SyncRunReport], None]


class OrderImportService:
    """Imports pages of remote orders into the local store.

    Args:
        session: Sync SQLAlchemy session; the service commits per chunk and
            per relation kind.
        settings: Defaults for mode, chunk sizes and currency.
        mode: ``"bulk"`` (one INSERT, chunked UPDATEs) or ``"per_record"``
            (one savepoint per order; failures are counted, not raised).
        update_chunk_size: Rows per committed UPDATE transaction.
        handlers: Relation handlers to run; defaults to all five kinds.
        listeners: Called with each batch report.
    """

    def __init__(
        self,
        session: Session,
        settings: Settings | None = None,
        mode: Literal["bulk", "per_record"] | None = None,
        update_chunk_size: int | None = None,
        handlers: Sequence[RelationHandler] | None = None,
        listeners: Iterable[BatchListener] = (),
    ):
        self.settings = settings or get_settings()
        self.session = session
        self.mode = mode or self.settings.sync_import_mode
        if self.mode not in ("bulk", "per_record"):
            raise ValueError(f"Unknown import mode: {self.mode}")

        self.writer = OrderBulkWriter(
            session,
            update_chunk_size=update_chunk_size or self.settings.sync_update_chunk_size,
            per_record_chunk_size=self.settings.sync_per_record_chunk_size,
        )
        self.reconciler = RelationshipReconciler(session, handlers)
        self.listeners = list(listeners)

    # -------------------------------------------------------------------------
    # Entry points
    # -------------------------------------------------------------------------

    def import_batch(self, raw_orders: Iterable[Any], force_update: bool = False) -> SyncRunReport:
        """Import one page of raw orders.

        With ``force_update=False`` matched rows are only written when a
        synced column changed; the rest are counted as skipped. Child
        relations are reconciled for every record either way.

        Raises:
            SQLAlchemyError: A bulk statement failed; committed chunks stay.
            DuplicateOrderError: The insert still violated a unique
                constraint after reloading existing rows once.
        """
        timer = RunTimer().start()
        records = self._prepare(raw_orders)

        if not records:
            report = SyncRunReport.empty().with_timing(timer.stop())
            self._notify(report)
            return report

        logger.info(
            "Importing order batch",
            order_count=len(records),
            mode=self.mode,
            force_update=force_update,
        )

        index = ExistingOrderIndex.load(self.session, records)
        failed_identities: set[str] = set()
        if self.mode == "per_record":
            result = self.writer.write_per_record(records, index, force_update)
            created, updated, failed = result.created, result.updated, result.failed
            failed_identities = result.failed_identities
        else:
            created, updated = self._write_bulk(records, index, force_update)
            failed = 0

        outcome = self._reconcile(records, failed_identities)
        timer.stop()

        report = SyncRunReport(
            processed=len(records),
            created=created,
            updated=updated,
            skipped=len(records) - created - updated - failed,
            failed=failed,
            skipped_no_sku=outcome.skipped_no_sku,
            products_created=outcome.products_created,
            relation_failures=tuple(outcome.failed_kinds),
            duration_seconds=timer.elapsed,
            peak_memory_delta_bytes=timer.peak_memory_delta,
        )
        logger.info("Order batch imported", **report.to_dict())
        self._notify(report)
        return report

    def dry_run_import(self, raw_orders: Iterable[Any]) -> SyncRunReport:
        """Classify a page as creates/updates without writing anything."""
        timer = RunTimer().start()
        records = self._prepare(raw_orders)

        if not records:
            report = SyncRunReport.empty(dry_run=True).with_timing(timer.stop())
            self._notify(report)
            return report

        try:
            index = ExistingOrderIndex.load(self.session, records)
            split = partition(records, index)
        finally:
            self.session.rollback()
        timer.stop()

        report = SyncRunReport(
            processed=len(records),
            created=len(split.to_insert),
            updated=len(split.to_update),
            skipped=0,
            duration_seconds=timer.elapsed,
            peak_memory_delta_bytes=timer.peak_memory_delta,
            dry_run=True,
        )
        logger.info("Order batch dry run", **report.to_dict())
        self._notify(report)
        return report

    # -------------------------------------------------------------------------
    # Pipeline steps
    # -------------------------------------------------------------------------

    def _prepare(self, raw_orders: Iterable[Any]) -> list[ImportRecord]:
        raw = list(raw_orders)
        if not raw:
            return []

        normalized = normalize_orders(raw, self.settings.default_currency)
        records = deduplicate(normalized)
        if len(records) != len(raw):
            logger.debug(
                "Dropped orders before import",
                received=len(raw),
                unmappable=len(raw) - len(normalized),
                duplicates=len(normalized) - len(records),
            )
        return records

    def _write_bulk(
        self,
        records: list[ImportRecord],
        index: ExistingOrderIndex,
        force_update: bool,
    ) -> tuple[int, int]:
        split = partition(records, index)
        to_update = list(split.to_update)

        try:
            created = self.writer.insert(split.to_insert)
        except DuplicateOrderError as e:
            # Another run inserted some of these since the index was loaded
            logger.warning("Reloading existing orders after duplicate insert", order_count=len(e.identities))
            index = ExistingOrderIndex.load(self.session, records)
            retry = partition(split.to_insert, index)
            to_update.extend(retry.to_update)
            created = self.writer.insert(retry.to_insert)

        if not force_update:
            to_update = [r for r in to_update if index.is_dirty(r, index.find(r))]

        updated = self.writer.update(to_update, index)
        return created, updated

    def _reconcile(self, records: list[ImportRecord], exclude: set[str]) -> ReconcileOutcome:
        # Row ids for freshly inserted orders are only known after a reload
        index = ExistingOrderIndex.load(self.session, records)
        targets = []
        for record in records:
            if record.identity in exclude:
                continue
            existing = index.find(record)
            if existing is None:
                logger.warning("Order row missing after write", **record.log_context())
                continue
            targets.append((existing.id, record))
        return self.reconciler.reconcile(targets)

    def _notify(self, report: SyncRunReport) -> None:
        for listener in self.listeners:
            try:
                listener(report)
            except Exception as e:
                logger.warning("Batch listener failed", listener=repr(listener), error=str(e))
