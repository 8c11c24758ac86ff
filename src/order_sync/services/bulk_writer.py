"""Write order rows in bulk (or one at a time in per-record mode)."""

from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, TypeVar

import structlog
from sqlalchemy import insert, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from order_sync.exceptions import DuplicateOrderError
from order_sync.infrastructure.database.models import Order
from order_sync.services.existing_orders import ExistingOrderIndex
from order_sync.services.import_record import ImportRecord
from shared.constants import PER_RECORD_CHUNK_SIZE, UPDATE_CHUNK_SIZE

logger = structlog.get_logger()

_orders = Order.__table__

T = TypeVar("T")


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the naive DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def chunked(items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


@dataclass
class PerRecordResult:
    created: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    failed_identities: set[str] = field(default_factory=set)


class OrderBulkWriter:
    """Executes order inserts and updates against the ``orders`` table.

    ``insert`` is a single executemany statement committed as one unit.
    ``update`` commits every ``update_chunk_size`` rows so long runs never
    hold one huge transaction. ``created_at`` is only ever written on insert.
    """

    def __init__(
        self,
        session: Session,
        update_chunk_size: int = UPDATE_CHUNK_SIZE,
        per_record_chunk_size: int = PER_RECORD_CHUNK_SIZE,
    ):
        if update_chunk_size < 1 or per_record_chunk_size < 1:
            raise ValueError("chunk sizes must be positive")
        self.session = session
        self.update_chunk_size = update_chunk_size
        self.per_record_chunk_size = per_record_chunk_size

    # -------------------------------------------------------------------------
    # Row payloads
    # -------------------------------------------------------------------------

    @staticmethod
    def insert_row(record: ImportRecord, now: datetime) -> dict[str, Any]:
        row = dict(record.attributes)
        row.update(created_at=now, updated_at=now, last_synced_at=now, sync_status="synced")
        return row

    @staticmethod
    def update_row(record: ImportRecord, now: datetime) -> dict[str, Any]:
        row = {k: v for k, v in record.attributes.items() if k != "created_at"}
        # Never blank out an identity key the incoming record simply lacks
        if not row.get("remote_order_id"):
            row.pop("remote_order_id", None)
        if row.get("order_number") is None:
            row.pop("order_number", None)
        row.update(updated_at=now, last_synced_at=now, sync_status="synced")
        return row

    # -------------------------------------------------------------------------
    # Bulk mode
    # -------------------------------------------------------------------------

    def insert(self, records: Sequence[ImportRecord]) -> int:
        """Insert all records with one statement; all or nothing."""
        if not records:
            return 0

        now = utcnow()
        rows = [self.insert_row(record, now) for record in records]
        try:
            self.session.execute(insert(_orders), rows)
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            logger.warning(
                "Bulk order insert hit a unique constraint",
                order_count=len(rows),
                error=str(e.orig),
            )
            raise DuplicateOrderError([r.identity for r in records], e) from e
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error("Bulk order insert failed", order_count=len(rows), error=str(e))
            raise

        logger.debug("Inserted orders", order_count=len(rows))
        return len(rows)

    def update(
        self,
        records: Sequence[ImportRecord],
        index: ExistingOrderIndex,
        chunk_size: int | None = None,
    ) -> int:
        """Update matched rows, one committed transaction per chunk.

        Returns the sum of affected row counts. A failing chunk is rolled
        back and the error propagates; earlier chunks stay committed.
        """
        size = chunk_size or self.update_chunk_size
        affected = 0

        for chunk_number, chunk in enumerate(chunked(records, size), start=1):
            now = utcnow()
            chunk_affected = 0
            try:
                for record in chunk:
                    existing = index.find(record)
                    if existing is None:
                        logger.warning("No existing row for order update", **record.log_context())
                        continue
                    result = self.session.execute(
                        update(_orders)
                        .where(_orders.c.id == existing.id)
                        .values(**self.update_row(record, now))
                    )
                    chunk_affected += result.rowcount
                self.session.commit()
            except SQLAlchemyError as e:
                self.session.rollback()
                logger.error(
                    "Order update chunk failed",
                    chunk=chunk_number,
                    chunk_size=len(chunk),
                    error=str(e),
                )
                raise
            affected += chunk_affected

        return affected

    # -------------------------------------------------------------------------
    # Per-record mode
    # -------------------------------------------------------------------------

    def write_per_record(
        self,
        records: Sequence[ImportRecord],
        index: ExistingOrderIndex,
        force_update: bool = False,
    ) -> PerRecordResult:
        """Write each record inside its own savepoint.

        A failing record is rolled back to its savepoint, logged and counted
        in ``failed``; the rest of its chunk still commits.
        """
        result = PerRecordResult()

        for chunk in chunked(records, self.per_record_chunk_size):
            now = utcnow()
            for record in chunk:
                try:
                    with self.session.begin_nested():
                        outcome = self._write_one(record, index, force_update, now)
                except Exception as e:
                    result.failed += 1
                    result.failed_identities.add(record.identity)
                    logger.error("Failed to import order", error=str(e), **record.log_context())
                    continue

                if outcome == "created":
                    result.created += 1
                elif outcome == "updated":
                    result.updated += 1
                else:
                    result.skipped += 1
            self.session.commit()

        return result

    def _write_one(
        self,
        record: ImportRecord,
        index: ExistingOrderIndex,
        force_update: bool,
        now: datetime,
    ) -> str:
        existing = index.find(record)
        if existing is None:
            self.session.execute(insert(_orders).values(**self.insert_row(record, now)))
            return "created"

        if not force_update and not index.is_dirty(record, existing):
            return "skipped"

        self.session.execute(
            update(_orders).where(_orders.c.id == existing.id).values(**self.update_row(record, now))
        )
        return "updated"
