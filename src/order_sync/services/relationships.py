"""Replace child rows (items, shipping, notes, ...) for a batch of orders.

Every relation kind is reconciled independently with the same pattern:
one DELETE scoped to the batch's order ids, then one INSERT of the full new
row set. Running it twice with the same input leaves the same rows behind.

Each kind commits on its own. A failure is logged, rolled back and reported
in the outcome; it never undoes the order writes or the other kinds.
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import structlog
from sqlalchemy import Table, delete, insert, select
from sqlalchemy.orm import Session

from order_sync.exceptions import RelationSyncError
from order_sync.infrastructure.database.models import (
    OrderIdentifier,
    OrderItem,
    OrderNote,
    OrderProperty,
    OrderShipping,
    Product,
)
from order_sync.services.bulk_writer import utcnow
from order_sync.services.import_record import ImportRecord, Row
from shared.constants import PLACEHOLDER_PRODUCT_PREFIX, PLACEHOLDER_PRODUCT_TITLE

logger = structlog.get_logger()

# (local order row id, record) pairs for one batch
Targets = Sequence[tuple[int, ImportRecord]]


@dataclass
class RelationResult:
    kind: str
    orders: int = 0
    deleted: int = 0
    inserted: int = 0
    skipped_no_sku: int = 0
    products_created: int = 0


@dataclass
class ReconcileOutcome:
    results: dict[str, RelationResult] = field(default_factory=dict)
    errors: list[RelationSyncError] = field(default_factory=list)

    @property
    def skipped_no_sku(self) -> int:
        return sum(r.skipped_no_sku for r in self.results.values())

    @property
    def products_created(self) -> int:
        return sum(r.products_created for r in self.results.values())

    @property
    def failed_kinds(self) -> list[str]:
        return [e.kind for e in self.errors]


class RelationHandler(ABC):
    """Delete-then-insert sync for one child table."""

    kind: str
    table: Table

    @abstractmethod
    def children(self, record: ImportRecord) -> Sequence[Row]:
        """Child rows carried by the record, without ``order_id``."""

    def in_scope(self, record: ImportRecord) -> bool:
        """Only orders with data for this kind have their rows replaced."""
        return bool(self.children(record))

    def build_rows(self, session: Session, targets: Targets, now: datetime) -> tuple[list[dict[str, Any]], RelationResult]:
        result = RelationResult(kind=self.kind)
        rows = [
            {**child, "order_id": order_id, "created_at": now, "updated_at": now}
            for order_id, record in targets
            for child in self.children(record)
        ]
        return rows, result

    def sync(self, session: Session, targets: Targets) -> RelationResult:
        scoped = [(order_id, record) for order_id, record in targets if self.in_scope(record)]
        if not scoped:
            return RelationResult(kind=self.kind)

        rows, result = self.build_rows(session, scoped, utcnow())
        order_ids = sorted({order_id for order_id, _ in scoped})
        result.orders = len(order_ids)

        deleted = session.execute(delete(self.table).where(self.table.c.order_id.in_(order_ids)))
        result.deleted = deleted.rowcount
        if rows:
            session.execute(insert(self.table), rows)
            result.inserted = len(rows)
        return result


class ItemsHandler(RelationHandler):
    """Order lines. Lines without a SKU are never stored.

    Every SKU referenced by the batch must exist in ``products``; missing
    ones get a placeholder product before the lines are inserted.
    """

    kind = "items"
    table = OrderItem.__table__

    def children(self, record: ImportRecord) -> Sequence[Row]:
        return record.items

    def build_rows(self, session: Session, targets: Targets, now: datetime) -> tuple[list[dict[str, Any]], RelationResult]:
        rows, result = super().build_rows(session, targets, now)

        linked = [row for row in rows if row.get("sku")]
        result.skipped_no_sku = len(rows) - len(linked)
        if result.skipped_no_sku:
            logger.info("Skipping order items without SKU", count=result.skipped_no_sku)

        result.products_created = self._provision_products(
            session, {row["sku"] for row in linked}, now
        )
        return linked, result

    def _provision_products(self, session: Session, skus: set[str], now: datetime) -> int:
        if not skus:
            return 0

        products = Product.__table__
        known = set(
            session.execute(select(products.c.sku).where(products.c.sku.in_(skus))).scalars()
        )
        missing = sorted(skus - known)
        if not missing:
            return 0

        session.execute(
            insert(products),
            [
                {
                    "remote_product_id": f"{PLACEHOLDER_PRODUCT_PREFIX}{sku}",
                    "sku": sku,
                    "title": PLACEHOLDER_PRODUCT_TITLE,
                    "stock_level": 0,
                    "is_active": True,
                    "created_at": now,
                    "updated_at": now,
                }
                for sku in missing
            ],
        )
        logger.info("Created placeholder products", count=len(missing))
        return len(missing)


class ShippingHandler(RelationHandler):
    kind = "shipping"
    table = OrderShipping.__table__

    def children(self, record: ImportRecord) -> Sequence[Row]:
        return (record.shipping,) if record.shipping else ()


class NotesHandler(RelationHandler):
    kind = "notes"
    table = OrderNote.__table__

    def children(self, record: ImportRecord) -> Sequence[Row]:
        return record.notes


class PropertiesHandler(RelationHandler):
    kind = "properties"
    table = OrderProperty.__table__

    def children(self, record: ImportRecord) -> Sequence[Row]:
        return record.properties


class IdentifiersHandler(RelationHandler):
    kind = "identifiers"
    table = OrderIdentifier.__table__

    def children(self, record: ImportRecord) -> Sequence[Row]:
        return record.identifiers


def default_handlers() -> list[RelationHandler]:
    """All five kinds, items first."""
    return [
        ItemsHandler(),
        ShippingHandler(),
        NotesHandler(),
        PropertiesHandler(),
        IdentifiersHandler(),
    ]


class RelationshipReconciler:
    """Runs every handler over the batch, each in its own transaction."""

    def __init__(self, session: Session, handlers: Sequence[RelationHandler] | None = None):
        self.session = session
        self.handlers = list(handlers) if handlers is not None else default_handlers()

    def reconcile(self, targets: Targets) -> ReconcileOutcome:
        outcome = ReconcileOutcome()
        if not targets:
            return outcome

        for handler in self.handlers:
            try:
                result = handler.sync(self.session, targets)
                self.session.commit()
            except Exception as e:
                self.session.rollback()
                error = RelationSyncError(handler.kind, e)
                outcome.errors.append(error)
                logger.error(
                    "Relationship sync failed",
                    relation=handler.kind,
                    order_count=len(targets),
                    error=str(error),
                )
                continue

            outcome.results[handler.kind] = result
            logger.debug(
                "Synced relation",
                relation=result.kind,
                orders=result.orders,
                deleted=result.deleted,
                inserted=result.inserted,
            )

        return outcome
