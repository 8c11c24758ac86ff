"""Bulk lookup of orders already present in the store."""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Optional

import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session

from order_sync.infrastructure.database.models import Order
from order_sync.services.import_record import ImportRecord
from shared.constants import BOOKKEEPING_COLUMNS

logger = structlog.get_logger()

_orders = Order.__table__
_IDENTITY_COLUMNS = frozenset({"remote_order_id", "order_number"})


@dataclass(frozen=True)
class ExistingOrder:
    """Local row id plus the column values as currently stored."""

    id: int
    snapshot: Mapping[str, Any]


@dataclass
class ExistingOrderIndex:
    """Existing orders for one batch, keyed by remote id and by order number.

    Built with at most two ``SELECT ... WHERE ... IN`` statements regardless
    of batch size; lookups afterwards are dictionary hits.
    """

    by_remote_id: dict[str, ExistingOrder] = field(default_factory=dict)
    by_order_number: dict[int, ExistingOrder] = field(default_factory=dict)

    @classmethod
    def load(cls, session: Session, records: Iterable[ImportRecord]) -> "ExistingOrderIndex":
        remote_ids: set[str] = set()
        order_numbers: set[int] = set()
        for record in records:
            if record.remote_order_id:
                remote_ids.add(record.remote_order_id)
            if record.order_number is not None:
                order_numbers.add(record.order_number)

        index = cls()
        if remote_ids:
            rows = session.execute(
                select(_orders).where(_orders.c.remote_order_id.in_(remote_ids))
            ).mappings()
            for row in rows:
                index._add(row)
        if order_numbers:
            rows = session.execute(
                select(_orders).where(_orders.c.order_number.in_(order_numbers))
            ).mappings()
            for row in rows:
                index._add(row)

        logger.debug(
            "Loaded existing orders",
            by_remote_id=len(index.by_remote_id),
            by_order_number=len(index.by_order_number),
        )
        return index

    def _add(self, row: Mapping[str, Any]) -> None:
        existing = ExistingOrder(id=row["id"], snapshot=dict(row))
        if row["remote_order_id"]:
            self.by_remote_id[row["remote_order_id"]] = existing
        if row["order_number"] is not None:
            self.by_order_number[row["order_number"]] = existing

    def find(self, record: ImportRecord) -> Optional[ExistingOrder]:
        """Match by remote id first, order number second."""
        if record.remote_order_id:
            existing = self.by_remote_id.get(record.remote_order_id)
            if existing is not None:
                return existing
        if record.order_number is not None:
            return self.by_order_number.get(record.order_number)
        return None

    def __contains__(self, record: ImportRecord) -> bool:
        return self.find(record) is not None

    def __len__(self) -> int:
        ids = {e.id for e in self.by_remote_id.values()}
        ids.update(e.id for e in self.by_order_number.values())
        return len(ids)

    @staticmethod
    def is_dirty(record: ImportRecord, existing: ExistingOrder) -> bool:
        """True when any synced column differs from the stored value.

        Identity keys the record lacks are ignored, matching what an update
        would write.
        """
        for column, value in record.attributes.items():
            if column in BOOKKEEPING_COLUMNS:
                continue
            if column in _IDENTITY_COLUMNS and value in (None, ""):
                continue
            if existing.snapshot.get(column) != value:
                return True
        return False
