"""Canonical, immutable view of one remote order ready for persistence."""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping

from shared.constants import ORDER_NUMBER_IDENTITY_PREFIX

Row = Mapping[str, Any]


def freeze(row: Mapping[str, Any]) -> Row:
    """Return a read-only copy of a column mapping."""
    return MappingProxyType(dict(row))


@dataclass(frozen=True)
class ImportRecord:
    """One normalized order.

    ``attributes`` uses local ``orders`` column names; child collections use
    the column names of their tables, without ``order_id`` (assigned once
    the parent row id is known).
    """

    remote_order_id: str | None
    order_number: int | None
    is_processed: bool
    attributes: Row
    items: tuple[Row, ...] = ()
    shipping: Row | None = None
    notes: tuple[Row, ...] = ()
    properties: tuple[Row, ...] = ()
    identifiers: tuple[Row, ...] = field(default=())

    def __post_init__(self) -> None:
        if not self.remote_order_id and self.order_number is None:
            raise ValueError("ImportRecord needs a remote order id or an order number")

    @property
    def identity(self) -> str:
        if self.remote_order_id:
            return self.remote_order_id
        return f"{ORDER_NUMBER_IDENTITY_PREFIX}{self.order_number}"

    def log_context(self) -> dict[str, Any]:
        return {"remote_order_id": self.remote_order_id, "order_number": self.order_number}
