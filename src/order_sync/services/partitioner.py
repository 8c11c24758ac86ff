"""Split a deduplicated batch into inserts and updates."""

from collections.abc import Iterable
from dataclasses import dataclass

from order_sync.services.existing_orders import ExistingOrderIndex
from order_sync.services.import_record import ImportRecord


@dataclass(frozen=True)
class Partition:
    to_insert: tuple[ImportRecord, ...]
    to_update: tuple[ImportRecord, ...]


def partition(records: Iterable[ImportRecord], index: ExistingOrderIndex) -> Partition:
    """Records with no existing row by either key go to ``to_insert``."""
    to_insert: list[ImportRecord] = []
    to_update: list[ImportRecord] = []
    for record in records:
        if record in index:
            to_update.append(record)
        else:
            to_insert.append(record)
    return Partition(to_insert=tuple(to_insert), to_update=tuple(to_update))
