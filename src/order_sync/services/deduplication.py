"""Collapse records describing the same order within one batch."""

from collections.abc import Iterable

from order_sync.services.import_record import ImportRecord


def _preference(record: ImportRecord) -> tuple[bool, bool]:
    return (not record.is_processed, not record.remote_order_id)


def deduplicate(records: Iterable[ImportRecord]) -> list[ImportRecord]:
    """Keep one record per order, preferring the processed variant.

    The open and processed feeds overlap; when both views of an order arrive
    in the same batch the processed one wins, then the one carrying a remote
    id. Two records are the same order when they share either the remote id
    or the order number, since both columns are unique in the store. Ties
    keep arrival order.
    """
    # sorted() is stable, so arrival order survives among equal keys
    ordered = sorted(records, key=_preference)

    seen_ids: set[str] = set()
    seen_numbers: set[int] = set()
    unique: list[ImportRecord] = []
    for record in ordered:
        if record.remote_order_id and record.remote_order_id in seen_ids:
            continue
        if record.order_number is not None and record.order_number in seen_numbers:
            continue
        if record.remote_order_id:
            seen_ids.add(record.remote_order_id)
        if record.order_number is not None:
            seen_numbers.add(record.order_number)
        unique.append(record)
    return unique
