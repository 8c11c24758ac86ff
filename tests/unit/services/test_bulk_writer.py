"""Unit tests for the order bulk writer."""

from datetime import datetime

import pytest
from sqlalchemy import event, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from order_sync.exceptions import DuplicateOrderError
from order_sync.infrastructure.database.models import Order
from order_sync.services.bulk_writer import OrderBulkWriter, chunked
from order_sync.services.existing_orders import ExistingOrderIndex
from order_sync.services.normalizer import normalize_order
from conftest import count_rows, make_order


def records(*pairs):
    return [normalize_order(make_order(order_id, number)) for order_id, number in pairs]


class TestInsert:
    def test_single_statement_for_all_rows(self, session: Session, statements: list[str]) -> None:
        writer = OrderBulkWriter(session)
        assert writer.insert(records(("a", 1), ("b", 2), ("c", 3))) == 3
        assert statements.count("INSERT") == 1
        assert count_rows(session, Order) == 3

    def test_stamps_bookkeeping_columns(self, session: Session) -> None:
        OrderBulkWriter(session).insert(records(("a", 1)))
        row = session.execute(select(Order)).scalar_one()
        assert isinstance(row.created_at, datetime)
        assert row.last_synced_at == row.created_at
        assert row.sync_status == "synced"

    def test_empty_is_noop(self, session: Session, statements: list[str]) -> None:
        assert OrderBulkWriter(session).insert([]) == 0
        assert statements == []

    def test_unique_violation_is_atomic(self, session: Session) -> None:
        writer = OrderBulkWriter(session)
        writer.insert(records(("a", 1)))

        with pytest.raises(DuplicateOrderError) as exc_info:
            writer.insert(records(("b", 2), ("a", 3)))

        assert exc_info.value.identities == ["b", "a"]
        assert count_rows(session, Order) == 1


class TestUpdate:
    def test_updates_matched_rows_in_chunks(self, session: Session) -> None:
        writer = OrderBulkWriter(session, update_chunk_size=2)
        writer.insert(records(("a", 1), ("b", 2), ("c", 3)))
        commits = []
        event.listen(session, "after_commit", lambda s: commits.append(s))

        changed = [normalize_order(make_order(o, n, total=99.0)) for o, n in (("a", 1), ("b", 2), ("c", 3))]
        index = ExistingOrderIndex.load(session, changed)
        assert writer.update(changed, index) == 3
        assert len(commits) == 2
        totals = session.execute(select(Order.total_charge)).scalars().all()
        assert totals == [99.0, 99.0, 99.0]

    def test_created_at_is_never_updated(self, session: Session) -> None:
        writer = OrderBulkWriter(session)
        writer.insert(records(("a", 1)))
        created_at = session.execute(select(Order.created_at)).scalar_one()

        again = records(("a", 1))
        writer.update(again, ExistingOrderIndex.load(session, again))
        assert session.execute(select(Order.created_at)).scalar_one() == created_at
        assert "created_at" not in writer.update_row(again[0], datetime(2026, 1, 1))

    def test_missing_identity_keys_are_not_blanked(self, session: Session) -> None:
        writer = OrderBulkWriter(session)
        writer.insert(records(("a", 1)))

        by_number = [normalize_order({"NumOrderId": 1, "TotalsInfo": {"TotalCharge": 5}})]
        writer.update(by_number, ExistingOrderIndex.load(session, by_number))
        row = session.execute(select(Order)).scalar_one()
        assert row.remote_order_id == "a"
        assert row.total_charge == 5.0

    def test_unmatched_records_are_skipped(self, session: Session) -> None:
        writer = OrderBulkWriter(session)
        ghost = records(("ghost", 99))
        assert writer.update(ghost, ExistingOrderIndex()) == 0

    def test_failed_chunk_propagates_and_keeps_earlier_chunks(self, session: Session) -> None:
        writer = OrderBulkWriter(session, update_chunk_size=1)
        writer.insert(records(("a", 1), ("b", 2)))
        index = ExistingOrderIndex.load(session, records(("a", 1), ("b", 2)))

        changed = [normalize_order(make_order(o, n, total=50.0)) for o, n in (("a", 1), ("b", 2))]
        calls = {"n": 0}
        original_execute = session.execute

        def flaky_execute(statement, *args, **kwargs):
            if getattr(statement, "is_update", False):
                calls["n"] += 1
                if calls["n"] == 2:
                    raise OperationalError("UPDATE orders", {}, Exception("database is locked"))
            return original_execute(statement, *args, **kwargs)

        session.execute = flaky_execute
        with pytest.raises(OperationalError):
            writer.update(changed, index)
        session.execute = original_execute

        totals = dict(session.execute(select(Order.remote_order_id, Order.total_charge)).all())
        assert totals == {"a": 50.0, "b": 19.98}


class TestPerRecord:
    def test_counts_created_updated_skipped(self, session: Session) -> None:
        writer = OrderBulkWriter(session, per_record_chunk_size=2)
        writer.insert(records(("a", 1), ("b", 2)))

        batch = [
            normalize_order(make_order("a", 1)),
            normalize_order(make_order("b", 2, total=1.0)),
            normalize_order(make_order("c", 3)),
        ]
        result = writer.write_per_record(batch, ExistingOrderIndex.load(session, batch))
        assert (result.created, result.updated, result.skipped, result.failed) == (1, 1, 1, 0)
        assert count_rows(session, Order) == 3

    def test_force_update_writes_unchanged_rows(self, session: Session) -> None:
        writer = OrderBulkWriter(session)
        writer.insert(records(("a", 1)))
        batch = records(("a", 1))
        result = writer.write_per_record(batch, ExistingOrderIndex.load(session, batch), force_update=True)
        assert result.updated == 1
        assert result.skipped == 0

    def test_failing_record_does_not_abort_others(self, session: Session) -> None:
        writer = OrderBulkWriter(session, per_record_chunk_size=25)
        # Same order number under two remote ids: the second insert violates uniqueness
        batch = records(("x", 500), ("y", 500), ("z", 501))
        result = writer.write_per_record(batch, ExistingOrderIndex.load(session, batch))

        assert result.created == 2
        assert result.failed == 1
        assert result.failed_identities == {"y"}
        ids = set(session.execute(select(Order.remote_order_id)).scalars())
        assert ids == {"x", "z"}


def test_chunked() -> None:
    assert [list(c) for c in chunked([1, 2, 3, 4, 5], 2)] == [[1, 2], [3, 4], [5]]


def test_rejects_non_positive_chunk_size(session: Session) -> None:
    with pytest.raises(ValueError):
        OrderBulkWriter(session, update_chunk_size=0)
