"""End-to-end tests for the order import engine against SQLite."""

import dataclasses

import pytest
from sqlalchemy import insert, select
from sqlalchemy.orm import Session

from order_sync.config import Settings
from order_sync.exceptions import DuplicateOrderError
from order_sync.infrastructure.database.models import (
    Order,
    OrderIdentifier,
    OrderItem,
    OrderNote,
    OrderProperty,
    OrderShipping,
    Product,
)
from order_sync.services.order_import import OrderImportService
from order_sync.services.report import SyncRunReport
from conftest import count_rows, make_item, make_order

CHILD_MODELS = (OrderItem, OrderShipping, OrderNote, OrderProperty, OrderIdentifier)


def snapshot(session: Session) -> dict:
    """Content of every engine-owned table, minus surrogate ids and timestamps."""
    tables = {}
    for model in (Order, Product, *CHILD_MODELS):
        table = model.__table__
        columns = [
            c for c in table.columns if c.name not in {"id", "created_at", "updated_at", "last_synced_at"}
        ]
        rows = session.execute(select(*columns)).all()
        tables[table.name] = sorted(tuple(map(repr, row)) for row in rows)
    return tables


@pytest.fixture
def service(session: Session, test_settings: Settings) -> OrderImportService:
    return OrderImportService(session, test_settings)


@pytest.fixture
def batch() -> list[dict]:
    return [
        make_order("A", 1, items=[make_item("SKU-A", 2)], notes=[{"Note": "hello"}]),
        make_order("B", 2, processed=True, items=[make_item("SKU-B"), make_item("SKU-A")]),
        make_order("C", 3),
    ]


class TestImportBatch:
    def test_first_import_creates_everything(
        self, service: OrderImportService, session: Session, batch: list[dict]
    ) -> None:
        report = service.import_batch(batch)

        assert (report.processed, report.created, report.updated, report.skipped, report.failed) == (
            3,
            3,
            0,
            0,
            0,
        )
        assert count_rows(session, Order) == 3
        assert count_rows(session, OrderItem) == 4
        assert count_rows(session, OrderShipping) == 3
        assert count_rows(session, OrderNote) == 1
        assert report.products_created == 3
        assert report.relation_failures == ()

    def test_reimport_is_idempotent(
        self, service: OrderImportService, session: Session, batch: list[dict]
    ) -> None:
        service.import_batch(batch)
        before = snapshot(session)

        report = service.import_batch(batch)

        assert report.created == 0
        assert report.updated == 0
        assert report.skipped == 3
        assert snapshot(session) == before

    def test_force_update_overwrites_unchanged_rows(
        self, service: OrderImportService, session: Session, batch: list[dict]
    ) -> None:
        service.import_batch(batch)
        before = snapshot(session)

        report = service.import_batch(batch, force_update=True)

        assert (report.created, report.updated, report.skipped) == (0, 3, 0)
        assert snapshot(session) == before

    def test_changed_orders_are_updated(self, service: OrderImportService, session: Session, batch) -> None:
        service.import_batch(batch)
        batch[0] = make_order("A", 1, total=123.45, items=[make_item("SKU-A", 2)])

        report = service.import_batch(batch)

        assert (report.created, report.updated, report.skipped) == (0, 1, 2)
        total = session.execute(select(Order.total_charge).where(Order.remote_order_id == "A")).scalar_one()
        assert total == 123.45

    def test_row_ids_are_stable_across_reimports(self, service: OrderImportService, session: Session, batch) -> None:
        service.import_batch(batch)
        ids = dict(session.execute(select(Order.remote_order_id, Order.id)).all())
        service.import_batch(batch, force_update=True)
        assert dict(session.execute(select(Order.remote_order_id, Order.id)).all()) == ids

    def test_duplicates_in_batch_prefer_processed(self, service: OrderImportService, session: Session) -> None:
        open_view = make_order("X", 77, processed=False)
        processed_view = make_order("X", 77, processed=True)

        report = service.import_batch([open_view, processed_view])

        assert report.processed == 1
        row = session.execute(select(Order)).scalar_one()
        assert row.is_processed is True
        assert row.status == "processed"

    def test_no_sku_item_exclusion(self, service: OrderImportService, session: Session) -> None:
        raw = make_order("A", 1, items=[make_item("S1"), make_item(None), make_item("S2")])
        report = service.import_batch([raw])
        assert count_rows(session, OrderItem) == 2
        assert report.skipped_no_sku == 1

    def test_auto_provisioned_product(self, service: OrderImportService, session: Session) -> None:
        service.import_batch([make_order("A", 1, items=[make_item("NEW-SKU-1")])])

        products = session.execute(select(Product)).scalars().all()
        assert [(p.sku, p.stock_level) for p in products] == [("NEW-SKU-1", 0)]
        assert count_rows(session, OrderItem, sku="NEW-SKU-1") == 1

    def test_relation_replace_not_merge(self, service: OrderImportService, session: Session) -> None:
        service.import_batch([make_order("A", 1, notes=[{"Note": "one"}, {"Note": "two"}])])
        service.import_batch([make_order("A", 1, notes=[{"Note": "three"}])])
        assert session.execute(select(OrderNote.note_text)).scalars().all() == ["three"]

    def test_children_synced_even_when_order_row_skipped(
        self, service: OrderImportService, session: Session
    ) -> None:
        service.import_batch([make_order("A", 1, items=[make_item("S1")])])
        # Same order attributes, different line SKU: order row is skipped, items still replaced
        report = service.import_batch([make_order("A", 1, items=[make_item("S9")])])
        assert report.skipped == 1
        assert session.execute(select(OrderItem.sku)).scalars().all() == ["S9"]

    def test_empty_batch(self, service: OrderImportService, statements: list[str]) -> None:
        report = service.import_batch([])
        assert dataclasses.replace(report, duration_seconds=0.0, peak_memory_delta_bytes=0) == (
            SyncRunReport.empty()
        )
        assert statements == []

    def test_unmappable_payloads_are_not_counted(self, service: OrderImportService, statements) -> None:
        report = service.import_batch([{}, {"Source": "EBAY"}])
        assert report.processed == 0
        assert report.failed == 0
        assert statements == []

    def test_order_number_only_records(self, service: OrderImportService, session: Session) -> None:
        service.import_batch([{"NumOrderId": 42, "Items": [make_item("Z")]}])
        report = service.import_batch([{"NumOrderId": 42, "Items": [make_item("Z")]}])
        assert report.created == 0
        assert count_rows(session, Order) == 1

    def test_number_only_view_of_known_order_is_skipped(
        self, service: OrderImportService, session: Session
    ) -> None:
        service.import_batch([make_order("A", 1)])

        first = service.import_batch([make_order(None, 1)])
        second = service.import_batch([make_order(None, 1)])

        assert (first.created, first.updated, first.skipped) == (0, 0, 1)
        assert (second.created, second.updated, second.skipped) == (0, 0, 1)
        assert session.execute(select(Order.remote_order_id)).scalars().all() == ["A"]

    def test_full_and_number_only_views_in_one_batch(
        self, service: OrderImportService, session: Session
    ) -> None:
        report = service.import_batch([make_order("A", 1), make_order(None, 1), make_order("B", 2)])

        assert (report.processed, report.created, report.failed) == (2, 2, 0)
        remote_ids = session.execute(select(Order.remote_order_id)).scalars().all()
        assert sorted(remote_ids) == ["A", "B"]

    def test_update_chunks_follow_setting(self, session: Session, test_settings: Settings) -> None:
        service = OrderImportService(session, test_settings, update_chunk_size=1)
        service.import_batch([make_order("A", 1), make_order("B", 2)])
        report = service.import_batch(
            [make_order("A", 1, total=1.0), make_order("B", 2, total=2.0)]
        )
        assert report.updated == 2


class TestConcurrentInsert:
    def test_duplicate_insert_is_retried_as_update(
        self, service: OrderImportService, session: Session, monkeypatch
    ) -> None:
        from order_sync.services import order_import

        real_load = order_import.ExistingOrderIndex.load
        calls = {"n": 0}

        def stale_first_load(sess, records):
            calls["n"] += 1
            index = real_load(sess, records)
            if calls["n"] == 1:
                # Another run inserts "A" right after our index was built
                sess.execute(insert(Order).values(remote_order_id="A", order_number=1))
                sess.commit()
            return index

        monkeypatch.setattr(order_import.ExistingOrderIndex, "load", staticmethod(stale_first_load))

        report = service.import_batch([make_order("A", 1, total=5.0), make_order("B", 2)])

        assert report.created == 1
        assert report.updated == 1
        assert count_rows(session, Order) == 2

    def test_second_duplicate_propagates(self, service: OrderImportService, monkeypatch) -> None:
        def always_duplicate(records):
            raise DuplicateOrderError([r.identity for r in records])

        monkeypatch.setattr(service.writer, "insert", always_duplicate)
        with pytest.raises(DuplicateOrderError):
            service.import_batch([make_order("A", 1)])


class TestPerRecordMode:
    def test_failures_are_counted_not_raised(self, session: Session, test_settings: Settings) -> None:
        service = OrderImportService(session, test_settings, mode="per_record")
        service.import_batch([make_order("x", 500, items=[make_item("S1")]), make_order("w", 501)])

        # "w" moving onto order number 500 collides with the stored "x"
        report = service.import_batch(
            [
                make_order("w", 500, items=[make_item("S2")]),
                make_order("z", 502),
            ]
        )

        assert (report.created, report.updated, report.failed, report.skipped) == (1, 0, 1, 0)
        assert count_rows(session, Order) == 3
        # Children of the failed record are never written
        assert count_rows(session, OrderItem, sku="S2") == 0

    def test_skip_unless_dirty(self, session: Session, test_settings: Settings, batch) -> None:
        service = OrderImportService(session, test_settings, mode="per_record")
        service.import_batch(batch)
        report = service.import_batch(batch)
        assert (report.created, report.updated, report.skipped) == (0, 0, 3)

        forced = service.import_batch(batch, force_update=True)
        assert (forced.created, forced.updated, forced.skipped) == (0, 3, 0)

    def test_mode_from_settings(self, session: Session, test_settings: Settings) -> None:
        settings = test_settings.model_copy(update={"sync_import_mode": "per_record"})
        assert OrderImportService(session, settings).mode == "per_record"

    def test_unknown_mode_rejected(self, session: Session, test_settings: Settings) -> None:
        with pytest.raises(ValueError):
            OrderImportService(session, test_settings, mode="parallel")


class TestDryRun:
    def test_classifies_without_writing(
        self, service: OrderImportService, session: Session, batch, statements: list[str]
    ) -> None:
        service.import_batch(batch[:2])
        before = snapshot(session)
        statements.clear()

        report = service.dry_run_import(batch + [make_order("D", 4)])

        assert report.dry_run is True
        assert (report.processed, report.created, report.updated, report.skipped) == (4, 2, 2, 0)
        assert not {"INSERT", "UPDATE", "DELETE"} & set(statements)
        assert snapshot(session) == before

    def test_empty_dry_run(self, service: OrderImportService) -> None:
        report = service.dry_run_import([])
        assert report.dry_run is True
        assert report.processed == 0


class TestListeners:
    def test_listener_receives_report(self, session: Session, test_settings: Settings) -> None:
        seen: list[SyncRunReport] = []
        service = OrderImportService(session, test_settings, listeners=[seen.append])
        report = service.import_batch([make_order("A", 1)])
        assert seen == [report]

    def test_listener_errors_are_ignored(self, session: Session, test_settings: Settings) -> None:
        def broken(report: SyncRunReport) -> None:
            raise RuntimeError("dashboard offline")

        service = OrderImportService(session, test_settings, listeners=[broken])
        report = service.import_batch([make_order("A", 1)])
        assert report.created == 1
