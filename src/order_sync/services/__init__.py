"""Order synchronization engine."""

from order_sync.services.bulk_writer import OrderBulkWriter
from order_sync.services.deduplication import deduplicate
from order_sync.services.existing_orders import ExistingOrder, ExistingOrderIndex
from order_sync.services.import_record import ImportRecord
from order_sync.services.normalizer import RemoteOrder, normalize_order, normalize_orders
from order_sync.services.order_import import OrderImportService
from order_sync.services.partitioner import Partition, partition
from order_sync.services.relationships import (
    IdentifiersHandler,
    ItemsHandler,
    NotesHandler,
    PropertiesHandler,
    ReconcileOutcome,
    RelationHandler,
    RelationshipReconciler,
    ShippingHandler,
)
from order_sync.services.report import RunTimer, RunTotals, SyncRunReport

__all__ = [
    "ExistingOrder",
    "ExistingOrderIndex",
    "IdentifiersHandler",
    "ImportRecord",
    "ItemsHandler",
    "NotesHandler",
    "OrderBulkWriter",
    "OrderImportService",
    "Partition",
    "PropertiesHandler",
    "ReconcileOutcome",
    "RelationHandler",
    "RelationshipReconciler",
    "RemoteOrder",
    "RunTimer",
    "RunTotals",
    "ShippingHandler",
    "SyncRunReport",
    "deduplicate",
    "normalize_order",
    "normalize_orders",
    "partition",
]
