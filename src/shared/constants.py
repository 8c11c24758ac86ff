"""Shared constants across the application."""

# Sync stream ids (sync_status.id)
ORDERS_SYNC_ID = "orders"

# Batch sizes
UPDATE_CHUNK_SIZE = 50
PER_RECORD_CHUNK_SIZE = 25
API_PAGE_SIZE = 200

# Placeholder products created for SKUs missing from the catalog
PLACEHOLDER_PRODUCT_PREFIX = "UNKNOWN_"
PLACEHOLDER_PRODUCT_TITLE = "Unknown Product"

# Order status values stored in orders.status
ORDER_STATUS_PENDING = "pending"
ORDER_STATUS_PROCESSED = "processed"
ORDER_STATUS_CANCELLED = "cancelled"

REMOTE_STATUS_CODES = {
    0: ORDER_STATUS_PENDING,
    1: ORDER_STATUS_PROCESSED,
    2: ORDER_STATUS_CANCELLED,
}

# Identity key prefix for records that only carry an order number
ORDER_NUMBER_IDENTITY_PREFIX = "order-number:"

# Columns that change on every sync and never make a row dirty
BOOKKEEPING_COLUMNS = frozenset(
    {"created_at", "updated_at", "last_synced_at", "sync_status"}
)

DEFAULT_CURRENCY = "GBP"
UNKNOWN_ITEM_TITLE = "Unknown Item"
