"""Pytest configuration and fixtures."""

from collections.abc import Generator
from typing import Any

import pytest
from sqlalchemy import Engine, create_engine, event, func, select
from sqlalchemy.orm import Session

from order_sync.config import Settings
from order_sync.infrastructure.database.connection import (
    create_session_factory,
    enable_sqlite_savepoints,
)
from order_sync.infrastructure.database.models import Base


@pytest.fixture
def test_settings() -> Settings:
    """Get test settings with overrides."""
    return Settings(
        app_env="test",
        debug=True,
        database_url_override="sqlite://",
        orders_api_base_url="http://orders.test/api",
        orders_api_key="test-key",
        orders_api_page_size=2,
        sync_update_chunk_size=2,
        sync_per_record_chunk_size=2,
    )


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    """In-memory SQLite database with the full schema."""
    engine = enable_sqlite_savepoints(create_engine("sqlite://"))
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine: Engine):
    return create_session_factory(engine)


@pytest.fixture
def session(session_factory) -> Generator[Session, None, None]:
    with session_factory() as session:
        yield session


@pytest.fixture
def statements(engine: Engine) -> list[str]:
    """SQL statements executed against the engine, in order."""
    executed: list[str] = []

    @event.listens_for(engine, "before_cursor_execute")
    def _record(conn, cursor, statement, parameters, context, executemany):
        executed.append(statement.strip().split()[0].upper())

    return executed


def count_rows(session: Session, model: Any, **filters: Any) -> int:
    query = select(func.count()).select_from(model)
    for column, value in filters.items():
        query = query.where(getattr(model, column) == value)
    return session.execute(query).scalar_one()


# -----------------------------------------------------------------------------
# Raw payload builders (remote API naming)
# -----------------------------------------------------------------------------


def make_item(sku: str | None = "SKU-1", quantity: int = 1, price: float = 9.99, **extra: Any) -> dict:
    item = {
        "ItemId": f"item-{sku}",
        "SKU": sku,
        "Title": f"Product {sku}" if sku else "Marketplace line",
        "Quantity": quantity,
        "PricePerUnit": price,
        "UnitCost": round(price / 2, 2),
        "Cost": round(price * quantity, 2),
    }
    item.update(extra)
    return item


def make_order(
    order_id: str | None = "order-1",
    number: int | None = 1001,
    processed: bool = False,
    items: list[dict] | None = None,
    notes: list[dict] | None = None,
    total: float = 19.98,
    **extra: Any,
) -> dict:
    order: dict[str, Any] = {
        "OrderId": order_id,
        "NumOrderId": number,
        "Processed": processed,
        "GeneralInfo": {
            "ReceivedDate": "2026-03-01T10:15:00Z",
            "Source": "Amazon UK",
            "SubSource": "amazon.co.uk",
            "Status": 1 if processed else 0,
        },
        "TotalsInfo": {
            "Currency": "GBP",
            "TotalCharge": total,
            "PostageCost": 3.5,
            "Tax": 3.33,
        },
        "Items": items if items is not None else [make_item("SKU-1", 2)],
        "Notes": notes or [],
        "ShippingInfo": {
            "Vendor": "Royal Mail",
            "PostalServiceName": "Tracked 48",
            "TrackingNumber": f"TRK{number}",
        },
        "ExtendedProperties": [
            {"PropertyType": "Info", "PropertyName": "gift", "PropertyValue": "no"}
        ],
        "OrderIdentifiers": [{"Tag": "PRIME", "TagDisplayText": "Prime"}],
    }
    if processed:
        order["dProcessedOn"] = "2026-03-02T08:00:00Z"
    order.update(extra)
    return order


@pytest.fixture
def order_factory():
    return make_order


@pytest.fixture
def item_factory():
    return make_item
