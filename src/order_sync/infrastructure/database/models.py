"""SQLAlchemy models for the order analytics store.

Orders are mirrored from the remote order-management system. Child tables
(items, shipping, notes, properties, identifiers) are owned by exactly one
order and are replaced wholesale on every re-sync. No customer personal data
is stored anywhere in this schema.
"""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all models."""


# =============================================================================
# Orders
# =============================================================================


class Order(Base):
    """One row per remote order identity.

    Uniqueness is enforced independently on remote_order_id and order_number;
    either may be null but not both.
    """

    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    remote_order_id: Mapped[Optional[str]] = mapped_column(String(64), unique=True)
    order_number: Mapped[Optional[int]] = mapped_column(BigInteger, unique=True)

    # Channel
    channel: Mapped[Optional[str]] = mapped_column(String(100), index=True)
    source: Mapped[Optional[str]] = mapped_column(String(100))
    subsource: Mapped[Optional[str]] = mapped_column(String(255))
    channel_reference_number: Mapped[Optional[str]] = mapped_column(String(255))
    secondary_reference: Mapped[Optional[str]] = mapped_column(String(255))
    external_reference: Mapped[Optional[str]] = mapped_column(String(255))
    location_id: Mapped[Optional[str]] = mapped_column(String(64))

    # Dates
    received_at: Mapped[Optional[datetime]] = mapped_column(DateTime, index=True)
    processed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, index=True)
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    despatch_by_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    # Totals
    currency: Mapped[str] = mapped_column(String(3), default="GBP")
    total_charge: Mapped[float] = mapped_column(Float, default=0.0)
    total_paid: Mapped[float] = mapped_column(Float, default=0.0)
    total_discount: Mapped[float] = mapped_column(Float, default=0.0)
    postage_cost: Mapped[float] = mapped_column(Float, default=0.0)
    postage_cost_ex_tax: Mapped[float] = mapped_column(Float, default=0.0)
    tax: Mapped[float] = mapped_column(Float, default=0.0)
    country_tax_rate: Mapped[Optional[float]] = mapped_column(Float)
    conversion_rate: Mapped[float] = mapped_column(Float, default=1.0)
    profit_margin: Mapped[float] = mapped_column(Float, default=0.0)

    # Status
    status: Mapped[str] = mapped_column(String(20), default="pending", index=True)
    status_code: Mapped[int] = mapped_column(Integer, default=0)
    is_open: Mapped[bool] = mapped_column(Boolean, default=True)
    is_processed: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    is_paid: Mapped[bool] = mapped_column(Boolean, default=False)
    is_cancelled: Mapped[bool] = mapped_column(Boolean, default=False)

    # General info flags
    marker: Mapped[int] = mapped_column(Integer, default=0)
    is_parked: Mapped[bool] = mapped_column(Boolean, default=False)
    label_printed: Mapped[bool] = mapped_column(Boolean, default=False)
    label_error: Mapped[Optional[str]] = mapped_column(String(255))
    invoice_printed: Mapped[bool] = mapped_column(Boolean, default=False)
    pick_list_printed: Mapped[bool] = mapped_column(Boolean, default=False)
    is_rule_run: Mapped[bool] = mapped_column(Boolean, default=False)
    part_shipped: Mapped[bool] = mapped_column(Boolean, default=False)
    has_scheduled_delivery: Mapped[bool] = mapped_column(Boolean, default=False)
    pickwave_ids: Mapped[Optional[list]] = mapped_column(JSON)
    num_items: Mapped[int] = mapped_column(Integer, default=0)

    # Payment
    payment_method: Mapped[Optional[str]] = mapped_column(String(100))
    payment_method_id: Mapped[Optional[str]] = mapped_column(String(64))

    # Sync bookkeeping
    sync_status: Mapped[str] = mapped_column(String(20), default="synced")
    last_synced_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now(), nullable=False
    )

    items: Mapped[list["OrderItem"]] = relationship(
        back_populates="order", cascade="all, delete-orphan", passive_deletes=True
    )
    shipping: Mapped[Optional["OrderShipping"]] = relationship(
        back_populates="order", cascade="all, delete-orphan", passive_deletes=True
    )
    notes: Mapped[list["OrderNote"]] = relationship(
        cascade="all, delete-orphan", passive_deletes=True
    )
    properties: Mapped[list["OrderProperty"]] = relationship(
        cascade="all, delete-orphan", passive_deletes=True
    )
    identifiers: Mapped[list["OrderIdentifier"]] = relationship(
        cascade="all, delete-orphan", passive_deletes=True
    )

    __table_args__ = (
        Index("ix_orders_channel_received", "channel", "received_at"),
        Index("ix_orders_status_received", "status", "received_at"),
    )


# =============================================================================
# Order children
# =============================================================================


class OrderItem(Base):
    """Order line linked to a catalog product by SKU."""

    __tablename__ = "order_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[int] = mapped_column(
        ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    item_id: Mapped[Optional[str]] = mapped_column(String(64))
    stock_item_id: Mapped[Optional[str]] = mapped_column(String(64), index=True)
    row_id: Mapped[Optional[str]] = mapped_column(String(64))
    sku: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    channel_sku: Mapped[Optional[str]] = mapped_column(String(255))
    channel_title: Mapped[Optional[str]] = mapped_column(Text)
    category: Mapped[Optional[str]] = mapped_column(String(255))
    quantity: Mapped[int] = mapped_column(Integer, default=0)
    unit_price: Mapped[float] = mapped_column(Float, default=0.0)
    line_total: Mapped[float] = mapped_column(Float, default=0.0)
    cost_price: Mapped[float] = mapped_column(Float, default=0.0)
    discount: Mapped[float] = mapped_column(Float, default=0.0)
    tax: Mapped[float] = mapped_column(Float, default=0.0)
    tax_rate: Mapped[float] = mapped_column(Float, default=0.0)
    weight: Mapped[float] = mapped_column(Float, default=0.0)
    is_service: Mapped[bool] = mapped_column(Boolean, default=False)
    bin_rack: Mapped[Optional[str]] = mapped_column(String(100))
    composite_sub_items: Mapped[Optional[list]] = mapped_column(JSON)
    additional_info: Mapped[Optional[list]] = mapped_column(JSON)
    added_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now(), nullable=False
    )

    order: Mapped["Order"] = relationship(back_populates="items")

    __table_args__ = (Index("ix_order_items_order_sku", "order_id", "sku"),)


class OrderShipping(Base):
    """Postage and label details. Address fields are intentionally absent."""

    __tablename__ = "order_shipping"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[int] = mapped_column(
        ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    tracking_number: Mapped[Optional[str]] = mapped_column(String(255), index=True)
    vendor: Mapped[Optional[str]] = mapped_column(String(255))
    postal_service_id: Mapped[Optional[str]] = mapped_column(String(64))
    postal_service_name: Mapped[Optional[str]] = mapped_column(String(255))
    total_weight: Mapped[Optional[float]] = mapped_column(Float)
    item_weight: Mapped[Optional[float]] = mapped_column(Float)
    package_category: Mapped[Optional[str]] = mapped_column(String(255))
    package_type: Mapped[Optional[str]] = mapped_column(String(255))
    postage_cost: Mapped[Optional[float]] = mapped_column(Float)
    postage_cost_ex_tax: Mapped[Optional[float]] = mapped_column(Float)
    label_printed: Mapped[bool] = mapped_column(Boolean, default=False)
    label_error: Mapped[Optional[str]] = mapped_column(String(255))
    invoice_printed: Mapped[bool] = mapped_column(Boolean, default=False)
    pick_list_printed: Mapped[bool] = mapped_column(Boolean, default=False)
    partial_shipped: Mapped[bool] = mapped_column(Boolean, default=False)
    manual_adjust: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now(), nullable=False
    )

    order: Mapped["Order"] = relationship(back_populates="shipping")


class OrderNote(Base):
    """Free-text note attached to an order in the remote system."""

    __tablename__ = "order_notes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[int] = mapped_column(
        ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    remote_note_id: Mapped[Optional[str]] = mapped_column(String(64))
    note_text: Mapped[str] = mapped_column(Text, default="")
    note_date: Mapped[Optional[datetime]] = mapped_column(DateTime)
    is_internal: Mapped[bool] = mapped_column(Boolean, default=False)
    created_by: Mapped[Optional[str]] = mapped_column(String(255))
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now(), nullable=False
    )


class OrderProperty(Base):
    """Extended property (type/name/value triple)."""

    __tablename__ = "order_properties"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[int] = mapped_column(
        ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    property_type: Mapped[str] = mapped_column(String(255), default="")
    property_name: Mapped[str] = mapped_column(String(255), default="")
    property_value: Mapped[str] = mapped_column(Text, default="")
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now(), nullable=False
    )


class OrderIdentifier(Base):
    """Tag attached to an order (e.g. PRIME, VIP)."""

    __tablename__ = "order_identifiers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[int] = mapped_column(
        ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    identifier_id: Mapped[int] = mapped_column(Integer, default=0)
    tag: Mapped[str] = mapped_column(String(100), default="", index=True)
    name: Mapped[Optional[str]] = mapped_column(String(255))
    is_custom: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now(), nullable=False
    )


# =============================================================================
# Products
# =============================================================================


class Product(Base):
    """Catalog product referenced by order_items.sku.

    Rows whose remote_product_id starts with the placeholder prefix were
    created by the order sync for SKUs not yet in the catalog and are
    enriched later by the product sync.
    """

    __tablename__ = "products"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    remote_product_id: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False
    )
    sku: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    category_name: Mapped[Optional[str]] = mapped_column(String(255))
    stock_level: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    extra_data: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now(), nullable=False
    )


# =============================================================================
# Sync Status
# =============================================================================


class SyncStatus(Base):
    """Track data synchronization status."""

    __tablename__ = "sync_status"

    id: Mapped[str] = mapped_column(String(50), primary_key=True)  # 'orders'
    last_sync_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    last_sync_cursor: Mapped[Optional[str]] = mapped_column(String(255))
    records_synced: Mapped[int] = mapped_column(Integer, default=0)
    status: Mapped[str] = mapped_column(String(50), default="idle")  # idle, running, error
    error_message: Mapped[Optional[str]] = mapped_column(Text)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now(), nullable=False
    )
