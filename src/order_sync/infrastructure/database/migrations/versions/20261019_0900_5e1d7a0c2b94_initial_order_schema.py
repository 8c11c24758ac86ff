"""Initial order schema

Revision ID: 5e1d7a0c2b94
Revises:
Create Date: 2026-10-19 09:00:00.000000+00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '5e1d7a0c2b94'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps(with_created: bool = True) -> list[sa.Column]:
    columns = []
    if with_created:
        columns.append(sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False))
    columns.append(sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=False))
    return columns


def upgrade() -> None:
    # Create orders table
    op.create_table('orders',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('remote_order_id', sa.String(length=64), nullable=True),
    sa.Column('order_number', sa.BigInteger(), nullable=True),
    sa.Column('channel', sa.String(length=100), nullable=True),
    sa.Column('source', sa.String(length=100), nullable=True),
    sa.Column('subsource', sa.String(length=255), nullable=True),
    sa.Column('channel_reference_number', sa.String(length=255), nullable=True),
    sa.Column('secondary_reference', sa.String(length=255), nullable=True),
    sa.Column('external_reference', sa.String(length=255), nullable=True),
    sa.Column('location_id', sa.String(length=64), nullable=True),
    sa.Column('received_at', sa.DateTime(), nullable=True),
    sa.Column('processed_at', sa.DateTime(), nullable=True),
    sa.Column('paid_at', sa.DateTime(), nullable=True),
    sa.Column('despatch_by_at', sa.DateTime(), nullable=True),
    sa.Column('currency', sa.String(length=3), nullable=False),
    sa.Column('total_charge', sa.Float(), nullable=False),
    sa.Column('total_paid', sa.Float(), nullable=False),
    sa.Column('total_discount', sa.Float(), nullable=False),
    sa.Column('postage_cost', sa.Float(), nullable=False),
    sa.Column('postage_cost_ex_tax', sa.Float(), nullable=False),
    sa.Column('tax', sa.Float(), nullable=False),
    sa.Column('country_tax_rate', sa.Float(), nullable=True),
    sa.Column('conversion_rate', sa.Float(), nullable=False),
    sa.Column('profit_margin', sa.Float(), nullable=False),
    sa.Column('status', sa.String(length=20), nullable=False),
    sa.Column('status_code', sa.Integer(), nullable=False),
    sa.Column('is_open', sa.Boolean(), nullable=False),
    sa.Column('is_processed', sa.Boolean(), nullable=False),
    sa.Column('is_paid', sa.Boolean(), nullable=False),
    sa.Column('is_cancelled', sa.Boolean(), nullable=False),
    sa.Column('marker', sa.Integer(), nullable=False),
    sa.Column('is_parked', sa.Boolean(), nullable=False),
    sa.Column('label_printed', sa.Boolean(), nullable=False),
    sa.Column('label_error', sa.String(length=255), nullable=True),
    sa.Column('invoice_printed', sa.Boolean(), nullable=False),
    sa.Column('pick_list_printed', sa.Boolean(), nullable=False),
    sa.Column('is_rule_run', sa.Boolean(), nullable=False),
    sa.Column('part_shipped', sa.Boolean(), nullable=False),
    sa.Column('has_scheduled_delivery', sa.Boolean(), nullable=False),
    sa.Column('pickwave_ids', sa.JSON(), nullable=True),
    sa.Column('num_items', sa.Integer(), nullable=False),
    sa.Column('payment_method', sa.String(length=100), nullable=True),
    sa.Column('payment_method_id', sa.String(length=64), nullable=True),
    sa.Column('sync_status', sa.String(length=20), nullable=False),
    sa.Column('last_synced_at', sa.DateTime(), nullable=True),
    *_timestamps(),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('remote_order_id'),
    sa.UniqueConstraint('order_number'),
    )
    op.create_index(op.f('ix_orders_channel'), 'orders', ['channel'], unique=False)
    op.create_index(op.f('ix_orders_received_at'), 'orders', ['received_at'], unique=False)
    op.create_index(op.f('ix_orders_processed_at'), 'orders', ['processed_at'], unique=False)
    op.create_index(op.f('ix_orders_status'), 'orders', ['status'], unique=False)
    op.create_index(op.f('ix_orders_is_processed'), 'orders', ['is_processed'], unique=False)
    op.create_index('ix_orders_channel_received', 'orders', ['channel', 'received_at'], unique=False)
    op.create_index('ix_orders_status_received', 'orders', ['status', 'received_at'], unique=False)

    # Create order_items table
    op.create_table('order_items',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('order_id', sa.Integer(), nullable=False),
    sa.Column('item_id', sa.String(length=64), nullable=True),
    sa.Column('stock_item_id', sa.String(length=64), nullable=True),
    sa.Column('row_id', sa.String(length=64), nullable=True),
    sa.Column('sku', sa.String(length=255), nullable=False),
    sa.Column('title', sa.Text(), nullable=False),
    sa.Column('channel_sku', sa.String(length=255), nullable=True),
    sa.Column('channel_title', sa.Text(), nullable=True),
    sa.Column('category', sa.String(length=255), nullable=True),
    sa.Column('quantity', sa.Integer(), nullable=False),
    sa.Column('unit_price', sa.Float(), nullable=False),
    sa.Column('line_total', sa.Float(), nullable=False),
    sa.Column('cost_price', sa.Float(), nullable=False),
    sa.Column('discount', sa.Float(), nullable=False),
    sa.Column('tax', sa.Float(), nullable=False),
    sa.Column('tax_rate', sa.Float(), nullable=False),
    sa.Column('weight', sa.Float(), nullable=False),
    sa.Column('is_service', sa.Boolean(), nullable=False),
    sa.Column('bin_rack', sa.String(length=100), nullable=True),
    sa.Column('composite_sub_items', sa.JSON(), nullable=True),
    sa.Column('additional_info', sa.JSON(), nullable=True),
    sa.Column('added_at', sa.DateTime(), nullable=True),
    *_timestamps(),
    sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_order_items_order_id'), 'order_items', ['order_id'], unique=False)
    op.create_index(op.f('ix_order_items_sku'), 'order_items', ['sku'], unique=False)
    op.create_index(op.f('ix_order_items_stock_item_id'), 'order_items', ['stock_item_id'], unique=False)
    op.create_index('ix_order_items_order_sku', 'order_items', ['order_id', 'sku'], unique=False)

    # Create order_shipping table
    op.create_table('order_shipping',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('order_id', sa.Integer(), nullable=False),
    sa.Column('tracking_number', sa.String(length=255), nullable=True),
    sa.Column('vendor', sa.String(length=255), nullable=True),
    sa.Column('postal_service_id', sa.String(length=64), nullable=True),
    sa.Column('postal_service_name', sa.String(length=255), nullable=True),
    sa.Column('total_weight', sa.Float(), nullable=True),
    sa.Column('item_weight', sa.Float(), nullable=True),
    sa.Column('package_category', sa.String(length=255), nullable=True),
    sa.Column('package_type', sa.String(length=255), nullable=True),
    sa.Column('postage_cost', sa.Float(), nullable=True),
    sa.Column('postage_cost_ex_tax', sa.Float(), nullable=True),
    sa.Column('label_printed', sa.Boolean(), nullable=False),
    sa.Column('label_error', sa.String(length=255), nullable=True),
    sa.Column('invoice_printed', sa.Boolean(), nullable=False),
    sa.Column('pick_list_printed', sa.Boolean(), nullable=False),
    sa.Column('partial_shipped', sa.Boolean(), nullable=False),
    sa.Column('manual_adjust', sa.Boolean(), nullable=False),
    *_timestamps(),
    sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('order_id'),
    )
    op.create_index(op.f('ix_order_shipping_tracking_number'), 'order_shipping', ['tracking_number'], unique=False)

    # Create order_notes table
    op.create_table('order_notes',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('order_id', sa.Integer(), nullable=False),
    sa.Column('remote_note_id', sa.String(length=64), nullable=True),
    sa.Column('note_text', sa.Text(), nullable=False),
    sa.Column('note_date', sa.DateTime(), nullable=True),
    sa.Column('is_internal', sa.Boolean(), nullable=False),
    sa.Column('created_by', sa.String(length=255), nullable=True),
    *_timestamps(),
    sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_order_notes_order_id'), 'order_notes', ['order_id'], unique=False)

    # Create order_properties table
    op.create_table('order_properties',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('order_id', sa.Integer(), nullable=False),
    sa.Column('property_type', sa.String(length=255), nullable=False),
    sa.Column('property_name', sa.String(length=255), nullable=False),
    sa.Column('property_value', sa.Text(), nullable=False),
    *_timestamps(),
    sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_order_properties_order_id'), 'order_properties', ['order_id'], unique=False)

    # Create order_identifiers table
    op.create_table('order_identifiers',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('order_id', sa.Integer(), nullable=False),
    sa.Column('identifier_id', sa.Integer(), nullable=False),
    sa.Column('tag', sa.String(length=100), nullable=False),
    sa.Column('name', sa.String(length=255), nullable=True),
    sa.Column('is_custom', sa.Boolean(), nullable=False),
    *_timestamps(),
    sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_order_identifiers_order_id'), 'order_identifiers', ['order_id'], unique=False)
    op.create_index(op.f('ix_order_identifiers_tag'), 'order_identifiers', ['tag'], unique=False)

    # Create products table
    op.create_table('products',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('remote_product_id', sa.String(length=255), nullable=False),
    sa.Column('sku', sa.String(length=255), nullable=False),
    sa.Column('title', sa.String(length=500), nullable=False),
    sa.Column('category_name', sa.String(length=255), nullable=True),
    sa.Column('stock_level', sa.Integer(), nullable=False),
    sa.Column('is_active', sa.Boolean(), nullable=False),
    sa.Column('extra_data', sa.JSON(), nullable=True),
    *_timestamps(),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('remote_product_id'),
    sa.UniqueConstraint('sku'),
    )
    op.create_index(op.f('ix_products_is_active'), 'products', ['is_active'], unique=False)

    # Create sync_status table
    op.create_table('sync_status',
    sa.Column('id', sa.String(length=50), nullable=False),
    sa.Column('last_sync_at', sa.DateTime(), nullable=True),
    sa.Column('last_sync_cursor', sa.String(length=255), nullable=True),
    sa.Column('records_synced', sa.Integer(), nullable=False),
    sa.Column('status', sa.String(length=50), nullable=False),
    sa.Column('error_message', sa.Text(), nullable=True),
    *_timestamps(with_created=False),
    sa.PrimaryKeyConstraint('id'),
    )


def downgrade() -> None:
    op.drop_table('sync_status')
    op.drop_index(op.f('ix_products_is_active'), table_name='products')
    op.drop_table('products')
    op.drop_index(op.f('ix_order_identifiers_tag'), table_name='order_identifiers')
    op.drop_index(op.f('ix_order_identifiers_order_id'), table_name='order_identifiers')
    op.drop_table('order_identifiers')
    op.drop_index(op.f('ix_order_properties_order_id'), table_name='order_properties')
    op.drop_table('order_properties')
    op.drop_index(op.f('ix_order_notes_order_id'), table_name='order_notes')
    op.drop_table('order_notes')
    op.drop_index(op.f('ix_order_shipping_tracking_number'), table_name='order_shipping')
    op.drop_table('order_shipping')
    op.drop_index('ix_order_items_order_sku', table_name='order_items')
    op.drop_index(op.f('ix_order_items_stock_item_id'), table_name='order_items')
    op.drop_index(op.f('ix_order_items_sku'), table_name='order_items')
    op.drop_index(op.f('ix_order_items_order_id'), table_name='order_items')
    op.drop_table('order_items')
    op.drop_index('ix_orders_status_received', table_name='orders')
    op.drop_index('ix_orders_channel_received', table_name='orders')
    op.drop_index(op.f('ix_orders_is_processed'), table_name='orders')
    op.drop_index(op.f('ix_orders_status'), table_name='orders')
    op.drop_index(op.f('ix_orders_processed_at'), table_name='orders')
    op.drop_index(op.f('ix_orders_received_at'), table_name='orders')
    op.drop_index(op.f('ix_orders_channel'), table_name='orders')
    op.drop_table('orders')
