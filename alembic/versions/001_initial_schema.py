"""Initial schema - catalog, stock ledger, carts, customers, coupons and orders

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('sku', sa.String(length=50), nullable=False, unique=True),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('price', sa.Numeric(18, 2), nullable=False),
        sa.Column('discount_price', sa.Numeric(18, 2), nullable=True),
        sa.Column('cost', sa.Numeric(18, 2), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_products_is_active', 'products', ['is_active'])

    op.create_table(
        'warehouses',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('code', sa.String(length=20), nullable=False, unique=True),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('address', sa.String(length=500), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        *_timestamps(),
    )

    op.create_table(
        'inventories',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('warehouse_id', sa.Integer(), sa.ForeignKey('warehouses.id'), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('min_stock', sa.Integer(), nullable=False),
        sa.Column('max_stock', sa.Integer(), nullable=False),
        sa.Column('version_id', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint('product_id', 'warehouse_id', name='uq_inventories_product_warehouse'),
        sa.CheckConstraint('quantity >= 0', name='ck_inventories_quantity'),
        sa.CheckConstraint('min_stock >= 0', name='ck_inventories_min_stock'),
        sa.CheckConstraint('max_stock > min_stock', name='ck_inventories_max_stock'),
    )
    op.create_index('ix_inventories_product_id', 'inventories', ['product_id'])
    op.create_index('ix_inventories_warehouse_id', 'inventories', ['warehouse_id'])

    op.create_table(
        'cart_items',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint('user_id', 'product_id', name='uq_cart_items_user_product'),
        sa.CheckConstraint('quantity >= 1', name='ck_cart_items_quantity'),
    )
    op.create_index('ix_cart_items_user_id', 'cart_items', ['user_id'])
    op.create_index('ix_cart_items_product_id', 'cart_items', ['product_id'])

    op.create_table(
        'customers',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('customer_code', sa.String(length=20), nullable=False, unique=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('total_purchased', sa.Numeric(18, 2), nullable=False),
        sa.Column('points', sa.Integer(), nullable=False),
        sa.Column('membership_level', sa.String(length=20), nullable=False),
        *_timestamps(),
        sa.CheckConstraint('total_purchased >= 0', name='ck_customers_total_purchased'),
        sa.CheckConstraint('points >= 0', name='ck_customers_points'),
    )
    op.create_index('ix_customers_user_id', 'customers', ['user_id'], unique=True)
    op.create_index('ix_customers_membership_level', 'customers', ['membership_level'])

    op.create_table(
        'coupons',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('code', sa.String(length=50), nullable=False),
        sa.Column('description', sa.String(length=500), nullable=True),
        sa.Column('discount_type', sa.String(length=20), nullable=False),
        sa.Column('discount_value', sa.Numeric(18, 2), nullable=False),
        sa.Column('min_order_amount', sa.Numeric(18, 2), nullable=False),
        sa.Column('max_discount_amount', sa.Numeric(18, 2), nullable=True),
        sa.Column('usage_limit', sa.Integer(), nullable=True),
        sa.Column('used_count', sa.Integer(), nullable=False),
        sa.Column('start_date', sa.DateTime(), nullable=True),
        sa.Column('end_date', sa.DateTime(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_coupons_code', 'coupons', ['code'], unique=True)

    op.create_table(
        'orders',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('order_number', sa.String(length=50), nullable=False),
        sa.Column('customer_id', sa.Integer(), sa.ForeignKey('customers.id'), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('payment_status', sa.String(length=20), nullable=False),
        sa.Column('payment_method', sa.String(length=50), nullable=True),
        sa.Column('subtotal', sa.Numeric(18, 2), nullable=False),
        sa.Column('shipping_fee', sa.Numeric(18, 2), nullable=False),
        sa.Column('tax', sa.Numeric(18, 2), nullable=False),
        sa.Column('discount', sa.Numeric(18, 2), nullable=False),
        sa.Column('total_amount', sa.Numeric(18, 2), nullable=False),
        sa.Column('coupon_code', sa.String(length=50), nullable=True),
        sa.Column('shipping_address', sa.String(length=500), nullable=True),
        sa.Column('shipping_phone', sa.String(length=20), nullable=True),
        sa.Column('tracking_number', sa.String(length=100), nullable=True),
        sa.Column('notes', sa.String(length=500), nullable=True),
        sa.Column('cancel_reason', sa.String(length=500), nullable=True),
        sa.Column('placed_at', sa.DateTime(), nullable=False),
        sa.Column('shipped_at', sa.DateTime(), nullable=True),
        sa.Column('delivered_at', sa.DateTime(), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('subtotal >= 0', name='ck_orders_subtotal'),
        sa.CheckConstraint('shipping_fee >= 0', name='ck_orders_shipping_fee'),
        sa.CheckConstraint('tax >= 0', name='ck_orders_tax'),
        sa.CheckConstraint('discount >= 0', name='ck_orders_discount'),
        sa.CheckConstraint('total_amount >= 0', name='ck_orders_total_amount'),
    )
    op.create_index('ix_orders_order_number', 'orders', ['order_number'], unique=True)
    op.create_index('ix_orders_customer_id', 'orders', ['customer_id'])
    op.create_index('ix_orders_status', 'orders', ['status'])
    op.create_index('ix_orders_payment_status', 'orders', ['payment_status'])
    op.create_index('ix_orders_tracking_number', 'orders', ['tracking_number'])
    op.create_index('ix_orders_placed_at', 'orders', ['placed_at'])

    op.create_table(
        'order_items',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('order_id', sa.Integer(), sa.ForeignKey('orders.id'), nullable=False),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('product_name', sa.String(length=200), nullable=False),
        sa.Column('sku', sa.String(length=50), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Numeric(18, 2), nullable=False),
        sa.Column('discount_amount', sa.Numeric(18, 2), nullable=False),
        sa.Column('total_price', sa.Numeric(18, 2), nullable=False),
        sa.CheckConstraint('quantity > 0', name='ck_order_items_quantity'),
        sa.CheckConstraint('unit_price >= 0', name='ck_order_items_unit_price'),
        sa.CheckConstraint('discount_amount >= 0', name='ck_order_items_discount_amount'),
    )
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'])
    op.create_index('ix_order_items_product_id', 'order_items', ['product_id'])

    op.create_table(
        'stock_allocations',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('order_item_id', sa.Integer(), sa.ForeignKey('order_items.id'), nullable=False),
        sa.Column('inventory_id', sa.Integer(), sa.ForeignKey('inventories.id'), nullable=False),
        sa.Column('warehouse_id', sa.Integer(), sa.ForeignKey('warehouses.id'), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.CheckConstraint('quantity > 0', name='ck_stock_allocations_quantity'),
    )
    op.create_index('ix_stock_allocations_order_item_id', 'stock_allocations', ['order_item_id'])
    op.create_index('ix_stock_allocations_inventory_id', 'stock_allocations', ['inventory_id'])

    op.create_table(
        'activity_log',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('action', sa.String(length=50), nullable=False),
        sa.Column('entity_type', sa.String(length=50), nullable=False),
        sa.Column('entity_id', sa.String(length=100), nullable=False),
        sa.Column('details', sa.JSON().with_variant(postgresql.JSONB(), 'postgresql'), nullable=True),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_activity_log_action', 'activity_log', ['action'])
    op.create_index('ix_activity_log_entity_type', 'activity_log', ['entity_type'])
    op.create_index('ix_activity_log_entity_id', 'activity_log', ['entity_id'])
    op.create_index('ix_activity_log_created_at', 'activity_log', ['created_at'])


def downgrade() -> None:
    op.drop_table('activity_log')
    op.drop_table('stock_allocations')
    op.drop_table('order_items')
    op.drop_table('orders')
    op.drop_table('coupons')
    op.drop_table('customers')
    op.drop_table('cart_items')
    op.drop_table('inventories')
    op.drop_table('warehouses')
    op.drop_table('products')
