"""Initial schema: catalog, unit and bulk ledgers, orders, cart, audit log

Revision ID: 3f1c2a9d7e10
Revises: 
Create Date: 2026-10-17 10:12:04.118204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# Revision identifiers used by Alembic
revision: str = '3f1c2a9d7e10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

UNIT_STATUS = sa.Enum(
    'IN_FACTORY', 'IN_TRANSIT_TO_SELLER', 'AT_SELLER', 'SOLD_TO_BUYER',
    'RETURN_REQUESTED', 'RETURNED_TO_SELLER', 'RETURNED_DEFECTIVE',
    name='unitstatus',
)
MOVEMENT_KIND = sa.Enum('PRODUCE', 'DISPATCH', 'SALE', 'CANCEL', 'RETURN', 'RECALL', name='movementkind')
ORDER_STATUS = sa.Enum(
    'AWAITING_CONFIRMATION', 'CONFIRMED', 'DELIVERED', 'RETURN_REQUESTED', 'RETURNED',
    name='orderstatus',
)


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('password_hash', sa.String(), nullable=False),
        sa.Column('role', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=True),
        sa.Column('phone', sa.String(), nullable=True),
    )
    op.create_index('ix_users_id', 'users', ['id'])
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_role', 'users', ['role'])

    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.String(), nullable=True),
        sa.Column('manufacturer_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('is_serialized', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_products_id', 'products', ['id'])
    op.create_index('ix_products_name', 'products', ['name'])
    op.create_index('ix_products_manufacturer_id', 'products', ['manufacturer_id'])

    op.create_table(
        'product_units',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('serial_number', sa.String(), nullable=False),
        sa.Column('status', UNIT_STATUS, nullable=False),
        sa.Column('manufacturer_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('seller_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('buyer_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('unique_auth_hash', sa.String(), nullable=True),
        sa.Column('manufactured_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('dispatched_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('received_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('sold_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('returned_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.UniqueConstraint('product_id', 'serial_number', name='uq_unit_product_serial'),
    )
    for col in ('id', 'product_id', 'serial_number', 'status', 'manufacturer_id', 'seller_id', 'buyer_id'):
        op.create_index(f'ix_product_units_{col}', 'product_units', [col])

    op.create_table(
        'bulk_stock',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('owner_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('quantity', sa.Integer(), sa.CheckConstraint('quantity >= 0'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.UniqueConstraint('product_id', 'owner_id', name='uq_bulkstock_product_owner'),
    )
    for col in ('id', 'product_id', 'owner_id'):
        op.create_index(f'ix_bulk_stock_{col}', 'bulk_stock', [col])

    op.create_table(
        'bulk_movements',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('from_owner_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('to_owner_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('qty', sa.Integer(), nullable=False),
        sa.Column('kind', MOVEMENT_KIND, nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=True),
        sa.Column('reason', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    for col in ('id', 'product_id', 'kind', 'order_id'):
        op.create_index(f'ix_bulk_movements_{col}', 'bulk_movements', [col])

    op.create_table(
        'orders',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('seller_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('buyer_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('status', ORDER_STATUS, nullable=False),
        sa.Column('unit_selection', sa.JSON(), nullable=True),
        sa.Column('ordered_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('confirmed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('delivered_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('return_requested_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('return_resolved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
    )
    for col in ('id', 'product_id', 'seller_id', 'buyer_id', 'status'):
        op.create_index(f'ix_orders_{col}', 'orders', [col])

    op.create_table(
        'order_units',
        sa.Column('order_id', sa.Integer(), sa.ForeignKey('orders.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('unit_id', sa.Integer(), sa.ForeignKey('product_units.id'), primary_key=True),
    )

    op.create_table(
        'carts',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('status', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
    )
    for col in ('id', 'user_id', 'status'):
        op.create_index(f'ix_carts_{col}', 'carts', [col])

    op.create_table(
        'cart_items',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('cart_id', sa.Integer(), sa.ForeignKey('carts.id'), nullable=False),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('seller_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('qty', sa.Integer(), nullable=False),
        sa.Column('unit_ids', sa.JSON(), nullable=True),
        sa.UniqueConstraint('cart_id', 'product_id', 'seller_id', name='uq_cartitem_cart_product_seller'),
    )
    for col in ('id', 'cart_id', 'product_id', 'seller_id'):
        op.create_index(f'ix_cart_items_{col}', 'cart_items', [col])

    op.create_table(
        'logs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('ts', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('action', sa.String(50)),
        sa.Column('resource', sa.String(50)),
        sa.Column('status', sa.String(20)),
        sa.Column('ip', sa.String(64), nullable=True),
        sa.Column('meta', sa.JSON(), nullable=True),
    )
    for col in ('id', 'ts', 'action', 'resource', 'status'):
        op.create_index(f'ix_logs_{col}', 'logs', [col])
    op.create_index('ix_logs_user_ts', 'logs', ['user_id', 'ts'])


def downgrade() -> None:
    """Downgrade schema."""
    for table in ('logs', 'cart_items', 'carts', 'order_units', 'orders',
                  'bulk_movements', 'bulk_stock', 'product_units', 'products', 'users'):
        op.drop_table(table)
    bind = op.get_bind()
    for enum_type in (ORDER_STATUS, MOVEMENT_KIND, UNIT_STATUS):
        enum_type.drop(bind, checkfirst=True)
