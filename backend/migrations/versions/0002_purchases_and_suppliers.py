"""purchases and suppliers

Revision ID: 0002_purchases
Revises: 0001_initial
Create Date: 2026-10-16 00:00:00.000000

- suppliers: vendors purchase orders are placed with
- purchases / purchase_items: purchase orders and their received quantities
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0002_purchases'
down_revision = '0001_initial'
branch_labels = None
depends_on = None

MONEY = sa.Numeric(precision=14, scale=2)


def _timestamps(*names):
    return [
        sa.Column(name, sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP'))
        for name in names
    ]


def upgrade():
    op.create_table(
        'suppliers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('contact_person', sa.String(length=255), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('address', sa.String(length=255), nullable=True),
        sa.Column('city', sa.String(length=120), nullable=True),
        sa.Column('tax_id', sa.String(length=32), nullable=True),
        sa.Column('payment_terms', sa.String(length=120), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        *_timestamps('created_at', 'updated_at'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_suppliers')),
        sa.UniqueConstraint('email', name=op.f('uq_suppliers_email')),
        sqlite_autoincrement=True
    )
    op.create_index(op.f('ix_suppliers_is_active'), 'suppliers', ['is_active'])
    op.create_index('ix_suppliers_active_name', 'suppliers', ['is_active', 'name'])

    op.create_table(
        'purchases',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_number', sa.String(length=64), nullable=False),
        sa.Column('supplier_id', sa.Integer(), nullable=False),
        sa.Column('subtotal', MONEY, nullable=False),
        sa.Column('tax_amount', MONEY, nullable=False),
        sa.Column('total_amount', MONEY, nullable=False),
        sa.Column('status', sa.String(length=24), nullable=False),
        sa.Column('expected_delivery_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('received_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('payment_terms', sa.String(length=120), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('user_id', sa.Integer(), nullable=True),
        *_timestamps('created_at', 'updated_at'),
        sa.Column('version_id', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['supplier_id'], ['suppliers.id'], name=op.f('fk_purchases_supplier_id_suppliers')),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name=op.f('fk_purchases_user_id_users')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_purchases')),
        sa.UniqueConstraint('order_number', name=op.f('uq_purchases_order_number')),
        sqlite_autoincrement=True
    )
    op.create_index(op.f('ix_purchases_supplier_id'), 'purchases', ['supplier_id'])
    op.create_index(op.f('ix_purchases_status'), 'purchases', ['status'])
    op.create_index('ix_purchases_status_created', 'purchases', ['status', 'created_at'])

    op.create_table(
        'purchase_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('purchase_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_cost', MONEY, nullable=False),
        sa.Column('total_cost', MONEY, nullable=False),
        sa.Column('received_quantity', sa.Integer(), nullable=False),
        sa.Column('received_cost', MONEY, nullable=True),
        sa.CheckConstraint('quantity > 0', name=op.f('ck_purchase_items_quantity_positive')),
        sa.CheckConstraint(
            'received_quantity >= 0 AND received_quantity <= quantity',
            name=op.f('ck_purchase_items_received_within_ordered'),
        ),
        sa.ForeignKeyConstraint(['purchase_id'], ['purchases.id'], name=op.f('fk_purchase_items_purchase_id_purchases'), ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], name=op.f('fk_purchase_items_product_id_products')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_purchase_items')),
        sqlite_autoincrement=True
    )
    op.create_index(op.f('ix_purchase_items_purchase_id'), 'purchase_items', ['purchase_id'])
    op.create_index(op.f('ix_purchase_items_product_id'), 'purchase_items', ['product_id'])


def downgrade():
    op.drop_table('purchase_items')
    op.drop_table('purchases')
    op.drop_table('suppliers')
