"""initial sales schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-01 00:00:00.000000

Creates the complete schema:
- users / session_tokens: staff accounts and bearer sessions
- categories / products: catalog with on-hand stock (CHECK stock >= 0)
- customers
- sales / sale_items: sale documents with optimistic version_id
- inventory_movements: append-only stock audit trail
- document_sequences: atomic invoice counters
- credits / credit_payments: receivables opened by credit sales
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001_initial'
down_revision = None
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
    # ============================================================================
    # users / session_tokens
    # ============================================================================
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('first_name', sa.String(length=128), nullable=True),
        sa.Column('last_name', sa.String(length=128), nullable=True),
        sa.Column('role', sa.String(length=16), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        *_timestamps('created_at'),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_users')),
        sa.UniqueConstraint('username', name=op.f('uq_users_username')),
        sa.UniqueConstraint('email', name=op.f('uq_users_email')),
        sqlite_autoincrement=True
    )

    op.create_table(
        'session_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('token_hash', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_revoked', sa.Boolean(), nullable=False),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('revoked_reason', sa.String(length=255), nullable=True),
        sa.Column('user_agent', sa.String(length=255), nullable=True),
        sa.Column('ip_address', sa.String(length=64), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name=op.f('fk_session_tokens_user_id_users')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_session_tokens')),
        sa.UniqueConstraint('token_hash', name=op.f('uq_session_tokens_token_hash')),
        sqlite_autoincrement=True
    )
    op.create_index(op.f('ix_session_tokens_user_id'), 'session_tokens', ['user_id'])

    # ============================================================================
    # categories / products
    # ============================================================================
    op.create_table(
        'categories',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        *_timestamps('created_at'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_categories')),
        sa.UniqueConstraint('name', name=op.f('uq_categories_name')),
        sqlite_autoincrement=True
    )

    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('price', MONEY, nullable=False),
        sa.Column('cost', MONEY, nullable=False),
        sa.Column('stock', sa.Integer(), nullable=False),
        sa.Column('min_stock', sa.Integer(), nullable=False),
        sa.Column('max_stock', sa.Integer(), nullable=True),
        sa.Column('category_id', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        *_timestamps('created_at', 'updated_at'),
        sa.CheckConstraint('stock >= 0', name=op.f('ck_products_stock_non_negative')),
        sa.ForeignKeyConstraint(['category_id'], ['categories.id'], name=op.f('fk_products_category_id_categories')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_products')),
        sa.UniqueConstraint('code', name=op.f('uq_products_code')),
        sqlite_autoincrement=True
    )
    op.create_index(op.f('ix_products_name'), 'products', ['name'])
    op.create_index('ix_products_category_active', 'products', ['category_id', 'is_active'])

    # ============================================================================
    # customers
    # ============================================================================
    op.create_table(
        'customers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('document_number', sa.String(length=32), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('address', sa.String(length=255), nullable=True),
        sa.Column('credit_limit', MONEY, nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        *_timestamps('created_at', 'updated_at'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_customers')),
        sa.UniqueConstraint('document_number', name=op.f('uq_customers_document_number')),
        sqlite_autoincrement=True
    )
    op.create_index(op.f('ix_customers_is_active'), 'customers', ['is_active'])
    op.create_index('ix_customers_active_name', 'customers', ['is_active', 'name'])

    # ============================================================================
    # sales / sale_items
    # ============================================================================
    op.create_table(
        'sales',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('invoice_number', sa.String(length=64), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=True),
        sa.Column('customer_name', sa.String(length=255), nullable=False),
        sa.Column('subtotal', MONEY, nullable=False),
        sa.Column('discount', MONEY, nullable=False),
        sa.Column('tax_amount', MONEY, nullable=False),
        sa.Column('total_amount', MONEY, nullable=False),
        sa.Column('payment_method', sa.String(length=16), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('user_id', sa.Integer(), nullable=True),
        *_timestamps('created_at', 'updated_at'),
        sa.Column('version_id', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], name=op.f('fk_sales_customer_id_customers')),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name=op.f('fk_sales_user_id_users')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_sales')),
        sa.UniqueConstraint('invoice_number', name=op.f('uq_sales_invoice_number')),
        sqlite_autoincrement=True
    )
    op.create_index(op.f('ix_sales_customer_id'), 'sales', ['customer_id'])
    op.create_index(op.f('ix_sales_status'), 'sales', ['status'])
    op.create_index('ix_sales_status_created', 'sales', ['status', 'created_at'])

    op.create_table(
        'sale_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sale_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', MONEY, nullable=False),
        sa.Column('total_price', MONEY, nullable=False),
        *_timestamps('created_at'),
        sa.CheckConstraint('quantity > 0', name=op.f('ck_sale_items_quantity_positive')),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id'], name=op.f('fk_sale_items_sale_id_sales'), ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], name=op.f('fk_sale_items_product_id_products')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_sale_items')),
        sqlite_autoincrement=True
    )
    op.create_index(op.f('ix_sale_items_sale_id'), 'sale_items', ['sale_id'])
    op.create_index(op.f('ix_sale_items_product_id'), 'sale_items', ['product_id'])

    # ============================================================================
    # inventory_movements / document_sequences
    # ============================================================================
    op.create_table(
        'inventory_movements',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(length=32), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('previous_stock', sa.Integer(), nullable=True),
        sa.Column('new_stock', sa.Integer(), nullable=True),
        sa.Column('reference', sa.String(length=255), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('user_id', sa.Integer(), nullable=True),
        *_timestamps('created_at'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], name=op.f('fk_inventory_movements_product_id_products')),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name=op.f('fk_inventory_movements_user_id_users')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_inventory_movements')),
        sqlite_autoincrement=True
    )
    op.create_index(op.f('ix_inventory_movements_product_id'), 'inventory_movements', ['product_id'])
    op.create_index(op.f('ix_inventory_movements_type'), 'inventory_movements', ['type'])
    op.create_index(op.f('ix_inventory_movements_reference'), 'inventory_movements', ['reference'])
    op.create_index(op.f('ix_inventory_movements_created_at'), 'inventory_movements', ['created_at'])
    op.create_index('ix_inventory_movements_product_created', 'inventory_movements', ['product_id', 'created_at'])

    op.create_table(
        'document_sequences',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('document_type', sa.String(length=32), nullable=False),
        sa.Column('next_number', sa.Integer(), nullable=False),
        *_timestamps('updated_at'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_document_sequences')),
        sa.UniqueConstraint('document_type', name=op.f('uq_document_sequences_document_type')),
        sqlite_autoincrement=True
    )

    # ============================================================================
    # credits / credit_payments
    # ============================================================================
    op.create_table(
        'credits',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('sale_id', sa.Integer(), nullable=True),
        sa.Column('amount', MONEY, nullable=False),
        sa.Column('balance', MONEY, nullable=False),
        sa.Column('interest_rate', sa.Numeric(precision=5, scale=2), nullable=False),
        sa.Column('term_days', sa.Integer(), nullable=False),
        sa.Column('due_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('user_id', sa.Integer(), nullable=True),
        *_timestamps('created_at', 'updated_at'),
        sa.CheckConstraint('balance >= 0', name=op.f('ck_credits_balance_non_negative')),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], name=op.f('fk_credits_customer_id_customers')),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id'], name=op.f('fk_credits_sale_id_sales')),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name=op.f('fk_credits_user_id_users')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_credits')),
        sa.UniqueConstraint('sale_id', name=op.f('uq_credits_sale_id')),
        sqlite_autoincrement=True
    )
    op.create_index(op.f('ix_credits_customer_id'), 'credits', ['customer_id'])
    op.create_index(op.f('ix_credits_status'), 'credits', ['status'])
    op.create_index('ix_credits_status_due', 'credits', ['status', 'due_date'])

    op.create_table(
        'credit_payments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('credit_id', sa.Integer(), nullable=False),
        sa.Column('amount', MONEY, nullable=False),
        sa.Column('payment_method', sa.String(length=16), nullable=False),
        sa.Column('payment_date', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('reference', sa.String(length=128), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('user_id', sa.Integer(), nullable=True),
        *_timestamps('created_at'),
        sa.CheckConstraint('amount > 0', name=op.f('ck_credit_payments_amount_positive')),
        sa.ForeignKeyConstraint(['credit_id'], ['credits.id'], name=op.f('fk_credit_payments_credit_id_credits'), ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name=op.f('fk_credit_payments_user_id_users')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_credit_payments')),
        sqlite_autoincrement=True
    )
    op.create_index(op.f('ix_credit_payments_credit_id'), 'credit_payments', ['credit_id'])


def downgrade():
    op.drop_table('credit_payments')
    op.drop_table('credits')
    op.drop_table('document_sequences')
    op.drop_table('inventory_movements')
    op.drop_table('sale_items')
    op.drop_table('sales')
    op.drop_table('customers')
    op.drop_table('products')
    op.drop_table('categories')
    op.drop_table('session_tokens')
    op.drop_table('users')
