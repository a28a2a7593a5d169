"""initial retailops schema

Revision ID: r0001
Revises:
Create Date: 2026-10-17 00:00:00.000000

Creates the catalog, stock and sales tables:
- products: company-scoped catalog with unallocated on-hand quantity
- warehouses / branches: storage and retail locations
- warehouse_products: which catalog products a warehouse carries
- stocks: per-location quantities (warehouse xor branch)
- stock_requests: pending -> approved | rejected transfers
- transactions / transaction_lines: sales orders with priced line snapshots
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'r0001'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    ]


def upgrade():
    # ============================================================================
    # products
    # ============================================================================
    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('category', sa.String(length=128), nullable=True),
        sa.Column('sku', sa.String(length=64), nullable=False),
        sa.Column('unit', sa.String(length=32), nullable=False),
        sa.Column('price', sa.Numeric(12, 2), nullable=False),
        sa.Column('cost_price', sa.Numeric(12, 2), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('version_id', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('company_id', 'sku', name='uq_products_company_sku'),
        sa.CheckConstraint('quantity >= 0', name='ck_products_quantity_non_negative'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_products_company_id', 'products', ['company_id'])
    op.create_index('ix_products_category', 'products', ['category'])
    op.create_index('ix_products_status', 'products', ['status'])
    op.create_index('ix_products_company_name', 'products', ['company_id', 'name'])

    # ============================================================================
    # warehouses, branches
    # ============================================================================
    op.create_table(
        'warehouses',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('location', sa.String(length=255), nullable=False),
        sa.Column('manager_id', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_warehouses_company_id', 'warehouses', ['company_id'])
    op.create_index('ix_warehouses_manager_id', 'warehouses', ['manager_id'])

    op.create_table(
        'warehouse_products',
        sa.Column('warehouse_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['warehouse_id'], ['warehouses.id'], ),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.PrimaryKeyConstraint('warehouse_id', 'product_id'),
    )

    op.create_table(
        'branches',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('location', sa.String(length=255), nullable=True),
        sa.Column('warehouse_id', sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['warehouse_id'], ['warehouses.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_branches_company_id', 'branches', ['company_id'])
    op.create_index('ix_branches_warehouse_id', 'branches', ['warehouse_id'])

    # ============================================================================
    # stocks, stock_requests
    # ============================================================================
    op.create_table(
        'stocks',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('warehouse_id', sa.Integer(), nullable=True),
        sa.Column('branch_id', sa.Integer(), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.ForeignKeyConstraint(['warehouse_id'], ['warehouses.id'], ),
        sa.ForeignKeyConstraint(['branch_id'], ['branches.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('quantity >= 0', name='ck_stocks_quantity_non_negative'),
        sa.CheckConstraint(
            '(warehouse_id IS NULL) <> (branch_id IS NULL)',
            name='ck_stocks_single_location',
        ),
        sqlite_autoincrement=True
    )
    op.create_index('ix_stocks_product_id', 'stocks', ['product_id'])
    op.create_index('ix_stocks_warehouse_product', 'stocks', ['warehouse_id', 'product_id'])
    op.create_index('ix_stocks_branch_product', 'stocks', ['branch_id', 'product_id'])

    op.create_table(
        'stock_requests',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('source_type', sa.String(length=16), nullable=False),
        sa.Column('source_id', sa.Integer(), nullable=False),
        sa.Column('destination_type', sa.String(length=16), nullable=False),
        sa.Column('destination_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('note', sa.String(length=255), nullable=True),
        sa.Column('decided_at', sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('quantity > 0', name='ck_stock_requests_quantity_positive'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_stock_requests_product_id', 'stock_requests', ['product_id'])
    op.create_index('ix_stock_requests_status', 'stock_requests', ['status'])

    # ============================================================================
    # transactions, transaction_lines
    # ============================================================================
    op.create_table(
        'transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.String(length=64), nullable=False),
        sa.Column('customer_id', sa.String(length=64), nullable=False),
        sa.Column('branch_id', sa.Integer(), nullable=False),
        sa.Column('total_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('payment_method', sa.String(length=32), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('order_id'),
        sa.CheckConstraint('total_amount >= 0', name='ck_transactions_total_non_negative'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_transactions_customer_id', 'transactions', ['customer_id'])
    op.create_index('ix_transactions_branch_id', 'transactions', ['branch_id'])
    op.create_index('ix_transactions_branch_created', 'transactions', ['branch_id', 'created_at'])
    op.create_index('ix_transactions_status_created', 'transactions', ['status', 'created_at'])

    op.create_table(
        'transaction_lines',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('transaction_id', sa.Integer(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=True),
        sa.Column('category', sa.String(length=128), nullable=True),
        sa.Column('warehouse_id', sa.Integer(), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('price', sa.Numeric(12, 2), nullable=False),
        sa.ForeignKeyConstraint(['transaction_id'], ['transactions.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('quantity >= 1', name='ck_transaction_lines_quantity_positive'),
        sa.CheckConstraint('price >= 0', name='ck_transaction_lines_price_non_negative'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_transaction_lines_transaction_id', 'transaction_lines', ['transaction_id'])
    op.create_index('ix_transaction_lines_product_id', 'transaction_lines', ['product_id'])


def downgrade():
    """Drop all tables (destructive operation)."""
    op.drop_table('transaction_lines')
    op.drop_table('transactions')
    op.drop_table('stock_requests')
    op.drop_table('stocks')
    op.drop_table('branches')
    op.drop_table('warehouse_products')
    op.drop_table('warehouses')
    op.drop_table('products')
