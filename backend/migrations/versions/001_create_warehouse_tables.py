"""Create warehouse tables

Revision ID: 001
Revises:
Create Date: 2026-01-05 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table('items',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('item_code', sa.String(length=50), nullable=False),
    sa.Column('item_name', sa.String(length=255), nullable=False),
    sa.Column('unit_of_measure', sa.String(length=50), nullable=True),
    sa.Column('min_stock_level', sa.Integer(), nullable=True),
    sa.Column('max_stock_level', sa.Integer(), nullable=True),
    sa.Column('cached_total_quantity', sa.Integer(), nullable=False, server_default='0'),
    sa.Column('cached_last_import_date', sa.DateTime(), nullable=True),
    sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
    sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
    sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_items_id'), 'items', ['id'], unique=False)
    op.create_index(op.f('ix_items_item_code'), 'items', ['item_code'], unique=True)

    op.create_table('item_units',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('item_id', sa.Integer(), nullable=False),
    sa.Column('unit_name', sa.String(length=50), nullable=False),
    sa.Column('conversion_rate', sa.Integer(), nullable=False, server_default='1'),
    sa.Column('is_base_unit', sa.Boolean(), nullable=False, server_default=sa.false()),
    sa.Column('display_order', sa.Integer(), nullable=False, server_default='0'),
    sa.ForeignKeyConstraint(['item_id'], ['items.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('item_id', 'unit_name', name='uq_item_units_item_name'),
    sa.CheckConstraint('conversion_rate >= 1', name='ck_item_units_rate_positive')
    )
    op.create_index(op.f('ix_item_units_id'), 'item_units', ['id'], unique=False)
    op.create_index(op.f('ix_item_units_item_id'), 'item_units', ['item_id'], unique=False)

    op.create_table('suppliers',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('supplier_code', sa.String(length=50), nullable=False),
    sa.Column('supplier_name', sa.String(length=255), nullable=False),
    sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
    sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('supplier_code')
    )
    op.create_index(op.f('ix_suppliers_id'), 'suppliers', ['id'], unique=False)

    op.create_table('employees',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('employee_code', sa.String(length=50), nullable=False),
    sa.Column('full_name', sa.String(length=255), nullable=False),
    sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
    sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_employees_id'), 'employees', ['id'], unique=False)
    op.create_index(op.f('ix_employees_employee_code'), 'employees', ['employee_code'], unique=True)

    op.create_table('storage_transactions',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('transaction_code', sa.String(length=50), nullable=False),
    sa.Column('transaction_type', sa.String(length=20), nullable=False),
    sa.Column('transaction_date', sa.Date(), nullable=False),
    sa.Column('export_type', sa.String(length=20), nullable=True),
    sa.Column('reference_code', sa.String(length=100), nullable=True),
    sa.Column('department_name', sa.String(length=100), nullable=True),
    sa.Column('requested_by', sa.String(length=100), nullable=True),
    sa.Column('supplier_id', sa.Integer(), nullable=True),
    sa.Column('invoice_number', sa.String(length=100), nullable=True),
    sa.Column('expected_delivery_date', sa.Date(), nullable=True),
    sa.Column('notes', sa.Text(), nullable=True),
    sa.Column('status', sa.String(length=30), nullable=False, server_default='COMPLETED'),
    sa.Column('approval_status', sa.String(length=30), nullable=False, server_default='PENDING_APPROVAL'),
    sa.Column('total_value', sa.Numeric(precision=18, scale=4), nullable=False, server_default='0'),
    sa.Column('created_by_id', sa.Integer(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
    sa.ForeignKeyConstraint(['supplier_id'], ['suppliers.id'], ),
    sa.ForeignKeyConstraint(['created_by_id'], ['employees.id'], ),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('invoice_number')
    )
    op.create_index(op.f('ix_storage_transactions_id'), 'storage_transactions', ['id'], unique=False)
    op.create_index(op.f('ix_storage_transactions_transaction_code'), 'storage_transactions', ['transaction_code'], unique=True)
    op.create_index(op.f('ix_storage_transactions_transaction_type'), 'storage_transactions', ['transaction_type'], unique=False)

    op.create_table('item_batches',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('item_id', sa.Integer(), nullable=False),
    sa.Column('unit_id', sa.Integer(), nullable=True),
    sa.Column('supplier_id', sa.Integer(), nullable=True),
    sa.Column('parent_batch_id', sa.Integer(), nullable=True),
    sa.Column('lot_number', sa.String(length=100), nullable=False),
    sa.Column('expiry_date', sa.Date(), nullable=True),
    sa.Column('quantity_on_hand', sa.Integer(), nullable=False, server_default='0'),
    sa.Column('initial_quantity', sa.Integer(), nullable=False, server_default='0'),
    sa.Column('bin_location', sa.String(length=100), nullable=True),
    sa.Column('is_unpacked', sa.Boolean(), nullable=False, server_default=sa.false()),
    sa.Column('unpacked_at', sa.DateTime(), nullable=True),
    sa.Column('unpacked_by_transaction_id', sa.Integer(), nullable=True),
    sa.Column('imported_at', sa.DateTime(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
    sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
    sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
    sa.ForeignKeyConstraint(['item_id'], ['items.id'], ),
    sa.ForeignKeyConstraint(['unit_id'], ['item_units.id'], ),
    sa.ForeignKeyConstraint(['supplier_id'], ['suppliers.id'], ),
    sa.ForeignKeyConstraint(['parent_batch_id'], ['item_batches.id'], ),
    sa.ForeignKeyConstraint(['unpacked_by_transaction_id'], ['storage_transactions.id'], ),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('item_id', 'lot_number', name='uq_item_batches_item_lot'),
    sa.CheckConstraint('quantity_on_hand >= 0', name='ck_item_batches_qty_non_negative')
    )
    op.create_index(op.f('ix_item_batches_id'), 'item_batches', ['id'], unique=False)
    op.create_index(op.f('ix_item_batches_item_id'), 'item_batches', ['item_id'], unique=False)
    op.create_index(op.f('ix_item_batches_parent_batch_id'), 'item_batches', ['parent_batch_id'], unique=False)
    # FEFO scans: batches of an item by expiry
    op.create_index('ix_item_batches_item_expiry', 'item_batches', ['item_id', 'expiry_date'], unique=False)

    op.create_table('storage_transaction_lines',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('transaction_id', sa.Integer(), nullable=False),
    sa.Column('line_number', sa.Integer(), nullable=False),
    sa.Column('batch_id', sa.Integer(), nullable=False),
    sa.Column('unit_id', sa.Integer(), nullable=True),
    sa.Column('item_code', sa.String(length=50), nullable=False),
    sa.Column('quantity_change', sa.Integer(), nullable=False),
    sa.Column('unit_price', sa.Numeric(precision=18, scale=4), nullable=False, server_default='0'),
    sa.Column('line_value', sa.Numeric(precision=18, scale=4), nullable=False, server_default='0'),
    sa.Column('notes', sa.Text(), nullable=True),
    sa.ForeignKeyConstraint(['transaction_id'], ['storage_transactions.id'], ondelete='CASCADE'),
    sa.ForeignKeyConstraint(['batch_id'], ['item_batches.id'], ),
    sa.ForeignKeyConstraint(['unit_id'], ['item_units.id'], ),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_storage_transaction_lines_id'), 'storage_transaction_lines', ['id'], unique=False)
    op.create_index(op.f('ix_storage_transaction_lines_transaction_id'), 'storage_transaction_lines', ['transaction_id'], unique=False)
    op.create_index(op.f('ix_storage_transaction_lines_batch_id'), 'storage_transaction_lines', ['batch_id'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('storage_transaction_lines')
    op.drop_table('item_batches')
    op.drop_table('storage_transactions')
    op.drop_table('employees')
    op.drop_table('suppliers')
    op.drop_table('item_units')
    op.drop_table('items')
