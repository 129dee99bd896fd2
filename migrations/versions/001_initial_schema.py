"""Initial schema for SKU budget allocation

Revision ID: 001
Revises: 
Create Date: 2026-10-18

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
    # Categories table
    op.create_table(
        'categories',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('user_id', sa.String(length=100), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_categories_id'), 'categories', ['id'], unique=False)
    op.create_index(op.f('ix_categories_user_id'), 'categories', ['user_id'], unique=False)

    # Budget sessions table
    op.create_table(
        'budget_sessions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('category_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='draft'),
        sa.Column('total_budget', sa.BigInteger(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['category_id'], ['categories.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_budget_sessions_id'), 'budget_sessions', ['id'], unique=False)
    op.create_index(op.f('ix_budget_sessions_category_id'), 'budget_sessions', ['category_id'], unique=False)

    # Hierarchy definitions table
    op.create_table(
        'hierarchy_definitions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('session_id', sa.Integer(), nullable=False),
        sa.Column('level', sa.Integer(), nullable=False),
        sa.Column('column_name', sa.String(length=200), nullable=False),
        sa.Column('display_order', sa.Integer(), nullable=False, server_default='0'),
        sa.ForeignKeyConstraint(['session_id'], ['budget_sessions.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('session_id', 'level', name='uq_hierarchy_level'),
        sa.UniqueConstraint('session_id', 'column_name', name='uq_hierarchy_column')
    )
    op.create_index(op.f('ix_hierarchy_definitions_id'), 'hierarchy_definitions', ['id'], unique=False)
    op.create_index(op.f('ix_hierarchy_definitions_session_id'), 'hierarchy_definitions', ['session_id'], unique=False)

    # SKU data table
    op.create_table(
        'sku_data',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('session_id', sa.Integer(), nullable=False),
        sa.Column('sku_code', sa.String(length=200), nullable=False),
        sa.Column('unit_price', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('hierarchy_values', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['session_id'], ['budget_sessions.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('session_id', 'sku_code', name='uq_sku_code')
    )
    op.create_index(op.f('ix_sku_data_id'), 'sku_data', ['id'], unique=False)
    op.create_index(op.f('ix_sku_data_session_id'), 'sku_data', ['session_id'], unique=False)

    # Allocations table
    op.create_table(
        'allocations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('session_id', sa.Integer(), nullable=False),
        sa.Column('hierarchy_path', sa.String(length=1000), nullable=False),
        sa.Column('level', sa.Integer(), nullable=False),
        sa.Column('percentage', sa.Numeric(precision=5, scale=2), nullable=False, server_default='0'),
        sa.Column('amount', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('quantity', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('period', sa.String(length=100), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['session_id'], ['budget_sessions.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('session_id', 'hierarchy_path', 'period', name='uq_allocation_path_period')
    )
    op.create_index(op.f('ix_allocations_id'), 'allocations', ['id'], unique=False)
    op.create_index(op.f('ix_allocations_session_id'), 'allocations', ['session_id'], unique=False)
    op.create_index(op.f('ix_allocations_period'), 'allocations', ['period'], unique=False)
    # NULL keys are distinct in a unique constraint; cover the default period separately
    op.create_index(
        'uq_allocation_default_period', 'allocations', ['session_id', 'hierarchy_path'],
        unique=True,
        postgresql_where=sa.text('period IS NULL'),
        sqlite_where=sa.text('period IS NULL'),
    )

    # Period budgets table
    op.create_table(
        'period_budgets',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('session_id', sa.Integer(), nullable=False),
        sa.Column('period', sa.String(length=100), nullable=True),
        sa.Column('budget', sa.BigInteger(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['session_id'], ['budget_sessions.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('session_id', 'period', name='uq_period_budget')
    )
    op.create_index(op.f('ix_period_budgets_id'), 'period_budgets', ['id'], unique=False)
    op.create_index(op.f('ix_period_budgets_session_id'), 'period_budgets', ['session_id'], unique=False)
    op.create_index(
        'uq_period_budget_default', 'period_budgets', ['session_id'],
        unique=True,
        postgresql_where=sa.text('period IS NULL'),
        sqlite_where=sa.text('period IS NULL'),
    )


def downgrade() -> None:
    op.drop_table('period_budgets')
    op.drop_table('allocations')
    op.drop_table('sku_data')
    op.drop_table('hierarchy_definitions')
    op.drop_table('budget_sessions')
    op.drop_table('categories')
