"""Create budget engine schema

Revision ID: 001
Revises: 
Create Date: 2026-10-19 10:00:00.000000

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
    """Create categories, ledger, templates and budgets."""

    # Create categories table
    op.create_table(
        'categories',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('family_id', sa.Uuid(), nullable=True),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('color', sa.String(length=20), nullable=True),
        sa.Column('icon', sa.String(length=50), nullable=True),
        sa.Column('type', sa.String(length=10), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint("type IN ('INCOME', 'EXPENSE')", name='check_category_type'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_categories_family_id'), 'categories', ['family_id'], unique=False)

    # Create transactions table
    op.create_table(
        'transactions',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('family_id', sa.Uuid(), nullable=False),
        sa.Column('category_id', sa.Uuid(), nullable=False),
        sa.Column('amount', sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column('type', sa.String(length=10), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
        sa.CheckConstraint("type IN ('INCOME', 'EXPENSE')", name='check_transaction_type'),
        sa.ForeignKeyConstraint(['category_id'], ['categories.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_transactions_family_id'), 'transactions', ['family_id'], unique=False)
    op.create_index(op.f('ix_transactions_category_id'), 'transactions', ['category_id'], unique=False)
    op.create_index(op.f('ix_transactions_date'), 'transactions', ['date'], unique=False)
    op.create_index('idx_transactions_family_category_date', 'transactions', ['family_id', 'category_id', 'date'], unique=False)

    # Create budget_templates table
    op.create_table(
        'budget_templates',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('family_id', sa.Uuid(), nullable=False),
        sa.Column('created_by', sa.Uuid(), nullable=True),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('total_budget', sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column('period', sa.String(length=10), nullable=False),
        sa.Column('alert_threshold', sa.Integer(), nullable=False),
        sa.Column('auto_generate', sa.Boolean(), nullable=False),
        sa.Column('last_generated', sa.DateTime(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint("period IN ('WEEKLY', 'MONTHLY', 'QUARTERLY', 'YEARLY')", name='check_template_period'),
        sa.CheckConstraint('alert_threshold >= 0 AND alert_threshold <= 100', name='check_template_alert_threshold'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_budget_templates_family_id'), 'budget_templates', ['family_id'], unique=False)
    op.create_index('idx_templates_family_active', 'budget_templates', ['family_id', 'is_active', 'auto_generate'], unique=False)

    # Create budget_template_categories table
    op.create_table(
        'budget_template_categories',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('template_id', sa.Uuid(), nullable=False),
        sa.Column('category_id', sa.Uuid(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('monthly_limit', sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column('enable_rollover', sa.Boolean(), nullable=False),
        sa.CheckConstraint('monthly_limit > 0', name='check_template_limit_positive'),
        sa.ForeignKeyConstraint(['template_id'], ['budget_templates.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['category_id'], ['categories.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('template_id', 'category_id', name='uq_template_category')
    )
    op.create_index(op.f('ix_budget_template_categories_template_id'), 'budget_template_categories', ['template_id'], unique=False)

    # Create budgets table
    op.create_table(
        'budgets',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('family_id', sa.Uuid(), nullable=False),
        sa.Column('template_id', sa.Uuid(), nullable=True),
        sa.Column('created_by', sa.Uuid(), nullable=True),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('total_budget', sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column('period', sa.String(length=10), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('alert_threshold', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('start_date < end_date', name='check_budget_period_order'),
        sa.CheckConstraint("period IN ('WEEKLY', 'MONTHLY', 'QUARTERLY', 'YEARLY')", name='check_budget_period'),
        sa.CheckConstraint('alert_threshold >= 0 AND alert_threshold <= 100', name='check_budget_alert_threshold'),
        sa.ForeignKeyConstraint(['template_id'], ['budget_templates.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('family_id', 'template_id', 'start_date', name='uq_budget_template_period')
    )
    op.create_index(op.f('ix_budgets_family_id'), 'budgets', ['family_id'], unique=False)
    op.create_index(op.f('ix_budgets_template_id'), 'budgets', ['template_id'], unique=False)
    op.create_index(op.f('ix_budgets_start_date'), 'budgets', ['start_date'], unique=False)
    op.create_index('idx_budgets_family_name_start', 'budgets', ['family_id', 'name', 'start_date'], unique=False)

    # Create budget_categories table
    op.create_table(
        'budget_categories',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('budget_id', sa.Uuid(), nullable=False),
        sa.Column('category_id', sa.Uuid(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('monthly_limit', sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column('enable_rollover', sa.Boolean(), nullable=False),
        sa.Column('rollover_amount', sa.Numeric(precision=14, scale=2), server_default='0', nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('monthly_limit > 0', name='check_budget_limit_positive'),
        sa.ForeignKeyConstraint(['budget_id'], ['budgets.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['category_id'], ['categories.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('budget_id', 'category_id', name='uq_budget_category')
    )
    op.create_index(op.f('ix_budget_categories_budget_id'), 'budget_categories', ['budget_id'], unique=False)


def downgrade() -> None:
    """Drop all budget engine tables."""
    op.drop_table('budget_categories')
    op.drop_table('budgets')
    op.drop_table('budget_template_categories')
    op.drop_table('budget_templates')
    op.drop_table('transactions')
    op.drop_table('categories')
