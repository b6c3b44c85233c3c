"""Create ledger schema.

Accounts, append-only ledger entries, plans, fixed-term investments and
matrix board positions.

Revision ID: 20261019_000001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '20261019_000001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create all ledger tables."""

    op.create_table(
        'accounts',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('username', sa.String(255), nullable=False),
        sa.Column('referral_code', sa.String(20), nullable=False),
        sa.Column(
            'referrer_id',
            sa.Integer(),
            sa.ForeignKey('accounts.id', ondelete='RESTRICT'),
            nullable=True,
        ),
        sa.Column('placed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        sa.Column(
            'wallet_balance',
            sa.DECIMAL(18, 8),
            nullable=False,
            server_default='0',
            comment='Cached sum of completed ledger entries',
        ),
        sa.Column(
            'ledger_frozen',
            sa.Boolean(),
            nullable=False,
            server_default=sa.false(),
            comment='Set by reconciliation mismatch, blocks all writes',
        ),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('username', name='uq_accounts_username'),
        sa.CheckConstraint(
            'referrer_id IS NULL OR referrer_id <> id',
            name='check_account_not_self_referred',
        ),
    )
    op.create_index('ix_accounts_referral_code', 'accounts', ['referral_code'], unique=True)
    op.create_index('ix_accounts_referrer_id', 'accounts', ['referrer_id'])
    op.create_index('idx_account_status', 'accounts', ['status'])

    op.create_table(
        'ledger_entries',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            'account_id',
            sa.Integer(),
            sa.ForeignKey('accounts.id', ondelete='RESTRICT'),
            nullable=False,
        ),
        sa.Column('amount', sa.DECIMAL(18, 8), nullable=False),
        sa.Column('currency', sa.String(10), nullable=False, server_default='USDT'),
        sa.Column('kind', sa.String(32), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='completed'),
        sa.Column(
            'source_entry_id',
            sa.Integer(),
            sa.ForeignKey('ledger_entries.id', ondelete='RESTRICT'),
            nullable=True,
        ),
        sa.Column('level', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('idempotency_key', sa.String(128), nullable=True),
        sa.Column('balance_after', sa.DECIMAL(18, 8), nullable=True),
        sa.Column('reference', sa.String(255), nullable=True),
        sa.Column('note', sa.Text(), nullable=True),
        sa.Column('processed_by', sa.Integer(), nullable=True),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('extra', postgresql.JSONB(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint(
            'source_entry_id', 'kind', 'level',
            name='uq_ledger_source_kind_level',
        ),
        sa.UniqueConstraint('idempotency_key', name='uq_ledger_idempotency_key'),
        sa.CheckConstraint('amount <> 0', name='check_ledger_amount_non_zero'),
        sa.CheckConstraint('level >= 0', name='check_ledger_level_non_negative'),
    )
    op.create_index('ix_ledger_entries_account_id', 'ledger_entries', ['account_id'])
    op.create_index('ix_ledger_entries_source_entry_id', 'ledger_entries', ['source_entry_id'])
    op.create_index('idx_ledger_account_created', 'ledger_entries', ['account_id', 'created_at'])
    op.create_index('idx_ledger_account_status', 'ledger_entries', ['account_id', 'status'])
    op.create_index('idx_ledger_kind_created', 'ledger_entries', ['kind', 'created_at'])

    op.create_table(
        'plans',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('family', sa.String(20), nullable=False),
        sa.Column('min_deposit', sa.DECIMAL(18, 8), nullable=False),
        sa.Column('max_deposit', sa.DECIMAL(18, 8), nullable=False),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('monthly_rate', sa.DECIMAL(10, 4), nullable=False, server_default='0'),
        sa.Column('duration_days', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('required_referrals', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_income', sa.DECIMAL(18, 8), nullable=False, server_default='0'),
        sa.Column('reentry_amount', sa.DECIMAL(18, 8), nullable=False, server_default='0'),
        sa.Column('total_income_after_reentry', sa.DECIMAL(18, 8), nullable=False, server_default='0'),
        sa.Column('reward_gift', sa.String(100), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('name', name='uq_plans_name'),
        sa.CheckConstraint('min_deposit > 0', name='check_plan_min_positive'),
        sa.CheckConstraint('max_deposit >= min_deposit', name='check_plan_corridor'),
        sa.CheckConstraint('monthly_rate >= 0', name='check_plan_rate_non_negative'),
    )
    op.create_index('ix_plans_family', 'plans', ['family'])

    op.create_table(
        'investments',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            'account_id',
            sa.Integer(),
            sa.ForeignKey('accounts.id', ondelete='RESTRICT'),
            nullable=False,
        ),
        sa.Column(
            'plan_id',
            sa.Integer(),
            sa.ForeignKey('plans.id', ondelete='RESTRICT'),
            nullable=False,
        ),
        sa.Column('principal', sa.DECIMAL(18, 8), nullable=False),
        sa.Column('monthly_rate', sa.DECIMAL(10, 4), nullable=False),
        sa.Column('duration_days', sa.Integer(), nullable=False),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('matures_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column(
            'funding_entry_id',
            sa.Integer(),
            sa.ForeignKey('ledger_entries.id', ondelete='RESTRICT'),
            nullable=False,
        ),
        sa.Column(
            'payout_entry_id',
            sa.Integer(),
            sa.ForeignKey('ledger_entries.id', ondelete='RESTRICT'),
            nullable=True,
        ),
        sa.Column('closed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('funding_entry_id', name='uq_investments_funding_entry_id'),
        sa.CheckConstraint('principal > 0', name='check_investment_principal_positive'),
        sa.CheckConstraint('duration_days > 0', name='check_investment_duration_positive'),
    )
    op.create_index('ix_investments_account_id', 'investments', ['account_id'])
    op.create_index('idx_investment_status_matures', 'investments', ['status', 'matures_at'])

    op.create_table(
        'matrix_positions',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            'account_id',
            sa.Integer(),
            sa.ForeignKey('accounts.id', ondelete='RESTRICT'),
            nullable=False,
        ),
        sa.Column(
            'plan_id',
            sa.Integer(),
            sa.ForeignKey('plans.id', ondelete='RESTRICT'),
            nullable=False,
        ),
        sa.Column('cycle', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('qualified_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(20), nullable=False, server_default='filling'),
        sa.Column(
            'source_entry_id',
            sa.Integer(),
            sa.ForeignKey('ledger_entries.id', ondelete='RESTRICT'),
            nullable=False,
        ),
        sa.Column(
            'payout_entry_id',
            sa.Integer(),
            sa.ForeignKey('ledger_entries.id', ondelete='RESTRICT'),
            nullable=True,
        ),
        sa.Column(
            'reentry_entry_id',
            sa.Integer(),
            sa.ForeignKey('ledger_entries.id', ondelete='RESTRICT'),
            nullable=True,
        ),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint(
            'account_id', 'plan_id', 'cycle',
            name='uq_matrix_position_cycle',
        ),
        sa.CheckConstraint('cycle >= 1', name='check_matrix_cycle_positive'),
        sa.CheckConstraint('qualified_count >= 0', name='check_matrix_count_non_negative'),
    )
    op.create_index('ix_matrix_positions_account_id', 'matrix_positions', ['account_id'])
    op.create_index('idx_matrix_position_board_status', 'matrix_positions', ['plan_id', 'status'])

    op.create_table(
        'matrix_qualifications',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            'position_id',
            sa.Integer(),
            sa.ForeignKey('matrix_positions.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column(
            'qualifying_account_id',
            sa.Integer(),
            sa.ForeignKey('accounts.id', ondelete='RESTRICT'),
            nullable=False,
        ),
        sa.Column(
            'purchase_entry_id',
            sa.Integer(),
            sa.ForeignKey('ledger_entries.id', ondelete='RESTRICT'),
            nullable=False,
        ),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint(
            'position_id', 'qualifying_account_id',
            name='uq_matrix_qualification',
        ),
    )
    op.create_index('ix_matrix_qualifications_position_id', 'matrix_qualifications', ['position_id'])


def downgrade() -> None:
    """Drop all ledger tables."""
    op.drop_table('matrix_qualifications')
    op.drop_table('matrix_positions')
    op.drop_table('investments')
    op.drop_table('plans')
    op.drop_table('ledger_entries')
    op.drop_table('accounts')
