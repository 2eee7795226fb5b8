"""initial ledger schema

Revision ID: 4c1a9e07d2b3
Revises:
Create Date: 2026-10-17 09:12:40.518203

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4c1a9e07d2b3'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
    ]


def upgrade():
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('username', sa.String(length=80), nullable=False),
        sa.Column('phone_number', sa.String(length=20), nullable=True),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('referral_code', sa.String(length=20), nullable=False),
        sa.Column('referred_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('referral_code_used', sa.String(length=20), nullable=True),
        sa.Column('balance', sa.Numeric(18, 2), nullable=False, server_default=sa.text('0.00')),
        sa.Column('total_referral_earnings', sa.Numeric(18, 2), nullable=False, server_default=sa.text('0.00')),
        sa.Column('total_miners', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('is_admin', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.UniqueConstraint('username'),
        sa.UniqueConstraint('referral_code'),
        sa.CheckConstraint('balance >= 0', name='chk_user_balance_non_negative'),
        sa.CheckConstraint('referred_by IS NULL OR referred_by <> id', name='chk_user_not_self_referred'),
    )
    op.create_index('idx_user_referral_code', 'users', ['referral_code'])
    op.create_index('ix_users_referred_by', 'users', ['referred_by'])

    op.create_table(
        'deposit_requests',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('amount', sa.Numeric(18, 2), nullable=False),
        sa.Column('local_amount', sa.Numeric(18, 2), nullable=False),
        sa.Column('method', sa.String(length=20), nullable=False),
        sa.Column('transaction_id', sa.String(length=120), nullable=False),
        sa.Column('screenshot_url', sa.String(length=500), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending'),
        sa.Column('processed_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('amount > 0', name='chk_deposit_amount_positive'),
    )
    op.create_index('ix_deposit_requests_user_id', 'deposit_requests', ['user_id'])
    op.create_index('ix_deposit_requests_status', 'deposit_requests', ['status'])
    op.create_index('idx_deposit_user_status', 'deposit_requests', ['user_id', 'status'])

    op.create_table(
        'withdrawal_requests',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('amount', sa.Numeric(18, 2), nullable=False),
        sa.Column('method', sa.String(length=20), nullable=False),
        sa.Column('account_number', sa.String(length=120), nullable=False),
        sa.Column('account_name', sa.String(length=120), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending'),
        sa.Column('processed_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('amount > 0', name='chk_withdrawal_amount_positive'),
    )
    op.create_index('ix_withdrawal_requests_user_id', 'withdrawal_requests', ['user_id'])
    op.create_index('ix_withdrawal_requests_status', 'withdrawal_requests', ['status'])
    op.create_index('idx_withdrawal_user_status', 'withdrawal_requests', ['user_id', 'status'])

    op.create_table(
        'mining_claims',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('amount', sa.Numeric(18, 2), nullable=False),
        sa.Column('machines_claimed', sa.Integer(), nullable=False, server_default=sa.text('1')),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.CheckConstraint('amount > 0', name='chk_claim_amount_positive'),
        sa.CheckConstraint('machines_claimed > 0', name='chk_claim_machines_positive'),
    )
    op.create_index('ix_mining_claims_user_id', 'mining_claims', ['user_id'])

    op.create_table(
        'commission_entries',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('beneficiary_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('source_user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('level', sa.Integer(), nullable=False),
        sa.Column('source_type', sa.String(length=20), nullable=False),
        sa.Column('source_ref', sa.String(length=64), nullable=False),
        sa.Column('amount', sa.Numeric(18, 2), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.UniqueConstraint('beneficiary_id', 'source_ref', 'level', name='uq_commission_event_level'),
        sa.CheckConstraint('level IN (1, 2)', name='chk_commission_level'),
        sa.CheckConstraint('amount > 0', name='chk_commission_amount_positive'),
    )
    op.create_index('ix_commission_entries_beneficiary_id', 'commission_entries', ['beneficiary_id'])
    op.create_index('ix_commission_entries_source_user_id', 'commission_entries', ['source_user_id'])
    op.create_index('idx_commission_beneficiary_source', 'commission_entries', ['beneficiary_id', 'source_user_id'])


def downgrade():
    op.drop_table('commission_entries')
    op.drop_table('mining_claims')
    op.drop_table('withdrawal_requests')
    op.drop_table('deposit_requests')
    op.drop_table('users')
