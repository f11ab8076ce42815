"""Create growth engine tables

Pricing performance tracking plus enterprise escrow wallets and their
audit trail.

Revision ID: a1c4e7f20b31
Revises:
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = 'a1c4e7f20b31'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'pricing_performance',
        sa.Column('id', sa.Integer(), primary_key=True, index=True),
        sa.Column('product_type', sa.String(), nullable=False, index=True),
        sa.Column('price', sa.Numeric(10, 2), nullable=False),
        sa.Column('converted', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('user_id', sa.String(), nullable=True),
        sa.Column('recorded_at', sa.DateTime(), server_default=sa.func.now(), index=True),
    )

    op.create_table(
        'escrow_wallets',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('client_id', sa.String(), nullable=False, index=True),
        sa.Column('multisig_address', sa.String(), nullable=False),
        sa.Column('signatory_addresses', sa.JSON(), nullable=False),
        sa.Column('service_address', sa.String(), nullable=False),
        sa.Column('required_signatures', sa.Integer(), nullable=False),
        sa.Column('contract_value', sa.Numeric(18, 2), nullable=False),
        sa.Column('currency', sa.String(8), nullable=False),
        sa.Column('status', sa.String(16), nullable=False, server_default='active', index=True),
        sa.Column('compliance_level', sa.String(16), nullable=False, server_default='bank-level'),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('expires_at', sa.DateTime(), nullable=True),
    )

    op.create_table(
        'escrow_audit_entries',
        sa.Column('id', sa.Integer(), primary_key=True, index=True),
        sa.Column('wallet_id', sa.String(), sa.ForeignKey('escrow_wallets.id'), nullable=False, index=True),
        sa.Column('timestamp', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('action', sa.String(32), nullable=False),
        sa.Column('actor', sa.String(), nullable=False),
        sa.Column('transaction_hash', sa.String(), nullable=True),
        sa.Column('amount', sa.Numeric(18, 9), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
    )


def downgrade() -> None:
    op.drop_table('escrow_audit_entries')
    op.drop_table('escrow_wallets')
    op.drop_table('pricing_performance')
