"""create feature flag tables

Revision ID: 3c9e1f2a7b10
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '3c9e1f2a7b10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table('feature_flags',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('code', sa.String(length=50), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('enabled', sa.Boolean(), nullable=False),
        sa.Column('value_type', sa.String(length=20), nullable=False),
        sa.Column('value', sa.JSON(), nullable=True),
        sa.Column('due_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_feature_flags_code'), 'feature_flags', ['code'], unique=True)

    op.create_table('rollout_rules',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('flag_id', sa.Integer(), nullable=False),
        sa.Column('priority', sa.Integer(), nullable=True),
        sa.Column('active', sa.Boolean(), nullable=False),
        sa.Column('start_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('end_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('percentage', sa.Float(), nullable=True),
        sa.Column('distribution_key_attribute', sa.String(length=100), nullable=True),
        sa.Column('value_bool', sa.Boolean(), nullable=True),
        sa.Column('value_string', sa.Text(), nullable=True),
        sa.Column('value_int', sa.BigInteger(), nullable=True),
        sa.Column('value_percentage', sa.Float(), nullable=True),
        sa.Column('variant_name', sa.String(length=100), nullable=True),
        sa.Column('conditions', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['flag_id'], ['feature_flags.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    # Rules are always read per flag in priority order
    op.create_index('idx_rollout_rules_flag_priority', 'rollout_rules', ['flag_id', 'priority'], unique=False)


def downgrade() -> None:
    op.drop_index('idx_rollout_rules_flag_priority', table_name='rollout_rules')
    op.drop_table('rollout_rules')
    op.drop_index(op.f('ix_feature_flags_code'), table_name='feature_flags')
    op.drop_table('feature_flags')
