"""Add app_version_config table

Revision ID: 3c8e1f0a7b21
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '3c8e1f0a7b21'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Single-row policy table read by the version gate
    op.create_table(
        'app_version_config',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('minimum_required_version', sa.String(length=64), nullable=False, server_default='2.0.0'),
        sa.Column('latest_version', sa.String(length=64), nullable=False, server_default='2.0.0'),
        sa.Column('ota_url', sa.String(length=512), nullable=True),
        sa.Column('force_update', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )


def downgrade() -> None:
    op.drop_table('app_version_config')
